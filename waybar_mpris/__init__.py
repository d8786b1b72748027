"""
waybar-mpris: MPRIS player status for waybar, with a single-instance
control socket.

  service.py        primary instance (bus subscription, registry, sockets)
  main.py           command-line entry point
  lib/              shared plumbing (config, transport, registry, ...)
"""

__version__ = "0.1.0"
