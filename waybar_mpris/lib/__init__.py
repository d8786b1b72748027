"""Shared plumbing for the waybar-mpris primary, mirrors and command peers."""
