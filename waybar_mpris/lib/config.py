# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Configuration loader for waybar-mpris.

Loads an optional JSON config file.  Search order:
  1. $WAYBAR_MPRIS_CONFIG                       (explicit override)
  2. $XDG_CONFIG_HOME/waybar-mpris/config.json  (per user)
  3. /etc/waybar-mpris/config.json              (system wide)

Command-line flags win over the file, the file wins over built-in defaults.
The result is a frozen ``Settings`` value built once at startup and handed
to every component explicitly.

Usage:
    from waybar_mpris.lib.config import cfg, load_settings

    separator = cfg("format", "separator", default=" - ")
    settings  = load_settings({"autofocus": True})

Example config.json:
    {
      "format":   {"play": "▶", "pause": "⏸", "separator": " - ",
                   "order": "SYMBOL:ARTIST:ALBUM:TITLE:POSITION"},
      "behavior": {"autofocus": false, "position": false,
                   "interpolate": false, "poll_interval": 1.0},
      "paths":    {"socket": "/tmp/waybar-mpris.sock",
                   "mirror": "/tmp/waybar-mpris.out",
                   "log":    "/tmp/waybar-mpris.log"}
    }
"""

import json
import logging
import os
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

_config: dict | None = None

ORDER_TOKENS = ("SYMBOL", "ARTIST", "ALBUMARTIST", "ALBUM", "TITLE", "POSITION")

DEFAULT_ORDER = "SYMBOL:ARTIST:ALBUM:TITLE:POSITION"
SOCKET_PATH = "/tmp/waybar-mpris.sock"
MIRROR_PATH = "/tmp/waybar-mpris.out"
LOG_PATH = "/tmp/waybar-mpris.log"


def _search_paths() -> list[str]:
    paths = []
    explicit = os.environ.get("WAYBAR_MPRIS_CONFIG")
    if explicit:
        paths.append(explicit)
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    paths.append(os.path.join(xdg, "waybar-mpris", "config.json"))
    paths.append("/etc/waybar-mpris/config.json")
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    fmt = config.get("format") or {}
    order = fmt.get("order")
    if order:
        unknown = [t for t in str(order).split(":") if t not in ORDER_TOKENS]
        if unknown:
            logger.warning("Config %s: unknown format.order tokens %s (ignored)", path, unknown)
    behavior = config.get("behavior") or {}
    poll = behavior.get("poll_interval")
    if poll is not None and (not isinstance(poll, (int, float)) or poll <= 0):
        logger.warning("Config %s: behavior.poll_interval must be a positive number, got %r", path, poll)


def load_config(path: str | None = None) -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for candidate in ([path] if path else _search_paths()):
        try:
            with open(candidate) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", candidate)
                _validate(_config, candidate)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", candidate, e)
            continue

    logger.debug("No config.json found, using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("format")                       → config["format"]
    cfg("format", "separator")          → config["format"]["separator"]
    cfg("behavior", "autofocus", default=False)
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config(path: str | None = None):
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config(path)


def parse_order(order: str) -> tuple[str, ...]:
    """Split an order template into known tokens, dropping unknown ones."""
    return tuple(t for t in order.split(":") if t in ORDER_TOKENS)


@dataclass(frozen=True)
class Settings:
    """Everything the daemon reads at runtime. Never mutated after startup."""

    play_symbol: str = "▶"
    pause_symbol: str = "⏸"
    separator: str = " - "
    order: tuple[str, ...] = parse_order(DEFAULT_ORDER)
    autofocus: bool = False
    show_position: bool = False
    interpolate: bool = False
    replace: bool = False
    poll_interval: float = 1.0
    socket_path: str = SOCKET_PATH
    mirror_path: str = MIRROR_PATH
    log_path: str = LOG_PATH
    replace_timeout: float = 5.0
    control_timeout: float = 2.0

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings(overrides: dict | None = None) -> Settings:
    """Build Settings from defaults, the config file and *overrides*.

    *overrides* holds command-line values; ``None`` means "not given".
    ``order`` may be passed either as a template string or a token tuple.
    """
    base = Settings()
    order = cfg("format", "order", default=DEFAULT_ORDER)
    poll = cfg("behavior", "poll_interval", default=base.poll_interval)
    if not isinstance(poll, (int, float)) or poll <= 0:
        poll = base.poll_interval

    settings = base.with_overrides(
        play_symbol=cfg("format", "play"),
        pause_symbol=cfg("format", "pause"),
        separator=cfg("format", "separator"),
        order=parse_order(str(order)),
        autofocus=cfg("behavior", "autofocus"),
        show_position=cfg("behavior", "position"),
        interpolate=cfg("behavior", "interpolate"),
        poll_interval=float(poll),
        socket_path=cfg("paths", "socket"),
        mirror_path=cfg("paths", "mirror"),
        log_path=cfg("paths", "log"),
    )

    overrides = dict(overrides or {})
    if isinstance(overrides.get("order"), str):
        overrides["order"] = parse_order(overrides["order"])
    return settings.with_overrides(**overrides)
