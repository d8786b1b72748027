# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Render one player as a waybar custom-module JSON line."""

import json

from .config import Settings

EMPTY = "{}"


def _escape(text: str) -> str:
    # waybar renders text and tooltip as Pango markup
    return text.replace("&", "&amp;")


def render_player(player, settings: Settings, position: str = "") -> str:
    """``{"class": ..., "text": ..., "tooltip": ...}`` for *player*.

    *position* is the pre-fetched 'MM:SS/MM:SS' string ('' to omit).
    Returns ``{}`` for no player or when the order template yields nothing.
    """
    if player is None:
        return EMPTY

    meta = player.metadata
    symbol = settings.pause_symbol if player.playing else settings.play_symbol
    if position:
        position = f"({position})"

    fields = {
        "ARTIST": meta.artist,
        "ALBUMARTIST": meta.album_artist,
        "ALBUM": meta.album,
        "TITLE": meta.title,
    }
    # (text, is_field) pairs; fields are joined by the separator, the symbol
    # and the position by a plain space.
    items: list[tuple[str, bool]] = []
    for token in settings.order:
        if token == "SYMBOL":
            if symbol:
                items.append((symbol, False))
        elif token == "POSITION":
            if settings.show_position and position:
                items.append((position, False))
        elif fields.get(token):
            items.append((fields[token], True))

    if not items:
        return EMPTY

    text = items[0][0]
    for (_, prev_is_field), (value, is_field) in zip(items, items[1:]):
        joiner = settings.separator if prev_is_field and is_field else " "
        text += joiner + value

    tooltip = f"{_escape(meta.title)}\nby {_escape(meta.artist)}\n"
    if meta.album:
        tooltip += f"from {_escape(meta.album)}\n"
    tooltip += f"({player.name})"

    data = {
        "class": "playing" if player.playing else "paused",
        "text": _escape(text),
        "tooltip": tooltip,
    }
    return json.dumps(data, ensure_ascii=False, sort_keys=True)
