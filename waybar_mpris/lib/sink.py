# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
OutputSink — where status lines go.

Normally just stdout.  Once a mirror asks for it, the sink is re-pointed at
a tee of stdout plus the duplication file; the set of targets is swapped as
one tuple so a write never sees a half-installed writer.  Callers hold
``registry.lock`` around ``write`` and ``start_mirroring``.
"""

import logging
import os
import sys
from typing import TextIO

logger = logging.getLogger(__name__)


class OutputSink:
    def __init__(self, stream: TextIO | None = None):
        self._stream = stream if stream is not None else sys.stdout
        self._targets: tuple[TextIO, ...] = (self._stream,)
        self._mirror_file: TextIO | None = None
        self._mirror_path: str | None = None
        self.last_line: str | None = None

    @property
    def mirroring(self) -> bool:
        return self._mirror_file is not None

    def write(self, line: str):
        """Write one line (newline added) to every target and flush."""
        line = line.rstrip("\n")
        for target in self._targets:
            target.write(line + "\n")
            target.flush()
        self.last_line = line

    def start_mirroring(self, path: str) -> bool:
        """Truncate *path* and start duplicating every line into it.

        Returns False if mirroring was already on (nothing changes).  The
        latest line is copied in right away so a new mirror has something
        to show.  Raises OSError if the file cannot be opened.
        """
        if self._mirror_file is not None:
            return False
        mirror = open(path, "w", encoding="utf-8")
        if self.last_line is not None:
            mirror.write(self.last_line + "\n")
            mirror.flush()
        self._mirror_file = mirror
        self._mirror_path = path
        self._targets = (self._stream, mirror)
        logger.info("Mirroring output to %s", path)
        return True

    def close(self, remove: bool = True):
        """Stop mirroring; with *remove* also delete the duplication file."""
        self._targets = (self._stream,)
        if self._mirror_file is None:
            return
        self._mirror_file.close()
        self._mirror_file = None
        if remove and self._mirror_path:
            try:
                os.unlink(self._mirror_path)
            except FileNotFoundError:
                pass
        self._mirror_path = None
