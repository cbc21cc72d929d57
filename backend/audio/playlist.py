"""
Playlist source.

Lists the playable files in the records directory. Re-read on every
pass so files added or removed while running are picked up.
"""

from __future__ import annotations

import os
from typing import Iterable

from constants import DEFAULT_PLAYLIST_EXTENSIONS
from observability.logger import log_event


class PlaylistSource:
    def __init__(
        self,
        directory: str,
        *,
        extensions: Iterable[str] = DEFAULT_PLAYLIST_EXTENSIONS,
    ) -> None:
        self._directory = directory
        self._extensions = tuple(ext.lower() for ext in extensions)

    @property
    def directory(self) -> str:
        return self._directory

    def scan(self) -> tuple[str, ...]:
        """
        Absolute paths of matching regular files, sorted by file name.

        An unreadable or missing directory yields an empty playlist.
        """
        try:
            names = os.listdir(self._directory)
        except OSError as e:
            log_event({
                "level": "WARNING",
                "event_type": "PLAYLIST_DIR_UNREADABLE",
                "directory": self._directory,
                "error": repr(e),
            })
            return ()

        entries = []
        for name in sorted(names):
            if not name.lower().endswith(self._extensions):
                continue
            path = os.path.abspath(os.path.join(self._directory, name))
            if os.path.isfile(path):
                entries.append(path)

        log_event({
            "level": "DEBUG",
            "event_type": "PLAYLIST_SCANNED",
            "directory": self._directory,
            "count": len(entries),
        })
        return tuple(entries)
