"""Persistent cache of derived session summaries, keyed by file signature.

A summary is reused only while the log file's signature (size + mtime) is
unchanged, so unchanged files are never re-read between scans.
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from .core import SessionSummary

logger = logging.getLogger(__name__)


def normalize_file_path(file_path: Union[str, Path]) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(file_path)))


class SessionScanCache:
    """JSON-file-backed map of ``path -> (signature, summary)``."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._entries: dict[str, dict] = {}
        self._dirty = False
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.debug("Ignoring unreadable scan cache %s: %s", self.path, e)
            return

        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            return
        for key, entry in entries.items():
            if (
                isinstance(entry, dict)
                and isinstance(entry.get("signature"), str)
                and isinstance(entry.get("summary"), dict)
            ):
                self._entries[key] = entry

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, file_path: Union[str, Path], signature: str) -> Optional[SessionSummary]:
        cached = self._entries.get(normalize_file_path(file_path))
        if cached is None or cached["signature"] != signature:
            return None
        try:
            return SessionSummary.from_dict(cached["summary"])
        except TypeError:
            # Written by an incompatible version; treat as a miss.
            return None

    def set(self, file_path: Union[str, Path], signature: str, summary: SessionSummary) -> None:
        self._entries[normalize_file_path(file_path)] = {
            "signature": signature,
            "summary": summary.to_dict(),
        }
        self._dirty = True

    def prune(self, valid_file_paths: Iterable[Union[str, Path]]) -> None:
        valid = {normalize_file_path(p) for p in valid_file_paths}
        for key in list(self._entries):
            if key not in valid:
                del self._entries[key]
                self._dirty = True

    def clear(self) -> None:
        if self._entries:
            self._entries.clear()
            self._dirty = True

    def flush(self) -> None:
        if not self._dirty:
            return
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(json.dumps({"entries": self._entries}), encoding="utf-8")
            os.replace(tmp_path, self.path)
        self._dirty = False
