"""Filesystem NDJSON event sink with locked appends.

Events are appended to ``<log_dir>/events.ndjson``, one JSON object per
line, serialised with ``json.dumps(sort_keys=True)`` for deterministic
output.

- Each append holds an exclusive ``fcntl.flock`` on the file.
- Reads hold a shared lock.
- On Windows, which has no ``fcntl``, locking is skipped.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from tabular.logging.events import TabularEvent

_HAS_FCNTL = sys.platform != "win32"
if _HAS_FCNTL:
    import fcntl

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024

EVENTS_FILE = "events.ndjson"


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, log_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.log_dir = Path(log_dir)
        self.path = self.log_dir / EVENTS_FILE
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, event: TabularEvent) -> None:
        """Append *event* to the log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        self._append(self.path, line)

    # ------------------------------------------------------------------
    # Query helpers (used by the CLI and tests)
    # ------------------------------------------------------------------

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events most-recent-first, optionally filtered.

        Only the tail of the file is read, to bound memory on large logs.
        """
        limit = min(limit, 2000)
        events = self._read_ndjson(self.path)
        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        events.reverse()
        return events[:limit]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under exclusive file lock."""
        if _HAS_FCNTL:
            fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                os.write(fd, line.encode("utf-8"))
                if self._fsync:
                    os.fsync(fd)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
        else:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                if self._fsync:
                    f.flush()
                    os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        events: list[dict[str, Any]] = []
        for line in self._read_tail(path).splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _read_tail(self, path: Path) -> str:
        """Read up to the last ``self._tail_bytes`` of a file under shared lock."""
        with open(path, "rb") as f:
            if _HAS_FCNTL:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            try:
                size = os.fstat(f.fileno()).st_size
                if size > self._tail_bytes:
                    f.seek(size - self._tail_bytes)
                    data = f.read()
                    # Drop the first (likely partial) line
                    idx = data.find(b"\n")
                    if idx >= 0:
                        data = data[idx + 1:]
                else:
                    data = f.read()
            finally:
                if _HAS_FCNTL:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        return data.decode("utf-8", errors="replace")
