from __future__ import annotations

import gzip
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

FAKE_START = datetime(2025, 9, 30, 14, 3, 7, 123000, tzinfo=UTC)


class FakeClock:
    """Deterministic clock for rotation timestamps."""

    def __init__(self, start: datetime = FAKE_START) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self.now

    def advance(self, **kwargs: float) -> datetime:
        with self._lock:
            self.now = self.now + timedelta(**kwargs)
            return self.now


class FakeOwnership:
    """Stands in for stat/chown so owner propagation can be checked unprivileged."""

    def __init__(self, uid: int = 555, gid: int = 666, fail_chown: bool = False) -> None:
        self.uid = uid
        self.gid = gid
        self.fail_chown = fail_chown
        self.files: dict[str, tuple[int, int]] = {}

    def get_owner(self, path: str | Path) -> tuple[int, int]:
        Path(path).stat()
        return self.uid, self.gid

    def chown(self, path: str | Path, uid: int, gid: int) -> None:
        if self.fail_chown:
            raise PermissionError(1, "Operation not permitted", str(path))
        self.files[str(path)] = (uid, gid)


def backup_files(directory: Path, active: Path) -> list[Path]:
    """Every file in ``directory`` except the active one, sorted by name."""
    return sorted(p for p in directory.iterdir() if p != active)


def read_backup(path: Path) -> bytes:
    if path.suffix == ".gz":
        with gzip.open(path, "rb") as fh:
            return fh.read()
    return path.read_bytes()
