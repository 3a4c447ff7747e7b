"""Contracts shared by the rotation engine, retention sweeps and compressor.

Policies are immutable for the lifetime of a sink. Backup records are never
stored: they are rebuilt from the directory listing on every sweep.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Literal

MEGABYTE = 1024 * 1024
DEFAULT_MAX_SIZE_BYTES = 100 * MEGABYTE

COMPRESS_SUFFIX = ".gz"
TMP_SUFFIX = ".tmp"

BackgroundOperation = Literal["delete", "compress", "chown", "sweep"]


@dataclass(frozen=True)
class RotationPolicy:
    """Rotation and retention limits for one sink.

    Attributes:
        max_size_bytes: Maximum size of the active file before it is rotated
        max_backups: Number of backups to keep (0 keeps all of them)
        max_age: Maximum backup age (zero keeps backups regardless of age)
        compress: Gzip backups in the background
        file_mode: Permission bits for new files (0 means unset)
        local_time: Stamp backup names with local time instead of UTC

    Raises:
        ValueError: If sizes, counts or ages are out of range
    """

    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    max_backups: int = 0
    max_age: timedelta = timedelta(0)
    compress: bool = False
    file_mode: int = 0
    local_time: bool = False

    def __post_init__(self) -> None:
        if self.max_size_bytes <= 0:
            raise ValueError(f"max_size_bytes must be > 0, got {self.max_size_bytes}")
        if self.max_backups < 0:
            raise ValueError(f"max_backups must be >= 0, got {self.max_backups}")
        if self.max_age < timedelta(0):
            raise ValueError(f"max_age must be >= 0, got {self.max_age}")
        if not 0 <= self.file_mode <= 0o7777:
            raise ValueError(f"file_mode must be within 0..0o7777, got {oct(self.file_mode)}")

    @property
    def file_mode_is_set(self) -> bool:
        return self.file_mode != 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_size_bytes": self.max_size_bytes,
            "max_backups": self.max_backups,
            "max_age_seconds": self.max_age.total_seconds(),
            "compress": self.compress,
            "file_mode": self.file_mode,
            "local_time": self.local_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RotationPolicy:
        return cls(
            max_size_bytes=int(data.get("max_size_bytes", DEFAULT_MAX_SIZE_BYTES)),
            max_backups=int(data.get("max_backups", 0)),
            max_age=timedelta(seconds=float(data.get("max_age_seconds", 0))),
            compress=bool(data.get("compress", False)),
            file_mode=int(data.get("file_mode", 0)),
            local_time=bool(data.get("local_time", False)),
        )


@dataclass(frozen=True)
class BackupRecord:
    """One file on disk that matches the backup naming pattern."""

    path: Path
    timestamp: datetime
    compressed: bool = False

    @property
    def backup_path(self) -> Path:
        """Name of the backup without the compressed suffix."""
        if self.compressed:
            return self.path.with_name(self.path.name[: -len(COMPRESS_SUFFIX)])
        return self.path


@dataclass(frozen=True)
class BackgroundError:
    """Failure raised outside the writer path (pruning, compression, chown)."""

    operation: BackgroundOperation
    path: Path
    error: BaseException

    def __str__(self) -> str:
        return f"{self.operation} {self.path}: {self.error}"


@dataclass(frozen=True)
class SweepPlan:
    delete: tuple[Path, ...] = ()
    compress: tuple[Path, ...] = ()
    deferred: tuple[Path, ...] = ()


@dataclass
class SweepReport:
    """Outcome of one retention sweep."""

    deleted: list[Path] = field(default_factory=list)
    compressing: list[Path] = field(default_factory=list)
    deferred: list[Path] = field(default_factory=list)
    failures: list[BackgroundError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
