"""Backup file naming.

Backups live next to the active file and carry the rotation time between the
stem and the extension: ``app.log`` becomes ``app-2025-09-30T14-03-07.123.log``
and, once compressed, ``app-2025-09-30T14-03-07.123.log.gz``.
"""

from __future__ import annotations

import os
import re
from datetime import UTC, datetime
from pathlib import Path

from logroll.contracts import COMPRESS_SUFFIX, BackupRecord

BACKUP_TIME_FORMAT = "%Y-%m-%dT%H-%M-%S"

_STAMP_PATTERN = r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.\d{3}"


class BackupNamingScheme:
    """Derives backup names from a base filename and parses them back."""

    def __init__(self, filename: str | Path, *, local_time: bool = False) -> None:
        self.filename = Path(filename)
        self.local_time = local_time
        self.directory = self.filename.parent
        stem, ext = os.path.splitext(self.filename.name)
        self.prefix = f"{stem}-"
        self.ext = ext
        self._pattern = re.compile(
            rf"^{re.escape(self.prefix)}(?P<stamp>{_STAMP_PATTERN})"
            rf"{re.escape(ext)}(?P<compressed>{re.escape(COMPRESS_SUFFIX)})?$"
        )

    def make_name(self, timestamp: datetime) -> Path:
        """Return the backup path for a rotation at ``timestamp``."""
        if self.local_time:
            stamp_time = timestamp.astimezone()
        else:
            stamp_time = timestamp.astimezone(UTC)
        millis = stamp_time.microsecond // 1000
        stamp = f"{stamp_time.strftime(BACKUP_TIME_FORMAT)}.{millis:03d}"
        return self.directory / f"{self.prefix}{stamp}{self.ext}"

    def parse_name(self, path: str | Path) -> datetime | None:
        """Return the rotation time encoded in ``path``, or None if it is not a backup."""
        match = self._pattern.match(Path(path).name)
        if match is None:
            return None
        return self._parse_stamp(match.group("stamp"))

    def parse(self, path: str | Path) -> BackupRecord | None:
        path = Path(path)
        match = self._pattern.match(path.name)
        if match is None:
            return None
        timestamp = self._parse_stamp(match.group("stamp"))
        if timestamp is None:
            return None
        return BackupRecord(
            path=path,
            timestamp=timestamp,
            compressed=match.group("compressed") is not None,
        )

    def backups(self) -> list[BackupRecord]:
        """List every backup currently in the directory, in no particular order."""
        try:
            entries = list(os.scandir(self.directory))
        except FileNotFoundError:
            return []

        records: list[BackupRecord] = []
        for entry in entries:
            # Directories never count, even if their names match.
            if entry.is_dir(follow_symlinks=False):
                continue
            record = self.parse(self.directory / entry.name)
            if record is not None:
                records.append(record)
        return records

    def _parse_stamp(self, stamp: str) -> datetime | None:
        try:
            naive = datetime.strptime(stamp, f"{BACKUP_TIME_FORMAT}.%f")
        except ValueError:
            return None
        if self.local_time:
            return naive.astimezone()
        return naive.replace(tzinfo=UTC)
