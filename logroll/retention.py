"""Retention sweeps over rotated backups.

Every sweep re-derives the backup set from the directory listing; nothing is
cached between sweeps. Files that disappear between listing and acting are
ignored.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import structlog

from logroll.compressor import AsyncCompressor, compressed_path
from logroll.contracts import (
    COMPRESS_SUFFIX,
    BackgroundError,
    BackupRecord,
    RotationPolicy,
    SweepPlan,
    SweepReport,
)
from logroll.naming import BackupNamingScheme
from logroll.permissions import PermissionSnapshot


def _never_in_flight(_path: Path) -> bool:
    return False


class RetentionPruner:
    """Applies count, age and compression rules to the backups of one sink.

    Attributes:
        naming: Naming scheme used to recognise backups
        policy: Retention limits
        compressor: Compressor receiving jobs when ``policy.compress`` is set
    """

    def __init__(
        self,
        naming: BackupNamingScheme,
        policy: RotationPolicy,
        *,
        compressor: AsyncCompressor | None = None,
        remove: Callable[[Path], None] = os.remove,
        logger: Any | None = None,
    ) -> None:
        self.naming = naming
        self.policy = policy
        self.compressor = compressor
        self._remove = remove
        self._log = logger or structlog.get_logger("logroll.retention")

    def plan(
        self,
        records: Iterable[BackupRecord],
        now: datetime,
        *,
        in_flight: Callable[[Path], bool] = _never_in_flight,
    ) -> SweepPlan:
        """Decide what to delete, compress and defer, without touching disk.

        A plain backup and its compressed twin are one backup for counting
        purposes and are deleted together.
        """

        groups: dict[Path, list[BackupRecord]] = {}
        for record in records:
            groups.setdefault(record.backup_path, []).append(record)

        # Newest first, by parsed time; names only break ties.
        ordered = sorted(
            groups.items(),
            key=lambda item: (item[1][0].timestamp, item[0].name),
            reverse=True,
        )

        doomed: set[Path] = set()
        if self.policy.max_backups > 0:
            doomed.update(key for key, _ in ordered[self.policy.max_backups :])
        if self.policy.max_age > timedelta(0):
            cutoff = now - self.policy.max_age
            doomed.update(key for key, group in ordered if group[0].timestamp < cutoff)

        delete: list[Path] = []
        compress: list[Path] = []
        deferred: list[Path] = []
        for key, group in ordered:
            if key in doomed:
                if in_flight(key):
                    deferred.append(key)
                else:
                    delete.extend(record.path for record in group)
                continue
            if not self.policy.compress:
                continue
            for record in group:
                if not record.compressed and not in_flight(record.path):
                    compress.append(record.path)

        return SweepPlan(delete=tuple(delete), compress=tuple(compress), deferred=tuple(deferred))

    def sweep(self, now: datetime, snapshot: PermissionSnapshot | None = None) -> SweepReport:
        """Scan the directory, delete expired backups and queue compression.

        Per-file failures are collected in the report; the sweep keeps going.
        """

        report = SweepReport()
        in_flight = self.compressor.in_flight if self.compressor is not None else _never_in_flight
        plan = self.plan(self.naming.backups(), now, in_flight=in_flight)
        report.deferred.extend(plan.deferred)

        planned = set(plan.delete)
        for path in plan.delete:
            self._delete(path, report)
            twin = compressed_path(path)
            if path.name.endswith(COMPRESS_SUFFIX) or twin in planned:
                continue
            # A job that finished after the listing leaves only the twin behind.
            if twin.exists():
                self._delete(twin, report)

        if plan.compress and self.compressor is None:
            self._log.warning("retention.no_compressor", pending=len(plan.compress))
        elif self.compressor is not None:
            for path in plan.compress:
                try:
                    future = self.compressor.submit(path, snapshot)
                except RuntimeError as exc:
                    # Executor already shut down.
                    report.failures.append(BackgroundError("compress", path, exc))
                    continue
                if future is not None:
                    report.compressing.append(path)

        if report.deleted or report.compressing or report.failures:
            self._log.info(
                "retention.sweep_complete",
                directory=str(self.naming.directory),
                deleted=len(report.deleted),
                compressing=len(report.compressing),
                deferred=len(report.deferred),
                errors=len(report.failures),
            )
        return report

    def _delete(self, path: Path, report: SweepReport) -> None:
        try:
            self._remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            self._log.warning("retention.delete_error", file=str(path), error=str(exc))
            report.failures.append(BackgroundError("delete", path, exc))
            return
        report.deleted.append(path)
        self._log.debug("retention.deleted", file=str(path))
