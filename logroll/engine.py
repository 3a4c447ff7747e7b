"""Self-rotating append-only log file.

``RotatingLog`` is a binary, write-only file object. Writes append to the
active file until the next write would push it past
``policy.max_size_bytes``; the file is then renamed to a timestamped backup
and a fresh file is opened in its place. Retention sweeps and compression run
on background threads and never take the writer lock.
"""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, BinaryIO

import structlog

from logroll.compressor import AsyncCompressor, Codec, compressed_path
from logroll.contracts import BackgroundError, RotationPolicy
from logroll.errors import LoggerClosedError, OversizedWriteError, ShortWriteError
from logroll.naming import BackupNamingScheme
from logroll.permissions import (
    Chowner,
    OwnerGetter,
    PermissionSnapshot,
    chown,
    get_owner,
)
from logroll.retention import RetentionPruner

_TIE_BREAK = timedelta(milliseconds=1)
_STOP = object()


def utc_now() -> datetime:
    return datetime.now(UTC)


class RotatingLog:
    """Append-only log sink that rotates, prunes and compresses its own file.

    Safe for concurrent use by several threads of one process: ``write``,
    ``rotate`` and ``close`` are serialized by a single lock, so bytes of one
    write never interleave with another.

    Args:
        filename: Path of the active log file
        policy: Rotation and retention limits (defaults to 100 MiB, keep all)
        clock: Returns the current time as an aware datetime
        codec: Stream transform for compression (gzip by default)
        compressor: Pre-built compressor; one is created when omitted
        on_error: Receives background failures (pruning, compression, chown)
        get_owner: Returns ``(uid, gid)`` for a path
        chown: Changes the owner of a path
        logger: structlog logger for diagnostics
    """

    def __init__(
        self,
        filename: str | Path,
        policy: RotationPolicy | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        codec: Codec | None = None,
        compressor: AsyncCompressor | None = None,
        compress_workers: int = 2,
        on_error: Callable[[BackgroundError], None] | None = None,
        get_owner: OwnerGetter = get_owner,
        chown: Chowner = chown,
        logger: Any | None = None,
    ) -> None:
        self._filename = Path(filename)
        self._policy = policy or RotationPolicy()
        self._clock = clock or utc_now
        self._on_error = on_error
        self._get_owner = get_owner
        self._chown = chown
        self._log = logger or structlog.get_logger("logroll.engine")

        self._naming = BackupNamingScheme(self._filename, local_time=self._policy.local_time)
        self._compressor = compressor or AsyncCompressor(
            codec=codec,
            max_workers=compress_workers,
            on_error=self._report,
            chown=chown,
        )
        self._pruner = RetentionPruner(self._naming, self._policy, compressor=self._compressor)

        self._lock = threading.Lock()
        self._file: BinaryIO | None = None
        self._size = 0
        self._snapshot: PermissionSnapshot | None = None
        self._last_rotation: datetime | None = None
        self._closed = False

        self._mill_queue: queue.Queue[object] = queue.Queue()
        self._mill_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def filename(self) -> Path:
        return self._filename

    @property
    def policy(self) -> RotationPolicy:
        return self._policy

    @property
    def naming(self) -> BackupNamingScheme:
        return self._naming

    @property
    def current_size(self) -> int:
        with self._lock:
            return self._size

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def permission_snapshot(self) -> PermissionSnapshot | None:
        return self._snapshot

    # ------------------------------------------------------------------
    # File object API
    # ------------------------------------------------------------------

    def writable(self) -> bool:
        return not self._closed

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Append ``data`` to the log, rotating first if it would not fit.

        Raises:
            OversizedWriteError: ``data`` alone exceeds the maximum file size
            ShortWriteError: the file accepted only part of ``data``
            LoggerClosedError: the sink was closed
            OSError: opening, rotating or writing the file failed
        """

        if isinstance(data, str):
            raise TypeError("write() argument must be bytes-like, not str")
        length = memoryview(data).nbytes

        with self._lock:
            if self._closed:
                raise LoggerClosedError("write to closed log")
            if length > self._policy.max_size_bytes:
                raise OversizedWriteError(length, self._policy.max_size_bytes)

            if self._file is None:
                self._open_existing_or_new(length)
            elif self._size + length > self._policy.max_size_bytes:
                self._rotate_locked()

            assert self._file is not None
            written = self._file.write(data) or 0
            self._size += written
            if written != length:
                raise ShortWriteError(written, length)
            return written

    def flush(self) -> None:
        # The active file is unbuffered; kept for file-object compatibility.
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def rotate(self) -> None:
        """Close the active file, move it to a backup and start a fresh one.

        Returns once the new active file exists; pruning and compression of
        the backups happen in the background.
        """

        with self._lock:
            if self._closed:
                raise LoggerClosedError("rotate on closed log")
            self._rotate_locked()

    def close(self) -> None:
        """Release the active file and stop accepting writes.

        Pending background work is not waited for; use
        ``wait_for_background`` for a full drain.
        """

        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_file_locked()
            if self._mill_thread is not None:
                # The mill shuts the compressor down after any pending sweep.
                self._mill_queue.put(_STOP)
                return
        self._compressor.shutdown(wait=False)

    def wait_for_background(self, timeout: float | None = None) -> bool:
        """Block until queued sweeps and compression jobs are done.

        ``timeout`` bounds the wait for compression jobs only. Returns False
        if jobs were still running when it expired.
        """

        self._mill_queue.join()
        return self._compressor.drain(timeout=timeout)

    def __enter__(self) -> RotatingLog:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RotatingLog({str(self._filename)!r}, max_size_bytes={self._policy.max_size_bytes})"

    # ------------------------------------------------------------------
    # Rotation (callers hold self._lock)
    # ------------------------------------------------------------------

    def _open_existing_or_new(self, write_len: int) -> None:
        try:
            info = os.stat(self._filename)
        except FileNotFoundError:
            self._open_new()
            self._mill()
            return

        if self._snapshot is None:
            self._snapshot = PermissionSnapshot.capture(
                self._filename, self._policy.file_mode, get_owner=self._get_owner
            )
        # Leftover backups are swept with the snapshot already in place.
        self._mill()

        if info.st_size + write_len > self._policy.max_size_bytes:
            self._rotate_locked()
            return

        try:
            handle = open(self._filename, "ab", buffering=0)
        except OSError as exc:
            self._log.warning("open_existing_failed", file=str(self._filename), error=str(exc))
            self._open_new()
            return
        self._file = handle
        self._size = os.fstat(handle.fileno()).st_size

    def _rotate_locked(self) -> None:
        self._close_file_locked()
        self._open_new()
        self._mill()

    def _open_new(self) -> None:
        """Move any existing active file to a backup and create a fresh one."""

        self._filename.parent.mkdir(parents=True, exist_ok=True)

        existed = self._filename.exists()
        if self._snapshot is None:
            if existed:
                self._snapshot = PermissionSnapshot.capture(
                    self._filename, self._policy.file_mode, get_owner=self._get_owner
                )
            else:
                self._snapshot = PermissionSnapshot.for_new_file(self._policy.file_mode)
        snapshot = self._snapshot

        if existed:
            backup = self._next_backup_name()
            try:
                os.rename(self._filename, backup)
            except FileNotFoundError:
                backup = None
            if backup is not None:
                self._log.info("rotated", file=str(self._filename), backup=str(backup))

        flags = os.O_CREAT | os.O_WRONLY | os.O_TRUNC | os.O_APPEND
        fd = os.open(self._filename, flags, snapshot.mode)
        handle = open(fd, "ab", buffering=0)
        try:
            chown_error = snapshot.apply(self._filename, chown=self._chown)
        except OSError:
            handle.close()
            raise
        if chown_error is not None:
            self._report_chown(chown_error)
        self._file = handle
        self._size = 0

    def _next_backup_name(self) -> Path:
        timestamp = self._clock()
        if self._last_rotation is not None and timestamp <= self._last_rotation:
            timestamp = self._last_rotation + _TIE_BREAK
        while True:
            candidate = self._naming.make_name(timestamp)
            if not candidate.exists() and not compressed_path(candidate).exists():
                break
            timestamp += _TIE_BREAK
        self._last_rotation = timestamp
        return candidate

    def _close_file_locked(self) -> None:
        if self._file is None:
            return
        handle, self._file = self._file, None
        handle.close()

    # ------------------------------------------------------------------
    # Background retention ("mill")
    # ------------------------------------------------------------------

    def _mill(self) -> None:
        """Request a retention sweep; requests coalesce while one is pending."""

        if self._mill_thread is None:
            self._mill_thread = threading.Thread(
                target=self._mill_run, name="logroll-mill", daemon=True
            )
            self._mill_thread.start()
        if self._mill_queue.empty():
            self._mill_queue.put(None)

    def _mill_run(self) -> None:
        while True:
            item = self._mill_queue.get()
            try:
                if item is _STOP:
                    self._compressor.shutdown(wait=False)
                    return
                self._mill_once()
            finally:
                self._mill_queue.task_done()

    def _mill_once(self) -> None:
        while True:
            try:
                report = self._pruner.sweep(self._clock(), self._snapshot)
            except OSError as exc:
                self._report(BackgroundError("sweep", self._naming.directory, exc))
                return
            for failure in report.failures:
                self._report(failure)
            if not report.deferred:
                return
            # Deletions waiting on compression: let the jobs finish, then sweep again.
            self._compressor.wait(report.deferred)

    def _report_chown(self, exc: OSError) -> None:
        self._report(BackgroundError("chown", self._filename, exc))

    def _report(self, failure: BackgroundError) -> None:
        self._log.warning(
            "background_error",
            operation=failure.operation,
            path=str(failure.path),
            error=str(failure.error),
        )
        if self._on_error is None:
            return
        try:
            self._on_error(failure)
        except Exception:
            self._log.exception("on_error_callback_failed")
