"""Background compression of retired log segments.

Jobs run on a thread pool that never touches the active file. A job writes
``<backup>.gz.tmp`` and publishes it with an atomic rename to
``<backup>.gz`` before removing the plain backup, so a listing never shows a
half-written compressed file.
"""

from __future__ import annotations

import gzip
import os
import shutil
import stat
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from pathlib import Path
from typing import Any, BinaryIO, Protocol

import structlog

from logroll.contracts import (
    COMPRESS_SUFFIX,
    TMP_SUFFIX,
    BackgroundError,
    BackgroundOperation,
)
from logroll.permissions import Chowner, PermissionSnapshot, chown, get_owner


class Codec(Protocol):
    def compress(self, src: BinaryIO, dst: BinaryIO) -> None: ...


class GzipCodec:
    """Gzip stream transform."""

    def __init__(self, compresslevel: int = 6) -> None:
        self.compresslevel = compresslevel

    def compress(self, src: BinaryIO, dst: BinaryIO) -> None:
        with gzip.GzipFile(fileobj=dst, mode="wb", compresslevel=self.compresslevel) as f_out:
            shutil.copyfileobj(src, f_out)


def compressed_path(path: Path) -> Path:
    return path.with_name(path.name + COMPRESS_SUFFIX)


def temporary_path(path: Path) -> Path:
    return path.with_name(path.name + COMPRESS_SUFFIX + TMP_SUFFIX)


class AsyncCompressor:
    """Runs compression jobs without blocking writers.

    At most one job per source path is in flight; ``submit`` refuses
    duplicates so the retention sweep can hand over its full candidate list
    on every pass.
    """

    def __init__(
        self,
        *,
        codec: Codec | None = None,
        max_workers: int = 2,
        on_error: Callable[[BackgroundError], None] | None = None,
        chown: Chowner = chown,
        logger: Any | None = None,
    ) -> None:
        self._codec = codec or GzipCodec()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="logroll-compress"
        )
        self._on_error = on_error
        self._chown = chown
        self._log = logger or structlog.get_logger("logroll.compressor")
        # Guards the in-flight table only; never held while compressing.
        self._lock = threading.Lock()
        self._in_flight: dict[Path, Future[Path | None]] = {}

    def submit(
        self, path: str | Path, snapshot: PermissionSnapshot | None = None
    ) -> Future[Path | None] | None:
        """Schedule compression of ``path``; returns None if it is already in flight."""

        source = Path(path)
        with self._lock:
            if source in self._in_flight:
                return None
            future = self._executor.submit(self._run, source, snapshot)
            self._in_flight[source] = future
        return future

    def in_flight(self, path: str | Path) -> bool:
        with self._lock:
            return Path(path) in self._in_flight

    def compress(self, path: str | Path, snapshot: PermissionSnapshot | None = None) -> Path:
        """Compress ``path`` in place and return the compressed file's path.

        On failure the temporary file is removed, ``path`` is left untouched
        and the error propagates to the caller.
        """

        source = Path(path)
        target = compressed_path(source)
        tmp = temporary_path(source)

        with source.open("rb") as f_in:
            if snapshot is None:
                snapshot = PermissionSnapshot(
                    mode=stat.S_IMODE(os.fstat(f_in.fileno()).st_mode),
                    owner=get_owner(source),
                )
            try:
                fd = os.open(tmp, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, snapshot.mode)
                with os.fdopen(fd, "wb") as f_out:
                    chown_error = snapshot.apply(tmp, chown=self._chown)
                    if chown_error is not None:
                        self._report("chown", tmp, chown_error)
                    self._codec.compress(f_in, f_out)
                    f_out.flush()
                    os.fsync(f_out.fileno())
                os.replace(tmp, target)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise

        try:
            source.unlink()
        except FileNotFoundError:
            pass
        self._log.debug("compress.done", source=str(source), target=str(target))
        return target

    def wait(self, paths: Iterable[str | Path] | None = None, timeout: float | None = None) -> bool:
        """Block until the given (or all) in-flight jobs finish; False on timeout."""

        with self._lock:
            if paths is None:
                futures = list(self._in_flight.values())
            else:
                futures = [
                    self._in_flight[Path(p)] for p in paths if Path(p) in self._in_flight
                ]
        if not futures:
            return True
        _, not_done = wait_futures(futures, timeout=timeout)
        return not not_done

    def drain(self, timeout: float | None = None) -> bool:
        return self.wait(None, timeout=timeout)

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting jobs; queued and running jobs still complete."""

        self._executor.shutdown(wait=wait)

    def _run(self, source: Path, snapshot: PermissionSnapshot | None) -> Path | None:
        try:
            return self.compress(source, snapshot)
        except FileNotFoundError as exc:
            if source.exists():
                self._report("compress", source, exc)
            else:
                self._log.debug("compress.source_vanished", source=str(source))
            return None
        except Exception as exc:
            self._report("compress", source, exc)
            return None
        finally:
            with self._lock:
                self._in_flight.pop(source, None)

    def _report(self, operation: BackgroundOperation, path: Path, exc: BaseException) -> None:
        self._log.warning("compress.failed", operation=operation, path=str(path), error=str(exc))
        if self._on_error is None:
            return
        try:
            self._on_error(BackgroundError(operation, path, exc))
        except Exception:
            self._log.exception("on_error_callback_failed")
