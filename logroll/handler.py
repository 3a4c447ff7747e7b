"""stdlib ``logging`` integration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from logroll.contracts import RotationPolicy
from logroll.engine import RotatingLog


class RotatingLogHandler(logging.Handler):
    """Logging handler that writes formatted records to a ``RotatingLog``.

    Pass either an existing sink or a filename (plus optional policy and
    ``RotatingLog`` keyword arguments). The handler owns a sink it created
    and closes it on ``close()``; a sink passed in is closed as well.
    """

    terminator = "\n"

    def __init__(
        self,
        sink: RotatingLog | str | Path,
        policy: RotationPolicy | None = None,
        *,
        encoding: str = "utf-8",
        level: int = logging.NOTSET,
        **sink_kwargs: Any,
    ) -> None:
        super().__init__(level)
        if isinstance(sink, RotatingLog):
            if policy is not None or sink_kwargs:
                raise TypeError("policy and sink options only apply when a filename is given")
            self.sink = sink
        else:
            self.sink = RotatingLog(sink, policy, **sink_kwargs)
        self.encoding = encoding

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record) + self.terminator
            self.sink.write(message.encode(self.encoding, errors="backslashreplace"))
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.acquire()
        try:
            self.sink.flush()
        finally:
            self.release()

    def close(self) -> None:
        self.acquire()
        try:
            self.sink.close()
        finally:
            self.release()
        super().close()

    def __repr__(self) -> str:
        level = logging.getLevelName(self.level)
        return f"<{self.__class__.__name__} {self.sink.filename} ({level})>"
