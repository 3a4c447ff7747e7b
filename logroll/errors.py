from __future__ import annotations


class LogrollError(Exception):
    """Base class for errors raised by the rotating log sink."""


class OversizedWriteError(LogrollError, ValueError):
    """A single write is larger than the maximum segment size."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"write of {size} bytes exceeds maximum file size of {limit} bytes")
        self.size = size
        self.limit = limit


class ShortWriteError(LogrollError, OSError):
    """The active file accepted fewer bytes than requested."""

    def __init__(self, written: int, expected: int) -> None:
        super().__init__(f"short write: {written} of {expected} bytes")
        self.written = written
        self.expected = expected


class LoggerClosedError(LogrollError, ValueError):
    """The sink was closed and no longer accepts writes."""
