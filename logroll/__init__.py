"""Self-rotating append-only log files with retention and background compression."""

from __future__ import annotations

from logroll.compressor import AsyncCompressor, Codec, GzipCodec
from logroll.config import Config, SinkCfg, load_config, load_config_file
from logroll.contracts import (
    BackgroundError,
    BackupRecord,
    RotationPolicy,
    SweepPlan,
    SweepReport,
)
from logroll.engine import RotatingLog
from logroll.errors import LoggerClosedError, LogrollError, OversizedWriteError, ShortWriteError
from logroll.handler import RotatingLogHandler
from logroll.logging import setup_logging
from logroll.naming import BackupNamingScheme
from logroll.permissions import DEFAULT_FILE_MODE, PermissionSnapshot
from logroll.retention import RetentionPruner

__all__ = [
    "AsyncCompressor",
    "BackgroundError",
    "BackupNamingScheme",
    "BackupRecord",
    "Codec",
    "Config",
    "DEFAULT_FILE_MODE",
    "GzipCodec",
    "LoggerClosedError",
    "LogrollError",
    "OversizedWriteError",
    "PermissionSnapshot",
    "RetentionPruner",
    "RotatingLog",
    "RotatingLogHandler",
    "RotationPolicy",
    "ShortWriteError",
    "SinkCfg",
    "SweepPlan",
    "SweepReport",
    "load_config",
    "load_config_file",
    "setup_logging",
]
