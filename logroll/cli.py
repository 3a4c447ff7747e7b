"""Command-line entry point: pipe stdin into a self-rotating log file.

Example:
    my-service 2>&1 | logroll --filename /var/log/my-service.log --max-size-mb 50 --compress
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

import structlog

from logroll.config import Config, load_config_file
from logroll.contracts import BackgroundError
from logroll.engine import RotatingLog
from logroll.errors import LogrollError
from logroll.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logroll", description="Append stdin to a self-rotating log file"
    )
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--filename", type=Path, help="Active log file path")
    parser.add_argument("--max-size-mb", type=int, help="Rotate once the file would exceed this size")
    parser.add_argument("--max-backups", type=int, help="Backups to keep (0 keeps all)")
    parser.add_argument("--max-age-days", type=float, help="Delete backups older than this (0 keeps all)")
    parser.add_argument(
        "--compress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Gzip rotated backups in the background",
    )
    parser.add_argument(
        "--local-time",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use local time instead of UTC in backup names",
    )
    parser.add_argument("--file-mode", help="Octal permission bits for new files, e.g. 0644")
    parser.add_argument("--tee", action="store_true", help="Echo input to stdout")
    parser.add_argument("--rotate", action="store_true", help="Rotate the log once and exit")
    parser.add_argument("--log-level", help="Diagnostics level (default from config: INFO)")
    return parser


def build_config(args: argparse.Namespace) -> Config:
    """Merge command-line overrides onto the config file (or defaults)."""

    cfg = load_config_file(args.config) if args.config else Config()
    overrides = {
        "filename": args.filename,
        "max_size_mb": args.max_size_mb,
        "max_backups": args.max_backups,
        "max_age_days": args.max_age_days,
        "compress": args.compress,
        "local_time": args.local_time,
        "file_mode": args.file_mode,
    }
    sink_data = cfg.sink.model_dump()
    sink_data.update({key: value for key, value in overrides.items() if value is not None})
    logging_data = cfg.logging.model_dump()
    if args.log_level:
        logging_data["level"] = args.log_level
    return Config.model_validate({"sink": sink_data, "logging": logging_data})


def pump(source: BinaryIO, sink: RotatingLog, echo: BinaryIO | None = None) -> int:
    """Copy ``source`` line by line into ``sink``; returns the number of bytes written."""

    total = 0
    for line in source:
        total += sink.write(line)
        if echo is not None:
            echo.write(line)
            echo.flush()
    return total


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = build_config(args)
    except (OSError, ValueError) as exc:
        print(f"logroll: invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(cfg.logging.level, cfg.logging.format)
    log = structlog.get_logger("logroll.cli")
    errors: list[BackgroundError] = []

    sink = RotatingLog(
        cfg.sink.resolved_filename(),
        cfg.sink.to_policy(),
        compress_workers=cfg.sink.compress_workers,
        on_error=errors.append,
    )
    try:
        if args.rotate:
            sink.rotate()
        else:
            echo = sys.stdout.buffer if args.tee else None
            written = pump(sys.stdin.buffer, sink, echo)
            log.debug("cli.done", written=written)
    except (LogrollError, OSError) as exc:
        log.error("cli.write_failed", file=str(sink.filename), error=str(exc))
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        sink.close()
        sink.wait_for_background()

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
