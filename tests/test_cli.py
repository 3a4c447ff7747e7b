from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from logroll.cli import build_config, build_parser, main, pump
from logroll.contracts import MEGABYTE
from logroll.engine import RotatingLog
from tests.utils import FakeClock, backup_files


def feed_stdin(monkeypatch: pytest.MonkeyPatch, data: bytes) -> None:
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(data)))


def test_build_config_defaults() -> None:
    cfg = build_config(build_parser().parse_args([]))

    assert cfg.sink.max_size_mb == 100
    assert cfg.sink.compress is False
    assert cfg.logging.level == "INFO"


def test_build_config_overrides_file(tmp_path: Path) -> None:
    config = tmp_path / "logroll.yaml"
    config.write_text("sink:\n  max_backups: 7\n  compress: true\n", encoding="utf-8")
    args = build_parser().parse_args(
        [
            "--config",
            str(config),
            "--max-size-mb",
            "5",
            "--no-compress",
            "--file-mode",
            "0644",
            "--log-level",
            "DEBUG",
        ]
    )

    cfg = build_config(args)

    assert cfg.sink.max_backups == 7
    assert cfg.sink.max_size_mb == 5
    assert cfg.sink.compress is False
    assert cfg.sink.file_mode == 0o644
    assert cfg.logging.level == "DEBUG"


def test_pump_copies_lines_and_echoes(tmp_path: Path) -> None:
    source = io.BytesIO(b"one\ntwo\n")
    echo = io.BytesIO()
    with RotatingLog(tmp_path / "app.log", clock=FakeClock()) as sink:
        written = pump(source, sink, echo)

    assert written == 8
    assert echo.getvalue() == b"one\ntwo\n"
    assert (tmp_path / "app.log").read_bytes() == b"one\ntwo\n"


def test_main_writes_stdin(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    filename = tmp_path / "logs" / "app.log"
    feed_stdin(monkeypatch, b"hello\nworld\n")

    assert main(["--filename", str(filename)]) == 0

    assert filename.read_bytes() == b"hello\nworld\n"


def test_main_rotates_large_input(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    filename = tmp_path / "app.log"
    line = b"x" * 1023 + b"\n"
    feed_stdin(monkeypatch, line * (MEGABYTE // len(line) + 10))

    assert main(["--filename", str(filename), "--max-size-mb", "1", "--max-backups", "3"]) == 0

    backups = backup_files(tmp_path, filename)
    assert len(backups) == 1
    assert backups[0].stat().st_size == MEGABYTE
    assert filename.stat().st_size == 10 * len(line)


def test_main_rotate_flag(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    filename = tmp_path / "app.log"
    filename.write_bytes(b"existing\n")
    feed_stdin(monkeypatch, b"")

    assert main(["--filename", str(filename), "--rotate"]) == 0

    backups = backup_files(tmp_path, filename)
    assert len(backups) == 1
    assert backups[0].read_bytes() == b"existing\n"
    assert filename.read_bytes() == b""


def test_main_rejects_bad_file_mode(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    rc = main(["--filename", str(tmp_path / "app.log"), "--file-mode", "rw-r--r--"])

    assert rc == 1
    assert "invalid configuration" in capsys.readouterr().err
    assert not (tmp_path / "app.log").exists()


def test_main_missing_config_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["--config", str(tmp_path / "missing.yaml")])

    assert rc == 1
    assert "missing.yaml" in capsys.readouterr().err
