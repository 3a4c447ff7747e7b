from __future__ import annotations

import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from logroll.contracts import MEGABYTE, RotationPolicy


def default_filename() -> Path:
    """``<tempdir>/<program>-logroll.log``, used when no filename is configured."""

    program = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "python"
    return Path(tempfile.gettempdir()) / f"{program}-logroll.log"


class SinkCfg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    filename: Path | None = None
    max_size_mb: int = Field(default=100, gt=0)
    max_backups: int = Field(default=0, ge=0)
    max_age_days: float = Field(default=0, ge=0)
    compress: bool = False
    local_time: bool = False
    file_mode: int = Field(default=0, ge=0, le=0o7777)
    compress_workers: int = Field(default=2, gt=0)

    @field_validator("filename", mode="before")
    @classmethod
    def _expand_filename(cls, value: Any) -> Any:
        if isinstance(value, str):
            return os.path.expandvars(os.path.expanduser(value))
        return value

    @field_validator("file_mode", mode="before")
    @classmethod
    def _parse_octal(cls, value: Any) -> Any:
        # "0644" and "0o644" are octal; plain YAML ints are taken as-is.
        if isinstance(value, str):
            text = value.strip().lower()
            if text.startswith("0o"):
                text = text[2:]
            return int(text, 8)
        return value

    def resolved_filename(self) -> Path:
        return self.filename if self.filename is not None else default_filename()

    def to_policy(self) -> RotationPolicy:
        return RotationPolicy(
            max_size_bytes=self.max_size_mb * MEGABYTE,
            max_backups=self.max_backups,
            max_age=timedelta(days=self.max_age_days),
            compress=self.compress,
            file_mode=self.file_mode,
            local_time=self.local_time,
        )


class LoggingCfg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"
    format: Literal["console", "json"] = "console"


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sink: SinkCfg = Field(default_factory=SinkCfg)
    logging: LoggingCfg = Field(default_factory=LoggingCfg)


def _read_yaml(path: Path) -> dict[str, Any]:
    """Safe YAML read; returns {} if file missing/empty."""
    import yaml  # lazy import

    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data or {}


def _merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for section, values in override.items():
        current = merged.get(section)
        if isinstance(current, dict) and isinstance(values, dict):
            merged[section] = {**current, **values}
        else:
            merged[section] = values
    return merged


def load_config(base_dir: str | Path) -> Config:
    """Load ./config/base.yaml with optional ./config/local.yaml overrides."""

    base_path = Path(base_dir)
    base_yaml = base_path / "config" / "base.yaml"
    data = _read_yaml(base_yaml)
    if not data:
        msg = f"Missing or empty config file: {base_yaml}"
        raise FileNotFoundError(msg)

    local = _read_yaml(base_path / "config" / "local.yaml")
    if local:
        data = _merge_sections(data, local)

    return Config.model_validate(data)


def load_config_file(path: str | Path) -> Config:
    """Load a single YAML config file."""

    config_path = Path(path)
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)
    return Config.model_validate(_read_yaml(config_path))
