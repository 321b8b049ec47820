"""
trackpull.config - YAML config loading and validation.

Handles loading trackpull.yaml, applying defaults, and validating all
parameters. The re-encode settings are tied to what the downstream
transcription engine expects, so they live here rather than in the planner.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from trackpull.exceptions import ConfigError

CONFIG_FILENAME = "trackpull.yaml"
DEFAULT_EXTRACTION_THRESHOLD_BYTES = 25 * 1024 * 1024


class ReencodeSettings(BaseModel):
    """Encoder parameters for the re-encode path (speech, not playback)."""

    encoder: str = "libmp3lame"
    bitrate_kbps: int = Field(default=64, gt=0, le=320)
    sample_rate_hz: int = Field(default=16000, gt=0)
    channels: int = Field(default=1, ge=1, le=2)

    @field_validator("sample_rate_hz")
    @classmethod
    def validate_sample_rate(cls, v: int) -> int:
        valid = {8000, 11025, 12000, 16000, 22050, 24000, 32000, 44100, 48000}
        if v not in valid:
            raise ValueError(f"sample_rate_hz must be one of: {sorted(valid)}")
        return v

    @field_validator("encoder")
    @classmethod
    def validate_encoder(cls, v: str) -> str:
        if not v or v.strip() != v or " " in v:
            raise ValueError("encoder must be a single ffmpeg encoder name")
        return v


class TrackpullConfig(BaseModel):
    """Resolved configuration for the extraction pipeline."""

    ffmpeg_binary: str | None = None
    extraction_threshold_bytes: int = Field(default=DEFAULT_EXTRACTION_THRESHOLD_BYTES, ge=0)
    threads: int | None = Field(default=None, ge=1)
    sandbox_dir: Path | None = None

    reencode: ReencodeSettings = Field(default_factory=ReencodeSettings)

    config_path: Path | None = None

    @property
    def resolved_ffmpeg_binary(self) -> str | None:
        """Binary from config, then TRACKPULL_FFMPEG, else None (search PATH)."""
        return self.ffmpeg_binary or os.environ.get("TRACKPULL_FFMPEG") or None


def find_config(start: Path | None = None) -> Path | None:
    """Find trackpull.yaml in the start directory or any of its parents."""
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def load_config(path: Path | None = None) -> TrackpullConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file. When None, trackpull.yaml is searched for
            from the current directory upwards; defaults apply if none exists.

    Raises:
        ConfigError: If the file is missing, malformed, or fails validation
    """
    if path is None:
        path = find_config()
        if path is None:
            return TrackpullConfig()
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    raw_config["config_path"] = path
    try:
        return TrackpullConfig(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def create_default_config() -> dict[str, Any]:
    """Create a default config mapping suitable for writing to YAML."""
    defaults = TrackpullConfig()
    return {
        "ffmpeg_binary": None,
        "extraction_threshold_bytes": defaults.extraction_threshold_bytes,
        "threads": None,
        "reencode": defaults.reencode.model_dump(),
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
