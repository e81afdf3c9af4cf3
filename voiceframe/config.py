"""Persisted configuration management."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from .models import Config

CONFIG_PATH = (Path.home() / ".voiceframe" / "config.json").expanduser()

ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "VOICEFRAME_CONTENT_MODEL": "content_model",
    "VOICEFRAME_TRANSCRIPTION_MODEL": "transcription_model",
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or saved."""


def load_config() -> Config:
    """Read the config file and apply environment overrides on top."""

    config = _read_file()
    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            setattr(config, key, value)
    return config


def _read_file() -> Config:
    if not CONFIG_PATH.exists():
        return Config()
    try:
        payload = json.loads(CONFIG_PATH.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
    known = {f.name for f in fields(Config)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys in {CONFIG_PATH}: {', '.join(unknown)}")
    return Config(**payload)


def save_config(config: Config) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in asdict(config).items() if v is not None}
    CONFIG_PATH.write_text(json.dumps(data, indent=2))


def update_config(**kwargs: Any) -> Config:
    # Environment overrides must not leak into the file.
    config = _read_file()
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ConfigError(f"Unknown configuration key: {key}")
    save_config(config)
    return config
