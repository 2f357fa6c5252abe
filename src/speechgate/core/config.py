"""Configuration system with YAML loading and profile merging."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from speechgate.core.constants import (
    CONFIG_DIR,
    CREDENTIAL_ENV_VARS,
    DEFAULT_INIT_TIMEOUT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PRIORITY,
    DEFAULT_STATUS_TIMEOUT,
    DEFAULT_TRANSCRIBE_TIMEOUT,
)
from speechgate.core.exceptions import ConfigError


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@dataclass
class AudioConfig:
    sample_rate: int = 16000
    channels: int = 1


@dataclass
class SelectorConfig:
    priority: list[str] = field(default_factory=lambda: list(DEFAULT_PRIORITY))
    preferred_engine: Optional[str] = None
    init_timeout: float = DEFAULT_INIT_TIMEOUT
    transcribe_timeout: float = DEFAULT_TRANSCRIBE_TIMEOUT
    status_timeout: float = DEFAULT_STATUS_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self):
        for name in ("init_timeout", "transcribe_timeout", "status_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"selector.{name} must be positive")
        if self.max_workers < 1:
            raise ConfigError("selector.max_workers must be at least 1")


@dataclass
class AppConfig:
    profile: str = "offline"
    language: str = "en"
    audio: AudioConfig = field(default_factory=AudioConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    engines: dict = field(default_factory=dict)
    logging: dict = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> "AppConfig":
        """Load config from YAML, apply profile overlay."""
        default_path = CONFIG_DIR / "default.yaml"
        if not default_path.exists():
            raise ConfigError(f"Default config not found: {default_path}")

        config_data = _read_yaml(default_path)

        # Apply profile overlay
        profile_name = profile or config_data.get("profile", "offline")
        profile_path = CONFIG_DIR / "profiles" / f"{profile_name}.yaml"
        if profile_path.exists():
            config_data = deep_merge(config_data, _read_yaml(profile_path))
        elif profile:
            raise ConfigError(f"Unknown profile: {profile_name}")
        config_data["profile"] = profile_name

        # Apply user override
        if config_path:
            user_path = Path(config_path)
            if not user_path.exists():
                raise ConfigError(f"User config not found: {user_path}")
            config_data = deep_merge(config_data, _read_yaml(user_path))

        return cls._from_dict(config_data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        audio_data = data.get("audio", {})
        selector_data = data.get("selector", {})

        return cls(
            profile=data.get("profile", "offline"),
            language=data.get("language", "en"),
            audio=AudioConfig(**{
                k: v for k, v in audio_data.items()
                if k in AudioConfig.__dataclass_fields__
            }),
            selector=SelectorConfig(**{
                k: v for k, v in selector_data.items()
                if k in SelectorConfig.__dataclass_fields__
            }),
            engines=data.get("engines", {}),
            logging=data.get("logging", {}),
        )

    def engine_settings(self, engine_id: str) -> dict:
        """Settings for one engine, with credentials filled in from the environment.

        Values present in the config file win over environment variables.
        """
        settings = dict(self.engines.get(engine_id) or {})
        for key, env_var in CREDENTIAL_ENV_VARS.get(engine_id, {}).items():
            if not settings.get(key):
                settings[key] = os.environ.get(env_var)
        return settings


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
