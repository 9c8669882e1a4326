"""Global configuration using Pydantic settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application wide settings loaded from environment variables.

    The scoring constants were tuned empirically for dance detection on a
    phone carried in a pocket; treat them as knobs, not invariants.
    """

    base_dir: Path = Field(default_factory=lambda: Path("sessions"))
    database_path: Path = Field(default_factory=lambda: Path("ekko.db"))

    # Timing
    analysis_window_seconds: float = 20.0
    min_session_duration: float = 30.0
    min_time_between_peaks: float = 60.0

    # Sensors
    sensor_frequency: float = 50.0
    sensor_write_interval_seconds: float = 5.0

    # Rhythm
    bpm_min: float = 60.0
    bpm_max: float = 180.0
    bpm_bonus_min: float = 90.0
    bpm_bonus_max: float = 175.0
    min_movement_threshold: float = 0.05
    rhythm_bonus_factor: float = 1.2
    beat_threshold_ratio: float = 1.2

    # PartyPower weights
    gyro_weight: float = 15.0
    yaw_weight: float = 50.0
    yaw_change_threshold: float = 3.0

    # Ranking
    tier_short_limit: float = 600.0
    tier_medium_limit: float = 1500.0
    tier_short_count: int = 1
    tier_medium_count: int = 3
    tier_long_count: int = 5
    max_candidates: Optional[int] = None

    # Recognition
    recognition_backend: str = "dummy"
    acr_host: Optional[str] = None
    acr_access_key: Optional[str] = None
    acr_access_secret: Optional[str] = None
    request_timeout: float = 25.0
    recognition_concurrency: int = 1
    keep_unmatched_moments: bool = False

    # Reporting
    unknown_title: str = "Unknown"
    fallback_range_end: float = 100_000.0

    model_config = SettingsConfigDict(
        env_prefix="EKKO_",
        env_file=".env",
        case_sensitive=False,
    )

    @property
    def window_size_in_rows(self) -> int:
        return int(self.analysis_window_seconds * self.sensor_frequency)

    @property
    def stride_in_rows(self) -> int:
        return max(self.window_size_in_rows // 4, 1)

    @property
    def sensor_buffer_rows(self) -> int:
        return max(int(self.sensor_frequency * self.sensor_write_interval_seconds), 1)

    @property
    def candidate_limit(self) -> int:
        if self.max_candidates is not None:
            return self.max_candidates
        return self.tier_long_count * 2


_settings: Optional[Settings] = None


_MODEL_CONFIG: Dict[str, Any] = dict(Settings.model_config or {})
_ENV_PREFIX: str = (_MODEL_CONFIG.get("env_prefix") or "").upper()
_CASE_SENSITIVE: bool = bool(_MODEL_CONFIG.get("case_sensitive", True))
_ENV_FILE = _MODEL_CONFIG.get("env_file") or ".env"
_ENV_PATH = Path(_ENV_FILE)


@dataclass
class EnvironmentSetting:
    """Metadata about a configuration option backed by an environment variable."""

    field: str
    env_name: str
    value: Any
    default: Any
    annotation: Any


class EnvironmentSettingError(RuntimeError):
    """Raised when environment-backed configuration updates fail."""


def _env_key(field: str) -> str:
    key = f"{_ENV_PREFIX}{field}" if _ENV_PREFIX else field
    return key if _CASE_SENSITIVE else key.upper()


def _field_default(field_info) -> Any:
    if field_info.default is not None:
        return field_info.default
    if field_info.default_factory is not None:  # type: ignore[truthy-function]
        return field_info.default_factory()
    return None


def _load_env_file() -> Iterable[str]:
    if not _ENV_PATH.exists():
        return []
    return _ENV_PATH.read_text().splitlines()


def _persist_env_value(env_name: str, value: Optional[str]) -> None:
    new_lines = []
    updated = False
    for line in _load_env_file():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in line:
            new_lines.append(line)
            continue
        key = line.split("=", 1)[0].strip()
        if key != env_name:
            new_lines.append(line)
            continue
        updated = True
        if value is not None:
            new_lines.append(f"{env_name}={value}")
    if not updated and value is not None:
        new_lines.append(f"{env_name}={value}")

    if new_lines:
        _ENV_PATH.write_text("\n".join(new_lines) + "\n")
    elif _ENV_PATH.exists():
        _ENV_PATH.unlink()


def list_environment_settings(settings: Optional[Settings] = None) -> Iterable[EnvironmentSetting]:
    """Return metadata for all environment-backed settings."""

    settings = settings or get_settings()
    for name, field in Settings.model_fields.items():
        yield EnvironmentSetting(
            field=name,
            env_name=_env_key(name),
            value=getattr(settings, name),
            default=_field_default(field),
            annotation=field.annotation,
        )


def _env_file_value(env_name: str) -> Optional[str]:
    for line in _load_env_file():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key.strip() == env_name:
            return value.strip()
    return None


def _set_env_value(env_name: str, value: Optional[str]) -> None:
    if value is None:
        os.environ.pop(env_name, None)
    else:
        os.environ[env_name] = value


def _apply_setting_update(field: str, raw_value: Optional[str]) -> Settings:
    if field not in Settings.model_fields:
        raise EnvironmentSettingError(f"Unknown setting: {field}")
    env_name = _env_key(field)
    previous = os.environ.get(env_name)
    previous_file_value = _env_file_value(env_name)

    # The .env file is written before reloading so the reload cannot see a stale override.
    _set_env_value(env_name, raw_value)
    _persist_env_value(env_name, raw_value)

    try:
        new_settings = Settings(_env_file=_ENV_PATH)
    except ValidationError as exc:
        _set_env_value(env_name, previous)
        _persist_env_value(env_name, previous_file_value)
        raise EnvironmentSettingError(str(exc)) from exc

    global _settings
    _settings = new_settings
    return new_settings


def update_environment_setting(field: str, raw_value: str) -> Settings:
    """Update an environment setting and reload configuration."""

    return _apply_setting_update(field, raw_value)


def clear_environment_setting(field: str) -> Settings:
    """Remove an environment override for the given field and reload configuration."""

    return _apply_setting_update(field, None)


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = [
    "Settings",
    "EnvironmentSetting",
    "EnvironmentSettingError",
    "clear_environment_setting",
    "get_settings",
    "list_environment_settings",
    "update_environment_setting",
]
