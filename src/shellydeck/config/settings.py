from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from .paths import LOG_FILENAME, default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "SHELLYDECK_CONFIG"


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class LoadingConfig(BaseModel):
    """Startup wave loading."""

    model_config = {"frozen": True, "extra": "forbid"}

    wave_size: int = Field(default=5, ge=1, le=50)
    wave_delay: float = Field(default=0.3, ge=0)


class FetchConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    device_timeout: float = Field(default=5.0, gt=0)
    overall_timeout: float = Field(default=10.0, gt=0)
    max_concurrent: int = Field(default=10, ge=1, le=255)


class RefreshConfig(BaseModel):
    """Adaptive polling intervals in seconds."""

    model_config = {"frozen": True, "extra": "forbid"}

    gen1_online: float = Field(default=15.0, gt=0)
    gen1_offline: float = Field(default=60.0, gt=0)
    gen2_online: float = Field(default=5.0, gt=0)
    gen2_offline: float = Field(default=30.0, gt=0)
    focused: float = Field(default=3.0, gt=0)


class BreakerConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    failure_threshold: int = Field(default=3, ge=1)
    success_threshold: int = Field(default=1, ge=1)
    open_duration: float = Field(default=60.0, gt=0)


class EventsConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    max_items: int = Field(default=100, ge=1)


class TuiConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    tick_interval: float = Field(default=1.0, gt=0)
    focus_debounce: float = Field(default=0.25, ge=0)
    resubscribe_interval: float = Field(default=30.0, ge=0)
    history_points: int = Field(default=60, ge=1)
    history_interval: float = Field(default=5.0, ge=0)
    log_file: str | None = None


class ScanningConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    timeout: float = Field(default=5.0, gt=0)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    loading: LoadingConfig = Field(default_factory=LoadingConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    breaker: BreakerConfig = Field(default_factory=BreakerConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    tui: TuiConfig = Field(default_factory=TuiConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)

    @model_validator(mode="after")
    def _check_timeouts(self) -> Settings:
        if self.fetch.overall_timeout < self.fetch.device_timeout:
            raise ValueError("fetch.overall_timeout must be >= fetch.device_timeout")
        return self


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def log_file_from_settings(settings: Settings) -> Path:
    if settings.tui.log_file:
        return expand_path(settings.tui.log_file)
    return data_dir_from_settings(settings) / LOG_FILENAME


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value))


def render_settings_toml(settings: Settings) -> str:
    lines = ["# shellydeck configuration", ""]
    for section, values in settings.model_dump().items():
        lines.append(f"[{section}]")
        for key, value in values.items():
            if value is None:
                continue
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
