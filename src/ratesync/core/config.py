"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ratesync.core.exceptions import ConfigError
from ratesync.core.exceptions import ValidationError as RateValidationError
from ratesync.core.models import StorageBackend, parse_currency_code

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class SourceConfig(BaseModel):
    """Remote rate source access configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.frankfurter.dev/v1"
    base_currency: str = "USD"
    request_timeout: float = 10.0
    fetch_timeout: float = 15.0
    rate_limit: int = 5
    max_retries: int = 3

    @field_validator("base_url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("base_currency")
    @classmethod
    def base_is_code(cls, v: str) -> str:
        try:
            return parse_currency_code(v)
        except RateValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator("request_timeout", "fetch_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v

    @field_validator("max_retries")
    @classmethod
    def retries_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


class ScheduleConfig(BaseModel):
    """Publication schedule of the remote source.

    Weekdays are lower-case English names; cutover is wall-clock time in
    `timezone`, the source's publication timezone.
    """

    model_config = ConfigDict(frozen=True)

    timezone: str = "Europe/Paris"
    cutover_hour: int = 17
    cutover_minute: int = 0
    pre_weekend_day: str = "friday"
    non_publishing_days: tuple[str, ...] = ("saturday", "sunday")

    @field_validator("timezone")
    @classmethod
    def timezone_exists(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v!r}") from e
        return v

    @field_validator("cutover_hour")
    @classmethod
    def hour_in_range(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("cutover_hour must be between 0 and 23")
        return v

    @field_validator("cutover_minute")
    @classmethod
    def minute_in_range(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("cutover_minute must be between 0 and 59")
        return v

    @field_validator("pre_weekend_day")
    @classmethod
    def known_weekday(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in _WEEKDAYS:
            raise ValueError(f"unknown weekday: {v!r}")
        return v

    @field_validator("non_publishing_days", mode="before")
    @classmethod
    def split_days(cls, v: object) -> object:
        # env vars arrive as "saturday,sunday"
        if isinstance(v, str):
            return tuple(p.strip() for p in v.split(",") if p.strip())
        return v

    @field_validator("non_publishing_days")
    @classmethod
    def known_weekdays(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        days = tuple(d.strip().lower() for d in v)
        for d in days:
            if d not in _WEEKDAYS:
                raise ValueError(f"unknown weekday: {d!r}")
        return days

    @model_validator(mode="after")
    def pre_weekend_publishes(self) -> ScheduleConfig:
        if self.pre_weekend_day in self.non_publishing_days:
            raise ValueError("pre_weekend_day cannot be a non-publishing day")
        if len(set(self.non_publishing_days)) >= len(_WEEKDAYS):
            raise ValueError("at least one weekday must be a publishing day")
        return self

    @property
    def pre_weekend_weekday(self) -> int:
        """Python weekday number (Monday=0) of the pre-weekend day."""
        return _WEEKDAYS.index(self.pre_weekend_day)

    @property
    def non_publishing_weekdays(self) -> frozenset[int]:
        return frozenset(_WEEKDAYS.index(d) for d in self.non_publishing_days)


class StorageConfig(BaseModel):
    """Durable-store and fetch-cursor configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/ratesync.db"
    cursor_path: str | None = "./data/last_fetch.json"


class CacheConfig(BaseModel):
    """In-memory cache configuration."""

    model_config = ConfigDict(frozen=True)

    max_historical_entries: int = 10

    @field_validator("max_historical_entries")
    @classmethod
    def entries_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_historical_entries must be >= 1")
        return v


class TrendsConfig(BaseModel):
    """Trend derivation configuration."""

    model_config = ConfigDict(frozen=True)

    window_days: int = 7
    stable_epsilon: float = 0.01

    @field_validator("window_days")
    @classmethod
    def window_at_least_two(cls, v: int) -> int:
        if v < 2:
            raise ValueError("window_days must be >= 2")
        return v

    @field_validator("stable_epsilon")
    @classmethod
    def epsilon_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("stable_epsilon must be >= 0")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000
    api_key: str | None = None


class RateSyncConfig(BaseModel):
    """Root configuration for ratesync."""

    model_config = ConfigDict(frozen=True)

    source: SourceConfig = SourceConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    storage: StorageConfig = StorageConfig()
    cache: CacheConfig = CacheConfig()
    trends: TrendsConfig = TrendsConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "RATESYNC_",
) -> RateSyncConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (RATESYNC_SOURCE__BASE_URL, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        RATESYNC_SCHEDULE__CUTOVER_HOUR=16  ->  schedule.cutover_hour = 16
    """
    try:
        yaml_path = _resolve_config_path(config_path, env_prefix)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return RateSyncConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None, env_prefix: str) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_var = f"{env_prefix}CONFIG"
    env_path = os.environ.get(env_var)
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from {env_var} not found: {env_path}",
                context={"field": env_var, "value": env_path},
            )
        return p

    default = Path("ratesync.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = {k: (dict(v) if isinstance(v, dict) else v) for k, v in base.items()}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = [p.lower() for p in key[len(prefix) :].split("__")]
        if parts == ["config"]:
            continue

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = _auto_cast(value)

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
