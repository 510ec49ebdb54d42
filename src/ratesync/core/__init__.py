"""ratesync.core: foundation types, config, and exceptions."""

from ratesync.core.config import (
    APIConfig,
    CacheConfig,
    RateSyncConfig,
    ScheduleConfig,
    SourceConfig,
    StorageConfig,
    TrendsConfig,
    load_config,
)
from ratesync.core.exceptions import (
    ConfigError,
    DataUnavailableError,
    InsufficientDataError,
    NetworkError,
    RateSyncError,
    StorageError,
    ValidationError,
)
from ratesync.core.models import (
    SUPPORTED_CURRENCIES,
    CurrencyCode,
    DataShape,
    HistoricalDay,
    HistoricalSeries,
    RatePoint,
    RateSnapshot,
    StorageBackend,
    TrendDirection,
    TrendRecord,
    parse_api_date,
    parse_currency_code,
)

__all__ = [
    # Config
    "APIConfig",
    "CacheConfig",
    "RateSyncConfig",
    "ScheduleConfig",
    "SourceConfig",
    "StorageConfig",
    "TrendsConfig",
    "load_config",
    # Exceptions
    "ConfigError",
    "DataUnavailableError",
    "InsufficientDataError",
    "NetworkError",
    "RateSyncError",
    "StorageError",
    "ValidationError",
    # Models
    "SUPPORTED_CURRENCIES",
    "CurrencyCode",
    "DataShape",
    "HistoricalDay",
    "HistoricalSeries",
    "RatePoint",
    "RateSnapshot",
    "StorageBackend",
    "TrendDirection",
    "TrendRecord",
    "parse_api_date",
    "parse_currency_code",
]
