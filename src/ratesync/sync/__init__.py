"""Rate synchronization: fetch scheduling, caching, trend derivation."""

from ratesync.sync.cache import CacheEntry, MemoryCache
from ratesync.sync.clock import ClockPolicy
from ratesync.sync.gaps import has_published_day, missing_ranges
from ratesync.sync.inflight import InFlight
from ratesync.sync.orchestrator import SyncOrchestrator, create_orchestrator
from ratesync.sync.trends import TrendEngine

__all__ = [
    "CacheEntry",
    "ClockPolicy",
    "InFlight",
    "MemoryCache",
    "SyncOrchestrator",
    "TrendEngine",
    "create_orchestrator",
    "has_published_day",
    "missing_ranges",
]
