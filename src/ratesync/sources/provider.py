"""Remote rate source and connectivity protocols.

Architecture
------------
    Remote API -> Adapter -> RateSnapshot / HistoricalSeries -> RemoteRateSource -> Orchestrator

- **RemoteRateSource** is the orchestrator-facing protocol. The orchestrator
  treats it as fallible and slow; implementations report transport problems
  as NetworkError and malformed payloads as ValidationError.

- **ConnectivityMonitor** is a read-only signal consulted before deciding
  whether a network attempt is worth making at all.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from ratesync.core.models import HistoricalSeries, RateSnapshot


@runtime_checkable
class RemoteRateSource(Protocol):
    """Consumer-facing interface for fetching rates."""

    async def fetch_current(self) -> RateSnapshot:
        """Latest published rate table. Raises NetworkError or ValidationError."""
        ...

    async def fetch_range(self, start: date, end: date) -> HistoricalSeries:
        """Per-day tables for [start, end], publishing days only."""
        ...


@runtime_checkable
class ConnectivityMonitor(Protocol):
    def is_connected(self) -> bool: ...


class StaticConnectivity:
    """Connectivity flag set by the host application (or a test)."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected

    def is_connected(self) -> bool:
        return self.connected
