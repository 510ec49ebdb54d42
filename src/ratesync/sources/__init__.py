"""Remote rate sources.

- ``FrankfurterRateSource``: production source over httpx.
- ``FakeRateSource``: deterministic in-memory source for demo mode and tests.
"""

from ratesync.sources.fake import DEMO_RATES, FakeRateSource
from ratesync.sources.frankfurter import FrankfurterAdapter, FrankfurterRateSource
from ratesync.sources.provider import ConnectivityMonitor, RemoteRateSource, StaticConnectivity

__all__ = [
    "ConnectivityMonitor",
    "RemoteRateSource",
    "StaticConnectivity",
    "FrankfurterAdapter",
    "FrankfurterRateSource",
    "DEMO_RATES",
    "FakeRateSource",
]
