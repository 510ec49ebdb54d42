"""Durable storage for rates, plus the fetch-cursor slot.

Built-in implementations:

- ``SqliteRateStore``: aiosqlite-backed production store.
- ``MemoryRateStore``: dict-backed fake with identical semantics.
- ``JsonFileCursorStore`` / ``MemoryCursorStore``: fetch-cursor slots.
"""

from ratesync.store.base import CursorStore, RateStore
from ratesync.store.cursor import JsonFileCursorStore, MemoryCursorStore
from ratesync.store.factory import create_cursor_store, create_store
from ratesync.store.memory import MemoryRateStore
from ratesync.store.sqlite import SqliteRateStore

__all__ = [
    "CursorStore",
    "RateStore",
    "JsonFileCursorStore",
    "MemoryCursorStore",
    "MemoryRateStore",
    "SqliteRateStore",
    "create_cursor_store",
    "create_store",
]
