"""SQLite implementation of the RateStore protocol."""

from __future__ import annotations

import json
import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, ClassVar

import aiosqlite

from ratesync.core.config import StorageConfig
from ratesync.core.exceptions import StorageError, ValidationError
from ratesync.core.models import (
    HistoricalDay,
    HistoricalSeries,
    RateSnapshot,
    TrendDirection,
    TrendRecord,
)

logger = logging.getLogger(__name__)


class SqliteRateStore:
    """SQLite implementation of the rate store.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system. Rate tables are stored as
    JSON text, one row per calendar day.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS rate_snapshots (
                    as_of TEXT PRIMARY KEY,
                    base TEXT NOT NULL,
                    rates_json TEXT NOT NULL,
                    stored_at TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS historical_rates (
                    day TEXT PRIMARY KEY,
                    base TEXT NOT NULL,
                    rates_json TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS trend_records (
                    currency TEXT PRIMARY KEY,
                    change_percent REAL NOT NULL,
                    direction TEXT NOT NULL,
                    sparkline_json TEXT NOT NULL,
                    window_start TEXT NOT NULL,
                    window_end TEXT NOT NULL,
                    computed_at TEXT DEFAULT (datetime('now'))
                )""",
            ],
        ),
    }

    def __init__(self, config: StorageConfig, base_currency: str = "USD") -> None:
        self._path = config.sqlite_path
        self._base = base_currency
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Store not initialized",
                context={"operation": "connect", "path": self._path},
            )
        return self._db

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self.db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self.db.execute(sql)
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    async def _rollback_quietly(self) -> None:
        if self._db is not None:
            try:
                await self._db.rollback()
            except aiosqlite.Error:
                logger.warning("Rollback failed on %s", self._path, exc_info=True)

    # --- Snapshots ---

    async def put_snapshot(self, snapshot: RateSnapshot) -> None:
        try:
            await self.db.execute(
                """INSERT OR REPLACE INTO rate_snapshots
                   (as_of, base, rates_json, stored_at)
                   VALUES (?, ?, ?, ?)""",
                (
                    snapshot.as_of.isoformat(),
                    snapshot.base,
                    json.dumps(snapshot.rates, sort_keys=True),
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self.db.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            await self._rollback_quietly()
            raise StorageError(
                f"Failed to save snapshot: {e}",
                context={
                    "operation": "insert",
                    "table": "rate_snapshots",
                    "as_of": snapshot.as_of.isoformat(),
                },
            ) from e

    async def get_snapshot(self, as_of: date) -> RateSnapshot | None:
        try:
            async with self.db.execute(
                "SELECT * FROM rate_snapshots WHERE as_of = ?",
                (as_of.isoformat(),),
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_snapshot(row) if row is not None else None
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get snapshot: {e}",
                context={"operation": "query", "table": "rate_snapshots"},
            ) from e

    async def get_latest_snapshot(self) -> RateSnapshot | None:
        try:
            async with self.db.execute(
                "SELECT * FROM rate_snapshots ORDER BY as_of DESC LIMIT 1"
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_snapshot(row) if row is not None else None
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get latest snapshot: {e}",
                context={"operation": "query", "table": "rate_snapshots"},
            ) from e

    # --- Historical ---

    async def put_historical(self, series: HistoricalSeries) -> int:
        if series.base != self._base:
            raise ValidationError(
                f"Series base {series.base} does not match store base {self._base}",
                context={"field": "base", "value": series.base},
            )
        if not series.days:
            return 0
        try:
            async with self.db.execute(
                "SELECT day FROM historical_rates WHERE day BETWEEN ? AND ?",
                (series.first_day.isoformat(), series.last_day.isoformat()),
            ) as cursor:
                existing = {r["day"] for r in await cursor.fetchall()}
            new_rows = [
                (d.day.isoformat(), series.base, json.dumps(d.rates, sort_keys=True))
                for d in series.days
                if d.day.isoformat() not in existing
            ]
            await self.db.executemany(
                """INSERT OR IGNORE INTO historical_rates (day, base, rates_json)
                   VALUES (?, ?, ?)""",
                new_rows,
            )
            added = len(new_rows)
            await self.db.commit()
            logger.info(
                "Stored %d new historical days (%d offered, %s..%s)",
                added, len(series), series.first_day, series.last_day,
            )
            return added
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            await self._rollback_quietly()
            raise StorageError(
                f"Failed to save historical rates: {e}",
                context={"operation": "insert", "table": "historical_rates"},
            ) from e

    async def get_historical(
        self, start: date | None = None, end: date | None = None
    ) -> HistoricalSeries:
        try:
            query = "SELECT * FROM historical_rates WHERE 1=1"
            params: list = []
            if start is not None:
                query += " AND day >= ?"
                params.append(start.isoformat())
            if end is not None:
                query += " AND day <= ?"
                params.append(end.isoformat())
            query += " ORDER BY day ASC"
            async with self.db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
            return HistoricalSeries(
                base=self._base,
                days=[
                    HistoricalDay(
                        day=date.fromisoformat(r["day"]),
                        rates=json.loads(r["rates_json"]),
                    )
                    for r in rows
                ],
            )
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get historical rates: {e}",
                context={"operation": "query", "table": "historical_rates"},
            ) from e

    async def earliest_date(self) -> date | None:
        return await self._boundary_date("MIN")

    async def latest_date(self) -> date | None:
        return await self._boundary_date("MAX")

    async def _boundary_date(self, func: str) -> date | None:
        try:
            async with self.db.execute(
                f"SELECT {func}(day) FROM historical_rates"
            ) as cursor:
                row = await cursor.fetchone()
            return date.fromisoformat(row[0]) if row and row[0] else None
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get {func.lower()} historical date: {e}",
                context={"operation": "query", "table": "historical_rates"},
            ) from e

    # --- Trends ---

    async def put_trends(self, records: dict[str, TrendRecord]) -> None:
        """Replace all trend records in one transaction."""
        try:
            await self.db.execute("DELETE FROM trend_records")
            await self.db.executemany(
                """INSERT INTO trend_records
                   (currency, change_percent, direction, sparkline_json,
                    window_start, window_end)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [
                    (
                        r.currency,
                        r.change_percent,
                        str(r.direction),
                        json.dumps(r.sparkline),
                        r.window_start.isoformat(),
                        r.window_end.isoformat(),
                    )
                    for r in records.values()
                ],
            )
            await self.db.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            await self._rollback_quietly()
            raise StorageError(
                f"Failed to save trends: {e}",
                context={"operation": "replace", "table": "trend_records"},
            ) from e

    async def get_trends(self) -> dict[str, TrendRecord]:
        try:
            async with self.db.execute(
                "SELECT * FROM trend_records ORDER BY currency"
            ) as cursor:
                rows = await cursor.fetchall()
            return {r["currency"]: self._row_to_trend(r) for r in rows}
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get trends: {e}",
                context={"operation": "query", "table": "trend_records"},
            ) from e

    # --- Maintenance ---

    async def clear(self) -> None:
        try:
            for table in ("rate_snapshots", "historical_rates", "trend_records"):
                await self.db.execute(f"DELETE FROM {table}")
            await self.db.commit()
            logger.info("Cleared SQLite rate store at %s", self._path)
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            await self._rollback_quietly()
            raise StorageError(
                f"Failed to clear store: {e}",
                context={"operation": "delete", "table": "*"},
            ) from e

    async def get_statistics(self) -> dict[str, Any]:
        try:
            stats: dict[str, Any] = {}
            for key, table in (
                ("snapshots", "rate_snapshots"),
                ("historical_days", "historical_rates"),
                ("trend_records", "trend_records"),
            ):
                async with self.db.execute(f"SELECT COUNT(*) FROM {table}") as cursor:
                    row = await cursor.fetchone()
                stats[key] = row[0]
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to gather statistics: {e}",
                context={"operation": "query", "table": "*"},
            ) from e
        earliest = await self.earliest_date()
        latest = await self.latest_date()
        stats["earliest_date"] = earliest.isoformat() if earliest else None
        stats["latest_date"] = latest.isoformat() if latest else None
        return stats

    # --- Row mapping ---

    @staticmethod
    def _row_to_snapshot(row: aiosqlite.Row) -> RateSnapshot:
        return RateSnapshot(
            base=row["base"],
            as_of=date.fromisoformat(row["as_of"]),
            rates=json.loads(row["rates_json"]),
        )

    @staticmethod
    def _row_to_trend(row: aiosqlite.Row) -> TrendRecord:
        return TrendRecord(
            currency=row["currency"],
            change_percent=row["change_percent"],
            direction=TrendDirection(row["direction"]),
            sparkline=json.loads(row["sparkline_json"]),
            window_start=date.fromisoformat(row["window_start"]),
            window_end=date.fromisoformat(row["window_end"]),
        )
