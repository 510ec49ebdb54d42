"""FetchCursor slots: where the last successful fetch timestamp lives."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from ratesync.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


class MemoryCursorStore:
    """Process-local cursor slot."""

    def __init__(self, initial: datetime | None = None) -> None:
        self._value = _as_utc(initial) if initial is not None else None

    async def get(self) -> datetime | None:
        return self._value

    async def set(self, ts: datetime) -> None:
        self._value = _as_utc(ts)

    async def clear(self) -> None:
        self._value = None


class JsonFileCursorStore:
    """Cursor slot persisted as a one-key JSON file.

    Writes go to a sibling temp file that is then renamed over the target,
    so a crash never leaves a half-written cursor. An unreadable file reads
    as "never fetched".
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def get(self) -> datetime | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            raw = data.get("last_fetch") if isinstance(data, dict) else None
            return _as_utc(datetime.fromisoformat(raw)) if raw else None
        except (ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable fetch cursor %s: %s", self._path, e)
            return None
        except OSError as e:
            raise StorageError(
                f"Failed to read fetch cursor: {e}",
                context={"operation": "query", "table": "fetch_cursor", "path": str(self._path)},
            ) from e

    async def set(self, ts: datetime) -> None:
        payload = json.dumps({"last_fetch": _as_utc(ts).isoformat()})
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise StorageError(
                f"Failed to write fetch cursor: {e}",
                context={"operation": "insert", "table": "fetch_cursor", "path": str(self._path)},
            ) from e

    async def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to clear fetch cursor: {e}",
                context={"operation": "delete", "table": "fetch_cursor", "path": str(self._path)},
            ) from e
