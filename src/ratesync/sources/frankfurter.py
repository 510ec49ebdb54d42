"""Frankfurter rate source: ECB reference rates over HTTP.

Endpoints used::

    GET {base_url}/latest?base=USD
        {"amount": 1.0, "base": "USD", "date": "2024-01-05", "rates": {...}}

    GET {base_url}/{start}..{end}?base=USD
        {"amount": 1.0, "base": "USD", "start_date": ..., "end_date": ...,
         "rates": {"2024-01-02": {...}, "2024-01-03": {...}}}

The range endpoint may start at the last publishing day before `start`;
such leading days are dropped so callers get exactly what they asked for.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import date
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from ratesync.core.config import SourceConfig
from ratesync.core.exceptions import NetworkError, ValidationError
from ratesync.core.models import HistoricalSeries, RateSnapshot, parse_api_date

logger = logging.getLogger(__name__)

_USER_AGENT = "ratesync/0.1"
_RETRYABLE_STATUS = (429, 500, 502, 503, 504)
_DEFAULT_RETRY_AFTER = 5


class FrankfurterAdapter:
    """Transforms raw Frankfurter JSON into rate models."""

    def adapt_latest(self, raw: Any) -> RateSnapshot:
        """Parse a /latest response. The base currency is added with rate 1.0."""
        if not isinstance(raw, dict):
            raise ValidationError(
                "Latest-rates payload must be a JSON object",
                context={"field": "payload", "value": type(raw).__name__},
            )
        try:
            base = raw["base"]
            as_of = parse_api_date(raw["date"])
            rates = raw["rates"]
        except KeyError as e:
            raise ValidationError(
                f"Latest-rates payload missing field {e.args[0]!r}",
                context={"field": e.args[0]},
            ) from e
        if not isinstance(rates, dict):
            raise ValidationError(
                "Latest-rates 'rates' must be an object",
                context={"field": "rates", "value": type(rates).__name__},
            )
        return RateSnapshot(base=base, as_of=as_of, rates={**rates, str(base).upper(): 1.0})

    def adapt_range(self, raw: Any, start: date, end: date) -> HistoricalSeries:
        """Parse a time-series response, keeping days within [start, end]."""
        if not isinstance(raw, dict):
            raise ValidationError(
                "Time-series payload must be a JSON object",
                context={"field": "payload", "value": type(raw).__name__},
            )
        base = raw.get("base")
        rates = raw.get("rates")
        if base is None or not isinstance(rates, dict):
            raise ValidationError(
                "Time-series payload missing 'base' or 'rates'",
                context={"field": "rates"},
            )
        base = str(base).upper()
        series = HistoricalSeries.from_payload(
            base,
            {
                day: ({**day_rates, base: 1.0} if isinstance(day_rates, dict) else day_rates)
                for day, day_rates in rates.items()
            },
        )
        return series.between(start, end)


class FrankfurterRateSource:
    """Rate-limited async client for the Frankfurter API.

    Use via ``async with FrankfurterRateSource(config) as source:`` or call
    close() explicitly.

    Parameters
    ----------
    config : SourceConfig
        Base URL, base currency, timeouts, rate limit and retry count.
    client : httpx.AsyncClient | None
        Injected client (tests). Created from config when None.
    retry_delay : float
        Base delay in seconds for exponential backoff between retries.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        client: httpx.AsyncClient | None = None,
        adapter: FrankfurterAdapter | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        self._config = config or SourceConfig()
        self._limiter = AsyncLimiter(max_rate=self._config.rate_limit, time_period=1.0)
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            timeout=httpx.Timeout(self._config.request_timeout),
            follow_redirects=True,
        )
        self._adapter = adapter or FrankfurterAdapter()
        self._retry_delay = retry_delay

    async def __aenter__(self) -> FrankfurterRateSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def base_currency(self) -> str:
        return self._config.base_currency

    async def fetch_current(self) -> RateSnapshot:
        url = f"{self._config.base_url}/latest"
        data = await self._get_json(url, params={"base": self.base_currency})
        snapshot = self._adapter.adapt_latest(data)
        logger.info(
            "Fetched %d rates for %s (base %s)",
            len(snapshot.rates), snapshot.as_of, snapshot.base,
        )
        return snapshot

    async def fetch_range(self, start: date, end: date) -> HistoricalSeries:
        if start > end:
            raise ValidationError(
                f"Range start {start} is after end {end}",
                context={"field": "start", "value": start.isoformat()},
            )
        url = f"{self._config.base_url}/{start.isoformat()}..{end.isoformat()}"
        data = await self._get_json(url, params={"base": self.base_currency})
        series = self._adapter.adapt_range(data, start, end)
        logger.info("Fetched %d historical days for %s..%s", len(series), start, end)
        return series

    # --- Rate Limiting & Retry ---

    async def _get_json(self, url: str, params: dict[str, str]) -> Any:
        response = await self._rate_limited_request("GET", url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f"Undecodable JSON from {url}",
                context={"url": url, "status_code": response.status_code},
            ) from e

    def _backoff(self, attempt: int) -> float:
        delay = self._retry_delay * (2**attempt)
        return delay + random.uniform(0, delay * 0.1)

    async def _rate_limited_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with rate limiting and retry logic.

        Retry policy:
            - HTTP 429: wait for Retry-After (or backoff), then retry.
            - HTTP 5xx: retry with exponential backoff plus jitter.
            - Connect/timeout errors: retry with backoff.
            - Other HTTP errors: raise immediately.

        Raises:
            NetworkError: retries exhausted or non-retryable status.
        """
        max_retries = self._config.max_retries

        for attempt in range(max_retries + 1):
            try:
                async with self._limiter:
                    response = await self._client.request(method, url, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "Connection error on %s, retrying in %.1fs (attempt %d/%d)",
                        url, delay, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise NetworkError(
                    f"Connection failed after retries: {url}",
                    context={"url": url, "error": str(e)},
                ) from e
            except httpx.HTTPError as e:
                raise NetworkError(
                    f"Request to {url} failed: {e}",
                    context={"url": url, "error": str(e)},
                ) from e

            if response.status_code == 200:
                return response

            if response.status_code in _RETRYABLE_STATUS and attempt < max_retries:
                if response.status_code == 429:
                    delay = float(
                        response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER)
                    )
                else:
                    delay = self._backoff(attempt)
                logger.warning(
                    "HTTP %d on %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code, url, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            logger.error("HTTP %d from %s", response.status_code, url)
            raise NetworkError(
                f"HTTP {response.status_code} from {url}",
                context={"url": url, "status_code": response.status_code},
            )

        raise NetworkError(
            f"Request failed after all retries: {url}",
            context={"url": url},
        )
