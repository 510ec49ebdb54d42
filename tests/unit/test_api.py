"""Tests for the FastAPI REST API module."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient

from ratesync.api.app import create_app
from ratesync.core.config import APIConfig, RateSyncConfig, StorageConfig
from ratesync.core.models import StorageBackend
from ratesync.store.memory import MemoryRateStore
from ratesync.sync.cache import MemoryCache
from ratesync.sync.orchestrator import SyncOrchestrator

EUR_WEEK = [1.10, 1.11, 1.12, 1.09, 1.08, 1.12, 1.15]


# -- Fixtures --


def _make_config(api_key=None):
    return RateSyncConfig(
        storage=StorageConfig(backend=StorageBackend.MEMORY),
        api=APIConfig(api_key=api_key),
    )


@pytest.fixture
def store() -> MemoryRateStore:
    s = MemoryRateStore()
    asyncio.run(s.initialize())
    return s


@pytest.fixture
def api_orchestrator(fake_source, store, cursor_store, connectivity, clock, policy):
    return SyncOrchestrator(
        source=fake_source,
        store=store,
        cursor_store=cursor_store,
        cache=MemoryCache(),
        policy=policy,
        connectivity=connectivity,
        clock=clock,
    )


@pytest.fixture
def client(api_orchestrator):
    app = create_app(config=_make_config(), orchestrator=api_orchestrator)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def authed_client(api_orchestrator):
    app = create_app(config=_make_config(api_key="test-secret-key"), orchestrator=api_orchestrator)
    with TestClient(app) as c:
        yield c


# -- Health --


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["storage_backend"] == "memory"
        assert data["snapshots"] == 0


# -- Rates --


class TestRates:
    def test_get_rates(self, client, fake_source):
        resp = client.get("/api/rates")
        assert resp.status_code == 200
        data = resp.json()
        assert data["base"] == "USD"
        assert data["as_of"] == "2024-01-10"
        assert "EUR" in data["rates"]
        client.get("/api/rates")
        assert fake_source.current_calls == 1

    def test_refresh_query(self, client, fake_source):
        client.get("/api/rates")
        resp = client.get("/api/rates", params={"refresh": "true"})
        assert resp.status_code == 200
        assert fake_source.current_calls == 1

    def test_nothing_available_is_404(self, client, fake_source):
        fake_source.online = False
        resp = client.get("/api/rates")
        assert resp.status_code == 404
        assert resp.json()["error"] == "DataUnavailableError"

    def test_forced_refresh(self, client, fake_source):
        client.get("/api/rates")
        resp = client.post("/api/rates/refresh")
        assert resp.status_code == 200
        assert fake_source.current_calls == 2

    def test_forced_refresh_offline_is_503(self, client, fake_source):
        fake_source.online = False
        resp = client.post("/api/rates/refresh")
        assert resp.status_code == 503
        assert resp.json()["error"] == "NetworkError"


# -- History --


class TestHistory:
    def test_history(self, client):
        resp = client.get("/api/history/eur", params={"start": "2024-01-01", "end": "2024-01-10"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["currency"] == "EUR"
        assert data["base"] == "USD"
        assert len(data["points"]) == 8
        assert data["statistics"]["points"] == 8
        assert data["statistics"]["direction"] in {"up", "down", "stable"}

    def test_history_default_range(self, client):
        resp = client.get("/api/history/EUR")
        assert resp.status_code == 200
        data = resp.json()
        assert data["end"] == "2024-01-10"
        assert data["start"] == "2023-12-11"

    def test_history_sampled(self, client):
        resp = client.get(
            "/api/history/EUR",
            params={"start": "2023-10-01", "end": "2024-01-10", "max_points": 10},
        )
        assert resp.status_code == 200
        assert len(resp.json()["points"]) <= 10

    def test_bad_currency_is_422(self, client):
        resp = client.get("/api/history/EURO")
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    def test_inverted_range_is_422(self, client):
        resp = client.get("/api/history/EUR", params={"start": "2024-01-10", "end": "2024-01-01"})
        assert resp.status_code == 422

    def test_offline_empty_is_404(self, client, connectivity):
        connectivity.connected = False
        resp = client.get("/api/history/EUR", params={"start": "2024-01-01", "end": "2024-01-10"})
        assert resp.status_code == 404


# -- Trends --


class TestTrends:
    def test_trends(self, client, fake_source, make_series):
        fake_source.seed_series(make_series(date(2024, 1, 10), {"EUR": EUR_WEEK}))
        resp = client.get("/api/trends")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["currency"] == "EUR"
        assert item["direction"] == "up"
        assert item["change_percent"] == pytest.approx(4.545, abs=1e-3)
        assert item["window_end"] == "2024-01-10"

    def test_insufficient_is_409(self, client, fake_source, make_series):
        fake_source.seed_series(make_series(date(2024, 1, 10), {"EUR": EUR_WEEK[:3]}))
        resp = client.get("/api/trends")
        assert resp.status_code == 409
        assert resp.json()["error"] == "InsufficientDataError"

    def test_recompute_from_store(self, client, store, make_series):
        asyncio.run(store.put_historical(make_series(date(2024, 1, 10), {"EUR": EUR_WEEK})))
        resp = client.post("/api/trends/recompute")
        assert resp.status_code == 200
        assert resp.json()["items"][0]["sparkline"] == EUR_WEEK


# -- Conversion --


class TestConvert:
    def test_convert(self, client, fake_source, make_snapshot):
        fake_source.set_current(make_snapshot(rates={"EUR": 0.5, "GBP": 0.25}))
        resp = client.get("/api/convert", params={"amount": 10, "from": "gbp", "to": "EUR"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["from_currency"] == "GBP"
        assert data["rate"] == pytest.approx(2.0)
        assert data["result"] == pytest.approx(20.0)

    def test_unknown_currency_is_422(self, client, fake_source, make_snapshot):
        fake_source.set_current(make_snapshot(rates={"EUR": 0.5}))
        resp = client.get("/api/convert", params={"amount": 1, "from": "USD", "to": "SEK"})
        assert resp.status_code == 422

    def test_missing_params(self, client):
        assert client.get("/api/convert", params={"amount": 1}).status_code == 422


# -- Status / maintenance --


class TestStatus:
    def test_status(self, client):
        client.get("/api/rates")
        resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["today"] == "2024-01-10"
        assert data["should_fetch"] is False
        assert data["last_fetch"] is not None
        assert data["store"]["snapshots"] == 1

    def test_clear(self, client, store):
        client.get("/api/rates")
        resp = client.delete("/api/data")
        assert resp.status_code == 204
        assert client.get("/api/health").json()["snapshots"] == 0


# -- Auth --


class TestApiKey:
    def test_missing_key_rejected(self, authed_client):
        resp = authed_client.get("/api/rates")
        assert resp.status_code == 401

    def test_health_exempt(self, authed_client):
        assert authed_client.get("/api/health").status_code == 200

    def test_valid_key(self, authed_client):
        resp = authed_client.get("/api/rates", headers={"X-API-Key": "test-secret-key"})
        assert resp.status_code == 200
