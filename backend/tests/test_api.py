import asyncio
from datetime import datetime, timezone

from fastapi.testclient import TestClient

import fluxstats.main as main_module
from fluxstats.cache_store import CacheStore, MemoryCacheBackend, default_last_good
from fluxstats.main import app
from fluxstats.models import ApiErrorKind, MetricKind, UpstreamFailure, UpstreamSuccess
from fluxstats.state import state

NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _install_store(monkeypatch, clock=None) -> CacheStore:
    store = CacheStore(MemoryCacheBackend(), clock=clock or FakeClock())
    monkeypatch.setattr(main_module, "cache_store", store)
    return store


def _reset_state() -> None:
    asyncio.run(state.clear())


def test_metric_endpoint_serves_fresh_value(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.set_fresh(MetricKind.NODE_COUNT, {"total": 8491})

    client = TestClient(app)
    response = client.get("/api/metrics/nodecount")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "data": {"value": "8,491", "cache_time": int(NOW)},
        "type": "nodecount",
        "human_readable": False,
    }


def test_metric_endpoint_human_readable_query(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.set_last_good(MetricKind.TOTAL_SSD, {"total_cores": 1, "total_ram": 1, "total_ssd": 3256000})

    client = TestClient(app)
    response = client.get("/api/metrics/totalssd", params={"human_readable": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["value"] == "3.3PB"
    assert body["type"] == "totalssd"
    assert body["human_readable"] is True


def test_metric_endpoint_rejects_unknown_metric(monkeypatch):
    _reset_state()
    _install_store(monkeypatch)

    client = TestClient(app)
    response = client.get("/api/metrics/totalgpu")

    assert response.status_code == 400
    assert response.json()["detail"] == {
        "code": ApiErrorKind.INVALID_METRIC_REQUESTED.value,
        "message": "Invalid data type requested",
    }


def test_metric_endpoint_rejects_non_canonical_names(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.seed_last_good(default_last_good())

    client = TestClient(app)
    for name in ("NodeCount", "TOTALSSD", "%20nodecount%20"):
        response = client.get(f"/api/metrics/{name}")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_metric_requested"


def test_metric_endpoint_returns_503_without_data(monkeypatch):
    _reset_state()
    _install_store(monkeypatch)

    client = TestClient(app)
    response = client.get("/api/metrics/runningapps")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "no_data_available"


def test_metric_endpoint_serves_seeded_defaults(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.seed_last_good(default_last_good())

    client = TestClient(app)
    response = client.get("/api/metrics/totalram", params={"human_readable": "true"})

    assert response.status_code == 200
    assert response.json()["data"] == {"value": "194 TB", "cache_time": 0}


def test_seeded_defaults_are_reported_as_seeded(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.seed_last_good(default_last_good())
    store.set_last_good(MetricKind.RUNNING_APPS, {"count": 2500})

    client = TestClient(app)
    block = client.get("/blocks/nodecount")
    status = client.get("/api/status").json()

    assert 'data-cache-time="0"' in block.text
    assert ">8,200</span>" in block.text
    node_count = status["metrics"]["nodecount"]["last_good"]
    assert node_count["seeded"] is True
    assert node_count["timestamp"] == 0
    assert node_count["age_seconds"] == int(NOW)
    running_apps = status["metrics"]["runningapps"]["last_good"]
    assert running_apps["seeded"] is False
    assert running_apps["timestamp"] == int(NOW)


def test_block_renders_value_and_data_attributes(monkeypatch):
    _reset_state()
    store = _install_store(monkeypatch)
    store.set_fresh(MetricKind.RUNNING_APPS, {"count": 2400})

    client = TestClient(app)
    response = client.get("/blocks/runningapps", params={"human_readable": "true"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'data-type="runningapps"' in response.text
    assert 'data-human-readable="true"' in response.text
    assert f'data-cache-time="{int(NOW)}"' in response.text
    assert 'data-stale-threshold="600"' in response.text
    assert ">2.4K</span>" in response.text
    assert "fluxdata-loading" not in response.text


def test_block_without_data_renders_placeholder(monkeypatch):
    _reset_state()
    _install_store(monkeypatch)

    client = TestClient(app)
    response = client.get("/blocks/totalcores")

    assert response.status_code == 200
    assert ">—</span>" in response.text
    assert "fluxdata-loading" in response.text
    assert 'data-cache-time=""' in response.text


def test_block_unknown_metric_renders_loading_and_escapes_name(monkeypatch):
    _reset_state()
    _install_store(monkeypatch)

    client = TestClient(app)
    response = client.get("/blocks/%3Cscript%3E")

    assert response.status_code == 200
    assert ">Loading...</span>" in response.text
    assert "<script>" not in response.text
    assert 'data-type="&lt;script&gt;"' in response.text


def test_status_reports_regions_and_last_cycle(monkeypatch):
    _reset_state()
    clock = FakeClock()
    store = _install_store(monkeypatch, clock=clock)
    store.set_last_good(MetricKind.NODE_COUNT, {"total": 10})
    store.set_fresh(MetricKind.NODE_COUNT, {"total": 10})
    clock.now += 700

    results = {
        MetricKind.NODE_COUNT: UpstreamSuccess(data={"total": 10}),
        MetricKind.RUNNING_APPS: UpstreamFailure(kind=ApiErrorKind.HTTP_STATUS_ERROR, message="HTTP error: 502"),
    }
    refreshed_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    asyncio.run(state.record_cycle(results, refreshed_at=refreshed_at, refresh_duration_ms=42))

    client = TestClient(app)
    response = client.get("/api/status")

    assert response.status_code == 200
    body = response.json()
    assert body["refreshing"] is False
    assert body["last_refresh_duration_ms"] == 42
    assert body["last_refresh_at"].startswith("2026-01-01T00:00:00")
    assert list(body["metrics"]) == ["nodecount", "runningapps", "totalcores", "totalram", "totalssd"]

    node_count = body["metrics"]["nodecount"]
    assert node_count["fresh"]["timestamp"] == int(NOW)
    assert node_count["fresh"]["expired"] is True
    assert node_count["last_good"]["timestamp"] == int(NOW)
    assert node_count["last_good"]["seeded"] is False
    assert node_count["last_outcome"] == {"ok": True, "error": None, "message": None}

    running_apps = body["metrics"]["runningapps"]
    assert running_apps["fresh"] is None
    assert running_apps["last_good"] is None
    assert running_apps["last_outcome"]["error"] == "http_status_error"
    assert body["metrics"]["totalssd"]["last_outcome"] is None
    _reset_state()


def test_healthz():
    client = TestClient(app)
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
