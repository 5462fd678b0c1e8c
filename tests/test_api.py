"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from dailyuse import Config, MetricsCollector, UsageService


@pytest.fixture
def client_for():
    services = []

    def _build(path):
        service = UsageService(
            Config(tool_path=path),
            metrics=MetricsCollector(enable_logging=False),
            sleep=lambda seconds: None,
        )
        services.append(service)
        return TestClient(create_app(service))

    yield _build
    for service in services:
        service.close()


class TestUsageEndpoints:
    """Test reading and refreshing usage."""

    def test_health(self, make_tool, client_for):
        client = client_for(make_tool().path)
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "tool_available": True}

    def test_get_usage(self, make_tool, usage_payload, client_for):
        client = client_for(make_tool(usage_payload({0: (100, 5.0)})).path)
        response = client.get("/usage")
        assert response.status_code == 200
        body = response.json()
        assert body["daily_count"] == 100
        assert body["cost_display"] == "$5.00"
        assert body["status_label"] == "OK"
        assert body["error"] is None

    def test_no_data_today_is_ok_with_error(self, make_tool, usage_payload, client_for):
        client = client_for(make_tool(usage_payload({-1: (1, 1.0)})).path)
        response = client.post("/usage/refresh")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "green"
        assert body["is_available"] is True
        assert body["code"] == "CCUSAGE_ERROR"
        assert "no data for today" in body["error"]

    def test_unavailable_is_503(self, tmp_path, client_for):
        client = client_for(str(tmp_path / "missing"))
        response = client.post("/usage/refresh")
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unknown"
        assert body["is_available"] is False

    def test_reset(self, make_tool, usage_payload, client_for):
        client = client_for(make_tool(usage_payload({0: (100, 25.0)})).path)
        client.post("/usage/refresh")
        body = client.post("/usage/reset").json()
        assert body["daily_cost"] == 0.0
        assert body["status"] == "green"


class TestSettingsEndpoints:
    """Test thresholds and tool path updates."""

    def test_thresholds(self, make_tool, usage_payload, client_for):
        client = client_for(make_tool(usage_payload({0: (100, 5.0)})).path)
        client.post("/usage/refresh")
        response = client.put("/thresholds", json={"yellow_threshold": 1.0, "red_threshold": 5.0})
        assert response.status_code == 200
        assert response.json()["status"] == "red"

    def test_invalid_thresholds(self, make_tool, client_for):
        client = client_for(make_tool().path)
        response = client.put("/thresholds", json={"yellow_threshold": 5.0, "red_threshold": 5.0})
        assert response.status_code == 400

    def test_negative_threshold_is_400(self, make_tool, client_for):
        client = client_for(make_tool().path)
        response = client.put("/thresholds", json={"yellow_threshold": -1.0, "red_threshold": 5.0})
        assert response.status_code == 400
        assert "yellow_threshold must be positive" in response.json()["detail"]

    def test_tool_path(self, make_tool, tmp_path, client_for):
        tool = make_tool()
        client = client_for(str(tmp_path / "missing"))
        assert client.put("/tool-path", json={"path": str(tmp_path / "other")}).status_code == 400
        response = client.put("/tool-path", json={"path": tool.path})
        assert response.status_code == 200
        assert response.json() == {"path": tool.path, "available": True}

    def test_metrics(self, make_tool, usage_payload, client_for):
        client = client_for(make_tool(usage_payload({0: (1, 1.0)})).path)
        client.get("/usage")
        client.get("/usage")
        counters = client.get("/metrics").json()["counters"]
        assert counters["refreshes_applied"] == 1
        assert counters["cache_hits_total"] == 1


def test_api_key_required(make_tool, client_for, monkeypatch):
    monkeypatch.setenv("DAILYUSE_API_KEY", "secret")
    client = client_for(make_tool().path)
    assert client.get("/usage").status_code == 401
    assert client.get("/health").status_code == 200


def test_shutdown_stops_loops(make_tool):
    service = UsageService(Config(tool_path=make_tool().path))
    with TestClient(create_app(service)):
        service.start_polling(3600, lambda state: None)
        assert service.is_polling is True
    assert service.is_polling is False
