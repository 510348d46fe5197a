from __future__ import annotations

import time
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from metricz.config import Settings
from metricz.errors import HTTPStatusError
from metricz.main import create_app

STATUS_URL = "http://status.test/api/v1/status"

SNAPSHOT = {
    "s1": {
        "values": {"fps": 52, "dayz_metricz_scrape_interval_seconds": 30},
        "labels": {"dayz_metricz_status": {"map": ["chernarus"]}},
    },
    "s2": {"values": {"fps": 18}, "labels": {}},
}


def _settings(**overrides) -> Settings:
    values = dict(status_url=STATUS_URL + "/", chart_metric="fps", interval_seconds=60)
    values.update(overrides)
    return Settings(**values)


def _wait_for(client: TestClient, predicate, attempts: int = 100) -> dict:
    body = client.get("/api/status").json()
    for _ in range(attempts):
        if predicate(body):
            return body
        time.sleep(0.01)
        body = client.get("/api/status").json()
    raise AssertionError(f"condition never met: {body}")


def test_settings_strip_trailing_slash():
    assert _settings().status_url == STATUS_URL


def test_status_reports_snapshot_and_adapted_interval():
    fetch = AsyncMock(return_value=SNAPSHOT)
    with TestClient(create_app(_settings(), fetch_json=fetch)) as client:
        body = _wait_for(client, lambda b: b["instances"])

    fetch.assert_awaited_once_with(STATUS_URL)
    assert list(body["instances"]) == ["s1", "s2"]
    assert body["instances"]["s1"]["labels"] == {"dayz_metricz_status": {"map": ["chernarus"]}}
    assert body["interval_ms"] == 30000
    assert body["state"] == "scheduled"
    assert body["last_error"] is None


def test_single_instance_route():
    fetch = AsyncMock(return_value=SNAPSHOT)
    with TestClient(create_app(_settings(), fetch_json=fetch)) as client:
        _wait_for(client, lambda b: b["instances"])

        found = client.get("/api/status/s2")
        missing = client.get("/api/status/nope")

    assert found.status_code == 200
    assert found.json()["values"] == {"fps": 18.0}
    assert missing.status_code == 404


def test_chart_plots_configured_instance():
    fetch = AsyncMock(return_value=SNAPSHOT)
    app = create_app(_settings(chart_instance="s2"), fetch_json=fetch)
    with TestClient(app) as client:
        _wait_for(client, lambda b: b["instances"])
        response = client.get("/chart.svg")

    assert app.state.dashboard.chart.samples[-1] == 18.0
    assert response.headers["content-type"].startswith("image/svg+xml")
    assert 'stroke="#d9534f"' in response.text


def test_errors_are_exposed_without_snapshot():
    fetch = AsyncMock(side_effect=HTTPStatusError(502, "Bad Gateway", "upstream"))
    with TestClient(create_app(_settings(), fetch_json=fetch)) as client:
        body = _wait_for(client, lambda b: b["last_error"])
        chart = client.get("/chart.svg").text

    assert body["last_error"] == "HTTP 502 Bad Gateway: upstream"
    assert body["instances"] == {}
    assert "<path" not in chart


def test_visibility_suspends_and_resumes_polling():
    fetch = AsyncMock(return_value=SNAPSHOT)
    with TestClient(create_app(_settings(), fetch_json=fetch)) as client:
        _wait_for(client, lambda b: b["instances"])

        hidden = client.post("/api/visibility", json={"hidden": True}).json()
        visible = client.post("/api/visibility", json={"hidden": False}).json()

    assert hidden == {"hidden": True, "state": "suspended"}
    assert visible == {"hidden": False, "state": "scheduled"}
    assert fetch.await_count == 1


def test_dashboard_page_renders():
    fetch = AsyncMock(return_value={})
    with TestClient(create_app(_settings(), fetch_json=fetch)) as client:
        root = client.get("/", follow_redirects=False)
        page = client.get("/dashboard")

    assert root.status_code == 307
    assert root.headers["location"] == "/dashboard"
    assert page.status_code == 200
    assert "/chart.svg" in page.text
    assert "<h1>fps</h1>" in page.text
