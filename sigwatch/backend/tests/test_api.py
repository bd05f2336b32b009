"""
tests/test_api.py

FastAPI route tests using TestClient (synchronous).
Dependency-injects an in-memory AlertRepository and a mocked search client
so neither a real DB nor a search backend is needed.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from sigwatch.backend.api.main import create_app, set_repository, set_search_client
from sigwatch.backend.engine import fields as f
from sigwatch.backend.engine.models import WrappedAlert
from sigwatch.backend.search.client import SearchError
from sigwatch.backend.storage.database import Database
from sigwatch.backend.storage.repository import AlertRepository


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def client():
    """TestClient sharing one in-memory DB and one mock search client."""
    db = Database(":memory:")
    db.init_schema()
    repo = AlertRepository(db)
    search = MagicMock()
    search.search = AsyncMock(return_value={})
    set_repository(repo)
    set_search_client(search)

    app = create_app()
    with TestClient(app) as c:
        yield c, repo, search
    db.close()


def seed_alert(repo: AlertRepository, alert_id: str, rule_id: str = "rule-1", space_id: str = "default") -> str:
    """Helper to insert one alert and return its ID."""
    repo.save_alerts([WrappedAlert(
        id=alert_id,
        source={
            f.TIMESTAMP:       "2024-05-01T10:00:00+00:00",
            f.ALERT_UUID:      alert_id,
            f.ALERT_RULE_UUID: rule_id,
            f.ALERT_RULE_NAME: "Root login",
            f.ALERT_SPACE_IDS: [space_id],
            f.ALERT_REASON:    "event created high alert Root login.",
            f.ALERT_DEPTH:     1,
        },
    )])
    return alert_id


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

def test_health(client):
    c, _, _ = client
    resp = c.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "repository": True, "search_client": True}


# ---------------------------------------------------------------------------
# GET /api/alerts
# ---------------------------------------------------------------------------

class TestListAlerts:

    def test_returns_paginated_response(self, client):
        c, _, _ = client
        resp = c.get("/api/alerts")
        assert resp.status_code == 200
        body = resp.json()
        for key in ("items", "total", "limit", "offset", "has_more"):
            assert key in body

    def test_populated_returns_alerts(self, client):
        c, repo, _ = client
        seed_alert(repo, "list-test-1")
        resp = c.get("/api/alerts")
        ids = [a["alert_id"] for a in resp.json()["items"]]
        assert "list-test-1" in ids

    def test_limit_query_param(self, client):
        c, repo, _ = client
        for i in range(5):
            seed_alert(repo, f"limit-{i}")
        resp = c.get("/api/alerts?limit=2")
        body = resp.json()
        assert len(body["items"]) == 2
        assert body["has_more"] is True

    def test_filter_by_rule_and_space(self, client):
        c, repo, _ = client
        seed_alert(repo, "filtered", rule_id="rule-x", space_id="team")
        resp = c.get("/api/alerts?rule_id=rule-x&space_id=team")
        items = resp.json()["items"]
        assert [a["alert_id"] for a in items] == ["filtered"]
        assert items[0]["source"][f.ALERT_RULE_UUID] == "rule-x"

    def test_limit_max_capped_at_500(self, client):
        c, _, _ = client
        resp = c.get("/api/alerts?limit=9999")
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# GET /api/alerts/{id}
# ---------------------------------------------------------------------------

class TestGetAlert:

    def test_returns_alert(self, client):
        c, repo, _ = client
        aid = seed_alert(repo, "single-1")
        resp = c.get(f"/api/alerts/{aid}")
        assert resp.status_code == 200
        assert resp.json()["alert_id"] == aid
        assert resp.json()["depth"] == 1

    def test_404_for_unknown_id(self, client):
        c, _, _ = client
        resp = c.get("/api/alerts/no-such-id-xyz")
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# GET /api/stats
# ---------------------------------------------------------------------------

class TestStats:

    def test_stats_has_expected_fields(self, client):
        c, _, _ = client
        resp = c.get("/api/stats")
        assert resp.status_code == 200
        body = resp.json()
        for key in ("total_alerts", "alerts_by_rule", "alerts_by_space",
                    "latest_alert_timestamp", "counters"):
            assert key in body, f"Missing field: {key}"
        assert "alerts_persisted" in body["counters"]

    def test_total_alerts_is_integer(self, client):
        c, _, _ = client
        assert isinstance(c.get("/api/stats").json()["total_alerts"], int)


# ---------------------------------------------------------------------------
# GET /api/rules/transaction_error_rate/chart_preview
# ---------------------------------------------------------------------------

PREVIEW_URL = "/api/rules/transaction_error_rate/chart_preview"


class TestChartPreview:

    def test_returns_series(self, client):
        c, _, search = client
        search.search = AsyncMock(return_value={
            "aggregations": {
                "timeseries": {
                    "buckets": [{
                        "key": 60_000,
                        "series": {"buckets": [{
                            "key": ["checkout", "prod", "request"],
                            "outcomes": {"buckets": [
                                {"key": "failure", "doc_count": 1},
                                {"key": "success", "doc_count": 1},
                            ]},
                        }]},
                    }],
                },
            },
        })
        resp = c.get(PREVIEW_URL, params={
            "interval": "1m", "start": 0, "end": 120_000,
            "serviceName": "checkout", "groupBy": ["transaction.name"],
        })
        assert resp.status_code == 200
        assert resp.json() == [
            {"name": "checkout_prod_request", "data": [{"x": 60_000, "y": 50.0}]}
        ]
        body = search.search.call_args.args[1]
        assert {"term": {"service.name": "checkout"}} in body["query"]["bool"]["filter"]
        terms = body["aggs"]["timeseries"]["aggs"]["series"]["multi_terms"]["terms"]
        assert {"field": "transaction.name"} in terms

    def test_no_data_returns_empty_list(self, client):
        c, _, search = client
        search.search = AsyncMock(return_value={})
        resp = c.get(PREVIEW_URL, params={"interval": "1m", "start": 0, "end": 1})
        assert resp.status_code == 200
        assert resp.json() == []

    def test_end_before_start(self, client):
        c, _, _ = client
        resp = c.get(PREVIEW_URL, params={"interval": "1m", "start": 10, "end": 1})
        assert resp.status_code == 422

    def test_missing_interval(self, client):
        c, _, _ = client
        resp = c.get(PREVIEW_URL, params={"start": 0, "end": 1})
        assert resp.status_code == 422

    def test_search_failure_is_502(self, client):
        c, _, search = client
        search.search = AsyncMock(side_effect=SearchError("preview", "HTTP 500", status_code=500))
        resp = c.get(PREVIEW_URL, params={"interval": "1m", "start": 0, "end": 1})
        assert resp.status_code == 502
