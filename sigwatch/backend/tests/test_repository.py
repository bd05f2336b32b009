"""
tests/test_repository.py

Tests for storage/repository.py using in-memory SQLite (":memory:").
All tests are synchronous — repository is not async.
"""

from __future__ import annotations

import sqlite3

import pytest

from sigwatch.backend.engine import fields as f
from sigwatch.backend.engine.models import WrappedAlert
from sigwatch.backend.storage.database import Database
from sigwatch.backend.storage.repository import AlertRepository


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    """In-memory SQLite database, initialised fresh for each test."""
    d = Database(":memory:")
    d.init_schema()
    yield d
    d.close()


@pytest.fixture
def repo(db):
    return AlertRepository(db)


def make_alert(
    alert_id: str = "a-001",
    rule_id: str = "rule-1",
    space_id: str = "default",
    ts: str = "2024-01-01T00:00:00+00:00",
    **extra,
) -> WrappedAlert:
    source = {
        f.TIMESTAMP:        ts,
        f.ALERT_UUID:       alert_id,
        f.ALERT_RULE_UUID:  rule_id,
        f.ALERT_RULE_NAME:  "Root login",
        f.ALERT_SPACE_IDS:  [space_id],
        f.ALERT_REASON:     "event created high alert Root login.",
        f.ALERT_DEPTH:      1,
        "user":             {"name": "root"},
        **extra,
    }
    return WrappedAlert(id=alert_id, source=source)


# ---------------------------------------------------------------------------
# save_alerts
# ---------------------------------------------------------------------------

class TestSaveAlerts:

    def test_saves_and_retrieves(self, repo):
        assert repo.save_alerts([make_alert()]) == 1
        result = repo.get_alert_by_id("a-001")
        assert result is not None
        assert result["rule_id"] == "rule-1"
        assert result["space_id"] == "default"
        assert result["depth"] == 1
        assert result["source"]["user"] == {"name": "root"}

    def test_empty_batch(self, repo):
        assert repo.save_alerts([]) == 0

    def test_duplicates_ignored(self, repo):
        repo.save_alerts([make_alert("x"), make_alert("y")])
        assert repo.save_alerts([make_alert("x"), make_alert("z")]) == 1
        assert repo.get_alert_count() == 3

    def test_failed_batch_rolled_back(self, repo):
        good = make_alert("good")
        bad = make_alert("bad", **{f.ALERT_DEPTH: {"not": "an int"}})
        with pytest.raises(sqlite3.Error):
            repo.save_alerts([good, bad])
        assert repo.get_alert_count() == 0

    def test_missing_table_raises(self, repo, db):
        db.execute("DROP TABLE alerts")
        with pytest.raises(sqlite3.OperationalError):
            repo.save_alerts([make_alert()])


# ---------------------------------------------------------------------------
# get_alerts: pagination + filters
# ---------------------------------------------------------------------------

class TestGetAlerts:

    def test_returns_newest_first(self, repo):
        repo.save_alerts([
            make_alert("old", ts="2024-01-01T00:00:00+00:00"),
            make_alert("new", ts="2024-01-02T00:00:00+00:00"),
        ])
        results = repo.get_alerts()
        assert [r["alert_id"] for r in results] == ["new", "old"]

    def test_pagination(self, repo):
        repo.save_alerts([make_alert(f"id-{i}") for i in range(10)])
        page1 = repo.get_alerts(limit=5, offset=0)
        page2 = repo.get_alerts(limit=5, offset=5)
        assert len(page1) == 5
        assert len(page2) == 5
        assert len({r["alert_id"] for r in page1 + page2}) == 10

    def test_filter_by_rule_and_space(self, repo):
        repo.save_alerts([
            make_alert("a", rule_id="r1", space_id="s1"),
            make_alert("b", rule_id="r2", space_id="s1"),
            make_alert("c", rule_id="r1", space_id="s2"),
        ])
        assert {r["alert_id"] for r in repo.get_alerts(rule_id="r1")} == {"a", "c"}
        assert [r["alert_id"] for r in repo.get_alerts(rule_id="r1", space_id="s2")] == ["c"]
        assert repo.get_alert_count(space_id="s1") == 2

    def test_empty_returns_empty_list(self, repo):
        assert repo.get_alerts() == []

    def test_missing_id(self, repo):
        assert repo.get_alert_by_id("no-such-id") is None


# ---------------------------------------------------------------------------
# get_stats_summary
# ---------------------------------------------------------------------------

class TestGetStatsSummary:

    def test_empty_db(self, repo):
        summary = repo.get_stats_summary()
        assert summary["total_alerts"] == 0
        assert summary["alerts_by_rule"] == {}
        assert summary["latest_alert_timestamp"] is None

    def test_counts(self, repo):
        repo.save_alerts([
            make_alert("a", rule_id="r1", ts="2024-01-01T00:00:00+00:00"),
            make_alert("b", rule_id="r1", ts="2024-01-03T00:00:00+00:00"),
            make_alert("c", rule_id="r2", space_id="team"),
        ])
        summary = repo.get_stats_summary()
        assert summary["total_alerts"] == 3
        assert summary["alerts_by_rule"] == {"r1": 2, "r2": 1}
        assert summary["alerts_by_space"] == {"default": 2, "team": 1}
        assert summary["latest_alert_timestamp"] == "2024-01-03T00:00:00+00:00"
