"""
tests/test_executor.py

Tests for engine/executor.py — one rule execution cycle end to end against
a mocked search client and an in-memory alert repository.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from sigwatch.backend.engine import fields as f
from sigwatch.backend.engine.executor import RuleExecutor
from sigwatch.backend.engine.models import CompleteRule
from sigwatch.backend.search.client import SearchError
from sigwatch.backend.storage.database import Database
from sigwatch.backend.storage.repository import AlertRepository


FIXED_TS = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def repo():
    db = Database(":memory:")
    db.init_schema()
    yield AlertRepository(db)
    db.close()


def make_rule(**params) -> CompleteRule:
    return CompleteRule(
        rule_id="rule-1",
        name="Root login",
        severity="critical",
        params={"index": "auth-*", "query": "user.name:root", **params},
    )


def search_response(*doc_ids: str) -> dict:
    return {
        "took": 3,
        "hits": {
            "hits": [
                {
                    "_index": "auth-2024",
                    "_id": doc_id,
                    "_version": 1,
                    "_source": {"@timestamp": "2024-03-01T08:00:00Z", "user": {"name": "root"}},
                }
                for doc_id in doc_ids
            ],
        },
    }


def make_client(response: dict | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.search = AsyncMock(side_effect=error)
    else:
        client.search = AsyncMock(return_value=response or search_response())
    return client


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------

class TestRuleRun:

    @pytest.mark.asyncio
    async def test_hits_become_stored_alerts(self, repo):
        client = make_client(search_response("a", "b"))
        executor = RuleExecutor(client, repo)
        result = await executor.run(make_rule(), space_id="default", alert_timestamp_override=FIXED_TS)

        assert result.success
        assert result.error is None
        assert result.hits_found == 2
        assert result.alerts_created == 2
        assert result.alerts_persisted == 2
        assert repo.get_alert_count() == 2

        stored = repo.get_alerts()[0]
        assert stored["rule_id"] == "rule-1"
        assert stored["space_id"] == "default"
        assert stored["timestamp"] == FIXED_TS.isoformat()
        assert stored["source"][f.ALERT_RULE_SEVERITY] == "critical"

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, repo):
        client = make_client(search_response("a", "b"))
        executor = RuleExecutor(client, repo)
        await executor.run(make_rule(), alert_timestamp_override=FIXED_TS)
        second = await executor.run(make_rule(), alert_timestamp_override=FIXED_TS)

        assert second.success
        assert second.alerts_created == 2
        assert second.alerts_persisted == 0
        assert repo.get_alert_count() == 2

    @pytest.mark.asyncio
    async def test_no_hits(self, repo):
        executor = RuleExecutor(make_client(search_response()), repo)
        result = await executor.run(make_rule())
        assert result.success
        assert result.alerts_created == 0
        assert repo.get_alert_count() == 0

    @pytest.mark.asyncio
    async def test_search_called_with_rule_indices(self, repo):
        client = make_client()
        await RuleExecutor(client, repo).run(make_rule(index=["a-*", "b-*"]))
        args, kwargs = client.search.call_args
        assert args[0] == ["a-*", "b-*"]
        assert kwargs["operation"] == "rule:rule-1"

    @pytest.mark.asyncio
    async def test_ignore_fields_reach_stored_alert(self, repo):
        client = make_client(search_response("a"))
        executor = RuleExecutor(client, repo, ignore_fields=["user.name"])
        await executor.run(make_rule())
        stored = repo.get_alerts()[0]
        assert "name" not in stored["source"].get("user", {})


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestRuleRunFailures:

    @pytest.mark.asyncio
    async def test_search_error_reported_not_raised(self, repo, caplog):
        client = make_client(error=SearchError("rule:rule-1", "HTTP 503", status_code=503))
        with caplog.at_level(logging.ERROR):
            result = await RuleExecutor(client, repo).run(make_rule())

        assert not result.success
        assert result.error.startswith("SearchError:")
        assert repo.get_alert_count() == 0
        assert "status=failed" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_hit_persists_nothing(self, repo):
        resp = search_response("a")
        resp["hits"]["hits"].append({"_index": "auth-2024", "_version": 1, "_source": {}})
        result = await RuleExecutor(make_client(resp), repo).run(make_rule())

        assert not result.success
        assert "MalformedHitError" in result.error
        assert repo.get_alert_count() == 0

    @pytest.mark.asyncio
    async def test_reason_builder_error_fails_run(self, repo):
        def broken(hit, rule):
            raise RuntimeError("template missing")

        executor = RuleExecutor(make_client(search_response("a")), repo, build_reason_message=broken)
        result = await executor.run(make_rule())
        assert not result.success
        assert result.error == "RuntimeError: template missing"
        assert repo.get_alert_count() == 0

    @pytest.mark.asyncio
    async def test_missing_index_param(self, repo):
        client = make_client()
        rule = CompleteRule(rule_id="r", name="n", params={"query": "*"})
        result = await RuleExecutor(client, repo).run(rule)
        assert not result.success
        client.search.assert_not_called()


# ---------------------------------------------------------------------------
# Search body
# ---------------------------------------------------------------------------

class TestSearchBody:

    def test_window_and_query(self):
        executor = RuleExecutor(make_client(), MagicMock(), lookback_seconds=600)
        body = executor.build_search_body(make_rule(), FIXED_TS)

        filters = body["query"]["bool"]["filter"]
        assert filters[0] == {"query_string": {"query": "user.name:root"}}
        window = filters[1]["range"]["@timestamp"]
        assert window["lte"] == FIXED_TS.isoformat()
        assert window["gte"] == "2024-03-01T08:20:00+00:00"
        assert body["version"] is True
        assert body["size"] == 100
        assert body["sort"][0]["@timestamp"]["order"] == "asc"

    def test_rule_params_override_defaults(self):
        executor = RuleExecutor(make_client(), MagicMock())
        rule = make_rule(max_signals=5, lookback_seconds=60, query={"match_all": {}})
        body = executor.build_search_body(rule, FIXED_TS)
        assert body["size"] == 5
        assert body["query"]["bool"]["filter"][0] == {"match_all": {}}
        assert body["query"]["bool"]["filter"][1]["range"]["@timestamp"]["gte"] == (
            "2024-03-01T08:29:00+00:00"
        )
