"""
engine/executor.py

Runs one execution cycle of a query rule:

    search rule indices → HitWrapper.wrap() → AlertRepository.save_alerts()

This is the only place that catches broadly: any failure (search error,
malformed hit, reason builder error, storage error) is logged against the
rule, counted, and the cycle's alerts are not persisted.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from ..metrics import METRICS
from .execution_log import RuleExecutionLogger
from .models import CompleteRule
from .reasons import BuildReasonMessage, build_reason_message_for_query_alert
from .wrap_hits import HitWrapper

if TYPE_CHECKING:
    from ..search.client import SearchClient
    from ..storage.repository import AlertRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RuleRunResult:
    rule_id: str
    success: bool
    hits_found: int = 0
    alerts_created: int = 0
    alerts_persisted: int = 0
    duration_ms: float = 0.0
    error: str | None = None

    def __repr__(self) -> str:
        return (
            f"RuleRunResult({self.rule_id!r} ok={self.success} hits={self.hits_found} "
            f"alerts={self.alerts_created} stored={self.alerts_persisted})"
        )


class RuleExecutor:
    def __init__(
        self,
        search_client: SearchClient,
        repository: AlertRepository,
        ignore_fields: Iterable[str] = (),
        merge_strategy: str = "missingFields",
        max_signals: int = 100,
        lookback_seconds: int = 360,
        build_reason_message: BuildReasonMessage = build_reason_message_for_query_alert,
    ) -> None:
        self.search_client = search_client
        self.repository = repository
        self.ignore_fields = list(ignore_fields)
        self.merge_strategy = merge_strategy
        self.max_signals = max_signals
        self.lookback_seconds = lookback_seconds
        self.build_reason_message = build_reason_message

    async def run(
        self,
        rule: CompleteRule,
        space_id: str | None = None,
        alert_timestamp_override: datetime | None = None,
    ) -> RuleRunResult:
        METRICS.rule_runs.inc()
        exec_logger = RuleExecutionLogger(rule.rule_id, rule.name, space_id)
        exec_logger.log_status_change("running")
        result = RuleRunResult(rule_id=rule.rule_id, success=False)
        t0 = time.monotonic()

        try:
            indices = self._indices(rule)
            body = self.build_search_body(rule, alert_timestamp_override)
            resp = await self.search_client.search(indices, body, operation=f"rule:{rule.rule_id}")
            hits = resp.get("hits", {}).get("hits", [])
            result.hits_found = len(hits)

            wrapper = HitWrapper(
                complete_rule=rule,
                ignore_fields=self.ignore_fields,
                merge_strategy=self.merge_strategy,
                space_id=space_id,
                indices_to_query=indices,
                alert_timestamp_override=alert_timestamp_override,
                rule_execution_logger=exec_logger,
            )
            alerts = wrapper.wrap(hits, self.build_reason_message)
            result.alerts_created = len(alerts)
            result.alerts_persisted = self.repository.save_alerts(alerts)
        except Exception as exc:
            METRICS.rule_run_failures.inc()
            logger.exception("Rule %r execution failed", rule.rule_id)
            result.error = f"{type(exc).__name__}: {exc}"
            exec_logger.log_status_change("failed", result.error)
        else:
            result.success = True
            exec_logger.log_status_change(
                "succeeded",
                f"hits={result.hits_found} alerts={result.alerts_created} "
                f"new={result.alerts_persisted}",
            )
        finally:
            result.duration_ms = (time.monotonic() - t0) * 1000

        return result

    # ------------------------------------------------------------------
    # Query construction
    # ------------------------------------------------------------------

    @staticmethod
    def _indices(rule: CompleteRule) -> list[str]:
        index = rule.params.get("index")
        if not index:
            raise ValueError(f"rule {rule.rule_id!r} has no 'index' parameter")
        return [index] if isinstance(index, str) else list(index)

    def build_search_body(
        self,
        rule: CompleteRule,
        alert_timestamp_override: datetime | None = None,
    ) -> dict[str, Any]:
        """Rule query filtered to the lookback window, oldest hits first."""
        end = alert_timestamp_override or datetime.now(timezone.utc)
        lookback = int(rule.params.get("lookback_seconds") or self.lookback_seconds)
        start = end - timedelta(seconds=lookback)

        query = rule.params.get("query")
        filters: list[dict[str, Any]] = []
        if isinstance(query, dict):
            filters.append(query)
        elif isinstance(query, str) and query.strip():
            filters.append({"query_string": {"query": query}})
        filters.append({
            "range": {
                "@timestamp": {
                    "gte": start.isoformat(),
                    "lte": end.isoformat(),
                    "format": "strict_date_optional_time",
                },
            },
        })

        return {
            "size": int(rule.params.get("max_signals") or self.max_signals),
            "version": True,
            "query": {"bool": {"filter": filters}},
            "fields": [{"field": "*", "include_unmapped": True}],
            "sort": [{"@timestamp": {"order": "asc", "unmapped_type": "date"}}],
        }
