"""
engine/wrap_hits.py

HitWrapper — turns a batch of search hits into candidate alert documents.

Each alert gets a deterministic id derived from the source hit and the
executing rule, and candidates whose lineage already contains an alert
produced by the same rule are dropped, so a rule never re-alerts on its
own output when that output is searched again.

Pure and synchronous: no I/O, no shared mutable state. One instance holds
the configuration of one rule run and may be used from several tasks at once.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from ..metrics import METRICS
from . import fields as f
from .build_alert import build_alert_source, build_ancestors
from .execution_log import RuleExecutionLogger
from .ids import DEFAULT_SPACE_ID, generate_id, rule_key
from .merge import FieldFilter, merge_hit_document, validate_merge_strategy
from .models import CompleteRule, SearchHit, WrappedAlert
from .reasons import BuildReasonMessage


class HitWrapper:
    """
    Args:
        complete_rule:            the executing rule
        ignore_fields:            field paths (or /regex/) never copied onto alerts
        merge_strategy:           'allFields' | 'missingFields' | 'noFields'
        space_id:                 tenant scoping the alert ids; None → default space
        indices_to_query:         concrete indices searched, recorded for provenance
        alert_timestamp_override: used instead of wall-clock time (backfills)
        rule_execution_logger:    rule-scoped diagnostics
    """

    def __init__(
        self,
        *,
        complete_rule: CompleteRule,
        ignore_fields: Iterable[str],
        merge_strategy: str,
        space_id: str | None,
        indices_to_query: Sequence[str],
        alert_timestamp_override: datetime | None,
        rule_execution_logger: RuleExecutionLogger,
    ) -> None:
        self.complete_rule = complete_rule
        self.merge_strategy = validate_merge_strategy(merge_strategy)
        self.field_filter = FieldFilter(ignore_fields)
        self.space_id = space_id
        self.indices_to_query = tuple(indices_to_query)
        self.alert_timestamp_override = alert_timestamp_override
        self.rule_execution_logger = rule_execution_logger
        self._rule_key = rule_key(space_id, complete_rule.rule_id)

    def wrap(
        self,
        hits: Iterable[SearchHit | Mapping[str, Any]],
        build_reason_message: BuildReasonMessage,
    ) -> list[WrappedAlert]:
        """
        Wrap hits into alerts, in input order, minus the rule's own lineage.

        Raises MalformedHitError on the first malformed hit; exceptions from
        build_reason_message propagate unchanged. Nothing is returned unless
        the whole batch was built.
        """
        rule = self.complete_rule
        parsed = [h if isinstance(h, SearchHit) else SearchHit.from_raw(h) for h in hits]
        timestamp = (self.alert_timestamp_override or datetime.now(timezone.utc)).isoformat()

        wrapped: list[WrappedAlert] = []
        suppressed = 0
        for hit in parsed:
            alert_id = generate_id(hit.index, hit.id, str(hit.version), self._rule_key)
            ancestors = build_ancestors(hit)
            source = build_alert_source(
                rule=rule,
                merged_doc=merge_hit_document(hit, self.merge_strategy, self.field_filter),
                reason=build_reason_message(hit, rule),
                ancestors=ancestors,
                space_id=self.space_id or DEFAULT_SPACE_ID,
                indices_to_query=self.indices_to_query,
                timestamp=timestamp,
            )
            source[f.ALERT_UUID] = alert_id

            if any(a.rule == rule.rule_id for a in ancestors):
                suppressed += 1
                self.rule_execution_logger.debug(
                    "Dropped alert for hit %s/%s: rule already in its ancestry", hit.index, hit.id,
                )
                continue
            wrapped.append(WrappedAlert(id=alert_id, source=source))

        METRICS.hits_received.inc(len(parsed))
        METRICS.alerts_built.inc(len(wrapped))
        METRICS.alerts_suppressed_ancestry.inc(suppressed)
        self.rule_execution_logger.debug(
            "Wrapped %d hit(s) into %d alert(s), %d suppressed by ancestry",
            len(parsed), len(wrapped), suppressed,
        )
        return wrapped

    def __repr__(self) -> str:
        return (
            f"HitWrapper(rule={self.complete_rule.rule_id!r} "
            f"strategy={self.merge_strategy} space={self.space_id!r})"
        )
