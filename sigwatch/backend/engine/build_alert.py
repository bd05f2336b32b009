"""
engine/build_alert.py

Builds the _source of a single alert document from a search hit.

The merged hit document comes first; rule-derived alert fields are written
over it, so on a collision the alert field wins. Reserved alert.* keys
carried by a re-ingested alert are dropped from the merged document and
rebuilt from the hit's lineage.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import Any

from . import fields as f
from .errors import MalformedHitError
from .merge import MISSING, get_path
from .models import Ancestor, CompleteRule, SearchHit


# ---------------------------------------------------------------------------
# Lineage
# ---------------------------------------------------------------------------

def build_parent(hit: SearchHit) -> Ancestor:
    """Reference to the hit itself: a 'signal' if it is an alert, else an 'event'."""
    depth = get_path(hit.source, f.ALERT_DEPTH)
    if depth is MISSING or depth is None:
        return Ancestor(id=hit.id, type="event", index=hit.index, depth=0)

    rule = get_path(hit.source, f.ALERT_RULE_UUID)
    try:
        depth = int(depth)
    except (TypeError, ValueError) as exc:
        raise MalformedHitError(f.ALERT_DEPTH, detail="non-integer value for") from exc
    return Ancestor(
        id=hit.id,
        type="signal",
        index=hit.index,
        depth=depth,
        rule=None if rule is MISSING else rule,
    )


def build_ancestors(hit: SearchHit) -> list[Ancestor]:
    """The hit's recorded ancestors followed by the hit itself."""
    existing = get_path(hit.source, f.ALERT_ANCESTORS)
    if existing is MISSING or existing is None:
        existing = []
    if not isinstance(existing, Sequence) or isinstance(existing, str):
        raise MalformedHitError(f.ALERT_ANCESTORS, detail="non-list value for")
    return [Ancestor.from_dict(a) for a in existing] + [build_parent(hit)]


# ---------------------------------------------------------------------------
# Source document helpers
# ---------------------------------------------------------------------------

def strip_reserved(doc: dict[str, Any]) -> dict[str, Any]:
    """Drop alert.* keys (flattened or nested) left over from a previous alert."""
    prefix = f"{f.ALERT_NAMESPACE}."
    return {
        k: v for k, v in doc.items()
        if k != f.ALERT_NAMESPACE and not k.startswith(prefix)
    }


def _flatten(value: Mapping[str, Any], prefix: str, out: dict[str, Any]) -> None:
    for k, v in value.items():
        if isinstance(v, Mapping):
            _flatten(v, f"{prefix}.{k}", out)
        else:
            out[f"{prefix}.{k}"] = copy.deepcopy(v)


def original_event_fields(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Copy event.* values under alert.original_event.*."""
    out: dict[str, Any] = {}
    event = doc.get(f.EVENT_NAMESPACE)
    if isinstance(event, Mapping):
        _flatten(event, f.ALERT_ORIGINAL_EVENT, out)
    prefix = f"{f.EVENT_NAMESPACE}."
    for k, v in doc.items():
        if k.startswith(prefix):
            if isinstance(v, Mapping):
                _flatten(v, f"{f.ALERT_ORIGINAL_EVENT}.{k[len(prefix):]}", out)
            else:
                out[f"{f.ALERT_ORIGINAL_EVENT}.{k[len(prefix):]}"] = copy.deepcopy(v)
    return out


# ---------------------------------------------------------------------------
# Alert source
# ---------------------------------------------------------------------------

def build_alert_source(
    *,
    rule: CompleteRule,
    merged_doc: dict[str, Any],
    reason: str,
    ancestors: list[Ancestor],
    space_id: str,
    indices_to_query: Sequence[str],
    timestamp: str,
) -> dict[str, Any]:
    """Assemble the alert _source (without alert.uuid, which the wrapper adds)."""
    source = strip_reserved(merged_doc)
    source.update(original_event_fields(source))

    original_time = get_path(merged_doc, f.TIMESTAMP)
    if original_time is not MISSING and original_time is not None:
        source[f.ALERT_ORIGINAL_TIME] = original_time

    source.update({
        f.TIMESTAMP: timestamp,
        f.ALERT_REASON: reason,
        f.ALERT_ANCESTORS: [a.to_dict() for a in ancestors],
        f.ALERT_DEPTH: ancestors[-1].depth + 1,
        f.ALERT_STATUS: f.ALERT_STATUS_ACTIVE,
        f.ALERT_WORKFLOW_STATUS: f.WORKFLOW_STATUS_OPEN,
        f.ALERT_SPACE_IDS: [space_id],
        f.ALERT_RULE_UUID: rule.rule_id,
        f.ALERT_RULE_NAME: rule.name,
        f.ALERT_RULE_TYPE: rule.rule_type,
        f.ALERT_RULE_SEVERITY: rule.severity,
        f.ALERT_RULE_RISK_SCORE: rule.risk_score,
        f.ALERT_RULE_TAGS: list(rule.tags),
        f.ALERT_RULE_PARAMETERS: copy.deepcopy(dict(rule.params)),
        f.ALERT_RULE_INDICES: list(indices_to_query),
    })
    return source
