"""
engine/models.py

Data models for the alert-building path.

SearchHit    — one document returned by the search backend (read-only input)
CompleteRule — the executing rule's identity and parameter snapshot
Ancestor     — one link in an alert's lineage
WrappedAlert — candidate alert document handed to the persistence layer
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedHitError, MalformedRuleError


# ---------------------------------------------------------------------------
# SearchHit
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SearchHit:
    """
    A single hit from a search response.

    Build from a raw response entry with SearchHit.from_raw(); the raw
    form uses the search engine's underscore keys (_index, _id, _version,
    _source) plus the optional "fields" section.
    """

    index: str
    id: str
    version: int
    source: Mapping[str, Any] = field(default_factory=dict)
    fields: Mapping[str, list[Any]] = field(default_factory=dict)
    """Dotted field name → list of values, as returned by the fields API."""

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "SearchHit":
        """Parse a raw hit, failing on the first missing identity field."""
        for key in ("_index", "_id", "_version"):
            if raw.get(key) is None:
                raise MalformedHitError(key)

        source = raw.get("_source") or {}
        if not isinstance(source, Mapping):
            raise MalformedHitError("_source", detail="non-object value for")
        fields = raw.get("fields") or {}
        if not isinstance(fields, Mapping):
            raise MalformedHitError("fields", detail="non-object value for")

        return cls(
            index=str(raw["_index"]),
            id=str(raw["_id"]),
            version=raw["_version"],
            source=source,
            fields=fields,
        )


# ---------------------------------------------------------------------------
# CompleteRule
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompleteRule:
    """The rule currently executing."""

    rule_id: str
    """Stable identifier; part of every alert id and the dedup key."""

    name: str = ""
    rule_type: str = "query"
    severity: str = "low"
    risk_score: int = 21
    tags: tuple[str, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)
    """Rule parameters snapshot: index, query, max_signals, lookback_seconds …"""

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CompleteRule":
        """Build a rule from its JSON definition ("id" and "name" required)."""
        for key in ("id", "name"):
            if not d.get(key):
                raise MalformedRuleError(key)
        return cls(
            rule_id=str(d["id"]),
            name=str(d["name"]),
            rule_type=d.get("rule_type", "query"),
            severity=d.get("severity", "low"),
            risk_score=int(d.get("risk_score", 21)),
            tags=tuple(d.get("tags", ())),
            params=dict(d.get("params", {})),
        )

    def __repr__(self) -> str:
        return f"CompleteRule({self.rule_id!r} name={self.name!r} type={self.rule_type})"


# ---------------------------------------------------------------------------
# Ancestor
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Ancestor:
    id: str
    type: str
    """'event' for raw source documents, 'signal' for alerts."""

    index: str
    depth: int
    rule: str | None = None
    """Rule id that produced this ancestor (signals only)."""

    @classmethod
    def from_dict(cls, d: Any) -> "Ancestor":
        if not isinstance(d, Mapping):
            raise MalformedHitError("alert.ancestors", detail="non-object entry in")
        try:
            return cls(
                id=str(d.get("id", "")),
                type=str(d.get("type", "event")),
                index=str(d.get("index", "")),
                depth=int(d.get("depth", 0)),
                rule=d.get("rule"),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedHitError("alert.ancestors.depth", detail="non-integer value for") from exc

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "index": self.index,
            "depth": self.depth,
        }
        if self.rule is not None:
            d["rule"] = self.rule
        return d


# ---------------------------------------------------------------------------
# WrappedAlert
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WrappedAlert:
    """
    Candidate alert produced by HitWrapper.

    id is deterministic for (source index, source id, source version,
    space:rule), so re-running a rule over the same hits yields the same ids.
    """

    id: str
    source: dict[str, Any]
    index: str = ""
    """Target index; filled in by the persistence layer."""

    def to_dict(self) -> dict[str, Any]:
        return {"_id": self.id, "_index": self.index, "_source": self.source}

    def __repr__(self) -> str:
        return f"WrappedAlert({self.id[:12]}… fields={len(self.source)})"
