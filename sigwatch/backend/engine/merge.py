"""
engine/merge.py

Combines a hit's _source with its "fields" section according to the
configured merge strategy, then prunes ignored fields.

Strategies:
    allFields     — every "fields" value overrides the _source value
    missingFields — "fields" values only fill paths absent from _source
    noFields      — _source is used as-is

Dotted paths resolve both flattened keys ({"host.name": …}) and nested
objects ({"host": {"name": …}}), since search documents mix the two.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

from .errors import UnknownMergeStrategyError
from .models import SearchHit

logger = logging.getLogger(__name__)

ALL_FIELDS = "allFields"
MISSING_FIELDS = "missingFields"
NO_FIELDS = "noFields"

MERGE_STRATEGIES = (ALL_FIELDS, MISSING_FIELDS, NO_FIELDS)

MISSING: Any = object()


def validate_merge_strategy(strategy: str) -> str:
    if strategy not in MERGE_STRATEGIES:
        raise UnknownMergeStrategyError(strategy)
    return strategy


# ---------------------------------------------------------------------------
# Dotted-path helpers
# ---------------------------------------------------------------------------

def _split_points(path: str) -> Iterable[tuple[str, str]]:
    """Yield (prefix, remainder) for every dot in path, shortest prefix first."""
    start = 0
    while True:
        i = path.find(".", start)
        if i == -1:
            return
        yield path[:i], path[i + 1:]
        start = i + 1


def get_path(doc: Mapping[str, Any], path: str) -> Any:
    """Return the value at a dotted path, or MISSING."""
    if path in doc:
        return doc[path]
    for prefix, rest in _split_points(path):
        child = doc.get(prefix)
        if isinstance(child, Mapping):
            value = get_path(child, rest)
            if value is not MISSING:
                return value
    return MISSING


def set_path(doc: MutableMapping[str, Any], path: str, value: Any) -> bool:
    """
    Write value at a dotted path, creating nested objects as needed.

    Returns False (and writes nothing) when the path runs through an
    existing non-object value, e.g. "host.name.keyword" under a string
    "host.name".
    """
    if path in doc:
        doc[path] = value
        return True
    for prefix, rest in _split_points(path):
        if prefix in doc:
            child = doc[prefix]
            if not isinstance(child, MutableMapping):
                return False
            return set_path(child, rest, value)
    head, sep, rest = path.partition(".")
    if not sep:
        doc[path] = value
        return True
    doc[head] = {}
    return set_path(doc[head], rest, value)


def delete_path(doc: MutableMapping[str, Any], path: str) -> bool:
    if path in doc:
        del doc[path]
        return True
    for prefix, rest in _split_points(path):
        child = doc.get(prefix)
        if isinstance(child, MutableMapping) and delete_path(child, rest):
            return True
    return False


# ---------------------------------------------------------------------------
# Ignore fields
# ---------------------------------------------------------------------------

class FieldFilter:
    """
    Matches field paths against the configured ignore list.

    Entries written as /pattern/ are regular expressions (searched, not
    anchored); every other entry must equal the full dotted path.
    """

    def __init__(self, ignore_fields: Iterable[str] = ()) -> None:
        exact: set[str] = set()
        self.patterns: list[re.Pattern[str]] = []
        for entry in ignore_fields:
            if len(entry) > 2 and entry.startswith("/") and entry.endswith("/"):
                self.patterns.append(re.compile(entry[1:-1]))
            else:
                exact.add(entry)
        self.exact: frozenset[str] = frozenset(exact)

    def __bool__(self) -> bool:
        return bool(self.exact or self.patterns)

    def matches(self, path: str) -> bool:
        if path in self.exact:
            return True
        return any(p.search(path) for p in self.patterns)

    def prune(self, doc: MutableMapping[str, Any], prefix: str = "") -> None:
        """
        Remove every ignored path from doc in place.

        Objects inside arrays share their array's path, so "items.secret"
        reaches {"items": [{"secret": …}]}.
        """
        for key in list(doc):
            path = f"{prefix}{key}"
            if self.matches(path):
                del doc[key]
                continue
            value = doc[key]
            if isinstance(value, MutableMapping):
                self.prune(value, f"{path}.")
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, MutableMapping):
                        self.prune(item, f"{path}.")

    def __repr__(self) -> str:
        return f"FieldFilter(exact={sorted(self.exact)} patterns={[p.pattern for p in self.patterns]})"


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def _unwrap(values: Any) -> Any:
    if isinstance(values, list) and len(values) == 1:
        return values[0]
    return values


def _is_multi_field(path: str, fields: Mapping[str, Any]) -> bool:
    """host.name.keyword is a multi-field of host.name when both are present."""
    return any(prefix in fields for prefix, _ in _split_points(path))


def _is_invalid_key(path: str) -> bool:
    return path.rsplit(".", 1)[-1].startswith("_")


def merge_hit_document(
    hit: SearchHit,
    strategy: str,
    field_filter: FieldFilter,
) -> dict[str, Any]:
    """
    Return a new document built from hit.source and hit.fields.

    The hit itself is never mutated.
    """
    doc: dict[str, Any] = copy.deepcopy(dict(hit.source))

    if strategy != NO_FIELDS:
        for path, values in hit.fields.items():
            if _is_invalid_key(path) or _is_multi_field(path, hit.fields):
                continue
            if field_filter.matches(path):
                continue
            existing = get_path(doc, path)
            if existing is not MISSING:
                if strategy == MISSING_FIELDS or isinstance(existing, Mapping):
                    continue
            if not set_path(doc, path, copy.deepcopy(_unwrap(values))):
                logger.debug("Skipped field %r for hit %s: conflicts with a source value", path, hit.id)

    if field_filter:
        field_filter.prune(doc)
    return doc
