"""
search/queries.py

The few query-DSL fragments the preview route and rule executor need.
Each helper returns a list so callers can splat it into a bool filter;
an empty list means "no constraint".
"""

from __future__ import annotations

from typing import Any

ENVIRONMENT_ALL = "ENVIRONMENT_ALL"
ENVIRONMENT_NOT_DEFINED = "ENVIRONMENT_NOT_DEFINED"

SERVICE_ENVIRONMENT = "service.environment"


def term_query(field: str, value: Any, query_empty_string: bool = True) -> list[dict]:
    if value is None:
        return []
    if value == "" and not query_empty_string:
        return []
    return [{"term": {field: value}}]


def range_query(
    start: int | None = None,
    end: int | None = None,
    field: str = "@timestamp",
) -> list[dict]:
    """Epoch-millis range on field, inclusive at both ends."""
    bounds: dict[str, Any] = {"format": "epoch_millis"}
    if start is not None:
        bounds["gte"] = start
    if end is not None:
        bounds["lte"] = end
    return [{"range": {field: bounds}}]


def environment_query(environment: str | None) -> list[dict]:
    if not environment or environment == ENVIRONMENT_ALL:
        return []
    if environment == ENVIRONMENT_NOT_DEFINED:
        return [{"bool": {"must_not": [{"exists": {"field": SERVICE_ENVIRONMENT}}]}}]
    return [{"term": {SERVICE_ENVIRONMENT: environment}}]
