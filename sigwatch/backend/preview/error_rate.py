"""
preview/error_rate.py

Transaction error-rate chart preview.

Builds a date-histogram aggregation over transaction events, split into
at most `max_series` series by the group-by fields, and reshapes the
buckets into chart series:

    [{"name": "checkout_production_request", "data": [{"x": 1700000000000, "y": 12.5}, …]}, …]

Series appear in the order they are first seen in the histogram; points
within a series keep histogram order.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..search.client import SearchClient
from ..search.queries import environment_query, range_query, term_query

SERVICE_NAME = "service.name"
SERVICE_ENVIRONMENT = "service.environment"
TRANSACTION_TYPE = "transaction.type"
TRANSACTION_NAME = "transaction.name"
EVENT_OUTCOME = "event.outcome"
PROCESSOR_EVENT = "processor.event"

OUTCOME_FAILURE = "failure"
OUTCOME_SUCCESS = "success"

DEFAULT_GROUP_BY_FIELDS = (SERVICE_NAME, SERVICE_ENVIRONMENT, TRANSACTION_TYPE)


@dataclass
class ErrorRatePreviewParams:
    interval: str
    """Fixed histogram interval, e.g. "1m"."""

    start: int
    """Epoch millis."""

    end: int
    service_name: str | None = None
    environment: str | None = None
    transaction_type: str | None = None
    transaction_name: str | None = None
    group_by: list[str] = field(default_factory=list)


def get_all_group_by_fields(group_by: Sequence[str] = ()) -> list[str]:
    """Default fields first, then the requested ones, without duplicates."""
    return list(dict.fromkeys([*DEFAULT_GROUP_BY_FIELDS, *group_by]))


def build_error_rate_query(params: ErrorRatePreviewParams, max_series: int = 3) -> dict[str, Any]:
    group_by_fields = get_all_group_by_fields(params.group_by)
    return {
        "track_total_hits": False,
        "size": 0,
        "query": {
            "bool": {
                "filter": [
                    *term_query(SERVICE_NAME, params.service_name, query_empty_string=False),
                    *term_query(TRANSACTION_TYPE, params.transaction_type, query_empty_string=False),
                    *term_query(TRANSACTION_NAME, params.transaction_name, query_empty_string=False),
                    *range_query(params.start, params.end),
                    *environment_query(params.environment),
                    {"term": {PROCESSOR_EVENT: "transaction"}},
                    {"terms": {EVENT_OUTCOME: [OUTCOME_FAILURE, OUTCOME_SUCCESS]}},
                ],
            },
        },
        "aggs": {
            "timeseries": {
                "date_histogram": {
                    "field": "@timestamp",
                    "fixed_interval": params.interval,
                    "extended_bounds": {"min": params.start, "max": params.end},
                },
                "aggs": {
                    "series": {
                        "multi_terms": {
                            "terms": [{"field": name} for name in group_by_fields],
                            "size": max_series,
                            "order": {"_count": "desc"},
                        },
                        "aggs": {
                            "outcomes": {"terms": {"field": EVENT_OUTCOME}},
                        },
                    },
                },
            },
        },
    }


def calculate_error_rate(outcome_buckets: Sequence[Mapping[str, Any]]) -> float | None:
    """Failure percentage, or None when the bucket saw no outcomes."""
    counts = {b.get("key"): b.get("doc_count", 0) for b in outcome_buckets}
    failed = counts.get(OUTCOME_FAILURE, 0)
    successful = counts.get(OUTCOME_SUCCESS, 0)
    total = failed + successful
    if total == 0:
        return None
    return failed / total * 100


def to_series(aggregations: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    """Group histogram × series buckets into one point list per series key."""
    if not aggregations:
        return []

    series_data: dict[str, list[dict[str, Any]]] = {}
    for bucket in aggregations["timeseries"]["buckets"]:
        x = bucket["key"]
        for series_bucket in bucket["series"]["buckets"]:
            key = series_bucket["key"]
            name = "_".join(str(k) for k in key) if isinstance(key, list) else str(key)
            y = calculate_error_rate(series_bucket["outcomes"]["buckets"])
            series_data.setdefault(name, []).append({"x": x, "y": y})

    return [{"name": name, "data": data} for name, data in series_data.items()]


async def get_transaction_error_rate_chart_preview(
    search_client: SearchClient,
    params: ErrorRatePreviewParams,
    index: str = "traces-apm*",
    max_series: int = 3,
) -> list[dict[str, Any]]:
    body = build_error_rate_query(params, max_series=max_series)
    resp = await search_client.search(
        index, body, operation="get_transaction_error_rate_chart_preview",
    )
    return to_series(resp.get("aggregations"))
