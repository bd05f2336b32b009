"""
api/serializers.py

Response models for the REST API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class AlertResponse(BaseModel):
    alert_id: str
    timestamp: str
    rule_id: str
    rule_name: str
    space_id: str
    reason: str
    depth: int
    source: dict[str, Any]

    @classmethod
    def from_dict(cls, d: dict) -> "AlertResponse":
        return cls(
            alert_id=d["alert_id"],
            timestamp=d["timestamp"],
            rule_id=d["rule_id"],
            rule_name=d.get("rule_name", ""),
            space_id=d.get("space_id", ""),
            reason=d.get("reason", ""),
            depth=d.get("depth", 1),
            source=d.get("source", {}),
        )


class PaginatedAlertsResponse(BaseModel):
    items: list[AlertResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class StatsResponse(BaseModel):
    total_alerts: int
    alerts_by_rule: dict[str, int] = {}
    alerts_by_space: dict[str, int] = {}
    latest_alert_timestamp: str | None = None
    counters: dict[str, int] = {}


class ChartPoint(BaseModel):
    x: int
    y: float | None


class ChartSeries(BaseModel):
    name: str
    data: list[ChartPoint]
