"""
api/routes/stats.py

GET /api/stats — stored alert totals + live process counters
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...metrics import METRICS
from ...storage.repository import AlertRepository
from ..serializers import StatsResponse

router = APIRouter(prefix="/stats", tags=["stats"])


def _get_repo() -> AlertRepository:
    from ..main import get_repository
    return get_repository()


@router.get("", response_model=StatsResponse)
async def get_stats(
    repo: AlertRepository = Depends(_get_repo),
) -> StatsResponse:
    summary = repo.get_stats_summary()
    return StatsResponse(
        total_alerts=summary["total_alerts"],
        alerts_by_rule=summary.get("alerts_by_rule", {}),
        alerts_by_space=summary.get("alerts_by_space", {}),
        latest_alert_timestamp=summary.get("latest_alert_timestamp"),
        counters=METRICS.as_dict(),
    )
