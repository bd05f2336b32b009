"""
api/routes/preview.py

GET /api/rules/transaction_error_rate/chart_preview
    — error-rate series for the rule editor's preview chart
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ...config import settings
from ...preview.error_rate import ErrorRatePreviewParams, get_transaction_error_rate_chart_preview
from ...search.client import SearchClient, SearchError
from ..serializers import ChartSeries

router = APIRouter(prefix="/rules", tags=["preview"])


def _get_search_client() -> SearchClient:
    from ..main import get_search_client
    return get_search_client()


@router.get("/transaction_error_rate/chart_preview", response_model=list[ChartSeries])
async def transaction_error_rate_chart_preview(
    interval:         Annotated[str,        Query(min_length=1)],
    start:            Annotated[int,        Query(ge=0)],
    end:              Annotated[int,        Query(ge=0)],
    service_name:     Annotated[str | None, Query(alias="serviceName")]     = None,
    environment:      Annotated[str | None, Query()]                        = None,
    transaction_type: Annotated[str | None, Query(alias="transactionType")] = None,
    transaction_name: Annotated[str | None, Query(alias="transactionName")] = None,
    group_by:         Annotated[list[str],  Query(alias="groupBy")]         = [],
    client: SearchClient = Depends(_get_search_client),
) -> list[dict]:
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    params = ErrorRatePreviewParams(
        interval=interval,
        start=start,
        end=end,
        service_name=service_name,
        environment=environment,
        transaction_type=transaction_type,
        transaction_name=transaction_name,
        group_by=list(group_by),
    )
    try:
        return await get_transaction_error_rate_chart_preview(
            client,
            params,
            index=settings.PREVIEW_TRANSACTION_INDEX,
            max_series=settings.PREVIEW_MAX_SERIES,
        )
    except SearchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
