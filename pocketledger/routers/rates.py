from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pocketledger.db.dal import Database
from pocketledger.models.rates import RatesStatus, RefreshResult
from pocketledger.services.rates.conversion import CurrencyConverter
from .deps import get_converter, get_db

"""Rates router: cache inspection and manual refresh.

Endpoints:
    - GET /rates/status                -> pivot, fetched_at, staleness, table size
    - POST /rates/refresh?force=false  -> refresh when stale (or always with force)

A refresh where every upstream failed answers 502 and keeps the old table.
"""

router = APIRouter(prefix="/rates", tags=["rates"])


def _status(converter: CurrencyConverter) -> RatesStatus:
    cache = converter.cache
    table = cache.load() or {}
    return RatesStatus(
        pivot_currency=converter.pivot,
        fetched_at=cache.fetched_at,
        needs_refresh=cache.needs_refresh,
        currencies=len(table),
    )


@router.get("/status", response_model=RatesStatus, summary="Rate cache status")
async def rates_status(converter: CurrencyConverter = Depends(get_converter)):
    return _status(converter)


@router.post("/refresh", response_model=RefreshResult, summary="Refresh cached rates")
async def refresh_rates(
    force: bool = Query(False, description="Refresh even if the cache is fresh"),
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    currencies = db.list_currencies()
    if force:
        await converter.refresh_rates(currencies)
        refreshed = True
    else:
        refreshed = await converter.refresh_rates_if_needed(currencies)
    return RefreshResult(refreshed=refreshed, status=_status(converter))
