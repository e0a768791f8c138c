from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

# code -> rate relative to the pivot currency
RateTable = Dict[str, float]


class RatesStatus(BaseModel):
    pivot_currency: str
    fetched_at: Optional[datetime] = None
    needs_refresh: bool
    currencies: int = Field(0, ge=0)


class RefreshResult(BaseModel):
    refreshed: bool
    status: RatesStatus


class ConversionOut(BaseModel):
    amount: str
    from_code: str
    to_code: str
    converted: str
    formatted: str
