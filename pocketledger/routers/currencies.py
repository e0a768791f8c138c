from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from pocketledger.core.errors import InvalidArgument, NotFound
from pocketledger.db.dal import Database
from pocketledger.models import CurrencyKind, CurrencyRecord
from pocketledger.models.rates import ConversionOut
from pocketledger.services.app_settings import UserPreferences
from pocketledger.services.money import format_amount
from pocketledger.services.rates.conversion import CurrencyConverter
from .deps import get_converter, get_db, get_preferences

router = APIRouter(prefix="/currencies", tags=["currencies"])


class DefaultCurrencyIn(BaseModel):
    code: str


def _require_currency(db: Database, code: str) -> CurrencyRecord:
    currency = db.get_currency(code)
    if currency is None:
        raise NotFound(f"currency '{code.upper()}' not found")
    return currency


@router.get("", response_model=List[CurrencyRecord], summary="List seeded currencies")
async def list_currencies(
    kind: Optional[CurrencyKind] = Query(None, description="fiat or crypto"),
    q: Optional[str] = Query(None, description="Search by code or name"),
    db: Database = Depends(get_db),
):
    currencies = db.list_currencies(kind)
    if q:
        needle = q.strip().lower()
        currencies = [
            c for c in currencies if needle in c.code.lower() or needle in c.name.lower()
        ]
    return currencies


@router.get("/convert", response_model=ConversionOut, summary="Convert using cached rates")
async def convert(
    amount: Decimal = Query(...),
    from_code: str = Query(..., min_length=1),
    to_code: str = Query(..., min_length=1),
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    if not amount.is_finite():
        raise InvalidArgument("amount must be a finite number")
    source = _require_currency(db, from_code)
    target = _require_currency(db, to_code)
    converted = converter.convert(amount, source.code, target.code)
    return ConversionOut(
        amount=str(amount),
        from_code=source.code,
        to_code=target.code,
        converted=str(converted),
        formatted=format_amount(converted, target),
    )


@router.put("/default", response_model=CurrencyRecord, summary="Set the base currency")
async def set_default_currency(
    payload: DefaultCurrencyIn,
    db: Database = Depends(get_db),
    preferences: UserPreferences = Depends(get_preferences),
):
    currency = _require_currency(db, payload.code)
    db.set_default_currency(currency.code)
    preferences.set_base_currency_code(currency.code)
    return currency.model_copy(update={"is_default": True})
