from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccountRecord(BaseModel):
    """A money container holding a balance in its own currency.

    ``balance`` is mutated only by the ledger engine. ``initial_balance`` is the
    opening amount the account was created with, so the ledger invariant reads
    ``balance == initial_balance + sum(effects of live transactions)``.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    balance: Decimal = Decimal("0")
    initial_balance: Decimal = Decimal("0")
    currency_code: str
    is_default: bool = False
    created_at: Optional[datetime] = None


class AccountIn(BaseModel):
    name: str
    currency_code: str
    initial_balance: Decimal = Decimal("0")
    is_default: bool = False

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name cannot be empty")
        return value.strip()

    @field_validator("currency_code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("initial_balance")
    @classmethod
    def _finite(cls, value: Decimal) -> Decimal:
        if not value.is_finite():
            raise ValueError("initial_balance must be a finite number")
        return value


class AccountOut(AccountRecord):
    id: int
    formatted_balance: str = ""


class TotalBalanceOut(BaseModel):
    currency_code: str
    total: Decimal
    accounts: int = Field(..., ge=0)
