from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TransactionType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


def clean_note(note: Optional[str]) -> Optional[str]:
    if note is None or not note.strip():
        return None
    return note


class TransactionRecord(BaseModel):
    """A ledger entry. ``amount`` is always a positive magnitude; direction comes from ``type``.

    Account and category references are plain ids resolved through the store,
    so a deleted account or category leaves a dangling id, never a live object.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    amount: Decimal
    transfer_target_amount: Optional[Decimal] = None
    note: Optional[str] = None
    date: dt.date
    type: TransactionType
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    is_hidden: bool = False
    created_at: Optional[dt.datetime] = None

    @property
    def target_amount(self) -> Decimal:
        """Amount credited to the destination of a transfer."""
        if self.transfer_target_amount is None:
            return self.amount
        return self.transfer_target_amount


class _TransactionIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    note: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator("note")
    @classmethod
    def _blank_note(cls, v: Optional[str]) -> Optional[str]:
        return clean_note(v)


class ExpenseIn(_TransactionIn):
    account_id: int
    category_id: int


class IncomeIn(_TransactionIn):
    account_id: int
    category_id: int


class TransferIn(_TransactionIn):
    target_amount: Optional[Decimal] = Field(None, gt=0)
    from_account_id: int
    to_account_id: int

    @model_validator(mode="after")
    def _distinct_accounts(self) -> "TransferIn":
        if self.from_account_id == self.to_account_id:
            raise ValueError("cannot transfer to the same account")
        return self


class TransactionUpdateIn(BaseModel):
    """Partial update. Omitted fields keep their current value.

    Switching ``type`` away from transfer drops the destination account; switching
    to transfer drops the category.
    """

    amount: Optional[Decimal] = Field(None, gt=0)
    target_amount: Optional[Decimal] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    category_id: Optional[int] = None
    note: Optional[str] = None
    date: Optional[dt.date] = None

    @model_validator(mode="before")
    @classmethod
    def _at_least_one(cls, data):
        if isinstance(data, dict) and not data:
            raise ValueError("at least one field must be provided for update")
        return data

    @field_validator("note")
    @classmethod
    def _blank_note(cls, v: Optional[str]) -> Optional[str]:
        return clean_note(v)


class TransactionOut(TransactionRecord):
    id: int
    signed_amount: Decimal


class HideIn(BaseModel):
    hidden: bool = True
