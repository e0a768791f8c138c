"""Pydantic domain models for the PocketLedger core."""

from .constants import (
    PIVOT_CURRENCY,
    FIAT_CURRENCIES,
    CRYPTO_CURRENCIES,
    CRYPTO_UPSTREAM_IDS,
)  # re-export
from .currency import CurrencyKind, CurrencyRecord
from .account import AccountIn, AccountOut, AccountRecord
from .category import CategoryRecord, CategoryType
from .transaction import (
    ExpenseIn,
    IncomeIn,
    TransactionOut,
    TransactionRecord,
    TransactionType,
    TransactionUpdateIn,
    TransferIn,
)
from .rates import RateTable

__all__ = [
    "PIVOT_CURRENCY",
    "FIAT_CURRENCIES",
    "CRYPTO_CURRENCIES",
    "CRYPTO_UPSTREAM_IDS",
    "CurrencyKind",
    "CurrencyRecord",
    "AccountIn",
    "AccountOut",
    "AccountRecord",
    "CategoryRecord",
    "CategoryType",
    "ExpenseIn",
    "IncomeIn",
    "TransactionOut",
    "TransactionRecord",
    "TransactionType",
    "TransactionUpdateIn",
    "TransferIn",
    "RateTable",
]
