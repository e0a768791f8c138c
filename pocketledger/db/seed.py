"""First-run seeding: currency catalog, default categories and a main account.

Each step only runs when its table is empty, so `seed_defaults` is safe to
call on every startup. User edits made after the first run are never touched.
"""

from __future__ import annotations

import locale
import logging
from typing import Optional, Sequence

from pocketledger.models import (
    AccountIn,
    CategoryRecord,
    CategoryType,
    CurrencyKind,
    CurrencyRecord,
)
from pocketledger.models.constants import (
    CRYPTO_CURRENCIES,
    DEFAULT_ACCOUNT_NAME,
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
    FIAT_CURRENCIES,
    PIVOT_CURRENCY,
    REGION_CURRENCIES,
)
from .dal import Database

logger = logging.getLogger("pocketledger.db")

_FIAT_CODES = {code for code, _, _ in FIAT_CURRENCIES}


def _locale_region() -> Optional[str]:
    try:
        name = locale.getlocale()[0]
    except ValueError:
        return None
    if not name:
        return None
    # "en_US", "ru_KG.UTF-8"
    parts = name.split(".")[0].replace("-", "_").split("_")
    return parts[1].upper() if len(parts) > 1 else None


def detect_user_currency(preferred: Optional[str] = None) -> str:
    """Configured code if it is a known fiat currency, else the locale's, else USD."""
    if preferred and preferred.upper() in _FIAT_CODES:
        return preferred.upper()
    region = _locale_region()
    code = REGION_CURRENCIES.get(region) if region else None
    if code in _FIAT_CODES:
        return code
    return PIVOT_CURRENCY


def seed_currencies(db: Database, default_code: str) -> int:
    if db.count_currencies() > 0:
        return 0
    rows = [
        CurrencyRecord(code=c, symbol=s, name=n, kind=CurrencyKind.FIAT, is_default=c == default_code)
        for c, s, n in FIAT_CURRENCIES
    ]
    rows += [
        CurrencyRecord(code=c, symbol=s, name=n, kind=CurrencyKind.CRYPTO)
        for c, s, n in CRYPTO_CURRENCIES
    ]
    added = db.insert_currencies(rows)
    logger.info("seeded %s currencies (default %s)", added, default_code)
    return added


def seed_categories(db: Database) -> int:
    if db.count_categories() > 0:
        return 0
    for name, icon, order in DEFAULT_EXPENSE_CATEGORIES:
        db.create_category(name, CategoryType.EXPENSE, icon, order)
    for name, icon, order in DEFAULT_INCOME_CATEGORIES:
        db.create_category(name, CategoryType.INCOME, icon, order)
    added = len(DEFAULT_EXPENSE_CATEGORIES) + len(DEFAULT_INCOME_CATEGORIES)
    logger.info("seeded %s default categories", added)
    return added


def seed_default_account(db: Database, currency_code: str) -> bool:
    if db.count_accounts() > 0:
        return False
    db.create_account(
        AccountIn(name=DEFAULT_ACCOUNT_NAME, currency_code=currency_code, is_default=True)
    )
    logger.info("created default account in %s", currency_code)
    return True


def seed_defaults(db: Database, preferred_currency: Optional[str] = None) -> str:
    """Run every seeding step; returns the default currency code in effect."""
    default_code = detect_user_currency(preferred_currency)
    seed_currencies(db, default_code)
    current = db.get_default_currency()
    if current is not None:
        default_code = current.code
    seed_categories(db)
    seed_default_account(db, default_code)
    return default_code


def get_default_category(
    type_: CategoryType, categories: Sequence[CategoryRecord]
) -> Optional[CategoryRecord]:
    """Pre-selected category for a new entry of the given type.

    Income prefers the "salary" icon, expense the "other" one; otherwise the
    first category of that type.
    """
    wanted = "salary" if type_ is CategoryType.INCOME else "other"
    of_type = [c for c in categories if c.type is type_]
    for category in of_type:
        if category.icon_name == wanted:
            return category
    return of_type[0] if of_type else None
