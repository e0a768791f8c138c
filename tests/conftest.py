import sqlite3
from decimal import Decimal

import pytest

from pocketledger.core.config import Settings
from pocketledger.db.dal import Database
from pocketledger.db.migrate import apply_migrations
from pocketledger.db.seed import get_default_category, seed_defaults
from pocketledger.models import AccountIn, CategoryType
from pocketledger.services.app_settings import UserPreferences
from pocketledger.services.ledger import LedgerEngine


class FlakyDatabase(Database):
    """Database whose ledger writes can be switched to fail."""

    fail_writes = False

    def write_ledger(self, accounts, transaction, *, delete=False):
        if self.fail_writes:
            raise sqlite3.OperationalError("disk I/O error")
        return super().write_ledger(accounts, transaction, delete=delete)

    def delete_account(self, account_id, accounts=()):
        if self.fail_writes:
            raise sqlite3.OperationalError("disk I/O error")
        return super().delete_account(account_id, accounts)


class StubFetcher:
    """Async JSON fetcher answering from a url-substring -> payload map.

    A payload that is an exception instance is raised instead of returned.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def __call__(self, url, *, timeout=10.0):
        self.calls.append(url)
        for fragment, payload in self.responses.items():
            if fragment in url:
                if isinstance(payload, Exception):
                    raise payload
                return payload
        raise AssertionError(f"unexpected url {url}")


FIAT_PAYLOAD = {
    "base": "USD",
    "date": "2025-01-01",
    "rates": {"USD": 1, "EUR": 0.92, "GBP": 0.79, "JPY": 150.5, "XYZ": 3.0},
}
CRYPTO_PAYLOAD = {"bitcoin": {"usd": 65000}, "ethereum": {"usd": 3200.5}}


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "ledger.sqlite3"
    apply_migrations(path)
    return path


@pytest.fixture
def db(db_path):
    database = FlakyDatabase(db_path)
    seed_defaults(database, "USD")
    return database


@pytest.fixture
def preferences(db):
    return UserPreferences(db, default_currency_code="USD")


@pytest.fixture
def engine(db, preferences):
    return LedgerEngine(db, preferences)


@pytest.fixture
def make_account(db):
    def _make(name, balance="0", currency="USD"):
        return db.create_account(
            AccountIn(name=name, currency_code=currency, initial_balance=Decimal(balance))
        )

    return _make


@pytest.fixture
def expense_category(db):
    return get_default_category(CategoryType.EXPENSE, db.list_categories())


@pytest.fixture
def income_category(db):
    return get_default_category(CategoryType.INCOME, db.list_categories())


@pytest.fixture
def settings(tmp_path):
    s = Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "api.sqlite3",
        default_currency_code="USD",
        refresh_rates_on_startup=False,
        fiat_api_base_url="https://fiat.test/v4",
        crypto_api_base_url="https://crypto.test/api/v3",
    )
    s.init_post_load()
    return s
