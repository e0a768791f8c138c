import sqlite3
from decimal import Decimal

import pytest

from pocketledger.db import seed
from pocketledger.db.dal import Database
from pocketledger.db.migrate import CURRENT_SCHEMA_VERSION, SCHEMA_VERSION_KEY, apply_migrations
from pocketledger.db.schema import init_db
from pocketledger.models import AccountIn, CategoryType, CurrencyKind
from pocketledger.models.constants import (
    CRYPTO_CURRENCIES,
    DEFAULT_ACCOUNT_NAME,
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
    FIAT_CURRENCIES,
)


def test_migrations_are_idempotent(db_path):
    assert apply_migrations(db_path) == CURRENT_SCHEMA_VERSION
    assert apply_migrations(db_path) == CURRENT_SCHEMA_VERSION
    assert Database(db_path).get_value(SCHEMA_VERSION_KEY) == str(CURRENT_SCHEMA_VERSION)


def test_legacy_database_is_upgraded(tmp_path):
    path = tmp_path / "legacy.sqlite3"
    init_db(path)
    conn = sqlite3.connect(path)
    conn.execute("INSERT INTO currencies (code, symbol) VALUES ('USD', '$')")
    conn.execute("INSERT INTO accounts (name, currency_code) VALUES ('Old', 'USD')")
    conn.execute(
        "INSERT INTO transactions (amount, date, type, account_id) "
        "VALUES ('-30', '2023-01-02', 'expense', 1)"
    )
    conn.commit()
    conn.close()

    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION
    tx = Database(path).get_transaction(1)
    assert tx.amount == Decimal("30")
    assert tx.is_hidden is False


def test_seed_runs_once(db):
    assert db.count_currencies() == len(FIAT_CURRENCIES) + len(CRYPTO_CURRENCIES)
    assert db.count_categories() == len(DEFAULT_EXPENSE_CATEGORIES) + len(DEFAULT_INCOME_CATEGORIES)
    assert db.count_accounts() == 1

    seed.seed_defaults(db, "EUR")
    assert db.count_currencies() == len(FIAT_CURRENCIES) + len(CRYPTO_CURRENCIES)
    assert db.count_accounts() == 1
    assert db.get_default_currency().code == "USD"

    main = db.list_accounts()[0]
    assert main.name == DEFAULT_ACCOUNT_NAME
    assert main.is_default
    assert main.balance == Decimal("0")


def test_seed_uses_configured_currency(db_path):
    database = Database(db_path)
    assert seed.seed_defaults(database, "eur") == "EUR"
    assert database.get_default_currency().code == "EUR"
    assert database.list_accounts()[0].currency_code == "EUR"
    assert len(database.list_currencies(CurrencyKind.CRYPTO)) == len(CRYPTO_CURRENCIES)


@pytest.mark.parametrize(
    "locale_name, expected",
    [(("ru_KG", "UTF-8"), "KGS"), (("en_GB", "UTF-8"), "GBP"), (("de_DE", "UTF-8"), "USD"), ((None, None), "USD")],
)
def test_detect_user_currency_from_locale(monkeypatch, locale_name, expected):
    monkeypatch.setattr(seed.locale, "getlocale", lambda: locale_name)
    assert seed.detect_user_currency(None) == expected
    assert seed.detect_user_currency("XXX") == expected


def test_default_category_preferences(db):
    categories = db.list_categories()
    assert seed.get_default_category(CategoryType.EXPENSE, categories).icon_name == "other"
    assert seed.get_default_category(CategoryType.INCOME, categories).icon_name == "salary"
    assert seed.get_default_category(CategoryType.INCOME, []) is None


def test_currency_rules(db, make_account):
    make_account("Euro", "0", "EUR")
    with pytest.raises(ValueError):
        db.delete_currency("EUR")
    with pytest.raises(ValueError):
        db.set_default_currency("XXX")
    db.set_default_currency("gbp")
    assert db.get_default_currency().code == "GBP"
    with pytest.raises(ValueError):
        db.create_account(AccountIn(name="Bad", currency_code="XXX"))


def test_single_default_account(db):
    first = db.list_accounts()[0]
    second = db.create_account(AccountIn(name="Savings", currency_code="USD", is_default=True))
    assert db.get_account(second.id).is_default
    assert not db.get_account(first.id).is_default
    db.set_default_account(first.id)
    assert db.list_accounts()[0].id == first.id


def test_deleted_category_leaves_transaction(db, engine, make_account):
    category = db.create_category("Hobby", CategoryType.EXPENSE, "hobby", 20)
    account = make_account("A", "10")
    tx = engine.apply_expense(5, account, category)
    assert db.delete_category(category.id)
    stored = db.get_transaction(tx.id)
    assert stored.category_id is None
    assert db.get_account(account.id).balance == Decimal("5")


def test_delete_account_cascades(db, engine, make_account, expense_category):
    a = make_account("A", "10")
    engine.apply_expense(1, a, expense_category)
    engine.apply_expense(2, a, expense_category)
    assert db.delete_account(a.id) == 2
    assert db.list_transactions(account_id=a.id) == []
    with pytest.raises(ValueError):
        db.delete_account(a.id)


def test_delete_account_writes_balances_in_same_commit(db, make_account):
    a = make_account("A", "10")
    b = make_account("B", "20")
    b.balance = Decimal("25")
    assert db.delete_account(a.id, [b]) == 0
    assert db.get_account(b.id).balance == Decimal("25")

    c = make_account("C", "30")
    c.balance = Decimal("99")
    with pytest.raises(ValueError):
        db.delete_account(a.id, [c])
    assert db.get_account(c.id).balance == Decimal("30")


def test_write_ledger_delete_of_missing_row_rolls_back(db, engine, make_account, expense_category):
    a = make_account("A", "100")
    tx = engine.apply_expense(30, a, expense_category)
    db.write_ledger([], tx, delete=True)
    a.balance = Decimal("100")
    with pytest.raises(ValueError):
        db.write_ledger([a], tx, delete=True)
    assert db.get_account(a.id).balance == Decimal("70")
