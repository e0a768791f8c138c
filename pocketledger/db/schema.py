"""Database schema DDL definitions and initialization utilities.

Tables:
  - currencies: seeded reference currencies (fiat & crypto)
  - accounts: balances held in each account's own currency
  - categories: expense / income categories
  - transactions: ledger entries (expense, income, transfer)
  - metadata: key/value store (schema version, preferences, cached rate table)

Monetary amounts are stored as TEXT holding a decimal literal so balances keep
full precision across round trips.
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

CURRENCIES_DDL = """
CREATE TABLE IF NOT EXISTS currencies (
    code TEXT PRIMARY KEY,
    symbol TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    kind TEXT NOT NULL DEFAULT 'fiat' CHECK (kind IN ('fiat','crypto')),
    is_default INTEGER NOT NULL DEFAULT 0
);
"""

ACCOUNTS_DDL = f"""
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    balance TEXT NOT NULL DEFAULT '0',
    initial_balance TEXT NOT NULL DEFAULT '0',
    currency_code TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (currency_code) REFERENCES currencies(code) ON DELETE RESTRICT
);
"""

CATEGORIES_DDL = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    icon_name TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL CHECK (type IN ('expense','income')),
    sort_order INTEGER NOT NULL DEFAULT 0
);
"""

TRANSACTIONS_DDL = f"""
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    amount TEXT NOT NULL, -- positive magnitude
    transfer_target_amount TEXT, -- transfers only
    note TEXT,
    date TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    type TEXT NOT NULL CHECK (type IN ('expense','income','transfer')),
    category_id INTEGER,
    account_id INTEGER,
    to_account_id INTEGER,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL,
    FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE,
    FOREIGN KEY (to_account_id) REFERENCES accounts(id) ON DELETE CASCADE
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

TRANSACTIONS_ACCOUNT_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id, date);"
)
TRANSACTIONS_TO_ACCOUNT_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_transactions_to_account ON transactions(to_account_id);"
)

DDL_ORDER: Sequence[str] = (
    CURRENCIES_DDL,
    ACCOUNTS_DDL,
    CATEGORIES_DDL,
    TRANSACTIONS_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        for ddl in (TRANSACTIONS_ACCOUNT_INDEX_DDL, TRANSACTIONS_TO_ACCOUNT_INDEX_DDL):
            cur.execute(ddl)
        conn.commit()
    finally:
        conn.close()
