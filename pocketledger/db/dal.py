"""Data Access Layer for currencies, accounts, categories and transactions.

Responsibilities
----------------
- CRUD helpers for every entity, returning pydantic records.
- Query-by-predicate helpers (e.g. all transactions touching an account).
- `write_ledger`: persist a ledger mutation (touched balances plus the
  inserted / updated / deleted transaction) in a single SQLite transaction.
- Key/value metadata access used by preferences and the rate cache.

Balances are never modified here except through `write_ledger`, which is
only called by the ledger engine.
"""

from __future__ import annotations

from pathlib import Path
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from pocketledger.models import (
    AccountIn,
    AccountRecord,
    CategoryRecord,
    CategoryType,
    CurrencyKind,
    CurrencyRecord,
    TransactionRecord,
    TransactionType,
)

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", ""))


def _row_to_currency(row: sqlite3.Row) -> CurrencyRecord:
    return CurrencyRecord(
        code=row["code"],
        symbol=row["symbol"],
        name=row["name"],
        kind=CurrencyKind(row["kind"]),
        is_default=bool(row["is_default"]),
    )


def _row_to_account(row: sqlite3.Row) -> AccountRecord:
    return AccountRecord(
        id=row["id"],
        name=row["name"],
        balance=Decimal(row["balance"]),
        initial_balance=Decimal(row["initial_balance"]),
        currency_code=row["currency_code"],
        is_default=bool(row["is_default"]),
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_category(row: sqlite3.Row) -> CategoryRecord:
    return CategoryRecord(
        id=row["id"],
        name=row["name"],
        icon_name=row["icon_name"],
        type=CategoryType(row["type"]),
        sort_order=row["sort_order"],
    )


def _row_to_transaction(row: sqlite3.Row) -> TransactionRecord:
    target = row["transfer_target_amount"]
    return TransactionRecord(
        id=row["id"],
        amount=Decimal(row["amount"]),
        transfer_target_amount=Decimal(target) if target is not None else None,
        note=row["note"],
        date=date.fromisoformat(row["date"]),
        type=TransactionType(row["type"]),
        category_id=row["category_id"],
        account_id=row["account_id"],
        to_account_id=row["to_account_id"],
        is_hidden=bool(row["is_hidden"]),
        created_at=_parse_ts(row["created_at"]),
    )


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    # ------------------------------------------------------------------
    # Metadata key/value slot
    def get_value(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT value FROM metadata WHERE key = ?", (key,))
            row = cur.fetchone()
            return row[0] if row else None

    def set_values(self, values: dict[str, str]) -> None:
        """Upsert several keys in one commit."""
        with self._connect() as conn:
            cur = conn.cursor()
            for key, value in values.items():
                cur.execute(
                    f"""
                    INSERT INTO metadata (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = ({UTC_NOW_SQL})
                    """,
                    (key, value),
                )
            conn.commit()

    def set_value(self, key: str, value: str) -> None:
        self.set_values({key: value})

    def delete_values(self, *keys: str) -> None:
        with self._connect() as conn:
            conn.executemany("DELETE FROM metadata WHERE key = ?", [(k,) for k in keys])
            conn.commit()

    # ------------------------------------------------------------------
    # Currencies
    def count_currencies(self) -> int:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM currencies")
            return int(cur.fetchone()[0])

    def insert_currencies(self, currencies: Iterable[CurrencyRecord]) -> int:
        """Insert catalog rows, ignoring codes already present. Returns rows added."""
        with self._connect() as conn:
            cur = conn.cursor()
            added = 0
            for c in currencies:
                cur.execute(
                    """
                    INSERT OR IGNORE INTO currencies (code, symbol, name, kind, is_default)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (c.code, c.symbol, c.name, c.kind.value, int(c.is_default)),
                )
                added += cur.rowcount
            conn.commit()
            return added

    def list_currencies(self, kind: Optional[CurrencyKind] = None) -> List[CurrencyRecord]:
        query = "SELECT * FROM currencies"
        params: List[Any] = []
        if kind is not None:
            query += " WHERE kind = ?"
            params.append(kind.value)
        query += " ORDER BY kind DESC, rowid ASC"
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(query, params)
            return [_row_to_currency(r) for r in cur.fetchall()]

    def get_currency(self, code: str) -> Optional[CurrencyRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM currencies WHERE code = ?", (code.upper(),))
            row = cur.fetchone()
            return _row_to_currency(row) if row else None

    def get_default_currency(self) -> Optional[CurrencyRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM currencies ORDER BY is_default DESC, rowid ASC LIMIT 1"
            )
            row = cur.fetchone()
            return _row_to_currency(row) if row else None

    def set_default_currency(self, code: str) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1 FROM currencies WHERE code = ?", (code.upper(),))
            if cur.fetchone() is None:
                raise ValueError(f"unknown currency '{code}'")
            cur.execute("UPDATE currencies SET is_default = (code = ?)", (code.upper(),))
            conn.commit()

    def delete_currency(self, code: str) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT COUNT(*) FROM accounts WHERE currency_code = ?", (code.upper(),)
            )
            if int(cur.fetchone()[0]) > 0:
                raise ValueError(f"currency '{code}' is used by an account")
            cur.execute("DELETE FROM currencies WHERE code = ?", (code.upper(),))
            conn.commit()

    # ------------------------------------------------------------------
    # Categories
    def create_category(
        self, name: str, type_: CategoryType, icon_name: str = "", sort_order: int = 0
    ) -> CategoryRecord:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO categories (name, icon_name, type, sort_order) VALUES (?, ?, ?, ?)",
                (name, icon_name, type_.value, sort_order),
            )
            category_id = int(cur.lastrowid)
            conn.commit()
        return CategoryRecord(
            id=category_id, name=name, icon_name=icon_name, type=type_, sort_order=sort_order
        )

    def count_categories(self) -> int:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM categories")
            return int(cur.fetchone()[0])

    def list_categories(self, type_: Optional[CategoryType] = None) -> List[CategoryRecord]:
        query = "SELECT * FROM categories"
        params: List[Any] = []
        if type_ is not None:
            query += " WHERE type = ?"
            params.append(type_.value)
        query += " ORDER BY type, sort_order, id"
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(query, params)
            return [_row_to_category(r) for r in cur.fetchall()]

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM categories WHERE id = ?", (category_id,))
            row = cur.fetchone()
            return _row_to_category(row) if row else None

    def delete_category(self, category_id: int) -> bool:
        """Delete a category; its transactions keep existing with no category."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            conn.commit()
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Accounts
    def create_account(self, account: AccountIn) -> AccountRecord:
        """Insert an account whose balance starts at its opening balance."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1 FROM currencies WHERE code = ?", (account.currency_code,))
            if cur.fetchone() is None:
                raise ValueError(f"unknown currency '{account.currency_code}'")
            if account.is_default:
                cur.execute("UPDATE accounts SET is_default = 0")
            cur.execute(
                f"""
                INSERT INTO accounts (name, balance, initial_balance, currency_code, is_default, created_at)
                VALUES (?, ?, ?, ?, ?, ({UTC_NOW_SQL}))
                """,
                (
                    account.name,
                    str(account.initial_balance),
                    str(account.initial_balance),
                    account.currency_code,
                    int(account.is_default),
                ),
            )
            account_id = int(cur.lastrowid)
            conn.commit()
        created = self.get_account(account_id)
        assert created is not None
        return created

    def count_accounts(self) -> int:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM accounts")
            return int(cur.fetchone()[0])

    def list_accounts(self) -> List[AccountRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM accounts ORDER BY is_default DESC, id ASC")
            return [_row_to_account(r) for r in cur.fetchall()]

    def get_account(self, account_id: int) -> Optional[AccountRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM accounts WHERE id = ?", (account_id,))
            row = cur.fetchone()
            return _row_to_account(row) if row else None

    def rename_account(self, account_id: int, name: str) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("UPDATE accounts SET name = ? WHERE id = ?", (name, account_id))
            if cur.rowcount == 0:
                raise ValueError("account not found")
            conn.commit()

    def set_account_currency(self, account_id: int, currency_code: str) -> None:
        """Relabel an account's currency. The stored balance is not converted."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE accounts SET currency_code = ? WHERE id = ?",
                (currency_code.upper(), account_id),
            )
            if cur.rowcount == 0:
                raise ValueError("account not found")
            conn.commit()

    def set_default_account(self, account_id: int) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1 FROM accounts WHERE id = ?", (account_id,))
            if cur.fetchone() is None:
                raise ValueError("account not found")
            cur.execute("UPDATE accounts SET is_default = (id = ?)", (account_id,))
            conn.commit()

    def delete_account(self, account_id: int, accounts: Iterable[AccountRecord] = ()) -> int:
        """Delete an account and, by cascade, every transaction touching it.

        ``accounts`` carry counterpart balances to write in the same commit.
        Returns the number of cascaded transactions.
        """
        with self._connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "SELECT COUNT(*) FROM transactions WHERE account_id = ? OR to_account_id = ?",
                    (account_id, account_id),
                )
                cascaded = int(cur.fetchone()[0])
                for account in accounts:
                    cur.execute(
                        "UPDATE accounts SET balance = ? WHERE id = ?",
                        (str(account.balance), account.id),
                    )
                cur.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
                if cur.rowcount == 0:
                    raise ValueError("account not found")
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return cascaded

    # ------------------------------------------------------------------
    # Transactions
    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
            row = cur.fetchone()
            return _row_to_transaction(row) if row else None

    def list_transactions(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_hidden: bool = True,
    ) -> List[TransactionRecord]:
        clauses: List[str] = []
        params: List[Any] = []
        if account_id is not None:
            clauses.append("(account_id = ? OR to_account_id = ?)")
            params.extend([account_id, account_id])
        if start_date:
            clauses.append("date >= ?")
            params.append(start_date.isoformat())
        if end_date:
            clauses.append("date <= ?")
            params.append(end_date.isoformat())
        if not include_hidden:
            clauses.append("is_hidden = 0")
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT * FROM transactions{where} ORDER BY date DESC, id DESC", params
            )
            return [_row_to_transaction(r) for r in cur.fetchall()]

    def transactions_for_account(self, account_id: int) -> List[TransactionRecord]:
        return self.list_transactions(account_id=account_id)

    def set_transaction_hidden(self, transaction_id: int, hidden: bool) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE transactions SET is_hidden = ? WHERE id = ?",
                (int(hidden), transaction_id),
            )
            if cur.rowcount == 0:
                raise ValueError("transaction not found")
            conn.commit()

    def write_ledger(
        self,
        accounts: Iterable[AccountRecord],
        transaction: TransactionRecord,
        *,
        delete: bool = False,
    ) -> TransactionRecord:
        """Persist touched balances together with one transaction change.

        New transactions (``id is None``) are inserted and get their id
        assigned on the passed record; existing ones are updated, or removed
        when ``delete`` is set. Everything commits or nothing does.
        """
        with self._connect() as conn:
            cur = conn.cursor()
            try:
                for account in accounts:
                    cur.execute(
                        "UPDATE accounts SET balance = ? WHERE id = ?",
                        (str(account.balance), account.id),
                    )
                if delete:
                    cur.execute("DELETE FROM transactions WHERE id = ?", (transaction.id,))
                    if cur.rowcount == 0:
                        raise ValueError("transaction not found")
                elif transaction.id is None:
                    cur.execute(
                        f"""
                        INSERT INTO transactions (
                            amount, transfer_target_amount, note, date, type,
                            category_id, account_id, to_account_id, is_hidden, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ({UTC_NOW_SQL}))
                        """,
                        (
                            str(transaction.amount),
                            _dec(transaction.transfer_target_amount),
                            transaction.note,
                            transaction.date.isoformat(),
                            transaction.type.value,
                            transaction.category_id,
                            transaction.account_id,
                            transaction.to_account_id,
                            int(transaction.is_hidden),
                        ),
                    )
                    transaction.id = int(cur.lastrowid)
                else:
                    cur.execute(
                        """
                        UPDATE transactions SET
                            amount = ?, transfer_target_amount = ?, note = ?, date = ?,
                            type = ?, category_id = ?, account_id = ?, to_account_id = ?
                        WHERE id = ?
                        """,
                        (
                            str(transaction.amount),
                            _dec(transaction.transfer_target_amount),
                            transaction.note,
                            transaction.date.isoformat(),
                            transaction.type.value,
                            transaction.category_id,
                            transaction.account_id,
                            transaction.to_account_id,
                            transaction.id,
                        ),
                    )
                    if cur.rowcount == 0:
                        raise ValueError("transaction not found")
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return transaction
