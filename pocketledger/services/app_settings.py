"""User preferences backed by the metadata table.

Metadata keys:
  - base_currency_code: str, currency used for totals and display
  - last_used_account_id: int, account pre-selected for the next entry

Accessors are resilient: a missing or invalid value falls back to a default.
"""

from __future__ import annotations
from typing import Optional, Protocol, Sequence

from pocketledger.models import AccountRecord


class KeyValueStore(Protocol):
    def get_value(self, key: str) -> Optional[str]: ...

    def set_value(self, key: str, value: str) -> None: ...


BASE_CURRENCY_KEY = "base_currency_code"
LAST_USED_ACCOUNT_KEY = "last_used_account_id"


class UserPreferences:
    def __init__(self, store: KeyValueStore, default_currency_code: str = "USD"):
        self._store = store
        self._default_currency_code = default_currency_code

    @property
    def base_currency_code(self) -> str:
        return self._store.get_value(BASE_CURRENCY_KEY) or self._default_currency_code

    def set_base_currency_code(self, code: str) -> None:
        code = code.strip().upper()
        if not code:
            raise ValueError("currency code cannot be empty")
        self._store.set_value(BASE_CURRENCY_KEY, code)

    @property
    def last_used_account_id(self) -> Optional[int]:
        val = self._store.get_value(LAST_USED_ACCOUNT_KEY)
        if val is None:
            return None
        try:
            return int(val)
        except ValueError:
            return None

    def update_last_used_account(self, account: AccountRecord) -> None:
        if account.id is not None:
            self._store.set_value(LAST_USED_ACCOUNT_KEY, str(account.id))

    def preferred_account(
        self, accounts: Sequence[AccountRecord]
    ) -> Optional[AccountRecord]:
        """Last used account if it still exists, else the first one."""
        last = self.last_used_account_id
        if last is not None:
            for account in accounts:
                if account.id == last:
                    return account
        return accounts[0] if accounts else None


__all__ = ["KeyValueStore", "UserPreferences"]
