"""Ledger engine: the only code path that changes account balances.

Every transaction has a signed effect on one account (expense, income) or two
accounts (transfer). Creating a transaction applies its effect, deleting it
reverts the effect, and updating it reverts the current effect, rewrites the
fields, then applies the new effect. Because revert and apply share one effect
function, an account's balance always equals its opening balance plus the sum
of the effects of its live transactions.

Concurrency: balance changes are serialized per account. Each operation locks
every account it touches (old and new legs, in id order), reloads the current
balances from the store under the lock, and only then mutates. Updates and
deletes also reload the transaction itself under the lock, so a stale copy in
the caller's hands can never revert an effect twice. Callers' account and
transaction records are refreshed in place after the write succeeds.

Failure: validation happens before anything is touched (``InvalidArgument``).
A failed store write leaves the caller's records and the transaction exactly as
they were and raises ``PersistenceError``.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date as date_cls
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Set, Union

from pocketledger.core.errors import InvalidArgument, NotFound, PersistenceError
from pocketledger.models import (
    AccountRecord,
    CategoryRecord,
    TransactionRecord,
    TransactionType,
)
from pocketledger.models.transaction import clean_note
from pocketledger.services.app_settings import UserPreferences
from pocketledger.services.money import Number, to_decimal

logger = logging.getLogger("pocketledger.ledger")

_UNSET = object()
ZERO = Decimal("0")


class LedgerStore(Protocol):
    def get_account(self, account_id: int) -> Optional[AccountRecord]: ...

    def get_category(self, category_id: int) -> Optional[CategoryRecord]: ...

    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]: ...

    def transactions_for_account(self, account_id: int) -> List[TransactionRecord]: ...

    def delete_account(
        self, account_id: int, accounts: Iterable[AccountRecord] = ()
    ) -> int: ...

    def set_transaction_hidden(self, transaction_id: int, hidden: bool) -> None: ...

    def write_ledger(
        self,
        accounts: Iterable[AccountRecord],
        transaction: TransactionRecord,
        *,
        delete: bool = False,
    ) -> TransactionRecord: ...


def signed_effects(transaction: TransactionRecord) -> Dict[int, Decimal]:
    """Balance deltas a transaction contributes, keyed by account id.

    Legs whose account reference is empty contribute nothing.
    """
    t = transaction.type
    if t is TransactionType.EXPENSE:
        legs = [(transaction.account_id, -transaction.amount)]
    elif t is TransactionType.INCOME:
        legs = [(transaction.account_id, transaction.amount)]
    elif t is TransactionType.TRANSFER:
        legs = [
            (transaction.account_id, -transaction.amount),
            (transaction.to_account_id, transaction.target_amount),
        ]
    else:
        raise InvalidArgument(f"unknown transaction type {t!r}")
    effects: Dict[int, Decimal] = {}
    for account_id, delta in legs:
        if account_id is None:
            continue
        effects[account_id] = effects.get(account_id, ZERO) + delta
    return effects


def validate_shape(transaction: TransactionRecord) -> None:
    """Enforce which references each transaction type requires."""
    if transaction.amount <= 0:
        raise InvalidArgument("amount must be positive")
    if transaction.account_id is None:
        raise InvalidArgument("account is required")
    if transaction.type is TransactionType.TRANSFER:
        if transaction.category_id is not None:
            raise InvalidArgument("transfers cannot have a category")
        if transaction.to_account_id is None:
            raise InvalidArgument("transfer requires a destination account")
        if transaction.to_account_id == transaction.account_id:
            raise InvalidArgument("cannot transfer to the same account")
        if transaction.target_amount <= 0:
            raise InvalidArgument("target amount must be positive")
    elif transaction.type in (TransactionType.EXPENSE, TransactionType.INCOME):
        if transaction.category_id is None:
            raise InvalidArgument(f"{transaction.type.value} requires a category")
        if transaction.to_account_id is not None:
            raise InvalidArgument(f"{transaction.type.value} cannot have a destination account")
        if transaction.transfer_target_amount is not None:
            raise InvalidArgument("target amount is only valid for transfers")
    else:
        raise InvalidArgument(f"unknown transaction type {transaction.type!r}")


def _positive(value: Number, field: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise InvalidArgument(f"{field} is not a number") from e
    if not amount.is_finite() or amount <= 0:
        raise InvalidArgument(f"{field} must be a positive number")
    return amount


@dataclass(frozen=True)
class ReconcileReport:
    account_id: int
    stored: Decimal
    expected: Decimal
    transactions: int

    @property
    def difference(self) -> Decimal:
        return self.stored - self.expected

    @property
    def is_consistent(self) -> bool:
        return self.difference == 0


class LedgerEngine:
    def __init__(self, store: LedgerStore, preferences: Optional[UserPreferences] = None):
        self._store = store
        self._preferences = preferences
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # Locking ---------------------------------------------------
    @contextmanager
    def _locked(self, account_ids: Iterable[Optional[int]]) -> Iterator[None]:
        ids = sorted({i for i in account_ids if i is not None})
        with self._locks_guard:
            locks = [self._locks.setdefault(i, threading.Lock()) for i in ids]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    @contextmanager
    def _locked_stored(
        self, transaction: TransactionRecord, extra_ids: Iterable[int] = ()
    ) -> Iterator[TransactionRecord]:
        """Lock the legs of the stored row behind ``transaction`` and yield that row.

        The caller's copy picks the first lock set. When the stored row has
        moved to other accounts meanwhile, the set is widened and retaken.
        """
        if transaction.id is None:
            raise InvalidArgument("transaction has not been saved")
        extra = list(extra_ids)
        legs: Set[int] = set(signed_effects(transaction))
        while True:
            with self._locked([*legs, *extra]):
                current = self._store.get_transaction(transaction.id)
                if current is None:
                    raise NotFound(f"transaction {transaction.id} not found")
                current_legs = set(signed_effects(current))
                if current_legs <= legs:
                    yield current
                    return
            legs |= current_legs

    # Internal --------------------------------------------------
    def _load(self, account_ids: Iterable[int]) -> Dict[int, AccountRecord]:
        """Fresh copies of the accounts that still exist."""
        loaded: Dict[int, AccountRecord] = {}
        for account_id in account_ids:
            account = self._store.get_account(account_id)
            if account is not None:
                loaded[account_id] = account
        return loaded

    @staticmethod
    def _require_saved(account: AccountRecord, role: str) -> int:
        if account.id is None:
            raise InvalidArgument(f"{role} account has not been saved")
        return account.id

    def _shift(
        self,
        transaction: TransactionRecord,
        working: Dict[int, AccountRecord],
        direction: int,
    ) -> None:
        for account_id, delta in signed_effects(transaction).items():
            account = working.get(account_id)
            if account is None:
                # Account removed out of band; nothing left to adjust.
                logger.warning(
                    "account %s of transaction %s no longer exists; leg skipped",
                    account_id,
                    transaction.id,
                )
                continue
            account.balance += delta * direction

    def _apply(self, transaction: TransactionRecord, working: Dict[int, AccountRecord]) -> None:
        self._shift(transaction, working, 1)

    def _revert(self, transaction: TransactionRecord, working: Dict[int, AccountRecord]) -> None:
        self._shift(transaction, working, -1)

    def _persist(
        self,
        working: Dict[int, AccountRecord],
        transaction: TransactionRecord,
        *,
        delete: bool = False,
    ) -> None:
        try:
            self._store.write_ledger(list(working.values()), transaction, delete=delete)
        except Exception as e:
            logger.error("ledger write failed for transaction %s: %s", transaction.id, e)
            raise PersistenceError(f"failed to persist transaction: {e}") from e

    @staticmethod
    def _sync(working: Dict[int, AccountRecord], records: Iterable[Optional[AccountRecord]]) -> None:
        for record in records:
            if record is not None and record.id in working:
                record.balance = working[record.id].balance

    def _check_category(self, category_id: Optional[int], tx_type: TransactionType) -> None:
        if category_id is None or tx_type is TransactionType.TRANSFER:
            return
        category = self._store.get_category(category_id)
        if category is None:
            raise NotFound(f"category {category_id} not found")
        if category.type.value != tx_type.value:
            raise InvalidArgument(
                f"category '{category.name}' is a {category.type.value} category"
            )

    def _resolve_target(
        self,
        amount: Decimal,
        target_amount,
        source: AccountRecord,
        destination: AccountRecord,
    ) -> Decimal:
        if target_amount is not None:
            return _positive(target_amount, "target_amount")
        if source.currency_code != destination.currency_code:
            raise InvalidArgument(
                "target_amount is required when transferring between "
                f"{source.currency_code} and {destination.currency_code}"
            )
        return amount

    def _touch_preferences(self, account_id: Optional[int], working: Dict[int, AccountRecord]) -> None:
        if self._preferences is None or account_id not in working:
            return
        self._preferences.update_last_used_account(working[account_id])

    def _create(
        self,
        tx_type: TransactionType,
        amount: Number,
        account: AccountRecord,
        *,
        category: Optional[CategoryRecord] = None,
        to_account: Optional[AccountRecord] = None,
        target_amount: Optional[Number] = None,
        note: Optional[str] = None,
        date: Optional[date_cls] = None,
    ) -> TransactionRecord:
        magnitude = _positive(amount, "amount")
        account_id = self._require_saved(account, "source")
        to_account_id = self._require_saved(to_account, "destination") if to_account else None
        category_id = category.id if category is not None else None
        if tx_type is not TransactionType.TRANSFER and category is not None and category_id is None:
            raise InvalidArgument("category has not been saved")

        with self._locked([account_id, to_account_id]):
            working = self._load(i for i in (account_id, to_account_id) if i is not None)
            for required in (account_id, to_account_id):
                if required is not None and required not in working:
                    raise NotFound(f"account {required} not found")
            target = None
            if tx_type is TransactionType.TRANSFER and to_account_id is not None:
                target = self._resolve_target(
                    magnitude, target_amount, working[account_id], working[to_account_id]
                )
            elif target_amount is not None:
                raise InvalidArgument("target amount is only valid for transfers")
            transaction = TransactionRecord(
                amount=magnitude,
                transfer_target_amount=target,
                note=clean_note(note),
                date=date or date_cls.today(),
                type=tx_type,
                category_id=category_id,
                account_id=account_id,
                to_account_id=to_account_id,
            )
            validate_shape(transaction)
            self._check_category(category_id, tx_type)

            self._apply(transaction, working)
            try:
                self._persist(working, transaction)
            except PersistenceError:
                transaction.id = None
                raise
        self._sync(working, (account, to_account))
        self._touch_preferences(account_id, working)
        logger.info(
            "%s %s saved on account %s", tx_type.value, transaction.id, account_id
        )
        return transaction

    # Public API -----------------------------------------------
    def apply_expense(
        self,
        amount: Number,
        account: AccountRecord,
        category: CategoryRecord,
        note: Optional[str] = None,
        date: Optional[date_cls] = None,
    ) -> TransactionRecord:
        """Record spending: ``account.balance -= amount``."""
        return self._create(
            TransactionType.EXPENSE, amount, account, category=category, note=note, date=date
        )

    def apply_income(
        self,
        amount: Number,
        account: AccountRecord,
        category: CategoryRecord,
        note: Optional[str] = None,
        date: Optional[date_cls] = None,
    ) -> TransactionRecord:
        """Record earnings: ``account.balance += amount``."""
        return self._create(
            TransactionType.INCOME, amount, account, category=category, note=note, date=date
        )

    def apply_transfer(
        self,
        amount: Number,
        target_amount: Optional[Number],
        from_account: AccountRecord,
        to_account: AccountRecord,
        note: Optional[str] = None,
        date: Optional[date_cls] = None,
    ) -> TransactionRecord:
        """Move money: ``from -= amount``, ``to += target_amount``.

        ``target_amount`` is taken as given. When omitted it defaults to
        ``amount``, which is only allowed between accounts sharing a currency.
        """
        if from_account.id is not None and from_account.id == to_account.id:
            raise InvalidArgument("cannot transfer to the same account")
        return self._create(
            TransactionType.TRANSFER,
            amount,
            from_account,
            to_account=to_account,
            target_amount=target_amount,
            note=note,
            date=date,
        )

    def update(
        self,
        transaction: TransactionRecord,
        new_amount: Number,
        new_type: TransactionType,
        new_target_amount: Union[Optional[Number], object] = _UNSET,
        new_account: Union[Optional[AccountRecord], object] = _UNSET,
        new_to_account: Union[Optional[AccountRecord], object] = _UNSET,
        new_category: Union[Optional[CategoryRecord], object] = _UNSET,
        new_note: Union[Optional[str], object] = _UNSET,
        new_date: Union[date_cls, object] = _UNSET,
        accounts: Iterable[AccountRecord] = (),
    ) -> TransactionRecord:
        """Revert the current effect, rewrite the fields, apply the new effect.

        The current effect is the one of the stored row, not of the passed
        record. Omitted ``new_*`` arguments keep the stored value, except that
        a transaction that stops being a transfer loses its destination and
        one that becomes a transfer loses its category. ``accounts`` are extra
        records to refresh in place (e.g. the previous account).
        """
        if transaction.id is None:
            raise InvalidArgument("transaction has not been saved")
        try:
            new_type = TransactionType(new_type)
        except ValueError as e:
            raise InvalidArgument(f"unknown transaction type {new_type!r}") from e
        magnitude = _positive(new_amount, "amount")
        is_transfer = new_type is TransactionType.TRANSFER

        explicit: Dict[str, Optional[int]] = {}
        if new_account is not _UNSET:
            explicit["account_id"] = (
                self._require_saved(new_account, "source") if new_account else None
            )
        if new_to_account is not _UNSET:
            explicit["to_account_id"] = (
                self._require_saved(new_to_account, "destination") if new_to_account else None
            )
        extra_ids = [i for i in explicit.values() if i is not None]

        with self._locked_stored(transaction, extra_ids) as current:
            account_id = explicit.get("account_id", current.account_id)
            to_account_id = current.to_account_id if is_transfer else None
            to_account_id = explicit.get("to_account_id", to_account_id)
            category_id = None if is_transfer else current.category_id
            if new_category is not _UNSET:
                category_id = new_category.id if new_category is not None else None

            old_ids = set(signed_effects(current))
            new_ids = [i for i in (account_id, to_account_id) if i is not None]
            working = self._load(old_ids | set(new_ids))
            for required in new_ids:
                if required not in working:
                    raise NotFound(f"account {required} not found")

            target = None
            if is_transfer and account_id is not None and to_account_id is not None:
                requested = new_target_amount
                if requested is _UNSET:
                    keep = (
                        current.type is TransactionType.TRANSFER
                        and working[account_id].currency_code
                        != working[to_account_id].currency_code
                    )
                    requested = current.transfer_target_amount if keep else None
                target = self._resolve_target(
                    magnitude, requested, working[account_id], working[to_account_id]
                )
            elif new_target_amount is not _UNSET and new_target_amount is not None:
                raise InvalidArgument("target amount is only valid for transfers")

            updated = current.model_copy(
                update={
                    "amount": magnitude,
                    "transfer_target_amount": target,
                    "type": new_type,
                    "account_id": account_id,
                    "to_account_id": to_account_id,
                    "category_id": category_id,
                    "note": current.note if new_note is _UNSET else clean_note(new_note),
                    "date": current.date if new_date is _UNSET else new_date,
                }
            )
            validate_shape(updated)
            self._check_category(category_id, new_type)

            self._revert(current, working)
            self._apply(updated, working)
            self._persist(working, updated)

        for field in TransactionRecord.model_fields:
            setattr(transaction, field, getattr(updated, field))
        self._sync(
            working,
            [
                *accounts,
                new_account if new_account is not _UNSET else None,
                new_to_account if new_to_account is not _UNSET else None,
            ],
        )
        self._touch_preferences(account_id, working)
        logger.info("transaction %s updated (%s)", transaction.id, new_type.value)
        return transaction

    def delete(
        self, transaction: TransactionRecord, accounts: Iterable[AccountRecord] = ()
    ) -> None:
        """Revert the stored transaction's effect once, then remove it.

        Raises ``NotFound`` when the transaction is already gone.
        """
        with self._locked_stored(transaction) as current:
            working = self._load(signed_effects(current))
            self._revert(current, working)
            self._persist(working, current, delete=True)
        self._sync(working, accounts)
        logger.info("transaction %s deleted", transaction.id)

    def delete_account(
        self, account: AccountRecord, accounts: Iterable[AccountRecord] = ()
    ) -> int:
        """Delete an account together with every transaction touching it.

        The other leg of each removed transfer is reverted on its account in
        the same write, so counterpart balances keep matching their ledgers.
        Returns the number of removed transactions. ``accounts`` are
        counterpart records to refresh in place.
        """
        account_id = self._require_saved(account, "deleted")
        counterparts: Set[int] = set()
        while True:
            with self._locked([account_id, *counterparts]):
                if self._store.get_account(account_id) is None:
                    raise NotFound(f"account {account_id} not found")
                transactions = self._store.transactions_for_account(account_id)
                legs: Set[int] = set()
                for transaction in transactions:
                    legs.update(signed_effects(transaction))
                legs.discard(account_id)
                if legs <= counterparts:
                    working = self._load(legs)
                    for transaction in transactions:
                        for leg_id, delta in signed_effects(transaction).items():
                            if leg_id in working:
                                working[leg_id].balance -= delta
                    try:
                        removed = self._store.delete_account(account_id, list(working.values()))
                    except ValueError as e:
                        raise NotFound(f"account {account_id} not found") from e
                    except Exception as e:
                        logger.error("account %s delete failed: %s", account_id, e)
                        raise PersistenceError(f"failed to delete account: {e}") from e
                    break
            counterparts |= legs
        self._sync(working, accounts)
        logger.info(
            "account %s deleted with %s transactions (%s counterparts adjusted)",
            account_id,
            removed,
            len(working),
        )
        return removed

    def set_hidden(self, transaction: TransactionRecord, hidden: bool) -> TransactionRecord:
        """Hide or show a transaction. Hidden transactions still count toward balances."""
        if transaction.id is None:
            raise InvalidArgument("transaction has not been saved")
        try:
            self._store.set_transaction_hidden(transaction.id, hidden)
        except ValueError as e:
            raise NotFound(str(e)) from e
        transaction.is_hidden = hidden
        return transaction

    def reconcile(self, account: AccountRecord) -> ReconcileReport:
        """Recompute an account's balance from its live transactions."""
        account_id = self._require_saved(account, "reconciled")
        with self._locked([account_id]):
            current = self._store.get_account(account_id)
            if current is None:
                raise NotFound(f"account {account_id} not found")
            transactions = self._store.transactions_for_account(account_id)
        expected = current.initial_balance
        for transaction in transactions:
            expected += signed_effects(transaction).get(account_id, ZERO)
        report = ReconcileReport(
            account_id=account_id,
            stored=current.balance,
            expected=expected,
            transactions=len(transactions),
        )
        if not report.is_consistent:
            logger.warning(
                "account %s balance %s differs from ledger total %s",
                account_id,
                report.stored,
                report.expected,
            )
        return report


__all__ = [
    "LedgerEngine",
    "LedgerStore",
    "ReconcileReport",
    "signed_effects",
    "validate_shape",
]
