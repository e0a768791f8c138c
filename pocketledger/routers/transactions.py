from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from pocketledger.core.errors import InvalidArgument, NotFound
from pocketledger.db.dal import Database
from pocketledger.models import (
    CategoryRecord,
    ExpenseIn,
    IncomeIn,
    TransactionOut,
    TransactionRecord,
    TransactionUpdateIn,
    TransferIn,
)
from pocketledger.models.transaction import HideIn
from pocketledger.services.ledger import LedgerEngine, signed_effects
from .accounts import load_account
from .deps import get_db, get_engine

"""Transactions router.

Every balance change goes through the ledger engine. The engine serializes
work with thread locks, so the mutating routes are plain ``def`` handlers and
run on the threadpool instead of the event loop.
"""

router = APIRouter(prefix="/transactions", tags=["transactions"])


# Helpers ----------------------------------------------------------


def _to_out(tx: TransactionRecord, account_id: Optional[int] = None) -> TransactionOut:
    effects = signed_effects(tx)
    key = account_id if account_id in effects else tx.account_id
    signed = effects.get(key, tx.amount)
    return TransactionOut(**tx.model_dump(), signed_amount=signed)


def _load_transaction(db: Database, transaction_id: int) -> TransactionRecord:
    tx = db.get_transaction(transaction_id)
    if tx is None:
        raise NotFound(f"transaction {transaction_id} not found")
    return tx


def _load_category(db: Database, category_id: int) -> CategoryRecord:
    category = db.get_category(category_id)
    if category is None:
        raise NotFound(f"category {category_id} not found")
    return category


# Routes -----------------------------------------------------------
@router.get("", response_model=List[TransactionOut], summary="List transactions, newest first")
async def list_transactions(
    account_id: Optional[int] = Query(None, description="Either leg touches this account"),
    start_date: Optional[date] = Query(None, description="Filter: start date inclusive"),
    end_date: Optional[date] = Query(None, description="Filter: end date inclusive"),
    include_hidden: bool = Query(True),
    db: Database = Depends(get_db),
):
    if start_date and end_date and start_date > end_date:
        raise InvalidArgument("start_date cannot be after end_date")
    rows = db.list_transactions(
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        include_hidden=include_hidden,
    )
    return [_to_out(tx, account_id) for tx in rows]


@router.post("/expense", response_model=TransactionOut, status_code=201, summary="Record an expense")
def create_expense(
    payload: ExpenseIn,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    tx = engine.apply_expense(
        payload.amount,
        load_account(db, payload.account_id),
        _load_category(db, payload.category_id),
        note=payload.note,
        date=payload.date,
    )
    return _to_out(tx)


@router.post("/income", response_model=TransactionOut, status_code=201, summary="Record income")
def create_income(
    payload: IncomeIn,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    tx = engine.apply_income(
        payload.amount,
        load_account(db, payload.account_id),
        _load_category(db, payload.category_id),
        note=payload.note,
        date=payload.date,
    )
    return _to_out(tx)


@router.post("/transfer", response_model=TransactionOut, status_code=201, summary="Move money between accounts")
def create_transfer(
    payload: TransferIn,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    tx = engine.apply_transfer(
        payload.amount,
        payload.target_amount,
        load_account(db, payload.from_account_id),
        load_account(db, payload.to_account_id),
        note=payload.note,
        date=payload.date,
    )
    return _to_out(tx)


@router.patch("/{transaction_id}", response_model=TransactionOut, summary="Edit a transaction (partial)")
def patch_transaction(
    transaction_id: int,
    payload: TransactionUpdateIn,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    tx = _load_transaction(db, transaction_id)
    given = payload.model_fields_set
    changes = {}
    if "target_amount" in given:
        changes["new_target_amount"] = payload.target_amount
    if "account_id" in given:
        if payload.account_id is None:
            raise InvalidArgument("account_id cannot be cleared")
        changes["new_account"] = load_account(db, payload.account_id)
    if "to_account_id" in given:
        changes["new_to_account"] = (
            load_account(db, payload.to_account_id) if payload.to_account_id is not None else None
        )
    if "category_id" in given:
        changes["new_category"] = (
            _load_category(db, payload.category_id) if payload.category_id is not None else None
        )
    if "note" in given:
        changes["new_note"] = payload.note
    if "date" in given:
        if payload.date is None:
            raise InvalidArgument("date cannot be cleared")
        changes["new_date"] = payload.date
    engine.update(
        tx,
        payload.amount if payload.amount is not None else tx.amount,
        payload.type or tx.type,
        **changes,
    )
    return _to_out(tx)


@router.delete("/{transaction_id}", summary="Delete a transaction and revert its effect")
def delete_transaction(
    transaction_id: int,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    engine.delete(_load_transaction(db, transaction_id))
    return {"status": "deleted", "id": transaction_id}


@router.post("/{transaction_id}/hide", response_model=TransactionOut, summary="Hide or show a transaction")
def hide_transaction(
    transaction_id: int,
    payload: HideIn,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    tx = engine.set_hidden(_load_transaction(db, transaction_id), payload.hidden)
    return _to_out(tx)
