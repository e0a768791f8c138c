from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from pocketledger.core.errors import InvalidArgument, NotFound
from pocketledger.db.dal import Database
from pocketledger.models import AccountIn, AccountOut, AccountRecord
from pocketledger.models.account import TotalBalanceOut
from pocketledger.services.app_settings import UserPreferences
from pocketledger.services.ledger import LedgerEngine
from pocketledger.services.money import format_amount
from pocketledger.services.rates.conversion import CurrencyConverter
from .deps import get_converter, get_db, get_engine, get_preferences

router = APIRouter(prefix="/accounts", tags=["accounts"])


# Helpers ----------------------------------------------------------


def _to_out(db: Database, account: AccountRecord) -> AccountOut:
    currency = db.get_currency(account.currency_code)
    formatted = format_amount(account.balance, currency) if currency else str(account.balance)
    return AccountOut(**account.model_dump(), formatted_balance=formatted)


def load_account(db: Database, account_id: int) -> AccountRecord:
    account = db.get_account(account_id)
    if account is None:
        raise NotFound(f"account {account_id} not found")
    return account


# Routes -----------------------------------------------------------
@router.get("", response_model=List[AccountOut], summary="List accounts")
async def list_accounts(db: Database = Depends(get_db)):
    return [_to_out(db, a) for a in db.list_accounts()]


@router.post("", response_model=AccountOut, status_code=201, summary="Create an account")
async def create_account(payload: AccountIn, db: Database = Depends(get_db)):
    try:
        account = db.create_account(payload)
    except ValueError as e:
        raise InvalidArgument(str(e)) from e
    return _to_out(db, account)


@router.get(
    "/total",
    response_model=TotalBalanceOut,
    summary="Sum of all balances in one currency (cached rates)",
)
async def total_balance(
    currency: Optional[str] = Query(None, description="Defaults to the base currency"),
    db: Database = Depends(get_db),
    preferences: UserPreferences = Depends(get_preferences),
    converter: CurrencyConverter = Depends(get_converter),
):
    code = (currency or preferences.base_currency_code).upper()
    if db.get_currency(code) is None:
        raise NotFound(f"currency '{code}' not found")
    accounts = db.list_accounts()
    by_currency: Dict[str, Decimal] = defaultdict(Decimal)
    for account in accounts:
        by_currency[account.currency_code] += account.balance
    return TotalBalanceOut(
        currency_code=code,
        total=converter.convert_to_base(by_currency, code),
        accounts=len(accounts),
    )


@router.get("/{account_id}", response_model=AccountOut, summary="Get one account")
async def get_account(account_id: int, db: Database = Depends(get_db)):
    return _to_out(db, load_account(db, account_id))


@router.delete("/{account_id}", summary="Delete an account and its transactions")
def delete_account(
    account_id: int,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    removed = engine.delete_account(load_account(db, account_id))
    return {"status": "deleted", "id": account_id, "transactions_removed": removed}


@router.get("/{account_id}/reconcile", summary="Check a balance against its transactions")
def reconcile_account(
    account_id: int,
    db: Database = Depends(get_db),
    engine: LedgerEngine = Depends(get_engine),
):
    report = engine.reconcile(load_account(db, account_id))
    return {
        "account_id": report.account_id,
        "stored": str(report.stored),
        "expected": str(report.expected),
        "difference": str(report.difference),
        "transactions": report.transactions,
        "consistent": report.is_consistent,
    }
