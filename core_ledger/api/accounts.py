"""
Account setup and balance endpoints.

Accounts are created here for chart-of-accounts setup only. Their
balances change exclusively through postings.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core_ledger.exceptions import LedgerError
from core_ledger.models.base import get_db
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.schemas.account import (
    AccountCreate,
    AccountResponse,
    AccountBalanceResponse,
    LedgerEntryResponse,
    IntegrityResponse,
)

router = APIRouter(tags=["Accounts"])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
):
    """Create an account. The normal side defaults from the account type."""
    store = LedgerStore(db)
    try:
        account = store.create_account(request)
        db.commit()
        return account
    except LedgerError:
        db.rollback()
        raise


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    return LedgerStore(db).get_account(account_id)


@router.get(
    "/accounts/{account_id}/balance",
    response_model=AccountBalanceResponse,
)
def get_account_balance(
    account_id: int,
    db: Session = Depends(get_db),
):
    """
    Cached balance, the same balance on the normal side, and the
    balance rebuilt from the ledger trail. The first and last always
    agree.
    """
    store = LedgerStore(db)
    account = store.get_account(account_id)
    return AccountBalanceResponse(
        account_id=account.id,
        account_code=account.code,
        account_type=account.account_type,
        normal_balance=account.normal_balance,
        balance=account.balance,
        natural_balance=store.natural_balance(account),
        replayed_balance=store.replay_balance(account_id),
    )


@router.get(
    "/accounts/{account_id}/entries",
    response_model=list[LedgerEntryResponse],
)
def get_account_entries(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Ledger trail for an account, oldest first."""
    return LedgerStore(db).get_entries(account_id)


@router.get("/ledger/integrity", response_model=IntegrityResponse)
def check_integrity(db: Session = Depends(get_db)):
    """Total debits vs total credits across the whole ledger."""
    return LedgerStore(db).check_integrity()
