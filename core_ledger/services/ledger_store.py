"""
Ledger store: accounts, their cached balances and the append-only
ledger trail.

This is the only module that writes to ``accounts.balance`` or to
``ledger_entries``. Every balance change goes through
append_ledger_entry, which locks the account row, writes the entry
with its running balance snapshot and moves the cache, all in the
caller's transaction.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from core_ledger.exceptions import NotFound, ValidationError
from core_ledger.models.account import Account
from core_ledger.models.ledger_entry import LedgerEntry
from core_ledger.models.enums import EntrySide, NORMAL_BALANCE
from core_ledger.money import ZERO, to_money
from core_ledger.schemas.account import AccountCreate

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    All ledger reads and writes pass through this store.

    The store takes a database session as a constructor argument.
    The caller controls the transaction boundary: it decides when
    to commit or roll back.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, request: AccountCreate) -> Account:
        """
        Create an account. Used by chart-of-accounts setup.

        Raises ValidationError if the code already exists.
        """
        existing = self.db.execute(
            select(Account).where(Account.code == request.code)
        ).scalar_one_or_none()

        if existing:
            raise ValidationError(
                f"Account with code '{request.code}' already exists"
            )

        account = Account(
            code=request.code,
            name=request.name,
            account_type=request.account_type,
            normal_balance=(
                request.normal_balance or NORMAL_BALANCE[request.account_type]
            ),
            balance=ZERO,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFound("Account", account_id)
        return account

    def get_account_by_code(
        self, code: str, active_only: bool = True
    ) -> Account | None:
        stmt = select(Account).where(Account.code == code)
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_account(self, account_id: int) -> Account:
        """
        Load an account row under a write lock.

        SELECT ... FOR UPDATE holds the row until the transaction
        ends, so two postings against the same account serialize on
        it instead of overwriting each other's balance.
        populate_existing makes sure the balance we read is the one
        in the database, not a stale copy from the identity map.
        """
        account = self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if not account:
            raise NotFound("Account", account_id)
        return account

    def append_ledger_entry(
        self,
        account_id: int,
        entry_date: date,
        debit: Decimal,
        credit: Decimal,
        entry_id: int,
        line_id: int | None = None,
    ) -> LedgerEntry:
        """
        Apply one debit or credit to an account.

        new_balance = balance + debit - credit. The ledger entry keeps
        new_balance as its running balance, and the account cache is
        set to the same value in the same unit of work.
        """
        debit = to_money(debit)
        credit = to_money(credit)

        account = self.lock_account(account_id)
        new_balance = to_money(account.balance) + debit - credit

        entry = LedgerEntry(
            account_id=account.id,
            entry_id=entry_id,
            line_id=line_id,
            entry_date=entry_date,
            debit=debit,
            credit=credit,
            running_balance=new_balance,
        )
        self.db.add(entry)
        account.balance = new_balance
        self.db.flush()

        logger.debug(
            "Account %s: dr=%s cr=%s balance=%s",
            account.code, debit, credit, new_balance,
        )
        return entry

    def get_entries(self, account_id: int) -> list[LedgerEntry]:
        """Return all ledger entries for an account in creation order."""
        self.get_account(account_id)
        entries = self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.id)
        ).scalars().all()
        return list(entries)

    def replay_balance(self, account_id: int) -> Decimal:
        """
        Rebuild an account's balance from its ledger entries.

        Always equals Account.balance; a difference means the cache
        was written outside this store.
        """
        balance = ZERO
        for entry in self.get_entries(account_id):
            balance += to_money(entry.debit) - to_money(entry.credit)
        return balance

    @staticmethod
    def natural_balance(account: Account) -> Decimal:
        """
        Balance expressed on the account's normal side.

        Debit-normal accounts (assets, expenses): debits - credits.
        Credit-normal accounts (liabilities, equity, revenue):
        credits - debits.
        """
        balance = to_money(account.balance)
        if account.normal_balance == EntrySide.DEBIT:
            return balance
        return -balance

    def check_integrity(self) -> dict:
        """
        Verify that all ledger debits equal all ledger credits.

        Holds as long as every posting went through the engine.
        """
        total_debits, total_credits = self.db.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.debit), 0),
                func.coalesce(func.sum(LedgerEntry.credit), 0),
            )
        ).one()

        total_debits = to_money(total_debits)
        total_credits = to_money(total_credits)
        return {
            "total_debits": total_debits,
            "total_credits": total_credits,
            "difference": total_debits - total_credits,
            "is_balanced": total_debits == total_credits,
        }
