"""
Posting engine: the only way a balanced line set reaches the ledger.

It enforces:
1. At least two lines, every amount strictly positive
2. Total debits equal total credits, exactly
3. Every referenced account exists and is active
4. Header, lines, ledger entries and balance updates are written
   as one unit: all of them or none of them

Validation happens before the first write. If anything fails after
the first write the session is rolled back before the error is
raised, so a partial posting is never observable.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core_ledger.config import get_settings
from core_ledger.exceptions import (
    AlreadyPosted,
    InvalidStateTransition,
    NotFound,
    StorageFailure,
    UnbalancedEntry,
    ValidationError,
)
from core_ledger.models.account import Account
from core_ledger.models.journal_entry import JournalEntry, JournalLine
from core_ledger.models.enums import EntrySide, JournalStatus, SourceType
from core_ledger.money import ZERO, to_money
from core_ledger.schemas.journal import PostingHeader, PostingLine
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.notifications import queue_journal_posted

logger = logging.getLogger(__name__)


def line_totals(lines: list[PostingLine]) -> tuple[Decimal, Decimal]:
    """Sum debit-side and credit-side amounts."""
    total_debit = sum(
        (to_money(l.amount) for l in lines if l.side == EntrySide.DEBIT), ZERO
    )
    total_credit = sum(
        (to_money(l.amount) for l in lines if l.side == EntrySide.CREDIT), ZERO
    )
    return total_debit, total_credit


def check_balance(lines: list[PostingLine]) -> tuple[Decimal, Decimal]:
    """Return (total_debit, total_credit) or raise UnbalancedEntry."""
    total_debit, total_credit = line_totals(lines)
    if total_debit != total_credit:
        logger.warning(
            "Rejected unbalanced entry: debits=%s credits=%s",
            total_debit, total_credit,
        )
        raise UnbalancedEntry(total_debit, total_credit)
    return total_debit, total_credit


@contextmanager
def all_or_nothing(db: Session, action: str):
    """
    Roll the session back if the block fails.

    Storage errors are re-raised as StorageFailure; anything else
    is re-raised unchanged.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s failed in storage, rolled back: %s", action, e)
        raise StorageFailure(f"{action} failed: {e}") from e
    except Exception:
        db.rollback()
        logger.exception("%s failed, rolled back", action)
        raise


class PostingEngine:
    """
    Creates journal entries and applies them to the ledger.

    Like every service here it works inside the caller's session;
    the caller commits. On failure the engine rolls the session back
    itself before raising.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerStore(db)
        self.settings = get_settings()

    # --- Validation ---

    def validate_lines(self, lines: list[PostingLine]) -> tuple[Decimal, Decimal]:
        if len(lines) < 2:
            raise ValidationError(
                "An entry needs at least two lines",
                details={"line_count": len(lines)},
            )
        for number, line in enumerate(lines, start=1):
            if to_money(line.amount) <= 0:
                raise ValidationError(
                    f"Line {number}: amount must be positive",
                    details={"line": number, "amount": str(line.amount)},
                )
        return check_balance(lines)

    def check_accounts(self, lines: list[PostingLine]) -> None:
        account_ids = {line.account_id for line in lines}
        accounts = self.db.execute(
            select(Account).where(Account.id.in_(account_ids))
        ).scalars().all()
        accounts_by_id = {a.id: a for a in accounts}

        missing = sorted(account_ids - set(accounts_by_id))
        if missing:
            raise NotFound("Account", missing[0] if len(missing) == 1 else missing)

        for account in accounts_by_id.values():
            if not account.is_active:
                raise ValidationError(f"Account {account.code} is not active")

    def _all_or_nothing(self, action: str):
        return all_or_nothing(self.db, action)

    # --- Writes ---

    def _assign_number(self, entry: JournalEntry) -> None:
        # Derived from the primary key, so unique across concurrent postings.
        entry.number = f"{self.settings.JOURNAL_NUMBER_PREFIX}-{entry.id:06d}"

    def _create_entry(
        self,
        lines: list[PostingLine],
        header: PostingHeader,
        status: JournalStatus,
        total_debit: Decimal,
        total_credit: Decimal,
        reversal_of_id: int | None = None,
    ) -> JournalEntry:
        entry = JournalEntry(
            entry_date=header.entry_date,
            description=header.description,
            source_type=header.source_type,
            source_ref=header.source_ref,
            status=status,
            total_debit=total_debit,
            total_credit=total_credit,
            reversal_of_id=reversal_of_id,
        )
        self.db.add(entry)
        self.db.flush()
        self._assign_number(entry)

        for number, line in enumerate(lines, start=1):
            amount = to_money(line.amount)
            entry.lines.append(JournalLine(
                line_number=number,
                account_id=line.account_id,
                debit=amount if line.side == EntrySide.DEBIT else ZERO,
                credit=amount if line.side == EntrySide.CREDIT else ZERO,
                description=line.description or header.description,
            ))
        self.db.flush()
        return entry

    def _apply_to_ledger(self, entry: JournalEntry) -> None:
        # Account rows are always locked in ascending id order.
        for account_id in sorted({line.account_id for line in entry.lines}):
            self.ledger.lock_account(account_id)
        for line in entry.lines:
            self.ledger.append_ledger_entry(
                account_id=line.account_id,
                entry_date=entry.entry_date,
                debit=line.debit,
                credit=line.credit,
                entry_id=entry.id,
                line_id=line.id,
            )
        entry.status = JournalStatus.POSTED
        entry.posted_at = datetime.utcnow()
        self.db.flush()

    def post(
        self,
        lines: list[PostingLine],
        header: PostingHeader,
        reversal_of_id: int | None = None,
    ) -> JournalEntry:
        """
        Post a balanced set of lines as a new journal entry.

        There is no intermediate draft: the entry is created POSTED.
        Callers that need a draft stage (vouchers, manual entries)
        keep their own and come here when they post.
        """
        total_debit, total_credit = self.validate_lines(lines)
        self.check_accounts(lines)

        with self._all_or_nothing("Posting"):
            entry = self._create_entry(
                lines, header, JournalStatus.POSTED,
                total_debit, total_credit, reversal_of_id,
            )
            self._apply_to_ledger(entry)

        queue_journal_posted(self.db, entry)
        logger.info(
            "Posted %s (%s %s) debit=%s credit=%s",
            entry.number, entry.source_type.value, entry.source_ref or "-",
            total_debit, total_credit,
        )
        return entry

    # --- Manual journal entries ---

    def create_draft(
        self, lines: list[PostingLine], header: PostingHeader
    ) -> JournalEntry:
        """
        Save a manual journal entry as a DRAFT.

        Drafts must already balance; they have no ledger effect until
        post_draft is called.
        """
        total_debit, total_credit = self.validate_lines(lines)
        self.check_accounts(lines)

        with self._all_or_nothing("Draft creation"):
            entry = self._create_entry(
                lines, header, JournalStatus.DRAFT, total_debit, total_credit,
            )
        logger.info("Created draft journal entry %s", entry.number)
        return entry

    def _lock_entry(self, entry_id: int) -> JournalEntry:
        entry = self.db.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not entry:
            raise NotFound("JournalEntry", entry_id)
        return entry

    def post_draft(self, entry_id: int) -> JournalEntry:
        """Move a DRAFT journal entry to POSTED and apply it to the ledger."""
        entry = self._lock_entry(entry_id)

        if entry.status == JournalStatus.POSTED:
            raise AlreadyPosted("JournalEntry", entry_id)
        if not entry.can_transition_to(JournalStatus.POSTED):
            raise InvalidStateTransition(
                f"Cannot post journal entry {entry_id} "
                f"from {entry.status.value}"
            )

        lines = [
            PostingLine(
                account_id=line.account_id,
                amount=line.amount,
                side=line.side,
                description=line.description,
            )
            for line in entry.lines
        ]
        self.validate_lines(lines)
        self.check_accounts(lines)

        with self._all_or_nothing("Posting"):
            self._apply_to_ledger(entry)

        queue_journal_posted(self.db, entry)
        logger.info("Posted draft %s", entry.number)
        return entry

    def void(
        self, entry_id: int, reversal_date: date | None = None
    ) -> JournalEntry:
        """
        Void a journal entry.

        A draft is simply marked VOID. A posted entry is never edited:
        a reversing entry with the same lines and swapped sides is
        posted, and the original is stamped VOID as an annotation that
        points at the reversal. The ledger stays append-only.
        """
        entry = self._lock_entry(entry_id)

        if not entry.can_transition_to(JournalStatus.VOID):
            raise InvalidStateTransition(
                f"Cannot void journal entry {entry_id} "
                f"from {entry.status.value}"
            )

        if entry.status == JournalStatus.DRAFT:
            entry.status = JournalStatus.VOID
            entry.voided_at = datetime.utcnow()
            self.db.flush()
            logger.info("Voided draft %s", entry.number)
            return entry

        reversal_lines = [
            PostingLine(
                account_id=line.account_id,
                amount=line.amount,
                side=line.side.opposite(),
                description=f"Reversal: {line.description or entry.description}"[:255],
            )
            for line in entry.lines
        ]
        original_number = entry.number
        reversal = self.post(
            reversal_lines,
            PostingHeader(
                entry_date=reversal_date or date.today(),
                description=f"Reversal of {original_number}",
                source_type=SourceType.REVERSAL,
                source_ref=original_number,
            ),
            reversal_of_id=entry_id,
        )

        with self._all_or_nothing("Void"):
            entry.status = JournalStatus.VOID
            entry.voided_at = datetime.utcnow()
            self.db.flush()

        logger.info("Voided %s by reversal %s", original_number, reversal.number)
        return entry

    # --- Queries ---

    def get_entry(self, entry_id: int) -> JournalEntry:
        entry = self.db.get(JournalEntry, entry_id)
        if not entry:
            raise NotFound("JournalEntry", entry_id)
        return entry

    def list_entries(
        self,
        status: JournalStatus | None = None,
        source_type: SourceType | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        limit: int = 100,
    ) -> list[JournalEntry]:
        stmt = select(JournalEntry)
        if status:
            stmt = stmt.where(JournalEntry.status == status)
        if source_type:
            stmt = stmt.where(JournalEntry.source_type == source_type)
        if from_date:
            stmt = stmt.where(JournalEntry.entry_date >= from_date)
        if to_date:
            stmt = stmt.where(JournalEntry.entry_date <= to_date)
        stmt = stmt.order_by(
            JournalEntry.entry_date.desc(), JournalEntry.id.desc()
        ).limit(limit)
        return list(self.db.execute(stmt).scalars().all())
