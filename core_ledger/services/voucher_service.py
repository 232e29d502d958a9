"""
Voucher service: user-facing transaction envelopes.

A voucher is created as a DRAFT and may be unbalanced while it is
being edited. Posting is the only way it becomes POSTED: the lines
must balance, the posting engine writes exactly one journal entry,
and the voucher keeps a link to it.

Void policy: voiding a posted voucher also reverses its journal
entry through the posting engine, so the ledger never keeps the
effect of a cancelled voucher.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from core_ledger.exceptions import (
    AlreadyPosted,
    InvalidStateTransition,
    NoLines,
    NotFound,
    ValidationError,
)
from core_ledger.models.voucher import (
    Voucher,
    VoucherLine,
    VOUCHER_CONVENTIONS,
)
from core_ledger.models.journal_entry import JournalEntry
from core_ledger.models.enums import SourceType, VoucherStatus, VoucherType
from core_ledger.money import to_money
from core_ledger.schemas.journal import PostingHeader, PostingLine
from core_ledger.schemas.voucher import VoucherCreate, VoucherTypeResponse
from core_ledger.services.posting_engine import (
    PostingEngine,
    all_or_nothing,
    check_balance,
)

logger = logging.getLogger(__name__)


def parse_voucher_type(value) -> VoucherType:
    """Accept 'sales', 'SALES' or VoucherType.SALES."""
    if isinstance(value, VoucherType):
        return value
    try:
        return VoucherType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown voucher type '{value}'",
            details={"allowed": [t.value for t in VoucherType]},
        )


class VoucherService:

    def __init__(self, db: Session):
        self.db = db
        self.engine = PostingEngine(db)

    @staticmethod
    def voucher_types() -> list[VoucherTypeResponse]:
        return [
            VoucherTypeResponse(
                type=voucher_type,
                label=convention.label,
                prefix=convention.prefix,
                shortcut=convention.shortcut,
                debit_role=convention.debit_role,
                credit_role=convention.credit_role,
            )
            for voucher_type, convention in VOUCHER_CONVENTIONS.items()
        ]

    def create(
        self,
        request: VoucherCreate,
        recurring_template_id: int | None = None,
        recurring_date: date | None = None,
    ) -> Voucher:
        """
        Create a DRAFT voucher.

        Checks the type and the line shapes. Balance is not checked
        here; drafts may be unbalanced until they are posted.
        """
        voucher_type = parse_voucher_type(request.voucher_type)

        if not request.lines:
            raise NoLines("Voucher needs at least one line")

        for number, line in enumerate(request.lines, start=1):
            if to_money(line.amount) <= 0:
                raise ValidationError(
                    f"Line {number}: amount must be positive",
                    details={"line": number, "amount": str(line.amount)},
                )

        self.engine.check_accounts(request.lines)

        voucher = Voucher(
            voucher_type=voucher_type,
            voucher_date=request.voucher_date,
            party_id=request.party_id,
            party_type=request.party_type,
            reference=request.reference,
            narration=request.narration,
            status=VoucherStatus.DRAFT,
            recurring_template_id=recurring_template_id,
            recurring_date=recurring_date,
        )
        for number, line in enumerate(request.lines, start=1):
            voucher.lines.append(VoucherLine(
                line_number=number,
                account_id=line.account_id,
                amount=to_money(line.amount),
                side=line.side,
                description=line.description,
            ))
        self.db.add(voucher)
        self.db.flush()

        voucher.number = f"{voucher.convention.prefix}-{voucher.id:06d}"
        self.db.flush()

        logger.info("Created voucher %s", voucher.number)
        return voucher

    def _lock(self, voucher_id: int) -> Voucher:
        voucher = self.db.execute(
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not voucher:
            raise NotFound("Voucher", voucher_id)
        return voucher

    def post(self, voucher_id: int) -> tuple[Voucher, JournalEntry]:
        """
        Post a DRAFT voucher.

        The voucher row is locked while its status is checked, so two
        concurrent posts of the same voucher produce one journal entry
        and one AlreadyPosted.
        """
        voucher = self._lock(voucher_id)

        if voucher.status == VoucherStatus.POSTED:
            logger.warning("Voucher %s is already posted", voucher.number)
            raise AlreadyPosted("Voucher", voucher_id)
        if voucher.status != VoucherStatus.DRAFT:
            raise InvalidStateTransition(
                f"Cannot post voucher {voucher_id} from {voucher.status.value}"
            )
        if not voucher.lines:
            raise NoLines(f"Voucher {voucher.number} has no lines")

        lines = [
            PostingLine(
                account_id=line.account_id,
                amount=line.amount,
                side=line.side,
                description=line.description,
            )
            for line in voucher.lines
        ]
        check_balance(lines)

        source_type = (
            SourceType.RECURRING
            if voucher.recurring_template_id is not None
            else SourceType.VOUCHER
        )
        entry = self.engine.post(lines, PostingHeader(
            entry_date=voucher.voucher_date,
            description=voucher.narration or f"Voucher {voucher.number}",
            source_type=source_type,
            source_ref=str(voucher.id),
        ))

        with all_or_nothing(self.db, "Voucher posting"):
            voucher.journal_entry_id = entry.id
            voucher.status = VoucherStatus.POSTED
            self.db.flush()

        logger.info("Posted voucher %s as %s", voucher.number, entry.number)
        return voucher, entry

    def void(self, voucher_id: int, reversal_date: date | None = None) -> Voucher:
        voucher = self._lock(voucher_id)

        if not voucher.can_transition_to(VoucherStatus.VOID):
            raise InvalidStateTransition(
                f"Cannot void voucher {voucher_id} from {voucher.status.value}"
            )

        if voucher.status == VoucherStatus.POSTED and voucher.journal_entry_id:
            self.engine.void(voucher.journal_entry_id, reversal_date)

        with all_or_nothing(self.db, "Voucher void"):
            voucher.status = VoucherStatus.VOID
            self.db.flush()

        logger.info("Voided voucher %s", voucher.number)
        return voucher

    def get(self, voucher_id: int) -> Voucher:
        voucher = self.db.get(Voucher, voucher_id)
        if not voucher:
            raise NotFound("Voucher", voucher_id)
        return voucher

    def list_vouchers(
        self,
        voucher_type: str | None = None,
        status: VoucherStatus | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        limit: int = 100,
    ) -> list[Voucher]:
        stmt = select(Voucher)
        if voucher_type:
            stmt = stmt.where(Voucher.voucher_type == parse_voucher_type(voucher_type))
        if status:
            stmt = stmt.where(Voucher.status == status)
        if from_date:
            stmt = stmt.where(Voucher.voucher_date >= from_date)
        if to_date:
            stmt = stmt.where(Voucher.voucher_date <= to_date)
        stmt = stmt.order_by(Voucher.voucher_date.desc(), Voucher.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())
