"""
Voucher model.

A voucher is the user-facing envelope around a set of lines:
a sales bill, a purchase, a payment, a receipt, a contra transfer
or a plain journal. It stays a DRAFT while it is being edited and
produces exactly one journal entry when it is posted.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Date, DateTime, Numeric, ForeignKey, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core_ledger.models.base import Base
from core_ledger.models.enums import VoucherType, VoucherStatus, EntrySide


@dataclass(frozen=True)
class VoucherConvention:
    """Numbering prefix and the usual debit/credit roles for a voucher type."""
    prefix: str
    label: str
    shortcut: str
    debit_role: str
    credit_role: str


VOUCHER_CONVENTIONS: dict[VoucherType, VoucherConvention] = {
    VoucherType.SALES: VoucherConvention("SAL", "Sales", "F8", "AR/Cash", "Revenue + GST"),
    VoucherType.PURCHASE: VoucherConvention("PUR", "Purchase", "F9", "Expense + GST ITC", "AP/Cash"),
    VoucherType.PAYMENT: VoucherConvention("PAY", "Payment", "F5", "Expense/AP", "Cash/Bank"),
    VoucherType.RECEIPT: VoucherConvention("REC", "Receipt", "F6", "Cash/Bank", "Revenue/AR"),
    VoucherType.CONTRA: VoucherConvention("CON", "Contra", "F4", "Cash/Bank", "Bank/Cash"),
    VoucherType.JOURNAL: VoucherConvention("JRN", "Journal", "F7", "Custom", "Custom"),
}


VALID_TRANSITIONS: dict[VoucherStatus, set[VoucherStatus]] = {
    VoucherStatus.DRAFT: {VoucherStatus.POSTED, VoucherStatus.VOID},
    VoucherStatus.POSTED: {VoucherStatus.VOID},
    VoucherStatus.VOID: set(),  # Terminal state
}


class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (
        # One voucher per template occurrence.
        UniqueConstraint(
            "recurring_template_id", "recurring_date",
            name="uq_vouchers_recurring_occurrence",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    number: Mapped[str | None] = mapped_column(
        String(30), unique=True, nullable=True, index=True
    )
    voucher_type: Mapped[VoucherType] = mapped_column(
        SAEnum(VoucherType, name="voucher_type_enum", create_constraint=True),
        nullable=False,
    )
    voucher_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    party_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    party_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    narration: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[VoucherStatus] = mapped_column(
        SAEnum(VoucherStatus, name="voucher_status_enum", create_constraint=True),
        nullable=False,
        default=VoucherStatus.DRAFT,
    )
    journal_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True, unique=True
    )
    recurring_template_id: Mapped[int | None] = mapped_column(
        ForeignKey("recurring_templates.id"), nullable=True, index=True
    )
    recurring_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lines: Mapped[list["VoucherLine"]] = relationship(
        back_populates="voucher",
        order_by="VoucherLine.line_number",
        cascade="all, delete-orphan",
    )
    journal_entry: Mapped[Optional["JournalEntry"]] = relationship(
        back_populates="voucher"
    )

    @property
    def convention(self) -> VoucherConvention:
        return VOUCHER_CONVENTIONS[self.voucher_type]

    @property
    def amount(self) -> Decimal:
        """Voucher value: the debit side total."""
        return sum(
            (l.amount for l in self.lines if l.side == EntrySide.DEBIT),
            Decimal("0.00"),
        )

    def can_transition_to(self, new_status: VoucherStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<Voucher {self.number} {self.voucher_type.value} ({self.status.value})>"


class VoucherLine(Base):
    __tablename__ = "voucher_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    voucher_id: Mapped[int] = mapped_column(
        ForeignKey("vouchers.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 2), nullable=False)
    side: Mapped[EntrySide] = mapped_column(
        SAEnum(EntrySide, name="entry_side_enum"),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    voucher: Mapped["Voucher"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<VoucherLine {self.side.value} {self.amount}>"
