"""
Journal entry and journal line models.

A journal entry is the header of one balanced posting. Its lines
carry the individual debits and credits. Once an entry is posted,
neither the header nor the lines change again, except for the
POSTED -> VOID stamp applied when a reversal is posted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Date, DateTime, Numeric, ForeignKey, CheckConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core_ledger.models.base import Base
from core_ledger.models.enums import JournalStatus, SourceType, EntrySide


# Forward-only lifecycle. POSTED -> VOID happens only through a reversal.
VALID_TRANSITIONS: dict[JournalStatus, set[JournalStatus]] = {
    JournalStatus.DRAFT: {JournalStatus.POSTED, JournalStatus.VOID},
    JournalStatus.POSTED: {JournalStatus.VOID},
    JournalStatus.VOID: set(),
}


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    number: Mapped[str | None] = mapped_column(
        String(30), unique=True, nullable=True, index=True
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    source_type: Mapped[SourceType] = mapped_column(
        SAEnum(SourceType, name="source_type_enum", create_constraint=True),
        nullable=False,
        default=SourceType.MANUAL,
    )
    source_ref: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    status: Mapped[JournalStatus] = mapped_column(
        SAEnum(JournalStatus, name="journal_status_enum", create_constraint=True),
        nullable=False,
        default=JournalStatus.DRAFT,
    )
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=Decimal("0.00")
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=Decimal("0.00")
    )
    reversal_of_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    posted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry", order_by="JournalLine.line_number"
    )
    reversal_of: Mapped[Optional["JournalEntry"]] = relationship(
        remote_side=[id], back_populates="reversals"
    )
    reversals: Mapped[list["JournalEntry"]] = relationship(
        back_populates="reversal_of"
    )
    voucher: Mapped[Optional["Voucher"]] = relationship(
        back_populates="journal_entry", uselist=False
    )

    def can_transition_to(self, new_status: JournalStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def reversed_by(self) -> "JournalEntry | None":
        return self.reversals[0] if self.reversals else None

    def __repr__(self) -> str:
        return f"<JournalEntry {self.number} ({self.status.value})>"


class JournalLine(Base):
    """One debit or credit line. Exactly one of the two amounts is non-zero."""

    __tablename__ = "journal_lines"
    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_lines_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_journal_lines_one_side",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=Decimal("0.00")
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=Decimal("0.00")
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship()

    @property
    def side(self) -> EntrySide:
        return EntrySide.DEBIT if self.debit > 0 else EntrySide.CREDIT

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit > 0 else self.credit

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.line_number} "
            f"dr={self.debit} cr={self.credit}>"
        )
