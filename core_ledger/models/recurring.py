"""
Recurring template and recurring log models.

A template is a reusable line set plus a schedule. Each scheduler
tick turns due templates into vouchers and appends one log row per
attempt, whatever the outcome.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, ForeignKey, Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core_ledger.models.base import Base
from core_ledger.models.enums import (
    VoucherType,
    Frequency,
    EntrySide,
    RecurringOutcome,
)


class RecurringTemplate(Base):
    __tablename__ = "recurring_templates"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    voucher_type: Mapped[VoucherType] = mapped_column(
        SAEnum(VoucherType, name="voucher_type_enum", create_constraint=True),
        nullable=False,
    )
    frequency: Mapped[Frequency] = mapped_column(
        SAEnum(Frequency, name="frequency_enum", create_constraint=True),
        nullable=False,
    )
    day_of_month: Mapped[int | None] = mapped_column(nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_run_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    last_run_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    auto_post: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    run_count: Mapped[int] = mapped_column(nullable=False, default=0)
    narration: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lines: Mapped[list["RecurringTemplateLine"]] = relationship(
        back_populates="template",
        order_by="RecurringTemplateLine.line_number",
        cascade="all, delete-orphan",
    )

    def is_due(self, as_of: date) -> bool:
        if not self.is_active or self.next_run_date > as_of:
            return False
        return self.end_date is None or self.next_run_date <= self.end_date

    def __repr__(self) -> str:
        return (
            f"<RecurringTemplate {self.name} {self.frequency.value} "
            f"next={self.next_run_date}>"
        )


class RecurringTemplateLine(Base):
    __tablename__ = "recurring_template_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("recurring_templates.id"), nullable=False, index=True
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

    template: Mapped["RecurringTemplate"] = relationship(back_populates="lines")


class RecurringLog(Base):
    """Append-only record of one materialization attempt."""

    __tablename__ = "recurring_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("recurring_templates.id"), nullable=False, index=True
    )
    voucher_id: Mapped[int | None] = mapped_column(
        ForeignKey("vouchers.id"), nullable=True
    )
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    generated_date: Mapped[date] = mapped_column(Date, nullable=False)
    outcome: Mapped[RecurringOutcome] = mapped_column(
        SAEnum(RecurringOutcome, name="recurring_outcome_enum", create_constraint=True),
        nullable=False,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringLog template={self.template_id} "
            f"{self.scheduled_date} {self.outcome.value}>"
        )
