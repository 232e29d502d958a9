"""
Integration models: account mappings and ingested events.

Mappings tie semantic roles ("cash", "sales_revenue") to concrete
accounts. Every external event that reaches the ledger is recorded,
whether or not it produced a journal entry.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, ForeignKey, Text, JSON, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core_ledger.models.base import Base
from core_ledger.models.enums import EventStatus


class AccountMapping(Base):
    __tablename__ = "account_mappings"

    id: Mapped[int] = mapped_column(primary_key=True)
    mapping_key: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return f"<AccountMapping {self.mapping_key} -> {self.account_id}>"


class IntegrationEvent(Base):
    __tablename__ = "integration_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[EventStatus] = mapped_column(
        SAEnum(EventStatus, name="event_status_enum", create_constraint=True),
        nullable=False,
        default=EventStatus.PENDING,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    journal_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<IntegrationEvent {self.event_type} ({self.status.value})>"
