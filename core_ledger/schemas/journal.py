"""
Pydantic schemas for journal entries and posting.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from core_ledger.models.enums import EntrySide, JournalStatus, SourceType


class PostingLine(BaseModel):
    """
    One line handed to the posting engine.

    The sign of ``amount`` is checked by the engine, not here, so
    every caller gets the same ValidationError for a bad amount.
    """
    account_id: int
    amount: Decimal = Field(decimal_places=2)
    side: EntrySide
    description: str | None = Field(default=None, max_length=255)


class PostingHeader(BaseModel):
    entry_date: date
    description: str = Field(min_length=1, max_length=255)
    source_type: SourceType = SourceType.MANUAL
    source_ref: str | None = Field(default=None, max_length=100)


class JournalEntryCreate(BaseModel):
    """Request to create a manual journal entry."""
    entry_date: date
    description: str = Field(min_length=1, max_length=255)
    reference: str | None = Field(default=None, max_length=100)
    lines: list[PostingLine]

    def header(self) -> PostingHeader:
        return PostingHeader(
            entry_date=self.entry_date,
            description=self.description,
            source_type=SourceType.MANUAL,
            source_ref=self.reference,
        )


class JournalVoidRequest(BaseModel):
    reversal_date: date | None = None


class JournalLineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str | None

    model_config = {"from_attributes": True}


class JournalEntryResponse(BaseModel):
    id: int
    number: str | None
    entry_date: date
    description: str
    source_type: SourceType
    source_ref: str | None
    status: JournalStatus
    total_debit: Decimal
    total_credit: Decimal
    reversal_of_id: int | None
    posted_at: datetime | None
    voided_at: datetime | None
    created_at: datetime
    lines: list[JournalLineResponse]

    model_config = {"from_attributes": True}
