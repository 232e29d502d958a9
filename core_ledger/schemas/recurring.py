"""
Pydantic schemas for recurring templates.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from core_ledger.models.enums import (
    EntrySide,
    Frequency,
    RecurringOutcome,
    VoucherType,
)


class TemplateLineCreate(BaseModel):
    account_id: int
    amount: Decimal = Field(decimal_places=2)
    side: EntrySide
    description: str | None = Field(default=None, max_length=255)


class RecurringTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    voucher_type: str
    frequency: str
    start_date: date
    end_date: date | None = None
    day_of_month: int | None = None
    auto_post: bool = False
    narration: str | None = Field(default=None, max_length=255)
    lines: list[TemplateLineCreate]


class RecurringTemplateUpdate(BaseModel):
    """Partial update. Omitted fields are unchanged; end_date: null clears the end."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    frequency: str | None = None
    day_of_month: int | None = None
    end_date: date | None = None
    auto_post: bool | None = None
    narration: str | None = Field(default=None, max_length=255)
    lines: list[TemplateLineCreate] | None = None


class TemplateLineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    amount: Decimal
    side: EntrySide
    description: str | None

    model_config = {"from_attributes": True}


class RecurringTemplateResponse(BaseModel):
    id: int
    name: str
    voucher_type: VoucherType
    frequency: Frequency
    day_of_month: int | None
    start_date: date
    end_date: date | None
    next_run_date: date
    last_run_date: date | None
    is_active: bool
    auto_post: bool
    run_count: int
    narration: str | None
    created_at: datetime
    lines: list[TemplateLineResponse]

    model_config = {"from_attributes": True}


class RecurringLogResponse(BaseModel):
    id: int
    template_id: int
    voucher_id: int | None
    scheduled_date: date
    generated_date: date
    outcome: RecurringOutcome
    error: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RunDueRequest(BaseModel):
    as_of: date | None = None


class RunResultResponse(BaseModel):
    template_id: int
    scheduled_date: date
    outcome: RecurringOutcome
    voucher_id: int | None = None
    journal_entry_id: int | None = None
    error: str | None = None


class RunDueResponse(BaseModel):
    as_of: date
    processed: int
    results: list[RunResultResponse]
