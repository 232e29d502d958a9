"""
Pydantic schemas for vouchers.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from core_ledger.models.enums import EntrySide, VoucherStatus, VoucherType
from core_ledger.schemas.journal import JournalEntryResponse


class VoucherLineCreate(BaseModel):
    account_id: int
    amount: Decimal = Field(decimal_places=2)
    side: EntrySide
    description: str | None = Field(default=None, max_length=255)


class VoucherCreate(BaseModel):
    """
    Request to create a draft voucher.

    ``voucher_type`` is a plain string so an unknown type reaches the
    service and is rejected with the ledger's own ValidationError.
    """
    voucher_type: str
    voucher_date: date
    lines: list[VoucherLineCreate]
    party_id: str | None = Field(default=None, max_length=64)
    party_type: str | None = Field(default=None, max_length=20)
    reference: str | None = Field(default=None, max_length=100)
    narration: str | None = Field(default=None, max_length=255)


class VoucherLineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    amount: Decimal
    side: EntrySide
    description: str | None

    model_config = {"from_attributes": True}


class VoucherResponse(BaseModel):
    id: int
    number: str | None
    voucher_type: VoucherType
    voucher_date: date
    party_id: str | None
    party_type: str | None
    reference: str | None
    narration: str | None
    status: VoucherStatus
    journal_entry_id: int | None
    recurring_template_id: int | None
    amount: Decimal
    created_at: datetime
    lines: list[VoucherLineResponse]

    model_config = {"from_attributes": True}


class VoucherPostResponse(BaseModel):
    voucher: VoucherResponse
    journal_entry: JournalEntryResponse


class VoucherTypeResponse(BaseModel):
    type: VoucherType
    label: str
    prefix: str
    shortcut: str
    debit_role: str
    credit_role: str
