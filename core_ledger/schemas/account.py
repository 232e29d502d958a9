"""
Pydantic schemas for accounts and the ledger.

These define the API contract. They are separate from the database
models because the API shape and the storage shape often differ.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from core_ledger.models.enums import AccountType, EntrySide


class AccountCreate(BaseModel):
    """Request to create an account (chart-of-accounts setup)."""
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    account_type: AccountType
    normal_balance: EntrySide | None = None


class AccountResponse(BaseModel):
    id: int
    code: str
    name: str
    account_type: AccountType
    normal_balance: EntrySide
    balance: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountBalanceResponse(BaseModel):
    """
    Balance of one account.

    ``balance`` is the signed, debit-positive cache. ``natural_balance``
    is the same figure expressed on the account's normal side.
    """
    account_id: int
    account_code: str
    account_type: AccountType
    normal_balance: EntrySide
    balance: Decimal
    natural_balance: Decimal
    replayed_balance: Decimal


class LedgerEntryResponse(BaseModel):
    id: int
    account_id: int
    entry_id: int
    line_id: int | None
    entry_date: date
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class IntegrityResponse(BaseModel):
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
