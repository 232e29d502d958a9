"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from core_ledger.models.base import Base
from core_ledger.models.enums import (
    AccountType,
    EntrySide,
    SourceType,
    JournalStatus,
    VoucherType,
    VoucherStatus,
    Frequency,
    RecurringOutcome,
    EventStatus,
)
from core_ledger.models.account import Account
from core_ledger.models.journal_entry import JournalEntry, JournalLine
from core_ledger.models.ledger_entry import LedgerEntry
from core_ledger.models.voucher import Voucher, VoucherLine
from core_ledger.models.recurring import (
    RecurringTemplate,
    RecurringTemplateLine,
    RecurringLog,
)
from core_ledger.models.integration import AccountMapping, IntegrationEvent

__all__ = [
    "Base",
    "AccountType",
    "EntrySide",
    "SourceType",
    "JournalStatus",
    "VoucherType",
    "VoucherStatus",
    "Frequency",
    "RecurringOutcome",
    "EventStatus",
    "Account",
    "JournalEntry",
    "JournalLine",
    "LedgerEntry",
    "Voucher",
    "VoucherLine",
    "RecurringTemplate",
    "RecurringTemplateLine",
    "RecurringLog",
    "AccountMapping",
    "IntegrationEvent",
]
