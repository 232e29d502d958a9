"""Business logic services."""

from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.posting_engine import PostingEngine
from core_ledger.services.voucher_service import VoucherService
from core_ledger.services.recurring_scheduler import RecurringScheduler
from core_ledger.services.event_translation import EventTranslator

__all__ = [
    "LedgerStore",
    "PostingEngine",
    "VoucherService",
    "RecurringScheduler",
    "EventTranslator",
]
