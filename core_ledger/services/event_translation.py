"""
Event translation: external business events to journal entries.

Other systems (billing, POS, front office, e-commerce) report what
happened in their own terms. Each supported event type has a handler
that reads amounts and identifiers from the payload, resolves the
accounting roles it needs ("cash", "sales_revenue", ...) to accounts,
and returns a line set for the posting engine.

Role resolution order:
1. an explicit row in account_mappings
2. the active account whose code is the role's default code
3. nothing, which makes a required role fail with MissingAccountMapping

Every ingested event is stored in integration_events. An event that
cannot be posted is kept as FAILED with the error so it can be fixed
(usually by adding a mapping) and reprocessed. It is never dropped
and never posted half-way.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core_ledger.exceptions import (
    InvalidStateTransition,
    LedgerError,
    MissingAccountMapping,
    NotFound,
    ValidationError,
)
from core_ledger.models.enums import EntrySide, EventStatus, SourceType
from core_ledger.models.integration import AccountMapping, IntegrationEvent
from core_ledger.money import ZERO, to_money
from core_ledger.schemas.integration import MappingResponse
from core_ledger.schemas.journal import PostingHeader, PostingLine
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.posting_engine import PostingEngine

logger = logging.getLogger(__name__)


DEFAULT_ACCOUNT_MAPPINGS: dict[str, str] = {
    # Revenue, retail
    "sales_revenue": "SALES-001",
    "service_revenue": "SERVICE-001",
    # Revenue, hospitality
    "room_revenue": "ROOM-REV-001",
    "fnb_revenue": "FNB-REV-001",
    "spa_revenue": "SPA-REV-001",
    "misc_revenue": "MISC-REV-001",
    # Assets
    "cash": "CASH-001",
    "bank": "BANK-001",
    "accounts_receivable": "AR-001",
    "guest_ledger": "GUEST-AR-001",
    "inventory": "INV-001",
    # Liabilities
    "accounts_payable": "AP-001",
    "gst_payable": "GST-PAY-001",
    "tds_payable": "TDS-PAY-001",
    "advance_deposits": "ADV-DEP-001",
    # Expenses
    "cost_of_goods_sold": "COGS-001",
    "purchase_expense": "PURCH-001",
    "fnb_cost": "FNB-COST-001",
    # E-commerce
    "ecommerce_revenue": "ECOM-REV-001",
    "ecommerce_receivable": "ECOM-AR-001",
    "ecommerce_refunds": "ECOM-REF-001",
    "ecommerce_cogs": "ECOM-COGS-001",
}

VERSION_SUFFIX = ".v1"


def normalize_event_type(event_type: str) -> str:
    """'retail.pos.sale.completed.v1' -> 'retail.pos.sale.completed'"""
    event_type = event_type.strip()
    if event_type.endswith(VERSION_SUFFIX):
        return event_type[: -len(VERSION_SUFFIX)]
    return event_type


@dataclass
class Translation:
    """Lines for one event plus what goes on the journal entry header."""

    description: str
    reference_type: str
    reference_id: str | None
    entry_date: date
    lines: list[PostingLine] = field(default_factory=list)

    def debit(self, account_id: int, amount: Decimal, description: str) -> None:
        self.lines.append(PostingLine(
            account_id=account_id, amount=amount,
            side=EntrySide.DEBIT, description=description[:255],
        ))

    def credit(self, account_id: int, amount: Decimal, description: str) -> None:
        self.lines.append(PostingLine(
            account_id=account_id, amount=amount,
            side=EntrySide.CREDIT, description=description[:255],
        ))

    @property
    def source_ref(self) -> str:
        return f"{self.reference_type}:{self.reference_id or '-'}"


class RoleResolver:
    """Resolves roles for one event; knows which event to blame."""

    def __init__(self, translator: "EventTranslator", event_type: str):
        self.translator = translator
        self.event_type = event_type

    def optional(self, *roles: str) -> int | None:
        """First role in ``roles`` that resolves, or None."""
        for role in roles:
            account_id = self.translator.resolve(role)
            if account_id is not None:
                return account_id
        return None

    def require(self, *roles: str) -> int:
        account_id = self.optional(*roles)
        if account_id is None:
            raise MissingAccountMapping(self.event_type, list(roles))
        return account_id


Handler = Callable[[dict[str, Any], RoleResolver], Translation]

EVENT_HANDLERS: dict[str, Handler] = {}


def handles(event_type: str):
    def register(handler: Handler) -> Handler:
        EVENT_HANDLERS[event_type] = handler
        return handler
    return register


# --- Payload helpers ---

def _amount(payload: dict[str, Any], *keys: str) -> Decimal:
    """First present amount among ``keys``; ZERO when none is present."""
    for key in keys:
        value = payload.get(key)
        if value is None or value == "":
            continue
        try:
            amount = to_money(value)
        except ValueError:
            raise ValidationError(
                f"Payload field '{key}' is not an amount",
                details={"field": key, "value": str(value)},
            )
        if amount < 0:
            raise ValidationError(
                f"Payload field '{key}' cannot be negative",
                details={"field": key, "value": str(value)},
            )
        return amount
    return ZERO


def _event_date(payload: dict[str, Any], *keys: str) -> date:
    for key in keys:
        value = payload.get(key)
        if not value:
            continue
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            raise ValidationError(
                f"Payload field '{key}' is not a date",
                details={"field": key, "value": str(value)},
            )
    return date.today()


def _ref(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        if payload.get(key) is not None:
            return str(payload[key])
    return None


def _payment_role(method: str | None, bank_methods: tuple[str, ...]) -> str:
    return "bank" if method in bank_methods else "cash"


# --- Retail ---

@handles("retail.billing.invoice.created")
def invoice_created(payload, accounts: RoleResolver) -> Translation:
    number = payload.get("invoice_number") or payload.get("invoice_id")
    translation = Translation(
        description=(
            f"Sales Invoice {number} - {payload.get('customer_name') or 'Customer'}"
        ),
        reference_type="invoice",
        reference_id=_ref(payload, "invoice_id", "invoice_number"),
        entry_date=_event_date(payload, "invoice_date"),
    )
    total = _amount(payload, "total_amount")
    if total == ZERO:
        return translation

    subtotal = _amount(payload, "subtotal", "total_amount")
    tax = _amount(payload, "tax_amount")

    receivable = accounts.require("accounts_receivable")
    revenue = accounts.require("sales_revenue")
    translation.debit(receivable, total, f"Invoice {number}")
    translation.credit(revenue, subtotal, f"Sales - Invoice {number}")
    if tax > 0:
        gst = accounts.require("gst_payable")
        translation.credit(gst, tax, f"GST - Invoice {number}")
    return translation


@handles("retail.billing.payment.received")
def payment_received(payload, accounts: RoleResolver) -> Translation:
    translation = Translation(
        description=(
            "Payment received for Invoice "
            f"{payload.get('invoice_number') or payload.get('invoice_id')}"
        ),
        reference_type="payment",
        reference_id=_ref(payload, "payment_id", "invoice_id"),
        entry_date=_event_date(payload, "payment_date"),
    )
    amount = _amount(payload, "amount")
    if amount == ZERO:
        return translation

    money_in = accounts.require(
        _payment_role(payload.get("payment_method"), ("bank",))
    )
    receivable = accounts.require("accounts_receivable")
    translation.debit(money_in, amount, "Payment received")
    translation.credit(receivable, amount, "Clear AR")
    return translation


@handles("retail.pos.sale.completed")
def pos_sale_completed(payload, accounts: RoleResolver) -> Translation:
    transaction_id = payload.get("transaction_id")
    translation = Translation(
        description=f"POS Sale {transaction_id}",
        reference_type="pos_transaction",
        reference_id=_ref(payload, "transaction_id"),
        entry_date=_event_date(payload, "transaction_date"),
    )
    total = _amount(payload, "total_amount")
    if total == ZERO:
        return translation

    cash = accounts.require("cash")
    revenue = accounts.require("sales_revenue")
    translation.debit(cash, total, f"POS Sale {transaction_id}")
    translation.credit(revenue, total, f"Sales - POS {transaction_id}")

    # Cost recognition is optional: only when both accounts exist.
    cost = _amount(payload, "cost_amount")
    if cost > 0:
        cogs = accounts.optional("cost_of_goods_sold")
        inventory = accounts.optional("inventory")
        if cogs is not None and inventory is not None:
            translation.debit(cogs, cost, "Cost of goods sold")
            translation.credit(inventory, cost, "Reduce inventory")
    return translation


@handles("retail.inventory.purchase.received")
def inventory_purchase_received(payload, accounts: RoleResolver) -> Translation:
    order_id = payload.get("purchase_order_id")
    translation = Translation(
        description=(
            f"Inventory Purchase {order_id} from "
            f"{payload.get('vendor_name') or 'Vendor'}"
        ),
        reference_type="purchase_order",
        reference_id=_ref(payload, "purchase_order_id"),
        entry_date=_event_date(payload, "purchase_date"),
    )
    total = _amount(payload, "total_amount")
    if total == ZERO:
        return translation

    inventory = accounts.require("inventory")
    payable = accounts.require("accounts_payable")
    translation.debit(inventory, total, "Inventory received")
    translation.credit(payable, total, "Payable to vendor")
    return translation


# --- Hospitality ---

@handles("hospitality.billing.payment_received")
def hospitality_payment_received(payload, accounts: RoleResolver) -> Translation:
    booking_id = payload.get("booking_id")
    translation = Translation(
        description=f"Guest Payment - Booking {booking_id}",
        reference_type="hospitality_payment",
        reference_id=_ref(payload, "booking_id"),
        entry_date=_event_date(payload, "payment_date"),
    )
    amount = _amount(payload, "amount")
    if amount == ZERO:
        return translation

    money_in = accounts.require(
        _payment_role(payload.get("payment_method"), ("card",))
    )
    settled = accounts.require("accounts_receivable", "room_revenue")
    translation.debit(money_in, amount, "Payment received")
    translation.credit(settled, amount, "Guest payment")
    return translation


@handles("hospitality.front_office.checked_out")
def guest_checked_out(payload, accounts: RoleResolver) -> Translation:
    booking_id = payload.get("booking_id")
    translation = Translation(
        description=f"Guest Folio - Checkout {booking_id}",
        reference_type="guest_folio",
        reference_id=_ref(payload, "booking_id"),
        entry_date=_event_date(payload, "checkout_date"),
    )
    # A settled folio has nothing left to book.
    outstanding = _amount(payload, "outstanding_balance")
    if outstanding == ZERO:
        return translation

    receivable = accounts.require("accounts_receivable")
    revenue = accounts.require("room_revenue")
    translation.debit(receivable, outstanding, "Guest balance due")
    translation.credit(revenue, outstanding, "Room revenue")
    return translation


@handles("restaurant.order.paid")
def restaurant_order_paid(payload, accounts: RoleResolver) -> Translation:
    table = payload.get("table_number") or payload.get("table_id") or "N/A"
    translation = Translation(
        description=f"Restaurant Order {payload.get('order_id')} - Table {table}",
        reference_type="restaurant_order",
        reference_id=_ref(payload, "order_id"),
        entry_date=_event_date(payload, "paid_at", "order_date"),
    )
    amount = _amount(payload, "total", "amount")
    if amount == ZERO:
        return translation

    method = payload.get("payment_method")
    if method == "room_charge":
        role = "guest_ledger"
    else:
        role = _payment_role(method, ("card", "upi"))

    debit_account = accounts.require(role)
    revenue = accounts.require("fnb_revenue")
    translation.debit(debit_account, amount, f"F&B Sale - {method or 'cash'}")
    translation.credit(revenue, amount, "F&B Revenue")
    return translation


@handles("hospitality.room_service.charge")
def room_service_charge(payload, accounts: RoleResolver) -> Translation:
    room = payload.get("room_number") or payload.get("room_id")
    translation = Translation(
        description=f"Room Service - Room {room}",
        reference_type="room_service",
        reference_id=_ref(payload, "charge_id", "order_id"),
        entry_date=_event_date(payload, "charge_date"),
    )
    amount = _amount(payload, "total", "amount")
    if amount == ZERO:
        return translation

    folio = accounts.require("guest_ledger")
    revenue = accounts.require("fnb_revenue")
    translation.debit(folio, amount, "Charge to guest folio")
    translation.credit(revenue, amount, "Room Service Revenue")
    return translation


# --- E-commerce ---

@handles("ecommerce.order.created")
def ecommerce_order_created(payload, accounts: RoleResolver) -> Translation:
    order_id = payload.get("order_id")
    translation = Translation(
        description=f"E-commerce Order {order_id}",
        reference_type="ecommerce_order",
        reference_id=_ref(payload, "order_id"),
        entry_date=_event_date(payload, "order_date", "created_at"),
    )
    total = _amount(payload, "total")
    if total == ZERO:
        return translation

    receivable = accounts.require("ecommerce_receivable", "accounts_receivable")
    revenue = accounts.require("ecommerce_revenue", "sales_revenue")
    translation.debit(receivable, total, f"Order {order_id} receivable")
    translation.credit(revenue, total, "E-commerce revenue")
    return translation


@handles("ecommerce.payment.captured")
def ecommerce_payment_captured(payload, accounts: RoleResolver) -> Translation:
    translation = Translation(
        description=f"E-commerce Payment - Order {payload.get('order_id') or 'N/A'}",
        reference_type="ecommerce_payment",
        reference_id=_ref(payload, "payment_id", "order_id"),
        entry_date=_event_date(payload, "captured_at"),
    )
    amount = _amount(payload, "amount")
    if amount == ZERO:
        return translation

    bank = accounts.require("bank")
    receivable = accounts.require("ecommerce_receivable", "accounts_receivable")
    translation.debit(bank, amount, "Payment captured")
    translation.credit(receivable, amount, "Clear ecommerce AR")
    return translation


@handles("ecommerce.return.completed")
def ecommerce_return_completed(payload, accounts: RoleResolver) -> Translation:
    translation = Translation(
        description=f"E-commerce Refund - Return {payload.get('return_id')}",
        reference_type="ecommerce_refund",
        reference_id=_ref(payload, "return_id"),
        entry_date=_event_date(payload, "completed_at"),
    )
    amount = _amount(payload, "refund_amount", "amount")
    if amount == ZERO:
        return translation

    refunds = accounts.require("ecommerce_refunds", "sales_revenue")
    bank = accounts.require("bank")
    translation.debit(refunds, amount, "Refund issued")
    translation.credit(bank, amount, "Bank disbursement")
    return translation


class EventTranslator:
    """
    Records external events and posts them through the posting engine.

    Unlike the other services this one commits: the event row must
    survive a posting failure so the failure can be inspected and the
    event reprocessed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerStore(db)
        self.engine = PostingEngine(db)

    # --- Mappings ---

    def resolve(self, mapping_key: str) -> int | None:
        """Account id for a role, or None when nothing resolves."""
        mapping = self.db.execute(
            select(AccountMapping).where(AccountMapping.mapping_key == mapping_key)
        ).scalar_one_or_none()
        if mapping:
            return mapping.account_id

        default_code = DEFAULT_ACCOUNT_MAPPINGS.get(mapping_key)
        if default_code:
            account = self.ledger.get_account_by_code(default_code)
            if account:
                return account.id
        return None

    def set_mapping(self, mapping_key: str, account_id: int) -> AccountMapping:
        self.ledger.get_account(account_id)

        mapping = self.db.execute(
            select(AccountMapping).where(AccountMapping.mapping_key == mapping_key)
        ).scalar_one_or_none()
        if mapping:
            mapping.account_id = account_id
        else:
            mapping = AccountMapping(mapping_key=mapping_key, account_id=account_id)
            self.db.add(mapping)
        self.db.flush()

        logger.info("Mapped %s to account %s", mapping_key, account_id)
        return mapping

    def list_mappings(self) -> list[MappingResponse]:
        explicit = {
            m.mapping_key: m
            for m in self.db.execute(select(AccountMapping)).scalars().all()
        }
        keys = list(DEFAULT_ACCOUNT_MAPPINGS) + sorted(
            k for k in explicit if k not in DEFAULT_ACCOUNT_MAPPINGS
        )

        result = []
        for key in keys:
            default_code = DEFAULT_ACCOUNT_MAPPINGS.get(key)
            if key in explicit:
                account = explicit[key].account
            elif default_code:
                account = self.ledger.get_account_by_code(default_code)
            else:
                account = None
            result.append(MappingResponse(
                mapping_key=key,
                default_code=default_code,
                account_id=account.id if account else None,
                account_code=account.code if account else None,
                account_name=account.name if account else None,
            ))
        return result

    # --- Translation ---

    def _translate(self, event_type: str, payload: dict[str, Any]) -> Translation | None:
        key = normalize_event_type(event_type)
        handler = EVENT_HANDLERS.get(key)
        if handler is None:
            return None
        return handler(payload, RoleResolver(self, key))

    def translate(
        self, event_type: str, payload: dict[str, Any]
    ) -> list[PostingLine] | None:
        """
        Line set for an event, without posting it.

        None when the event type is unknown or a required role has
        no account.
        """
        try:
            translation = self._translate(event_type, payload)
        except MissingAccountMapping as e:
            logger.warning("%s", e)
            return None
        return translation.lines if translation else None

    # --- Ingestion ---

    def ingest(
        self,
        event_type: str,
        payload: dict[str, Any],
        source: str | None = None,
    ) -> IntegrationEvent:
        """
        Record an event and post it.

        The event row is committed as PENDING first, then processed.
        Errors that stop the posting are stored on the event (FAILED)
        and raised after that is committed.
        """
        event = IntegrationEvent(
            event_type=event_type,
            source=source,
            payload=payload,
            status=EventStatus.PENDING,
        )
        self.db.add(event)
        self.db.commit()
        logger.info("Received event %s (%s) from %s", event.id, event_type, source or "-")
        return self._process(event)

    def _process(self, event: IntegrationEvent) -> IntegrationEvent:
        event_id = event.id
        key = normalize_event_type(event.event_type)

        if key not in EVENT_HANDLERS:
            event.status = EventStatus.IGNORED
            event.processed_at = datetime.utcnow()
            self.db.commit()
            logger.info("Ignored event %s: no handler for %s", event_id, event.event_type)
            return event

        try:
            translation = self._translate(key, dict(event.payload or {}))
            entry = None
            if translation.lines:
                entry = self.engine.post(translation.lines, PostingHeader(
                    entry_date=translation.entry_date,
                    description=translation.description[:255],
                    source_type=SourceType.EXTERNAL_EVENT,
                    source_ref=translation.source_ref[:100],
                ))
        except (LedgerError, SQLAlchemyError) as e:
            self.db.rollback()
            self._mark_failed(event_id, e)
            raise

        event.status = EventStatus.PROCESSED
        event.error = None
        event.journal_entry_id = entry.id if entry else None
        event.processed_at = datetime.utcnow()
        self.db.commit()

        if entry:
            logger.info("Event %s posted as journal entry %s", event_id, entry.number)
        else:
            logger.info("Event %s had nothing to post", event_id)
        return event

    def _mark_failed(self, event_id: int, error: Exception) -> None:
        event = self.get_event(event_id)
        event.status = EventStatus.FAILED
        event.error = str(error)
        event.processed_at = datetime.utcnow()
        self.db.commit()
        logger.error("Event %s failed: %s", event_id, error)

    def reprocess(self, event_id: int) -> IntegrationEvent:
        """Retry a PENDING or FAILED event, e.g. after fixing a mapping."""
        event = self.get_event(event_id)
        if event.status not in (EventStatus.PENDING, EventStatus.FAILED):
            raise InvalidStateTransition(
                f"Cannot reprocess event {event_id} in status {event.status.value}"
            )
        logger.info("Reprocessing event %s", event_id)
        return self._process(event)

    # --- Queries ---

    def get_event(self, event_id: int) -> IntegrationEvent:
        event = self.db.get(IntegrationEvent, event_id)
        if not event:
            raise NotFound("IntegrationEvent", event_id)
        return event

    def list_events(
        self, status: EventStatus | None = None, limit: int = 100
    ) -> list[IntegrationEvent]:
        stmt = select(IntegrationEvent)
        if status:
            stmt = stmt.where(IntegrationEvent.status == status)
        stmt = stmt.order_by(IntegrationEvent.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())
