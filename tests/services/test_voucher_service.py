"""
Tests for the VoucherService.

Tests cover:
- Draft creation, numbering and type parsing
- Posting: balance check, one journal entry per voucher
- Double post guard
- Void policy for draft and posted vouchers
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from core_ledger.exceptions import (
    AlreadyPosted,
    InvalidStateTransition,
    NoLines,
    NotFound,
    UnbalancedEntry,
    ValidationError,
)
from core_ledger.models.enums import (
    EntrySide,
    JournalStatus,
    SourceType,
    VoucherStatus,
    VoucherType,
)
from core_ledger.models.journal_entry import JournalEntry
from core_ledger.schemas.voucher import VoucherCreate, VoucherLineCreate
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.voucher_service import VoucherService, parse_voucher_type


def sales_voucher(chart, debit="500.00", credit="500.00", voucher_type="sales"):
    return VoucherCreate(
        voucher_type=voucher_type,
        voucher_date=date(2024, 4, 1),
        narration="Counter sale",
        party_id="CUST-9",
        party_type="customer",
        lines=[
            VoucherLineCreate(
                account_id=chart["CASH-001"].id,
                amount=Decimal(debit),
                side=EntrySide.DEBIT,
            ),
            VoucherLineCreate(
                account_id=chart["SALES-001"].id,
                amount=Decimal(credit),
                side=EntrySide.CREDIT,
            ),
        ],
    )


def journal_count(db_session):
    return db_session.execute(
        select(func.count()).select_from(JournalEntry)
    ).scalar_one()


class TestParseVoucherType:

    @pytest.mark.parametrize("value", ["sales", "SALES", " Sales ", VoucherType.SALES])
    def test_accepts_any_case(self, value):
        assert parse_voucher_type(value) == VoucherType.SALES

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_voucher_type("debit_note")
        assert "SALES" in exc_info.value.details["allowed"]


class TestVoucherTypes:

    def test_six_types_with_conventions(self):
        types = {t.type: t for t in VoucherService.voucher_types()}
        assert len(types) == 6
        assert types[VoucherType.SALES].prefix == "SAL"
        assert types[VoucherType.SALES].shortcut == "F8"
        assert types[VoucherType.CONTRA].prefix == "CON"


class TestCreate:

    def test_create_draft(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        db_session.commit()

        assert voucher.status == VoucherStatus.DRAFT
        assert voucher.voucher_type == VoucherType.SALES
        assert voucher.number == f"SAL-{voucher.id:06d}"
        assert voucher.amount == Decimal("500.00")
        assert len(voucher.lines) == 2
        assert journal_count(db_session) == 0

    def test_unbalanced_draft_allowed(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart, credit="400.00"))
        assert voucher.status == VoucherStatus.DRAFT

    def test_no_lines_rejected(self, db_session):
        service = VoucherService(db_session)
        with pytest.raises(NoLines):
            service.create(VoucherCreate(
                voucher_type="payment", voucher_date=date(2024, 4, 1), lines=[],
            ))

    def test_non_positive_amount_rejected(self, db_session, chart):
        service = VoucherService(db_session)
        with pytest.raises(ValidationError, match="must be positive"):
            service.create(sales_voucher(chart, debit="0", credit="0"))

    def test_unknown_type_rejected(self, db_session, chart):
        service = VoucherService(db_session)
        with pytest.raises(ValidationError, match="Unknown voucher type"):
            service.create(sales_voucher(chart, voucher_type="barter"))


class TestPost:

    def test_post_creates_one_journal_entry(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        db_session.commit()

        voucher, entry = service.post(voucher.id)
        db_session.commit()

        assert voucher.status == VoucherStatus.POSTED
        assert voucher.journal_entry_id == entry.id
        assert entry.source_type == SourceType.VOUCHER
        assert entry.source_ref == str(voucher.id)
        assert entry.status == JournalStatus.POSTED
        assert journal_count(db_session) == 1

        store = LedgerStore(db_session)
        assert store.get_account(chart["CASH-001"].id).balance == Decimal("500.00")

    def test_double_post_rejected_with_single_entry(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        service.post(voucher.id)
        db_session.commit()

        with pytest.raises(AlreadyPosted):
            service.post(voucher.id)

        assert journal_count(db_session) == 1
        store = LedgerStore(db_session)
        assert store.get_account(chart["CASH-001"].id).balance == Decimal("500.00")

    def test_unbalanced_voucher_cannot_post(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart, credit="499.99"))
        db_session.commit()

        with pytest.raises(UnbalancedEntry):
            service.post(voucher.id)

        assert service.get(voucher.id).status == VoucherStatus.DRAFT
        assert journal_count(db_session) == 0

    def test_post_missing_voucher(self, db_session):
        with pytest.raises(NotFound):
            VoucherService(db_session).post(404)


class TestVoid:

    def test_void_draft(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        voucher = service.void(voucher.id)
        db_session.commit()

        assert voucher.status == VoucherStatus.VOID
        assert journal_count(db_session) == 0

    def test_void_posted_reverses_journal_entry(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        voucher, entry = service.post(voucher.id)
        db_session.commit()

        service.void(voucher.id, reversal_date=date(2024, 4, 30))
        db_session.commit()

        assert service.get(voucher.id).status == VoucherStatus.VOID
        original = service.engine.get_entry(entry.id)
        assert original.status == JournalStatus.VOID
        assert original.reversed_by.entry_date == date(2024, 4, 30)
        store = LedgerStore(db_session)
        assert store.get_account(chart["CASH-001"].id).balance == Decimal("0.00")

    def test_void_twice_rejected(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        service.void(voucher.id)
        db_session.commit()

        with pytest.raises(InvalidStateTransition):
            service.void(voucher.id)

    def test_post_voided_voucher_rejected(self, db_session, chart):
        service = VoucherService(db_session)
        voucher = service.create(sales_voucher(chart))
        service.void(voucher.id)
        db_session.commit()

        with pytest.raises(InvalidStateTransition):
            service.post(voucher.id)


class TestList:

    def test_filters(self, db_session, chart):
        service = VoucherService(db_session)
        first = service.create(sales_voucher(chart))
        service.create(sales_voucher(chart, voucher_type="receipt"))
        service.post(first.id)
        db_session.commit()

        assert len(service.list_vouchers()) == 2
        assert len(service.list_vouchers(voucher_type="sales")) == 1
        assert len(service.list_vouchers(status=VoucherStatus.POSTED)) == 1
        assert service.list_vouchers(from_date=date(2024, 5, 1)) == []
