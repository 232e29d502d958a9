"""
Tests for the RecurringScheduler.

Tests cover:
- Template validation
- Voucher generation, auto-post and schedule advance
- Pause / resume
- One occurrence per tick and month-end clamping
- Per-template failure isolation
- Idempotency on (template, date)
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from core_ledger.exceptions import (
    InvalidStateTransition,
    NoLines,
    NotFound,
    ValidationError,
)
from core_ledger.models.enums import (
    EntrySide,
    Frequency,
    RecurringOutcome,
    SourceType,
    VoucherStatus,
)
from core_ledger.models.recurring import RecurringTemplateLine
from core_ledger.models.voucher import Voucher
from core_ledger.schemas.recurring import (
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    TemplateLineCreate,
)
from core_ledger.schemas.voucher import VoucherCreate, VoucherLineCreate
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.recurring_scheduler import RecurringScheduler, parse_frequency
from core_ledger.services.voucher_service import VoucherService


def rent_template(chart, **overrides):
    fields = dict(
        name="Office rent",
        voucher_type="payment",
        frequency="monthly",
        start_date=date(2024, 1, 31),
        day_of_month=31,
        narration="Monthly rent",
        lines=[
            TemplateLineCreate(
                account_id=chart["RENT-001"].id,
                amount=Decimal("1500.00"),
                side=EntrySide.DEBIT,
            ),
            TemplateLineCreate(
                account_id=chart["BANK-001"].id,
                amount=Decimal("1500.00"),
                side=EntrySide.CREDIT,
            ),
        ],
    )
    fields.update(overrides)
    return RecurringTemplateCreate(**fields)


def create_template(db_session, chart, **overrides):
    scheduler = RecurringScheduler(db_session)
    template = scheduler.create_template(rent_template(chart, **overrides))
    db_session.commit()
    return template


def vouchers_for(db_session, template_id):
    return list(db_session.execute(
        select(Voucher)
        .where(Voucher.recurring_template_id == template_id)
        .order_by(Voucher.recurring_date)
    ).scalars().all())


class TestCreateTemplate:

    def test_first_run_is_start_date(self, db_session, chart):
        template = create_template(db_session, chart)

        assert template.next_run_date == date(2024, 1, 31)
        assert template.frequency == Frequency.MONTHLY
        assert template.is_active is True
        assert template.run_count == 0
        assert len(template.lines) == 2

    def test_unknown_frequency_rejected(self, db_session, chart):
        with pytest.raises(ValidationError, match="Unknown frequency"):
            RecurringScheduler(db_session).create_template(
                rent_template(chart, frequency="fortnightly")
            )

    def test_day_of_month_out_of_range_rejected(self, db_session, chart):
        with pytest.raises(ValidationError, match="day_of_month"):
            RecurringScheduler(db_session).create_template(
                rent_template(chart, day_of_month=32)
            )

    def test_end_before_start_rejected(self, db_session, chart):
        with pytest.raises(ValidationError, match="end_date"):
            RecurringScheduler(db_session).create_template(
                rent_template(chart, end_date=date(2023, 12, 31))
            )

    def test_no_lines_rejected(self, db_session, chart):
        with pytest.raises(NoLines):
            RecurringScheduler(db_session).create_template(
                rent_template(chart, lines=[])
            )

    def test_parse_frequency_case_insensitive(self):
        assert parse_frequency("Quarterly") == Frequency.QUARTERLY


class TestUpdateTemplate:

    def test_partial_update(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)

        updated = scheduler.update_template(template.id, RecurringTemplateUpdate(
            name="Warehouse rent",
            auto_post=True,
            lines=[
                TemplateLineCreate(
                    account_id=chart["RENT-001"].id,
                    amount=Decimal("2000.00"),
                    side=EntrySide.DEBIT,
                ),
                TemplateLineCreate(
                    account_id=chart["CASH-001"].id,
                    amount=Decimal("2000.00"),
                    side=EntrySide.CREDIT,
                ),
            ],
        ))
        db_session.commit()

        assert updated.name == "Warehouse rent"
        assert updated.auto_post is True
        assert updated.frequency == Frequency.MONTHLY
        assert [l.amount for l in updated.lines] == [Decimal("2000.00")] * 2

    def test_missing_template(self, db_session):
        with pytest.raises(NotFound):
            RecurringScheduler(db_session).update_template(
                1, RecurringTemplateUpdate(name="x")
            )

    def test_end_date_cleared_by_explicit_null(self, db_session, chart):
        template = create_template(db_session, chart, end_date=date(2024, 6, 30))
        scheduler = RecurringScheduler(db_session)

        scheduler.update_template(template.id, RecurringTemplateUpdate(name="Rent"))
        db_session.commit()
        assert scheduler.get_template(template.id).end_date == date(2024, 6, 30)

        scheduler.update_template(
            template.id, RecurringTemplateUpdate.model_validate({"end_date": None})
        )
        db_session.commit()
        assert scheduler.get_template(template.id).end_date is None


class TestDeleteTemplate:

    def test_unused_template_deleted_with_lines(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)

        scheduler.delete_template(template.id)
        db_session.commit()

        assert scheduler.list_templates() == []
        assert db_session.execute(select(RecurringTemplateLine)).first() is None

    def test_template_with_history_kept(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)
        scheduler.tick(date(2024, 1, 31))

        with pytest.raises(InvalidStateTransition):
            scheduler.delete_template(template.id)

    def test_missing_template(self, db_session):
        with pytest.raises(NotFound):
            RecurringScheduler(db_session).delete_template(1)


class TestPauseResume:

    def test_pause_and_resume_are_idempotent(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)

        scheduler.pause(template.id)
        scheduler.pause(template.id)
        db_session.commit()
        assert scheduler.get_template(template.id).is_active is False

        scheduler.resume(template.id)
        scheduler.resume(template.id)
        db_session.commit()
        assert scheduler.get_template(template.id).is_active is True

    def test_paused_template_not_run(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)
        scheduler.pause(template.id)
        db_session.commit()

        assert scheduler.tick(date(2024, 6, 30)) == []
        assert vouchers_for(db_session, template.id) == []


class TestTick:

    def test_generates_draft_voucher_and_advances(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)

        results = scheduler.tick(date(2024, 1, 31))

        assert len(results) == 1
        assert results[0].outcome == RecurringOutcome.SUCCESS
        assert results[0].journal_entry_id is None

        vouchers = vouchers_for(db_session, template.id)
        assert len(vouchers) == 1
        assert vouchers[0].voucher_date == date(2024, 1, 31)
        assert vouchers[0].status == VoucherStatus.DRAFT
        assert vouchers[0].number.startswith("PAY-")

        template = scheduler.get_template(template.id)
        assert template.next_run_date == date(2024, 2, 29)
        assert template.last_run_date == date(2024, 1, 31)
        assert template.run_count == 1

        history = scheduler.get_history(template.id)
        assert [h.outcome for h in history] == [RecurringOutcome.SUCCESS]
        assert history[0].voucher_id == vouchers[0].id

    def test_auto_post_writes_recurring_entry(self, db_session, chart):
        template = create_template(db_session, chart, auto_post=True)
        scheduler = RecurringScheduler(db_session)

        results = scheduler.tick(date(2024, 1, 31))

        assert results[0].journal_entry_id is not None
        voucher = vouchers_for(db_session, template.id)[0]
        assert voucher.status == VoucherStatus.POSTED
        entry = VoucherService(db_session).engine.get_entry(voucher.journal_entry_id)
        assert entry.source_type == SourceType.RECURRING

        store = LedgerStore(db_session)
        assert store.get_account(chart["RENT-001"].id).balance == Decimal("1500.00")
        assert store.get_account(chart["BANK-001"].id).balance == Decimal("-1500.00")

    def test_not_due_yet(self, db_session, chart):
        create_template(db_session, chart)
        assert RecurringScheduler(db_session).tick(date(2024, 1, 30)) == []

    def test_one_occurrence_per_tick_with_month_end_clamp(self, db_session, chart):
        template = create_template(db_session, chart)
        scheduler = RecurringScheduler(db_session)

        for _ in range(3):
            results = scheduler.tick(date(2024, 3, 31))
            assert len(results) == 1

        dates = [v.voucher_date for v in vouchers_for(db_session, template.id)]
        assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
        assert scheduler.get_template(template.id).next_run_date == date(2024, 4, 30)

        # Caught up: nothing more is due.
        assert scheduler.tick(date(2024, 3, 31)) == []

    def test_stops_after_end_date(self, db_session, chart):
        template = create_template(
            db_session, chart,
            frequency="daily", start_date=date(2024, 5, 1),
            end_date=date(2024, 5, 2), day_of_month=None,
        )
        scheduler = RecurringScheduler(db_session)

        scheduler.tick(date(2024, 5, 10))
        scheduler.tick(date(2024, 5, 10))
        assert scheduler.tick(date(2024, 5, 10)) == []
        assert len(vouchers_for(db_session, template.id)) == 2

    def test_run_due_defaults_to_today(self, db_session, chart):
        create_template(db_session, chart, start_date=date.today(), day_of_month=None)
        results = RecurringScheduler(db_session).run_due()
        assert [r.scheduled_date for r in results] == [date.today()]

    def test_uncommitted_caller_work_is_not_committed(self, db_session, chart):
        scheduler = RecurringScheduler(db_session)
        scheduler.create_template(rent_template(chart))

        assert scheduler.tick(date(2024, 1, 31)) == []
        assert scheduler.list_templates() == []


class TestFailureIsolation:

    def test_failing_template_does_not_block_others(self, db_session, chart):
        broken = create_template(
            db_session, chart, name="Broken",
            lines=[
                TemplateLineCreate(
                    account_id=chart["COGS-001"].id,
                    amount=Decimal("10.00"),
                    side=EntrySide.DEBIT,
                ),
                TemplateLineCreate(
                    account_id=chart["INV-001"].id,
                    amount=Decimal("10.00"),
                    side=EntrySide.CREDIT,
                ),
            ],
        )
        healthy = create_template(db_session, chart, name="Healthy")

        # The account goes inactive after the template was set up.
        chart["INV-001"].is_active = False
        db_session.commit()

        scheduler = RecurringScheduler(db_session)
        results = {r.template_id: r for r in scheduler.tick(date(2024, 1, 31))}

        assert results[broken.id].outcome == RecurringOutcome.FAILED
        assert "not active" in results[broken.id].error
        assert results[healthy.id].outcome == RecurringOutcome.SUCCESS

        assert vouchers_for(db_session, broken.id) == []
        assert len(vouchers_for(db_session, healthy.id)) == 1

        broken = scheduler.get_template(broken.id)
        assert broken.next_run_date == date(2024, 1, 31)
        assert broken.run_count == 0

        history = scheduler.get_history(broken.id)
        assert history[0].outcome == RecurringOutcome.FAILED
        assert "not active" in history[0].error

    def test_unbalanced_auto_post_rolls_back_voucher(self, db_session, chart):
        template = create_template(
            db_session, chart, auto_post=True,
            lines=[
                TemplateLineCreate(
                    account_id=chart["RENT-001"].id,
                    amount=Decimal("1500.00"),
                    side=EntrySide.DEBIT,
                ),
                TemplateLineCreate(
                    account_id=chart["BANK-001"].id,
                    amount=Decimal("1400.00"),
                    side=EntrySide.CREDIT,
                ),
            ],
        )

        results = RecurringScheduler(db_session).tick(date(2024, 1, 31))

        assert results[0].outcome == RecurringOutcome.FAILED
        assert vouchers_for(db_session, template.id) == []

    def test_failed_occurrence_retried_next_tick(self, db_session, chart):
        template = create_template(db_session, chart)
        chart["BANK-001"].is_active = False
        db_session.commit()

        scheduler = RecurringScheduler(db_session)
        assert scheduler.tick(date(2024, 1, 31))[0].outcome == RecurringOutcome.FAILED

        chart["BANK-001"].is_active = True
        db_session.commit()
        retry = scheduler.tick(date(2024, 1, 31))

        assert retry[0].outcome == RecurringOutcome.SUCCESS
        assert retry[0].scheduled_date == date(2024, 1, 31)


class TestIdempotency:

    def test_existing_occurrence_is_skipped(self, db_session, chart):
        template = create_template(db_session, chart)

        # Same occurrence already generated, e.g. by a concurrent tick.
        VoucherService(db_session).create(
            VoucherCreate(
                voucher_type="payment",
                voucher_date=date(2024, 1, 31),
                lines=[
                    VoucherLineCreate(
                        account_id=chart["RENT-001"].id,
                        amount=Decimal("1500.00"),
                        side=EntrySide.DEBIT,
                    ),
                    VoucherLineCreate(
                        account_id=chart["BANK-001"].id,
                        amount=Decimal("1500.00"),
                        side=EntrySide.CREDIT,
                    ),
                ],
            ),
            recurring_template_id=template.id,
            recurring_date=date(2024, 1, 31),
        )
        db_session.commit()

        scheduler = RecurringScheduler(db_session)
        results = scheduler.tick(date(2024, 1, 31))

        assert results[0].outcome == RecurringOutcome.SKIPPED
        assert len(vouchers_for(db_session, template.id)) == 1
        assert scheduler.get_template(template.id).next_run_date == date(2024, 2, 29)
        assert scheduler.get_history(template.id)[0].outcome == RecurringOutcome.SKIPPED
