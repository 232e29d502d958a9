"""
Recurring scheduler: turns due templates into vouchers.

Each template is processed in its own transaction. A template that
fails is rolled back, a FAILED row is written to the recurring log,
and its schedule stays where it was so the next tick retries it.
The other templates in the same tick are not affected.

A template occurrence is identified by (template id, scheduled date).
The voucher table carries a unique constraint on that pair, so a tick
that races another tick, or re-runs after a crash between commit and
log, records SKIPPED instead of creating a duplicate voucher.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core_ledger.exceptions import (
    InvalidStateTransition,
    LedgerError,
    NoLines,
    NotFound,
    ValidationError,
)
from core_ledger.models.enums import Frequency, RecurringOutcome
from core_ledger.models.recurring import (
    RecurringLog,
    RecurringTemplate,
    RecurringTemplateLine,
)
from core_ledger.models.voucher import Voucher
from core_ledger.money import to_money
from core_ledger.schemas.recurring import (
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    RunResultResponse,
    TemplateLineCreate,
)
from core_ledger.schemas.voucher import VoucherCreate, VoucherLineCreate
from core_ledger.services.schedule import advance
from core_ledger.services.voucher_service import (
    VoucherService,
    parse_voucher_type,
)

logger = logging.getLogger(__name__)


def parse_frequency(value) -> Frequency:
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown frequency '{value}'",
            details={"allowed": [f.value for f in Frequency]},
        )


def _check_day_of_month(day_of_month: int | None) -> None:
    if day_of_month is not None and not 1 <= day_of_month <= 31:
        raise ValidationError(
            "day_of_month must be between 1 and 31",
            details={"day_of_month": day_of_month},
        )


def _template_lines(lines: list[TemplateLineCreate]) -> list[RecurringTemplateLine]:
    if not lines:
        raise NoLines("Recurring template needs at least one line")
    result = []
    for number, line in enumerate(lines, start=1):
        amount = to_money(line.amount)
        if amount <= 0:
            raise ValidationError(
                f"Line {number}: amount must be positive",
                details={"line": number, "amount": str(line.amount)},
            )
        result.append(RecurringTemplateLine(
            line_number=number,
            account_id=line.account_id,
            amount=amount,
            side=line.side,
            description=line.description,
        ))
    return result


class RecurringScheduler:

    def __init__(self, db: Session):
        self.db = db
        self.vouchers = VoucherService(db)

    # --- Templates ---

    def create_template(self, request: RecurringTemplateCreate) -> RecurringTemplate:
        voucher_type = parse_voucher_type(request.voucher_type)
        frequency = parse_frequency(request.frequency)
        _check_day_of_month(request.day_of_month)
        if request.end_date and request.end_date < request.start_date:
            raise ValidationError("end_date cannot be before start_date")

        lines = _template_lines(request.lines)
        self.vouchers.engine.check_accounts(lines)

        template = RecurringTemplate(
            name=request.name,
            voucher_type=voucher_type,
            frequency=frequency,
            day_of_month=request.day_of_month,
            start_date=request.start_date,
            end_date=request.end_date,
            next_run_date=request.start_date,
            is_active=True,
            auto_post=request.auto_post,
            run_count=0,
            narration=request.narration,
        )
        template.lines.extend(lines)
        self.db.add(template)
        self.db.flush()

        logger.info(
            "Created recurring template %s (%s, %s) first run %s",
            template.id, voucher_type.value, frequency.value, template.next_run_date,
        )
        return template

    def update_template(
        self, template_id: int, request: RecurringTemplateUpdate
    ) -> RecurringTemplate:
        template = self.get_template(template_id)

        if request.name is not None:
            template.name = request.name
        if request.frequency is not None:
            template.frequency = parse_frequency(request.frequency)
        if request.day_of_month is not None:
            _check_day_of_month(request.day_of_month)
            template.day_of_month = request.day_of_month
        if "end_date" in request.model_fields_set:
            # An explicit null removes the end date.
            if request.end_date and request.end_date < template.start_date:
                raise ValidationError("end_date cannot be before start_date")
            template.end_date = request.end_date
        if request.auto_post is not None:
            template.auto_post = request.auto_post
        if request.narration is not None:
            template.narration = request.narration
        if request.lines is not None:
            lines = _template_lines(request.lines)
            self.vouchers.engine.check_accounts(lines)
            template.lines.clear()
            self.db.flush()
            template.lines.extend(lines)

        self.db.flush()
        return template

    def delete_template(self, template_id: int) -> None:
        """
        Delete a template that has never generated anything.

        Once a template has vouchers or log rows it is kept for the
        audit trail; pause it instead.
        """
        template = self.get_template(template_id)
        has_history = self.db.execute(
            select(RecurringLog.id).where(RecurringLog.template_id == template_id).limit(1)
        ).first() or self.db.execute(
            select(Voucher.id).where(Voucher.recurring_template_id == template_id).limit(1)
        ).first()
        if has_history:
            raise InvalidStateTransition(
                f"Recurring template {template_id} has generated vouchers; pause it instead"
            )
        self.db.delete(template)
        self.db.flush()
        logger.info("Deleted recurring template %s", template_id)

    def get_template(self, template_id: int) -> RecurringTemplate:
        template = self.db.get(RecurringTemplate, template_id)
        if not template:
            raise NotFound("RecurringTemplate", template_id)
        return template

    def list_templates(self, active_only: bool = False) -> list[RecurringTemplate]:
        stmt = select(RecurringTemplate)
        if active_only:
            stmt = stmt.where(RecurringTemplate.is_active.is_(True))
        stmt = stmt.order_by(RecurringTemplate.next_run_date, RecurringTemplate.id)
        return list(self.db.execute(stmt).scalars().all())

    def pause(self, template_id: int) -> RecurringTemplate:
        template = self.get_template(template_id)
        if template.is_active:
            template.is_active = False
            self.db.flush()
            logger.info("Paused recurring template %s", template_id)
        return template

    def resume(self, template_id: int) -> RecurringTemplate:
        template = self.get_template(template_id)
        if not template.is_active:
            template.is_active = True
            self.db.flush()
            logger.info("Resumed recurring template %s", template_id)
        return template

    def get_history(self, template_id: int) -> list[RecurringLog]:
        self.get_template(template_id)
        return list(self.db.execute(
            select(RecurringLog)
            .where(RecurringLog.template_id == template_id)
            .order_by(RecurringLog.generated_date.desc(), RecurringLog.id.desc())
        ).scalars().all())

    # --- Running ---

    def _due_template_ids(self, as_of: date) -> list[int]:
        stmt = (
            select(RecurringTemplate.id)
            .where(
                RecurringTemplate.is_active.is_(True),
                RecurringTemplate.next_run_date <= as_of,
                (RecurringTemplate.end_date.is_(None))
                | (RecurringTemplate.next_run_date <= RecurringTemplate.end_date),
            )
            .order_by(RecurringTemplate.next_run_date, RecurringTemplate.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def _lock_template(self, template_id: int) -> RecurringTemplate:
        template = self.db.execute(
            select(RecurringTemplate)
            .where(RecurringTemplate.id == template_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not template:
            raise NotFound("RecurringTemplate", template_id)
        return template

    def _voucher_request(
        self, template: RecurringTemplate, scheduled: date
    ) -> VoucherCreate:
        return VoucherCreate(
            voucher_type=template.voucher_type.value,
            voucher_date=scheduled,
            narration=template.narration or f"Recurring: {template.name}",
            reference=f"Recurring: {template.name}"[:100],
            lines=[
                VoucherLineCreate(
                    account_id=line.account_id,
                    amount=line.amount,
                    side=line.side,
                    description=line.description,
                )
                for line in template.lines
            ],
        )

    def _log(
        self,
        template_id: int,
        scheduled: date,
        as_of: date,
        outcome: RecurringOutcome,
        voucher_id: int | None = None,
        error: str | None = None,
    ) -> RecurringLog:
        log = RecurringLog(
            template_id=template_id,
            voucher_id=voucher_id,
            scheduled_date=scheduled,
            generated_date=as_of,
            outcome=outcome,
            error=error,
        )
        self.db.add(log)
        return log

    def _existing_occurrence(self, template_id: int, scheduled: date) -> Voucher | None:
        return self.db.execute(
            select(Voucher).where(
                Voucher.recurring_template_id == template_id,
                Voucher.recurring_date == scheduled,
            )
        ).scalar_one_or_none()

    def _skip(
        self, template: RecurringTemplate, scheduled: date, as_of: date,
        voucher_id: int | None,
    ) -> RunResultResponse:
        self._log(
            template.id, scheduled, as_of, RecurringOutcome.SKIPPED,
            voucher_id=voucher_id,
            error="Voucher already exists for this occurrence",
        )
        template.next_run_date = advance(
            scheduled, template.frequency, template.day_of_month
        )
        self.db.commit()
        logger.info(
            "Recurring template %s: occurrence %s already generated, skipped",
            template.id, scheduled,
        )
        return RunResultResponse(
            template_id=template.id,
            scheduled_date=scheduled,
            outcome=RecurringOutcome.SKIPPED,
            voucher_id=voucher_id,
        )

    def _run_template(self, template_id: int, as_of: date) -> RunResultResponse | None:
        template = self._lock_template(template_id)
        if not template.is_due(as_of):
            # Another tick got here first.
            self.db.rollback()
            return None

        scheduled = template.next_run_date
        existing = self._existing_occurrence(template_id, scheduled)
        if existing:
            return self._skip(template, scheduled, as_of, existing.id)

        try:
            voucher = self.vouchers.create(
                self._voucher_request(template, scheduled),
                recurring_template_id=template_id,
                recurring_date=scheduled,
            )
            entry = None
            if template.auto_post:
                voucher, entry = self.vouchers.post(voucher.id)

            self._log(
                template_id, scheduled, as_of, RecurringOutcome.SUCCESS,
                voucher_id=voucher.id,
            )
            template.next_run_date = advance(
                scheduled, template.frequency, template.day_of_month
            )
            template.last_run_date = as_of
            template.run_count += 1
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            template = self._lock_template(template_id)
            return self._skip(
                template, scheduled, as_of,
                getattr(self._existing_occurrence(template_id, scheduled), "id", None),
            )
        except (LedgerError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(
                "Recurring template %s failed for %s: %s",
                template_id, scheduled, e,
            )
            self._log(
                template_id, scheduled, as_of, RecurringOutcome.FAILED,
                error=str(e),
            )
            self.db.commit()
            return RunResultResponse(
                template_id=template_id,
                scheduled_date=scheduled,
                outcome=RecurringOutcome.FAILED,
                error=str(e),
            )

        logger.info(
            "Recurring template %s generated voucher %s for %s",
            template_id, voucher.number, scheduled,
        )
        return RunResultResponse(
            template_id=template_id,
            scheduled_date=scheduled,
            outcome=RecurringOutcome.SUCCESS,
            voucher_id=voucher.id,
            journal_entry_id=entry.id if entry else None,
        )

    def tick(self, as_of: date) -> list[RunResultResponse]:
        """
        Generate one occurrence for every template due on ``as_of``.

        Commits per template, so it expects a session with no pending
        work of its own. A template that is several periods behind
        catches up one occurrence per tick.
        """
        # Uncommitted work on the session is discarded, not committed.
        self.db.rollback()
        template_ids = self._due_template_ids(as_of)

        results = []
        for template_id in template_ids:
            result = self._run_template(template_id, as_of)
            if result is not None:
                results.append(result)

        logger.info(
            "Recurring tick %s: %d due, %d succeeded, %d failed",
            as_of, len(template_ids),
            sum(1 for r in results if r.outcome == RecurringOutcome.SUCCESS),
            sum(1 for r in results if r.outcome == RecurringOutcome.FAILED),
        )
        return results

    def run_due(self, as_of: date | None = None) -> list[RunResultResponse]:
        return self.tick(as_of or date.today())
