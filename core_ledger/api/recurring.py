"""
Recurring template endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core_ledger.exceptions import LedgerError
from core_ledger.models.base import get_db
from core_ledger.services.recurring_scheduler import RecurringScheduler
from core_ledger.schemas.recurring import (
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    RecurringTemplateResponse,
    RecurringLogResponse,
    RunDueRequest,
    RunDueResponse,
)

router = APIRouter(prefix="/recurring", tags=["Recurring"])


@router.post("", response_model=RecurringTemplateResponse, status_code=201)
def create_recurring_template(
    request: RecurringTemplateCreate,
    db: Session = Depends(get_db),
):
    """Create a template. Its first run is on ``start_date``."""
    scheduler = RecurringScheduler(db)
    try:
        template = scheduler.create_template(request)
        db.commit()
        return template
    except LedgerError:
        db.rollback()
        raise


@router.get("", response_model=list[RecurringTemplateResponse])
def list_recurring_templates(
    active_only: bool = False,
    db: Session = Depends(get_db),
):
    return RecurringScheduler(db).list_templates(active_only)


@router.post("/run", response_model=RunDueResponse)
def run_due_recurring(
    request: RunDueRequest | None = None,
    db: Session = Depends(get_db),
):
    """
    Generate vouchers for every due template.

    Each template commits on its own; the response lists the outcome
    of each one.
    """
    as_of = (request.as_of if request else None) or date.today()
    results = RecurringScheduler(db).run_due(as_of)
    return RunDueResponse(as_of=as_of, processed=len(results), results=results)


@router.get("/{template_id}", response_model=RecurringTemplateResponse)
def get_recurring_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    return RecurringScheduler(db).get_template(template_id)


@router.patch("/{template_id}", response_model=RecurringTemplateResponse)
def update_recurring_template(
    template_id: int,
    request: RecurringTemplateUpdate,
    db: Session = Depends(get_db),
):
    scheduler = RecurringScheduler(db)
    try:
        template = scheduler.update_template(template_id, request)
        db.commit()
        return template
    except LedgerError:
        db.rollback()
        raise


@router.delete("/{template_id}", status_code=204)
def delete_recurring_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    """Only a template that never generated a voucher can be deleted."""
    scheduler = RecurringScheduler(db)
    try:
        scheduler.delete_template(template_id)
        db.commit()
    except LedgerError:
        db.rollback()
        raise


@router.post("/{template_id}/pause", response_model=RecurringTemplateResponse)
def pause_recurring_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    scheduler = RecurringScheduler(db)
    try:
        template = scheduler.pause(template_id)
        db.commit()
        return template
    except LedgerError:
        db.rollback()
        raise


@router.post("/{template_id}/resume", response_model=RecurringTemplateResponse)
def resume_recurring_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    scheduler = RecurringScheduler(db)
    try:
        template = scheduler.resume(template_id)
        db.commit()
        return template
    except LedgerError:
        db.rollback()
        raise


@router.get(
    "/{template_id}/history",
    response_model=list[RecurringLogResponse],
)
def get_recurring_history(
    template_id: int,
    db: Session = Depends(get_db),
):
    """Every generation attempt for the template, newest first."""
    return RecurringScheduler(db).get_history(template_id)
