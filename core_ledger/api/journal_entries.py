"""
Manual journal entry endpoints.

A manual entry is saved as a draft, then posted. Voiding a posted
entry posts a reversal; nothing already in the ledger is edited.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core_ledger.exceptions import LedgerError
from core_ledger.models.base import get_db
from core_ledger.models.enums import JournalStatus, SourceType
from core_ledger.services.posting_engine import PostingEngine
from core_ledger.schemas.journal import (
    JournalEntryCreate,
    JournalEntryResponse,
    JournalVoidRequest,
)

router = APIRouter(prefix="/journal-entries", tags=["Journal Entries"])


@router.post("", response_model=JournalEntryResponse, status_code=201)
def create_journal_entry(
    request: JournalEntryCreate,
    db: Session = Depends(get_db),
):
    """Save a balanced manual entry as a DRAFT."""
    engine = PostingEngine(db)
    try:
        entry = engine.create_draft(request.lines, request.header())
        db.commit()
        return entry
    except LedgerError:
        db.rollback()
        raise


@router.post("/{entry_id}/post", response_model=JournalEntryResponse)
def post_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
):
    engine = PostingEngine(db)
    try:
        entry = engine.post_draft(entry_id)
        db.commit()
        return entry
    except LedgerError:
        db.rollback()
        raise


@router.post("/{entry_id}/void", response_model=JournalEntryResponse)
def void_journal_entry(
    entry_id: int,
    request: JournalVoidRequest | None = None,
    db: Session = Depends(get_db),
):
    """
    Void an entry. A posted entry is reversed by a new entry dated
    ``reversal_date`` (today when omitted).
    """
    engine = PostingEngine(db)
    try:
        entry = engine.void(
            entry_id, request.reversal_date if request else None
        )
        db.commit()
        return entry
    except LedgerError:
        db.rollback()
        raise


@router.get("", response_model=list[JournalEntryResponse])
def list_journal_entries(
    status: JournalStatus | None = None,
    source_type: SourceType | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return PostingEngine(db).list_entries(
        status, source_type, from_date, to_date, limit
    )


@router.get("/{entry_id}", response_model=JournalEntryResponse)
def get_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
):
    return PostingEngine(db).get_entry(entry_id)
