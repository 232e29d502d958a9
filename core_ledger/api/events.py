"""
External event and account mapping endpoints.

Ingestion commits on its own: the event is stored even when it
cannot be posted, and the error response carries the reason.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core_ledger.exceptions import LedgerError
from core_ledger.models.base import get_db
from core_ledger.models.enums import EventStatus
from core_ledger.services.event_translation import (
    DEFAULT_ACCOUNT_MAPPINGS,
    EventTranslator,
)
from core_ledger.schemas.integration import (
    EventIngest,
    IntegrationEventResponse,
    MappingSet,
    MappingResponse,
)

router = APIRouter(tags=["Integration"])


@router.post("/events", response_model=IntegrationEventResponse, status_code=201)
def ingest_external_event(
    request: EventIngest,
    db: Session = Depends(get_db),
):
    """
    Record an external event and post it to the ledger.

    Unknown event types are stored as IGNORED. A missing account
    mapping answers 422 and leaves the event FAILED.
    """
    return EventTranslator(db).ingest(
        request.event_type, request.payload, request.source
    )


@router.get("/events", response_model=list[IntegrationEventResponse])
def list_events(
    status: EventStatus | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return EventTranslator(db).list_events(status, limit)


@router.get("/events/{event_id}", response_model=IntegrationEventResponse)
def get_event(
    event_id: int,
    db: Session = Depends(get_db),
):
    return EventTranslator(db).get_event(event_id)


@router.post(
    "/events/{event_id}/reprocess",
    response_model=IntegrationEventResponse,
)
def reprocess_event(
    event_id: int,
    db: Session = Depends(get_db),
):
    """Retry a PENDING or FAILED event."""
    return EventTranslator(db).reprocess(event_id)


@router.get("/mappings", response_model=list[MappingResponse])
def list_mappings(db: Session = Depends(get_db)):
    """Every known role with its default code and resolved account."""
    return EventTranslator(db).list_mappings()


@router.put("/mappings", response_model=MappingResponse)
def set_mapping(
    request: MappingSet,
    db: Session = Depends(get_db),
):
    translator = EventTranslator(db)
    try:
        mapping = translator.set_mapping(request.mapping_key, request.account_id)
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    return MappingResponse(
        mapping_key=mapping.mapping_key,
        default_code=DEFAULT_ACCOUNT_MAPPINGS.get(mapping.mapping_key),
        account_id=mapping.account_id,
        account_code=mapping.account.code,
        account_name=mapping.account.name,
    )
