"""
Pydantic schemas for external events and account mappings.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core_ledger.models.enums import EventStatus


class EventIngest(BaseModel):
    event_type: str = Field(min_length=1, max_length=100)
    source: str | None = Field(default=None, max_length=50)
    payload: dict[str, Any] = Field(default_factory=dict)


class IntegrationEventResponse(BaseModel):
    id: int
    event_type: str
    source: str | None
    payload: dict[str, Any]
    status: EventStatus
    error: str | None
    journal_entry_id: int | None
    created_at: datetime
    processed_at: datetime | None

    model_config = {"from_attributes": True}


class MappingSet(BaseModel):
    mapping_key: str = Field(min_length=1, max_length=50)
    account_id: int


class MappingResponse(BaseModel):
    mapping_key: str
    default_code: str | None
    account_id: int | None
    account_code: str | None
    account_name: str | None
