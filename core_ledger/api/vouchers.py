"""
Voucher endpoints.

Vouchers are the everyday way to record a transaction: create a
draft, then post it. Posting writes exactly one journal entry.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core_ledger.exceptions import LedgerError
from core_ledger.models.base import get_db
from core_ledger.models.enums import VoucherStatus
from core_ledger.services.voucher_service import VoucherService
from core_ledger.schemas.journal import JournalEntryResponse, JournalVoidRequest
from core_ledger.schemas.voucher import (
    VoucherCreate,
    VoucherResponse,
    VoucherPostResponse,
    VoucherTypeResponse,
)

router = APIRouter(prefix="/vouchers", tags=["Vouchers"])


@router.get("/types", response_model=list[VoucherTypeResponse])
def list_voucher_types():
    """The six voucher types with their prefixes and shortcuts."""
    return VoucherService.voucher_types()


@router.post("", response_model=VoucherResponse, status_code=201)
def create_voucher(
    request: VoucherCreate,
    db: Session = Depends(get_db),
):
    """Create a DRAFT voucher. Lines need not balance until posting."""
    service = VoucherService(db)
    try:
        voucher = service.create(request)
        db.commit()
        return voucher
    except LedgerError:
        db.rollback()
        raise


@router.post("/{voucher_id}/post", response_model=VoucherPostResponse)
def post_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
):
    """
    Post a draft voucher to the ledger.

    Posting the same voucher twice answers 409 the second time and
    leaves exactly one journal entry.
    """
    service = VoucherService(db)
    try:
        voucher, entry = service.post(voucher_id)
        db.commit()
        return VoucherPostResponse(
            voucher=VoucherResponse.model_validate(voucher),
            journal_entry=JournalEntryResponse.model_validate(entry),
        )
    except LedgerError:
        db.rollback()
        raise


@router.post("/{voucher_id}/void", response_model=VoucherResponse)
def void_voucher(
    voucher_id: int,
    request: JournalVoidRequest | None = None,
    db: Session = Depends(get_db),
):
    """Void a voucher; a posted one has its journal entry reversed."""
    service = VoucherService(db)
    try:
        voucher = service.void(
            voucher_id, request.reversal_date if request else None
        )
        db.commit()
        return voucher
    except LedgerError:
        db.rollback()
        raise


@router.get("", response_model=list[VoucherResponse])
def list_vouchers(
    voucher_type: str | None = None,
    status: VoucherStatus | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return VoucherService(db).list_vouchers(
        voucher_type, status, from_date, to_date, limit
    )


@router.get("/{voucher_id}", response_model=VoucherResponse)
def get_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
):
    return VoucherService(db).get(voucher_id)
