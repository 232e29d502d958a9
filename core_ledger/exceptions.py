"""
Ledger exceptions.

Every error raised by the services carries a stable error code and
the HTTP status the API layer should answer with. The API registers
a single handler for LedgerError, so services never import FastAPI.
"""

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base class for all ledger errors."""

    error_code = "ERR_LEDGER"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(LedgerError):
    """Bad request shape. Raised before anything is written."""

    error_code = "ERR_VALIDATION"
    status_code = 400


class NoLines(ValidationError):
    error_code = "ERR_NO_LINES"

    def __init__(self, message: str = "Entry has no lines"):
        super().__init__(message)


class UnbalancedEntry(LedgerError):
    """Total debits do not equal total credits."""

    error_code = "ERR_UNBALANCED"
    status_code = 400

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Entry does not balance: "
            f"debits={total_debit}, credits={total_credit}",
            details={
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )


class NotFound(LedgerError):
    error_code = "ERR_NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            f"{resource} {resource_id} not found",
            details={"resource": resource, "id": resource_id},
        )


class InvalidStateTransition(LedgerError):
    """A status guard rejected the requested transition."""

    error_code = "ERR_STATE"
    status_code = 409


class AlreadyPosted(InvalidStateTransition):
    error_code = "ERR_ALREADY_POSTED"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} is already posted",
            details={"resource": resource, "id": resource_id},
        )


class MissingAccountMapping(LedgerError):
    """An event role could not be resolved to an account."""

    error_code = "ERR_MAPPING"
    status_code = 422

    def __init__(self, event_type: str, roles: list[str]):
        self.event_type = event_type
        self.roles = roles
        super().__init__(
            f"Missing account mapping for {event_type}: {', '.join(roles)}",
            details={"event_type": event_type, "roles": roles},
        )


class StorageFailure(LedgerError):
    """The database failed mid-operation. The session was rolled back."""

    error_code = "ERR_STORAGE"
    status_code = 500
