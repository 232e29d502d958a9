"""
Core Ledger FastAPI application.

Entry point for the HTTP service. All routers are registered here,
along with the handler that turns ledger errors into responses.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core_ledger.config import get_settings
from core_ledger.exceptions import LedgerError
from core_ledger.logging_config import configure_logging
from core_ledger.api.health import router as health_router
from core_ledger.api.accounts import router as accounts_router
from core_ledger.api.journal_entries import router as journal_entries_router
from core_ledger.api.vouchers import router as vouchers_router
from core_ledger.api.recurring import router as recurring_router
from core_ledger.api.events import router as events_router

settings = get_settings()
configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry ledger: vouchers, journal entries, "
                "recurring templates and external event posting",
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Render any LedgerError as {error_code, message, details}."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning(
            "%s %s rejected (%s): %s",
            request.method, request.url.path, exc.error_code, exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(journal_entries_router)
app.include_router(vouchers_router)
app.include_router(recurring_router)
app.include_router(events_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "core_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
