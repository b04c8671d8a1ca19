"""
Error Handlers - global exception handlers for the API.

- LedgerError -> structured JSON with code, message, category, retryable
- SQLAlchemyError -> 503 upstream failure, never leaks internal details
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.errors import LedgerError, CATEGORY_UPSTREAM
from app.logging_config import get_logger, log_with_context

logger = get_logger("http")


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        level = "ERROR" if exc.http_status >= 500 else "WARNING"
        log_with_context(logger, level, "{}: {}".format(exc.code, exc.message),
            extra_data={"path": request.url.path, "status_code": exc.http_status})
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        log_with_context(logger, "ERROR",
            "Database error on {}: {}".format(request.url.path, exc),
            exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": {
                    "code": "DATABASE_UNAVAILABLE",
                    "message": "The data store is temporarily unavailable",
                    "category": CATEGORY_UPSTREAM,
                    "retryable": False,
                }
            },
        )
