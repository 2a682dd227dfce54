"""Global error handling: unhandled exceptions and store failures."""

import logging
import traceback

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth_broker.middleware.logging import redact_pii
from auth_broker.services.stores import StoreError

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return safe error responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # Redact PII from error messages before logging
            error_msg = redact_pii(str(exc))
            tb = traceback.format_exc()

            logger.error(
                "Unhandled exception: %s\n%s",
                error_msg,
                redact_pii(tb),
            )

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "An internal error occurred. Please try again later.",
                    "error_type": type(exc).__name__,
                },
            )


async def store_error_handler(request: Request, exc: StoreError) -> PlainTextResponse:
    """Backing store failures are retryable; name the store for operators."""
    logger.error(
        "Store failure on %s %s: store=%s operation=%s",
        request.method,
        request.url.path,
        exc.store,
        exc.operation,
    )
    return PlainTextResponse(
        f"Store error ({exc.store}), please try again...",
        status_code=500,
    )
