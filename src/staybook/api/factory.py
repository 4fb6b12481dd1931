"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from staybook.domain.errors import BookingError
from staybook.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

from .routers import public
from .routes import auth, bookings, discounts

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI app with every router mounted.

    Domain errors become JSON bodies ``{"kind", "message"[, "reason"]}``
    with the status code their class carries. Anything else (database
    failures included) is logged and answered with an opaque 500.
    """
    app = FastAPI(
        title="Staybook",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        logger.info(
            "request_rejected",
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path,
                    kind=exc.kind,
                    reason=exc.reason,
                )
            },
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_error",
            exc_info=exc,
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        return JSONResponse(
            status_code=500,
            content={"kind": "internal_error", "message": "Internal server error"},
        )

    app.include_router(public.router)
    app.include_router(auth.router)
    app.include_router(bookings.router)
    app.include_router(discounts.router)

    return app
