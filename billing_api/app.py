"""
billing_api.app -- FastAPI application factory.

``create_app`` wires configuration, the database session factory, the clock,
and the notifier/renderer hooks into ``app.state``, registers the ORM
immutability listeners, and maps the typed billing exceptions to HTTP:

    ValidationError                      -> 400
    NotBillableError                     -> 403
    NotFoundError                        -> 404
    StateConflictError                   -> 409
    ImmutabilityViolationError           -> 409
    PersistenceError (and anything else) -> 500

Every error body is ``{message, code, details}``.  Each request runs with a
correlation id taken from ``X-Request-ID`` (or generated) and echoed back.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from billing_api.routes import invoices, milestones, quotes, tasks
from billing_config import get_active_config
from billing_config.schema import BillingConfig
from billing_kernel import __version__
from billing_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from billing_kernel.db.immutability import register_immutability_listeners
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    BillingError,
    ImmutabilityViolationError,
    NotBillableError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from billing_kernel.logging_config import LogContext, configure_logging, get_logger
from billing_services.notifier import InvoiceNotifier, LoggingInvoiceNotifier
from billing_services.rendering import InvoiceRenderer

logger = get_logger("api")

REQUEST_ID_HEADER = "X-Request-ID"


def status_for(exc: BillingError) -> int:
    """HTTP status for a billing exception."""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotBillableError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (StateConflictError, ImmutabilityViolationError)):
        return 409
    return 500


async def _billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.info
    log(
        "request_failed",
        extra={
            "path": request.url.path,
            "status": status,
            "error_code": exc.code,
        },
    )
    return JSONResponse(
        status_code=status,
        content={
            "message": str(exc),
            "code": exc.code,
            "details": jsonable_encoder(exc.details()),
        },
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request_failed",
        extra={
            "path": request.url.path,
            "status": 500,
            "error_code": PersistenceError.code,
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "message": "Internal server error",
            "code": PersistenceError.code,
            "details": None,
        },
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("request_invalid", extra={"path": request.url.path})
    return JSONResponse(
        status_code=400,
        content={
            "message": "Request validation failed",
            "code": ValidationError.code,
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app(
    config: BillingConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
    *,
    init_db: bool = False,
    clock: Clock | None = None,
    notifier: InvoiceNotifier | None = None,
    invoice_renderer: InvoiceRenderer | None = None,
) -> FastAPI:
    """
    Build the application.

    Without ``session_factory`` the engine is initialized from
    ``config.database_url``; ``init_db`` also creates the tables.
    """
    config = config or get_active_config()
    configure_logging(level=config.log_level)

    if session_factory is None:
        init_engine_from_url(config.database_url, echo=config.sql_echo)
        if init_db:
            create_tables()
        session_factory = get_session_factory()
    register_immutability_listeners()

    app = FastAPI(title="Construction Billing", version=__version__)
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.clock = clock or SystemClock()
    app.state.notifier = notifier or LoggingInvoiceNotifier()
    app.state.invoice_renderer = invoice_renderer

    app.add_exception_handler(BillingError, _billing_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        with LogContext.bind(correlation_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/health")
    def health():
        return {"ok": True, "version": __version__}

    app.include_router(quotes.router)
    app.include_router(milestones.router)
    app.include_router(tasks.router)
    app.include_router(invoices.router)

    logger.info("api_created", extra={"routes": len(app.routes)})
    return app
