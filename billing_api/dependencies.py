"""
FastAPI dependencies.

Everything a route needs is built per request from ``app.state``, which
``create_app`` fills in: one session per request, closed afterwards, and
services wired to that session with the application's clock and config.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_kernel.domain.clock import Clock
from billing_modules.project.service import ProjectService
from billing_modules.quote.service import QuoteService
from billing_services.billing_orchestrator import BillingOrchestrator
from billing_services.rendering import InvoiceRenderer


def get_session(request: Request) -> Iterator[Session]:
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def get_config(request: Request) -> BillingConfig:
    return request.app.state.config


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_invoice_renderer(request: Request) -> InvoiceRenderer | None:
    return request.app.state.invoice_renderer


def get_orchestrator(
    request: Request,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    config: BillingConfig = Depends(get_config),
) -> BillingOrchestrator:
    return BillingOrchestrator(
        session,
        clock=clock,
        config=config,
        notifier=request.app.state.notifier,
    )


def get_quote_service(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    config: BillingConfig = Depends(get_config),
) -> QuoteService:
    return QuoteService(session, clock=clock, config=config)


def get_project_service(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    config: BillingConfig = Depends(get_config),
) -> ProjectService:
    return ProjectService(session, clock=clock, config=config)
