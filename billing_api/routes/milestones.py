"""
Milestone billing routes.

``POST .../bill`` answers 201 when it created the invoice and 200 when the
milestone was already billed; the body carries ``created`` either way.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from billing_api.dependencies import get_orchestrator
from billing_api.schemas import BillingResponse, MilestoneResponse, SendInvoiceResponse
from billing_services.billing_orchestrator import BillingOrchestrator

router = APIRouter(prefix="/api/projects/{project_id}/milestones", tags=["milestones"])


def _billing_response(result, response: Response) -> BillingResponse:
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return BillingResponse.from_dto(result)


@router.patch("/{milestone_id}/complete", response_model=MilestoneResponse)
def complete_milestone(
    project_id: UUID,
    milestone_id: UUID,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    return MilestoneResponse.from_dto(orchestrator.complete_milestone(project_id, milestone_id))


@router.post("/{milestone_id}/bill", response_model=BillingResponse)
def bill_milestone(
    project_id: UUID,
    milestone_id: UUID,
    response: Response,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    return _billing_response(orchestrator.bill_milestone(project_id, milestone_id), response)


@router.post("/{milestone_id}/complete-and-bill", response_model=BillingResponse)
def complete_and_bill_milestone(
    project_id: UUID,
    milestone_id: UUID,
    response: Response,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.complete_and_bill_milestone(project_id, milestone_id)
    return _billing_response(result, response)


@router.post("/{milestone_id}/send-invoice", response_model=SendInvoiceResponse)
def send_milestone_invoice(
    project_id: UUID,
    milestone_id: UUID,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    return SendInvoiceResponse.from_dto(
        orchestrator.send_milestone_invoice(project_id, milestone_id)
    )
