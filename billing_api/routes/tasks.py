"""Billable task routes: complete-and-bill, direct bill, conversion to milestone."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from billing_api.dependencies import get_orchestrator, get_project_service
from billing_api.schemas import (
    BillingResponse,
    ConvertTaskRequest,
    HoursRequest,
    TaskCompletionResponse,
    TaskConversionResponse,
)
from billing_modules.project.service import ProjectService
from billing_services.billing_orchestrator import BillingOrchestrator

router = APIRouter(prefix="/api/projects/{project_id}/tasks", tags=["tasks"])


@router.patch("/{task_id}/complete-and-bill", response_model=TaskCompletionResponse)
def complete_task_and_bill(
    project_id: UUID,
    task_id: UUID,
    body: HoursRequest | None = None,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    hours = body.actual_hours if body else None
    result = orchestrator.complete_task_and_bill(project_id, task_id, hours)
    return TaskCompletionResponse.from_dto(result)


@router.post("/{task_id}/bill", response_model=BillingResponse)
def bill_task(
    project_id: UUID,
    task_id: UUID,
    response: Response,
    body: HoursRequest | None = None,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    hours = body.actual_hours if body else None
    result = orchestrator.bill_task(project_id, task_id, hours)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return BillingResponse.from_dto(result)


@router.post(
    "/{task_id}/convert-to-milestone",
    response_model=TaskConversionResponse,
    status_code=status.HTTP_201_CREATED,
)
def convert_task_to_milestone(
    project_id: UUID,
    task_id: UUID,
    body: ConvertTaskRequest | None = None,
    service: ProjectService = Depends(get_project_service),
):
    planned_date = body.planned_date if body else None
    conversion = service.convert_task_to_milestone(project_id, task_id, planned_date)
    return TaskConversionResponse.from_dto(conversion)
