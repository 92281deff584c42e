"""Invoice lookup and document download."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from billing_api.dependencies import get_invoice_renderer, get_orchestrator
from billing_api.schemas import InvoiceResponse
from billing_services.billing_orchestrator import BillingOrchestrator
from billing_services.rendering import InvoiceRenderer

router = APIRouter(prefix="/api/projects/{project_id}/invoices", tags=["invoices"])


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    project_id: UUID,
    invoice_id: UUID,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
):
    return InvoiceResponse.from_dto(orchestrator.get_invoice(project_id, invoice_id))


@router.get("/{invoice_id}/download")
def download_invoice(
    project_id: UUID,
    invoice_id: UUID,
    orchestrator: BillingOrchestrator = Depends(get_orchestrator),
    renderer: InvoiceRenderer | None = Depends(get_invoice_renderer),
):
    invoice = orchestrator.get_invoice(project_id, invoice_id)
    if renderer is None:
        return JSONResponse(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            content={
                "message": "Invoice rendering is not configured",
                "code": "RENDERER_NOT_CONFIGURED",
                "details": {"invoice_id": str(invoice_id)},
            },
        )
    return Response(
        content=renderer.render(invoice),
        media_type=renderer.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{renderer.filename(invoice)}"'
        },
    )
