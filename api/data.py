"""GET /api/data: unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.base import success_response
from api.middleware import current_role
from auth.permissions import require_permission
from auth.types import Role
from core.models import InvoiceStatus
from core.repositories.invoice_repository import InvoiceFilters, InvoiceSort


VALID_TYPES = {"invoices", "payments"}

BILLING_READ = "billing:read"


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]

    @router.get("/data")
    async def get_data(
        request: Request,
        role: Role = Depends(current_role),
        type: str | None = Query(None),
        id: str | None = Query(None),
        patient_id: str | None = Query(None),
        prescription_id: str | None = Query(None),
        invoice_id: str | None = Query(None),
        status: str | None = Query(None),
        sort: str | None = Query(None),
        limit: int = Query(50, ge=1, description="Capped by BillingConfig.list_limit_max"),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        require_permission(role, BILLING_READ)

        if type == "invoices":
            filters = InvoiceFilters(
                patient_id=patient_id,
                prescription_id=prescription_id,
                status=InvoiceStatus(status) if status else None,
            )
            return _handle_invoices(request, invoice_svc, id, filters, sort, limit)

        if type == "payments":
            return _handle_payments(request, invoice_svc, invoice_id)

    return router


def _handle_invoices(request, invoice_svc, id, filters, sort, limit):
    if id:
        invoice = invoice_svc.get_by_id(UUID(id))
        if invoice is None:
            raise ValueError(f"Invoice {id} not found")

        return success_response(invoice.model_dump(mode="json"), request).model_dump(mode="json")

    order = InvoiceSort(sort) if sort else InvoiceSort.ISSUE_DATE_DESC
    invoices = invoice_svc.list_all(filters, order, limit)
    return success_response(
        [i.model_dump(mode="json") for i in invoices], request
    ).model_dump(mode="json")


def _handle_payments(request, invoice_svc, invoice_id):
    if not invoice_id:
        raise ValueError("'payments' type requires 'invoice_id' parameter")

    payments = invoice_svc.list_payments(UUID(invoice_id))
    return success_response(
        [p.model_dump(mode="json") for p in payments], request
    ).model_dump(mode="json")
