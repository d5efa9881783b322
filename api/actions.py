"""POST /api/actions: unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from api.base import success_response
from api.middleware import current_role
from auth.permissions import require_permission
from auth.types import Role
from core.models import InvoiceCreate, InvoiceStatus, InvoiceUpdate, PaymentCreate


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


class RefreshStatusRequest(BaseModel):
    force: bool = False


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest, role: Role = Depends(current_role)):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        require_permission(role, handler.REQUIRED_PERMISSIONS[body.action])

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data), role.name)
        return success_response(result, request).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


def _require_id(data: dict) -> UUID:
    if "id" not in data:
        raise ValueError("'id' is required")
    return UUID(str(data.pop("id")))


class InvoiceHandler:
    REQUIRED_PERMISSIONS = {
        "create": "billing:create",
        "update": "billing:update",
        "set_status": "billing:update",
        "cancel": "billing:update",
        "refresh_status": "billing:update",
        "record_payment": "billing:update",
    }
    ALLOWED_ACTIONS = set(REQUIRED_PERMISSIONS)

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict, actor: str):
        invoice = self.service.create(InvoiceCreate(**data), actor=actor)
        return invoice.model_dump(mode="json")

    def _handle_update(self, data: dict, actor: str):
        invoice_id = _require_id(data)
        invoice = self.service.update(invoice_id, InvoiceUpdate(**data), actor=actor)
        return invoice.model_dump(mode="json")

    def _handle_set_status(self, data: dict, actor: str):
        invoice_id = _require_id(data)
        if "status" not in data:
            raise ValueError("'status' is required")
        status = InvoiceStatus(data["status"])
        if status == InvoiceStatus.CANCELLED:
            invoice = self.service.cancel(invoice_id, actor=actor)
        else:
            invoice = self.service.update(invoice_id, InvoiceUpdate(status=status), actor=actor)
        return invoice.model_dump(mode="json")

    def _handle_cancel(self, data: dict, actor: str):
        invoice = self.service.cancel(_require_id(data), actor=actor)
        return invoice.model_dump(mode="json")

    def _handle_refresh_status(self, data: dict, actor: str):
        invoice_id = _require_id(data)
        options = RefreshStatusRequest(**data)
        invoice = self.service.refresh_status(invoice_id, force=options.force)
        return invoice.model_dump(mode="json")

    def _handle_record_payment(self, data: dict, actor: str):
        invoice_id = _require_id(data)
        invoice, payment = self.service.record_payment(invoice_id, PaymentCreate(**data), actor=actor)
        return {
            "invoice": invoice.model_dump(mode="json"),
            "payment": payment.model_dump(mode="json"),
        }
