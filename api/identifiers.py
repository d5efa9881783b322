"""GET /api/identifiers/next: preview the next sequential identifier."""

from fastapi import APIRouter, Depends, Query, Request

from api.base import success_response
from api.middleware import current_role
from auth.permissions import require_permission
from auth.types import Role
from core.config import IdentifierKind

# Permission that creates each kind; invoices are created under billing
CREATE_PERMISSIONS = {
    IdentifierKind.PATIENT: "patients:create",
    IdentifierKind.INVOICE: "billing:create",
    IdentifierKind.PRESCRIPTION: "prescriptions:create",
    IdentifierKind.MEDICATION: "medications:create",
}


def create_identifiers_router(services: dict) -> APIRouter:
    router = APIRouter()

    allocator = services["identifiers"]

    @router.get("/identifiers/next")
    async def next_identifier(
        request: Request,
        role: Role = Depends(current_role),
        kind: str = Query(...),
    ):
        try:
            identifier_kind = IdentifierKind(kind)
        except ValueError:
            valid = ", ".join(k.value for k in IdentifierKind)
            raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {valid}")

        # Whoever may create a kind may see its next number
        require_permission(role, CREATE_PERMISSIONS[identifier_kind])

        return success_response(
            {"kind": identifier_kind.value, "identifier": allocator.next_for(identifier_kind)},
            request,
        ).model_dump(mode="json")

    return router
