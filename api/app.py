"""Application factory: wires repositories, services and routers."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.identifiers import create_identifiers_router
from api.middleware import RequestIDMiddleware, RoleMiddleware, RoleResolver
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.identifiers import IdentifierAllocator
from core.repositories.identifier_repository import IdentifierRepository
from core.repositories.invoice_repository import InvoiceRepository
from core.repositories.payment_repository import PaymentRepository
from core.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


def build_services(
    database_url: str | None = None,
    config: BillingConfig | None = None,
    event_bus: EventBus | None = None,
) -> dict:
    """
    Build the services dict the routers expect.

    The database URL comes from Vault when not given.
    """
    config = config or BillingConfig()
    postgres = PostgresClient(database_url or get_database_url())

    allocator = IdentifierAllocator(
        IdentifierRepository(postgres),
        config.identifier_formats,
        tz_name=config.status_policy.timezone,
    )
    invoice_service = InvoiceService(
        invoices=InvoiceRepository(postgres),
        payments=PaymentRepository(postgres),
        allocator=allocator,
        audit=AuditLogger(postgres),
        event_bus=event_bus or EventBus(),
        config=config,
    )

    return {
        "invoice": invoice_service,
        "identifiers": allocator,
    }


def create_app(services: dict, role_resolver: RoleResolver) -> FastAPI:
    """FastAPI app with role resolution, error handlers, and billing routes."""
    app = FastAPI(title="Billing")

    # Last added runs first: request IDs exist before role resolution answers 401
    app.add_middleware(RoleMiddleware, role_resolver=role_resolver)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_identifiers_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info("Billing API created")
    return app
