"""Shared test fixtures for the billing test suite.

Nothing here talks to PostgreSQL or Vault: services run against the
in-memory gateways below, which behave like the real repositories as far
as the billing core can tell (including unique invoice numbers).
"""

import pytest
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import Mock
from uuid import uuid4

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.audit import AuditLogger
from core.config import BillingConfig, IdentifierKind
from core.event_bus import EventBus
from core.events import BillingEvent
from core.exceptions import DuplicateIdentifierError
from core.identifiers import IdentifierAllocator
from core.models import Invoice, InvoiceStatus, Payment
from core.services.invoice_service import InvoiceService


# =============================================================================
# FIXED MOMENTS
# =============================================================================

# "Now" for service tests. Default invoices fall due two weeks earlier.
NOW = datetime(2024, 2, 15, 12, 0, 0, tzinfo=timezone.utc)

# Long before NOW, well outside any manual edit window
LONG_AGO = datetime(2023, 12, 1, 0, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# IN-MEMORY GATEWAYS
# =============================================================================


class InMemoryInvoices:
    """InvoiceGateway backed by a dict. Records every update for assertions."""

    def __init__(self):
        self.rows: dict = {}
        self.updates: list[tuple] = []

    def add(self, invoice: Invoice) -> Invoice:
        self.rows[invoice.id] = invoice
        return invoice

    def get(self, invoice_id):
        return self.rows.get(invoice_id)

    def list(self, filters, sort=None, limit=50):
        wanted = filters.model_dump(exclude_none=True)
        matches = [
            invoice for invoice in self.rows.values()
            if all(getattr(invoice, column) == value for column, value in wanted.items())
        ]
        return matches[:limit]

    def update(self, invoice_id, fields):
        current = self.rows.get(invoice_id)
        if current is None:
            raise ValueError(f"Invoice {invoice_id} not found")

        self.updates.append((invoice_id, dict(fields)))
        updated = Invoice.model_validate({**current.model_dump(), **fields})
        self.rows[invoice_id] = updated
        return updated

    def create(self, fields):
        number = fields["invoice_number"]
        if any(invoice.invoice_number == number for invoice in self.rows.values()):
            raise DuplicateIdentifierError(number)

        invoice = Invoice.model_validate({"id": uuid4(), "created_at": NOW, **fields})
        self.rows[invoice.id] = invoice
        return invoice


class InMemoryPayments:
    """PaymentGateway backed by a list."""

    def __init__(self):
        self.rows: list[Payment] = []

    def create(self, invoice_id, data, paid_on):
        payment = Payment(
            id=uuid4(),
            invoice_id=invoice_id,
            amount_cents=data.amount_cents,
            method=data.method,
            reference=data.reference,
            paid_on=paid_on,
            created_at=NOW,
        )
        self.rows.append(payment)
        return payment

    def list_for_invoice(self, invoice_id):
        return sorted(
            (p for p in self.rows if p.invoice_id == invoice_id),
            key=lambda p: (p.paid_on, p.created_at),
        )


class InMemoryIdentifiers:
    """
    IdentifierSource over fixed lists per kind.

    Invoice numbers also come from the linked invoice gateway, so created
    invoices are seen by the next allocation.
    """

    def __init__(self, invoices: InMemoryInvoices | None = None):
        self.existing: dict[IdentifierKind, list[str]] = {kind: [] for kind in IdentifierKind}
        self.invoices = invoices

    def latest_identifier(self, kind, prefix):
        values = list(self.existing[kind])
        if kind == IdentifierKind.INVOICE and self.invoices is not None:
            values += [invoice.invoice_number for invoice in self.invoices.rows.values()]

        matching = [v for v in values if v.startswith(prefix)]
        if not matching:
            return None
        return max(matching, key=lambda v: (len(v), v))


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_invoice():
    """Build an Invoice with sensible defaults; keyword overrides win."""

    def _make(**overrides) -> Invoice:
        fields = {
            "id": uuid4(),
            "invoice_number": "INV-202401-000001",
            "patient_id": "P001",
            "prescription_id": None,
            "issue_date": date(2024, 1, 1),
            "due_date": date(2024, 2, 1),
            "line_items": [
                {"description": "Consultation", "quantity": 1, "unit_price_cents": 10000},
            ],
            "total_amount_cents": 10000,
            "balance_cents": 10000,
            "currency": "CHF",
            "status": InvoiceStatus.PENDING,
            "notes": None,
            "last_modified_at": LONG_AGO,
            "created_at": LONG_AGO,
        }
        fields.update(overrides)
        return Invoice.model_validate(fields)

    return _make


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def invoices():
    return InMemoryInvoices()


@pytest.fixture
def payments():
    return InMemoryPayments()


@pytest.fixture
def identifiers(invoices):
    return InMemoryIdentifiers(invoices)


@pytest.fixture
def allocator(identifiers, billing_config):
    return IdentifierAllocator(
        identifiers,
        billing_config.identifier_formats,
        clock=lambda: NOW,
        tz_name=billing_config.status_policy.timezone,
    )


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def published():
    """Every event published on event_bus, in order."""
    return []


@pytest.fixture
def event_bus(published):
    bus = EventBus()
    bus.subscribe(BillingEvent, published.append)
    return bus


@pytest.fixture
def billing_config():
    return BillingConfig()


@pytest.fixture
def invoice_service(invoices, payments, allocator, audit, event_bus, billing_config):
    return InvoiceService(
        invoices=invoices,
        payments=payments,
        allocator=allocator,
        audit=audit,
        event_bus=event_bus,
        config=billing_config,
        clock=lambda: NOW,
    )
