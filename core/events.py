"""
Domain events for billing.

Immutable event objects that represent state changes in the billing domain.
A service publishes what happened; handlers react without the publisher
knowing who is listening.

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(BillingEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceCreated(InvoiceEvent):
    """A new invoice was created in DRAFT or PENDING status."""
    invoice: Any = None  # Invoice; Any avoids a circular import

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCreated":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceStatusChanged(InvoiceEvent):
    """
    Invoice status moved.

    automatic is True when the read path corrected a stale status, False
    for manual edits, cancellations and payments.
    """
    invoice: Any = None
    old_status: str = ""
    new_status: str = ""
    automatic: bool = False

    @classmethod
    def create(cls, invoice: Any, old_status: str, automatic: bool) -> "InvoiceStatusChanged":
        return cls(
            invoice=invoice,
            old_status=old_status,
            new_status=invoice.status.value,
            automatic=automatic,
        )


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice balance reached zero through a payment."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentRecorded(BillingEvent):
    """A payment was recorded against an invoice."""
    payment: Any = None
    invoice: Any = None

    @classmethod
    def create(cls, payment: Any, invoice: Any) -> "PaymentRecorded":
        return cls(payment=payment, invoice=invoice)
