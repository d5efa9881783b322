"""Core domain models."""

from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceStatus, LineItem, INITIAL_STATUSES,
)
from core.models.payment import Payment, PaymentCreate, PaymentMethod

__all__ = [
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceStatus", "LineItem", "INITIAL_STATUSES",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod",
]
