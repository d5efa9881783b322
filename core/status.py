"""
Invoice status derivation.

The stored status of an invoice goes stale on its own: due dates pass,
payments land through other paths. derive_status() computes the status an
invoice should have right now. It is pure and never raises, so a list page
can always render; anything odd about the record is reported by
status_anomalies() for the caller to log.

Priority when the rule applies: paid, then overdue, then partial, then
pending. Cancelled is never touched, and neither is any invoice written to
within the manual edit window.
"""

from datetime import date, datetime

from core.config import StatusPolicy
from core.models import Invoice, InvoiceStatus
from utils.timezone import assume_utc, calendar_day

DEFAULT_POLICY = StatusPolicy()


def status_anomalies(invoice: Invoice) -> list[str]:
    """
    Describe what is malformed about an invoice, if anything.

    Returns:
        Human-readable problems; empty when the record is well formed.
        A non-empty result makes derive_status() fall back to PENDING.
    """
    problems = []
    if invoice.due_date is None:
        problems.append("missing due date")
    if invoice.balance_cents < 0:
        problems.append(f"negative balance ({invoice.balance_cents})")
    if invoice.total_amount_cents < 0:
        problems.append(f"negative total ({invoice.total_amount_cents})")
    return problems


def evaluate_status(invoice: Invoice, today: date) -> InvoiceStatus:
    """
    Status implied by balance and due date alone.

    Ignores the stored status and the manual edit window. Malformed
    records evaluate to PENDING.
    """
    if status_anomalies(invoice):
        return InvoiceStatus.PENDING

    if invoice.balance_cents <= 0:
        return InvoiceStatus.PAID

    if today > invoice.due_date:
        return InvoiceStatus.OVERDUE

    if invoice.balance_cents < invoice.total_amount_cents:
        return InvoiceStatus.PARTIAL

    return InvoiceStatus.PENDING


def recently_modified(invoice: Invoice, now: datetime, policy: StatusPolicy = DEFAULT_POLICY) -> bool:
    """Whether the invoice was written to within the manual edit window."""
    if invoice.last_modified_at is None:
        return False
    return assume_utc(now) - assume_utc(invoice.last_modified_at) < policy.manual_edit_window


def derive_status(invoice: Invoice, now: datetime, policy: StatusPolicy = DEFAULT_POLICY) -> InvoiceStatus:
    """
    Compute the status an invoice should have at the given moment.

    Args:
        invoice: Invoice snapshot as loaded
        now: Current moment (naive values are taken as UTC)
        policy: Edit window and calendar time zone

    Returns:
        CANCELLED for cancelled invoices, the stored status for recently
        modified ones, otherwise evaluate_status() for today's date.
    """
    if invoice.status == InvoiceStatus.CANCELLED:
        return InvoiceStatus.CANCELLED

    if recently_modified(invoice, now, policy):
        return invoice.status

    return evaluate_status(invoice, calendar_day(now, policy.timezone))
