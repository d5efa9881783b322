"""
Invoice service for billing and payments.

Every invoice handed out by this service has been through the status rule:
if the stored status is stale, the corrected one is written back before the
invoice is returned. Manual edits, cancellations and payments are written
straight through and restart the manual edit window.
"""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from core.audit import AuditAction, AuditLogger, SYSTEM_ACTOR, compute_changes
from core.config import BillingConfig, IdentifierKind
from core.event_bus import EventBus
from core.events import InvoiceCreated, InvoicePaid, InvoiceStatusChanged, PaymentRecorded
from core.identifiers import IdentifierAllocator
from core.models import Invoice, InvoiceCreate, InvoiceStatus, InvoiceUpdate, Payment, PaymentCreate
from core.repositories.invoice_repository import InvoiceFilters, InvoiceGateway, InvoiceSort
from core.repositories.payment_repository import PaymentGateway
from core.status import derive_status, evaluate_status, status_anomalies
from utils.timezone import calendar_day, now_utc

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        invoices: InvoiceGateway,
        payments: PaymentGateway,
        allocator: IdentifierAllocator,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.invoices = invoices
        self.payments = payments
        self.allocator = allocator
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()
        self.clock = clock

    @property
    def _policy(self):
        return self.config.status_policy

    def _get_existing(self, invoice_id: UUID) -> Invoice:
        current = self.invoices.get(invoice_id)
        if current is None:
            raise ValueError(f"Invoice {invoice_id} not found")
        return current

    def _apply_derived_status(self, invoice: Invoice, now: datetime, force: bool = False) -> Invoice:
        """
        Write back the derived status if it differs from the stored one.

        force skips the manual edit window. Cancelled invoices are never
        touched either way.
        """
        anomalies = status_anomalies(invoice)
        if anomalies:
            logger.warning(
                f"Invoice {invoice.invoice_number} ({invoice.id}) is malformed: {'; '.join(anomalies)}"
            )

        if force and invoice.status != InvoiceStatus.CANCELLED:
            new_status = evaluate_status(invoice, calendar_day(now, self._policy.timezone))
        else:
            new_status = derive_status(invoice, now, self._policy)

        if new_status == invoice.status:
            return invoice

        fields = {"status": new_status, "last_auto_corrected_at": now}
        if self._policy.auto_correction_touches_last_modified:
            fields["last_modified_at"] = now

        updated = self.invoices.update(invoice.id, fields)

        logger.info(
            f"Invoice {invoice.invoice_number} status corrected "
            f"{invoice.status.value} -> {new_status.value}"
        )

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.AUTO_CORRECT,
            changes={
                "status": {"old": invoice.status.value, "new": new_status.value},
                "automatic": True,
            },
            actor=SYSTEM_ACTOR,
        )

        self.event_bus.publish(
            InvoiceStatusChanged.create(invoice=updated, old_status=invoice.status.value, automatic=True)
        )

        return updated

    def create(self, data: InvoiceCreate, actor: str | None = None) -> Invoice:
        """
        Create an invoice.

        Args:
            data: Invoice data; invoice_number is allocated when omitted
            actor: Role name for the audit trail

        Returns:
            Created invoice with balance equal to its total

        Raises:
            ValueError: If the due date precedes the issue date
            DuplicateIdentifierError: If the given invoice_number is taken,
                or every allocated one was
        """
        now = self.clock()
        issue_date = data.issue_date or calendar_day(now, self._policy.timezone)

        if data.due_date < issue_date:
            raise ValueError("Due date cannot be before issue date")

        total_amount_cents = data.total_amount_cents
        fields = {
            "patient_id": data.patient_id,
            "prescription_id": data.prescription_id,
            "issue_date": issue_date,
            "due_date": data.due_date,
            "line_items": [item.model_dump(mode="json") for item in data.line_items],
            "total_amount_cents": total_amount_cents,
            "balance_cents": total_amount_cents,
            "currency": data.currency or self.config.default_currency,
            "status": data.status,
            "notes": data.notes,
            "last_modified_at": now,
        }

        if data.invoice_number:
            invoice = self.invoices.create({**fields, "invoice_number": data.invoice_number})
        else:
            invoice = self.allocator.allocate_with_retry(
                IdentifierKind.INVOICE,
                lambda number: self.invoices.create({**fields, "invoice_number": number}),
                self.config.identifier_max_attempts,
            )

        logger.info(f"Invoice {invoice.invoice_number} created for patient {invoice.patient_id}")

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={"created": invoice.model_dump(mode="json")},
            actor=actor,
        )

        self.event_bus.publish(InvoiceCreated.create(invoice=invoice))

        return invoice

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID with its status brought up to date.

        Returns:
            Invoice if found, None otherwise.
        """
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            return None

        return self._apply_derived_status(invoice, self.clock())

    def list_all(
        self,
        filters: InvoiceFilters | None = None,
        sort: InvoiceSort = InvoiceSort.ISSUE_DATE_DESC,
        limit: int = 50,
    ) -> list[Invoice]:
        """
        List invoices with statuses brought up to date.

        Args:
            filters: Equality filters (patient, prescription, status)
            sort: Ordering
            limit: Maximum results, capped at config.list_limit_max

        Returns:
            Invoices in the requested order. A status filter selects on the
            stored status and is checked again after correction, so every
            returned invoice has the requested status; an invoice whose
            stored status is stale can be missing from the result.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        invoices = self.invoices.list(
            filters or InvoiceFilters(),
            sort,
            min(limit, self.config.list_limit_max),
        )

        now = self.clock()
        corrected = [self._apply_derived_status(invoice, now) for invoice in invoices]

        if filters is not None and filters.status is not None:
            corrected = [invoice for invoice in corrected if invoice.status == filters.status]

        return corrected

    def refresh_status(self, invoice_id: UUID, force: bool = False) -> Invoice:
        """
        Re-run the status rule for one invoice.

        Args:
            invoice_id: Invoice UUID
            force: Ignore the manual edit window

        Raises:
            ValueError: If invoice not found
        """
        return self._apply_derived_status(self._get_existing(invoice_id), self.clock(), force=force)

    def update(self, invoice_id: UUID, data: InvoiceUpdate, actor: str | None = None) -> Invoice:
        """
        Apply a manual edit.

        New line items recompute the total unless a total is given too.
        Setting status to PAID zeroes the balance.

        Raises:
            ValueError: If invoice not found, balance would exceed total,
                or due date would precede issue date
        """
        current = self._get_existing(invoice_id)

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        if data.line_items is not None:
            updates["line_items"] = [item.model_dump(mode="json") for item in data.line_items]
            if data.total_amount_cents is None:
                updates["total_amount_cents"] = sum(item.line_total_cents for item in data.line_items)

        if data.status == InvoiceStatus.PAID:
            updates["balance_cents"] = 0

        total = updates.get("total_amount_cents", current.total_amount_cents)
        balance = updates.get("balance_cents", current.balance_cents)
        if balance > total:
            raise ValueError("Balance cannot exceed total amount")

        issue_date = updates.get("issue_date", current.issue_date)
        due_date = updates.get("due_date", current.due_date)
        if issue_date and due_date and due_date < issue_date:
            raise ValueError("Due date cannot be before issue date")

        updates["last_modified_at"] = self.clock()
        updated = self.invoices.update(invoice_id, updates)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes=changes,
                actor=actor,
            )

        if updated.status != current.status:
            self.event_bus.publish(
                InvoiceStatusChanged.create(invoice=updated, old_status=current.status.value, automatic=False)
            )

        return updated

    def cancel(self, invoice_id: UUID, actor: str | None = None) -> Invoice:
        """
        Cancel an invoice. Cancelled is terminal for the status rule.

        Raises:
            ValueError: If invoice not found or already paid
        """
        current = self._get_existing(invoice_id)

        if current.status == InvoiceStatus.CANCELLED:
            return current

        if current.status == InvoiceStatus.PAID:
            raise ValueError(f"Invoice {invoice_id} is paid and cannot be cancelled")

        updated = self.invoices.update(invoice_id, {
            "status": InvoiceStatus.CANCELLED,
            "last_modified_at": self.clock(),
        })

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.CANCEL,
            changes={"status": {"old": current.status.value, "new": InvoiceStatus.CANCELLED.value}},
            actor=actor,
        )

        self.event_bus.publish(
            InvoiceStatusChanged.create(invoice=updated, old_status=current.status.value, automatic=False)
        )

        return updated

    def record_payment(
        self,
        invoice_id: UUID,
        data: PaymentCreate,
        actor: str | None = None
    ) -> tuple[Invoice, Payment]:
        """
        Record a payment and lower the invoice balance.

        The payment row is written before the invoice; a failure in between
        leaves a payment whose amount is not reflected in the balance.

        Args:
            invoice_id: Invoice UUID
            data: Payment amount, method, reference and date

        Returns:
            (updated invoice, stored payment). Status follows the balance:
            PAID at zero, otherwise OVERDUE past the due date, else PARTIAL.

        Raises:
            ValueError: If invoice not found, cancelled, or the amount
                exceeds the balance
        """
        current = self._get_existing(invoice_id)

        if current.status == InvoiceStatus.CANCELLED:
            raise ValueError(f"Invoice {invoice_id} is cancelled")

        if data.amount_cents > current.balance_cents:
            raise ValueError(
                f"Payment amount {data.amount_cents} exceeds balance {current.balance_cents}"
            )

        now = self.clock()
        today = calendar_day(now, self._policy.timezone)

        payment = self.payments.create(invoice_id, data, data.paid_on or today)

        new_balance = current.balance_cents - data.amount_cents
        if new_balance <= 0:
            # Settled even when the record is missing its due date
            new_status = InvoiceStatus.PAID
        else:
            new_status = evaluate_status(current.model_copy(update={"balance_cents": new_balance}), today)

        updated = self.invoices.update(invoice_id, {
            "balance_cents": new_balance,
            "status": new_status,
            "last_modified_at": now,
        })

        self.audit.log_change(
            entity_type="payment",
            entity_id=payment.id,
            action=AuditAction.CREATE,
            changes={"created": payment.model_dump(mode="json")},
            actor=actor,
        )
        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "balance_cents": {"old": current.balance_cents, "new": new_balance},
                "status": {"old": current.status.value, "new": new_status.value},
                "payment_recorded": data.amount_cents,
            },
            actor=actor,
        )

        self.event_bus.publish(PaymentRecorded.create(payment=payment, invoice=updated))

        if new_status != current.status:
            self.event_bus.publish(
                InvoiceStatusChanged.create(invoice=updated, old_status=current.status.value, automatic=False)
            )

        if new_status == InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return updated, payment

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        """
        Payments recorded against an invoice, oldest first.

        Raises:
            ValueError: If invoice not found
        """
        self._get_existing(invoice_id)
        return self.payments.list_for_invoice(invoice_id)
