"""Payment persistence."""

from datetime import date
from typing import Protocol
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.models import Payment, PaymentCreate
from utils.timezone import now_utc


class PaymentGateway(Protocol):
    """Storage operations the payment recorder depends on."""

    def create(self, invoice_id: UUID, data: PaymentCreate, paid_on: date) -> Payment: ...

    def list_for_invoice(self, invoice_id: UUID) -> list[Payment]: ...


class PaymentRepository:
    """PaymentGateway on PostgreSQL."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def create(self, invoice_id: UUID, data: PaymentCreate, paid_on: date) -> Payment:
        """
        Insert a payment row.

        Args:
            invoice_id: Invoice the payment settles
            data: Amount, method and reference
            paid_on: Payment date (data.paid_on already resolved by the caller)

        Returns:
            Stored payment
        """
        row = self.postgres.execute_returning(
            """
            INSERT INTO payments (id, invoice_id, amount_cents, method, reference, paid_on, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(),
                invoice_id,
                data.amount_cents,
                data.method.value,
                data.reference,
                paid_on,
                now_utc(),
            )
        )[0]

        return Payment.model_validate(row)

    def list_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        """Payments for an invoice, oldest first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s
            ORDER BY paid_on ASC, created_at ASC
            """,
            (invoice_id,)
        )

        return [Payment.model_validate(row) for row in rows]
