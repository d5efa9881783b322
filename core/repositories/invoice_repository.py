"""
Invoice persistence.

InvoiceGateway is what the billing core needs from storage: get, list,
update and create of single invoice documents. InvoiceRepository provides
it on PostgreSQL, with line items kept as a JSONB array. No multi-document
transactions are assumed.
"""

import logging
from enum import Enum
from typing import Any, Protocol
from uuid import UUID, uuid4

from psycopg2 import errors
from psycopg2.extras import Json
from pydantic import BaseModel

from clients.postgres_client import PostgresClient
from core.exceptions import DuplicateIdentifierError
from core.models import Invoice, InvoiceStatus
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Columns a caller may set through create() or update()
_WRITABLE_COLUMNS = {
    "invoice_number",
    "patient_id",
    "prescription_id",
    "issue_date",
    "due_date",
    "line_items",
    "total_amount_cents",
    "balance_cents",
    "currency",
    "status",
    "notes",
    "last_modified_at",
    "last_auto_corrected_at",
}

_IMMUTABLE_COLUMNS = {"invoice_number"}


class InvoiceFilters(BaseModel):
    """Equality filters for listing invoices. None means unfiltered."""

    patient_id: str | None = None
    prescription_id: str | None = None
    status: InvoiceStatus | None = None


class InvoiceSort(str, Enum):
    """Supported list orderings."""

    ISSUE_DATE_DESC = "issue_date_desc"
    CREATED_AT_DESC = "created_at_desc"
    DUE_DATE_ASC = "due_date_asc"


_ORDER_BY = {
    InvoiceSort.ISSUE_DATE_DESC: "issue_date DESC NULLS LAST, created_at DESC",
    InvoiceSort.CREATED_AT_DESC: "created_at DESC",
    InvoiceSort.DUE_DATE_ASC: "due_date ASC NULLS LAST, created_at DESC",
}


class InvoiceGateway(Protocol):
    """Storage operations the invoice service depends on."""

    def get(self, invoice_id: UUID) -> Invoice | None: ...

    def list(
        self,
        filters: InvoiceFilters,
        sort: InvoiceSort = InvoiceSort.ISSUE_DATE_DESC,
        limit: int = 50,
    ) -> list[Invoice]: ...

    def update(self, invoice_id: UUID, fields: dict[str, Any]) -> Invoice: ...

    def create(self, fields: dict[str, Any]) -> Invoice: ...


def _adapt(column: str, value: Any) -> Any:
    if column == "line_items":
        return Json(value)
    if isinstance(value, Enum):
        return value.value
    return value


class InvoiceRepository:
    """InvoiceGateway on PostgreSQL."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def list(
        self,
        filters: InvoiceFilters,
        sort: InvoiceSort = InvoiceSort.ISSUE_DATE_DESC,
        limit: int = 50,
    ) -> list[Invoice]:
        """
        List invoices matching all given filters.

        Args:
            filters: Equality filters
            sort: Ordering
            limit: Maximum results

        Returns:
            Matching invoices in the requested order
        """
        where_parts = []
        params: list[Any] = []
        for column, value in filters.model_dump(exclude_none=True).items():
            where_parts.append(f"{column} = %s")
            params.append(_adapt(column, value))

        where = f"WHERE {' AND '.join(where_parts)}" if where_parts else ""
        params.append(limit)

        rows = self.postgres.execute(
            f"""
            SELECT * FROM invoices
            {where}
            ORDER BY {_ORDER_BY[sort]}
            LIMIT %s
            """,
            tuple(params)
        )

        return [Invoice.model_validate(row) for row in rows]

    def create(self, fields: dict[str, Any]) -> Invoice:
        """
        Insert a new invoice. The repository assigns id and created_at.

        Raises:
            DuplicateIdentifierError: If invoice_number is already taken
            ValueError: If fields name an unknown column
        """
        unknown = set(fields) - _WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown invoice fields: {', '.join(sorted(unknown))}")

        columns = ["id", "created_at", *fields.keys()]
        values = [uuid4(), now_utc(), *(_adapt(c, v) for c, v in fields.items())]

        try:
            row = self.postgres.execute_returning(
                f"""
                INSERT INTO invoices ({', '.join(columns)})
                VALUES ({', '.join(['%s'] * len(columns))})
                RETURNING *
                """,
                tuple(values)
            )[0]
        except errors.UniqueViolation:
            raise DuplicateIdentifierError(fields.get("invoice_number", ""))

        return Invoice.model_validate(row)

    def update(self, invoice_id: UUID, fields: dict[str, Any]) -> Invoice:
        """
        Write the given fields and return the stored result.

        Raises:
            ValueError: If the invoice doesn't exist, or fields name an
                unknown or immutable column
        """
        forbidden = set(fields) - (_WRITABLE_COLUMNS - _IMMUTABLE_COLUMNS)
        if forbidden:
            raise ValueError(f"Cannot update invoice fields: {', '.join(sorted(forbidden))}")

        if not fields:
            current = self.get(invoice_id)
            if current is None:
                raise ValueError(f"Invoice {invoice_id} not found")
            return current

        set_parts = [f"{column} = %s" for column in fields]
        params = [_adapt(c, v) for c, v in fields.items()]
        params.append(invoice_id)

        rows = self.postgres.execute_returning(
            f"""
            UPDATE invoices
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )

        if not rows:
            raise ValueError(f"Invoice {invoice_id} not found")

        return Invoice.model_validate(rows[0])
