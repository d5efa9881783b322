"""Invoice domain models.

All amounts are stored in cents (integer) to avoid floating point issues.
CHF 10.00 = 1000 cents.
"""

import json
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Statuses an invoice may be created in
INITIAL_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.PENDING}


class LineItem(BaseModel):
    """One billed position. Order within an invoice is display order."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., ge=0)
    unit_price_cents: int = Field(..., ge=0)

    @computed_field
    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


class InvoiceCreate(BaseModel):
    """Data required to create an invoice."""

    patient_id: str = Field(..., min_length=1, max_length=100)
    prescription_id: str | None = Field(None, max_length=100)
    invoice_number: str | None = Field(None, min_length=1, max_length=50)
    issue_date: date | None = None
    due_date: date
    line_items: list[LineItem] = Field(..., min_length=1)
    currency: str | None = Field(None, pattern="^[A-Z]{3}$")
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: str | None = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def must_be_initial_status(cls, value: InvoiceStatus) -> InvoiceStatus:
        if value not in INITIAL_STATUSES:
            raise ValueError("New invoices must start as draft or pending")
        return value

    @property
    def total_amount_cents(self) -> int:
        return sum(item.line_total_cents for item in self.line_items)


class InvoiceUpdate(BaseModel):
    """
    Manual edit of an invoice. All fields optional.

    invoice_number is deliberately absent: it never changes after creation.
    """

    patient_id: str | None = Field(None, min_length=1, max_length=100)
    issue_date: date | None = None
    due_date: date | None = None
    line_items: list[LineItem] | None = Field(None, min_length=1)
    total_amount_cents: int | None = Field(None, ge=0)
    balance_cents: int | None = Field(None, ge=0)
    currency: str | None = Field(None, pattern="^[A-Z]{3}$")
    status: InvoiceStatus | None = None
    notes: str | None = Field(None, max_length=2000)


class Invoice(BaseModel):
    """
    Full invoice entity as stored.

    Stored records are not re-validated against the create rules: a record
    with no due date or a negative balance must still load so the status
    rule can report it instead of the read failing.
    """

    id: UUID
    invoice_number: str
    patient_id: str
    prescription_id: str | None = None
    issue_date: date | None
    due_date: date | None
    line_items: list[LineItem] = []
    total_amount_cents: int
    balance_cents: int
    currency: str
    status: InvoiceStatus
    notes: str | None = None
    last_modified_at: datetime | None
    last_auto_corrected_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("line_items", mode="before")
    @classmethod
    def parse_line_items(cls, value):
        # Older documents stored the list as a JSON-encoded string
        if isinstance(value, str):
            return json.loads(value) if value else []
        return value
