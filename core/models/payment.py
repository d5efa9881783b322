"""Payment domain models."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """How a payment was made."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    INSURANCE = "insurance"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    amount_cents: int = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference: str | None = Field(None, max_length=255)
    paid_on: date | None = None


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    invoice_id: UUID
    amount_cents: int
    method: PaymentMethod
    reference: str | None
    paid_on: date
    created_at: datetime

    model_config = {"from_attributes": True}
