"""Billing configuration.

Configuration is passed explicitly to whatever needs it. Nothing in core/
reads settings from the environment or a settings store.
"""

from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from utils.timezone import calendar_day


class IdentifierKind(str, Enum):
    """Entity kinds that carry a human-readable sequential number."""

    PATIENT = "patient"
    INVOICE = "invoice"
    PRESCRIPTION = "prescription"
    MEDICATION = "medication"


class StatusPolicy(BaseModel):
    """
    How the read path corrects invoice statuses.

    The manual edit window keeps automatic corrections from overwriting a
    status a person set moments ago.
    """

    manual_edit_window_minutes: int = Field(
        default=10,
        description="Automatic corrections are skipped this long after a write",
        ge=0,
        le=1440,
    )
    timezone: str = Field(
        default="UTC",
        description="IANA zone used to truncate timestamps to calendar days",
    )
    auto_correction_touches_last_modified: bool = Field(
        default=True,
        description="Whether an automatic correction restarts the manual edit window",
    )

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @property
    def manual_edit_window(self) -> timedelta:
        return timedelta(minutes=self.manual_edit_window_minutes)


class IdentifierFormat(BaseModel):
    """Prefix and zero-padding for one identifier kind."""

    prefix: str = Field(..., min_length=1, max_length=32)
    pad: int = Field(3, ge=1, le=12)

    def prefix_at(self, now: datetime, tz_name: str = "UTC") -> str:
        """
        Prefix with any {yyyymm} placeholder filled in.

        The month is taken in tz_name, the same zone issue dates are
        truncated in, so an invoice number and its issue date agree.
        """
        return self.prefix.replace("{yyyymm}", calendar_day(now, tz_name).strftime("%Y%m"))


class IdentifierFormats(BaseModel):
    """Identifier formats per kind."""

    patient: IdentifierFormat = IdentifierFormat(prefix="P", pad=3)
    invoice: IdentifierFormat = IdentifierFormat(prefix="INV-{yyyymm}-", pad=6)
    prescription: IdentifierFormat = IdentifierFormat(prefix="RX", pad=3)
    medication: IdentifierFormat = IdentifierFormat(prefix="MED", pad=3)

    def for_kind(self, kind: IdentifierKind) -> IdentifierFormat:
        return getattr(self, kind.value)


class BillingConfig(BaseModel):
    """
    Billing configuration.

    Amounts are integer cents throughout, so nothing here deals with
    decimal places.
    """

    default_currency: str = Field(
        default="CHF",
        description="Currency stamped on new invoices when none is given",
        pattern="^[A-Z]{3}$",
    )
    identifier_max_attempts: int = Field(
        default=5,
        description="How many identifiers to try before giving up on a conflict",
        ge=1,
        le=20,
    )
    list_limit_max: int = Field(
        default=500,
        description="Upper bound on invoices returned by a single list call",
        ge=1,
        le=1000,
    )
    status_policy: StatusPolicy = Field(default_factory=StatusPolicy)
    identifier_formats: IdentifierFormats = Field(default_factory=IdentifierFormats)
