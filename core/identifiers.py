"""
Sequential human-readable identifiers (P001, RX014, INV-202501-000123).

Allocation reads the highest existing identifier for a prefix and adds one.
That read and the later insert are not atomic, so two concurrent creations
can compute the same value. The unique index on each identifier column
catches the collision and allocate_with_retry() tries again with a fresh
read.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Protocol, TypeVar

from core.config import IdentifierFormats, IdentifierKind
from core.exceptions import DuplicateIdentifierError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdentifierSource(Protocol):
    """Where the allocator finds the most recent identifier of a kind."""

    def latest_identifier(self, kind: IdentifierKind, prefix: str) -> str | None:
        """Highest identifier of this kind starting with prefix, or None."""
        ...


def increment_identifier(latest: str | None, prefix: str, pad: int, now: datetime) -> str:
    """
    Identifier that follows latest.

    Args:
        latest: Highest existing identifier, None if there is none
        prefix: Prefix every identifier of this kind starts with
        pad: Minimum number of digits after the prefix
        now: Used for the fallback when latest cannot be parsed

    Returns:
        prefix + (number + 1) zero-padded to pad digits. If latest is not
        prefix followed by digits, prefix + unix milliseconds instead, which
        gives up on sequence but not on uniqueness.
    """
    if pad < 1:
        raise ValueError(f"pad must be at least 1, got {pad}")

    if latest is None:
        return f"{prefix}{1:0{pad}d}"

    match = re.fullmatch(re.escape(prefix) + r"(\d+)", latest)
    if match is None:
        fallback = f"{prefix}{int(now.timestamp() * 1000)}"
        logger.warning(
            f"Cannot parse identifier '{latest}' with prefix '{prefix}', using {fallback}"
        )
        return fallback

    return f"{prefix}{int(match.group(1)) + 1:0{pad}d}"


class IdentifierAllocator:
    """
    Allocates the next identifier per kind.

    Usage:
        allocator = IdentifierAllocator(IdentifierRepository(postgres))

        allocator.next_identifier(IdentifierKind.PATIENT, "P", 3)  # "P042"
        allocator.next_for(IdentifierKind.INVOICE)  # "INV-202501-000123"

        invoice = allocator.allocate_with_retry(
            IdentifierKind.INVOICE,
            lambda number: repository.create({..., "invoice_number": number}),
        )
    """

    def __init__(
        self,
        source: IdentifierSource,
        formats: IdentifierFormats | None = None,
        clock: Callable[[], datetime] = now_utc,
        tz_name: str = "UTC",
    ):
        self.source = source
        self.formats = formats or IdentifierFormats()
        self.clock = clock
        # Zone for date placeholders in prefixes
        self.tz_name = tz_name

    def next_identifier(self, kind: IdentifierKind, prefix: str, pad: int = 3) -> str:
        """
        Next identifier for a kind with an explicit prefix and padding.

        Not reserved: the value is only a candidate until an insert using it
        succeeds.
        """
        latest = self.source.latest_identifier(kind, prefix)
        return increment_identifier(latest, prefix, pad, self.clock())

    def next_for(self, kind: IdentifierKind) -> str:
        """Next identifier for a kind using its configured format."""
        fmt = self.formats.for_kind(kind)
        return self.next_identifier(kind, fmt.prefix_at(self.clock(), self.tz_name), fmt.pad)

    def allocate_with_retry(
        self,
        kind: IdentifierKind,
        create: Callable[[str], T],
        max_attempts: int = 5,
    ) -> T:
        """
        Run create() with fresh identifiers until one is not taken.

        Args:
            kind: Identifier kind (format comes from config)
            create: Persists the entity using the identifier passed to it;
                must raise DuplicateIdentifierError on a collision
            max_attempts: Attempts before giving up

        Returns:
            Whatever create() returned

        Raises:
            DuplicateIdentifierError: If every attempt collided
        """
        for attempt in range(1, max_attempts + 1):
            identifier = self.next_for(kind)
            try:
                return create(identifier)
            except DuplicateIdentifierError:
                if attempt == max_attempts:
                    raise
                logger.warning(
                    f"{kind.value} identifier {identifier} taken "
                    f"(attempt {attempt}/{max_attempts}), retrying"
                )

        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
