"""Typed exceptions for billing failures that callers handle specifically."""


class BillingError(Exception):
    """Base class for billing core errors."""


class DuplicateIdentifierError(BillingError):
    """
    A human-readable identifier is already taken.

    Raised by gateways on a unique constraint violation. The allocator
    retries a bounded number of times before letting it through.
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Identifier {identifier} already exists")
