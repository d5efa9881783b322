"""Typed exceptions for authorization failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class NotAuthenticatedError(AuthError):
    """No role could be resolved for the caller."""


class PermissionDeniedError(AuthError):
    """The caller's role lacks a required permission."""

    def __init__(self, role_name: str, permission: str):
        self.role_name = role_name
        self.permission = permission
        super().__init__(f"Role '{role_name}' lacks permission '{permission}'")
