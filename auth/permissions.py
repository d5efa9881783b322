"""
Role permission checks.

has_permission() is flat, literal set membership: no hierarchy, no
wildcards, no case folding. ADMIN_FULL only means something to callers
that ask for it through has_admin_access() or require_permission().
"""

from auth.exceptions import PermissionDeniedError
from auth.types import Role

ADMIN_FULL = "admin:full"


def has_permission(role: Role, permission: str) -> bool:
    """True iff permission is literally one of the role's permissions."""
    return permission in role.permissions


def has_admin_access(role: Role) -> bool:
    """True iff the role explicitly holds the admin:full convention string."""
    return has_permission(role, ADMIN_FULL)


def require_permission(role: Role, permission: str, allow_admin: bool = True) -> None:
    """
    Raise unless the role may perform the action.

    Args:
        role: Caller's role
        permission: Required permission string
        allow_admin: Let admin:full stand in for any permission

    Raises:
        PermissionDeniedError: If the role has neither
    """
    if has_permission(role, permission):
        return
    if allow_admin and has_admin_access(role):
        return
    raise PermissionDeniedError(role.name, permission)
