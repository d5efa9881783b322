"""Authorization modules."""

from auth.exceptions import AuthError, NotAuthenticatedError, PermissionDeniedError
from auth.types import Role
from auth.permissions import ADMIN_FULL, has_permission, has_admin_access, require_permission
