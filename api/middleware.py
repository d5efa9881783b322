"""Request-scoped middleware for API requests."""

from typing import Callable
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import NotAuthenticatedError
from auth.types import Role

# Maps a request to the caller's role. Backed by the session layer in
# production; None means the caller is not signed in.
RoleResolver = Callable[[Request], Role | None]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RoleMiddleware(BaseHTTPMiddleware):
    """Resolves the caller's role and stores it on request.state.

    Public paths bypass resolution entirely. Everything else answers 401
    when no role can be resolved; permission checks happen per endpoint.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, role_resolver: RoleResolver):
        super().__init__(app)
        self._role_resolver = role_resolver

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        return any(path == public or path.startswith(public + "/") for public in self.PUBLIC_PATHS)

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        role = self._role_resolver(request)
        if role is None:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                    request,
                ).model_dump(mode="json"),
            )

        request.state.role = role
        return await call_next(request)


def current_role(request: Request) -> Role:
    """Role stored by RoleMiddleware. FastAPI dependency."""
    role = getattr(request.state, "role", None)
    if role is None:
        raise NotAuthenticatedError("No role resolved for request")
    return role
