"""API test fixtures: TestClient over create_app with in-memory services."""

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.permissions import ADMIN_FULL
from auth.types import Role


# =============================================================================
# ROLES
# =============================================================================

ROLES = {
    "billing": Role(name="Billing", permissions=["billing:read", "billing:create", "billing:update"]),
    "reader": Role(name="Reception", permissions=["billing:read", "patients:create"]),
    "nurse": Role(name="Nurse", permissions=["patients:read"]),
    "admin": Role(name="Admin", permissions=[ADMIN_FULL]),
}


def resolve_role_from_header(request):
    """Test resolver: the X-Test-Role header names a role in ROLES."""
    return ROLES.get(request.headers.get("X-Test-Role", ""))


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def services(invoice_service, allocator):
    return {
        "invoice": invoice_service,
        "identifiers": allocator,
    }


@pytest.fixture
def app(services):
    return create_app(services, resolve_role_from_header)


def _client(app, role=None):
    c = TestClient(app, raise_server_exceptions=False)
    if role:
        c.headers["X-Test-Role"] = role
    return c


@pytest.fixture
def client(app):
    """Client acting as the billing clerk."""
    return _client(app, "billing")


@pytest.fixture
def reader_client(app):
    return _client(app, "reader")


@pytest.fixture
def nurse_client(app):
    return _client(app, "nurse")


@pytest.fixture
def admin_client(app):
    return _client(app, "admin")


@pytest.fixture
def unauthed_client(app):
    """Client with no role at all."""
    return _client(app)
