"""
Vault access for the billing service.

The only secret billing needs today is the PostgreSQL URL, stored as
`<prefix>/database` field `url` in a KV v2 mount. Login is AppRole with
credentials from the environment; anything missing stops startup.

Environment:
    VAULT_ADDR, VAULT_ROLE_ID, VAULT_SECRET_ID   required
    VAULT_NAMESPACE                              optional
    VAULT_SECRET_PREFIX                          optional, defaults to "hospital"
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden, VaultError

logger = logging.getLogger(__name__)

DEFAULT_SECRET_PREFIX = "hospital"

# Process-wide client and secret cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


class VaultClient:
    """AppRole-authenticated hvac client confined to one secret prefix."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        secret_prefix: str | None = None,
    ):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.secret_prefix = (
            secret_prefix or os.getenv("VAULT_SECRET_PREFIX") or DEFAULT_SECRET_PREFIX
        ).strip("/")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required")

        options = {"url": self.vault_addr}
        if self.vault_namespace:
            options["namespace"] = self.vault_namespace
        self.client = hvac.Client(**options)

        self._login(role_id, secret_id)
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client ready: {self.vault_addr} (prefix '{self.secret_prefix}/')")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except (VaultError, KeyError) as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

        self.client.token = response["auth"]["client_token"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of a KV v2 secret below the configured prefix.

        `get_secret("database", "url")` reads `hospital/database`.

        Raises:
            PermissionError: The path is missing or not readable with this role.
            KeyError: The secret has no such field.
        """
        full_path = f"{self.secret_prefix}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")

        data = response["data"]["data"]
        try:
            return data[field]
        except KeyError:
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(data)}"
            ) from None


def get_vault_client() -> VaultClient:
    """Shared client, created on first use."""
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def get_cached_secret(path: str, field: str) -> str:
    """get_secret() on the shared client, remembered for the life of the process."""
    key = f"{path}#{field}"
    if key not in _secret_cache:
        _secret_cache[key] = get_vault_client().get_secret(path, field)
    return _secret_cache[key]


def get_database_url() -> str:
    """PostgreSQL connection URL for the billing database."""
    return get_cached_secret("database", "url")
