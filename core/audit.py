"""
Billing audit trail.

One append-only audit_log row per invoice or payment write. Rows carry the
acting role name; status corrections made by the read path are attributed
to SYSTEM_ACTOR and use AuditAction.AUTO_CORRECT so they can be told apart
from manual edits.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

SYSTEM_ACTOR = "system"

# Bookkeeping columns that change on every write
_IGNORED_FIELDS = frozenset({"last_modified_at", "last_auto_corrected_at"})


class AuditAction(Enum):
    """What happened to the audited entity."""

    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"
    AUTO_CORRECT = "auto_correct"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Field-level diff of two serialized records.

    Args:
        old: Record before the write
        new: Record after the write
        exclude_fields: Fields to skip (defaults to the timestamp bookkeeping columns)

    Returns:
        {field: {"old": ..., "new": ...}} for every field that differs.
    """
    skip = _IGNORED_FIELDS if exclude_fields is None else exclude_fields

    return {
        key: {"old": old.get(key), "new": new.get(key)}
        for key in sorted(set(old) | set(new))
        if key not in skip and old.get(key) != new.get(key)
    }


class AuditLogger:
    """
    Writes and reads the audit_log table.

    Pass model_dump(mode="json") output in `changes` so UUIDs, dates and
    datetimes reach the JSONB column as strings.

    Usage:
        audit = AuditLogger(postgres)
        audit.log_change("invoice", invoice.id, AuditAction.CANCEL,
                         {"status": {"old": "pending", "new": "cancelled"}},
                         actor="Billing")
        audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> None:
        """
        Append one audit entry.

        Args:
            entity_type: "invoice" or "payment"
            entity_id: ID of the entity
            action: AuditAction performed
            changes: {"created": {...}} for CREATE, a compute_changes() diff otherwise
            actor: Role name; SYSTEM_ACTOR when omitted
        """
        self.postgres.execute(
            """
            INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                actor or SYSTEM_ACTOR,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(self, entity_type: str, entity_id: UUID) -> list[dict[str, Any]]:
        """All entries for one entity, newest first."""
        return self.postgres.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )

    def get_actor_activity(self, actor: str = SYSTEM_ACTOR, limit: int = 100) -> list[dict[str, Any]]:
        """
        Recent entries written by one role, newest first.

        With the default actor this lists the automatic status corrections.
        """
        return self.postgres.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE actor = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (actor, limit)
        )
