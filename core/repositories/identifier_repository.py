"""Looks up the highest existing human-readable identifier per kind."""

from clients.postgres_client import PostgresClient
from core.config import IdentifierKind

# Table and column holding each kind's identifier. Every column carries a
# unique index; that index, not the allocator, is what rejects duplicates.
_IDENTIFIER_COLUMNS = {
    IdentifierKind.PATIENT: ("patients", "patient_number"),
    IdentifierKind.INVOICE: ("invoices", "invoice_number"),
    IdentifierKind.PRESCRIPTION: ("prescriptions", "prescription_number"),
    IdentifierKind.MEDICATION: ("medications", "code"),
}


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"


class IdentifierRepository:
    """IdentifierSource on PostgreSQL."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def latest_identifier(self, kind: IdentifierKind, prefix: str) -> str | None:
        """
        Highest identifier of a kind that starts with prefix.

        Orders by length first so P1000 ranks above P999, which plain
        string ordering gets wrong.
        """
        table, column = _IDENTIFIER_COLUMNS[kind]

        row = self.postgres.execute_single(
            f"""
            SELECT {column} AS identifier FROM {table}
            WHERE {column} LIKE %s
            ORDER BY length({column}) DESC, {column} DESC
            LIMIT 1
            """,
            (_like_prefix(prefix),)
        )

        return row["identifier"] if row else None
