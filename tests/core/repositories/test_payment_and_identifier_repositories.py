"""Tests for PaymentRepository and IdentifierRepository against a mocked PostgresClient."""

from datetime import date, datetime, timezone
from unittest.mock import Mock
from uuid import uuid4

import pytest

from clients.postgres_client import PostgresClient
from core.config import IdentifierKind
from core.models import PaymentCreate, PaymentMethod
from core.repositories.identifier_repository import IdentifierRepository
from core.repositories.payment_repository import PaymentRepository


STAMP = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
def postgres():
    return Mock(spec=PostgresClient)


class TestPaymentRepository:

    def test_create(self, postgres):
        invoice_id = uuid4()
        payment_id = uuid4()
        postgres.execute_returning.return_value = [{
            "id": payment_id,
            "invoice_id": invoice_id,
            "amount_cents": 2500,
            "method": "card",
            "reference": "TX-9",
            "paid_on": date(2024, 2, 1),
            "created_at": STAMP,
        }]

        payment = PaymentRepository(postgres).create(
            invoice_id,
            PaymentCreate(amount_cents=2500, method=PaymentMethod.CARD, reference="TX-9"),
            date(2024, 2, 1),
        )

        query, params = postgres.execute_returning.call_args.args
        assert "INSERT INTO payments" in query
        assert params[1:6] == (invoice_id, 2500, "card", "TX-9", date(2024, 2, 1))
        assert payment.id == payment_id
        assert payment.method == PaymentMethod.CARD

    def test_list_for_invoice(self, postgres):
        invoice_id = uuid4()
        postgres.execute.return_value = []

        assert PaymentRepository(postgres).list_for_invoice(invoice_id) == []

        query, params = postgres.execute.call_args.args
        assert "ORDER BY paid_on ASC, created_at ASC" in query
        assert params == (invoice_id,)


class TestIdentifierRepository:

    @pytest.mark.parametrize("kind,table,column", [
        (IdentifierKind.PATIENT, "patients", "patient_number"),
        (IdentifierKind.INVOICE, "invoices", "invoice_number"),
        (IdentifierKind.PRESCRIPTION, "prescriptions", "prescription_number"),
        (IdentifierKind.MEDICATION, "medications", "code"),
    ])
    def test_queries_kind_column(self, postgres, kind, table, column):
        postgres.execute_single.return_value = None

        IdentifierRepository(postgres).latest_identifier(kind, "X")

        query = postgres.execute_single.call_args.args[0]
        assert f"FROM {table}" in query
        assert f"ORDER BY length({column}) DESC, {column} DESC" in query

    def test_returns_identifier(self, postgres):
        postgres.execute_single.return_value = {"identifier": "P041"}

        assert IdentifierRepository(postgres).latest_identifier(IdentifierKind.PATIENT, "P") == "P041"
        assert postgres.execute_single.call_args.args[1] == ("P%",)

    def test_none_when_empty(self, postgres):
        postgres.execute_single.return_value = None
        assert IdentifierRepository(postgres).latest_identifier(IdentifierKind.PATIENT, "P") is None

    def test_like_wildcards_in_prefix_are_escaped(self, postgres):
        postgres.execute_single.return_value = None

        IdentifierRepository(postgres).latest_identifier(IdentifierKind.MEDICATION, "MED_%")

        assert postgres.execute_single.call_args.args[1] == ("MED\\_\\%%",)
