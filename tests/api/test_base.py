"""Tests for api/base.py - Unified API response format."""

from datetime import timezone
from types import SimpleNamespace

from api.base import (
    success_response,
    error_response,
    request_id_of,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_count_for_lists(self):
        assert success_response([{"id": 1}, {"id": 2}]).meta.count == 2
        assert success_response([]).meta.count == 0

    def test_no_count_for_single_record(self):
        assert success_response({"id": 1}).meta.count is None


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"
        assert resp.meta.count is None


class TestRequestIdOf:

    def test_uses_request_state(self):
        request = SimpleNamespace(state=SimpleNamespace(request_id="abc-123"))
        assert request_id_of(request) == "abc-123"

    def test_fresh_id_without_middleware(self):
        request = SimpleNamespace(state=SimpleNamespace())
        assert request_id_of(request) != request_id_of(request)

    def test_fresh_id_without_request(self):
        assert len(request_id_of(None)) > 0


class TestErrorCodes:

    def test_codes(self):
        assert ErrorCodes.NOT_AUTHENTICATED == "NOT_AUTHENTICATED"
        assert ErrorCodes.PERMISSION_DENIED == "PERMISSION_DENIED"
        assert ErrorCodes.NOT_FOUND == "NOT_FOUND"
        assert ErrorCodes.ALREADY_EXISTS == "ALREADY_EXISTS"
        assert ErrorCodes.VALIDATION_ERROR == "VALIDATION_ERROR"
        assert ErrorCodes.INVALID_REQUEST == "INVALID_REQUEST"
        assert ErrorCodes.INTERNAL_ERROR == "INTERNAL_ERROR"
