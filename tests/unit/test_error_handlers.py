"""
Unit tests for error codes, exceptions and handlers.

Tests the registry exception classes and the handlers that turn them into
structured JSON responses.
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.responses import JSONResponse

from errors.codes import ErrorCode, get_default_status_code
from errors.exceptions import (
    AppException,
    IdentifierMalformedError,
    IdentifierNotFoundError,
    InvalidArgumentError,
    SessionNotFoundError,
)
from errors.handlers import (
    ErrorResponse,
    get_request_id,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)


def mock_request(request_id: str = "test-request-id", method: str = "GET") -> MagicMock:
    request = MagicMock(spec=Request)
    request.state.request_id = request_id
    request.url.path = "/session"
    request.method = method
    return request


class TestExceptions:
    """Tests for the registry exception classes."""

    @pytest.mark.parametrize(
        "exc, code, status",
        [
            (IdentifierNotFoundError(), ErrorCode.SESSION_ID_NOT_FOUND, 401),
            (IdentifierMalformedError(), ErrorCode.SESSION_ID_MALFORMED, 400),
            (SessionNotFoundError("abc"), ErrorCode.SESSION_NOT_FOUND, 404),
            (InvalidArgumentError("empty"), ErrorCode.INVALID_ARGUMENT, 400),
        ],
    )
    def test_codes_and_status(self, exc, code, status):
        assert isinstance(exc, AppException)
        assert exc.error_code == code
        assert exc.status_code == status

    def test_session_not_found_carries_id(self):
        exc = SessionNotFoundError("abc")

        assert exc.session_id == "abc"
        assert exc.to_dict() == {
            "error_code": "SESSION_NOT_FOUND",
            "message": "Session not found",
            "details": {"session_id": "abc"},
        }

    def test_to_dict_omits_missing_details(self):
        assert "details" not in IdentifierNotFoundError().to_dict()

    def test_repr_names_subclass(self):
        assert repr(InvalidArgumentError("empty")).startswith("InvalidArgumentError(")

    def test_internal_error_status(self):
        assert get_default_status_code(ErrorCode.INTERNAL_ERROR) == 500


class TestErrorResponse:
    """Tests for the ErrorResponse model."""

    def test_model_dump_excludes_none(self):
        response = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An error occurred",
            request_id="req-789",
        )

        dumped = response.model_dump(exclude_none=True)
        assert "details" not in dumped
        assert dumped["request_id"] == "req-789"


class TestGetRequestId:
    """Tests for the get_request_id function."""

    def test_get_request_id_from_state(self):
        request = MagicMock(spec=Request)
        request.state.request_id = "existing-request-id"

        assert get_request_id(request) == "existing-request-id"

    def test_get_request_id_generates_uuid_when_not_set(self):
        request = MagicMock(spec=Request)
        del request.state.request_id

        result = get_request_id(request)

        assert len(result) == 36
        assert result.count("-") == 4


class TestHandleAppException:
    """Tests for the handle_app_exception handler."""

    @pytest.mark.asyncio
    async def test_session_not_found_response(self):
        response = await handle_app_exception(mock_request(), SessionNotFoundError("abc"))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 404
        data = json.loads(response.body.decode("utf-8"))
        assert data == {
            "error_code": "SESSION_NOT_FOUND",
            "message": "Session not found",
            "details": {"session_id": "abc"},
            "request_id": "test-request-id",
        }

    @pytest.mark.asyncio
    async def test_identifier_not_found_response(self):
        response = await handle_app_exception(mock_request(), IdentifierNotFoundError())

        assert response.status_code == 401
        data = json.loads(response.body.decode("utf-8"))
        assert data["error_code"] == "SESSION_ID_NOT_FOUND"
        assert "details" not in data


class TestHandleUnexpectedException:
    """Tests for the handle_unexpected_exception handler."""

    @pytest.mark.asyncio
    async def test_hides_internal_details(self):
        exc = RuntimeError("lock state: readers=3 writer=True")

        response = await handle_unexpected_exception(mock_request(method="POST"), exc)

        assert response.status_code == 500
        data = json.loads(response.body.decode("utf-8"))
        assert "readers" not in data["message"]
        assert data["error_code"] == "INTERNAL_ERROR"
        assert "unexpected error" in data["message"].lower()
        assert data["request_id"] == "test-request-id"
        assert "details" not in data


class TestRegisterExceptionHandlers:
    """Tests for the register_exception_handlers function."""

    def test_register_exception_handlers_adds_handlers(self):
        mock_app = MagicMock()

        register_exception_handlers(mock_app)

        calls = mock_app.add_exception_handler.call_args_list
        exception_types = [call[0][0] for call in calls]
        assert exception_types == [AppException, Exception]
