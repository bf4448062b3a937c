"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Unit tests for relayer-facing error handling.
"""

import pytest

from stealthpay.core.error_handling import (
    ClaimErrorHandler,
    ErrorResponse,
    describe_error,
    get_error_handler,
    is_retryable,
)
from stealthpay.exceptions import (
    AlreadyClaimedError,
    ErrorKind,
    EventLogWriteError,
    ExpiredRequestError,
    InvalidConfigurationError,
    InvalidSignatureError,
    StateStoreError,
    TransferFailureError,
    UnknownRootError,
)
from stealthpay.logging_config import clear_correlation_id, set_correlation_id


class TestDescribeError:
    """Test describe_error."""

    def test_code_is_error_kind_value(self):
        response = describe_error(AlreadyClaimedError("already paid"))
        assert response.error_code == ErrorKind.ALREADY_CLAIMED.value
        assert response.retryable is False
        assert "already been claimed" in response.message

    def test_details(self):
        response = describe_error(ExpiredRequestError("expired at 5"))
        assert response.details == "ExpiredRequestError: expired at 5"
        assert describe_error(ExpiredRequestError("x"), include_details=False).details is None

    @pytest.mark.parametrize("error", [
        UnknownRootError("not funded"),
        TransferFailureError("bank down"),
        StateStoreError("disk"),
        EventLogWriteError("disk"),
    ])
    def test_retryable_errors(self, error):
        assert is_retryable(error)
        assert describe_error(error).retryable

    @pytest.mark.parametrize("error", [
        AlreadyClaimedError("x"),
        InvalidSignatureError("x"),
        RuntimeError("boom"),
    ])
    def test_permanent_errors(self, error):
        assert not is_retryable(error)

    def test_storage_error_code(self):
        assert describe_error(StateStoreError("disk")).error_code == "storage_error"

    def test_stealthpay_error_without_kind(self):
        assert describe_error(InvalidConfigurationError("bad")).error_code == "stealthpay_error"

    def test_internal_error(self):
        response = describe_error(RuntimeError("boom"))
        assert response.error_code == "internal_error"
        assert response.message == "An internal error occurred."

    def test_every_kind_has_a_message(self):
        for kind in ErrorKind:
            error = type("KindError", (Exception,), {"kind": kind})("x")
            assert describe_error(error).message

    def test_request_id_from_correlation_id(self):
        set_correlation_id("relay-7")
        try:
            assert describe_error(AlreadyClaimedError("x")).request_id == "relay-7"
        finally:
            clear_correlation_id()


class TestErrorResponse:
    """Test ErrorResponse serialization."""

    def test_to_dict_hides_details_by_default(self):
        response = ErrorResponse(error_code="invalid_proof", message="m", retryable=False, details="secret")
        data = response.to_dict()
        assert data["error"] == "invalid_proof"
        assert data["retryable"] is False
        assert "details" not in data
        assert "request_id" not in data
        assert "timestamp" in data

    def test_to_dict_with_details(self):
        response = ErrorResponse(
            error_code="invalid_proof", message="m", retryable=False, details="d", request_id="r",
        )
        data = response.to_dict(include_details=True)
        assert data["details"] == "d"
        assert data["request_id"] == "r"


class TestClaimErrorHandler:
    """Test ClaimErrorHandler."""

    def test_handle_error_returns_response(self):
        handler = ClaimErrorHandler()
        response = handler.handle_error(
            InvalidSignatureError("wrong signer"),
            operation="claim",
            stealth_address="0x" + "51" * 20,
            metadata={"relayer": "0x" + "5e" * 20},
        )
        assert response.error_code == "invalid_signature"

    def test_stats(self):
        handler = ClaimErrorHandler(service_name="test-relayer")
        handler.handle_error(AlreadyClaimedError("x"), operation="claim")
        handler.handle_error(AlreadyClaimedError("y"), operation="claim")
        handler.handle_error(TransferFailureError("z"), operation="batch_claim")
        handler.handle_error(RuntimeError("boom"), operation="claim")

        stats = handler.get_stats()
        assert stats["total_errors"] == 4
        assert stats["errors_by_code"] == {
            "already_claimed": 2,
            "transfer_failure": 1,
            "internal_error": 1,
        }

    def test_global_handler_is_shared(self):
        assert get_error_handler() is get_error_handler()
