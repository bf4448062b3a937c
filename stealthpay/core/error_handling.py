"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Relayer- and payee-facing error handling for StealthPay Core.

Turns ledger and key-derivation exceptions into standardized responses:
- A machine-readable error code per ErrorKind
- A plain-language message a payee can be shown
- A retry disposition telling a relayer whether to resubmit or drop
- Structured logging and per-kind counters
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from stealthpay.exceptions import (
    ErrorKind,
    StealthPayError,
    StorageError,
)
from stealthpay.logging_config import get_correlation_id, get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """How loudly a failure is logged."""
    LOW = "low"  # Expected rejections, e.g. a resubmitted claim
    MEDIUM = "medium"  # Caller mistakes worth noticing
    HIGH = "high"  # Failures inside the ledger or its collaborators
    CRITICAL = "critical"  # Unclassified errors


@dataclass(frozen=True)
class _Disposition:
    message: str
    retryable: bool
    severity: ErrorSeverity


_DISPOSITIONS: Dict[ErrorKind, _Disposition] = {
    ErrorKind.INVALID_SCALAR: _Disposition(
        "The private key is not valid. Check that it was copied completely.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.INVALID_POINT_ENCODING: _Disposition(
        "The public key is not valid. Ask the payee for their meta public key again.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.INVALID_PROOF_SHAPE: _Disposition(
        "The payment proof is malformed.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.ETH_AMOUNT_MISMATCH: _Disposition(
        "The attached amount does not match the deposit total.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.ROOT_ALREADY_REGISTERED: _Disposition(
        "This payroll has already been funded.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.EXPIRED_REQUEST: _Disposition(
        "This claim has expired. Sign a new claim with a later deadline.",
        False, ErrorSeverity.LOW,
    ),
    ErrorKind.ALREADY_CLAIMED: _Disposition(
        "This payment has already been claimed.",
        False, ErrorSeverity.LOW,
    ),
    ErrorKind.FEE_EXCEEDS_AMOUNT: _Disposition(
        "The relayer fee is larger than the payment.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.UNKNOWN_ROOT: _Disposition(
        "This payroll has not been funded yet. Try again once the employer deposits it.",
        True, ErrorSeverity.LOW,
    ),
    ErrorKind.TOKEN_MISMATCH: _Disposition(
        "The claim names a different token than the payroll was funded with.",
        False, ErrorSeverity.HIGH,
    ),
    ErrorKind.INVALID_PROOF: _Disposition(
        "The payment details do not match what the employer committed to.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.INVALID_SIGNATURE: _Disposition(
        "The claim signature is not valid for this payment.",
        False, ErrorSeverity.MEDIUM,
    ),
    ErrorKind.TRANSFER_FAILURE: _Disposition(
        "The payout could not be transferred. Nothing was changed; try again later.",
        True, ErrorSeverity.HIGH,
    ),
    ErrorKind.ARRAY_LENGTH_MISMATCH: _Disposition(
        "The batch of claims is incomplete.",
        False, ErrorSeverity.MEDIUM,
    ),
}

_STORAGE_DISPOSITION = _Disposition(
    "The ledger could not record this operation. Nothing was changed; try again later.",
    True, ErrorSeverity.HIGH,
)
_UNKNOWN_DISPOSITION = _Disposition(
    "An internal error occurred.",
    False, ErrorSeverity.CRITICAL,
)


@dataclass
class ErrorResponse:
    """
    Standardized error response.

    Attributes:
        error_code: Machine-readable error code (the ErrorKind value)
        message: Plain-language message for the end payee
        retryable: Whether resubmitting the same request can succeed later
        details: Technical details (not exposed to end users)
        request_id: Optional correlation ID for tracing
        timestamp: When the error occurred
    """
    error_code: str
    message: str
    retryable: bool
    details: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        """
        Convert error response to dictionary.

        Args:
            include_details: Whether to include technical details
        """
        response = {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.request_id:
            response["request_id"] = self.request_id

        if include_details and self.details:
            response["details"] = self.details

        return response


def _disposition_for(error: Exception) -> _Disposition:
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return _DISPOSITIONS[kind]
    if isinstance(error, StorageError):
        return _STORAGE_DISPOSITION
    return _UNKNOWN_DISPOSITION


def _error_code_for(error: Exception) -> str:
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind.value
    if isinstance(error, StorageError):
        return "storage_error"
    if isinstance(error, StealthPayError):
        return "stealthpay_error"
    return "internal_error"


def describe_error(error: Exception, include_details: bool = True) -> ErrorResponse:
    """
    Build the response a relayer returns for a failed operation.

    Args:
        error: The exception raised by the ledger or key derivation
        include_details: Whether to keep the exception text in ``details``

    Returns:
        ErrorResponse with code, plain-language message and retry disposition
    """
    disposition = _disposition_for(error)
    return ErrorResponse(
        error_code=_error_code_for(error),
        message=disposition.message,
        retryable=disposition.retryable,
        details=f"{type(error).__name__}: {error}" if include_details else None,
        request_id=get_correlation_id(),
    )


def is_retryable(error: Exception) -> bool:
    """Whether a relayer may resubmit the same request after this error."""
    return _disposition_for(error).retryable


class ClaimErrorHandler:
    """
    Logs failed ledger operations and keeps per-kind counters.

    Example:
        >>> handler = ClaimErrorHandler()
        >>> try:
        ...     ledger.claim(relayer, request, signature, proof, root)
        ... except StealthPayError as e:
        ...     response = handler.handle_error(e, operation="claim")
    """

    def __init__(self, service_name: str = "stealthpay-relayer"):
        self.service_name = service_name
        self._error_count = 0
        self._error_count_by_code: Dict[str, int] = {}

    def handle_error(
        self,
        error: Exception,
        operation: str,
        stealth_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ErrorResponse:
        """
        Log an error with structured context and build its response.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            stealth_address: Stealth address involved, if any
            metadata: Additional context to log
        """
        disposition = _disposition_for(error)
        response = describe_error(error)

        log_data: Dict[str, Any] = {
            "service": self.service_name,
            "operation": operation,
            "error_code": response.error_code,
            "retryable": response.retryable,
            "severity": disposition.severity.value,
            "stealth_address": stealth_address,
            **(metadata or {}),
        }

        if disposition.severity == ErrorSeverity.CRITICAL:
            logger.critical(f"Unclassified error in {operation}: {error}", exc_info=error, **log_data)
        elif disposition.severity == ErrorSeverity.HIGH:
            logger.error(f"{operation} failed: {error}", exc_info=error, **log_data)
        elif disposition.severity == ErrorSeverity.MEDIUM:
            logger.warning(f"{operation} rejected: {error}", **log_data)
        else:  # LOW
            logger.info(f"{operation} rejected: {error}", **log_data)

        self._error_count += 1
        self._error_count_by_code[response.error_code] = (
            self._error_count_by_code.get(response.error_code, 0) + 1
        )
        return response

    def get_stats(self) -> Dict[str, Any]:
        """Return error counts, total and per error code."""
        return {
            "total_errors": self._error_count,
            "errors_by_code": dict(self._error_count_by_code),
        }


# Global error handler instance
_error_handler: Optional[ClaimErrorHandler] = None


def get_error_handler(service_name: str = "stealthpay-relayer") -> ClaimErrorHandler:
    """Get or create the global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ClaimErrorHandler(service_name)
    return _error_handler
