"""
Logging configuration for StealthPay Core.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs for
tracing a claim from relayer submission to settlement.

Private keys never reach these helpers; only addresses, roots and amounts do.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """Return the current correlation ID, or None."""
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for StealthPay Core.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    _configure_structlog(json_format=json_format, cache_loggers=True)


def _configure_structlog(json_format: bool, cache_loggers: bool) -> None:
    """
    Route structlog through the stdlib logging tree.

    Also applied at import so that records emitted before ``setup_logging``
    (for example while loading configuration) never reach stdout, which the
    CLI reserves for command output.
    """
    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=cache_loggers,
    )


_configure_structlog(json_format=False, cache_loggers=False)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    return structlog.get_logger(f"stealthpay.{name}")


# Convenience functions for common logging patterns

def log_deposit(
    logger: structlog.stdlib.BoundLogger,
    root: str,
    employer: str,
    token: str,
    total_amount: int,
    overwrote: bool = False,
    **kwargs: Any,
) -> None:
    """
    Log a payroll deposit.

    Args:
        logger: Logger instance
        root: Commitment root (hex encoded)
        employer: Depositing address
        token: Token address or native asset marker
        total_amount: Amount moved into custody
        overwrote: Whether an existing record at the same root was replaced
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "payroll_deposit",
        "root": root,
        "employer": employer,
        "token": token,
        "total_amount": total_amount,
        "overwrote": overwrote,
    }

    log_data.update(kwargs)

    logger.info("payroll_deposit", **log_data)


def log_claim_settled(
    logger: structlog.stdlib.BoundLogger,
    stealth_address: str,
    recipient: str,
    relayer: str,
    net_amount: int,
    fee_amount: int,
    **kwargs: Any,
) -> None:
    """
    Log a successful claim disbursement.

    Args:
        logger: Logger instance
        stealth_address: Stealth address that was paid out
        recipient: Address that received the net amount
        relayer: Submitting address that received the fee
        net_amount: Amount paid to the recipient
        fee_amount: Amount paid to the relayer
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "claim_settled",
        "stealth_address": stealth_address,
        "recipient": recipient,
        "relayer": relayer,
        "net_amount": net_amount,
        "fee_amount": fee_amount,
    }

    log_data.update(kwargs)

    logger.info("claim_settled", **log_data)


def log_claim_rejected(
    logger: structlog.stdlib.BoundLogger,
    stealth_address: str,
    error_kind: str,
    reason: str,
    **kwargs: Any,
) -> None:
    """
    Log a rejected claim.

    Args:
        logger: Logger instance
        stealth_address: Stealth address named in the request
        error_kind: ErrorKind value of the failure
        reason: Human-readable reason
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "claim_rejected",
        "stealth_address": stealth_address,
        "error_kind": error_kind,
        "reason": reason,
    }

    log_data.update(kwargs)

    logger.warning("claim_rejected", **log_data)


def log_commitment_built(
    logger: structlog.stdlib.BoundLogger,
    root: str,
    leaf_count: int,
    token: str,
    total_amount: int,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a payroll commitment computation.

    Args:
        logger: Logger instance
        root: Computed Merkle root (hex encoded)
        leaf_count: Number of payroll entries
        token: Token bound to the commitment
        total_amount: Sum of all entry amounts
        duration_ms: Computation duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "commitment_built",
        "root": root,
        "leaf_count": leaf_count,
        "token": token,
        "total_amount": total_amount,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    logger.info("commitment_built", **log_data)
