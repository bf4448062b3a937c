"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Ledger event log for StealthPay Core.

Every deposit and every successful claim emits an event. Together the events
carry enough data (root, employer, token, amounts, recipient, relayer) for an
external indexer to rebuild the full payout history without any private key.

This module provides:
- LedgerEvent, the record written per event
- InMemoryEventLog for tests and embedded use
- JsonlEventLog, an append-only JSON Lines file with file locking, fsync and
  rolling backups
- EventLogQuery for filtering events and building payout history
"""

import fcntl
import json
import os
import shutil
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from stealthpay.core.encoding import normalize_address
from stealthpay.core.retry import retry_on_transient_failure
from stealthpay.exceptions import EventLogReadError, EventLogWriteError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

PAYROLL_DEPOSITED = "PayrollDeposited"
CLAIMED = "Claimed"

EVENT_TYPES = (PAYROLL_DEPOSITED, CLAIMED)


@dataclass
class LedgerEvent:
    """
    A single event emitted by the claim ledger.

    Amounts are decimal strings so uint256 values survive JSON round-trips.
    Deposit events fill employer and total_amount; claim events fill
    stealth_address, recipient, net_amount, fee_amount and relayer.
    """
    event_id: int
    event_type: str
    timestamp: str  # ISO 8601 format
    root: str
    token: str
    employer: Optional[str] = None
    total_amount: Optional[str] = None
    stealth_address: Optional[str] = None
    recipient: Optional[str] = None
    net_amount: Optional[str] = None
    fee_amount: Optional[str] = None
    relayer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization, dropping unset fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEvent":
        """Create LedgerEvent from dictionary."""
        return cls(**data)

    def to_json_line(self) -> str:
        """Convert to JSON Lines format (single line JSON)."""
        return json.dumps(self.to_dict(), separators=(',', ':'))


def deposit_event(root: str, employer: str, token: str, total_amount: int) -> LedgerEvent:
    """Draft a PayrollDeposited event; the log assigns id and timestamp."""
    return LedgerEvent(
        event_id=0,
        event_type=PAYROLL_DEPOSITED,
        timestamp="",
        root=root,
        token=token,
        employer=employer,
        total_amount=str(total_amount),
    )


def claimed_event(
    root: str,
    token: str,
    stealth_address: str,
    recipient: str,
    net_amount: int,
    fee_amount: int,
    relayer: str,
) -> LedgerEvent:
    """Draft a Claimed event; the log assigns id and timestamp."""
    return LedgerEvent(
        event_id=0,
        event_type=CLAIMED,
        timestamp="",
        root=root,
        token=token,
        stealth_address=stealth_address,
        recipient=recipient,
        net_amount=str(net_amount),
        fee_amount=str(fee_amount),
        relayer=relayer,
    )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class EventLog(ABC):
    """Append-only sink for ledger events."""

    @abstractmethod
    def append_events(self, drafts: List[LedgerEvent]) -> List[LedgerEvent]:
        """
        Assign ids and timestamps to drafts and append them all at once.

        Either every draft is appended or none is.

        Raises:
            EventLogWriteError: If the events cannot be appended
        """

    @abstractmethod
    def read_events(self) -> List[LedgerEvent]:
        """Return all events in append order."""


class InMemoryEventLog(EventLog):
    """Event log kept in a list; lost when the process exits."""

    def __init__(self):
        self._events: List[LedgerEvent] = []
        self._lock = threading.Lock()

    def append_events(self, drafts: List[LedgerEvent]) -> List[LedgerEvent]:
        with self._lock:
            next_id = len(self._events) + 1
            stamped = []
            for offset, draft in enumerate(drafts):
                event = LedgerEvent(**{**asdict(draft), "event_id": next_id + offset,
                                       "timestamp": _utc_timestamp()})
                stamped.append(event)
            self._events.extend(stamped)
            return stamped

    def read_events(self) -> List[LedgerEvent]:
        with self._lock:
            return list(self._events)


class JsonlEventLog(EventLog):
    """
    Event log persisted as JSON Lines.

    Implements:
    - Append-only semantics (no updates or deletes)
    - Monotonically increasing event IDs
    - File locking for concurrent safety
    - All-or-nothing multi-event appends
    - Rolling backups
    """

    def __init__(
        self,
        log_path: str,
        backup_count: int = 3,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
    ):
        """
        Initialize JsonlEventLog.

        Args:
            log_path: Path to the event log file (JSON Lines format)
            backup_count: Number of rolling backups to maintain (default: 3)
            max_retries: Retries on transient write failures (default: 3)
            retry_base_delay: Delay before the first retry in seconds (default: 0.1)
        """
        self.log_path = Path(log_path)
        self.backup_count = backup_count
        self._next_event_id = 1
        self._backup_created = False
        self._lock = threading.Lock()
        self._write_events = retry_on_transient_failure(
            max_retries=max_retries, base_delay=retry_base_delay
        )(self._atomic_append)

        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.log_path.exists():
            self.log_path.touch()
            logger.info(f"Created new event log at {self.log_path}")
        else:
            self._initialize_event_id()
            logger.info(f"Loaded existing event log from {self.log_path}, next event ID: {self._next_event_id}")

    def append_events(self, drafts: List[LedgerEvent]) -> List[LedgerEvent]:
        if not drafts:
            return []

        with self._lock:
            if not self._backup_created and self.log_path.stat().st_size > 0:
                self._create_backup()
                self._backup_created = True

            try:
                stamped = self._write_events(drafts)
            except OSError as e:
                logger.error(f"Failed to append events to {self.log_path}: {e}", exc_info=True)
                raise EventLogWriteError(f"Failed to append events to {self.log_path}: {e}") from e

            self._next_event_id = stamped[-1].event_id + 1
            return stamped

    def _atomic_append(self, drafts: List[LedgerEvent]) -> List[LedgerEvent]:
        """
        Stamp and append events under an exclusive lock in a single write, then fsync.

        IDs continue from the last event in the file as read under the lock,
        so several writers sharing one log never reuse an ID.
        """
        with open(self.log_path, 'a+') as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.seek(0)
                next_event_id = self._last_event_id(f) + 1
                timestamp = _utc_timestamp()
                stamped = [
                    LedgerEvent(**{**asdict(draft), "event_id": next_event_id + offset, "timestamp": timestamp})
                    for offset, draft in enumerate(drafts)
                ]

                f.seek(0, os.SEEK_END)
                start = f.tell()
                try:
                    f.write("".join(event.to_json_line() + '\n' for event in stamped))
                    f.flush()
                    os.fsync(f.fileno())
                except OSError:
                    # Drop the partial write so a retry cannot duplicate events
                    f.truncate(start)
                    raise
                return stamped
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _last_event_id(self, f) -> int:
        last_line = None
        for line in f:
            if line.strip():
                last_line = line
        if last_line is None:
            return 0
        try:
            return int(json.loads(last_line)["event_id"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise EventLogReadError(f"Malformed last event in {self.log_path}: {e}") from e

    def read_events(self) -> List[LedgerEvent]:
        events = []
        try:
            with open(self.log_path, 'r') as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        events.append(LedgerEvent.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, TypeError) as e:
                        logger.error(f"Malformed event at {self.log_path}:{line_num}: {e}")
                        raise EventLogReadError(
                            f"Malformed event at {self.log_path}:{line_num}: {e}"
                        ) from e
        except OSError as e:
            logger.error(f"Failed to read event log {self.log_path}: {e}", exc_info=True)
            raise EventLogReadError(f"Failed to read event log {self.log_path}: {e}") from e
        return events

    def _initialize_event_id(self) -> None:
        """Continue event IDs after the last event already in the file."""
        events = self.read_events()
        self._next_event_id = events[-1].event_id + 1 if events else 1

    def _create_backup(self) -> None:
        """
        Create rolling backup of the event log.

        Rotates backups:
        - events.jsonl.bak.3 -> deleted
        - events.jsonl.bak.2 -> events.jsonl.bak.3
        - events.jsonl.bak.1 -> events.jsonl.bak.2
        - events.jsonl -> events.jsonl.bak.1
        """
        try:
            oldest_backup = Path(f"{self.log_path}.bak.{self.backup_count}")
            if oldest_backup.exists():
                oldest_backup.unlink()

            for i in range(self.backup_count - 1, 0, -1):
                old_backup = Path(f"{self.log_path}.bak.{i}")
                if old_backup.exists():
                    old_backup.rename(Path(f"{self.log_path}.bak.{i + 1}"))

            backup_path = Path(f"{self.log_path}.bak.1")
            shutil.copy2(self.log_path, backup_path)
            logger.info(f"Created event log backup at {backup_path}")

        except OSError as e:
            # Backup failure shouldn't prevent writes
            logger.warning(f"Failed to create backup of event log: {e}")


@dataclass
class PayoutRecord:
    """One settled payout, as an indexer reports it."""
    root: str
    token: str
    employer: Optional[str]
    stealth_address: str
    recipient: str
    net_amount: int
    fee_amount: int
    relayer: str
    event_id: int
    timestamp: str


class EventLogQuery:
    """
    Query service over a ledger event log.

    Uses a sequential scan of the log; all filters are optional and combine.
    """

    def __init__(self, event_log: EventLog):
        self.event_log = event_log

    def get_events(
        self,
        event_type: Optional[str] = None,
        root: Optional[str] = None,
        token: Optional[str] = None,
        stealth_address: Optional[str] = None,
        employer: Optional[str] = None,
        recipient: Optional[str] = None,
    ) -> List[LedgerEvent]:
        """
        Query events with optional filters.

        Raises:
            ValueError: If event_type is not a known event type
            EventLogReadError: If the log cannot be read
        """
        if event_type is not None and event_type not in EVENT_TYPES:
            raise ValueError(f"event_type must be one of {EVENT_TYPES}, got {event_type!r}")

        token = normalize_address(token) if token else None
        stealth_address = normalize_address(stealth_address) if stealth_address else None
        employer = normalize_address(employer) if employer else None
        recipient = normalize_address(recipient) if recipient else None
        root = root.lower() if root else None

        results = []
        for event in self.event_log.read_events():
            if event_type is not None and event.event_type != event_type:
                continue
            if root is not None and event.root.lower() != root:
                continue
            if token is not None and event.token != token:
                continue
            if stealth_address is not None and event.stealth_address != stealth_address:
                continue
            if employer is not None and event.employer != employer:
                continue
            if recipient is not None and event.recipient != recipient:
                continue
            results.append(event)
        return results

    def payout_history(self, employer: Optional[str] = None) -> List[PayoutRecord]:
        """
        Join claims to the deposit that registered their root.

        The employer of a claim is the employer of the latest deposit for its
        root that precedes the claim.

        Args:
            employer: Only return payouts funded by this employer (optional)
        """
        employer = normalize_address(employer) if employer else None
        depositor_by_root: Dict[str, str] = {}
        history = []

        for event in self.event_log.read_events():
            root = event.root.lower()
            if event.event_type == PAYROLL_DEPOSITED:
                depositor_by_root[root] = event.employer
                continue

            funded_by = depositor_by_root.get(root)
            if employer is not None and funded_by != employer:
                continue
            history.append(
                PayoutRecord(
                    root=event.root,
                    token=event.token,
                    employer=funded_by,
                    stealth_address=event.stealth_address,
                    recipient=event.recipient,
                    net_amount=int(event.net_amount),
                    fee_amount=int(event.fee_amount),
                    relayer=event.relayer,
                    event_id=event.event_id,
                    timestamp=event.timestamp,
                )
            )
        return history

    def total_paid(self, token: str) -> int:
        """Sum of net plus fee amounts paid out in a token."""
        return sum(
            int(event.net_amount) + int(event.fee_amount)
            for event in self.get_events(event_type=CLAIMED, token=token)
        )
