"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Ledger state and its durable file store.

LedgerState holds the two maps the claim ledger owns: payroll records keyed by
commitment root and the claim flag per stealth address. FileStateStore
persists a snapshot of that state as JSON, replacing the file atomically so a
crash never leaves a half-written state behind.
"""

import fcntl
import json
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Set

from stealthpay.core.encoding import normalize_address, to_bytes32, to_hex
from stealthpay.core.retry import retry_on_transient_failure
from stealthpay.exceptions import StateStoreError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

STATE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class PayrollRecord:
    """
    Funds committed under one root.

    Attributes:
        employer: Address that deposited the funds
        token: Token bound to the root (zero address for the native asset)
        total_amount: Amount moved into custody by the deposit
    """
    employer: str
    token: str
    total_amount: int

    def to_dict(self) -> Dict[str, str]:
        return {
            "employer": self.employer,
            "token": self.token,
            "totalAmount": str(self.total_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayrollRecord":
        return cls(
            employer=normalize_address(data["employer"]),
            token=normalize_address(data["token"]),
            total_amount=int(data["totalAmount"]),
        )


@dataclass
class LedgerState:
    """Mutable ledger maps: ``root -> PayrollRecord`` and the claimed address set."""
    records: Dict[bytes, PayrollRecord] = field(default_factory=dict)
    claimed: Set[str] = field(default_factory=set)

    def copy(self) -> "LedgerState":
        return LedgerState(records=dict(self.records), claimed=set(self.claimed))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_FORMAT_VERSION,
            "records": {to_hex(root): record.to_dict() for root, record in self.records.items()},
            "claimed": sorted(self.claimed),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerState":
        if not isinstance(data, dict):
            raise StateStoreError("Ledger state must be a JSON object")
        version = data.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateStoreError(f"Unsupported ledger state version: {version!r}")
        try:
            records = {
                to_bytes32(root): PayrollRecord.from_dict(record)
                for root, record in data.get("records", {}).items()
            }
            claimed = {normalize_address(address) for address in data.get("claimed", [])}
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StateStoreError(f"Malformed ledger state: {e}") from e
        return cls(records=records, claimed=claimed)


class FileStateStore:
    """
    Persists LedgerState snapshots to a JSON file.

    Writes go to a temporary file in the same directory, are fsynced, and
    then replace the state file with os.replace. An exclusive lock on a
    sidecar ``.lock`` file serializes writers across processes; ``exclusive``
    holds that lock across a whole load-modify-save so that ledgers sharing
    one state file never overwrite each other's changes.

    Example:
        >>> store = FileStateStore("~/.stealthpay/ledger_state.json")
        >>> with store.exclusive() as state:
        ...     state.claimed.add(stealth_address)
        ...     store.save(state)
    """

    def __init__(self, state_path: str, max_retries: int = 3, retry_base_delay: float = 0.1):
        self.state_path = Path(state_path).expanduser()
        self.lock_path = self.state_path.with_name(self.state_path.name + ".lock")
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self._thread_lock = threading.RLock()
        self._file_lock_held = False
        self._write = retry_on_transient_failure(
            max_retries=max_retries, base_delay=retry_base_delay
        )(self._atomic_write)

    def load(self) -> LedgerState:
        """
        Load the persisted state, or an empty state if none exists yet.

        Raises:
            StateStoreError: If the file exists but cannot be read or parsed
        """
        if not self.state_path.exists():
            logger.debug(f"No ledger state at {self.state_path}, starting empty")
            return LedgerState()

        try:
            with open(self.state_path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load ledger state from {self.state_path}: {e}", exc_info=True)
            raise StateStoreError(f"Failed to load ledger state from {self.state_path}: {e}") from e

        state = LedgerState.from_dict(data)
        logger.debug(
            f"Loaded ledger state from {self.state_path}: "
            f"{len(state.records)} records, {len(state.claimed)} claimed addresses"
        )
        return state

    @contextmanager
    def exclusive(self) -> Iterator[LedgerState]:
        """
        Hold the store lock and yield the current persisted state.

        Saves made inside the block reuse the held lock. Not re-entrant.

        Raises:
            StateStoreError: If the lock cannot be taken or the state cannot be loaded
        """
        with self._thread_lock:
            try:
                lock_file = open(self.lock_path, 'a')
            except OSError as e:
                raise StateStoreError(f"Failed to open state lock {self.lock_path}: {e}") from e
            with lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                self._file_lock_held = True
                try:
                    yield self.load()
                finally:
                    self._file_lock_held = False
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def save(self, state: LedgerState) -> None:
        """
        Persist a snapshot of the state.

        Raises:
            StateStoreError: If the snapshot cannot be written
        """
        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True)
        try:
            with self._thread_lock:
                self._write(payload)
        except OSError as e:
            logger.error(f"Failed to save ledger state to {self.state_path}: {e}", exc_info=True)
            raise StateStoreError(f"Failed to save ledger state to {self.state_path}: {e}") from e

    def _atomic_write(self, payload: str) -> None:
        if self._file_lock_held:
            self._replace(payload)
            return
        with open(self.lock_path, 'a') as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                self._replace(payload)
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _replace(self, payload: str) -> None:
        tmp_path = self.state_path.with_name(self.state_path.name + ".tmp")
        with open(tmp_path, 'w') as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.state_path)
