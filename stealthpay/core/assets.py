"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Custody and transfer interface used by the claim ledger.

The ledger never holds balances itself. It asks an AssetBank to move funds
into custody on deposit and out of custody on claim. Token implementations
live outside this package; InMemoryAssetBank is the reference bank used by
tests and local tooling.
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Tuple

from stealthpay.core.encoding import normalize_address
from stealthpay.exceptions import TransferFailureError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)


class AssetBank(ABC):
    """
    Moves fungible balances between accounts.

    Implementations must raise TransferFailureError when a transfer does not
    happen, and must leave balances unchanged in that case.
    """

    @abstractmethod
    def balance_of(self, token: str, account: str) -> int:
        """Return the balance of ``account`` in ``token``."""

    @abstractmethod
    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """
        Move ``amount`` of ``token`` from ``sender`` to ``recipient``.

        Raises:
            TransferFailureError: If the transfer cannot be completed
        """


class InMemoryAssetBank(AssetBank):
    """
    Thread-safe in-memory balances keyed by (token, account).

    The native asset is just another token keyed by the zero address.

    Example:
        >>> bank = InMemoryAssetBank()
        >>> bank.mint(token, employer, 10_000)
        >>> bank.transfer(token, employer, ledger_address, 5_000)
        >>> bank.balance_of(token, ledger_address)
        5000
    """

    def __init__(self):
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._lock = threading.Lock()

    def mint(self, token: str, account: str, amount: int) -> None:
        """Credit ``amount`` to ``account`` out of thin air."""
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")
        key = (normalize_address(token), normalize_address(account))
        with self._lock:
            self._balances[key] += amount

    def balance_of(self, token: str, account: str) -> int:
        key = (normalize_address(token), normalize_address(account))
        with self._lock:
            return self._balances.get(key, 0)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailureError(f"Transfer amount must be non-negative, got {amount}")

        token = normalize_address(token)
        sender_key = (token, normalize_address(sender))
        recipient_key = (token, normalize_address(recipient))

        with self._lock:
            available = self._balances.get(sender_key, 0)
            if available < amount:
                raise TransferFailureError(
                    f"Insufficient {token} balance for {sender_key[1]}: "
                    f"has {available}, needs {amount}"
                )
            self._balances[sender_key] = available - amount
            self._balances[recipient_key] += amount

        logger.debug(
            f"Transferred {amount} {token} from {sender_key[1]} to {recipient_key[1]}"
        )

    def snapshot(self) -> Dict[Tuple[str, str], int]:
        """Return a copy of all non-zero balances."""
        with self._lock:
            return {key: value for key, value in self._balances.items() if value}
