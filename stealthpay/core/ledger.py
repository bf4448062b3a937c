"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Claim ledger for StealthPay Core.

The ClaimLedger holds payroll deposits in custody, keyed by commitment root,
and pays each stealth address at most once when presented with a valid Merkle
proof and a typed signature from the stealth key.

Every mutating call is one logical transaction under a single ledger-wide
lock and, when a state store is configured, under the store's file lock
with the state reloaded from disk. Effects are recorded in an undo journal
as they are applied; if any later effect fails, the journal is replayed in
reverse so no partial change is observable. State is saved once per call,
after every transfer has succeeded.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator, List, Optional, Sequence, Tuple

from stealthpay.core.assets import AssetBank
from stealthpay.core.claims import ClaimRequest
from stealthpay.core.encoding import BytesLike, is_native_asset, normalize_address, to_bytes32, to_hex
from stealthpay.core.events import (
    EventLog,
    InMemoryEventLog,
    JsonlEventLog,
    LedgerEvent,
    claimed_event,
    deposit_event,
)
from stealthpay.core.signing import (
    CLAIM_TYPEHASH,
    DEFAULT_DOMAIN_NAME,
    DEFAULT_DOMAIN_VERSION,
    ClaimDomain,
    verify_claim_signature,
)
from stealthpay.core.state_store import FileStateStore, LedgerState, PayrollRecord
from stealthpay.exceptions import (
    AlreadyClaimedError,
    ArrayLengthMismatchError,
    EthAmountMismatchError,
    ExpiredRequestError,
    FeeExceedsAmountError,
    InvalidConfigurationError,
    InvalidProofError,
    InvalidProofShapeError,
    RootAlreadyRegisteredError,
    StateStoreError,
    StealthPayError,
    TokenMismatchError,
    UnknownRootError,
)
from stealthpay.logging_config import get_logger, log_claim_rejected, log_claim_settled, log_deposit
from stealthpay.merkle.tree import build_leaf, verify_proof

if TYPE_CHECKING:
    from stealthpay.config.settings import StealthPayConfig

logger = get_logger(__name__)

REUSED_ROOT_OVERWRITE = "overwrite"
REUSED_ROOT_REJECT = "reject"
REUSED_ROOT_POLICIES = (REUSED_ROOT_OVERWRITE, REUSED_ROOT_REJECT)


class ClaimState(Enum):
    """Lifecycle of a stealth address on the ledger."""
    UNREGISTERED = "unregistered"
    CLAIMABLE = "claimable"
    CLAIMED = "claimed"


@dataclass(frozen=True)
class ClaimReceipt:
    """Outcome of a settled claim."""
    root: str
    token: str
    stealth_address: str
    recipient: str
    relayer: str
    net_amount: int
    fee_amount: int
    event: LedgerEvent


class _Journal:
    """Undo journal for one ledger transaction."""

    def __init__(self):
        self._undo: List[Tuple[str, Callable[[], None]]] = []
        self.pending_events: List[LedgerEvent] = []
        self.events: List[LedgerEvent] = []
        self.state_persisted = False

    def record(self, description: str, compensate: Callable[[], None]) -> None:
        self._undo.append((description, compensate))

    def rollback(self) -> None:
        while self._undo:
            description, compensate = self._undo.pop()
            try:
                compensate()
            except StealthPayError as e:
                logger.critical(
                    f"Compensation failed while rolling back '{description}': {e}",
                    exc_info=True,
                )


class ClaimLedger:
    """
    Custody and one-shot claim settlement for payroll commitments.

    Example:
        >>> bank = InMemoryAssetBank()
        >>> ledger = ClaimLedger(address=ledger_address, chain_id=1, bank=bank)
        >>> ledger.deposit(employer, commitment.root, token, commitment.total_amount)
        >>> receipt = ledger.claim(relayer, request, signature, proof, commitment.root)
    """

    def __init__(
        self,
        address: BytesLike,
        chain_id: int,
        bank: AssetBank,
        clock: Callable[[], float] = time.time,
        event_log: Optional[EventLog] = None,
        state_store: Optional[FileStateStore] = None,
        domain_name: str = DEFAULT_DOMAIN_NAME,
        domain_version: str = DEFAULT_DOMAIN_VERSION,
        reused_root_policy: str = REUSED_ROOT_OVERWRITE,
    ):
        """
        Initialize ClaimLedger.

        Args:
            address: The ledger's own address; custody balances are held here
                and it is the verifying contract of the signing domain
            chain_id: Chain identity bound into the signing domain
            bank: AssetBank that moves funds in and out of custody
            clock: Returns the current unix time in seconds (default: time.time)
            event_log: Sink for ledger events (default: in-memory log)
            state_store: Durable store for records and claim flags (optional)
            domain_name: EIP-712 domain name
            domain_version: EIP-712 domain version
            reused_root_policy: "overwrite" or "reject" for deposits at a root
                that already has a record

        Raises:
            ValueError: If reused_root_policy is unknown
            StateStoreError: If the state store cannot be loaded
        """
        if reused_root_policy not in REUSED_ROOT_POLICIES:
            raise ValueError(
                f"reused_root_policy must be one of {REUSED_ROOT_POLICIES}, got {reused_root_policy!r}"
            )

        self.address = normalize_address(address)
        self.domain = ClaimDomain.create(chain_id, self.address, domain_name, domain_version)
        self.bank = bank
        self.clock = clock
        self.event_log = event_log if event_log is not None else InMemoryEventLog()
        self.state_store = state_store
        self.reused_root_policy = reused_root_policy

        self._state = state_store.load() if state_store is not None else LedgerState()
        self._domain_separator = self.domain.separator()
        self._lock = threading.RLock()

        logger.info(
            f"ClaimLedger initialized at {self.address} "
            f"(chain_id={self.domain.chain_id}, persistent={state_store is not None}, "
            f"reused_root_policy={reused_root_policy})"
        )

    @classmethod
    def from_config(
        cls,
        config: "StealthPayConfig",
        bank: AssetBank,
        clock: Callable[[], float] = time.time,
        persistent: bool = True,
    ) -> "ClaimLedger":
        """
        Build a ledger from loaded configuration.

        Args:
            config: Loaded StealthPay configuration; ``ledger.address`` must be set
            bank: AssetBank holding custody balances
            clock: Unix time source
            persistent: Use the configured state file and event log; when False
                the ledger keeps its state and events in memory

        Raises:
            InvalidConfigurationError: If no ledger address is configured
        """
        if not config.ledger.address:
            raise InvalidConfigurationError("ledger.address must be set to run a claim ledger")

        event_log = None
        state_store = None
        if persistent:
            event_log = JsonlEventLog(
                config.storage.event_log,
                backup_count=config.storage.backup_count,
                max_retries=config.performance.max_retries,
                retry_base_delay=config.performance.retry_base_delay,
            )
            state_store = FileStateStore(
                config.storage.state_file,
                max_retries=config.performance.max_retries,
                retry_base_delay=config.performance.retry_base_delay,
            )

        return cls(
            address=config.ledger.address,
            chain_id=config.ledger.chain_id,
            bank=bank,
            clock=clock,
            event_log=event_log,
            state_store=state_store,
            domain_name=config.domain.name,
            domain_version=config.domain.version,
            reused_root_policy=config.ledger.reused_root_policy,
        )

    # Read-only accessors

    @property
    def domain_separator(self) -> bytes:
        """EIP-712 domain separator claims must be signed under."""
        return self._domain_separator

    @property
    def claim_typehash(self) -> bytes:
        return CLAIM_TYPEHASH

    def payroll_record(self, root: BytesLike) -> Optional[PayrollRecord]:
        """Return the record registered under a root, or None."""
        with self._lock:
            self._refresh()
            return self._state.records.get(to_bytes32(root))

    def is_claimed(self, stealth_address: BytesLike) -> bool:
        with self._lock:
            self._refresh()
            return normalize_address(stealth_address) in self._state.claimed

    def claim_state(self, stealth_address: BytesLike, root: Optional[BytesLike] = None) -> ClaimState:
        """
        Report where a stealth address is in its lifecycle.

        Without a root, CLAIMABLE means at least one root is registered; the
        ledger cannot know which tree contains the address until a proof is
        presented.
        """
        with self._lock:
            self._refresh()
            if normalize_address(stealth_address) in self._state.claimed:
                return ClaimState.CLAIMED
            if root is None:
                registered = bool(self._state.records)
            else:
                registered = to_bytes32(root) in self._state.records
            return ClaimState.CLAIMABLE if registered else ClaimState.UNREGISTERED

    @property
    def events(self) -> List[LedgerEvent]:
        """All events emitted by this ledger's event log."""
        return self.event_log.read_events()

    # Mutations

    def deposit(
        self,
        caller: BytesLike,
        root: BytesLike,
        token: BytesLike,
        total_amount: int,
        value: int = 0,
    ) -> PayrollRecord:
        """
        Move funds into custody and register them under a commitment root.

        Anyone may deposit; the caller becomes the record's employer. For the
        native asset the attached ``value`` must equal ``total_amount``; for
        a token it must be zero.

        Returns:
            The PayrollRecord now registered under ``root``

        Raises:
            EthAmountMismatchError: If ``value`` does not match the deposit
            RootAlreadyRegisteredError: If the root is reused under the
                "reject" policy
            TransferFailureError: If the caller cannot fund the deposit
        """
        caller = normalize_address(caller)
        root = to_bytes32(root)
        token = normalize_address(token)
        if total_amount < 0 or value < 0:
            raise ValueError("Deposit amounts must be non-negative")

        if is_native_asset(token):
            if value != total_amount:
                raise EthAmountMismatchError(
                    f"Attached value {value} does not match native deposit of {total_amount}"
                )
        elif value != 0:
            raise EthAmountMismatchError(
                f"Token deposit must not attach native value, got {value}"
            )

        with self._transaction() as journal:
            previous = self._state.records.get(root)
            if previous is not None and self.reused_root_policy == REUSED_ROOT_REJECT:
                raise RootAlreadyRegisteredError(f"Root {to_hex(root)} already has a payroll record")

            self._transfer(journal, token, caller, self.address, total_amount)

            record = PayrollRecord(employer=caller, token=token, total_amount=total_amount)
            self._state.records[root] = record
            journal.record("register payroll record", lambda: self._restore_record(root, previous))

            journal.pending_events.append(
                deposit_event(to_hex(root), caller, token, total_amount)
            )

        if previous is not None:
            logger.warning(
                f"Payroll record at root {to_hex(root)} overwritten "
                f"(previous employer {previous.employer}, token {previous.token}, "
                f"amount {previous.total_amount})"
            )
        log_deposit(logger, to_hex(root), caller, token, total_amount, overwrote=previous is not None)
        return record

    def claim(
        self,
        caller: BytesLike,
        request: ClaimRequest,
        signature: BytesLike,
        merkle_proof: Sequence[BytesLike],
        root: BytesLike,
    ) -> ClaimReceipt:
        """
        Settle one claim, paying the recipient and the submitting relayer.

        Checks run in a fixed order and the first failure aborts the call:
        deadline, claim flag, fee, root, token, proof, signature. Only then
        is the claim flag set and funds moved.

        Args:
            caller: Submitting address; receives ``request.fee_amount``
            request: Signed claim request
            signature: 65-byte signature by the stealth key
            merkle_proof: Sibling hashes proving the leaf under ``root``
            root: Commitment root the claim is paid from

        Returns:
            ClaimReceipt describing the settled payout

        Raises:
            ClaimError: A subclass naming the failed check
            TransferFailureError: If a disbursement fails; nothing is changed
        """
        return self._run_claims(caller, [(request, signature, merkle_proof, root)])[0]

    def batch_claim(
        self,
        caller: BytesLike,
        requests: Sequence[ClaimRequest],
        signatures: Sequence[BytesLike],
        merkle_proofs: Sequence[Sequence[BytesLike]],
        roots: Sequence[BytesLike],
    ) -> List[ClaimReceipt]:
        """
        Settle several claims in one transaction.

        Each entry goes through the full claim checks. If any entry fails,
        none of the batch is applied.

        Raises:
            ArrayLengthMismatchError: If the argument lists differ in length
        """
        lengths = {len(requests), len(signatures), len(merkle_proofs), len(roots)}
        if len(lengths) != 1:
            raise ArrayLengthMismatchError(
                f"Batch arguments differ in length: requests={len(requests)}, "
                f"signatures={len(signatures)}, proofs={len(merkle_proofs)}, roots={len(roots)}"
            )
        return self._run_claims(caller, list(zip(requests, signatures, merkle_proofs, roots)))

    def _run_claims(self, caller: BytesLike, entries: List[tuple]) -> List[ClaimReceipt]:
        caller = normalize_address(caller)
        settled: List[Tuple[ClaimRequest, str]] = []

        try:
            with self._transaction() as journal:
                for request, signature, merkle_proof, root in entries:
                    root_hex = self._settle(journal, caller, request, signature, merkle_proof, root)
                    settled.append((request, root_hex))
        except StealthPayError as e:
            if len(settled) < len(entries):
                log_claim_rejected(
                    logger,
                    stealth_address=entries[len(settled)][0].stealth_address,
                    error_kind=e.kind.value if e.kind else type(e).__name__,
                    reason=str(e),
                    relayer=caller,
                    batch_size=len(entries),
                )
            raise
        events = journal.events

        receipts = []
        for (request, root_hex), event in zip(settled, events):
            log_claim_settled(
                logger,
                stealth_address=request.stealth_address,
                recipient=request.recipient,
                relayer=caller,
                net_amount=request.net_amount,
                fee_amount=request.fee_amount,
                root=root_hex,
                event_id=event.event_id,
            )
            receipts.append(
                ClaimReceipt(
                    root=root_hex,
                    token=request.token,
                    stealth_address=request.stealth_address,
                    recipient=request.recipient,
                    relayer=caller,
                    net_amount=request.net_amount,
                    fee_amount=request.fee_amount,
                    event=event,
                )
            )
        return receipts

    def _settle(
        self,
        journal: _Journal,
        caller: str,
        request: ClaimRequest,
        signature: BytesLike,
        merkle_proof: Sequence[BytesLike],
        root: BytesLike,
    ) -> str:
        """Validate one claim and apply its effects to the journal. Returns the root as hex."""
        now = int(self.clock())
        if now > request.deadline:
            raise ExpiredRequestError(
                f"Claim request expired at {request.deadline}, current time is {now}"
            )

        if request.stealth_address in self._state.claimed:
            raise AlreadyClaimedError(f"Stealth address {request.stealth_address} has already been claimed")

        if request.fee_amount > request.amount:
            raise FeeExceedsAmountError(
                f"Fee {request.fee_amount} exceeds claimed amount {request.amount}"
            )

        try:
            root = to_bytes32(root)
        except (TypeError, ValueError) as e:
            raise UnknownRootError(f"Root is not a 32-byte value: {e}") from e
        record = self._state.records.get(root)
        if record is None or int(record.employer, 16) == 0:
            raise UnknownRootError(f"No payroll record for root {to_hex(root)}")

        if request.token != record.token:
            raise TokenMismatchError(
                f"Request token {request.token} does not match token {record.token} bound to root"
            )

        leaf = build_leaf(request.stealth_address, request.token, request.amount)
        try:
            included = verify_proof(leaf, merkle_proof, root)
        except InvalidProofShapeError as e:
            raise InvalidProofError(f"Malformed Merkle proof: {e}") from e
        if not included:
            raise InvalidProofError(
                f"Leaf for {request.stealth_address} is not included under root {to_hex(root)}"
            )

        verify_claim_signature(request, self.domain, signature)

        # Flag set before any funds move; persisted with the rest at commit
        self._state.claimed.add(request.stealth_address)
        journal.record(
            f"claim flag for {request.stealth_address}",
            lambda: self._state.claimed.discard(request.stealth_address),
        )

        self._transfer(journal, request.token, self.address, request.recipient, request.net_amount)
        self._transfer(journal, request.token, self.address, caller, request.fee_amount)

        root_hex = to_hex(root)
        journal.pending_events.append(
            claimed_event(
                root=root_hex,
                token=request.token,
                stealth_address=request.stealth_address,
                recipient=request.recipient,
                net_amount=request.net_amount,
                fee_amount=request.fee_amount,
                relayer=caller,
            )
        )
        return root_hex

    # Transaction plumbing

    def _transfer(self, journal: _Journal, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount == 0:
            return
        self.bank.transfer(token, sender, recipient, amount)
        journal.record(
            f"transfer {amount} {token} from {sender} to {recipient}",
            lambda: self.bank.transfer(token, recipient, sender, amount),
        )

    def _restore_record(self, root: bytes, previous: Optional[PayrollRecord]) -> None:
        if previous is None:
            self._state.records.pop(root, None)
        else:
            self._state.records[root] = previous

    @contextmanager
    def _transaction(self) -> Iterator[_Journal]:
        """
        Run one mutating call as a transaction.

        With a state store, the store lock is held for the whole call and the
        state is reloaded under it, so ledgers sharing a state file see each
        other's records and claim flags. On success the state is saved once,
        after every transfer, and then the events are appended. On failure
        the journal is replayed in reverse.
        """
        with self._lock:
            if self.state_store is None:
                with self._journaled() as journal:
                    yield journal
                return
            with self.state_store.exclusive() as state:
                self._state = state
                with self._journaled() as journal:
                    yield journal

    @contextmanager
    def _journaled(self) -> Iterator[_Journal]:
        journal = _Journal()
        try:
            yield journal
            self._commit(journal)
        except Exception:
            self._abort(journal)
            raise

    def _refresh(self) -> None:
        """Reload persisted state so reads reflect other ledgers on the same file."""
        if self.state_store is not None:
            self._state = self.state_store.load()

    def _commit(self, journal: _Journal) -> None:
        if self.state_store is not None:
            self.state_store.save(self._state)
            journal.state_persisted = True
        journal.events = self.event_log.append_events(journal.pending_events)

    def _abort(self, journal: _Journal) -> None:
        journal.rollback()
        if not journal.state_persisted:
            return
        try:
            self.state_store.save(self._state)
        except StealthPayError as e:
            logger.critical(f"Failed to persist rolled-back ledger state: {e}", exc_info=True)
            raise StateStoreError(
                f"Ledger state at {self.state_store.state_path} still holds a rolled-back "
                f"transaction and must be repaired from the event log: {e}"
            ) from e
