"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Payroll commitments: one Merkle root per payout round.

A commitment binds a set of (stealth address, token, amount) entries to a
single root. The employer deposits the round's total against that root and
hands each payee the proof for their entry. Commitments can be exported to
and imported from the StandardMerkleTree "standard-v1" JSON dump so that
off-chain tooling and this package agree on the same tree.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from stealthpay.core.encoding import BytesLike, normalize_address, to_bytes, to_hex
from stealthpay.exceptions import InvalidCommitmentError
from stealthpay.logging_config import get_logger, log_commitment_built
from stealthpay.merkle.tree import LEAF_ENCODING, MerkleTree, build_leaf, verify_proof

logger = get_logger(__name__)

DUMP_FORMAT = "standard-v1"


@dataclass(frozen=True)
class PayrollLeaf:
    """A single payout entry."""
    stealth_address: str
    token: str
    amount: int

    @classmethod
    def create(cls, stealth_address: BytesLike, token: BytesLike, amount: int) -> "PayrollLeaf":
        """Build a leaf with normalized addresses and a validated amount."""
        amount = int(amount)
        if amount < 0 or amount >= 2**256:
            raise InvalidCommitmentError(f"amount must fit in uint256, got {amount}")
        return cls(
            stealth_address=normalize_address(stealth_address),
            token=normalize_address(token),
            amount=amount,
        )

    def hash(self) -> bytes:
        """Return the Merkle leaf hash of this entry."""
        return build_leaf(self.stealth_address, self.token, self.amount)

    def to_value(self) -> List[str]:
        """Encode as a StandardMerkleTree value row."""
        return [self.stealth_address, self.token, str(self.amount)]


class PayrollCommitment:
    """
    Merkle commitment over one payout round.

    All entries share one token, because the ledger binds exactly one token
    to each root. Each stealth address may appear only once.

    Example:
        >>> commitment = PayrollCommitment([
        ...     PayrollLeaf.create(alice_stealth, token, 5000),
        ...     PayrollLeaf.create(bob_stealth, token, 3000),
        ... ])
        >>> commitment.total_amount
        8000
        >>> proof = commitment.proof_for(alice_stealth)
    """

    def __init__(self, entries: Sequence[PayrollLeaf]):
        """
        Build a commitment from payroll entries.

        Raises:
            InvalidCommitmentError: If entries are empty, mix tokens, or repeat an address
        """
        if not entries:
            raise InvalidCommitmentError("Cannot build a commitment from an empty payroll")

        start = time.perf_counter()

        tokens = {entry.token for entry in entries}
        if len(tokens) != 1:
            raise InvalidCommitmentError(
                f"All entries of a commitment must use one token, got {sorted(tokens)}"
            )

        seen = set()
        for entry in entries:
            if entry.stealth_address in seen:
                raise InvalidCommitmentError(
                    f"Stealth address {entry.stealth_address} appears more than once"
                )
            seen.add(entry.stealth_address)

        self.entries: List[PayrollLeaf] = list(entries)
        self.token: str = entries[0].token
        self.total_amount: int = sum(entry.amount for entry in entries)
        self.tree = MerkleTree([entry.hash() for entry in self.entries])
        self._by_address: Dict[str, PayrollLeaf] = {
            entry.stealth_address: entry for entry in self.entries
        }

        log_commitment_built(
            logger,
            root=to_hex(self.root),
            leaf_count=len(self.entries),
            token=self.token,
            total_amount=self.total_amount,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    @property
    def root(self) -> bytes:
        """Return the commitment root."""
        return self.tree.get_root()

    def entry_for(self, stealth_address: BytesLike) -> Optional[PayrollLeaf]:
        """Return the entry for a stealth address, or None."""
        return self._by_address.get(normalize_address(stealth_address))

    def proof_for(self, stealth_address: BytesLike) -> List[bytes]:
        """
        Return the inclusion proof for a stealth address.

        Raises:
            KeyError: If the address is not part of this commitment
        """
        entry = self.entry_for(stealth_address)
        if entry is None:
            raise KeyError(f"Stealth address {stealth_address} is not in this commitment")
        return self.tree.get_proof_for_leaf(entry.hash()).proof_hashes

    def verify(self, entry: PayrollLeaf, proof: Sequence[BytesLike]) -> bool:
        """Verify an entry and proof against this commitment's root."""
        return verify_proof(entry.hash(), proof, self.root)

    def to_dict(self) -> Dict[str, Any]:
        """Export in the StandardMerkleTree "standard-v1" dump format."""
        return {
            "format": DUMP_FORMAT,
            "leafEncoding": list(LEAF_ENCODING),
            "tree": [to_hex(node) for node in self.tree.tree],
            "values": [
                {
                    "value": entry.to_value(),
                    "treeIndex": self.tree.tree_index(self.tree.index_of(entry.hash())),
                }
                for entry in self.entries
            ],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize the dump to JSON."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayrollCommitment":
        """
        Load a commitment from a "standard-v1" dump and check its integrity.

        Raises:
            InvalidCommitmentError: If the dump is malformed or its tree does not
                match its values
        """
        if not isinstance(data, dict):
            raise InvalidCommitmentError("Merkle tree dump must be a JSON object")
        if data.get("format") != DUMP_FORMAT:
            raise InvalidCommitmentError(f"Unknown Merkle tree dump format: {data.get('format')!r}")
        if list(data.get("leafEncoding", [])) != LEAF_ENCODING:
            raise InvalidCommitmentError(
                f"Unsupported leaf encoding {data.get('leafEncoding')!r}, expected {LEAF_ENCODING}"
            )

        try:
            entries = [
                PayrollLeaf.create(row["value"][0], row["value"][1], int(row["value"][2]))
                for row in data["values"]
            ]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise InvalidCommitmentError(f"Malformed values in Merkle tree dump: {e}") from e

        commitment = cls(entries)

        stored_tree = data.get("tree")
        if stored_tree is not None:
            try:
                stored_nodes = [to_bytes(node) for node in stored_tree]
            except (TypeError, ValueError) as e:
                raise InvalidCommitmentError(f"Malformed tree in Merkle tree dump: {e}") from e
            if stored_nodes != commitment.tree.tree:
                raise InvalidCommitmentError("Merkle tree dump does not match its values")

        return commitment

    @classmethod
    def from_json(cls, text: str) -> "PayrollCommitment":
        """Load a commitment from a JSON dump."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidCommitmentError(f"Merkle tree dump is not valid JSON: {e}") from e
        return cls.from_dict(data)
