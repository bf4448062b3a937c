"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Merkle tree implementation for payroll commitments.

This module implements the sorted-pair keccak256 Merkle tree used by the
OpenZeppelin StandardMerkleTree tooling, so a root built here matches the
root a payer builds off-chain. It supports:
- Leaf hashing of (stealth address, token, amount) entries
- Tree construction from leaf hashes
- Merkle proof generation for any leaf
- Merkle proof verification
- Builder pattern for convenient tree construction
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from eth_abi import encode
from eth_utils import keccak

from stealthpay.core.encoding import BytesLike, normalize_address, to_bytes
from stealthpay.exceptions import InvalidProofShapeError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

# Upper bound on proof length; a keccak tree can never be deeper than this
MAX_PROOF_DEPTH = 256

LEAF_ENCODING = ["address", "address", "uint256"]


def build_leaf(stealth_address: BytesLike, token: BytesLike, amount: int) -> bytes:
    """
    Hash a payroll entry into a Merkle leaf.

    leaf = keccak256(keccak256(abi.encode(stealthAddress, token, amount)))

    Args:
        stealth_address: One-time recipient address
        token: Token address (zero address for the native asset)
        amount: Amount owed, unsigned 256-bit integer

    Returns:
        32-byte leaf hash
    """
    if amount < 0 or amount >= 2**256:
        raise ValueError(f"amount must fit in uint256, got {amount}")
    encoded = encode(
        LEAF_ENCODING,
        [normalize_address(stealth_address), normalize_address(token), amount],
    )
    return keccak(keccak(encoded))


def combine_pair(a: bytes, b: bytes) -> bytes:
    """Hash two sibling nodes in sorted order, so sibling position does not matter."""
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


def _check_proof_shape(proof: Sequence[BytesLike]) -> List[bytes]:
    if len(proof) > MAX_PROOF_DEPTH:
        raise InvalidProofShapeError(
            f"Proof has {len(proof)} elements, more than the maximum depth {MAX_PROOF_DEPTH}"
        )
    nodes = []
    for position, element in enumerate(proof):
        try:
            node = to_bytes(element)
        except (ValueError, TypeError) as e:
            raise InvalidProofShapeError(f"Proof element {position} is not hex or bytes: {e}") from e
        if len(node) != 32:
            raise InvalidProofShapeError(
                f"Proof element {position} must be 32 bytes, got {len(node)}"
            )
        nodes.append(node)
    return nodes


def process_proof(leaf: bytes, proof: Sequence[BytesLike]) -> bytes:
    """
    Recompute the root implied by a leaf and its proof.

    Raises:
        InvalidProofShapeError: If the proof is malformed
    """
    computed = to_bytes(leaf)
    for sibling in _check_proof_shape(proof):
        computed = combine_pair(computed, sibling)
    return computed


def verify_proof(leaf: BytesLike, proof: Sequence[BytesLike], root: BytesLike) -> bool:
    """
    Verify that a leaf is included under a root.

    A single-leaf tree has an empty proof and root == leaf.

    Args:
        leaf: 32-byte leaf hash
        proof: Ordered sibling hashes from leaf to root
        root: Expected root

    Returns:
        True if the proof is valid, False otherwise

    Raises:
        InvalidProofShapeError: If the proof is malformed
    """
    leaf_bytes = to_bytes(leaf)
    if len(leaf_bytes) != 32:
        raise InvalidProofShapeError(f"Leaf must be 32 bytes, got {len(leaf_bytes)}")
    return process_proof(leaf_bytes, proof) == to_bytes(root)


@dataclass
class MerkleProof:
    """
    Proof that a leaf is included in a Merkle tree.

    Attributes:
        leaf_hash: Hash of the leaf being proven
        proof_hashes: List of sibling hashes from leaf to root
        root_hash: Expected root hash for verification
    """
    leaf_hash: bytes
    proof_hashes: List[bytes]
    root_hash: bytes

    def verify(self) -> bool:
        """Verify this proof against its own root."""
        return verify_proof(self.leaf_hash, self.proof_hashes, self.root_hash)


class MerkleTree:
    """
    Sorted-pair binary Merkle tree over 32-byte leaf hashes.

    Leaves are sorted before insertion and the tree is stored as a flat
    array, root at index 0 and leaves in the last ``len(leaves)`` slots
    (in reverse). Every internal node has exactly two children, so no node
    is ever duplicated. This is the StandardMerkleTree layout, which makes
    roots and proofs interchangeable with that tooling.

    Example:
        >>> leaves = [build_leaf(addr, token, 100) for addr in addresses]
        >>> tree = MerkleTree(leaves)
        >>> root = tree.get_root()
        >>> proof = tree.generate_proof(0)
        >>> assert verify_proof(proof.leaf_hash, proof.proof_hashes, root)
    """

    def __init__(self, leaves: Sequence[BytesLike], sort_leaves: bool = True):
        """
        Build Merkle tree from leaf hashes.

        Args:
            leaves: List of 32-byte leaf hashes (use build_leaf)
            sort_leaves: Sort leaves before building (default: True)

        Raises:
            ValueError: If leaves list is empty or a leaf is not 32 bytes
        """
        if not leaves:
            raise ValueError("Cannot create Merkle tree from empty leaves list")

        hashed = [to_bytes(leaf) for leaf in leaves]
        for position, leaf in enumerate(hashed):
            if len(leaf) != 32:
                raise ValueError(f"Leaf {position} must be 32 bytes, got {len(leaf)}")

        self.leaves: List[bytes] = sorted(hashed) if sort_leaves else hashed
        self.leaf_count = len(self.leaves)
        self.tree = self._build_tree()

    def _build_tree(self) -> List[bytes]:
        """
        Fill the flat tree array bottom-up.

        Index i has children 2i+1 and 2i+2. Leaf k sits at
        ``len(tree) - 1 - k``.
        """
        size = 2 * self.leaf_count - 1
        tree: List[Optional[bytes]] = [None] * size

        for k, leaf in enumerate(self.leaves):
            tree[size - 1 - k] = leaf

        for i in range(size - 1 - self.leaf_count, -1, -1):
            tree[i] = combine_pair(tree[2 * i + 1], tree[2 * i + 2])

        return tree

    def get_root(self) -> bytes:
        """Return the Merkle root hash."""
        return self.tree[0]

    def tree_index(self, leaf_index: int) -> int:
        """Map a position in ``self.leaves`` to its slot in the flat tree."""
        if leaf_index < 0 or leaf_index >= self.leaf_count:
            raise ValueError(f"Leaf index {leaf_index} out of range [0, {self.leaf_count})")
        return len(self.tree) - 1 - leaf_index

    def index_of(self, leaf: BytesLike) -> int:
        """
        Find the position of a leaf hash in ``self.leaves``.

        Raises:
            ValueError: If the leaf is not in the tree
        """
        return self.leaves.index(to_bytes(leaf))

    def generate_proof(self, leaf_index: int) -> MerkleProof:
        """
        Generate Merkle proof for a leaf at the given index.

        The proof lists sibling hashes along the path from the leaf to the
        root; no directions are needed because pairs are hashed sorted.

        Args:
            leaf_index: Index of the leaf in ``self.leaves`` (0-based)

        Returns:
            MerkleProof containing proof hashes

        Raises:
            ValueError: If leaf_index is out of range
        """
        index = self.tree_index(leaf_index)
        proof_hashes = []

        while index > 0:
            sibling = index + 1 if index % 2 == 1 else index - 1
            proof_hashes.append(self.tree[sibling])
            index = (index - 1) // 2

        return MerkleProof(
            leaf_hash=self.leaves[leaf_index],
            proof_hashes=proof_hashes,
            root_hash=self.get_root(),
        )

    def get_proof_for_leaf(self, leaf: BytesLike) -> MerkleProof:
        """Generate a proof for a leaf hash rather than an index."""
        return self.generate_proof(self.index_of(leaf))


class MerkleTreeBuilder:
    """
    Builder class for constructing Merkle trees from payroll entries.

    Example:
        >>> builder = MerkleTreeBuilder()
        >>> builder.add_entry(stealth_address, token, 5000).add_entry(other, token, 700)
        >>> root = builder.build().get_root()
    """

    def __init__(self):
        """Initialize the Merkle tree builder."""
        self._tree: Optional[MerkleTree] = None
        self._leaves: List[bytes] = []

    def add_entry(self, stealth_address: BytesLike, token: BytesLike, amount: int) -> 'MerkleTreeBuilder':
        """Add a payroll entry as a leaf. Returns self for chaining."""
        self._leaves.append(build_leaf(stealth_address, token, amount))
        self._tree = None
        return self

    def add_leaf(self, leaf: BytesLike) -> 'MerkleTreeBuilder':
        """Add a precomputed leaf hash. Returns self for chaining."""
        self._leaves.append(to_bytes(leaf))
        self._tree = None
        return self

    def build(self) -> MerkleTree:
        """
        Build the tree from the entries added so far.

        Raises:
            ValueError: If no entries were added
        """
        if not self._leaves:
            raise ValueError("Cannot build Merkle tree from empty leaves list")

        self._tree = MerkleTree(self._leaves)
        logger.debug(f"Built Merkle tree with {len(self._leaves)} leaves")
        return self._tree

    def get_root(self) -> bytes:
        """
        Get the Merkle root hash.

        Raises:
            RuntimeError: If tree has not been built yet
        """
        if self._tree is None:
            raise RuntimeError("Tree has not been built yet. Call build() first.")
        return self._tree.get_root()
