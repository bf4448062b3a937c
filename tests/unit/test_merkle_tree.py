"""
Unit tests for Merkle tree implementation.

Tests cover:
- Leaf hashing
- Tree construction and sorted-pair layout
- Proof generation
- Proof verification
- Edge cases (single leaf, odd number of leaves, malformed proofs)
"""

import pytest
from eth_abi import encode
from eth_utils import keccak
from hypothesis import given
from hypothesis import strategies as st

from stealthpay.exceptions import InvalidProofShapeError
from stealthpay.merkle.tree import (
    MAX_PROOF_DEPTH,
    MerkleProof,
    MerkleTree,
    MerkleTreeBuilder,
    build_leaf,
    combine_pair,
    process_proof,
    verify_proof,
)

from helpers import TOKEN


def leaf(n: int) -> bytes:
    return keccak(n.to_bytes(32, "big"))


class TestBuildLeaf:
    """Test payroll leaf hashing."""

    def test_double_keccak_of_abi_encoding(self):
        """Test leaf = keccak(keccak(abi.encode(address, address, uint256)))."""
        stealth = "0x" + "12" * 20
        expected = keccak(keccak(encode(["address", "address", "uint256"], [stealth, TOKEN, 5000])))
        assert build_leaf(stealth, TOKEN, 5000) == expected

    def test_address_case_does_not_matter(self):
        """Test that checksummed and lowercase addresses give the same leaf."""
        assert build_leaf(TOKEN, TOKEN, 1) == build_leaf(TOKEN.lower(), TOKEN.lower(), 1)

    def test_amount_changes_leaf(self):
        """Test that the amount is bound into the leaf."""
        assert build_leaf(TOKEN, TOKEN, 1) != build_leaf(TOKEN, TOKEN, 2)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            build_leaf(TOKEN, TOKEN, -1)


class TestMerkleTreeConstruction:
    """Test Merkle tree construction."""

    def test_single_leaf(self):
        """Test that the root of a single-leaf tree is the leaf itself."""
        tree = MerkleTree([leaf(1)])
        assert tree.get_root() == leaf(1)
        assert tree.generate_proof(0).proof_hashes == []

    def test_two_leaves(self):
        """Test root of two leaves is their sorted-pair hash."""
        tree = MerkleTree([leaf(1), leaf(2)])
        assert tree.get_root() == combine_pair(leaf(1), leaf(2))

    def test_three_leaf_layout(self):
        """Test the flat-array layout on an odd number of leaves."""
        l0, l1, l2 = sorted([leaf(1), leaf(2), leaf(3)])
        tree = MerkleTree([l2, l0, l1])

        assert tree.leaves == [l0, l1, l2]
        assert tree.tree[4] == l0
        assert tree.tree[3] == l1
        assert tree.tree[2] == l2
        assert tree.tree[1] == combine_pair(l1, l0)
        assert tree.get_root() == combine_pair(combine_pair(l1, l0), l2)

    def test_no_node_duplication(self):
        """Test that the tree has exactly 2n - 1 nodes."""
        for count in (1, 2, 3, 5, 8, 13):
            tree = MerkleTree([leaf(i) for i in range(count)])
            assert len(tree.tree) == 2 * count - 1

    def test_leaf_order_does_not_change_root(self):
        """Test that sorting makes the root independent of input order."""
        leaves = [leaf(i) for i in range(7)]
        assert MerkleTree(leaves).get_root() == MerkleTree(list(reversed(leaves))).get_root()

    def test_different_leaves_different_root(self):
        assert MerkleTree([leaf(1), leaf(2)]).get_root() != MerkleTree([leaf(1), leaf(3)]).get_root()

    def test_empty_leaves_raises_error(self):
        """Test that empty leaves list raises ValueError."""
        with pytest.raises(ValueError, match="Cannot create Merkle tree from empty leaves list"):
            MerkleTree([])

    def test_wrong_leaf_length_raises_error(self):
        with pytest.raises(ValueError, match="must be 32 bytes"):
            MerkleTree([b"short"])

    def test_hex_leaves_accepted(self):
        """Test that hex-encoded leaves build the same tree."""
        leaves = [leaf(1), leaf(2)]
        assert MerkleTree(["0x" + x.hex() for x in leaves]).get_root() == MerkleTree(leaves).get_root()


class TestMerkleProofGeneration:
    """Test proof generation."""

    def test_three_leaf_proofs(self):
        """Test sibling paths in the three-leaf tree."""
        l0, l1, l2 = sorted([leaf(1), leaf(2), leaf(3)])
        tree = MerkleTree([l0, l1, l2])

        assert tree.generate_proof(0).proof_hashes == [l1, l2]
        assert tree.generate_proof(2).proof_hashes == [combine_pair(l1, l0)]

    def test_every_proof_verifies(self):
        """Test that each leaf of an odd-sized tree has a valid proof."""
        tree = MerkleTree([leaf(i) for i in range(11)])
        for index in range(11):
            proof = tree.generate_proof(index)
            assert isinstance(proof, MerkleProof)
            assert proof.verify()
            assert proof.root_hash == tree.get_root()

    def test_proof_for_leaf_hash(self):
        tree = MerkleTree([leaf(i) for i in range(4)])
        proof = tree.get_proof_for_leaf(leaf(3))
        assert proof.leaf_hash == leaf(3)
        assert proof.verify()

    def test_out_of_range_index(self):
        tree = MerkleTree([leaf(1), leaf(2)])
        with pytest.raises(ValueError, match="out of range"):
            tree.generate_proof(2)
        with pytest.raises(ValueError):
            tree.generate_proof(-1)

    def test_unknown_leaf(self):
        tree = MerkleTree([leaf(1), leaf(2)])
        with pytest.raises(ValueError):
            tree.get_proof_for_leaf(leaf(9))

    @given(st.integers(min_value=1, max_value=40), st.data())
    def test_random_trees_verify(self, count, data):
        """Test proofs across tree sizes."""
        tree = MerkleTree([leaf(i) for i in range(count)])
        index = data.draw(st.integers(min_value=0, max_value=count - 1))
        proof = tree.generate_proof(index)
        assert verify_proof(proof.leaf_hash, proof.proof_hashes, tree.get_root())


class TestMerkleProofVerification:
    """Test proof verification."""

    def test_wrong_root_fails(self):
        tree = MerkleTree([leaf(1), leaf(2), leaf(3)])
        proof = tree.generate_proof(1)
        assert not verify_proof(proof.leaf_hash, proof.proof_hashes, leaf(99))

    def test_wrong_leaf_fails(self):
        tree = MerkleTree([leaf(1), leaf(2), leaf(3)])
        proof = tree.generate_proof(1)
        assert not verify_proof(leaf(99), proof.proof_hashes, tree.get_root())

    def test_tampered_proof_fails(self):
        tree = MerkleTree([leaf(i) for i in range(4)])
        proof = tree.generate_proof(0)
        tampered = [leaf(42)] + proof.proof_hashes[1:]
        assert not verify_proof(proof.leaf_hash, tampered, tree.get_root())

    def test_single_leaf_empty_proof(self):
        """Test that an empty proof verifies when root == leaf."""
        assert verify_proof(leaf(1), [], leaf(1))
        assert not verify_proof(leaf(1), [], leaf(2))

    def test_hex_proof_elements(self):
        tree = MerkleTree([leaf(1), leaf(2)])
        proof = tree.generate_proof(0)
        assert verify_proof(
            "0x" + proof.leaf_hash.hex(),
            ["0x" + node.hex() for node in proof.proof_hashes],
            "0x" + tree.get_root().hex(),
        )

    def test_short_proof_element_rejected(self):
        with pytest.raises(InvalidProofShapeError, match="must be 32 bytes"):
            verify_proof(leaf(1), [b"\x00" * 31], leaf(2))

    def test_non_hex_proof_element_rejected(self):
        with pytest.raises(InvalidProofShapeError):
            verify_proof(leaf(1), ["0xzz"], leaf(2))

    def test_overlong_proof_rejected(self):
        with pytest.raises(InvalidProofShapeError, match="maximum depth"):
            process_proof(leaf(1), [leaf(2)] * (MAX_PROOF_DEPTH + 1))

    def test_wrong_leaf_length_rejected(self):
        with pytest.raises(InvalidProofShapeError):
            verify_proof(b"\x01" * 20, [], leaf(1))


class TestMerkleTreeBuilder:
    """Test the builder interface."""

    def test_build_from_entries(self):
        builder = MerkleTreeBuilder()
        builder.add_entry("0x" + "01" * 20, TOKEN, 100).add_entry("0x" + "02" * 20, TOKEN, 200)
        tree = builder.build()

        expected = MerkleTree([
            build_leaf("0x" + "01" * 20, TOKEN, 100),
            build_leaf("0x" + "02" * 20, TOKEN, 200),
        ])
        assert tree.get_root() == expected.get_root()
        assert builder.get_root() == expected.get_root()

    def test_add_leaf(self):
        builder = MerkleTreeBuilder().add_leaf(leaf(1))
        assert builder.build().get_root() == leaf(1)

    def test_build_empty_raises(self):
        with pytest.raises(ValueError):
            MerkleTreeBuilder().build()

    def test_root_before_build_raises(self):
        builder = MerkleTreeBuilder().add_leaf(leaf(1))
        with pytest.raises(RuntimeError, match="not been built"):
            builder.get_root()
