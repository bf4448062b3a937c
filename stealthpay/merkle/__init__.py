"""
Merkle commitments for payroll rounds.

This module provides leaf hashing, sorted-pair Merkle tree construction,
proof generation, and verification compatible with StandardMerkleTree tooling.
"""

from stealthpay.merkle.tree import (
    MAX_PROOF_DEPTH,
    MerkleProof,
    MerkleTree,
    MerkleTreeBuilder,
    build_leaf,
    combine_pair,
    verify_proof,
)
from stealthpay.merkle.commitment import PayrollCommitment, PayrollLeaf

__all__ = [
    "MAX_PROOF_DEPTH",
    "MerkleProof",
    "MerkleTree",
    "MerkleTreeBuilder",
    "PayrollCommitment",
    "PayrollLeaf",
    "build_leaf",
    "combine_pair",
    "verify_proof",
]
