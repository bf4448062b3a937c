"""
Unit tests for payroll commitments.

Tests cover:
- Commitment construction and validation
- Per-address proofs
- StandardMerkleTree dump export and import
"""

import json

import pytest
from eth_utils import to_checksum_address

from stealthpay.exceptions import InvalidCommitmentError
from stealthpay.merkle.commitment import DUMP_FORMAT, PayrollCommitment, PayrollLeaf
from stealthpay.merkle.tree import build_leaf, verify_proof

from helpers import OTHER_TOKEN, TOKEN

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20


@pytest.fixture
def commitment():
    return PayrollCommitment([
        PayrollLeaf.create(ALICE, TOKEN, 5000),
        PayrollLeaf.create(BOB, TOKEN, 3000),
        PayrollLeaf.create(CAROL, TOKEN, 700),
    ])


class TestPayrollLeaf:
    """Test PayrollLeaf."""

    def test_create_normalizes_addresses(self):
        entry = PayrollLeaf.create(ALICE, TOKEN.lower(), "5000")
        assert entry.stealth_address == to_checksum_address(ALICE)
        assert entry.token == TOKEN
        assert entry.amount == 5000

    def test_hash_matches_build_leaf(self):
        entry = PayrollLeaf.create(ALICE, TOKEN, 5000)
        assert entry.hash() == build_leaf(ALICE, TOKEN, 5000)

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidCommitmentError):
            PayrollLeaf.create(ALICE, TOKEN, -1)

    def test_to_value(self):
        entry = PayrollLeaf.create(ALICE, TOKEN, 5000)
        assert entry.to_value() == [entry.stealth_address, TOKEN, "5000"]


class TestPayrollCommitment:
    """Test PayrollCommitment construction and proofs."""

    def test_total_and_token(self, commitment):
        assert commitment.total_amount == 8700
        assert commitment.token == TOKEN
        assert len(commitment.root) == 32

    def test_every_entry_has_a_valid_proof(self, commitment):
        for entry in commitment.entries:
            proof = commitment.proof_for(entry.stealth_address)
            assert verify_proof(entry.hash(), proof, commitment.root)
            assert commitment.verify(entry, proof)

    def test_proof_does_not_verify_other_amount(self, commitment):
        proof = commitment.proof_for(ALICE)
        assert not commitment.verify(PayrollLeaf.create(ALICE, TOKEN, 5001), proof)

    def test_entry_for(self, commitment):
        assert commitment.entry_for(BOB).amount == 3000
        assert commitment.entry_for("0x" + "99" * 20) is None

    def test_proof_for_unknown_address(self, commitment):
        with pytest.raises(KeyError):
            commitment.proof_for("0x" + "99" * 20)

    def test_single_entry_root_is_leaf(self):
        entry = PayrollLeaf.create(ALICE, TOKEN, 1)
        commitment = PayrollCommitment([entry])
        assert commitment.root == entry.hash()
        assert commitment.proof_for(ALICE) == []

    def test_root_independent_of_entry_order(self, commitment):
        reordered = PayrollCommitment(list(reversed(commitment.entries)))
        assert reordered.root == commitment.root

    def test_empty_rejected(self):
        with pytest.raises(InvalidCommitmentError, match="empty"):
            PayrollCommitment([])

    def test_mixed_tokens_rejected(self):
        with pytest.raises(InvalidCommitmentError, match="one token"):
            PayrollCommitment([
                PayrollLeaf.create(ALICE, TOKEN, 1),
                PayrollLeaf.create(BOB, OTHER_TOKEN, 1),
            ])

    def test_duplicate_address_rejected(self):
        with pytest.raises(InvalidCommitmentError, match="more than once"):
            PayrollCommitment([
                PayrollLeaf.create(ALICE, TOKEN, 1),
                PayrollLeaf.create(ALICE, TOKEN, 2),
            ])


class TestCommitmentDump:
    """Test the standard-v1 dump format."""

    def test_dump_shape(self, commitment):
        data = commitment.to_dict()
        assert data["format"] == DUMP_FORMAT
        assert data["leafEncoding"] == ["address", "address", "uint256"]
        assert len(data["tree"]) == 2 * len(commitment.entries) - 1
        assert data["tree"][0] == "0x" + commitment.root.hex()

    def test_tree_index_points_at_leaf(self, commitment):
        data = commitment.to_dict()
        for row in data["values"]:
            stealth, token, amount = row["value"]
            assert data["tree"][row["treeIndex"]] == "0x" + build_leaf(stealth, token, int(amount)).hex()

    def test_json_round_trip_keeps_root(self, commitment):
        loaded = PayrollCommitment.from_json(commitment.to_json())
        assert loaded.root == commitment.root
        assert loaded.total_amount == commitment.total_amount

    def test_dump_without_tree_is_rebuilt(self, commitment):
        data = commitment.to_dict()
        del data["tree"]
        assert PayrollCommitment.from_dict(data).root == commitment.root

    def test_tampered_tree_rejected(self, commitment):
        data = commitment.to_dict()
        data["tree"][0] = "0x" + "00" * 32
        with pytest.raises(InvalidCommitmentError, match="does not match"):
            PayrollCommitment.from_dict(data)

    def test_tampered_amount_rejected(self, commitment):
        data = commitment.to_dict()
        data["values"][0]["value"][2] = "1"
        with pytest.raises(InvalidCommitmentError):
            PayrollCommitment.from_dict(data)

    def test_unknown_format_rejected(self, commitment):
        data = commitment.to_dict()
        data["format"] = "simple-v1"
        with pytest.raises(InvalidCommitmentError, match="format"):
            PayrollCommitment.from_dict(data)

    def test_wrong_leaf_encoding_rejected(self, commitment):
        data = commitment.to_dict()
        data["leafEncoding"] = ["address", "uint256"]
        with pytest.raises(InvalidCommitmentError, match="leaf encoding"):
            PayrollCommitment.from_dict(data)

    def test_malformed_values_rejected(self):
        with pytest.raises(InvalidCommitmentError, match="Malformed"):
            PayrollCommitment.from_dict({
                "format": DUMP_FORMAT,
                "leafEncoding": ["address", "address", "uint256"],
                "values": [{"value": ["not-an-address", TOKEN, "1"]}],
            })

    def test_invalid_json_rejected(self):
        with pytest.raises(InvalidCommitmentError, match="not valid JSON"):
            PayrollCommitment.from_json("{not json")

    def test_non_object_rejected(self):
        with pytest.raises(InvalidCommitmentError):
            PayrollCommitment.from_json(json.dumps([1, 2, 3]))
