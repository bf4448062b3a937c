"""
Unit tests for claim requests and the relayer wire format.
"""

import pytest

from stealthpay.core.claims import ClaimRequest, ClaimSubmission

from helpers import RECIPIENT, TOKEN

STEALTH = "0x" + "5a" * 20


def make_request(**overrides) -> ClaimRequest:
    fields = dict(
        stealth_address=STEALTH,
        token=TOKEN,
        amount=5000,
        recipient=RECIPIENT,
        fee_amount=50,
        deadline=1_700_003_600,
    )
    fields.update(overrides)
    return ClaimRequest.create(**fields)


class TestClaimRequest:
    """Test ClaimRequest."""

    def test_net_amount(self):
        assert make_request().net_amount == 4950

    def test_string_integers_accepted(self):
        request = make_request(amount="5000", fee_amount="0x32", deadline="1700003600")
        assert request.amount == 5000
        assert request.fee_amount == 50
        assert request.deadline == 1_700_003_600

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="uint256"):
            make_request(amount=-1)

    def test_overflow_rejected(self):
        with pytest.raises(ValueError, match="uint256"):
            make_request(deadline=2**256)

    def test_boolean_rejected(self):
        with pytest.raises(ValueError, match="boolean"):
            make_request(fee_amount=True)

    def test_bad_address_rejected(self):
        with pytest.raises(ValueError):
            make_request(recipient="0x1234")

    def test_to_message_uses_eip712_field_names(self):
        message = make_request().to_message()
        assert list(message) == [
            "stealthAddress", "token", "amount", "recipient", "feeAmount", "deadline",
        ]
        assert message["amount"] == 5000

    def test_dict_round_trip(self):
        request = make_request()
        data = request.to_dict()
        assert data["amount"] == "5000"
        assert ClaimRequest.from_dict(data) == request

    def test_from_dict_missing_field(self):
        data = make_request().to_dict()
        del data["deadline"]
        with pytest.raises(ValueError, match="missing field"):
            ClaimRequest.from_dict(data)

    def test_requests_are_frozen(self):
        request = make_request()
        with pytest.raises(AttributeError):
            request.amount = 1


class TestClaimSubmission:
    """Test ClaimSubmission wire format."""

    def test_to_dict_layout(self):
        submission = ClaimSubmission(
            request=make_request(),
            signature=b"\x01" * 65,
            merkle_proof=[b"\x02" * 32],
            root=b"\x03" * 32,
        )
        data = submission.to_dict()
        assert set(data) == {"req", "signature", "merkleProof", "root"}
        assert data["signature"] == "0x" + "01" * 65
        assert data["merkleProof"] == ["0x" + "02" * 32]
        assert data["root"] == "0x" + "03" * 32

    def test_from_dict(self):
        submission = ClaimSubmission(
            request=make_request(),
            signature=b"\x01" * 65,
            merkle_proof=[b"\x02" * 32, b"\x04" * 32],
            root=b"\x03" * 32,
        )
        assert ClaimSubmission.from_dict(submission.to_dict()) == submission

    def test_missing_proof_defaults_to_empty(self):
        data = {
            "req": make_request().to_dict(),
            "signature": "0x" + "01" * 65,
            "root": "0x" + "03" * 32,
        }
        assert ClaimSubmission.from_dict(data).merkle_proof == []

    def test_missing_root(self):
        data = {"req": make_request().to_dict(), "signature": "0x00"}
        with pytest.raises(ValueError, match="missing field"):
            ClaimSubmission.from_dict(data)

    def test_short_root_rejected(self):
        data = {
            "req": make_request().to_dict(),
            "signature": "0x" + "01" * 65,
            "root": "0x1234",
        }
        with pytest.raises(ValueError, match="32 bytes"):
            ClaimSubmission.from_dict(data)
