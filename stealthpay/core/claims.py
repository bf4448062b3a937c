"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Claim request types and their relayer wire format.

A payee signs a ClaimRequest with the stealth private key and hands it,
together with the signature, Merkle proof and root, to a relayer. The relayer
submits it to the ledger and collects ``fee_amount`` for paying gas.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from stealthpay.core.encoding import BytesLike, normalize_address, to_bytes, to_bytes32, to_hex

UINT256_MAX = 2**256 - 1


def _parse_uint(value: Any, name: str) -> int:
    """Parse an unsigned 256-bit integer given as int or decimal/hex string."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got a boolean")
    if isinstance(value, str):
        text = value.strip()
        number = int(text, 16) if text.lower().startswith("0x") else int(text)
    elif isinstance(value, int):
        number = value
    else:
        raise ValueError(f"{name} must be an integer or numeric string, got {type(value).__name__}")
    if number < 0 or number > UINT256_MAX:
        raise ValueError(f"{name} must fit in uint256, got {number}")
    return number


@dataclass(frozen=True)
class ClaimRequest:
    """
    A payee-authorized instruction to pay out one stealth address.

    Attributes:
        stealth_address: Stealth address being claimed (the signer)
        token: Token bound to the commitment root
        amount: Committed amount for this stealth address
        recipient: Address receiving ``amount - fee_amount``
        fee_amount: Relayer compensation, paid to the submitting caller
        deadline: Unix timestamp (seconds) after which the request is void
    """
    stealth_address: str
    token: str
    amount: int
    recipient: str
    fee_amount: int
    deadline: int

    @classmethod
    def create(
        cls,
        stealth_address: BytesLike,
        token: BytesLike,
        amount: Any,
        recipient: BytesLike,
        fee_amount: Any,
        deadline: Any,
    ) -> "ClaimRequest":
        """
        Build a request with normalized addresses and range-checked integers.

        Raises:
            ValueError: If an address or integer field is malformed
        """
        return cls(
            stealth_address=normalize_address(stealth_address),
            token=normalize_address(token),
            amount=_parse_uint(amount, "amount"),
            recipient=normalize_address(recipient),
            fee_amount=_parse_uint(fee_amount, "fee_amount"),
            deadline=_parse_uint(deadline, "deadline"),
        )

    @property
    def net_amount(self) -> int:
        """Amount the recipient receives."""
        return self.amount - self.fee_amount

    def to_message(self) -> Dict[str, Any]:
        """Return the EIP-712 message fields for this request."""
        return {
            "stealthAddress": self.stealth_address,
            "token": self.token,
            "amount": self.amount,
            "recipient": self.recipient,
            "feeAmount": self.fee_amount,
            "deadline": self.deadline,
        }

    def to_dict(self) -> Dict[str, str]:
        """Convert to the relayer JSON form (integers as decimal strings)."""
        return {
            "stealthAddress": self.stealth_address,
            "token": self.token,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "feeAmount": str(self.fee_amount),
            "deadline": str(self.deadline),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimRequest":
        """
        Create a ClaimRequest from its relayer JSON form.

        Raises:
            ValueError: If a field is missing or malformed
        """
        try:
            return cls.create(
                stealth_address=data["stealthAddress"],
                token=data["token"],
                amount=data["amount"],
                recipient=data["recipient"],
                fee_amount=data["feeAmount"],
                deadline=data["deadline"],
            )
        except KeyError as e:
            raise ValueError(f"Claim request is missing field {e}") from e


@dataclass(frozen=True)
class ClaimSubmission:
    """Everything a relayer needs to submit one claim."""
    request: ClaimRequest
    signature: bytes
    merkle_proof: List[bytes] = field(default_factory=list)
    root: bytes = b"\x00" * 32

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the relayer JSON body."""
        return {
            "req": self.request.to_dict(),
            "signature": to_hex(self.signature),
            "merkleProof": [to_hex(node) for node in self.merkle_proof],
            "root": to_hex(self.root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimSubmission":
        """
        Parse a relayer JSON body.

        Proof elements are only decoded here; their shape is checked by the
        ledger so that a bad proof surfaces as a claim error.

        Raises:
            ValueError: If a field is missing or malformed
        """
        try:
            request = ClaimRequest.from_dict(data["req"])
            signature = to_bytes(data["signature"])
            proof = [to_bytes(node) for node in data.get("merkleProof", [])]
            root = to_bytes32(data["root"])
        except KeyError as e:
            raise ValueError(f"Claim submission is missing field {e}") from e
        except TypeError as e:
            raise ValueError(f"Malformed claim submission: {e}") from e
        return cls(request=request, signature=signature, merkle_proof=proof, root=root)
