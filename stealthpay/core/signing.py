"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

EIP-712 typed signatures for claim requests.

The signing domain binds the protocol name and version, the chain id and the
ledger's own address, so a claim signed for one deployment cannot be replayed
against another. Recovery rejects non-canonical (high-S) signatures before
touching the curve, so a malleated copy of a signature is never accepted as a
second credential.
"""

from dataclasses import dataclass
from typing import Any, Dict

from eth_abi import encode
from eth_account import Account
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak

from stealthpay.core.claims import ClaimRequest
from stealthpay.core.encoding import BytesLike, normalize_address, to_bytes
from stealthpay.exceptions import InvalidSignatureError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DOMAIN_NAME = "StealthPay"
DEFAULT_DOMAIN_VERSION = "1"

SIGNATURE_LENGTH = 65

# Largest s accepted; signatures with s above half the order are malleated copies
SECP256K1_HALF_N = SECPK1_N // 2

EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
CLAIM_REQUEST_TYPE = (
    "ClaimRequest(address stealthAddress,address token,uint256 amount,"
    "address recipient,uint256 feeAmount,uint256 deadline)"
)

EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
CLAIM_TYPEHASH = keccak(text=CLAIM_REQUEST_TYPE)

CLAIM_TYPES = {
    "ClaimRequest": [
        {"name": "stealthAddress", "type": "address"},
        {"name": "token", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "recipient", "type": "address"},
        {"name": "feeAmount", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}


@dataclass(frozen=True)
class ClaimDomain:
    """
    EIP-712 domain of one ledger deployment.

    Attributes:
        chain_id: Chain/network identity of the execution context
        verifying_contract: Address of the ledger instance
        name: Protocol name
        version: Protocol version
    """
    chain_id: int
    verifying_contract: str
    name: str = DEFAULT_DOMAIN_NAME
    version: str = DEFAULT_DOMAIN_VERSION

    @classmethod
    def create(
        cls,
        chain_id: int,
        verifying_contract: BytesLike,
        name: str = DEFAULT_DOMAIN_NAME,
        version: str = DEFAULT_DOMAIN_VERSION,
    ) -> "ClaimDomain":
        """Build a domain with a normalized ledger address."""
        if chain_id < 0:
            raise ValueError(f"chain_id must be non-negative, got {chain_id}")
        return cls(
            chain_id=int(chain_id),
            verifying_contract=normalize_address(verifying_contract),
            name=name,
            version=version,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the EIP-712 domain fields."""
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def separator(self) -> bytes:
        """Compute the EIP-712 domain separator."""
        return keccak(
            encode(
                ["bytes32", "bytes32", "bytes32", "uint256", "address"],
                [
                    EIP712_DOMAIN_TYPEHASH,
                    keccak(text=self.name),
                    keccak(text=self.version),
                    self.chain_id,
                    self.verifying_contract,
                ],
            )
        )


def claim_struct_hash(request: ClaimRequest) -> bytes:
    """Compute hashStruct(ClaimRequest)."""
    return keccak(
        encode(
            ["bytes32", "address", "address", "uint256", "address", "uint256", "uint256"],
            [
                CLAIM_TYPEHASH,
                request.stealth_address,
                request.token,
                request.amount,
                request.recipient,
                request.fee_amount,
                request.deadline,
            ],
        )
    )


def claim_digest(request: ClaimRequest, domain: ClaimDomain) -> bytes:
    """
    Compute the EIP-712 digest a stealth key signs for a claim.

    digest = keccak256(0x1901 || domainSeparator || hashStruct(request))
    """
    return keccak(b"\x19\x01" + domain.separator() + claim_struct_hash(request))


def build_typed_data(request: ClaimRequest, domain: ClaimDomain) -> Dict[str, Any]:
    """Return the full EIP-712 typed data document, as wallets expect it."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            **CLAIM_TYPES,
        },
        "primaryType": "ClaimRequest",
        "domain": domain.to_dict(),
        "message": request.to_message(),
    }


def sign_claim(request: ClaimRequest, domain: ClaimDomain, stealth_private_key: BytesLike) -> bytes:
    """
    Sign a claim request with the stealth private key.

    Args:
        request: Claim to authorize
        domain: Domain of the ledger that will settle the claim
        stealth_private_key: Key recovered with recover_stealth_private_key

    Returns:
        65-byte signature r || s || v with v in {27, 28}
    """
    signed = Account.sign_typed_data(
        to_bytes(stealth_private_key),
        domain_data=domain.to_dict(),
        message_types=CLAIM_TYPES,
        message_data=request.to_message(),
    )
    signature = bytes(signed.signature)
    logger.debug(f"Signed claim for stealth address {request.stealth_address}")
    return signature


def split_signature(signature: BytesLike):
    """
    Split a 65-byte signature into (v, r, s), enforcing canonical form.

    Raises:
        InvalidSignatureError: If the length is wrong, v is not a recovery id,
            r or s is out of range, or s is in the upper half of the order
    """
    try:
        data = to_bytes(signature)
    except (TypeError, ValueError) as e:
        raise InvalidSignatureError(f"Signature is not valid hex or bytes: {e}") from e

    if len(data) != SIGNATURE_LENGTH:
        raise InvalidSignatureError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(data)}"
        )

    r = int.from_bytes(data[0:32], "big")
    s = int.from_bytes(data[32:64], "big")
    v = data[64]

    if v in (27, 28):
        v -= 27
    if v not in (0, 1):
        raise InvalidSignatureError(f"Signature recovery id must be 27 or 28, got {data[64]}")
    if not 0 < r < SECPK1_N:
        raise InvalidSignatureError("Signature r value is out of range")
    if not 0 < s <= SECP256K1_HALF_N:
        raise InvalidSignatureError("Signature s value is not in canonical low-S form")

    return v, r, s


def recover_signer(digest: bytes, signature: BytesLike) -> str:
    """
    Recover the address that produced a signature over a 32-byte digest.

    Raises:
        InvalidSignatureError: If the signature is malformed, non-canonical, or
            does not recover to a public key
    """
    v, r, s = split_signature(signature)
    try:
        public_key = keys.Signature(vrs=(v, r, s)).recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as e:
        raise InvalidSignatureError(f"Signature does not recover to a public key: {e}") from e
    return public_key.to_checksum_address()


def recover_claim_signer(request: ClaimRequest, domain: ClaimDomain, signature: BytesLike) -> str:
    """Recover the address that signed a claim request for a domain."""
    return recover_signer(claim_digest(request, domain), signature)


def verify_claim_signature(request: ClaimRequest, domain: ClaimDomain, signature: BytesLike) -> None:
    """
    Require that a claim was signed by its own stealth address.

    Raises:
        InvalidSignatureError: If the signature is invalid or from another signer
    """
    signer = recover_claim_signer(request, domain, signature)
    if signer != request.stealth_address:
        raise InvalidSignatureError(
            f"Claim signed by {signer}, expected stealth address {request.stealth_address}"
        )
