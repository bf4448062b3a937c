"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Stealth address key derivation over secp256k1.

The payer (employer) and the payee (employee) compute the same one-time
address from public information using ECDH:

    shared      = ephemeral_priv * meta_pub = meta_priv * ephemeral_pub
    h           = keccak256(compress(shared)) mod n
    stealth_pub = meta_pub + h * G
    stealth_priv = (meta_priv + h) mod n

Only the holder of the meta private key can compute stealth_priv. All
functions here are pure and hold no shared state.
"""

from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from ecdsa import SECP256k1, VerifyingKey
from ecdsa.errors import MalformedPointError
from eth_utils import keccak, to_checksum_address

from stealthpay.core.encoding import BytesLike, to_bytes
from stealthpay.exceptions import InvalidPointEncodingError, InvalidScalarError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

# secp256k1 group order n
CURVE_ORDER = SECP256k1.order

# Message a payee signs with an existing wallet to derive a meta key
META_KEY_MESSAGE = "StealthPay Identity v1"

UNCOMPRESSED_PREFIX = b"\x04"


@dataclass(frozen=True)
class MetaKeyPair:
    """Long-lived payee identity. The public half is shared with payers."""
    private_key: bytes
    public_key: bytes


@dataclass(frozen=True)
class EphemeralKeyPair:
    """One-time payer key for a single payout round."""
    private_key: bytes
    public_key: bytes


@dataclass(frozen=True)
class StealthAddressResult:
    """
    Stealth address as computed by the payer.

    Attributes:
        stealth_address: EIP-55 checksummed 20-byte address
        stealth_public_key: 65-byte uncompressed public key
    """
    stealth_address: str
    stealth_public_key: bytes


@dataclass(frozen=True)
class StealthKeyPair:
    """Stealth key material as recovered by the payee. Never persisted."""
    address: str
    public_key: bytes
    private_key: Optional[bytes] = None


def _parse_scalar(value: BytesLike) -> int:
    """
    Parse a private scalar and check 0 < k < n.

    Values shorter than 32 bytes are read as big-endian, i.e. left-padded
    with zero bytes; longer values are rejected.

    Raises:
        InvalidScalarError: If the value is malformed or out of range
    """
    try:
        data = to_bytes(value)
    except (ValueError, TypeError) as e:
        raise InvalidScalarError(f"Private key is not valid hex or bytes: {e}") from e

    if len(data) > 32:
        raise InvalidScalarError(f"Private key must be at most 32 bytes, got {len(data)}")

    scalar = int.from_bytes(data, "big")
    if scalar == 0 or scalar >= CURVE_ORDER:
        raise InvalidScalarError("Private key must be in the range [1, n-1]")
    return scalar


def _scalar_to_bytes(scalar: int) -> bytes:
    return scalar.to_bytes(32, "big")


def _parse_point(value: BytesLike):
    """
    Decode a compressed (33 B) or uncompressed (65 B) SEC1 public key.

    Raises:
        InvalidPointEncodingError: If the bytes do not encode a curve point
    """
    try:
        data = to_bytes(value)
    except (ValueError, TypeError) as e:
        raise InvalidPointEncodingError(f"Public key is not valid hex or bytes: {e}") from e

    if len(data) not in (33, 65):
        raise InvalidPointEncodingError(
            f"Public key must be 33 (compressed) or 65 (uncompressed) bytes, got {len(data)}"
        )
    if len(data) == 65 and data[:1] != UNCOMPRESSED_PREFIX:
        raise InvalidPointEncodingError("Uncompressed public key must start with 0x04")
    if len(data) == 33 and data[:1] not in (b"\x02", b"\x03"):
        raise InvalidPointEncodingError("Compressed public key must start with 0x02 or 0x03")

    try:
        verifying_key = VerifyingKey.from_string(data, curve=SECP256k1)
    except (MalformedPointError, ValueError) as e:
        raise InvalidPointEncodingError(f"Public key is not a point on secp256k1: {e}") from e
    return verifying_key.pubkey.point


def _compress(point) -> bytes:
    prefix = b"\x03" if point.y() & 1 else b"\x02"
    return prefix + point.x().to_bytes(32, "big")


def _uncompressed(point) -> bytes:
    return UNCOMPRESSED_PREFIX + point.x().to_bytes(32, "big") + point.y().to_bytes(32, "big")


def _shared_secret_scalar(scalar: int, point) -> int:
    """h = keccak256(compress(scalar * point)) mod n."""
    shared = point * scalar
    return int.from_bytes(keccak(_compress(shared)), "big") % CURVE_ORDER


def address_from_public_key(public_key: BytesLike) -> str:
    """
    Derive the account address of a public key.

    keccak256 over the 64-byte x||y coordinates (uncompressed point without
    the 0x04 tag); the address is the last 20 bytes.

    Raises:
        InvalidPointEncodingError: If public_key is not a valid point
    """
    point = _parse_point(public_key)
    return to_checksum_address(keccak(_uncompressed(point)[1:])[-20:])


def derive_meta_public_key(meta_private_key: BytesLike) -> bytes:
    """
    Compute the public key for a private scalar.

    Args:
        meta_private_key: 32-byte scalar (bytes or hex)

    Returns:
        65-byte uncompressed public key with the 0x04 tag

    Raises:
        InvalidScalarError: If the scalar is zero or not below the curve order
    """
    scalar = _parse_scalar(meta_private_key)
    private_key = ec.derive_private_key(scalar, ec.SECP256K1())
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def compute_stealth_address(
    meta_public_key: BytesLike,
    ephemeral_private_key: BytesLike,
) -> StealthAddressResult:
    """
    Payer side: compute a payee's one-time stealth address.

    Args:
        meta_public_key: Payee's meta public key (compressed or uncompressed)
        ephemeral_private_key: Payer's one-time private scalar

    Returns:
        StealthAddressResult with the address and the stealth public key

    Raises:
        InvalidPointEncodingError: If meta_public_key is malformed
        InvalidScalarError: If ephemeral_private_key is out of range

    Example:
        >>> meta = generate_meta_keypair()
        >>> ephemeral = generate_ephemeral_keypair()
        >>> result = compute_stealth_address(meta.public_key, ephemeral.private_key)
        >>> len(result.stealth_public_key)
        65
    """
    meta_point = _parse_point(meta_public_key)
    ephemeral_scalar = _parse_scalar(ephemeral_private_key)

    h = _shared_secret_scalar(ephemeral_scalar, meta_point)
    stealth_point = meta_point + SECP256k1.generator * h

    stealth_public_key = _uncompressed(stealth_point)
    stealth_address = to_checksum_address(keccak(stealth_public_key[1:])[-20:])

    return StealthAddressResult(
        stealth_address=stealth_address,
        stealth_public_key=stealth_public_key,
    )


def recover_stealth_private_key(
    meta_private_key: BytesLike,
    ephemeral_public_key: BytesLike,
) -> bytes:
    """
    Payee side: recover the private key controlling a stealth address.

    Args:
        meta_private_key: Payee's meta private scalar
        ephemeral_public_key: Ephemeral public key published by the payer

    Returns:
        32-byte stealth private scalar

    Raises:
        InvalidScalarError: If meta_private_key is out of range
        InvalidPointEncodingError: If ephemeral_public_key is malformed
    """
    meta_scalar = _parse_scalar(meta_private_key)
    ephemeral_point = _parse_point(ephemeral_public_key)

    h = _shared_secret_scalar(meta_scalar, ephemeral_point)
    return _scalar_to_bytes((meta_scalar + h) % CURVE_ORDER)


def recover_stealth_keypair(
    meta_private_key: BytesLike,
    ephemeral_public_key: BytesLike,
) -> StealthKeyPair:
    """Recover the full stealth key pair (address, public and private key)."""
    stealth_private_key = recover_stealth_private_key(meta_private_key, ephemeral_public_key)
    public_key = derive_meta_public_key(stealth_private_key)
    return StealthKeyPair(
        address=address_from_public_key(public_key),
        public_key=public_key,
        private_key=stealth_private_key,
    )


def address_from_private_key(private_key: BytesLike) -> str:
    """Return the account address controlled by a private scalar."""
    return address_from_public_key(derive_meta_public_key(private_key))


def generate_private_key() -> bytes:
    """Generate a uniformly random secp256k1 private scalar."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    return _scalar_to_bytes(private_key.private_numbers().private_value)


def generate_meta_keypair() -> MetaKeyPair:
    """Generate a new payee meta key pair."""
    private_key = generate_private_key()
    return MetaKeyPair(private_key=private_key, public_key=derive_meta_public_key(private_key))


def generate_ephemeral_keypair() -> EphemeralKeyPair:
    """Generate a new payer ephemeral key pair for one payout round."""
    private_key = generate_private_key()
    return EphemeralKeyPair(private_key=private_key, public_key=derive_meta_public_key(private_key))


def derive_meta_private_key_from_signature(wallet_signature: BytesLike) -> bytes:
    """
    Derive a meta private key from a wallet signature over META_KEY_MESSAGE.

    Wallets sign deterministically, so the payee can re-derive the same meta
    key from their existing wallet without storing it.

    Raises:
        InvalidScalarError: If the signature is empty or hashes to an invalid scalar
    """
    try:
        data = to_bytes(wallet_signature)
    except (ValueError, TypeError) as e:
        raise InvalidScalarError(f"Wallet signature is not valid hex or bytes: {e}") from e
    if not data:
        raise InvalidScalarError("Wallet signature cannot be empty")

    candidate = keccak(data)
    _parse_scalar(candidate)
    logger.debug("Derived meta key from wallet signature")
    return candidate
