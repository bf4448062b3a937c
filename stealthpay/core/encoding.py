"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Byte and address normalization shared by key derivation, commitments and the ledger.

Every public API accepts either raw bytes or hex strings (with or without the
0x prefix); these helpers turn both into a single canonical form.
"""

from typing import Union

from eth_utils import is_address, to_checksum_address

BytesLike = Union[bytes, bytearray, str]

# Token marker for the chain's native asset
NATIVE_ASSET = "0x0000000000000000000000000000000000000000"

ZERO_ADDRESS = NATIVE_ASSET


def strip_0x(value: str) -> str:
    """Remove a leading 0x/0X prefix if present."""
    if value[:2].lower() == "0x":
        return value[2:]
    return value


def to_bytes(value: BytesLike) -> bytes:
    """
    Convert bytes or a hex string to bytes.

    Raises:
        ValueError: If value is a string that is not valid hex
        TypeError: If value is neither bytes nor str
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        digits = strip_0x(value.strip())
        if len(digits) % 2:
            digits = "0" + digits
        return bytes.fromhex(digits)
    raise TypeError(f"Expected bytes or hex string, got {type(value).__name__}")


def to_bytes32(value: BytesLike) -> bytes:
    """
    Convert a root, leaf or proof element to exactly 32 bytes.

    Raises:
        ValueError: If the value is not exactly 32 bytes long
    """
    data = to_bytes(value)
    if len(data) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(data)} bytes")
    return data


def to_hex(data: bytes) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(data).hex()


def normalize_address(value: BytesLike) -> str:
    """
    Return the EIP-55 checksummed form of an address.

    Accepts 20 raw bytes or a hex string in any letter case.

    Raises:
        ValueError: If the value is not a 20-byte address
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(value)} bytes")
        return to_checksum_address(bytes(value))
    if not isinstance(value, str):
        raise TypeError(f"Expected address bytes or hex string, got {type(value).__name__}")
    candidate = value.strip()
    if not candidate.startswith(("0x", "0X")):
        candidate = "0x" + candidate
    # Accept any casing; is_address rejects bad mixed-case checksums
    if not is_address(candidate.lower()):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(candidate.lower())


def is_native_asset(token: str) -> bool:
    """Return True if the token marker denotes the native asset."""
    return normalize_address(token) == NATIVE_ASSET
