"""
Exception hierarchy for StealthPay Core.

All custom exceptions inherit from StealthPayError base class. Errors that a
relayer or payee must be able to branch on carry an ErrorKind in their
``kind`` attribute.
"""

from enum import Enum


class ErrorKind(Enum):
    """Machine-readable failure kinds surfaced to ledger callers."""
    INVALID_SCALAR = "invalid_scalar"
    INVALID_POINT_ENCODING = "invalid_point_encoding"
    INVALID_PROOF_SHAPE = "invalid_proof_shape"
    ETH_AMOUNT_MISMATCH = "eth_amount_mismatch"
    ROOT_ALREADY_REGISTERED = "root_already_registered"
    EXPIRED_REQUEST = "expired_request"
    ALREADY_CLAIMED = "already_claimed"
    FEE_EXCEEDS_AMOUNT = "fee_exceeds_amount"
    UNKNOWN_ROOT = "unknown_root"
    TOKEN_MISMATCH = "token_mismatch"
    INVALID_PROOF = "invalid_proof"
    INVALID_SIGNATURE = "invalid_signature"
    TRANSFER_FAILURE = "transfer_failure"
    ARRAY_LENGTH_MISMATCH = "array_length_mismatch"


class StealthPayError(Exception):
    """Base exception for all StealthPay Core errors."""
    kind = None


# Key Derivation Errors
class KeyDerivationError(StealthPayError):
    """Base exception for stealth key derivation errors."""
    pass


class InvalidScalarError(KeyDerivationError):
    """Raised when a private scalar is zero, not below the curve order, or malformed."""
    kind = ErrorKind.INVALID_SCALAR


class InvalidPointEncodingError(KeyDerivationError):
    """Raised when public key bytes do not encode a point on secp256k1."""
    kind = ErrorKind.INVALID_POINT_ENCODING


# Commitment Errors
class CommitmentError(StealthPayError):
    """Base exception for payroll commitment errors."""
    pass


class InvalidProofShapeError(CommitmentError):
    """Raised when a Merkle proof has malformed elements or an impossible length."""
    kind = ErrorKind.INVALID_PROOF_SHAPE


class InvalidCommitmentError(CommitmentError):
    """Raised when a payroll commitment cannot be built from its entries."""
    pass


# Ledger Errors
class LedgerError(StealthPayError):
    """Base exception for claim ledger errors."""
    pass


class DepositError(LedgerError):
    """Base exception for rejected deposits."""
    pass


class EthAmountMismatchError(DepositError):
    """Raised when attached native value does not match the deposit."""
    kind = ErrorKind.ETH_AMOUNT_MISMATCH


class RootAlreadyRegisteredError(DepositError):
    """Raised when a root is reused and the ledger rejects reused roots."""
    kind = ErrorKind.ROOT_ALREADY_REGISTERED


class ClaimError(LedgerError):
    """Base exception for rejected claims."""
    pass


class ExpiredRequestError(ClaimError):
    """Raised when a claim request is submitted after its deadline."""
    kind = ErrorKind.EXPIRED_REQUEST


class AlreadyClaimedError(ClaimError):
    """Raised when the stealth address has already been paid out."""
    kind = ErrorKind.ALREADY_CLAIMED


class FeeExceedsAmountError(ClaimError):
    """Raised when the relayer fee is larger than the claimed amount."""
    kind = ErrorKind.FEE_EXCEEDS_AMOUNT


class UnknownRootError(ClaimError):
    """Raised when the referenced commitment root has no payroll record."""
    kind = ErrorKind.UNKNOWN_ROOT


class TokenMismatchError(ClaimError):
    """Raised when the request token differs from the token bound to the root."""
    kind = ErrorKind.TOKEN_MISMATCH


class InvalidProofError(ClaimError):
    """Raised when the claimed leaf is not included under the root."""
    kind = ErrorKind.INVALID_PROOF


class InvalidSignatureError(ClaimError):
    """Raised when the signature is malformed, non-canonical, or from another signer."""
    kind = ErrorKind.INVALID_SIGNATURE


class ArrayLengthMismatchError(ClaimError):
    """Raised when batch claim argument lists differ in length."""
    kind = ErrorKind.ARRAY_LENGTH_MISMATCH


# Asset Errors
class TransferFailureError(LedgerError):
    """Raised when moving funds in or out of ledger custody fails."""
    kind = ErrorKind.TRANSFER_FAILURE


# Configuration Errors
class ConfigurationError(StealthPayError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


# Storage and Persistence Errors
class StorageError(StealthPayError):
    """Base exception for storage-related errors."""
    pass


class StateStoreError(StorageError):
    """Raised when the ledger state file cannot be read or written."""
    pass


class EventLogWriteError(StorageError):
    """Raised when appending to the event log fails."""
    pass


class EventLogReadError(StorageError):
    """Raised when reading the event log fails."""
    pass
