"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Core components for StealthPay Core.

This module contains the core primitives:
- Stealth key derivation
- Claim requests and typed-data signing
- Claim ledger with custody, events and durable state
- Relayer-facing error handling
"""

from stealthpay.core.assets import AssetBank, InMemoryAssetBank
from stealthpay.core.claims import ClaimRequest, ClaimSubmission
from stealthpay.core.encoding import NATIVE_ASSET
from stealthpay.core.ledger import ClaimLedger, ClaimReceipt, ClaimState
from stealthpay.core.state_store import PayrollRecord

__all__ = [
    "AssetBank",
    "ClaimLedger",
    "ClaimReceipt",
    "ClaimRequest",
    "ClaimState",
    "ClaimSubmission",
    "InMemoryAssetBank",
    "NATIVE_ASSET",
    "PayrollRecord",
]
