"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

StealthPay Core - Private batch payroll with relayed one-time claims

StealthPay Core provides stealth-address key derivation, payroll Merkle
commitments, and the claim ledger that pays each stealth address at most once.
"""

from stealthpay._version import __version__

__all__ = ["__version__"]
