"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

CLI context for StealthPay Core.

Holds the loaded configuration and builds the signing domain that claim
commands share.
"""

from typing import Optional

import click

from stealthpay.core.signing import ClaimDomain
from stealthpay.exceptions import InvalidConfigurationError


class CLIContext:
    """Context object for CLI commands."""

    def __init__(self):
        self.config = None
        self.config_path = None
        self.verbose = False

    def claim_domain(self, ledger_address: Optional[str] = None, chain_id: Optional[int] = None) -> ClaimDomain:
        """
        Build the EIP-712 domain for claims, preferring explicit options over configuration.

        Raises:
            InvalidConfigurationError: If no ledger address is given or configured
        """
        ledger_address = ledger_address or self.config.ledger.address
        if not ledger_address:
            raise InvalidConfigurationError(
                "No ledger address. Pass --ledger-address or set ledger.address in the configuration."
            )
        return ClaimDomain.create(
            chain_id=self.config.ledger.chain_id if chain_id is None else chain_id,
            verifying_contract=ledger_address,
            name=self.config.domain.name,
            version=self.config.domain.version,
        )


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
