"""
CLI commands for stealth key derivation.

Provides commands for:
- Generating payee meta key pairs
- Computing stealth addresses (payer side)
- Recovering stealth keys (payee side)
"""

import json
import sys
from typing import Optional

import click

from stealthpay.core.encoding import to_hex
from stealthpay.core.keys import (
    compute_stealth_address,
    derive_meta_private_key_from_signature,
    derive_meta_public_key,
    generate_ephemeral_keypair,
    generate_meta_keypair,
    recover_stealth_keypair,
)
from stealthpay.exceptions import KeyDerivationError
from stealthpay.logging_config import get_logger

logger = get_logger(__name__)

FORMAT_OPTION = click.option(
    '--format',
    '-f',
    'output_format',
    type=click.Choice(['text', 'json'], case_sensitive=False),
    default='text',
    help='Output format (default: text)',
)


def _emit(output_format: str, fields: dict) -> None:
    if output_format.lower() == 'json':
        click.echo(json.dumps(fields, indent=2))
        return
    width = max(len(label) for label in fields)
    for label, value in fields.items():
        click.echo(f"{label.replace('_', ' ').capitalize():<{width}}  {value}")


@click.group(name='keys')
def keys_group():
    """Stealth key derivation for payers and payees."""
    pass


@keys_group.command('generate-meta')
@click.option(
    '--from-signature',
    default=None,
    help='Derive the meta key from a wallet signature over the identity message instead of at random',
)
@FORMAT_OPTION
def generate_meta(from_signature: Optional[str], output_format: str):
    """
    Generate a payee meta key pair.

    Share the public key with employers; keep the private key secret. It is
    the only way to recover the keys of stealth addresses paid to you.

    Examples:

        stealthpay keys generate-meta

        stealthpay keys generate-meta --from-signature 0x5d3c...1b
    """
    try:
        if from_signature:
            private_key = derive_meta_private_key_from_signature(from_signature)
            public_key = derive_meta_public_key(private_key)
        else:
            keypair = generate_meta_keypair()
            private_key, public_key = keypair.private_key, keypair.public_key

        _emit(output_format, {
            "meta_private_key": to_hex(private_key),
            "meta_public_key": to_hex(public_key),
        })
        if output_format.lower() != 'json':
            click.echo()
            click.echo("IMPORTANT: Never share the meta private key.")
    except KeyDerivationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@keys_group.command('meta-public')
@click.option(
    '--meta-private-key',
    '-k',
    required=True,
    envvar='STEALTHPAY_META_PRIVATE_KEY',
    help='Meta private key (hex); can also use STEALTHPAY_META_PRIVATE_KEY env var',
)
@FORMAT_OPTION
def meta_public(meta_private_key: str, output_format: str):
    """Print the meta public key for a meta private key."""
    try:
        _emit(output_format, {"meta_public_key": to_hex(derive_meta_public_key(meta_private_key))})
    except KeyDerivationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@keys_group.command('stealth-address')
@click.option(
    '--meta-public-key',
    '-m',
    required=True,
    help="Payee's meta public key (hex, compressed or uncompressed)",
)
@click.option(
    '--ephemeral-private-key',
    '-e',
    default=None,
    help='Ephemeral private key (hex); a new one is generated when omitted',
)
@FORMAT_OPTION
def stealth_address(meta_public_key: str, ephemeral_private_key: Optional[str], output_format: str):
    """
    Compute a payee's one-time stealth address (payer side).

    Publish the ephemeral public key alongside the payroll so the payee can
    recover the stealth key.

    Examples:

        stealthpay keys stealth-address -m 0x04a1...9f
    """
    try:
        if ephemeral_private_key is None:
            ephemeral = generate_ephemeral_keypair()
            ephemeral_private_key = ephemeral.private_key
            ephemeral_public_key = ephemeral.public_key
        else:
            ephemeral_public_key = derive_meta_public_key(ephemeral_private_key)

        result = compute_stealth_address(meta_public_key, ephemeral_private_key)
        _emit(output_format, {
            "stealth_address": result.stealth_address,
            "stealth_public_key": to_hex(result.stealth_public_key),
            "ephemeral_public_key": to_hex(ephemeral_public_key),
        })
    except KeyDerivationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@keys_group.command('recover')
@click.option(
    '--meta-private-key',
    '-k',
    required=True,
    envvar='STEALTHPAY_META_PRIVATE_KEY',
    help='Meta private key (hex); can also use STEALTHPAY_META_PRIVATE_KEY env var',
)
@click.option(
    '--ephemeral-public-key',
    '-e',
    required=True,
    help='Ephemeral public key published by the payer (hex)',
)
@click.option(
    '--show-private-key',
    is_flag=True,
    help='Also print the recovered stealth private key',
)
@FORMAT_OPTION
def recover(meta_private_key: str, ephemeral_public_key: str, show_private_key: bool, output_format: str):
    """
    Recover the stealth key pair for a payout (payee side).

    Examples:

        stealthpay keys recover -e 0x04b7...20 --show-private-key
    """
    try:
        keypair = recover_stealth_keypair(meta_private_key, ephemeral_public_key)
        fields = {
            "stealth_address": keypair.address,
            "stealth_public_key": to_hex(keypair.public_key),
        }
        if show_private_key:
            fields["stealth_private_key"] = to_hex(keypair.private_key)
        _emit(output_format, fields)
    except KeyDerivationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
