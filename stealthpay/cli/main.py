"""
CLI entry point for StealthPay Core.

Provides command-line interface for payer and payee tooling: stealth key
derivation, payroll commitments, claim signing, and event log queries.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from stealthpay._version import __version__
from stealthpay.config.settings import get_default_config_path, load_config
from stealthpay.exceptions import InvalidConfigurationError
from stealthpay.logging_config import setup_logging
from stealthpay.cli.context import CLIContext, pass_context


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {get_default_config_path()})',
)
@click.option(
    '--log-level',
    '-l',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Set logging level (default: from configuration)',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='stealthpay')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    StealthPay Core - Private batch payroll with relayed one-time claims.

    Derives stealth addresses, builds payroll commitments, signs claims for
    relayers, and queries the claim ledger's event log.
    """
    ctx.verbose = verbose
    ctx.config_path = str(config) if config else None

    # Load configuration
    try:
        ctx.config = load_config(ctx.config_path)
    except InvalidConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    # Set up logging
    try:
        effective_log_level = log_level.upper() if log_level else ctx.config.logging.level
        log_file = Path(ctx.config.logging.file) if ctx.config.logging.file else None
        setup_logging(
            level=effective_log_level,
            log_file=log_file,
            json_format=ctx.config.logging.format == "json",
        )

        if verbose:
            logger = logging.getLogger("stealthpay")
            logger.info(f"Loaded configuration from: {ctx.config_path or 'defaults'}")
            logger.info(f"Log level: {effective_log_level}")
    except OSError as e:
        click.echo(f"Error: Failed to set up logging: {e}", err=True)
        sys.exit(1)


# Import and register command groups
from stealthpay.cli.keys import keys_group
from stealthpay.cli.commitment import commitment_group
from stealthpay.cli.claim import claim_group
from stealthpay.cli.events import events_group

cli.add_command(keys_group)
cli.add_command(commitment_group)
cli.add_command(claim_group)
cli.add_command(events_group)


if __name__ == '__main__':
    cli()
