"""
CLI commands for the ledger event log.

Provides an indexer view over deposits and claims.
"""

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import click

from stealthpay.core.events import CLAIMED, EVENT_TYPES, EventLogQuery, JsonlEventLog
from stealthpay.exceptions import StealthPayError


def get_event_query(config) -> Optional[EventLogQuery]:
    """
    Create EventLogQuery from configuration.

    Returns:
        EventLogQuery, or None when no event log has been written yet
    """
    log_path = Path(config.storage.event_log).expanduser()
    if not log_path.exists():
        return None
    return EventLogQuery(JsonlEventLog(str(log_path), backup_count=config.storage.backup_count))


@click.group(name='events')
def events_group():
    """Query the ledger event log."""
    pass


@events_group.command('list')
@click.option(
    '--type',
    '-t',
    'event_type',
    type=click.Choice(list(EVENT_TYPES)),
    default=None,
    help='Filter by event type (optional)',
)
@click.option('--root', '-r', default=None, help='Filter by commitment root (optional)')
@click.option('--stealth-address', '-s', default=None, help='Filter by stealth address (optional)')
@click.option('--employer', '-e', default=None, help='Filter by depositing employer (optional)')
@click.option(
    '--format',
    '-f',
    'output_format',
    type=click.Choice(['table', 'json'], case_sensitive=False),
    default='table',
    help='Output format (default: table)',
)
@click.pass_context
def list_events(
    ctx,
    event_type: Optional[str],
    root: Optional[str],
    stealth_address: Optional[str],
    employer: Optional[str],
    output_format: str,
):
    """
    List ledger events with optional filters.

    Examples:

        stealthpay events list --type Claimed

        stealthpay events list --root 0xab..ef --format json
    """
    try:
        query = get_event_query(ctx.obj.config)
        events = []
        if query is not None:
            events = query.get_events(
                event_type=event_type,
                root=root,
                stealth_address=stealth_address,
                employer=employer,
            )

        if not events:
            click.echo("No events found matching the specified filters.")
            return

        if output_format.lower() == 'json':
            click.echo(json.dumps([event.to_dict() for event in events], indent=2))
            return

        click.echo(f"Total events: {len(events)}")
        click.echo()
        header = f"{'ID':<6}  {'Type':<16}  {'Root':<18}  {'Amount':>20}  Timestamp"
        click.echo(header)
        click.echo("-" * len(header))
        for event in events:
            if event.event_type == CLAIMED:
                amount = int(event.net_amount) + int(event.fee_amount)
            else:
                amount = int(event.total_amount)
            timestamp = event.timestamp.replace('T', ' ').replace('Z', '')
            click.echo(
                f"{event.event_id:<6}  {event.event_type:<16}  {event.root[:18]:<18}  "
                f"{amount:>20}  {timestamp}"
            )
    except (StealthPayError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@events_group.command('history')
@click.option('--employer', '-e', default=None, help='Only show payouts funded by this employer (optional)')
@click.option(
    '--format',
    '-f',
    'output_format',
    type=click.Choice(['table', 'json'], case_sensitive=False),
    default='table',
    help='Output format (default: table)',
)
@click.pass_context
def history(ctx, employer: Optional[str], output_format: str):
    """
    Show the payout history rebuilt from the event log.

    Each settled claim is joined to the deposit that funded its root.

    Examples:

        stealthpay events history --employer 0x5B38...dC4
    """
    try:
        query = get_event_query(ctx.obj.config)
        records = query.payout_history(employer=employer) if query is not None else []

        if not records:
            click.echo("No payouts found.")
            return

        if output_format.lower() == 'json':
            click.echo(json.dumps([asdict(record) for record in records], indent=2))
            return

        click.echo(f"Total payouts: {len(records)}")
        click.echo("=" * 70)
        for record in records:
            click.echo(f"Stealth address: {record.stealth_address}")
            click.echo(f"  Employer:      {record.employer or 'unknown'}")
            click.echo(f"  Token:         {record.token}")
            click.echo(f"  Recipient:     {record.recipient}  ({record.net_amount})")
            click.echo(f"  Relayer:       {record.relayer}  ({record.fee_amount})")
            click.echo(f"  Root:          {record.root}")
            click.echo(f"  Settled at:    {record.timestamp}")
            click.echo("-" * 70)
    except (StealthPayError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
