"""
CLI commands for payroll commitments.

Provides commands for:
- Building a commitment from a payroll CSV
- Extracting the inclusion proof for one stealth address
- Verifying an entry against a root
"""

import csv
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from stealthpay.core.encoding import to_hex
from stealthpay.exceptions import CommitmentError
from stealthpay.logging_config import get_logger
from stealthpay.merkle.commitment import PayrollCommitment, PayrollLeaf
from stealthpay.merkle.tree import build_leaf, verify_proof

logger = get_logger(__name__)

CSV_COLUMNS = ("stealth_address", "token", "amount")


def read_payroll_csv(path: Path) -> List[PayrollLeaf]:
    """
    Read payroll entries from a CSV file.

    The file must have a header row with stealth_address, token and amount
    columns. Amounts are integers in the token's smallest unit.

    Raises:
        CommitmentError: If a column is missing or a row is malformed
    """
    entries = []
    with open(path, 'r', newline='') as f:
        reader = csv.DictReader(f)
        missing = [column for column in CSV_COLUMNS if column not in (reader.fieldnames or [])]
        if missing:
            raise CommitmentError(f"Payroll CSV is missing columns: {', '.join(missing)}")

        for line_num, row in enumerate(reader, start=2):
            try:
                entries.append(
                    PayrollLeaf.create(
                        row["stealth_address"].strip(),
                        row["token"].strip(),
                        int(row["amount"].strip()),
                    )
                )
            except (TypeError, ValueError) as e:
                raise CommitmentError(f"Invalid payroll entry on line {line_num}: {e}") from e
    return entries


def load_commitment(path: Path) -> PayrollCommitment:
    """Load a commitment from a standard-v1 JSON dump file."""
    return PayrollCommitment.from_json(Path(path).expanduser().read_text())


@click.group(name='commitment')
def commitment_group():
    """Build and inspect payroll commitments."""
    pass


@commitment_group.command('build')
@click.option(
    '--input',
    '-i',
    'input_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Payroll CSV with stealth_address,token,amount columns',
)
@click.option(
    '--output',
    '-o',
    'output_path',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Write the standard-v1 tree dump to this file (default: stdout)',
)
def build(input_path: Path, output_path: Optional[Path]):
    """
    Build a payroll commitment and print its root.

    The employer deposits the printed total against the printed root and
    sends each payee their proof.

    Examples:

        stealthpay commitment build -i payroll.csv -o tree.json
    """
    try:
        commitment = PayrollCommitment(read_payroll_csv(input_path))

        if output_path is None:
            click.echo(commitment.to_json())
            return

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(commitment.to_json())

        click.echo(f"Root:         {to_hex(commitment.root)}")
        click.echo(f"Token:        {commitment.token}")
        click.echo(f"Entries:      {len(commitment.entries)}")
        click.echo(f"Total amount: {commitment.total_amount}")
        click.echo(f"Tree written to {output_path}")
    except CommitmentError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error: Failed to read or write file: {e}", err=True)
        sys.exit(1)


@commitment_group.command('proof')
@click.option(
    '--tree',
    '-t',
    'tree_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='standard-v1 tree dump produced by "commitment build"',
)
@click.option(
    '--address',
    '-a',
    required=True,
    help='Stealth address to prove',
)
def proof(tree_path: Path, address: str):
    """
    Print the inclusion proof for one stealth address as JSON.

    Examples:

        stealthpay commitment proof -t tree.json -a 0x5B38...dC4
    """
    try:
        commitment = load_commitment(tree_path)
        entry = commitment.entry_for(address)
        if entry is None:
            click.echo(f"Error: {address} is not part of this commitment", err=True)
            sys.exit(1)

        click.echo(json.dumps({
            "root": to_hex(commitment.root),
            "stealthAddress": entry.stealth_address,
            "token": entry.token,
            "amount": str(entry.amount),
            "leaf": to_hex(entry.hash()),
            "proof": [to_hex(node) for node in commitment.proof_for(address)],
        }, indent=2))
    except (CommitmentError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@commitment_group.command('verify')
@click.option('--root', '-r', required=True, help='Commitment root (hex)')
@click.option('--address', '-a', required=True, help='Stealth address')
@click.option('--token', '-t', required=True, help='Token address (zero address for the native asset)')
@click.option('--amount', '-n', required=True, type=int, help='Committed amount')
@click.option(
    '--proof',
    '-p',
    'proof_nodes',
    multiple=True,
    help='Proof element (hex); repeat in order from leaf to root',
)
def verify(root: str, address: str, token: str, amount: int, proof_nodes: Tuple[str, ...]):
    """
    Check that an entry is included under a root.

    Exits with status 0 when the proof is valid and 1 otherwise.

    Examples:

        stealthpay commitment verify -r 0xab..ef -a 0x5B38...dC4 \\
            -t 0x0000000000000000000000000000000000000000 -n 5000 -p 0x12..34
    """
    try:
        leaf = build_leaf(address, token, amount)
        valid = verify_proof(leaf, list(proof_nodes), root)
    except (CommitmentError, ValueError, TypeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if valid:
        click.echo("✓ Entry is included under the root")
    else:
        click.echo("✗ Proof does not match the root", err=True)
        sys.exit(1)
