"""
CLI commands for claim signing.

Provides the payee-side command that turns a recovered stealth key and a
commitment dump into a signed relayer submission, and the relayer-side
command that checks a submission before paying gas for it.
"""

import json
import sys
import time
from pathlib import Path
from typing import Optional

import click

from stealthpay.cli.commitment import load_commitment
from stealthpay.core.claims import ClaimRequest, ClaimSubmission
from stealthpay.core.encoding import to_hex
from stealthpay.core.error_handling import describe_error
from stealthpay.core.keys import address_from_private_key
from stealthpay.core.signing import ClaimDomain, sign_claim, verify_claim_signature
from stealthpay.exceptions import (
    ExpiredRequestError,
    FeeExceedsAmountError,
    InvalidProofError,
    InvalidProofShapeError,
    StealthPayError,
    TokenMismatchError,
    UnknownRootError,
)
from stealthpay.logging_config import get_logger
from stealthpay.merkle.commitment import PayrollCommitment
from stealthpay.merkle.tree import build_leaf, verify_proof

logger = get_logger(__name__)


def check_submission(
    submission: ClaimSubmission,
    commitment: PayrollCommitment,
    domain: ClaimDomain,
    now: int,
) -> None:
    """
    Run the ledger's claim checks that need no ledger state.

    The claim flag cannot be checked offline; everything else is checked in
    the same order the ledger uses.

    Raises:
        ClaimError: A subclass naming the failed check
    """
    request = submission.request
    if now > request.deadline:
        raise ExpiredRequestError(f"Claim request expired at {request.deadline}, current time is {now}")
    if request.fee_amount > request.amount:
        raise FeeExceedsAmountError(f"Fee {request.fee_amount} exceeds claimed amount {request.amount}")
    if submission.root != commitment.root:
        raise UnknownRootError(
            f"Submission root {to_hex(submission.root)} is not the commitment root {to_hex(commitment.root)}"
        )
    if request.token != commitment.token:
        raise TokenMismatchError(
            f"Request token {request.token} does not match commitment token {commitment.token}"
        )

    leaf = build_leaf(request.stealth_address, request.token, request.amount)
    try:
        included = verify_proof(leaf, submission.merkle_proof, submission.root)
    except InvalidProofShapeError as e:
        raise InvalidProofError(f"Malformed Merkle proof: {e}") from e
    if not included:
        raise InvalidProofError(f"Leaf for {request.stealth_address} is not included under the root")

    verify_claim_signature(request, domain, submission.signature)


@click.group(name='claim')
def claim_group():
    """Sign and check claims for relayed payout."""
    pass


@claim_group.command('sign')
@click.option(
    '--stealth-private-key',
    '-k',
    required=True,
    envvar='STEALTHPAY_STEALTH_PRIVATE_KEY',
    help='Recovered stealth private key (hex); can also use STEALTHPAY_STEALTH_PRIVATE_KEY env var',
)
@click.option(
    '--tree',
    '-t',
    'tree_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='standard-v1 tree dump containing the stealth address',
)
@click.option('--recipient', '-r', required=True, help='Address receiving the payout')
@click.option('--fee', 'fee_amount', default=0, type=int, help='Relayer fee (default: 0)')
@click.option(
    '--deadline',
    default=None,
    type=int,
    help='Unix timestamp after which the claim is void',
)
@click.option(
    '--valid-for',
    default=3600,
    type=int,
    help='Seconds from now until the claim expires, when --deadline is not given (default: 3600)',
)
@click.option('--ledger-address', default=None, help='Ledger address (default: ledger.address from configuration)')
@click.option('--chain-id', default=None, type=int, help='Chain id (default: ledger.chain_id from configuration)')
@click.option(
    '--output',
    '-o',
    'output_path',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Write the submission JSON to this file (default: stdout)',
)
@click.pass_context
def sign(
    ctx,
    stealth_private_key: str,
    tree_path: Path,
    recipient: str,
    fee_amount: int,
    deadline: Optional[int],
    valid_for: int,
    ledger_address: Optional[str],
    chain_id: Optional[int],
    output_path: Optional[Path],
):
    """
    Sign a claim and print the relayer submission JSON.

    The amount and token are taken from the commitment entry of the stealth
    address controlled by the key, so the claim always matches what the
    employer committed to.

    Examples:

        stealthpay claim sign -t tree.json -r 0xAb84...cb2 --fee 50 -o claim.json
    """
    try:
        domain = ctx.obj.claim_domain(ledger_address, chain_id)

        stealth_address = address_from_private_key(stealth_private_key)
        commitment = load_commitment(tree_path)
        entry = commitment.entry_for(stealth_address)
        if entry is None:
            click.echo(f"Error: Stealth address {stealth_address} is not part of this commitment", err=True)
            sys.exit(1)

        if deadline is None:
            deadline = int(time.time()) + valid_for

        request = ClaimRequest.create(
            stealth_address=stealth_address,
            token=entry.token,
            amount=entry.amount,
            recipient=recipient,
            fee_amount=fee_amount,
            deadline=deadline,
        )
        if request.fee_amount > request.amount:
            click.echo(f"Error: Fee {request.fee_amount} exceeds the payout of {request.amount}", err=True)
            sys.exit(1)

        submission = ClaimSubmission(
            request=request,
            signature=sign_claim(request, domain, stealth_private_key),
            merkle_proof=commitment.proof_for(stealth_address),
            root=commitment.root,
        )
        body = json.dumps(submission.to_dict(), indent=2)

        if output_path is None:
            click.echo(body)
        else:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(body)
            click.echo(f"Signed claim for {stealth_address} written to {output_path}")
            click.echo(f"  Recipient receives: {request.net_amount}")
            click.echo(f"  Relayer fee:        {request.fee_amount}")
            click.echo(f"  Expires at:         {request.deadline}")

        logger.info(f"Signed claim for {stealth_address} on chain {domain.chain_id}")
    except (StealthPayError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error: Failed to read or write file: {e}", err=True)
        sys.exit(1)


@claim_group.command('verify')
@click.option(
    '--submission',
    '-s',
    'submission_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Relayer submission JSON produced by "claim sign"',
)
@click.option(
    '--tree',
    '-t',
    'tree_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='standard-v1 tree dump the claim is paid from',
)
@click.option('--ledger-address', default=None, help='Ledger address (default: ledger.address from configuration)')
@click.option('--chain-id', default=None, type=int, help='Chain id (default: ledger.chain_id from configuration)')
@click.option('--now', default=None, type=int, help='Unix time to check the deadline against (default: current time)')
@click.option(
    '--format',
    '-f',
    'output_format',
    type=click.Choice(['text', 'json'], case_sensitive=False),
    default='text',
    help='Output format (default: text)',
)
@click.pass_context
def verify(
    ctx,
    submission_path: Path,
    tree_path: Path,
    ledger_address: Optional[str],
    chain_id: Optional[int],
    now: Optional[int],
    output_format: str,
):
    """
    Check a signed claim before relaying it.

    Exits with status 1 and the failure code, message and retry advice when
    the ledger would reject the claim.

    Examples:

        stealthpay claim verify -s claim.json -t tree.json
    """
    try:
        domain = ctx.obj.claim_domain(ledger_address, chain_id)
        submission = ClaimSubmission.from_dict(json.loads(submission_path.read_text()))
        commitment = load_commitment(tree_path)
    except (StealthPayError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error: Failed to read file: {e}", err=True)
        sys.exit(1)

    request = submission.request
    try:
        check_submission(submission, commitment, domain, int(time.time()) if now is None else now)
    except StealthPayError as e:
        response = describe_error(e)
        logger.info(f"Claim for {request.stealth_address} would be rejected: {response.error_code}")
        if output_format.lower() == 'json':
            click.echo(json.dumps(response.to_dict(include_details=True), indent=2))
        else:
            click.echo(f"✗ Claim would be rejected: {response.error_code}")
            click.echo(f"  {response.message}")
            click.echo(f"  Retryable: {'yes' if response.retryable else 'no'}")
            click.echo(f"  Details:   {response.details}")
        sys.exit(1)

    if output_format.lower() == 'json':
        click.echo(json.dumps({
            "valid": True,
            "stealthAddress": request.stealth_address,
            "netAmount": str(request.net_amount),
            "feeAmount": str(request.fee_amount),
        }, indent=2))
    else:
        click.echo(f"✓ Claim for {request.stealth_address} is valid")
        click.echo(f"  Recipient receives: {request.net_amount}")
        click.echo(f"  Relayer fee:        {request.fee_amount}")
