"""
Shared constants and builders for StealthPay Core tests.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from stealthpay.core.claims import ClaimRequest
from stealthpay.core.encoding import normalize_address
from stealthpay.core.keys import (
    compute_stealth_address,
    derive_meta_public_key,
    recover_stealth_private_key,
)
from stealthpay.core.ledger import ClaimLedger
from stealthpay.core.signing import sign_claim
from stealthpay.merkle.commitment import PayrollCommitment, PayrollLeaf


LEDGER_ADDRESS = normalize_address("0x" + "11" * 20)
EMPLOYER = normalize_address("0x" + "e1" * 20)
OTHER_EMPLOYER = normalize_address("0x" + "e2" * 20)
RELAYER = normalize_address("0x" + "5e" * 20)
RECIPIENT = normalize_address("0x" + "7c" * 20)
TOKEN = normalize_address("0x" + "aa" * 20)
OTHER_TOKEN = normalize_address("0x" + "bb" * 20)
CHAIN_ID = 31337

# Fixed "now" for ledger clocks
NOW = 1_700_000_000


def scalar(value: int) -> bytes:
    """Encode a small integer as a 32-byte private scalar."""
    return value.to_bytes(32, "big")


class FixedClock:
    """Injectable clock returning a settable unix time."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class PayrollRound:
    """A payout round: stealth keys, commitment and the depositing employer."""
    commitment: PayrollCommitment
    stealth_keys: Dict[str, bytes] = field(default_factory=dict)
    employer: str = EMPLOYER

    @property
    def addresses(self) -> List[str]:
        return [entry.stealth_address for entry in self.commitment.entries]

    def request_for(
        self,
        stealth_address: str,
        recipient: str = RECIPIENT,
        fee_amount: int = 0,
        deadline: int = NOW + 3600,
        amount: Optional[int] = None,
        token: Optional[str] = None,
    ) -> ClaimRequest:
        entry = self.commitment.entry_for(stealth_address)
        return ClaimRequest.create(
            stealth_address=stealth_address,
            token=token if token is not None else entry.token,
            amount=amount if amount is not None else entry.amount,
            recipient=recipient,
            fee_amount=fee_amount,
            deadline=deadline,
        )


def make_round(amounts: List[int], token: str = TOKEN, seed: int = 1) -> PayrollRound:
    """
    Derive one stealth address per amount and commit to them.

    Each payee gets its own meta key; one ephemeral key per round is shared.
    """
    ephemeral_private_key = scalar(0xE0000 + seed)
    ephemeral_public_key = derive_meta_public_key(ephemeral_private_key)
    stealth_keys = {}
    entries = []
    for index, amount in enumerate(amounts):
        payee_meta_private = scalar(0x1000 * seed + index + 1)
        result = compute_stealth_address(derive_meta_public_key(payee_meta_private), ephemeral_private_key)
        stealth_keys[result.stealth_address] = recover_stealth_private_key(
            payee_meta_private, ephemeral_public_key
        )
        entries.append(PayrollLeaf.create(result.stealth_address, token, amount))
    return PayrollRound(commitment=PayrollCommitment(entries), stealth_keys=stealth_keys)


def sign_for(ledger: ClaimLedger, round_: PayrollRound, request: ClaimRequest) -> bytes:
    """Sign a request with the stealth key from the round, for the ledger's domain."""
    return sign_claim(request, ledger.domain, round_.stealth_keys[request.stealth_address])


def create_test_config_content(temp_dir: Path, **overrides) -> str:
    """
    Generate test configuration YAML content with all storage inside temp_dir.

    Args:
        temp_dir: Temporary directory for storage paths.
        **overrides: ledger_address, chain_id, reused_root_policy or log_format.

    Returns:
        YAML configuration content as string.
    """
    return f"""
ledger:
  address: "{overrides.get('ledger_address', LEDGER_ADDRESS)}"
  chain_id: {overrides.get('chain_id', CHAIN_ID)}
  reused_root_policy: {overrides.get('reused_root_policy', 'overwrite')}

domain:
  name: StealthPay
  version: "1"

storage:
  state_file: {temp_dir}/ledger_state.json
  event_log: {temp_dir}/events.jsonl
  backup_count: 3

logging:
  level: INFO
  file: {temp_dir}/stealthpay.log
  format: {overrides.get('log_format', 'json')}

performance:
  max_retries: 1
  retry_base_delay: 0.0
"""
