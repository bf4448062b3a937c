"""
Pytest configuration and shared fixtures for StealthPay Core tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, List

import pytest
from hypothesis import settings, Verbosity

from helpers import (
    CHAIN_ID,
    EMPLOYER,
    LEDGER_ADDRESS,
    TOKEN,
    FixedClock,
    create_test_config_content,
    make_round,
    scalar,
)
from stealthpay.core.assets import InMemoryAssetBank
from stealthpay.core.keys import derive_meta_public_key
from stealthpay.core.ledger import ClaimLedger


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_path(temp_dir: Path) -> Path:
    """Create a sample configuration file for testing."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(create_test_config_content(temp_dir))
    return config_path


@pytest.fixture
def make_config_yaml(temp_dir: Path):
    """
    Factory fixture that creates test config content.

    Usage:
        def test_something(temp_dir, make_config_yaml):
            config_path = temp_dir / "config.yaml"
            config_path.write_text(make_config_yaml(reused_root_policy="reject"))
    """
    def _make_config(**overrides):
        return create_test_config_content(temp_dir=temp_dir, **overrides)
    return _make_config


@pytest.fixture
def meta_private_key() -> bytes:
    return scalar(0xA11CE)


@pytest.fixture
def meta_public_key(meta_private_key: bytes) -> bytes:
    return derive_meta_public_key(meta_private_key)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def bank() -> InMemoryAssetBank:
    return InMemoryAssetBank()


@pytest.fixture
def ledger(bank: InMemoryAssetBank, clock: FixedClock) -> ClaimLedger:
    return ClaimLedger(address=LEDGER_ADDRESS, chain_id=CHAIN_ID, bank=bank, clock=clock)


@pytest.fixture
def payroll_round():
    """Factory for unfunded payroll rounds."""
    return make_round


@pytest.fixture
def funded_round(ledger: ClaimLedger, bank: InMemoryAssetBank):
    """
    Factory that builds a round and deposits it on the ledger.

    Usage:
        round_ = funded_round([5000, 3000])
    """
    def _fund(amounts: List[int], token: str = TOKEN, employer: str = EMPLOYER, seed: int = 1):
        round_ = make_round(amounts, token=token, seed=seed)
        round_.employer = employer
        bank.mint(token, employer, round_.commitment.total_amount)
        ledger.deposit(employer, round_.commitment.root, token, round_.commitment.total_amount)
        return round_
    return _fund


# Register custom profile for StealthPay tests
settings.register_profile("stealthpay", max_examples=50, verbosity=Verbosity.normal, deadline=None)
settings.register_profile("stealthpay-ci", max_examples=500, verbosity=Verbosity.verbose, deadline=None)
settings.register_profile("stealthpay-dev", max_examples=10, verbosity=Verbosity.verbose, deadline=None)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "stealthpay"))
