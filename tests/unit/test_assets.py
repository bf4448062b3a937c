"""
Unit tests for the in-memory asset bank.
"""

import threading

import pytest

from stealthpay.core.assets import AssetBank, InMemoryAssetBank
from stealthpay.core.encoding import NATIVE_ASSET
from stealthpay.exceptions import ErrorKind, TransferFailureError

from helpers import EMPLOYER, OTHER_TOKEN, RECIPIENT, TOKEN


class TestInMemoryAssetBank:
    """Test InMemoryAssetBank."""

    def test_is_an_asset_bank(self, bank):
        assert isinstance(bank, AssetBank)

    def test_mint_and_balance(self, bank):
        bank.mint(TOKEN, EMPLOYER, 100)
        assert bank.balance_of(TOKEN, EMPLOYER) == 100
        assert bank.balance_of(OTHER_TOKEN, EMPLOYER) == 0

    def test_addresses_case_insensitive(self, bank):
        bank.mint(TOKEN.lower(), EMPLOYER.lower(), 5)
        assert bank.balance_of(TOKEN, EMPLOYER) == 5

    def test_transfer(self, bank):
        bank.mint(TOKEN, EMPLOYER, 100)
        bank.transfer(TOKEN, EMPLOYER, RECIPIENT, 40)
        assert bank.balance_of(TOKEN, EMPLOYER) == 60
        assert bank.balance_of(TOKEN, RECIPIENT) == 40

    def test_native_asset_is_a_token(self, bank):
        bank.mint(NATIVE_ASSET, EMPLOYER, 7)
        bank.transfer(NATIVE_ASSET, EMPLOYER, RECIPIENT, 7)
        assert bank.balance_of(NATIVE_ASSET, RECIPIENT) == 7

    def test_insufficient_balance_leaves_balances_unchanged(self, bank):
        bank.mint(TOKEN, EMPLOYER, 10)
        with pytest.raises(TransferFailureError, match="Insufficient") as exc_info:
            bank.transfer(TOKEN, EMPLOYER, RECIPIENT, 11)
        assert exc_info.value.kind == ErrorKind.TRANSFER_FAILURE
        assert bank.balance_of(TOKEN, EMPLOYER) == 10
        assert bank.balance_of(TOKEN, RECIPIENT) == 0

    def test_negative_transfer_rejected(self, bank):
        with pytest.raises(TransferFailureError):
            bank.transfer(TOKEN, EMPLOYER, RECIPIENT, -1)

    def test_negative_mint_rejected(self, bank):
        with pytest.raises(ValueError):
            bank.mint(TOKEN, EMPLOYER, -1)

    def test_snapshot_skips_zero_balances(self, bank):
        bank.mint(TOKEN, EMPLOYER, 3)
        bank.transfer(TOKEN, EMPLOYER, RECIPIENT, 3)
        assert bank.snapshot() == {(TOKEN, RECIPIENT): 3}

    def test_concurrent_transfers_conserve_supply(self, bank):
        bank.mint(TOKEN, EMPLOYER, 1000)

        def worker():
            for _ in range(100):
                bank.transfer(TOKEN, EMPLOYER, RECIPIENT, 1)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert bank.balance_of(TOKEN, EMPLOYER) == 500
        assert bank.balance_of(TOKEN, RECIPIENT) == 500
