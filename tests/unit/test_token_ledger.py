"""
test_token_ledger.py - Unit tests for the TokenLedger

Tests:
- Asset registration
- Minting from SYSTEM_ACCOUNT
- Push transfers and their failure modes
- Allowances and authorized pulls
- Conservation check
- clone()/restore() independence
"""

import pytest

from farmfactory import (
    Asset, TokenLedger, AssetNotRegistered,
    TransferFailed, InvalidArgument,
    NATIVE_ASSET, SYSTEM_ACCOUNT,
    normalize_address,
)


TOKEN = normalize_address("0x" + "aa" * 20)
OTHER = normalize_address("0x" + "bb" * 20)
ALICE = normalize_address("0x" + "01" * 20)
BOB = normalize_address("0x" + "02" * 20)
FARM = normalize_address("0x" + "03" * 20)


@pytest.fixture
def ledger():
    ledger = TokenLedger("test")
    ledger.register_asset(Asset(TOKEN, "TKN", "Token"))
    ledger.mint(TOKEN, ALICE, 1_000)
    return ledger


class TestRegistration:

    def test_native_asset_preregistered(self):
        assert NATIVE_ASSET in TokenLedger("t").list_assets()

    def test_duplicate_registration_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.register_asset(Asset(TOKEN, "TKN", "Token"))

    def test_unknown_asset_balance(self, ledger):
        with pytest.raises(AssetNotRegistered):
            ledger.get_balance(ALICE, OTHER)

    def test_unknown_asset_is_a_transfer_failure(self, ledger):
        with pytest.raises(TransferFailed):
            ledger.transfer(OTHER, ALICE, BOB, 1)

    def test_list_assets_sorted(self, ledger):
        assert ledger.list_assets() == sorted([NATIVE_ASSET, TOKEN])


class TestMint:

    def test_mint_credits_holder(self, ledger):
        assert ledger.get_balance(ALICE, TOKEN) == 1_000
        assert ledger.total_supply(TOKEN) == 1_000

    def test_mint_debits_system(self, ledger):
        assert ledger.balances[SYSTEM_ACCOUNT][TOKEN] == -1_000

    def test_negative_mint_rejected(self, ledger):
        with pytest.raises(InvalidArgument):
            ledger.mint(TOKEN, ALICE, -5)

    def test_holders_exclude_system(self, ledger):
        assert ledger.get_holders(TOKEN) == {ALICE: 1_000}


class TestTransfer:

    def test_transfer_moves_balance(self, ledger):
        ledger.transfer(TOKEN, ALICE, BOB, 300)
        assert ledger.get_balance(ALICE, TOKEN) == 700
        assert ledger.get_balance(BOB, TOKEN) == 300

    def test_insufficient_balance(self, ledger):
        with pytest.raises(TransferFailed):
            ledger.transfer(TOKEN, ALICE, BOB, 1_001)
        assert ledger.get_balance(ALICE, TOKEN) == 1_000

    def test_zero_amount_rejected(self, ledger):
        with pytest.raises(TransferFailed):
            ledger.transfer(TOKEN, ALICE, BOB, 0)

    def test_self_transfer_rejected(self, ledger):
        with pytest.raises(TransferFailed):
            ledger.transfer(TOKEN, ALICE, ALICE, 1)

    def test_emptied_holder_leaves_index(self, ledger):
        ledger.transfer(TOKEN, ALICE, BOB, 1_000)
        assert ledger.get_holders(TOKEN) == {BOB: 1_000}


class TestAllowances:

    def test_pull_requires_allowance(self, ledger):
        with pytest.raises(TransferFailed):
            ledger.transfer_from(TOKEN, FARM, ALICE, FARM, 10)

    def test_pull_consumes_allowance(self, ledger):
        ledger.approve(ALICE, FARM, TOKEN, 100)
        ledger.transfer_from(TOKEN, FARM, ALICE, FARM, 60)
        assert ledger.allowance(ALICE, FARM, TOKEN) == 40
        assert ledger.get_balance(FARM, TOKEN) == 60

    def test_pull_over_allowance_rejected(self, ledger):
        ledger.approve(ALICE, FARM, TOKEN, 50)
        with pytest.raises(TransferFailed):
            ledger.transfer_from(TOKEN, FARM, ALICE, FARM, 51)
        assert ledger.allowance(ALICE, FARM, TOKEN) == 50

    def test_pull_over_balance_keeps_allowance(self, ledger):
        ledger.approve(ALICE, FARM, TOKEN, 5_000)
        with pytest.raises(TransferFailed):
            ledger.transfer_from(TOKEN, FARM, ALICE, FARM, 2_000)
        assert ledger.allowance(ALICE, FARM, TOKEN) == 5_000

    def test_approve_overwrites(self, ledger):
        ledger.approve(ALICE, FARM, TOKEN, 50)
        ledger.approve(ALICE, FARM, TOKEN, 20)
        assert ledger.allowance(ALICE, FARM, TOKEN) == 20

    def test_owner_moves_own_funds_without_allowance(self, ledger):
        ledger.transfer_from(TOKEN, ALICE, ALICE, BOB, 10)
        assert ledger.get_balance(BOB, TOKEN) == 10

    def test_self_approval_rejected(self, ledger):
        with pytest.raises(InvalidArgument):
            ledger.approve(ALICE, ALICE, TOKEN, 1)


class TestConservation:

    def test_valid_after_moves(self, ledger):
        ledger.transfer(TOKEN, ALICE, BOB, 250)
        ledger.approve(BOB, FARM, TOKEN, 250)
        ledger.transfer_from(TOKEN, FARM, BOB, FARM, 100)
        result = ledger.verify_conservation()
        assert result['valid'], result['discrepancies']
        assert result['supplies'][TOKEN] == 1_000

    def test_detects_tampering(self, ledger):
        ledger.balances[BOB][TOKEN] = 5
        result = ledger.verify_conservation()
        assert not result['valid']
        assert result['discrepancies'][0]['error'] == 'net balance not zero'

    def test_detects_stale_holder_index(self, ledger):
        ledger._holders_by_asset[TOKEN][BOB] = 1
        result = ledger.verify_conservation()
        assert not result['valid']
        assert [d['error'] for d in result['discrepancies']] == ['holder index out of date']


class TestSnapshots:

    def test_clone_is_independent(self, ledger):
        snapshot = ledger.clone()
        ledger.transfer(TOKEN, ALICE, BOB, 100)
        assert snapshot.get_balance(ALICE, TOKEN) == 1_000
        assert snapshot.get_balance(BOB, TOKEN) == 0

    def test_restore_undoes_moves(self, ledger):
        snapshot = ledger.clone()
        ledger.transfer(TOKEN, ALICE, BOB, 100)
        ledger.approve(ALICE, FARM, TOKEN, 7)
        ledger.restore(snapshot)
        assert ledger.get_balance(ALICE, TOKEN) == 1_000
        assert ledger.get_balance(BOB, TOKEN) == 0
        assert ledger.allowance(ALICE, FARM, TOKEN) == 0
        assert ledger.get_holders(TOKEN) == {ALICE: 1_000}
