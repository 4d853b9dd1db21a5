"""
Atomicity Conformance Tests

INVARIANT: Calls are all-or-nothing.

    ∀ call C:
        C succeeds ⟹ all of C's storage writes, token moves and events apply
        C fails ⟹ none of them apply, including those of nested calls

Partial application is impossible by construction: the chain snapshots every
contract and the ledger per call frame and restores them on failure.
"""

import copy

import pytest
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from farmfactory import (
    ExecuteResult, FIXED_RATE_FARM_TYPE, NATIVE_ASSET, FarmError, SCALE,
    InitializationFailed, TransferFailed,
)

from tests.farm_harness import FarmHarness, DAY, THIRTY_DAYS, TOKEN


def fingerprint(harness, farm):
    """Everything a failed call must leave untouched."""
    ledger = harness.chain.ledger
    balances = {
        holder: dict(assets) for holder, assets in ledger.balances.items()
        if any(assets.values())
    }
    return (
        copy.deepcopy(harness.farm(farm).__dict__),
        balances,
        dict(ledger.allowances),
        set(harness.chain.contracts),
        len(harness.chain.transaction_log),
    )


# =============================================================================
# PROPERTY TESTS
# =============================================================================

class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(
        staked=st.integers(min_value=1, max_value=1_000),
        excess=st.integers(min_value=1, max_value=1_000),
        elapsed=st.integers(min_value=0, max_value=THIRTY_DAYS),
    )
    @settings(max_examples=30, deadline=None)
    def test_rejected_unstake_changes_nothing(self, staked, excess, elapsed):
        """
        PROPERTY: Unstaking more than the position holds is rejected and
        leaves farm storage, balances and the log exactly as they were.
        """
        h = FarmHarness()
        farm = h.deploy_farm()
        h.fund(farm, THIRTY_DAYS * TOKEN)
        h.stake(farm, h.bob, staked * TOKEN)
        h.chain.sleep(elapsed)

        before = fingerprint(h, farm)
        result = h.chain.execute(h.bob, farm, "unstake", (staked + excess) * TOKEN)
        assert result == ExecuteResult.REJECTED
        assert fingerprint(h, farm) == before

    @given(
        allowance=st.integers(min_value=0, max_value=999),
        elapsed=st.integers(min_value=1, max_value=DAY),
    )
    @settings(max_examples=30, deadline=None)
    def test_stake_without_enough_allowance_changes_nothing(self, allowance, elapsed):
        """
        PROPERTY: A stake whose pull fails rolls back the accrual and the
        position update that ran before the pull.
        """
        h = FarmHarness()
        farm = h.deploy_farm()
        h.fund(farm, THIRTY_DAYS * TOKEN)
        h.stake(farm, h.carol, TOKEN)
        h.chain.sleep(elapsed)

        h.chain.ledger.mint(h.stake_token, h.bob, 1_000)
        if allowance:
            h.chain.ledger.approve(h.bob, farm, h.stake_token, allowance)

        before = fingerprint(h, farm)
        with pytest.raises(TransferFailed):
            h.chain.transact(h.bob, farm, "stake", 1_000)
        assert fingerprint(h, farm) == before

    @given(bad=st.sampled_from([
        {"duration": 0},
        {"boost": 0},
        {"boost": 99},
    ]))
    @settings(max_examples=10, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_failed_initialization_leaves_no_farm(self, bad):
        """
        PROPERTY: If a fresh clone rejects its init bytes, the deploy leaves
        no clone, no record, no event and no payment behind.
        """
        h = FarmHarness()
        h.chain.transact(h.operator, h.registry, "set_deployment_fee", 10, h.treasury)
        h.give_native(h.alice, 10)
        contracts = set(h.chain.contracts)
        log_len = len(h.chain.transaction_log)

        with pytest.raises(InitializationFailed):
            h.chain.transact(
                h.alice, h.registry, "deploy",
                FIXED_RATE_FARM_TYPE, h.init_bytes(**bad), "uri", value=10,
            )

        assert set(h.chain.contracts) == contracts
        assert len(h.chain.transaction_log) == log_len
        assert h.chain.view(h.registry, "get_deployed_count") == 0
        assert h.balance(h.alice, NATIVE_ASSET) == 10
        assert h.balance(h.treasury, NATIVE_ASSET) == 0


# =============================================================================
# EXAMPLES
# =============================================================================

class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_overdrawn_boosted_claim_rolls_back(self):
        """
        A boosted farm can owe more than it was funded with. The claim that
        would overdraw fails as a whole and the debt stays on the position.
        """
        h = FarmHarness()
        farm = h.deploy_farm(duration=THIRTY_DAYS, lock=THIRTY_DAYS, boost=150)
        h.fund(farm, THIRTY_DAYS * TOKEN)
        h.stake(farm, h.bob, TOKEN)
        h.chain.sleep(THIRTY_DAYS - 1)

        owed = h.earned(farm, h.bob)
        assert owed == (THIRTY_DAYS - 1) * TOKEN * 3 // 2
        assert owed > h.rewards_of(farm)

        before = fingerprint(h, farm)
        with pytest.raises(TransferFailed):
            h.claim(farm, h.bob)
        assert fingerprint(h, farm) == before
        assert h.earned(farm, h.bob) == owed

    def test_every_failure_is_a_farm_error(self):
        h = FarmHarness()
        farm = h.deploy_farm()
        for method, args in [
            ("fund", (0,)),
            ("stake", (0,)),
            ("unstake", (1,)),
            ("initialize", (b"",)),
        ]:
            with pytest.raises(FarmError):
                h.chain.transact(h.bob, farm, method, *args)

    def test_successful_call_applies_everything(self):
        h = FarmHarness()
        farm = h.deploy_farm()
        h.fund(farm, THIRTY_DAYS * TOKEN)
        h.stake(farm, h.bob, TOKEN)
        receipt = h.chain.last_receipt
        assert h.farm(farm).total_staked == TOKEN
        assert h.stake_of(farm) == TOKEN
        assert [e.name for e in receipt.events] == ["Staked"]
        assert h.farm(farm).reward_rate_per_second == TOKEN * SCALE
