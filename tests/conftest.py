"""
conftest.py - Shared pytest fixtures for farm factory tests

Provides common fixtures used across unit, conformance and functional tests:
- A bare chain with a couple of accounts and tokens
- A full harness (registry + registered template)
- Deployed farms (unfunded, funded, boosted)
"""

import pytest

from farmfactory import Chain, SCALE

from tests.farm_harness import FarmHarness, DAY, THIRTY_DAYS


# =============================================================================
# CHAIN FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """Empty chain at the default genesis time."""
    return Chain("test")


@pytest.fixture
def tokens(chain):
    """Two registered assets on the bare chain: (stake, reward)."""
    stake = chain.create_asset("STK", "Stake Token")
    reward = chain.create_asset("RWD", "Reward Token")
    return stake, reward


@pytest.fixture
def alice(chain):
    return chain.create_account("alice")


@pytest.fixture
def bob(chain):
    return chain.create_account("bob")


# =============================================================================
# FACTORY FIXTURES
# =============================================================================

@pytest.fixture
def harness():
    """Registry with the fixed-rate template registered, no fee."""
    return FarmHarness()


@pytest.fixture
def farm(harness):
    """Unfunded 30-day farm owned by alice, no lock."""
    return harness.deploy_farm()


@pytest.fixture
def funded_farm(harness):
    """
    30-day farm funded with exactly 1 reward token per second.

    With a single staker of 1 token every accrual division is exact.
    """
    address = harness.deploy_farm(duration=THIRTY_DAYS)
    harness.fund(address, THIRTY_DAYS * SCALE)
    return address


@pytest.fixture
def boosted_farm(harness):
    """30-day farm with a one-day lock and a 1.5x boost, funded at 1 token/s."""
    address = harness.deploy_farm(duration=THIRTY_DAYS, lock=DAY, boost=150)
    harness.fund(address, THIRTY_DAYS * SCALE)
    return address
