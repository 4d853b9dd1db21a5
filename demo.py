#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Farm From Template To Exit

A step-by-step walk through the farm factory. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Setup      - The chain, the template, the registry
  4-5: Deploy     - Cloning a farm, paying the fee, funding it
  6-8: Rewards    - Staking, accrual, the off-chain ticker
  9-10: Exit      - Locks, claims, conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from farmfactory import (
    Chain, FarmRegistry, FixedRateFarm, FarmInit,
    FIXED_RATE_FARM_TYPE, NATIVE_ASSET, SCALE,
    RewardTicker, TickerState, StakeLocked,
    build_metadata_uri, encode_farm_init, calculate_token_apy,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    duration_seconds: int = 2_592_000       # 30 days
    lock_duration_seconds: int = 86_400     # 1 day
    boost_multiplier: int = 150             # 1.5x while locked
    reward_budget: int = 1_000 * SCALE
    bob_stake: int = 100 * SCALE
    idle_before_stake: int = 172_800        # 2 days with nobody staked
    deployment_fee: int = 10 ** 16


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def tokens(amount: int) -> str:
    return f"{amount / SCALE:,.4f}"


# ============================================================================
# STEPS
# ============================================================================

def step_01_chain():
    step_header(1, "The Chain", "Every call runs atomically against one token ledger.")
    chain = Chain("tutorial", verbose=True)
    accounts = {name: chain.create_account(name) for name in ("operator", "alice", "bob", "treasury")}
    stake = chain.create_asset("STK", "Stake Token")
    reward = chain.create_asset("RWD", "Reward Token")
    print(f"Current time: {chain.current_time}")
    print(f"Assets:       {chain.ledger.list_assets()}")
    return chain, accounts, stake, reward


def step_02_template(chain):
    step_header(2, "The Template", "A template holds code only; it can never be initialized.")
    template = chain.deploy(FixedRateFarm)
    print(f"Template phase: {chain.view(template, 'phase').value}")
    return template


def step_03_registry(chain, accounts, template):
    step_header(3, "The Registry", "The operator maps a type id to the template.")
    registry = chain.deploy(FarmRegistry, accounts["operator"])
    chain.transact(accounts["operator"], registry, "register_type", FIXED_RATE_FARM_TYPE, template)
    chain.transact(
        accounts["operator"], registry, "set_deployment_fee",
        CONFIG.deployment_fee, accounts["treasury"],
    )
    print(f"Type id:  0x{FIXED_RATE_FARM_TYPE.hex()}")
    print(f"Fee:      {chain.view(registry, 'get_deployment_fee')}")
    return registry


def step_04_deploy(chain, accounts, registry, stake, reward):
    step_header(4, "Deploy", "One call clones the template, initializes it and records it.")
    alice = accounts["alice"]
    chain.ledger.mint(NATIVE_ASSET, alice, CONFIG.deployment_fee)
    init = encode_farm_init(FarmInit(
        owner=alice,
        stake_asset=stake,
        reward_asset=reward,
        duration_seconds=CONFIG.duration_seconds,
        lock_duration_seconds=CONFIG.lock_duration_seconds,
        boost_multiplier=CONFIG.boost_multiplier,
    ))
    farm = chain.transact(
        alice, registry, "deploy",
        FIXED_RATE_FARM_TYPE, init, build_metadata_uri("Tutorial Farm", "stake STK, earn RWD"),
        value=CONFIG.deployment_fee,
    )
    for event in chain.last_receipt.events:
        print(f"  {event}")
    print(f"Deployed farms: {chain.view(registry, 'list_deployed', 0, 10)}")
    return farm


def step_05_fund(chain, accounts, farm, reward):
    step_header(5, "Fund", "The owner pulls the whole budget in; the rate is fixed from here.")
    alice = accounts["alice"]
    chain.ledger.mint(reward, alice, CONFIG.reward_budget)
    chain.ledger.approve(alice, farm, reward, CONFIG.reward_budget)
    chain.transact(alice, farm, "fund", CONFIG.reward_budget)
    snap = chain.view(farm, "get_snapshot")
    print(f"Rate (scaled):  {snap.reward_rate_per_second}")
    print(f"Tokens/second:  {tokens(snap.reward_rate_per_second // SCALE)}")


def step_06_stake(chain, accounts, farm, stake):
    step_header(6, "Stake", "Staking starts the lock and the boost.")
    bob = accounts["bob"]
    chain.sleep(CONFIG.idle_before_stake)
    print(f"Nobody staked for {CONFIG.idle_before_stake // 3_600}h; that emission stays in the farm.")
    chain.ledger.mint(stake, bob, CONFIG.bob_stake)
    chain.ledger.approve(bob, farm, stake, CONFIG.bob_stake)
    chain.transact(bob, farm, "stake", CONFIG.bob_stake)
    amount, lock_end = chain.view(farm, "get_user_stake", bob)
    print(f"Bob staked {tokens(amount)} STK, locked until {lock_end}")
    snap = chain.view(farm, "get_snapshot")
    print(f"Token APY:  {calculate_token_apy(snap.reward_rate_per_second, snap.total_staked)}%")


def step_07_accrual(chain, accounts, farm):
    step_header(7, "Accrual", "Rewards grow every second; earned() is a free read.")
    for hours in (1, 6, 12):
        chain.sleep(3_600 * hours)
        print(f"  +{hours:>2}h  earned = {tokens(chain.view(farm, 'earned', accounts['bob']))} RWD")


def step_08_ticker(chain, accounts, farm):
    step_header(8, "The Ticker", "Front ends project between reads with the same math.")
    bob = accounts["bob"]
    position = chain.view(farm, "get_position", bob)
    ticker = RewardTicker(clock=lambda: chain.current_time)
    ticker.reset(TickerState(
        chain.view(farm, "get_snapshot"),
        staked_amount=position.amount,
        already_accrued=position.accrued_but_unclaimed,
        boost_multiplier=CONFIG.boost_multiplier,
        lock_end_time=position.lock_end_time,
    ))
    chain.sleep(60)
    print(f"Projected: {tokens(ticker.tick())}")
    print(f"On-chain:  {tokens(chain.view(farm, 'earned', bob))}")


def step_09_lock(chain, accounts, farm):
    step_header(9, "Locks", "Unstaking inside the lock fails and changes nothing.")
    try:
        chain.transact(accounts["bob"], farm, "unstake", CONFIG.bob_stake)
    except StakeLocked as e:
        print(f"Rejected as expected: {e}")


def step_10_exit(chain, accounts, farm, stake, reward):
    step_header(10, "Exit", "After the schedule ends, claim, unstake and prove conservation.")
    bob = accounts["bob"]
    chain.sleep(CONFIG.duration_seconds)
    paid = chain.transact(bob, farm, "claim")
    chain.transact(bob, farm, "unstake", CONFIG.bob_stake)
    print(f"Bob claimed {tokens(paid)} RWD and got back {tokens(chain.ledger.get_balance(bob, stake))} STK")
    print(f"Left in farm: {tokens(chain.ledger.get_balance(farm, reward))} RWD")
    for holder, amount in chain.ledger.get_holders(reward).items():
        print(f"  RWD holder {holder}: {tokens(amount)}")
    result = chain.ledger.verify_conservation()
    print(f"Conservation holds: {result['valid']}")
    return result


def main():
    chain, accounts, stake, reward = step_01_chain()
    wait_for_enter()
    template = step_02_template(chain)
    wait_for_enter()
    registry = step_03_registry(chain, accounts, template)
    wait_for_enter()
    farm = step_04_deploy(chain, accounts, registry, stake, reward)
    wait_for_enter()
    step_05_fund(chain, accounts, farm, reward)
    wait_for_enter()
    step_06_stake(chain, accounts, farm, stake)
    wait_for_enter()
    step_07_accrual(chain, accounts, farm)
    wait_for_enter()
    step_08_ticker(chain, accounts, farm)
    wait_for_enter()
    step_09_lock(chain, accounts, farm)
    wait_for_enter()
    result = step_10_exit(chain, accounts, farm, stake, reward)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    return result


if __name__ == "__main__":
    main()
