"""
rewards.py - Reward accrual math shared by farms and the projector

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - PoolState: the farm-wide accounting values that accrual reads and writes
   - StakePosition: one account's stake, lock and reward bookkeeping

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No chain, no ledger, no hidden state
   - Used verbatim by FixedRateFarm (authoritative) and by the projector
     (live estimate), so both sides produce identical integers from identical
     inputs

Key Formulas (all integer, floor division, uint256-checked):
    reward_rate_per_second = total_reward * SCALE // duration
    effective_now          = min(now, end_time)
    acc                   += rate * (effective_now - last) * SCALE // total_staked
    locked                 = clamp(acc_at_lock_end - paid, 0, acc - paid)
    owed                   = amount * (boost_multiplier * locked
                                       + BOOST_BASE * (acc - paid - locked)) // (BOOST_BASE * SCALE**2)

The rate carries one SCALE and the accumulator step adds a second, so owed
divides by SCALE twice. A sole unboosted staker therefore earns exactly the
emission rate * elapsed // SCALE, up to floor rounding.

The boost covers exactly the accumulator growth before the lock expires,
however late the position is settled. acc_at_lock_end comes from the pool
when the lock ends after the last accrual, otherwise from the checkpoint
the farm recorded when an accrual crossed it.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from .core import (
    SCALE, BOOST_BASE,
    InvalidArgument,
    checked_add, checked_sub, checked_mul, checked_div,
)


SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Divisor applied when turning an accumulator difference into reward units.
OWED_DIVISOR = BOOST_BASE * SCALE * SCALE


# ============================================================================
# FROZEN DATACLASSES - Explicit Inputs for Pure Functions
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolState:
    """
    Farm-wide accrual inputs and outputs.

    Each accrual produces a NEW instance (value semantics).
    """
    total_staked: int
    reward_rate_per_second: int
    reward_per_staked_unit_accumulated: int
    last_accrual_time: int
    end_time: int


@dataclass(frozen=True, slots=True)
class StakePosition:
    """
    One account's position in a farm.

    Created on first stake and never deleted; amount may return to zero.
    """
    amount: int = 0
    lock_end_time: int = 0
    reward_per_unit_paid_snapshot: int = 0
    accrued_but_unclaimed: int = 0


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_reward_rate(total_reward_amount: int, duration_seconds: int) -> int:
    """
    Scaled per-second emission for a funded schedule.

    Raises:
        InvalidArgument: If duration_seconds is not positive
    """
    if duration_seconds <= 0:
        raise InvalidArgument(f"duration must be positive, got {duration_seconds}")
    return checked_div(checked_mul(total_reward_amount, SCALE), duration_seconds)


def effective_time(now: int, end_time: int) -> int:
    """Accrual never runs past the end of the schedule."""
    return min(now, end_time)


def calculate_accumulator_delta(reward_rate_per_second: int, elapsed: int, total_staked: int) -> int:
    """
    Increase of reward-per-staked-unit over `elapsed` seconds.

    Zero when nothing is staked or no time has passed.
    """
    if elapsed <= 0 or total_staked <= 0:
        return 0
    return checked_div(checked_mul(reward_rate_per_second, elapsed, SCALE), total_staked)


def calculate_accrual(pool: PoolState, now: int) -> PoolState:
    """
    Advance the pool accumulator to min(now, end_time).

    last_accrual_time is advanced even when nothing is staked, so an empty
    interval is never credited retroactively. It never moves backwards.
    """
    effective_now = effective_time(now, pool.end_time)
    if effective_now <= pool.last_accrual_time:
        return pool
    delta = calculate_accumulator_delta(
        pool.reward_rate_per_second,
        effective_now - pool.last_accrual_time,
        pool.total_staked,
    )
    return replace(
        pool,
        reward_per_staked_unit_accumulated=checked_add(pool.reward_per_staked_unit_accumulated, delta),
        last_accrual_time=effective_now,
    )


def calculate_owed(
    amount: int,
    paid_snapshot: int,
    accumulated: int,
    boost_multiplier: int = BOOST_BASE,
    accumulated_at_lock_end: Optional[int] = None,
) -> int:
    """
    Reward earned by `amount` since the position's snapshot.

    Accumulator growth up to the lock's expiry is weighted by the boost and
    the remainder by BOOST_BASE. accumulated_at_lock_end is clamped into
    [paid_snapshot, accumulated]: a lock that expired before the snapshot
    boosts nothing, a lock still running (or None) boosts everything.
    """
    if amount == 0:
        return 0
    delta = checked_sub(accumulated, paid_snapshot)
    if accumulated_at_lock_end is None:
        locked = delta
    else:
        locked = min(max(accumulated_at_lock_end - paid_snapshot, 0), delta)
    weighted = checked_add(
        checked_mul(boost_multiplier, locked),
        checked_mul(BOOST_BASE, delta - locked),
    )
    return checked_mul(amount, weighted) // OWED_DIVISOR


def settle_position(
    position: StakePosition,
    accumulated: int,
    boost_multiplier: int = BOOST_BASE,
    accumulated_at_lock_end: Optional[int] = None,
) -> StakePosition:
    """
    Move everything owed into accrued_but_unclaimed and update the snapshot.

    accumulated_at_lock_end is the accumulator value when the position's lock
    expires; None means the lock outlasts the settlement.
    """
    owed = calculate_owed(
        position.amount,
        position.reward_per_unit_paid_snapshot,
        accumulated,
        boost_multiplier,
        accumulated_at_lock_end,
    )
    return replace(
        position,
        accrued_but_unclaimed=checked_add(position.accrued_but_unclaimed, owed),
        reward_per_unit_paid_snapshot=accumulated,
    )


def calculate_earned(
    pool: PoolState,
    position: StakePosition,
    now: int,
    boost_multiplier: int,
    accumulated_at_lock_end: Optional[int] = None,
) -> int:
    """
    Total claimable for a position if it were settled at `now`.

    Pure: runs the same accrual the farm would run, without committing it.
    When accumulated_at_lock_end is omitted it is projected from the pool,
    which is exact as long as the lock ends at or after last_accrual_time.
    """
    accrued_pool = calculate_accrual(pool, now)
    if accumulated_at_lock_end is None:
        accumulated_at_lock_end = calculate_accrual(
            pool, position.lock_end_time
        ).reward_per_staked_unit_accumulated
    settled = settle_position(
        position,
        accrued_pool.reward_per_staked_unit_accumulated,
        boost_multiplier,
        accumulated_at_lock_end,
    )
    return settled.accrued_but_unclaimed


def calculate_token_apy(
    reward_rate_per_second: int,
    total_staked: int,
    stake_decimals: int = 18,
    reward_decimals: int = 18,
) -> Optional[int]:
    """
    Annual reward tokens per staked token, as an integer percentage.

    Assumes stake and reward tokens have equal unit price; the figure is the
    token-denominated APY shown next to a farm.

    Returns:
        Integer percent rounded to nearest, or None when nothing is staked
        (APY undefined)
    """
    if total_staked <= 0 or reward_rate_per_second <= 0:
        return None
    numerator = reward_rate_per_second * SECONDS_PER_YEAR * 100 * 10 ** stake_decimals
    denominator = total_staked * SCALE * 10 ** reward_decimals
    return (numerator + denominator // 2) // denominator
