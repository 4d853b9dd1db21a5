"""
fixed_rate.py - Fixed-rate staking farm with optional lock boost

This module provides the one reward model the factory deploys:
1. FarmTerms - identity, schedule and lock policy fixed at initialization
2. FarmPhase - lifecycle states (TEMPLATE, UNINITIALIZED, INITIALIZED, FUNDED, ENDED)
3. FixedRateFarm - the contract: initialize, fund, stake, unstake, claim and views

Lifecycle:
    clone created by the registry           -> UNINITIALIZED
    initialize(init_bytes)                  -> INITIALIZED (unfunded, rate = 0)
    fund(amount) by the owner               -> FUNDED (rate = amount * SCALE // duration)
    now >= end_time                         -> ENDED (no further accrual, claims still work)

Every mutating call first runs the accrual from rewards.py, then changes
state, then moves tokens (checks-effects-interactions). The chain rolls the
whole call back if any step raises.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from ..chain import CallContext, Contract, view
from ..codec import FarmSnapshot, decode_farm_init, encode_farm_metadata
from ..core import (
    Address, BOOST_BASE,
    AlreadyFunded, AlreadyInitialized, InvalidArgument, NotInitialized,
    StakeLocked, Unauthorized,
    checked_add, checked_sub, is_null_address, normalize_address, require_uint,
)
from ..rewards import (
    PoolState, StakePosition,
    calculate_accrual, calculate_earned, calculate_reward_rate, effective_time,
    settle_position,
)


class FarmPhase(Enum):
    TEMPLATE = "template"
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    FUNDED = "funded"
    ENDED = "ended"


@dataclass(frozen=True, slots=True)
class FarmTerms:
    """
    Immutable terms of a farm - set once by initialize(), never changed.
    """
    owner: Address
    stake_asset: Address
    reward_asset: Address
    start_time: int
    duration_seconds: int
    end_time: int
    lock_duration_seconds: int
    boost_multiplier: int


class FixedRateFarm(Contract):
    """
    Staking pool paying a fixed global reward rate over a fixed schedule.

    Instances deployed through the constructor are templates and can never be
    initialized; usable farms are clones created by the registry.
    """

    def __init__(self):
        super().__init__()
        self._template = True

    def _reset_storage(self) -> None:
        self._template = False
        self.initialized = False
        self.terms: Optional[FarmTerms] = None
        self.total_staked = 0
        self.reward_rate_per_second = 0
        self.reward_per_staked_unit_accumulated = 0
        self.last_accrual_time = 0
        self.is_funded = False
        self.total_reward_amount = 0
        self.positions: Dict[Address, StakePosition] = {}
        # lock_end_time -> accumulator at that instant, for expiries behind last_accrual_time
        self.lock_checkpoints: Dict[int, int] = {}

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _require_initialized(self) -> FarmTerms:
        if not self.initialized:
            raise NotInitialized("farm is not initialized")
        return self.terms

    def _pool(self) -> PoolState:
        return PoolState(
            total_staked=self.total_staked,
            reward_rate_per_second=self.reward_rate_per_second,
            reward_per_staked_unit_accumulated=self.reward_per_staked_unit_accumulated,
            last_accrual_time=self.last_accrual_time,
            end_time=self.terms.end_time,
        )

    def _accrue(self, now: int) -> None:
        """
        Advance the pool accumulator to now.

        Every boosted lock that expires inside the interval gets a checkpoint
        of the accumulator at its expiry, so positions settled later still
        split their reward at the right point.
        """
        pool = self._pool()
        if self.terms.boost_multiplier > BOOST_BASE:
            effective_now = effective_time(now, pool.end_time)
            for position in self.positions.values():
                lock_end = position.lock_end_time
                if position.amount and pool.last_accrual_time < lock_end <= effective_now:
                    self.lock_checkpoints[lock_end] = calculate_accrual(
                        pool, lock_end
                    ).reward_per_staked_unit_accumulated
        pool = calculate_accrual(pool, now)
        self.reward_per_staked_unit_accumulated = pool.reward_per_staked_unit_accumulated
        self.last_accrual_time = pool.last_accrual_time

    def _accumulated_at(self, when: int) -> int:
        """Accumulator value at `when` (0 for an expiry nobody needs any more)."""
        if when >= self.last_accrual_time:
            return calculate_accrual(self._pool(), when).reward_per_staked_unit_accumulated
        return self.lock_checkpoints.get(when, 0)

    def _prune_checkpoints(self) -> None:
        still_needed = {
            p.lock_end_time for p in self.positions.values()
            if p.amount and p.reward_per_unit_paid_snapshot < self.lock_checkpoints.get(p.lock_end_time, 0)
        }
        self.lock_checkpoints = {
            t: acc for t, acc in self.lock_checkpoints.items() if t in still_needed
        }

    def _settle(self, account: Address, now: int) -> StakePosition:
        """Accrue the pool, then settle one account against it."""
        self._accrue(now)
        position = self.positions.get(account, StakePosition())
        position = settle_position(
            position,
            self.reward_per_staked_unit_accumulated,
            self.terms.boost_multiplier,
            self._accumulated_at(position.lock_end_time),
        )
        self.positions[account] = position
        self._prune_checkpoints()
        return position

    # ========================================================================
    # MUTATING
    # ========================================================================

    def initialize(self, ctx: CallContext, init_bytes: bytes) -> None:
        """
        One-shot initializer forwarded by the registry.

        Raises:
            AlreadyInitialized: On any call after the first successful one, or
                                on a template instance
            InvalidArgument: If the bytes are malformed or a parameter is invalid
        """
        if self._template:
            raise AlreadyInitialized("template instances cannot be initialized")
        if self.initialized:
            raise AlreadyInitialized("farm is already initialized")

        params = decode_farm_init(init_bytes)
        if is_null_address(params.owner):
            raise InvalidArgument("owner cannot be the zero address")
        if is_null_address(params.stake_asset) or is_null_address(params.reward_asset):
            raise InvalidArgument("asset addresses cannot be the zero address")
        if params.stake_asset == params.reward_asset:
            raise InvalidArgument("stake and reward assets must be different")
        if params.duration_seconds <= 0:
            raise InvalidArgument("duration must be positive")
        if params.boost_multiplier < BOOST_BASE:
            raise InvalidArgument(
                f"boost multiplier must be >= {BOOST_BASE}, got {params.boost_multiplier}"
            )

        start = ctx.timestamp
        self.terms = FarmTerms(
            owner=params.owner,
            stake_asset=params.stake_asset,
            reward_asset=params.reward_asset,
            start_time=start,
            duration_seconds=params.duration_seconds,
            end_time=checked_add(start, params.duration_seconds),
            lock_duration_seconds=params.lock_duration_seconds,
            boost_multiplier=params.boost_multiplier,
        )
        self.last_accrual_time = start
        self.initialized = True
        ctx.emit(
            "Initialized",
            owner=params.owner,
            stake_asset=params.stake_asset,
            reward_asset=params.reward_asset,
            end_time=self.terms.end_time,
        )

    def fund(self, ctx: CallContext, amount: int) -> None:
        """
        Pull the whole reward budget from the owner and start emission.

        Funding is one-shot and owner-only.

        Raises:
            Unauthorized: If the caller is not the owner
            AlreadyFunded: If the farm was funded before
            InvalidArgument: If amount is zero or the schedule has ended
            TransferFailed: If the ledger rejects the pull
        """
        terms = self._require_initialized()
        if ctx.sender != terms.owner:
            raise Unauthorized("only the owner can fund the farm")
        require_uint(amount, "amount")
        if amount == 0:
            raise InvalidArgument("amount must be positive")
        if self.is_funded:
            raise AlreadyFunded("farm is already funded")
        if ctx.timestamp >= terms.end_time:
            raise InvalidArgument("cannot fund a farm whose schedule has ended")

        # Close the unfunded interval at rate 0 before the rate changes
        self._accrue(ctx.timestamp)
        self.total_reward_amount = amount
        self.reward_rate_per_second = calculate_reward_rate(amount, terms.duration_seconds)
        self.is_funded = True

        ctx.ledger.transfer_from(terms.reward_asset, ctx.this, ctx.sender, ctx.this, amount)
        ctx.emit(
            "Funded",
            funder=ctx.sender,
            amount=amount,
            reward_rate_per_second=self.reward_rate_per_second,
        )

    def stake(self, ctx: CallContext, amount: int) -> None:
        """
        Deposit stake. Every stake restarts the caller's lock.

        Raises:
            InvalidArgument: If amount is zero
            TransferFailed: If the ledger rejects the pull
        """
        terms = self._require_initialized()
        require_uint(amount, "amount")
        if amount == 0:
            raise InvalidArgument("amount must be positive")

        position = self._settle(ctx.sender, ctx.timestamp)
        self.positions[ctx.sender] = replace(
            position,
            amount=checked_add(position.amount, amount),
            lock_end_time=checked_add(ctx.timestamp, terms.lock_duration_seconds),
        )
        self.total_staked = checked_add(self.total_staked, amount)

        ctx.ledger.transfer_from(terms.stake_asset, ctx.this, ctx.sender, ctx.this, amount)
        ctx.emit(
            "Staked",
            account=ctx.sender,
            amount=amount,
            lock_end_time=self.positions[ctx.sender].lock_end_time,
        )

    def unstake(self, ctx: CallContext, amount: int) -> None:
        """
        Withdraw stake once the lock has expired.

        Raises:
            InvalidArgument: If amount is zero or exceeds the caller's stake
            StakeLocked: If now < lock_end_time
            TransferFailed: If the ledger rejects the push
        """
        terms = self._require_initialized()
        require_uint(amount, "amount")
        if amount == 0:
            raise InvalidArgument("amount must be positive")
        position = self.positions.get(ctx.sender, StakePosition())
        if amount > position.amount:
            raise InvalidArgument(f"amount {amount} exceeds staked {position.amount}")
        if ctx.timestamp < position.lock_end_time:
            raise StakeLocked(
                f"stake is locked until {position.lock_end_time}",
                lock_end_time=position.lock_end_time,
            )

        position = self._settle(ctx.sender, ctx.timestamp)
        self.positions[ctx.sender] = replace(position, amount=checked_sub(position.amount, amount))
        self.total_staked = checked_sub(self.total_staked, amount)

        ctx.ledger.transfer(terms.stake_asset, ctx.this, ctx.sender, amount)
        ctx.emit("Unstaked", account=ctx.sender, amount=amount)

    def claim(self, ctx: CallContext) -> int:
        """
        Pay out everything owed to the caller. A no-op when nothing is owed.

        Returns:
            Amount paid

        Raises:
            TransferFailed: If the farm cannot push the reward
        """
        terms = self._require_initialized()
        position = self._settle(ctx.sender, ctx.timestamp)
        owed = position.accrued_but_unclaimed
        if owed == 0:
            return 0
        self.positions[ctx.sender] = replace(position, accrued_but_unclaimed=0)

        ctx.ledger.transfer(terms.reward_asset, ctx.this, ctx.sender, owed)
        ctx.emit("RewardClaimed", account=ctx.sender, amount=owed)
        return owed

    # ========================================================================
    # VIEWS
    # ========================================================================

    @view
    def get_snapshot(self, ctx: CallContext) -> FarmSnapshot:
        """Public accounting tuple (zeros before initialization)."""
        if not self.initialized:
            return FarmSnapshot(
                stake_asset=normalize_address(bytes(20)),
                reward_asset=normalize_address(bytes(20)),
                total_staked=0,
                reward_rate_per_second=0,
                last_accrual_time=0,
                is_funded=False,
                total_reward_amount=0,
                end_timestamp=0,
            )
        return FarmSnapshot(
            stake_asset=self.terms.stake_asset,
            reward_asset=self.terms.reward_asset,
            total_staked=self.total_staked,
            reward_rate_per_second=self.reward_rate_per_second,
            last_accrual_time=self.last_accrual_time,
            is_funded=self.is_funded,
            total_reward_amount=self.total_reward_amount,
            end_timestamp=self.terms.end_time,
        )

    @view
    def get_metadata(self, ctx: CallContext) -> bytes:
        """ABI-encoded snapshot in the fixed eight-field order."""
        return encode_farm_metadata(self.get_snapshot(ctx))

    @view
    def get_user_stake(self, ctx: CallContext, account: Address) -> Tuple[int, int]:
        position = self.get_position(ctx, account)
        return position.amount, position.lock_end_time

    @view
    def get_position(self, ctx: CallContext, account: Address) -> StakePosition:
        return self.positions.get(normalize_address(account), StakePosition())

    @view
    def earned(self, ctx: CallContext, account: Address) -> int:
        """Everything the account could claim right now."""
        if not self.initialized:
            return 0
        position = self.get_position(ctx, account)
        return calculate_earned(
            self._pool(),
            position,
            ctx.timestamp,
            self.terms.boost_multiplier,
            self._accumulated_at(position.lock_end_time),
        )

    @view
    def get_terms(self, ctx: CallContext) -> FarmTerms:
        return self._require_initialized()

    @view
    def owner(self, ctx: CallContext) -> Address:
        return self._require_initialized().owner

    @view
    def phase(self, ctx: CallContext) -> FarmPhase:
        if self._template:
            return FarmPhase.TEMPLATE
        if not self.initialized:
            return FarmPhase.UNINITIALIZED
        if ctx.timestamp >= self.terms.end_time:
            return FarmPhase.ENDED
        if self.is_funded:
            return FarmPhase.FUNDED
        return FarmPhase.INITIALIZED
