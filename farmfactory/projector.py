"""
projector.py - Off-chain reward estimation between authoritative reads

A front end shows a "pending rewards" figure that ticks every second. Reading
the farm every second is wasteful, so the figure is projected from the last
read using the same integer math the farm runs (rewards.py). Whenever a fresh
read arrives it replaces the projection outright.

Components:
1. project_pending_reward() - pure projection from explicit inputs
2. RewardTicker - holds the last read and re-projects on an asyncio loop
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
import asyncio
import time

from .codec import FarmSnapshot
from .core import BOOST_BASE, ReadError, require_uint
from .rewards import (
    PoolState,
    calculate_accrual, calculate_owed, calculate_token_apy,
)


def project_pending_reward(
    staked_amount: int,
    reward_rate_per_second: int,
    last_update_time: int,
    end_time: int,
    already_accrued: int,
    now: int,
    *,
    total_staked: Optional[int] = None,
    boost_multiplier: int = BOOST_BASE,
    lock_end_time: int = 0,
) -> int:
    """
    Estimate what an account could claim at `now`.

    Time is clamped to end_time and never runs before last_update_time. When
    total_staked is omitted the account's own stake is used, i.e. the
    estimate assumes nobody else moved since the read. The boost applies
    until lock_end_time and BOOST_BASE after it, exactly as the farm splits a
    settlement across the lock's expiry.

    Returns:
        Non-negative reward estimate (already_accrued included)
    """
    for name, value in (
        ("staked_amount", staked_amount),
        ("reward_rate_per_second", reward_rate_per_second),
        ("last_update_time", last_update_time),
        ("end_time", end_time),
        ("already_accrued", already_accrued),
        ("now", now),
        ("lock_end_time", lock_end_time),
    ):
        require_uint(value, name)

    pool = PoolState(
        total_staked=staked_amount if total_staked is None else total_staked,
        reward_rate_per_second=reward_rate_per_second,
        reward_per_staked_unit_accumulated=0,
        last_accrual_time=last_update_time,
        end_time=end_time,
    )
    accrued = calculate_accrual(pool, now).reward_per_staked_unit_accumulated
    at_lock_end = calculate_accrual(pool, lock_end_time).reward_per_staked_unit_accumulated
    extra = calculate_owed(staked_amount, 0, accrued, boost_multiplier, at_lock_end)
    return already_accrued + extra


@dataclass(frozen=True, slots=True)
class TickerState:
    """Last authoritative read: farm snapshot plus the account's figures."""
    snapshot: FarmSnapshot
    staked_amount: int
    already_accrued: int
    boost_multiplier: int = BOOST_BASE
    lock_end_time: int = 0


Fetch = Callable[[], Awaitable[TickerState]]


class RewardTicker:
    """
    Periodic pending-reward estimate for one account in one farm.

    reset() installs a fresh authoritative read; estimate() projects from it.
    run() recomputes `latest` every `interval` seconds until cancel().

    Example:
        ticker = RewardTicker(interval=1.0)
        ticker.reset(TickerState(snapshot, staked, accrued))
        task = ticker.start()
        ...
        ticker.cancel()
        await task
    """

    def __init__(
        self,
        interval: float = 1.0,
        clock: Callable[[], float] = time.time,
        max_read_attempts: int = 3,
        on_tick: Optional[Callable[[int], None]] = None,
        verbose: bool = False,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if max_read_attempts < 1:
            raise ValueError("max_read_attempts must be at least 1")
        self.interval = interval
        self.clock = clock
        self.max_read_attempts = max_read_attempts
        self.on_tick = on_tick
        self.verbose = verbose
        self.state: Optional[TickerState] = None
        self.latest: int = 0
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    # ========================================================================
    # STATE
    # ========================================================================

    def reset(self, state: TickerState) -> None:
        """Replace the projection base with an authoritative read."""
        self.state = state
        self.latest = state.already_accrued

    def estimate(self, now: Optional[int] = None) -> int:
        """Projected pending reward at `now` (0 before the first read)."""
        if self.state is None:
            return 0
        if now is None:
            now = int(self.clock())
        snap = self.state.snapshot
        if not snap.is_funded:
            return self.state.already_accrued
        return project_pending_reward(
            self.state.staked_amount,
            snap.reward_rate_per_second,
            snap.last_accrual_time,
            snap.end_timestamp,
            self.state.already_accrued,
            max(now, snap.last_accrual_time),
            total_staked=snap.total_staked if snap.total_staked > 0 else None,
            boost_multiplier=self.state.boost_multiplier,
            lock_end_time=self.state.lock_end_time,
        )

    def apy(self) -> Optional[int]:
        """Token-denominated APY of the farm at the last read."""
        if self.state is None:
            return None
        snap = self.state.snapshot
        return calculate_token_apy(snap.reward_rate_per_second, snap.total_staked)

    async def refresh(self, fetch: Fetch) -> TickerState:
        """
        Re-read through `fetch` and reset to the result.

        ReadError is retried up to max_read_attempts times; the last one
        propagates.
        """
        last_error: Optional[ReadError] = None
        for attempt in range(1, self.max_read_attempts + 1):
            try:
                state = await fetch()
            except ReadError as e:
                last_error = e
                if self.verbose:
                    print(f"Read failed (attempt {attempt}/{self.max_read_attempts}): {e}")
                await asyncio.sleep(0)
                continue
            self.reset(state)
            return state
        raise last_error

    # ========================================================================
    # LOOP
    # ========================================================================

    def tick(self, now: Optional[int] = None) -> int:
        self.latest = self.estimate(now)
        if self.on_tick is not None:
            self.on_tick(self.latest)
        return self.latest

    async def run(self, interval: Optional[float] = None) -> None:
        """Tick every interval seconds until cancel() is called."""
        period = self.interval if interval is None else interval
        while not self._stop.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=period)
            except asyncio.TimeoutError:
                pass

    def start(self, interval: Optional[float] = None) -> asyncio.Task:
        """Schedule run() on the running event loop. Restartable after cancel()."""
        if self.running:
            raise RuntimeError("ticker is already running")
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self.run(interval))
        return self._task

    def cancel(self) -> None:
        self._stop.set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
