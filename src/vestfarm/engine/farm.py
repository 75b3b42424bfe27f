"""Yield farm engine - per-second staking rewards with a loyalty boost.

Key Concepts:
- Base reward: amount * rate * elapsed, elapsed = now - last checkpoint
- Boost: tiered multiplier in basis points keyed on how long the position has been held
- pending = accrued + base * boost_bps // 10_000
- Every stake, withdraw and claim checkpoints the position and restarts the boost clock
- A rate change checkpoints every position at the old rate but keeps its boost clock
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import InsufficientStake, ZeroAmount
from .base import ContractBase
from .clock import Clock
from .events import EventLog
from .ledger import TokenLedger

logger = logging.getLogger(__name__)

BPS = 10_000
DAY = 86_400


@dataclass(frozen=True)
class BoostTier:
    """Multiplier that applies once a position has been held `min_elapsed` seconds."""
    min_elapsed: int
    multiplier_bps: int


# 7/30/90-day thresholds of the staking UI
DEFAULT_BOOST_TIERS = (
    BoostTier(0, 10_000),
    BoostTier(7 * DAY, 12_500),
    BoostTier(30 * DAY, 15_000),
    BoostTier(90 * DAY, 20_000),
)


class BoostPolicy:
    """
    Step function from holding time to reward multiplier.

    multiplier(0) is exactly 1x and the function never decreases, so a boosted
    reward is never below the linear base reward.
    """

    def __init__(self, tiers: Iterable[BoostTier] = DEFAULT_BOOST_TIERS):
        tiers = tuple(tiers)
        validate_boost_tiers([(t.min_elapsed, t.multiplier_bps) for t in tiers])
        self.tiers: Tuple[BoostTier, ...] = tiers

    def __repr__(self) -> str:
        return f"BoostPolicy({list(self.tiers)})"

    def multiplier_bps(self, elapsed: int) -> int:
        """Multiplier for a position held `elapsed` seconds."""
        result = self.tiers[0].multiplier_bps
        for tier in self.tiers:
            if elapsed >= tier.min_elapsed:
                result = tier.multiplier_bps
            else:
                break
        return result

    def apply(self, base_reward: int, elapsed: int) -> int:
        return base_reward * self.multiplier_bps(elapsed) // BPS


def validate_boost_tiers(tiers: List[Tuple[int, int]]):
    """
    Check a tier table.

    Raises:
        ValueError: Empty table, first tier not (0, 1x), thresholds not
            strictly increasing, or multipliers decreasing
    """
    if not tiers:
        raise ValueError("At least one boost tier is required")
    first_elapsed, first_bps = tiers[0]
    if first_elapsed != 0 or first_bps != BPS:
        raise ValueError(f"First boost tier must be (0, {BPS}), got ({first_elapsed}, {first_bps})")
    for (prev_elapsed, prev_bps), (elapsed, bps) in zip(tiers, tiers[1:]):
        if elapsed <= prev_elapsed:
            raise ValueError("Boost tier thresholds must be strictly increasing")
        if bps < prev_bps:
            raise ValueError("Boost multipliers must be non-decreasing")


@dataclass
class StakeRecord:
    """Position of one staker."""
    amount: int = 0
    last_update_time: int = 0
    accrued_reward: int = 0  # Checkpointed, unpaid reward
    boost_start_time: int = 0  # Start of the uninterrupted holding period


@dataclass
class FarmConfig:
    """Admin-mutable farm parameters."""
    rate: int  # Reward units per staked unit per second
    admin: str
    boost: BoostPolicy


class YieldFarmEngine(ContractBase):
    """Single-pool staking farm paying a separate reward token."""

    role_name = "admin"

    def __init__(
        self,
        admin: str,
        staking_token: TokenLedger,
        reward_token: TokenLedger,
        rate: int,
        clock: Clock,
        boost: Optional[BoostPolicy] = None,
        address: str = "farm",
        events: Optional[EventLog] = None
    ):
        """
        Initialize yield farm.

        Args:
            admin: Address allowed to change rate/admin and pause
            staking_token: Ledger of the staked (LP) token
            reward_token: Ledger of the reward token; the farm's balance is the reward pool
            rate: Base reward per staked unit per second
            clock: Time source
            boost: Holding-time boost policy (defaults to the 7/30/90-day tiers)
            address: Account of this engine on both ledgers
            events: Shared event log
        """
        super().__init__(admin, clock, address, events)
        if rate < 0:
            raise ValueError("Reward rate cannot be negative")
        if staking_token is reward_token:
            # Payouts would come out of staked principal
            raise ValueError("Staking and reward tokens must be separate ledgers")
        self.staking_token = staking_token
        self.reward_token = reward_token
        self.config = FarmConfig(rate=rate, admin=admin, boost=boost or BoostPolicy())
        self.total_staked = 0
        self._stakes: Dict[str, StakeRecord] = {}

    @property
    def admin(self) -> str:
        return self._owner

    @property
    def rate(self) -> int:
        return self.config.rate

    @property
    def boost(self) -> BoostPolicy:
        return self.config.boost

    # --- reads ----------------------------------------------------------

    def _pending_at(self, record: StakeRecord, now: int) -> int:
        elapsed = max(0, now - record.last_update_time)
        held = max(0, now - record.boost_start_time)
        base_reward = record.amount * self.config.rate * elapsed
        return record.accrued_reward + self.config.boost.apply(base_reward, held)

    def pending(self, staker: str) -> int:
        """Checkpointed reward plus boosted reward accrued since the last checkpoint."""
        with self._lock:
            now = self._now()
            record = self._stakes.get(staker)
            if record is None:
                return 0
            return self._pending_at(record, now)

    def calculate_boost_multiplier(self, staker: str) -> int:
        """Current multiplier of `staker` in basis points (10_000 = 1x)."""
        with self._lock:
            now = self._now()
            record = self._stakes.get(staker)
            if record is None or record.amount == 0:
                return BPS
            return self.config.boost.multiplier_bps(now - record.boost_start_time)

    def get_stake(self, staker: str) -> StakeRecord:
        """Copy of the staker's record (an empty record if never staked)."""
        with self._lock:
            record = self._stakes.get(staker)
            return replace(record) if record else StakeRecord()

    def stakes(self) -> Dict[str, StakeRecord]:
        with self._lock:
            return {s: replace(r) for s, r in self._stakes.items()}

    def reward_pool(self) -> int:
        """Reward tokens available for payouts."""
        return self.reward_token.balance_of(self.address)

    # --- staker operations ----------------------------------------------

    def stake(self, caller: str, amount: int):
        """
        Deposit staking tokens.

        Raises:
            EnginePaused: Engine is paused
            ZeroAmount: amount is 0
            TransferFailed: Caller's balance or allowance is short
        """
        with self._lock:
            self._when_not_paused()
            if amount <= 0:
                raise ZeroAmount("Cannot stake 0")
            now = self._now()
            record = self._stakes.get(caller) or StakeRecord(last_update_time=now, boost_start_time=now)
            accrued = self._pending_at(record, now)

            self._pull(self.staking_token, caller, amount)
            self._stakes[caller] = StakeRecord(
                amount=record.amount + amount,
                last_update_time=now,
                accrued_reward=accrued,
                boost_start_time=now,
            )
            self.total_staked += amount

            logger.info("%s staked %d %s", caller, amount, self.staking_token.symbol)
            self._emit("Staked", user=caller, amount=amount)

    def withdraw(self, caller: str, amount: int):
        """
        Return part of the stake. Accrued reward stays claimable.

        Raises:
            EnginePaused: Engine is paused
            ZeroAmount: amount is 0
            InsufficientStake: amount exceeds the staked balance
            TransferFailed: Farm could not pay out
        """
        with self._lock:
            self._when_not_paused()
            if amount <= 0:
                raise ZeroAmount("Cannot withdraw 0")
            now = self._now()
            record = self._stakes.get(caller) or StakeRecord(last_update_time=now, boost_start_time=now)
            if amount > record.amount:
                raise InsufficientStake(
                    f"{caller} has {record.amount} staked, cannot withdraw {amount}"
                )
            accrued = self._pending_at(record, now)

            self._push(self.staking_token, caller, amount)
            self._stakes[caller] = StakeRecord(
                amount=record.amount - amount,
                last_update_time=now,
                accrued_reward=accrued,
                boost_start_time=now,
            )
            self.total_staked -= amount

            logger.info("%s withdrew %d %s", caller, amount, self.staking_token.symbol)
            self._emit("Withdrawn", user=caller, amount=amount)

    def claim_reward(self, caller: str) -> int:
        """
        Pay out everything pending from the reward pool.

        Returns:
            Amount paid (0 if nothing was pending)

        Raises:
            EnginePaused: Engine is paused
            TransferFailed: Reward pool is too small
        """
        with self._lock:
            self._when_not_paused()
            now = self._now()
            record = self._stakes.get(caller)
            if record is None:
                return 0
            reward = self._pending_at(record, now)
            if reward == 0:
                return 0

            self._push(self.reward_token, caller, reward)
            record.accrued_reward = 0
            record.last_update_time = now
            record.boost_start_time = now

            logger.info("%s claimed %d %s reward", caller, reward, self.reward_token.symbol)
            self._emit("RewardsClaimed", user=caller, amount=reward)
            return reward

    def emergency_withdraw(self, caller: str) -> int:
        """
        Return the whole stake and forfeit all reward. Works while paused.

        Returns:
            Amount returned

        Raises:
            InsufficientStake: Nothing is staked
            TransferFailed: Farm could not pay out
        """
        with self._lock:
            now = self._now()
            record = self._stakes.get(caller)
            if record is None or record.amount == 0:
                raise InsufficientStake(f"{caller} has nothing staked")
            amount = record.amount
            forfeited = self._pending_at(record, now)

            self._push(self.staking_token, caller, amount)
            self._stakes[caller] = StakeRecord(amount=0, last_update_time=now, accrued_reward=0, boost_start_time=now)
            self.total_staked -= amount

            logger.warning(
                "%s emergency-withdrew %d %s, forfeiting %d reward",
                caller, amount, self.staking_token.symbol, forfeited
            )
            self._emit("EmergencyWithdrawn", user=caller, amount=amount, forfeited=forfeited)
            return amount

    def fund_rewards(self, caller: str, amount: int):
        """Top up the reward pool from `caller`'s reward-token balance."""
        with self._lock:
            self._when_not_paused()
            if amount <= 0:
                raise ZeroAmount("Cannot fund 0")
            self._now()
            self._pull(self.reward_token, caller, amount)
            logger.info("%s funded reward pool with %d %s", caller, amount, self.reward_token.symbol)
            self._emit("RewardsFunded", funder=caller, amount=amount)

    # --- admin operations -----------------------------------------------

    def update_rate(self, caller: str, new_rate: int):
        """
        Replace the base rate from now on.

        Reward accrued so far is banked at the old rate; boost clocks keep running.
        """
        with self._lock:
            self._only_owner(caller)
            if new_rate < 0:
                raise ValueError("Reward rate cannot be negative")
            now = self._now()
            for record in self._stakes.values():
                record.accrued_reward = self._pending_at(record, now)
                record.last_update_time = now
            old_rate = self.config.rate
            self.config.rate = new_rate
            logger.info("Reward rate changed from %d to %d", old_rate, new_rate)
            self._emit("RateUpdated", old_rate=old_rate, new_rate=new_rate)

    def change_admin(self, caller: str, new_admin: str):
        """Hand over the admin role."""
        with self._lock:
            self._only_owner(caller)
            if not new_admin:
                raise ValueError("New admin cannot be empty")
            self._now()
            previous = self._owner
            self._owner = new_admin
            self.config.admin = new_admin
            logger.info("Farm admin changed from %s to %s", previous, new_admin)
            self._emit("AdminChanged", previous=previous, new=new_admin)

    def transfer_ownership(self, caller: str, new_owner: str):
        self.change_admin(caller, new_owner)
