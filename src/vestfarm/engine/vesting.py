"""Vesting engine - linear token unlock after a cliff, with owner revocation.

Key Concepts:
- One schedule per beneficiary, ever: a revoked schedule still blocks a new one
- Unlock curve: vested(t) = total * (t - start) // duration, origin at `start`
- The cliff only hides the curve: vested(t) = 0 while t < start + cliff
- Revocation caps `total_amount` at the amount vested at that instant and
  returns the rest to the owner; later reads return the capped value
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Set

from ..errors import (
    AlreadyRevoked,
    InvalidSchedule,
    NoSchedule,
    NoVestedTokens,
    NotWhitelisted,
    ScheduleExists,
)
from .base import ContractBase
from .clock import Clock
from .events import EventLog
from .ledger import TokenLedger

logger = logging.getLogger(__name__)


@dataclass
class VestingSchedule:
    """Vesting schedule of one beneficiary."""
    total_amount: int  # Tokens granted; capped at vested-at-revocation once revoked
    start_time: int  # Unix seconds when the unlock curve starts
    cliff_duration: int  # Seconds after start before anything is claimable
    vesting_duration: int  # Seconds after start at which 100% is unlocked
    amount_claimed: int = 0
    revoked: bool = False
    revoked_time: Optional[int] = None
    revoked_amount: int = 0  # Unvested remainder returned to the owner

    @property
    def cliff_end(self) -> int:
        return self.start_time + self.cliff_duration

    @property
    def vesting_end(self) -> int:
        return self.start_time + self.vesting_duration


def vested_amount_at(schedule: VestingSchedule, timestamp: int) -> int:
    """
    Amount unlocked by `timestamp` under the schedule's curve.

    Formula: total * (t - start) // duration, clamped to [0, total], and 0
    before the cliff ends. Revoked schedules are frozen at their capped total.

    Args:
        schedule: Vesting schedule
        timestamp: Unix seconds

    Returns:
        Vested amount in base units
    """
    if schedule.revoked:
        return schedule.total_amount
    if timestamp < schedule.cliff_end:
        return 0
    if timestamp >= schedule.vesting_end:
        return schedule.total_amount
    elapsed = timestamp - schedule.start_time
    return schedule.total_amount * elapsed // schedule.vesting_duration


class VestingEngine(ContractBase):
    """Owner-funded vesting vault for a single token."""

    def __init__(
        self,
        owner: str,
        token: TokenLedger,
        clock: Clock,
        address: str = "vesting",
        events: Optional[EventLog] = None
    ):
        """
        Initialize vesting engine.

        Args:
            owner: Address allowed to whitelist, create and revoke
            token: Ledger of the vested token
            clock: Time source
            address: Custody account of this engine on `token`
            events: Shared event log (a private one is created if omitted)
        """
        super().__init__(owner, clock, address, events)
        self.token = token
        self.whitelist: Set[str] = set()
        self._schedules: Dict[str, VestingSchedule] = {}

    # --- whitelist ------------------------------------------------------

    def add_to_whitelist(self, caller: str, beneficiary: str):
        with self._lock:
            self._only_owner(caller)
            self._now()
            if not beneficiary:
                raise ValueError("Beneficiary address cannot be empty")
            if beneficiary in self.whitelist:
                return
            self.whitelist.add(beneficiary)
            logger.info("Whitelisted %s", beneficiary)
            self._emit("WhitelistUpdated", beneficiary=beneficiary, whitelisted=True)

    def remove_from_whitelist(self, caller: str, beneficiary: str):
        with self._lock:
            self._only_owner(caller)
            self._now()
            if beneficiary not in self.whitelist:
                return
            self.whitelist.discard(beneficiary)
            logger.info("Removed %s from whitelist", beneficiary)
            self._emit("WhitelistUpdated", beneficiary=beneficiary, whitelisted=False)

    def is_whitelisted(self, beneficiary: str) -> bool:
        return beneficiary in self.whitelist

    # --- schedules ------------------------------------------------------

    def create_vesting_schedule(
        self,
        caller: str,
        beneficiary: str,
        amount: int,
        cliff_duration: int,
        vesting_duration: int,
        start_time: int
    ) -> VestingSchedule:
        """
        Create and fund a schedule for a whitelisted beneficiary.

        `amount` is pulled from the owner into this engine's custody with
        `transfer_from`; if the pull fails no schedule is recorded.

        Raises:
            Unauthorized: Caller is not the owner
            NotWhitelisted: Beneficiary is not whitelisted
            ScheduleExists: Beneficiary already has a schedule, revoked or not
            InvalidSchedule: Non-positive amount/duration, negative cliff/start
            TransferFailed: Funding transfer was refused
        """
        with self._lock:
            self._only_owner(caller)
            self._now()
            if beneficiary not in self.whitelist:
                raise NotWhitelisted(f"{beneficiary} is not whitelisted")
            if beneficiary in self._schedules:
                raise ScheduleExists(f"{beneficiary} already has a vesting schedule")
            if amount <= 0:
                raise InvalidSchedule("Vesting amount must be positive")
            if vesting_duration <= 0:
                raise InvalidSchedule("Vesting duration must be positive")
            if cliff_duration < 0:
                raise InvalidSchedule("Cliff duration cannot be negative")
            if start_time < 0:
                raise InvalidSchedule("Start time cannot be negative")

            schedule = VestingSchedule(
                total_amount=amount,
                start_time=start_time,
                cliff_duration=cliff_duration,
                vesting_duration=vesting_duration,
            )
            self._pull(self.token, caller, amount)
            self._schedules[beneficiary] = schedule

            logger.info(
                "Vesting schedule created for %s: %d %s, start=%d cliff=%ds duration=%ds",
                beneficiary, amount, self.token.symbol, start_time, cliff_duration, vesting_duration
            )
            self._emit(
                "VestingScheduleCreated",
                beneficiary=beneficiary,
                amount=amount,
                start_time=start_time,
                cliff_duration=cliff_duration,
                vesting_duration=vesting_duration,
            )
            return replace(schedule)

    def get_vesting_schedule(self, beneficiary: str) -> Optional[VestingSchedule]:
        """Copy of the beneficiary's schedule, or None."""
        with self._lock:
            schedule = self._schedules.get(beneficiary)
            return replace(schedule) if schedule else None

    def schedules(self) -> Dict[str, VestingSchedule]:
        """Copies of all schedules keyed by beneficiary."""
        with self._lock:
            return {b: replace(s) for b, s in self._schedules.items()}

    def calculate_vested_amount(self, beneficiary: str) -> int:
        """Vested amount right now; 0 for an unknown beneficiary."""
        with self._lock:
            now = self._now()
            schedule = self._schedules.get(beneficiary)
            if schedule is None:
                return 0
            return vested_amount_at(schedule, now)

    def claimable_amount(self, beneficiary: str) -> int:
        """Vested minus already claimed."""
        with self._lock:
            now = self._now()
            schedule = self._schedules.get(beneficiary)
            if schedule is None:
                return 0
            return vested_amount_at(schedule, now) - schedule.amount_claimed

    def total_committed(self) -> int:
        """Tokens custody still owes beneficiaries (granted minus claimed)."""
        with self._lock:
            return sum(s.total_amount - s.amount_claimed for s in self._schedules.values())

    def claim_vested_tokens(self, caller: str) -> int:
        """
        Pay the caller everything vested and not yet claimed.

        Returns:
            Amount transferred

        Raises:
            EnginePaused: Engine is paused
            NoVestedTokens: Nothing claimable (cliff, fully claimed, no schedule)
            TransferFailed: Custody could not pay
        """
        with self._lock:
            self._when_not_paused()
            now = self._now()
            schedule = self._schedules.get(caller)
            if schedule is None:
                raise NoVestedTokens(f"{caller} has no vesting schedule")
            claimable = vested_amount_at(schedule, now) - schedule.amount_claimed
            if claimable <= 0:
                raise NoVestedTokens(f"No vested tokens for {caller} at {now}")

            self._push(self.token, caller, claimable)
            schedule.amount_claimed += claimable

            logger.info("%s claimed %d %s", caller, claimable, self.token.symbol)
            self._emit("TokensClaimed", beneficiary=caller, amount=claimable)
            return claimable

    def revoke_vesting(self, caller: str, beneficiary: str) -> int:
        """
        Stop a schedule and return the unvested remainder to the owner.

        The schedule's `total_amount` is capped at what had vested at this
        instant, so the beneficiary can still claim that much.

        Returns:
            Unvested amount returned to the owner

        Raises:
            Unauthorized: Caller is not the owner
            NoSchedule: Beneficiary has no schedule
            AlreadyRevoked: Schedule was revoked before
            TransferFailed: Refund to the owner was refused
        """
        with self._lock:
            self._only_owner(caller)
            now = self._now()
            schedule = self._schedules.get(beneficiary)
            if schedule is None:
                raise NoSchedule(f"{beneficiary} has no vesting schedule")
            if schedule.revoked:
                raise AlreadyRevoked(f"Schedule of {beneficiary} is already revoked")

            vested_now = vested_amount_at(schedule, now)
            unvested = schedule.total_amount - vested_now
            if unvested > 0:
                self._push(self.token, self._owner, unvested)

            schedule.total_amount = vested_now
            schedule.revoked = True
            schedule.revoked_time = now
            schedule.revoked_amount = unvested

            logger.info(
                "Vesting of %s revoked at %d: %d vested, %d returned to %s",
                beneficiary, now, vested_now, unvested, self._owner
            )
            self._emit("VestingRevoked", beneficiary=beneficiary, vested=vested_now, returned=unvested)
            return unvested
