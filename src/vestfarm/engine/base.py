"""Shared contract machinery: ownership, pause switch, serialization, time.

Both engines behave like a single contract: every public operation runs under
one re-entrant lock, reads the clock once, and either commits completely or
raises with no visible change.
"""

import logging
import threading
from typing import Optional

from ..errors import ClockError, EnginePaused, TransferFailed, Unauthorized
from .clock import Clock
from .events import Event, EventLog
from .ledger import TokenLedger

logger = logging.getLogger(__name__)


class ContractBase:
    """Owner role, kill-switch, lock, monotonic clock and ledger helpers."""

    role_name = "owner"

    def __init__(self, owner: str, clock: Clock, address: str, events: Optional[EventLog] = None):
        if not owner:
            raise ValueError(f"{self.role_name} address cannot be empty")
        if not address:
            raise ValueError("Engine address cannot be empty")
        self._owner = owner
        self.clock = clock
        self.address = address
        self.events = events if events is not None else EventLog()
        self.paused = False
        self._lock = threading.RLock()
        self._last_seen_time: Optional[int] = None

    @property
    def owner(self) -> str:
        return self._owner

    # --- time -----------------------------------------------------------

    def _now(self) -> int:
        """Read the clock, enforcing monotonic non-decreasing time."""
        raw = self.clock.now()
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ClockError(f"Clock returned non-integer timestamp {raw!r}")
        if self._last_seen_time is not None and raw < self._last_seen_time:
            raise ClockError(
                f"Clock moved backwards from {self._last_seen_time} to {raw}"
            )
        self._last_seen_time = raw
        return raw

    # --- roles ----------------------------------------------------------

    def _only_owner(self, caller: str):
        if caller != self._owner:
            raise Unauthorized(caller, self.role_name)

    def _when_not_paused(self):
        if self.paused:
            raise EnginePaused(f"{self.address} is paused")

    def transfer_ownership(self, caller: str, new_owner: str):
        """Hand the owner role to `new_owner`."""
        with self._lock:
            self._only_owner(caller)
            self._now()
            if not new_owner:
                raise ValueError(f"New {self.role_name} cannot be empty")
            previous = self._owner
            self._owner = new_owner
            logger.info("%s %s changed from %s to %s", self.address, self.role_name, previous, new_owner)
            self._emit("OwnershipTransferred", previous=previous, new=new_owner)

    def pause(self, caller: str):
        """Stop all non-owner state changes. Pausing twice is a no-op."""
        with self._lock:
            self._only_owner(caller)
            self._now()
            if self.paused:
                return
            self.paused = True
            logger.info("%s paused by %s", self.address, caller)
            self._emit("Paused", account=caller)

    def unpause(self, caller: str):
        with self._lock:
            self._only_owner(caller)
            self._now()
            if not self.paused:
                return
            self.paused = False
            logger.info("%s unpaused by %s", self.address, caller)
            self._emit("Unpaused", account=caller)

    # --- ledger ---------------------------------------------------------

    def _pull(self, token: TokenLedger, source: str, amount: int):
        """Move `amount` from `source` into this engine using its allowance."""
        if not token.transfer_from(self.address, source, self.address, amount):
            logger.warning(
                "%s: pull of %d %s from %s failed", self.address, amount, token.symbol, source
            )
            raise TransferFailed(token.symbol, source, self.address, amount)

    def _push(self, token: TokenLedger, recipient: str, amount: int):
        """Pay `amount` out of this engine's own balance."""
        if not token.transfer(self.address, recipient, amount):
            logger.warning(
                "%s: payout of %d %s to %s failed", self.address, amount, token.symbol, recipient
            )
            raise TransferFailed(token.symbol, self.address, recipient, amount)

    # --- events ---------------------------------------------------------

    def _emit(self, name: str, **args):
        timestamp = self._last_seen_time if self._last_seen_time is not None else self.clock.now()
        self.events.emit(Event(name=name, source=self.address, timestamp=timestamp, args=args))
