"""Accounting engines and their collaborators."""

from .clock import Clock, ManualClock, SystemClock
from .events import Event, EventLog
from .farm import (
    DEFAULT_BOOST_TIERS,
    BoostPolicy,
    BoostTier,
    FarmConfig,
    StakeRecord,
    YieldFarmEngine,
)
from .ledger import TokenLedger
from .vesting import VestingEngine, VestingSchedule, vested_amount_at

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "Event",
    "EventLog",
    "TokenLedger",
    "VestingEngine",
    "VestingSchedule",
    "vested_amount_at",
    "YieldFarmEngine",
    "StakeRecord",
    "FarmConfig",
    "BoostPolicy",
    "BoostTier",
    "DEFAULT_BOOST_TIERS",
]
