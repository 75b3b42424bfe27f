"""Unlock and reward projections as DataFrames.

Values are computed with the engines' own integer formulas; only the
`*_tokens` and percentage columns are floats, and those are for display.
"""

from decimal import Decimal
from typing import List, Optional

import numpy as np
import pandas as pd

from ..engine.farm import DAY, BPS, BoostPolicy, StakeRecord
from ..engine.vesting import VestingSchedule, vested_amount_at


def _to_tokens(amount: int, decimals: int) -> float:
    return float(Decimal(amount).scaleb(-decimals))


def sample_times(start: int, end: int, points: int, extra: Optional[List[int]] = None) -> List[int]:
    """
    Evenly spaced integer timestamps over [start, end], plus `extra` points.

    Args:
        start: First timestamp
        end: Last timestamp (inclusive)
        points: Number of evenly spaced samples (at least 2)
        extra: Additional timestamps to include (e.g. the cliff edge)

    Returns:
        Sorted unique timestamps
    """
    if end < start:
        raise ValueError("end must not precede start")
    points = max(2, int(points))
    grid = np.linspace(start, end, points).round().astype(np.int64)
    times = {int(t) for t in grid}
    for t in extra or []:
        if start <= t <= end:
            times.add(int(t))
    return sorted(times)


def vesting_timeline(schedule: VestingSchedule, points: int = 25, decimals: int = 18) -> pd.DataFrame:
    """
    Unlock curve of a schedule from start to full vesting.

    Includes the instants just before and at the cliff edge so the jump is
    visible.

    Args:
        schedule: Vesting schedule
        points: Number of evenly spaced samples
        decimals: Token decimals for the display column

    Returns:
        DataFrame with timestamp, elapsed_days, vested, claimable, vested_tokens,
        percent_vested
    """
    start = schedule.start_time
    end = schedule.vesting_end
    extra = [schedule.cliff_end - 1, schedule.cliff_end]
    if schedule.revoked and schedule.revoked_time is not None:
        extra.append(schedule.revoked_time)

    rows = []
    for t in sample_times(start, end, points, extra):
        vested = vested_amount_at(schedule, t)
        rows.append({
            'timestamp': t,
            'elapsed_days': (t - start) / DAY,
            'vested': vested,
            'claimable': max(0, vested - schedule.amount_claimed),
            'vested_tokens': _to_tokens(vested, decimals),
            'percent_vested': (100.0 * vested / schedule.total_amount) if schedule.total_amount else 0.0,
        })

    df = pd.DataFrame(rows)
    # Python ints keep full precision for 18-decimal amounts
    df['vested'] = df['vested'].astype(object)
    df['claimable'] = df['claimable'].astype(object)
    return df


def reward_projection(
    record: StakeRecord,
    rate: int,
    boost: BoostPolicy,
    horizon_days: int = 120,
    step_days: int = 1,
    decimals: int = 18
) -> pd.DataFrame:
    """
    Pending reward of an untouched position over time.

    Args:
        record: Stake record at its last checkpoint
        rate: Base reward per staked unit per second
        boost: Boost policy
        horizon_days: Days after the checkpoint to project
        step_days: Sampling interval in days
        decimals: Reward token decimals for the display column

    Returns:
        DataFrame with day, timestamp, multiplier_bps, base_reward, pending,
        pending_tokens
    """
    if step_days <= 0:
        raise ValueError("step_days must be positive")
    held_before = max(0, record.last_update_time - record.boost_start_time)
    rows = []
    for day in range(0, horizon_days + 1, step_days):
        elapsed = day * DAY
        base_reward = record.amount * rate * elapsed
        multiplier = boost.multiplier_bps(held_before + elapsed)
        pending = record.accrued_reward + base_reward * multiplier // BPS
        rows.append({
            'day': day,
            'timestamp': record.last_update_time + elapsed,
            'multiplier_bps': multiplier,
            'multiplier': multiplier / BPS,
            'base_reward': record.accrued_reward + base_reward,
            'pending': pending,
            'pending_tokens': _to_tokens(pending, decimals),
        })

    df = pd.DataFrame(rows)
    df['base_reward'] = df['base_reward'].astype(object)
    df['pending'] = df['pending'].astype(object)
    return df
