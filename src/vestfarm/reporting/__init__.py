"""Projections, exports and charts."""

from .charts import create_reward_chart, create_vesting_chart
from .export import export_csv, export_json, steps_frame
from .projections import reward_projection, sample_times, vesting_timeline

__all__ = [
    "vesting_timeline",
    "reward_projection",
    "sample_times",
    "export_csv",
    "export_json",
    "steps_frame",
    "create_vesting_chart",
    "create_reward_chart",
]
