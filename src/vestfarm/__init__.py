"""Token vesting and yield-farm accounting core."""

__version__ = "1.0.0"
