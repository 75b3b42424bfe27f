"""Export functionality for CSV and JSON."""

import json
from typing import Any

import pandas as pd

from ..simulation.runner import ScenarioResult

# Largest integer a JSON consumer using IEEE doubles reads back exactly
MAX_SAFE_INT = 2**53


def _json_safe(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INT else value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def steps_frame(result: ScenarioResult) -> pd.DataFrame:
    """One row per scenario step."""
    df = pd.DataFrame([step.to_dict() for step in result.steps])
    if not df.empty:
        df['value'] = df['value'].astype(object)
    return df


def export_csv(result: ScenarioResult, filepath: str):
    """Export scenario steps to CSV."""
    steps_frame(result).to_csv(filepath, index=False)


def export_json(result: ScenarioResult, filepath: str):
    """Export scenario results to JSON."""
    export_data = {
        'scenario': result.scenario.name,
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'steps': [step.to_dict() for step in result.steps],
        'events': result.events,
        'final_snapshot': result.final_snapshot,
        'invariant_errors': result.invariant_errors,
        'invariant_warnings': result.invariant_warnings,
        'expectation_failures': result.expectation_failures,
    }

    with open(filepath, 'w') as f:
        json.dump(_json_safe(export_data), f, indent=2)
