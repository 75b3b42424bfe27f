"""Configuration models and YAML loading."""

from .loader import config_from_dict, load_config, load_scenario, merge_overrides, scenario_from_dict
from .schema import Config, Scenario, Step

__all__ = [
    "Config",
    "Scenario",
    "Step",
    "load_config",
    "config_from_dict",
    "load_scenario",
    "scenario_from_dict",
    "merge_overrides",
]
