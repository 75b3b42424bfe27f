"""Configuration and scenario loading from YAML."""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .schema import Config, Scenario

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def merge_overrides(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge `overrides` into a copy of `base`.

    Nested mappings merge key by key; any other value replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_overrides(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(yaml_path: Optional[Union[str, Path]] = None, overrides: Optional[Dict[str, Any]] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        yaml_path: Path to YAML file (defaults to defaults.yaml)
        overrides: Nested values merged over the file contents

    Returns:
        Config object

    Raises:
        ConfigError: If the file does not validate
    """
    if yaml_path is None:
        yaml_path = DEFAULTS_PATH

    data = _read_yaml(yaml_path)
    if overrides:
        data = merge_overrides(data, overrides)
    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> Config:
    """
    Create config from dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        Config object
    """
    try:
        return Config.from_dict(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_scenario(yaml_path: Union[str, Path]) -> Scenario:
    """Load a scenario script from YAML."""
    return scenario_from_dict(_read_yaml(yaml_path))


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    try:
        return Scenario(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid scenario: {exc}") from exc
