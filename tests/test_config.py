"""Tests for configuration and scenario loading."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from vestfarm.config.loader import (
    config_from_dict,
    load_config,
    load_scenario,
    merge_overrides,
    scenario_from_dict,
)
from vestfarm.config.schema import Config
from vestfarm.errors import ConfigError
from vestfarm.units import MAX_UINT256

EXAMPLES_DIR = os.path.join(os.path.dirname(__file__), '..', 'examples')


class TestDefaults:
    """Packaged default configuration."""

    def test_loads(self):
        config = load_config()
        assert isinstance(config, Config)
        assert config.vesting.owner == "owner"
        assert config.farm.rate == 100
        assert config.tokens[config.farm.reward_token].symbol == "RWD"

    def test_default_boost_tiers(self):
        tiers = load_config().farm.boost.tiers
        assert [(t.min_elapsed_seconds, t.multiplier_bps) for t in tiers] == [
            (0, 10_000), (604_800, 12_500), (2_592_000, 15_000), (7_776_000, 20_000),
        ]

    def test_hash_deterministic(self):
        assert load_config().compute_hash() == load_config().compute_hash()

    def test_hash_changes_with_config(self):
        base = load_config()
        changed = load_config(overrides={'farm': {'rate': 101}})
        assert base.compute_hash() != changed.compute_hash()

    def test_round_trip_dict(self):
        config = load_config()
        assert Config.from_dict(config.to_dict()) == config


class TestValidation:
    """Rejected configurations."""

    def test_unknown_token(self):
        data = load_config().to_dict()
        data['farm']['reward_token'] = 'nope'
        with pytest.raises(ConfigError, match="unknown token"):
            config_from_dict(data)

    def test_shared_staking_and_reward_token(self):
        with pytest.raises(ConfigError, match="must differ"):
            load_config(overrides={'farm': {'reward_token': 'lp'}})

    def test_shared_address(self):
        with pytest.raises(ConfigError):
            load_config(overrides={'farm': {'address': 'vesting'}})

    def test_negative_rate(self):
        with pytest.raises(ConfigError):
            load_config(overrides={'farm': {'rate': -1}})

    def test_rate_string(self):
        assert load_config(overrides={'farm': {'rate': '1e3'}}).farm.rate == 1000

    def test_fractional_rate(self):
        with pytest.raises(ConfigError):
            load_config(overrides={'farm': {'rate': '0.5'}})

    def test_decreasing_boost(self):
        tiers = [
            {'min_elapsed_seconds': 0, 'multiplier_bps': 10_000},
            {'min_elapsed_seconds': 100, 'multiplier_bps': 15_000},
            {'min_elapsed_seconds': 200, 'multiplier_bps': 12_000},
        ]
        with pytest.raises(ConfigError):
            load_config(overrides={'farm': {'boost': {'tiers': tiers}}})

    def test_first_tier_must_be_identity(self):
        tiers = [{'min_elapsed_seconds': 0, 'multiplier_bps': 11_000}]
        with pytest.raises(ConfigError):
            load_config(overrides={'farm': {'boost': {'tiers': tiers}}})

    def test_log_level_case(self):
        assert load_config(overrides={'logging': {'level': 'debug'}}).logging.level == "DEBUG"


class TestMergeOverrides:
    """Deep merge."""

    def test_nested(self):
        base = {'a': {'b': 1, 'c': 2}, 'd': 3}
        merged = merge_overrides(base, {'a': {'b': 10}})
        assert merged == {'a': {'b': 10, 'c': 2}, 'd': 3}
        assert base['a']['b'] == 1

    def test_replaces_non_mapping(self):
        assert merge_overrides({'a': [1, 2]}, {'a': [3]}) == {'a': [3]}


class TestScenario:
    """Scenario parsing."""

    def test_coerces_amounts(self):
        scenario = scenario_from_dict({
            'balances': {'lp': {'user1': '1000e18'}},
            'approvals': {'lp': {'user1': {'farm': 'max', 'vesting': '5'}}},
            'steps': [{'action': 'stake', 'caller': 'user1', 'args': {'amount': 1}}],
        })
        assert scenario.balances['lp']['user1'] == 1000 * 10**18
        assert scenario.approvals['lp']['user1']['farm'] == MAX_UINT256
        assert scenario.approvals['lp']['user1']['vesting'] == 5

    def test_unknown_action(self):
        with pytest.raises(ConfigError):
            scenario_from_dict({'steps': [{'action': 'selfdestruct', 'caller': 'x'}]})

    def test_at_and_advance(self):
        with pytest.raises(ConfigError):
            scenario_from_dict({'steps': [{'action': 'stake', 'caller': 'x', 'at': 1, 'advance': 1}]})

    def test_negative_advance(self):
        with pytest.raises(ConfigError):
            scenario_from_dict({'steps': [{'action': 'stake', 'caller': 'x', 'advance': -5}]})

    def test_load_examples(self):
        vesting = load_scenario(os.path.join(EXAMPLES_DIR, 'vesting_lifecycle.yaml'))
        farm = load_scenario(os.path.join(EXAMPLES_DIR, 'yield_farm.yaml'))
        assert vesting.steps and farm.steps

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_scenario(path)
