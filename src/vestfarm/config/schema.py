"""Pydantic schema for configuration and scenario validation."""

import hashlib
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.farm import validate_boost_tiers
from ..units import MAX_UINT256, to_base_units

ACTIONS = (
    # vesting
    "add_to_whitelist",
    "remove_from_whitelist",
    "create_vesting_schedule",
    "claim_vested_tokens",
    "revoke_vesting",
    "calculate_vested_amount",
    "pause_vesting",
    "unpause_vesting",
    # farm
    "stake",
    "withdraw",
    "claim_reward",
    "emergency_withdraw",
    "fund_rewards",
    "pending",
    "update_rate",
    "change_admin",
    "pause_farm",
    "unpause_farm",
    # ledger
    "mint",
    "approve",
    "transfer",
)


def _allowance(value: Any) -> int:
    if isinstance(value, str) and value.strip().lower() == "max":
        return MAX_UINT256
    return to_base_units(value)


class TokenSettings(BaseModel):
    """Token metadata."""
    symbol: str = Field(min_length=1, description="Ticker")
    decimals: int = Field(default=18, ge=0, le=36, description="Display decimals")


class VestingSettings(BaseModel):
    """Vesting engine deployment."""
    owner: str = Field(min_length=1, description="Owner address")
    address: str = Field(default="vesting", min_length=1, description="Custody address")
    token: str = Field(description="Key into `tokens` of the vested token")


class BoostTierSettings(BaseModel):
    """One step of the holding-time boost."""
    min_elapsed_seconds: int = Field(ge=0, description="Holding time that unlocks the tier")
    multiplier_bps: int = Field(ge=10_000, description="Multiplier in basis points")


class BoostSettings(BaseModel):
    """Boost curve policy."""
    tiers: List[BoostTierSettings] = Field(
        default_factory=lambda: [
            BoostTierSettings(min_elapsed_seconds=0, multiplier_bps=10_000),
            BoostTierSettings(min_elapsed_seconds=7 * 86_400, multiplier_bps=12_500),
            BoostTierSettings(min_elapsed_seconds=30 * 86_400, multiplier_bps=15_000),
            BoostTierSettings(min_elapsed_seconds=90 * 86_400, multiplier_bps=20_000),
        ]
    )

    @model_validator(mode='after')
    def validate_tiers(self):
        """First tier is (0, 1x), thresholds increase, multipliers never drop."""
        validate_boost_tiers([(t.min_elapsed_seconds, t.multiplier_bps) for t in self.tiers])
        return self


class FarmSettings(BaseModel):
    """Yield farm deployment."""
    admin: str = Field(min_length=1, description="Admin address")
    address: str = Field(default="farm", min_length=1, description="Farm address")
    staking_token: str = Field(description="Key into `tokens` of the staked token")
    reward_token: str = Field(description="Key into `tokens` of the reward token")
    rate: int = Field(ge=0, description="Reward per staked unit per second")
    boost: BoostSettings = Field(default_factory=BoostSettings)

    @field_validator("rate", mode="before")
    @classmethod
    def coerce_rate(cls, v):
        return to_base_units(v)


class ClockSettings(BaseModel):
    """Initial time of a replay."""
    start_time: int = Field(default=1_700_000_000, ge=0, description="Unix seconds")


class LoggingSettings(BaseModel):
    """Logging setup used by the CLI."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class Config(BaseModel):
    """Complete deployment configuration."""
    tokens: Dict[str, TokenSettings]
    vesting: VestingSettings
    farm: FarmSettings
    clock: ClockSettings = Field(default_factory=ClockSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode='after')
    def validate_token_refs(self):
        """Every engine must point at a declared token."""
        refs = [
            ('vesting.token', self.vesting.token),
            ('farm.staking_token', self.farm.staking_token),
            ('farm.reward_token', self.farm.reward_token),
        ]
        for name, key in refs:
            if key not in self.tokens:
                raise ValueError(f"{name} refers to unknown token '{key}'")
        if self.farm.staking_token == self.farm.reward_token:
            raise ValueError("farm.staking_token and farm.reward_token must differ")
        addresses = {self.vesting.address, self.farm.address}
        if len(addresses) < 2:
            raise ValueError("vesting.address and farm.address must differ")
        return self

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()


class Step(BaseModel):
    """One timed action of a scenario."""
    action: Literal[ACTIONS]
    caller: str = Field(min_length=1)
    at: Optional[int] = Field(default=None, ge=0, description="Absolute timestamp")
    advance: Optional[int] = Field(default=None, ge=0, description="Seconds after the previous step")
    args: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None
    expect_error: Optional[str] = Field(default=None, description="Error class name the step must raise")

    @model_validator(mode='after')
    def one_time_reference(self):
        if self.at is not None and self.advance is not None:
            raise ValueError("A step takes either `at` or `advance`, not both")
        return self


class Scenario(BaseModel):
    """Scripted sequence of engine calls."""
    name: str = "scenario"
    description: str = ""
    config: Dict[str, Any] = Field(default_factory=dict, description="Overrides merged into the base config")
    balances: Dict[str, Dict[str, int]] = Field(default_factory=dict, description="token -> address -> amount")
    approvals: Dict[str, Dict[str, Dict[str, int]]] = Field(
        default_factory=dict, description="token -> owner -> spender -> amount"
    )
    steps: List[Step] = Field(default_factory=list)

    @field_validator("balances", mode="before")
    @classmethod
    def coerce_balances(cls, v):
        if not isinstance(v, dict):
            return v
        return {
            token: {addr: to_base_units(amount) for addr, amount in holders.items()}
            for token, holders in v.items()
        }

    @field_validator("approvals", mode="before")
    @classmethod
    def coerce_approvals(cls, v):
        if not isinstance(v, dict):
            return v
        return {
            token: {
                owner: {spender: _allowance(amount) for spender, amount in spenders.items()}
                for owner, spenders in owners.items()
            }
            for token, owners in v.items()
        }
