"""Scenario runner - replay a timed script of calls against fresh engines.

Key Features:
- One ManualClock, one TokenLedger per configured token, one engine of each kind
- Steps advance the clock (`at` / `advance`) and then make exactly one call
- Engine errors are recorded per step rather than aborting the replay
- Invariants are checked after every step
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..config.loader import config_from_dict, merge_overrides
from ..config.schema import Config, Scenario, Step
from ..engine.clock import ManualClock
from ..engine.events import EventLog
from ..engine.farm import BoostPolicy, BoostTier, YieldFarmEngine
from ..engine.ledger import TokenLedger
from ..engine.vesting import VestingEngine
from ..errors import ClockError, ConfigError, TransferFailed, VestFarmError
from ..units import to_base_units
from ..validation.sanity_checks import InvariantChecker

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """Everything a scenario runs against."""
    config: Config
    clock: ManualClock
    tokens: Dict[str, TokenLedger]
    vesting: VestingEngine
    farm: YieldFarmEngine
    events: EventLog

    def token(self, key: str) -> TokenLedger:
        if key not in self.tokens:
            raise ConfigError(f"Unknown token '{key}'")
        return self.tokens[key]

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of balances, schedules and stakes."""
        return {
            'timestamp': self.clock.now(),
            'balances': {key: ledger.balances() for key, ledger in self.tokens.items()},
            'vesting': {
                'owner': self.vesting.owner,
                'paused': self.vesting.paused,
                'whitelist': sorted(self.vesting.whitelist),
                'schedules': {
                    b: {
                        'total_amount': s.total_amount,
                        'start_time': s.start_time,
                        'cliff_duration': s.cliff_duration,
                        'vesting_duration': s.vesting_duration,
                        'amount_claimed': s.amount_claimed,
                        'revoked': s.revoked,
                        'revoked_time': s.revoked_time,
                        'revoked_amount': s.revoked_amount,
                        'vested': self.vesting.calculate_vested_amount(b),
                    }
                    for b, s in self.vesting.schedules().items()
                },
            },
            'farm': {
                'admin': self.farm.admin,
                'paused': self.farm.paused,
                'rate': self.farm.rate,
                'total_staked': self.farm.total_staked,
                'reward_pool': self.farm.reward_pool(),
                'stakes': {
                    s: {
                        'amount': r.amount,
                        'last_update_time': r.last_update_time,
                        'accrued_reward': r.accrued_reward,
                        'boost_start_time': r.boost_start_time,
                        'pending': self.farm.pending(s),
                    }
                    for s, r in self.farm.stakes().items()
                },
            },
        }


def deploy(config: Config) -> Deployment:
    """Build clock, ledgers and both engines from a config."""
    clock = ManualClock(config.clock.start_time)
    events = EventLog()
    tokens = {
        key: TokenLedger(settings.symbol, settings.decimals)
        for key, settings in config.tokens.items()
    }
    vesting = VestingEngine(
        owner=config.vesting.owner,
        token=tokens[config.vesting.token],
        clock=clock,
        address=config.vesting.address,
        events=events,
    )
    boost = BoostPolicy([
        BoostTier(t.min_elapsed_seconds, t.multiplier_bps) for t in config.farm.boost.tiers
    ])
    farm = YieldFarmEngine(
        admin=config.farm.admin,
        staking_token=tokens[config.farm.staking_token],
        reward_token=tokens[config.farm.reward_token],
        rate=config.farm.rate,
        clock=clock,
        boost=boost,
        address=config.farm.address,
        events=events,
    )
    return Deployment(config=config, clock=clock, tokens=tokens, vesting=vesting, farm=farm, events=events)


@dataclass
class StepResult:
    """Outcome of one scenario step."""
    index: int
    action: str
    caller: str
    timestamp: int
    ok: bool
    value: Any = None
    error: Optional[str] = None  # Error class name
    message: Optional[str] = None
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'label': self.label,
            'action': self.action,
            'caller': self.caller,
            'timestamp': self.timestamp,
            'ok': self.ok,
            'value': self.value,
            'error': self.error,
            'message': self.message,
        }


@dataclass
class ScenarioResult:
    """Complete scenario result."""
    scenario: Scenario
    config: Config
    steps: List[StepResult]
    events: List[Dict[str, Any]]
    final_snapshot: Dict[str, Any]
    invariant_errors: List[str] = field(default_factory=list)
    invariant_warnings: List[str] = field(default_factory=list)
    expectation_failures: List[str] = field(default_factory=list)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if not s.ok]

    @property
    def passed(self) -> bool:
        """No invariant broken and every expectation met."""
        return not self.invariant_errors and not self.expectation_failures


def _amount(args: Dict[str, Any], key: str = 'amount') -> int:
    if key not in args:
        raise ConfigError(f"Missing argument '{key}'")
    try:
        return to_base_units(args[key])
    except ValueError as exc:
        raise ConfigError(f"Argument '{key}': {exc}") from exc


def _arg(args: Dict[str, Any], key: str) -> Any:
    if key not in args:
        raise ConfigError(f"Missing argument '{key}'")
    return args[key]


class ScenarioRunner:
    """Replay scenarios step by step."""

    def __init__(self, config: Config):
        """
        Initialize scenario runner.

        Args:
            config: Base deployment configuration (scenario overrides merge on top)
        """
        self.config = config
        self._handlers: Dict[str, Callable[[Deployment, str, Dict[str, Any]], Any]] = {
            'add_to_whitelist': lambda d, c, a: d.vesting.add_to_whitelist(c, _arg(a, 'beneficiary')),
            'remove_from_whitelist': lambda d, c, a: d.vesting.remove_from_whitelist(c, _arg(a, 'beneficiary')),
            'create_vesting_schedule': self._create_schedule,
            'claim_vested_tokens': lambda d, c, a: d.vesting.claim_vested_tokens(c),
            'revoke_vesting': lambda d, c, a: d.vesting.revoke_vesting(c, _arg(a, 'beneficiary')),
            'calculate_vested_amount': lambda d, c, a: d.vesting.calculate_vested_amount(a.get('beneficiary', c)),
            'pause_vesting': lambda d, c, a: d.vesting.pause(c),
            'unpause_vesting': lambda d, c, a: d.vesting.unpause(c),
            'stake': lambda d, c, a: d.farm.stake(c, _amount(a)),
            'withdraw': lambda d, c, a: d.farm.withdraw(c, _amount(a)),
            'claim_reward': lambda d, c, a: d.farm.claim_reward(c),
            'emergency_withdraw': lambda d, c, a: d.farm.emergency_withdraw(c),
            'fund_rewards': lambda d, c, a: d.farm.fund_rewards(c, _amount(a)),
            'pending': lambda d, c, a: d.farm.pending(a.get('staker', c)),
            'update_rate': lambda d, c, a: d.farm.update_rate(c, _amount(a, 'rate')),
            'change_admin': lambda d, c, a: d.farm.change_admin(c, _arg(a, 'new_admin')),
            'pause_farm': lambda d, c, a: d.farm.pause(c),
            'unpause_farm': lambda d, c, a: d.farm.unpause(c),
            'mint': lambda d, c, a: d.token(_arg(a, 'token')).mint(_arg(a, 'to'), _amount(a)),
            'approve': lambda d, c, a: d.token(_arg(a, 'token')).approve(c, _arg(a, 'spender'), _amount(a)),
            'transfer': self._transfer,
        }

    @staticmethod
    def _create_schedule(d: Deployment, caller: str, args: Dict[str, Any]):
        if 'start_time' in args:
            start_time = _amount(args, 'start_time')
        else:
            start_time = d.clock.now() + to_base_units(args.get('start_delay', 0))
        schedule = d.vesting.create_vesting_schedule(
            caller,
            _arg(args, 'beneficiary'),
            _amount(args),
            _amount(args, 'cliff_duration'),
            _amount(args, 'vesting_duration'),
            start_time,
        )
        return schedule.start_time

    @staticmethod
    def _transfer(d: Deployment, caller: str, args: Dict[str, Any]) -> bool:
        ledger = d.token(_arg(args, 'token'))
        recipient = _arg(args, 'to')
        amount = _amount(args)
        if not ledger.transfer(caller, recipient, amount):
            raise TransferFailed(ledger.symbol, caller, recipient, amount)
        return True

    def resolve_config(self, scenario: Scenario) -> Config:
        if not scenario.config:
            return self.config
        return config_from_dict(merge_overrides(self.config.to_dict(), scenario.config))

    def run(self, scenario: Scenario) -> ScenarioResult:
        """
        Run a scenario.

        Args:
            scenario: Scenario to replay

        Returns:
            ScenarioResult with per-step outcomes, events and final snapshot

        Raises:
            ConfigError: A step is malformed (unknown token, missing argument)
        """
        config = self.resolve_config(scenario)
        deployment = deploy(config)
        logger.info("Running scenario '%s' (%d steps, config %s)",
                    scenario.name, len(scenario.steps), config.compute_hash())

        for token_key, holders in scenario.balances.items():
            ledger = deployment.token(token_key)
            for address, amount in holders.items():
                ledger.mint(address, amount)
        for token_key, owners in scenario.approvals.items():
            ledger = deployment.token(token_key)
            for owner, spenders in owners.items():
                for spender, amount in spenders.items():
                    ledger.approve(owner, spender, amount)

        checker = InvariantChecker(deployment.vesting, deployment.farm)
        results: List[StepResult] = []
        invariant_errors: List[str] = []
        invariant_warnings: List[str] = []
        expectation_failures: List[str] = []

        for index, step in enumerate(scenario.steps):
            result = self._run_step(deployment, index, step)
            results.append(result)

            if step.expect_error is not None:
                if result.ok:
                    expectation_failures.append(
                        f"step {index} ({step.action}): expected {step.expect_error}, succeeded"
                    )
                elif result.error != step.expect_error:
                    expectation_failures.append(
                        f"step {index} ({step.action}): expected {step.expect_error}, got {result.error}"
                    )

            for warning in checker.run_all_checks():
                text = f"step {index} ({step.action}): {warning.message}"
                if warning.details:
                    text += f" [{warning.details}]"
                if warning.severity == "error":
                    invariant_errors.append(text)
                else:
                    invariant_warnings.append(text)

        return ScenarioResult(
            scenario=scenario,
            config=config,
            steps=results,
            events=[e.to_dict() for e in deployment.events.history],
            final_snapshot=deployment.snapshot(),
            invariant_errors=invariant_errors,
            invariant_warnings=invariant_warnings,
            expectation_failures=expectation_failures,
        )

    def _run_step(self, deployment: Deployment, index: int, step: Step) -> StepResult:
        if step.at is not None:
            try:
                deployment.clock.increase_to(step.at)
            except ClockError as exc:
                raise ConfigError(f"step {index}: {exc}") from exc
        elif step.advance:
            deployment.clock.advance(step.advance)
        now = deployment.clock.now()

        handler = self._handlers[step.action]
        try:
            value = handler(deployment, step.caller, step.args)
        except (VestFarmError, ValueError) as exc:
            if isinstance(exc, ConfigError):
                raise
            logger.info("Step %d %s by %s failed: %s", index, step.action, step.caller, exc)
            return StepResult(
                index=index,
                action=step.action,
                caller=step.caller,
                timestamp=now,
                ok=False,
                error=type(exc).__name__,
                message=str(exc),
                label=step.label,
            )
        return StepResult(
            index=index,
            action=step.action,
            caller=step.caller,
            timestamp=now,
            ok=True,
            value=value,
            label=step.label,
        )
