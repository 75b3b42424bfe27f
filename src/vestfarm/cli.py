"""
vestfarm command-line interface.

Replays scenarios against fresh engines and prints unlock/boost tables.
"""

import logging
import sys
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from .config.loader import load_config, load_scenario
from .engine.farm import BPS, DAY, StakeRecord
from .engine.vesting import VestingSchedule
from .errors import ConfigError
from .reporting.charts import create_reward_chart, create_vesting_chart
from .reporting.export import export_csv, export_json
from .reporting.projections import reward_projection, vesting_timeline
from .simulation.runner import ScenarioRunner, deploy
from .units import format_units, to_base_units

logger = logging.getLogger(__name__)

console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Report an error and exit."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _amount_option(ctx, param, value):
    if value is None:
        return None
    try:
        return to_base_units(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Deployment config YAML (defaults to the packaged defaults).')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Override the configured log level.')
@click.pass_context
def main(ctx, config_path: Optional[str], log_level: Optional[str]):
    """Token vesting and yield-farm accounting tools."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        _cli_fail(exc)
    logging.basicConfig(
        level=(log_level or config.logging.level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {'config': config}


@main.command()
@click.argument('scenario_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--csv', 'csv_path', type=click.Path(dir_okay=False), help='Write step results to CSV.')
@click.option('--json', 'json_path', type=click.Path(dir_okay=False), help='Write the full result to JSON.')
@click.pass_context
def run(ctx, scenario_path: str, csv_path: Optional[str], json_path: Optional[str]):
    """Replay SCENARIO_PATH and print each step's outcome."""
    try:
        scenario = load_scenario(scenario_path)
        result = ScenarioRunner(ctx.obj['config']).run(scenario)
    except ConfigError as exc:
        _cli_fail(exc)

    table = Table(title=f"Scenario: {scenario.name}", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("time", justify="right")
    table.add_column("caller")
    table.add_column("action")
    table.add_column("result")
    for step in result.steps:
        if step.ok:
            outcome = "[green]ok[/]" if step.value is None else f"[green]{step.value}[/]"
        else:
            outcome = f"[red]{step.error}[/]"
        table.add_row(str(step.index), str(step.timestamp), step.caller, step.label or step.action, outcome)
    console.print(table)

    for warning in result.invariant_warnings:
        console.print(f"[yellow]warning:[/] {warning}")
    for error in result.invariant_errors + result.expectation_failures:
        console.print(f"[bold red]fail:[/] {error}")

    if csv_path:
        export_csv(result, csv_path)
    if json_path:
        export_json(result, json_path)

    if not result.passed:
        sys.exit(1)


@main.command('vesting-timeline')
@click.option('--amount', required=True, callback=_amount_option, help='Total grant in base units (e.g. 1000e18).')
@click.option('--cliff', type=int, required=True, help='Cliff duration in seconds.')
@click.option('--duration', type=int, required=True, help='Vesting duration in seconds.')
@click.option('--start', type=int, default=0, show_default=True, help='Start timestamp.')
@click.option('--points', type=int, default=13, show_default=True, help='Number of samples.')
@click.option('--chart', 'chart_path', type=click.Path(dir_okay=False), help='Write an HTML chart.')
@click.pass_context
def vesting_timeline_cmd(ctx, amount: int, cliff: int, duration: int, start: int, points: int,
                         chart_path: Optional[str]):
    """Print how a schedule unlocks over time."""
    if amount <= 0 or duration <= 0 or cliff < 0:
        _cli_fail(click.BadParameter("amount and duration must be positive, cliff non-negative"))
    config = ctx.obj['config']
    token = config.tokens[config.vesting.token]
    schedule = VestingSchedule(
        total_amount=amount, start_time=start, cliff_duration=cliff, vesting_duration=duration
    )
    timeline = vesting_timeline(schedule, points=points, decimals=token.decimals)

    table = Table(title=f"Unlock of {format_units(amount, token.decimals)} {token.symbol}", box=box.SIMPLE)
    table.add_column("timestamp", justify="right")
    table.add_column("day", justify="right")
    table.add_column("vested", justify="right")
    table.add_column("%", justify="right")
    for row in timeline.itertuples(index=False):
        table.add_row(
            str(row.timestamp),
            f"{row.elapsed_days:.1f}",
            format_units(row.vested, token.decimals),
            f"{row.percent_vested:.2f}",
        )
    console.print(table)

    if chart_path:
        create_vesting_chart(timeline, token.symbol, cliff_days=cliff / DAY).write_html(chart_path)


@main.command('boost-tiers')
@click.option('--amount', callback=_amount_option, help='Project rewards for a stake of this size.')
@click.option('--days', type=int, default=120, show_default=True, help='Projection horizon.')
@click.option('--chart', 'chart_path', type=click.Path(dir_okay=False), help='Write an HTML chart.')
@click.pass_context
def boost_tiers(ctx, amount: Optional[int], days: int, chart_path: Optional[str]):
    """Print the configured boost tiers, optionally with a reward projection."""
    config = ctx.obj['config']
    farm = deploy(config).farm

    table = Table(title=f"Boost tiers (rate {farm.rate}/unit/s)", box=box.SIMPLE)
    table.add_column("held for", justify="right")
    table.add_column("multiplier", justify="right")
    for tier in farm.boost.tiers:
        table.add_row(f"{tier.min_elapsed / DAY:g} days", f"{tier.multiplier_bps / BPS:.2f}x")
    console.print(table)

    if amount is None:
        return
    reward = config.tokens[config.farm.reward_token]
    record = StakeRecord(
        amount=amount, last_update_time=config.clock.start_time, boost_start_time=config.clock.start_time
    )
    projection = reward_projection(record, farm.rate, farm.boost, horizon_days=days,
                                   step_days=max(1, days // 12), decimals=reward.decimals)
    proj_table = Table(title="Pending reward", box=box.SIMPLE)
    proj_table.add_column("day", justify="right")
    proj_table.add_column("boost", justify="right")
    proj_table.add_column(reward.symbol, justify="right")
    for row in projection.itertuples(index=False):
        proj_table.add_row(str(row.day), f"{row.multiplier:.2f}x", format_units(row.pending, reward.decimals))
    console.print(proj_table)

    if chart_path:
        create_reward_chart(projection, reward.symbol).write_html(chart_path)


if __name__ == '__main__':
    main()
