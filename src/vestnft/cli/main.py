#!/usr/bin/env python3
"""
vestnft CLI - Vesting schedule previews and snapshot inspection

Commands:
- schedule: print the release table of a set of vesting terms
- inspect: show the vesting state of a token in a VestingNFT JSON snapshot
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from vestnft.core.config import ConfigurationError, VestingConfig
from vestnft.core.contracts.vesting_nft import VestingNFT
from vestnft.core.exceptions import ContractExecutionError, VestingError
from vestnft.core.logging_config import setup_logging_from_config
from vestnft.core.vesting.curves import CurveEvaluator
from vestnft.core.vesting.positions import PositionTerms, VestingPositionStore

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_param(raw: str) -> tuple[str, Any]:
    if "=" not in raw:
        raise click.BadParameter(f"expected key=value, got {raw!r}")
    key, value = raw.split("=", 1)
    try:
        return key.strip(), int(value)
    except ValueError:
        pass
    try:
        return key.strip(), float(value)
    except ValueError:
        return key.strip(), value


def _schedule_rows(
    terms: PositionTerms, points: int, evaluator: CurveEvaluator
) -> list[dict[str, int]]:
    store = VestingPositionStore(evaluator=evaluator, allow_zero_allocation=True)
    position_id = store.create(terms)
    position = store.get(position_id)

    duration = terms.vesting_end - terms.vesting_start
    timestamps = sorted(
        {terms.vesting_start + duration * i // points for i in range(points + 1)}
    )
    return [
        {
            "timestamp": ts,
            "vested": evaluator.vested_payout_at_time(position, ts),
            "locked": terms.total_allocation - evaluator.vested_payout_at_time(position, ts),
        }
        for ts in timestamps
    ]


@click.group()
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(ctx: click.Context, json_output: bool) -> None:
    """vestnft - transferable vesting NFT tooling."""
    ctx.ensure_object(dict)
    try:
        config = VestingConfig.from_env()
    except ConfigurationError as exc:
        _handle_cli_error(exc)
    # stdout carries command output; records go to VESTNFT_LOG_FILE only
    setup_logging_from_config(config, enable_console=False)
    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


@cli.command()
@click.option("--amount", type=click.IntRange(min=0), required=True, help="Total allocation in base units")
@click.option("--start", type=click.IntRange(min=0), required=True, help="Vesting start timestamp")
@click.option("--end", type=click.IntRange(min=0), required=True, help="Vesting end timestamp")
@click.option("--curve", default="linear", show_default=True, help="Curve name")
@click.option("--param", "params", multiple=True, help="Curve parameter as key=value")
@click.option("--points", type=click.IntRange(1, 1000), default=10, show_default=True)
@click.pass_context
def schedule(
    ctx: click.Context,
    amount: int,
    start: int,
    end: int,
    curve: str,
    params: tuple[str, ...],
    points: int,
) -> None:
    """Print how an allocation unlocks between START and END."""
    terms = PositionTerms(
        payout_asset="preview",
        vesting_start=start,
        vesting_end=end,
        total_allocation=amount,
        curve_type=curve,
        curve_parameters=dict(_parse_param(p) for p in params),
    )
    try:
        rows = _schedule_rows(terms, points, CurveEvaluator())
    except VestingError as exc:
        _handle_cli_error(exc)

    if ctx.obj["json_output"]:
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title=f"{curve} vesting of {amount}", box=box.ROUNDED)
    table.add_column("Timestamp", justify="right", style="cyan")
    table.add_column("Vested", justify="right", style="green")
    table.add_column("Locked", justify="right", style="yellow")
    for row in rows:
        table.add_row(str(row["timestamp"]), str(row["vested"]), str(row["locked"]))
    console.print(table)


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("token_id", type=int)
@click.option("--at", "at_time", type=int, default=None, help="Timestamp to evaluate at (default: now)")
@click.pass_context
def inspect(ctx: click.Context, snapshot: Path, token_id: int, at_time: int | None) -> None:
    """Show the vesting state of TOKEN_ID in a VestingNFT SNAPSHOT."""
    timestamp = at_time if at_time is not None else int(time.time())
    try:
        data = json.loads(snapshot.read_text())
        contract = VestingNFT.from_dict(
            data, config=ctx.obj["config"], time_provider=lambda: timestamp
        )
        start, end = contract.vesting_period(token_id)
        info = {
            "token_id": token_id,
            "owner": contract.owner_of(token_id),
            "payout_token": contract.payout_token(token_id),
            "vesting_start": start,
            "vesting_end": end,
            "timestamp": timestamp,
            "vested": contract.vested_payout(token_id),
            "locked": contract.vesting_payout(token_id),
            "claimed": contract.claimed_payout(token_id),
            "claimable": contract.claimable_payout(token_id),
        }
    except (OSError, ValueError, KeyError, VestingError, ContractExecutionError) as exc:
        _handle_cli_error(exc)

    if ctx.obj["json_output"]:
        click.echo(json.dumps(info, indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in info.items():
        table.add_row(f"[bold cyan]{key.replace('_', ' ').title()}", str(value))
    console.print(table)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
