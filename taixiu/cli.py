"""Command line interface: forecast, backtest and bridge detection."""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from taixiu.core.config import Config, load_config
from taixiu.core.engine import detect_dominant_motif, forecast_next, run_backtest
from taixiu.core.errors import FeedError
from taixiu.core.log import setup_logging
from taixiu.core.rationale import outcome_name, render_all, risk_name
from taixiu.core.risk import label_for, risk_score
from taixiu.core.types import Round
from taixiu.data.feed import HistoryFeed
from taixiu.data.loader import load_history

console = Console()


def _parse_overrides(values: Tuple[str, ...]) -> Dict[str, object]:
    overrides: Dict[str, object] = {}
    for item in values:
        if "=" not in item:
            raise click.BadParameter(f"Invalid override format: {item}")
        key, raw = item.split("=", 1)
        value: object
        lower = raw.lower()
        if lower in {"true", "false"}:
            value = lower == "true"
        else:
            try:
                value = int(raw)
            except ValueError:
                try:
                    value = float(raw)
                except ValueError:
                    value = raw
        overrides[key] = value
    return overrides


async def _fetch(config: Config) -> List[Round]:
    async with HistoryFeed(config.feed, config.outcome.midpoint) as feed:
        return await feed.fetch_history()


def _load(config: Config, file: Optional[Path]) -> List[Round]:
    if file is not None:
        return load_history(file, config.outcome.midpoint)
    try:
        return asyncio.run(_fetch(config))
    except FeedError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="YAML config file")
@click.option("--set", "overrides", multiple=True, help="Override, e.g. ensemble.min_history=10")
@click.option("--locale", default=None, help="Rationale language (en or vi)")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], overrides: Tuple[str, ...],
        locale: Optional[str]):
    """Tai/Xiu outcome forecasting."""
    config = load_config(config_path)
    if overrides:
        try:
            config = config.with_overrides(_parse_overrides(overrides))
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
    setup_logging(
        level=config.logging.level,
        structured=config.logging.structured,
        log_file=Path(config.logging.log_file) if config.logging.log_file else None,
    )
    ctx.obj = {"config": config, "locale": locale or config.api.locale}


@cli.command()
@click.option("--file", "file", type=click.Path(exists=True, path_type=Path), default=None,
              help="History file (JSON or CSV); fetched from the feed when omitted")
@click.pass_context
def forecast(ctx: click.Context, file: Optional[Path]):
    """Forecast the next round."""
    config: Config = ctx.obj["config"]
    locale: str = ctx.obj["locale"]
    history = _load(config, file)

    result = forecast_next(history, config)
    score = risk_score(result.confidence, history, config.risk)
    level = label_for(score, config.risk)

    next_index = history[-1].index + 1 if history else 1
    console.print(Panel(
        f"Round {next_index}: [bold]{outcome_name(result.predicted, locale)}[/bold]  "
        f"confidence {result.confidence:.1%}  P(High) {result.probability:.1%}  "
        f"risk {risk_name(level, locale)}",
        style="bold cyan",
    ))
    for line in result.render(locale):
        console.print(f"  - {line}")

    if result.sub_votes:
        table = Table(title="Votes")
        table.add_column("Source")
        table.add_column("Predicted")
        table.add_column("Confidence", justify="right")
        table.add_column("Weight", justify="right")
        for vote in result.sub_votes:
            table.add_row(
                vote.source,
                outcome_name(vote.predicted, locale),
                f"{vote.confidence:.3f}",
                f"{vote.weight:.3f}",
            )
        console.print(table)


@cli.command()
@click.option("--file", "file", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--lookback", type=int, default=None, help="Rounds to evaluate")
@click.option("--steps", is_flag=True, help="Print every evaluated step")
@click.pass_context
def backtest(ctx: click.Context, file: Optional[Path], lookback: Optional[int], steps: bool):
    """Walk-forward backtest with Kelly-sized bets."""
    config: Config = ctx.obj["config"]
    history = _load(config, file)
    if lookback is not None and lookback < 0:
        raise click.BadParameter("lookback must be non-negative")

    report = run_backtest(history, lookback, config)
    table = Table(title="Backtest")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Sample", str(report.sample_size))
    table.add_row("Accuracy", f"{report.accuracy:.2%}")
    table.add_row("Final bankroll", f"{report.final_bankroll:.2f}")
    table.add_row("ROI", f"{report.roi:.2%}")
    table.add_row("Max drawdown", f"{report.max_drawdown:.2%}")
    table.add_row("Sharpe", f"{report.sharpe:.3f}")
    table.add_row("Brier", f"{report.brier_score:.4f}")
    table.add_row("Longest losing run", str(report.max_loss_streak))
    console.print(table)

    if steps:
        detail = Table(title="Steps")
        for column in ("Round", "Predicted", "Actual", "Confidence", "Bet", "Bankroll"):
            detail.add_column(column)
        for step in report.per_step_detail:
            style = "green" if step.correct else "red"
            detail.add_row(
                str(step.index),
                step.predicted.value,
                step.actual.value,
                f"{step.confidence:.3f}",
                f"{step.bet_size:.0f}",
                f"{step.bankroll_after:.2f}",
                style=style,
            )
        console.print(detail)


@cli.command()
@click.option("--file", "file", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--window", type=int, default=None, help="Trailing rounds to scan")
@click.pass_context
def motif(ctx: click.Context, file: Optional[Path], window: Optional[int]):
    """Detect the dominant bridge pattern."""
    config: Config = ctx.obj["config"]
    locale: str = ctx.obj["locale"]
    history = _load(config, file)
    signal = detect_dominant_motif(history, window, config)
    name = signal.motif_name or "-"
    console.print(
        f"[bold]{name}[/bold] → {outcome_name(signal.predicted, locale)} "
        f"({signal.confidence:.1%})"
    )
    for line in render_all(signal.reasons, locale):
        console.print(f"  - {line}")


@cli.command()
@click.option("--host", default=None)
@click.option("--port", type=int, default=None)
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn

    from taixiu.api.server import create_app

    config: Config = ctx.obj["config"]
    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
