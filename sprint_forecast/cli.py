from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sprint_forecast.common.logging_config import configure_logging
from sprint_forecast.config import EXAMPLE_CONFIG_TOML, ForecastConfig
from sprint_forecast.forecasting.domain.models import ForecastFailure, SprintWindow
from sprint_forecast.forecasting.services.forecasting_service import ForecastingService
from sprint_forecast.io.tickets import TicketLoadError, load_tickets


app = typer.Typer(add_completion=False, help="Forecast sprint delivery from ticket history.")


def _load_config(path: Optional[Path]) -> ForecastConfig:
    if path is None:
        return ForecastConfig()
    try:
        return ForecastConfig.load(path.expanduser())
    except (OSError, ValidationError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid configuration {path}: {exc}") from exc


def _load(path: Path):
    try:
        return load_tickets(path.expanduser())
    except TicketLoadError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _window(sprints: Optional[list[int]]) -> SprintWindow | None:
    if not sprints:
        return None
    try:
        return SprintWindow(tuple(sorted(sprints)))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _fail(failure: ForecastFailure) -> NoReturn:
    typer.echo(f"Forecast failed ({failure.kind.value}): {failure.message}", err=True)
    raise typer.Exit(code=1)


def _dump(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _override(model, **changes: Any):
    updates = {k: v for k, v in changes.items() if v is not None}
    if not updates:
        return model
    try:
        return model.model_validate({**model.model_dump(), **updates})
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def simulate(
    tickets: Path = typer.Argument(..., help="JSON file with ticket records"),
    config: Optional[Path] = typer.Option(None, help="Path to a sprint-forecast TOML config"),
    sprint: Optional[list[int]] = typer.Option(None, "--sprint", help="Explicit sprint to analyze (repeatable)"),
    sprints_to_analyze: Optional[int] = typer.Option(None, help="How many completed sprints to analyze"),
    review_sprint: Optional[int] = typer.Option(None, help="Sprint under review; forecast the next one"),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", help="Contributor absent next sprint"),
    iterations: Optional[int] = typer.Option(None, help="Monte Carlo trials"),
    sampling_mode: Optional[str] = typer.Option(None, help="historical | normal"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible runs"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
) -> None:
    """Forecast the next sprint by resampling each contributor's history."""
    cfg = _load_config(config)
    configure_logging(cfg.logging.level, cfg.logging.resolved_log_dir())

    options = _override(
        cfg.simulation,
        iterations=iterations,
        sampling_mode=sampling_mode,
        excluded_contributors=tuple(exclude) if exclude else None,
    )
    service = ForecastingService(config=cfg)
    outcome = service.analyze(
        _load(tickets),
        window=_window(sprint),
        options=options,
        source=service.random_source(seed),
        review_sprint=review_sprint,
        sprints_to_analyze=sprints_to_analyze,
    )
    if isinstance(outcome, ForecastFailure):
        _fail(outcome)

    if as_json:
        _dump(asdict(outcome))
        return

    console = Console()
    console.print(
        f"Sprints analyzed: {list(outcome.window.sprints)} -> forecasting sprint {outcome.next_sprint}"
    )

    people = Table(title="Contributors")
    for col in ("Name", "Active", "Tickets P15/P50/P85", "Points P15/P50/P85", "Reliable"):
        people.add_column(col)
    for c in outcome.contributors:
        people.add_row(
            c.name,
            f"{c.sprints_active}/{c.sprints_analyzed}",
            f"{c.throughput.p15}/{c.throughput.p50}/{c.throughput.p85}",
            f"{c.story_points.p15}/{c.story_points.p50}/{c.story_points.p85}",
            "yes" if c.is_reliable else "no",
        )
    console.print(people)

    scenarios = Table(title=f"Next sprint ({outcome.simulation.iterations} trials)")
    for col in ("Scenario", "Confidence", "Tickets", "Story points"):
        scenarios.add_column(col)
    for s in outcome.scenarios:
        scenarios.add_row(s.label, f"{s.confidence}%", str(s.throughput), str(s.story_points))
    console.print(scenarios)

    if outcome.simulation.is_empty:
        console.print("[yellow]No active contributor left to simulate; figures are placeholders.[/yellow]")
    if not outcome.has_enough_data:
        console.print("[yellow]No contributor has enough active sprints for reliable statistics.[/yellow]")


@app.command("how-many")
def how_many(
    tickets: Path = typer.Argument(..., help="JSON file with ticket records"),
    config: Optional[Path] = typer.Option(None, help="Path to a sprint-forecast TOML config"),
    metric: str = typer.Option("tickets", help="tickets | story_points"),
    sprint: Optional[list[int]] = typer.Option(None, "--sprint", help="Explicit sprint to include (repeatable)"),
    weighting: Optional[bool] = typer.Option(None, "--weighting/--no-weighting", help="Favor recent sprints"),
    exclude_outliers: Optional[bool] = typer.Option(
        None,
        "--exclude-outliers/--keep-outliers",
        help="Drop unusually low sprints",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
) -> None:
    """Project how much the team delivers over the next few sprints."""
    if metric not in ("tickets", "story_points"):
        raise typer.BadParameter("metric must be one of: tickets, story_points")
    cfg = _load_config(config)
    configure_logging(cfg.logging.level, cfg.logging.resolved_log_dir())

    options = _override(cfg.horizon, use_weighting=weighting, exclude_outliers=exclude_outliers)
    service = ForecastingService(config=cfg)
    outcome = service.how_many(_load(tickets), metric=metric, window=_window(sprint), options=options)  # type: ignore[arg-type]
    if isinstance(outcome, ForecastFailure):
        _fail(outcome)

    if as_json:
        _dump(
            {
                "results": {weeks: asdict(p) for weeks, p in outcome.by_weeks().items()},
                "metadata": asdict(outcome.metadata),
            }
        )
        return

    meta = outcome.metadata
    console = Console()
    table = Table(title=f"How many {metric.replace('_', ' ')}?")
    for col in ("Horizon", *(f"P{q}" for q in options.percentiles), "Mean"):
        table.add_column(col)
    for weeks, p in outcome.by_weeks().items():
        table.add_row(
            f"{weeks} weeks ({p.sprints} sprints)",
            *(str(p.percentiles[q]) for q in options.percentiles),
            str(p.mean),
        )
    console.print(table)
    console.print(
        f"Sprints used {meta.sprints_used}/{meta.sprints_analyzed}, "
        f"mean {meta.base_mean} ± {meta.base_std_dev}, "
        f"trend {meta.trend.direction} ({meta.trend.strength}), "
        f"stability {meta.stability.level}"
    )
    if meta.outliers:
        console.print(f"Excluded low sprints: {list(meta.outliers)}")


@app.command("init-config")
def init_config(
    path: str = typer.Argument(
        "sprint_forecast.toml",
        help="Where to write the configuration TOML",
    ),
) -> None:
    """Write an example configuration file."""
    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(EXAMPLE_CONFIG_TOML, encoding="utf-8")
    typer.echo(f"Wrote {out} (edit it, then run: sprint-forecast simulate tickets.json --config {out})")
