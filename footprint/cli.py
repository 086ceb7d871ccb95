from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from footprint.auth import resolve_github_token
from footprint.compare import compare_snapshots
from footprint.config import (
    FootprintConfig,
    load_config,
    save_config,
    with_overrides,
)
from footprint.filters import build_path_filter
from footprint.locator import ArtifactTooLargeError, locate_baseline
from footprint.logging_config import setup_logging
from footprint.models import DiffResult, Snapshot
from footprint.outputs import build_outputs, write_outputs
from footprint.records import STATS_FILE, load_snapshot, save_snapshot
from footprint.retry import RetryPolicy
from footprint.scanner import scan_build_output_with_progress
from footprint.store import DEFAULT_API_URL, ArtifactStore


app = typer.Typer(help="Track shipped asset size against a stored baseline.")
console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {"pass": "green", "fail": "red", "no-baseline": "yellow"}
THRESHOLD_STYLES = {"ok": "green", "warn": "yellow", "fail": "red"}


def _format_bytes(value: int, *, signed: bool = False) -> str:
    sign = "+" if signed and value > 0 else ""
    magnitude = abs(value)
    prefix = "-" if value < 0 else sign
    if magnitude < 1024:
        return f"{prefix}{magnitude} B"
    return f"{prefix}{magnitude / 1024:.2f} KB"


def _format_percent(value: float) -> str:
    return f"{value:+.2f}%"


def _render_snapshot(title: str, snapshot: Snapshot) -> None:
    table = Table(title=title)
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Gzip", justify="right")
    table.add_column("Brotli", justify="right")

    for record in snapshot.files:
        table.add_row(
            record.path,
            _format_bytes(record.size),
            _format_bytes(record.gzip),
            _format_bytes(record.brotli),
        )
    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        _format_bytes(snapshot.total_size),
        _format_bytes(snapshot.total_gzip),
        _format_bytes(snapshot.total_brotli),
    )
    console.print(table)


def _render_diff(diff: DiffResult) -> None:
    if diff.baseline is None:
        console.print(
            Text("No baseline available; reporting current totals only.", style="yellow")
        )
        _render_snapshot("Current build", diff.current)
        return

    summary = Table(title=f"Size vs. baseline {diff.baseline.commit[:7]}")
    summary.add_column("Metric")
    summary.add_column("Baseline", justify="right")
    summary.add_column("Current", justify="right")
    summary.add_column("Diff", justify="right")
    summary.add_column("%", justify="right")
    for metric, diff_value, percent in (
        ("size", diff.diff_size, diff.diff_percent_size),
        ("gzip", diff.diff_gzip, diff.diff_percent_gzip),
        ("brotli", diff.diff_brotli, diff.diff_percent_brotli),
    ):
        label = f"{metric} *" if metric == diff.compare_metric else metric
        summary.add_row(
            label,
            _format_bytes(diff.baseline.total(metric)),
            _format_bytes(diff.current.total(metric)),
            _format_bytes(diff_value, signed=True),
            _format_percent(percent),
        )
    console.print(summary)

    if diff.top_changes:
        changes = Table(title=f"Largest changes ({diff.compare_metric})")
        changes.add_column("File")
        changes.add_column("Before", justify="right")
        changes.add_column("After", justify="right")
        changes.add_column("Diff", justify="right")
        for change in diff.top_changes:
            changes.add_row(
                change.file,
                _format_bytes(change.before),
                _format_bytes(change.after),
                _format_bytes(change.diff, signed=True),
            )
        console.print(changes)

    if diff.threshold_message:
        console.print(
            Text(diff.threshold_message, style=THRESHOLD_STYLES[diff.threshold_status])
        )
    if diff.budget_max_increase_kb is not None:
        console.print(f"Budget: +{diff.budget_max_increase_kb:g} KB ({diff.compare_metric})")


def _render_status(diff: DiffResult) -> None:
    console.print(
        Text(f"Status: {diff.status}", style=f"bold {STATUS_STYLES[diff.status]}")
    )


def _resolve_config(**overrides) -> FootprintConfig:
    return with_overrides(load_config(), **overrides)


def _scratch_root() -> str | None:
    runner_temp = os.getenv("RUNNER_TEMP", "").strip()
    return runner_temp or None


async def _fetch_baseline(config: FootprintConfig) -> Snapshot | None:
    if not config.repo:
        logger.warning("No repository configured (set `repo` or GITHUB_REPOSITORY); skipping baseline.")
        return None

    token = resolve_github_token(config.token)
    if not token:
        logger.warning("No GitHub token found; listing artifacts anonymously.")

    api_url = os.getenv("GITHUB_API_URL", "").strip() or DEFAULT_API_URL
    try:
        # Per-run scratch directory; concurrent runs never share extraction output.
        with tempfile.TemporaryDirectory(prefix="footprint-", dir=_scratch_root()) as scratch:
            async with ArtifactStore(config.repo, token, api_url=api_url) as store:
                return await locate_baseline(
                    store,
                    work_dir=Path(scratch),
                    accepted_branches=config.baseline_branches,
                    max_pages=config.max_pages,
                    retry_policy=RetryPolicy(),
                )
    except (ValueError, OSError) as exc:
        logger.warning("Baseline unavailable: %s", exc)
        return None


def _scan(config: FootprintConfig, include: tuple[str, ...], exclude: tuple[str, ...]) -> Snapshot:
    path_filter = build_path_filter(include, exclude)
    root = config.dist_root
    console.print(f"Scanning [bold]{root}[/bold] ...")
    snapshot = scan_build_output_with_progress(
        root,
        gzip=config.gzip,
        brotli=config.brotli,
        path_filter=path_filter,
        console=console,
    )
    logger.info("Scanned %d files", len(snapshot.files))
    return snapshot


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
) -> None:
    setup_logging(verbose=verbose, quiet=quiet)


@app.command()
def init(
    repo: str | None = typer.Option(None, "--repo", help="Repository as owner/name."),
    dist: str | None = typer.Option(None, "--dist", help="Build output directory."),
) -> None:
    """Write a .footprint.json with defaults in the current directory."""
    try:
        config = with_overrides(FootprintConfig(), repo=repo, dist_path=dist)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    path = save_config(config, Path.cwd())
    console.print(f"[green]Initialized footprint[/green] config at {path}")
    if not config.repo:
        console.print(
            "[yellow]No repository detected. Set `repo` before fetching baselines.[/yellow]"
        )


@app.command()
def scan(
    dist: str | None = typer.Argument(None, help="Build output directory. Defaults to config."),
    gzip: bool | None = typer.Option(None, "--gzip/--no-gzip", help="Measure gzip size."),
    brotli: bool | None = typer.Option(None, "--brotli/--no-brotli", help="Measure brotli size."),
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) (repeatable)."
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the snapshot record here."),
) -> None:
    """Measure the build output and print its footprint."""
    try:
        config = _resolve_config(dist_path=dist, gzip=gzip, brotli=brotli)
        snapshot = _scan(config, tuple(include or ()), tuple(exclude or ()))
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    _render_snapshot("Current build", snapshot)
    if output is not None:
        save_snapshot(snapshot, output)
        console.print(f"Snapshot written to {output}")
    write_outputs(build_outputs(snapshot))


async def _fetch_async(config: FootprintConfig, output: Path) -> int:
    try:
        baseline = await _fetch_baseline(config)
    except (ValueError, ArtifactTooLargeError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    if baseline is None:
        console.print("[yellow]No baseline available.[/yellow]")
        return 0
    save_snapshot(baseline, output)
    console.print(f"Baseline from commit {baseline.commit[:7]} written to {output}")
    return 0


@app.command()
def fetch(
    output: Path = typer.Option(Path("baseline-stats.json"), "--output", "-o", help="Where to write the baseline record."),
    repo: str | None = typer.Option(None, "--repo", help="Repository as owner/name."),
    branch: list[str] | None = typer.Option(
        None, "--branch", help="Accepted baseline branch (repeatable)."
    ),
    max_pages: int | None = typer.Option(None, "--max-pages", help="Artifact listing page budget."),
) -> None:
    """Download the latest baseline record from the artifact store."""
    try:
        config = _resolve_config(repo=repo, baseline_branches=branch or None, max_pages=max_pages)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    raise typer.Exit(code=asyncio.run(_fetch_async(config, output)))


async def _compare_async(
    config: FootprintConfig,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    baseline_file: Path | None,
) -> int:
    try:
        current = _scan(config, include, exclude)
        if baseline_file is not None:
            baseline = load_snapshot(baseline_file)
        else:
            baseline = await _fetch_baseline(config)
    except (FileNotFoundError, ValueError, ArtifactTooLargeError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    diff = compare_snapshots(
        baseline,
        current,
        budget_kb=config.budget_max_increase_kb,
        warn_kb=config.warn_above_kb,
        fail_kb=config.fail_above_kb,
        prefer_brotli=config.brotli,
        prefer_gzip=config.gzip,
    )
    _render_diff(diff)
    _render_status(diff)
    write_outputs(build_outputs(current, diff))
    return 1 if diff.status == "fail" else 0


@app.command()
def compare(
    dist: str | None = typer.Argument(None, help="Build output directory. Defaults to config."),
    baseline: Path | None = typer.Option(
        None, "--baseline", help="Compare against this record instead of the artifact store."
    ),
    gzip: bool | None = typer.Option(None, "--gzip/--no-gzip", help="Measure gzip size."),
    brotli: bool | None = typer.Option(None, "--brotli/--no-brotli", help="Measure brotli size."),
    budget_max_increase_kb: float | None = typer.Option(
        None, "--budget-max-increase-kb", help="Fail when the total grows by more than this."
    ),
    warn_above_kb: float | None = typer.Option(
        None, "--warn-above-kb", help="Warn when a single file grows by at least this."
    ),
    fail_above_kb: float | None = typer.Option(
        None, "--fail-above-kb", help="Fail when a single file grows by at least this."
    ),
    branch: list[str] | None = typer.Option(
        None, "--branch", help="Accepted baseline branch (repeatable)."
    ),
    max_pages: int | None = typer.Option(None, "--max-pages", help="Artifact listing page budget."),
    repo: str | None = typer.Option(None, "--repo", help="Repository as owner/name."),
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) (repeatable)."
    ),
) -> None:
    """Measure the build and compare it with the stored baseline."""
    try:
        config = _resolve_config(
            dist_path=dist,
            gzip=gzip,
            brotli=brotli,
            budget_max_increase_kb=budget_max_increase_kb,
            warn_above_kb=warn_above_kb,
            fail_above_kb=fail_above_kb,
            baseline_branches=branch or None,
            max_pages=max_pages,
            repo=repo,
        )
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    raise typer.Exit(
        code=asyncio.run(
            _compare_async(config, tuple(include or ()), tuple(exclude or ()), baseline)
        )
    )


@app.command()
def save(
    dist: str | None = typer.Argument(None, help="Build output directory. Defaults to config."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", help=f"Directory for {STATS_FILE}. Defaults to RUNNER_TEMP."
    ),
    gzip: bool | None = typer.Option(None, "--gzip/--no-gzip", help="Measure gzip size."),
    brotli: bool | None = typer.Option(None, "--brotli/--no-brotli", help="Measure brotli size."),
) -> None:
    """Write the baseline record for a workflow upload step to publish."""
    try:
        config = _resolve_config(dist_path=dist, gzip=gzip, brotli=brotli)
        snapshot = _scan(config, (), ())
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    target_dir = output_dir or Path(_scratch_root() or tempfile.gettempdir())
    path = save_snapshot(snapshot, target_dir / STATS_FILE)
    console.print(f"[green]Baseline record written[/green] to {path}")
    write_outputs(build_outputs(snapshot))
