"""Command-line interface for the FAIR simulation engine.

Runs baseline and what-if simulations for a scenario file, validates inputs,
verifies reproducibility and writes starter templates. Built with Typer, with
Rich tables and progress output.

Features:
- Baseline and what-if Monte Carlo runs with a paired-seed comparison
- Input validation listing every missing FAIR factor
- Determinism and pairing verification
- JSON result export and audit logging
"""

from contextlib import nullcontext
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from .core.aggregation import run_baseline, run_what_if
from .core.audit import AuditLogger, DeterminismVerifier
from .core.controls import control_effectiveness_triad, select_baseline_controls, select_what_if_controls
from .core.data_models import EventSampling, RunOptions, RunResult, SimulationProgress
from .core.exceptions import FairToolError
from .core.fair_model import point_estimate
from .core.logging_config import LoggingContext, get_logger, setup_logging
from .core.performance import PerformanceTimer, profiler
from .core.validation import validate_controls, validate_quant
from .io.io_json import JSONExporter, JSONImporter, ScenarioFile
from .reporting.reporting import ControlsImpact, compare_runs

app: typer.Typer = typer.Typer(help="FAIR Monte Carlo simulation for third-party risk scenarios")
console: Console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """FAIR Monte Carlo simulation for third-party risk scenarios."""
    setup_logging(log_level.upper(), log_file=log_file)


@app.command()
def run(
    scenario: Path = typer.Argument(..., help="Scenario JSON file"),
    sims: Optional[int] = typer.Option(None, "--sims", "-n", help="Number of simulation draws"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducibility"),
    curve_points: Optional[int] = typer.Option(None, "--curve-points", help="Exceedance curve points"),
    event_sampling: Optional[EventSampling] = typer.Option(None, "--event-sampling", help="Event count method"),
    what_if: bool = typer.Option(True, "--what-if/--baseline-only", help="Also run the what-if variant"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write results JSON here"),
    audit: Optional[Path] = typer.Option(None, "--audit", help="Write an audit log JSON here"),
    include_samples: bool = typer.Option(False, "--include-samples", help="Include raw samples in the JSON output"),
    profile: Optional[Path] = typer.Option(None, "--profile", help="Write cProfile stats for the runs here"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Run the baseline (and what-if) simulation for a scenario."""
    audit_logger = AuditLogger()

    try:
        console.print("[yellow]Loading scenario...[/yellow]")
        loaded = JSONImporter().import_scenario(scenario)

        report = validate_quant(loaded.quant)
        control_warnings = validate_controls(loaded.controls)
        audit_logger.log_validation_results(
            "scenario", report.ok, report.missing, report.warnings + control_warnings
        )
        _display_warnings(report.warnings + control_warnings)
        if not report.ok:
            _display_detailed_validation_results(report.missing, [])
            console.print("[red]❌ Validation failed. Please fix errors before running simulation.[/red]")
            raise typer.Exit(1)

        options = loaded.simulation.to_run_options(
            sims=sims, seed=seed, curve_points=curve_points, event_sampling=event_sampling,
        )
        if verbose:
            _display_scenario_summary(loaded)

        with profiler(str(profile)) if profile else nullcontext():
            baseline = _run_with_progress("Baseline", loaded, options, audit_logger, what_if=False, input_file=scenario)
        _display_results_summary(baseline)

        what_if_result = None
        if what_if and loaded.controls:
            with profiler(str(profile) + ".whatif") if profile else nullcontext():
                what_if_result = _run_with_progress("What-if", loaded, options, audit_logger, what_if=True, input_file=scenario)
            _display_results_summary(what_if_result)
            _display_impact(compare_runs(baseline, what_if_result))
        elif what_if:
            console.print("[blue]No controls in scenario; what-if run skipped.[/blue]")

        if output:
            exporter = JSONExporter()
            if what_if_result is not None:
                exporter.export_comparison(baseline, what_if_result, output, loaded.name, include_samples)
            else:
                exporter.export_result(baseline, output, loaded.name, include_samples)
            console.print(f"[blue]Results saved to: {output}[/blue]")

        if audit:
            audit_logger.export_audit_log(str(audit))
            console.print(f"[blue]Audit log saved to: {audit}[/blue]")

        console.print("[green]✅ Simulation completed successfully![/green]")

    except FairToolError as e:
        audit_logger.log_error(e.error_code, str(e), e.context)
        if audit:
            audit_logger.export_audit_log(str(audit))
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command()
def validate(
    scenario: Path = typer.Argument(..., help="Scenario JSON file"),
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Show detailed validation results"),
):
    """Validate a scenario without running it."""
    console.print("[yellow]Validating scenario...[/yellow]")

    try:
        loaded = JSONImporter().import_scenario(scenario)
    except FairToolError as e:
        console.print(f"[red]❌ Validation error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    report = validate_quant(loaded.quant)
    warnings = report.warnings + validate_controls(loaded.controls)

    if detailed or not report.ok:
        _display_detailed_validation_results(report.missing, warnings)
    _display_validation_summary(report.ok, len(report.missing), len(warnings))

    if not report.ok:
        raise typer.Exit(1)


@app.command()
def verify(
    scenario: Path = typer.Argument(..., help="Scenario JSON file"),
    runs: int = typer.Option(3, "--runs", help="Number of verification runs"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed to test"),
    sims: Optional[int] = typer.Option(None, "--sims", "-n", help="Draws per run"),
):
    """Verify run reproducibility and baseline/what-if pairing."""
    console.print(f"[yellow]Verifying reproducibility with {runs} runs...[/yellow]")

    try:
        loaded = JSONImporter().import_scenario(scenario)
        options = loaded.simulation.to_run_options(seed=seed, sims=sims)

        reproducibility = DeterminismVerifier.verify_reproducibility(
            loaded.quant, loaded.controls, options, runs
        )
        pairing = DeterminismVerifier.verify_pairing(loaded.quant, loaded.controls, options)
    except FairToolError as e:
        console.print(f"[red]❌ Verification error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if reproducibility["reproducible"]:
        console.print(f"[green]✅ Simulation is reproducible across {runs} runs[/green]")
        console.print(f"Random seed: {reproducibility['seed']}")
    else:
        console.print("[red]❌ Simulation is not reproducible[/red]")
        console.print(f"Reason: {reproducibility.get('reason', 'Unknown')}")

    if pairing["paired"]:
        console.print("[green]✅ Baseline and what-if draws are paired[/green]")
    else:
        console.print("[red]❌ Baseline and what-if draws are not paired[/red]")
        console.print(f"Reason: {pairing.get('reason', 'Unknown')}")

    if reproducibility["runs"]:
        table = Table(title="Verification Runs")
        table.add_column("Run")
        table.add_column("ALE Median", justify="right")
        table.add_column("ALE P90", justify="right")
        table.add_column("Hash")

        for entry in reproducibility["runs"]:
            table.add_row(
                str(entry["run_number"]),
                f"${entry['ale_median']:,.0f}",
                f"${entry['ale_p90']:,.0f}",
                entry["ale_hash"][:8] + "...",
            )
        console.print(table)

    if not (reproducibility["reproducible"] and pairing["paired"]):
        raise typer.Exit(1)


@app.command()
def template(
    output: Path = typer.Option(Path("scenario_template.json"), "--output", "-o", help="Output file"),
):
    """Write an example scenario file to start from."""
    try:
        JSONExporter().create_example_scenario(output)
    except FairToolError as e:
        console.print(f"[red]❌ Error creating template: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ Template created: {output}[/green]")


@app.command()
def info(
    scenario: Optional[Path] = typer.Argument(None, help="Scenario file to summarize"),
):
    """Show tool information and a scenario summary."""
    console.print("[bold blue]FAIR Tool Information[/bold blue]")
    console.print("=" * 50)
    console.print("Monte Carlo FAIR quantification with FAIR-CAM controls")
    console.print(f"Version: {__version__}")
    console.print("")

    if scenario:
        console.print(f"[yellow]Scenario Analysis: {scenario}[/yellow]")
        try:
            loaded = JSONImporter().import_scenario(scenario)
        except FairToolError as e:
            console.print(f"[red]❌ Error analyzing scenario: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        _display_scenario_summary(loaded)


# Utility functions

def _run_with_progress(label: str,
                       loaded: ScenarioFile,
                       options: RunOptions,
                       audit_logger: AuditLogger,
                       what_if: bool,
                       input_file: Optional[Path] = None) -> RunResult:
    """Run one variant behind a Rich progress bar and record it in the audit log."""
    variant = "whatif" if what_if else "baseline"
    entry_id = audit_logger.log_simulation_start(variant, loaded.quant, options, loaded.controls,
                                                 str(input_file) if input_file else None)

    with Progress(
        TextColumn("[bold green]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"{label} simulation", total=None)

        def on_progress(p: SimulationProgress):
            progress.update(task, completed=p.done, total=p.total)

        run_options = options.model_copy(update={"on_progress": on_progress})
        with LoggingContext(logger, simulation_id=entry_id, variant=variant), \
                PerformanceTimer(f"{variant} run") as timer:
            if what_if:
                result = run_what_if(loaded.quant, loaded.controls, run_options)
            else:
                result = run_baseline(loaded.quant, run_options, loaded.controls)

    audit_logger.log_simulation_end(result, timer.metrics(result.sims).to_dict())
    return result


def _money(x: float) -> str:
    return f"${x:,.0f}"


def _display_results_summary(result: RunResult):
    """Display one run's headline statistics."""
    title = "Baseline" if result.variant == "baseline" else "What-if"
    table = Table(title=f"{title} Results")
    table.add_column("Metric")
    table.add_column("Annual Loss", justify="right")
    table.add_column("Per-Event Loss", justify="right")

    ale = result.stats.ale
    pel = result.stats.pel
    table.add_row("P1", _money(ale.min), _money(pel.min))
    table.add_row("P10", _money(ale.p10), _money(pel.p10))
    table.add_row("Median", _money(ale.ml), _money(pel.ml))
    table.add_row("P90", _money(ale.p90), _money(pel.p90))
    table.add_row("P99", _money(ale.max), _money(pel.max))
    table.add_row("", "", "")
    table.add_row("Simulations", f"{result.sims:,}", "")
    table.add_row("Average LEF", f"{result.chain.avg_lef:.3f}", "")

    console.print(table)
    if result.controls_applied:
        console.print(f"Controls applied: {', '.join(result.controls_applied)}")


def _display_impact(impact: ControlsImpact):
    """Display what-if minus baseline for each ALE statistic."""
    table = Table(title="Controls Impact (what-if minus baseline)")
    table.add_column("Statistic")
    table.add_column("Baseline", justify="right")
    table.add_column("What-if", justify="right")
    table.add_column("Delta", justify="right")

    for name, label in (("p10", "P10"), ("ml", "Median"), ("p90", "P90"), ("max", "P99")):
        delta = getattr(impact.delta, name)
        color = "green" if delta < 0 else "red" if delta > 0 else "white"
        table.add_row(
            label,
            _money(getattr(impact.baseline, name)),
            _money(getattr(impact.what_if, name)),
            f"[{color}]{delta:+,.0f}[/{color}]",
        )
    console.print(table)

    if impact.p90_change_pct is not None:
        console.print(f"P90 change: {impact.p90_change_pct:+.1f}%")
    if not impact.paired:
        console.print("[orange3]Runs were not seeded; the comparison is not paired.[/orange3]")


def _display_scenario_summary(loaded: ScenarioFile):
    q = loaded.quant
    estimate = point_estimate(q)

    table = Table(title=f"Scenario: {loaded.name}")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Level", q.level.value)
    table.add_row("Susceptibility Mode", q.susceptibility_mode.value)
    table.add_row("Probability Units", q.probability_units.value)
    table.add_row("Simulations", f"{q.sims:,}")
    table.add_row("Seed", str(q.seed) if q.seed is not None else "random")
    if estimate.tef is not None:
        table.add_row("Most-likely TEF", f"{estimate.tef:.3f}")
    if estimate.susceptibility is not None:
        table.add_row("Most-likely Susceptibility", f"{estimate.susceptibility:.3f}")
    if estimate.lef is not None:
        table.add_row("Most-likely LEF", f"{estimate.lef:.3f}")
    table.add_row("Controls", str(len(loaded.controls)))
    table.add_row("Baseline Controls", str(len(select_baseline_controls(loaded.controls))))
    table.add_row("What-if Controls", str(len(select_what_if_controls(loaded.controls))))
    console.print(table)

    if loaded.controls:
        controls_table = Table(title="Controls")
        controls_table.add_column("Name")
        controls_table.add_column("Function")
        controls_table.add_column("Mechanism")
        controls_table.add_column("Status")
        controls_table.add_column("Effectiveness (min/ML/max)", justify="right")
        for c in loaded.controls:
            eff = control_effectiveness_triad(c)
            controls_table.add_row(
                c.label,
                c.function.value,
                c.mechanism_type.value if c.mechanism_type else "-",
                c.status.value,
                f"{eff.min:.3f} / {eff.ml:.3f} / {eff.max:.3f}",
            )
        console.print(controls_table)


def _display_warnings(warnings: List[str]):
    if warnings:
        console.print(f"[orange3]Warnings ({len(warnings)}):[/orange3]")
        for warning in warnings:
            console.print(f"  • {escape(warning)}")


def _display_validation_summary(is_valid: bool, error_count: int, warning_count: int):
    if is_valid:
        console.print("[green]✅ Validation passed[/green]")
    else:
        console.print("[red]❌ Validation failed[/red]")

    if error_count > 0:
        console.print(f"[red]Missing factors: {error_count}[/red]")

    if warning_count > 0:
        console.print(f"[orange3]Warnings: {warning_count}[/orange3]")


def _display_detailed_validation_results(missing: List[str], warnings: List[str]):
    if missing:
        console.print(f"[red]Missing ({len(missing)}):[/red]")
        for i, name in enumerate(missing, 1):
            console.print(f"  {i}. {escape(name)}")
        console.print()

    if warnings:
        console.print(f"[orange3]Warnings ({len(warnings)}):[/orange3]")
        for i, warning in enumerate(warnings, 1):
            console.print(f"  {i}. {escape(warning)}")
