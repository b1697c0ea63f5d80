"""Monte Carlo simulation orchestration and aggregation.

Main simulation engine: validates a scenario, draws the FAIR chain in chunks,
turns each draw into an annual loss through a Poisson event count, and
summarizes the sample sets into a ``RunResult``.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Generator, List, Optional, Sequence

import numpy as np
from scipy.stats import poisson

from ..reporting.reporting import ResultsCalculator
from .controls import select_baseline_controls, select_what_if_controls, sample_once_with_controls
from .data_models import (
    ChainSummary, Control, EventSampling, Quant, RunOptions, RunResult, SimulationProgress,
)
from .distributions import poisson_sample
from .exceptions import ComputationError, FairToolError, InvalidInputError, SimulationCancelledError
from .fair_model import Draw, sample_once
from .logging_config import get_logger, log_performance
from .performance import PerformanceTimer
from .random_source import RandomStreams
from .validation import clamp_chunk_size, clamp_curve_points, clamp_sim_count, validate_quant

logger = get_logger(__name__)

BASELINE = "baseline"
WHAT_IF = "whatif"

# Trace attributes averaged into ChainSummary; plain draws have no cuts
_CHAIN_FIELDS = {
    "avg_tef": "tef",
    "avg_susceptibility": "susceptibility",
    "avg_lef": "lef",
    "avg_tef_cut": "tef_cut",
    "avg_lef_cut": "lef_cut",
    "avg_lm_cut": "lm_cut",
}


@dataclass
class _RunPlan:
    quant: Quant
    controls: List[Control]
    sims: int
    seed: Optional[int]
    curve_points: int
    chunk_size: int
    event_sampling: EventSampling
    streams: RandomStreams
    sampler: Callable[[Quant, Any], Draw]


@dataclass
class _Accumulator:
    ale_samples: List[float] = field(default_factory=list)
    pel_samples: List[float] = field(default_factory=list)
    chain_totals: dict = field(default_factory=lambda: dict.fromkeys(_CHAIN_FIELDS, 0.0))

    def add(self, draw: Draw, events: int):
        pel = draw.per_event_loss
        self.ale_samples.append(events * pel)
        if events > 0:
            self.pel_samples.extend([pel] * events)
        for name, attr in _CHAIN_FIELDS.items():
            self.chain_totals[name] += getattr(draw, attr, 0.0)

    def chain(self) -> ChainSummary:
        n = len(self.ale_samples)
        if n == 0:
            return ChainSummary()
        return ChainSummary(**{name: total / n for name, total in self.chain_totals.items()})


class SimulationEngine:
    """Chunked Monte Carlo engine for one FAIR scenario."""

    def __init__(self, options: Optional[RunOptions] = None, variant: str = BASELINE) -> None:
        """Initialize simulation engine.

        Args:
            options: Run options; defaults apply when omitted
            variant: Label stored on the result (``baseline`` or ``whatif``)
        """
        self.options: RunOptions = options or RunOptions()
        self.variant = variant

    def run(self, quant: Any, controls: Optional[Sequence[Control]] = None) -> RunResult:
        """Run the simulation to completion.

        Args:
            quant: Quant or raw scenario mapping
            controls: Controls to apply, already selected for this variant by
                ``select_baseline_controls`` or ``select_what_if_controls``
                so every control has a stream key

        Returns:
            Immutable run result

        Raises:
            InvalidInputError: The scenario is missing required factors
            SimulationCancelledError: ``should_cancel`` returned True
            ComputationError: The draw loop failed unexpectedly
        """
        plan = self._prepare(quant, controls)
        with PerformanceTimer(f"{self.variant} run") as timer:
            chunks = self._iterate(plan)
            while True:
                try:
                    next(chunks)
                except StopIteration as stop:
                    acc = stop.value
                    break
        return self._finish(plan, acc, timer.duration)

    async def run_async(self, quant: Any, controls: Optional[Sequence[Control]] = None) -> RunResult:
        """Run the simulation, yielding to the event loop after every chunk."""
        plan = self._prepare(quant, controls)
        with PerformanceTimer(f"{self.variant} run") as timer:
            chunks = self._iterate(plan)
            while True:
                try:
                    next(chunks)
                except StopIteration as stop:
                    acc = stop.value
                    break
                await asyncio.sleep(0)
        return self._finish(plan, acc, timer.duration)

    def _prepare(self, quant: Any, controls: Optional[Sequence[Control]]) -> _RunPlan:
        report = validate_quant(quant)
        if not report.ok:
            logger.warning(f"Refusing to run {self.variant}: missing {', '.join(report.missing)}")
            raise InvalidInputError(report.missing)
        for warning in report.warnings:
            logger.warning(warning)

        q = report.quant
        opts = self.options
        seed = opts.seed if opts.seed is not None else q.seed
        selected = list(controls or [])
        streams = RandomStreams(seed)

        if selected:
            def sampler(q, rng):
                return sample_once_with_controls(
                    q, selected, rng, control_rng=lambda control: streams.control(control.key),
                )
        else:
            sampler = sample_once

        return _RunPlan(
            quant=q,
            controls=selected,
            sims=clamp_sim_count(opts.sims if opts.sims is not None else q.sims),
            seed=seed,
            curve_points=clamp_curve_points(opts.curve_points),
            chunk_size=clamp_chunk_size(opts.chunk_size),
            event_sampling=opts.event_sampling,
            streams=streams,
            sampler=sampler,
        )

    def _progress(self, done: int, total: int):
        if self.options.on_progress is None:
            return
        label = f"Running {total:,} simulations"
        if done:
            label += f" ({done:,}/{total:,})"
        self.options.on_progress(SimulationProgress(done=done, total=total, label=label))

    def _iterate(self, plan: _RunPlan) -> Generator[int, None, _Accumulator]:
        """Run chunk by chunk, yielding the draw count after each chunk."""
        logger.info(
            f"Starting {self.variant} run: {plan.sims:,} draws, seed={plan.seed}, "
            f"{len(plan.controls)} controls, events={plan.event_sampling.value}"
        )
        acc = _Accumulator()
        done = 0
        self._progress(done, plan.sims)

        while done < plan.sims:
            if self.options.should_cancel is not None and self.options.should_cancel():
                logger.info(f"{self.variant} run cancelled at {done:,}/{plan.sims:,}")
                raise SimulationCancelledError(done, plan.sims)

            n = min(plan.chunk_size, plan.sims - done)
            try:
                self._run_chunk(plan, acc, n)
            except FairToolError:
                raise
            except Exception as e:
                raise ComputationError(
                    f"Simulation failed after {done:,} draws: {e}",
                    operation="monte_carlo_chunk",
                    context={"variant": self.variant, "done": done},
                    cause=e,
                ) from e

            done += n
            self._progress(done, plan.sims)
            yield done

        return acc

    def _run_chunk(self, plan: _RunPlan, acc: _Accumulator, n: int):
        factors = plan.streams.factors
        events = plan.streams.events

        if plan.event_sampling == EventSampling.INVERSE_CDF:
            draws = [plan.sampler(plan.quant, factors) for _ in range(n)]
            counts = inverse_cdf_event_counts([d.lef for d in draws], events.uniforms(n))
            for draw, k in zip(draws, counts):
                acc.add(draw, int(k))
            return

        for _ in range(n):
            draw = plan.sampler(plan.quant, factors)
            acc.add(draw, poisson_sample(draw.lef, events))

    def _finish(self, plan: _RunPlan, acc: _Accumulator, duration: float) -> RunResult:
        calc = ResultsCalculator
        result = RunResult(
            variant=self.variant,
            sims=plan.sims,
            seed=plan.seed,
            last_run_at=datetime.now(timezone.utc).isoformat(),
            stats=calc.summarize(acc.ale_samples, acc.pel_samples),
            ale_samples=acc.ale_samples,
            pel_samples=acc.pel_samples,
            curve=calc.exceedance_curve(acc.ale_samples, plan.curve_points),
            chain=acc.chain(),
            controls_applied=[c.label for c in plan.controls],
            event_sampling=plan.event_sampling,
        )
        rate = plan.sims / duration if duration > 0 else float("inf")
        logger.info(
            f"Completed {self.variant} run: {plan.sims:,} draws in {duration:.3f}s "
            f"({rate:,.0f} draws/s), ALE median {result.stats.ale.ml:,.0f}, "
            f"P90 {result.stats.ale.p90:,.0f}"
        )
        return result


def inverse_cdf_event_counts(lefs: Sequence[float], uniforms: np.ndarray) -> np.ndarray:
    """Poisson event counts by inverse CDF, one uniform per draw.

    Zero rates give zero events. Counts are monotone in both the rate and the
    uniform, so two runs fed the same uniforms stay paired draw for draw.
    """
    lam = np.asarray(lefs, dtype=float)
    positive = lam > 0
    counts = poisson.ppf(uniforms, np.where(positive, lam, 1.0))
    counts = np.where(positive, counts, 0.0)
    return np.maximum(counts, 0).astype(np.int64)


@log_performance
def run_baseline(quant: Any,
                 options: Optional[RunOptions] = None,
                 controls: Optional[Sequence[Control]] = None) -> RunResult:
    """Baseline run; only implemented controls apply."""
    selected = select_baseline_controls(controls or [])
    return SimulationEngine(options, BASELINE).run(quant, selected)


@log_performance
def run_what_if(quant: Any,
                controls: Sequence[Control],
                options: Optional[RunOptions] = None) -> RunResult:
    """What-if run with implemented controls plus those flagged for the what-if."""
    selected = select_what_if_controls(controls or [])
    return SimulationEngine(options, WHAT_IF).run(quant, selected)


async def run_baseline_async(quant: Any,
                             options: Optional[RunOptions] = None,
                             controls: Optional[Sequence[Control]] = None) -> RunResult:
    selected = select_baseline_controls(controls or [])
    return await SimulationEngine(options, BASELINE).run_async(quant, selected)


async def run_what_if_async(quant: Any,
                            controls: Sequence[Control],
                            options: Optional[RunOptions] = None) -> RunResult:
    selected = select_what_if_controls(controls or [])
    return await SimulationEngine(options, WHAT_IF).run_async(quant, selected)
