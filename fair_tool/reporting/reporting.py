"""Results summarization and reporting.

Turns raw sample sets into headline quantiles and an exceedance curve, and
compares a baseline run with a what-if run.
"""

import math
from typing import Dict, List, Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.data_models import CurvePoint, DistributionStats, ExceedanceCurve, RunResult, RunStats

# Quantile levels behind DistributionStats; min/max are P1/P99
STAT_QUANTILES: Dict[str, float] = {
    "min": 0.01,
    "ml": 0.5,
    "max": 0.99,
    "p10": 0.1,
    "p90": 0.9,
}


class ResultsCalculator:
    """Calculates summary statistics from simulation sample sets."""

    @staticmethod
    def quantile(samples: Sequence[float], q: float, presorted: bool = False) -> float:
        """Quantile by linear interpolation between order statistics.

        The rank is ``q * (n - 1)`` on the sorted samples, so ``q=0`` gives the
        minimum and ``q=1`` the maximum.

        Args:
            samples: Sample values in any order
            q: Quantile level in [0, 1]; values outside are clamped
            presorted: Skip sorting when ``samples`` is already ascending

        Returns:
            The interpolated quantile; 0.0 for an empty sample set
        """
        data = np.asarray(samples, dtype=float)
        n = data.size
        if n == 0:
            return 0.0
        if not presorted:
            data = np.sort(data)

        q = min(1.0, max(0.0, float(q)))
        pos = (n - 1) * q
        base = math.floor(pos)
        rest = pos - base
        if base + 1 >= n:
            return float(data[base])
        lower = float(data[base])
        return lower + rest * (float(data[base + 1]) - lower)

    @staticmethod
    def distribution_stats(samples: Sequence[float]) -> DistributionStats:
        """P1 / median / P99 / P10 / P90 of a sample set (all 0 when empty)."""
        data = np.sort(np.asarray(samples, dtype=float))
        values = {
            name: ResultsCalculator.quantile(data, q, presorted=True)
            for name, q in STAT_QUANTILES.items()
        }
        return DistributionStats(**values)

    @staticmethod
    def exceedance_curve(samples: Sequence[float], points: int = 60) -> ExceedanceCurve:
        """Loss exceedance curve with ``points`` evenly spaced quantile levels.

        Point *i* uses ``q = i / (points - 1)``; its x is the sorted sample at
        index ``floor(q * (n - 1))`` and its exceedance probability is
        ``1 - q``. An empty sample set gives an empty curve.
        """
        data = np.sort(np.asarray(samples, dtype=float))
        n = data.size
        if n == 0 or points < 1:
            return ExceedanceCurve(points=[])

        curve = []
        for i in range(points):
            q = i / (points - 1) if points > 1 else 0.0
            x = float(data[math.floor(q * (n - 1))])
            curve.append(CurvePoint(x=x, exceedance_probability=1.0 - q))
        return ExceedanceCurve(points=curve)

    @staticmethod
    def summarize(ale_samples: Sequence[float], pel_samples: Sequence[float]) -> RunStats:
        return RunStats(
            ale=ResultsCalculator.distribution_stats(ale_samples),
            pel=ResultsCalculator.distribution_stats(pel_samples),
        )

    @staticmethod
    def mean(samples: Sequence[float]) -> float:
        return float(np.mean(samples)) if len(samples) else 0.0


class ControlsImpact(BaseModel):
    """Paired comparison of a what-if run against its baseline."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    baseline: DistributionStats
    what_if: DistributionStats
    delta: DistributionStats = Field(description="what-if minus baseline, per ALE statistic")
    p90_change_pct: Optional[float] = Field(None, description="Relative P90 change; None when baseline P90 is 0")
    mean_ale_delta: float = 0.0
    paired: bool = Field(False, description="Both runs used the same explicit seed")
    controls_applied: List[str] = Field(default_factory=list)


def compare_runs(baseline: RunResult, what_if: RunResult) -> ControlsImpact:
    """Deltas of the what-if ALE statistics against the baseline.

    A negative ``delta.p90`` means the what-if controls reduce the 90th
    percentile annual loss. The comparison is only a paired one when both runs
    used the same explicit seed.
    """
    b = baseline.stats.ale
    w = what_if.stats.ale
    delta = DistributionStats(**{
        name: getattr(w, name) - getattr(b, name) for name in STAT_QUANTILES
    })
    pct = (w.p90 - b.p90) / b.p90 * 100.0 if b.p90 else None

    return ControlsImpact(
        baseline=b,
        what_if=w,
        delta=delta,
        p90_change_pct=pct,
        mean_ale_delta=(
            ResultsCalculator.mean(what_if.ale_samples) - ResultsCalculator.mean(baseline.ale_samples)
        ),
        paired=baseline.seed is not None and baseline.seed == what_if.seed,
        controls_applied=list(what_if.controls_applied),
    )


def _money(x: float) -> str:
    return f"${x:,.0f}"


def create_simple_summary_report(results: RunResult, title: str = "FAIR Scenario") -> str:
    """Create a simple text summary report.

    Args:
        results: Run result
        title: Scenario name for the heading

    Returns:
        Formatted text report
    """
    ale = results.stats.ale
    pel = results.stats.pel
    report_lines = [
        f"Risk Analysis Summary - {title} ({results.variant})",
        "=" * 50,
        "",
        f"Simulations: {results.sims:,}",
        f"Seed: {results.seed if results.seed is not None else 'random'}",
        f"Run at: {results.last_run_at}",
        "",
        "Annual Loss Exposure:",
        f"  P10: {_money(ale.p10)}",
        f"  Median: {_money(ale.ml)}",
        f"  P90: {_money(ale.p90)}",
        f"  P1 / P99: {_money(ale.min)} / {_money(ale.max)}",
        "",
        "Per-Event Loss:",
        f"  P10: {_money(pel.p10)}",
        f"  Median: {_money(pel.ml)}",
        f"  P90: {_money(pel.p90)}",
        "",
        f"Average LEF: {results.chain.avg_lef:.3f} events/year",
    ]

    if results.controls_applied:
        report_lines.extend([
            "",
            "Controls Applied:",
        ])
        report_lines.extend(f"  - {name}" for name in results.controls_applied)

    return "\n".join(report_lines)
