"""Tests for result summaries, exceedance curves and run comparison."""

import pytest

from fair_tool.core.aggregation import run_baseline, run_what_if
from fair_tool.core.data_models import RunOptions
from fair_tool.reporting.reporting import (
    ResultsCalculator, compare_runs, create_simple_summary_report,
)


class TestQuantile:
    """Test linear-interpolation quantiles."""

    def test_empty_is_zero(self):
        assert ResultsCalculator.quantile([], 0.5) == 0.0

    def test_single_value(self):
        assert ResultsCalculator.quantile([7.0], 0.9) == 7.0

    def test_interpolates(self):
        data = [40.0, 10.0, 30.0, 20.0]
        assert ResultsCalculator.quantile(data, 0.0) == 10.0
        assert ResultsCalculator.quantile(data, 1.0) == 40.0
        assert ResultsCalculator.quantile(data, 0.5) == pytest.approx(25.0)
        assert ResultsCalculator.quantile(data, 0.9) == pytest.approx(37.0)

    def test_out_of_range_levels_are_clamped(self):
        data = [1.0, 2.0, 3.0]
        assert ResultsCalculator.quantile(data, -0.5) == 1.0
        assert ResultsCalculator.quantile(data, 1.5) == 3.0

    def test_distribution_stats(self):
        stats = ResultsCalculator.distribution_stats([float(i) for i in range(101)])
        assert stats.min == pytest.approx(1.0)
        assert stats.p10 == pytest.approx(10.0)
        assert stats.ml == pytest.approx(50.0)
        assert stats.p90 == pytest.approx(90.0)
        assert stats.max == pytest.approx(99.0)

    def test_distribution_stats_empty(self):
        stats = ResultsCalculator.distribution_stats([])
        assert (stats.min, stats.ml, stats.max, stats.p10, stats.p90) == (0.0, 0.0, 0.0, 0.0, 0.0)


class TestExceedanceCurve:
    """Test loss exceedance curve construction."""

    def test_empty_samples(self):
        curve = ResultsCalculator.exceedance_curve([], 60)
        assert curve.points == []
        assert curve.min == 0.0
        assert curve.max == 0.0

    def test_constant_samples(self):
        curve = ResultsCalculator.exceedance_curve([5.0] * 100, 21)
        assert len(curve.points) == 21
        assert all(p.x == 5.0 for p in curve.points)
        probs = [p.exceedance_probability for p in curve.points]
        assert probs[0] == 1.0
        assert probs[-1] == 0.0
        assert probs[10] == pytest.approx(0.5)
        assert all(a > b for a, b in zip(probs, probs[1:]))

    def test_endpoints_are_sample_extremes(self):
        samples = [3.0, 1.0, 9.0, 4.0, 7.0]
        curve = ResultsCalculator.exceedance_curve(samples, 20)
        assert curve.min == 1.0
        assert curve.max == 9.0
        xs = [p.x for p in curve.points]
        assert xs == sorted(xs)
        assert set(xs) <= set(samples)


class TestCompareRuns:
    """Test baseline/what-if comparison."""

    @pytest.fixture
    def paired_runs(self, tef_quant, control_factory):
        controls = [control_factory("mfa", "Avoidance", status="Proposed", include_in_what_if=True)]
        options = RunOptions(sims=2000, seed=21)
        return run_baseline(tef_quant, options, controls), run_what_if(tef_quant, controls, options)

    def test_deltas(self, paired_runs):
        baseline, what_if = paired_runs
        impact = compare_runs(baseline, what_if)
        assert impact.paired is True
        assert impact.controls_applied == ["mfa"]
        assert impact.delta.p90 == pytest.approx(what_if.stats.ale.p90 - baseline.stats.ale.p90)
        assert impact.delta.p90 < 0
        assert impact.mean_ale_delta < 0
        assert impact.p90_change_pct == pytest.approx(impact.delta.p90 / baseline.stats.ale.p90 * 100)

    def test_identical_runs_have_zero_delta(self, tef_quant):
        options = RunOptions(sims=1000, seed=3)
        baseline = run_baseline(tef_quant, options)
        impact = compare_runs(baseline, run_what_if(tef_quant, [], options))
        assert impact.delta.p90 == 0.0
        assert impact.mean_ale_delta == 0.0
        assert impact.p90_change_pct == 0.0

    def test_unseeded_runs_are_not_paired(self, lef_quant_data):
        lef_quant_data.pop("seed")
        options = RunOptions(sims=1000)
        impact = compare_runs(run_baseline(lef_quant_data, options), run_what_if(lef_quant_data, [], options))
        assert impact.paired is False

    def test_zero_baseline_p90(self, lef_quant_data):
        lef_quant_data["primaryLoss"] = {"min": 0, "ml": 0, "max": 0}
        options = RunOptions(sims=1000, seed=1)
        baseline = run_baseline(lef_quant_data, options)
        impact = compare_runs(baseline, baseline)
        assert baseline.stats.ale.p90 == 0.0
        assert impact.p90_change_pct is None


class TestSummaryReport:
    """Test the plain text summary."""

    def test_report_contents(self, tef_quant, control_factory):
        controls = [control_factory("mfa", "Resistance")]
        result = run_baseline(tef_quant, RunOptions(sims=1000, seed=5), controls)
        report = create_simple_summary_report(result, "Vendor breach")
        assert "Risk Analysis Summary - Vendor breach (baseline)" in report
        assert "Simulations: 1,000" in report
        assert "Seed: 5" in report
        assert "Controls Applied:" in report
        assert "  - mfa" in report

    def test_unseeded_report(self, lef_quant_data):
        lef_quant_data.pop("seed")
        result = run_baseline(lef_quant_data, RunOptions(sims=1000))
        report = create_simple_summary_report(result)
        assert "Seed: random" in report
        assert "Controls Applied:" not in report
