"""Tests for the chunked Monte Carlo runner."""

import asyncio

import numpy as np
import pytest

from fair_tool.core import aggregation
from fair_tool.core.aggregation import (
    SimulationEngine, inverse_cdf_event_counts, run_baseline, run_baseline_async,
    run_what_if, run_what_if_async,
)
from fair_tool.core.data_models import Control, EventSampling, RunOptions
from fair_tool.core.exceptions import ComputationError, InvalidInputError, SimulationCancelledError


class TestEndToEnd:
    """End-to-end runs of known scenarios."""

    def test_lef_scenario(self, lef_quant_data):
        result = run_baseline(lef_quant_data)
        assert result.sims == 20000
        assert result.seed == 42
        assert len(result.ale_samples) == 20000
        # E[LEF] x median PEL sits a little above 2 x 5000
        assert 5000 < result.stats.ale.ml < 25000
        assert result.stats.ale.p90 > result.stats.ale.ml
        assert result.stats.ale.min <= result.stats.ale.p10 <= result.stats.ale.ml
        assert result.stats.ale.p90 <= result.stats.ale.max
        assert 1000 <= result.stats.pel.min <= result.stats.pel.max <= 20000
        assert result.chain.avg_lef == pytest.approx(7 / 3, rel=0.02)
        assert result.variant == "baseline"
        assert result.last_run_at.endswith("+00:00")

    def test_pel_recorded_once_per_event(self, lef_quant_data):
        lef_quant_data["sims"] = 2000
        result = run_baseline(lef_quant_data)
        events = sum(1 for x in result.ale_samples if x > 0)
        assert len(result.pel_samples) >= events
        assert len(result.pel_samples) == pytest.approx(2000 * 7 / 3, rel=0.06)

    def test_curve_shape(self, lef_quant_data):
        lef_quant_data["sims"] = 2000
        result = run_baseline(lef_quant_data, RunOptions(curve_points=25))
        points = result.curve.points
        assert len(points) == 25
        assert points[0].exceedance_probability == 1.0
        assert points[-1].exceedance_probability == 0.0
        assert all(a.x <= b.x for a, b in zip(points, points[1:]))
        assert result.curve.min == min(result.ale_samples)
        assert result.curve.max == max(result.ale_samples)

    def test_missing_factors_refuse_to_run(self):
        with pytest.raises(InvalidInputError) as exc_info:
            run_baseline({"level": "TEF"})
        missing = exc_info.value.missing
        assert "TEF (min/ML/max)" in missing
        assert "Susceptibility (min/ML/max)" in missing
        assert "Primary Loss (min/ML/max)" in missing
        assert len(missing) == 5

    def test_sim_count_is_clamped(self, lef_quant):
        result = run_baseline(lef_quant, RunOptions(sims=10, seed=1))
        assert result.sims == 1000
        assert len(result.ale_samples) == 1000

    def test_option_seed_overrides_quant_seed(self, lef_quant):
        a = run_baseline(lef_quant, RunOptions(sims=1000, seed=5))
        b = run_baseline(lef_quant, RunOptions(sims=1000, seed=5))
        c = run_baseline(lef_quant, RunOptions(sims=1000))
        assert a.seed == 5
        assert c.seed == 42
        assert a.ale_samples == b.ale_samples
        assert a.ale_samples != c.ale_samples

    def test_results_cached_on_quant(self, lef_quant):
        result = run_baseline(lef_quant, RunOptions(sims=1000, seed=3))
        cached = lef_quant.with_results(result)
        assert cached.sims == 1000
        assert cached.last_run_at == result.last_run_at
        assert cached.ale_samples == result.ale_samples
        assert cached.pel_samples == result.pel_samples
        assert cached.stats["ale"]["p90"] == result.stats.ale.p90
        assert len(cached.curve["points"]) == len(result.curve.points)
        assert cached.primary_loss == lef_quant.primary_loss
        assert lef_quant.ale_samples == []
        assert lef_quant.stats is None

    def test_unseeded_runs_differ(self, lef_quant_data):
        lef_quant_data.pop("seed")
        a = run_baseline(lef_quant_data, RunOptions(sims=1000))
        b = run_baseline(lef_quant_data, RunOptions(sims=1000))
        assert a.seed is None
        assert a.ale_samples != b.ale_samples


class TestPairing:
    """Test baseline/what-if pairing under a shared seed."""

    def test_no_controls_is_bitwise_identical(self, tef_quant):
        options = RunOptions(sims=2000, seed=99)
        baseline = run_baseline(tef_quant, options)
        what_if = run_what_if(tef_quant, [], options)
        assert baseline.ale_samples == what_if.ale_samples
        assert baseline.pel_samples == what_if.pel_samples
        assert baseline.stats == what_if.stats
        assert what_if.variant == "whatif"

    def test_only_implemented_controls_is_identical(self, tef_quant, control_factory):
        controls = [
            control_factory("mfa", "Resistance"),
            control_factory("idea", "Avoidance", status="Proposed"),
        ]
        options = RunOptions(sims=1000, seed=4)
        baseline = run_baseline(tef_quant, options, controls)
        what_if = run_what_if(tef_quant, controls, options)
        assert baseline.ale_samples == what_if.ale_samples
        assert baseline.controls_applied == ["mfa"]

    def test_unnamed_controls_keep_their_own_streams(self, tef_quant):
        implemented = Control.model_validate({
            "function": "LEC", "mechanismType": "Avoidance", "status": "Implemented",
            "intendedRating": "High", "coverageRating": "High", "reliabilityRating": "High",
        })
        proposed = Control.model_validate({
            "function": "LEC", "status": "Proposed", "includeInWhatIf": True,
            "intendedRating": "High", "coverageRating": "High", "reliabilityRating": "High",
        })
        options = RunOptions(sims=1000, seed=4)
        baseline = run_baseline(tef_quant, options, [implemented, proposed])
        what_if = run_what_if(tef_quant, [implemented, proposed], options)
        assert baseline.ale_samples == what_if.ale_samples
        assert baseline.controls_applied == ["unnamed-0"]

    def test_proposed_controls_ignored_in_baseline(self, tef_quant, control_factory):
        options = RunOptions(sims=1000, seed=4)
        proposed = control_factory("idea", "Avoidance", status="Proposed", include_in_what_if=True)
        assert run_baseline(tef_quant, options, [proposed]).ale_samples == run_baseline(tef_quant, options).ale_samples

    def test_inverse_cdf_counts_are_paired_and_monotone(self, tef_quant, control_factory):
        options = RunOptions(sims=2000, seed=8, event_sampling=EventSampling.INVERSE_CDF)
        detect = control_factory("detect", "Detection", status="Proposed", include_in_what_if=True)
        baseline = run_baseline(tef_quant, options, [detect])
        what_if = run_what_if(tef_quant, [detect], options)
        assert what_if.event_sampling == EventSampling.INVERSE_CDF
        assert all(w <= b for w, b in zip(what_if.ale_samples, baseline.ale_samples))
        assert np.mean(what_if.ale_samples) < np.mean(baseline.ale_samples)

    @pytest.mark.parametrize("mechanism", [
        "Avoidance", "Deterrence", "Resistance", "Detection", "Response", "Resilience", "Loss Minimization",
    ])
    def test_controls_never_increase_expected_loss(self, derived_quant, control_factory, mechanism):
        options = RunOptions(sims=2000, seed=12)
        control = control_factory("c", mechanism, status="Proposed", include_in_what_if=True)
        baseline = run_baseline(derived_quant, options)
        what_if = run_what_if(derived_quant, [control], options)
        assert what_if.chain.avg_lef <= baseline.chain.avg_lef
        assert np.mean(what_if.ale_samples) <= np.mean(baseline.ale_samples)
        assert what_if.controls_applied == ["c"]


class TestChunking:
    """Test progress, cancellation and async execution."""

    def test_progress_reports(self, tef_quant):
        seen = []
        options = RunOptions(sims=1000, seed=1, chunk_size=300, on_progress=seen.append)
        run_baseline(tef_quant, options)
        assert [p.done for p in seen] == [0, 300, 600, 900, 1000]
        assert all(p.total == 1000 for p in seen)
        assert seen[-1].fraction == 1.0
        assert "1,000" in seen[0].label

    def test_chunk_size_does_not_change_results(self, tef_quant):
        small = run_baseline(tef_quant, RunOptions(sims=1000, seed=2, chunk_size=100))
        large = run_baseline(tef_quant, RunOptions(sims=1000, seed=2, chunk_size=5000))
        assert small.ale_samples == large.ale_samples

    def test_cancellation(self, tef_quant):
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 2

        options = RunOptions(sims=5000, seed=1, chunk_size=500, should_cancel=should_cancel)
        with pytest.raises(SimulationCancelledError) as exc_info:
            run_baseline(tef_quant, options)
        assert exc_info.value.cancelled is True
        assert exc_info.value.done == 1000
        assert exc_info.value.total == 5000

    def test_cancel_before_start(self, tef_quant):
        options = RunOptions(sims=1000, should_cancel=lambda: True)
        with pytest.raises(SimulationCancelledError) as exc_info:
            run_baseline(tef_quant, options)
        assert exc_info.value.done == 0

    def test_async_matches_sync(self, tef_quant, control_factory):
        controls = [control_factory("a", "Avoidance", status="Proposed", include_in_what_if=True)]
        options = RunOptions(sims=1000, seed=31)
        sync_baseline = run_baseline(tef_quant, options)
        sync_what_if = run_what_if(tef_quant, controls, options)
        async_baseline = asyncio.run(run_baseline_async(tef_quant, options))
        async_what_if = asyncio.run(run_what_if_async(tef_quant, controls, options))
        assert async_baseline.ale_samples == sync_baseline.ale_samples
        assert async_what_if.ale_samples == sync_what_if.ale_samples

    def test_async_yields_between_chunks(self, tef_quant):
        ticks = []

        async def ticker():
            while True:
                ticks.append(1)
                await asyncio.sleep(0)

        async def main():
            task = asyncio.create_task(ticker())
            await SimulationEngine(RunOptions(sims=1000, seed=1, chunk_size=100)).run_async(tef_quant)
            task.cancel()

        asyncio.run(main())
        assert len(ticks) >= 5

    def test_unexpected_failure_is_wrapped(self, tef_quant, monkeypatch):
        def boom(lam, rng):
            raise ValueError("bad rate")

        monkeypatch.setattr(aggregation, "poisson_sample", boom)
        with pytest.raises(ComputationError) as exc_info:
            run_baseline(tef_quant, RunOptions(sims=1000, seed=1))
        assert isinstance(exc_info.value.cause, ValueError)


class TestInverseCdfCounts:
    """Test vectorised inverse-CDF event counts."""

    def test_zero_rate_gives_zero(self):
        counts = inverse_cdf_event_counts([0.0, 0.0], np.array([0.5, 0.99]))
        assert counts.tolist() == [0, 0]

    def test_zero_uniform_gives_zero(self):
        assert inverse_cdf_event_counts([3.0], np.array([0.0])).tolist() == [0]

    def test_monotone_in_rate(self):
        u = np.full(5, 0.7)
        counts = inverse_cdf_event_counts([0.5, 1.0, 2.0, 5.0, 10.0], u)
        assert all(a <= b for a, b in zip(counts, counts[1:]))

    def test_matches_poisson_cdf(self):
        # P(N <= 1 | lam=1) = 2/e ~ 0.7358
        assert inverse_cdf_event_counts([1.0], np.array([0.70])).tolist() == [1]
        assert inverse_cdf_event_counts([1.0], np.array([0.74])).tolist() == [2]
