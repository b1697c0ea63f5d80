"""Tests for scenario import and result export."""

import json

import pytest

from fair_tool.core.aggregation import run_baseline, run_what_if
from fair_tool.core.data_models import EventSampling, Level, RunOptions
from fair_tool.core.exceptions import ScenarioFileError
from fair_tool.core.validation import validate_quant
from fair_tool.io.io_json import EXAMPLE_SCENARIO, JSONExporter, JSONImporter, SimulationSettings


class TestJSONImporter:
    """Test scenario file loading."""

    def test_import_scenario_file(self, scenario_file):
        scenario = JSONImporter().import_scenario(scenario_file)
        assert scenario.name == "Test vendor scenario"
        assert scenario.quant.level == Level.TEF
        assert [c.name for c in scenario.controls] == ["mfa", "monitoring"]
        assert scenario.simulation.sims == 1000
        assert scenario.simulation.seed == 3
        assert scenario.source == str(scenario_file)
        assert validate_quant(scenario.quant).ok

    def test_bare_quant(self, lef_quant_data):
        scenario = JSONImporter().parse_scenario(lef_quant_data)
        assert scenario.name == "Untitled scenario"
        assert scenario.quant.lef.ml == 2
        assert scenario.controls == []

    def test_legacy_treatments_key(self, lef_quant_data, control_factory):
        data = {
            "title": "Old export",
            "quant": lef_quant_data,
            "treatments": [control_factory("waf").model_dump(by_alias=True)],
        }
        scenario = JSONImporter().parse_scenario(data)
        assert scenario.name == "Old export"
        assert scenario.controls[0].key == "ctl-waf"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ScenarioFileError, match="not found"):
            JSONImporter().import_scenario(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ScenarioFileError, match="Invalid JSON"):
            JSONImporter().import_scenario(path)

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "latin1.json"
        path.write_bytes('{"name": "caf\xe9"}'.encode("latin-1"))
        with pytest.raises(ScenarioFileError, match="not UTF-8") as excinfo:
            JSONImporter().import_scenario(path)
        assert isinstance(excinfo.value.cause, UnicodeDecodeError)

    def test_directory_instead_of_file(self, tmp_path):
        with pytest.raises(ScenarioFileError, match="Cannot read") as excinfo:
            JSONImporter().import_scenario(tmp_path)
        assert isinstance(excinfo.value.cause, OSError)
        assert excinfo.value.context["file_path"] == str(tmp_path)

    @pytest.mark.parametrize("data", [[1, 2, 3], "quant", {"name": "nothing here"}])
    def test_not_a_scenario(self, data):
        with pytest.raises(ScenarioFileError):
            JSONImporter().parse_scenario(data)

    def test_controls_must_be_list(self, lef_quant_data):
        with pytest.raises(ScenarioFileError, match="must be a list"):
            JSONImporter().parse_scenario({"quant": lef_quant_data, "controls": {"id": "x"}})


class TestSimulationSettings:
    """Test stored run settings."""

    def test_overrides(self):
        settings = SimulationSettings.model_validate({"sims": 5000, "seed": 9, "eventSampling": "inverse_cdf"})
        options = settings.to_run_options(sims=2000, seed=None)
        assert options.sims == 2000
        assert options.seed == 9
        assert options.event_sampling == EventSampling.INVERSE_CDF


class TestJSONExporter:
    """Test result export."""

    def test_export_result(self, tmp_path, tef_quant):
        result = run_baseline(tef_quant, RunOptions(sims=1000, seed=1))
        path = tmp_path / "out" / "result.json"
        JSONExporter().export_result(result, path, scenario_name="Vendor")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["metadata"]["scenario"] == "Vendor"
        assert data["result"]["sims"] == 1000
        assert data["result"]["variant"] == "baseline"
        assert "aleSamples" not in data["result"]
        assert data["result"]["curve"]["max"] == result.curve.max
        assert data["result"]["stats"]["ale"]["p90"] == pytest.approx(result.stats.ale.p90)

    def test_export_result_with_samples(self, tmp_path, tef_quant):
        result = run_baseline(tef_quant, RunOptions(sims=1000, seed=1))
        path = tmp_path / "result.json"
        JSONExporter().export_result(result, path, include_samples=True)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data["result"]["aleSamples"]) == 1000

    def test_export_comparison(self, tmp_path, tef_quant, control_factory):
        controls = [control_factory("a", "Avoidance", status="Proposed", include_in_what_if=True)]
        options = RunOptions(sims=1000, seed=2)
        baseline = run_baseline(tef_quant, options, controls)
        what_if = run_what_if(tef_quant, controls, options)
        path = tmp_path / "comparison.json"
        JSONExporter().export_comparison(baseline, what_if, path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data["runs"]) == {"baseline", "whatif"}
        assert data["impact"]["paired"] is True
        assert data["impact"]["controlsApplied"] == ["a"]
        assert data["impact"]["delta"]["p90"] < 0

    def test_example_scenario_round_trips(self, tmp_path):
        path = tmp_path / "example.json"
        JSONExporter().create_example_scenario(path)
        scenario = JSONImporter().import_scenario(path)
        assert scenario.name == EXAMPLE_SCENARIO["name"]
        assert validate_quant(scenario.quant).ok
        assert len(scenario.controls) == 3
        assert scenario.simulation.seed == 42
