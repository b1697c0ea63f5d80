"""JSON file I/O for scenarios and run results.

Scenario files use the browser tool's camelCase shape: a ``quant`` object,
a ``controls`` (or legacy ``treatments``) list and an optional ``simulation``
block. A bare quant object is accepted too.
"""

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..core.data_models import Control, EventSampling, Quant, RunOptions, RunResult, TRIAD_FIELDS
from ..core.exceptions import ScenarioFileError
from ..core.logging_config import get_logger
from ..core.validation import canonicalize
from ..reporting.reporting import compare_runs

logger = get_logger(__name__)

EXPORT_VERSION = "1.0.0"


class SimulationSettings(BaseModel):
    """Run settings stored alongside a scenario."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sims: Optional[int] = None
    seed: Optional[int] = None
    curve_points: int = 60
    chunk_size: int = 500
    event_sampling: EventSampling = EventSampling.KNUTH

    def to_run_options(self, **overrides) -> RunOptions:
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return RunOptions(**values)


class ScenarioFile(BaseModel):
    """A scenario loaded from disk."""

    name: str = "Untitled scenario"
    quant: Quant
    controls: List[Control] = Field(default_factory=list)
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    source: Optional[str] = None


class JSONEncoder(json.JSONEncoder):
    """JSON encoder for numpy arrays, pydantic models and dates."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, BaseModel):
            return obj.model_dump(by_alias=True, mode="json")
        return super().default(obj)


def _looks_like_quant(data: Mapping[str, Any]) -> bool:
    keys = set(data)
    names = set(TRIAD_FIELDS) | {to_camel(n) for n in TRIAD_FIELDS} | {"level"}
    return bool(keys & names)


class JSONImporter:
    """Imports scenarios from JSON files."""

    def import_scenario(self, file_path: Union[str, Path]) -> ScenarioFile:
        """Import a scenario from a JSON file.

        Args:
            file_path: Path to the scenario file

        Returns:
            Parsed scenario with a canonical quant

        Raises:
            ScenarioFileError: The file is missing or unreadable, not UTF-8 JSON,
                or not a scenario
        """
        path = Path(file_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ScenarioFileError(f"Scenario file not found: {path}", file_path=str(path), cause=e) from e
        except json.JSONDecodeError as e:
            raise ScenarioFileError(f"Invalid JSON in {path}: {e}", file_path=str(path), cause=e) from e
        except UnicodeDecodeError as e:
            raise ScenarioFileError(f"Scenario file is not UTF-8 text: {path}", file_path=str(path), cause=e) from e
        except OSError as e:
            raise ScenarioFileError(f"Cannot read scenario file {path}: {e}", file_path=str(path), cause=e) from e

        scenario = self.parse_scenario(data, source=str(path))
        logger.info(
            f"Loaded scenario '{scenario.name}' from {path}: level={scenario.quant.level.value}, "
            f"{len(scenario.controls)} controls"
        )
        return scenario

    def parse_scenario(self, data: Any, source: Optional[str] = None) -> ScenarioFile:
        """Build a ``ScenarioFile`` from already-decoded JSON."""
        if not isinstance(data, Mapping):
            raise ScenarioFileError("Scenario must be a JSON object", file_path=source)

        if isinstance(data.get("quant"), Mapping):
            quant_data = data["quant"]
        elif _looks_like_quant(data):
            quant_data = data
        else:
            raise ScenarioFileError(
                "No 'quant' object or FAIR factors found in scenario", file_path=source
            )

        raw_controls = data.get("controls")
        if raw_controls is None:
            raw_controls = data.get("treatments", [])
        if not isinstance(raw_controls, list):
            raise ScenarioFileError("'controls' must be a list", file_path=source)

        try:
            controls = [Control.model_validate(c) for c in raw_controls if isinstance(c, Mapping)]
            simulation = SimulationSettings.model_validate(data.get("simulation") or {})
        except PydanticValidationError as e:
            raise ScenarioFileError(f"Malformed scenario: {e}", file_path=source, cause=e) from e

        return ScenarioFile(
            name=str(data.get("name") or data.get("title") or "Untitled scenario"),
            quant=canonicalize(quant_data),
            controls=controls,
            simulation=simulation,
            source=source,
        )


class JSONExporter:
    """Exports run results and example scenarios to JSON files."""

    def _write(self, data: Dict[str, Any], file_path: Union[str, Path]) -> None:
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, cls=JSONEncoder)
        except OSError as e:
            raise ScenarioFileError(f"Error writing {path}: {e}", file_path=str(path), cause=e) from e
        logger.info(f"Wrote {path}")

    def _metadata(self) -> Dict[str, Any]:
        return {
            "export_timestamp": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        }

    def result_to_dict(self, result: RunResult, include_samples: bool = False) -> Dict[str, Any]:
        exclude = None if include_samples else {"ale_samples", "pel_samples"}
        data = result.model_dump(by_alias=True, mode="json", exclude=exclude)
        data["curve"]["min"] = result.curve.min
        data["curve"]["max"] = result.curve.max
        return data

    def export_result(
        self,
        result: RunResult,
        file_path: Union[str, Path],
        scenario_name: Optional[str] = None,
        include_samples: bool = False,
    ) -> None:
        """Export one run result.

        Args:
            result: Run result
            file_path: Output file path
            scenario_name: Optional scenario name for the metadata block
            include_samples: Whether to include the raw ALE/PEL sample sets
        """
        metadata = self._metadata()
        metadata["scenario"] = scenario_name
        self._write({
            "metadata": metadata,
            "result": self.result_to_dict(result, include_samples),
        }, file_path)

    def export_comparison(
        self,
        baseline: RunResult,
        what_if: RunResult,
        file_path: Union[str, Path],
        scenario_name: Optional[str] = None,
        include_samples: bool = False,
    ) -> None:
        """Export a baseline/what-if pair with the controls impact."""
        metadata = self._metadata()
        metadata["scenario"] = scenario_name
        self._write({
            "metadata": metadata,
            "runs": {
                "baseline": self.result_to_dict(baseline, include_samples),
                "whatif": self.result_to_dict(what_if, include_samples),
            },
            "impact": compare_runs(baseline, what_if).model_dump(by_alias=True, mode="json"),
        }, file_path)

    def create_example_scenario(self, file_path: Union[str, Path]) -> None:
        """Write an example scenario with one implemented and one proposed control."""
        self._write(EXAMPLE_SCENARIO, file_path)


EXAMPLE_SCENARIO: Dict[str, Any] = {
    "name": "Payroll SaaS vendor breach",
    "quant": {
        "level": "TEF",
        "susceptibilityMode": "Direct",
        "probabilityUnits": "Fraction",
        "tef": {"min": 0.5, "ml": 2, "max": 6},
        "susceptibility": {"min": 0.1, "ml": 0.3, "max": 0.6},
        "primaryLoss": {"min": 20000, "ml": 75000, "max": 400000},
        "secondaryLossEventFrequency": {"min": 0, "ml": 0.2, "max": 0.5},
        "secondaryLossMagnitude": {"min": 10000, "ml": 50000, "max": 250000},
        "sims": 10000,
        "seed": 42,
    },
    "controls": [
        {
            "id": "ctl-mfa",
            "name": "Vendor SSO with MFA",
            "function": "LEC",
            "mechanismType": "Resistance",
            "status": "Implemented",
            "intendedRating": "High",
            "coverageRating": "Moderate",
            "reliabilityRating": "High",
        },
        {
            "id": "ctl-dlp",
            "name": "Egress monitoring on vendor integration",
            "function": "LEC",
            "mechanismType": "Detection",
            "status": "Proposed",
            "intendedRating": "Moderate",
            "coverageRating": "Moderate",
            "reliabilityRating": "Moderate",
            "includeInWhatIf": True,
        },
        {
            "id": "ctl-review",
            "name": "Quarterly access review",
            "function": "VMC",
            "status": "Proposed",
            "intendedRating": "Moderate",
            "coverageRating": "High",
            "reliabilityRating": "Moderate",
            "includeInWhatIf": True,
        },
    ],
    "simulation": {
        "sims": 10000,
        "seed": 42,
        "curvePoints": 60,
        "chunkSize": 500,
        "eventSampling": "knuth",
    },
}
