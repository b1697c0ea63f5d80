"""Shared fixtures for fair_tool tests."""

import json

import pytest

from fair_tool.core.data_models import Control
from fair_tool.core.validation import canonicalize


class SequenceRng:
    """Uniform source replaying fixed values and counting calls."""

    def __init__(self, values=None):
        self.values = list(values or [])
        self.calls = 0

    def random(self):
        if self.calls >= len(self.values):
            raise AssertionError("random() called more often than expected")
        value = self.values[self.calls]
        self.calls += 1
        return value


@pytest.fixture
def sequence_rng():
    return SequenceRng


@pytest.fixture
def lef_quant_data():
    """LEF-level scenario with only primary loss."""
    return {
        "level": "LEF",
        "lef": {"min": 1, "ml": 2, "max": 4},
        "primaryLoss": {"min": 1000, "ml": 5000, "max": 20000},
        "secondaryLossEventFrequency": {"min": 0, "ml": 0, "max": 0},
        "secondaryLossMagnitude": {"min": 0, "ml": 0, "max": 0},
        "sims": 20000,
        "seed": 42,
    }


@pytest.fixture
def lef_quant(lef_quant_data):
    return canonicalize(lef_quant_data)


@pytest.fixture
def tef_quant():
    """TEF-level scenario with direct susceptibility and secondary loss."""
    return canonicalize({
        "level": "TEF",
        "susceptibilityMode": "Direct",
        "tef": {"min": 1, "ml": 4, "max": 10},
        "susceptibility": {"min": 0.2, "ml": 0.4, "max": 0.7},
        "primaryLoss": {"min": 10000, "ml": 40000, "max": 200000},
        "secondaryLossEventFrequency": {"min": 0, "ml": 0.2, "max": 0.5},
        "secondaryLossMagnitude": {"min": 5000, "ml": 20000, "max": 100000},
        "sims": 2000,
        "seed": 7,
    })


@pytest.fixture
def derived_quant():
    """Contact-frequency scenario with susceptibility from TC vs RS."""
    return canonicalize({
        "level": "Contact Frequency",
        "susceptibilityMode": "FromCapacityVsResistance",
        "contactFrequency": {"min": 5, "ml": 12, "max": 30},
        "probabilityOfAction": {"min": 0.1, "ml": 0.3, "max": 0.5},
        "threatCapacity": {"min": 3, "ml": 6, "max": 9},
        "resistanceStrength": {"min": 2, "ml": 5, "max": 8},
        "primaryLoss": {"min": 5000, "ml": 25000, "max": 150000},
        "secondaryLossEventFrequency": {"min": 0, "ml": 0, "max": 0},
        "secondaryLossMagnitude": {"min": 0, "ml": 0, "max": 0},
        "sims": 2000,
        "seed": 11,
    })


def make_control(name, mechanism="Avoidance", function="LEC", status="Implemented",
                 rating="High", include_in_what_if=False):
    return Control.model_validate({
        "id": f"ctl-{name}",
        "name": name,
        "function": function,
        "mechanismType": mechanism,
        "status": status,
        "intendedRating": rating,
        "coverageRating": rating,
        "reliabilityRating": rating,
        "includeInWhatIf": include_in_what_if,
    })


@pytest.fixture
def control_factory():
    return make_control


@pytest.fixture
def scenario_file(tmp_path, tef_quant):
    """Scenario JSON file with one implemented and one proposed control."""
    data = {
        "name": "Test vendor scenario",
        "quant": tef_quant.model_dump(by_alias=True, mode="json"),
        "controls": [
            make_control("mfa", "Resistance").model_dump(by_alias=True, mode="json"),
            make_control("monitoring", "Detection", status="Proposed",
                         rating="Moderate", include_in_what_if=True).model_dump(by_alias=True, mode="json"),
        ],
        "simulation": {"sims": 1000, "seed": 3},
    }
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
