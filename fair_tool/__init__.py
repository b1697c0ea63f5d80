"""FAIR Monte Carlo engine for third-party risk scenarios.

Quantifies vendor risk scenarios with FAIR (Factor Analysis of Information
Risk) triads and FAIR-CAM controls, producing annual and per-event loss
distributions for a baseline and a paired what-if run.
"""

__version__ = "1.0.0"
__author__ = "Third-Party Risk Modeling Team"

# Core functionality
from .core.aggregation import SimulationEngine, run_baseline, run_what_if, run_baseline_async, run_what_if_async
from .core.data_models import Control, Quant, RunOptions, RunResult, SimulationProgress, Triad
from .core.validation import canonicalize, validate, validate_quant

# Results and reporting
from .reporting.reporting import ResultsCalculator, ControlsImpact, compare_runs

# Exception handling
from .core.exceptions import (
    FairToolError,
    ValidationError,
    InvalidInputError,
    SimulationCancelledError,
    ComputationError,
    ScenarioFileError,
)

# Logging configuration
from .core.logging_config import setup_logging, get_logger

__all__ = [
    # Core functionality
    "SimulationEngine",
    "run_baseline",
    "run_what_if",
    "run_baseline_async",
    "run_what_if_async",
    "Quant",
    "Control",
    "Triad",
    "RunOptions",
    "RunResult",
    "SimulationProgress",
    "canonicalize",
    "validate",
    "validate_quant",
    # Results and reporting
    "ResultsCalculator",
    "ControlsImpact",
    "compare_runs",
    # Exception handling
    "FairToolError",
    "ValidationError",
    "InvalidInputError",
    "SimulationCancelledError",
    "ComputationError",
    "ScenarioFileError",
    # Logging
    "setup_logging",
    "get_logger",
]
