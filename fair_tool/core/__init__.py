"""Core FAIR simulation engine."""

# Random sources and variate samplers
from .random_source import RandomSource, RandomStreams, UniformStream, make_rng
from .distributions import clamp01, derive_susceptibility, poisson_sample, triangular_sample

# Input model and validation
from .data_models import (
    Control, ControlFunction, ControlStatus, EventSampling, Level, MechanismType,
    ProbabilityUnits, Quant, Rating, RunOptions, RunResult, SimulationProgress,
    SusceptibilityMode, Triad,
)
from .validation import ValidationReport, canonicalize, validate, validate_controls, validate_quant

# Single-draw samplers
from .fair_model import Draw, point_estimate, sample_once
from .controls import (
    ControlledDraw, apply_vmc_to_reliability, assign_stream_keys, combine_reductions, factors_for_mechanism,
    operational_effectiveness_triad, sample_effectiveness, sample_once_with_controls,
    select_baseline_controls, select_what_if_controls, triad_from_rating,
)

# Monte Carlo runner
from .aggregation import SimulationEngine, run_baseline, run_baseline_async, run_what_if, run_what_if_async

# Audit, errors and logging
from .audit import AuditLogger, DeterminismVerifier
from .exceptions import (
    FairToolError, ValidationError, InvalidInputError, SimulationCancelledError,
    ComputationError, ScenarioFileError,
)
from .logging_config import setup_logging, get_logger
from .performance import PerformanceTimer, PerformanceMetrics

__all__ = [
    # Random sources and variate samplers
    'RandomSource', 'RandomStreams', 'UniformStream', 'make_rng',
    'clamp01', 'derive_susceptibility', 'poisson_sample', 'triangular_sample',

    # Input model and validation
    'Control', 'ControlFunction', 'ControlStatus', 'EventSampling', 'Level', 'MechanismType',
    'ProbabilityUnits', 'Quant', 'Rating', 'RunOptions', 'RunResult', 'SimulationProgress',
    'SusceptibilityMode', 'Triad',
    'ValidationReport', 'canonicalize', 'validate', 'validate_controls', 'validate_quant',

    # Single-draw samplers
    'Draw', 'point_estimate', 'sample_once',
    'ControlledDraw', 'apply_vmc_to_reliability', 'assign_stream_keys', 'combine_reductions', 'factors_for_mechanism',
    'operational_effectiveness_triad', 'sample_effectiveness', 'sample_once_with_controls',
    'select_baseline_controls', 'select_what_if_controls', 'triad_from_rating',

    # Monte Carlo runner
    'SimulationEngine', 'run_baseline', 'run_baseline_async', 'run_what_if', 'run_what_if_async',

    # Audit, errors and logging
    'AuditLogger', 'DeterminismVerifier',
    'FairToolError', 'ValidationError', 'InvalidInputError', 'SimulationCancelledError',
    'ComputationError', 'ScenarioFileError',
    'setup_logging', 'get_logger',
    'PerformanceTimer', 'PerformanceMetrics',
]
