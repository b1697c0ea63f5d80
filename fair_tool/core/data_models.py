"""Pydantic data models for the FAIR simulation engine.

Models covering:
- Triads (min / most likely / max estimates)
- The canonical quantitative input set (Quant)
- FAIR-CAM controls
- Run options, progress and run results

Models accept the camelCase keys written by the browser training tool as well
as snake_case names, so scenario JSON loads unchanged.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .distributions import to_number


def _normalize_label(value: Any) -> str:
    return "".join(ch for ch in str(value).lower() if ch.isalnum())


class _LabelEnum(str, Enum):
    """String enum that also matches labels loosely (case, spaces, punctuation)."""

    @classmethod
    def _missing_(cls, value):
        wanted = _normalize_label(value)
        for member in cls:
            if _normalize_label(member.value) == wanted or _normalize_label(member.name) == wanted:
                return member
        return None


class Level(_LabelEnum):
    """Abstraction level: which part of the frequency chain is given directly."""

    LEF = "LEF"
    TEF = "TEF"
    CONTACT_FREQUENCY = "Contact Frequency"


class SusceptibilityMode(_LabelEnum):
    """How susceptibility is obtained when the level is above LEF."""

    DIRECT = "Direct"
    FROM_CAPACITY_VS_RESISTANCE = "FromCapacityVsResistance"


class ProbabilityUnits(_LabelEnum):
    """Units of the Probability of Action and Susceptibility triads."""

    FRACTION = "Fraction"  # 0..1
    PERCENT = "Percent"  # 0..100


class ControlFunction(_LabelEnum):
    """FAIR-CAM control function."""

    LEC = "LEC"  # Loss event control: direct effect
    VMC = "VMC"  # Variance management: lifts other controls' reliability
    DSC = "DSC"  # Decision support: informational only


class MechanismType(_LabelEnum):
    """Loss-event-control mechanism; decides which factor a control cuts."""

    AVOIDANCE = "Avoidance"
    DETERRENCE = "Deterrence"
    RESISTANCE = "Resistance"
    DETECTION = "Detection"
    RESPONSE = "Response"
    RESILIENCE = "Resilience"
    LOSS_MINIMIZATION = "Loss Minimization"


class ControlStatus(_LabelEnum):
    """Lifecycle status of a control."""

    IMPLEMENTED = "Implemented"
    PROPOSED = "Proposed"
    REJECTED = "Rejected"


class Rating(_LabelEnum):
    """Qualitative effectiveness rating."""

    VERY_LOW = "Very Low"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"
    NA = "N/A"


class EventSampling(_LabelEnum):
    """How annual event counts are drawn from the per-draw LEF."""

    KNUTH = "knuth"
    INVERSE_CDF = "inverse_cdf"


class Triad(BaseModel):
    """Uncertain quantity as min / most likely / max.

    Unparseable or blank entries become ``None``; a triad is valid only when
    all three values are finite and ``max >= min``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min: Optional[float] = Field(None, description="Minimum value")
    ml: Optional[float] = Field(
        None,
        description="Most likely value",
        validation_alias=AliasChoices("ml", "mostLikely", "most_likely", "mode"),
    )
    max: Optional[float] = Field(None, description="Maximum value")

    @field_validator("min", "ml", "max", mode="before")
    @classmethod
    def parse_number(cls, v):
        return to_number(v)

    @property
    def is_valid(self) -> bool:
        return (
            self.min is not None
            and self.ml is not None
            and self.max is not None
            and self.max >= self.min
        )

    def as_tuple(self) -> Tuple[float, float, float]:
        """(min, ml, max) as floats; absent entries read as 0."""
        return (self.min or 0.0, self.ml or 0.0, self.max or 0.0)


EMPTY_TRIAD = Triad()

# Triads in canonical order, with the names validation reports
FREQUENCY_TRIADS = (
    "lef", "tef", "contact_frequency", "probability_of_action",
    "susceptibility", "threat_capacity", "resistance_strength",
)
LOSS_TRIADS = (
    "primary_loss", "secondary_loss_event_frequency", "secondary_loss_magnitude",
)
TRIAD_FIELDS = FREQUENCY_TRIADS + LOSS_TRIADS

FACTOR_NAMES: Dict[str, str] = {
    "lef": "LEF",
    "tef": "TEF",
    "contact_frequency": "Contact Frequency",
    "probability_of_action": "Probability of Action",
    "susceptibility": "Susceptibility",
    "threat_capacity": "Threat Capacity",
    "resistance_strength": "Resistance Strength",
    "primary_loss": "Primary Loss",
    "secondary_loss_event_frequency": "Secondary Loss Event Frequency",
    "secondary_loss_magnitude": "Secondary Loss Magnitude",
}


class Quant(BaseModel):
    """One scenario's full FAIR parameterization.

    Build instances through ``validation.canonicalize`` when the input comes
    from a user or a file; it never raises and always fills every triad.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    level: Level = Field(Level.LEF, description="Abstraction level")
    susceptibility_mode: SusceptibilityMode = Field(
        SusceptibilityMode.DIRECT, description="Susceptibility source"
    )
    probability_units: ProbabilityUnits = Field(
        ProbabilityUnits.FRACTION,
        description="Units of probability of action and susceptibility",
    )

    # Frequency side
    lef: Triad = Field(default_factory=Triad, description="Loss events per year")
    tef: Triad = Field(default_factory=Triad, description="Threat events per year")
    contact_frequency: Triad = Field(default_factory=Triad, description="Contacts per year")
    probability_of_action: Triad = Field(default_factory=Triad, description="P(action | contact)")
    susceptibility: Triad = Field(default_factory=Triad, description="P(loss | threat event)")
    threat_capacity: Triad = Field(default_factory=Triad, description="Threat capability score")
    resistance_strength: Triad = Field(default_factory=Triad, description="Resistance score")

    # Loss side
    primary_loss: Triad = Field(default_factory=Triad, description="Primary loss per event")
    secondary_loss_event_frequency: Triad = Field(
        default_factory=Triad, description="Secondary events per primary event"
    )
    secondary_loss_magnitude: Triad = Field(
        default_factory=Triad, description="Loss per secondary event"
    )

    # Simulation parameters
    sims: int = Field(10000, description="Number of simulation draws")
    seed: Optional[int] = Field(None, description="Random seed")

    # Output cache, kept verbatim
    last_run_at: Optional[str] = None
    stats: Optional[Any] = None
    ale_samples: List[Any] = Field(default_factory=list)
    pel_samples: List[Any] = Field(default_factory=list)
    curve: Optional[Any] = None

    @property
    def probability_scale(self) -> float:
        """Multiplier turning probability triad values into fractions."""
        return 0.01 if self.probability_units == ProbabilityUnits.PERCENT else 1.0

    def triad(self, field_name: str) -> Triad:
        return getattr(self, field_name)

    def with_results(self, result: "RunResult") -> "Quant":
        """Copy of this quant with the output cache filled from ``result``."""
        return self.model_copy(update={
            "sims": result.sims,
            "last_run_at": result.last_run_at,
            "stats": result.stats.model_dump(by_alias=True),
            "ale_samples": list(result.ale_samples),
            "pel_samples": list(result.pel_samples),
            "curve": result.curve.model_dump(by_alias=True),
        })


def _lenient(enum_cls, default):
    def parse(v):
        if v is None or v == "":
            return default
        try:
            return enum_cls(v)
        except ValueError:
            return default
    return parse


class Control(BaseModel):
    """A FAIR-CAM control attached to a scenario."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    id: str = Field("", description="Stable identifier")
    name: str = Field("", description="Display name")
    mechanism_type: Optional[MechanismType] = Field(
        None,
        description="LEC mechanism",
        validation_alias=AliasChoices("mechanismType", "mechanism_type", "type"),
    )
    function: ControlFunction = Field(ControlFunction.DSC, description="FAIR-CAM function")
    status: ControlStatus = Field(ControlStatus.PROPOSED, description="Lifecycle status")
    intended_rating: Rating = Field(
        Rating.NA, validation_alias=AliasChoices("intendedRating", "intended_rating", "intended"),
    )
    coverage_rating: Rating = Field(
        Rating.NA, validation_alias=AliasChoices("coverageRating", "coverage_rating", "coverage"),
    )
    reliability_rating: Rating = Field(
        Rating.NA,
        validation_alias=AliasChoices("reliabilityRating", "reliability_rating", "reliability"),
    )
    include_in_what_if: bool = Field(
        False,
        validation_alias=AliasChoices("includeInWhatIf", "include_in_what_if", "includeInWhatif"),
    )

    @field_validator("id", "name", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("mechanism_type", mode="before")
    @classmethod
    def parse_mechanism(cls, v):
        return _lenient(MechanismType, None)(v)

    @field_validator("function", mode="before")
    @classmethod
    def parse_function(cls, v):
        return _lenient(ControlFunction, ControlFunction.DSC)(v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return _lenient(ControlStatus, ControlStatus.PROPOSED)(v)

    @field_validator("intended_rating", "coverage_rating", "reliability_rating", mode="before")
    @classmethod
    def parse_rating(cls, v):
        return _lenient(Rating, Rating.NA)(v)

    @property
    def key(self) -> str:
        """Identity used to pick this control's random stream."""
        return self.id or self.name

    @property
    def label(self) -> str:
        return self.name or self.id or "(unnamed control)"


@dataclass(frozen=True)
class SimulationProgress:
    """Progress report passed to ``on_progress`` at every chunk boundary."""

    done: int
    total: int
    label: str = ""

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 1.0


class RunOptions(BaseModel):
    """Options for a Monte Carlo run.

    Out-of-range counts are clamped by the engine rather than rejected.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True,
    )

    sims: Optional[int] = Field(None, description="Draw count; defaults to quant.sims")
    seed: Optional[int] = Field(None, description="Seed; defaults to quant.seed")
    curve_points: int = Field(60, description="Exceedance curve points")
    chunk_size: int = Field(500, description="Draws between progress/cancel checks")
    on_progress: Optional[Callable[[SimulationProgress], None]] = Field(None, exclude=True)
    should_cancel: Optional[Callable[[], bool]] = Field(None, exclude=True)
    event_sampling: EventSampling = Field(EventSampling.KNUTH, description="Event count method")


class _Result(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )


class DistributionStats(_Result):
    """Headline quantiles of a sample set; min/max are P1/P99, not extrema."""

    min: float = Field(0.0, description="P1")
    ml: float = Field(0.0, description="Median")
    max: float = Field(0.0, description="P99")
    p10: float = 0.0
    p90: float = 0.0


class RunStats(_Result):
    ale: DistributionStats
    pel: DistributionStats


class CurvePoint(_Result):
    x: float
    exceedance_probability: float


class ExceedanceCurve(_Result):
    """Points of P(annual loss > x), ordered by increasing x."""

    points: List[CurvePoint] = Field(default_factory=list)

    @property
    def min(self) -> float:
        return self.points[0].x if self.points else 0.0

    @property
    def max(self) -> float:
        return self.points[-1].x if self.points else 0.0


class ChainSummary(_Result):
    """Averages of per-draw trace values across a run."""

    avg_tef: float = 0.0
    avg_susceptibility: float = 0.0
    avg_lef: float = 0.0
    avg_tef_cut: float = 0.0
    avg_lef_cut: float = 0.0
    avg_lm_cut: float = 0.0


class RunResult(_Result):
    """Outcome of one Monte Carlo run. Immutable once returned."""

    variant: str = Field("baseline", description="baseline or whatif")
    sims: int
    seed: Optional[int] = None
    last_run_at: str
    stats: RunStats
    ale_samples: List[float]
    pel_samples: List[float]
    curve: ExceedanceCurve
    chain: ChainSummary = Field(default_factory=ChainSummary)
    controls_applied: List[str] = Field(default_factory=list)
    event_sampling: EventSampling = EventSampling.KNUTH
