"""Input canonicalization and validation for FAIR scenarios.

``canonicalize`` turns whatever the caller holds (a partial dict from a form or
a JSON file, or an existing ``Quant``) into a fully populated ``Quant``.
``validate_quant`` decides whether it can be simulated and lists every missing
factor by name.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .data_models import (
    Control, ControlFunction, EMPTY_TRIAD, FACTOR_NAMES, Level, ProbabilityUnits,
    Quant, SusceptibilityMode, TRIAD_FIELDS, Triad,
)
from .distributions import to_number
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SIMS = 10_000
MIN_SIMS = 1_000
MAX_SIMS = 200_000

DEFAULT_CURVE_POINTS = 60
MIN_CURVE_POINTS = 20
MAX_CURVE_POINTS = 200

DEFAULT_CHUNK_SIZE = 500
MIN_CHUNK_SIZE = 100
MAX_CHUNK_SIZE = 5_000

LOSS_REQUIREMENTS = ("primary_loss", "secondary_loss_event_frequency", "secondary_loss_magnitude")

LEVEL_REQUIREMENTS = {
    Level.LEF: ("lef",),
    Level.TEF: ("tef",),
    Level.CONTACT_FREQUENCY: ("contact_frequency", "probability_of_action"),
}

SUSCEPTIBILITY_REQUIREMENTS = {
    SusceptibilityMode.DIRECT: ("susceptibility",),
    SusceptibilityMode.FROM_CAPACITY_VS_RESISTANCE: ("threat_capacity", "resistance_strength"),
}


@dataclass
class ValidationReport:
    """Outcome of ``validate_quant``.

    Attributes:
        ok: True when the quant can be simulated
        missing: Human-readable names of every missing or malformed factor
        warnings: Non-blocking hints (e.g. probable unit mistakes)
        quant: The canonical quant that was checked
    """

    ok: bool
    missing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    quant: Optional[Quant] = None


def factor_label(field_name: str) -> str:
    """Checklist label for a triad field, e.g. ``LEF (min/ML/max)``."""
    return f"{FACTOR_NAMES[field_name]} (min/ML/max)"


def required_factors(quant: Quant) -> List[str]:
    """Triad fields a quant needs at its level and susceptibility mode, loss first."""
    required = list(LOSS_REQUIREMENTS)
    required.extend(LEVEL_REQUIREMENTS[quant.level])
    if quant.level != Level.LEF:
        required.extend(SUSCEPTIBILITY_REQUIREMENTS[quant.susceptibility_mode])
    return required


def _pick(data: Mapping[str, Any], name: str) -> Any:
    if name in data:
        return data[name]
    return data.get(to_camel(name))


def _enum_or_default(enum_cls, value, default, label: str):
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unrecognized {label} {value!r}; using {default.value!r}")
        return default


def _triad(value: Any, name: str) -> Triad:
    if isinstance(value, Triad):
        return value
    if not isinstance(value, Mapping):
        return EMPTY_TRIAD
    try:
        return Triad.model_validate(dict(value))
    except PydanticValidationError as e:
        logger.warning(f"Discarding malformed {name} triad: {e}")
        return EMPTY_TRIAD


def canonicalize(raw: Any = None) -> Quant:
    """Build a complete ``Quant`` from partial input. Never raises.

    Missing triads become empty placeholders, level and susceptibility mode
    default to LEF and Direct, ``sims`` defaults to 10000 and is forced to a
    positive integer, and previously computed outputs are kept verbatim.
    """
    if isinstance(raw, Quant):
        return raw
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    values = {
        "level": _enum_or_default(Level, _pick(data, "level"), Level.LEF, "level"),
        "susceptibility_mode": _enum_or_default(
            SusceptibilityMode, _pick(data, "susceptibility_mode"),
            SusceptibilityMode.DIRECT, "susceptibility mode",
        ),
        "probability_units": _enum_or_default(
            ProbabilityUnits, _pick(data, "probability_units"),
            ProbabilityUnits.FRACTION, "probability units",
        ),
    }

    for name in TRIAD_FIELDS:
        values[name] = _triad(_pick(data, name), name)

    sims = to_number(_pick(data, "sims"))
    values["sims"] = int(sims) if sims is not None and sims >= 1 else DEFAULT_SIMS

    seed = to_number(_pick(data, "seed"))
    values["seed"] = int(seed) if seed is not None else None

    last_run_at = _pick(data, "last_run_at")
    values["last_run_at"] = str(last_run_at) if last_run_at else None
    values["stats"] = _pick(data, "stats")
    values["curve"] = _pick(data, "curve")
    for name in ("ale_samples", "pel_samples"):
        samples = _pick(data, name)
        values[name] = list(samples) if isinstance(samples, (list, tuple)) else []

    return Quant(**values)


def _unit_warnings(quant: Quant) -> List[str]:
    checked = []
    if quant.level == Level.CONTACT_FREQUENCY:
        checked.append("probability_of_action")
    if quant.level != Level.LEF and quant.susceptibility_mode == SusceptibilityMode.DIRECT:
        checked.append("susceptibility")

    warnings = []
    for name in checked:
        ml = quant.triad(name).ml
        if ml is None:
            continue
        label = FACTOR_NAMES[name]
        if quant.probability_units == ProbabilityUnits.PERCENT and 0 < ml <= 1:
            warnings.append(
                f"{label} most likely value {ml:g} looks like a fraction but units are Percent"
            )
        elif quant.probability_units == ProbabilityUnits.FRACTION and ml > 1:
            warnings.append(
                f"{label} most likely value {ml:g} looks like a percentage but units are Fraction"
            )
    return warnings


def _score_warnings(quant: Quant) -> List[str]:
    if quant.level == Level.LEF or quant.susceptibility_mode != SusceptibilityMode.FROM_CAPACITY_VS_RESISTANCE:
        return []
    rs_min = quant.resistance_strength.min
    if rs_min is not None and rs_min < 0:
        return [
            f"{FACTOR_NAMES['resistance_strength']} minimum {rs_min:g} is negative; "
            "resistance controls lower negative scores further and raise susceptibility"
        ]
    return []


def validate_quant(quant: Any) -> ValidationReport:
    """Check that a quant can be simulated.

    Loss triads are always required; frequency triads depend on the level and,
    above LEF, on the susceptibility mode. Every missing factor is reported.
    """
    q = canonicalize(quant)
    missing = [
        factor_label(name) for name in required_factors(q)
        if not q.triad(name).is_valid
    ]
    return ValidationReport(
        ok=not missing,
        missing=missing,
        warnings=_unit_warnings(q) + _score_warnings(q),
        quant=q,
    )


# Short name used by callers that only need the ok/missing verdict
validate = validate_quant


def validate_controls(controls: Iterable[Control]) -> List[str]:
    """Non-blocking warnings about a control register."""
    warnings = []
    seen = set()
    for i, control in enumerate(controls):
        if control.key and control.key in seen:
            warnings.append(
                f"Control {i} ({control.label}): duplicate id/name '{control.key}' shares a random stream"
            )
        if not control.key:
            warnings.append(
                f"Control {i} ({control.label}): no id or name; its random stream follows its position in the register"
            )
        seen.add(control.key)
        if control.function == ControlFunction.LEC and control.mechanism_type is None:
            warnings.append(f"Control {i} ({control.label}): loss event control without a mechanism type has no effect")
    return warnings


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    x = to_number(value)
    if x is None:
        x = default
    return int(max(low, min(high, int(x))))


def clamp_sim_count(value: Any) -> int:
    """Clamp a draw count into the supported 1,000..200,000 range."""
    return _clamp_int(value, DEFAULT_SIMS, MIN_SIMS, MAX_SIMS)


def clamp_curve_points(value: Any) -> int:
    """Clamp an exceedance curve point count into 20..200."""
    return _clamp_int(value, DEFAULT_CURVE_POINTS, MIN_CURVE_POINTS, MAX_CURVE_POINTS)


def clamp_chunk_size(value: Any) -> int:
    """Clamp a chunk size into 100..5,000 draws."""
    return _clamp_int(value, DEFAULT_CHUNK_SIZE, MIN_CHUNK_SIZE, MAX_CHUNK_SIZE)
