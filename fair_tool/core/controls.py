"""FAIR-CAM control effectiveness and the controls-aware draw.

Controls are rated qualitatively (Very Low .. Very High) on intended
effectiveness, coverage and reliability. Each rating maps to an effectiveness
triad. Loss event controls (LEC) cut the FAIR factor their mechanism acts on,
variance management controls (VMC) lift the reliability of every LEC, and
decision support controls (DSC) carry no numeric effect.

Several controls acting on the same factor combine as independent reductions,
``1 - prod(1 - e_i)``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .data_models import (
    Control, ControlFunction, ControlStatus, Level, MechanismType, Quant, Rating,
    SusceptibilityMode, Triad,
)
from .distributions import clamp01, derive_susceptibility
from .fair_model import Draw, per_event_loss, sample_frequency, sample_loss, sample_triad
from .random_source import RandomSource

RATING_SCALE: Dict[Rating, Triad] = {
    Rating.VERY_HIGH: Triad(min=0.97, ml=0.985, max=0.999),
    Rating.HIGH: Triad(min=0.9, ml=0.935, max=0.969),
    Rating.MODERATE: Triad(min=0.75, ml=0.825, max=0.899),
    Rating.LOW: Triad(min=0.5, ml=0.675, max=0.749),
    Rating.VERY_LOW: Triad(min=0.0, ml=0.25, max=0.499),
    Rating.NA: Triad(min=0.0, ml=0.0, max=0.0),
}


class Factor(str, Enum):
    """Stage of the FAIR chain a loss event control acts on."""

    TEF = "TEF"
    SUSCEPTIBILITY = "SUSC"
    LEF = "LEF"
    LOSS_MAGNITUDE = "LM"


MECHANISM_FACTORS: Dict[MechanismType, Tuple[Factor, ...]] = {
    MechanismType.AVOIDANCE: (Factor.TEF,),
    MechanismType.DETERRENCE: (Factor.TEF,),
    MechanismType.RESISTANCE: (Factor.SUSCEPTIBILITY,),
    MechanismType.DETECTION: (Factor.LEF,),
    MechanismType.RESPONSE: (Factor.LEF, Factor.LOSS_MAGNITUDE),
    MechanismType.RESILIENCE: (Factor.LOSS_MAGNITUDE,),
    MechanismType.LOSS_MINIMIZATION: (Factor.LOSS_MAGNITUDE,),
}

# Picks the random source for one control's effect draws
ControlStreamFactory = Callable[[Control], RandomSource]


def _rating(value: Union[Rating, str, None]) -> Rating:
    if isinstance(value, Rating):
        return value
    try:
        return Rating(value)
    except ValueError:
        return Rating.NA


def triad_from_rating(rating: Union[Rating, str, None]) -> Triad:
    """Effectiveness triad for a rating label; unknown labels read as N/A."""
    return RATING_SCALE[_rating(rating)]


def operational_effectiveness_triad(intended, coverage, reliability) -> Triad:
    """Pointwise product of the intended, coverage and reliability triads."""
    a = triad_from_rating(intended)
    b = triad_from_rating(coverage)
    c = triad_from_rating(reliability)
    return Triad(
        min=round(a.min * b.min * c.min, 4),
        ml=round(a.ml * b.ml * c.ml, 4),
        max=round(a.max * b.max * c.max, 4),
    )


def control_effectiveness_triad(control: Control) -> Triad:
    return operational_effectiveness_triad(
        control.intended_rating, control.coverage_rating, control.reliability_rating,
    )


def sample_effectiveness(triad: Triad, rng: RandomSource) -> float:
    """Triangular draw of an effectiveness triad, clamped to [0, 1]."""
    return clamp01(sample_triad(triad, rng))


def combine_reductions(effects: Iterable[float]) -> float:
    """Combine simultaneous reductions on one factor as independent events.

    ``[]`` gives 0, ``[0.5, 0.5]`` gives 0.75; the result only reaches 1 when
    some single effect is 1, or when enough large effects leave a remaining
    fraction below float64 resolution and ``1 - keep`` rounds to 1.0.
    """
    keep = 1.0
    for e in effects:
        keep *= 1.0 - clamp01(e)
    return clamp01(1.0 - keep)


def apply_vmc_to_reliability(reliability: float, vmc_effect: float) -> float:
    """Raise a sampled reliability toward 1 by a VMC effect: r + e(1 - r)."""
    r = clamp01(reliability)
    e = clamp01(vmc_effect)
    return clamp01(r + e * (1.0 - r))


def factors_for_mechanism(mechanism: Optional[MechanismType]) -> Tuple[Factor, ...]:
    """FAIR factors an LEC of this mechanism type reduces."""
    if mechanism is None:
        return ()
    return MECHANISM_FACTORS.get(mechanism, ())


def assign_stream_keys(controls: Iterable[Control]) -> List[Control]:
    """Give each control without an id or name the id ``unnamed-<position>``.

    Positions count over the whole register, so an unnamed control keeps the
    same random stream whichever variant selects it.
    """
    return [
        c if c.key else c.model_copy(update={"id": f"unnamed-{i}"})
        for i, c in enumerate(controls)
    ]


def select_baseline_controls(controls: Iterable[Control]) -> List[Control]:
    """Controls that count in a baseline run: implemented ones only."""
    return [c for c in assign_stream_keys(controls) if c.status == ControlStatus.IMPLEMENTED]


def select_what_if_controls(controls: Iterable[Control]) -> List[Control]:
    """Implemented controls plus non-rejected ones flagged for the what-if."""
    selected = []
    for c in assign_stream_keys(controls):
        if c.status == ControlStatus.REJECTED:
            continue
        if c.status == ControlStatus.IMPLEMENTED or c.include_in_what_if:
            selected.append(c)
    return selected


def split_controls(controls: Iterable[Control]) -> Tuple[List[Control], List[Control], List[Control]]:
    """Partition into (LEC, VMC, DSC) lists."""
    lec, vmc, dsc = [], [], []
    for c in controls:
        if c.function == ControlFunction.LEC:
            lec.append(c)
        elif c.function == ControlFunction.VMC:
            vmc.append(c)
        else:
            dsc.append(c)
    return lec, vmc, dsc


@dataclass(frozen=True)
class ControlledDraw(Draw):
    """A draw with control effects applied, plus the cuts that produced it."""

    tef_cut: float = 0.0
    lef_cut: float = 0.0
    lm_cut: float = 0.0
    susceptibility_cut: float = 0.0
    resistance_uplift: float = 0.0


def _lec_effect(control: Control, vmc_combined: float, rng: RandomSource) -> float:
    intended = sample_effectiveness(triad_from_rating(control.intended_rating), rng)
    coverage = sample_effectiveness(triad_from_rating(control.coverage_rating), rng)
    reliability = sample_effectiveness(triad_from_rating(control.reliability_rating), rng)
    reliability = apply_vmc_to_reliability(reliability, vmc_combined)
    return clamp01(intended * coverage * reliability)


def sample_once_with_controls(quant: Quant,
                              controls: Sequence[Control],
                              rng: RandomSource,
                              control_rng: Optional[ControlStreamFactory] = None) -> ControlledDraw:
    """One draw with control effects applied.

    Factor triads come from ``rng`` in the same order and number as
    ``fair_model.sample_once``. Control effects are drawn afterwards, from
    ``control_rng(control)`` when given, otherwise from ``rng``. With no
    effective controls the result equals the base draw exactly.

    Args:
        quant: Validated quant
        controls: Controls taking part in this run (already selected)
        rng: Source for FAIR factor triads
        control_rng: Optional per-control source factory

    Returns:
        The controlled draw with trace values
    """
    freq = sample_frequency(quant, rng)
    loss = sample_loss(quant, rng)

    stream_for = control_rng or (lambda control: rng)
    lec, vmc, _ = split_controls(controls)

    vmc_combined = combine_reductions(
        sample_effectiveness(control_effectiveness_triad(c), stream_for(c)) for c in vmc
    )

    tef_cuts: List[float] = []
    lef_cuts: List[float] = []
    lm_cuts: List[float] = []
    susc_cuts: List[float] = []
    rs_uplifts: List[float] = []
    derived = quant.susceptibility_mode == SusceptibilityMode.FROM_CAPACITY_VS_RESISTANCE

    for c in lec:
        effect = _lec_effect(c, vmc_combined, stream_for(c))
        for factor in factors_for_mechanism(c.mechanism_type):
            if factor == Factor.TEF:
                tef_cuts.append(effect)
            elif factor == Factor.LEF:
                lef_cuts.append(effect)
            elif factor == Factor.LOSS_MAGNITUDE:
                lm_cuts.append(effect)
            elif derived:
                rs_uplifts.append(effect)
            else:
                susc_cuts.append(effect)

    tef_cut = combine_reductions(tef_cuts)
    susc_cut = combine_reductions(susc_cuts)
    rs_uplift = combine_reductions(rs_uplifts)

    if quant.level == Level.LEF:
        # No explicit TEF or susceptibility to perturb: every frequency-side cut lands on LEF
        lef_cut = combine_reductions(tef_cuts + lef_cuts + susc_cuts + rs_uplifts)
        tef = freq.tef
        susc = freq.susceptibility
        lef = freq.lef * (1.0 - lef_cut)
    else:
        tef = freq.tef * (1.0 - tef_cut)
        if derived:
            susc = derive_susceptibility(
                freq.threat_capacity, freq.resistance_strength * (1.0 + rs_uplift),
            )
        else:
            susc = clamp01(freq.susceptibility * (1.0 - susc_cut))
        lef_cut = combine_reductions(lef_cuts)
        lef = tef * susc * (1.0 - lef_cut)

    lm_cut = combine_reductions(lm_cuts)
    primary = loss.primary * (1.0 - lm_cut)
    secondary_magnitude = loss.secondary_magnitude * (1.0 - lm_cut)

    return ControlledDraw(
        lef=max(0.0, lef),
        per_event_loss=per_event_loss(primary, loss.secondary_frequency, secondary_magnitude),
        tef=tef,
        susceptibility=susc,
        tef_cut=tef_cut,
        lef_cut=lef_cut,
        lm_cut=lm_cut,
        susceptibility_cut=susc_cut,
        resistance_uplift=rs_uplift,
    )
