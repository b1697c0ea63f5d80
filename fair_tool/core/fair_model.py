"""FAIR factor chain: one simulation draw from a canonical quant.

The frequency side walks LEF, TEF x Susceptibility, or Contact Frequency x
Probability of Action x Susceptibility depending on the abstraction level.
The loss side is Primary Loss + Secondary Loss Event Frequency x Secondary
Loss Magnitude.

Uniforms are consumed in a fixed order per draw: frequency factors in chain
order, then primary loss, secondary frequency, secondary magnitude. The
controls-aware sampler relies on this order to stay paired with the base one.
"""

from dataclasses import dataclass
from typing import Optional

from .data_models import Level, Quant, SusceptibilityMode, Triad
from .distributions import clamp01, derive_susceptibility, triangular_sample
from .random_source import RandomSource


@dataclass(frozen=True)
class Draw:
    """One draw: expected annual events and the loss if one event occurs."""

    lef: float
    per_event_loss: float
    tef: float = 0.0
    susceptibility: float = 0.0


@dataclass(frozen=True)
class FrequencyDraw:
    tef: float
    susceptibility: float
    lef: float
    # Raw scores, kept so susceptibility can be recomputed with a scaled RS
    threat_capacity: Optional[float] = None
    resistance_strength: Optional[float] = None


@dataclass(frozen=True)
class LossDraw:
    primary: float
    secondary_frequency: float
    secondary_magnitude: float


@dataclass(frozen=True)
class PointEstimate:
    """Most-likely values of the frequency chain, computed without sampling."""

    tef: Optional[float]
    susceptibility: Optional[float]
    lef: Optional[float]


def sample_triad(triad: Triad, rng: RandomSource) -> float:
    low, mode, high = triad.as_tuple()
    return triangular_sample(low, mode, high, rng)


def _sample_susceptibility(quant: Quant, rng: RandomSource):
    if quant.susceptibility_mode == SusceptibilityMode.DIRECT:
        susc = clamp01(sample_triad(quant.susceptibility, rng) * quant.probability_scale)
        return susc, None, None

    tc = sample_triad(quant.threat_capacity, rng)
    rs = sample_triad(quant.resistance_strength, rng)
    return derive_susceptibility(tc, rs), tc, rs


def sample_frequency(quant: Quant, rng: RandomSource) -> FrequencyDraw:
    """Draw the frequency chain for the quant's level."""
    if quant.level == Level.LEF:
        lef = max(0.0, sample_triad(quant.lef, rng))
        return FrequencyDraw(tef=0.0, susceptibility=0.0, lef=lef)

    if quant.level == Level.TEF:
        tef = max(0.0, sample_triad(quant.tef, rng))
    else:
        cf = max(0.0, sample_triad(quant.contact_frequency, rng))
        poa = clamp01(sample_triad(quant.probability_of_action, rng) * quant.probability_scale)
        tef = cf * poa

    susc, tc, rs = _sample_susceptibility(quant, rng)
    return FrequencyDraw(
        tef=tef,
        susceptibility=susc,
        lef=tef * susc,
        threat_capacity=tc,
        resistance_strength=rs,
    )


def sample_loss(quant: Quant, rng: RandomSource) -> LossDraw:
    """Draw the loss-magnitude factors, each floored at zero."""
    return LossDraw(
        primary=max(0.0, sample_triad(quant.primary_loss, rng)),
        secondary_frequency=max(0.0, sample_triad(quant.secondary_loss_event_frequency, rng)),
        secondary_magnitude=max(0.0, sample_triad(quant.secondary_loss_magnitude, rng)),
    )


def per_event_loss(primary: float, secondary_frequency: float, secondary_magnitude: float) -> float:
    return primary + secondary_frequency * secondary_magnitude


def sample_once(quant: Quant, rng: RandomSource) -> Draw:
    """One (LEF, per-event loss) draw from a validated quant."""
    freq = sample_frequency(quant, rng)
    loss = sample_loss(quant, rng)
    return Draw(
        lef=freq.lef,
        per_event_loss=per_event_loss(loss.primary, loss.secondary_frequency, loss.secondary_magnitude),
        tef=freq.tef,
        susceptibility=freq.susceptibility,
    )


def point_estimate(quant: Quant) -> PointEstimate:
    """Most-likely TEF, susceptibility and LEF from the triads' ML values.

    Any factor whose inputs are missing comes back as ``None``.
    """
    if quant.level == Level.LEF:
        return PointEstimate(tef=None, susceptibility=None, lef=quant.lef.ml)

    if quant.level == Level.TEF:
        tef = quant.tef.ml
    else:
        cf = quant.contact_frequency.ml
        poa = quant.probability_of_action.ml
        tef = None if cf is None or poa is None else cf * clamp01(poa * quant.probability_scale)

    if quant.susceptibility_mode == SusceptibilityMode.DIRECT:
        s = quant.susceptibility.ml
        susc = None if s is None else clamp01(s * quant.probability_scale)
    else:
        tc = quant.threat_capacity.ml
        rs = quant.resistance_strength.ml
        susc = None if tc is None or rs is None else derive_susceptibility(tc, rs)

    lef = None if tef is None or susc is None else tef * susc
    return PointEstimate(tef=tef, susceptibility=susc, lef=lef)
