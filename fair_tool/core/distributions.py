"""Random variate samplers for the FAIR engine.

Scalar triangular and Poisson draws taken from an explicit uniform source,
plus the capacity-vs-resistance susceptibility curve. Scalar (not vectorised)
because each simulation draw walks the FAIR factor chain in a fixed order, and
that order is what keeps seeded runs paired.
"""

import math
from typing import Any, Optional

from scipy.special import expit

from .random_source import RandomSource

# Largest rate handed to a single Knuth loop; exp(-500) is still a normal float
POISSON_SPLIT_RATE = 500.0

# Default smoothing for the TC-vs-RS logistic
DEFAULT_SOFTNESS = 2.0


def clamp01(x: float) -> float:
    """Clamp a value into [0, 1]."""
    return max(0.0, min(1.0, x))


def to_number(value: Any, fallback: Optional[float] = None) -> Optional[float]:
    """Parse a finite float from user input, returning ``fallback`` otherwise.

    Accepts numbers and numeric strings; blanks, ``None``, booleans, NaN and
    infinities give ``fallback``.
    """
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return fallback
    try:
        x = float(value)
    except (TypeError, ValueError):
        return fallback
    return x if math.isfinite(x) else fallback


def triangular_sample(low: float, mode: float, high: float, rng: RandomSource) -> float:
    """Draw from a triangular distribution by inverse CDF.

    Args:
        low: Minimum
        mode: Most likely value (clamped into [low, high])
        high: Maximum
        rng: Uniform source

    Returns:
        A value in [low, high]. ``high <= low`` returns ``low`` and consumes
        no randomness.
    """
    if high <= low:
        return low

    mode = min(max(mode, low), high)
    u = rng.random()
    span = high - low
    fc = (mode - low) / span

    if u < fc:
        return low + math.sqrt(u * span * (mode - low))
    return high - math.sqrt((1.0 - u) * span * (high - mode))


def poisson_sample(lam: float, rng: RandomSource) -> int:
    """Draw an event count with Knuth's multiplication method.

    ``lam <= 0`` returns 0 without consuming randomness. Rates above
    ``POISSON_SPLIT_RATE`` are drawn as a sum of smaller Poisson counts so the
    ``exp(-lam)`` threshold never underflows.
    """
    if not lam > 0:
        return 0

    count = 0
    while lam > POISSON_SPLIT_RATE:
        count += _knuth_poisson(POISSON_SPLIT_RATE, rng)
        lam -= POISSON_SPLIT_RATE
    return count + _knuth_poisson(lam, rng)


def _knuth_poisson(lam: float, rng: RandomSource) -> int:
    threshold = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= threshold:
            return k - 1


def derive_susceptibility(threat_capacity: float, resistance_strength: float,
                          softness: float = DEFAULT_SOFTNESS) -> float:
    """Susceptibility from threat capacity vs resistance strength.

    Logistic of ``(tc - rs) / softness``: equal scores give 0.5, higher
    capacity pushes toward 1, higher resistance toward 0.
    Scores are taken as non-negative; resistance controls scale ``rs`` up,
    which only lowers susceptibility when ``rs >= 0``.
    """
    z = (threat_capacity - resistance_strength) / max(1e-9, softness)
    return clamp01(float(expit(z)))
