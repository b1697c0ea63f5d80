"""Random sources for the FAIR engine.

Every sampling function receives its uniform source explicitly. Seeded
sources are reproducible bit for bit; unseeded ones draw OS entropy.

A run splits one seed into independent sub-streams (factor triads, event
counts, one stream per control) so that a baseline run and a what-if run with
the same seed see the same uniforms for the same draws.
"""

import hashlib
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

# Uniforms pulled from the bit generator per refill
DEFAULT_BLOCK_SIZE = 4096

# spawn_key prefix for per-control streams; spawn() children use (0,) and (1,)
_CONTROL_BRANCH = 7


def _key_words(key: str) -> Tuple[int, ...]:
    """SHA-256 of a control key as eight uint32 words for a spawn_key."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return tuple(int.from_bytes(digest[i:i + 4], "little") for i in range(0, len(digest), 4))


class RandomSource(Protocol):
    """Anything producing uniform floats in [0, 1)."""

    def random(self) -> float:
        ...


class UniformStream:
    """Block-buffered uniform stream backed by a numpy PCG64 generator.

    Pulling uniforms one at a time from a numpy ``Generator`` is slow, so the
    stream refills a block at a time and hands values out from a list. The
    buffering does not change the sequence: value *n* is the same whatever the
    block size.
    """

    def __init__(self, seed_sequence: np.random.SeedSequence,
                 block_size: int = DEFAULT_BLOCK_SIZE):
        self.seed_sequence = seed_sequence
        self.block_size = block_size
        self._generator = np.random.Generator(np.random.PCG64(seed_sequence))
        self._buffer: List[float] = []
        self._index = 0
        self.draws = 0

    def random(self) -> float:
        """Return the next uniform in [0, 1)."""
        if self._index >= len(self._buffer):
            self._buffer = self._generator.random(self.block_size).tolist()
            self._index = 0
        value = self._buffer[self._index]
        self._index += 1
        self.draws += 1
        return value

    def uniforms(self, n: int) -> np.ndarray:
        """Return the next ``n`` uniforms as an array, in stream order."""
        return np.fromiter((self.random() for _ in range(n)), dtype=float, count=n)


def make_rng(seed: Optional[int] = None) -> UniformStream:
    """Create a uniform stream.

    Args:
        seed: Integer seed; ``None`` draws fresh OS entropy (non-reproducible)

    Returns:
        A stream whose sequence depends only on ``seed``
    """
    return UniformStream(np.random.SeedSequence(_normalize_seed(seed)))


def _normalize_seed(seed: Optional[int]) -> Optional[int]:
    if seed is None:
        return None
    # SeedSequence rejects negative entropy
    return int(seed) & 0xFFFFFFFFFFFFFFFF


class RandomStreams:
    """Independent sub-streams derived from one run seed.

    Attributes:
        factors: Stream for FAIR factor triads (fixed call count per draw)
        events: Stream for annual event counts
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.seed_sequence = np.random.SeedSequence(_normalize_seed(seed))
        factors_seq, events_seq = self.seed_sequence.spawn(2)
        self.factors = UniformStream(factors_seq)
        self.events = UniformStream(events_seq)
        self._controls: Dict[str, UniformStream] = {}

    def control(self, key: str) -> UniformStream:
        """Stream dedicated to one control.

        Keyed by the control's identity rather than its position, so a control
        sees the same uniforms whichever other controls share the run.
        """
        stream = self._controls.get(key)
        if stream is None:
            seq = np.random.SeedSequence(
                self.seed_sequence.entropy,
                spawn_key=(_CONTROL_BRANCH, *_key_words(key)),
            )
            stream = UniformStream(seq)
            self._controls[key] = stream
        return stream
