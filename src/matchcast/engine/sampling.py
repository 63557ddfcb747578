"""Random source abstraction and sampling helpers."""

from __future__ import annotations

import math
import random
from typing import List, Protocol, runtime_checkable

# e^-lambda underflows long before this matters for football scorelines, but
# larger rates are split into independent halves to keep the product sampler
# numerically safe.
_MAX_DIRECT_POISSON_RATE = 30.0


@runtime_checkable
class RandomSource(Protocol):
    """Minimal interface the simulators need; :class:`random.Random` fits."""

    def random(self) -> float:
        ...

    def uniform(self, a: float, b: float) -> float:
        ...

    def getrandbits(self, k: int) -> int:
        ...


def resolve_random_source(
    seed: int | None = None, rng: RandomSource | None = None
) -> RandomSource:
    if rng is not None:
        return rng
    return random.Random(seed)


def derive_seeds(rng: RandomSource, count: int) -> List[int]:
    """Draw ``count`` independent 64-bit seeds for per-chunk generators."""

    return [rng.getrandbits(64) for _ in range(count)]


def poisson_sample(rng: RandomSource, lam: float) -> int:
    """Inverse-transform Poisson draw.

    Uniform draws are multiplied until the running product falls below
    ``e^-lam``; the number of factors minus one is the sample.
    """

    if not math.isfinite(lam) or lam <= 0.0:
        return 0
    if lam > _MAX_DIRECT_POISSON_RATE:
        half = lam / 2.0
        return poisson_sample(rng, half) + poisson_sample(rng, lam - half)
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            return k - 1


__all__ = ["RandomSource", "derive_seeds", "poisson_sample", "resolve_random_source"]
