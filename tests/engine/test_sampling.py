from __future__ import annotations

import random
import statistics

import pytest

from matchcast.engine.sampling import (
    RandomSource,
    derive_seeds,
    poisson_sample,
    resolve_random_source,
)


def test_random_satisfies_protocol() -> None:
    assert isinstance(random.Random(1), RandomSource)


def test_explicit_rng_wins_over_seed() -> None:
    rng = random.Random(99)
    assert resolve_random_source(seed=1, rng=rng) is rng


def test_derived_seeds_are_reproducible() -> None:
    first = derive_seeds(random.Random(4), 5)
    second = derive_seeds(random.Random(4), 5)

    assert first == second
    assert len(set(first)) == 5


@pytest.mark.parametrize("rate", [0.0, -1.0, float("nan"), float("inf")])
def test_degenerate_rates_sample_zero(rate: float) -> None:
    assert poisson_sample(random.Random(0), rate) == 0


@pytest.mark.parametrize("rate", [0.8, 1.5, 45.0])
def test_sample_mean_tracks_rate(rate: float) -> None:
    rng = random.Random(2024)
    draws = [poisson_sample(rng, rate) for _ in range(20_000)]

    assert min(draws) >= 0
    assert statistics.fmean(draws) == pytest.approx(rate, rel=0.05)
