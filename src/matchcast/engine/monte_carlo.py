"""Monte Carlo uncertainty estimates around the regression model."""

from __future__ import annotations

import collections
import concurrent.futures
import dataclasses
import logging
import math
import random
import statistics
import time
from typing import Callable, Deque, Dict, List, Literal, Sequence, Tuple

from .regression import RegressionEnsemble
from .sampling import RandomSource, derive_seeds, resolve_random_source
from .statistics import descriptive_stats
from .types import (
    FEATURE_NAMES,
    OUTCOME_KEYS,
    ConfidenceInterval,
    OutcomeDistribution,
    PredictionFeatures,
    PredictionResult,
)

logger = logging.getLogger(__name__)

MODEL_TYPE = "monte_carlo_ensemble"

ExecutorKind = Literal["process", "thread"]


@dataclasses.dataclass(slots=True)
class MonteCarloResult:
    mean_prediction: PredictionResult
    confidence_intervals: Dict[str, ConfidenceInterval]
    variability: float
    scenarios: List[PredictionResult]
    iterations: int
    requested: int
    partial: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "mean_prediction": self.mean_prediction.to_dict(),
            "confidence_intervals": {
                key: interval.to_dict() for key, interval in self.confidence_intervals.items()
            },
            "variability": self.variability,
            "scenarios": [scenario.to_dict() for scenario in self.scenarios],
            "iterations": self.iterations,
            "requested": self.requested,
            "partial": self.partial,
        }


@dataclasses.dataclass(slots=True)
class _ChunkResult:
    index: int
    home: List[float]
    draw: List[float]
    away: List[float]
    btts_total: float
    over25_total: float
    confidence_total: float
    scenarios: List[PredictionResult]


def _run_chunk(
    index: int,
    model: RegressionEnsemble,
    features: PredictionFeatures,
    noise: float,
    seed: int,
    size: int,
    keep: int,
) -> _ChunkResult:
    rng = random.Random(seed)
    chunk = _ChunkResult(index, [], [], [], 0.0, 0.0, 0.0, [])
    for _ in range(size):
        factors = [1.0 + rng.uniform(-noise, noise) for _ in FEATURE_NAMES]
        result = model.predict(features.scaled(factors))
        chunk.home.append(result.home_win_probability)
        chunk.draw.append(result.draw_probability)
        chunk.away.append(result.away_win_probability)
        chunk.btts_total += result.btts_probability or 0.0
        chunk.over25_total += result.over25_probability or 0.0
        chunk.confidence_total += result.confidence_score
        if len(chunk.scenarios) < keep:
            chunk.scenarios.append(result)
    return chunk


def _percentile_interval(values: Sequence[float]) -> ConfidenceInterval:
    ordered = sorted(values)
    n = len(ordered)
    lower = ordered[min(n - 1, int(math.floor(n * 0.025)))]
    upper = ordered[min(n - 1, int(math.floor(n * 0.975)))]
    return ConfidenceInterval(lower=lower, upper=upper)


class MonteCarloSimulator:
    """Resample the feature vector with multiplicative noise.

    Trials are grouped into fixed-size chunks, each seeded from the
    simulator's random source before any work is dispatched.  Aggregates are
    therefore identical for any ``workers`` value given the same seed.
    """

    def __init__(
        self,
        model: RegressionEnsemble | None = None,
        *,
        noise: float = 0.1,
        seed: int | None = None,
        rng: RandomSource | None = None,
        workers: int = 1,
        chunk_size: int = 1000,
        scenario_limit: int = 100,
        executor: ExecutorKind = "process",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if noise < 0:
            raise ValueError("noise must be non-negative")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if workers <= 0:
            raise ValueError("workers must be positive")
        self.model = model or RegressionEnsemble()
        self.noise = noise
        self.workers = workers
        self.chunk_size = chunk_size
        self.scenario_limit = scenario_limit
        self.executor = executor
        self._rng = resolve_random_source(seed, rng)
        self._clock = clock

    def _chunk_plan(self, iterations: int) -> List[Tuple[int, int, int]]:
        count = math.ceil(iterations / self.chunk_size)
        seeds = derive_seeds(self._rng, count)
        plan = []
        for index, seed in enumerate(seeds):
            size = min(self.chunk_size, iterations - index * self.chunk_size)
            plan.append((index, seed, size))
        return plan

    def run(
        self,
        features: PredictionFeatures,
        iterations: int = 10_000,
        *,
        deadline: float | None = None,
    ) -> MonteCarloResult:
        """Run ``iterations`` noisy trials.

        ``deadline`` is a budget in seconds.  Once it passes no further chunks
        are dispatched; the first chunk always runs so a result is available.
        """

        if iterations <= 0:
            raise ValueError("iterations must be positive")
        plan = self._chunk_plan(iterations)
        expires = None if deadline is None else self._clock() + deadline
        if self.workers == 1 or len(plan) == 1:
            chunks = self._run_serial(features, plan, expires)
        else:
            chunks = self._run_pooled(features, plan, expires)
        completed = sum(len(chunk.home) for chunk in chunks)
        partial = completed < iterations
        if partial:
            logger.warning(
                "Monte Carlo deadline reached after %d of %d iterations", completed, iterations
            )
        return self._aggregate(chunks, iterations, partial)

    def _expired(self, expires: float | None) -> bool:
        return expires is not None and self._clock() >= expires

    def _run_serial(
        self,
        features: PredictionFeatures,
        plan: Sequence[Tuple[int, int, int]],
        expires: float | None,
    ) -> List[_ChunkResult]:
        chunks: List[_ChunkResult] = []
        for index, seed, size in plan:
            if chunks and self._expired(expires):
                break
            chunks.append(
                _run_chunk(
                    index, self.model, features, self.noise, seed, size, self.scenario_limit
                )
            )
        return chunks

    def _run_pooled(
        self,
        features: PredictionFeatures,
        plan: Sequence[Tuple[int, int, int]],
        expires: float | None,
    ) -> List[_ChunkResult]:
        pool_cls = (
            concurrent.futures.ThreadPoolExecutor
            if self.executor == "thread"
            else concurrent.futures.ProcessPoolExecutor
        )
        chunks: List[_ChunkResult] = []
        pending: Deque[concurrent.futures.Future[_ChunkResult]] = collections.deque()
        remaining = collections.deque(plan)
        with pool_cls(max_workers=self.workers) as pool:
            while remaining or pending:
                while remaining and len(pending) < self.workers:
                    if (chunks or pending) and self._expired(expires):
                        remaining.clear()
                        break
                    index, seed, size = remaining.popleft()
                    pending.append(
                        pool.submit(
                            _run_chunk,
                            index,
                            self.model,
                            features,
                            self.noise,
                            seed,
                            size,
                            self.scenario_limit,
                        )
                    )
                if pending:
                    chunks.append(pending.popleft().result())
        chunks.sort(key=lambda chunk: chunk.index)
        return chunks

    def _aggregate(
        self, chunks: Sequence[_ChunkResult], requested: int, partial: bool
    ) -> MonteCarloResult:
        home = [value for chunk in chunks for value in chunk.home]
        draw = [value for chunk in chunks for value in chunk.draw]
        away = [value for chunk in chunks for value in chunk.away]
        n = len(home)
        mean_outcome = OutcomeDistribution(
            statistics.fmean(home), statistics.fmean(draw), statistics.fmean(away)
        ).normalised()
        mean_prediction = PredictionResult.from_distribution(
            mean_outcome,
            btts_probability=sum(chunk.btts_total for chunk in chunks) / n,
            over25_probability=sum(chunk.over25_total for chunk in chunks) / n,
            confidence_score=sum(chunk.confidence_total for chunk in chunks) / n,
            model_type=MODEL_TYPE,
            calculation_method="client_baseline",
            partial=partial,
        )
        intervals = {
            key: _percentile_interval(series)
            for key, series in zip(OUTCOME_KEYS, (home, draw, away))
        }
        scenarios = [scenario for chunk in chunks for scenario in chunk.scenarios]
        return MonteCarloResult(
            mean_prediction=mean_prediction,
            confidence_intervals=intervals,
            variability=descriptive_stats(home).standard_deviation,
            scenarios=scenarios[: self.scenario_limit],
            iterations=n,
            requested=requested,
            partial=partial,
        )


__all__ = ["MODEL_TYPE", "MonteCarloResult", "MonteCarloSimulator"]
