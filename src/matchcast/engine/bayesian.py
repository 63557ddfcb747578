"""Normal-normal conjugate updates for scalar team metrics."""

from __future__ import annotations

import dataclasses
import logging
import math
import statistics
from typing import Iterable, Sequence, Tuple

from .exceptions import DegenerateStatisticsError

logger = logging.getLogger(__name__)

_Z_SCORES = {0.68: 1.0, 0.90: 1.645, 0.95: 1.96, 0.99: 2.576}
_DEFAULT_Z = 1.96


@dataclasses.dataclass(frozen=True, slots=True)
class BayesianParams:
    prior_mean: float
    prior_variance: float
    likelihood: float = 0.0
    evidence: Tuple[float, ...] = ()


class BayesianUpdater:
    """Stateless helper; every update returns a new :class:`BayesianParams`."""

    @staticmethod
    def update(prior: BayesianParams, evidence: Sequence[float]) -> BayesianParams:
        values = [float(value) for value in evidence]
        if not values:
            raise DegenerateStatisticsError("Bayesian update needs at least one observation")
        if any(not math.isfinite(value) for value in values):
            raise DegenerateStatisticsError("Bayesian evidence must be finite")
        if prior.prior_variance < 0.0:
            raise DegenerateStatisticsError("Prior variance cannot be negative")
        n = len(values)
        sample_mean = statistics.fmean(values)
        sample_variance = statistics.pvariance(values, sample_mean)

        if sample_variance == 0.0 and prior.prior_variance == 0.0:
            raise DegenerateStatisticsError(
                "Both the prior and the evidence have zero variance; the posterior is undefined"
            )
        if sample_variance == 0.0:
            # Infinite evidence precision.
            posterior_mean = sample_mean
            posterior_variance = 0.0
        elif prior.prior_variance == 0.0:
            posterior_mean = prior.prior_mean
            posterior_variance = 0.0
        else:
            prior_precision = 1.0 / prior.prior_variance
            likelihood_precision = n / sample_variance
            posterior_precision = prior_precision + likelihood_precision
            posterior_variance = 1.0 / posterior_precision
            posterior_mean = (
                prior_precision * prior.prior_mean + likelihood_precision * sample_mean
            ) / posterior_precision

        return BayesianParams(
            prior_mean=posterior_mean,
            prior_variance=posterior_variance,
            likelihood=sample_mean,
            evidence=tuple(values),
        )

    @classmethod
    def update_sequential(
        cls, prior: BayesianParams, batches: Iterable[Sequence[float]]
    ) -> BayesianParams:
        posterior = prior
        for batch in batches:
            posterior = cls.update(posterior, batch)
        return posterior

    @staticmethod
    def credible_interval(
        params: BayesianParams, confidence: float = 0.95
    ) -> Tuple[float, float]:
        z = next(
            (
                value
                for key, value in _Z_SCORES.items()
                if math.isclose(confidence, key, abs_tol=1e-9)
            ),
            None,
        )
        if z is None:
            logger.debug("No z-score tabled for confidence %s; using %.2f", confidence, _DEFAULT_Z)
            z = _DEFAULT_Z
        margin = z * math.sqrt(max(0.0, params.prior_variance))
        return (params.prior_mean - margin, params.prior_mean + margin)


__all__ = ["BayesianParams", "BayesianUpdater"]
