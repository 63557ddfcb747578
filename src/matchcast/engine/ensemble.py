"""Weighted blend of the regression, Monte Carlo and Elo models."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, Iterable, Literal, Mapping, Sequence, Tuple, Union

from .elo import EloRatingSystem
from .features import build_match_records, chronological
from .monte_carlo import MonteCarloResult, MonteCarloSimulator
from .regression import RegressionEnsemble
from .types import (
    ConfidenceInterval,
    OutcomeDistribution,
    PredictionFeatures,
    PredictionResult,
)

logger = logging.getLogger(__name__)

MODEL_TYPE = "advanced_ensemble"

ComponentKind = Literal["regression", "monte_carlo", "elo"]

DEFAULT_WEIGHTS: Dict[str, float] = {"regression": 0.4, "monte_carlo": 0.4, "elo": 0.2}


@dataclasses.dataclass(frozen=True, slots=True)
class RegressionComponent:
    result: PredictionResult
    kind: ComponentKind = "regression"

    @property
    def outcome(self) -> OutcomeDistribution:
        return self.result.outcome


@dataclasses.dataclass(frozen=True, slots=True)
class MonteCarloComponent:
    result: MonteCarloResult
    kind: ComponentKind = "monte_carlo"

    @property
    def outcome(self) -> OutcomeDistribution:
        return self.result.mean_prediction.outcome


@dataclasses.dataclass(frozen=True, slots=True)
class EloComponent:
    probabilities: OutcomeDistribution
    matches_replayed: int = 0
    kind: ComponentKind = "elo"

    @property
    def outcome(self) -> OutcomeDistribution:
        return self.probabilities


Component = Union[RegressionComponent, MonteCarloComponent, EloComponent]


def combine_components(
    components: Sequence[Component], weights: Mapping[str, float] | None = None
) -> Tuple[OutcomeDistribution, Dict[str, float]]:
    """Weighted average of the supplied components.

    Kinds without a component get weight zero; the remaining weights are
    renormalised to sum to one.  Returns the blended distribution and the
    effective weights.
    """

    if not components:
        raise ValueError("At least one component is required")
    base = dict(DEFAULT_WEIGHTS if weights is None else weights)
    present = {component.kind for component in components}
    effective = {kind: (base.get(kind, 0.0) if kind in present else 0.0) for kind in base}
    for kind in present:
        effective.setdefault(kind, base.get(kind, 0.0))
    total = sum(effective.values())
    if total <= 0.0:
        raise ValueError("Ensemble weights for the supplied components sum to zero")
    effective = {kind: weight / total for kind, weight in effective.items()}
    home = draw = away = 0.0
    for component in components:
        weight = effective[component.kind]
        outcome = component.outcome
        home += outcome.home_win * weight
        draw += outcome.draw * weight
        away += outcome.away_win * weight
    return OutcomeDistribution(home, draw, away).clamped(), effective


@dataclasses.dataclass(slots=True)
class EnsemblePrediction:
    result: PredictionResult
    components: Tuple[Component, ...]
    weights: Dict[str, float]
    variability: float
    confidence_intervals: Dict[str, ConfidenceInterval]

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.result.to_dict(),
            "ensemble_details": {
                "weights": dict(self.weights),
                "components": [component.kind for component in self.components],
                "monte_carlo": {
                    "variability": self.variability,
                    "confidence_intervals": {
                        key: interval.to_dict()
                        for key, interval in self.confidence_intervals.items()
                    },
                },
            },
        }


class EnsemblePredictor:
    def __init__(
        self,
        model: RegressionEnsemble | None = None,
        simulator: MonteCarloSimulator | None = None,
        weights: Mapping[str, float] | None = None,
        elo_factory: Callable[[], EloRatingSystem] = EloRatingSystem,
        *,
        iterations: int = 10_000,
        confidence_boost: float = 1.1,
        confidence_cap: float = 0.95,
    ) -> None:
        self.model = model or RegressionEnsemble()
        self.simulator = simulator or MonteCarloSimulator(self.model)
        self.weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        self.elo_factory = elo_factory
        self.iterations = iterations
        self.confidence_boost = confidence_boost
        self.confidence_cap = confidence_cap

    def _elo_component(
        self, history: Iterable[Any], home_team: str | None, away_team: str | None
    ) -> EloComponent | None:
        if not home_team or not away_team:
            return None
        records = chronological(build_match_records(history))
        if not records:
            return None
        system = self.elo_factory()
        replayed = system.replay(records)
        return EloComponent(
            probabilities=system.get_probabilities(home_team, away_team),
            matches_replayed=replayed,
        )

    def predict(
        self,
        features: PredictionFeatures,
        history: Iterable[Any] = (),
        home_team: str | None = None,
        away_team: str | None = None,
        *,
        deadline: float | None = None,
    ) -> EnsemblePrediction:
        regression = self.model.predict(features)
        simulation = self.simulator.run(features, self.iterations, deadline=deadline)
        components: list[Component] = [
            RegressionComponent(regression),
            MonteCarloComponent(simulation),
        ]
        elo = self._elo_component(history, home_team, away_team)
        if elo is not None:
            components.append(elo)
        outcome, weights = combine_components(components, self.weights)
        contributing = sum(1 for weight in weights.values() if weight > 0)
        logger.debug("Ensemble weights %s", weights)
        result = PredictionResult.from_distribution(
            outcome,
            btts_probability=regression.btts_probability,
            over25_probability=regression.over25_probability,
            predicted_score=regression.predicted_score,
            confidence_score=min(
                self.confidence_cap, regression.confidence_score * self.confidence_boost
            ),
            key_factors=[*regression.key_factors, f"Ensemble of {contributing} models"],
            model_type=MODEL_TYPE,
            calculation_method="client_baseline",
            partial=simulation.partial,
        )
        return EnsemblePrediction(
            result=result,
            components=tuple(components),
            weights=weights,
            variability=simulation.variability,
            confidence_intervals=simulation.confidence_intervals,
        )


__all__ = [
    "Component",
    "DEFAULT_WEIGHTS",
    "EloComponent",
    "EnsemblePrediction",
    "EnsemblePredictor",
    "MODEL_TYPE",
    "MonteCarloComponent",
    "RegressionComponent",
    "combine_components",
]
