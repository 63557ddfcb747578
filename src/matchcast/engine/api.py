"""Public entry points for consumers of the engine.

These wrap the model classes with the defaults from
:mod:`matchcast.config`.  ``predict_from_history`` never raises for bad
history; it returns a :class:`PredictionFailure` instead.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import polars as pl

from ..config import get_config
from .ensemble import EnsemblePredictor
from .exceptions import MatchcastError, PredictionFailure
from .features import build_match_records, extract_features
from .monte_carlo import MonteCarloResult, MonteCarloSimulator
from .regression import RegressionEnsemble
from .season import SeasonSimulationResult, SeasonSimulator
from .types import PredictionFeatures, PredictionResult

logger = logging.getLogger(__name__)

PredictionOutcome = PredictionResult | PredictionFailure


def _as_features(features: PredictionFeatures | Mapping[str, Any]) -> PredictionFeatures:
    if isinstance(features, PredictionFeatures):
        return features
    return PredictionFeatures.from_mapping(features)


def predict(
    features: PredictionFeatures | Mapping[str, Any],
    *,
    history: Iterable[Any] | pl.DataFrame = (),
    home_team: str | None = None,
    away_team: str | None = None,
    simulator: MonteCarloSimulator | None = None,
    iterations: int | None = None,
) -> PredictionResult:
    """Ensemble prediction for one fixture.

    Elo joins the blend only when ``history`` and both team names are given.
    """

    settings = get_config()
    model = simulator.model if simulator is not None else RegressionEnsemble()
    predictor = EnsemblePredictor(
        model,
        simulator
        or MonteCarloSimulator(model, seed=settings.seed, workers=settings.workers),
        iterations=iterations or settings.monte_carlo_iterations,
    )
    if isinstance(history, pl.DataFrame):
        history = build_match_records(history)
    return predictor.predict(
        _as_features(features), history, home_team=home_team, away_team=away_team
    ).result


def simulate_uncertainty(
    features: PredictionFeatures | Mapping[str, Any],
    iterations: int | None = None,
    *,
    seed: int | None = None,
    deadline: float | None = None,
) -> MonteCarloResult:
    settings = get_config()
    simulator = MonteCarloSimulator(
        seed=settings.seed if seed is None else seed, workers=settings.workers
    )
    return simulator.run(
        _as_features(features),
        iterations or settings.monte_carlo_iterations,
        deadline=deadline,
    )


def simulate_season(
    league: str,
    season: str,
    fixtures: Iterable[Any] | pl.DataFrame,
    trials: int | None = None,
    *,
    seed: int | None = None,
    deadline: float | None = None,
) -> SeasonSimulationResult:
    settings = get_config()
    simulator = SeasonSimulator(
        seed=settings.seed if seed is None else seed,
        max_trials=settings.max_season_trials,
        workers=settings.workers,
    )
    return simulator.simulate_season(
        league, season, fixtures, trials or settings.season_trials, deadline=deadline
    )


def predict_from_history(
    home_team: str,
    away_team: str,
    history: Iterable[Any] | pl.DataFrame,
    *,
    min_matches: int = 5,
) -> PredictionOutcome:
    """Extract features from ``history`` and run the regression model.

    Thin history or malformed rows produce a :class:`PredictionFailure`.
    """

    try:
        features = extract_features(home_team, away_team, history, min_matches=min_matches)
    except (MatchcastError, ValueError, TypeError) as exc:
        logger.warning("Feature extraction failed for %s v %s: %s", home_team, away_team, exc)
        return PredictionFailure.from_exception(exc)
    if features is None:
        return PredictionFailure(
            reason=f"At least {min_matches} completed matches are required",
            error_type="InsufficientHistory",
        )
    return RegressionEnsemble().predict(features)


__all__ = [
    "PredictionOutcome",
    "predict",
    "predict_from_history",
    "simulate_season",
    "simulate_uncertainty",
]
