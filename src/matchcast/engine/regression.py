"""Deterministic match model blending a Poisson grid with a logistic split.

The Poisson side turns average goals and offensive/defensive strengths into
expected goals for each club and sums a 7x7 score grid into outcome mass.
The logistic side feeds form, strength, goal and head-to-head differences
through a three way softmax.  The two are blended, nudged by strength and
momentum, and floored so no outcome ever reaches zero.

Both-teams-to-score and over 2.5 goals come from the same grid, so the
auxiliary markets stay consistent with the main outcome split.  Goals beyond
six per side are truncated; for realistic rates the lost mass is well under
0.1%.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import List, Tuple

from .types import (
    FEATURE_NAMES,
    OutcomeDistribution,
    PredictionFeatures,
    PredictionResult,
    ScoreLine,
)

logger = logging.getLogger(__name__)

MODEL_TYPE = "advanced_regression_ensemble"

LEAGUE_CORRECTION = 1.2
HOME_GOAL_BOOST = 0.15
MIN_EXPECTED_GOALS = 0.1
# Anything above this is an input error upstream; capping keeps the grid finite.
MAX_EXPECTED_GOALS = 20.0
DEFENSIVE_FLOOR = 0.1

_LOGIT_LIMIT = 50.0
_GAP_TOLERANCE = 1e-9

FACTOR_FORM_GAP = "Significant form difference"
FACTOR_HOME_ADVANTAGE = "Strong home advantage"
FACTOR_HEAD_TO_HEAD = "One-sided head-to-head record"
FACTOR_GOAL_GAP = "Contrasting goal output"


def _finite(value: float, fallback: float) -> float:
    return value if math.isfinite(value) else fallback


def _poisson_pmf(k: int, lam: float) -> float:
    # Log space avoids lam ** k overflowing for extreme rates.
    return math.exp(k * math.log(lam) - lam - math.lgamma(k + 1))


@dataclasses.dataclass(frozen=True, slots=True)
class PoissonGoalModel:
    outcome: OutcomeDistribution
    home_expected_goals: float
    away_expected_goals: float
    matrix: Tuple[Tuple[float, ...], ...]

    @property
    def predicted_score(self) -> ScoreLine:
        return ScoreLine(
            home=round(self.home_expected_goals, 1),
            away=round(self.away_expected_goals, 1),
        )


class RegressionEnsemble:
    """Blend of a Poisson goal model and a logistic outcome model."""

    def __init__(
        self,
        *,
        poisson_weight: float = 0.4,
        logistic_weight: float = 0.6,
        adjustment_weight: float = 0.1,
        probability_floor: float = 0.01,
        max_goals: int = 6,
    ) -> None:
        if poisson_weight < 0 or logistic_weight < 0 or poisson_weight + logistic_weight <= 0:
            raise ValueError("Model weights must be non-negative and not both zero")
        if max_goals < 2:
            raise ValueError("max_goals must be at least 2")
        total = poisson_weight + logistic_weight
        self.poisson_weight = poisson_weight / total
        self.logistic_weight = logistic_weight / total
        self.adjustment_weight = adjustment_weight
        self.probability_floor = probability_floor
        self.max_goals = max_goals

    # ------------------------------------------------------------------
    # Goal model
    # ------------------------------------------------------------------

    @staticmethod
    def goal_rate(
        avg_goals: float,
        offensive_strength: float,
        defensive_strength: float,
        home_advantage: float = 0.0,
    ) -> float:
        base = avg_goals * LEAGUE_CORRECTION
        offensive = max(offensive_strength, 0.0) ** 0.8
        defensive = (1.0 / max(defensive_strength, DEFENSIVE_FLOOR)) ** 0.6
        boost = 1.0 + home_advantage * HOME_GOAL_BOOST
        rate = _finite(base * offensive * defensive * boost, MAX_EXPECTED_GOALS)
        return min(MAX_EXPECTED_GOALS, max(MIN_EXPECTED_GOALS, rate))

    def expected_goals(self, features: PredictionFeatures) -> Tuple[float, float]:
        """Expected goals for the home and away sides; only home gets the boost."""

        home = self.goal_rate(
            features.avg_goals_home,
            features.home_offensive_strength,
            features.away_defensive_strength,
            features.home_advantage,
        )
        away = self.goal_rate(
            features.avg_goals_away,
            features.away_offensive_strength,
            features.home_defensive_strength,
        )
        return home, away

    def score_matrix(self, home_rate: float, away_rate: float) -> List[List[float]]:
        goals = range(self.max_goals + 1)
        home_pmf = [_poisson_pmf(k, home_rate) for k in goals]
        away_pmf = [_poisson_pmf(k, away_rate) for k in goals]
        return [[p_home * p_away for p_away in away_pmf] for p_home in home_pmf]

    def poisson_goal_model(self, features: PredictionFeatures) -> PoissonGoalModel:
        home_rate, away_rate = self.expected_goals(features)
        matrix = self.score_matrix(home_rate, away_rate)
        home_win = draw = away_win = 0.0
        for h, row in enumerate(matrix):
            for a, probability in enumerate(row):
                if h > a:
                    home_win += probability
                elif h == a:
                    draw += probability
                else:
                    away_win += probability
        return PoissonGoalModel(
            outcome=OutcomeDistribution(home_win, draw, away_win),
            home_expected_goals=home_rate,
            away_expected_goals=away_rate,
            matrix=tuple(tuple(row) for row in matrix),
        )

    # ------------------------------------------------------------------
    # Logistic model
    # ------------------------------------------------------------------

    @staticmethod
    def logistic_model(features: PredictionFeatures) -> OutcomeDistribution:
        form_diff = features.home_team_form - features.away_team_form
        strength_diff = (
            features.home_offensive_strength + features.home_defensive_strength
        ) - (features.away_offensive_strength + features.away_defensive_strength)
        goal_diff = features.avg_goals_home - features.avg_goals_away
        home_logit = (
            0.3 * form_diff
            + 0.4 * strength_diff
            + 0.2 * goal_diff
            + 0.15 * features.home_advantage
            + 0.1 * features.head_to_head_ratio
        )
        draw_logit = -0.8 + 0.1 * abs(form_diff) - 0.2 * abs(strength_diff)
        logits = [
            max(-_LOGIT_LIMIT, min(_LOGIT_LIMIT, _finite(value, 0.0)))
            for value in (home_logit, draw_logit, -home_logit)
        ]
        peak = max(logits)
        weights = [math.exp(value - peak) for value in logits]
        total = sum(weights)
        return OutcomeDistribution(*(weight / total for weight in weights))

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    @staticmethod
    def strength_adjustment(features: PredictionFeatures) -> float:
        home = (features.home_offensive_strength + features.home_defensive_strength) / 2.0
        away = (features.away_offensive_strength + features.away_defensive_strength) / 2.0
        return (home - away) * 0.3

    @staticmethod
    def momentum(features: PredictionFeatures) -> float:
        return (features.home_team_form - 0.5) * 0.2 - (features.away_team_form - 0.5) * 0.2

    def combine(
        self,
        poisson: OutcomeDistribution,
        logistic: OutcomeDistribution,
        features: PredictionFeatures,
    ) -> OutcomeDistribution:
        adjustment = _finite(
            (self.strength_adjustment(features) + self.momentum(features))
            * self.adjustment_weight,
            0.0,
        )
        blended = OutcomeDistribution(
            home_win=poisson.home_win * self.poisson_weight
            + logistic.home_win * self.logistic_weight
            + adjustment,
            draw=poisson.draw * self.poisson_weight + logistic.draw * self.logistic_weight,
            away_win=poisson.away_win * self.poisson_weight
            + logistic.away_win * self.logistic_weight
            - adjustment,
        )
        return blended.with_floor(self.probability_floor)

    # ------------------------------------------------------------------
    # Derived outputs
    # ------------------------------------------------------------------

    def both_teams_to_score(self, home_rate: float, away_rate: float) -> float:
        return (1.0 - _poisson_pmf(0, home_rate)) * (1.0 - _poisson_pmf(0, away_rate))

    def over_goals(
        self,
        matrix: List[List[float]] | Tuple[Tuple[float, ...], ...],
        line: float = 2.5,
    ) -> float:
        under = sum(
            probability
            for h, row in enumerate(matrix)
            for a, probability in enumerate(row)
            if h + a < line
        )
        return min(1.0, max(0.0, 1.0 - under))

    @staticmethod
    def confidence(features: PredictionFeatures, outcome: OutcomeDistribution) -> float:
        values = features.values()
        completeness = sum(1 for value in values if value > 0) / len(FEATURE_NAMES)
        sharpness = 1.0 - outcome.entropy() / math.log2(3)
        score = (completeness * 0.4 + sharpness * 0.6) * 0.9
        return min(1.0, max(0.0, score))

    @staticmethod
    def key_factors(features: PredictionFeatures) -> List[str]:
        factors: List[str] = []
        if abs(features.home_team_form - features.away_team_form) > 0.2 - _GAP_TOLERANCE:
            factors.append(FACTOR_FORM_GAP)
        if features.home_advantage > 0.6:
            factors.append(FACTOR_HOME_ADVANTAGE)
        if features.head_to_head_ratio > 0.7 or features.head_to_head_ratio < 0.3:
            factors.append(FACTOR_HEAD_TO_HEAD)
        if abs(features.avg_goals_home - features.avg_goals_away) > 0.5 - _GAP_TOLERANCE:
            factors.append(FACTOR_GOAL_GAP)
        return factors

    def predict(self, features: PredictionFeatures) -> PredictionResult:
        goals = self.poisson_goal_model(features)
        logistic = self.logistic_model(features)
        outcome = self.combine(goals.outcome, logistic, features)
        logger.debug(
            "Poisson %s logistic %s combined %s",
            goals.outcome.to_dict(),
            logistic.to_dict(),
            outcome.to_dict(),
        )
        return PredictionResult.from_distribution(
            outcome,
            btts_probability=self.both_teams_to_score(
                goals.home_expected_goals, goals.away_expected_goals
            ),
            over25_probability=self.over_goals(goals.matrix),
            predicted_score=goals.predicted_score,
            confidence_score=self.confidence(features, outcome),
            key_factors=self.key_factors(features),
            model_type=MODEL_TYPE,
            calculation_method="client_baseline",
        )


__all__ = [
    "FACTOR_FORM_GAP",
    "FACTOR_GOAL_GAP",
    "FACTOR_HEAD_TO_HEAD",
    "FACTOR_HOME_ADVANTAGE",
    "MODEL_TYPE",
    "PoissonGoalModel",
    "RegressionEnsemble",
]
