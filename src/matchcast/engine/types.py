"""Value records shared by the prediction models."""

from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, Iterator, List, Literal, Mapping, Sequence, SupportsFloat

from .exceptions import InvalidFeatureInputError

CalculationMethod = Literal["backend", "client_baseline"]

FEATURE_NAMES: tuple[str, ...] = (
    "home_team_form",
    "away_team_form",
    "home_advantage",
    "head_to_head_ratio",
    "avg_goals_home",
    "avg_goals_away",
    "recent_meetings",
    "home_offensive_strength",
    "away_offensive_strength",
    "home_defensive_strength",
    "away_defensive_strength",
)

OUTCOME_KEYS: tuple[str, str, str] = (
    "home_win_probability",
    "draw_probability",
    "away_win_probability",
)

PROBABILITY_EPSILON = 1e-6


def clamp_probability(
    value: float, low: float = PROBABILITY_EPSILON, high: float = 1.0 - PROBABILITY_EPSILON
) -> float:
    """Force ``value`` into ``[low, high]``; NaN maps to the midpoint."""

    if math.isnan(value):
        return (low + high) / 2.0
    return max(low, min(high, value))


def _coerce_feature(value: object, field: str) -> float:
    if value is None:
        raise InvalidFeatureInputError(f"Missing required feature {field}")
    if isinstance(value, bool) or not isinstance(value, (int, float, str, SupportsFloat)):
        raise InvalidFeatureInputError(
            f"Feature {field} expected a real number, got {type(value).__name__}"
        )
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFeatureInputError(f"Feature {field} is not numeric: {value!r}") from exc
    if not math.isfinite(number):
        raise InvalidFeatureInputError(f"Feature {field} must be finite, got {number}")
    return number


# ---------------------------------------------------------------------------
# Feature vector
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class PredictionFeatures:
    """Eleven per-fixture signals consumed by every match model.

    Form and strength values are conventionally within ``[0, 1]`` but the
    models only degrade, never fail, outside that range.  Non-finite values
    are rejected at construction time.
    """

    home_team_form: float
    away_team_form: float
    home_advantage: float
    head_to_head_ratio: float
    avg_goals_home: float
    avg_goals_away: float
    recent_meetings: float
    home_offensive_strength: float
    away_offensive_strength: float
    home_defensive_strength: float
    away_defensive_strength: float

    def __post_init__(self) -> None:
        for name in FEATURE_NAMES:
            object.__setattr__(self, name, _coerce_feature(getattr(self, name), name))

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "PredictionFeatures":
        missing = [name for name in FEATURE_NAMES if name not in values]
        if missing:
            raise InvalidFeatureInputError(
                "Missing required features: " + ", ".join(sorted(missing))
            )
        return cls(**{name: values[name] for name in FEATURE_NAMES})  # type: ignore[arg-type]

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in FEATURE_NAMES}

    def values(self) -> List[float]:
        return [getattr(self, name) for name in FEATURE_NAMES]

    def scaled(self, factors: Sequence[float]) -> "PredictionFeatures":
        """Return a copy with each feature multiplied by the matching factor."""

        if len(factors) != len(FEATURE_NAMES):
            raise InvalidFeatureInputError(
                f"Expected {len(FEATURE_NAMES)} scale factors, got {len(factors)}"
            )
        return PredictionFeatures(
            *(value * factor for value, factor in zip(self.values(), factors))
        )


# ---------------------------------------------------------------------------
# Outcome containers
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class OutcomeDistribution:
    """Home win / draw / away win probabilities."""

    home_win: float
    draw: float
    away_win: float

    def __iter__(self) -> Iterator[float]:
        yield self.home_win
        yield self.draw
        yield self.away_win

    @property
    def total(self) -> float:
        return self.home_win + self.draw + self.away_win

    def normalised(self) -> "OutcomeDistribution":
        values = [value if math.isfinite(value) else 0.0 for value in self]
        values = [max(0.0, value) for value in values]
        total = sum(values)
        if total <= 0.0:
            return OutcomeDistribution(1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0)
        return OutcomeDistribution(*(value / total for value in values))

    def with_floor(self, floor: float) -> "OutcomeDistribution":
        """Normalise while guaranteeing every outcome is at least ``floor``."""

        values = list(self.normalised())
        if floor <= 0.0:
            return OutcomeDistribution(*values)
        floor = min(floor, 1.0 / 3.0)
        pinned = [False, False, False]
        for _ in range(len(values)):
            free_mass = 1.0 - floor * sum(pinned)
            free_total = sum(value for value, fixed in zip(values, pinned) if not fixed)
            if free_total <= 0.0:
                return OutcomeDistribution(1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0)
            adjusted = [
                floor if fixed else value / free_total * free_mass
                for value, fixed in zip(values, pinned)
            ]
            newly_pinned = [
                not fixed and value < floor for value, fixed in zip(adjusted, pinned)
            ]
            if not any(newly_pinned):
                return OutcomeDistribution(*adjusted)
            pinned = [a or b for a, b in zip(pinned, newly_pinned)]
        return OutcomeDistribution(*adjusted)

    def clamped(self) -> "OutcomeDistribution":
        """Keep every outcome strictly inside ``(0, 1)`` and summing to one."""

        normalised = self.normalised()
        clamped = OutcomeDistribution(*(clamp_probability(value) for value in normalised))
        return clamped.normalised()

    def entropy(self) -> float:
        """Shannon entropy in bits."""

        normalised = self.normalised()
        return -sum(p * math.log2(p) for p in normalised if p > 0.0)

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(OUTCOME_KEYS, self))


@dataclasses.dataclass(frozen=True, slots=True)
class ScoreLine:
    home: float
    away: float

    def to_dict(self) -> Dict[str, float]:
        return {"home": self.home, "away": self.away}


@dataclasses.dataclass(frozen=True, slots=True)
class ConfidenceInterval:
    lower: float
    upper: float

    def to_dict(self) -> Dict[str, float]:
        return {"lower": self.lower, "upper": self.upper}


@dataclasses.dataclass(slots=True)
class PredictionResult:
    """Outcome probabilities and derived markets for one fixture."""

    home_win_probability: float
    draw_probability: float
    away_win_probability: float
    btts_probability: float | None = None
    over25_probability: float | None = None
    predicted_score: ScoreLine | None = None
    confidence_score: float = 0.0
    key_factors: List[str] = dataclasses.field(default_factory=list)
    model_type: str = "unknown"
    calculation_method: CalculationMethod = "client_baseline"
    partial: bool = False

    @property
    def outcome(self) -> OutcomeDistribution:
        return OutcomeDistribution(
            self.home_win_probability, self.draw_probability, self.away_win_probability
        )

    @classmethod
    def from_distribution(
        cls, distribution: OutcomeDistribution, **kwargs: Any
    ) -> "PredictionResult":
        return cls(
            home_win_probability=distribution.home_win,
            draw_probability=distribution.draw,
            away_win_probability=distribution.away_win,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "home_win_probability": self.home_win_probability,
            "draw_probability": self.draw_probability,
            "away_win_probability": self.away_win_probability,
            "btts_probability": self.btts_probability,
            "over25_probability": self.over25_probability,
            "predicted_score": (
                self.predicted_score.to_dict() if self.predicted_score else None
            ),
            "confidence_score": self.confidence_score,
            "key_factors": list(self.key_factors),
            "model_type": self.model_type,
            "calculation_method": self.calculation_method,
            "partial": self.partial,
        }


__all__ = [
    "CalculationMethod",
    "ConfidenceInterval",
    "FEATURE_NAMES",
    "OUTCOME_KEYS",
    "OutcomeDistribution",
    "PredictionFeatures",
    "PredictionResult",
    "ScoreLine",
    "clamp_probability",
]
