"""Calibrated confidence scores and their plain-language explanations."""

from __future__ import annotations

import dataclasses
import math
from typing import List, Literal

from .types import OutcomeDistribution

ConfidenceLevel = Literal["low", "medium", "high", "very_high"]

_MAX_ENTROPY = math.log2(3)
_RECENCY_DECAY = 0.1
_CURVE_FLOOR = 0.2
_CURVE_CEILING = 0.9


@dataclasses.dataclass(frozen=True, slots=True)
class ConfidenceFactors:
    recency: float = 0.8
    completeness: float = 0.7
    accuracy: float = 0.75


def normalized_entropy(distribution: OutcomeDistribution) -> float:
    """Shannon entropy scaled to ``[0, 1]``; an all-zero input counts as maximal."""

    if distribution.total <= 0.0:
        return 1.0
    return distribution.entropy() / _MAX_ENTROPY


def sharpness(distribution: OutcomeDistribution) -> float:
    return 1.0 - normalized_entropy(distribution)


def recency_factor(age_hours: float = 0.0, max_age_hours: float = 24.0) -> float:
    if age_hours <= 0:
        return 1.0
    capped = min(age_hours, max_age_hours * 2)
    return math.exp(-_RECENCY_DECAY * (capped / max_age_hours))


def completeness_factor(available: int, total: int = 11, minimum: int = 5) -> float:
    if available < minimum:
        return 0.3
    return min(1.0, available / total)


def _confidence_curve(raw: float) -> float:
    x = (raw - 0.5) * 6.0
    sigmoid = 1.0 / (1.0 + math.exp(-x))
    return _CURVE_FLOOR + sigmoid * (_CURVE_CEILING - _CURVE_FLOOR)


def calibrated_confidence(
    distribution: OutcomeDistribution,
    recency: float = 0.8,
    completeness: float = 0.7,
    accuracy: float = 0.75,
) -> float:
    """Blend sharpness with data quality and map the result onto ``[0.2, 0.9]``.

    Sharpness carries weight 0.4; recency, completeness and historical
    accuracy 0.2 each.  The blend is bounded to ``[0.1, 0.95]`` before a
    sigmoid curve compresses the extremes.
    """

    raw = (
        sharpness(distribution) * 0.4
        + recency * 0.2
        + completeness * 0.2
        + accuracy * 0.2
    )
    return _confidence_curve(max(0.1, min(0.95, raw)))


def explain_confidence(
    distribution: OutcomeDistribution, factors: ConfidenceFactors | None = None
) -> List[str]:
    factors = factors or ConfidenceFactors()
    explanations: List[str] = []
    sharp = sharpness(distribution)
    if sharp > 0.7:
        explanations.append("Clear-cut prediction (low uncertainty)")
    elif sharp > 0.4:
        explanations.append("Moderate uncertainty in the outcome")
    else:
        explanations.append("High uncertainty, evenly matched sides")

    if factors.recency > 0.8:
        explanations.append("Based on fresh data")
    elif factors.recency < 0.5:
        explanations.append("Older data, treat with caution")

    if factors.completeness > 0.8:
        explanations.append("Complete dataset available")
    elif factors.completeness < 0.6:
        explanations.append("Based on limited data")

    if factors.accuracy > 0.8:
        explanations.append("High-accuracy model")
    elif factors.accuracy < 0.6:
        explanations.append("Model accuracy could be improved")
    return explanations


def confidence_level(value: float) -> ConfidenceLevel:
    if value >= 0.8:
        return "very_high"
    if value >= 0.65:
        return "high"
    if value >= 0.45:
        return "medium"
    return "low"


def format_confidence_percentage(value: float) -> str:
    percentage = value * 100
    if percentage >= 10:
        return str(round(percentage))
    return f"{percentage:.1f}"


__all__ = [
    "ConfidenceFactors",
    "ConfidenceLevel",
    "calibrated_confidence",
    "completeness_factor",
    "confidence_level",
    "explain_confidence",
    "format_confidence_percentage",
    "normalized_entropy",
    "recency_factor",
    "sharpness",
]
