"""Error taxonomy for the prediction engine."""

from __future__ import annotations

import dataclasses


class MatchcastError(Exception):
    """Base class for engine errors."""


class InvalidFeatureInputError(MatchcastError, ValueError):
    """Raised when a feature vector holds missing or non-finite values."""


class DegenerateStatisticsError(MatchcastError, ValueError):
    """Raised when a statistic is undefined for the supplied sample."""


class EmptyDatasetError(MatchcastError, ValueError):
    """Raised when a computation receives no usable rows or mismatched arrays."""


@dataclasses.dataclass(frozen=True, slots=True)
class PredictionFailure:
    """Typed failure returned by the public facade instead of raising."""

    reason: str
    error_type: str = "MatchcastError"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "PredictionFailure":
        return cls(reason=str(exc), error_type=type(exc).__name__)

    def to_dict(self) -> dict[str, str]:
        return {"status": "failed", "reason": self.reason, "error_type": self.error_type}


__all__ = [
    "DegenerateStatisticsError",
    "EmptyDatasetError",
    "InvalidFeatureInputError",
    "MatchcastError",
    "PredictionFailure",
]
