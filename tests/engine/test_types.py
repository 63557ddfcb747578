from __future__ import annotations

import math

import pytest

from matchcast.engine.exceptions import InvalidFeatureInputError, PredictionFailure
from matchcast.engine.types import (
    FEATURE_NAMES,
    OutcomeDistribution,
    PredictionFeatures,
    PredictionResult,
    ScoreLine,
    clamp_probability,
)


def test_from_mapping_lists_missing_features(scenario_mapping) -> None:
    del scenario_mapping["recent_meetings"]
    del scenario_mapping["home_advantage"]

    with pytest.raises(InvalidFeatureInputError, match="home_advantage, recent_meetings"):
        PredictionFeatures.from_mapping(scenario_mapping)


@pytest.mark.parametrize("bad", [math.nan, math.inf, None, True, "lots", [1.0]])
def test_invalid_feature_values_rejected(scenario_mapping, bad) -> None:
    scenario_mapping["home_team_form"] = bad
    with pytest.raises(InvalidFeatureInputError):
        PredictionFeatures.from_mapping(scenario_mapping)


def test_numeric_strings_are_coerced(scenario_mapping) -> None:
    scenario_mapping["home_team_form"] = "0.7"
    features = PredictionFeatures.from_mapping(scenario_mapping)
    assert features.home_team_form == 0.7
    assert list(features.as_dict()) == list(FEATURE_NAMES)


def test_scaled_requires_one_factor_per_feature(scenario_features) -> None:
    doubled = scenario_features.scaled([2.0] * len(FEATURE_NAMES))
    assert doubled.avg_goals_home == pytest.approx(3.6)
    with pytest.raises(InvalidFeatureInputError):
        scenario_features.scaled([1.0, 1.0])


def test_clamp_probability() -> None:
    assert clamp_probability(math.nan) == pytest.approx(0.5)
    assert clamp_probability(-1.0) == pytest.approx(1e-6)
    assert clamp_probability(2.0) == pytest.approx(1 - 1e-6)


def test_normalised_handles_degenerate_input() -> None:
    thirds = OutcomeDistribution(0.0, 0.0, 0.0).normalised()
    assert list(thirds) == pytest.approx([1 / 3] * 3)
    cleaned = OutcomeDistribution(math.nan, 1.0, -1.0).normalised()
    assert list(cleaned) == [0.0, 1.0, 0.0]


def test_with_floor_keeps_every_outcome_possible() -> None:
    floored = OutcomeDistribution(0.995, 0.004, 0.001).with_floor(0.01)

    assert floored.draw == pytest.approx(0.01)
    assert floored.away_win == pytest.approx(0.01)
    assert floored.home_win == pytest.approx(0.98)
    assert floored.total == pytest.approx(1.0)


def test_clamped_stays_inside_open_interval() -> None:
    clamped = OutcomeDistribution(1.0, 0.0, 0.0).clamped()
    assert all(0.0 < value < 1.0 for value in clamped)
    assert clamped.total == pytest.approx(1.0)


def test_prediction_result_to_dict() -> None:
    result = PredictionResult.from_distribution(
        OutcomeDistribution(0.5, 0.3, 0.2),
        predicted_score=ScoreLine(1.6, 0.9),
        model_type="advanced_regression_ensemble",
    )
    payload = result.to_dict()

    assert payload["predicted_score"] == {"home": 1.6, "away": 0.9}
    assert payload["calculation_method"] == "client_baseline"
    assert payload["partial"] is False
    assert payload["btts_probability"] is None


def test_prediction_failure_from_exception() -> None:
    failure = PredictionFailure.from_exception(InvalidFeatureInputError("bad input"))
    assert failure.to_dict() == {
        "status": "failed",
        "reason": "bad input",
        "error_type": "InvalidFeatureInputError",
    }
