from __future__ import annotations

import pytest

from matchcast.engine.ensemble import (
    MODEL_TYPE,
    EloComponent,
    EnsemblePredictor,
    RegressionComponent,
    combine_components,
)
from matchcast.engine.monte_carlo import MonteCarloSimulator
from matchcast.engine.regression import RegressionEnsemble
from matchcast.engine.types import OutcomeDistribution


def _predictor(**kwargs) -> EnsemblePredictor:
    model = RegressionEnsemble()
    simulator = MonteCarloSimulator(model, seed=21, chunk_size=100)
    return EnsemblePredictor(model, simulator, iterations=200, **kwargs)


def test_weights_renormalise_without_history(scenario_features) -> None:
    prediction = _predictor().predict(scenario_features)

    assert prediction.weights["elo"] == 0.0
    assert prediction.weights["regression"] == pytest.approx(0.5)
    assert prediction.weights["monte_carlo"] == pytest.approx(0.5)
    assert [component.kind for component in prediction.components] == [
        "regression",
        "monte_carlo",
    ]
    assert prediction.result.key_factors[-1] == "Ensemble of 2 models"


def test_elo_joins_with_history_and_team_names(scenario_features, history) -> None:
    prediction = _predictor().predict(
        scenario_features, history, home_team="Arsenal", away_team="Everton"
    )

    assert prediction.weights == pytest.approx(
        {"regression": 0.4, "monte_carlo": 0.4, "elo": 0.2}
    )
    elo = prediction.components[-1]
    assert isinstance(elo, EloComponent)
    assert elo.matches_replayed == len(history)
    assert prediction.result.key_factors[-1] == "Ensemble of 3 models"


def test_history_without_team_names_is_ignored(scenario_features, history) -> None:
    prediction = _predictor().predict(scenario_features, history)
    assert len(prediction.components) == 2


def test_result_is_normalised_and_tagged(scenario_features) -> None:
    result = _predictor().predict(scenario_features).result

    assert sum(result.outcome) == pytest.approx(1.0)
    assert result.model_type == MODEL_TYPE
    assert result.calculation_method == "client_baseline"
    assert result.predicted_score is not None


def test_confidence_is_boosted_and_capped(scenario_features) -> None:
    regression = RegressionEnsemble().predict(scenario_features)
    boosted = _predictor().predict(scenario_features).result
    assert boosted.confidence_score == pytest.approx(
        min(0.95, regression.confidence_score * 1.1)
    )

    capped = _predictor(confidence_boost=10.0, confidence_cap=0.6).predict(scenario_features)
    assert capped.result.confidence_score == 0.6


def test_to_dict_carries_ensemble_details(scenario_features) -> None:
    payload = _predictor().predict(scenario_features).to_dict()
    details = payload["ensemble_details"]

    assert details["components"] == ["regression", "monte_carlo"]
    assert set(details["monte_carlo"]["confidence_intervals"]) == {
        "home_win_probability",
        "draw_probability",
        "away_win_probability",
    }


def test_combine_components_weighted_average(scenario_features) -> None:
    regression = RegressionComponent(RegressionEnsemble().predict(scenario_features))
    elo = EloComponent(OutcomeDistribution(0.2, 0.3, 0.5))
    outcome, weights = combine_components([regression, elo])

    assert weights["monte_carlo"] == 0.0
    assert weights["regression"] == pytest.approx(2 / 3)
    expected_home = regression.outcome.home_win * 2 / 3 + 0.2 / 3
    assert outcome.home_win == pytest.approx(expected_home)


def test_combine_components_requires_input() -> None:
    with pytest.raises(ValueError):
        combine_components([])
