from __future__ import annotations

import itertools

import pytest

from matchcast.engine.monte_carlo import (
    MODEL_TYPE,
    MonteCarloSimulator,
    _percentile_interval,
)
from matchcast.engine.regression import RegressionEnsemble
from matchcast.engine.statistics import descriptive_stats


def _ticking_clock(step: float = 1.0):
    counter = itertools.count()
    return lambda: next(counter) * step


def test_same_seed_gives_identical_aggregates(scenario_features) -> None:
    first = MonteCarloSimulator(seed=7, chunk_size=100).run(scenario_features, 500)
    second = MonteCarloSimulator(seed=7, chunk_size=100).run(scenario_features, 500)

    assert first.mean_prediction == second.mean_prediction
    assert first.confidence_intervals == second.confidence_intervals
    assert first.variability == second.variability


def test_mean_prediction_is_a_distribution(scenario_features) -> None:
    result = MonteCarloSimulator(seed=1, chunk_size=100).run(scenario_features, 300)
    mean = result.mean_prediction

    assert sum(mean.outcome) == pytest.approx(1.0)
    assert mean.model_type == MODEL_TYPE
    assert result.iterations == result.requested == 300
    assert not result.partial
    for key, interval in result.confidence_intervals.items():
        assert 0.0 <= interval.lower <= interval.upper <= 1.0, key


def test_thread_pool_matches_serial(scenario_features) -> None:
    serial = MonteCarloSimulator(seed=11, chunk_size=50).run(scenario_features, 400)
    pooled = MonteCarloSimulator(
        seed=11, chunk_size=50, workers=2, executor="thread"
    ).run(scenario_features, 400)

    assert pooled.mean_prediction == serial.mean_prediction
    assert pooled.confidence_intervals == serial.confidence_intervals
    assert pooled.variability == serial.variability


def test_process_pool_matches_serial(scenario_features) -> None:
    serial = MonteCarloSimulator(seed=5, chunk_size=50).run(scenario_features, 150)
    pooled = MonteCarloSimulator(
        seed=5, chunk_size=50, workers=2, executor="process"
    ).run(scenario_features, 150)

    assert pooled.mean_prediction == serial.mean_prediction


def test_zero_noise_reproduces_the_point_estimate(scenario_features) -> None:
    model = RegressionEnsemble()
    point = model.predict(scenario_features)
    result = MonteCarloSimulator(model, noise=0.0, seed=3, chunk_size=50).run(
        scenario_features, 100
    )

    assert result.mean_prediction.home_win_probability == pytest.approx(
        point.home_win_probability
    )
    assert result.mean_prediction.btts_probability == pytest.approx(point.btts_probability)
    assert result.variability == pytest.approx(0.0, abs=1e-12)


def test_scenarios_are_capped(scenario_features) -> None:
    result = MonteCarloSimulator(seed=2, chunk_size=100).run(scenario_features, 500)
    assert len(result.scenarios) == 100


def test_variability_is_sample_deviation_of_home_probabilities(scenario_features) -> None:
    result = MonteCarloSimulator(seed=5, chunk_size=100, scenario_limit=100).run(
        scenario_features, 100
    )
    home = [scenario.home_win_probability for scenario in result.scenarios]

    assert len(home) == 100
    assert result.variability == pytest.approx(descriptive_stats(home).standard_deviation)


def test_single_iteration_has_no_variability(scenario_features) -> None:
    result = MonteCarloSimulator(seed=5, chunk_size=100).run(scenario_features, 1)
    assert result.iterations == 1
    assert result.variability == 0.0


def test_deadline_keeps_first_chunk(scenario_features) -> None:
    simulator = MonteCarloSimulator(seed=9, chunk_size=100, clock=_ticking_clock())
    result = simulator.run(scenario_features, 1000, deadline=0.5)

    assert result.iterations == 100
    assert result.requested == 1000
    assert result.partial
    assert result.mean_prediction.partial


def test_non_positive_iterations_rejected(scenario_features) -> None:
    with pytest.raises(ValueError):
        MonteCarloSimulator().run(scenario_features, 0)


def test_percentile_interval_indices() -> None:
    values = [float(i) for i in range(200)]
    interval = _percentile_interval(list(reversed(values)))
    assert interval.lower == 5.0
    assert interval.upper == 195.0
    single = _percentile_interval([0.4])
    assert single.lower == single.upper == 0.4
