from __future__ import annotations

import logging

import pytest
from hypothesis import given, strategies as st

from matchcast.engine.bayesian import BayesianParams, BayesianUpdater
from matchcast.engine.exceptions import DegenerateStatisticsError


def test_posterior_mean_is_pulled_towards_evidence() -> None:
    prior = BayesianParams(prior_mean=1500, prior_variance=400)
    posterior = BayesianUpdater.update(prior, [1520, 1510, 1530])

    assert 1500 < posterior.prior_mean < 1520
    assert posterior.prior_variance < prior.prior_variance
    assert posterior.evidence == (1520.0, 1510.0, 1530.0)
    assert posterior.likelihood == pytest.approx(1520)


def test_update_does_not_mutate_prior() -> None:
    prior = BayesianParams(prior_mean=10, prior_variance=4)
    BayesianUpdater.update(prior, [12, 14])
    assert prior == BayesianParams(prior_mean=10, prior_variance=4)


def test_empty_evidence_is_degenerate() -> None:
    with pytest.raises(DegenerateStatisticsError):
        BayesianUpdater.update(BayesianParams(0, 1), [])


def test_zero_variance_everywhere_is_degenerate() -> None:
    with pytest.raises(DegenerateStatisticsError):
        BayesianUpdater.update(BayesianParams(0, 0), [3, 3, 3])


def test_constant_evidence_collapses_onto_sample_mean() -> None:
    posterior = BayesianUpdater.update(BayesianParams(0, 10), [3, 3, 3])
    assert posterior.prior_mean == 3
    assert posterior.prior_variance == 0


def test_certain_prior_ignores_evidence() -> None:
    posterior = BayesianUpdater.update(BayesianParams(5, 0), [1, 2, 3])
    assert posterior.prior_mean == 5
    assert posterior.prior_variance == 0


def test_sequential_updates_match_manual_chain() -> None:
    prior = BayesianParams(0, 25)
    batches = [[1.0, 3.0], [2.0, 6.0, 4.0]]
    chained = BayesianUpdater.update(BayesianUpdater.update(prior, batches[0]), batches[1])
    assert BayesianUpdater.update_sequential(prior, batches) == chained


@pytest.mark.parametrize(
    ("confidence", "z"),
    [(0.68, 1.0), (0.90, 1.645), (0.95, 1.96), (0.99, 2.576)],
)
def test_credible_interval_uses_tabled_z(confidence: float, z: float) -> None:
    lower, upper = BayesianUpdater.credible_interval(BayesianParams(10, 4), confidence)
    assert lower == pytest.approx(10 - 2 * z)
    assert upper == pytest.approx(10 + 2 * z)


def test_unknown_confidence_falls_back_to_95(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="matchcast.engine.bayesian"):
        interval = BayesianUpdater.credible_interval(BayesianParams(0, 1), 0.8)
    assert interval == pytest.approx((-1.96, 1.96))
    assert "No z-score tabled" in caplog.text


@pytest.mark.parametrize("confidence", [0.899, 0.951, 0.685])
def test_near_miss_confidence_is_not_snapped_to_a_table_entry(
    confidence: float, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="matchcast.engine.bayesian"):
        interval = BayesianUpdater.credible_interval(BayesianParams(0, 1), confidence)
    assert interval == pytest.approx((-1.96, 1.96))
    assert "No z-score tabled" in caplog.text


def test_tabled_confidence_tolerates_float_noise() -> None:
    interval = BayesianUpdater.credible_interval(BayesianParams(0, 1), 0.1 * 9)
    assert interval == pytest.approx((-1.645, 1.645))


@given(
    st.lists(
        st.floats(min_value=-1e3, max_value=1e3, allow_nan=False, allow_infinity=False),
        min_size=2,
        max_size=30,
    ),
    st.floats(min_value=1e-3, max_value=1e4),
)
def test_evidence_always_shrinks_variance(evidence, prior_variance) -> None:
    posterior = BayesianUpdater.update(BayesianParams(0.0, prior_variance), evidence)
    assert posterior.prior_variance <= prior_variance
    if min(evidence) != max(evidence):
        assert posterior.prior_variance < prior_variance
