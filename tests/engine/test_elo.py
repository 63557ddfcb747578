from __future__ import annotations

import datetime as dt

import pytest
from hypothesis import given, strategies as st

from matchcast.engine.elo import EloRatingSystem


def _frozen_clock() -> dt.datetime:
    return dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)


def test_fresh_teams_favour_home_side() -> None:
    system = EloRatingSystem(home_advantage=100)
    probabilities = system.get_probabilities("Arsenal", "Chelsea")

    assert probabilities.home_win > probabilities.away_win
    assert probabilities.draw == pytest.approx(0.28)
    assert sum(probabilities) == pytest.approx(1.0)


def test_get_rating_does_not_create_entries() -> None:
    system = EloRatingSystem()
    rating = system.get_rating("Arsenal")

    assert rating.rating == 1500
    assert rating.games == 0
    assert "Arsenal" not in system
    assert len(system) == 0


def test_default_rating_is_stamped_with_the_clock() -> None:
    system = EloRatingSystem(clock=_frozen_clock)
    rating = system.get_rating("Arsenal")

    assert rating.rating == 1500
    assert rating.last_updated == _frozen_clock()
    assert "Arsenal" not in system


def test_expected_score_with_equal_ratings() -> None:
    system = EloRatingSystem(home_advantage=0)
    assert system.calculate_expected_score(1500, 1500) == pytest.approx(0.5)


def test_update_records_games_and_timestamp() -> None:
    system = EloRatingSystem(clock=_frozen_clock)
    update = system.update_ratings("Arsenal", "Chelsea", 2, 1)

    home = system.get_rating("Arsenal")
    away = system.get_rating("Chelsea")
    assert home.games == away.games == 1
    assert home.last_updated == _frozen_clock()
    assert home.rating > 1500 > away.rating
    assert update.home_change == pytest.approx(home.rating - 1500)


def test_adaptive_k_factor_shrinks_with_experience() -> None:
    system = EloRatingSystem(k_factor=32)
    first = system.update_ratings("Arsenal", "Chelsea", 1, 0)
    assert first.k_factor == pytest.approx(48)

    for _ in range(40):
        system.update_ratings("Arsenal", "Chelsea", 1, 1)
    assert system.update_ratings("Arsenal", "Chelsea", 1, 1).k_factor == pytest.approx(32)

    for _ in range(70):
        system.update_ratings("Arsenal", "Chelsea", 1, 1)
    assert system.update_ratings("Arsenal", "Chelsea", 1, 1).k_factor == pytest.approx(25.6)


def test_independent_systems_do_not_share_state() -> None:
    first = EloRatingSystem()
    second = EloRatingSystem()
    first.update_ratings("Arsenal", "Chelsea", 3, 0)

    assert "Arsenal" in first
    assert "Arsenal" not in second


def test_replay_skips_unplayed_fixtures(history) -> None:
    system = EloRatingSystem()
    rows = [*history, {"home_team": "Arsenal", "away_team": "Liverpool", "played": False}]

    assert system.replay(rows) == len(history)
    assert sum(rating.games for rating in system.ratings().values()) == 2 * len(history)


def test_team_cannot_play_itself() -> None:
    with pytest.raises(ValueError):
        EloRatingSystem().update_ratings("Arsenal", "Arsenal", 1, 0)


@given(
    home_goals=st.integers(min_value=0, max_value=9),
    away_goals=st.integers(min_value=0, max_value=9),
    home_games=st.integers(min_value=0, max_value=150),
)
def test_updates_are_zero_sum(home_goals: int, away_goals: int, home_games: int) -> None:
    system = EloRatingSystem()
    for _ in range(home_games):
        system.update_ratings("Arsenal", "Everton", 1, 0)
    before = system.get_rating("Arsenal").rating + system.get_rating("Chelsea").rating

    update = system.update_ratings("Arsenal", "Chelsea", home_goals, away_goals)

    assert update.home_change + update.away_change == 0
    after = system.get_rating("Arsenal").rating + system.get_rating("Chelsea").rating
    assert after == pytest.approx(before)
