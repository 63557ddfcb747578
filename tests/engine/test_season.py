from __future__ import annotations

import datetime as dt
import itertools
import logging

import polars as pl
import pytest

from matchcast.engine.features import extract_features
from matchcast.engine.season import (
    ConstantRateModel,
    RegressionRateModel,
    SeasonMatch,
    SeasonSimulator,
    SeasonTeam,
    build_fixtures,
)


def _simulator(**kwargs) -> SeasonSimulator:
    kwargs.setdefault("seed", 42)
    kwargs.setdefault("chunk_size", 50)
    return SeasonSimulator(ConstantRateModel(), **kwargs)


def test_champion_probabilities_sum_to_one_hundred(round_robin) -> None:
    result = _simulator().simulate_season("Premier League", "2025/26", round_robin, 200)

    assert result.status == "completed"
    assert result.simulations == 200
    assert sum(entry.probability for entry in result.predictions.champion) == pytest.approx(100.0)
    # Four teams: everyone is top four and three of them are bottom three.
    for entry in result.predictions.top_four:
        assert entry.probability == pytest.approx(100.0)
    assert sum(entry.probability for entry in result.predictions.relegation) == pytest.approx(
        300.0
    )


def test_table_covers_all_teams(round_robin) -> None:
    result = _simulator().simulate_season("Premier League", "2025/26", round_robin, 100)

    assert {row.name for row in result.final_table} == {
        "Arsenal",
        "Chelsea",
        "Everton",
        "Liverpool",
    }
    assert all(row.played == 6 for row in result.final_table)
    points = [row.points for row in result.final_table]
    assert points == sorted(points, reverse=True)
    assert result.total_matches == 12
    assert result.completed_matches == 4


def test_played_results_are_locked_in(round_robin) -> None:
    teams = SeasonSimulator.initialise_teams(round_robin)
    SeasonSimulator.apply_played(teams, round_robin)
    by_name = {team.name: team for team in teams}

    assert by_name["Arsenal"].points == 4
    assert by_name["Chelsea"].points == 3
    assert by_name["Everton"].points == 0
    assert by_name["Liverpool"].points == 4
    assert by_name["Arsenal"].form == ["W", "D"]


def test_same_seed_is_reproducible(round_robin) -> None:
    first = _simulator().simulate_season("PL", "2025/26", round_robin, 150)
    second = _simulator().simulate_season("PL", "2025/26", round_robin, 150)

    assert first.final_table == second.final_table
    assert first.predictions == second.predictions


def test_worker_count_does_not_change_results(round_robin) -> None:
    serial = _simulator().simulate_season("PL", "2025/26", round_robin, 200)
    threaded = _simulator(workers=3, executor="thread").simulate_season(
        "PL", "2025/26", round_robin, 200
    )
    processes = _simulator(workers=2, executor="process").simulate_season(
        "PL", "2025/26", round_robin, 200
    )

    assert threaded.final_table == serial.final_table
    assert processes.predictions == serial.predictions


def test_empty_fixture_list() -> None:
    result = _simulator().simulate_season("PL", "2025/26", [])

    assert result.status == "empty"
    assert result.final_table == []
    assert result.simulations == 0


def test_trials_are_capped(round_robin, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="matchcast.engine.season"):
        result = _simulator(max_trials=120).simulate_season("PL", "2025/26", round_robin, 5000)

    assert result.simulations == 120
    assert result.status == "completed"
    assert "Capping 5000 season trials to 120" in caplog.text


def test_deadline_returns_partial_table(round_robin) -> None:
    counter = itertools.count()
    simulator = _simulator(clock=lambda: float(next(counter)))
    result = simulator.simulate_season("PL", "2025/26", round_robin, 500, deadline=0.5)

    assert result.status == "partial"
    assert result.simulations == 50
    assert sum(entry.probability for entry in result.predictions.champion) == pytest.approx(100.0)


def test_non_positive_trials_rejected(round_robin) -> None:
    with pytest.raises(ValueError):
        _simulator().simulate_season("PL", "2025/26", round_robin, 0)


def test_table_frame_schema(round_robin) -> None:
    frame = _simulator().simulate_season("PL", "2025/26", round_robin, 50).table_frame()

    assert frame.height == 4
    assert frame.schema["played"] == pl.Int64
    assert frame.schema["points"] == pl.Float64


def test_to_dict_is_serialisable(round_robin) -> None:
    payload = _simulator().simulate_season("PL", "2025/26", round_robin, 50).to_dict()

    assert payload["status"] == "completed"
    assert len(payload["matches"]) == 12
    assert isinstance(payload["created_at"], str)


def test_build_fixtures_from_frame() -> None:
    frame = pl.DataFrame(
        {
            "id": [1, 2],
            "home_team": ["Arsenal", "Chelsea"],
            "away_team": ["Chelsea", "Arsenal"],
            "home_goals": [1, None],
            "away_goals": [0, None],
        }
    )
    fixtures = build_fixtures(frame)

    assert fixtures[0].played and fixtures[0].match_id == 1
    assert not fixtures[1].played


def test_build_fixtures_requires_team_columns() -> None:
    with pytest.raises(ValueError):
        build_fixtures(pl.DataFrame({"home_team": ["Arsenal"]}))


def test_fixture_validation() -> None:
    with pytest.raises(ValueError):
        SeasonMatch("Arsenal", "Arsenal")
    with pytest.raises(ValueError):
        SeasonMatch("Arsenal", "Chelsea", played=True, home_goals=1)


def test_team_form_keeps_last_five() -> None:
    team = SeasonTeam("Arsenal")
    for scored, conceded in [(1, 0), (0, 0), (0, 1), (2, 1), (3, 3), (0, 2)]:
        team.record(scored, conceded)

    assert team.form == ["D", "L", "W", "D", "L"]
    assert team.points == 8
    assert team.goal_difference == -1


def test_regression_rate_model_falls_back_for_thin_history(round_robin) -> None:
    played = [match for match in round_robin if match.played]
    remaining = [match for match in round_robin if not match.played]
    model = RegressionRateModel(min_matches=5, fallback=ConstantRateModel(1.1, 0.9))

    assert model.rates(remaining, played) == [(1.1, 0.9)] * len(remaining)


def test_regression_rate_model_uses_history(round_robin) -> None:
    played = [match for match in round_robin if match.played]
    remaining = [match for match in round_robin if not match.played]
    rates = RegressionRateModel(min_matches=2).rates(remaining, played)

    assert len(rates) == len(remaining)
    assert all(0.1 <= home <= 20.0 and 0.1 <= away <= 20.0 for home, away in rates)
    assert rates != [(1.5, 1.2)] * len(remaining)


def _dated_meetings(start: dt.date, count: int, score: tuple[int, int]) -> list[SeasonMatch]:
    return [
        SeasonMatch(
            "Arsenal",
            "Chelsea",
            date=(start + dt.timedelta(days=7 * offset)).isoformat(),
            played=True,
            home_goals=score[0],
            away_goals=score[1],
        )
        for offset in range(count)
    ]


def test_regression_rate_model_orders_history_by_match_date() -> None:
    recent = _dated_meetings(dt.date(2025, 1, 4), 20, (1, 1))
    stale = _dated_meetings(dt.date(2024, 1, 6), 5, (9, 0))
    fixture = [SeasonMatch("Arsenal", "Chelsea", date="2025-06-01")]
    model = RegressionRateModel(min_matches=2)

    assert model.rates(fixture, recent + stale) == model.rates(fixture, recent)


def test_regression_rate_model_passes_match_dates_to_features(monkeypatch) -> None:
    captured = []

    def fake_extract(home, away, history, **kwargs):
        captured.extend(history)
        return extract_features(home, away, history, **kwargs)

    monkeypatch.setattr("matchcast.engine.season.extract_features", fake_extract)
    played = _dated_meetings(dt.date(2025, 1, 4), 3, (2, 1))
    RegressionRateModel(min_matches=2).rates([SeasonMatch("Arsenal", "Chelsea")], played)

    assert captured
    assert all(isinstance(record.played_at, dt.datetime) for record in captured)
