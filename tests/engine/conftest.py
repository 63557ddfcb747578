import datetime as dt
from typing import Dict, List

import pytest

from matchcast.engine.features import MatchRecord
from matchcast.engine.season import SeasonMatch
from matchcast.engine.types import PredictionFeatures


SCENARIO_FEATURES: Dict[str, float] = {
    "home_team_form": 0.7,
    "away_team_form": 0.5,
    "home_advantage": 0.6,
    "head_to_head_ratio": 0.6,
    "avg_goals_home": 1.8,
    "avg_goals_away": 1.2,
    "recent_meetings": 0.7,
    "home_offensive_strength": 0.75,
    "away_offensive_strength": 0.55,
    "home_defensive_strength": 0.65,
    "away_defensive_strength": 0.7,
}


@pytest.fixture
def scenario_mapping() -> Dict[str, float]:
    return dict(SCENARIO_FEATURES)


@pytest.fixture
def scenario_features() -> PredictionFeatures:
    return PredictionFeatures.from_mapping(SCENARIO_FEATURES)


@pytest.fixture
def history() -> List[MatchRecord]:
    start = dt.datetime(2025, 8, 16, 15, 0)
    results = [
        ("Arsenal", "Chelsea", 2, 0),
        ("Liverpool", "Arsenal", 1, 1),
        ("Chelsea", "Everton", 3, 1),
        ("Arsenal", "Everton", 4, 0),
        ("Everton", "Liverpool", 0, 2),
        ("Chelsea", "Arsenal", 1, 2),
        ("Liverpool", "Chelsea", 2, 2),
        ("Everton", "Arsenal", 1, 3),
    ]
    return [
        MatchRecord(home, away, hg, ag, played_at=start + dt.timedelta(days=7 * i))
        for i, (home, away, hg, ag) in enumerate(results)
    ]


@pytest.fixture
def round_robin() -> List[SeasonMatch]:
    teams = ["Arsenal", "Chelsea", "Everton", "Liverpool"]
    fixtures: List[SeasonMatch] = []
    played_scores = {
        ("Arsenal", "Chelsea"): (2, 0),
        ("Chelsea", "Everton"): (3, 1),
        ("Everton", "Liverpool"): (0, 2),
        ("Liverpool", "Arsenal"): (1, 1),
    }
    match_id = 0
    for home in teams:
        for away in teams:
            if home == away:
                continue
            match_id += 1
            score = played_scores.get((home, away))
            fixtures.append(
                SeasonMatch(
                    home_team=home,
                    away_team=away,
                    played=score is not None,
                    home_goals=score[0] if score else None,
                    away_goals=score[1] if score else None,
                    match_id=match_id,
                )
            )
    return fixtures
