"""Turn completed match rows into a :class:`PredictionFeatures` vector."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import Any, Iterable, List, Mapping, Sequence

import polars as pl

from .exceptions import EmptyDatasetError
from .types import PredictionFeatures

logger = logging.getLogger(__name__)

TEAM_WINDOW = 20
HEAD_TO_HEAD_WINDOW = 10
FORM_WINDOW = 5
DEFAULT_GOAL_AVERAGE = 1.2
STRENGTH_BOUNDS = (0.3, 3.0)

_REQUIRED_COLUMNS = ("home_team", "away_team", "home_goals", "away_goals")
_GOAL_ALIASES = {
    "home_goals": ("home_goals", "full_time_home_goals", "fthg"),
    "away_goals": ("away_goals", "full_time_away_goals", "ftag"),
}
_DATE_KEYS = ("played_at", "date", "match_date", "kickoff")


@dataclasses.dataclass(frozen=True, slots=True)
class MatchRecord:
    home_team: str
    away_team: str
    home_goals: int
    away_goals: int
    played_at: dt.datetime | None = None
    league: str | None = None
    season: str | None = None

    def involves(self, team: str) -> bool:
        return team in (self.home_team, self.away_team)

    def goals_for(self, team: str) -> int:
        return self.home_goals if team == self.home_team else self.away_goals

    def goals_against(self, team: str) -> int:
        return self.away_goals if team == self.home_team else self.home_goals

    def points_for(self, team: str) -> int:
        scored, conceded = self.goals_for(team), self.goals_against(team)
        if scored > conceded:
            return 3
        if scored == conceded:
            return 1
        return 0


def parse_played_at(value: Any) -> dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Ignoring unparseable match date %r", value)
            return None
    return None


def _lookup(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _first_present(row: Any, keys: Sequence[str]) -> Any:
    for key in keys:
        value = _lookup(row, key)
        if value is not None:
            return value
    return None


def _record_from_row(row: Any) -> MatchRecord | None:
    if isinstance(row, MatchRecord):
        return row
    home_goals = _first_present(row, _GOAL_ALIASES["home_goals"])
    away_goals = _first_present(row, _GOAL_ALIASES["away_goals"])
    if home_goals is None or away_goals is None or _lookup(row, "played") is False:
        return None
    home_team = _lookup(row, "home_team")
    away_team = _lookup(row, "away_team")
    if not home_team or not away_team:
        raise EmptyDatasetError("Match rows need both home_team and away_team")
    season = _lookup(row, "season")
    league = _lookup(row, "league")
    return MatchRecord(
        home_team=str(home_team),
        away_team=str(away_team),
        home_goals=int(home_goals),
        away_goals=int(away_goals),
        played_at=parse_played_at(_first_present(row, _DATE_KEYS)),
        league=None if league is None else str(league),
        season=None if season is None else str(season),
    )


def _frame_rows(frame: pl.DataFrame) -> Iterable[Mapping[str, Any]]:
    columns = set(frame.columns)
    missing = [
        column
        for column in _REQUIRED_COLUMNS
        if column not in columns
        and not columns.intersection(_GOAL_ALIASES.get(column, ()))
    ]
    if missing:
        raise EmptyDatasetError(f"Missing required columns: {', '.join(missing)}")
    return frame.iter_rows(named=True)


def build_match_records(rows: Iterable[Any] | pl.DataFrame) -> List[MatchRecord]:
    """Normalise completed matches from records, mappings, objects or a frame.

    Rows without both scores are treated as unplayed and dropped.
    """

    source = _frame_rows(rows) if isinstance(rows, pl.DataFrame) else rows
    records = []
    for row in source:
        record = _record_from_row(row)
        if record is not None:
            records.append(record)
    return records


def most_recent_first(records: Sequence[MatchRecord]) -> List[MatchRecord]:
    """Sort by ``played_at`` descending when every record carries a date.

    Undated history keeps the order it was given in, which is taken to be
    most recent first already.
    """

    if records and all(record.played_at is not None for record in records):
        return sorted(records, key=lambda record: _sort_key(record.played_at), reverse=True)
    return list(records)


def chronological(records: Sequence[MatchRecord]) -> List[MatchRecord]:
    return list(reversed(most_recent_first(records)))


def _sort_key(value: dt.datetime | None) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.timestamp()


def team_form(team: str, matches: Sequence[MatchRecord]) -> float:
    if not matches:
        return 0.5
    points = sum(match.points_for(team) for match in matches)
    return min(1.0, points / (len(matches) * 3))


def goal_averages(team: str, matches: Sequence[MatchRecord]) -> tuple[float, float]:
    if not matches:
        return DEFAULT_GOAL_AVERAGE, DEFAULT_GOAL_AVERAGE
    scored = sum(match.goals_for(team) for match in matches)
    conceded = sum(match.goals_against(team) for match in matches)
    return scored / len(matches), conceded / len(matches)


def team_strength(
    team: str, matches: Sequence[MatchRecord], league_average: float = 1.3
) -> tuple[float, float]:
    low, high = STRENGTH_BOUNDS
    scored, conceded = goal_averages(team, matches)
    offensive = max(low, min(high, scored / league_average))
    defensive = max(low, min(high, league_average / max(0.1, conceded)))
    return offensive, defensive


def head_to_head_ratio(home_team: str, meetings: Sequence[MatchRecord]) -> float:
    """Share of meetings won by ``home_team`` regardless of venue."""

    if not meetings:
        return 0.5
    wins = sum(1 for match in meetings if match.points_for(home_team) == 3)
    return wins / len(meetings)


def extract_features(
    home_team: str,
    away_team: str,
    history: Iterable[Any] | pl.DataFrame,
    *,
    min_matches: int = 5,
    home_advantage: float = 0.65,
    league_average: float = 1.3,
) -> PredictionFeatures | None:
    """Build the feature vector for ``home_team`` against ``away_team``.

    Returns ``None`` when fewer than ``min_matches`` completed matches are
    available in total.
    """

    records = most_recent_first(build_match_records(history))
    if len(records) < min_matches:
        logger.debug(
            "Only %d matches available for %s v %s; need %d",
            len(records),
            home_team,
            away_team,
            min_matches,
        )
        return None
    home_matches = [match for match in records if match.involves(home_team)][:TEAM_WINDOW]
    away_matches = [match for match in records if match.involves(away_team)][:TEAM_WINDOW]
    meetings = [
        match
        for match in records
        if {match.home_team, match.away_team} == {home_team, away_team}
    ][:HEAD_TO_HEAD_WINDOW]

    home_scored, _ = goal_averages(home_team, home_matches)
    away_scored, _ = goal_averages(away_team, away_matches)
    home_offensive, home_defensive = team_strength(home_team, home_matches, league_average)
    away_offensive, away_defensive = team_strength(away_team, away_matches, league_average)
    return PredictionFeatures(
        home_team_form=team_form(home_team, home_matches[:FORM_WINDOW]),
        away_team_form=team_form(away_team, away_matches[:FORM_WINDOW]),
        home_advantage=home_advantage,
        head_to_head_ratio=head_to_head_ratio(home_team, meetings),
        avg_goals_home=home_scored,
        avg_goals_away=away_scored,
        recent_meetings=float(len(meetings)),
        home_offensive_strength=home_offensive,
        away_offensive_strength=away_offensive,
        home_defensive_strength=home_defensive,
        away_defensive_strength=away_defensive,
    )


__all__ = [
    "MatchRecord",
    "build_match_records",
    "chronological",
    "extract_features",
    "goal_averages",
    "head_to_head_ratio",
    "most_recent_first",
    "parse_played_at",
    "team_form",
    "team_strength",
]
