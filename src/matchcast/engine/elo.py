"""Elo rating system with home advantage and an empirical draw rate."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import Any, Callable, Dict, Iterable, Iterator

from .types import OutcomeDistribution

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclasses.dataclass(slots=True)
class EloRating:
    rating: float
    games: int = 0
    last_updated: dt.datetime | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class EloUpdate:
    home_team: str
    away_team: str
    home_change: float
    away_change: float
    home_rating: float
    away_rating: float
    k_factor: float


class EloRatingSystem:
    """Ratings for one analysis session.

    Each instance owns its rating table; two systems never share state.
    Updates are not thread safe and must be applied by a single writer.
    """

    def __init__(
        self,
        home_advantage: float = 100.0,
        k_factor: float = 32.0,
        draw_rate: float = 0.28,
        base_rating: float = 1500.0,
        clock: Clock | None = None,
    ) -> None:
        if not 0.0 <= draw_rate < 1.0:
            raise ValueError("draw_rate must be within [0, 1)")
        self.home_advantage = float(home_advantage)
        self.k_factor = float(k_factor)
        self.draw_rate = float(draw_rate)
        self.base_rating = float(base_rating)
        self._clock: Clock = clock or _utcnow
        self._ratings: Dict[str, EloRating] = {}

    def __len__(self) -> int:
        return len(self._ratings)

    def __contains__(self, team: object) -> bool:
        return team in self._ratings

    def __iter__(self) -> Iterator[str]:
        return iter(self._ratings)

    def get_rating(self, team: str) -> EloRating:
        """Return the stored rating or a fresh default without storing it."""

        rating = self._ratings.get(team)
        if rating is None:
            return EloRating(rating=self.base_rating, last_updated=self._clock())
        return dataclasses.replace(rating)

    def ratings(self) -> Dict[str, EloRating]:
        return {team: dataclasses.replace(rating) for team, rating in self._ratings.items()}

    def calculate_expected_score(self, home_rating: float, away_rating: float) -> float:
        exponent = (away_rating - (home_rating + self.home_advantage)) / 400.0
        # Ratings thousands of points apart would overflow 10 ** exponent.
        exponent = max(-300.0, min(300.0, exponent))
        return 1.0 / (1.0 + 10.0**exponent)

    def _adaptive_k(self, home_games: int, away_games: int) -> float:
        average = (home_games + away_games) / 2.0
        if average < 30:
            return self.k_factor * 1.5
        if average < 100:
            return self.k_factor
        return self.k_factor * 0.8

    def _entry(self, team: str) -> EloRating:
        rating = self._ratings.get(team)
        if rating is None:
            rating = EloRating(rating=self.base_rating)
            self._ratings[team] = rating
        return rating

    def update_ratings(
        self,
        home_team: str,
        away_team: str,
        home_goals: int,
        away_goals: int,
        played_at: dt.datetime | None = None,
    ) -> EloUpdate:
        if home_team == away_team:
            raise ValueError("A team cannot play itself")
        home = self._entry(home_team)
        away = self._entry(away_team)
        expected = self.calculate_expected_score(home.rating, away.rating)
        if home_goals > away_goals:
            actual = 1.0
        elif home_goals == away_goals:
            actual = 0.5
        else:
            actual = 0.0
        k = self._adaptive_k(home.games, away.games)
        change = k * (actual - expected)
        timestamp = played_at or self._clock()
        home.rating += change
        away.rating -= change
        home.games += 1
        away.games += 1
        home.last_updated = timestamp
        away.last_updated = timestamp
        logger.debug(
            "Elo %s %d-%d %s: k=%.1f change=%.3f", home_team, home_goals, away_goals, away_team, k, change
        )
        return EloUpdate(
            home_team=home_team,
            away_team=away_team,
            home_change=change,
            away_change=-change,
            home_rating=home.rating,
            away_rating=away.rating,
            k_factor=k,
        )

    def get_probabilities(self, home_team: str, away_team: str) -> OutcomeDistribution:
        home = self.get_rating(home_team)
        away = self.get_rating(away_team)
        expected = self.calculate_expected_score(home.rating, away.rating)
        raw = OutcomeDistribution(
            home_win=expected * (1.0 - self.draw_rate),
            draw=self.draw_rate,
            away_win=(1.0 - expected) * (1.0 - self.draw_rate),
        )
        return raw.clamped()

    def replay(self, matches: Iterable[Any]) -> int:
        """Apply completed matches in the order given; returns the count applied.

        Entries may be :class:`~matchcast.engine.features.MatchRecord`
        instances, season fixtures or mappings with ``home_team``,
        ``away_team``, ``home_goals`` and ``away_goals``.  Fixtures without
        both scores are skipped.
        """

        applied = 0
        for match in matches:
            fields = _match_fields(match)
            if fields is None:
                continue
            home_team, away_team, home_goals, away_goals, played_at = fields
            self.update_ratings(home_team, away_team, home_goals, away_goals, played_at)
            applied += 1
        return applied


def _match_fields(
    match: Any,
) -> tuple[str, str, int, int, dt.datetime | None] | None:
    def getter(name: str) -> Any:
        if isinstance(match, dict):
            return match.get(name)
        return getattr(match, name, None)

    if getter("played") is False:
        return None
    home_goals = getter("home_goals")
    away_goals = getter("away_goals")
    if home_goals is None or away_goals is None:
        return None
    played_at = getter("played_at") or getter("date")
    if not isinstance(played_at, dt.datetime):
        played_at = None
    return (
        str(getter("home_team")),
        str(getter("away_team")),
        int(home_goals),
        int(away_goals),
        played_at,
    )


__all__ = ["Clock", "EloRating", "EloRatingSystem", "EloUpdate"]
