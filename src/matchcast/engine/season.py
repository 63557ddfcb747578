"""Full-season standings simulation.

Played fixtures are applied once to a baseline table.  Every trial resets a
reusable working table (the arena) to that baseline, samples the remaining
fixtures from Poisson goal rates and records where each club finishes.
Trials are grouped into seeded chunks so results are reproducible for any
worker count.
"""

from __future__ import annotations

import collections
import concurrent.futures
import dataclasses
import datetime as dt
import logging
import math
import random
import time
import uuid
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Literal,
    Mapping,
    Protocol,
    Sequence,
    Tuple,
)

import polars as pl

from .features import MatchRecord, extract_features, parse_played_at
from .regression import RegressionEnsemble
from .sampling import RandomSource, derive_seeds, poisson_sample, resolve_random_source

logger = logging.getLogger(__name__)

SimulationStatus = Literal["completed", "partial", "empty"]
ExecutorKind = Literal["process", "thread"]

FORM_LENGTH = 5


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclasses.dataclass(slots=True)
class SeasonTeam:
    name: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0
    form: List[str] = dataclasses.field(default_factory=list)

    def record(self, scored: int, conceded: int) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        self.goal_difference = self.goals_for - self.goals_against
        if scored > conceded:
            self.won += 1
            self.points += 3
            self.form.append("W")
        elif scored < conceded:
            self.lost += 1
            self.form.append("L")
        else:
            self.drawn += 1
            self.points += 1
            self.form.append("D")
        if len(self.form) > FORM_LENGTH:
            del self.form[: len(self.form) - FORM_LENGTH]

    def reset_to(self, other: "SeasonTeam") -> None:
        self.played = other.played
        self.won = other.won
        self.drawn = other.drawn
        self.lost = other.lost
        self.goals_for = other.goals_for
        self.goals_against = other.goals_against
        self.goal_difference = other.goal_difference
        self.points = other.points
        self.form[:] = other.form

    def standing_key(self) -> Tuple[int, int, int, str]:
        return (-self.points, -self.goal_difference, -self.goals_for, self.name)


@dataclasses.dataclass(frozen=True, slots=True)
class SeasonMatch:
    home_team: str
    away_team: str
    date: str | None = None
    played: bool = False
    home_goals: int | None = None
    away_goals: int | None = None
    match_id: int | str | None = None

    def __post_init__(self) -> None:
        if self.home_team == self.away_team:
            raise ValueError(f"Fixture {self.match_id!r} pairs {self.home_team} with itself")
        if self.played and (self.home_goals is None or self.away_goals is None):
            raise ValueError(f"Played fixture {self.match_id!r} is missing its score")

    @classmethod
    def from_row(cls, row: Mapping[str, Any] | Any) -> "SeasonMatch":
        if isinstance(row, SeasonMatch):
            return row

        def get(key: str) -> Any:
            if isinstance(row, Mapping):
                return row.get(key)
            return getattr(row, key, None)

        home_goals = get("home_goals")
        away_goals = get("away_goals")
        played = get("played")
        if played is None:
            played = home_goals is not None and away_goals is not None
        date = get("date")
        return cls(
            home_team=str(get("home_team")),
            away_team=str(get("away_team")),
            date=None if date is None else str(date),
            played=bool(played),
            home_goals=None if home_goals is None else int(home_goals),
            away_goals=None if away_goals is None else int(away_goals),
            match_id=get("match_id") if get("match_id") is not None else get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def build_fixtures(rows: Iterable[Any] | pl.DataFrame) -> List[SeasonMatch]:
    if isinstance(rows, pl.DataFrame):
        missing = [column for column in ("home_team", "away_team") if column not in rows.columns]
        if missing:
            raise ValueError(f"Missing required columns: {', '.join(missing)}")
        rows = rows.iter_rows(named=True)
    return [SeasonMatch.from_row(row) for row in rows]


@dataclasses.dataclass(frozen=True, slots=True)
class TeamProjection:
    name: str
    position: float
    points: float
    goals_for: float
    goals_against: float
    goal_difference: float
    played: int

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True, slots=True)
class TeamProbability:
    team: str
    probability: float

    def to_dict(self) -> Dict[str, Any]:
        return {"team": self.team, "probability": self.probability}


@dataclasses.dataclass(frozen=True, slots=True)
class SeasonPredictions:
    champion: List[TeamProbability]
    top_four: List[TeamProbability]
    relegation: List[TeamProbability]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "champion": [entry.to_dict() for entry in self.champion],
            "top_four": [entry.to_dict() for entry in self.top_four],
            "relegation": [entry.to_dict() for entry in self.relegation],
        }


@dataclasses.dataclass(slots=True)
class SeasonSimulationResult:
    id: str
    season: str
    league: str
    final_table: List[TeamProjection]
    predictions: SeasonPredictions
    matches: List[SeasonMatch]
    total_matches: int
    completed_matches: int
    simulations: int
    created_at: dt.datetime
    status: SimulationStatus = "completed"
    accuracy: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "season": self.season,
            "league": self.league,
            "final_table": [row.to_dict() for row in self.final_table],
            "predictions": self.predictions.to_dict(),
            "matches": [match.to_dict() for match in self.matches],
            "accuracy": self.accuracy,
            "total_matches": self.total_matches,
            "completed_matches": self.completed_matches,
            "simulations": self.simulations,
            "created_at": self.created_at.isoformat(),
            "status": self.status,
        }

    def table_frame(self) -> pl.DataFrame:
        schema = {
            "name": pl.Utf8,
            "position": pl.Float64,
            "points": pl.Float64,
            "goals_for": pl.Float64,
            "goals_against": pl.Float64,
            "goal_difference": pl.Float64,
            "played": pl.Int64,
        }
        return pl.DataFrame([row.to_dict() for row in self.final_table], schema=schema)


# ---------------------------------------------------------------------------
# Goal rates
# ---------------------------------------------------------------------------


class FixtureRateModel(Protocol):
    def rates(
        self, fixtures: Sequence[SeasonMatch], played: Sequence[SeasonMatch]
    ) -> List[Tuple[float, float]]:
        """Expected home and away goals for each of ``fixtures``."""
        ...


class ConstantRateModel:
    def __init__(self, home_rate: float = 1.5, away_rate: float = 1.2) -> None:
        self.home_rate = home_rate
        self.away_rate = away_rate

    def rates(
        self, fixtures: Sequence[SeasonMatch], played: Sequence[SeasonMatch]
    ) -> List[Tuple[float, float]]:
        return [(self.home_rate, self.away_rate) for _ in fixtures]


class RegressionRateModel:
    """Expected goals from the regression model, using the season so far.

    Pairs with too little history fall back to ``fallback``.
    """

    def __init__(
        self,
        model: RegressionEnsemble | None = None,
        *,
        min_matches: int = 5,
        fallback: ConstantRateModel | None = None,
    ) -> None:
        self.model = model or RegressionEnsemble()
        self.min_matches = min_matches
        self.fallback = fallback or ConstantRateModel()

    def rates(
        self, fixtures: Sequence[SeasonMatch], played: Sequence[SeasonMatch]
    ) -> List[Tuple[float, float]]:
        history = [
            MatchRecord(
                home_team=match.home_team,
                away_team=match.away_team,
                home_goals=int(match.home_goals or 0),
                away_goals=int(match.away_goals or 0),
                played_at=parse_played_at(match.date),
            )
            for match in reversed(played)
        ]
        default = (self.fallback.home_rate, self.fallback.away_rate)
        cache: Dict[Tuple[str, str], Tuple[float, float]] = {}
        rates = []
        for fixture in fixtures:
            key = (fixture.home_team, fixture.away_team)
            if key not in cache:
                features = extract_features(
                    fixture.home_team,
                    fixture.away_team,
                    history,
                    min_matches=self.min_matches,
                )
                cache[key] = default if features is None else self.model.expected_goals(features)
            rates.append(cache[key])
        return rates


# ---------------------------------------------------------------------------
# Trial execution
# ---------------------------------------------------------------------------


class _TableArena:
    """Working standings table reused across trials."""

    def __init__(self, baseline: Sequence[SeasonTeam]) -> None:
        self.baseline = list(baseline)
        self.teams = [SeasonTeam(name=team.name) for team in baseline]
        self.order = list(self.teams)

    def reset(self) -> None:
        for working, base in zip(self.teams, self.baseline):
            working.reset_to(base)

    def standings(self) -> List[SeasonTeam]:
        self.order.sort(key=SeasonTeam.standing_key)
        return self.order


@dataclasses.dataclass(slots=True)
class _SeasonChunk:
    index: int
    trials: int
    points: List[float]
    goals_for: List[float]
    goals_against: List[float]
    positions: List[float]
    champion: List[int]
    top: List[int]
    relegation: List[int]


_Fixture = Tuple[int, int, float, float]


def _run_trial_chunk(
    index: int,
    baseline: Sequence[SeasonTeam],
    fixtures: Sequence[_Fixture],
    seed: int,
    trials: int,
    top_places: int,
    relegation_places: int,
) -> _SeasonChunk:
    rng = random.Random(seed)
    arena = _TableArena(baseline)
    slot = {id(team): position for position, team in enumerate(arena.teams)}
    n = len(arena.teams)
    chunk = _SeasonChunk(
        index=index,
        trials=0,
        points=[0.0] * n,
        goals_for=[0.0] * n,
        goals_against=[0.0] * n,
        positions=[0.0] * n,
        champion=[0] * n,
        top=[0] * n,
        relegation=[0] * n,
    )
    for _ in range(trials):
        arena.reset()
        for home_idx, away_idx, home_rate, away_rate in fixtures:
            home_goals = poisson_sample(rng, home_rate)
            away_goals = poisson_sample(rng, away_rate)
            arena.teams[home_idx].record(home_goals, away_goals)
            arena.teams[away_idx].record(away_goals, home_goals)
        for position, team in enumerate(arena.standings()):
            i = slot[id(team)]
            chunk.points[i] += team.points
            chunk.goals_for[i] += team.goals_for
            chunk.goals_against[i] += team.goals_against
            chunk.positions[i] += position + 1
            if position == 0:
                chunk.champion[i] += 1
            if position < top_places:
                chunk.top[i] += 1
            if position >= n - relegation_places:
                chunk.relegation[i] += 1
        chunk.trials += 1
    return chunk


class SeasonSimulator:
    def __init__(
        self,
        rate_model: FixtureRateModel | None = None,
        *,
        seed: int | None = None,
        rng: RandomSource | None = None,
        max_trials: int = 1000,
        workers: int = 1,
        chunk_size: int = 100,
        top_places: int = 4,
        relegation_places: int = 3,
        executor: ExecutorKind = "process",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_trials <= 0 or workers <= 0 or chunk_size <= 0:
            raise ValueError("max_trials, workers and chunk_size must be positive")
        self.rate_model: FixtureRateModel = rate_model or RegressionRateModel()
        self.max_trials = max_trials
        self.workers = workers
        self.chunk_size = chunk_size
        self.top_places = top_places
        self.relegation_places = relegation_places
        self.executor = executor
        self._rng = resolve_random_source(seed, rng)
        self._clock = clock

    @staticmethod
    def initialise_teams(fixtures: Sequence[SeasonMatch]) -> List[SeasonTeam]:
        names: Dict[str, None] = {}
        for fixture in fixtures:
            names.setdefault(fixture.home_team)
            names.setdefault(fixture.away_team)
        return [SeasonTeam(name=name) for name in names]

    @staticmethod
    def apply_played(teams: Sequence[SeasonTeam], fixtures: Sequence[SeasonMatch]) -> None:
        by_name = {team.name: team for team in teams}
        for fixture in fixtures:
            if not fixture.played:
                continue
            home_goals = int(fixture.home_goals or 0)
            away_goals = int(fixture.away_goals or 0)
            by_name[fixture.home_team].record(home_goals, away_goals)
            by_name[fixture.away_team].record(away_goals, home_goals)

    def simulate_season(
        self,
        league: str,
        season: str,
        fixtures: Iterable[Any] | pl.DataFrame,
        trials: int = 1000,
        *,
        deadline: float | None = None,
    ) -> SeasonSimulationResult:
        matches = build_fixtures(fixtures)
        created_at = dt.datetime.now(dt.timezone.utc)
        if not matches:
            logger.warning("No fixtures supplied for %s %s", league, season)
            return SeasonSimulationResult(
                id=str(uuid.uuid4()),
                season=season,
                league=league,
                final_table=[],
                predictions=SeasonPredictions([], [], []),
                matches=[],
                total_matches=0,
                completed_matches=0,
                simulations=0,
                created_at=created_at,
                status="empty",
            )
        if trials <= 0:
            raise ValueError("trials must be positive")
        if trials > self.max_trials:
            logger.warning("Capping %d season trials to %d", trials, self.max_trials)
            trials = self.max_trials

        baseline = self.initialise_teams(matches)
        self.apply_played(baseline, matches)
        played = [match for match in matches if match.played]
        remaining = [match for match in matches if not match.played]
        index_of = {team.name: i for i, team in enumerate(baseline)}
        rates = self.rate_model.rates(remaining, played)
        sampled: List[_Fixture] = [
            (index_of[match.home_team], index_of[match.away_team], home_rate, away_rate)
            for match, (home_rate, away_rate) in zip(remaining, rates)
        ]

        count = math.ceil(trials / self.chunk_size)
        seeds = derive_seeds(self._rng, count)
        plan = [
            (i, seed, min(self.chunk_size, trials - i * self.chunk_size))
            for i, seed in enumerate(seeds)
        ]
        expires = None if deadline is None else self._clock() + deadline
        top = min(self.top_places, len(baseline))
        bottom = min(self.relegation_places, len(baseline))
        chunks = self._execute(plan, baseline, sampled, top, bottom, expires)
        completed = sum(chunk.trials for chunk in chunks)
        status: SimulationStatus = "completed"
        if completed < trials:
            status = "partial"
            logger.warning(
                "Season simulation deadline reached after %d of %d trials", completed, trials
            )
        final_table, predictions = self._aggregate(baseline, chunks, completed, matches)
        return SeasonSimulationResult(
            id=str(uuid.uuid4()),
            season=season,
            league=league,
            final_table=final_table,
            predictions=predictions,
            matches=matches,
            total_matches=len(matches),
            completed_matches=len(played),
            simulations=completed,
            created_at=created_at,
            status=status,
        )

    def _expired(self, expires: float | None) -> bool:
        return expires is not None and self._clock() >= expires

    def _execute(
        self,
        plan: Sequence[Tuple[int, int, int]],
        baseline: Sequence[SeasonTeam],
        fixtures: Sequence[_Fixture],
        top: int,
        bottom: int,
        expires: float | None,
    ) -> List[_SeasonChunk]:
        chunks: List[_SeasonChunk] = []
        if self.workers == 1 or len(plan) == 1:
            for index, seed, size in plan:
                if chunks and self._expired(expires):
                    break
                chunks.append(
                    _run_trial_chunk(index, baseline, fixtures, seed, size, top, bottom)
                )
            return chunks

        pool_cls = (
            concurrent.futures.ThreadPoolExecutor
            if self.executor == "thread"
            else concurrent.futures.ProcessPoolExecutor
        )
        pending: Deque[concurrent.futures.Future[_SeasonChunk]] = collections.deque()
        queue = collections.deque(plan)
        with pool_cls(max_workers=self.workers) as pool:
            while queue or pending:
                while queue and len(pending) < self.workers:
                    if (chunks or pending) and self._expired(expires):
                        queue.clear()
                        break
                    index, seed, size = queue.popleft()
                    pending.append(
                        pool.submit(
                            _run_trial_chunk, index, baseline, fixtures, seed, size, top, bottom
                        )
                    )
                if pending:
                    chunks.append(pending.popleft().result())
        chunks.sort(key=lambda chunk: chunk.index)
        return chunks

    @staticmethod
    def _aggregate(
        baseline: Sequence[SeasonTeam],
        chunks: Sequence[_SeasonChunk],
        completed: int,
        matches: Sequence[SeasonMatch],
    ) -> Tuple[List[TeamProjection], SeasonPredictions]:
        fixtures_per_team: Dict[str, int] = collections.Counter()
        for match in matches:
            fixtures_per_team[match.home_team] += 1
            fixtures_per_team[match.away_team] += 1

        def total(field: str, i: int) -> float:
            return sum(getattr(chunk, field)[i] for chunk in chunks)

        projections = []
        champion, top_four, relegation = [], [], []
        for i, team in enumerate(baseline):
            goals_for = total("goals_for", i) / completed
            goals_against = total("goals_against", i) / completed
            projections.append(
                TeamProjection(
                    name=team.name,
                    position=total("positions", i) / completed,
                    points=total("points", i) / completed,
                    goals_for=goals_for,
                    goals_against=goals_against,
                    goal_difference=goals_for - goals_against,
                    played=fixtures_per_team[team.name],
                )
            )
            champion.append(TeamProbability(team.name, total("champion", i) / completed * 100.0))
            top_four.append(TeamProbability(team.name, total("top", i) / completed * 100.0))
            relegation.append(
                TeamProbability(team.name, total("relegation", i) / completed * 100.0)
            )
        projections.sort(
            key=lambda row: (-row.points, -row.goal_difference, -row.goals_for, row.name)
        )

        def ranked(entries: List[TeamProbability]) -> List[TeamProbability]:
            return sorted(entries, key=lambda entry: (-entry.probability, entry.team))

        return projections, SeasonPredictions(
            champion=ranked(champion), top_four=ranked(top_four), relegation=ranked(relegation)
        )


__all__ = [
    "ConstantRateModel",
    "FixtureRateModel",
    "RegressionRateModel",
    "SeasonMatch",
    "SeasonPredictions",
    "SeasonSimulationResult",
    "SeasonSimulator",
    "SeasonTeam",
    "TeamProbability",
    "TeamProjection",
    "build_fixtures",
]
