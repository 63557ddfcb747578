"""Command line interface for the matchcast prediction engine."""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Sequence, TypeVar

import polars as pl

from ..config import get_config
from .configuration import (
    ConfigurationError,
    EngineConfig,
    create_elo_system,
    create_ensemble_predictor,
    create_monte_carlo_simulator,
    create_season_simulator,
    load_engine_config,
    validate_engine_config,
)
from .exceptions import MatchcastError
from .features import build_match_records, chronological
from .logging import configure_logging
from .types import PredictionFeatures

CommandHandler = Callable[[EngineConfig, argparse.Namespace], int]

HandlerT = TypeVar("HandlerT", bound=CommandHandler)


@dataclasses.dataclass(slots=True)
class Subcommand:
    """Container describing a CLI sub-command."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    handler: CommandHandler

    def add_to_parser(
        self,
        subparsers: Any,
        parent: argparse.ArgumentParser,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser(self.name, parents=[parent], help=self.help)
        self.configure(parser)
        parser.set_defaults(handler=self.handler, command=self.name)
        return parser


class SubcommandApp:
    """Registry that wires handlers into an :class:`argparse` parser."""

    def __init__(self, description: str | None = None) -> None:
        self._commands: list[Subcommand] = []
        self._description = description

    def command(
        self,
        name: str,
        *,
        help: str,
        configure: Callable[[argparse.ArgumentParser], None],
    ) -> Callable[[HandlerT], HandlerT]:
        def _decorator(handler: HandlerT) -> HandlerT:
            self._commands.append(
                Subcommand(name=name, help=help, configure=configure, handler=handler)
            )
            return handler

        return _decorator

    @property
    def commands(self) -> Sequence[Subcommand]:
        return tuple(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument("--config", dest="config_file")
        parent.add_argument("--environment", dest="config_environment")
        parent.add_argument("--seed", type=int)
        parent.add_argument("--log-level", dest="log_level")

        parser = argparse.ArgumentParser(prog="matchcast", description=self._description)
        subparsers = parser.add_subparsers(dest="command", required=True)
        for command in self._commands:
            command.add_to_parser(subparsers, parent)
        return parser


APP = SubcommandApp(description=__doc__)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _read_features(path: str) -> PredictionFeatures:
    with Path(path).open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise MatchcastError(f"Feature file {path} must contain a JSON object")
    return PredictionFeatures.from_mapping(data)


def _read_csv(path: str) -> pl.DataFrame:
    return pl.read_csv(path, try_parse_dates=True)


def _configure_predict_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--features", required=True, help="JSON file with the eleven features")
    parser.add_argument("--history", help="CSV of completed matches used for Elo")
    parser.add_argument("--home", help="Home team name")
    parser.add_argument("--away", help="Away team name")
    parser.add_argument("--iterations", type=int)


@APP.command("predict", help="Ensemble prediction for one fixture", configure=_configure_predict_parser)
def _cmd_predict(config: EngineConfig, args: argparse.Namespace) -> int:
    features = _read_features(args.features)
    predictor = create_ensemble_predictor(config, seed=args.seed)
    if args.iterations:
        predictor.iterations = args.iterations
    history = build_match_records(_read_csv(args.history)) if args.history else []
    prediction = predictor.predict(features, history, home_team=args.home, away_team=args.away)
    _emit(prediction.to_dict())
    return 0


def _configure_uncertainty_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--features", required=True, help="JSON file with the eleven features")
    parser.add_argument("--iterations", type=int)
    parser.add_argument("--deadline", type=float, help="Wall-clock budget in seconds")
    parser.add_argument("--scenarios", action="store_true", help="Include sampled scenarios")


@APP.command(
    "uncertainty",
    help="Monte Carlo uncertainty around a prediction",
    configure=_configure_uncertainty_parser,
)
def _cmd_uncertainty(config: EngineConfig, args: argparse.Namespace) -> int:
    features = _read_features(args.features)
    simulator = create_monte_carlo_simulator(config, seed=args.seed)
    result = simulator.run(
        features, args.iterations or config.monte_carlo.iterations, deadline=args.deadline
    )
    payload = result.to_dict()
    if not args.scenarios:
        payload.pop("scenarios")
    _emit(payload)
    return 0


def _configure_season_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--fixtures", required=True, help="CSV of the season's fixtures")
    parser.add_argument("--league", required=True)
    parser.add_argument("--season", required=True)
    parser.add_argument("--trials", type=int)
    parser.add_argument("--deadline", type=float, help="Wall-clock budget in seconds")


@APP.command("season", help="Simulate the rest of a season", configure=_configure_season_parser)
def _cmd_season(config: EngineConfig, args: argparse.Namespace) -> int:
    simulator = create_season_simulator(config, seed=args.seed)
    result = simulator.simulate_season(
        args.league,
        args.season,
        _read_csv(args.fixtures),
        args.trials or config.season.trials,
        deadline=args.deadline,
    )
    payload = result.to_dict()
    payload.pop("matches")
    _emit(payload)
    return 0


def _configure_elo_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--history", required=True, help="CSV of completed matches")


@APP.command("elo", help="Replay history and print Elo ratings", configure=_configure_elo_parser)
def _cmd_elo(config: EngineConfig, args: argparse.Namespace) -> int:
    system = create_elo_system(config)
    system.replay(chronological(build_match_records(_read_csv(args.history))))
    table = sorted(system.ratings().items(), key=lambda item: (-item[1].rating, item[0]))
    _emit(
        [
            {"team": team, "rating": round(entry.rating, 2), "games": entry.games}
            for team, entry in table
        ]
    )
    return 0


def _configure_validate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--warnings-as-errors",
        action="store_true",
        help="Exit with status 2 when warnings are reported",
    )


@APP.command(
    "validate-config",
    help="Validate engine configuration",
    configure=_configure_validate_parser,
)
def _cmd_validate_config(config: EngineConfig, args: argparse.Namespace) -> int:
    try:
        warnings = validate_engine_config(config)
    except ConfigurationError as exc:
        print("Configuration invalid:")
        for line in str(exc).splitlines()[1:]:
            print(line)
        return 1
    print(f"Configuration '{config.environment}' is valid.")
    if warnings:
        print("Warnings:")
        for message in warnings:
            print(f"- {message}")
        if args.warnings_as_errors:
            return 2
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = APP.build_parser()
    args = parser.parse_args(argv)
    settings = get_config()
    configure_logging(args.log_level or settings.log_level)
    if args.seed is None:
        args.seed = settings.seed
    config = load_engine_config(
        base_path=args.config_file or settings.engine_config,
        environment=args.config_environment,
    )
    handler: CommandHandler = args.handler
    if args.command != "validate-config":
        try:
            for message in validate_engine_config(config):
                print(f"[config-warning] {message}", file=sys.stderr)
        except ConfigurationError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    try:
        return handler(config, args)
    except (MatchcastError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["APP", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
