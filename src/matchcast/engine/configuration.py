"""Layered YAML configuration for the match models."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field

from .elo import EloRatingSystem
from .ensemble import EnsemblePredictor
from .monte_carlo import MonteCarloSimulator
from .regression import RegressionEnsemble
from .season import ConstantRateModel, RegressionRateModel, SeasonSimulator

logger = logging.getLogger(__name__)

ENVIRONMENT_VARIABLE = "MATCHCAST_ENV"
EXTRA_CONFIG_VARIABLE = "MATCHCAST_ENGINE_CONFIG"
ENV_OVERRIDE_PREFIX = "MATCHCAST_ENGINE__"
DEFAULT_CONFIG_PATH = Path("config/engine.yaml")


class EloConfig(BaseModel):
    """Rating constants for :class:`EloRatingSystem`."""

    home_advantage: float = 100.0
    k_factor: float = 32.0
    draw_rate: float = 0.28
    base_rating: float = 1500.0


class RegressionConfig(BaseModel):
    poisson_weight: float = 0.4
    logistic_weight: float = 0.6
    adjustment_weight: float = 0.1
    probability_floor: float = 0.01
    max_goals: int = 6


class MonteCarloConfig(BaseModel):
    """Noise and execution settings for uncertainty runs."""

    iterations: int = 10_000
    noise: float = 0.1
    chunk_size: int = 1_000
    scenario_limit: int = 100
    workers: int = 1
    executor: str = "process"
    seed: int | None = None


class EnsembleConfig(BaseModel):
    weights: Dict[str, float] = Field(
        default_factory=lambda: {"regression": 0.4, "monte_carlo": 0.4, "elo": 0.2}
    )
    iterations: int = 1_000
    confidence_boost: float = 1.1
    confidence_cap: float = 0.95


class SeasonConfig(BaseModel):
    """Trial limits and league zones for season simulation."""

    trials: int = 1_000
    max_trials: int = 1_000
    chunk_size: int = 100
    workers: int = 1
    executor: str = "process"
    top_places: int = 4
    relegation_places: int = 3
    rate_model: str = "regression"
    home_rate: float = 1.5
    away_rate: float = 1.2
    min_matches: int = 5
    seed: int | None = None


class EngineConfig(BaseModel):
    """Aggregate configuration for every model in the engine."""

    environment: str = "default"
    elo: EloConfig = Field(default_factory=EloConfig)
    regression: RegressionConfig = Field(default_factory=RegressionConfig)
    monte_carlo: MonteCarloConfig = Field(default_factory=MonteCarloConfig)
    ensemble: EnsembleConfig = Field(default_factory=EnsembleConfig)
    season: SeasonConfig = Field(default_factory=SeasonConfig)


class ConfigurationError(ValueError):
    """Raised when engine configuration validation fails."""


_ENV_TOKEN = re.compile(r"\$\{([^}]+)\}")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise TypeError(f"Configuration at {path} must be a mapping")
    return dict(data)


def _merge_layers(base: Mapping[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge_layers(current, value)
        else:
            merged[key] = value
    return merged


def _resolve_env_tokens(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_TOKEN.sub(lambda match: os.getenv(match.group(1), ""), value)
    if isinstance(value, Mapping):
        return {key: _resolve_env_tokens(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_env_tokens(item) for item in value]
    return value


def _coerce_env_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        if raw.lower() in {"true", "false"}:
            return raw.lower() == "true"
        return raw


def _set_nested(mapping: MutableMapping[str, Any], path: Iterable[str], value: Any) -> None:
    head, *tail = list(path)
    key = head.lower().replace("-", "_")
    if not tail:
        mapping[key] = value
        return
    child = mapping.get(key)
    child = dict(child) if isinstance(child, Mapping) else {}
    mapping[key] = child
    _set_nested(child, tail, value)


def _apply_env_overrides(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply ``MATCHCAST_ENGINE__<section>__<key>`` variables."""

    updated = dict(data)
    for name, raw in os.environ.items():
        if not name.startswith(ENV_OVERRIDE_PREFIX):
            continue
        path = [segment for segment in name[len(ENV_OVERRIDE_PREFIX) :].split("__") if segment]
        if path:
            _set_nested(updated, path, _coerce_env_value(raw))
    return updated


def load_engine_config(
    *,
    base_path: str | os.PathLike[str] | None = None,
    environment: str | None = None,
    extra_paths: Sequence[str | os.PathLike[str]] | None = None,
) -> EngineConfig:
    """Merge ``config/engine.yaml`` with its overrides.

    Layers, lowest precedence first: the base file, ``engine.<env>.yaml``
    next to it, any ``extra_paths`` and ``MATCHCAST_ENGINE_CONFIG`` files, then
    ``MATCHCAST_ENGINE__`` environment variables.  ``${VAR}`` tokens are
    substituted last.  When no ``base_path`` is given and the default file is
    absent the built-in defaults are used.
    """

    config_path = Path(base_path) if base_path is not None else DEFAULT_CONFIG_PATH
    if base_path is None and not config_path.exists():
        logger.debug("No engine configuration at %s; using defaults", config_path)
        data: Dict[str, Any] = {}
    else:
        data = _load_yaml(config_path)

    env_name = environment or os.getenv(ENVIRONMENT_VARIABLE) or data.get("environment")
    if isinstance(env_name, str):
        env_path = config_path.with_name(f"{config_path.stem}.{env_name}{config_path.suffix}")
        if env_path.exists():
            data = _merge_layers(data, _load_yaml(env_path))
        data["environment"] = env_name

    sources = [Path(path) for path in extra_paths or ()]
    from_env = os.getenv(EXTRA_CONFIG_VARIABLE)
    if from_env:
        sources.extend(Path(token) for token in from_env.split(os.pathsep) if token)
    for source in sources:
        if source.exists():
            data = _merge_layers(data, _load_yaml(source))
        else:
            logger.warning("Skipping missing configuration override %s", source)

    data = _resolve_env_tokens(_apply_env_overrides(data))
    return EngineConfig.model_validate(data)


def validate_engine_config(config: EngineConfig) -> list[str]:
    """Check ranges across every section.

    Returns warnings; raises :class:`ConfigurationError` listing every fatal
    problem at once.
    """

    errors: list[str] = []
    warnings: list[str] = []

    elo = config.elo
    if elo.k_factor <= 0:
        errors.append("elo.k_factor must be greater than zero")
    if not 0 <= elo.draw_rate < 1:
        errors.append("elo.draw_rate must be within [0, 1)")
    if elo.home_advantage < 0:
        warnings.append("elo.home_advantage is negative; away sides will be favoured")

    regression = config.regression
    if regression.poisson_weight < 0 or regression.logistic_weight < 0:
        errors.append("regression weights must be non-negative")
    elif regression.poisson_weight + regression.logistic_weight <= 0:
        errors.append("regression weights cannot both be zero")
    if not 0 <= regression.probability_floor < 1 / 3:
        errors.append("regression.probability_floor must be within [0, 1/3)")
    if regression.max_goals < 2:
        errors.append("regression.max_goals must be at least 2")
    elif regression.max_goals < 6:
        warnings.append("regression.max_goals below 6 truncates noticeable probability mass")

    monte_carlo = config.monte_carlo
    if monte_carlo.iterations <= 0:
        errors.append("monte_carlo.iterations must be greater than zero")
    if monte_carlo.noise < 0:
        errors.append("monte_carlo.noise must be non-negative")
    elif monte_carlo.noise > 0.5:
        warnings.append("monte_carlo.noise above 0.5 can flip the sign of perturbed features")
    if monte_carlo.chunk_size <= 0:
        errors.append("monte_carlo.chunk_size must be greater than zero")
    if monte_carlo.workers <= 0:
        errors.append("monte_carlo.workers must be greater than zero")
    if monte_carlo.executor not in {"process", "thread"}:
        errors.append("monte_carlo.executor must be 'process' or 'thread'")

    ensemble = config.ensemble
    unknown = sorted(set(ensemble.weights) - {"regression", "monte_carlo", "elo"})
    if unknown:
        errors.append(f"ensemble.weights has unknown models: {', '.join(unknown)}")
    if any(weight < 0 for weight in ensemble.weights.values()):
        errors.append("ensemble.weights must be non-negative")
    if ensemble.iterations <= 0:
        errors.append("ensemble.iterations must be greater than zero")

    season = config.season
    if season.max_trials <= 0:
        errors.append("season.max_trials must be greater than zero")
    if season.trials <= 0:
        errors.append("season.trials must be greater than zero")
    elif season.trials > season.max_trials:
        warnings.append("season.trials exceeds season.max_trials and will be capped")
    if season.chunk_size <= 0 or season.workers <= 0:
        errors.append("season.chunk_size and season.workers must be greater than zero")
    if season.executor not in {"process", "thread"}:
        errors.append("season.executor must be 'process' or 'thread'")
    if season.rate_model not in {"regression", "constant"}:
        errors.append("season.rate_model must be 'regression' or 'constant'")
    if season.top_places < 0 or season.relegation_places < 0:
        errors.append("season zone sizes must be non-negative")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{bullet_list}")
    return warnings


def create_elo_system(config: EngineConfig) -> EloRatingSystem:
    elo = config.elo
    return EloRatingSystem(
        home_advantage=elo.home_advantage,
        k_factor=elo.k_factor,
        draw_rate=elo.draw_rate,
        base_rating=elo.base_rating,
    )


def create_regression_model(config: EngineConfig) -> RegressionEnsemble:
    return RegressionEnsemble(**config.regression.model_dump())


def create_monte_carlo_simulator(
    config: EngineConfig,
    *,
    model: RegressionEnsemble | None = None,
    seed: int | None = None,
) -> MonteCarloSimulator:
    settings = config.monte_carlo
    return MonteCarloSimulator(
        model or create_regression_model(config),
        noise=settings.noise,
        seed=settings.seed if seed is None else seed,
        workers=settings.workers,
        chunk_size=settings.chunk_size,
        scenario_limit=settings.scenario_limit,
        executor=settings.executor,  # type: ignore[arg-type]
    )


def create_ensemble_predictor(
    config: EngineConfig, *, seed: int | None = None
) -> EnsemblePredictor:
    model = create_regression_model(config)
    settings = config.ensemble
    return EnsemblePredictor(
        model,
        create_monte_carlo_simulator(config, model=model, seed=seed),
        weights=settings.weights,
        elo_factory=lambda: create_elo_system(config),
        iterations=settings.iterations,
        confidence_boost=settings.confidence_boost,
        confidence_cap=settings.confidence_cap,
    )


def create_season_simulator(
    config: EngineConfig, *, seed: int | None = None
) -> SeasonSimulator:
    settings = config.season
    fallback = ConstantRateModel(settings.home_rate, settings.away_rate)
    rate_model: ConstantRateModel | RegressionRateModel
    if settings.rate_model == "constant":
        rate_model = fallback
    else:
        rate_model = RegressionRateModel(
            create_regression_model(config),
            min_matches=settings.min_matches,
            fallback=fallback,
        )
    return SeasonSimulator(
        rate_model,
        seed=settings.seed if seed is None else seed,
        max_trials=settings.max_trials,
        workers=settings.workers,
        chunk_size=settings.chunk_size,
        top_places=settings.top_places,
        relegation_places=settings.relegation_places,
        executor=settings.executor,  # type: ignore[arg-type]
    )


__all__ = [
    "ConfigurationError",
    "EloConfig",
    "EngineConfig",
    "EnsembleConfig",
    "MonteCarloConfig",
    "RegressionConfig",
    "SeasonConfig",
    "create_elo_system",
    "create_ensemble_predictor",
    "create_monte_carlo_simulator",
    "create_regression_model",
    "create_season_simulator",
    "load_engine_config",
    "validate_engine_config",
]
