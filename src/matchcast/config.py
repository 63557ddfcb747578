"""Runtime settings for matchcast."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatchcastConfig(BaseSettings):
    """Settings read from ``MATCHCAST_*`` environment variables and ``.env``."""

    # Randomness and parallelism
    seed: int | None = Field(
        default=None,
        description="Seed for Monte Carlo and season simulations; unset draws fresh entropy",
        alias="MATCHCAST_SEED",
    )

    workers: int = Field(
        default=1,
        description="Worker count for simulation pools",
        alias="MATCHCAST_WORKERS",
    )

    # Trial budgets
    monte_carlo_iterations: int = Field(
        default=10_000,
        description="Default Monte Carlo iterations",
        alias="MATCHCAST_MONTE_CARLO_ITERATIONS",
    )

    season_trials: int = Field(
        default=1_000,
        description="Default number of season simulation trials",
        alias="MATCHCAST_SEASON_TRIALS",
    )

    max_season_trials: int = Field(
        default=1_000,
        description="Upper bound on season simulation trials",
        alias="MATCHCAST_MAX_SEASON_TRIALS",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Root log level used by the command line",
        alias="MATCHCAST_LOG_LEVEL",
    )

    # Model configuration file
    engine_config: Path | None = Field(
        default=None,
        description="Path to the layered engine YAML configuration",
        alias="MATCHCAST_ENGINE_CONFIG_FILE",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global configuration instance
config = MatchcastConfig()


def get_config() -> MatchcastConfig:
    """Get the current configuration."""
    return config


def update_config(**kwargs) -> None:
    """Update configuration settings."""
    global config
    for key, value in kwargs.items():
        if key not in MatchcastConfig.model_fields:
            raise ValueError(f"Unknown configuration option: {key}")
        setattr(config, key, value)


def reset_config() -> None:
    """Reset configuration to defaults."""
    global config
    config = MatchcastConfig()
