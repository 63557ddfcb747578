"""
matchcast: football match-outcome prediction and season simulation.

The engine blends a Poisson/logistic regression model with Monte Carlo
resampling and Elo ratings, and projects league tables by simulating the
remaining fixtures of a season.
"""

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover - exercised in packaging workflows
    __version__ = version("matchcast")
except PackageNotFoundError:  # pragma: no cover - local editable installs
    __version__ = "0.0.0"

_EXPORTS = {
    # Entry points
    "predict": ".engine.api",
    "predict_from_history": ".engine.api",
    "simulate_season": ".engine.api",
    "simulate_uncertainty": ".engine.api",
    # Models
    "BayesianUpdater": ".engine.bayesian",
    "EloRatingSystem": ".engine.elo",
    "EnsemblePredictor": ".engine.ensemble",
    "MonteCarloSimulator": ".engine.monte_carlo",
    "RegressionEnsemble": ".engine.regression",
    "SeasonSimulator": ".engine.season",
    # Records
    "PredictionFeatures": ".engine.types",
    "PredictionResult": ".engine.types",
    "extract_features": ".engine.features",
    # Utility functions
    "analyze_trend": ".engine.statistics",
    "descriptive_stats": ".engine.statistics",
    "pearson_correlation": ".engine.statistics",
    "get_current_season": ".utils_date",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> object:  # pragma: no cover - thin lazy importer
    from importlib import import_module

    target_module = _EXPORTS.get(name)
    if not target_module:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(target_module, __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


def __dir__() -> list[str]:  # pragma: no cover - trivial
    return sorted(list(globals().keys()) + __all__)
