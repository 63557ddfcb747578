"""Prediction engine for football match outcomes.

The regression model turns one feature vector into outcome probabilities
and auxiliary markets.  The Monte Carlo simulator measures how sensitive
that answer is to noisy inputs, Elo ratings add a history-based view, and
the ensemble predictor blends the three.  Season simulation projects final
league tables from a fixture list.
"""

from .bayesian import BayesianParams, BayesianUpdater
from .confidence import (
    ConfidenceFactors,
    calibrated_confidence,
    completeness_factor,
    confidence_level,
    explain_confidence,
    normalized_entropy,
    recency_factor,
    sharpness,
)
from .elo import EloRating, EloRatingSystem, EloUpdate
from .ensemble import (
    EloComponent,
    EnsemblePrediction,
    EnsemblePredictor,
    MonteCarloComponent,
    RegressionComponent,
    combine_components,
)
from .exceptions import (
    DegenerateStatisticsError,
    EmptyDatasetError,
    InvalidFeatureInputError,
    MatchcastError,
    PredictionFailure,
)
from .features import MatchRecord, build_match_records, extract_features
from .monte_carlo import MonteCarloResult, MonteCarloSimulator
from .regression import RegressionEnsemble
from .sampling import RandomSource, poisson_sample
from .season import (
    ConstantRateModel,
    RegressionRateModel,
    SeasonMatch,
    SeasonSimulationResult,
    SeasonSimulator,
    SeasonTeam,
    TeamProbability,
    TeamProjection,
)
from .statistics import (
    DescriptiveStats,
    OutlierReport,
    RegressionAnalysis,
    SimpleRegression,
    TrendAnalysis,
    analyze_trend,
    correlation_matrix,
    descriptive_stats,
    detect_outliers_zscore,
    detect_seasonality,
    multiple_linear_regression,
    normalize,
    pearson_correlation,
    simple_linear_regression,
)
from .types import (
    ConfidenceInterval,
    OutcomeDistribution,
    PredictionFeatures,
    PredictionResult,
    ScoreLine,
)

__all__ = [
    "BayesianParams",
    "BayesianUpdater",
    "ConfidenceFactors",
    "ConfidenceInterval",
    "ConstantRateModel",
    "DegenerateStatisticsError",
    "DescriptiveStats",
    "EloComponent",
    "EloRating",
    "EloRatingSystem",
    "EloUpdate",
    "EmptyDatasetError",
    "EnsemblePrediction",
    "EnsemblePredictor",
    "InvalidFeatureInputError",
    "MatchRecord",
    "MatchcastError",
    "MonteCarloComponent",
    "MonteCarloResult",
    "MonteCarloSimulator",
    "OutcomeDistribution",
    "OutlierReport",
    "PredictionFailure",
    "PredictionFeatures",
    "PredictionResult",
    "RandomSource",
    "RegressionAnalysis",
    "RegressionComponent",
    "RegressionEnsemble",
    "RegressionRateModel",
    "ScoreLine",
    "SeasonMatch",
    "SeasonSimulationResult",
    "SeasonSimulator",
    "SeasonTeam",
    "SimpleRegression",
    "TeamProbability",
    "TeamProjection",
    "TrendAnalysis",
    "analyze_trend",
    "build_match_records",
    "calibrated_confidence",
    "combine_components",
    "completeness_factor",
    "confidence_level",
    "correlation_matrix",
    "descriptive_stats",
    "detect_outliers_zscore",
    "detect_seasonality",
    "explain_confidence",
    "extract_features",
    "multiple_linear_regression",
    "normalize",
    "normalized_entropy",
    "pearson_correlation",
    "poisson_sample",
    "recency_factor",
    "sharpness",
    "simple_linear_regression",
]
