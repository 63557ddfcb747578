"""Descriptive statistics, correlation and least-squares helpers.

These helpers report degenerate input (empty samples, mismatched arrays,
singular designs) by raising instead of handing NaN or infinity back to the
caller.
"""

from __future__ import annotations

import dataclasses
import math
import statistics
from typing import Any, Dict, List, Literal, Mapping, Sequence, Tuple

from .exceptions import DegenerateStatisticsError, EmptyDatasetError

TrendLiteral = Literal["increasing", "decreasing", "stable"]

_SINGULAR_PIVOT = 1e-12


@dataclasses.dataclass(frozen=True, slots=True)
class DescriptiveStats:
    mean: float
    median: float
    standard_deviation: float
    variance: float
    skewness: float
    kurtosis: float
    confidence_interval_95: Tuple[float, float]
    outliers: List[float]


@dataclasses.dataclass(frozen=True, slots=True)
class RegressionAnalysis:
    coefficients: List[float]
    r_squared: float
    adjusted_r_squared: float
    f_statistic: float
    p_values: List[float]
    standard_errors: List[float]
    residuals: List[float]

    def predict(self, row: Sequence[float]) -> float:
        augmented = [1.0, *row]
        return sum(coeff * value for coeff, value in zip(self.coefficients, augmented))


@dataclasses.dataclass(frozen=True, slots=True)
class SimpleRegression:
    slope: float
    intercept: float
    r_squared: float


@dataclasses.dataclass(frozen=True, slots=True)
class TrendAnalysis:
    trend: TrendLiteral
    slope: float
    r_squared: float
    seasonality: float


@dataclasses.dataclass(frozen=True, slots=True)
class OutlierReport:
    outliers: List[float]
    indices: List[int]
    z_scores: List[float]


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def _require_values(data: Sequence[float], name: str = "data") -> List[float]:
    values = [float(value) for value in data]
    if not values:
        raise DegenerateStatisticsError(f"{name} must contain at least one value")
    return values


def descriptive_stats(data: Sequence[float]) -> DescriptiveStats:
    """Summarise ``data``.

    Variance is the sample (n - 1) variance and is 0.0 for a single value.
    Skewness needs three values and kurtosis four; both are reported as 0.0
    when they are undefined or the sample has no spread.
    """

    values = _require_values(data)
    n = len(values)
    ordered = sorted(values)
    mean = statistics.fmean(values)
    median = statistics.median(ordered)
    variance = statistics.variance(values, mean) if n > 1 else 0.0
    stdev = math.sqrt(variance)
    margin = 1.96 * stdev / math.sqrt(n)
    return DescriptiveStats(
        mean=mean,
        median=median,
        standard_deviation=stdev,
        variance=variance,
        skewness=_skewness(values, mean, stdev),
        kurtosis=_kurtosis(values, mean, stdev),
        confidence_interval_95=(mean - margin, mean + margin),
        outliers=_iqr_outliers(ordered),
    )


def _skewness(values: Sequence[float], mean: float, stdev: float) -> float:
    n = len(values)
    if n < 3 or stdev <= 0.0:
        return 0.0
    total = sum(((value - mean) / stdev) ** 3 for value in values)
    return (n / ((n - 1) * (n - 2))) * total


def _kurtosis(values: Sequence[float], mean: float, stdev: float) -> float:
    n = len(values)
    if n < 4 or stdev <= 0.0:
        return 0.0
    total = sum(((value - mean) / stdev) ** 4 for value in values)
    return (n * (n + 1)) / ((n - 1) * (n - 2) * (n - 3)) * total - (
        3 * (n - 1) ** 2
    ) / ((n - 2) * (n - 3))


def _iqr_outliers(ordered: Sequence[float]) -> List[float]:
    n = len(ordered)
    q1 = ordered[int(math.floor(n * 0.25))]
    q3 = ordered[min(n - 1, int(math.floor(n * 0.75)))]
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return [value for value in ordered if value < lower or value > upper]


def detect_outliers_zscore(data: Sequence[float], threshold: float = 2.5) -> OutlierReport:
    stats = descriptive_stats(data)
    values = [float(value) for value in data]
    if stats.standard_deviation <= 0.0:
        return OutlierReport(outliers=[], indices=[], z_scores=[0.0] * len(values))
    z_scores = [abs((value - stats.mean) / stats.standard_deviation) for value in values]
    indices = [index for index, z in enumerate(z_scores) if z > threshold]
    return OutlierReport(
        outliers=[values[index] for index in indices],
        indices=indices,
        z_scores=z_scores,
    )


def normalize(
    data: Sequence[float], method: Literal["zscore", "minmax"] = "zscore"
) -> List[float]:
    values = _require_values(data)
    if method == "minmax":
        low = min(values)
        spread = max(values) - low
        return [0.0 if spread == 0.0 else (value - low) / spread for value in values]
    if method == "zscore":
        stats = descriptive_stats(values)
        if stats.standard_deviation == 0.0:
            return [0.0 for _ in values]
        return [(value - stats.mean) / stats.standard_deviation for value in values]
    raise ValueError(f"Unsupported normalisation method: {method}")


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    if len(x) != len(y) or not x:
        raise EmptyDatasetError(
            f"Correlation needs two non-empty arrays of equal length, got {len(x)} and {len(y)}"
        )
    n = len(x)
    sum_x = math.fsum(x)
    sum_y = math.fsum(y)
    sum_xy = math.fsum(a * b for a, b in zip(x, y))
    sum_x2 = math.fsum(a * a for a in x)
    sum_y2 = math.fsum(b * b for b in y)
    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0.0:
        return 0.0
    return max(-1.0, min(1.0, numerator / math.sqrt(spread)))


def correlation_matrix(columns: Mapping[str, Sequence[float]]) -> Dict[str, Dict[str, float]]:
    keys = list(columns)
    matrix: Dict[str, Dict[str, float]] = {}
    for key_a in keys:
        matrix[key_a] = {}
        for key_b in keys:
            matrix[key_a][key_b] = pearson_correlation(columns[key_a], columns[key_b])
    return matrix


# ---------------------------------------------------------------------------
# Least squares
# ---------------------------------------------------------------------------


def _invert_matrix(matrix: Sequence[Sequence[float]]) -> List[List[float]]:
    """Gauss-Jordan inverse with partial pivoting."""

    n = len(matrix)
    augmented = [
        [float(value) for value in row] + [1.0 if i == j else 0.0 for j in range(n)]
        for i, row in enumerate(matrix)
    ]
    for i in range(n):
        pivot = max(range(i, n), key=lambda row: abs(augmented[row][i]))
        if abs(augmented[pivot][i]) <= _SINGULAR_PIVOT:
            raise DegenerateStatisticsError(
                "Design matrix is singular; predictors are collinear or constant"
            )
        if pivot != i:
            augmented[i], augmented[pivot] = augmented[pivot], augmented[i]
        inv_pivot = 1.0 / augmented[i][i]
        augmented[i] = [value * inv_pivot for value in augmented[i]]
        for j in range(n):
            if j == i:
                continue
            factor = augmented[j][i]
            if factor == 0.0:
                continue
            augmented[j] = [a - factor * b for a, b in zip(augmented[j], augmented[i])]
    return [row[n:] for row in augmented]


def _tabled_p_value(t_stat: float) -> float:
    if t_stat > 2.576:
        return 0.01
    if t_stat > 1.96:
        return 0.05
    if t_stat > 1.645:
        return 0.10
    return 0.20


def multiple_linear_regression(
    features: Sequence[Sequence[float]],
    targets: Sequence[float],
    weights: Sequence[float] | None = None,
) -> RegressionAnalysis:
    """Ordinary (optionally weighted) least squares via the normal equations.

    P-values use a coarse two-sided lookup (0.01 / 0.05 / 0.10 / 0.20) rather
    than the t distribution.  A perfect fit reports ``f_statistic = inf``.
    """

    if not features or len(features) != len(targets):
        raise EmptyDatasetError(
            "Regression needs one target per observation and at least one observation"
        )
    if weights is not None and len(weights) != len(targets):
        raise EmptyDatasetError("Regression weights must match the number of observations")
    augmented = [[1.0, *(float(value) for value in row)] for row in features]
    n = len(augmented)
    n_params = len(augmented[0])
    if any(len(row) != n_params for row in augmented):
        raise EmptyDatasetError("Every observation must have the same number of predictors")
    k = n_params - 1
    dof = n - k - 1
    if dof <= 0:
        raise DegenerateStatisticsError(
            f"Regression with {k} predictors needs more than {k + 1} observations, got {n}"
        )
    xtx = [[0.0 for _ in range(n_params)] for _ in range(n_params)]
    xty = [0.0 for _ in range(n_params)]
    for idx, row in enumerate(augmented):
        weight = float(weights[idx]) if weights is not None else 1.0
        target = float(targets[idx])
        for i in range(n_params):
            xty[i] += weight * row[i] * target
            for j in range(n_params):
                xtx[i][j] += weight * row[i] * row[j]
    inverse = _invert_matrix(xtx)
    coefficients = [sum(a * b for a, b in zip(inv_row, xty)) for inv_row in inverse]

    predictions = [sum(c * v for c, v in zip(coefficients, row)) for row in augmented]
    residuals = [float(target) - prediction for target, prediction in zip(targets, predictions)]
    y_mean = statistics.fmean(float(target) for target in targets)
    total_ss = math.fsum((float(target) - y_mean) ** 2 for target in targets)
    residual_ss = math.fsum(residual**2 for residual in residuals)
    if total_ss <= 0.0:
        r_squared = 1.0 if residual_ss <= _SINGULAR_PIVOT else 0.0
    else:
        r_squared = 1.0 - residual_ss / total_ss
    adjusted = 1.0 - (1.0 - r_squared) * (n - 1) / dof
    mse = residual_ss / dof
    msr = (total_ss - residual_ss) / k if k > 0 else 0.0
    f_statistic = msr / mse if mse > 0.0 else math.inf
    standard_errors = [math.sqrt(max(0.0, inverse[i][i] * mse)) for i in range(n_params)]
    p_values: List[float] = []
    for coeff, error in zip(coefficients, standard_errors):
        if error > 0.0:
            t_stat = abs(coeff / error)
        else:
            t_stat = math.inf if coeff != 0.0 else 0.0
        p_values.append(_tabled_p_value(t_stat))
    return RegressionAnalysis(
        coefficients=coefficients,
        r_squared=r_squared,
        adjusted_r_squared=adjusted,
        f_statistic=f_statistic,
        p_values=p_values,
        standard_errors=standard_errors,
        residuals=residuals,
    )


def simple_linear_regression(x: Sequence[float], y: Sequence[float]) -> SimpleRegression:
    if len(x) != len(y) or not x:
        raise EmptyDatasetError("Linear regression needs two non-empty arrays of equal length")
    n = len(x)
    sum_x = math.fsum(x)
    sum_y = math.fsum(y)
    sum_xy = math.fsum(a * b for a, b in zip(x, y))
    sum_x2 = math.fsum(a * a for a in x)
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0.0:
        raise DegenerateStatisticsError("Independent variable has no spread")
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    y_mean = sum_y / n
    total_ss = math.fsum((value - y_mean) ** 2 for value in y)
    residual_ss = math.fsum(
        (value - (slope * xi + intercept)) ** 2 for xi, value in zip(x, y)
    )
    if total_ss <= 0.0:
        r_squared = 1.0 if residual_ss <= _SINGULAR_PIVOT else 0.0
    else:
        r_squared = 1.0 - residual_ss / total_ss
    return SimpleRegression(slope=slope, intercept=intercept, r_squared=r_squared)


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def detect_seasonality(values: Sequence[float]) -> float:
    """Autocorrelation at a lag of up to twelve observations."""

    if len(values) < 12:
        return 0.0
    lag = min(12, len(values) // 3)
    mean = statistics.fmean(values)
    variance = statistics.fmean((value - mean) ** 2 for value in values)
    if variance == 0.0:
        return 0.0
    pairs = len(values) - lag
    autocovariance = (
        math.fsum((values[i] - mean) * (values[i + lag] - mean) for i in range(pairs)) / pairs
    )
    return autocovariance / variance


def analyze_trend(series: Sequence[float | Tuple[Any, float]]) -> TrendAnalysis:
    """Fit a linear trend over ``series`` (values or ``(timestamp, value)`` pairs)."""

    if len(series) < 3:
        raise EmptyDatasetError("Trend analysis needs at least three data points")
    values = [float(item[1]) if isinstance(item, tuple) else float(item) for item in series]
    regression = simple_linear_regression([float(i) for i in range(len(values))], values)
    trend: TrendLiteral = "stable"
    if regression.slope > 0.01:
        trend = "increasing"
    elif regression.slope < -0.01:
        trend = "decreasing"
    return TrendAnalysis(
        trend=trend,
        slope=regression.slope,
        r_squared=regression.r_squared,
        seasonality=detect_seasonality(values),
    )


__all__ = [
    "DescriptiveStats",
    "OutlierReport",
    "RegressionAnalysis",
    "SimpleRegression",
    "TrendAnalysis",
    "analyze_trend",
    "correlation_matrix",
    "descriptive_stats",
    "detect_outliers_zscore",
    "detect_seasonality",
    "multiple_linear_regression",
    "normalize",
    "pearson_correlation",
    "simple_linear_regression",
]
