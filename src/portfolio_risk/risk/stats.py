# src/portfolio_risk/risk/stats.py
from __future__ import annotations

import numpy as np

from portfolio_risk.risk.errors import require_observations

PERIODS_PER_YEAR = 12
ZERO_TOL = 1e-12


def as_series(values: np.ndarray, name: str = "returns") -> np.ndarray:
    """Coerce to a 1D float array, rejecting other shapes."""
    r = np.asarray(values, dtype=float)
    if r.ndim != 1:
        msg = f"{name} must be a 1D array."
        raise ValueError(msg)
    return r


def as_pair(
    x: np.ndarray,
    y: np.ndarray,
    names: tuple[str, str] = ("portfolio_returns", "benchmark_returns"),
) -> tuple[np.ndarray, np.ndarray]:
    a = as_series(x, names[0])
    b = as_series(y, names[1])
    if a.shape[0] != b.shape[0]:
        msg = f"{names[0]} and {names[1]} must have the same length."
        raise ValueError(msg)
    return a, b


def sample_std(values: np.ndarray) -> float:
    """
    Sample standard deviation (ddof=1).

    Raises InsufficientDataError below two observations.
    """
    r = as_series(values)
    require_observations(r.size, 2)
    return float(r.std(ddof=1))


def sample_covariance(x: np.ndarray, y: np.ndarray) -> float:
    a, b = as_pair(x, y)
    require_observations(a.size, 2)
    return float(np.cov(a, b, ddof=1)[0, 1])


def annualize_volatility(
    periodic_std: float, periods_per_year: int = PERIODS_PER_YEAR
) -> float:
    return float(periodic_std) * float(np.sqrt(periods_per_year))


def annualize_mean(periodic_mean: float, periods_per_year: int = PERIODS_PER_YEAR) -> float:
    return float(periodic_mean) * periods_per_year


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or nan when the denominator is zero or not finite."""
    if not np.isfinite(denominator) or abs(denominator) < ZERO_TOL:
        return float("nan")
    return float(numerator) / float(denominator)
