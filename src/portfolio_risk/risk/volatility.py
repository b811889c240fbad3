# src/portfolio_risk/risk/volatility.py
from __future__ import annotations

import numpy as np

from portfolio_risk.risk.errors import require_observations
from portfolio_risk.risk.stats import (
    PERIODS_PER_YEAR,
    annualize_volatility,
    as_pair,
    as_series,
    sample_std,
)


def compute_annualized_volatility(
    returns: np.ndarray,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """Sample stdev of periodic returns scaled by sqrt(periods_per_year)."""
    return annualize_volatility(sample_std(returns), periods_per_year)


def compute_downside_volatility(
    returns: np.ndarray,
    mar: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Sample stdev of the returns strictly below ``mar``, annualized.

    Needs at least two returns below the target.
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    downside = r[r < mar]
    require_observations(downside.size, 2, what="returns below the target")
    return annualize_volatility(float(downside.std(ddof=1)), periods_per_year)


def compute_tracking_error(
    portfolio_returns: np.ndarray,
    benchmark_returns: np.ndarray,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """Annualized stdev of portfolio minus benchmark period returns."""
    p, b = as_pair(portfolio_returns, benchmark_returns)
    return annualize_volatility(sample_std(p - b), periods_per_year)
