# src/portfolio_risk/risk/ratios.py
"""
Risk-adjusted return ratios on aligned monthly return series.

Inputs are fractional period returns. Ratios whose denominator is zero
(flat benchmark, zero tracking error, no downside, no drawdown) come back
as nan so callers can tell "not computable" apart from a real 0.
"""
from __future__ import annotations

import datetime as dt
from typing import Callable, List, Sequence

import numpy as np

from portfolio_risk.risk.errors import InsufficientDataError, require_observations
from portfolio_risk.risk.schemas import RollingMetricPoint
from portfolio_risk.risk.stats import (
    PERIODS_PER_YEAR,
    annualize_mean,
    as_pair,
    as_series,
    safe_ratio,
    sample_covariance,
)
from portfolio_risk.risk.volatility import (
    compute_annualized_volatility,
    compute_downside_volatility,
    compute_tracking_error,
)


def compute_beta(
    portfolio_returns: np.ndarray,
    benchmark_returns: np.ndarray,
) -> float:
    """cov(portfolio, benchmark) / var(benchmark)."""
    p, b = as_pair(portfolio_returns, benchmark_returns)
    require_observations(p.size, 2)
    return safe_ratio(sample_covariance(p, b), float(b.var(ddof=1)))


def compute_sharpe_ratio(
    returns: np.ndarray,
    risk_free_rate: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Annualized mean excess return over annualized volatility.

    risk_free_rate is annual and applied per period as rf / periods_per_year.
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    excess = r - risk_free_rate / periods_per_year
    vol = compute_annualized_volatility(r, periods_per_year)
    return safe_ratio(annualize_mean(excess.mean(), periods_per_year), vol)


def compute_sortino_ratio(
    returns: np.ndarray,
    risk_free_rate: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    r = as_series(returns)
    require_observations(r.size, 2)
    excess = r - risk_free_rate / periods_per_year
    try:
        downside = compute_downside_volatility(r, periods_per_year=periods_per_year)
    except InsufficientDataError:
        # fewer than two losing periods: no downside dispersion to divide by
        return float("nan")
    return safe_ratio(annualize_mean(excess.mean(), periods_per_year), downside)


def compute_information_ratio(
    portfolio_returns: np.ndarray,
    benchmark_returns: np.ndarray,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    p, b = as_pair(portfolio_returns, benchmark_returns)
    require_observations(p.size, 2)
    te = compute_tracking_error(p, b, periods_per_year)
    return safe_ratio(annualize_mean((p - b).mean(), periods_per_year), te)


def compute_calmar_ratio(
    returns: np.ndarray,
    max_drawdown: float,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Annualized mean return over the max drawdown magnitude (both fractions).
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    return safe_ratio(annualize_mean(r.mean(), periods_per_year), abs(max_drawdown))


# ============================================================
# Rolling windows
# ============================================================


def _rolling(
    n_obs: int,
    dates: Sequence[dt.date],
    window: int,
    fn: Callable[[slice], float],
) -> List[RollingMetricPoint]:
    if len(dates) != n_obs:
        raise ValueError("dates length must match returns length.")
    if window < 2:
        raise ValueError("window must be at least 2.")
    return [
        RollingMetricPoint(date=dates[end], value=fn(slice(end - window + 1, end + 1)))
        for end in range(window - 1, n_obs)
    ]


def compute_rolling_beta(
    portfolio_returns: np.ndarray,
    benchmark_returns: np.ndarray,
    dates: Sequence[dt.date],
    window: int = 12,
) -> List[RollingMetricPoint]:
    p, b = as_pair(portfolio_returns, benchmark_returns)
    return _rolling(p.size, dates, window, lambda s: compute_beta(p[s], b[s]))


def compute_rolling_sharpe(
    returns: np.ndarray,
    dates: Sequence[dt.date],
    window: int = 12,
    risk_free_rate: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> List[RollingMetricPoint]:
    r = as_series(returns)
    return _rolling(
        r.size,
        dates,
        window,
        lambda s: compute_sharpe_ratio(r[s], risk_free_rate, periods_per_year),
    )
