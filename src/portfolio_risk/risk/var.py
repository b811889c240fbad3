# src/portfolio_risk/risk/var.py
from __future__ import annotations

import datetime as dt
import math
from typing import List, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from portfolio_risk.risk.errors import require_observations
from portfolio_risk.risk.schemas import RollingMetricPoint, VaRHistogramBin
from portfolio_risk.risk.stats import as_series


def _check_confidence(confidence: float) -> None:
    if not (0.0 < confidence < 1.0):
        msg = "confidence must be in (0, 1)."
        raise ValueError(msg)


def tail_rank(n_obs: int, confidence: float) -> int:
    """
    1-based nearest rank of the VaR observation counted from the worst return:
    ceil((1 - confidence) * n), never below 1.
    """
    _check_confidence(confidence)
    # round() first so 0.05 * 20 lands on 1 instead of 1.0000000000000002
    raw = round((1.0 - confidence) * n_obs, 9)
    return max(1, int(math.ceil(raw)))


def historical_var_threshold(returns: np.ndarray, confidence: float) -> float:
    """
    Return at the nearest-rank tail percentile (a signed return, not a loss).
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    k = tail_rank(r.size, confidence)
    return float(np.sort(r)[k - 1])


def compute_historical_var(
    returns: np.ndarray,
    confidence: float,
) -> float:
    """
    Historical VaR under the nearest-rank convention.

    Sort returns ascending and take the observation at rank
    ceil((1 - confidence) * n) from the bottom. The result is the negated
    return, so a positive number is a loss:

        var = -sorted(returns)[rank - 1]

    For returns [-5, 3, -2, 10, -1] and confidence 0.95 the rank is 1 and
    VaR is 5. Works on any return scale (fractions or percent) and reports
    in the same scale.

    Parameters
    ----------
    returns:
        1D array of periodic returns, at least 2 observations.
    confidence:
        Confidence level in (0, 1), e.g. 0.95.
    """
    return -historical_var_threshold(returns, confidence)


def compute_parametric_var(
    mean: float,
    sigma: float,
    confidence: float,
) -> float:
    """
    Parametric VaR under a Normal(mu, sigma) assumption.

        q = mu + sigma * Phi^{-1}(1 - confidence)
        var = -q
    """
    if sigma <= 0.0:
        msg = "sigma must be positive."
        raise ValueError(msg)
    _check_confidence(confidence)

    z = norm.ppf(1.0 - confidence)
    return float(-(mean + sigma * z))


def compute_parametric_var_from_series(
    returns: np.ndarray,
    confidence: float,
) -> Tuple[float, float, float]:
    """
    Estimate mean and sigma from a return series, then compute parametric VaR.

    Returns
    -------
    var, mean_hat, sigma_hat
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    mu_hat = float(r.mean())
    sigma_hat = float(r.std(ddof=1))
    var = compute_parametric_var(mu_hat, sigma_hat, confidence)
    return var, mu_hat, sigma_hat


def compute_rolling_var(
    returns: np.ndarray,
    dates: Sequence[dt.date],
    window: int = 12,
    confidence: float = 0.95,
) -> List[RollingMetricPoint]:
    """
    Historical VaR over a trailing window, one point per window end date.
    """
    r = as_series(returns)
    if len(dates) != r.size:
        raise ValueError("dates length must match returns length.")
    if window < 2:
        raise ValueError("window must be at least 2.")

    points: List[RollingMetricPoint] = []
    for end in range(window - 1, r.size):
        chunk = r[end - window + 1 : end + 1]
        points.append(
            RollingMetricPoint(
                date=dates[end],
                value=compute_historical_var(chunk, confidence),
            )
        )
    return points


def compute_var_histogram(
    returns: np.ndarray,
    bins: int = 20,
    var95: float | None = None,
    var99: float | None = None,
) -> List[VaRHistogramBin]:
    """
    Equal-width histogram of returns with the VaR95 / VaR99 bins flagged.

    Bin edges are reported in the scale of ``returns``. The last bin is
    closed on the right so the maximum return is counted.
    """
    r = as_series(returns)
    if r.size == 0:
        return []
    if bins < 1:
        raise ValueError("bins must be positive.")

    if var95 is None and r.size >= 2:
        var95 = compute_historical_var(r, 0.95)
    if var99 is None and r.size >= 2:
        var99 = compute_historical_var(r, 0.99)

    counts, edges = np.histogram(r, bins=bins)

    def _in_bin(value: float | None, i: int) -> bool:
        if value is None:
            return False
        lo, hi = edges[i], edges[i + 1]
        if i == len(counts) - 1:
            return bool(lo <= value <= hi)
        return bool(lo <= value < hi)

    return [
        VaRHistogramBin(
            bin_start=float(edges[i]),
            bin_end=float(edges[i + 1]),
            count=int(counts[i]),
            is_var95=_in_bin(None if var95 is None else -var95, i),
            is_var99=_in_bin(None if var99 is None else -var99, i),
        )
        for i in range(len(counts))
    ]
