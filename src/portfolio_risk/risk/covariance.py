# src/portfolio_risk/risk/covariance.py
from __future__ import annotations

import numpy as np
from sklearn.covariance import LedoitWolf

from portfolio_risk.risk.errors import require_observations


def _as_matrix(returns: np.ndarray) -> np.ndarray:
    r = np.asarray(returns, dtype=float)
    if r.ndim != 2:
        msg = "factor returns must be a 2D array of shape (n_obs, n_factors)."
        raise ValueError(msg)
    if np.any(~np.isfinite(r)):
        raise ValueError("factor returns must not contain missing values.")
    return r


def estimate_sample_covariance(
    returns: np.ndarray,
    ddof: int = 1,
) -> np.ndarray:
    """
    Sample covariance of factor returns.

    Parameters
    ----------
    returns:
        2D array of shape (n_obs, n_factors), one row per period.
    ddof:
        Delta degrees of freedom (1 for the unbiased estimator).

    Returns
    -------
    cov:
        2D array (n_factors, n_factors).
    """
    r = _as_matrix(returns)
    require_observations(r.shape[0], 2, what="factor return periods")
    cov = np.cov(r, rowvar=False, ddof=ddof)
    return np.atleast_2d(np.asarray(cov, dtype=float))


def estimate_ewma_covariance(
    returns: np.ndarray,
    lambda_decay: float,
) -> np.ndarray:
    """
    Exponentially weighted covariance; recent periods weigh more.

    lambda_decay in (0, 1). Higher -> longer memory. The recursion is
    normalized by 1 - lambda^n so the weights sum to one.
    """
    r = _as_matrix(returns)
    n_obs = r.shape[0]
    if not (0.0 < lambda_decay < 1.0):
        raise ValueError("lambda_decay must be in (0, 1).")
    require_observations(n_obs, 2, what="factor return periods")

    centered = r - r.mean(axis=0, keepdims=True)
    lam = float(lambda_decay)

    cov = np.outer(centered[0], centered[0])
    for t in range(1, n_obs):
        cov = lam * cov + (1.0 - lam) * np.outer(centered[t], centered[t])

    weight_sum = 1.0 - lam**n_obs
    if weight_sum > 0:
        cov = cov / weight_sum
    return cov.astype(float)


def estimate_ledoit_wolf_covariance(
    returns: np.ndarray,
    assume_centered: bool = False,
) -> np.ndarray:
    """
    Ledoit-Wolf shrinkage covariance (scikit-learn), useful when the factor
    history is short relative to the number of factors.
    """
    r = _as_matrix(returns)
    require_observations(r.shape[0], 2, what="factor return periods")
    lw = LedoitWolf(assume_centered=assume_centered)
    lw.fit(r)
    return np.asarray(lw.covariance_, dtype=float)


def covariance_to_volatility(cov: np.ndarray) -> np.ndarray:
    c = np.asarray(cov, dtype=float)
    if c.ndim != 2 or c.shape[0] != c.shape[1]:
        raise ValueError("covariance must be a square 2D array.")
    return np.sqrt(np.clip(np.diag(c), 0.0, None))
