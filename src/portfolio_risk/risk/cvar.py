# src/portfolio_risk/risk/cvar.py
from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.stats import norm

from portfolio_risk.risk.errors import require_observations
from portfolio_risk.risk.stats import as_series
from portfolio_risk.risk.var import historical_var_threshold


def compute_historical_cvar(
    returns: np.ndarray,
    confidence: float,
) -> float:
    """
    Historical CVaR (Expected Shortfall).

    Definition:
        q = nearest-rank VaR threshold (see compute_historical_var)
        CVaR = - mean( returns[returns <= q] )

    The tail always contains the threshold observation itself, so CVaR is
    never smaller than VaR at the same confidence.
    """
    r = as_series(returns)
    require_observations(r.size, 2)

    q = historical_var_threshold(r, confidence)
    tail = r[r <= q]
    return -float(tail.mean())


def compute_parametric_cvar(
    mean: float,
    sigma: float,
    confidence: float,
) -> float:
    """
    Parametric CVaR under Normal(mu, sigma).

    With alpha = 1 - confidence and z = Phi^{-1}(alpha):

        ES = mu - sigma * phi(z) / alpha
        cvar = -ES
    """
    if sigma <= 0.0:
        msg = "sigma must be positive."
        raise ValueError(msg)
    if not (0.0 < confidence < 1.0):
        msg = "confidence must be in (0, 1)."
        raise ValueError(msg)

    alpha = 1.0 - confidence
    z = norm.ppf(alpha)
    es_alpha = mean - sigma * norm.pdf(z) / alpha
    return float(-es_alpha)


def compute_parametric_cvar_from_series(
    returns: np.ndarray,
    confidence: float,
) -> Tuple[float, float, float]:
    """
    Returns
    -------
    cvar, mean_hat, sigma_hat
    """
    r = as_series(returns)
    require_observations(r.size, 2)
    mu_hat = float(r.mean())
    sigma_hat = float(r.std(ddof=1))
    cvar = compute_parametric_cvar(mu_hat, sigma_hat, confidence)
    return cvar, mu_hat, sigma_hat
