# tests/risk/test_cvar.py
import numpy as np

from portfolio_risk.risk.cvar import (
    compute_historical_cvar,
    compute_parametric_cvar,
    compute_parametric_cvar_from_series,
)
from portfolio_risk.risk.var import compute_historical_var, compute_parametric_var


def test_compute_historical_cvar_basic():
    # Tail is clearly -0.10 values so CVaR should be 0.10
    returns = np.array([-0.10, -0.10, -0.10, 0.0, 0.0], dtype=float)

    cvar = compute_historical_cvar(returns, 0.6)

    assert np.isclose(cvar, 0.10, atol=1e-12)


def test_historical_cvar_averages_the_tail():
    returns = np.array([-0.08, -0.04, 0.01, 0.02, 0.03, 0.05, -0.01, 0.0, 0.02, 0.04])

    # rank ceil(0.2 * 10) = 2 -> threshold -0.04, tail {-0.08, -0.04}
    cvar = compute_historical_cvar(returns, 0.8)

    assert np.isclose(cvar, 0.06, atol=1e-12)


def test_historical_cvar_not_below_var():
    rng = np.random.default_rng(11)
    for _ in range(20):
        returns = rng.standard_t(df=4, size=48) * 0.03
        for confidence in (0.9, 0.95, 0.99):
            var = compute_historical_var(returns, confidence)
            cvar = compute_historical_cvar(returns, confidence)
            assert cvar >= var - 1e-12


def test_compute_parametric_cvar_basic():
    cvar = compute_parametric_cvar(0.0, 0.02, 0.95)
    var = compute_parametric_var(0.0, 0.02, 0.95)

    assert cvar > var
    assert cvar > 0.0


def test_compute_parametric_cvar_from_series():
    rng = np.random.default_rng(7)
    returns = rng.normal(loc=0.0, scale=0.03, size=1000)

    cvar, mu_hat, sigma_hat = compute_parametric_cvar_from_series(returns, 0.99)

    assert sigma_hat > 0.0
    assert cvar > 0.0
