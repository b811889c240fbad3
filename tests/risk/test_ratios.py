# tests/risk/test_ratios.py
import datetime as dt

import numpy as np

from portfolio_risk.risk.ratios import (
    compute_beta,
    compute_calmar_ratio,
    compute_information_ratio,
    compute_rolling_beta,
    compute_rolling_sharpe,
    compute_sharpe_ratio,
    compute_sortino_ratio,
)


def test_beta_of_levered_benchmark():
    rng = np.random.default_rng(8)
    b = rng.normal(scale=0.04, size=60)

    assert np.isclose(compute_beta(2.0 * b, b), 2.0)


def test_beta_with_flat_benchmark_is_nan():
    p = np.array([0.01, -0.02, 0.03])
    b = np.zeros(3)

    assert np.isnan(compute_beta(p, b))


def test_sharpe_ratio_matches_definition():
    r = np.array([0.01, 0.03, -0.01, 0.02])

    sharpe = compute_sharpe_ratio(r, risk_free_rate=0.012, periods_per_year=12)

    expected = (r.mean() - 0.001) * 12 / (r.std(ddof=1) * np.sqrt(12))
    assert np.isclose(sharpe, expected)


def test_sharpe_ratio_with_zero_volatility_is_nan():
    assert np.isnan(compute_sharpe_ratio(np.full(6, 0.01)))


def test_sortino_ratio_without_enough_losses_is_nan():
    r = np.array([0.02, -0.01, 0.03, 0.01])

    assert np.isnan(compute_sortino_ratio(r))


def test_sortino_ratio_is_finite_with_losses():
    r = np.array([0.04, -0.01, 0.03, -0.03, 0.01, -0.02])

    sortino = compute_sortino_ratio(r)

    downside = np.array([-0.01, -0.03, -0.02]).std(ddof=1) * np.sqrt(12)
    assert np.isclose(sortino, r.mean() * 12 / downside)


def test_information_ratio_with_zero_tracking_error_is_nan():
    r = np.array([0.01, 0.02, -0.01])

    assert np.isnan(compute_information_ratio(r, r.copy()))


def test_calmar_ratio():
    r = np.array([0.02, -0.01, 0.03])

    assert np.isclose(compute_calmar_ratio(r, 0.10), r.mean() * 12 / 0.10)
    assert np.isnan(compute_calmar_ratio(r, 0.0))


def test_rolling_beta_and_sharpe_lengths():
    rng = np.random.default_rng(4)
    b = rng.normal(scale=0.03, size=15)
    p = 0.5 * b + rng.normal(scale=0.01, size=15)
    dates = [dt.date(2022, 1, 1) + dt.timedelta(days=31 * i) for i in range(15)]

    betas = compute_rolling_beta(p, b, dates, window=12)
    sharpes = compute_rolling_sharpe(p, dates, window=12)

    assert [x.date for x in betas] == dates[11:]
    assert len(sharpes) == 4
    assert np.isclose(betas[0].value, compute_beta(p[:12], b[:12]))
