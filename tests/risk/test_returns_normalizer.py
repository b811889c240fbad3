# tests/risk/test_returns_normalizer.py
import datetime as dt

import numpy as np

from portfolio_risk.risk.returns import (
    normalize_performance,
    returns_from_values,
    values_from_returns,
)
from portfolio_risk.risk.schemas import PerformancePoint


def test_values_and_returns_are_inverse():
    r = np.array([0.05, -0.10, 0.02, 0.0])

    values = values_from_returns(r)

    assert values.shape[0] == 5
    assert values[0] == 100.0
    assert np.allclose(returns_from_values(values), r)


def test_normalize_from_levels():
    points = [
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_value=100.0, benchmark_value=100.0),
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_value=110.0, benchmark_value=105.0),
        PerformancePoint(date=dt.date(2024, 3, 31), portfolio_value=99.0, benchmark_value=105.0),
    ]

    series = normalize_performance(points)

    assert series.n_periods == 2
    assert np.allclose(series.portfolio_returns, [0.10, -0.10])
    assert np.allclose(series.benchmark_returns, [0.05, 0.0])
    assert series.return_dates == [dt.date(2024, 2, 29), dt.date(2024, 3, 31)]
    assert series.value_dates[0] == dt.date(2024, 1, 31)
    assert np.allclose(series.portfolio_values, [100.0, 110.0, 99.0])
    assert np.allclose(series.excess_returns, [0.05, -0.10])

    # output points are in percent with a growth-of-100 cumulative
    assert np.isclose(series.points[0].portfolio_return, 10.0)
    assert np.isclose(series.points[-1].cumulative_portfolio, 99.0)


def test_normalize_sorts_and_keeps_last_duplicate():
    points = [
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_value=50.0, benchmark_value=100.0),
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_value=100.0, benchmark_value=100.0),
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_value=120.0, benchmark_value=100.0),
    ]

    series = normalize_performance(points)

    assert series.n_periods == 1
    assert np.isclose(series.portfolio_returns[0], 0.20)


def test_provided_percent_returns_take_priority():
    points = [
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_value=100.0, benchmark_value=100.0),
        PerformancePoint(
            date=dt.date(2024, 2, 29),
            portfolio_value=110.0,
            benchmark_value=100.0,
            portfolio_return=5.0,
            benchmark_return=1.0,
        ),
    ]

    series = normalize_performance(points)

    assert np.allclose(series.portfolio_returns, [0.05])
    assert np.allclose(series.benchmark_returns, [0.01])


def test_returns_only_rebuilds_growth_levels():
    points = [
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_return=10.0, benchmark_return=5.0),
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_return=-10.0, benchmark_return=0.0),
    ]

    series = normalize_performance(points)

    assert series.n_periods == 2
    assert np.allclose(series.portfolio_values, [100.0, 110.0, 99.0])
    assert np.allclose(series.benchmark_values, [100.0, 105.0, 105.0])
    assert series.value_dates[0] == dt.date(2023, 12, 31)
    assert series.value_dates[1:] == series.return_dates


def test_returns_only_first_period_loss_is_kept():
    points = [
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_return=-10.0, benchmark_return=0.0),
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_return=-5.0, benchmark_return=0.0),
        PerformancePoint(date=dt.date(2024, 3, 31), portfolio_return=2.0, benchmark_return=0.0),
    ]

    series = normalize_performance(points)

    assert np.isclose(series.portfolio_values[0], 100.0)
    assert np.isclose(series.portfolio_values[2], 85.5)
    assert len(series.value_dates) == series.n_periods + 1


def test_periods_without_aligned_pair_are_dropped():
    points = [
        PerformancePoint(date=dt.date(2024, 1, 31), portfolio_return=1.0, benchmark_return=2.0),
        PerformancePoint(date=dt.date(2024, 2, 29), portfolio_return=3.0),
        PerformancePoint(date=dt.date(2024, 3, 31), portfolio_return=-1.0, benchmark_return=0.5),
    ]

    series = normalize_performance(points)

    assert series.return_dates == [dt.date(2024, 1, 31), dt.date(2024, 3, 31)]


def test_normalize_empty_input():
    series = normalize_performance([])

    assert series.n_periods == 0
    assert series.points == []
