# src/portfolio_risk/risk/returns.py
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from portfolio_risk.risk.schemas import PerformancePoint, ReturnDataPoint

LOGGER = logging.getLogger(__name__)

GROWTH_BASE = 100.0


@dataclass(frozen=True)
class NormalizedSeries:
    """
    Aligned monthly series derived from raw performance points.

    Return arrays are fractional (0.05 for 5%) and share ``return_dates``.
    Value arrays share ``value_dates`` and include the first observation,
    which has no return of its own.
    """

    return_dates: List[dt.date]
    portfolio_returns: np.ndarray
    benchmark_returns: np.ndarray
    value_dates: List[dt.date]
    portfolio_values: np.ndarray
    benchmark_values: np.ndarray
    points: List[ReturnDataPoint] = field(default_factory=list)

    @property
    def n_periods(self) -> int:
        return int(self.portfolio_returns.shape[0])

    @property
    def excess_returns(self) -> np.ndarray:
        return self.portfolio_returns - self.benchmark_returns


def returns_from_values(values: Sequence[float]) -> np.ndarray:
    """
    Simple period returns V_t / V_{t-1} - 1 (length n - 1).
    """
    v = np.asarray(values, dtype=float)
    if v.ndim != 1:
        raise ValueError("values must be a 1D array.")
    if v.size < 2:
        return np.empty(0, dtype=float)
    if np.any(v[:-1] == 0.0):
        raise ValueError("values used as a return base must be non-zero.")
    return v[1:] / v[:-1] - 1.0


def values_from_returns(
    returns: Sequence[float],
    start: float = GROWTH_BASE,
) -> np.ndarray:
    """
    Compound fractional returns into a level series of length n + 1
    starting at ``start``. Inverse of ``returns_from_values``.
    """
    r = np.asarray(returns, dtype=float)
    if r.ndim != 1:
        raise ValueError("returns must be a 1D array.")
    growth = np.concatenate([[1.0], np.cumprod(1.0 + r)])
    return float(start) * growth


def _to_frame(points: Iterable[PerformancePoint]) -> pd.DataFrame:
    records = [p.model_dump() for p in points]
    columns = list(PerformancePoint.model_fields)
    df = pd.DataFrame.from_records(records, columns=columns)
    if df.empty:
        return df
    df["date"] = pd.to_datetime(df["date"])
    for col in columns[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    dup_count = int(df.duplicated(subset=["date"]).sum())
    if dup_count:
        LOGGER.warning("Dropping %d duplicate performance dates (last wins).", dup_count)
    df = df.drop_duplicates(subset=["date"], keep="last")
    return df.sort_values("date").reset_index(drop=True)


def _period_returns(
    provided_pct: pd.Series,
    values: pd.Series,
) -> pd.Series:
    # Precomputed percent returns win; gaps fall back to the level series
    derived = values.pct_change(fill_method=None)
    return (provided_pct / 100.0).where(provided_pct.notna(), derived)


def normalize_performance(points: Iterable[PerformancePoint]) -> NormalizedSeries:
    """
    Turn raw monthly observations into aligned return and value series.

    - sorts by date, last observation wins on duplicate dates
    - fills missing period returns from the value series
    - drops periods where either return is still unavailable
    - rebuilds a growth-of-100 level series when no levels are supplied,
      starting from a base observation one month before the first return
    """
    df = _to_frame(points)
    if df.empty:
        return NormalizedSeries(
            return_dates=[],
            portfolio_returns=np.empty(0),
            benchmark_returns=np.empty(0),
            value_dates=[],
            portfolio_values=np.empty(0),
            benchmark_values=np.empty(0),
            points=[],
        )

    port_ret = _period_returns(df["portfolio_return"], df["portfolio_value"])
    bench_ret = _period_returns(df["benchmark_return"], df["benchmark_value"])

    aligned = port_ret.notna() & bench_ret.notna()
    dropped = int((~aligned).sum())
    if dropped:
        LOGGER.debug("Dropped %d periods without an aligned return pair.", dropped)

    ret_df = pd.DataFrame(
        {
            "date": df.loc[aligned, "date"],
            "portfolio": port_ret[aligned].astype(float),
            "benchmark": bench_ret[aligned].astype(float),
        }
    ).reset_index(drop=True)

    if df["portfolio_value"].notna().any():
        lvl = df.loc[df["portfolio_value"].notna(), ["date", "portfolio_value", "benchmark_value"]]
        value_dates = [ts.date() for ts in lvl["date"]]
        portfolio_values = lvl["portfolio_value"].to_numpy(dtype=float)
        benchmark_values = lvl["benchmark_value"].to_numpy(dtype=float)
    elif not ret_df.empty:
        # Levels are implied by the returns: growth of 100 compounded through
        # each aligned period. The base level is dated one month before the
        # first return so a first-period loss counts as a drawdown.
        base = ret_df["date"].iloc[0] - pd.offsets.MonthEnd(1)
        value_dates = [base.date()] + [ts.date() for ts in ret_df["date"]]
        portfolio_values = values_from_returns(ret_df["portfolio"].to_numpy())
        benchmark_values = values_from_returns(ret_df["benchmark"].to_numpy())
    else:
        value_dates = []
        portfolio_values = np.empty(0)
        benchmark_values = np.empty(0)

    cum_port = values_from_returns(ret_df["portfolio"].to_numpy())[1:]
    cum_bench = values_from_returns(ret_df["benchmark"].to_numpy())[1:]

    return_dates = [ts.date() for ts in ret_df["date"]]
    data_points = [
        ReturnDataPoint(
            date=d,
            portfolio_return=float(p) * 100.0,
            benchmark_return=float(b) * 100.0,
            cumulative_portfolio=float(cp),
            cumulative_benchmark=float(cb),
        )
        for d, p, b, cp, cb in zip(
            return_dates,
            ret_df["portfolio"],
            ret_df["benchmark"],
            cum_port,
            cum_bench,
        )
    ]

    return NormalizedSeries(
        return_dates=return_dates,
        portfolio_returns=ret_df["portfolio"].to_numpy(dtype=float),
        benchmark_returns=ret_df["benchmark"].to_numpy(dtype=float),
        value_dates=value_dates,
        portfolio_values=portfolio_values,
        benchmark_values=benchmark_values,
        points=data_points,
    )
