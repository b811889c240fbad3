# src/portfolio_risk/risk/drawdown.py
from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_risk.risk.schemas import DrawdownPoint, DrawdownStats


def _to_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return pd.Timestamp(value).date()


def _validate(values: np.ndarray, dates: Sequence[Any]) -> Tuple[np.ndarray, List[dt.date]]:
    v = np.asarray(values, dtype=float)
    if v.ndim != 1 or v.size == 0:
        raise ValueError("values must be a non-empty 1D array.")
    if np.any(~np.isfinite(v)) or np.any(v <= 0.0):
        raise ValueError("values must contain strictly positive values.")
    if len(dates) != v.shape[0]:
        raise ValueError("dates length must match values length.")
    return v, [_to_date(d) for d in dates]


def _running_drawdown(v: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Single forward pass. Returns (drawdown, running peak, index where the
    running peak was last set) for every observation.
    """
    n = v.shape[0]
    drawdown = np.zeros(n, dtype=float)
    peaks = np.empty(n, dtype=float)
    peak_idx = np.empty(n, dtype=int)

    peak = v[0]
    last_set = 0
    for i in range(n):
        if v[i] >= peak:
            peak = v[i]
            last_set = i
        else:
            drawdown[i] = (peak - v[i]) / peak
        peaks[i] = peak
        peak_idx[i] = last_set
    return drawdown, peaks, peak_idx


def compute_drawdown_series(
    values: np.ndarray,
    dates: Sequence[Any],
) -> List[DrawdownPoint]:
    """
    Drawdown from the running peak for every observation of a level series.

    drawdown_t = (P_t - V_t) / P_t where P_t is the running maximum up to and
    including t; it is 0 whenever V_t makes a new high.
    """
    v, ds = _validate(values, dates)
    drawdown, peaks, _ = _running_drawdown(v)
    return [
        DrawdownPoint(date=d, drawdown=float(dd), peak=float(p), value=float(x))
        for d, dd, p, x in zip(ds, drawdown, peaks, v)
    ]


def compute_drawdown_stats(
    values: np.ndarray,
    dates: Sequence[Any],
) -> DrawdownStats:
    v, ds = _validate(values, dates)
    drawdown, _, peak_idx = _running_drawdown(v)
    n = v.shape[0]

    trough = int(np.argmax(drawdown))  # first occurrence of the maximum
    max_dd = float(drawdown[trough])
    peak = int(peak_idx[trough])

    recovery: Optional[int] = None
    if max_dd > 0.0:
        for i in range(trough + 1, n):
            if v[i] >= v[peak]:
                recovery = i
                break

    if max_dd == 0.0:
        duration = 0
    elif recovery is None:
        duration = (n - 1) - peak
    else:
        duration = trough - peak

    longest = 0
    run = 0
    for dd in drawdown:
        run = run + 1 if dd > 0.0 else 0
        longest = max(longest, run)

    return DrawdownStats(
        max_drawdown=max_dd,
        peak_date=ds[peak],
        trough_date=ds[trough],
        peak_value=float(v[peak]),
        trough_value=float(v[trough]),
        duration=int(duration),
        current_drawdown=float(drawdown[-1]),
        recovery_date=None if recovery is None else ds[recovery],
        longest_underwater=int(longest),
    )


def compute_max_drawdown(values: np.ndarray) -> float:
    """Maximum drawdown of a level series as a positive fraction."""
    v = np.asarray(values, dtype=float)
    if v.ndim != 1 or v.size == 0:
        raise ValueError("values must be a non-empty 1D array.")
    if np.any(v <= 0.0):
        raise ValueError("values must contain strictly positive values.")
    running_max = np.maximum.accumulate(v)
    return float(np.max(1.0 - v / running_max))
