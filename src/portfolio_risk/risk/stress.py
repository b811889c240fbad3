# src/portfolio_risk/risk/stress.py
from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional, Sequence

import numpy as np

from portfolio_risk.risk.drawdown import compute_max_drawdown
from portfolio_risk.risk.errors import (
    InsufficientDataError,
    MissingScenarioOverlapError,
)
from portfolio_risk.risk.ratios import compute_beta
from portfolio_risk.risk.returns import returns_from_values
from portfolio_risk.risk.scenarios import STRESS_SCENARIOS
from portfolio_risk.risk.schemas import StressScenario, StressTestResult

LOGGER = logging.getLogger(__name__)


def _as_days(dates: Sequence[dt.date]) -> np.ndarray:
    return np.asarray(dates, dtype="datetime64[D]")


def locate_on_or_before(dates: Sequence[dt.date], target: dt.date) -> Optional[int]:
    """
    Index of the last observation dated on or before ``target`` (dates must
    be ascending), or None when every observation is later.
    """
    idx = int(np.searchsorted(_as_days(dates), np.datetime64(target, "D"), side="right")) - 1
    return idx if idx >= 0 else None


def scenario_window(
    dates: Sequence[dt.date],
    scenario: StressScenario,
) -> tuple[int, int]:
    """
    (start, end) indices of the observations bounding a scenario.

    Each bound is the last observation on or before the scenario date. When
    the history begins inside the window, the first observation is the start.
    Raises MissingScenarioOverlapError unless two distinct observations
    bound the window.
    """
    days = _as_days(dates)
    start = locate_on_or_before(days, scenario.start_date)
    end = locate_on_or_before(days, scenario.end_date)
    if start is None and end is not None:
        start = 0
    if start is None or end is None or end <= start:
        msg = (
            f"no portfolio data overlaps scenario '{scenario.id}' "
            f"({scenario.start_date} to {scenario.end_date})."
        )
        raise MissingScenarioOverlapError(msg)
    return start, end


def _level_return(values: np.ndarray, start: int, end: int) -> Optional[float]:
    v0, v1 = float(values[start]), float(values[end])
    if not (np.isfinite(v0) and np.isfinite(v1)) or v0 <= 0.0:
        return None
    return (v1 / v0 - 1.0) * 100.0


def _recovery_months(values: np.ndarray, start: int, end: int) -> Optional[int]:
    # periods after the window end until the start level is regained
    hits = np.flatnonzero(values[end:] >= values[start])
    return int(hits[0]) if hits.size else None


def evaluate_scenario(
    scenario: StressScenario,
    dates: Sequence[dt.date],
    portfolio_values: np.ndarray,
    benchmark_values: np.ndarray,
    overall_beta: Optional[float] = None,
) -> StressTestResult:
    """
    Replay one historical window against the loaded value series.

    Without overlapping data the result falls back to the scenario's static
    benchmark estimate and leaves the portfolio fields empty; the beta-scaled
    ``estimated_portfolio_return`` is reported alongside, never in place of
    the actual return.
    """
    port = np.asarray(portfolio_values, dtype=float)
    bench = np.asarray(benchmark_values, dtype=float)
    if port.shape[0] != len(dates) or bench.shape[0] != len(dates):
        raise ValueError("dates and value series must have the same length.")

    try:
        start, end = scenario_window(dates, scenario)
    except MissingScenarioOverlapError as exc:
        LOGGER.info("%s Using static benchmark estimate.", exc)
        estimate = None
        if overall_beta is not None and np.isfinite(overall_beta):
            estimate = overall_beta * scenario.benchmark_return * 100.0
        return StressTestResult(
            scenario=scenario,
            benchmark_return=scenario.benchmark_return * 100.0,
            has_portfolio_data=False,
            estimated_portfolio_return=estimate,
        )

    window_port = port[start : end + 1]
    window_bench = bench[start : end + 1]

    portfolio_return = _level_return(port, start, end)
    benchmark_return = _level_return(bench, start, end)
    excess = (
        None
        if portfolio_return is None or benchmark_return is None
        else portfolio_return - benchmark_return
    )

    beta: Optional[float] = None
    if np.all(np.isfinite(window_bench)) and np.all(window_bench > 0.0):
        try:
            beta = compute_beta(
                returns_from_values(window_port),
                returns_from_values(window_bench),
            )
        except InsufficientDataError:
            LOGGER.debug("Scenario '%s' window too short for beta.", scenario.id)

    return StressTestResult(
        scenario=scenario,
        portfolio_return=portfolio_return,
        benchmark_return=benchmark_return,
        excess_return=excess,
        max_drawdown=compute_max_drawdown(window_port) * 100.0,
        beta=beta,
        recovery_months=_recovery_months(port, start, end),
        has_portfolio_data=True,
    )


def run_stress_tests(
    dates: Sequence[dt.date],
    portfolio_values: np.ndarray,
    benchmark_values: np.ndarray,
    scenarios: Optional[Sequence[StressScenario]] = None,
    overall_beta: Optional[float] = None,
) -> List[StressTestResult]:
    """Evaluate every scenario of the catalog, in catalog order."""
    catalog = STRESS_SCENARIOS if scenarios is None else scenarios
    return [
        evaluate_scenario(s, dates, portfolio_values, benchmark_values, overall_beta)
        for s in catalog
    ]
