# src/portfolio_risk/risk/engine.py
from __future__ import annotations

import datetime as dt
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from portfolio_risk.risk.concentration import compute_concentration
from portfolio_risk.risk.cvar import compute_historical_cvar
from portfolio_risk.risk.drawdown import compute_drawdown_series, compute_drawdown_stats
from portfolio_risk.risk.errors import InsufficientDataError, RiskComputationError
from portfolio_risk.risk.factor import build_factor_risk
from portfolio_risk.risk.model import CovarianceRiskModel, RiskModelConfig
from portfolio_risk.risk.ratios import (
    compute_beta,
    compute_calmar_ratio,
    compute_information_ratio,
    compute_rolling_beta,
    compute_rolling_sharpe,
    compute_sharpe_ratio,
    compute_sortino_ratio,
)
from portfolio_risk.risk.returns import NormalizedSeries, normalize_performance
from portfolio_risk.risk.schemas import (
    ConcentrationMetrics,
    DrawdownPoint,
    DrawdownStats,
    FactorRiskDecomposition,
    HoldingsSnapshot,
    PerformancePoint,
    RiskBundle,
    RiskMetrics,
    RollingMetricPoint,
    StressScenario,
    StressTestResult,
)
from portfolio_risk.risk.stress import run_stress_tests
from portfolio_risk.risk.var import (
    compute_historical_var,
    compute_rolling_var,
    compute_var_histogram,
)
from portfolio_risk.risk.volatility import (
    compute_annualized_volatility,
    compute_downside_volatility,
    compute_tracking_error,
)

LOGGER = logging.getLogger(__name__)

NAN = float("nan")

PerformanceInput = Iterable[Union[PerformancePoint, Mapping[str, Any]]]
FactorInput = Union[HoldingsSnapshot, Mapping[str, Any]]


class RiskEngineSettings(BaseModel):
    """
    Tunables of a risk calculation.
    """

    model_config = ConfigDict(extra="forbid")

    risk_free_rate: float = Field(
        0.0, description="Annual risk-free rate as a fraction (0.02 for 2%)."
    )
    periods_per_year: int = Field(12, gt=0)
    rolling_window: int = Field(12, ge=2)
    var_confidence: float = Field(0.95, gt=0.0, lt=1.0)
    var_tail_confidence: float = Field(0.99, gt=0.0, lt=1.0)
    histogram_bins: int = Field(20, ge=1)
    default_portfolio_volatility: float = Field(
        15.0,
        gt=0.0,
        description="Annual volatility in percent used for factor risk without performance data.",
    )
    factor_volatilities: Dict[str, float] = Field(
        default_factory=dict,
        description="Overrides of annual factor volatilities in percent.",
    )
    covariance: Optional[RiskModelConfig] = Field(
        None,
        description="Estimate factor covariance from factor return history when set.",
    )


def _guarded(fn: Callable[..., float], *args: Any, **kwargs: Any) -> float:
    # A metric without enough data is "not computable", not a failure
    try:
        return fn(*args, **kwargs)
    except RiskComputationError as exc:
        LOGGER.debug("%s not computable: %s", getattr(fn, "__name__", fn), exc)
        return NAN


def _pct(value: float) -> float:
    return value * 100.0


def _coerce_performance(performance: PerformanceInput) -> List[PerformancePoint]:
    return [
        p if isinstance(p, PerformancePoint) else PerformancePoint.model_validate(p)
        for p in performance
    ]


def _coerce_snapshot(factor_data: FactorInput) -> HoldingsSnapshot:
    if isinstance(factor_data, HoldingsSnapshot):
        return factor_data
    return HoldingsSnapshot.model_validate(factor_data)


# ============================================================
# Slices
# ============================================================


def compute_core_metrics(
    series: NormalizedSeries,
    settings: RiskEngineSettings,
) -> RiskMetrics:
    """
    VaR, drawdown, ratio and volatility metrics plus the rolling series.

    Needs at least two aligned return periods; individual metrics that
    cannot be computed are left as None.
    """
    if series.n_periods < 2:
        msg = f"need at least 2 aligned return periods, got {series.n_periods}."
        raise InsufficientDataError(msg)

    r = series.portfolio_returns
    b = series.benchmark_returns
    ppy = settings.periods_per_year
    rf = settings.risk_free_rate
    window = settings.rolling_window

    var95 = _guarded(compute_historical_var, r, settings.var_confidence)
    var99 = _guarded(compute_historical_var, r, settings.var_tail_confidence)
    cvar95 = _guarded(compute_historical_cvar, r, settings.var_confidence)

    dd_stats, dd_series = _drawdown_or_none(series)

    calmar = NAN
    if dd_stats is not None:
        calmar = _guarded(compute_calmar_ratio, r, dd_stats.max_drawdown, ppy)

    rolling_var = [
        RollingMetricPoint(
            date=p.date, value=None if p.value is None else _pct(p.value)
        )
        for p in _rolling_or_empty(
            compute_rolling_var, r, series.return_dates, window, settings.var_confidence
        )
    ]

    return RiskMetrics(
        var95=_pct(var95),
        var99=_pct(var99),
        cvar95=_pct(cvar95),
        max_drawdown=None if dd_stats is None else _pct(dd_stats.max_drawdown),
        max_drawdown_peak_date=None if dd_stats is None else dd_stats.peak_date,
        max_drawdown_trough_date=None if dd_stats is None else dd_stats.trough_date,
        drawdown_duration=None if dd_stats is None else dd_stats.duration,
        current_drawdown=None if dd_stats is None else _pct(dd_stats.current_drawdown),
        beta=_guarded(compute_beta, r, b),
        sharpe_ratio=_guarded(compute_sharpe_ratio, r, rf, ppy),
        sortino_ratio=_guarded(compute_sortino_ratio, r, rf, ppy),
        information_ratio=_guarded(compute_information_ratio, r, b, ppy),
        calmar_ratio=calmar,
        annualized_volatility=_pct(_guarded(compute_annualized_volatility, r, ppy)),
        downside_volatility=_pct(
            _guarded(compute_downside_volatility, r, periods_per_year=ppy)
        ),
        tracking_error=_pct(_guarded(compute_tracking_error, r, b, ppy)),
        rolling_var=rolling_var,
        rolling_beta=_rolling_or_empty(
            compute_rolling_beta, r, b, series.return_dates, window
        ),
        rolling_drawdown=dd_series,
        rolling_sharpe=_rolling_or_empty(
            compute_rolling_sharpe, r, series.return_dates, window, rf, ppy
        ),
        var_histogram=[
            bin_.model_copy(
                update={
                    "bin_start": _pct(bin_.bin_start),
                    "bin_end": _pct(bin_.bin_end),
                }
            )
            for bin_ in compute_var_histogram(
                r,
                bins=settings.histogram_bins,
                var95=var95 if np.isfinite(var95) else None,
                var99=var99 if np.isfinite(var99) else None,
            )
        ],
        returns=list(series.points),
    )


def _rolling_or_empty(
    fn: Callable[..., List[RollingMetricPoint]], *args: Any
) -> List[RollingMetricPoint]:
    try:
        return fn(*args)
    except RiskComputationError as exc:
        LOGGER.debug("rolling series not computable: %s", exc)
        return []


def _drawdown_or_none(
    series: NormalizedSeries,
) -> Tuple[Optional[DrawdownStats], List[DrawdownPoint]]:
    """Drawdown stats and the percent drawdown series, or (None, []) without usable levels."""
    if series.portfolio_values.size == 0:
        return None, []
    try:
        stats = compute_drawdown_stats(series.portfolio_values, series.value_dates)
        points = compute_drawdown_series(series.portfolio_values, series.value_dates)
    except ValueError as exc:
        LOGGER.warning("Drawdown not computable: %s", exc)
        return None, []
    return stats, [
        DrawdownPoint(date=p.date, drawdown=_pct(p.drawdown), peak=p.peak, value=p.value)
        for p in points
    ]


def compute_stress_results(
    series: NormalizedSeries,
    scenarios: Optional[Sequence[StressScenario]] = None,
) -> List[StressTestResult]:
    overall_beta: Optional[float] = None
    if series.n_periods >= 2:
        beta = _guarded(compute_beta, series.portfolio_returns, series.benchmark_returns)
        overall_beta = beta if np.isfinite(beta) else None

    return run_stress_tests(
        series.value_dates,
        series.portfolio_values,
        series.benchmark_values,
        scenarios=scenarios,
        overall_beta=overall_beta,
    )


def compute_factor_slice(
    snapshot: HoldingsSnapshot,
    settings: RiskEngineSettings,
    risk_metrics: Optional[RiskMetrics] = None,
) -> FactorRiskDecomposition:
    total_vol = settings.default_portfolio_volatility
    if risk_metrics is not None and risk_metrics.annualized_volatility:
        total_vol = risk_metrics.annualized_volatility

    risk_model = None
    if settings.covariance is not None:
        risk_model = CovarianceRiskModel(settings.covariance)

    return build_factor_risk(
        snapshot,
        total_volatility=total_vol,
        factor_volatilities=settings.factor_volatilities,
        risk_model=risk_model,
    )


def compute_concentration_slice(snapshot: HoldingsSnapshot) -> ConcentrationMetrics:
    return compute_concentration(snapshot.holdings)


# ============================================================
# Entry point
# ============================================================


def calculate_risk_metrics(
    performance: Optional[PerformanceInput] = None,
    factor_data: Optional[FactorInput] = None,
    *,
    settings: Optional[RiskEngineSettings] = None,
    scenarios: Optional[Sequence[StressScenario]] = None,
    now: Optional[dt.datetime] = None,
) -> RiskBundle:
    """
    Compute every risk slice the inputs allow.

    - performance -> risk_metrics, stress_test_results
    - factor_data -> factor_risk, concentration_risk

    Slices are independent: one that fails is logged, left as None and its
    message recorded in ``RiskBundle.errors``. Missing inputs simply leave
    their slices empty. The function is pure over its arguments; pass
    ``now`` to pin ``calculated_at``.
    """
    settings = settings or RiskEngineSettings()
    errors: Dict[str, str] = {}

    def _slice(name: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except (ValueError, ArithmeticError) as exc:
            LOGGER.warning("Risk slice '%s' failed: %s", name, exc)
            errors[name] = str(exc)
            return None

    risk_metrics: Optional[RiskMetrics] = None
    stress: Optional[List[StressTestResult]] = None
    factor_risk: Optional[FactorRiskDecomposition] = None
    concentration: Optional[ConcentrationMetrics] = None

    if performance is not None:
        series = _slice(
            "performance", lambda: normalize_performance(_coerce_performance(performance))
        )
        if series is not None:
            LOGGER.info(
                "Computing risk metrics over %d return periods.", series.n_periods
            )
            risk_metrics = _slice(
                "risk_metrics", lambda: compute_core_metrics(series, settings)
            )
            stress = _slice(
                "stress_test_results", lambda: compute_stress_results(series, scenarios)
            )

    if factor_data is not None:
        snapshot = _slice("factor_data", lambda: _coerce_snapshot(factor_data))
        if snapshot is not None:
            LOGGER.info(
                "Computing factor and concentration risk over %d holdings.",
                len(snapshot.holdings),
            )
            factor_risk = _slice(
                "factor_risk",
                lambda: compute_factor_slice(snapshot, settings, risk_metrics),
            )
            concentration = _slice(
                "concentration_risk", lambda: compute_concentration_slice(snapshot)
            )

    return RiskBundle(
        risk_metrics=risk_metrics,
        factor_risk=factor_risk,
        concentration_risk=concentration,
        stress_test_results=stress,
        calculated_at=now or dt.datetime.now(dt.timezone.utc),
        errors=errors,
    )
