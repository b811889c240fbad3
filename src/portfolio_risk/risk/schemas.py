# src/portfolio_risk/risk/schemas.py
from __future__ import annotations

import math
import datetime as dt
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)


def _finite_or_none(value: Any) -> Any:
    # nan/inf mean "not computable"; the output boundary carries them as None
    if value is None:
        return None
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        return value
    if math.isnan(as_float) or math.isinf(as_float):
        return None
    return as_float


Metric = Annotated[Optional[float], BeforeValidator(_finite_or_none)]


# ============================================================
# Inputs
# ============================================================


class PerformancePoint(BaseModel):
    """
    One monthly observation of portfolio and benchmark levels.

    Returns, when present, are in percent (e.g. -5.0 for a 5% loss).
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    portfolio_value: Optional[float] = Field(
        default=None, description="Portfolio level (e.g. growth of $100)."
    )
    benchmark_value: Optional[float] = Field(
        default=None, description="Benchmark level on the same basis."
    )
    portfolio_return: Optional[float] = Field(
        default=None, description="Precomputed period return in percent."
    )
    benchmark_return: Optional[float] = Field(
        default=None, description="Precomputed benchmark return in percent."
    )
    alpha: Optional[float] = None


WELL_KNOWN_FACTORS: tuple[str, ...] = (
    "value",
    "growth",
    "quality",
    "momentum",
    "size",
    "volatility",
    "debt",
    "sentiment",
)


class FactorScores(BaseModel):
    """
    Factor scores (in standard-deviation units) for a holding or a portfolio.

    The declared fields are the well-known style factors; any other factor
    identifier lands in ``extra``.
    """

    model_config = ConfigDict(frozen=True)

    value: float = 0.0
    growth: float = 0.0
    quality: float = 0.0
    momentum: float = 0.0
    size: float = 0.0
    volatility: float = 0.0
    debt: float = 0.0
    sentiment: float = 0.0
    mfm_score: float = 0.0
    extra: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_unknown_factors(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        out: Dict[str, Any] = {}
        extra: Dict[str, float] = dict(data.get("extra") or {})
        for key, val in data.items():
            if key == "extra":
                continue
            norm = "mfm_score" if key in {"mfmScore", "mfm"} else key
            if norm in known:
                out[norm] = val
            elif val is not None:
                extra[str(key)] = float(val)
        out["extra"] = extra
        return out

    def get(self, name: str, default: float = 0.0) -> float:
        if name in WELL_KNOWN_FACTORS or name == "mfm_score":
            return float(getattr(self, name))
        return float(self.extra.get(name, default))


class Holding(BaseModel):
    """
    A single line of a holdings snapshot. Weights use the 0-1 scale.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    company: str = ""
    sector: str = "Unclassified"
    country: str = "Unclassified"
    region: str = "Unclassified"
    portfolio_weight: float = Field(0.0, ge=0.0)
    benchmark_weight: float = Field(0.0, ge=0.0)
    factors: FactorScores = Field(default_factory=FactorScores)

    @property
    def active_weight(self) -> float:
        return self.portfolio_weight - self.benchmark_weight


class HoldingsSnapshot(BaseModel):
    """
    Holdings and factor composition at a single date.

    factor_returns: optional monthly factor return history in percent,
    one mapping of factor name -> return per period.
    """

    as_of_date: Optional[dt.date] = None
    holdings: List[Holding] = Field(default_factory=list)
    benchmark_averages: Optional[FactorScores] = None
    factor_returns: Optional[List[Dict[str, float]]] = None


# ============================================================
# Return and drawdown series
# ============================================================


class ReturnDataPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    portfolio_return: float = Field(..., description="Period return in percent.")
    benchmark_return: float = Field(..., description="Period return in percent.")
    cumulative_portfolio: float = Field(..., description="Growth of 100.")
    cumulative_benchmark: float = Field(..., description="Growth of 100.")


class RollingMetricPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    value: Metric = None


class DrawdownPoint(BaseModel):
    """
    drawdown is the non-negative decline from the running peak; it is a
    fraction inside the calculators and percent inside RiskMetrics.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    drawdown: float = Field(..., ge=0.0)
    peak: float
    value: float


class DrawdownStats(BaseModel):
    """
    Summary statistics for drawdown analysis on a value series.
    """

    max_drawdown: float = Field(
        ..., description="Maximum drawdown as a positive fraction (0.25 for 25%)."
    )
    peak_date: dt.date = Field(..., description="Date the peak before the trough was set.")
    trough_date: dt.date = Field(..., description="Date the maximum drawdown is realized.")
    peak_value: float
    trough_value: float
    duration: int = Field(
        ...,
        description=(
            "Periods from peak to trough, or from peak to the last observation "
            "while no new peak has been made."
        ),
    )
    current_drawdown: float
    recovery_date: Optional[dt.date] = Field(
        default=None, description="First date the peak value is regained."
    )
    longest_underwater: int = Field(
        0, description="Longest run of consecutive periods below the running peak."
    )


class VaRHistogramBin(BaseModel):
    bin_start: float
    bin_end: float
    count: int
    is_var95: bool = False
    is_var99: bool = False


# ============================================================
# Aggregate risk snapshot
# ============================================================


class RiskMetrics(BaseModel):
    """
    Aggregate risk snapshot. Loss, drawdown and volatility fields are in
    percent; ratios are unitless. None means the metric is not computable.
    """

    var95: Metric = None
    var99: Metric = None
    cvar95: Metric = None

    max_drawdown: Metric = None
    max_drawdown_peak_date: Optional[dt.date] = None
    max_drawdown_trough_date: Optional[dt.date] = None
    drawdown_duration: Optional[int] = None
    current_drawdown: Metric = None

    beta: Metric = None
    sharpe_ratio: Metric = None
    sortino_ratio: Metric = None
    information_ratio: Metric = None
    calmar_ratio: Metric = None

    annualized_volatility: Metric = None
    downside_volatility: Metric = None
    tracking_error: Metric = None

    rolling_var: List[RollingMetricPoint] = Field(default_factory=list)
    rolling_beta: List[RollingMetricPoint] = Field(default_factory=list)
    rolling_drawdown: List[DrawdownPoint] = Field(default_factory=list)
    rolling_sharpe: List[RollingMetricPoint] = Field(default_factory=list)
    var_histogram: List[VaRHistogramBin] = Field(default_factory=list)
    returns: List[ReturnDataPoint] = Field(default_factory=list)

    @property
    def max_drawdown_date(self) -> Optional[dt.date]:
        return self.max_drawdown_trough_date


# ============================================================
# Factor risk
# ============================================================


class FactorRiskInput(BaseModel):
    """
    exposure in standard-deviation units, volatility in percent (annual).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    exposure: float
    volatility: float = Field(..., ge=0.0)


class FactorRiskContribution(BaseModel):
    name: str
    exposure: float = Field(
        ...,
        description="Active exposure (portfolio minus benchmark), standard-deviation units.",
    )
    volatility: float
    contribution: float = Field(..., description="Stand-alone risk, percent.")
    percent_of_risk: float = Field(..., description="Share of total variance, percent.")


class FactorRiskDecomposition(BaseModel):
    factors: List[FactorRiskContribution]
    systematic_risk: float
    idiosyncratic_risk: float
    total_risk: float
    systematic_percent: float
    idiosyncratic_percent: float
    model: Literal["orthogonal", "covariance"] = "orthogonal"


# ============================================================
# Concentration
# ============================================================


class GroupConcentration(BaseModel):
    """
    Weights in percent; active_weight = portfolio_weight - benchmark_weight.
    """

    name: str
    portfolio_weight: float
    benchmark_weight: float
    active_weight: float
    stock_count: int


class SectorConcentration(GroupConcentration):
    @property
    def sector(self) -> str:
        return self.name


class CountryConcentration(GroupConcentration):
    @property
    def country(self) -> str:
        return self.name


class RegionConcentration(GroupConcentration):
    @property
    def region(self) -> str:
        return self.name


class ConcentrationMetrics(BaseModel):
    hhi: float = Field(..., description="10000 * sum of squared weights.")
    effective_stocks: float
    top5_weight: float
    top10_weight: float
    max_stock_weight: float
    max_stock_ticker: str
    max_sector_weight: float
    max_sector_name: str
    max_country_weight: float
    max_country_name: str
    max_region_weight: float
    max_region_name: str
    active_share: float
    sector_concentration: List[SectorConcentration] = Field(default_factory=list)
    country_concentration: List[CountryConcentration] = Field(default_factory=list)
    region_concentration: List[RegionConcentration] = Field(default_factory=list)


# ============================================================
# Stress testing
# ============================================================


class StressScenario(BaseModel):
    """
    Fixed historical window. benchmark_return is the static historical
    estimate as a fraction (-0.502 for -50.2%).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    start_date: dt.date
    end_date: dt.date
    benchmark_return: float

    @model_validator(mode="after")
    def _check_window(self) -> "StressScenario":
        if self.end_date <= self.start_date:
            msg = f"scenario '{self.id}' must end after it starts."
            raise ValueError(msg)
        return self


class StressTestResult(BaseModel):
    """
    Per-scenario outcome. Returns and drawdowns in percent.
    """

    scenario: StressScenario
    portfolio_return: Metric = None
    benchmark_return: Metric = None
    excess_return: Metric = None
    max_drawdown: Metric = None
    beta: Metric = None
    recovery_months: Optional[int] = None
    has_portfolio_data: bool = True
    estimated_portfolio_return: Metric = Field(
        default=None,
        description="overall beta * static benchmark return, only without overlap.",
    )


# ============================================================
# Bundle
# ============================================================


class RiskBundle(BaseModel):
    """
    Everything one calculation produces. Slices that failed are None and
    their error message is recorded under errors.
    """

    risk_metrics: Optional[RiskMetrics] = None
    factor_risk: Optional[FactorRiskDecomposition] = None
    concentration_risk: Optional[ConcentrationMetrics] = None
    stress_test_results: Optional[List[StressTestResult]] = None
    calculated_at: dt.datetime
    errors: Dict[str, str] = Field(default_factory=dict)
