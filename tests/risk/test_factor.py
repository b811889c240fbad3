# tests/risk/test_factor.py
import numpy as np
import pytest

from portfolio_risk.risk.errors import InsufficientDataError, RiskComputationError
from portfolio_risk.risk.factor import (
    build_factor_risk,
    compute_factor_exposures,
    decompose_factor_risk,
    decompose_factor_risk_with_covariance,
)
from portfolio_risk.risk.model import CovarianceRiskModel
from portfolio_risk.risk.schemas import FactorRiskInput, Holding, HoldingsSnapshot


def _inputs():
    return [
        FactorRiskInput(name="Momentum", exposure=-0.2, volatility=20.0),
        FactorRiskInput(name="Value", exposure=0.5, volatility=15.0),
    ]


def test_decompose_factor_risk_orthogonal():
    result = decompose_factor_risk(_inputs(), idiosyncratic_risk=10.0)

    # stand-alone: value 7.5, momentum 4.0 -> systematic sqrt(72.25) = 8.5
    assert result.model == "orthogonal"
    assert [f.name for f in result.factors] == ["Value", "Momentum"]
    assert np.isclose(result.factors[0].contribution, 7.5)
    assert np.isclose(result.factors[1].contribution, 4.0)
    assert np.isclose(result.systematic_risk, 8.5)
    assert np.isclose(result.total_risk, np.sqrt(72.25 + 100.0))
    assert np.isclose(result.systematic_percent + result.idiosyncratic_percent, 100.0)

    factor_pct = sum(f.percent_of_risk for f in result.factors)
    assert np.isclose(factor_pct + result.idiosyncratic_percent, 100.0)


def test_decompose_factor_risk_zero_total_raises():
    inputs = [FactorRiskInput(name="Value", exposure=0.0, volatility=15.0)]
    with pytest.raises(RiskComputationError):
        decompose_factor_risk(inputs, idiosyncratic_risk=0.0)


def test_decompose_factor_risk_needs_a_factor():
    with pytest.raises(InsufficientDataError):
        decompose_factor_risk([], idiosyncratic_risk=5.0)


def test_diagonal_covariance_matches_orthogonal():
    ortho = decompose_factor_risk(_inputs(), idiosyncratic_risk=10.0)
    cov = np.diag([20.0**2, 15.0**2])

    full = decompose_factor_risk_with_covariance(
        ["Momentum", "Value"], [-0.2, 0.5], cov, idiosyncratic_risk=10.0
    )

    assert full.model == "covariance"
    assert np.isclose(full.systematic_risk, ortho.systematic_risk)
    assert np.isclose(full.total_risk, ortho.total_risk)
    by_name = {f.name: f.percent_of_risk for f in ortho.factors}
    for f in full.factors:
        assert np.isclose(f.percent_of_risk, by_name[f.name])


def _snapshot(**kwargs):
    return HoldingsSnapshot(
        holdings=[
            Holding(
                ticker="AAA",
                portfolio_weight=1.0,
                benchmark_weight=0.5,
                factors={"value": 1.0},
            ),
            Holding(
                ticker="BBB",
                portfolio_weight=0.0,
                benchmark_weight=0.5,
                factors={"value": -1.0},
            ),
        ],
        **kwargs,
    )


def test_compute_factor_exposures_are_active():
    exposures = {x.name: x for x in compute_factor_exposures(_snapshot())}

    assert np.isclose(exposures["value"].portfolio, 1.0)
    assert np.isclose(exposures["value"].benchmark, 0.0)
    assert np.isclose(exposures["value"].active, 1.0)
    assert np.isclose(exposures["momentum"].active, 0.0)


def test_compute_factor_exposures_uses_benchmark_averages():
    exposures = {
        x.name: x
        for x in compute_factor_exposures(_snapshot(benchmark_averages={"value": 0.25}))
    }

    assert np.isclose(exposures["value"].active, 0.75)


def test_compute_factor_exposures_without_portfolio_weight():
    snapshot = HoldingsSnapshot(holdings=[Holding(ticker="X", benchmark_weight=1.0)])
    with pytest.raises(InsufficientDataError):
        compute_factor_exposures(snapshot)


def test_build_factor_risk_splits_total_volatility():
    result = build_factor_risk(_snapshot(), total_volatility=20.0)

    # active value exposure 1.0 * 15% -> systematic 15, idiosyncratic sqrt(175)
    assert np.isclose(result.systematic_risk, 15.0)
    assert np.isclose(result.idiosyncratic_risk, np.sqrt(175.0))
    assert np.isclose(result.total_risk, 20.0)
    assert result.factors[0].name == "Value"
    assert np.isclose(result.factors[0].percent_of_risk, 56.25)


def test_build_factor_risk_with_estimated_covariance():
    rng = np.random.default_rng(12)
    history = [
        {"value": float(v), "momentum": float(m)}
        for v, m in rng.normal(scale=4.0, size=(48, 2))
    ]

    result = build_factor_risk(
        _snapshot(factor_returns=history),
        total_volatility=40.0,
        risk_model=CovarianceRiskModel(),
    )

    assert result.model == "covariance"
    factor_pct = sum(f.percent_of_risk for f in result.factors)
    assert np.isclose(factor_pct + result.idiosyncratic_percent, 100.0)


def test_covariance_decomposition_reads_volatility_from_diagonal():
    cov = np.array([[400.0, 90.0], [90.0, 225.0]])

    result = decompose_factor_risk_with_covariance(
        ["Momentum", "Value"], [-0.2, 0.5], cov, idiosyncratic_risk=10.0
    )

    vols = {f.name: f.volatility for f in result.factors}
    assert np.isclose(vols["Momentum"], 20.0)
    assert np.isclose(vols["Value"], 15.0)
    # e'Se = 0.04*400 + 0.25*225 + 2*(-0.1)*90 = 54.25
    assert np.isclose(result.systematic_risk, np.sqrt(54.25))


def test_build_factor_risk_reports_active_exposure():
    result = build_factor_risk(
        _snapshot(benchmark_averages={"value": 0.25}), total_volatility=20.0
    )

    value = next(f for f in result.factors if f.name == "Value")
    # portfolio exposure 1.0, benchmark 0.25
    assert np.isclose(value.exposure, 0.75)
    assert np.isclose(value.contribution, 0.75 * 15.0)
