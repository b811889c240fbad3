# src/portfolio_risk/risk/factor.py
"""
Factor risk decomposition.

The default model treats risk factors as mutually uncorrelated: each
factor's stand-alone risk is |exposure| * factor volatility, systematic
risk is the root sum of squares of those, and total risk adds the
idiosyncratic (stock-specific) slice in quadrature:

    systematic = sqrt(sum_i (e_i * s_i)^2)
    total      = sqrt(systematic^2 + idiosyncratic^2)
    percent_i  = (e_i * s_i)^2 / total^2 * 100

Attribution is variance based, so factor percentages plus the
idiosyncratic percentage sum to 100. That orthogonality is a modelling
assumption, not a property of real factor returns; when a factor return
history is available, ``decompose_factor_risk_with_covariance`` uses the
estimated covariance and an Euler split instead.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from portfolio_risk.risk.covariance import covariance_to_volatility
from portfolio_risk.risk.errors import InsufficientDataError, RiskComputationError
from portfolio_risk.risk.model import CovarianceRiskModel
from portfolio_risk.risk.schemas import (
    WELL_KNOWN_FACTORS,
    FactorRiskContribution,
    FactorRiskDecomposition,
    FactorRiskInput,
    HoldingsSnapshot,
)

LOGGER = logging.getLogger(__name__)

# Annualized factor volatilities in percent.
DEFAULT_FACTOR_VOLATILITIES: Dict[str, float] = {
    "value": 15.0,
    "growth": 18.0,
    "quality": 12.0,
    "momentum": 20.0,
    "size": 14.0,
    "volatility": 22.0,
    "debt": 10.0,
    "sentiment": 16.0,
}
FALLBACK_FACTOR_VOLATILITY = 15.0


def _display_name(key: str) -> str:
    return key.replace("_", " ").title()


def _split_total(systematic_var: float, idiosyncratic_risk: float) -> tuple[float, float]:
    if idiosyncratic_risk < 0.0:
        raise ValueError("idiosyncratic_risk must be non-negative.")
    total_var = systematic_var + idiosyncratic_risk**2
    if total_var <= 0.0:
        raise RiskComputationError("total risk is zero; nothing to attribute.")
    return total_var, math.sqrt(total_var)


def decompose_factor_risk(
    inputs: Sequence[FactorRiskInput],
    idiosyncratic_risk: float,
) -> FactorRiskDecomposition:
    """
    Orthogonal factor model decomposition.

    Parameters
    ----------
    inputs:
        (name, exposure in sigma units, annual factor volatility in percent).
    idiosyncratic_risk:
        Stock-specific volatility in percent.
    """
    if not inputs:
        raise InsufficientDataError("need at least 1 factor to decompose.")

    standalone = [abs(f.exposure) * f.volatility for f in inputs]
    systematic_var = float(sum(c * c for c in standalone))
    total_var, total = _split_total(systematic_var, idiosyncratic_risk)

    factors = [
        FactorRiskContribution(
            name=f.name,
            exposure=f.exposure,
            volatility=f.volatility,
            contribution=c,
            percent_of_risk=c * c / total_var * 100.0,
        )
        for f, c in zip(inputs, standalone)
    ]
    factors.sort(key=lambda x: x.contribution, reverse=True)

    return FactorRiskDecomposition(
        factors=factors,
        systematic_risk=math.sqrt(systematic_var),
        idiosyncratic_risk=float(idiosyncratic_risk),
        total_risk=total,
        systematic_percent=systematic_var / total_var * 100.0,
        idiosyncratic_percent=idiosyncratic_risk**2 / total_var * 100.0,
        model="orthogonal",
    )


def decompose_factor_risk_with_covariance(
    names: Sequence[str],
    exposures: Sequence[float],
    factor_cov: np.ndarray,
    idiosyncratic_risk: float,
) -> FactorRiskDecomposition:
    """
    Decomposition with correlated factors.

    systematic variance = e' S e, and factor i's share of variance is the
    Euler term e_i (S e)_i. With a diagonal S this is the orthogonal model.
    ``factor_cov`` is annual, in percent squared.
    """
    e = np.asarray(exposures, dtype=float)
    cov = np.asarray(factor_cov, dtype=float)
    if e.ndim != 1 or e.size == 0:
        raise InsufficientDataError("need at least 1 factor to decompose.")
    if cov.shape != (e.size, e.size):
        raise ValueError("factor_cov must be (n_factors, n_factors).")
    if len(names) != e.size:
        raise ValueError("names length must match exposures length.")

    marginal = cov @ e
    euler = e * marginal
    systematic_var = max(0.0, float(e @ marginal))
    total_var, total = _split_total(systematic_var, idiosyncratic_risk)

    vols = covariance_to_volatility(cov)
    factors = [
        FactorRiskContribution(
            name=names[i],
            exposure=float(e[i]),
            volatility=float(vols[i]),
            contribution=float(abs(e[i]) * vols[i]),
            percent_of_risk=float(euler[i] / total_var * 100.0),
        )
        for i in range(e.size)
    ]
    factors.sort(key=lambda x: x.contribution, reverse=True)

    return FactorRiskDecomposition(
        factors=factors,
        systematic_risk=math.sqrt(systematic_var),
        idiosyncratic_risk=float(idiosyncratic_risk),
        total_risk=total,
        systematic_percent=systematic_var / total_var * 100.0,
        idiosyncratic_percent=idiosyncratic_risk**2 / total_var * 100.0,
        model="covariance",
    )


# ============================================================
# Exposures from a holdings snapshot
# ============================================================


@dataclass(frozen=True)
class FactorExposure:
    name: str
    portfolio: float
    benchmark: float

    @property
    def active(self) -> float:
        return self.portfolio - self.benchmark


def _factor_names(snapshot: HoldingsSnapshot) -> List[str]:
    names = list(WELL_KNOWN_FACTORS)
    for h in snapshot.holdings:
        for key in h.factors.extra:
            if key not in names:
                names.append(key)
    return names


def _weighted_average(pairs: Sequence[tuple[float, float]]) -> Optional[float]:
    total_weight = sum(w for w, _ in pairs)
    if total_weight <= 0.0:
        return None
    return sum(w * s for w, s in pairs) / total_weight


def compute_factor_exposures(snapshot: HoldingsSnapshot) -> List[FactorExposure]:
    """
    Weight-averaged portfolio and benchmark factor scores.

    Benchmark exposures come from ``benchmark_averages`` when the snapshot
    carries them, otherwise from the benchmark weights of the listed holdings
    (0 when there are none).
    """
    if not any(h.portfolio_weight > 0.0 for h in snapshot.holdings):
        raise InsufficientDataError("holdings snapshot has no portfolio weight.")

    exposures: List[FactorExposure] = []
    for name in _factor_names(snapshot):
        port = _weighted_average(
            [(h.portfolio_weight, h.factors.get(name)) for h in snapshot.holdings]
        )
        if snapshot.benchmark_averages is not None:
            bench: Optional[float] = snapshot.benchmark_averages.get(name)
        else:
            bench = _weighted_average(
                [(h.benchmark_weight, h.factors.get(name)) for h in snapshot.holdings]
            )
        exposures.append(
            FactorExposure(
                name=name,
                portfolio=float(port or 0.0),
                benchmark=float(bench or 0.0),
            )
        )
    return exposures


def _covariance_for(
    names: List[str],
    vols: Mapping[str, float],
    history: Optional[List[Dict[str, float]]],
    risk_model: Optional[CovarianceRiskModel],
) -> Optional[np.ndarray]:
    if risk_model is None or not history:
        return None

    available = [n for n in names if any(n in row for row in history)]
    if not available:
        LOGGER.warning("Factor return history covers none of the model factors.")
        return None

    estimated = risk_model.factor_covariance(history, available)
    cov = np.diag([vols[n] ** 2 for n in names])
    idx = {n: i for i, n in enumerate(names)}
    for a in available:
        for b in available:
            cov[idx[a], idx[b]] = float(estimated.loc[a, b])
    return cov


def build_factor_risk(
    snapshot: HoldingsSnapshot,
    total_volatility: float,
    factor_volatilities: Optional[Mapping[str, float]] = None,
    risk_model: Optional[CovarianceRiskModel] = None,
) -> FactorRiskDecomposition:
    """
    Factor risk of a holdings snapshot's active exposures.

    Idiosyncratic risk is whatever part of ``total_volatility`` (annual,
    percent) the factors do not explain: sqrt(max(0, total^2 - systematic^2)).
    """
    exposures = compute_factor_exposures(snapshot)
    table = dict(DEFAULT_FACTOR_VOLATILITIES)
    table.update(factor_volatilities or {})
    names = [x.name for x in exposures]
    vols = {n: float(table.get(n, FALLBACK_FACTOR_VOLATILITY)) for n in names}

    cov = _covariance_for(names, vols, snapshot.factor_returns, risk_model)
    active = np.array([x.active for x in exposures], dtype=float)

    if cov is None:
        systematic_var = float(sum((abs(a) * vols[n]) ** 2 for a, n in zip(active, names)))
    else:
        systematic_var = max(0.0, float(active @ cov @ active))

    idiosyncratic = math.sqrt(max(0.0, total_volatility**2 - systematic_var))
    LOGGER.debug(
        "Factor risk: systematic=%.4f idiosyncratic=%.4f (total vol %.4f).",
        math.sqrt(systematic_var),
        idiosyncratic,
        total_volatility,
    )

    labels = [_display_name(n) for n in names]
    if cov is None:
        inputs = [
            FactorRiskInput(name=label, exposure=float(a), volatility=vols[n])
            for label, a, n in zip(labels, active, names)
        ]
        return decompose_factor_risk(inputs, idiosyncratic)

    return decompose_factor_risk_with_covariance(labels, active, cov, idiosyncratic)
