# src/portfolio_risk/risk/model.py
from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from portfolio_risk.risk.covariance import (
    estimate_ewma_covariance,
    estimate_ledoit_wolf_covariance,
    estimate_sample_covariance,
)

LOGGER = logging.getLogger(__name__)


class RiskModelConfig(BaseModel):
    """
    How factor covariance is estimated from a factor return history.
    """

    model_config = ConfigDict(extra="forbid")

    method: Literal["sample", "ewma", "ledoit_wolf"] = Field(
        "sample", description="Covariance estimation method."
    )
    lambda_decay: Optional[float] = Field(
        None, description="Decay factor for EWMA. Required if method='ewma'."
    )
    assume_centered: bool = Field(
        False, description="Assume data is centered for Ledoit-Wolf."
    )
    periods_per_year: int = Field(
        12, gt=0, description="Scaling from periodic to annual covariance."
    )


class CovarianceRiskModel:
    """
    Factor covariance estimator.

    Usage:
        rm = CovarianceRiskModel(RiskModelConfig(method="ewma", lambda_decay=0.94))
        cov = rm.factor_covariance(history, ["value", "momentum"])
    """

    def __init__(self, config: RiskModelConfig | None = None):
        self.config = config or RiskModelConfig()

    def compute_covariance(self, returns: np.ndarray) -> np.ndarray:
        """
        Periodic covariance of a (n_obs, n_factors) return matrix.
        """
        method = self.config.method

        if method == "sample":
            return estimate_sample_covariance(returns)

        elif method == "ewma":
            if self.config.lambda_decay is None:
                raise ValueError("lambda_decay must be set for EWMA risk model.")
            return estimate_ewma_covariance(returns, self.config.lambda_decay)

        elif method == "ledoit_wolf":
            return estimate_ledoit_wolf_covariance(
                returns,
                assume_centered=self.config.assume_centered,
            )

        else:
            raise ValueError(f"Unknown covariance method: {method}")

    def factor_covariance(
        self,
        history: List[Dict[str, float]],
        factor_names: List[str],
    ) -> pd.DataFrame:
        """
        Annualized factor covariance labelled by factor name.

        ``history`` holds one mapping of factor -> periodic return per period.
        Factors missing from the history raise; periods with any missing
        value for the requested factors are dropped.
        """
        frame = pd.DataFrame.from_records(history)
        missing = [f for f in factor_names if f not in frame.columns]
        if missing:
            msg = f"factor return history is missing factors: {missing}"
            raise ValueError(msg)

        frame = frame[factor_names].apply(pd.to_numeric, errors="coerce").dropna()
        LOGGER.debug(
            "Estimating %s factor covariance on %d periods x %d factors.",
            self.config.method,
            frame.shape[0],
            frame.shape[1],
        )
        cov = self.compute_covariance(frame.to_numpy(dtype=float))
        annual = cov * self.config.periods_per_year
        return pd.DataFrame(annual, index=factor_names, columns=factor_names)
