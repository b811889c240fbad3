from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from portfolio_risk.risk.engine import RiskEngineSettings


# ============================================================
# Save Settings
# ============================================================


class SaveSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: Optional[str] = None
    save_json: bool = True
    save_csv: bool = True
    save_html: bool = True


# ============================================================
# Top-level RiskRunConfig
# ============================================================


class RiskRunConfig(BaseModel):
    """
    Batch risk run configuration.

    At least one of performance_source / holdings_source must be set.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = "default_run"

    performance_source: Optional[str] = Field(
        default=None, description="CSV/JSON monthly performance table."
    )
    holdings_source: Optional[str] = Field(
        default=None, description="CSV holdings table or JSON holdings snapshot."
    )
    factor_returns_source: Optional[str] = Field(
        default=None,
        description="CSV/JSON factor return history, used when settings.covariance is set.",
    )
    scenarios_source: Optional[str] = Field(
        default=None, description="YAML/JSON stress scenario catalog; built-ins otherwise."
    )
    percent_weights: Optional[bool] = Field(
        default=None, description="Holdings weights in percent; auto-detected when unset."
    )
    factor_columns: List[str] = Field(
        default_factory=list,
        description="Extra holdings columns read as factor scores besides the well-known factors.",
    )

    settings: RiskEngineSettings = Field(default_factory=RiskEngineSettings)
    save: SaveSettings = Field(default_factory=SaveSettings)
