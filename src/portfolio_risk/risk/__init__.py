"""Risk analytics: VaR/CVaR, drawdown, ratios, factor, concentration, stress tests."""
from portfolio_risk.risk.engine import RiskEngineSettings, calculate_risk_metrics
from portfolio_risk.risk.session import RiskContext, RiskSession

__all__ = [
    "RiskContext",
    "RiskEngineSettings",
    "RiskSession",
    "calculate_risk_metrics",
]
