from __future__ import annotations

import html
from pathlib import Path
from typing import Optional

import pandas as pd

from portfolio_risk.risk.schemas import RiskBundle

HTML_TEMPLATE = """
<html>
<head>
<title>Risk Report - {title}</title>
<style>
body {{ font-family: Arial; margin: 40px; }}
h1 {{ color: #333; }}
table {{ border-collapse: collapse; width: 70%; margin-bottom: 40px; }}
td, th {{ border: 1px solid #ccc; padding: 8px; }}
</style>
</head>
<body>

<h1>Risk Report - {title}</h1>
<p>Calculated at {calculated_at}</p>

<h2>Risk Summary</h2>
{summary_table}

<h2>Stress Tests</h2>
{stress_table}

<h2>Factor Risk</h2>
{factor_table}

<h2>Sector Concentration</h2>
{sector_table}

{errors_section}
</body>
</html>
"""

SUMMARY_FIELDS = [
    ("VaR 95% (%)", "var95"),
    ("VaR 99% (%)", "var99"),
    ("CVaR 95% (%)", "cvar95"),
    ("Max Drawdown (%)", "max_drawdown"),
    ("Current Drawdown (%)", "current_drawdown"),
    ("Beta", "beta"),
    ("Sharpe Ratio", "sharpe_ratio"),
    ("Sortino Ratio", "sortino_ratio"),
    ("Information Ratio", "information_ratio"),
    ("Calmar Ratio", "calmar_ratio"),
    ("Annualized Volatility (%)", "annualized_volatility"),
    ("Downside Volatility (%)", "downside_volatility"),
    ("Tracking Error (%)", "tracking_error"),
]


def _fmt(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.4f}"


def _table(df: pd.DataFrame) -> str:
    if df.empty:
        return "<p>Not available.</p>"
    return df.to_html(index=False, na_rep="N/A", float_format=lambda x: f"{x:.4f}")


def _summary(bundle: RiskBundle) -> pd.DataFrame:
    metrics = bundle.risk_metrics
    if metrics is None:
        return pd.DataFrame()
    rows = [(label, _fmt(getattr(metrics, field))) for label, field in SUMMARY_FIELDS]
    conc = bundle.concentration_risk
    if conc is not None:
        rows.append(("HHI", _fmt(conc.hhi)))
        rows.append(("Effective Stocks", _fmt(conc.effective_stocks)))
        rows.append(("Active Share (%)", _fmt(conc.active_share)))
    return pd.DataFrame(rows, columns=["Metric", "Value"])


def _stress(bundle: RiskBundle) -> pd.DataFrame:
    rows = [
        {
            "Scenario": r.scenario.name,
            "Portfolio (%)": r.portfolio_return,
            "Benchmark (%)": r.benchmark_return,
            "Excess (%)": r.excess_return,
            "Max Drawdown (%)": r.max_drawdown,
            "Recovery (months)": r.recovery_months,
            "Estimated (%)": r.estimated_portfolio_return,
        }
        for r in bundle.stress_test_results or []
    ]
    return pd.DataFrame(rows)


def _factors(bundle: RiskBundle) -> pd.DataFrame:
    decomposition = bundle.factor_risk
    if decomposition is None:
        return pd.DataFrame()
    return pd.DataFrame([f.model_dump() for f in decomposition.factors])


def _sectors(bundle: RiskBundle) -> pd.DataFrame:
    conc = bundle.concentration_risk
    if conc is None:
        return pd.DataFrame()
    return pd.DataFrame([s.model_dump() for s in conc.sector_concentration])


def generate_html_report(bundle: RiskBundle, path: str | Path, title: str = "portfolio") -> Path:
    errors_section = ""
    if bundle.errors:
        items = "".join(
            f"<li><b>{html.escape(k)}</b>: {html.escape(v)}</li>"
            for k, v in bundle.errors.items()
        )
        errors_section = f"<h2>Unavailable</h2><ul>{items}</ul>"

    page = HTML_TEMPLATE.format(
        title=html.escape(title),
        calculated_at=bundle.calculated_at.isoformat(),
        summary_table=_table(_summary(bundle)),
        stress_table=_table(_stress(bundle)),
        factor_table=_table(_factors(bundle)),
        sector_table=_table(_sectors(bundle)),
        errors_section=errors_section,
    )

    path = Path(path)
    path.write_text(page)
    return path
