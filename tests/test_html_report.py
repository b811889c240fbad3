from __future__ import annotations

import datetime as dt
from pathlib import Path

from portfolio_risk.reporting.html_report import generate_html_report
from portfolio_risk.risk.engine import calculate_risk_metrics
from portfolio_risk.risk.schemas import Holding, HoldingsSnapshot, RiskBundle


def test_generate_html_report(tmp_path: Path):
    snapshot = HoldingsSnapshot(
        holdings=[
            Holding(ticker="AAA", sector="Technology", portfolio_weight=0.7, factors={"value": 1.0}),
            Holding(ticker="BBB", sector="Energy", portfolio_weight=0.3, benchmark_weight=1.0),
        ]
    )
    perf = [
        {"date": dt.date(2024, m, 28), "portfolio_return": r, "benchmark_return": r / 2}
        for m, r in zip(range(1, 7), [1.0, -2.0, 3.0, -1.5, 0.5, 2.0])
    ]
    bundle = calculate_risk_metrics(perf, snapshot)

    out = generate_html_report(bundle, tmp_path / "report.html", title="demo <fund>")

    text = out.read_text()
    assert "Risk Report - demo &lt;fund&gt;" in text
    assert "VaR 95% (%)" in text
    assert "Technology" in text
    assert "2008 Financial Crisis" in text
    assert "Unavailable" not in text


def test_generate_html_report_empty_bundle(tmp_path: Path):
    bundle = RiskBundle(
        calculated_at=dt.datetime(2024, 1, 1),
        errors={"risk_metrics": "need at least 2 aligned return periods, got 1."},
    )

    text = generate_html_report(bundle, tmp_path / "r.html").read_text()

    assert text.count("Not available.") == 4
    assert "need at least 2" in text
