from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from portfolio_risk.data.loaders import (
    load_factor_returns,
    load_holdings,
    load_performance,
)
from portfolio_risk.reporting.html_report import generate_html_report
from portfolio_risk.risk.engine import calculate_risk_metrics
from portfolio_risk.risk.scenarios import load_scenarios
from portfolio_risk.risk.schemas import HoldingsSnapshot, RiskBundle
from portfolio_risk.runner.config.loader import load_config
from portfolio_risk.runner.config.models import RiskRunConfig

LOGGER = logging.getLogger(__name__)

BUNDLE_FILE = "risk_bundle.json"
DRAWDOWN_FILE = "drawdown.csv"
STRESS_FILE = "stress_tests.csv"
REPORT_FILE = "report.html"


# ======================================================================
# Inputs
# ======================================================================


def _load_snapshot(cfg: RiskRunConfig) -> Optional[HoldingsSnapshot]:
    if cfg.holdings_source is None:
        return None

    LOGGER.info("Loading holdings: %s", cfg.holdings_source)
    snapshot = load_holdings(
        cfg.holdings_source,
        percent_weights=cfg.percent_weights,
        factor_columns=cfg.factor_columns,
    )

    if cfg.factor_returns_source is not None:
        LOGGER.info("Loading factor returns: %s", cfg.factor_returns_source)
        history = load_factor_returns(cfg.factor_returns_source)
        snapshot = snapshot.model_copy(update={"factor_returns": history})
    return snapshot


# ======================================================================
# Main entrypoint
# ======================================================================


def run_from_config(
    path: str | Path,
    save_dir: str | Path | None = None,
) -> RiskBundle:
    LOGGER.info("Loading config: %s", path)
    cfg = load_config(path)

    if save_dir is not None:
        cfg.save.directory = str(save_dir)

    if cfg.performance_source is None and cfg.holdings_source is None:
        raise ValueError("Config must provide `performance_source` or `holdings_source`")

    performance = None
    if cfg.performance_source is not None:
        LOGGER.info("Loading performance: %s", cfg.performance_source)
        performance = load_performance(cfg.performance_source)

    snapshot = _load_snapshot(cfg)

    scenarios = None
    if cfg.scenarios_source is not None:
        LOGGER.info("Loading stress scenarios: %s", cfg.scenarios_source)
        scenarios = load_scenarios(cfg.scenarios_source)

    LOGGER.info("Running risk calculation '%s'…", cfg.name)
    bundle = calculate_risk_metrics(
        performance,
        snapshot,
        settings=cfg.settings,
        scenarios=scenarios,
    )
    for slice_name, message in bundle.errors.items():
        LOGGER.warning("Slice '%s' unavailable: %s", slice_name, message)

    if cfg.save.directory:
        _persist_results(cfg, bundle)

    return bundle


# ======================================================================
# Save outputs
# ======================================================================


def drawdown_frame(bundle: RiskBundle) -> pd.DataFrame:
    metrics = bundle.risk_metrics
    rows = [] if metrics is None else [p.model_dump() for p in metrics.rolling_drawdown]
    return pd.DataFrame(rows, columns=["date", "drawdown", "peak", "value"])


def stress_frame(bundle: RiskBundle) -> pd.DataFrame:
    rows = []
    for res in bundle.stress_test_results or []:
        rows.append(
            {
                "scenario_id": res.scenario.id,
                "scenario": res.scenario.name,
                "start_date": res.scenario.start_date,
                "end_date": res.scenario.end_date,
                "has_portfolio_data": res.has_portfolio_data,
                "portfolio_return": res.portfolio_return,
                "benchmark_return": res.benchmark_return,
                "excess_return": res.excess_return,
                "max_drawdown": res.max_drawdown,
                "beta": res.beta,
                "recovery_months": res.recovery_months,
                "estimated_portfolio_return": res.estimated_portfolio_return,
            }
        )
    return pd.DataFrame(rows)


def _persist_results(cfg: RiskRunConfig, bundle: RiskBundle) -> None:
    out_dir = Path(cfg.save.directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    LOGGER.info("Saving results to: %s", out_dir)

    if cfg.save.save_json:
        (out_dir / BUNDLE_FILE).write_text(bundle.model_dump_json(indent=2))

    if cfg.save.save_csv:
        if bundle.risk_metrics is not None:
            drawdown_frame(bundle).to_csv(out_dir / DRAWDOWN_FILE, index=False)
        if bundle.stress_test_results is not None:
            stress_frame(bundle).to_csv(out_dir / STRESS_FILE, index=False)

    if cfg.save.save_html:
        generate_html_report(bundle, out_dir / REPORT_FILE, title=cfg.name)
