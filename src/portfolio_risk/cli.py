from __future__ import annotations

import argparse
import logging
from pathlib import Path

from portfolio_risk import __version__
from portfolio_risk.reporting.html_report import generate_html_report
from portfolio_risk.risk.scenarios import STRESS_SCENARIOS, load_scenarios
from portfolio_risk.risk.schemas import RiskBundle
from portfolio_risk.runner.run import BUNDLE_FILE, REPORT_FILE, run_from_config


def _fmt(value) -> str:
    return "N/A" if value is None else f"{value:.4f}"


def _print_summary(bundle: RiskBundle) -> None:
    m = bundle.risk_metrics
    if m is not None:
        print(f"VaR 95%: {_fmt(m.var95)}")
        print(f"CVaR 95%: {_fmt(m.cvar95)}")
        print(f"Max drawdown: {_fmt(m.max_drawdown)}")
        print(f"Sharpe: {_fmt(m.sharpe_ratio)}")
        print(f"Beta: {_fmt(m.beta)}")
    if bundle.factor_risk is not None:
        print(f"Systematic risk: {_fmt(bundle.factor_risk.systematic_risk)}")
    if bundle.concentration_risk is not None:
        print(f"Active share: {_fmt(bundle.concentration_risk.active_share)}")
    for name, message in bundle.errors.items():
        print(f"  ! {name}: {message}")


# ============================================================
# Command: run
# ============================================================


def cmd_run(args):
    print(f"[prisk] Running risk calculation: {args.config}")
    bundle = run_from_config(args.config, save_dir=args.save_dir)

    print("\n========== Risk Run Complete ==========")
    _print_summary(bundle)
    print("=======================================\n")


# ============================================================
# Command: scenarios list
# ============================================================


def cmd_scenarios_list(args):
    catalog = STRESS_SCENARIOS if args.file is None else load_scenarios(args.file)
    print("[prisk] Stress scenarios:")
    for s in catalog:
        print(
            f"  - {s.id} : {s.name} ({s.start_date} to {s.end_date}, "
            f"benchmark {s.benchmark_return * 100:.1f}%)"
        )


# ============================================================
# Command: report
# ============================================================


def cmd_report(args):
    run_dir = Path(args.run_dir)
    if not run_dir.exists():
        raise FileNotFoundError(f"Run directory not found: {run_dir}")

    bundle_path = run_dir / BUNDLE_FILE
    if not bundle_path.exists():
        raise FileNotFoundError(f"No {BUNDLE_FILE} in {run_dir}")

    print(f"[prisk] Loading report from {run_dir}")
    bundle = RiskBundle.model_validate_json(bundle_path.read_text())
    _print_summary(bundle)

    out = generate_html_report(bundle, run_dir / REPORT_FILE, title=run_dir.name)
    print(f"  ✓ {out.name}")
    print("[prisk] Report complete.")


# ============================================================
# Command: version
# ============================================================


def cmd_version(args):
    print(__version__)


# ============================================================
# Main CLI
# ============================================================


def main(argv=None):
    parser = argparse.ArgumentParser(prog="prisk")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------
    p_run = sub.add_parser("run", help="Run a risk calculation from a config file")
    p_run.add_argument("--config", required=True, help="Path to config JSON/YAML")
    p_run.add_argument(
        "--save-dir", required=False, default=None, help="Directory to save results"
    )
    p_run.set_defaults(func=cmd_run)

    # ------------------------------------------------------------------
    # scenarios
    # ------------------------------------------------------------------
    p_sc = sub.add_parser("scenarios", help="Inspect stress scenarios")
    sc_sub = p_sc.add_subparsers(dest="scenarios_cmd", required=True)

    p_list = sc_sub.add_parser("list", help="List stress scenarios")
    p_list.add_argument("--file", default=None, help="Scenario catalog YAML/JSON")
    p_list.set_defaults(func=cmd_scenarios_list)

    # ------------------------------------------------------------------
    # report
    # ------------------------------------------------------------------
    p_rep = sub.add_parser("report", help="Summarize a saved run and rebuild its HTML report")
    p_rep.add_argument("--run-dir", required=True, help="Path to saved run directory")
    p_rep.set_defaults(func=cmd_report)

    # ------------------------------------------------------------------
    # version
    # ------------------------------------------------------------------
    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
