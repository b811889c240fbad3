# src/portfolio_risk/risk/scenarios.py
from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Tuple

import yaml
from pydantic import TypeAdapter, ValidationError

from portfolio_risk.risk.schemas import StressScenario

# Month-end boundaries to line up with monthly performance data. The
# benchmark_return values are historical estimates, used only when the
# loaded series does not cover the window.
STRESS_SCENARIOS: Tuple[StressScenario, ...] = (
    StressScenario(
        id="gfc-2008",
        name="2008 Financial Crisis",
        description="Global Financial Crisis - Lehman Brothers collapse and credit freeze",
        start_date=dt.date(2008, 8, 31),
        end_date=dt.date(2009, 2, 28),
        benchmark_return=-0.502,
    ),
    StressScenario(
        id="covid-2020",
        name="COVID-19 Crash",
        description="Rapid market decline due to COVID-19 pandemic",
        start_date=dt.date(2020, 1, 31),
        end_date=dt.date(2020, 3, 31),
        benchmark_return=-0.339,
    ),
    StressScenario(
        id="rate-shock-2022",
        name="2022 Rate Shock",
        description="Fed rate hikes and inflation concerns",
        start_date=dt.date(2021, 12, 31),
        end_date=dt.date(2022, 9, 30),
        benchmark_return=-0.254,
    ),
)

_CATALOG = TypeAdapter(Tuple[StressScenario, ...])


def get_scenario(scenario_id: str) -> StressScenario:
    for scenario in STRESS_SCENARIOS:
        if scenario.id == scenario_id:
            return scenario
    raise KeyError(f"Unknown stress scenario: {scenario_id}")


def load_scenarios(path: str | Path) -> Tuple[StressScenario, ...]:
    """
    Load a scenario catalog from YAML or JSON.

    The file holds either a list of scenarios or a mapping with a
    ``scenarios`` list. Scenario ids must be unique.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file does not exist: {path}")

    text = path.read_text()
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text)
        elif path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raise ValueError("Scenario path must be YAML or JSON.")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse scenarios: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("scenarios", [])

    try:
        catalog = _CATALOG.validate_python(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid scenario catalog: {e}") from e

    ids = [s.id for s in catalog]
    if len(ids) != len(set(ids)):
        raise ValueError("Scenario ids must be unique.")
    return catalog
