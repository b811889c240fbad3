from __future__ import annotations

import json
import yaml
from pathlib import Path

from pydantic import ValidationError

from portfolio_risk.runner.config.models import RiskRunConfig


def load_config(path: str | Path) -> RiskRunConfig:
    """
    Load a RiskRunConfig from YAML or JSON.

    Relative data paths are resolved against the config file's directory.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    text = path.read_text()

    suffix = path.suffix.lower()
    if suffix not in {".yaml", ".yml", ".json"}:
        raise ValueError("Config path must be YAML or JSON.")

    try:
        raw = yaml.safe_load(text) if suffix in {".yaml", ".yml"} else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config: {e}") from e

    try:
        cfg = RiskRunConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ValueError(f"Invalid RiskRunConfig: {e}") from e

    return _resolve_sources(cfg, path.parent)


def _resolve_sources(cfg: RiskRunConfig, base: Path) -> RiskRunConfig:
    updates = {}
    for field in (
        "performance_source",
        "holdings_source",
        "factor_returns_source",
        "scenarios_source",
    ):
        value = getattr(cfg, field)
        if value is not None and not Path(value).is_absolute():
            updates[field] = str(base / value)
    return cfg.model_copy(update=updates)
