from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from portfolio_risk.data.validation import (
    validate_holdings_frame,
    validate_performance_frame,
)
from portfolio_risk.risk.schemas import (
    WELL_KNOWN_FACTORS,
    FactorScores,
    Holding,
    HoldingsSnapshot,
    PerformancePoint,
)

LOGGER = logging.getLogger(__name__)

HOLDING_COLUMNS = {
    "ticker",
    "company",
    "sector",
    "country",
    "region",
    "portfolio_weight",
    "benchmark_weight",
    "active_weight",
}
FACTOR_COLUMNS = set(WELL_KNOWN_FACTORS) | {"mfm_score"}


def _snake(name: str) -> str:
    # portfolioValue -> portfolio_value, "Portfolio Weight" -> portfolio_weight
    s = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(name).strip())
    return re.sub(r"[\s\-]+", "_", s).lower()


def _read_table(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data path does not exist: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix == ".json":
        raw = json.loads(path.read_text())
        if isinstance(raw, dict):
            # {"performance": [...]} / {"holdings": [...]} style payloads
            records = next((v for v in raw.values() if isinstance(v, list)), [])
        else:
            records = raw
        df = pd.DataFrame.from_records(records)
    else:
        raise ValueError(f"Unsupported data file type: {path.suffix} (use .csv or .json)")

    df.columns = [_snake(c) for c in df.columns]
    return df


def _report(kind: str, warnings: List[str]) -> None:
    for w in warnings:
        LOGGER.warning("%s data: %s", kind, w)


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _text(row: pd.Series, column: str, default: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value) or str(value).strip() == "":
        return default
    return str(value).strip()


def load_performance(path: str | Path) -> List[PerformancePoint]:
    """
    Load a monthly performance table.

    Columns: date, portfolio_value, benchmark_value and optionally
    portfolio_return, benchmark_return (percent) and alpha. camelCase
    headers are accepted.
    """
    df = _read_table(path)
    check = validate_performance_frame(df)
    check.raise_if_errors()
    _report("Performance", check.warnings)

    df["date"] = pd.to_datetime(df["date"], errors="raise")
    df = df.sort_values("date").reset_index(drop=True)

    fields = [f for f in PerformancePoint.model_fields if f != "date"]
    points = [
        PerformancePoint(
            date=row["date"].date(),
            **{f: _optional_float(row.get(f)) for f in fields},
        )
        for _, row in df.iterrows()
    ]
    LOGGER.info("Loaded %d performance rows from %s", len(points), path)
    return points


def load_holdings(
    path: str | Path,
    percent_weights: Optional[bool] = None,
    factor_columns: Optional[Sequence[str]] = None,
) -> HoldingsSnapshot:
    """
    Load a holdings table or a JSON holdings snapshot.

    Factor scores are read from the well-known factor columns, ``mfm_score``
    and any extra columns named in ``factor_columns``; other numeric columns
    (price, shares, market cap) are ignored. Weights are expected on the 0-1 scale; ``percent_weights=True`` divides
    them by 100, and None detects percent weights from a portfolio weight
    total above 1.5.
    """
    path = Path(path)
    if path.suffix.lower() == ".json" and path.exists():
        raw = json.loads(path.read_text())
        if isinstance(raw, dict) and "holdings" in raw:
            snapshot = HoldingsSnapshot.model_validate(raw)
            LOGGER.info("Loaded snapshot with %d holdings from %s", len(snapshot.holdings), path)
            return snapshot

    df = _read_table(path)
    check = validate_holdings_frame(df)

    for col in ("portfolio_weight", "benchmark_weight"):
        if col not in df.columns:
            df[col] = 0.0
        df[col] = pd.to_numeric(df[col], errors="coerce")

    if percent_weights is None:
        percent_weights = float(df["portfolio_weight"].sum()) > 1.5
        if percent_weights:
            LOGGER.info("Holdings weights look like percent; converting to 0-1.")
    if percent_weights:
        df["portfolio_weight"] = df["portfolio_weight"] / 100.0
        df["benchmark_weight"] = df["benchmark_weight"] / 100.0
        check = validate_holdings_frame(df)

    check.raise_if_errors()
    _report("Holdings", check.warnings)

    wanted = FACTOR_COLUMNS | {_snake(c) for c in factor_columns or ()}
    numeric = [
        c
        for c in df.columns
        if c not in HOLDING_COLUMNS and pd.api.types.is_numeric_dtype(df[c])
    ]
    factor_cols = [c for c in numeric if c in wanted]
    ignored = [c for c in numeric if c not in wanted]
    if ignored:
        LOGGER.info("Ignoring non-factor holdings columns: %s", ", ".join(ignored))

    holdings: List[Holding] = []
    for _, row in df.iterrows():
        scores: Dict[str, float] = {
            c: float(row[c]) for c in factor_cols if not pd.isna(row[c])
        }
        holdings.append(
            Holding(
                ticker=str(row["ticker"]),
                company=_text(row, "company", ""),
                sector=_text(row, "sector", "Unclassified"),
                country=_text(row, "country", "Unclassified"),
                region=_text(row, "region", "Unclassified"),
                portfolio_weight=float(row["portfolio_weight"]),
                benchmark_weight=float(row["benchmark_weight"]),
                factors=FactorScores.model_validate(scores),
            )
        )

    LOGGER.info("Loaded %d holdings from %s", len(holdings), path)
    return HoldingsSnapshot(holdings=holdings)


def load_factor_returns(path: str | Path) -> List[Dict[str, float]]:
    """
    Load a factor return history (percent per period): a date column plus
    one column per factor. Rows are returned in date order without the date.
    """
    df = _read_table(path)
    if "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"], errors="raise")
        df = df.sort_values("date").drop(columns=["date"])
    df = df.apply(pd.to_numeric, errors="coerce")
    LOGGER.info("Loaded %d factor return periods x %d factors", df.shape[0], df.shape[1])
    return [
        {k: float(v) for k, v in row.items() if not pd.isna(v)}
        for row in df.to_dict(orient="records")
    ]
