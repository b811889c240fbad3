"""
Validation for loaded performance and holdings tables.

Hard validations (raise errors):
    - Required columns
    - Date parse failures
    - Non-positive portfolio levels
    - Negative weights

Soft validations (warnings):
    - Duplicate dates / tickers
    - Irregular period gaps
    - Large outlier returns
    - Weights that do not sum to one
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd


PERFORMANCE_REQUIRED = {"date"}
PERFORMANCE_ONE_OF = ({"portfolio_value", "portfolio_return"},)
HOLDINGS_REQUIRED = {"ticker", "portfolio_weight"}

OUTLIER_RETURN_PCT = 25.0
WEIGHT_SUM_TOLERANCE = 0.02


class ValidationResult:
    """
    Container for validation results:
    - errors: fatal issues (raise)
    - warnings: soft issues (reported, do not stop execution)
    """

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.warnings: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_if_errors(self) -> None:
        if self.errors:
            raise ValueError("\n".join(self.errors))


def validate_performance_frame(df: pd.DataFrame) -> ValidationResult:
    """
    Validate a monthly performance table (snake_case columns).

    Read-only with respect to ``df``.
    """
    result = ValidationResult()
    cols = set(df.columns)

    missing = PERFORMANCE_REQUIRED - cols
    if missing:
        result.errors.append(
            f"Missing required columns: {', '.join(sorted(missing))}. "
            f"Present columns: {list(df.columns)}"
        )
        return result
    for group in PERFORMANCE_ONE_OF:
        if not group & cols:
            result.errors.append(
                f"Need at least one of: {', '.join(sorted(group))}."
            )
            return result

    dates = pd.to_datetime(df["date"], errors="coerce")
    n_bad = int(dates.isna().sum())
    if n_bad:
        result.errors.append(
            f"Column 'date' has {n_bad} values that could not be parsed as dates."
        )
        return result

    if "portfolio_value" in cols:
        levels = pd.to_numeric(df["portfolio_value"], errors="coerce").dropna()
        if (levels <= 0.0).any():
            result.errors.append("'portfolio_value' must be strictly positive.")

    dup_count = int(dates.duplicated().sum())
    if dup_count:
        result.warnings.append(
            f"Found {dup_count} duplicate dates. The last occurrence will be used."
        )

    diffs = dates.sort_values().diff().dt.days.dropna()
    if len(diffs) > 0:
        median_gap = float(np.median(diffs))
        large_gaps = int((diffs > 2 * median_gap).sum())
        if large_gaps:
            result.warnings.append(
                f"Irregular period gaps detected: {large_gaps} gaps longer than "
                f"twice the median spacing ({median_gap:.0f} days)."
            )

    if "portfolio_return" in cols:
        rets = pd.to_numeric(df["portfolio_return"], errors="coerce")
        outliers = int((rets.abs() > OUTLIER_RETURN_PCT).sum())
        if outliers:
            result.warnings.append(
                f"Detected {outliers} period returns beyond ±{OUTLIER_RETURN_PCT:.0f}%. "
                "Check that returns are in percent."
            )

    return result


def validate_holdings_frame(df: pd.DataFrame) -> ValidationResult:
    """
    Validate a holdings table with 0-1 weights.
    """
    result = ValidationResult()

    missing = HOLDINGS_REQUIRED - set(df.columns)
    if missing:
        result.errors.append(
            f"Missing required columns: {', '.join(sorted(missing))}. "
            f"Present columns: {list(df.columns)}"
        )
        return result

    if df["ticker"].isna().any():
        result.errors.append("Column 'ticker' contains missing values.")

    for col in ("portfolio_weight", "benchmark_weight"):
        if col not in df.columns:
            continue
        weights = pd.to_numeric(df[col], errors="coerce")
        if weights.isna().any():
            result.errors.append(f"'{col}' contains {int(weights.isna().sum())} non-numeric values.")
            continue
        if (weights < 0.0).any():
            result.errors.append(f"'{col}' contains negative weights.")
            continue
        total = float(weights.sum())
        if total > 0.0 and abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            result.warnings.append(
                f"'{col}' sums to {total:.4f}, not 1. Weights are used as given."
            )

    dup_count = int(df["ticker"].duplicated().sum())
    if dup_count:
        result.warnings.append(
            f"Found {dup_count} duplicate tickers; their weights are summed for active share."
        )

    return result
