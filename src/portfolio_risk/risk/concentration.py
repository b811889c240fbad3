# src/portfolio_risk/risk/concentration.py
from __future__ import annotations

from typing import List, Sequence, Type, TypeVar

import numpy as np
import pandas as pd

from portfolio_risk.risk.errors import InsufficientDataError
from portfolio_risk.risk.schemas import (
    ConcentrationMetrics,
    CountryConcentration,
    GroupConcentration,
    Holding,
    RegionConcentration,
    SectorConcentration,
)

G = TypeVar("G", bound=GroupConcentration)

HHI_SCALE = 10_000.0

FRAME_COLUMNS = [
    "ticker",
    "sector",
    "country",
    "region",
    "portfolio_weight",
    "benchmark_weight",
]
WEIGHTS = ["portfolio_weight", "benchmark_weight"]


def holdings_frame(holdings: Sequence[Holding]) -> pd.DataFrame:
    """One row per holding line with the grouping keys and 0-1 weights."""
    records = [h.model_dump(include=set(FRAME_COLUMNS)) for h in holdings]
    return pd.DataFrame.from_records(records, columns=FRAME_COLUMNS)


def compute_hhi(weights: Sequence[float]) -> float:
    """
    Herfindahl-Hirschman index on the 0-10000 scale: 10000 * sum(w^2),
    with weights on the 0-1 scale. Two names at 0.6 / 0.4 give 5200.
    """
    w = np.asarray(weights, dtype=float)
    return HHI_SCALE * float(np.sum(w**2))


def compute_effective_stocks(hhi: float) -> float:
    """10000 / HHI, the number of equal-weight names with the same HHI."""
    if hhi <= 0.0:
        raise InsufficientDataError("HHI must be positive to compute effective stocks.")
    return HHI_SCALE / hhi


def rank_by_weight(holdings: Sequence[Holding]) -> List[Holding]:
    """Held names by portfolio weight, descending; ties keep input order."""
    held = [h for h in holdings if h.portfolio_weight > 0.0]
    w = np.array([h.portfolio_weight for h in held], dtype=float)
    order = np.argsort(-w, kind="stable")
    return [held[i] for i in order]


def compute_top_n_weight(holdings: Sequence[Holding], n: int) -> float:
    """Sum of the n largest portfolio weights (0-1 scale)."""
    if n < 1:
        raise ValueError("n must be at least 1.")
    w = np.array([h.portfolio_weight for h in holdings], dtype=float)
    return float(np.sort(w[w > 0.0])[::-1][:n].sum())


def merge_by_ticker(holdings: Sequence[Holding]) -> pd.DataFrame:
    """Portfolio and benchmark weight per ticker, summing duplicate lines."""
    df = holdings_frame(holdings)
    return df.groupby("ticker", sort=False)[WEIGHTS].sum()


def compute_active_share(holdings: Sequence[Holding]) -> float:
    """
    0.5 * sum |w_p - w_b| over the union of portfolio and benchmark names
    (0-1 scale). Names held on only one side count in full.
    """
    merged = merge_by_ticker(holdings)
    diff = merged["portfolio_weight"] - merged["benchmark_weight"]
    return 0.5 * float(diff.abs().sum())


def group_weights(frame: pd.DataFrame, column: str, model: Type[G]) -> List[G]:
    """
    Aggregate portfolio and benchmark weights per group, reported in percent
    and sorted by portfolio weight, descending. stock_count counts held names.
    """
    grouped = (
        frame.assign(held=frame["portfolio_weight"] > 0.0)
        .groupby(column, sort=False)
        .agg(
            portfolio_weight=("portfolio_weight", "sum"),
            benchmark_weight=("benchmark_weight", "sum"),
            stock_count=("held", "sum"),
        )
        .sort_values("portfolio_weight", ascending=False, kind="stable")
    )
    grouped[WEIGHTS] = grouped[WEIGHTS] * 100.0
    return [
        model(
            name=str(name),
            portfolio_weight=float(row.portfolio_weight),
            benchmark_weight=float(row.benchmark_weight),
            active_weight=float(row.portfolio_weight - row.benchmark_weight),
            stock_count=int(row.stock_count),
        )
        for name, row in grouped.iterrows()
    ]


def compute_concentration(holdings: Sequence[Holding]) -> ConcentrationMetrics:
    """
    Concentration snapshot of a holdings list with 0-1 weights.

    HHI and top-N use held names only; sector/country/region groups and
    active share also see benchmark-only names.
    """
    ranked = rank_by_weight(holdings)
    if not ranked:
        raise InsufficientDataError("holdings contain no positive portfolio weight.")

    frame = holdings_frame(holdings)
    hhi = compute_hhi(frame.loc[frame["portfolio_weight"] > 0.0, "portfolio_weight"])

    sectors = group_weights(frame, "sector", SectorConcentration)
    countries = group_weights(frame, "country", CountryConcentration)
    regions = group_weights(frame, "region", RegionConcentration)

    top_stock = ranked[0]
    return ConcentrationMetrics(
        hhi=hhi,
        effective_stocks=compute_effective_stocks(hhi),
        top5_weight=compute_top_n_weight(ranked, 5) * 100.0,
        top10_weight=compute_top_n_weight(ranked, 10) * 100.0,
        max_stock_weight=top_stock.portfolio_weight * 100.0,
        max_stock_ticker=top_stock.ticker,
        max_sector_weight=sectors[0].portfolio_weight,
        max_sector_name=sectors[0].name,
        max_country_weight=countries[0].portfolio_weight,
        max_country_name=countries[0].name,
        max_region_weight=regions[0].portfolio_weight,
        max_region_name=regions[0].name,
        active_share=compute_active_share(holdings) * 100.0,
        sector_concentration=sectors,
        country_concentration=countries,
        region_concentration=regions,
    )
