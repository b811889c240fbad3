# tests/risk/test_concentration.py
import numpy as np
import pytest

from portfolio_risk.risk.concentration import (
    compute_active_share,
    compute_concentration,
    compute_effective_stocks,
    compute_hhi,
    compute_top_n_weight,
    group_weights,
    holdings_frame,
    merge_by_ticker,
    rank_by_weight,
)
from portfolio_risk.risk.errors import InsufficientDataError
from portfolio_risk.risk.schemas import Holding, SectorConcentration


def _holdings():
    return [
        Holding(
            ticker="AAA",
            sector="Technology",
            country="US",
            region="North America",
            portfolio_weight=0.6,
            benchmark_weight=0.5,
        ),
        Holding(
            ticker="BBB",
            sector="Health Care",
            country="US",
            region="North America",
            portfolio_weight=0.4,
        ),
        Holding(
            ticker="CCC",
            sector="Technology",
            country="JP",
            region="Asia",
            benchmark_weight=0.5,
        ),
    ]


def test_hhi_and_effective_stocks():
    hhi = compute_hhi([0.6, 0.4])

    assert np.isclose(hhi, 5200.0)
    assert np.isclose(compute_effective_stocks(hhi), 10000.0 / 5200.0)
    assert np.isclose(compute_effective_stocks(compute_hhi([0.25] * 4)), 4.0)


def test_effective_stocks_needs_positive_hhi():
    with pytest.raises(InsufficientDataError):
        compute_effective_stocks(0.0)


def test_rank_by_weight_is_stable_and_skips_unheld():
    holdings = [
        Holding(ticker="A", portfolio_weight=0.3),
        Holding(ticker="B", portfolio_weight=0.4),
        Holding(ticker="C", portfolio_weight=0.3),
        Holding(ticker="D", benchmark_weight=1.0),
    ]

    assert [h.ticker for h in rank_by_weight(holdings)] == ["B", "A", "C"]
    assert np.isclose(compute_top_n_weight(holdings, 2), 0.7)


def test_active_share_over_union_of_names():
    # |0.6-0.5| + |0.4-0| + |0-0.5| = 1.0 -> 0.5
    assert np.isclose(compute_active_share(_holdings()), 0.5)


def test_active_share_merges_duplicate_tickers():
    holdings = [
        Holding(ticker="AAA", portfolio_weight=0.5, benchmark_weight=0.5),
        Holding(ticker="AAA", portfolio_weight=0.5),
        Holding(ticker="BBB", benchmark_weight=0.5),
    ]

    assert np.isclose(compute_active_share(holdings), 0.5)


def test_compute_concentration_snapshot():
    metrics = compute_concentration(_holdings())

    assert np.isclose(metrics.hhi, 5200.0)
    assert np.isclose(metrics.effective_stocks, 1.923, atol=1e-3)
    assert np.isclose(metrics.top5_weight, 100.0)
    assert metrics.max_stock_ticker == "AAA"
    assert np.isclose(metrics.max_stock_weight, 60.0)
    assert np.isclose(metrics.active_share, 50.0)

    sectors = {s.sector: s for s in metrics.sector_concentration}
    assert np.isclose(sum(s.portfolio_weight for s in sectors.values()), 100.0)
    assert np.isclose(sectors["Technology"].benchmark_weight, 100.0)
    assert np.isclose(sectors["Technology"].active_weight, -40.0)
    assert sectors["Technology"].stock_count == 1
    assert metrics.max_sector_name == "Technology"

    countries = {c.country: c for c in metrics.country_concentration}
    assert np.isclose(countries["US"].portfolio_weight, 100.0)
    assert countries["JP"].stock_count == 0
    assert metrics.max_region_name == "North America"


def test_compute_concentration_without_holdings():
    with pytest.raises(InsufficientDataError):
        compute_concentration([Holding(ticker="X", benchmark_weight=1.0)])


def test_merge_by_ticker_sums_duplicate_lines():
    holdings = [
        Holding(ticker="AAA", portfolio_weight=0.5, benchmark_weight=0.5),
        Holding(ticker="BBB", benchmark_weight=0.5),
        Holding(ticker="AAA", portfolio_weight=0.5),
    ]

    merged = merge_by_ticker(holdings)

    assert list(merged.index) == ["AAA", "BBB"]
    assert np.isclose(merged.loc["AAA", "portfolio_weight"], 1.0)
    assert np.isclose(merged.loc["AAA", "benchmark_weight"], 0.5)


def test_group_weights_sorted_with_held_counts():
    holdings = [
        Holding(ticker="A", sector="Energy", portfolio_weight=0.2),
        Holding(ticker="B", sector="Utilities", portfolio_weight=0.3),
        Holding(ticker="C", sector="Energy", portfolio_weight=0.3, benchmark_weight=0.6),
        Holding(ticker="D", sector="Utilities", portfolio_weight=0.2),
        Holding(ticker="E", sector="Materials", benchmark_weight=0.4),
    ]

    groups = group_weights(holdings_frame(holdings), "sector", SectorConcentration)

    # Energy and Utilities tie at 50%; input order breaks the tie
    assert [g.sector for g in groups] == ["Energy", "Utilities", "Materials"]
    assert np.isclose(groups[0].active_weight, -10.0)
    assert [g.stock_count for g in groups] == [2, 2, 0]
    assert np.isclose(groups[2].benchmark_weight, 40.0)
