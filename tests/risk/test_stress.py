# tests/risk/test_stress.py
import datetime as dt

import numpy as np
import pytest

from portfolio_risk.risk.errors import MissingScenarioOverlapError
from portfolio_risk.risk.schemas import StressScenario
from portfolio_risk.risk.stress import (
    evaluate_scenario,
    locate_on_or_before,
    run_stress_tests,
    scenario_window,
)

DATES = [dt.date(2020, 1, 31), dt.date(2020, 2, 29), dt.date(2020, 3, 31)]
PORTFOLIO = np.array([100.0, 80.0, 120.0])
BENCHMARK = np.array([100.0, 70.0, 110.0])

FEB_SELLOFF = StressScenario(
    id="feb-2020",
    name="February 2020",
    start_date=dt.date(2020, 1, 31),
    end_date=dt.date(2020, 2, 29),
    benchmark_return=-0.30,
)


def test_locate_on_or_before():
    assert locate_on_or_before(DATES, dt.date(2020, 1, 31)) == 0
    assert locate_on_or_before(DATES, dt.date(2020, 3, 15)) == 1
    assert locate_on_or_before(DATES, dt.date(2030, 1, 1)) == 2
    assert locate_on_or_before(DATES, dt.date(2019, 12, 31)) is None


def test_scenario_window_requires_two_observations():
    scenario = StressScenario(
        id="short",
        name="Short",
        start_date=dt.date(2020, 2, 1),
        end_date=dt.date(2020, 2, 20),
        benchmark_return=-0.1,
    )
    with pytest.raises(MissingScenarioOverlapError):
        scenario_window(DATES, scenario)


def test_scenario_window_starting_before_history_uses_first_observation():
    covid = StressScenario(
        id="covid",
        name="COVID",
        start_date=dt.date(2020, 1, 31),
        end_date=dt.date(2020, 3, 31),
        benchmark_return=-0.339,
    )
    dates = [dt.date(2020, 2, 29), dt.date(2020, 3, 31), dt.date(2020, 4, 30)]
    values = np.array([100.0, 80.0, 90.0])

    assert scenario_window(dates, covid) == (0, 1)

    result = evaluate_scenario(covid, dates, values, values, overall_beta=1.0)

    assert result.has_portfolio_data
    assert np.isclose(result.portfolio_return, -20.0)
    assert result.estimated_portfolio_return is None
    assert result.recovery_months is None


def test_scenario_window_ending_before_history_has_no_overlap():
    early = StressScenario(
        id="early",
        name="Early",
        start_date=dt.date(2019, 1, 31),
        end_date=dt.date(2019, 12, 31),
        benchmark_return=-0.1,
    )
    with pytest.raises(MissingScenarioOverlapError):
        scenario_window(DATES, early)


def test_evaluate_scenario_with_overlap():
    result = evaluate_scenario(FEB_SELLOFF, DATES, PORTFOLIO, BENCHMARK)

    assert result.has_portfolio_data
    assert np.isclose(result.portfolio_return, -20.0)
    assert np.isclose(result.benchmark_return, -30.0)
    assert np.isclose(result.excess_return, 10.0)
    assert np.isclose(result.max_drawdown, 20.0)
    # start level 100 regained one period after the window ends
    assert result.recovery_months == 1
    # one return inside the window is not enough for beta
    assert result.beta is None
    assert result.estimated_portfolio_return is None


def test_evaluate_scenario_never_recovered():
    values = np.array([100.0, 80.0, 90.0])

    result = evaluate_scenario(FEB_SELLOFF, DATES, values, BENCHMARK)

    assert result.recovery_months is None


def test_evaluate_scenario_without_overlap_uses_static_estimate():
    gfc = StressScenario(
        id="gfc",
        name="GFC",
        start_date=dt.date(2008, 8, 31),
        end_date=dt.date(2009, 2, 28),
        benchmark_return=-0.502,
    )

    result = evaluate_scenario(gfc, DATES, PORTFOLIO, BENCHMARK, overall_beta=1.2)

    assert not result.has_portfolio_data
    assert result.portfolio_return is None
    assert result.max_drawdown is None
    assert np.isclose(result.benchmark_return, -50.2)
    assert np.isclose(result.estimated_portfolio_return, 1.2 * -50.2)


def test_run_stress_tests_default_catalog_order():
    results = run_stress_tests(DATES, PORTFOLIO, BENCHMARK)

    assert [r.scenario.id for r in results] == ["gfc-2008", "covid-2020", "rate-shock-2022"]
    covid = results[1]
    assert covid.has_portfolio_data
    assert np.isclose(covid.portfolio_return, 20.0)
    assert np.isclose(covid.max_drawdown, 20.0)
    assert covid.recovery_months == 0
    assert not results[0].has_portfolio_data


def test_evaluate_scenario_length_mismatch():
    with pytest.raises(ValueError):
        evaluate_scenario(FEB_SELLOFF, DATES, PORTFOLIO[:2], BENCHMARK)


def test_scenario_must_end_after_start():
    with pytest.raises(ValueError):
        StressScenario(
            id="bad",
            name="Bad",
            start_date=dt.date(2020, 3, 1),
            end_date=dt.date(2020, 1, 1),
            benchmark_return=-0.1,
        )
