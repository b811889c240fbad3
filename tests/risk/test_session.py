# tests/risk/test_session.py
import datetime as dt

import pytest

from portfolio_risk.risk.schemas import RiskBundle
from portfolio_risk.risk.session import RiskContext, RiskSession

NOW = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


class RecordingCalculator:
    """Returns an empty bundle and records the inputs of every call."""

    def __init__(self, on_call=None):
        self.calls = []
        self.on_call = on_call

    def __call__(self, performance, factor_data, settings=None, scenarios=None):
        self.calls.append((performance, factor_data))
        if self.on_call is not None:
            self.on_call(len(self.calls))
        return RiskBundle(calculated_at=NOW + dt.timedelta(minutes=len(self.calls)))


def test_recalculate_replaces_context():
    calc = RecordingCalculator()
    session = RiskSession(calculator=calc)

    assert session.needs_calculation(has_inputs=True)
    assert not session.needs_calculation(has_inputs=False)

    ctx = session.recalculate(performance=["p"])

    assert isinstance(ctx, RiskContext)
    assert ctx.has_results
    assert not ctx.is_calculating
    assert session.runs == 1
    assert not session.needs_calculation(has_inputs=True)


def test_triggers_during_a_run_coalesce_into_one_follow_up():
    session = None
    returned = []

    def retrigger(call_no):
        if call_no == 1:
            assert session.context.is_calculating
            returned.append(session.recalculate(performance=["second"]))
            returned.append(session.recalculate(performance=["third"]))

    calc = RecordingCalculator(on_call=retrigger)
    session = RiskSession(calculator=calc)

    ctx = session.recalculate(performance=["first"])

    assert returned == [None, None]
    assert [c[0] for c in calc.calls] == [["first"], ["third"]]
    assert session.runs == 2
    assert ctx.last_calculated_at == NOW + dt.timedelta(minutes=2)
    assert not session.context.is_calculating


def test_failed_calculation_resets_flag():
    def boom(call_no):
        raise RuntimeError("calculator failed")

    session = RiskSession(calculator=RecordingCalculator(on_call=boom))

    with pytest.raises(RuntimeError):
        session.recalculate(performance=["p"])

    assert not session.context.is_calculating
    assert not session.context.has_results
    assert session.runs == 0


def test_clear_resets_context():
    session = RiskSession(calculator=RecordingCalculator())
    session.recalculate(factor_data={"holdings": []})

    session.clear()

    assert session.context == RiskContext()
