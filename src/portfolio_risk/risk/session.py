# src/portfolio_risk/risk/session.py
from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence

from portfolio_risk.risk.engine import (
    FactorInput,
    PerformanceInput,
    RiskEngineSettings,
    calculate_risk_metrics,
)
from portfolio_risk.risk.schemas import (
    ConcentrationMetrics,
    FactorRiskDecomposition,
    RiskBundle,
    RiskMetrics,
    StressScenario,
    StressTestResult,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskContext:
    """
    Last computed risk bundle held by one caller (one dashboard session).

    Everything is None until the first calculation completes. Instances are
    immutable; a session swaps in a new one per completed run.
    """

    risk_metrics: Optional[RiskMetrics] = None
    factor_risk: Optional[FactorRiskDecomposition] = None
    concentration_risk: Optional[ConcentrationMetrics] = None
    stress_test_results: Optional[List[StressTestResult]] = None
    is_calculating: bool = False
    last_calculated_at: Optional[dt.datetime] = None

    @classmethod
    def from_bundle(cls, bundle: RiskBundle) -> "RiskContext":
        return cls(
            risk_metrics=bundle.risk_metrics,
            factor_risk=bundle.factor_risk,
            concentration_risk=bundle.concentration_risk,
            stress_test_results=bundle.stress_test_results,
            is_calculating=False,
            last_calculated_at=bundle.calculated_at,
        )

    @property
    def has_results(self) -> bool:
        return self.last_calculated_at is not None


Calculator = Callable[..., RiskBundle]


@dataclass
class _Request:
    performance: Optional[PerformanceInput]
    factor_data: Optional[FactorInput]


class RiskSession:
    """
    Owns a RiskContext and serializes recalculation.

    A ``recalculate`` call that arrives while another run is in flight does
    not start a concurrent run: its inputs are parked and the in-flight caller
    runs exactly one follow-up with the most recent parked inputs. Several
    triggers during one run therefore collapse into a single follow-up.
    """

    def __init__(
        self,
        settings: Optional[RiskEngineSettings] = None,
        scenarios: Optional[Sequence[StressScenario]] = None,
        calculator: Calculator = calculate_risk_metrics,
    ):
        self.settings = settings or RiskEngineSettings()
        self.scenarios = scenarios
        self._calculator = calculator
        self._lock = threading.Lock()
        self._context = RiskContext()
        self._pending: Optional[_Request] = None
        self._runs = 0

    @property
    def context(self) -> RiskContext:
        with self._lock:
            return self._context

    @property
    def runs(self) -> int:
        """Number of completed calculations."""
        return self._runs

    def needs_calculation(self, has_inputs: bool) -> bool:
        """True when inputs are available but nothing has been computed yet."""
        ctx = self.context
        return has_inputs and not ctx.has_results and not ctx.is_calculating

    def recalculate(
        self,
        performance: Optional[PerformanceInput] = None,
        factor_data: Optional[FactorInput] = None,
    ) -> Optional[RiskContext]:
        """
        Run a calculation, or coalesce into the one already running.

        Returns the new context when this call performed the work, None when
        the request was handed to an in-flight run.
        """
        request = _Request(performance=performance, factor_data=factor_data)
        with self._lock:
            if self._context.is_calculating:
                LOGGER.debug("Calculation in flight; coalescing trigger.")
                self._pending = request
                return None
            self._context = replace(self._context, is_calculating=True)

        while True:
            try:
                bundle = self._calculator(
                    request.performance,
                    request.factor_data,
                    settings=self.settings,
                    scenarios=self.scenarios,
                )
            except Exception:
                with self._lock:
                    self._context = replace(self._context, is_calculating=False)
                    self._pending = None
                raise

            with self._lock:
                self._runs += 1
                if self._pending is None:
                    self._context = RiskContext.from_bundle(bundle)
                    LOGGER.info("Risk context updated at %s.", bundle.calculated_at)
                    return self._context
                self._context = replace(
                    RiskContext.from_bundle(bundle), is_calculating=True
                )
                request, self._pending = self._pending, None
            LOGGER.info("Running coalesced follow-up calculation.")

    def clear(self) -> None:
        with self._lock:
            if self._context.is_calculating:
                raise RuntimeError("cannot clear while a calculation is running.")
            self._context = RiskContext()
