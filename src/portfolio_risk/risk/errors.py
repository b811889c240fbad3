from __future__ import annotations


class RiskComputationError(ValueError):
    """Base class for conditions that make a single risk metric uncomputable."""


class InsufficientDataError(RiskComputationError):
    """Raised when a calculation receives fewer observations than it needs."""


class MissingScenarioOverlapError(RiskComputationError):
    """Raised when a stress scenario window has no overlapping portfolio data."""


def require_observations(n_obs: int, minimum: int, what: str = "returns") -> None:
    if n_obs < minimum:
        msg = f"need at least {minimum} {what}, got {n_obs}."
        raise InsufficientDataError(msg)
