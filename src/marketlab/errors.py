"""Exception types for the market experiment engine.

Configuration problems are raised synchronously before a run starts.
Benchmark problems never abort an experiment: the solver converts them into
a non-calculable equilibrium. Decision failures are round-level errors that
the orchestrator reports on its event stream.
"""

from typing import Optional


class MarketLabError(Exception):
    """Base class for all engine errors."""

    pass


class ConfigurationError(MarketLabError, ValueError):
    """Raised when a market configuration or parameter spec is invalid."""

    pass


class NotCalculableError(MarketLabError):
    """Raised inside the solver when a benchmark has no solution for a market."""

    pass


class SingularSystemError(NotCalculableError):
    """Raised when an equilibrium linear system has no unique solution."""

    pass


class ExperimentStateError(MarketLabError):
    """Raised when an orchestrator control operation is not allowed in the current state."""

    pass


class DecisionProviderError(MarketLabError):
    """Raised when a firm's decision provider fails or returns an unusable value."""

    def __init__(
        self, firm_id: int, round_number: int, message: str
    ) -> None:
        self.firm_id = firm_id
        self.round_number = round_number
        super().__init__(f"Firm {firm_id}, round {round_number}: {message}")


class DecisionTimeoutError(DecisionProviderError):
    """Raised when a firm's decision provider exceeds its timeout."""

    def __init__(
        self, firm_id: int, round_number: int, timeout: Optional[float]
    ) -> None:
        self.timeout = timeout
        if timeout is None:
            message = "no decision before timeout"
        else:
            message = f"no decision within {timeout:.1f}s"
        super().__init__(firm_id, round_number, message)
