"""Result types produced by the engine.

Round and replication results are append-only records: the orchestrator
creates them once and never mutates them afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .demand import Demand, demand_to_dict
from .market import CompetitionMode


@dataclass(frozen=True)
class FirmCosts:
    """Realized cost coefficients of one firm."""

    firm_id: int
    linear_cost: float
    quadratic_cost: float

    def cost(self, quantity: float) -> float:
        """C(q) = c*q + d*q^2."""
        return self.linear_cost * quantity + self.quadratic_cost * quantity * quantity

    def marginal_cost(self, quantity: float) -> float:
        return self.linear_cost + 2 * self.quadratic_cost * quantity


@dataclass(frozen=True)
class RealizedParameters:
    """Concrete parameter values drawn for a round or replication."""

    demand: Demand
    gamma: float
    firm_costs: Tuple[FirmCosts, ...]
    firm_demands: Tuple[Tuple[int, Demand], ...] = ()

    def demand_for(self, firm_id: int) -> Demand:
        """Demand faced by a firm: its override if present, else the market demand."""
        for override_id, demand in self.firm_demands:
            if override_id == firm_id:
                return demand
        return self.demand

    def costs_for(self, firm_id: int) -> FirmCosts:
        for costs in self.firm_costs:
            if costs.firm_id == firm_id:
                return costs
        raise KeyError(f"No realized costs for firm {firm_id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "demand": demand_to_dict(self.demand),
            "gamma": self.gamma,
            "firm_costs": [
                {
                    "firm_id": c.firm_id,
                    "linear_cost": c.linear_cost,
                    "quadratic_cost": c.quadratic_cost,
                }
                for c in self.firm_costs
            ],
            "firm_demands": {
                str(firm_id): demand_to_dict(demand)
                for firm_id, demand in self.firm_demands
            },
        }


@dataclass(frozen=True)
class CommunicationMessage:
    """One message sent by a firm during the communication phase."""

    firm_id: int
    message: str


@dataclass(frozen=True)
class FirmRoundResult:
    """Outcome for one firm in one round."""

    firm_id: int
    decision: float
    quantity: float
    price: float
    revenue: float
    cost: float
    profit: float
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class RoundResult:
    """Outcome of one round of competition.

    ``market_price`` is the simple average of the per-firm prices, the same
    aggregate reported for equilibria. ``numeric_flags`` lists evaluations
    whose argument had to be floored to stay inside the demand function's
    domain.
    """

    round_number: int
    mode: CompetitionMode
    firms: Tuple[FirmRoundResult, ...]
    market_prices: Tuple[float, ...]
    market_price: float
    total_quantity: float
    realized_parameters: RealizedParameters
    replication_number: int = 1
    numeric_flags: Tuple[str, ...] = ()
    communication: Tuple[CommunicationMessage, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def firm(self, firm_id: int) -> FirmRoundResult:
        for result in self.firms:
            if result.firm_id == firm_id:
                return result
        raise KeyError(f"No result for firm {firm_id}")

    @property
    def decisions(self) -> Dict[int, float]:
        return {f.firm_id: f.decision for f in self.firms}

    @property
    def total_profit(self) -> float:
        return sum(f.profit for f in self.firms)


@dataclass(frozen=True)
class FirmSummary:
    """Aggregates for one firm over a set of rounds."""

    firm_id: int
    total_profit: float
    average_profit: float
    average_quantity: float
    average_price: float


@dataclass(frozen=True)
class ReplicationSummary:
    """Aggregates for a set of rounds."""

    num_rounds: int
    firms: Tuple[FirmSummary, ...]
    average_market_price: float
    average_total_quantity: float
    total_profit: float

    def firm(self, firm_id: int) -> FirmSummary:
        for summary in self.firms:
            if summary.firm_id == firm_id:
                return summary
        raise KeyError(f"No summary for firm {firm_id}")


@dataclass(frozen=True)
class ReplicationResult:
    """One complete play of the game."""

    replication_number: int
    rounds: Tuple[RoundResult, ...]
    summary: ReplicationSummary
    started_at: datetime
    completed_at: datetime


@dataclass(frozen=True)
class FirmEquilibrium:
    """Equilibrium decision and payoff of one firm."""

    firm_id: int
    quantity: float
    price: float
    profit: float


@dataclass(frozen=True)
class EquilibriumResult:
    """A theoretical benchmark.

    When ``calculable`` is False the numeric fields are NaN and ``message``
    explains why no closed form is available. ``clamped_firms`` lists firms
    whose raw solution was negative and was clamped to zero, in which case
    the point is an approximation.
    """

    mode: CompetitionMode
    firms: Tuple[FirmEquilibrium, ...]
    total_quantity: float
    market_prices: Tuple[float, ...]
    average_market_price: float
    total_profit: float
    calculable: bool = True
    message: str = ""
    clamped_firms: Tuple[int, ...] = ()

    def firm(self, firm_id: int) -> FirmEquilibrium:
        for result in self.firms:
            if result.firm_id == firm_id:
                return result
        raise KeyError(f"No equilibrium for firm {firm_id}")

    @property
    def quantities(self) -> List[float]:
        return [f.quantity for f in self.firms]

    @property
    def prices(self) -> List[float]:
        return [f.price for f in self.firms]

    @property
    def profits(self) -> List[float]:
        return [f.profit for f in self.firms]


class Regime(str, Enum):
    """Limit-pricing classification of an asymmetric duopoly."""

    COMPETITIVE = "competitive"
    LIMIT_PRICING = "limit-pricing"
    MONOPOLY = "monopoly"


@dataclass(frozen=True)
class LimitPricingAnalysis:
    """Classification of a differentiated duopoly by cost asymmetry."""

    asymmetry_index: float
    threshold_low: float
    threshold_high: float
    regime: Regime
    message: str
    dominant_firm: Optional[int] = None

    @property
    def is_limit_pricing(self) -> bool:
        return self.regime == Regime.LIMIT_PRICING

    @property
    def is_monopoly(self) -> bool:
        return self.regime == Regime.MONOPOLY


@dataclass(frozen=True)
class EquilibriumReport:
    """All benchmarks for one configuration."""

    nash: EquilibriumResult
    cooperative: EquilibriumResult
    limit_pricing: Optional[LimitPricingAnalysis] = None


@dataclass(frozen=True)
class ExperimentSummary:
    """Aggregates across every round of every replication.

    ``nash_deviation`` maps firm id to |average quantity - Nash quantity|
    and is empty when the Nash benchmark is not calculable.
    """

    num_replications: int
    overall: ReplicationSummary
    nash_deviation: Dict[int, float] = field(default_factory=dict)
