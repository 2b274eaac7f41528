"""Shared helpers for the equilibrium benchmarks."""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import SingularSystemError
from ..models.demand import Demand, LinearDemand
from ..models.market import CompetitionMode
from ..models.results import (
    EquilibriumResult,
    FirmCosts,
    FirmEquilibrium,
    RealizedParameters,
)

# Condition numbers above this are treated as singular.
MAX_CONDITION_NUMBER = 1e12

# Relative tolerance for "same cost" comparisons between firms.
COST_TOLERANCE = 1e-9


@dataclass(frozen=True)
class MarketInputs:
    """Per-firm demands and costs at one set of realized parameters."""

    firm_ids: List[int]
    demands: List[Demand]
    costs: List[FirmCosts]
    gamma: float
    shared_demand: bool

    @classmethod
    def from_realized(
        cls, firm_ids: Sequence[int], realized: RealizedParameters
    ) -> "MarketInputs":
        return cls(
            firm_ids=list(firm_ids),
            demands=[realized.demand_for(firm_id) for firm_id in firm_ids],
            costs=[realized.costs_for(firm_id) for firm_id in firm_ids],
            gamma=realized.gamma,
            shared_demand=not realized.firm_demands,
        )

    @property
    def n(self) -> int:
        return len(self.firm_ids)

    @property
    def all_linear(self) -> bool:
        return all(isinstance(d, LinearDemand) for d in self.demands)

    @property
    def linear_costs(self) -> List[float]:
        return [c.linear_cost for c in self.costs]

    @property
    def quadratic_costs(self) -> List[float]:
        return [c.quadratic_cost for c in self.costs]

    @property
    def has_quadratic_costs(self) -> bool:
        return any(d > 0 for d in self.quadratic_costs)

    @property
    def symmetric_costs(self) -> bool:
        first = self.costs[0]
        return all(
            same_value(c.linear_cost, first.linear_cost)
            and same_value(c.quadratic_cost, first.quadratic_cost)
            for c in self.costs
        )


def same_value(x: float, y: float) -> bool:
    return abs(x - y) <= COST_TOLERANCE * max(1.0, abs(x), abs(y))


def solve_linear_system(matrix: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve ``matrix @ x = rhs``.

    Raises:
        SingularSystemError: If the matrix is singular or ill-conditioned
    """
    if np.linalg.cond(matrix) > MAX_CONDITION_NUMBER:
        raise SingularSystemError("Equilibrium system is singular")
    try:
        solution = np.linalg.solve(matrix, rhs)
    except np.linalg.LinAlgError as e:
        raise SingularSystemError(f"Equilibrium system is singular: {e}")
    if not np.all(np.isfinite(solution)):
        raise SingularSystemError("Equilibrium system has no finite solution")
    return solution


def find_bracket(
    f: Callable[[float], float],
    lo: float,
    hi: float,
    max_expansions: int = 100,
) -> Optional[Tuple[float, float]]:
    """Widen ``[lo, hi]`` upwards until ``f`` changes sign.

    ``f(lo)`` must be positive; returns None when no sign change is found.
    """
    if not f(lo) > 0:
        return None
    for _ in range(max_expansions):
        value = f(hi)
        if not math.isfinite(value):
            return None
        if value < 0:
            return lo, hi
        lo, hi = hi, hi * 2.0
    return None


def build_result(
    mode: CompetitionMode,
    inputs: MarketInputs,
    quantities: Sequence[float],
    prices: Sequence[float],
    message: str = "",
    clamped_firms: Sequence[int] = (),
) -> EquilibriumResult:
    """Assemble an equilibrium from per-firm quantities and prices."""
    firms = []
    for firm_id, costs, quantity, price in zip(
        inputs.firm_ids, inputs.costs, quantities, prices
    ):
        firms.append(
            FirmEquilibrium(
                firm_id=firm_id,
                quantity=float(quantity),
                price=float(price),
                profit=float(price * quantity - costs.cost(quantity)),
            )
        )
    return EquilibriumResult(
        mode=mode,
        firms=tuple(firms),
        total_quantity=float(sum(quantities)),
        market_prices=tuple(float(p) for p in prices),
        average_market_price=float(sum(prices) / len(prices)),
        total_profit=sum(f.profit for f in firms),
        calculable=True,
        message=message,
        clamped_firms=tuple(clamped_firms),
    )


def not_calculable(
    mode: CompetitionMode, firm_ids: Sequence[int], message: str
) -> EquilibriumResult:
    """A benchmark with no closed form; every number is NaN."""
    nan = float("nan")
    return EquilibriumResult(
        mode=mode,
        firms=tuple(FirmEquilibrium(firm_id, nan, nan, nan) for firm_id in firm_ids),
        total_quantity=nan,
        market_prices=tuple(nan for _ in firm_ids),
        average_market_price=nan,
        total_profit=nan,
        calculable=False,
        message=message,
    )
