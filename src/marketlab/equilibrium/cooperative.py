"""Cooperative (joint profit maximizing) benchmark.

The benchmark is the allocation a cartel of all firms would choose. It is
reported for both competition modes, with the implied per-firm prices.
"""

import itertools
import math
from typing import List, Optional

import numpy as np
from scipy.optimize import brentq

from ..errors import NotCalculableError, SingularSystemError
from ..games.demand import inverse_demand, is_homogeneous
from ..logging import get_logger
from ..models.demand import CESDemand, LogitDemand
from ..models.market import MarketConfig
from ..models.results import EquilibriumResult, RealizedParameters
from ..randomizer import expected_parameters
from ._common import (
    MarketInputs,
    build_result,
    not_calculable,
    same_value,
    solve_linear_system,
)

logger = get_logger(__name__)

# Linear markets up to this size are solved by searching every producing subset.
MAX_ENUMERATED_FIRMS = 12


def cooperative_equilibrium(
    config: MarketConfig, realized: Optional[RealizedParameters] = None
) -> EquilibriumResult:
    """Compute the joint-profit-maximizing outcome of the configured market.

    Args:
        config: Market configuration
        realized: Parameters to solve at; defaults to the expected values

    Returns:
        EquilibriumResult, with ``calculable=False`` where no solution is available
    """
    realized = realized or expected_parameters(config)
    inputs = MarketInputs.from_realized(config.firm_ids, realized)
    try:
        quantities = _cooperative_quantities(inputs)
    except NotCalculableError as e:
        result = not_calculable(config.mode, inputs.firm_ids, str(e))
        logger.info(f"Cooperative benchmark not calculable: {result.message}")
        return result

    total = sum(quantities)
    prices = [
        inverse_demand(demand, q, total - q, inputs.gamma).value
        for demand, q in zip(inputs.demands, quantities)
    ]
    return build_result(config.mode, inputs, quantities, prices)


def _cooperative_quantities(inputs: MarketInputs) -> List[float]:
    if inputs.all_linear:
        if inputs.shared_demand and is_homogeneous(inputs.gamma):
            return _merit_order(inputs)
        return _active_set(inputs)

    if not inputs.shared_demand:
        raise NotCalculableError(
            "Non-linear demand with per-firm demand functions has no closed form"
        )
    if inputs.has_quadratic_costs:
        raise NotCalculableError("Non-linear cooperative benchmark requires linear costs")
    return _marginal_revenue_pricing(inputs)


def _active_set(inputs: MarketInputs) -> List[float]:
    """Quadratic program for linear demand.

    Joint profit is (a - c) q - q H q / 2 with H_ii = 2(b_i + d_i) and
    H_ij = gamma * (b_i + b_j). H is only positive definite when the slopes
    are close enough; otherwise stationary points can be saddles, so small
    markets compare the stationary point of every subset of producing
    firms and keep the most profitable one.
    """
    n = inputs.n
    a = np.array([d.a for d in inputs.demands])
    b = np.array([d.b for d in inputs.demands])
    c = np.array(inputs.linear_costs)
    d = np.array(inputs.quadratic_costs)

    hessian = inputs.gamma * (b[:, None] + b[None, :])
    np.fill_diagonal(hessian, 2 * (b + d))
    rhs = a - c

    if n <= MAX_ENUMERATED_FIRMS:
        return _best_subset(hessian, rhs)
    if np.linalg.eigvalsh(hessian).min() <= 0:
        raise NotCalculableError(
            f"Joint profit is not concave for these demand slopes and {n} firms "
            f"exceed the {MAX_ENUMERATED_FIRMS}-firm exhaustive search"
        )

    active = list(range(n))
    quantities = np.zeros(n)
    while active:
        sub = solve_linear_system(hessian[np.ix_(active, active)], rhs[active])
        worst = int(np.argmin(sub))
        if sub[worst] >= 0:
            quantities[active] = sub
            break
        active.pop(worst)
    return [float(q) for q in quantities]


def _best_subset(hessian: np.ndarray, rhs: np.ndarray) -> List[float]:
    n = len(rhs)
    best = np.zeros(n)
    best_profit = 0.0
    for size in range(1, n + 1):
        for subset in itertools.combinations(range(n), size):
            active = list(subset)
            try:
                sub = solve_linear_system(hessian[np.ix_(active, active)], rhs[active])
            except SingularSystemError:
                continue
            if np.any(sub < 0):
                continue
            # At a stationary point joint profit is rhs . q / 2.
            profit = float(rhs[active] @ sub) / 2
            if profit > best_profit:
                best_profit = profit
                best = np.zeros(n)
                best[active] = sub
    return [float(q) for q in best]


def _merit_order(inputs: MarketInputs) -> List[float]:
    """Multiplant monopoly on one homogeneous linear demand.

    Marginal revenue a - 2bQ equals the shadow price lambda, and every
    producing plant runs where its marginal cost c_i + 2 d_i q_i equals
    lambda. Plants with no quadratic cost cap lambda at their linear cost;
    the cheapest of them share whatever output is left at that cap.
    """
    demand = inputs.demands[0]
    c = inputs.linear_costs
    d = inputs.quadratic_costs
    n = inputs.n

    def supply(lam: float) -> List[float]:
        return [
            max(0.0, (lam - c[i]) / (2 * d[i])) if d[i] > 0 else 0.0 for i in range(n)
        ]

    def output(lam: float) -> float:
        return (demand.a - lam) / (2 * demand.b)

    def excess(lam: float) -> float:
        return sum(supply(lam)) - output(lam)

    lowest = min(c)
    if output(lowest) <= 0:
        return [0.0] * n

    flat = [c[i] for i in range(n) if d[i] == 0]
    cap = min(flat) if flat else demand.a
    if flat and excess(cap) <= 0:
        quantities = supply(cap)
        residual = output(cap) - sum(quantities)
        sharers = [i for i in range(n) if d[i] == 0 and same_value(c[i], cap)]
        for i in sharers:
            quantities[i] = residual / len(sharers)
        return quantities

    lam = float(brentq(excess, lowest, cap, xtol=1e-12))
    return supply(lam)


def _marginal_revenue_pricing(inputs: MarketInputs) -> List[float]:
    """Closed-form joint optimum for CES and logit demand with linear costs.

    Total effective output X solves MR(X) = c. With homogeneous products the
    cheapest firms share X; otherwise firms must be symmetric and each
    produces X / (1 + gamma * (n - 1)).
    """
    demand = inputs.demands[0]
    costs = inputs.linear_costs
    n = inputs.n
    homogeneous = is_homogeneous(inputs.gamma)
    if not homogeneous and not inputs.symmetric_costs:
        raise NotCalculableError(
            "Differentiated non-linear demand is only solved for identical costs"
        )

    cost = min(costs)
    if isinstance(demand, CESDemand):
        if demand.sigma <= 1 or cost <= 0:
            raise NotCalculableError(
                "CES joint optimum requires elasticity above one and positive cost"
            )
        total = (demand.A * (1 - 1 / demand.sigma) / cost) ** demand.sigma
    elif isinstance(demand, LogitDemand):
        total = math.exp((demand.a - demand.b - cost) / demand.b)
    else:
        raise NotCalculableError(f"No cooperative closed form for {demand.family} demand")

    if homogeneous:
        sharers = [i for i, c in enumerate(costs) if same_value(c, cost)]
        return [total / len(sharers) if i in sharers else 0.0 for i in range(n)]
    return [total / (1 + inputs.gamma * (n - 1))] * n
