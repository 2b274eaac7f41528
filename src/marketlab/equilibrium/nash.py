"""Nash equilibrium benchmarks for Cournot and Bertrand markets.

Linear demand is solved exactly through the first-order conditions, which
form a linear system in quantities (Cournot) or prices (Bertrand). For the
non-linear families only symmetric markets are solved, by reducing the
first-order conditions to one scalar equation for scipy's brentq.
"""

from typing import List, Optional, Sequence

import numpy as np
from scipy.optimize import brentq

from ..errors import ConfigurationError, NotCalculableError
from ..games.demand import (
    EPSILON,
    allocate_quantities,
    direct_demand,
    direct_demand_slope,
    inverse_demand,
    inverse_demand_at,
    inverse_demand_slope,
    is_homogeneous,
    signed_direct_demand,
)
from ..logging import get_logger
from ..models.demand import LinearDemand
from ..models.market import CompetitionMode, MarketConfig
from ..models.results import EquilibriumResult, RealizedParameters
from ..randomizer import expected_parameters
from ._common import (
    MarketInputs,
    build_result,
    find_bracket,
    not_calculable,
    same_value,
    solve_linear_system,
)

logger = get_logger(__name__)


def nash_equilibrium(
    config: MarketConfig, realized: Optional[RealizedParameters] = None
) -> EquilibriumResult:
    """Compute the Nash equilibrium of the configured market.

    Args:
        config: Market configuration
        realized: Parameters to solve at; defaults to the expected values

    Returns:
        EquilibriumResult, with ``calculable=False`` where no solution is available
    """
    realized = realized or expected_parameters(config)
    inputs = MarketInputs.from_realized(config.firm_ids, realized)
    try:
        if config.mode == CompetitionMode.COURNOT:
            result = _cournot_nash(inputs)
        else:
            result = _bertrand_nash(inputs)
    except NotCalculableError as e:
        result = not_calculable(config.mode, inputs.firm_ids, str(e))

    if not result.calculable:
        logger.info(f"Nash benchmark not calculable: {result.message}")
    return result


def _cournot_nash(inputs: MarketInputs) -> EquilibriumResult:
    mode = CompetitionMode.COURNOT
    if not inputs.all_linear:
        return _symmetric_cournot_nash(inputs)

    n = inputs.n
    a = np.array([d.a for d in inputs.demands])
    b = np.array([d.b for d in inputs.demands])
    c = np.array(inputs.linear_costs)
    d = np.array(inputs.quadratic_costs)

    # Firm i: (2b_i + 2d_i) q_i + gamma * b_i * sum_{j != i} q_j = a_i - c_i
    matrix = np.outer(inputs.gamma * b, np.ones(n))
    np.fill_diagonal(matrix, 2 * (b + d))
    raw = solve_linear_system(matrix, a - c)

    if np.all(raw <= 0):
        raise NotCalculableError("No firm produces a positive quantity at these costs")

    clamped = [firm_id for firm_id, q in zip(inputs.firm_ids, raw) if q < 0]
    quantities = [max(0.0, float(q)) for q in raw]
    message = ""
    if clamped:
        message = (
            f"Firms {clamped} have negative solutions clamped to zero; "
            "the point is an approximation"
        )
    return build_result(
        mode,
        inputs,
        quantities,
        _cournot_prices(inputs, quantities),
        message=message,
        clamped_firms=clamped,
    )


def _cournot_prices(inputs: MarketInputs, quantities: Sequence[float]) -> List[float]:
    total = sum(quantities)
    return [
        inverse_demand(demand, q, total - q, inputs.gamma).value
        for demand, q in zip(inputs.demands, quantities)
    ]


def _bertrand_nash(inputs: MarketInputs) -> EquilibriumResult:
    mode = CompetitionMode.BERTRAND
    if not inputs.all_linear:
        _require_symmetric(inputs)
    if is_homogeneous(inputs.gamma):
        return _homogeneous_bertrand_nash(inputs)
    if not inputs.all_linear:
        return _symmetric_bertrand_nash(inputs)

    n = inputs.n
    gamma = inputs.gamma
    a = np.array([d.a for d in inputs.demands])
    b = np.array([d.b for d in inputs.demands])
    c = np.array(inputs.linear_costs)
    d = np.array(inputs.quadratic_costs)

    # q = W (a - p) / b, so dq_i/dp_i = -W_ii / b_i = -s_i
    inverse = np.linalg.inv(np.full((n, n), gamma) + np.eye(n) * (1.0 - gamma))
    s = np.diag(inverse) / b
    weight = 1 + 2 * d * s

    matrix = weight[:, None] * inverse / b[None, :] + np.diag(s)
    rhs = weight * (inverse @ (a / b)) + s * c
    raw_prices = solve_linear_system(matrix, rhs)
    raw_quantities = inverse @ ((a - raw_prices) / b)

    clamped = [
        firm_id
        for firm_id, p, q in zip(inputs.firm_ids, raw_prices, raw_quantities)
        if p < 0 or q < 0
    ]
    prices = [max(0.0, float(p)) for p in raw_prices]
    quantities = [
        e.value for e in allocate_quantities(inputs.demands, prices, gamma)
    ]
    message = ""
    if clamped:
        message = (
            f"Firms {clamped} have negative solutions clamped to zero; "
            "the point is an approximation"
        )
    return build_result(
        mode, inputs, quantities, prices, message=message, clamped_firms=clamped
    )


def _homogeneous_bertrand_nash(inputs: MarketInputs) -> EquilibriumResult:
    """Homogeneous products: the cheapest firms win the market.

    The lowest-cost firm(s) price at the second-lowest cost, or at the
    monopoly price if that is lower, and split demand. Every other firm
    prices at its own cost and sells nothing.
    """
    mode = CompetitionMode.BERTRAND
    if inputs.has_quadratic_costs:
        raise NotCalculableError("Homogeneous Bertrand equilibrium requires linear costs")

    costs = inputs.linear_costs
    lowest = min(costs)
    winners = [i for i, c in enumerate(costs) if same_value(c, lowest)]
    others = [c for i, c in enumerate(costs) if i not in winners]
    price = min(others) if others else lowest

    leader = inputs.demands[winners[0]]
    if isinstance(leader, LinearDemand):
        monopoly_price = (leader.a + lowest) / 2
        price = max(lowest, min(price, monopoly_price))

    prices = list(costs)
    quantities = [0.0] * inputs.n
    for i in winners:
        prices[i] = price
        quantities[i] = direct_demand(inputs.demands[i], price).value / len(winners)
    return build_result(mode, inputs, quantities, prices)


def _require_symmetric(inputs: MarketInputs) -> None:
    if not inputs.shared_demand:
        raise NotCalculableError(
            "Non-linear demand with per-firm demand functions has no closed form"
        )
    if not inputs.symmetric_costs:
        raise NotCalculableError(
            "Non-linear demand is only solved for firms with identical costs"
        )


def _symmetric_cournot_nash(inputs: MarketInputs) -> EquilibriumResult:
    mode = CompetitionMode.COURNOT
    _require_symmetric(inputs)

    demand = inputs.demands[0]
    c = inputs.costs[0].linear_cost
    d = inputs.costs[0].quadratic_cost
    k = 1 + inputs.gamma * (inputs.n - 1)

    def foc(q: float) -> float:
        total = k * q
        return (
            inverse_demand_at(demand, total).value
            + q * inverse_demand_slope(demand, total)
            - c
            - 2 * d * q
        )

    bracket = find_bracket(foc, EPSILON, 1.0)
    if bracket is None:
        raise NotCalculableError("First-order condition has no root with positive output")

    q = float(brentq(foc, bracket[0], bracket[1], xtol=1e-12))
    quantities = [q] * inputs.n
    return build_result(mode, inputs, quantities, _cournot_prices(inputs, quantities))


def _symmetric_bertrand_nash(inputs: MarketInputs) -> EquilibriumResult:
    mode = CompetitionMode.BERTRAND
    demand = inputs.demands[0]
    n = inputs.n
    gamma = inputs.gamma
    c = inputs.costs[0].linear_cost
    d = inputs.costs[0].quadratic_cost
    k = 1 + gamma * (n - 1)
    # Diagonal of the inverse substitution matrix.
    own_weight = (1 + (n - 2) * gamma) / ((1 - gamma) * k)

    def foc(p: float) -> float:
        q = signed_direct_demand(demand, p).value / k
        return q + (p - c - 2 * d * q) * own_weight * direct_demand_slope(demand, p)

    bracket = find_bracket(foc, max(c, EPSILON), max(2 * c, 1.0))
    if bracket is None:
        raise NotCalculableError("First-order condition has no root above cost")

    p = float(brentq(foc, bracket[0], bracket[1], xtol=1e-12))
    prices = [p] * n
    quantities = [e.value for e in allocate_quantities(inputs.demands, prices, gamma)]
    return build_result(mode, inputs, quantities, prices)


def cournot_best_response(
    config: MarketConfig,
    firm_id: int,
    rival_quantities: Sequence[float],
    realized: Optional[RealizedParameters] = None,
) -> float:
    """Profit-maximizing quantity for one firm given its rivals' quantities.

    With linear demand a_i - b_i * Q and costs c_i*q + d_i*q^2:

        q_i = (a_i - c_i - gamma * b_i * sum(rivals)) / (2 * (b_i + d_i))

    Raises:
        ConfigurationError: If the firm does not face linear demand
    """
    realized = realized or expected_parameters(config)
    demand = realized.demand_for(firm_id)
    if not isinstance(demand, LinearDemand):
        raise ConfigurationError("Best response is only available for linear demand")
    costs = realized.costs_for(firm_id)
    response = (
        demand.a - costs.linear_cost - realized.gamma * demand.b * sum(rival_quantities)
    ) / (2 * (demand.b + costs.quadratic_cost))
    return max(0.0, response)
