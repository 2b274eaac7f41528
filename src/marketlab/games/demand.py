"""Demand model for Cournot and Bertrand markets.

Every firm faces the effective demand Q = own + gamma * sum(others). Under
Cournot the inverse demand turns Q into the firm's price; under Bertrand the
direct demand D(p) gives the effective quantity at the firm's price, and
inverting q_i + gamma * sum_{j != i} q_j = D_i(p_i) allocates quantities.

Families (inverse / direct):
    linear:      P = a - b*Q          D = (a - p) / b
    ces:         P = A * Q^(-1/sigma) D = (p / A)^(-sigma)
    logit:       P = a - b*ln(Q)      D = exp((a - p) / b)
    exponential: P = A * exp(-b*Q)    D = ln(A / p) / b

Arguments of ln and negative powers are floored at EPSILON. Floored
evaluations are reported through DemandEvaluation.floored instead of
raising, and every price and quantity returned is clamped at zero.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..models.demand import (
    CESDemand,
    Demand,
    ExponentialDemand,
    LinearDemand,
    LogitDemand,
)

EPSILON = 1e-9

# Prices within this distance of the lowest price tie under homogeneous Bertrand.
PRICE_TIE_TOLERANCE = 1e-6

# gamma at or above this value is treated as perfectly homogeneous products.
HOMOGENEOUS_GAMMA = 1.0 - 1e-9

# exp() overflows just above 709.
_MAX_EXPONENT = 700.0


@dataclass(frozen=True)
class DemandEvaluation:
    """A price or quantity from the demand model.

    ``floored`` is True when an argument had to be floored at EPSILON (or an
    exponent capped) to stay inside the function's domain.
    """

    value: float
    floored: bool = False


def is_homogeneous(gamma: float) -> bool:
    return gamma >= HOMOGENEOUS_GAMMA


def effective_quantity(own_quantity: float, others_quantity: float, gamma: float) -> float:
    """Q = own + gamma * sum(others)."""
    return own_quantity + gamma * others_quantity


def inverse_demand_at(demand: Demand, quantity: float) -> DemandEvaluation:
    """Price at effective quantity ``quantity``."""
    if isinstance(demand, LinearDemand):
        return DemandEvaluation(max(0.0, demand.a - demand.b * quantity))
    if isinstance(demand, CESDemand):
        floored = quantity < EPSILON
        q = max(quantity, EPSILON)
        return DemandEvaluation(max(0.0, demand.A * q ** (-1.0 / demand.sigma)), floored)
    if isinstance(demand, LogitDemand):
        floored = quantity < EPSILON
        q = max(quantity, EPSILON)
        return DemandEvaluation(max(0.0, demand.a - demand.b * math.log(q)), floored)
    if isinstance(demand, ExponentialDemand):
        return DemandEvaluation(max(0.0, demand.A * math.exp(-demand.b * quantity)))
    raise TypeError(f"Unsupported demand: {type(demand).__name__}")


def inverse_demand(
    demand: Demand, own_quantity: float, others_quantity: float, gamma: float
) -> DemandEvaluation:
    """Cournot price for a firm given its own quantity and the sum of its rivals'."""
    return inverse_demand_at(
        demand, effective_quantity(own_quantity, others_quantity, gamma)
    )


def inverse_demand_slope(demand: Demand, quantity: float) -> float:
    """dP/dQ at effective quantity ``quantity``."""
    if isinstance(demand, LinearDemand):
        return -demand.b
    if isinstance(demand, CESDemand):
        q = max(quantity, EPSILON)
        return -(demand.A / demand.sigma) * q ** (-1.0 / demand.sigma - 1.0)
    if isinstance(demand, LogitDemand):
        return -demand.b / max(quantity, EPSILON)
    if isinstance(demand, ExponentialDemand):
        return -demand.b * demand.A * math.exp(-demand.b * quantity)
    raise TypeError(f"Unsupported demand: {type(demand).__name__}")


def signed_direct_demand(demand: Demand, price: float) -> DemandEvaluation:
    """D(p) without the clamp at zero.

    Linear and exponential demand go negative above their choke price; the
    Bertrand inversion and the equilibrium first-order conditions need the
    signed value.
    """
    if isinstance(demand, LinearDemand):
        return DemandEvaluation((demand.a - price) / demand.b)
    if isinstance(demand, CESDemand):
        floored = price < EPSILON
        p = max(price, EPSILON)
        return DemandEvaluation((p / demand.A) ** (-demand.sigma), floored)
    if isinstance(demand, LogitDemand):
        exponent = (demand.a - price) / demand.b
        floored = exponent > _MAX_EXPONENT
        return DemandEvaluation(math.exp(min(exponent, _MAX_EXPONENT)), floored)
    if isinstance(demand, ExponentialDemand):
        floored = price < EPSILON
        p = max(price, EPSILON)
        return DemandEvaluation(math.log(demand.A / p) / demand.b, floored)
    raise TypeError(f"Unsupported demand: {type(demand).__name__}")


def direct_demand(demand: Demand, price: float) -> DemandEvaluation:
    """Effective quantity demanded at ``price``, clamped at zero."""
    raw = signed_direct_demand(demand, price)
    return DemandEvaluation(max(0.0, raw.value), raw.floored)


def direct_demand_slope(demand: Demand, price: float) -> float:
    """dD/dp of the signed direct demand at ``price``."""
    if isinstance(demand, LinearDemand):
        return -1.0 / demand.b
    if isinstance(demand, CESDemand):
        p = max(price, EPSILON)
        return -demand.sigma * (p / demand.A) ** (-demand.sigma) / p
    if isinstance(demand, LogitDemand):
        return -signed_direct_demand(demand, price).value / demand.b
    if isinstance(demand, ExponentialDemand):
        return -1.0 / (demand.b * max(price, EPSILON))
    raise TypeError(f"Unsupported demand: {type(demand).__name__}")


def _homogeneous_share(
    demand: Demand, own_price: float, prices: Sequence[float]
) -> DemandEvaluation:
    lowest = min(prices)
    if own_price - lowest > PRICE_TIE_TOLERANCE:
        return DemandEvaluation(0.0)
    tied = sum(1 for p in prices if p - lowest <= PRICE_TIE_TOLERANCE)
    total = direct_demand(demand, lowest)
    return DemandEvaluation(total.value / tied, total.floored)


def allocated_quantity(
    demand: Demand, own_price: float, rival_prices: Sequence[float], gamma: float
) -> DemandEvaluation:
    """Bertrand quantity sold by one firm when all firms share ``demand``.

    For gamma < 1 this inverts the symmetric demand system exactly:

        q_i = ((1 + (n-2)g) * D(p_i) - g * sum_{j != i} D(p_j))
              / ((1 - g) * (1 + (n-1)g))

    which for linear demand is the Singh-Vives direct demand
    (a(1-g) - (1+(n-2)g) p_i + g * sum_{j != i} p_j) / (b(1-g)(1+(n-1)g)).

    For homogeneous products the lowest-priced firms split D(p_min) equally
    and every other firm sells nothing.
    """
    if is_homogeneous(gamma):
        return _homogeneous_share(demand, own_price, [own_price, *rival_prices])

    n = 1 + len(rival_prices)
    own = signed_direct_demand(demand, own_price)
    rivals = [signed_direct_demand(demand, p) for p in rival_prices]
    numerator = (1 + (n - 2) * gamma) * own.value - gamma * sum(r.value for r in rivals)
    denominator = (1 - gamma) * (1 + (n - 1) * gamma)
    floored = own.floored or any(r.floored for r in rivals)
    return DemandEvaluation(max(0.0, numerator / denominator), floored)


def allocate_quantities(
    demands: Sequence[Demand], prices: Sequence[float], gamma: float
) -> List[DemandEvaluation]:
    """Bertrand quantities for every firm, each facing its own demand.

    With a shared demand this is ``allocated_quantity`` for each firm; with
    per-firm demands the system q_i + gamma * sum_{j != i} q_j = D_i(p_i) is
    solved directly.
    """
    if len(demands) != len(prices):
        raise ValueError(
            f"Demands length ({len(demands)}) must match prices length ({len(prices)})"
        )

    if is_homogeneous(gamma):
        return [
            _homogeneous_share(demand, price, prices)
            for demand, price in zip(demands, prices)
        ]

    if all(d == demands[0] for d in demands):
        return [
            allocated_quantity(
                demands[i], prices[i], [p for j, p in enumerate(prices) if j != i], gamma
            )
            for i in range(len(prices))
        ]

    n = len(prices)
    raw = [signed_direct_demand(d, p) for d, p in zip(demands, prices)]
    system = np.full((n, n), gamma) + np.eye(n) * (1.0 - gamma)
    solution = np.linalg.solve(system, np.array([r.value for r in raw]))
    return [
        DemandEvaluation(max(0.0, float(q)), r.floored) for q, r in zip(solution, raw)
    ]
