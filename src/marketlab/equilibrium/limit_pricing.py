"""Limit-pricing classification for asymmetric differentiated duopolies.

With linear demand the competitive margin of firm i is alpha_i = a_i - c_i.
The asymmetry index (alpha_strong - alpha_weak) / alpha_weak is compared
with two thresholds that depend only on gamma:

    low  = 1 - gamma / (2 - gamma^2)
    high = 1 - gamma / 2

At or above ``high`` the strong firm prices as an unconstrained monopolist;
between the two it keeps the weak firm out by limit pricing; below ``low``
both firms compete. When neither firm has a positive margin the market is
reported as competitive with an undefined (NaN) index.
"""

import math
from typing import Optional, Tuple

from ..games.demand import is_homogeneous
from ..models.demand import LinearDemand
from ..models.market import MarketConfig
from ..models.results import LimitPricingAnalysis, RealizedParameters, Regime
from ..randomizer import expected_parameters


def limit_pricing_thresholds(gamma: float) -> Tuple[float, float]:
    """Return the (low, high) asymmetry thresholds for ``gamma``."""
    return 1 - gamma / (2 - gamma**2), 1 - gamma / 2


def analyze_limit_pricing(
    config: MarketConfig, realized: Optional[RealizedParameters] = None
) -> Optional[LimitPricingAnalysis]:
    """Classify a two-firm differentiated linear market.

    Returns:
        The analysis, or None unless the market has exactly two firms,
        gamma < 1 and linear demand
    """
    if config.num_firms != 2:
        return None
    realized = realized or expected_parameters(config)
    if is_homogeneous(realized.gamma):
        return None
    demands = [realized.demand_for(firm_id) for firm_id in config.firm_ids]
    if not all(isinstance(d, LinearDemand) for d in demands):
        return None

    margins = {
        firm_id: demand.a - realized.costs_for(firm_id).linear_cost
        for firm_id, demand in zip(config.firm_ids, demands)
    }
    first, second = config.firm_ids
    strong, weak = (first, second) if margins[first] >= margins[second] else (second, first)

    low, high = limit_pricing_thresholds(realized.gamma)
    if margins[strong] <= 0:
        return LimitPricingAnalysis(
            asymmetry_index=math.nan,
            threshold_low=low,
            threshold_high=high,
            regime=Regime.COMPETITIVE,
            message="Neither firm covers its cost; no firm is active",
            dominant_firm=None,
        )
    if margins[weak] <= 0:
        index = math.inf
    else:
        index = (margins[strong] - margins[weak]) / margins[weak]

    if index >= high:
        regime = Regime.MONOPOLY
        message = f"Firm {strong} can price as a monopolist; firm {weak} stays out"
    elif index >= low:
        regime = Regime.LIMIT_PRICING
        message = f"Firm {strong} limit-prices to keep firm {weak} out of the market"
    else:
        regime = Regime.COMPETITIVE
        message = "Both firms are active in a competitive equilibrium"

    return LimitPricingAnalysis(
        asymmetry_index=index,
        threshold_low=low,
        threshold_high=high,
        regime=regime,
        message=message,
        dominant_firm=None if regime == Regime.COMPETITIVE else strong,
    )
