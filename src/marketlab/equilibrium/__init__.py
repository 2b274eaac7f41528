"""Theoretical benchmarks for a market configuration.

All benchmarks are pure functions of the configuration, evaluated at the
expected values of its parameter specs unless realized values are given.
"""

from typing import Optional

from ..models.market import MarketConfig
from ..models.results import EquilibriumReport, RealizedParameters
from ..randomizer import expected_parameters
from .cooperative import cooperative_equilibrium
from .limit_pricing import analyze_limit_pricing, limit_pricing_thresholds
from .nash import cournot_best_response, nash_equilibrium


def compute_equilibria(
    config: MarketConfig, realized: Optional[RealizedParameters] = None
) -> EquilibriumReport:
    """Compute the Nash, cooperative and limit-pricing benchmarks."""
    realized = realized or expected_parameters(config)
    return EquilibriumReport(
        nash=nash_equilibrium(config, realized),
        cooperative=cooperative_equilibrium(config, realized),
        limit_pricing=analyze_limit_pricing(config, realized),
    )


__all__ = [
    "analyze_limit_pricing",
    "compute_equilibria",
    "cooperative_equilibrium",
    "cournot_best_response",
    "limit_pricing_thresholds",
    "nash_equilibrium",
]
