"""Demand model and round resolution."""

from .demand import (
    EPSILON,
    PRICE_TIE_TOLERANCE,
    DemandEvaluation,
    allocate_quantities,
    allocated_quantity,
    direct_demand,
    direct_demand_slope,
    inverse_demand,
    inverse_demand_slope,
    signed_direct_demand,
)
from .market import resolve_round, summarize_rounds

__all__ = [
    "EPSILON",
    "PRICE_TIE_TOLERANCE",
    "DemandEvaluation",
    "allocate_quantities",
    "allocated_quantity",
    "direct_demand",
    "direct_demand_slope",
    "inverse_demand",
    "inverse_demand_slope",
    "signed_direct_demand",
    "resolve_round",
    "summarize_rounds",
]
