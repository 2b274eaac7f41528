"""Market experiment engine for oligopoly research.

This package draws market parameters, resolves rounds of Cournot and
Bertrand competition under linear, CES, logit and exponential demand,
computes Nash, cooperative and limit-pricing benchmarks, and orchestrates
repeated experiments against external decision providers.
"""

from .adapters import market_config_from_dict, upgrade_legacy_config
from .equilibrium import (
    analyze_limit_pricing,
    compute_equilibria,
    cooperative_equilibrium,
    nash_equilibrium,
)
from .games import resolve_round, summarize_rounds
from .models import CompetitionMode, FirmSpec, MarketConfig, VariationPolicy
from .randomizer import ParameterRandomizer, expected_parameters
from .runners import ExperimentOrchestrator, ExperimentStatus, run_experiment

__all__ = [
    "market_config_from_dict",
    "upgrade_legacy_config",
    "analyze_limit_pricing",
    "compute_equilibria",
    "cooperative_equilibrium",
    "nash_equilibrium",
    "resolve_round",
    "summarize_rounds",
    "CompetitionMode",
    "FirmSpec",
    "MarketConfig",
    "VariationPolicy",
    "ParameterRandomizer",
    "expected_parameters",
    "ExperimentOrchestrator",
    "ExperimentStatus",
    "run_experiment",
]
