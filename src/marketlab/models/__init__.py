"""Data model for market experiments."""

from .demand import (
    CESDemand,
    CESDemandSpec,
    Demand,
    DemandFunctionSpec,
    ExponentialDemand,
    ExponentialDemandSpec,
    LinearDemand,
    LinearDemandSpec,
    LogitDemand,
    LogitDemandSpec,
)
from .market import (
    CommunicationSettings,
    CompetitionMode,
    FirmSpec,
    InformationDisclosure,
    MarketConfig,
    VariationPolicy,
    symmetric_firms,
)
from .parameters import (
    FixedParameter,
    LognormalParameter,
    NormalParameter,
    ParameterSpec,
    UniformParameter,
    fixed,
)
from .results import (
    CommunicationMessage,
    EquilibriumReport,
    EquilibriumResult,
    ExperimentSummary,
    FirmCosts,
    FirmEquilibrium,
    FirmRoundResult,
    FirmSummary,
    LimitPricingAnalysis,
    RealizedParameters,
    Regime,
    ReplicationResult,
    ReplicationSummary,
    RoundResult,
)

__all__ = [
    "CESDemand",
    "CESDemandSpec",
    "Demand",
    "DemandFunctionSpec",
    "ExponentialDemand",
    "ExponentialDemandSpec",
    "LinearDemand",
    "LinearDemandSpec",
    "LogitDemand",
    "LogitDemandSpec",
    "CommunicationSettings",
    "CompetitionMode",
    "FirmSpec",
    "InformationDisclosure",
    "MarketConfig",
    "VariationPolicy",
    "symmetric_firms",
    "FixedParameter",
    "LognormalParameter",
    "NormalParameter",
    "ParameterSpec",
    "UniformParameter",
    "fixed",
    "CommunicationMessage",
    "EquilibriumReport",
    "EquilibriumResult",
    "ExperimentSummary",
    "FirmCosts",
    "FirmEquilibrium",
    "FirmRoundResult",
    "FirmSummary",
    "LimitPricingAnalysis",
    "RealizedParameters",
    "Regime",
    "ReplicationResult",
    "ReplicationSummary",
    "RoundResult",
]
