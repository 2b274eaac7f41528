"""Request models and response serializers for the HTTP API.

Request bodies are pydantic models that convert into the domain dataclasses
through the configuration adapter. Responses are plain dictionaries; NaN
and infinite values (non-calculable benchmarks) are reported as null.
"""

import math
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .adapters import market_config_from_dict
from .models.market import MarketConfig
from .models.results import (
    EquilibriumReport,
    EquilibriumResult,
    LimitPricingAnalysis,
    RoundResult,
)


class ParameterSpecModel(BaseModel):
    """A fixed value or a distribution to draw from."""

    type: str = Field("fixed", pattern="^(fixed|uniform|normal|lognormal)$")
    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    std_dev: Optional[float] = Field(None, ge=0)


ParameterValue = Union[float, ParameterSpecModel]


class DemandModel(BaseModel):
    """Demand function; which coefficients apply depends on ``type``."""

    type: str = Field("linear", pattern="^(linear|ces|logit|exponential)$")
    intercept: Optional[ParameterValue] = None
    slope: Optional[ParameterValue] = None
    scale: Optional[ParameterValue] = None
    substitution_elasticity: Optional[ParameterValue] = None
    price_coefficient: Optional[ParameterValue] = None
    decay_rate: Optional[ParameterValue] = None


class InformationDisclosureModel(BaseModel):
    reveal_demand_function: bool = True
    reveal_own_costs: bool = True
    reveal_rival_costs: bool = False
    reveal_rival_is_llm: bool = True
    describe_rival_as_human: bool = False


class FirmModel(BaseModel):
    """Configuration for a single firm."""

    firm_id: int = Field(..., ge=1, description="1-based firm id")
    linear_cost: ParameterValue = Field(10.0, description="Linear cost c")
    quadratic_cost: ParameterValue = Field(0.0, description="Quadratic cost d")
    demand: Optional[DemandModel] = Field(None, description="Per-firm demand override")
    model: str = "gpt-4o-mini"
    info: InformationDisclosureModel = Field(default_factory=InformationDisclosureModel)


class CommunicationModel(BaseModel):
    allow_communication: bool = False
    messages_per_round: int = Field(0, ge=0)


class MarketConfigRequest(BaseModel):
    """Market configuration request body."""

    mode: str = Field("cournot", pattern="^(cournot|bertrand)$")
    firms: List[FirmModel] = Field(..., min_length=1, max_length=100)
    demand: DemandModel = Field(
        default_factory=lambda: DemandModel(type="linear", intercept=100.0, slope=1.0)
    )
    gamma: ParameterValue = Field(1.0, description="Differentiation, 0 to 1")
    variation: str = Field("fixed", pattern="^(fixed|per-replication|per-round)$")
    total_rounds: int = Field(10, gt=0)
    num_replications: int = Field(1, gt=0)
    communication: CommunicationModel = Field(default_factory=CommunicationModel)
    min_quantity: Optional[float] = None
    max_quantity: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def to_config(self) -> MarketConfig:
        """Convert to a MarketConfig.

        Raises:
            ConfigurationError: If the body cannot be interpreted
        """
        return market_config_from_dict(self.model_dump(exclude_none=True))


class ResolveRoundRequest(BaseModel):
    """Resolve one round from a configuration and the firms' decisions."""

    config: MarketConfigRequest
    decisions: Dict[int, float] = Field(..., description="Decision per firm id")
    round_number: int = Field(1, ge=1)
    seed: Optional[int] = Field(None, description="Seed for the parameter draw")


def _number(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def equilibrium_to_dict(result: EquilibriumResult) -> Dict[str, Any]:
    return {
        "mode": result.mode.value,
        "calculable": result.calculable,
        "message": result.message,
        "clamped_firms": list(result.clamped_firms),
        "firms": [
            {
                "firm_id": f.firm_id,
                "quantity": _number(f.quantity),
                "price": _number(f.price),
                "profit": _number(f.profit),
            }
            for f in result.firms
        ],
        "total_quantity": _number(result.total_quantity),
        "market_prices": [_number(p) for p in result.market_prices],
        "average_market_price": _number(result.average_market_price),
        "total_profit": _number(result.total_profit),
    }


def limit_pricing_to_dict(analysis: Optional[LimitPricingAnalysis]) -> Optional[Dict[str, Any]]:
    if analysis is None:
        return None
    return {
        "asymmetry_index": _number(analysis.asymmetry_index),
        "threshold_low": analysis.threshold_low,
        "threshold_high": analysis.threshold_high,
        "regime": analysis.regime.value,
        "dominant_firm": analysis.dominant_firm,
        "message": analysis.message,
    }


def equilibrium_report_to_dict(report: EquilibriumReport) -> Dict[str, Any]:
    return {
        "nash": equilibrium_to_dict(report.nash),
        "cooperative": equilibrium_to_dict(report.cooperative),
        "limit_pricing": limit_pricing_to_dict(report.limit_pricing),
    }


def round_result_to_dict(result: RoundResult) -> Dict[str, Any]:
    """Serialize a round result, realized parameters included."""
    return {
        "round_number": result.round_number,
        "replication_number": result.replication_number,
        "mode": result.mode.value,
        "firms": [
            {
                "firm_id": f.firm_id,
                "decision": f.decision,
                "quantity": f.quantity,
                "price": f.price,
                "revenue": f.revenue,
                "cost": f.cost,
                "profit": f.profit,
                "reasoning": f.reasoning,
            }
            for f in result.firms
        ],
        "market_prices": list(result.market_prices),
        "market_price": result.market_price,
        "total_quantity": result.total_quantity,
        "realized_parameters": result.realized_parameters.to_dict(),
        "numeric_flags": list(result.numeric_flags),
        "communication": [
            {"firm_id": m.firm_id, "message": m.message} for m in result.communication
        ],
        "timestamp": result.timestamp.isoformat(),
    }


__all__ = [
    "CommunicationModel",
    "DemandModel",
    "FirmModel",
    "InformationDisclosureModel",
    "MarketConfigRequest",
    "ParameterSpecModel",
    "ResolveRoundRequest",
    "equilibrium_report_to_dict",
    "equilibrium_to_dict",
    "limit_pricing_to_dict",
    "round_result_to_dict",
]
