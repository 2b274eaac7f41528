"""Market configuration types.

A MarketConfig is created once per experiment and never mutated while it
runs. Changing the number of firms produces a new config through
``with_num_firms``, which re-derives symmetric defaults for added firms.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from .demand import DemandFunctionSpec, LinearDemandSpec
from .parameters import ParameterSpec, as_parameter


class CompetitionMode(str, Enum):
    """Which decision variable firms choose."""

    COURNOT = "cournot"
    BERTRAND = "bertrand"


class VariationPolicy(str, Enum):
    """How often random parameters are redrawn."""

    FIXED = "fixed"
    PER_REPLICATION = "per-replication"
    PER_ROUND = "per-round"


@dataclass(frozen=True)
class InformationDisclosure:
    """What a firm's decision provider is told about the market."""

    reveal_demand_function: bool = True
    reveal_own_costs: bool = True
    reveal_rival_costs: bool = False
    reveal_rival_is_llm: bool = True
    describe_rival_as_human: bool = False


@dataclass(frozen=True)
class CommunicationSettings:
    """Pre-decision messaging between firms."""

    allow_communication: bool = False
    messages_per_round: int = 0


@dataclass(frozen=True)
class FirmSpec:
    """Configuration of one firm: cost function C(q) = c*q + d*q^2.

    ``demand`` optionally overrides the market demand for this firm and must
    use the same family as the market demand.
    """

    firm_id: int
    linear_cost: ParameterSpec = field(default_factory=lambda: as_parameter(10.0))
    quadratic_cost: ParameterSpec = field(default_factory=lambda: as_parameter(0.0))
    demand: Optional[DemandFunctionSpec] = None
    model: str = "gpt-4o-mini"
    info: InformationDisclosure = field(default_factory=InformationDisclosure)

    def __post_init__(self) -> None:
        object.__setattr__(self, "linear_cost", as_parameter(self.linear_cost))
        object.__setattr__(self, "quadratic_cost", as_parameter(self.quadratic_cost))


@dataclass(frozen=True)
class MarketConfig:
    """Complete, immutable description of one experiment's market.

    ``gamma`` is the differentiation parameter: 0 means independent
    products, 1 means homogeneous products. It may be a number or a
    parameter spec; realized draws are clamped into [0, 1].
    """

    firms: Tuple[FirmSpec, ...]
    demand: DemandFunctionSpec = field(
        default_factory=lambda: LinearDemandSpec(intercept=100.0, slope=1.0)
    )
    mode: CompetitionMode = CompetitionMode.COURNOT
    gamma: ParameterSpec = field(default_factory=lambda: as_parameter(1.0))
    variation: VariationPolicy = VariationPolicy.FIXED
    total_rounds: int = 10
    num_replications: int = 1
    communication: CommunicationSettings = field(default_factory=CommunicationSettings)
    min_quantity: Optional[float] = None
    max_quantity: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "firms", tuple(self.firms))
        object.__setattr__(self, "gamma", as_parameter(self.gamma))
        object.__setattr__(self, "mode", CompetitionMode(self.mode))
        object.__setattr__(self, "variation", VariationPolicy(self.variation))

    @property
    def num_firms(self) -> int:
        return len(self.firms)

    @property
    def firm_ids(self) -> List[int]:
        return [firm.firm_id for firm in self.firms]

    @property
    def has_firm_demands(self) -> bool:
        return any(firm.demand is not None for firm in self.firms)

    def firm(self, firm_id: int) -> FirmSpec:
        """Return the firm with the given 1-based id."""
        for firm in self.firms:
            if firm.firm_id == firm_id:
                return firm
        raise KeyError(f"No firm with id {firm_id}")

    def with_num_firms(self, num_firms: int) -> "MarketConfig":
        """Return a copy with ``num_firms`` firms.

        Existing firms are kept in order; added firms copy firm 1's cost
        specs, model and disclosure so the market stays symmetric by default.
        """
        template = self.firms[0] if self.firms else FirmSpec(firm_id=1)
        firms = []
        for firm_id in range(1, num_firms + 1):
            if firm_id <= len(self.firms):
                firms.append(self.firms[firm_id - 1])
            else:
                firms.append(replace(template, firm_id=firm_id, demand=None))
        return replace(self, firms=tuple(firms))


def symmetric_firms(
    num_firms: int,
    linear_cost: Union[float, ParameterSpec] = 10.0,
    quadratic_cost: Union[float, ParameterSpec] = 0.0,
) -> Tuple[FirmSpec, ...]:
    """Create ``num_firms`` identical firms with ids 1..N."""
    return tuple(
        FirmSpec(
            firm_id=i,
            linear_cost=as_parameter(linear_cost),
            quadratic_cost=as_parameter(quadratic_cost),
        )
        for i in range(1, num_firms + 1)
    )
