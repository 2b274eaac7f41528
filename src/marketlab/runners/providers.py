"""Built-in decision providers.

These play rule-based strategies instead of calling an external model. They
are useful as baselines, for demos and for exercising the orchestrator.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from ..equilibrium import cournot_best_response, nash_equilibrium
from ..errors import ConfigurationError
from ..models.demand import LinearDemandSpec
from ..models.market import CompetitionMode, MarketConfig
from .orchestrator import Decision, RoundContext


@dataclass
class StaticProvider:
    """Always returns the same decision per firm.

    ``default`` is used for firms missing from ``values``.
    """

    values: Dict[int, float] = field(default_factory=dict)
    default: float = 0.0
    message: str = ""

    async def request_decision(self, firm_id: int, context: RoundContext) -> Decision:
        value = self.values.get(firm_id, self.default)
        return Decision(value=value, reasoning="static")

    async def request_message(self, firm_id: int, context: RoundContext) -> str:
        return self.message


@dataclass
class TitForTatProvider:
    """Opens with ``initial`` and then mirrors the rivals' average last decision."""

    initial: float

    async def request_decision(self, firm_id: int, context: RoundContext) -> Decision:
        if not context.history:
            return Decision(value=self.initial, reasoning="opening move")
        last = context.history[-1]
        rivals = [f.decision for f in last.firms if f.firm_id != firm_id]
        value = sum(rivals) / len(rivals)
        return Decision(value=value, reasoning="mirroring rivals")

    async def request_message(self, firm_id: int, context: RoundContext) -> str:
        return f"Firm {firm_id} will match what the market does."


class BestResponseProvider:
    """Cournot best-response dynamics on linear demand.

    Each firm opens at its Nash quantity and then best-responds to its
    rivals' quantities from the previous round.
    """

    def __init__(self, config: MarketConfig) -> None:
        if config.mode != CompetitionMode.COURNOT or not isinstance(
            config.demand, LinearDemandSpec
        ):
            raise ConfigurationError(
                "Best-response provider needs a Cournot market with linear demand"
            )
        self.config = config
        self._opening: Optional[Dict[int, float]] = None

    def _opening_quantity(self, firm_id: int) -> float:
        if self._opening is None:
            nash = nash_equilibrium(self.config)
            self._opening = {
                f.firm_id: f.quantity if nash.calculable else 0.0 for f in nash.firms
            }
        return self._opening[firm_id]

    async def request_decision(self, firm_id: int, context: RoundContext) -> Decision:
        if not context.history:
            return Decision(
                value=self._opening_quantity(firm_id), reasoning="Nash opening"
            )
        last = context.history[-1]
        rivals = [f.quantity for f in last.firms if f.firm_id != firm_id]
        value = cournot_best_response(
            self.config, firm_id, rivals, realized=last.realized_parameters
        )
        return Decision(value=value, reasoning="best response to last round")

    async def request_message(self, firm_id: int, context: RoundContext) -> str:
        return f"Firm {firm_id} plans to best-respond."
