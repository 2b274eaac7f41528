"""Parameter randomizer.

Turns parameter specs into concrete numbers. The random source is an
injectable ``random.Random`` so experiments can be reproduced from a seed;
draws for a whole market always happen in the same order (market demand,
gamma, then firms 1..N with their demand overrides and costs).
"""

import random
from typing import Dict, List, Optional, Tuple

from .models.demand import Demand, realize_demand, spec_parameters
from .models.market import MarketConfig
from .models.parameters import (
    FixedParameter,
    LognormalParameter,
    NormalParameter,
    ParameterSpec,
    UniformParameter,
)
from .models.results import FirmCosts, RealizedParameters


class ParameterRandomizer:
    """Draws values from parameter specs using one random source."""

    def __init__(
        self, rng: Optional[random.Random] = None, seed: Optional[int] = None
    ) -> None:
        """Initialize the randomizer.

        Args:
            rng: Random source to draw from; created from ``seed`` when omitted
            seed: Seed for a new random source
        """
        self.seed = seed
        self._rng = rng if rng is not None else random.Random(seed)

    def draw(self, spec: ParameterSpec) -> float:
        """Draw one value from a parameter spec."""
        if isinstance(spec, FixedParameter):
            return spec.value
        if isinstance(spec, UniformParameter):
            value = self._rng.uniform(spec.min, spec.max)
            return min(max(value, spec.min), spec.max)
        if isinstance(spec, NormalParameter):
            return self._rng.gauss(spec.mean, spec.std_dev)
        if isinstance(spec, LognormalParameter):
            mu, sigma = spec.underlying_normal()
            return self._rng.lognormvariate(mu, sigma)
        raise TypeError(f"Unsupported parameter spec: {type(spec).__name__}")

    def draw_parameters(self, config: MarketConfig) -> RealizedParameters:
        """Draw a complete set of realized parameters for a market."""
        return _realize(config, self.draw)


def expected_parameters(config: MarketConfig) -> RealizedParameters:
    """Realize every spec at its expected value (no randomness)."""
    return _realize(config, lambda spec: spec.expected_value())


def has_random_parameters(config: MarketConfig) -> bool:
    """Whether any spec in the configuration is actually random."""
    specs: List[ParameterSpec] = list(spec_parameters(config.demand).values())
    specs.append(config.gamma)
    for firm in config.firms:
        specs.extend([firm.linear_cost, firm.quadratic_cost])
        if firm.demand is not None:
            specs.extend(spec_parameters(firm.demand).values())
    return any(spec.is_random for spec in specs)


def _realize(config: MarketConfig, draw) -> RealizedParameters:
    demand = _realize_demand(config.demand, draw)
    gamma = min(1.0, max(0.0, draw(config.gamma)))

    firm_costs: List[FirmCosts] = []
    firm_demands: List[Tuple[int, Demand]] = []
    for firm in config.firms:
        if firm.demand is not None:
            firm_demands.append((firm.firm_id, _realize_demand(firm.demand, draw)))
        firm_costs.append(
            FirmCosts(
                firm_id=firm.firm_id,
                linear_cost=max(0.0, draw(firm.linear_cost)),
                quadratic_cost=max(0.0, draw(firm.quadratic_cost)),
            )
        )

    return RealizedParameters(
        demand=demand,
        gamma=gamma,
        firm_costs=tuple(firm_costs),
        firm_demands=tuple(firm_demands),
    )


def _realize_demand(spec, draw) -> Demand:
    values: Dict[str, float] = {
        name: draw(param) for name, param in spec_parameters(spec).items()
    }
    return realize_demand(spec, values)
