"""Validation of market configurations before an experiment starts.

Problems are collected and reported together in a single
ConfigurationError so a caller can fix everything in one pass.
"""

from typing import List, Optional

from ..config import Settings, get_settings
from ..errors import ConfigurationError
from ..models.demand import (
    CESDemandSpec,
    DemandFunctionSpec,
    ExponentialDemandSpec,
    LinearDemandSpec,
    LogitDemandSpec,
)
from ..models.market import MarketConfig
from ..models.parameters import FixedParameter, ParameterSpec, UniformParameter


def _fixed_or_bounded(spec: ParameterSpec) -> List[float]:
    """Values that are certain to be drawable from a spec (used for range checks)."""
    if isinstance(spec, FixedParameter):
        return [spec.value]
    if isinstance(spec, UniformParameter):
        return [spec.min, spec.max]
    return []


def validate_demand_spec(spec: DemandFunctionSpec, label: str = "demand") -> List[str]:
    """Check that a demand spec's expected coefficients lie in their domains.

    Returns:
        List of error messages (empty when valid)
    """
    errors = []
    if isinstance(spec, LinearDemandSpec):
        if spec.intercept.expected_value() <= 0:
            errors.append(f"{label} intercept must be positive")
        if spec.slope.expected_value() <= 0:
            errors.append(f"{label} slope must be positive")
    elif isinstance(spec, CESDemandSpec):
        if spec.scale.expected_value() <= 0:
            errors.append(f"{label} scale must be positive")
        if spec.substitution_elasticity.expected_value() <= 0:
            errors.append(f"{label} substitution elasticity must be positive")
    elif isinstance(spec, LogitDemandSpec):
        if spec.price_coefficient.expected_value() <= 0:
            errors.append(f"{label} price coefficient must be positive")
    elif isinstance(spec, ExponentialDemandSpec):
        if spec.scale.expected_value() <= 0:
            errors.append(f"{label} scale must be positive")
        if spec.decay_rate.expected_value() <= 0:
            errors.append(f"{label} decay rate must be positive")
    else:
        raise TypeError(f"Unsupported demand spec: {type(spec).__name__}")
    return errors


def validate_market_config(
    config: MarketConfig, settings: Optional[Settings] = None
) -> None:
    """Validate a market configuration.

    Args:
        config: Configuration to check
        settings: Limits to enforce, defaults to the application settings

    Raises:
        ConfigurationError: If any check fails
    """
    settings = settings or get_settings()
    errors: List[str] = []

    n = config.num_firms
    if n < 2:
        errors.append(f"At least 2 firms are required, got {n}")
    if n > settings.max_firms:
        errors.append(f"At most {settings.max_firms} firms are supported, got {n}")
    if config.firm_ids != list(range(1, n + 1)):
        errors.append(f"Firm ids must be 1..{n} in order, got {config.firm_ids}")

    for value in _fixed_or_bounded(config.gamma):
        if not 0 <= value <= 1:
            errors.append(f"Differentiation parameter gamma must be in [0, 1], got {value}")

    if not 1 <= config.total_rounds <= settings.max_rounds:
        errors.append(
            f"Total rounds must be in [1, {settings.max_rounds}], got {config.total_rounds}"
        )
    if not 1 <= config.num_replications <= settings.max_replications:
        errors.append(
            f"Replications must be in [1, {settings.max_replications}], "
            f"got {config.num_replications}"
        )

    errors.extend(validate_demand_spec(config.demand))

    for firm in config.firms:
        for name, spec in (
            ("linear cost", firm.linear_cost),
            ("quadratic cost", firm.quadratic_cost),
        ):
            if any(value < 0 for value in _fixed_or_bounded(spec)):
                errors.append(f"Firm {firm.firm_id} {name} must be non-negative")
        if firm.demand is not None:
            if firm.demand.family != config.demand.family:
                errors.append(
                    f"Firm {firm.firm_id} demand family '{firm.demand.family}' "
                    f"must match market demand '{config.demand.family}'"
                )
            errors.extend(
                validate_demand_spec(firm.demand, label=f"Firm {firm.firm_id} demand")
            )

    if config.communication.messages_per_round < 0:
        errors.append("Messages per round must be non-negative")

    for low, high, name in (
        (config.min_quantity, config.max_quantity, "quantity"),
        (config.min_price, config.max_price, "price"),
    ):
        if low is not None and low < 0:
            errors.append(f"Minimum {name} must be non-negative")
        if low is not None and high is not None and low > high:
            errors.append(f"Minimum {name} ({low}) exceeds maximum ({high})")

    if errors:
        raise ConfigurationError("; ".join(errors))
