"""Parameter specifications for stochastic market experiments.

A parameter spec declares where a market parameter comes from: a fixed
value or one of three distributions. Specs are immutable and validated on
construction; the randomizer turns them into concrete numbers.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from ..errors import ConfigurationError


@dataclass(frozen=True)
class FixedParameter:
    """A deterministic parameter value."""

    value: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise ConfigurationError(f"Fixed value must be finite, got {self.value}")

    @property
    def is_random(self) -> bool:
        return False

    def expected_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class UniformParameter:
    """A parameter drawn uniformly from [min, max]."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ConfigurationError("Uniform bounds must be finite")
        if self.min > self.max:
            raise ConfigurationError(
                f"Uniform min ({self.min}) must not exceed max ({self.max})"
            )

    @property
    def is_random(self) -> bool:
        return self.min != self.max

    def expected_value(self) -> float:
        return (self.min + self.max) / 2


@dataclass(frozen=True)
class NormalParameter:
    """A parameter drawn from a normal distribution (unclamped)."""

    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.mean):
            raise ConfigurationError(f"Normal mean must be finite, got {self.mean}")
        if not self.std_dev >= 0:
            raise ConfigurationError(
                f"Normal std_dev must be non-negative, got {self.std_dev}"
            )

    @property
    def is_random(self) -> bool:
        return self.std_dev > 0

    def expected_value(self) -> float:
        return self.mean


@dataclass(frozen=True)
class LognormalParameter:
    """A parameter drawn from a lognormal distribution.

    ``mean`` and ``std_dev`` describe the lognormal variable itself, not the
    underlying normal. The randomizer converts them with
    ``sigma^2 = ln(1 + std_dev^2 / mean^2)`` and ``mu = ln(mean) - sigma^2 / 2``.
    """

    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.mean) and self.mean > 0):
            raise ConfigurationError(
                f"Lognormal mean must be positive, got {self.mean}"
            )
        if not self.std_dev >= 0:
            raise ConfigurationError(
                f"Lognormal std_dev must be non-negative, got {self.std_dev}"
            )

    @property
    def is_random(self) -> bool:
        return self.std_dev > 0

    def expected_value(self) -> float:
        return self.mean

    def underlying_normal(self) -> Tuple[float, float]:
        """Return (mu, sigma) of the normal whose exponential has this mean and std_dev."""
        sigma2 = math.log(1.0 + (self.std_dev * self.std_dev) / (self.mean * self.mean))
        mu = math.log(self.mean) - sigma2 / 2
        return mu, math.sqrt(sigma2)


ParameterSpec = Union[FixedParameter, UniformParameter, NormalParameter, LognormalParameter]


def fixed(value: float) -> FixedParameter:
    """Shorthand for a fixed parameter."""
    return FixedParameter(float(value))


def as_parameter(value: Union[float, int, ParameterSpec]) -> ParameterSpec:
    """Wrap plain numbers in a FixedParameter; pass specs through."""
    if isinstance(
        value, (FixedParameter, UniformParameter, NormalParameter, LognormalParameter)
    ):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return FixedParameter(float(value))
    raise ConfigurationError(f"Cannot interpret {value!r} as a parameter spec")


def parameter_from_dict(data: Union[float, int, Dict[str, Any]]) -> ParameterSpec:
    """Build a parameter spec from its dictionary form.

    Accepts plain numbers (fixed) or ``{"type": ..., ...}`` mappings using
    either ``std_dev`` or ``stdDev`` for the spread.

    Raises:
        ConfigurationError: If the type is unknown or a field is missing
    """
    if isinstance(data, (int, float)) and not isinstance(data, bool):
        return FixedParameter(float(data))
    if not isinstance(data, dict):
        raise ConfigurationError(f"Parameter spec must be a number or mapping, got {data!r}")

    kind = data.get("type", "fixed")
    std_dev = data.get("std_dev", data.get("stdDev"))
    try:
        if kind == "fixed":
            return FixedParameter(float(data["value"]))
        if kind == "uniform":
            return UniformParameter(float(data["min"]), float(data["max"]))
        if kind == "normal":
            return NormalParameter(float(data["mean"]), float(std_dev))
        if kind == "lognormal":
            return LognormalParameter(float(data["mean"]), float(std_dev))
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Incomplete {kind} parameter spec {data!r}: {e}")
    raise ConfigurationError(f"Unknown parameter spec type '{kind}'")


def parameter_to_dict(spec: ParameterSpec) -> Dict[str, Any]:
    """Serialize a parameter spec to its dictionary form."""
    if isinstance(spec, FixedParameter):
        return {"type": "fixed", "value": spec.value}
    if isinstance(spec, UniformParameter):
        return {"type": "uniform", "min": spec.min, "max": spec.max}
    if isinstance(spec, NormalParameter):
        return {"type": "normal", "mean": spec.mean, "std_dev": spec.std_dev}
    if isinstance(spec, LognormalParameter):
        return {"type": "lognormal", "mean": spec.mean, "std_dev": spec.std_dev}
    raise TypeError(f"Unsupported parameter spec: {type(spec).__name__}")
