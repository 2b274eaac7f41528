"""Demand function families.

Each family has a spec form, whose coefficients are parameter specs, and a
realized form holding the numbers drawn for one round or replication. The
union types below are closed: the demand model and the equilibrium solver
dispatch over exactly these four families.
"""

from dataclasses import dataclass
from typing import Any, Dict, Union

from ..errors import ConfigurationError
from .parameters import (
    ParameterSpec,
    as_parameter,
    parameter_from_dict,
    parameter_to_dict,
)

LINEAR = "linear"
CES = "ces"
LOGIT = "logit"
EXPONENTIAL = "exponential"

DEMAND_FAMILIES = (LINEAR, CES, LOGIT, EXPONENTIAL)


@dataclass(frozen=True)
class LinearDemand:
    """Linear inverse demand P = a - b*Q."""

    a: float
    b: float

    family = LINEAR


@dataclass(frozen=True)
class CESDemand:
    """Constant elasticity inverse demand P = A * Q^(-1/sigma)."""

    A: float
    sigma: float

    family = CES


@dataclass(frozen=True)
class LogitDemand:
    """Logit inverse demand P = a - b*ln(Q)."""

    a: float
    b: float

    family = LOGIT


@dataclass(frozen=True)
class ExponentialDemand:
    """Exponential inverse demand P = A * exp(-b*Q)."""

    A: float
    b: float

    family = EXPONENTIAL


Demand = Union[LinearDemand, CESDemand, LogitDemand, ExponentialDemand]


@dataclass(frozen=True)
class LinearDemandSpec:
    """Linear demand with intercept a and slope b."""

    intercept: ParameterSpec
    slope: ParameterSpec

    family = LINEAR

    def __post_init__(self) -> None:
        object.__setattr__(self, "intercept", as_parameter(self.intercept))
        object.__setattr__(self, "slope", as_parameter(self.slope))


@dataclass(frozen=True)
class CESDemandSpec:
    """CES demand with scale A and substitution elasticity sigma."""

    scale: ParameterSpec
    substitution_elasticity: ParameterSpec

    family = CES

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale", as_parameter(self.scale))
        object.__setattr__(
            self, "substitution_elasticity", as_parameter(self.substitution_elasticity)
        )


@dataclass(frozen=True)
class LogitDemandSpec:
    """Logit demand with intercept a and price coefficient b."""

    intercept: ParameterSpec
    price_coefficient: ParameterSpec

    family = LOGIT

    def __post_init__(self) -> None:
        object.__setattr__(self, "intercept", as_parameter(self.intercept))
        object.__setattr__(
            self, "price_coefficient", as_parameter(self.price_coefficient)
        )


@dataclass(frozen=True)
class ExponentialDemandSpec:
    """Exponential demand with scale A and decay rate b."""

    scale: ParameterSpec
    decay_rate: ParameterSpec

    family = EXPONENTIAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale", as_parameter(self.scale))
        object.__setattr__(self, "decay_rate", as_parameter(self.decay_rate))


DemandFunctionSpec = Union[
    LinearDemandSpec, CESDemandSpec, LogitDemandSpec, ExponentialDemandSpec
]

# Field names per family, in draw order.
SPEC_FIELDS: Dict[str, tuple] = {
    LINEAR: ("intercept", "slope"),
    CES: ("scale", "substitution_elasticity"),
    LOGIT: ("intercept", "price_coefficient"),
    EXPONENTIAL: ("scale", "decay_rate"),
}

_SPEC_TYPES = {
    LINEAR: LinearDemandSpec,
    CES: CESDemandSpec,
    LOGIT: LogitDemandSpec,
    EXPONENTIAL: ExponentialDemandSpec,
}

# camelCase aliases used by stored configurations
_FIELD_ALIASES = {
    "substitutionElasticity": "substitution_elasticity",
    "priceCoefficient": "price_coefficient",
    "decayRate": "decay_rate",
}


def spec_parameters(spec: DemandFunctionSpec) -> Dict[str, ParameterSpec]:
    """Return the parameter specs of a demand spec keyed by field name."""
    return {name: getattr(spec, name) for name in SPEC_FIELDS[spec.family]}


def realize_demand(spec: DemandFunctionSpec, values: Dict[str, float]) -> Demand:
    """Build the realized demand for a spec from drawn field values."""
    if isinstance(spec, LinearDemandSpec):
        return LinearDemand(a=values["intercept"], b=values["slope"])
    if isinstance(spec, CESDemandSpec):
        return CESDemand(A=values["scale"], sigma=values["substitution_elasticity"])
    if isinstance(spec, LogitDemandSpec):
        return LogitDemand(a=values["intercept"], b=values["price_coefficient"])
    if isinstance(spec, ExponentialDemandSpec):
        return ExponentialDemand(A=values["scale"], b=values["decay_rate"])
    raise TypeError(f"Unsupported demand spec: {type(spec).__name__}")


def demand_spec_from_dict(data: Dict[str, Any]) -> DemandFunctionSpec:
    """Build a demand spec from ``{"type": family, <field>: <param spec>}``.

    Raises:
        ConfigurationError: If the family is unknown or a field is missing
    """
    family = data.get("type", LINEAR)
    if family not in _SPEC_TYPES:
        raise ConfigurationError(
            f"Unknown demand function type '{family}', expected one of {DEMAND_FAMILIES}"
        )
    fields = {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}
    kwargs = {}
    for name in SPEC_FIELDS[family]:
        if name not in fields:
            raise ConfigurationError(f"{family} demand is missing '{name}'")
        kwargs[name] = parameter_from_dict(fields[name])
    return _SPEC_TYPES[family](**kwargs)


def demand_spec_to_dict(spec: DemandFunctionSpec) -> Dict[str, Any]:
    """Serialize a demand spec to its dictionary form."""
    data: Dict[str, Any] = {"type": spec.family}
    for name, param in spec_parameters(spec).items():
        data[name] = parameter_to_dict(param)
    return data


def demand_to_dict(demand: Demand) -> Dict[str, Any]:
    """Serialize realized demand, e.g. for a decision provider's context."""
    if isinstance(demand, (LinearDemand, LogitDemand)):
        return {"type": demand.family, "a": demand.a, "b": demand.b}
    if isinstance(demand, CESDemand):
        return {"type": demand.family, "A": demand.A, "sigma": demand.sigma}
    if isinstance(demand, ExponentialDemand):
        return {"type": demand.family, "A": demand.A, "b": demand.b}
    raise TypeError(f"Unsupported demand: {type(demand).__name__}")
