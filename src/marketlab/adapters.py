"""Boundary adapters for stored and legacy configurations.

Stored configurations come in two shapes: the legacy two-firm camelCase form
(``demandIntercept``, ``firm1LinearCost``, ``firm2Info`` ...) and the current
snake_case form. ``upgrade_legacy_config`` turns either into the current
dictionary form, and ``market_config_from_dict`` builds a MarketConfig from
it. Nothing past this module sees legacy field names.
"""

from typing import Any, Dict, List, Optional

from .errors import ConfigurationError
from .models.demand import demand_spec_from_dict, demand_spec_to_dict
from .models.market import (
    CommunicationSettings,
    CompetitionMode,
    FirmSpec,
    InformationDisclosure,
    MarketConfig,
    VariationPolicy,
)
from .models.parameters import parameter_from_dict, parameter_to_dict

DEFAULT_LINEAR_COST = 10.0
DEFAULT_QUADRATIC_COST = 0.0
DEFAULT_MODEL = "gpt-4o-mini"

_INFO_FIELDS = {
    "revealDemandFunction": "reveal_demand_function",
    "revealOwnCosts": "reveal_own_costs",
    "revealRivalCosts": "reveal_rival_costs",
    "revealRivalIsLLM": "reveal_rival_is_llm",
    "describeRivalAsHuman": "describe_rival_as_human",
}

_TOP_LEVEL_FIELDS = {
    "competitionMode": "mode",
    "totalRounds": "total_rounds",
    "numReplications": "num_replications",
    "minQuantity": "min_quantity",
    "maxQuantity": "max_quantity",
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "variationPolicy": "variation",
}


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _upgrade_info(info: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    defaults = InformationDisclosure()
    upgraded = {name: getattr(defaults, name) for name in _INFO_FIELDS.values()}
    for key, value in (info or {}).items():
        name = _INFO_FIELDS.get(key, key)
        if name in upgraded:
            upgraded[name] = bool(value)
    return upgraded


def _num_firms(data: Dict[str, Any]) -> int:
    count = _pick(data, "num_firms", "numFirms")
    if count is not None:
        return int(count)
    firms = data.get("firms")
    if firms:
        return len(firms)
    return 2


def _upgrade_firm(data: Dict[str, Any], firm_id: int) -> Dict[str, Any]:
    """Resolve one firm the way stored configurations define it.

    An entry in ``firms`` wins; otherwise firms 1 and 2 come from the legacy
    ``firm1*``/``firm2*`` fields and later firms get the defaults.
    """
    firms = data.get("firms") or []
    if len(firms) >= firm_id:
        entry = firms[firm_id - 1]
        firm = {
            "firm_id": firm_id,
            "linear_cost": _pick(entry, "linear_cost", "linearCost", default=DEFAULT_LINEAR_COST),
            "quadratic_cost": _pick(
                entry, "quadratic_cost", "quadraticCost", default=DEFAULT_QUADRATIC_COST
            ),
            "model": _pick(entry, "model", default=DEFAULT_MODEL),
            "info": _upgrade_info(entry.get("info")),
        }
        demand = _pick(entry, "demand", "demandFunction")
        if demand is not None:
            firm["demand"] = demand
    elif firm_id in (1, 2):
        prefix = f"firm{firm_id}"
        firm = {
            "firm_id": firm_id,
            "linear_cost": _pick(data, f"{prefix}LinearCost", default=DEFAULT_LINEAR_COST),
            "quadratic_cost": _pick(
                data, f"{prefix}QuadraticCost", default=DEFAULT_QUADRATIC_COST
            ),
            "model": _pick(data, f"{prefix}Model", default=DEFAULT_MODEL),
            "info": _upgrade_info(data.get(f"{prefix}Info")),
        }
    else:
        firm = {
            "firm_id": firm_id,
            "linear_cost": DEFAULT_LINEAR_COST,
            "quadratic_cost": DEFAULT_QUADRATIC_COST,
            "model": DEFAULT_MODEL,
            "info": _upgrade_info(None),
        }

    # Random cost specs stored alongside the fixed values take precedence.
    cost_specs = data.get("firmCostSpecs") or []
    if len(cost_specs) >= firm_id and cost_specs[firm_id - 1]:
        spec = cost_specs[firm_id - 1]
        firm["linear_cost"] = _pick(spec, "linearCost", "linear_cost", default=firm["linear_cost"])
        firm["quadratic_cost"] = _pick(
            spec, "quadraticCost", "quadratic_cost", default=firm["quadratic_cost"]
        )
    return firm


def upgrade_legacy_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored configuration into the current dictionary form.

    Args:
        data: Legacy camelCase or current snake_case configuration

    Returns:
        Dictionary with keys mode, demand, gamma, variation, total_rounds,
        num_replications, communication, firms and the decision bounds
    """
    upgraded: Dict[str, Any] = {}
    for legacy, name in _TOP_LEVEL_FIELDS.items():
        value = _pick(data, name, legacy)
        if value is not None:
            upgraded[name] = value

    upgraded.setdefault("mode", CompetitionMode.COURNOT.value)
    upgraded.setdefault("variation", VariationPolicy.FIXED.value)
    upgraded.setdefault("total_rounds", 10)
    upgraded.setdefault("num_replications", 1)

    demand = _pick(data, "demand", "demandFunction")
    if demand is None:
        demand = {
            "type": "linear",
            "intercept": _pick(data, "demandIntercept", default=100.0),
            "slope": _pick(data, "demandSlope", default=1.0),
        }
    upgraded["demand"] = demand
    upgraded["gamma"] = _pick(data, "gammaSpec", "gamma", default=1.0)

    communication = data.get("communication") or {}
    upgraded["communication"] = {
        "allow_communication": bool(
            _pick(communication, "allow_communication", "allowCommunication", default=False)
        ),
        "messages_per_round": int(
            _pick(communication, "messages_per_round", "messagesPerRound", default=0)
        ),
    }

    upgraded["firms"] = [
        _upgrade_firm(data, firm_id) for firm_id in range(1, _num_firms(data) + 1)
    ]
    return upgraded


def market_config_from_dict(data: Dict[str, Any]) -> MarketConfig:
    """Build a MarketConfig from a stored configuration of either shape.

    Raises:
        ConfigurationError: If a field cannot be interpreted
    """
    upgraded = upgrade_legacy_config(data)
    try:
        firms: List[FirmSpec] = []
        for firm in upgraded["firms"]:
            demand = firm.get("demand")
            firms.append(
                FirmSpec(
                    firm_id=int(firm["firm_id"]),
                    linear_cost=parameter_from_dict(firm["linear_cost"]),
                    quadratic_cost=parameter_from_dict(firm["quadratic_cost"]),
                    demand=demand_spec_from_dict(demand) if demand is not None else None,
                    model=str(firm["model"]),
                    info=InformationDisclosure(**firm["info"]),
                )
            )
        return MarketConfig(
            firms=tuple(firms),
            demand=demand_spec_from_dict(upgraded["demand"]),
            mode=CompetitionMode(upgraded["mode"]),
            gamma=parameter_from_dict(upgraded["gamma"]),
            variation=VariationPolicy(upgraded["variation"]),
            total_rounds=int(upgraded["total_rounds"]),
            num_replications=int(upgraded["num_replications"]),
            communication=CommunicationSettings(**upgraded["communication"]),
            min_quantity=upgraded.get("min_quantity"),
            max_quantity=upgraded.get("max_quantity"),
            min_price=upgraded.get("min_price"),
            max_price=upgraded.get("max_price"),
        )
    except ConfigurationError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def market_config_to_dict(config: MarketConfig) -> Dict[str, Any]:
    """Serialize a MarketConfig to the current dictionary form."""
    firms = []
    for firm in config.firms:
        entry: Dict[str, Any] = {
            "firm_id": firm.firm_id,
            "linear_cost": parameter_to_dict(firm.linear_cost),
            "quadratic_cost": parameter_to_dict(firm.quadratic_cost),
            "model": firm.model,
            "info": {name: getattr(firm.info, name) for name in _INFO_FIELDS.values()},
        }
        if firm.demand is not None:
            entry["demand"] = demand_spec_to_dict(firm.demand)
        firms.append(entry)

    return {
        "mode": config.mode.value,
        "demand": demand_spec_to_dict(config.demand),
        "gamma": parameter_to_dict(config.gamma),
        "variation": config.variation.value,
        "total_rounds": config.total_rounds,
        "num_replications": config.num_replications,
        "communication": {
            "allow_communication": config.communication.allow_communication,
            "messages_per_round": config.communication.messages_per_round,
        },
        "min_quantity": config.min_quantity,
        "max_quantity": config.max_quantity,
        "min_price": config.min_price,
        "max_price": config.max_price,
        "firms": firms,
    }
