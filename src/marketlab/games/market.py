"""Market resolution for one round of competition.

Takes the decisions of every firm for a round and the parameters realized
for it, and computes each firm's quantity, price, revenue, cost and profit.
Cournot decisions are quantities and prices come from the inverse demand;
Bertrand decisions are prices and quantities come from the demand
allocation. Profits may be negative; prices and quantities never are.
"""

import math
from typing import Dict, List, Optional, Sequence

from ..models.market import CompetitionMode, MarketConfig
from ..models.results import (
    FirmRoundResult,
    FirmSummary,
    RealizedParameters,
    ReplicationSummary,
    RoundResult,
)
from .demand import allocate_quantities, inverse_demand


def clamp_decision(value: float, mode: CompetitionMode, config: MarketConfig) -> float:
    """Clamp a decision to the configured bounds and to be non-negative."""
    if mode == CompetitionMode.COURNOT:
        low, high = config.min_quantity, config.max_quantity
    else:
        low, high = config.min_price, config.max_price

    if low is not None:
        value = max(value, low)
    if high is not None:
        value = min(value, high)
    return max(0.0, value)


def validate_decisions(decisions: Dict[int, float], config: MarketConfig) -> None:
    """Check that every firm, and only those firms, has a finite decision.

    Raises:
        ValueError: If a decision is missing, unknown or not finite
    """
    missing = [firm_id for firm_id in config.firm_ids if firm_id not in decisions]
    if missing:
        raise ValueError(f"Missing decisions for firms {missing}")

    unknown = sorted(set(decisions) - set(config.firm_ids))
    if unknown:
        raise ValueError(f"Decisions for unknown firms {unknown}")

    for firm_id, value in decisions.items():
        if not math.isfinite(value):
            raise ValueError(f"Decision for firm {firm_id} must be finite, got {value}")


def resolve_round(
    round_number: int,
    decisions: Dict[int, float],
    config: MarketConfig,
    realized: RealizedParameters,
    replication_number: int = 1,
    reasoning: Optional[Dict[int, str]] = None,
) -> RoundResult:
    """Resolve one round from the decisions of all firms.

    Args:
        round_number: 1-based round number within the replication
        decisions: Quantity (Cournot) or price (Bertrand) per firm id
        config: Market configuration of the experiment
        realized: Parameters drawn for this round
        replication_number: 1-based replication number
        reasoning: Optional free-text reasoning per firm, carried through

    Returns:
        RoundResult with per-firm outcomes and market aggregates

    Raises:
        ValueError: If decisions are missing for any firm
    """
    validate_decisions(decisions, config)
    reasoning = reasoning or {}
    mode = config.mode
    firm_ids = config.firm_ids
    values = [clamp_decision(decisions[firm_id], mode, config) for firm_id in firm_ids]
    demands = [realized.demand_for(firm_id) for firm_id in firm_ids]
    flags: List[str] = []

    if mode == CompetitionMode.COURNOT:
        quantities = values
        total = sum(quantities)
        prices = []
        for firm_id, demand, quantity in zip(firm_ids, demands, quantities):
            evaluation = inverse_demand(demand, quantity, total - quantity, realized.gamma)
            if evaluation.floored:
                flags.append(f"firm {firm_id} price: demand argument floored")
            prices.append(evaluation.value)
    else:
        prices = values
        quantities = []
        evaluations = allocate_quantities(demands, prices, realized.gamma)
        for firm_id, evaluation in zip(firm_ids, evaluations):
            if evaluation.floored:
                flags.append(f"firm {firm_id} quantity: demand argument floored")
            quantities.append(evaluation.value)

    firms = []
    for firm_id, decision, quantity, price in zip(
        firm_ids, values, quantities, prices
    ):
        revenue = price * quantity
        cost = realized.costs_for(firm_id).cost(quantity)
        firms.append(
            FirmRoundResult(
                firm_id=firm_id,
                decision=decision,
                quantity=quantity,
                price=price,
                revenue=revenue,
                cost=cost,
                profit=revenue - cost,
                reasoning=reasoning.get(firm_id),
            )
        )

    return RoundResult(
        round_number=round_number,
        mode=mode,
        firms=tuple(firms),
        market_prices=tuple(prices),
        market_price=sum(prices) / len(prices),
        total_quantity=sum(quantities),
        realized_parameters=realized,
        replication_number=replication_number,
        numeric_flags=tuple(flags),
    )


def summarize_rounds(
    rounds: Sequence[RoundResult], firm_ids: Sequence[int]
) -> ReplicationSummary:
    """Aggregate a set of rounds into per-firm and market averages."""
    n = len(rounds)
    if n == 0:
        return ReplicationSummary(
            num_rounds=0,
            firms=tuple(FirmSummary(firm_id, 0.0, 0.0, 0.0, 0.0) for firm_id in firm_ids),
            average_market_price=0.0,
            average_total_quantity=0.0,
            total_profit=0.0,
        )

    firms = []
    for firm_id in firm_ids:
        outcomes = [r.firm(firm_id) for r in rounds]
        total_profit = sum(o.profit for o in outcomes)
        firms.append(
            FirmSummary(
                firm_id=firm_id,
                total_profit=total_profit,
                average_profit=total_profit / n,
                average_quantity=sum(o.quantity for o in outcomes) / n,
                average_price=sum(o.price for o in outcomes) / n,
            )
        )

    return ReplicationSummary(
        num_rounds=n,
        firms=tuple(firms),
        average_market_price=sum(r.market_price for r in rounds) / n,
        average_total_quantity=sum(r.total_quantity for r in rounds) / n,
        total_profit=sum(f.total_profit for f in firms),
    )
