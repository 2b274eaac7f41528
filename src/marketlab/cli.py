"""Command-line interface for the market experiment engine.

Provides commands to compute the theoretical benchmarks of a linear-demand
market, to resolve a single round, and to simulate an experiment with
rule-based firms.
"""

import argparse
import asyncio
import math
import sys
from typing import List, Optional

from .equilibrium import compute_equilibria
from .errors import MarketLabError
from .games import resolve_round
from .games._parsing import parse_costs, parse_decisions
from .models.demand import LinearDemandSpec
from .models.market import FirmSpec, MarketConfig
from .randomizer import expected_parameters
from .runners import BestResponseProvider, TitForTatProvider, run_experiment
from .validation import validate_market_config


def _add_market_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode",
        choices=["cournot", "bertrand"],
        default="cournot",
        help="Competition mode (default: cournot)",
    )
    parser.add_argument(
        "--a", type=float, default=100.0, help="Demand intercept a in P = a - b*Q"
    )
    parser.add_argument(
        "--b", type=float, default=1.0, help="Demand slope b in P = a - b*Q"
    )
    parser.add_argument(
        "--gamma",
        type=float,
        default=1.0,
        help="Product differentiation, 0 (independent) to 1 (homogeneous)",
    )
    parser.add_argument(
        "--costs",
        type=str,
        required=True,
        help="Comma-separated linear costs for each firm (e.g., '10,20')",
    )
    parser.add_argument(
        "--quadratic-costs",
        type=str,
        default=None,
        help="Comma-separated quadratic costs d for each firm (default: 0)",
    )


def _build_config(args: argparse.Namespace, total_rounds: int = 1) -> MarketConfig:
    costs = parse_costs(args.costs)
    if args.quadratic_costs:
        quadratic = parse_costs(args.quadratic_costs)
        if len(quadratic) != len(costs):
            raise ValueError(
                f"Got {len(costs)} linear costs but {len(quadratic)} quadratic costs"
            )
    else:
        quadratic = [0.0] * len(costs)

    config = MarketConfig(
        firms=tuple(
            FirmSpec(firm_id=i, linear_cost=c, quadratic_cost=d)
            for i, (c, d) in enumerate(zip(costs, quadratic), start=1)
        ),
        demand=LinearDemandSpec(intercept=args.a, slope=args.b),
        mode=args.mode,
        gamma=args.gamma,
        total_rounds=total_rounds,
    )
    validate_market_config(config)
    return config


def _format(value: float) -> str:
    return "n/a" if not math.isfinite(value) else f"{value:.4f}"


def equilibria_main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for the benchmark computation."""
    parser = argparse.ArgumentParser(
        description="Compute Nash and cooperative benchmarks for a linear-demand market",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  marketlab-equilibria --a 100 --b 1 --costs 10,10
  marketlab-equilibria --mode bertrand --gamma 0.5 --costs 10,20
        """,
    )
    _add_market_arguments(parser)
    args = parser.parse_args(argv)

    try:
        config = _build_config(args)
        report = compute_equilibria(config)

        for label, result in (("Nash", report.nash), ("Cooperative", report.cooperative)):
            if not result.calculable:
                print(f"{label}: not calculable ({result.message})")
                continue
            print(f"{label}: Q={_format(result.total_quantity)}, "
                  f"P={_format(result.average_market_price)}")
            for firm in result.firms:
                print(f"  q_{firm.firm_id}={_format(firm.quantity)}, "
                      f"p_{firm.firm_id}={_format(firm.price)}, "
                      f"π_{firm.firm_id}={_format(firm.profit)}")
            if result.message:
                print(f"  note: {result.message}")

        if report.limit_pricing is not None:
            analysis = report.limit_pricing
            print(f"Regime: {analysis.regime.value} "
                  f"(asymmetry index {_format(analysis.asymmetry_index)})")

    except (MarketLabError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


def round_main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for resolving one round."""
    parser = argparse.ArgumentParser(
        description="Resolve one round of a linear-demand market",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  marketlab-round --a 100 --b 1 --costs 10,20 --decisions 30,25
  marketlab-round --mode bertrand --gamma 0.5 --costs 10,10 --decisions 40,45
        """,
    )
    _add_market_arguments(parser)
    parser.add_argument(
        "--decisions",
        type=str,
        required=True,
        help="Comma-separated quantities (Cournot) or prices (Bertrand) per firm",
    )
    args = parser.parse_args(argv)

    try:
        config = _build_config(args)
        values = parse_decisions(args.decisions)
        if len(values) != config.num_firms:
            raise ValueError(
                f"Got {len(values)} decisions for {config.num_firms} firms"
            )
        decisions = dict(zip(config.firm_ids, values))
        result = resolve_round(1, decisions, config, expected_parameters(config))

        print(f"P={result.market_price}, Q={result.total_quantity}")
        for firm in result.firms:
            print(f"q_{firm.firm_id}={firm.quantity}, p_{firm.firm_id}={firm.price}, "
                  f"π_{firm.firm_id}={firm.profit}")
        for flag in result.numeric_flags:
            print(f"note: {flag}")

    except (MarketLabError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


def simulate_main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for a simulated experiment with rule-based firms."""
    parser = argparse.ArgumentParser(
        description="Simulate a repeated linear-demand market with rule-based firms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  marketlab-simulate --costs 10,20 --rounds 10
  marketlab-simulate --mode bertrand --gamma 0.5 --costs 10,10 --strategy tit-for-tat --initial 50
        """,
    )
    _add_market_arguments(parser)
    parser.add_argument("--rounds", type=int, default=10, help="Rounds to play")
    parser.add_argument(
        "--strategy",
        choices=["best-response", "tit-for-tat"],
        default="best-response",
        help="Rule every firm follows (best-response needs Cournot)",
    )
    parser.add_argument(
        "--initial",
        type=float,
        default=20.0,
        help="Opening decision for tit-for-tat",
    )
    args = parser.parse_args(argv)

    try:
        config = _build_config(args, total_rounds=args.rounds)
        if args.strategy == "best-response":
            provider = BestResponseProvider(config)
        else:
            provider = TitForTatProvider(initial=args.initial)
        result = asyncio.run(run_experiment(config, provider))

        for round_result in result.rounds:
            decisions = ", ".join(f"{f.decision:.2f}" for f in round_result.firms)
            print(f"round {round_result.round_number}: decisions=[{decisions}], "
                  f"P={round_result.market_price:.4f}")
        overall = result.summary.overall
        print(f"average P={overall.average_market_price:.4f}, "
              f"average Q={overall.average_total_quantity:.4f}")
        for firm_id, deviation in sorted(result.summary.nash_deviation.items()):
            print(f"firm {firm_id} distance from Nash: {deviation:.4f}")

    except (MarketLabError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    """Main CLI entry point - defaults to the benchmark computation."""
    equilibria_main()


if __name__ == "__main__":
    main()
