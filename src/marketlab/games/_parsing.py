"""CLI string-parsing helpers.

These convert comma-separated command-line strings into typed lists and
keep argument parsing out of the resolver and solver modules.
"""

from typing import List


def parse_values(values_str: str, label: str) -> List[float]:
    """Parse a comma-separated string into a list of floats.

    Args:
        values_str: Comma-separated values (e.g., "10,20,30")
        label: Name used in error messages (e.g., "costs")

    Raises:
        ValueError: If the string is empty or a value is not a number
    """
    if not values_str.strip():
        raise ValueError(f"{label.capitalize()} list cannot be empty")

    try:
        values = [float(x.strip()) for x in values_str.split(",") if x.strip()]
    except ValueError as e:
        raise ValueError(f"Invalid {label} format '{values_str}': {e}")
    if not values:
        raise ValueError(f"{label.capitalize()} list cannot be empty")
    return values


def parse_costs(costs_str: str) -> List[float]:
    """Parse comma-separated costs; every cost must be non-negative."""
    costs = parse_values(costs_str, "costs")
    if any(cost < 0 for cost in costs):
        raise ValueError(f"Costs must be non-negative, got {costs}")
    return costs


def parse_decisions(decisions_str: str) -> List[float]:
    return parse_values(decisions_str, "decisions")
