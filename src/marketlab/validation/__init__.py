"""Configuration validation for market experiments."""

from .config_validation import validate_demand_spec, validate_market_config

__all__ = ["validate_demand_spec", "validate_market_config"]
