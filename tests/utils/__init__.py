"""Test utilities package for market experiment tests.

This package provides shared market configurations and recording
providers used across the unit and integration tests.
"""

from .providers import FailingProvider, RecordingProvider
from .test_data import (
    create_communicating_market,
    create_linear_market,
    create_random_market,
    create_realized_linear,
    create_sample_legacy_config,
)

__all__ = [
    # Providers
    "FailingProvider",
    "RecordingProvider",
    # Market data
    "create_communicating_market",
    "create_linear_market",
    "create_random_market",
    "create_realized_linear",
    "create_sample_legacy_config",
]
