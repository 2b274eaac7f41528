"""Experiment orchestration and built-in decision providers."""

from .orchestrator import (
    Decision,
    DecisionProvider,
    ExperimentOrchestrator,
    ExperimentResult,
    ExperimentSnapshot,
    ExperimentStatus,
    ResultSink,
    RoundContext,
    run_experiment,
)
from .providers import BestResponseProvider, StaticProvider, TitForTatProvider

__all__ = [
    "BestResponseProvider",
    "Decision",
    "DecisionProvider",
    "ExperimentOrchestrator",
    "ExperimentResult",
    "ExperimentSnapshot",
    "ExperimentStatus",
    "ResultSink",
    "RoundContext",
    "StaticProvider",
    "TitForTatProvider",
    "run_experiment",
]
