"""Event system for market experiments.

Listeners receive ExperimentEvent objects pushed by the orchestrator;
EventLog is a ready-made listener that records them.
"""

from .event_log import EventLog
from .event_types import EventType, ExperimentEvent

__all__ = ["EventLog", "EventType", "ExperimentEvent"]
