"""Event type definitions for market experiments.

The orchestrator pushes an ExperimentEvent to its listeners for every state
change and every step of the game loop, which is how presentation layers
follow a running experiment.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    """Events emitted while an experiment runs."""

    # Lifecycle
    STATE_CHANGED = "state_changed"
    EXPERIMENT_COMPLETED = "experiment_completed"

    # Replications
    REPLICATION_STARTED = "replication_started"
    REPLICATION_COMPLETED = "replication_completed"

    # Rounds
    ROUND_STARTED = "round_started"
    COMMUNICATION_MESSAGE = "communication_message"
    DECISION_RECEIVED = "decision_received"
    ROUND_COMPLETED = "round_completed"
    ROUND_FAILED = "round_failed"


@dataclass(frozen=True)
class ExperimentEvent:
    """One event from a running experiment.

    ``data`` holds the event's payload, e.g. the new status for
    STATE_CHANGED or the RoundResult for ROUND_COMPLETED.
    """

    event_type: EventType
    replication_number: Optional[int] = None
    round_number: Optional[int] = None
    firm_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def category(self) -> str:
        return get_event_category(self.event_type)

    @property
    def description(self) -> str:
        return get_event_description(
            self.event_type,
            replication_number=self.replication_number,
            round_number=self.round_number,
            firm_id=self.firm_id,
            **self.data,
        )


def get_event_category(event_type: EventType) -> str:
    """Get the category for an event type.

    Args:
        event_type: The event type to categorize

    Returns:
        Category string for grouping events
    """
    category_map = {
        EventType.STATE_CHANGED: "lifecycle",
        EventType.EXPERIMENT_COMPLETED: "lifecycle",
        EventType.REPLICATION_STARTED: "replication",
        EventType.REPLICATION_COMPLETED: "replication",
        EventType.ROUND_STARTED: "round",
        EventType.COMMUNICATION_MESSAGE: "round",
        EventType.DECISION_RECEIVED: "round",
        EventType.ROUND_COMPLETED: "round",
        EventType.ROUND_FAILED: "round",
    }

    return category_map.get(event_type, "other")


def get_event_description(event_type: EventType, **kwargs: Any) -> str:
    """Generate a human-readable description for an event.

    Args:
        event_type: The type of event
        **kwargs: Event fields and payload used in the description

    Returns:
        Human-readable event description
    """
    firm = kwargs.get("firm_id", "unknown")
    round_number = kwargs.get("round_number", "?")
    replication = kwargs.get("replication_number", "?")
    descriptions = {
        EventType.STATE_CHANGED: f"Experiment is now {kwargs.get('status', 'unknown')}",
        EventType.EXPERIMENT_COMPLETED: "Experiment completed",
        EventType.REPLICATION_STARTED: f"Replication {replication} started",
        EventType.REPLICATION_COMPLETED: f"Replication {replication} completed",
        EventType.ROUND_STARTED: f"Round {round_number} of replication {replication} started",
        EventType.COMMUNICATION_MESSAGE: f"Firm {firm} sent a message",
        EventType.DECISION_RECEIVED: f"Firm {firm} decided {kwargs.get('value', '?')}",
        EventType.ROUND_COMPLETED: f"Round {round_number} of replication {replication} completed",
        EventType.ROUND_FAILED: f"Round {round_number} failed: {kwargs.get('error', 'unknown error')}",
    }

    return descriptions.get(event_type, f"Event of type {event_type.value}")
