"""In-memory event log.

An EventLog is a listener: register it with an orchestrator and it keeps
every event it receives, in order, for later inspection or replay.
"""

from typing import List, Optional

from .event_types import EventType, ExperimentEvent


class EventLog:
    """Ordered record of the events of one experiment."""

    def __init__(self) -> None:
        self.events: List[ExperimentEvent] = []

    def __call__(self, event: ExperimentEvent) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)

    def of_type(self, event_type: EventType) -> List[ExperimentEvent]:
        """Events of one type, in emission order."""
        return [e for e in self.events if e.event_type == event_type]

    def for_round(
        self, round_number: int, replication_number: Optional[int] = None
    ) -> List[ExperimentEvent]:
        """Events of one round (optionally of one replication)."""
        return [
            e
            for e in self.events
            if e.round_number == round_number
            and (replication_number is None or e.replication_number == replication_number)
        ]

    def descriptions(self) -> List[str]:
        return [e.description for e in self.events]

    def clear(self) -> None:
        self.events.clear()
