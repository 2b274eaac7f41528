"""Tests for experiment events and the in-memory event log."""

from src.marketlab.events import EventLog, EventType, ExperimentEvent
from src.marketlab.events.event_types import get_event_category, get_event_description


class TestExperimentEvent:
    """Test event categories and descriptions."""

    def test_categories(self) -> None:
        """Test that every event type has a category."""
        assert get_event_category(EventType.STATE_CHANGED) == "lifecycle"
        assert get_event_category(EventType.REPLICATION_STARTED) == "replication"
        assert get_event_category(EventType.DECISION_RECEIVED) == "round"
        for event_type in EventType:
            assert get_event_category(event_type) != "other"

    def test_description_uses_fields_and_payload(self) -> None:
        """Test that descriptions include firm, round and payload values."""
        event = ExperimentEvent(
            EventType.DECISION_RECEIVED,
            replication_number=1,
            round_number=3,
            firm_id=2,
            data={"value": 25.0},
        )

        assert event.category == "round"
        assert event.description == "Firm 2 decided 25.0"

    def test_state_description(self) -> None:
        """Test the STATE_CHANGED description."""
        event = ExperimentEvent(EventType.STATE_CHANGED, data={"status": "paused"})

        assert event.description == "Experiment is now paused"

    def test_failure_description(self) -> None:
        """Test the ROUND_FAILED description."""
        description = get_event_description(
            EventType.ROUND_FAILED, round_number=4, error="timeout"
        )

        assert description == "Round 4 failed: timeout"

    def test_timestamp_is_set(self) -> None:
        """Test that events are timestamped on creation."""
        event = ExperimentEvent(EventType.EXPERIMENT_COMPLETED)

        assert event.timestamp.tzinfo is not None


class TestEventLog:
    """Test the EventLog listener."""

    def _log(self) -> EventLog:
        log = EventLog()
        log(ExperimentEvent(EventType.REPLICATION_STARTED, replication_number=1))
        log(ExperimentEvent(EventType.ROUND_STARTED, replication_number=1, round_number=1))
        log(ExperimentEvent(EventType.ROUND_COMPLETED, replication_number=1, round_number=1))
        log(ExperimentEvent(EventType.ROUND_STARTED, replication_number=2, round_number=1))
        return log

    def test_records_in_order(self) -> None:
        """Test that events are kept in emission order."""
        log = self._log()

        assert len(log) == 4
        assert log.events[0].event_type == EventType.REPLICATION_STARTED
        assert log.events[-1].replication_number == 2

    def test_of_type(self) -> None:
        """Test filtering by event type."""
        assert len(self._log().of_type(EventType.ROUND_STARTED)) == 2

    def test_for_round(self) -> None:
        """Test filtering by round and replication."""
        log = self._log()

        assert len(log.for_round(1)) == 3
        assert len(log.for_round(1, replication_number=2)) == 1

    def test_descriptions_and_clear(self) -> None:
        """Test descriptions and clearing."""
        log = self._log()

        assert log.descriptions()[0] == "Replication 1 started"
        log.clear()
        assert len(log) == 0
