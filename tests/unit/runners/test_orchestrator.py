"""Tests for the experiment orchestrator state machine and game loop."""

import asyncio
import math
from typing import Any, Dict, List, Tuple

import pytest

from src.marketlab.config import Settings
from src.marketlab.errors import ConfigurationError, ExperimentStateError
from src.marketlab.events import EventLog, EventType
from src.marketlab.models.demand import LinearDemand
from src.marketlab.models.market import (
    FirmSpec,
    InformationDisclosure,
    MarketConfig,
)
from src.marketlab.models.parameters import UniformParameter
from src.marketlab.models.results import FirmCosts
from src.marketlab.randomizer import ParameterRandomizer
from src.marketlab.runners import (
    ExperimentOrchestrator,
    ExperimentStatus,
    RoundContext,
    run_experiment,
)
from tests.utils import (
    FailingProvider,
    RecordingProvider,
    create_communicating_market,
    create_linear_market,
    create_random_market,
)


def _orchestrator(provider: Any, **kwargs: Any) -> Tuple[ExperimentOrchestrator, EventLog]:
    log = EventLog()
    kwargs.setdefault("settings", Settings(decision_timeout_seconds=2.0))
    orchestrator = ExperimentOrchestrator(provider, listeners=[log], **kwargs)
    return orchestrator, log


async def _wait_for_status(
    orchestrator: ExperimentOrchestrator, status: ExperimentStatus
) -> None:
    async def poll() -> None:
        while orchestrator.status != status:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=2.0)


class BarrierProvider(RecordingProvider):
    """Only answers once every firm's request for the round has arrived."""

    def __init__(self, num_firms: int) -> None:
        super().__init__()
        self.num_firms = num_firms
        self.arrivals: Dict[Tuple[int, int], int] = {}
        self.barriers: Dict[Tuple[int, int], asyncio.Event] = {}

    async def request_decision(self, firm_id: int, context: RoundContext) -> Any:
        key = (context.replication_number, context.round_number)
        barrier = self.barriers.setdefault(key, asyncio.Event())
        self.arrivals[key] = self.arrivals.get(key, 0) + 1
        if self.arrivals[key] == self.num_firms:
            barrier.set()
        await barrier.wait()
        return await super().request_decision(firm_id, context)


class HangingProvider:
    """Never answers; records which requests were cancelled."""

    def __init__(self) -> None:
        self.started: List[int] = []
        self.cancelled: List[int] = []

    async def request_decision(self, firm_id: int, context: RoundContext) -> Any:
        self.started.append(firm_id)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append(firm_id)
            raise


class ListSink:
    def __init__(self) -> None:
        self.replications: List[Any] = []
        self.experiments: List[Any] = []

    def save_replication(self, result: Any) -> None:
        self.replications.append(result)

    def save_experiment(self, result: Any) -> None:
        self.experiments.append(result)


class AsyncListSink(ListSink):
    async def save_replication(self, result: Any) -> None:
        await asyncio.sleep(0)
        self.replications.append(result)

    async def save_experiment(self, result: Any) -> None:
        await asyncio.sleep(0)
        self.experiments.append(result)


class BrokenSink:
    def save_replication(self, result: Any) -> None:
        raise IOError("disk full")

    def save_experiment(self, result: Any) -> None:
        raise IOError("disk full")


class TestConfiguration:
    """Test configure/start transitions."""

    def test_configure_returns_benchmarks(self) -> None:
        """Test that configuring computes the equilibria up front."""
        orchestrator, log = _orchestrator(RecordingProvider())

        report = orchestrator.configure(create_linear_market(total_rounds=2))

        assert report.nash.quantities == pytest.approx([30.0, 30.0])
        assert orchestrator.status == ExperimentStatus.CONFIGURING
        assert log.events[-1].data == {"status": "configuring", "previous": "idle"}

    def test_reconfigure_replaces_config(self) -> None:
        """Test that a configured experiment can be configured again."""
        orchestrator, _ = _orchestrator(RecordingProvider())
        orchestrator.configure(create_linear_market())

        orchestrator.configure(create_linear_market(costs=(10.0, 10.0, 10.0)))
        assert orchestrator.config.num_firms == 3

    def test_invalid_config_is_rejected(self) -> None:
        """Test that validation runs before any state change."""
        orchestrator, _ = _orchestrator(RecordingProvider())

        with pytest.raises(ConfigurationError):
            orchestrator.configure(create_linear_market(costs=(10.0,)))
        assert orchestrator.status == ExperimentStatus.IDLE

    async def test_start_requires_configuration(self) -> None:
        """Test that start fails before configure."""
        orchestrator, _ = _orchestrator(RecordingProvider())

        with pytest.raises(ExperimentStateError):
            orchestrator.start()

    async def test_control_operations_check_state(self) -> None:
        """Test pause, resume and configure in states that forbid them."""
        orchestrator, _ = _orchestrator(RecordingProvider())
        with pytest.raises(ExperimentStateError):
            orchestrator.pause()
        with pytest.raises(ExperimentStateError):
            orchestrator.resume()

        orchestrator.configure(create_linear_market(total_rounds=2))
        task = orchestrator.start()
        with pytest.raises(ExperimentStateError, match="running"):
            orchestrator.configure(create_linear_market())
        await task

        with pytest.raises(ExperimentStateError):
            orchestrator.start()
        with pytest.raises(ExperimentStateError):
            orchestrator.pause()


class TestGameLoop:
    """Test complete runs."""

    async def test_full_run(self) -> None:
        """Test rounds, replications, summary and emitted events."""
        orchestrator, log = _orchestrator(RecordingProvider(default=30.0))
        orchestrator.configure(create_linear_market(total_rounds=3, num_replications=2))

        result = await orchestrator.start()

        assert orchestrator.status == ExperimentStatus.COMPLETED
        assert orchestrator.result is result
        assert result.error is None
        assert [r.replication_number for r in result.replications] == [1, 2]
        assert len(result.rounds) == 6
        for round_result in result.rounds:
            assert round_result.market_price == pytest.approx(40.0)
            assert round_result.firm(1).profit == pytest.approx(900.0)
        assert result.summary.num_replications == 2
        assert result.summary.overall.num_rounds == 6
        assert result.summary.nash_deviation == pytest.approx({1: 0.0, 2: 0.0})

        statuses = [e.data["status"] for e in log.of_type(EventType.STATE_CHANGED)]
        assert statuses == ["configuring", "running", "completed"]
        assert len(log.of_type(EventType.ROUND_COMPLETED)) == 6
        assert len(log.of_type(EventType.DECISION_RECEIVED)) == 12
        assert len(log.of_type(EventType.REPLICATION_COMPLETED)) == 2
        assert len(log.of_type(EventType.EXPERIMENT_COMPLETED)) == 1

    async def test_round_event_order(self) -> None:
        """Test that a round starts, collects decisions and then completes."""
        orchestrator, log = _orchestrator(RecordingProvider())
        orchestrator.configure(create_linear_market(total_rounds=1))

        await orchestrator.start()

        types = [e.event_type for e in log.for_round(1)]
        assert types[0] == EventType.ROUND_STARTED
        assert types[1:3] == [EventType.DECISION_RECEIVED] * 2
        assert types[-1] == EventType.ROUND_COMPLETED

    async def test_decisions_are_simultaneous(self) -> None:
        """Test that every firm is asked before any answer is needed."""
        provider = BarrierProvider(num_firms=3)
        orchestrator, _ = _orchestrator(
            provider, settings=Settings(decision_timeout_seconds=1.0)
        )
        orchestrator.configure(create_linear_market(costs=(10.0,) * 3, total_rounds=2))

        result = await orchestrator.start()

        assert result.error is None
        assert len(result.rounds) == 2

    async def test_history_excludes_current_round(self) -> None:
        """Test that contexts only carry completed rounds of the replication."""
        provider = RecordingProvider()
        orchestrator, _ = _orchestrator(provider)
        orchestrator.configure(create_linear_market(total_rounds=3, num_replications=2))

        await orchestrator.start()

        for context in provider.contexts_for(1):
            assert len(context.history) == context.round_number - 1
            assert all(r.replication_number == context.replication_number for r in context.history)

    async def test_reasoning_is_recorded(self) -> None:
        """Test that reasoning from a Decision reaches the round result."""
        orchestrator, _ = _orchestrator(RecordingProvider(reasoning="hold output"))
        orchestrator.configure(create_linear_market(total_rounds=1))

        result = await orchestrator.start()

        assert result.rounds[0].firm(2).reasoning == "hold output"

    async def test_run_experiment(self) -> None:
        """Test the one-call helper."""
        result = await run_experiment(
            create_linear_market(mode="bertrand", gamma=0.5, total_rounds=2),
            RecordingProvider(default=40.0),
            settings=Settings(decision_timeout_seconds=2.0),
        )

        assert len(result.rounds) == 2
        assert result.rounds[0].firm(1).quantity == pytest.approx(40.0)
        assert result.equilibria.nash.prices == pytest.approx([40.0, 40.0])


class TestVariation:
    """Test which rounds share a parameter draw."""

    async def _intercepts(self, variation: str, seed: int = 7) -> List[List[float]]:
        orchestrator, _ = _orchestrator(
            RecordingProvider(), randomizer=ParameterRandomizer(seed=seed)
        )
        orchestrator.configure(
            create_random_market(
                UniformParameter(90.0, 110.0),
                variation=variation,
                total_rounds=3,
                num_replications=2,
            )
        )
        result = await orchestrator.start()
        return [
            [r.realized_parameters.demand.a for r in replication.rounds]
            for replication in result.replications
        ]

    async def test_fixed(self) -> None:
        """Test that a fixed policy uses one draw for the whole experiment."""
        intercepts = await self._intercepts("fixed")

        assert len({a for replication in intercepts for a in replication}) == 1

    async def test_per_replication(self) -> None:
        """Test one draw per replication."""
        first, second = await self._intercepts("per-replication")

        assert len(set(first)) == 1
        assert len(set(second)) == 1
        assert first[0] != second[0]

    async def test_per_round(self) -> None:
        """Test a new draw every round."""
        first, _ = await self._intercepts("per-round")

        assert len(set(first)) == 3
        assert all(90.0 <= a <= 110.0 for a in first)

    async def test_same_seed_same_draws(self) -> None:
        """Test that runs with the same seed are reproducible."""
        assert await self._intercepts("per-round", seed=3) == await self._intercepts(
            "per-round", seed=3
        )


class TestPauseResumeReset:
    """Test pausing, resuming and resetting a running experiment."""

    async def test_pause_at_round_boundary(self) -> None:
        """Test that a pause takes effect before the next round."""
        orchestrator, log = _orchestrator(RecordingProvider())
        orchestrator.configure(create_linear_market(total_rounds=3))

        def pause_after_first(event: Any) -> None:
            if event.event_type == EventType.ROUND_COMPLETED and event.round_number == 1:
                orchestrator.pause()

        orchestrator.add_listener(pause_after_first)
        task = orchestrator.start()
        await _wait_for_status(orchestrator, ExperimentStatus.PAUSED)

        snapshot = orchestrator.snapshot()
        assert snapshot.status == ExperimentStatus.PAUSED
        assert snapshot.completed_rounds == 1
        assert snapshot.total_rounds == 3

        orchestrator.resume()
        result = await task

        assert len(result.rounds) == 3
        statuses = [e.data["status"] for e in log.of_type(EventType.STATE_CHANGED)]
        assert statuses == ["configuring", "running", "paused", "running", "completed"]

    async def test_resume_withdraws_pending_pause(self) -> None:
        """Test that resuming before the boundary cancels the pause request."""
        orchestrator, log = _orchestrator(RecordingProvider())
        orchestrator.configure(create_linear_market(total_rounds=2))

        def pause_then_resume(event: Any) -> None:
            if event.event_type == EventType.ROUND_COMPLETED and event.round_number == 1:
                orchestrator.pause()
                assert orchestrator.snapshot().pause_requested is True
                orchestrator.resume()

        orchestrator.add_listener(pause_then_resume)
        result = await orchestrator.start()

        assert len(result.rounds) == 2
        statuses = [e.data["status"] for e in log.of_type(EventType.STATE_CHANGED)]
        assert "paused" not in statuses

    async def test_reset_discards_everything(self) -> None:
        """Test that reset cancels the loop and returns to idle."""
        orchestrator, log = _orchestrator(RecordingProvider())
        orchestrator.configure(create_linear_market(total_rounds=3))

        def pause_after_first(event: Any) -> None:
            if event.event_type == EventType.ROUND_COMPLETED and event.round_number == 1:
                orchestrator.pause()

        orchestrator.add_listener(pause_after_first)
        task = orchestrator.start()
        await _wait_for_status(orchestrator, ExperimentStatus.PAUSED)

        await orchestrator.reset()

        assert task.cancelled()
        assert orchestrator.status == ExperimentStatus.IDLE
        snapshot = orchestrator.snapshot()
        assert snapshot.completed_rounds == 0
        assert snapshot.replications == ()
        assert orchestrator.config is None
        assert log.events[-1].data == {"status": "idle", "previous": "paused"}

        orchestrator.remove_listener(pause_after_first)
        orchestrator.configure(create_linear_market(total_rounds=1))
        result = await orchestrator.start()
        assert len(result.rounds) == 1

    async def test_reset_cancels_outstanding_requests(self) -> None:
        """Test that reset mid-round cancels every decision request."""
        provider = HangingProvider()
        orchestrator, log = _orchestrator(
            provider, settings=Settings(decision_timeout_seconds=30.0)
        )
        orchestrator.configure(create_linear_market(total_rounds=3))

        task = orchestrator.start()

        async def both_requested() -> None:
            while len(provider.started) < 2:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(both_requested(), timeout=2.0)
        await orchestrator.reset()

        assert sorted(provider.cancelled) == [1, 2]
        assert task.cancelled()
        assert orchestrator.status == ExperimentStatus.IDLE
        assert orchestrator.snapshot().completed_rounds == 0
        assert log.of_type(EventType.ROUND_COMPLETED) == []
        assert log.events[-1].data == {"status": "idle", "previous": "running"}


class TestFailures:
    """Test failed rounds under both timeout policies."""

    async def test_abort_keeps_completed_rounds(self) -> None:
        """Test that an aborted experiment keeps the rounds played so far."""
        orchestrator, log = _orchestrator(FailingProvider(firm_id=2, round_number=2))
        orchestrator.configure(create_linear_market(total_rounds=3))

        result = await orchestrator.start()

        assert orchestrator.status == ExperimentStatus.COMPLETED
        assert result.error == "Firm 2, round 2: provider unavailable"
        assert len(result.replications) == 1
        assert len(result.rounds) == 1

        failed = log.of_type(EventType.ROUND_FAILED)
        assert len(failed) == 1
        assert failed[0].firm_id == 2
        assert log.of_type(EventType.EXPERIMENT_COMPLETED)[0].data["error"] == result.error

    async def test_timeout(self) -> None:
        """Test that a stalled provider is timed out."""
        orchestrator, _ = _orchestrator(
            FailingProvider(firm_id=1, round_number=1, delay=5.0),
            settings=Settings(decision_timeout_seconds=0.05),
        )
        orchestrator.configure(create_linear_market(total_rounds=2))

        result = await orchestrator.start()

        assert "Firm 1, round 1: no decision within" in result.error
        assert result.replications == ()
        assert result.summary.overall.num_rounds == 0
        assert result.summary.nash_deviation == {}

    async def test_pause_policy_retries_same_draw(self) -> None:
        """Test that the pause policy replays the failed round with the same parameters."""
        provider = FailingProvider(firm_id=1, round_number=2)
        orchestrator, log = _orchestrator(
            provider,
            randomizer=ParameterRandomizer(seed=11),
            settings=Settings(decision_timeout_seconds=2.0, timeout_policy="pause"),
        )
        orchestrator.configure(
            create_random_market(UniformParameter(90.0, 110.0), variation="per-round")
        )

        task = orchestrator.start()
        await _wait_for_status(orchestrator, ExperimentStatus.PAUSED)
        assert orchestrator.snapshot().completed_rounds == 1

        orchestrator.resume()
        result = await task

        assert result.error is None
        assert len(result.rounds) == 3
        assert len(log.of_type(EventType.ROUND_FAILED)) == 1

        round_two = [c for c in provider.contexts_for(1) if c.round_number == 2]
        assert len(round_two) == 2
        assert round_two[0].demand == round_two[1].demand
        assert round_two[1].demand == result.rounds[1].realized_parameters.demand

    async def test_non_finite_decision(self) -> None:
        """Test that NaN decisions fail the round."""
        orchestrator, _ = _orchestrator(RecordingProvider(values={1: math.nan}))
        orchestrator.configure(create_linear_market(total_rounds=1))

        result = await orchestrator.start()

        assert "is not finite" in result.error

    async def test_non_numeric_decision(self) -> None:
        """Test that unparseable decisions fail the round."""
        orchestrator, _ = _orchestrator(RecordingProvider(values={2: "plenty"}))
        orchestrator.configure(create_linear_market(total_rounds=1))

        result = await orchestrator.start()

        assert "Firm 2, round 1" in result.error
        assert "is not a number" in result.error


class TestRoundContext:
    """Test what providers are told."""

    async def test_communication_phase(self) -> None:
        """Test that messages cycle through firms before decisions."""
        provider = RecordingProvider()
        orchestrator, log = _orchestrator(provider)
        orchestrator.configure(create_communicating_market(messages_per_round=3))

        result = await orchestrator.start()

        conversation = result.rounds[0].communication
        assert [m.firm_id for m in conversation] == [1, 2, 1]
        assert conversation[1].message == "message 2 from firm 2"
        assert [len(c.conversation) for c in provider.message_contexts[:3]] == [0, 1, 2]
        assert all(len(c.conversation) == 3 for c in provider.decision_contexts)
        assert len(log.of_type(EventType.COMMUNICATION_MESSAGE)) == 6

    async def test_no_messages_without_communication(self) -> None:
        """Test that the communication phase is skipped when disabled."""
        provider = RecordingProvider()
        orchestrator, _ = _orchestrator(provider)
        orchestrator.configure(create_linear_market(total_rounds=1))

        result = await orchestrator.start()

        assert provider.message_contexts == []
        assert result.rounds[0].communication == ()

    async def test_information_disclosure(self) -> None:
        """Test that hidden fields are withheld per firm."""
        provider = RecordingProvider()
        config = MarketConfig(
            firms=(
                FirmSpec(
                    firm_id=1,
                    info=InformationDisclosure(
                        reveal_demand_function=False, reveal_own_costs=False
                    ),
                ),
                FirmSpec(
                    firm_id=2,
                    linear_cost=20.0,
                    info=InformationDisclosure(reveal_rival_costs=True),
                ),
            ),
            total_rounds=1,
        )
        orchestrator, _ = _orchestrator(provider)
        orchestrator.configure(config)

        await orchestrator.start()

        first = provider.contexts_for(1)[0]
        assert first.demand is None
        assert first.gamma is None
        assert first.own_costs is None
        assert first.rival_costs == ()

        second = provider.contexts_for(2)[0]
        assert second.demand == LinearDemand(a=100.0, b=1.0)
        assert second.own_costs == FirmCosts(firm_id=2, linear_cost=20.0, quadratic_cost=0.0)
        assert second.rival_costs == (FirmCosts(firm_id=1, linear_cost=10.0, quadratic_cost=0.0),)
        assert second.rival_ids == [1]

    async def test_decision_bounds(self) -> None:
        """Test that the bounds match the competition mode."""
        provider = RecordingProvider(default=40.0)
        orchestrator, _ = _orchestrator(provider)
        orchestrator.configure(
            create_linear_market(
                mode="bertrand", gamma=0.5, total_rounds=1, max_quantity=50.0, max_price=80.0
            )
        )

        await orchestrator.start()

        context = provider.decision_contexts[0]
        assert context.min_decision is None
        assert context.max_decision == 80.0


class TestListenersAndSinks:
    """Test that observers cannot break a run."""

    async def test_failing_listener_is_ignored(self) -> None:
        """Test that listener exceptions are logged and swallowed."""

        def broken(event: Any) -> None:
            raise RuntimeError("listener bug")

        orchestrator, log = _orchestrator(RecordingProvider())
        orchestrator.add_listener(broken)
        orchestrator.configure(create_linear_market(total_rounds=2))

        result = await orchestrator.start()

        assert len(result.rounds) == 2
        assert len(log.of_type(EventType.EXPERIMENT_COMPLETED)) == 1

    @pytest.mark.parametrize("sink_class", [ListSink, AsyncListSink])
    async def test_sink_receives_results(self, sink_class: Any) -> None:
        """Test that replications and the experiment are saved."""
        sink = sink_class()
        orchestrator, _ = _orchestrator(RecordingProvider(), sink=sink)
        orchestrator.configure(create_linear_market(total_rounds=2, num_replications=2))

        result = await orchestrator.start()

        assert [r.replication_number for r in sink.replications] == [1, 2]
        assert sink.experiments == [result]

    async def test_failing_sink_does_not_abort(self) -> None:
        """Test that sink errors are not experiment errors."""
        orchestrator, _ = _orchestrator(RecordingProvider(), sink=BrokenSink())
        orchestrator.configure(create_linear_market(total_rounds=2))

        result = await orchestrator.start()

        assert result.error is None
        assert orchestrator.status == ExperimentStatus.COMPLETED
