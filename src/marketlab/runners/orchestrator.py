"""Experiment orchestrator.

Runs replications of a multi-round game against an external decision
provider. The orchestrator is a small state machine:

    idle -> configuring -> running <-> paused -> completed

and ``reset`` returns it to idle from any state. Each round draws (or
reuses) realized parameters according to the variation policy, runs an
optional communication phase, requests every firm's decision concurrently
and resolves the round once all decisions are in.
"""

import asyncio
import contextlib
import inspect
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
)

from ..config import Settings, get_settings
from ..equilibrium import compute_equilibria
from ..errors import DecisionProviderError, DecisionTimeoutError, ExperimentStateError
from ..events.event_types import EventType, ExperimentEvent
from ..games.market import resolve_round, summarize_rounds
from ..logging import get_logger
from ..models.demand import Demand
from ..models.market import (
    CompetitionMode,
    InformationDisclosure,
    MarketConfig,
    VariationPolicy,
)
from ..models.results import (
    CommunicationMessage,
    EquilibriumReport,
    ExperimentSummary,
    FirmCosts,
    RealizedParameters,
    ReplicationResult,
    RoundResult,
)
from ..randomizer import ParameterRandomizer
from ..validation import validate_market_config

logger = get_logger(__name__)


class ExperimentStatus(str, Enum):
    """Lifecycle states of an experiment."""

    IDLE = "idle"
    CONFIGURING = "configuring"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


_TRANSITIONS = {
    ExperimentStatus.IDLE: {ExperimentStatus.CONFIGURING},
    ExperimentStatus.CONFIGURING: {ExperimentStatus.CONFIGURING, ExperimentStatus.RUNNING},
    ExperimentStatus.RUNNING: {ExperimentStatus.PAUSED, ExperimentStatus.COMPLETED},
    ExperimentStatus.PAUSED: {ExperimentStatus.RUNNING},
    ExperimentStatus.COMPLETED: set(),
}


@dataclass(frozen=True)
class Decision:
    """A firm's decision for one round: a quantity (Cournot) or a price (Bertrand)."""

    value: float
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class RoundContext:
    """What a firm's decision provider is told before it decides.

    Fields hidden by the firm's InformationDisclosure are None (or empty).
    ``history`` holds the completed rounds of the current replication and
    ``conversation`` the messages sent so far this round; neither ever
    contains a decision from the round being played.
    """

    firm_id: int
    mode: CompetitionMode
    round_number: int
    total_rounds: int
    replication_number: int
    num_replications: int
    num_firms: int
    model: str
    disclosure: InformationDisclosure
    demand: Optional[Demand] = None
    gamma: Optional[float] = None
    own_costs: Optional[FirmCosts] = None
    rival_costs: Tuple[FirmCosts, ...] = ()
    min_decision: Optional[float] = None
    max_decision: Optional[float] = None
    history: Tuple[RoundResult, ...] = ()
    conversation: Tuple[CommunicationMessage, ...] = ()

    @property
    def rival_ids(self) -> List[int]:
        return [i for i in range(1, self.num_firms + 1) if i != self.firm_id]


class DecisionProvider(Protocol):
    """Source of firm decisions, e.g. a language model client."""

    async def request_decision(self, firm_id: int, context: RoundContext) -> Decision:
        ...

    async def request_message(self, firm_id: int, context: RoundContext) -> str:
        ...


class ResultSink(Protocol):
    """Optional persistence for completed results.

    Methods may be plain functions or coroutines. Failures are logged and
    never abort the experiment.
    """

    def save_replication(self, result: ReplicationResult) -> Any:
        ...

    def save_experiment(self, result: "ExperimentResult") -> Any:
        ...


EventListener = Callable[[ExperimentEvent], None]


@dataclass(frozen=True)
class ExperimentResult:
    """Final record of an experiment.

    ``error`` is set when the experiment ended early because a round
    failed; the replications played up to that point are preserved, the
    interrupted one included if it completed any rounds.
    """

    config: MarketConfig
    equilibria: EquilibriumReport
    replications: Tuple[ReplicationResult, ...]
    summary: ExperimentSummary
    started_at: datetime
    completed_at: datetime
    error: Optional[str] = None

    @property
    def rounds(self) -> List[RoundResult]:
        return [r for replication in self.replications for r in replication.rounds]


@dataclass(frozen=True)
class ExperimentSnapshot:
    """Point-in-time view of an orchestrator."""

    status: ExperimentStatus
    replication_number: int
    completed_rounds: int
    total_rounds: int
    num_replications: int
    rounds: Tuple[RoundResult, ...] = ()
    replications: Tuple[ReplicationResult, ...] = ()
    equilibria: Optional[EquilibriumReport] = None
    pause_requested: bool = False
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ExperimentOrchestrator:
    """Drives one experiment from configuration to completion."""

    def __init__(
        self,
        provider: DecisionProvider,
        *,
        randomizer: Optional[ParameterRandomizer] = None,
        settings: Optional[Settings] = None,
        listeners: Optional[Iterable[EventListener]] = None,
        sink: Optional[ResultSink] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            provider: Source of firm decisions and messages
            randomizer: Random source for parameter draws; seeded from
                ``settings.default_seed`` when omitted
            settings: Limits, timeouts and timeout policy
            listeners: Callables receiving every ExperimentEvent
            sink: Optional persistence for completed results
        """
        self.provider = provider
        self.settings = settings or get_settings()
        self.randomizer = randomizer or ParameterRandomizer(seed=self.settings.default_seed)
        self.sink = sink
        self._listeners: List[EventListener] = list(listeners or [])
        self.status = ExperimentStatus.IDLE
        self._clear()

    def _clear(self) -> None:
        self.config: Optional[MarketConfig] = None
        self.equilibria: Optional[EquilibriumReport] = None
        self.replications: List[ReplicationResult] = []
        self.result: Optional[ExperimentResult] = None
        self.error: Optional[str] = None
        self._rounds: List[RoundResult] = []
        self._replication_number = 0
        self._fixed_parameters: Optional[RealizedParameters] = None
        self._replication_parameters: Optional[RealizedParameters] = None
        self._pending_parameters: Optional[RealizedParameters] = None
        self._pause_requested = False
        self._resume_event = asyncio.Event()
        self._task: Optional["asyncio.Task[ExperimentResult]"] = None
        self._started_at: Optional[datetime] = None

    # Listeners

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        self._listeners.remove(listener)

    def _emit(self, event_type: EventType, **kwargs: Any) -> None:
        event = ExperimentEvent(event_type=event_type, **kwargs)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {event_type.value}: {e}")

    def _set_status(self, status: ExperimentStatus) -> None:
        previous = self.status
        if status not in _TRANSITIONS[previous]:
            raise ExperimentStateError(
                f"Cannot move from {previous.value} to {status.value}"
            )
        self.status = status
        logger.info(f"Experiment state {previous.value} -> {status.value}")
        self._emit(
            EventType.STATE_CHANGED,
            data={"status": status.value, "previous": previous.value},
        )

    # Control operations

    def configure(self, config: MarketConfig) -> EquilibriumReport:
        """Validate a configuration and compute its benchmarks.

        Raises:
            ConfigurationError: If the configuration is invalid
            ExperimentStateError: If an experiment has already started
        """
        if self.status not in (ExperimentStatus.IDLE, ExperimentStatus.CONFIGURING):
            raise ExperimentStateError(
                f"Cannot configure an experiment that is {self.status.value}"
            )
        validate_market_config(config, self.settings)
        self.equilibria = compute_equilibria(config)
        self.config = config
        logger.info(
            f"Configured {config.mode.value} experiment with {config.num_firms} firms, "
            f"{config.total_rounds} rounds x {config.num_replications} replications"
        )
        self._set_status(ExperimentStatus.CONFIGURING)
        return self.equilibria

    def start(self) -> "asyncio.Task[ExperimentResult]":
        """Start the game loop on the running event loop.

        Returns:
            The loop task; its result is the ExperimentResult

        Raises:
            ExperimentStateError: Unless the experiment is configured
        """
        if self.status != ExperimentStatus.CONFIGURING or self.config is None:
            raise ExperimentStateError(
                f"Cannot start an experiment that is {self.status.value}"
            )
        self._started_at = _now()
        if self.config.variation == VariationPolicy.FIXED:
            self._fixed_parameters = self.randomizer.draw_parameters(self.config)
        self._set_status(ExperimentStatus.RUNNING)
        self._task = asyncio.create_task(self._run_loop())
        return self._task

    def pause(self) -> None:
        """Pause at the next round boundary.

        Raises:
            ExperimentStateError: Unless the experiment is running
        """
        if self.status != ExperimentStatus.RUNNING:
            raise ExperimentStateError(
                f"Cannot pause an experiment that is {self.status.value}"
            )
        self._pause_requested = True
        logger.info("Pause requested")

    def resume(self) -> None:
        """Continue a paused experiment, or withdraw a pending pause request.

        Raises:
            ExperimentStateError: If the experiment is neither paused nor
                waiting to pause
        """
        if self.status == ExperimentStatus.RUNNING and self._pause_requested:
            self._pause_requested = False
            return
        if self.status != ExperimentStatus.PAUSED:
            raise ExperimentStateError(
                f"Cannot resume an experiment that is {self.status.value}"
            )
        self._set_status(ExperimentStatus.RUNNING)
        self._resume_event.set()

    async def reset(self) -> None:
        """Cancel any running loop, discard all results and return to idle."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        previous = self.status
        self._clear()
        self.status = ExperimentStatus.IDLE
        logger.info(f"Experiment reset from {previous.value}")
        self._emit(
            EventType.STATE_CHANGED,
            data={"status": ExperimentStatus.IDLE.value, "previous": previous.value},
        )

    def snapshot(self) -> ExperimentSnapshot:
        config = self.config
        return ExperimentSnapshot(
            status=self.status,
            replication_number=self._replication_number,
            completed_rounds=len(self._rounds),
            total_rounds=config.total_rounds if config else 0,
            num_replications=config.num_replications if config else 0,
            rounds=tuple(self._rounds),
            replications=tuple(self.replications),
            equilibria=self.equilibria,
            pause_requested=self._pause_requested,
            error=self.error,
        )

    # Game loop

    async def _run_loop(self) -> ExperimentResult:
        config = self.config
        assert config is not None
        try:
            for replication_number in range(1, config.num_replications + 1):
                completed = await self._run_replication(config, replication_number)
                if not completed:
                    return await self._finish(config)
            return await self._finish(config)
        except asyncio.CancelledError:
            logger.info("Experiment loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Experiment loop failed: {e}")
            self.error = str(e)
            await self._finish(config)
            raise

    async def _run_replication(self, config: MarketConfig, replication_number: int) -> bool:
        """Play one replication; returns False if the experiment was aborted."""
        self._replication_number = replication_number
        self._rounds = []
        started_at = _now()
        if config.variation == VariationPolicy.PER_REPLICATION:
            self._replication_parameters = self.randomizer.draw_parameters(config)
        self._emit(EventType.REPLICATION_STARTED, replication_number=replication_number)

        round_number = 1
        while round_number <= config.total_rounds:
            await self._checkpoint()
            if self._pending_parameters is None:
                self._pending_parameters = self._parameters_for_round(config)
            try:
                result = await self._play_round(
                    config, replication_number, round_number, self._pending_parameters
                )
            except DecisionProviderError as e:
                logger.warning(f"Round {round_number} failed: {e}")
                self._emit(
                    EventType.ROUND_FAILED,
                    replication_number=replication_number,
                    round_number=round_number,
                    firm_id=e.firm_id,
                    data={"error": str(e)},
                )
                if self.settings.timeout_policy == "pause":
                    # Retried with the same draw once resumed.
                    self._pause_requested = True
                    continue
                self.error = str(e)
                if self._rounds:
                    await self._complete_replication(replication_number, started_at)
                return False

            self._pending_parameters = None
            self._rounds.append(result)
            self._emit(
                EventType.ROUND_COMPLETED,
                replication_number=replication_number,
                round_number=round_number,
                data={"result": result},
            )
            logger.info(
                f"Replication {replication_number} round {round_number} completed: "
                f"market price {result.market_price:.2f}, "
                f"total quantity {result.total_quantity:.2f}"
            )
            round_number += 1

        await self._complete_replication(replication_number, started_at)
        return True

    async def _checkpoint(self) -> None:
        if not self._pause_requested:
            return
        self._pause_requested = False
        self._resume_event.clear()
        self._set_status(ExperimentStatus.PAUSED)
        await self._resume_event.wait()

    def _parameters_for_round(self, config: MarketConfig) -> RealizedParameters:
        if config.variation == VariationPolicy.FIXED:
            assert self._fixed_parameters is not None
            return self._fixed_parameters
        if config.variation == VariationPolicy.PER_REPLICATION:
            assert self._replication_parameters is not None
            return self._replication_parameters
        return self.randomizer.draw_parameters(config)

    async def _complete_replication(
        self, replication_number: int, started_at: datetime
    ) -> None:
        assert self.config is not None
        replication = ReplicationResult(
            replication_number=replication_number,
            rounds=tuple(self._rounds),
            summary=summarize_rounds(self._rounds, self.config.firm_ids),
            started_at=started_at,
            completed_at=_now(),
        )
        self.replications.append(replication)
        self._emit(
            EventType.REPLICATION_COMPLETED,
            replication_number=replication_number,
            data={"result": replication},
        )
        if self.sink is not None:
            await self._save(self.sink.save_replication, replication)

    async def _play_round(
        self,
        config: MarketConfig,
        replication_number: int,
        round_number: int,
        realized: RealizedParameters,
    ) -> RoundResult:
        self._emit(
            EventType.ROUND_STARTED,
            replication_number=replication_number,
            round_number=round_number,
        )

        conversation: List[CommunicationMessage] = []
        if config.communication.allow_communication:
            for i in range(config.communication.messages_per_round):
                firm_id = config.firm_ids[i % config.num_firms]
                context = self._build_context(
                    config, firm_id, replication_number, round_number, realized, conversation
                )
                message = await self._request(
                    self.provider.request_message(firm_id, context), firm_id, round_number
                )
                conversation.append(CommunicationMessage(firm_id=firm_id, message=str(message)))
                self._emit(
                    EventType.COMMUNICATION_MESSAGE,
                    replication_number=replication_number,
                    round_number=round_number,
                    firm_id=firm_id,
                    data={"message": str(message)},
                )

        # Every context exists before the first request goes out.
        contexts = {
            firm_id: self._build_context(
                config, firm_id, replication_number, round_number, realized, conversation
            )
            for firm_id in config.firm_ids
        }
        tasks = [
            asyncio.ensure_future(
                self._request_decision(firm_id, contexts[firm_id], replication_number)
            )
            for firm_id in config.firm_ids
        ]
        try:
            decisions = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        result = resolve_round(
            round_number,
            {firm_id: d.value for firm_id, d in zip(config.firm_ids, decisions)},
            config,
            realized,
            replication_number=replication_number,
            reasoning={
                firm_id: d.reasoning
                for firm_id, d in zip(config.firm_ids, decisions)
                if d.reasoning is not None
            },
        )
        return replace(result, communication=tuple(conversation))

    async def _request(self, awaitable: Any, firm_id: int, round_number: int) -> Any:
        timeout = self.settings.decision_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            raise DecisionTimeoutError(firm_id, round_number, timeout)
        except Exception as e:
            raise DecisionProviderError(firm_id, round_number, str(e)) from e

    async def _request_decision(
        self, firm_id: int, context: RoundContext, replication_number: int
    ) -> Decision:
        round_number = context.round_number
        decision = await self._request(
            self.provider.request_decision(firm_id, context), firm_id, round_number
        )
        if not isinstance(decision, Decision):
            decision = Decision(value=decision)
        try:
            value = float(decision.value)
        except (TypeError, ValueError):
            raise DecisionProviderError(
                firm_id, round_number, f"decision {decision.value!r} is not a number"
            )
        if not math.isfinite(value):
            raise DecisionProviderError(
                firm_id, round_number, f"decision {value} is not finite"
            )

        self._emit(
            EventType.DECISION_RECEIVED,
            replication_number=replication_number,
            round_number=round_number,
            firm_id=firm_id,
            data={"value": value},
        )
        return Decision(value=value, reasoning=decision.reasoning)

    def _build_context(
        self,
        config: MarketConfig,
        firm_id: int,
        replication_number: int,
        round_number: int,
        realized: RealizedParameters,
        conversation: List[CommunicationMessage],
    ) -> RoundContext:
        firm = config.firm(firm_id)
        info = firm.info
        if config.mode == CompetitionMode.COURNOT:
            low, high = config.min_quantity, config.max_quantity
        else:
            low, high = config.min_price, config.max_price

        rival_costs: Tuple[FirmCosts, ...] = ()
        if info.reveal_rival_costs:
            rival_costs = tuple(
                realized.costs_for(i) for i in config.firm_ids if i != firm_id
            )

        return RoundContext(
            firm_id=firm_id,
            mode=config.mode,
            round_number=round_number,
            total_rounds=config.total_rounds,
            replication_number=replication_number,
            num_replications=config.num_replications,
            num_firms=config.num_firms,
            model=firm.model,
            disclosure=info,
            demand=realized.demand_for(firm_id) if info.reveal_demand_function else None,
            gamma=realized.gamma if info.reveal_demand_function else None,
            own_costs=realized.costs_for(firm_id) if info.reveal_own_costs else None,
            rival_costs=rival_costs,
            min_decision=low,
            max_decision=high,
            history=tuple(self._rounds),
            conversation=tuple(conversation),
        )

    async def _finish(self, config: MarketConfig) -> ExperimentResult:
        assert self.equilibria is not None and self._started_at is not None
        all_rounds = [r for replication in self.replications for r in replication.rounds]
        overall = summarize_rounds(all_rounds, config.firm_ids)
        nash = self.equilibria.nash
        deviation: Dict[int, float] = {}
        if nash.calculable and all_rounds:
            deviation = {
                f.firm_id: abs(overall.firm(f.firm_id).average_quantity - f.quantity)
                for f in nash.firms
            }

        result = ExperimentResult(
            config=config,
            equilibria=self.equilibria,
            replications=tuple(self.replications),
            summary=ExperimentSummary(
                num_replications=len(self.replications),
                overall=overall,
                nash_deviation=deviation,
            ),
            started_at=self._started_at,
            completed_at=_now(),
            error=self.error,
        )
        self.result = result
        self._set_status(ExperimentStatus.COMPLETED)
        self._emit(
            EventType.EXPERIMENT_COMPLETED,
            data={"summary": result.summary, "error": self.error},
        )
        if self.sink is not None:
            await self._save(self.sink.save_experiment, result)

        if self.error:
            logger.warning(f"Experiment completed with error: {self.error}")
        else:
            logger.info(
                f"Experiment completed: {len(all_rounds)} rounds, "
                f"total profit {overall.total_profit:.2f}"
            )
        return result

    async def _save(self, save: Callable[[Any], Any], result: Any) -> None:
        try:
            outcome = save(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Result sink failed: {e}")


async def run_experiment(
    config: MarketConfig,
    provider: DecisionProvider,
    *,
    randomizer: Optional[ParameterRandomizer] = None,
    settings: Optional[Settings] = None,
    listeners: Optional[Iterable[EventListener]] = None,
    sink: Optional[ResultSink] = None,
) -> ExperimentResult:
    """Configure and run an experiment to completion.

    With the ``pause`` timeout policy a failed round pauses the experiment,
    so this only returns once something else resumes it; use an
    ExperimentOrchestrator directly to keep control.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    orchestrator = ExperimentOrchestrator(
        provider,
        randomizer=randomizer,
        settings=settings,
        listeners=listeners,
        sink=sink,
    )
    orchestrator.configure(config)
    return await orchestrator.start()
