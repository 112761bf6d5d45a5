"""Phase-by-phase execution of the agent pipeline for one run."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from ..clients.base import EventType, PersistenceError, PipelineException, RunCancelledError, TransportError
from ..clients.router import ClientRouter
from ..config import ConfigLoader
from ..state.runs import InMemoryRunStore, JsonRunStore, ResultPersister, RunResult, RunStore
from ..utils.logger import RunLogger
from .activity import ActivityCategory, ActivityLog
from .agents import AgentContext, AgentDefinition, ExecutionKind, PipelineDefinition, default_pipeline
from .results import AgentResult, decode_result
from .task import ErrorDetail, TaskState, TaskStatus

RunCompleteCallback = Callable[[str, RunResult], None]


class PipelineStateError(PipelineException):
    """The orchestrator was used outside its one-run lifecycle."""


class PipelineOrchestrator:
    """
    Runs every phase of a pipeline for a single input.

    Phases run strictly in order; the agents of a phase run concurrently and
    the next phase starts only once all of them are done or failed. An agent
    failure is recorded on that agent and never aborts the run. The
    aggregate result is persisted once, after the last phase.

    One instance handles exactly one run.
    """

    def __init__(
        self,
        pipeline: Optional[PipelineDefinition] = None,
        router: Optional[ClientRouter] = None,
        persister: Optional[ResultPersister] = None,
        logger: Optional[RunLogger] = None,
        settings: Optional[Mapping[str, Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.pipeline = pipeline or default_pipeline()
        self.router = router or ClientRouter()
        self.persister = persister or ResultPersister(InMemoryRunStore())
        self.logger = logger
        self.settings: Dict[str, Any] = dict(settings or {})

        self.activity = ActivityLog(clock=clock)
        self.states: Dict[str, TaskState] = {agent.id: TaskState(agent.id) for agent in self.pipeline}
        self.results: Dict[str, Optional[AgentResult]] = {agent.id: None for agent in self.pipeline}

        self.run_id: Optional[str] = None
        self.input: Optional[str] = None
        self.running = False
        self.run_result: Optional[RunResult] = None
        self.run_error: Optional[str] = None

        self._started = False
        self._cancelled = False
        self._finished = False
        self._tasks: List[asyncio.Task] = []
        self._callbacks: List[RunCompleteCallback] = []

    # ------------------------------------------------------------------ #
    # Caller interface
    # ------------------------------------------------------------------ #
    def on_run_complete(self, callback: RunCompleteCallback) -> None:
        """Register ``callback(run_id, run_result)``, called once after persistence."""
        self._callbacks.append(callback)

    async def start_run(self, target: str) -> str:
        """
        Run every phase for ``target`` and return the run id.

        Raises:
            PipelineStateError: the orchestrator already ran.
            RunCancelledError: :meth:`cancel` was called mid-run.
        """
        if self._started:
            raise PipelineStateError("This orchestrator has already started a run; create a new one")
        self._started = True
        self.running = True
        self.run_id = uuid.uuid4().hex
        self.input = target
        started_at = _utcnow()

        self._log("run_start", self.run_id, target)
        self.activity.system(f"run_id: {self.run_id} | target: {target}")

        try:
            for number, phase in enumerate(self.pipeline.phases, start=1):
                if self._cancelled:
                    raise RunCancelledError(f"Run {self.run_id} was cancelled")
                names = ", ".join(agent.name for agent in phase)
                self.activity.system(f"Phase {number}/{len(self.pipeline.phases)}: starting {names}")
                await self._run_phase(phase)
        except asyncio.CancelledError:
            self.running = False
            if self._cancelled:
                raise RunCancelledError(f"Run {self.run_id} was cancelled") from None
            raise
        except RunCancelledError:
            self.running = False
            raise

        self._finish(started_at)
        return self.run_id

    def cancel(self) -> None:
        """Abandon every in-flight call. No state changes after this returns."""
        if self._cancelled or not self.running:
            return
        self._cancelled = True
        for task in self._tasks:
            task.cancel()

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time view of the run, safe to read while it is in progress."""
        return {
            "run_id": self.run_id,
            "running": self.running,
            "agents": [
                {
                    "id": agent.id,
                    "name": agent.name,
                    "category": agent.category,
                    "phase": agent.phase,
                    "status": self.states[agent.id].status.value,
                    "last_message": self.states[agent.id].last_message,
                }
                for agent in self.pipeline
            ],
            "activity": self.activity.to_list(),
            "results": {
                agent_id: result.to_dict() if result else None for agent_id, result in self.results.items()
            },
            "run_error": self.run_error,
        }

    # ------------------------------------------------------------------ #
    # Phases and agents
    # ------------------------------------------------------------------ #
    async def _run_phase(self, phase: List[AgentDefinition]) -> None:
        self._tasks = [asyncio.create_task(self._run_agent(agent), name=f"agent:{agent.id}") for agent in phase]
        try:
            outcomes = await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self._tasks = []

        if self._cancelled:
            raise RunCancelledError(f"Run {self.run_id} was cancelled")
        for agent, outcome in zip(phase, outcomes):
            if isinstance(outcome, BaseException):
                self._record_stray_failure(agent, outcome)

    async def _run_agent(self, agent: AgentDefinition) -> None:
        state = self.states[agent.id]
        state.mark_working()
        state.set_message("Starting...")

        try:
            ctx = AgentContext(
                run_id=self.run_id or "",
                input=self.input or "",
                results=dict(self.results),
                settings=self.settings,
            )
            payload = dict(agent.build_request(ctx))
            payload["run_id"] = self.run_id
            timeout = self.router.timeout_for(agent)
            client = self.router.route(agent)
            self._log("agent_start", agent.id, agent.endpoint)

            if agent.kind == ExecutionKind.STREAMING:
                data = await self._consume_stream(agent, client, payload, timeout)
            else:
                outcome = await client.call(agent.endpoint, payload, timeout=timeout)
                if not outcome.succeeded:
                    raise outcome.error or TransportError(f"{agent.endpoint} returned no payload")
                data = outcome.payload or {}
            result = decode_result(agent.result_type, data)
        except Exception as exc:
            self._record_failure(agent, exc)
            return

        self._record_success(agent, result)

    async def _consume_stream(
        self,
        agent: AgentDefinition,
        client: Any,
        payload: Dict[str, Any],
        timeout: Optional[float],
    ) -> Dict[str, Any]:
        async with aclosing(client.stream(agent.endpoint, payload, timeout=timeout)) as events:
            async for event in events:
                if self._cancelled:
                    break
                if event.type == EventType.COMPLETE:
                    return event.data
                if event.type == EventType.STREAMING_URL and event.url:
                    self.activity.append(
                        agent.id,
                        agent.name,
                        f"Live view: {event.url}",
                        ActivityCategory.STREAM_LINK,
                        stream_url=event.url,
                    )
                elif event.type == EventType.PROGRESS and event.message:
                    self.states[agent.id].set_message(event.message)
                    self.activity.append(agent.id, agent.name, event.message, ActivityCategory.PROGRESS)
        raise TransportError(f"Stream for {agent.name} ended before a result arrived")

    def _record_success(self, agent: AgentDefinition, result: AgentResult) -> None:
        if self._cancelled:
            return
        summary = result.summary()
        state = self.states[agent.id]
        state.mark_done(result, message=summary)
        self.results[agent.id] = result
        self.activity.append(agent.id, agent.name, summary, ActivityCategory.RESULT)
        self._log("agent_complete", agent.id, state.duration_ms)

    def _record_failure(self, agent: AgentDefinition, exc: BaseException) -> None:
        if self._cancelled:
            return
        detail = ErrorDetail.from_exception(exc)
        state = self.states[agent.id]
        state.mark_error(detail)
        self.activity.append(agent.id, agent.name, state.last_message, ActivityCategory.ERROR)
        self._log("agent_failed", agent.id, detail.kind, detail.message)

    def _record_stray_failure(self, agent: AgentDefinition, exc: BaseException) -> None:
        """An agent task raised past its own handling; close it out as that agent's error."""
        state = self.states[agent.id]
        if state.is_terminal:
            self.activity.system(f"{agent.name} raised after finishing: {type(exc).__name__}: {exc}")
            return
        if state.status == TaskStatus.IDLE:
            state.mark_working()
        self._record_failure(agent, exc)

    def _log(self, event: str, *args: Any) -> None:
        if self.logger is None:
            return
        try:
            getattr(self.logger, f"log_{event}")(*args)
        except OSError as exc:
            self.activity.system(f"Run log write failed ({event}): {exc}")

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #
    def _finish(self, started_at: datetime) -> None:
        if self._finished:
            return
        self._finished = True

        statuses = {agent_id: state.status.value for agent_id, state in self.states.items()}
        self.run_result = RunResult(
            run_id=self.run_id or "",
            input=self.input or "",
            results={
                agent_id: result.to_dict() if result else None for agent_id, result in self.results.items()
            },
            statuses=statuses,
            errors={
                agent_id: state.error_detail.to_dict()
                for agent_id, state in self.states.items()
                if state.error_detail
            },
            started_at=started_at,
            completed_at=_utcnow(),
        )

        done = sum(1 for state in self.states.values() if state.status == TaskStatus.DONE)
        failed = len(self.states) - done
        self.activity.system(f"All phases finished: {done} done, {failed} failed")
        if self.activity.listener_errors:
            _, first = self.activity.listener_errors[0]
            self.activity.system(
                f"{len(self.activity.listener_errors)} activity listener call(s) failed; first: {first!r}"
            )
        self._log("run_complete", statuses)

        try:
            persisted_id = self.persister.persist(self.run_result)
        except PersistenceError as exc:
            self.run_error = str(exc)
            self.activity.system(f"Could not save run: {exc}")
            self._log("persist_failed", str(exc))
        else:
            self.activity.system(f"Run saved: {persisted_id}")

        self.running = False
        for callback in list(self._callbacks):
            callback(self.run_result.run_id, self.run_result)


def build_orchestrator(
    config: ConfigLoader,
    *,
    fake_all: bool = False,
    store: Optional[RunStore] = None,
    pipeline: Optional[PipelineDefinition] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PipelineOrchestrator:
    """Wire an orchestrator from configuration: endpoints, clients, storage and logging."""
    runs_dir = config.runs_dir
    return PipelineOrchestrator(
        pipeline=(pipeline or default_pipeline()).configured(config),
        router=ClientRouter(config, fake_all=fake_all, transport=transport),
        persister=ResultPersister(store or JsonRunStore(runs_dir)),
        logger=RunLogger(runs_dir),
        settings={
            "location": config.get("pipeline.location", "United States"),
            "country": config.get("pipeline.country", "US"),
        },
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
