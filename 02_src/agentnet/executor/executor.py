"""Bounded model / capability run loop."""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..discovery import DiscoveredCapability
from ..errors import AgentNetError, LLMError, OperationTimeoutError
from ..llm import ICapabilityProvider, ModelCallContext
from ..logging_config import get_logger
from ..models import Capability, CapabilityMap, ConversationEntry, RunContext
from ..resilience import RetryPolicy, TimeoutPolicy, with_retry, with_timeout
from ..tracker import ITracker

logger = get_logger(__name__)

MODEL_RETRY = RetryPolicy(max_retries=2)


def build_capability_map(
    tools: Iterable[Capability],
    discovered: Mapping[str, DiscoveredCapability],
) -> dict[str, Capability]:
    """
    Merge local tools and discovered handoffs into one namespace.

    Local tools shadow remote capabilities of the same name; among remote
    duplicates the first one discovered wins.
    """
    capabilities = {tool.name: tool for tool in tools}
    for entry in discovered.values():
        if entry.name not in capabilities:
            capabilities[entry.name] = entry.as_capability()
    return capabilities


@dataclass
class ExecutionResult:
    """What a finished run loop produced."""

    output: Any
    runs: int
    max_runs_reached: bool = False
    last_entry: ConversationEntry | None = None


class Executor:
    """Drives a capability provider until it answers or runs out of runs."""

    def __init__(
        self,
        provider: ICapabilityProvider,
        tracker: ITracker,
        actor: str,
        max_runs: int = 10,
        timeouts: TimeoutPolicy | None = None,
        model_config: dict[str, Any] | None = None,
        model_retry: RetryPolicy = MODEL_RETRY,
    ):
        self._provider = provider
        self._tracker = tracker
        self._actor = actor
        self._max_runs = max_runs
        self._timeouts = timeouts or TimeoutPolicy()
        self._model_config = dict(model_config or {})
        self._model_retry = model_retry
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._provider.get_client()
        return self._client

    async def _step(self, context: ModelCallContext) -> Any | None:
        async def call() -> Any:
            return await self._provider.call_model(
                context.client, self._model_config, context
            )

        response = await with_retry(
            lambda: with_timeout(call, self._timeouts.model, "model call"),
            self._model_retry,
            retryable=(OperationTimeoutError, LLMError),
        )
        return await self._provider.interpret_response(response, context)

    async def run(self, run_context: RunContext, capabilities: CapabilityMap) -> ExecutionResult:
        """
        Loop over runs 0..max_runs.

        Reaching max_runs is not an error: the last conversation entry is
        returned as the output. An error inside a run is retried as a fresh
        run while runs remain, then re-raised.
        """
        conversation = run_context.conversation
        session_id = run_context.session_id
        run = 0

        while True:
            await self._tracker.track(
                "run", self._actor, {"session_id": session_id, "run": run}
            )

            if run >= self._max_runs:
                last = conversation.last if conversation is not None else None
                logger.warning(
                    "Max runs reached for session %s (%s)",
                    session_id,
                    self._max_runs,
                    extra={"context": {"agent": self._actor}},
                )
                await self._tracker.track(
                    "maxRunsReached",
                    self._actor,
                    {"session_id": session_id, "run": run, "max_runs": self._max_runs},
                )
                return ExecutionResult(
                    output=last.content if last is not None else None,
                    runs=run,
                    max_runs_reached=True,
                    last_entry=last,
                )

            try:
                context = ModelCallContext(
                    client=self._get_client(),
                    run=run_context,
                    capabilities=capabilities,
                    timeouts=self._timeouts,
                )
                answer = await self._step(context)
            except Exception as e:
                kind = e.kind if isinstance(e, AgentNetError) else type(e).__name__
                logger.error(
                    "Executor run %s failed: %s",
                    run,
                    e,
                    extra={"context": {"agent": self._actor, "session_id": session_id}},
                )
                await self._tracker.track(
                    "executorError",
                    self._actor,
                    {"session_id": session_id, "run": run, "type": kind, "error": str(e)},
                )
                run += 1
                if run >= self._max_runs:
                    raise
                continue

            if answer is not None:
                await self._tracker.track(
                    "executorEnd",
                    self._actor,
                    {"session_id": session_id, "run": run, "response": answer},
                )
                return ExecutionResult(
                    output=answer, runs=run + 1, last_entry=conversation.last
                )

            run += 1
