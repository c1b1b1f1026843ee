"""Inbound task handling: decode, load session, run, persist, reply."""

import asyncio
import inspect
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Union

from ..errors import AgentNetError, TransportError, ValidationError
from ..executor import Executor
from ..llm import ICapabilityProvider, format_prompt
from ..logging_config import get_logger
from ..models import (
    AgentIdentity,
    CapabilityMap,
    ErrorReply,
    RunContext,
    TaskMessage,
    decode_envelope,
)
from ..resilience import TimeoutPolicy, with_timeout
from ..session import Conversation, SessionManager
from ..tracker import ITracker
from ..transport import InboundMessage, ITransport, Subscription, consume, respond

logger = get_logger(__name__)

PromptHook = Callable[[dict[str, Any], str], Union[Any, Awaitable[Any]]]
ResponseHook = Callable[[dict[str, Any], Conversation, Any], Union[Any, Awaitable[Any]]]


async def _call_hook(hook: Callable[..., Any] | None, *args: Any) -> Any:
    """Run a sync or async hook. Without a hook the last argument passes through."""
    if hook is None:
        return args[-1]
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class TaskHandler:
    """Serves the agent's task topic as a member of its queue group."""

    def __init__(
        self,
        identity: AgentIdentity,
        transport: ITransport,
        sessions: SessionManager,
        executor: Executor,
        provider: ICapabilityProvider,
        capabilities: Callable[[], CapabilityMap],
        tracker: ITracker,
        timeouts: TimeoutPolicy | None = None,
    ):
        self._identity = identity
        self._transport = transport
        self._sessions = sessions
        self._executor = executor
        self._provider = provider
        self._capabilities = capabilities
        self._tracker = tracker
        self._timeouts = timeouts or TimeoutPolicy()

        self.on_prompt: PromptHook | None = None
        self.on_response: ResponseHook | None = None

        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def actor(self) -> str:
        return self._identity.network

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    async def process(self, message: TaskMessage) -> TaskMessage:
        """
        Run one task and return the reply envelope.

        A task whose handoff chain already passed through this agent is a
        nested call back into a run that holds the session lock. It runs
        unlocked and leaves the stored record to that outer run, which picks
        up state changes from the merged reply.
        """
        session_id = message.session_id or str(uuid.uuid4())
        via = (*message.via, self.actor)

        if self.actor in message.via:
            logger.info(
                "Nested task for session %s via %s",
                session_id,
                " -> ".join(message.via),
                extra={"context": {"agent": self.actor, "session_id": session_id}},
            )
            return await self._run_task(session_id, message, via, persist=False)

        async with self._session_lock(session_id):
            return await self._run_task(session_id, message, via, persist=True)

    async def _run_task(
        self,
        session_id: str,
        message: TaskMessage,
        via: tuple[str, ...],
        persist: bool,
    ) -> TaskMessage:
        session = await self._sessions.load(session_id, message.session)
        capabilities = self._capabilities()

        prompt = await _call_hook(
            self.on_prompt, session.state, format_prompt(message.content)
        )
        self._provider.append_prompt(session.conversation, prompt)

        run_context = RunContext(
            session_id=session_id,
            state=session.state,
            conversation=session.conversation,
            via=via,
        )
        result = await with_timeout(
            lambda: self._executor.run(run_context, capabilities),
            self._timeouts.task,
            f"task {self.actor}",
        )
        response = await _call_hook(
            self.on_response, session.state, session.conversation, result.output
        )
        if persist:
            await self._sessions.dump(session)

        return TaskMessage(content=response, session=session.to_envelope_session())

    async def handle(self, message: InboundMessage) -> None:
        """Process an inbound frame and always answer with an envelope."""
        session_id = None
        try:
            envelope = decode_envelope(message.data)
            if not isinstance(envelope, TaskMessage):
                raise ValidationError(
                    f"Expected a task message, got {type(envelope).__name__}"
                )
            session_id = envelope.session_id
            await self._tracker.track(
                "taskReceived", self.actor, {"session_id": session_id}
            )
            reply = await self.process(envelope)
            await self._tracker.track(
                "taskCompleted", self.actor, {"session_id": reply.session_id}
            )
            data = reply.encode()
        except Exception as e:
            kind = e.kind if isinstance(e, AgentNetError) else type(e).__name__
            logger.error(
                "Task failed: %s",
                e,
                exc_info=not isinstance(e, AgentNetError),
                extra={"context": {"agent": self.actor, "session_id": session_id}},
            )
            await self._tracker.track(
                "taskFailed",
                self.actor,
                {"session_id": session_id, "type": kind, "error": str(e)},
            )
            data = ErrorReply.from_exception(e).encode()

        try:
            await respond(self._transport, message, data)
        except TransportError as e:
            logger.error("Failed to send reply on %s: %s", message.reply_to, e.message)

    async def start(self) -> asyncio.Task:
        """Subscribe to the task topic with queue group = agent name."""
        subscription = await self._transport.subscribe(
            self._identity.network, queue_group=self._identity.name
        )
        self._task = asyncio.create_task(
            self._run(subscription), name=f"tasks:{self.actor}"
        )
        return self._task

    async def _run(self, subscription: Subscription) -> None:
        try:
            async for message in consume(
                self._transport,
                self._identity.network,
                queue_group=self._identity.name,
                subscription=subscription,
            ):
                task = asyncio.create_task(self.handle(message))
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
        except TransportError as e:
            logger.error("Task listener for %s stopped: %s", self.actor, e.message)
            raise

    async def stop(self) -> None:
        tasks = list(self._inflight)
        if self._task is not None:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._task = None
