"""Agent bootstrap and lifecycle management."""

import asyncio
from typing import Any, Iterable, Protocol

from ..config import AgentConfig
from ..discovery import (
    CapabilityRegistry,
    DiscoveryListener,
    NetworkFilter,
    start_heartbeat,
)
from ..errors import AgentNetError, CompilationError
from ..executor import Executor, build_capability_map
from ..llm import ICapabilityProvider, create_provider
from ..logging_config import get_logger
from ..models import (
    AgentIdentity,
    Capability,
    CapabilityFunction,
    CapabilityKind,
    CapabilityMap,
    CapabilitySchema,
    TaskMessage,
)
from ..session import SessionManager
from ..storage import IStorage, create_storage
from ..tracker import ITracker, TraceHook, Tracker
from ..transport import ITransport, create_transport, safe_connect
from .handler import PromptHook, ResponseHook, TaskHandler

logger = get_logger(__name__)


class IAgent(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def query(self, content: Any, session: dict[str, Any] | None = None) -> TaskMessage:
        """Run a task locally, exactly as if it arrived on the task topic."""
        ...


class Agent:
    """An addressable agent: serves tasks, advertises and discovers capabilities."""

    def __init__(
        self,
        config: AgentConfig,
        provider: ICapabilityProvider | None = None,
        tools: Iterable[Capability] | None = None,
        discovery_schemas: Iterable[CapabilitySchema] | None = None,
        storage: IStorage | None = None,
        transport: ITransport | None = None,
        tracker: ITracker | None = None,
    ):
        self._config = config
        self._provider = provider or create_provider(
            config.provider.kind, **config.provider.options
        )
        self._storage = storage or create_storage(
            config.storage.kind, **config.storage.options
        )
        self._transport = transport or create_transport(config.transport_type)
        self._tracker = tracker or Tracker(self._storage)

        self._tools: dict[str, Capability] = {}
        for tool in tools or []:
            self._register_tool(tool)
        self._discovery_schemas: list[CapabilitySchema] = list(discovery_schemas or [])

        self._registry = CapabilityRegistry(ttl=config.capability_ttl)
        self._sessions = SessionManager(
            self._storage, config.identity, max_history=config.runner.max_history
        )
        self._executor = Executor(
            provider=self._provider,
            tracker=self._tracker,
            actor=config.identity.network,
            max_runs=config.runner.max_runs,
            timeouts=config.timeouts,
            model_config=config.provider.model,
        )
        self._handler = TaskHandler(
            identity=config.identity,
            transport=self._transport,
            sessions=self._sessions,
            executor=self._executor,
            provider=self._provider,
            capabilities=self.capabilities,
            tracker=self._tracker,
            timeouts=config.timeouts,
        )
        self._listener = DiscoveryListener(
            transport=self._transport,
            identity=config.identity,
            registry=self._registry,
            network_filter=NetworkFilter(
                config.identity.network, config.bindings.accepted_networks
            ),
            handoff_timeout=config.timeouts.handoff,
            retry=config.retry,
        )

        self._heartbeat: asyncio.Task | None = None
        self._started = False
        self._running = False
        self._failure: BaseException | None = None
        self._stopped = asyncio.Event()

    # Properties

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def identity(self) -> AgentIdentity:
        return self._config.identity

    @property
    def storage(self) -> IStorage:
        return self._storage

    @property
    def transport(self) -> ITransport:
        return self._transport

    @property
    def tracker(self) -> ITracker:
        return self._tracker

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def is_running(self) -> bool:
        """False once stopped or once a background listener has died."""
        return self._running

    @property
    def failure(self) -> BaseException | None:
        return self._failure

    # Definition

    def _register_tool(self, tool: Capability) -> None:
        if tool.name in self._tools:
            raise CompilationError(
                f"Duplicate tool name: {tool.name}", self._config.identity.network
            )
        self._tools[tool.name] = tool

    def add_tool(self, schema: CapabilitySchema, function: CapabilityFunction) -> None:
        """Register a local tool the model may call."""
        if self._started:
            raise CompilationError(
                "Tools must be added before the agent starts",
                self._config.identity.network,
            )
        self._register_tool(Capability(schema=schema, function=function, kind=CapabilityKind.TOOL))

    def add_discovery_schema(self, schema: CapabilitySchema) -> None:
        """Advertise a capability other agents can hand work off to."""
        if self._started:
            raise CompilationError(
                "Discovery schemas must be added before the agent starts",
                self._config.identity.network,
            )
        self._discovery_schemas.append(schema)

    def on_prompt(self, hook: PromptHook) -> PromptHook:
        """Set the hook that turns inbound content into the model prompt."""
        self._handler.on_prompt = hook
        return hook

    def on_response(self, hook: ResponseHook) -> ResponseHook:
        """Set the hook that turns the executor output into the reply content."""
        self._handler.on_response = hook
        return hook

    def on(self, event_type: str, hook: TraceHook) -> None:
        """Subscribe to trace events such as "run" or "executorEnd"."""
        self._tracker.on(event_type, hook)

    def capabilities(self) -> CapabilityMap:
        """Capability map for one run: local tools, then discovered handoffs."""
        return build_capability_map(self._tools.values(), self._registry.snapshot())

    # Lifecycle

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self._started:
            return
        network = self._config.identity.network
        logger.info("Starting agent %s", network)

        try:
            # 1. Storage (no dependencies)
            await self._storage.init()
            logger.info("Storage initialized")

            # 2. Transport
            await safe_connect(self._transport, self._config.connection, self._config.retry)
            logger.info("Transport %s connected", self._transport.transport_type)

            # 3. Discovery listener (depends on Transport)
            listener_task = await self._listener.start(self._config.bindings.discovery_topic)

            # 4. Heartbeat (depends on Transport)
            self._heartbeat = start_heartbeat(
                self._transport,
                self._config.bindings.discovery_topic,
                self._config.identity,
                self._discovery_schemas,
                self._config.heartbeat_interval,
            )

            # 5. Task handler (depends on everything above)
            handler_task = await self._handler.start()
        except AgentNetError:
            await self._shutdown()
            raise
        except Exception as e:
            await self._shutdown()
            raise CompilationError(f"Failed to start agent: {e}", network) from e

        self._started = True
        self._running = True
        self._failure = None
        self._stopped.clear()
        self._watch(listener_task, "Discovery listener")
        self._watch(handler_task, "Task handler")
        logger.info(
            "Agent %s started",
            network,
            extra={
                "context": {
                    "tools": sorted(self._tools),
                    "advertised": [s.name for s in self._discovery_schemas],
                }
            },
        )

    async def _shutdown(self) -> None:
        await self._handler.stop()
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            await asyncio.gather(self._heartbeat, return_exceptions=True)
            self._heartbeat = None
        await self._listener.stop()
        await self._transport.disconnect()
        await self._storage.close()

    def _watch(self, task: asyncio.Task, component: str) -> None:
        """Mark the agent as no longer serving if task dies with an error."""

        def done(finished: asyncio.Task) -> None:
            if finished.cancelled() or finished.exception() is None:
                return
            error = finished.exception()
            logger.error(
                "%s of %s failed, agent is no longer serving: %s",
                component,
                self._config.identity.network,
                error,
            )
            self._running = False
            if self._failure is None:
                self._failure = error
            self._stopped.set()

        task.add_done_callback(done)

    async def wait(self) -> None:
        """
        Block until the agent stops.

        Raises the error of a background listener that took the agent down.
        """
        await self._stopped.wait()
        if self._failure is not None:
            raise self._failure

    async def stop(self) -> None:
        """Shutdown in reverse order. Also releases resources after a failure."""
        if not self._started:
            return
        self._started = False
        self._running = False
        await self._shutdown()
        self._stopped.set()
        logger.info("Agent %s stopped", self._config.identity.network)

    async def query(self, content: Any, session: dict[str, Any] | None = None) -> TaskMessage:
        """Run a task locally, exactly as if it arrived on the task topic."""
        return await self._handler.process(TaskMessage(content=content, session=dict(session or {})))
