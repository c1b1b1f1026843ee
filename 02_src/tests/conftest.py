"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agentnet.llm import format_prompt, invoke_capability  # noqa: E402


class ScriptedProvider:
    """
    Capability provider driven by a list of canned model responses.

    A response is {"answer": ...} or {"calls": [{"name": ..., "args": {...}}]};
    an exception instance in the script is raised by call_model instead.
    Once the script is exhausted the default response is repeated.
    """

    provider_type = "scripted"

    def __init__(self, script: list[Any] | None = None, default: Any = None):
        self.script = list(script or [])
        self.default = default if default is not None else {"answer": "done"}
        self.seen_capabilities: list[list[str]] = []
        self.model_calls = 0

    def get_client(self) -> Any:
        return object()

    def append_prompt(self, conversation, prompt: Any) -> None:
        conversation.add_user_input({"role": "user", "content": format_prompt(prompt)})

    async def call_model(self, client, model_config, context) -> Any:
        self.model_calls += 1
        self.seen_capabilities.append(sorted(context.capabilities))
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, BaseException):
            raise step
        return step

    async def interpret_response(self, response, context) -> Any | None:
        if "answer" in response:
            context.conversation.add_model_response(
                {"role": "assistant", "content": response["answer"]}
            )
            return response["answer"]

        context.conversation.add_function_call({"calls": response["calls"]})
        for call in response["calls"]:
            result = await invoke_capability(call["name"], call.get("args", {}), context)
            context.conversation.add_function_result(
                {"name": call["name"], "output": result.text, "is_error": result.is_error}
            )
        return None


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll predicate until it is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(interval)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory SQLite storage for testing."""
    from agentnet.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def memory_storage():
    """Create dict-backed storage."""
    from agentnet.storage import MemoryStorage

    return MemoryStorage()


@pytest.fixture
def tracker(memory_storage):
    """Create Tracker backed by memory storage."""
    from agentnet.tracker import Tracker

    return Tracker(memory_storage)


@pytest.fixture
def broker():
    """Create an isolated in-memory broker."""
    from agentnet.transport import MemoryBroker

    return MemoryBroker()


@pytest_asyncio.fixture
async def transport(broker):
    """Create a memory transport connected to the test broker."""
    from agentnet.transport import MemoryTransport

    tr = MemoryTransport()
    await tr.connect({"broker": broker})
    yield tr
    await tr.disconnect()


@pytest.fixture
def fast_retry():
    """Retry policy without noticeable backoff."""
    from agentnet.resilience import RetryPolicy

    return RetryPolicy(max_retries=2, base_delay=0.001, max_delay=0.001)


@pytest.fixture
def make_config(broker):
    """Build an AgentConfig on the test broker."""
    from agentnet.config import AgentConfig

    def _make(namespace: str = "sales", name: str = "frontDesk", **overrides) -> AgentConfig:
        data = {
            "metadata": {"namespace": namespace, "name": name},
            "transportType": "memory",
            "connectionConfig": {"broker": broker},
            "bindings": {"discoveryTopic": "test.discovery", "acceptedNetworks": []},
            "runner": {"maxRuns": 5},
            "timeouts": {"tool": 1, "model": 1, "task": 5, "handoff": 1},
            "retry": {"maxRetries": 1, "baseDelay": 0.001, "maxDelay": 0.001},
            "heartbeatInterval": 0.01,
        }
        data.update(overrides)
        return AgentConfig.from_dict(data)

    return _make
