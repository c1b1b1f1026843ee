"""Capability provider interface and the capability invocation shared by providers."""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import HandoffError, OperationTimeoutError, ToolExecutionError
from ..logging_config import get_logger
from ..models import CapabilityKind, CapabilityMap, RunContext
from ..resilience import TimeoutPolicy, with_timeout
from ..session import Conversation, merge_state

logger = get_logger(__name__)

CAPABILITY_NOT_FOUND = "CapabilityNotFound"


@dataclass
class ModelCallContext:
    """Everything one model call and its interpretation can see."""

    client: Any
    run: RunContext
    capabilities: CapabilityMap
    timeouts: TimeoutPolicy

    @property
    def conversation(self) -> Conversation:
        return self.run.conversation

    @property
    def state(self) -> dict[str, Any]:
        return self.run.state


@dataclass
class CapabilityResult:
    """Outcome of one tool or handoff call as the model will see it."""

    output: Any
    is_error: bool = False

    @property
    def text(self) -> str:
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


class ICapabilityProvider(Protocol):
    """A language-model backend the executor drives."""

    provider_type: str

    def get_client(self) -> Any:
        """Create (or return the cached) API client."""
        ...

    async def call_model(
        self, client: Any, model_config: dict[str, Any], context: ModelCallContext
    ) -> Any:
        """Call the model with the conversation and capability schemas."""
        ...

    async def interpret_response(self, response: Any, context: ModelCallContext) -> Any | None:
        """
        Return the final answer, or None after appending the requested
        capability calls and their results to the conversation.
        """
        ...

    def append_prompt(self, conversation: Conversation, prompt: Any) -> None:
        """Append user input in the provider's message format."""
        ...


def format_prompt(prompt: Any) -> str:
    return prompt if isinstance(prompt, str) else json.dumps(prompt, default=str)


def _error_result(kind: str, message: str, capability: str) -> CapabilityResult:
    return CapabilityResult(
        output={"error": True, "type": kind, "message": message, "capability": capability},
        is_error=True,
    )


def _session_delta(result: Any) -> dict[str, Any] | None:
    """The ``session`` object carried by a result, if any."""
    if isinstance(result, (str, bytes)):
        try:
            result = json.loads(result)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
    if isinstance(result, dict) and isinstance(result.get("session"), dict):
        return result["session"]
    return None


async def invoke_capability(
    name: str,
    args: dict[str, Any],
    context: ModelCallContext,
) -> CapabilityResult:
    """
    Resolve and run one capability without raising.

    Local tools run under the tool timeout. Handoffs bound each request
    attempt by the handoff timeout inside their dispatch function. Failures
    come back as structured error results so the next model call can see
    them. A result carrying a ``session`` object is merged into the state.
    """
    capability = context.capabilities.get(name)
    if capability is None:
        logger.warning("Model requested unknown capability %s", name)
        return _error_result(
            CAPABILITY_NOT_FOUND, f"Capability '{name}' not found", name
        )

    if not isinstance(args, dict):
        args = {"input": args}

    try:
        if capability.kind == CapabilityKind.HANDOFF:
            result = await capability.function(context.run, args)
        else:
            result = await with_timeout(
                lambda: capability.function(context.run, args),
                context.timeouts.tool,
                f"tool {name}",
            )
    except OperationTimeoutError as e:
        logger.warning("Capability %s timed out: %s", name, e.message)
        return _error_result(e.kind, e.message, name)
    except HandoffError as e:
        logger.warning("Handoff %s failed: %s", name, e.message)
        return _error_result(e.kind, e.message, name)
    except Exception as e:
        logger.error(
            "Capability %s raised: %s",
            name,
            e,
            exc_info=True,
            extra={"context": {"session_id": context.run.session_id}},
        )
        if capability.kind == CapabilityKind.HANDOFF:
            return _error_result("HandoffError", str(e), name)
        error = ToolExecutionError(f"Tool '{name}' failed: {e}", name)
        return _error_result(error.kind, error.message, name)

    delta = _session_delta(result)
    if delta:
        merge_state(context.state, delta)

    return CapabilityResult(output=result if result is not None else "")
