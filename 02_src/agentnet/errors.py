"""Error kinds raised across the AgentNet runtime."""

from typing import Any


class AgentNetError(Exception):
    """Base class for all AgentNet errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_reply(self) -> dict[str, Any]:
        """Structured error object sent in place of a normal reply."""
        return {"error": True, "message": self.message, "type": self.kind}


class ConfigurationError(AgentNetError):
    """Bad or missing setup. Fatal at compile time."""


class ValidationError(ConfigurationError):
    """Malformed configuration or schema."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class CompilationError(AgentNetError):
    """Agent could not be assembled or started."""

    def __init__(self, message: str, agent_name: str):
        super().__init__(message, {"agent_name": agent_name})
        self.agent_name = agent_name


class TransportError(AgentNetError):
    """Connect, publish, subscribe or request failure."""

    def __init__(
        self,
        message: str,
        transport_type: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.transport_type = transport_type


class DiscoveryError(AgentNetError):
    """Malformed or unprocessable discovery traffic."""


class HandoffError(AgentNetError):
    """A remote capability call failed after retries."""

    def __init__(
        self,
        message: str,
        source_agent: str,
        target_agent: str,
        capability: str | None = None,
    ):
        super().__init__(
            message,
            {
                "source_agent": source_agent,
                "target_agent": target_agent,
                "capability": capability,
            },
        )
        self.source_agent = source_agent
        self.target_agent = target_agent
        self.capability = capability


class ToolExecutionError(AgentNetError):
    """A local capability raised."""

    def __init__(self, message: str, tool_name: str):
        super().__init__(message, {"tool_name": tool_name})
        self.tool_name = tool_name


class LLMError(AgentNetError):
    """The capability provider's model call failed."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, {"provider": provider})
        self.provider = provider


class OperationTimeoutError(AgentNetError, TimeoutError):
    """An operation exceeded its policy deadline."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Operation '{operation}' timed out after {timeout}s",
            {"operation": operation, "timeout": timeout},
        )
        self.operation = operation
        self.timeout = timeout

    @property
    def kind(self) -> str:
        return "TimeoutError"
