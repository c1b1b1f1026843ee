"""AgentNet: agents that discover each other and hand off work over a message bus."""

from .agent import Agent, AgentClient, IAgent, TaskHandler
from .config import AgentConfig, Bindings, ProviderConfig, RunnerConfig, StorageConfig
from .discovery import CapabilityRegistry, DiscoveredCapability, NetworkFilter, NetworkPattern
from .errors import (
    AgentNetError,
    CompilationError,
    ConfigurationError,
    DiscoveryError,
    HandoffError,
    LLMError,
    OperationTimeoutError,
    ToolExecutionError,
    TransportError,
    ValidationError,
)
from .executor import Executor
from .llm import AnthropicProvider, ICapabilityProvider, OpenAIProvider, create_provider
from .models import (
    AgentIdentity,
    Capability,
    CapabilityKind,
    CapabilitySchema,
    ConversationEntry,
    EntryType,
    ErrorReply,
    RunContext,
    TaskMessage,
    TraceEvent,
)
from .resilience import RetryPolicy, TimeoutPolicy
from .session import Conversation, Session, SessionManager
from .storage import IStorage, MemoryStorage, RedisStorage, Storage, create_storage
from .tracker import ITracker, Tracker
from .transport import ITransport, MemoryBroker, MemoryTransport, create_transport

__all__ = [
    # Agent
    "Agent",
    "AgentClient",
    "IAgent",
    "TaskHandler",
    # Configuration
    "AgentConfig",
    "Bindings",
    "ProviderConfig",
    "RunnerConfig",
    "StorageConfig",
    "RetryPolicy",
    "TimeoutPolicy",
    # Models
    "AgentIdentity",
    "Capability",
    "CapabilityKind",
    "CapabilitySchema",
    "ConversationEntry",
    "EntryType",
    "ErrorReply",
    "RunContext",
    "TaskMessage",
    "TraceEvent",
    # Errors
    "AgentNetError",
    "CompilationError",
    "ConfigurationError",
    "DiscoveryError",
    "HandoffError",
    "LLMError",
    "OperationTimeoutError",
    "ToolExecutionError",
    "TransportError",
    "ValidationError",
    # Components
    "CapabilityRegistry",
    "DiscoveredCapability",
    "NetworkFilter",
    "NetworkPattern",
    "Executor",
    "ICapabilityProvider",
    "AnthropicProvider",
    "OpenAIProvider",
    "create_provider",
    "Conversation",
    "Session",
    "SessionManager",
    "IStorage",
    "Storage",
    "MemoryStorage",
    "RedisStorage",
    "create_storage",
    "ITracker",
    "Tracker",
    "ITransport",
    "MemoryBroker",
    "MemoryTransport",
    "create_transport",
]
