"""Agent runtime: bootstrap, task handling and client."""

from .agent import Agent, IAgent
from .client import AgentClient
from .handler import PromptHook, ResponseHook, TaskHandler

__all__ = [
    "Agent",
    "AgentClient",
    "IAgent",
    "PromptHook",
    "ResponseHook",
    "TaskHandler",
]
