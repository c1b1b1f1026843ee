"""HTTP gateway."""

from .app import create_fastapi_app, get_agent, set_agent

__all__ = ["create_fastapi_app", "get_agent", "set_agent"]
