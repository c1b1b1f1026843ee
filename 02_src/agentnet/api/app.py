"""FastAPI application setup."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..agent import Agent
from ..config import AgentConfig
from .routes import observability, query


# Global agent instance
_agent: Agent | None = None


def get_agent() -> Agent:
    """Get the global agent instance, built from the environment on first use."""
    global _agent
    if not _agent:
        _agent = Agent(AgentConfig.from_env())
    return _agent


def set_agent(agent: Agent | None) -> None:
    """Set the global agent instance."""
    global _agent
    _agent = agent


def create_fastapi_app(agent: Agent | None = None) -> FastAPI:
    """Create and configure FastAPI application around an agent."""
    agent = agent or get_agent()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage agent lifespan."""
        await agent.start()
        yield
        await agent.stop()

    fastapi_app = FastAPI(
        title="AgentNet Gateway",
        description=f"HTTP gateway for agent {agent.identity.network}",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS
    origins = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(query.create_query_router(agent))
    fastapi_app.include_router(observability.create_observability_router(agent))

    return fastapi_app
