"""Query API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...agent import Agent, AgentClient
from ...errors import AgentNetError, HandoffError, OperationTimeoutError, ValidationError
from ...logging_config import get_logger

logger = get_logger(__name__)


class QueryRequest(BaseModel):
    """Request model for querying an agent."""

    content: Any
    session: dict[str, Any] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    """Response model for a task reply."""

    content: Any
    session: dict[str, Any]


def error_status(error: AgentNetError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, OperationTimeoutError):
        return 504
    if isinstance(error, HandoffError):
        return 502
    return 500


def create_query_router(agent: Agent, client: AgentClient | None = None) -> APIRouter:
    """Create query router."""
    router = APIRouter(prefix="/api", tags=["query"])

    @router.post("/query", response_model=QueryResponse)
    async def query_agent(request: QueryRequest) -> dict:
        """Run a task on this agent."""
        try:
            reply = await agent.query(request.content, request.session)
            return {"content": reply.content, "session": reply.session}
        except AgentNetError as e:
            raise HTTPException(status_code=error_status(e), detail=e.to_reply())
        except Exception as e:
            logger.error("Query failed: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/agents/{network}/query", response_model=QueryResponse)
    async def query_remote_agent(network: str, request: QueryRequest) -> dict:
        """Send a task to another agent over the transport."""
        remote = client or AgentClient(agent.transport, timeout=agent.config.timeouts.task)
        try:
            reply = await remote.query(network, request.content, request.session)
            return {"content": reply.content, "session": reply.session}
        except AgentNetError as e:
            raise HTTPException(status_code=error_status(e), detail=e.to_reply())

    return router
