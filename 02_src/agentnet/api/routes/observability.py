"""Observability API routes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...agent import Agent


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime


class CapabilityResponse(BaseModel):
    """Response model for a discovered capability."""

    key: str
    network: str
    name: str
    description: str
    parameters: dict[str, Any]


class SessionResponse(BaseModel):
    """Response model for the public view of a session."""

    id: str
    state: dict[str, Any]
    conversation_length: int


def create_observability_router(agent: Agent) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/health")
    async def get_health() -> dict[str, Any]:
        """503 once the agent has stopped serving its topics."""
        if not agent.is_running:
            failure = agent.failure
            raise HTTPException(
                status_code=503,
                detail={
                    "network": agent.identity.network,
                    "running": False,
                    "error": str(failure) if failure else None,
                },
            )
        return {"network": agent.identity.network, "running": True}

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="ISO timestamp filter"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(None, description="Filter by event type"),
        actor: str | None = Query(None, description="Filter by actor"),
    ) -> list[dict]:
        """Get trace events with optional filters."""
        try:
            # Parse after timestamp
            after_dt = None
            if after:
                try:
                    after_dt = datetime.fromisoformat(after)
                except ValueError:
                    raise HTTPException(
                        status_code=400, detail="Invalid after timestamp format"
                    )

            event_types = [event_type] if event_type else None

            events = await agent.storage.get_trace_events(
                after=after_dt,
                event_types=event_types,
                actor=actor,
                limit=limit,
            )

            return [
                {
                    "id": e.id,
                    "event_type": e.event_type,
                    "actor": e.actor,
                    "data": e.data,
                    "timestamp": e.timestamp.isoformat(),
                }
                for e in events
            ]

        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/capabilities", response_model=list[CapabilityResponse])
    async def get_capabilities() -> list[dict]:
        """Capabilities discovered from other agents."""
        return [
            {
                "key": entry.key,
                "network": entry.network,
                "name": entry.name,
                "description": entry.schema.description,
                "parameters": entry.schema.parameters,
            }
            for entry in agent.registry.snapshot().values()
        ]

    @router.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str) -> dict:
        """Public state of a persisted session."""
        session = await agent.sessions.load(session_id)
        return {
            "id": session.id,
            "state": session.public_state(),
            "conversation_length": len(session.conversation),
        }

    return router
