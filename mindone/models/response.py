"""
Response models for the mindone agent relay
"""
from __future__ import annotations
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Body of GET /health."""

    status: str = Field("ok", description="Always 'ok' while the server answers")
    agent_type: str = Field(..., alias="agentType")
    agent_available: bool = Field(..., alias="agentAvailable", description="Best-effort discovery probe")
    port: int = Field(..., description="Port the relay listens on")
    active_runs: int = Field(0, alias="activeRuns", description="Agent processes currently running")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "status": "ok",
                "agentType": "cursor",
                "agentAvailable": True,
                "port": 5567,
                "activeRuns": 0
            }
        }


class ExecuteAcknowledgement(BaseModel):
    """Fire-and-forget answer of POST /execute without streaming."""

    success: bool = True
    message: str = "Agent execution started"
    agent_type: str = Field(..., alias="agentType")

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Body of a rejected POST /execute."""

    error: str = Field(..., description="Why the request was rejected")
