"""
Agent event models

The wire vocabulary the relay streams to the overlay. Every SSE frame is
``data: <json>\\n\\n`` where the JSON object is one of the events below,
discriminated by ``type``.
"""
from __future__ import annotations
import json
from typing import Optional, Literal, Union, Any, Dict, Annotated
from pydantic import BaseModel, Field, TypeAdapter


class _AgentEventBase(BaseModel):
    class Config:
        extra = "allow"
        frozen = True


class StatusEvent(_AgentEventBase):
    """Progress update; the run is still going."""

    type: Literal["status"] = "status"
    message: str = Field(..., description="Short status line")
    detail: Optional[str] = Field(None, description="Excerpt of what the agent is doing")


class ErrorEvent(_AgentEventBase):
    """Terminal failure of a run."""

    type: Literal["error"] = "error"
    message: str = Field(..., description="Human-readable failure reason")


class DoneEvent(_AgentEventBase):
    """Terminal success of a run."""

    type: Literal["done"] = "done"
    success: bool = True
    code: Optional[int] = Field(None, description="Exit code of the agent process")
    result: Optional[str] = Field(None, description="Result summary reported by the agent")


AgentEvent = Annotated[Union[StatusEvent, ErrorEvent, DoneEvent], Field(discriminator="type")]

_event_adapter: TypeAdapter = TypeAdapter(AgentEvent)


def parse_agent_event(data: Dict[str, Any]):
    """Validate a decoded SSE payload into one of the AgentEvent models."""
    return _event_adapter.validate_python(data)


def format_sse(event) -> str:
    """Serialize an event as one Server-Sent Events frame."""
    return f"data: {json.dumps(event.model_dump(exclude_none=True))}\n\n"


def is_terminal(event) -> bool:
    return isinstance(event, (ErrorEvent, DoneEvent))
