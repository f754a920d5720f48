"""Relay and overlay models."""
from mindone.models.request import ExecuteRequest
from mindone.models.response import HealthResponse, ExecuteAcknowledgement, ErrorResponse
from mindone.models.events import (
    AgentEvent,
    StatusEvent,
    ErrorEvent,
    DoneEvent,
    parse_agent_event,
    format_sse,
    is_terminal,
)
from mindone.models.element import TargetedElement, OwnerFrame
from mindone.models.prompt import PromptPayload, Scope

__all__ = [
    "ExecuteRequest",
    "HealthResponse",
    "ExecuteAcknowledgement",
    "ErrorResponse",
    "AgentEvent",
    "StatusEvent",
    "ErrorEvent",
    "DoneEvent",
    "parse_agent_event",
    "format_sse",
    "is_terminal",
    "TargetedElement",
    "OwnerFrame",
    "PromptPayload",
    "Scope",
]
