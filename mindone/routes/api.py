"""
API Routes for the mindone agent relay

Accepts prompts from the overlay, runs the agent, and streams its progress
back as Server-Sent Events.
"""
from fastapi import APIRouter, Request, Query, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from typing import AsyncGenerator
import logging

from mindone.config import Settings, get_settings
from mindone.errors import MalformedRequest
from mindone.models.request import ExecuteRequest
from mindone.models.response import HealthResponse, ExecuteAcknowledgement, ErrorResponse
from mindone.models.events import StatusEvent, ErrorEvent, format_sse
from mindone.services.agent_runner import AgentRun, run_detached, STARTING_MESSAGE
from mindone.services.agent_discovery import check_agent_available
from mindone.utils.run_registry import get_run_registry

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"
}


async def parse_execute_request(request: Request) -> ExecuteRequest:
    """Decode and validate an /execute body, raising MalformedRequest."""
    try:
        payload = await request.json()
    except ValueError as e:
        raise MalformedRequest("Invalid JSON body") from e

    if not isinstance(payload, dict):
        raise MalformedRequest("Request body must be a JSON object")

    try:
        body = ExecuteRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedRequest(f"Invalid request body: {e.errors()[0]['msg']}") from e

    if not body.prompt:
        raise MalformedRequest("Missing prompt parameter")
    return body


def wants_event_stream(request: Request, stream: bool) -> bool:
    return stream or "text/event-stream" in request.headers.get("accept", "")


@router.post("/execute", responses={400: {"model": ErrorResponse}})
async def execute(
    request: Request,
    stream: bool = Query(False),
    settings: Settings = Depends(get_settings)
):
    """Run the agent for a prompt, streaming progress when asked to."""
    try:
        body = await parse_execute_request(request)
    except MalformedRequest as e:
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(e)).model_dump())

    run = AgentRun(body.prompt, settings, body.workspace_path)

    if not wants_event_stream(request, stream):
        logger.info("Received prompt request (run %s)", run.run_id)
        run_detached(run)
        return ExecuteAcknowledgement(agent_type=settings.agent_type).model_dump(by_alias=True)

    async def generate_stream() -> AsyncGenerator[str, None]:
        yield format_sse(StatusEvent(message=STARTING_MESSAGE))
        try:
            async for event in run.events():
                yield format_sse(event)
        except Exception as e:
            logger.exception("Agent run %s failed", run.run_id)
            yield format_sse(ErrorEvent(message=str(e) or e.__class__.__name__))

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


@router.get("/health", response_model=HealthResponse)
def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return HealthResponse(
        agent_type=settings.agent_type,
        agent_available=check_agent_available(settings),
        port=settings.agent_port,
        active_runs=get_run_registry().get_run_count()
    )
