"""
Agent Relay Client for mindone

Sends prompts to the local relay server and turns its Server-Sent Events
back into AgentEvent objects for the overlay.
"""
from __future__ import annotations
import json
import logging
from typing import Optional, Callable, Any

import httpx
from pydantic import ValidationError

from mindone.config import Settings
from mindone.errors import RelayUnreachable
from mindone.models.events import ErrorEvent, DoneEvent, parse_agent_event

logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "http://localhost:5567"
START_HINT = "Start it with: mindone-agent-server"


class AgentRelayClient:
    """Thin async client for the relay's /health and /execute endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        workspace_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.workspace_path = workspace_path
        # Agent runs have no upper bound, so only connecting is time-limited
        self.timeout = httpx.Timeout(timeout, connect=5.0)
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "AgentRelayClient":
        kwargs.setdefault("workspace_path", settings.workspace_path or None)
        return cls(settings.relay_url, **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def check_server(self) -> bool:
        """True when the relay answers and does not report the agent missing."""
        try:
            async with self._client() as client:
                response = await client.get("/health")
        except httpx.HTTPError:
            return False
        if not response.is_success:
            return False
        try:
            data = response.json()
        except ValueError:
            return False
        return data.get("agentAvailable") is not False

    async def send(
        self,
        prompt: str,
        workspace_path: Optional[str] = None,
        on_event: Optional[Callable[[Any], None]] = None,
        stream: bool = True
    ) -> bool:
        """
        POST a prompt to /execute.

        Returns True on a "done" event, a clean end of stream, or a plain
        acknowledgement from a server that does not stream. Returns False on
        an "error" event, a non-2xx answer or a transport failure; the reason
        is forwarded to on_event as an ErrorEvent. Nothing is retried.
        """
        emit = on_event or (lambda event: None)
        body = {"prompt": prompt, "workspacePath": workspace_path or self.workspace_path}
        params = {"stream": "true"} if stream else None
        headers = {"Accept": "text/event-stream"} if stream else {"Accept": "application/json"}

        try:
            async with self._client() as client:
                async with client.stream("POST", "/execute", json=body, params=params, headers=headers) as response:
                    if not response.is_success:
                        await response.aread()
                        message = self._error_message(response)
                        logger.error("Agent server error: %s", message)
                        emit(ErrorEvent(message=message))
                        return False

                    content_type = response.headers.get("content-type", "")
                    if "text/event-stream" not in content_type:
                        await response.aread()
                        logger.info("Agent execution started: %s", response.text)
                        return True

                    return await self._consume_stream(response, emit)
        except httpx.HTTPError as e:
            error = RelayUnreachable(f"Could not reach the agent server at {self.base_url}. {START_HINT}")
            logger.error("Failed to send to agent server: %s", e)
            emit(ErrorEvent(message=str(error)))
            return False

    async def _consume_stream(self, response: httpx.Response, emit: Callable[[Any], None]) -> bool:
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            try:
                event = parse_agent_event(json.loads(line[len("data:"):].strip()))
            except (ValueError, ValidationError):
                logger.debug("Skipping malformed event line: %s", line[:200])
                continue

            emit(event)
            if isinstance(event, DoneEvent):
                return True
            if isinstance(event, ErrorEvent):
                return False
        return True

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"Agent server responded with HTTP {response.status_code}"
