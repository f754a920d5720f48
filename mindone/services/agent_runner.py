"""
Agent Runner for the mindone relay

Spawns the external coding agent for one /execute request, feeds it the
prompt on stdin and translates its stream-json output into AgentEvent
objects.

Each run owns its process and pipes. Runs never retry: a failed agent is
reported once and the caller decides whether to resend.
"""
from __future__ import annotations
import asyncio
import json
import logging
import os
import shlex
import uuid
from typing import Optional, AsyncGenerator, Dict, Any, List

from mindone.config import Settings
from mindone.errors import UnsupportedAgentType, AgentProcessMissing, AgentProcessFailed
from mindone.models.events import StatusEvent, ErrorEvent, DoneEvent
from mindone.utils.run_registry import get_run_registry

logger = logging.getLogger(__name__)

DETAIL_LIMIT = 150
STDERR_DETAIL_LIMIT = 200
ERROR_TAIL_LIMIT = 500
STDERR_KEEP = 4096

STARTING_MESSAGE = "Starting agent..."
COMPLETED_MESSAGE = "Completed successfully!"
MISSING_MESSAGE = (
    "Cursor CLI not found. Make sure Cursor is installed and the 'cursor' command "
    "is in your PATH. Run: mindone-agent-server check"
)
AUTH_MESSAGE = (
    "Authentication required. Set CURSOR_API_KEY env var or run: cursor agent login. "
    "Run: mindone-agent-server check for help."
)
AUTH_MARKERS = ("Authentication required", "CURSOR_API_KEY")


# =============================================================================
# Command line and output mapping
# =============================================================================

def build_agent_command(settings: Settings, workspace_path: Optional[str] = None) -> List[str]:
    """Full argv for one agent run. The prompt itself never goes on the command line."""
    if settings.agent_command:
        command = shlex.split(settings.agent_command)
    elif settings.agent_type == "cursor":
        command = ["cursor", "agent"]
    else:
        raise UnsupportedAgentType(f"Unsupported agent type: {settings.agent_type}")

    command += ["--print", "--output-format", "stream-json", "--force"]
    if settings.agent_model:
        command += ["--model", settings.agent_model]
    command += ["--workspace", workspace_path or os.getcwd()]
    return command


def _assistant_text(message: Any) -> str:
    if not isinstance(message, dict):
        return ""
    blocks = message.get("content") or []
    if not isinstance(blocks, list):
        return ""
    return " ".join(
        str(block.get("text", ""))
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text"
    ).strip()


def map_agent_event(data: Dict[str, Any]):
    """Translate one stream-json object from the agent into a relay event, or None."""
    kind = data.get("type")
    subtype = data.get("subtype")

    if kind == "system" and subtype == "init":
        return StatusEvent(message="Initializing agent...")

    if kind == "thinking":
        text = data.get("content") or data.get("text") or data.get("message") or ""
        text = text if isinstance(text, str) else ""
        if text or subtype == "completed":
            return StatusEvent(message="Thinking...", detail=text[:DETAIL_LIMIT] or None)
        return None

    if kind == "assistant":
        text = _assistant_text(data.get("message"))
        if text:
            return StatusEvent(message="Agent working...", detail=text[:DETAIL_LIMIT])
        return None

    if kind == "result":
        result = data.get("result")
        if subtype == "success":
            return StatusEvent(message=COMPLETED_MESSAGE, detail=None if result is None else str(result))
        if subtype == "error" or data.get("is_error"):
            return ErrorEvent(message=str(result) if result else "Unknown error")
        return StatusEvent(message="Task finished")

    return None


def map_agent_line(line: str):
    """Map one line of agent stdout; anything that is not a JSON object is dropped."""
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return map_agent_event(data)


# =============================================================================
# Agent Run
# =============================================================================

class AgentRun:
    """One agent process and the events it produces."""

    def __init__(self, prompt: str, settings: Settings, workspace_path: Optional[str] = None):
        self.run_id = uuid.uuid4().hex
        self.prompt = prompt
        self.settings = settings
        self.workspace_path = workspace_path

        self.process: Optional[asyncio.subprocess.Process] = None
        self.terminated_by_server = False
        self.timed_out = False
        self.stderr_tail = ""
        self.last_result: Optional[str] = None

        self._queue: Optional[asyncio.Queue] = None
        self._supervisor: Optional[asyncio.Task] = None

    async def events(self) -> AsyncGenerator[Any, None]:
        """
        Run the agent and yield its progress.

        Always ends with exactly one DoneEvent or ErrorEvent. Closing the
        generator early does not stop the process.
        """
        try:
            command = build_agent_command(self.settings, self.workspace_path)
        except UnsupportedAgentType as e:
            yield ErrorEvent(message=str(e))
            return

        logger.info("Executing: %s", " ".join(command))
        logger.info("Prompt length: %d characters", len(self.prompt))

        try:
            await self._spawn(command)
        except AgentProcessMissing as e:
            logger.error("Error spawning agent: %s", e)
            yield ErrorEvent(message=str(e))
            return

        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
            if isinstance(event, ErrorEvent):
                # The agent already reported its failure; let it exit quietly
                return

        try:
            self._raise_for_exit()
        except AgentProcessFailed as e:
            logger.error("Agent execution failed with code %s", e.code)
            yield ErrorEvent(message=str(e))
        else:
            logger.info("Agent execution completed successfully")
            yield DoneEvent(code=self.process.returncode, result=self.last_result)

    def terminate(self):
        """Stop the process on behalf of the server; the run then ends as done."""
        if self.process is not None and self.process.returncode is None:
            self.terminated_by_server = True
            self.process.terminate()

    async def wait_closed(self):
        if self._supervisor is not None:
            await asyncio.shield(self._supervisor)

    async def _spawn(self, command: List[str]):
        try:
            self.process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.settings.agent_output_limit,
            )
        except FileNotFoundError as e:
            raise AgentProcessMissing(MISSING_MESSAGE) from e
        except OSError as e:
            raise AgentProcessMissing(f"Could not start the agent: {e}") from e

        get_run_registry().register(self)
        self._queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        readers = [
            loop.create_task(self._read_stdout()),
            loop.create_task(self._read_stderr()),
        ]
        self._supervisor = loop.create_task(self._supervise(readers))
        await self._write_prompt()

    async def _write_prompt(self):
        stdin = self.process.stdin
        try:
            stdin.write(self.prompt.encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning("Agent closed stdin before reading the prompt: %s", e)
        finally:
            stdin.close()

    async def _read_stdout(self):
        stdout = self.process.stdout
        while True:
            try:
                raw = await stdout.readline()
            except ValueError:
                logger.warning("Dropping agent output line longer than %d bytes", self.settings.agent_output_limit)
                continue
            if not raw:
                break
            event = map_agent_line(raw.decode("utf-8", errors="replace"))
            if event is None:
                continue
            if isinstance(event, StatusEvent) and event.message == COMPLETED_MESSAGE:
                self.last_result = event.detail
            await self._queue.put(event)

    async def _read_stderr(self):
        stderr = self.process.stderr
        while True:
            chunk = await stderr.read(4096)
            if not chunk:
                break
            text = chunk.decode("utf-8", errors="replace")
            self.stderr_tail = (self.stderr_tail + text)[-STDERR_KEEP:]
            await self._queue.put(StatusEvent(message="Processing...", detail=text[:STDERR_DETAIL_LIMIT]))

    async def _supervise(self, readers: List[asyncio.Task]):
        timeout = self.settings.agent_timeout_seconds
        try:
            try:
                if timeout and timeout > 0:
                    await asyncio.wait_for(self.process.wait(), timeout)
                else:
                    await self.process.wait()
            except asyncio.TimeoutError:
                self.timed_out = True
                logger.warning("Agent run %s timed out after %ss, killing it", self.run_id, timeout)
                self.process.kill()
                await self.process.wait()
            await asyncio.gather(*readers, return_exceptions=True)
        finally:
            get_run_registry().unregister(self)
            await self._queue.put(None)

    def _raise_for_exit(self):
        code = self.process.returncode
        if self.timed_out:
            raise AgentProcessFailed(
                f"Agent timed out after {self.settings.agent_timeout_seconds} seconds and was stopped",
                code,
            )
        if code == 0 or self.terminated_by_server:
            return

        if any(marker in self.stderr_tail for marker in AUTH_MARKERS):
            raise AgentProcessFailed(AUTH_MESSAGE, code)
        tail = self.stderr_tail[-ERROR_TAIL_LIMIT:].strip()
        raise AgentProcessFailed(f"{self.settings.agent_type} agent exited with code {code}. {tail}".strip(), code)


# =============================================================================
# Fire-and-forget runs
# =============================================================================

_background_tasks: set = set()


def run_detached(run: AgentRun) -> asyncio.Task:
    """Run an agent without a listener; the outcome only reaches the log."""

    async def consume():
        try:
            async for event in run.events():
                if isinstance(event, ErrorEvent):
                    logger.error("Agent execution error: %s", event.message)
                elif isinstance(event, DoneEvent):
                    logger.info("Agent execution completed")
                elif event.detail:
                    logger.debug("%s %s", event.message, event.detail)
        except Exception:
            logger.exception("Agent run %s crashed", run.run_id)

    task = asyncio.get_running_loop().create_task(consume())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
