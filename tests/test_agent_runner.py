import asyncio
import json
import logging

import pytest

from mindone.config import Settings
from mindone.errors import UnsupportedAgentType
from mindone.models.events import StatusEvent, ErrorEvent, DoneEvent, is_terminal
from mindone.services.agent_runner import (
    AgentRun,
    build_agent_command,
    map_agent_line,
    AUTH_MESSAGE,
    MISSING_MESSAGE,
    run_detached,
)
from mindone.utils.run_registry import get_run_registry


async def collect(run):
    return [event async for event in run.events()]


def line(**payload):
    return json.dumps(payload)


# -----------------------------------------------------------------------------
# Output mapping
# -----------------------------------------------------------------------------

def test_init_message():
    assert map_agent_line(line(type="system", subtype="init")) == StatusEvent(message="Initializing agent...")


def test_thinking_message_is_truncated():
    event = map_agent_line(line(type="thinking", text="x" * 400))
    assert event.message == "Thinking..."
    assert event.detail == "x" * 150

    assert map_agent_line(line(type="thinking", subtype="delta")) is None
    assert map_agent_line(line(type="thinking", subtype="completed")).detail is None


def test_assistant_text_blocks_are_joined():
    event = map_agent_line(line(type="assistant", message={"content": [
        {"type": "text", "text": "Editing"},
        {"type": "tool_use", "name": "edit"},
        {"type": "text", "text": "App.jsx"},
    ]}))
    assert event == StatusEvent(message="Agent working...", detail="Editing App.jsx")
    assert map_agent_line(line(type="assistant", message={"content": []})) is None


def test_result_mapping():
    assert map_agent_line(line(type="result", subtype="success", result="ok")) == \
        StatusEvent(message="Completed successfully!", detail="ok")
    assert map_agent_line(line(type="result", subtype="error", result="bad")) == ErrorEvent(message="bad")
    assert map_agent_line(line(type="result", is_error=True)) == ErrorEvent(message="Unknown error")
    assert map_agent_line(line(type="result", subtype="cancelled")) == StatusEvent(message="Task finished")


@pytest.mark.parametrize("raw", ["", "   ", "plain diagnostics", "[1, 2]", "{broken", '"text"', line(type="user")])
def test_unusable_lines_are_dropped(raw):
    assert map_agent_line(raw) is None


# -----------------------------------------------------------------------------
# Command line
# -----------------------------------------------------------------------------

def test_cursor_command_line():
    command = build_agent_command(Settings(agent_model="gpt-5"), "/work/space")
    assert command == [
        "cursor", "agent", "--print", "--output-format", "stream-json", "--force",
        "--model", "gpt-5", "--workspace", "/work/space",
    ]


def test_command_override_and_default_workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    command = build_agent_command(Settings(agent_command="/opt/agent --quiet"))
    assert command[:2] == ["/opt/agent", "--quiet"]
    assert command[-2:] == ["--workspace", str(tmp_path)]


def test_unsupported_agent_type():
    with pytest.raises(UnsupportedAgentType):
        build_agent_command(Settings(agent_type="other"))


# -----------------------------------------------------------------------------
# Runs
# -----------------------------------------------------------------------------

@pytest.mark.anyio
async def test_successful_run(agent_settings):
    events = await collect(AgentRun("succeed please", agent_settings))

    assert [e.message for e in events[:-1]] == [
        "Initializing agent...",
        "Agent working...",
        "Completed successfully!",
    ]
    assert events[-1] == DoneEvent(code=0, result="ok")
    assert get_run_registry().get_run_count() == 0


@pytest.mark.anyio
async def test_result_error_yields_exactly_one_error(agent_settings):
    events = await collect(AgentRun("fail-result", agent_settings))

    assert events == [ErrorEvent(message="bad")]


@pytest.mark.anyio
async def test_nonzero_exit_reports_stderr_tail(agent_settings):
    events = await collect(AgentRun("crash", agent_settings))

    assert events[0] == StatusEvent(message="Processing...", detail="boom: something broke\n")
    assert isinstance(events[-1], ErrorEvent)
    assert "exited with code 2" in events[-1].message
    assert "boom: something broke" in events[-1].message
    assert sum(is_terminal(e) for e in events) == 1


@pytest.mark.anyio
async def test_authentication_failure_is_explained(agent_settings):
    events = await collect(AgentRun("auth", agent_settings))
    assert events[-1] == ErrorEvent(message=AUTH_MESSAGE)


@pytest.mark.anyio
async def test_missing_agent_binary():
    settings = Settings(agent_command="/nonexistent/mindone-test-agent")
    events = await collect(AgentRun("succeed", settings))
    assert events == [ErrorEvent(message=MISSING_MESSAGE)]


@pytest.mark.anyio
async def test_unsupported_agent_type_run():
    events = await collect(AgentRun("succeed", Settings(agent_type="other")))
    assert events == [ErrorEvent(message="Unsupported agent type: other")]


@pytest.mark.anyio
async def test_timeout_kills_hung_agent(agent_settings):
    settings = agent_settings.model_copy(update={"agent_timeout_seconds": 0.5})
    events = await collect(AgentRun("hang", settings))

    assert len(events) == 1
    assert events[0].type == "error"
    assert "timed out" in events[0].message


@pytest.mark.anyio
async def test_server_termination_counts_as_done(agent_settings):
    run = AgentRun("hang", agent_settings)
    stream = run.events()
    registry = get_run_registry()

    # Start the run, wait for the process, then stop it the way a shutdown would
    task = asyncio.ensure_future(stream.__anext__())
    while registry.get_run(run.run_id) is None:
        await asyncio.sleep(0.01)
    await registry.drain(0)

    event = await task
    assert event == DoneEvent(code=run.process.returncode)
    assert run.terminated_by_server
    assert registry.get_run_count() == 0


# -----------------------------------------------------------------------------
# Detached runs
# -----------------------------------------------------------------------------

@pytest.mark.anyio
async def test_detached_run_logs_completion(agent_settings, caplog):
    caplog.set_level(logging.DEBUG, logger="mindone.services.agent_runner")

    await run_detached(AgentRun("succeed", agent_settings))

    messages = [record.getMessage() for record in caplog.records]
    assert "Agent execution completed" in messages
    assert "Agent working... Editing App.jsx" in messages
    assert not [record for record in caplog.records if record.levelno >= logging.ERROR]
    assert get_run_registry().get_run_count() == 0


@pytest.mark.anyio
async def test_detached_run_logs_failure(agent_settings, caplog):
    caplog.set_level(logging.INFO, logger="mindone.services.agent_runner")

    await run_detached(AgentRun("crash", agent_settings))

    errors = [record.getMessage() for record in caplog.records if record.levelno == logging.ERROR]
    assert any(
        message.startswith("Agent execution error:") and "boom: something broke" in message
        for message in errors
    )
    assert "Agent execution completed" not in [record.getMessage() for record in caplog.records]
    assert get_run_registry().get_run_count() == 0
