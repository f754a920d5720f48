import json
import shlex
import sys

import pytest

from mindone.config import Settings
from mindone.services import agent_discovery
from mindone.services.agent_discovery import find_agent_command, check_agent_available, check_agent_auth
from mindone.utils.run_registry import RunRegistry


def test_command_override_must_resolve():
    command = find_agent_command(Settings(agent_command=shlex.join([sys.executable, "-u"])))
    assert command == [sys.executable, "-u"]

    assert find_agent_command(Settings(agent_command="/nonexistent/agent")) is None


def test_cursor_missing(monkeypatch):
    monkeypatch.setattr(agent_discovery.shutil, "which", lambda name: None)
    assert check_agent_available(Settings()) is False


def test_unknown_agent_type_is_unavailable():
    assert find_agent_command(Settings(agent_type="other")) is None


def test_cursor_found_even_when_probe_fails(monkeypatch):
    def broken_probe(*args, **kwargs):
        raise OSError("no agent subcommand")

    monkeypatch.setattr(agent_discovery.shutil, "which", lambda name: "/usr/bin/cursor")
    monkeypatch.setattr(agent_discovery.subprocess, "run", broken_probe)
    assert find_agent_command(Settings()) == ["cursor", "agent"]


def test_auth_from_environment(tmp_path):
    status = check_agent_auth(env={"CURSOR_API_KEY": "k"}, home=tmp_path)
    assert status.authenticated
    assert status.method == "CURSOR_API_KEY env var"


@pytest.mark.parametrize("content, expected", [
    ({"apiKey": "k"}, True),
    ({"token": "t"}, True),
    ({"apiKey": ""}, False),
    (["apiKey"], False),
])
def test_auth_from_config_file(tmp_path, content, expected):
    config = tmp_path / ".cursor" / "config.json"
    config.parent.mkdir()
    config.write_text(json.dumps(content))

    assert check_agent_auth(env={}, home=tmp_path).authenticated is expected


def test_unreadable_config_is_ignored(tmp_path):
    config = tmp_path / ".cursor-agent" / "config.json"
    config.parent.mkdir()
    config.write_text("{oops")

    assert check_agent_auth(env={}, home=tmp_path).authenticated is False


# -----------------------------------------------------------------------------
# Run registry
# -----------------------------------------------------------------------------

class StubRun:
    def __init__(self, run_id, finishes=False):
        self.run_id = run_id
        self.finishes = finishes
        self.terminated = False
        self.registry = None

    def terminate(self):
        self.terminated = True

    async def wait_closed(self):
        self.registry.unregister(self)


def test_registry_tracks_runs():
    registry = RunRegistry()
    run = StubRun("a")
    registry.register(run)

    assert registry.get_run("a") is run
    assert registry.get_run_count() == 1

    registry.unregister(run)
    registry.unregister(run)
    assert registry.get_run("a") is None
    assert registry.active_runs() == []


@pytest.mark.anyio
async def test_drain_terminates_what_is_left():
    registry = RunRegistry()
    runs = [StubRun("a"), StubRun("b")]
    for run in runs:
        run.registry = registry
        registry.register(run)

    await registry.drain(0.05, poll_interval=0.01)

    assert all(run.terminated for run in runs)
    assert registry.get_run_count() == 0


@pytest.mark.anyio
async def test_drain_with_nothing_running():
    await RunRegistry().drain(1)
