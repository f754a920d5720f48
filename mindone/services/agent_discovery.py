"""
Agent discovery and setup checks

Best-effort probes for the external agent CLI and its credentials. Nothing
here is authoritative: the relay still attempts a run when a probe fails and
reports the spawn error if there really is no agent.
"""
from __future__ import annotations
import json
import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Mapping

from mindone.config import Settings

logger = logging.getLogger(__name__)

CURSOR_EXECUTABLE = "cursor"
AUTH_ENV_VAR = "CURSOR_API_KEY"
AUTH_CONFIG_FILES = (
    (".cursor", "config.json"),
    (".cursor-agent", "config.json"),
    (".config", "cursor", "config.json"),
)


@dataclass
class AuthStatus:
    authenticated: bool
    method: Optional[str] = None


def find_agent_command(settings: Settings) -> Optional[List[str]]:
    """Base command line of the agent CLI, or None when it cannot be found."""
    if settings.agent_command:
        command = shlex.split(settings.agent_command)
        if command and shutil.which(command[0]):
            return command
        return None

    if settings.agent_type != "cursor":
        return None

    executable = shutil.which(CURSOR_EXECUTABLE)
    if executable is None:
        return None

    try:
        subprocess.run(
            [executable, "agent", "--help"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=3,
            check=True,
        )
    except (subprocess.SubprocessError, OSError) as e:
        # Cursor exists but the agent subcommand did not answer; try anyway
        logger.debug("cursor agent --help failed: %s", e)
    return [CURSOR_EXECUTABLE, "agent"]


def check_agent_available(settings: Settings) -> bool:
    return find_agent_command(settings) is not None


def check_agent_auth(env: Optional[Mapping[str, str]] = None, home: Optional[Path] = None) -> AuthStatus:
    """Look for an API key in the environment or a logged-in CLI config file."""
    env = os.environ if env is None else env
    if env.get(AUTH_ENV_VAR):
        return AuthStatus(True, f"{AUTH_ENV_VAR} env var")

    home = home or Path.home()
    for parts in AUTH_CONFIG_FILES:
        config_path = home.joinpath(*parts)
        if not config_path.is_file():
            continue
        try:
            config = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            continue
        if isinstance(config, dict) and (config.get("apiKey") or config.get("token")):
            return AuthStatus(True, "config file")

    return AuthStatus(False)
