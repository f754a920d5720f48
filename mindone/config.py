"""
mindone Agent Relay Configuration
"""
from __future__ import annotations
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from MINDONE_* environment variables."""

    # Agent Configuration
    agent_type: str = "cursor"  # only "cursor" is supported for now
    agent_command: str = ""  # overrides the "cursor agent" executable, e.g. "/opt/bin/cursor agent"
    agent_model: str = ""

    # Seconds before a running agent is killed. 0 keeps the process running
    # for as long as it wants (a hung agent hangs the stream).
    agent_timeout_seconds: float = 0

    # Longest single line accepted from the agent's stream-json output
    agent_output_limit: int = 16 * 1024 * 1024

    # Application Configuration
    app_name: str = "mindone Agent Relay"
    debug: bool = False

    # Server Configuration
    host: str = "127.0.0.1"
    agent_port: int = 5567
    shutdown_grace_seconds: float = 10

    # CORS Configuration
    cors_origins: List[str] = ["*"]

    # Overlay / client side
    editor_protocol: str = "cursor"  # "cursor" or "vscode"
    relay_url: str = "http://localhost:5567"
    workspace_path: str = ""

    class Config:
        env_prefix = "MINDONE_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
