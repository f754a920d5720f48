"""
mindone Agent Relay - Main Application

Local HTTP relay between the in-page overlay and an external coding agent.
"""
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from mindone.config import get_settings
from mindone.routes import router
from mindone.services.agent_discovery import find_agent_command, check_agent_auth
from mindone.utils.run_registry import get_run_registry

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Runs a coding agent for prompts sent from the dev overlay and streams its progress",
    version="0.1.0",
    debug=settings.debug
)

# Origins stay "*" with credentials off so browsers accept the wildcard
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """Report what the relay will run."""
    print("[mindone-agent] ========================================")
    print(f"[mindone-agent] Server running on port {settings.agent_port}")
    print(f"[mindone-agent] Agent type: {settings.agent_type}")

    command = await run_in_threadpool(find_agent_command, settings)
    if command:
        print(f"[mindone-agent] Agent command: {' '.join(command)}")
        print("[mindone-agent] Note: Prompts are sent via stdin to the agent")
        auth = await run_in_threadpool(check_agent_auth)
        if not auth.authenticated:
            print("[mindone-agent] Warning: agent authentication not detected, runs may fail")
    else:
        print("[mindone-agent] Warning: agent CLI not found")
        print("[mindone-agent] Make sure Cursor is installed and 'cursor' command is in your PATH")
    print("[mindone-agent] ========================================")


@app.on_event("shutdown")
async def shutdown_event():
    """Let running agents finish before the process exits."""
    print("[mindone-agent] Shutting down server...")
    await get_run_registry().drain(settings.shutdown_grace_seconds)
