"""
Request models for the mindone agent relay
"""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class ExecuteRequest(BaseModel):
    """Request body for POST /execute."""

    prompt: Optional[str] = Field(None, description="Prompt text handed to the agent on stdin")
    workspace_path: Optional[str] = Field(
        None,
        alias="workspacePath",
        description="Workspace the agent runs in (defaults to the server's cwd)"
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "prompt": "Make the title bold\n\nApply this to this element only.\n\n{...}",
                "workspacePath": "/home/dev/project"
            }
        }
