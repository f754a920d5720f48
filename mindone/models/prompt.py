"""
Prompt models for the mindone overlay
"""
from __future__ import annotations
from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, Field


class Scope(str, Enum):
    """How far an edit request should reach."""
    ONLY_THIS = "only-this-element"
    ALL_SIMILAR = "all-elements"


class PromptPayload(BaseModel):
    """
    Structured edit request built from a targeted element.

    Built once per send and never mutated afterwards.
    """

    component_name: str = Field(..., description="Nearest named component")
    relative_file_path: str = Field(..., description="Project-relative source file")
    line: int = Field(1, description="Line of the element in the source file")
    class_names: Tuple[str, ...] = Field(default=(), description="Element classes, marker excluded")
    content_summary: Optional[str] = Field(None, description="Child count or truncated text")
    instruction: str = Field(..., description="Scope instruction sentence")
    user_text: Optional[str] = Field(None, description="Free text typed by the developer")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "component_name": "p",
                "relative_file_path": "b/src/App.jsx",
                "line": 10,
                "class_names": [],
                "content_summary": "Count: 0",
                "instruction": "Apply this to this element only.",
                "user_text": None
            }
        }

    @property
    def file_reference(self) -> str:
        return f"{self.relative_file_path}:{self.line}"
