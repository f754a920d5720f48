"""
Targeted element models

A TargetedElement is a snapshot of what the overlay knows about the node
under the pointer. The node itself is only a lookup handle: geometry and
content are re-queried from it on demand, never cached here.
"""
from __future__ import annotations
from typing import Optional, Any, Tuple
from dataclasses import dataclass, field

HIGHLIGHT_CLASS = "mindone-highlighted"
LABEL_CLASS = "mindone-selection-label"
PANEL_CLASS = "mindone-overlay"


def filter_class_names(class_names) -> Tuple[str, ...]:
    """Drop the overlay's own marker class, keeping order and uniqueness."""
    seen = []
    for name in class_names or ():
        if name and name != HIGHLIGHT_CLASS and name not in seen:
            seen.append(name)
    return tuple(seen)


def truncate_words(text: Optional[str], limit: int = 3) -> str:
    """First `limit` words of text, with '...' when anything was cut."""
    words = (text or "").split()
    truncated = " ".join(words[:limit])
    if len(words) > limit:
        truncated += "..."
    return truncated


@dataclass(frozen=True)
class OwnerFrame:
    """One step of a framework's component ownership chain."""
    name: Optional[str] = None
    source_location: Optional[str] = None


@dataclass(frozen=True)
class TargetedElement:
    """Descriptive snapshot of the element selected for prompt generation."""
    component_name: str
    tag_name: str
    source_location: Optional[str] = None
    class_names: Tuple[str, ...] = ()
    element_id: str = ""
    truncated_text: str = ""
    child_count: int = 0
    child_snippets: Tuple[str, ...] = ()
    node: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def shallow(cls, node) -> "TargetedElement":
        """Cheap target used for immediate highlight feedback during motion."""
        tag = node.tag_name.lower()
        return cls(
            component_name=tag,
            tag_name=tag,
            class_names=filter_class_names(node.class_names),
            element_id=node.element_id or "",
            node=node,
        )

    @property
    def has_source(self) -> bool:
        return bool(self.source_location)
