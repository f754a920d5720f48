"""
Prompt Builder for mindone

Turns a targeted element, optional free text and a scope choice into the
structured edit request handed to the editor or the agent relay. Everything
here is pure: identical inputs always give byte-identical prompts.
"""
from __future__ import annotations
import json
from typing import Optional, Tuple, Sequence

from mindone.models.element import TargetedElement, filter_class_names
from mindone.models.prompt import PromptPayload, Scope

ALL_SIMILAR_WITH_CLASS = "Apply this to all similar elements using the class."
ALL_SIMILAR = "Apply this to all similar elements."
ONLY_THIS = "Apply this to this element only."


def split_source_location(source_location: str) -> Tuple[str, int]:
    """Split "path:line[:column]" into (path, line); line defaults to 1."""
    parts = source_location.split(":")
    if len(parts) > 1 and not parts[-1].strip():
        parts.pop()
    numeric = []
    while len(parts) > 1 and parts[-1].strip().isdigit() and len(numeric) < 2:
        numeric.insert(0, parts.pop())
    path = ":".join(parts)
    line = int(numeric[0]) if numeric else 1
    return path, line


def relative_file_path(file_path: str) -> str:
    """
    Project-relative form of an absolute source path.

    Keeps the directory before the first "/src/" segment, or starts at
    "src/" when nothing precedes it. Without a "/src/" segment only the
    file name is kept.
    """
    src_index = file_path.find("/src/")
    if src_index == -1:
        return file_path.rsplit("/", 1)[-1]

    before_src = file_path[:src_index]
    last_slash = before_src.rfind("/")
    if last_slash != -1:
        return file_path[last_slash + 1:]
    return file_path[src_index + 1:]


def _count_label(count: int) -> str:
    return f"{count} {'element' if count == 1 else 'elements'}"


def summarize_content(target: TargetedElement, annotate_children: bool = False) -> Optional[str]:
    """Child count for containers, truncated text for leaves, else None."""
    if target.child_count > 0:
        summary = _count_label(target.child_count)
        snippets = [s for s in target.child_snippets if s]
        if annotate_children and snippets:
            summary += f" [{', '.join(snippets)}]"
        return summary
    if target.truncated_text and target.truncated_text.strip():
        return target.truncated_text
    return None


def scope_instruction(scope: Scope, class_names: Sequence[str] = ()) -> str:
    if scope == Scope.ALL_SIMILAR:
        return ALL_SIMILAR_WITH_CLASS if class_names else ALL_SIMILAR
    return ONLY_THIS


def build_prompt(
    target: Optional[TargetedElement],
    user_text: Optional[str] = "",
    scope: Scope = Scope.ONLY_THIS,
    annotate_children: bool = False
) -> Optional[PromptPayload]:
    """Build the payload for target, or None when it has no source location."""
    if target is None or not target.source_location:
        return None

    file_path, line = split_source_location(target.source_location)
    class_names = filter_class_names(target.class_names)
    text = (user_text or "").strip()

    return PromptPayload(
        component_name=target.component_name,
        relative_file_path=relative_file_path(file_path),
        line=line,
        class_names=class_names,
        content_summary=summarize_content(target, annotate_children),
        instruction=scope_instruction(scope, class_names),
        user_text=text or None,
    )


def render_prompt(payload: PromptPayload) -> str:
    """Assemble the final prompt text from a payload."""
    prompt_text = ""
    if payload.user_text:
        prompt_text += payload.user_text + "\n\n"
    prompt_text += payload.instruction + "\n\n"

    # Key order is part of the format
    record = {
        "component": payload.component_name,
        "file": payload.file_reference,
    }
    if payload.class_names:
        record["classes"] = " ".join(payload.class_names)
    if payload.content_summary:
        record["content"] = payload.content_summary

    prompt_text += json.dumps(record, indent=2, ensure_ascii=False)
    return prompt_text


def build_prompt_text(
    target: Optional[TargetedElement],
    user_text: Optional[str] = "",
    scope: Scope = Scope.ONLY_THIS,
    annotate_children: bool = False
) -> Optional[str]:
    """build_prompt + render_prompt in one step."""
    payload = build_prompt(target, user_text, scope, annotate_children)
    if payload is None:
        return None
    return render_prompt(payload)
