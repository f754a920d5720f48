"""
Deep links into the editor

Both builders only format URIs; opening them is up to the host.
"""
from __future__ import annotations
from urllib.parse import quote

DEFAULT_SCHEME = "cursor"
DEFAULT_AUTHORITY = "anysphere.cursor-deeplink"
EDITOR_PROTOCOLS = ("cursor", "vscode")

# Characters encodeURIComponent leaves alone besides alphanumerics and "_.-~"
_URI_COMPONENT_SAFE = "!*'()"


def encode_uri_component(text: str) -> str:
    """Percent-encode text the way browsers encode a URI component (space -> %20)."""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def to_deep_link(prompt_text: str, scheme: str = DEFAULT_SCHEME, authority: str = DEFAULT_AUTHORITY) -> str:
    """Build the editor's prompt deep link for prompt_text."""
    if not prompt_text:
        raise ValueError("Cannot build a deep link for an empty prompt")
    return f"{scheme}://{authority}/prompt?text={encode_uri_component(prompt_text)}"


def to_editor_file_link(file_path: str, line: int = 1, protocol: str = DEFAULT_SCHEME) -> str:
    """URI that opens file_path at line in Cursor or VS Code."""
    if protocol not in EDITOR_PROTOCOLS:
        protocol = "vscode"
    return f"{protocol}://file{file_path}:{line}"
