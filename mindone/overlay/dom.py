"""
Host adapter protocols for the overlay

The overlay core never touches a real DOM. A host bridge (browser
automation, a devtools connection, the test fakes) supplies objects that
satisfy these protocols.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Callable, Protocol, Any, runtime_checkable

from mindone.models.element import OwnerFrame


@dataclass(frozen=True)
class Rect:
    """Viewport-relative bounding box."""
    top: float
    left: float
    bottom: float
    right: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


class DomNode(Protocol):
    """A live element handle; every attribute is re-read on access."""

    @property
    def tag_name(self) -> str: ...

    @property
    def class_names(self) -> Sequence[str]: ...

    @property
    def element_id(self) -> str: ...

    @property
    def text_content(self) -> str: ...

    @property
    def children(self) -> Sequence[Any]: ...

    def closest_with_class(self, class_name: str) -> Optional[Any]: ...

    def closest_with_tag(self, tag_name: str) -> Optional[Any]: ...

    def add_class(self, class_name: str) -> None: ...

    def remove_class(self, class_name: str) -> None: ...

    def has_class(self, class_name: str) -> bool: ...

    def bounding_rect(self) -> Rect: ...


class DomHost(Protocol):
    """The page the overlay runs on."""

    def element_from_point(self, x: float, y: float) -> Optional[DomNode]: ...


@runtime_checkable
class MutationObservingHost(Protocol):
    """
    Optional host capability: notify when a node's attributes change.

    Returns a callable that stops the observation.
    """

    def observe_mutations(self, node: DomNode, callback: Callable[[], None]) -> Callable[[], None]: ...


class OwnerChainResolver(Protocol):
    """Framework-specific adapter walking a node's component owners, nearest first."""

    def resolve_owner_chain(self, node: DomNode) -> Sequence[OwnerFrame]: ...
