"""
Element Locator

Resolves the element under a screen coordinate and, when the host framework
exposes an ownership chain, the component name and source tag behind it.
"""
from __future__ import annotations
from typing import Optional, Tuple

from mindone.models.element import (
    TargetedElement,
    filter_class_names,
    truncate_words,
    LABEL_CLASS,
    PANEL_CLASS,
)
from mindone.overlay.dom import DomHost, DomNode, OwnerChainResolver

CHROME_LABEL = "label"
CHROME_PANEL = "panel"


class ElementLocator:
    """Pure point-to-element queries; safe to call on every pointer event."""

    def __init__(self, host: DomHost, owner_resolver: Optional[OwnerChainResolver] = None):
        self.host = host
        self.owner_resolver = owner_resolver

    def hit_chrome(self, x: float, y: float) -> Optional[str]:
        """Which part of the overlay's own UI is under the point, if any."""
        node = self.host.element_from_point(x, y)
        if node is None:
            return None
        return self._chrome_of(node)

    def node_at(self, x: float, y: float) -> Optional[DomNode]:
        """Topmost page node under the point, excluding overlay chrome."""
        node = self.host.element_from_point(x, y)
        if node is None or self._chrome_of(node):
            return None
        return node

    def locate(self, x: float, y: float) -> Optional[TargetedElement]:
        node = self.node_at(x, y)
        if node is None:
            return None
        return self.describe(node)

    def describe(self, node: DomNode) -> TargetedElement:
        """Full descriptive snapshot of node."""
        tag_name = node.tag_name.lower()
        component_name, source_location = self._resolve_component(node)
        children = list(node.children or ())

        return TargetedElement(
            component_name=component_name or tag_name,
            tag_name=tag_name,
            source_location=source_location,
            class_names=filter_class_names(node.class_names),
            element_id=node.element_id or "",
            truncated_text=truncate_words((node.text_content or "").strip()),
            child_count=len(children),
            child_snippets=tuple(
                " ".join((child.text_content or "").split()[:2]) for child in children
            ),
            node=node,
        )

    def _resolve_component(self, node: DomNode) -> Tuple[Optional[str], Optional[str]]:
        if self.owner_resolver is None:
            return None, None

        component_name = None
        source_location = None
        for frame in self.owner_resolver.resolve_owner_chain(node):
            if frame.name:
                component_name = frame.name
            if frame.source_location:
                source_location = frame.source_location
                break
        return component_name, source_location

    @staticmethod
    def _chrome_of(node: DomNode) -> Optional[str]:
        if node.closest_with_class(LABEL_CLASS) is not None:
            return CHROME_LABEL
        if node.closest_with_class(PANEL_CLASS) is not None:
            return CHROME_PANEL
        return None
