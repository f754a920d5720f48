"""Element selection and compose interaction core."""
from mindone.overlay.dom import Rect, DomNode, DomHost, MutationObservingHost, OwnerChainResolver
from mindone.overlay.locator import ElementLocator
from mindone.overlay.state_machine import (
    SelectionStateMachine,
    MaintenanceLoop,
    OverlayOptions,
    ComposeState,
    LabelPosition,
    Phase,
    Idle,
    Previewing,
    Locked,
)

__all__ = [
    "Rect",
    "DomNode",
    "DomHost",
    "MutationObservingHost",
    "OwnerChainResolver",
    "ElementLocator",
    "SelectionStateMachine",
    "MaintenanceLoop",
    "OverlayOptions",
    "ComposeState",
    "LabelPosition",
    "Phase",
    "Idle",
    "Previewing",
    "Locked",
]
