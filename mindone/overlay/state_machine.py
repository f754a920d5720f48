"""
Selection State Machine for the mindone overlay

Owns the interaction mode (idle, previewing, locked) and the element being
targeted. The host bridge forwards raw gestures (keys, pointer motion,
clicks) and calls tick() on a timer; the machine keeps the highlight marker,
the floating label position and the compose state consistent.

Timers are explicit: pointer motion only schedules the metadata refresh and
tick() performs it once due, so the whole machine runs on one thread with an
injectable clock.
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Callable, Tuple, Union

from mindone.config import Settings
from mindone.models.element import TargetedElement, HIGHLIGHT_CLASS
from mindone.models.events import StatusEvent, ErrorEvent, DoneEvent
from mindone.models.prompt import Scope
from mindone.overlay.dom import DomHost, DomNode, MutationObservingHost
from mindone.overlay.locator import ElementLocator, CHROME_LABEL, CHROME_PANEL
from mindone.services.prompt_builder import build_prompt_text, split_source_location
from mindone.services.deeplink import to_deep_link, to_editor_file_link

logger = logging.getLogger(__name__)


# =============================================================================
# States
# =============================================================================

class Phase(str, Enum):
    EDITING = "editing"
    SENDING = "sending"
    STREAMING = "streaming"
    SUCCESS = "success"
    ERROR = "error"


RUNNING_PHASES = (Phase.SENDING, Phase.STREAMING)
TERMINAL_PHASES = (Phase.SUCCESS, Phase.ERROR)


@dataclass(frozen=True)
class ComposeState:
    """What the developer is writing for a locked target and how the send is going."""
    text: str = ""
    scope: Scope = Scope.ONLY_THIS
    phase: Phase = Phase.EDITING
    composing: bool = True
    latest_event: Optional[StatusEvent] = None
    error: Optional[str] = None
    result: Optional[str] = None
    prompt_text: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.phase in RUNNING_PHASES

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES


@dataclass(frozen=True)
class Idle:
    target = None


@dataclass(frozen=True)
class Previewing:
    target: Optional[TargetedElement] = None


@dataclass(frozen=True)
class Locked:
    target: TargetedElement
    compose: ComposeState = field(default_factory=ComposeState)


InteractionState = Union[Idle, Previewing, Locked]


@dataclass(frozen=True)
class LabelPosition:
    """Where the floating label sits, in viewport coordinates."""
    top: float
    left: float
    component_name: str
    class_names: Tuple[str, ...] = ()


@dataclass
class OverlayOptions:
    editor_protocol: str = "cursor"
    workspace_path: Optional[str] = None
    show_on_alt: bool = True
    annotate_children: bool = False
    debounce_seconds: float = 0.05
    max_wait_seconds: float = 0.1
    tick_interval: float = 0.1
    close_delay_seconds: float = 1.5

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "OverlayOptions":
        options = cls(
            editor_protocol=settings.editor_protocol,
            workspace_path=settings.workspace_path or None,
        )
        return replace(options, **overrides)


# =============================================================================
# State Machine
# =============================================================================

class SelectionStateMachine:
    """Interaction state of one overlay instance."""

    def __init__(
        self,
        host: DomHost,
        locator: Optional[ElementLocator] = None,
        options: Optional[OverlayOptions] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.host = host
        self.locator = locator or ElementLocator(host)
        self.options = options or OverlayOptions()
        self._clock = clock

        self.state: InteractionState = Idle()
        self.label: Optional[LabelPosition] = None

        self._highlighted: Optional[DomNode] = None
        self._stop_observing: Optional[Callable[[], None]] = None
        self._pending_point: Optional[Tuple[float, float]] = None
        self._pending_since: float = 0.0
        self._refresh_due: float = 0.0
        self._close_at: Optional[float] = None
        # Bumped whenever a lock starts or ends so late relay events can be told apart
        self._session = 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def target(self) -> Optional[TargetedElement]:
        return self.state.target

    @property
    def compose(self) -> Optional[ComposeState]:
        if isinstance(self.state, Locked):
            return self.state.compose
        return None

    @property
    def is_active(self) -> bool:
        return not isinstance(self.state, Idle)

    @property
    def is_locked(self) -> bool:
        return isinstance(self.state, Locked)

    @property
    def highlighted_node(self) -> Optional[DomNode]:
        return self._highlighted

    # -------------------------------------------------------------------------
    # Keyboard
    # -------------------------------------------------------------------------

    def key_down(self, key: str, ctrl: bool = False, meta: bool = False, shift: bool = False):
        if key == "Alt" and self.options.show_on_alt and not (ctrl or meta or shift):
            if isinstance(self.state, Idle):
                self.state = Previewing()
                logger.debug("overlay: previewing")
            return

        if key == "Escape":
            self.escape()

    def key_up(self, key: str):
        if key == "Alt" and self.options.show_on_alt and isinstance(self.state, Previewing):
            self._reset()

    def escape(self):
        """Close the overlay, or only leave compose mode while text is being edited."""
        state = self.state
        if isinstance(state, Locked):
            compose = state.compose
            if compose.composing and compose.phase == Phase.EDITING:
                self.state = replace(state, compose=replace(compose, composing=False, text=""))
                return
            self._reset()
        elif isinstance(state, Previewing):
            self._reset()

    # -------------------------------------------------------------------------
    # Pointer
    # -------------------------------------------------------------------------

    def pointer_moved(self, x: float, y: float):
        """Retarget the highlight; descriptive metadata follows on the next due tick."""
        if not isinstance(self.state, Previewing):
            return

        chrome = self.locator.hit_chrome(x, y)
        if chrome == CHROME_LABEL:
            return
        if chrome == CHROME_PANEL:
            self._pending_point = None
            self._set_preview_target(None)
            return

        node = self.locator.node_at(x, y)
        if node is None:
            return

        current = self.state.target
        if current is None or current.node is not node:
            self._set_preview_target(TargetedElement.shallow(node))

        now = self._clock()
        if self._pending_point is None:
            self._pending_since = now
        self._pending_point = (x, y)
        self._refresh_due = now + self.options.debounce_seconds

    def click(self, x: float, y: float) -> bool:
        """Handle a page click; True when the overlay acted on it."""
        state = self.state
        chrome = self.locator.hit_chrome(x, y)

        if isinstance(state, Locked):
            if chrome is None:
                self._reset()
                return True
            return False

        if not isinstance(state, Previewing) or chrome is not None:
            return False

        node = self.locator.node_at(x, y)
        if node is not None and node.closest_with_tag("button") is not None:
            return False

        if self._pending_point is not None:
            self._refresh_metadata()

        target = self.state.target
        if target is None or not target.has_source:
            return False
        self._lock(target)
        return True

    # -------------------------------------------------------------------------
    # Compose
    # -------------------------------------------------------------------------

    def start_compose(self) -> bool:
        """The explicit "create prompt" affordance."""
        state = self.state
        if isinstance(state, Previewing):
            if self._pending_point is not None:
                self._refresh_metadata()
            target = self.state.target
            if target is None or not target.has_source:
                return False
            self._lock(target)
            return True

        if isinstance(state, Locked) and not state.compose.running:
            self._close_at = None
            self.state = Locked(state.target, ComposeState())
            return True
        return False

    def set_text(self, text: str):
        compose = self.compose
        if compose is not None and compose.phase == Phase.EDITING:
            self.state = replace(self.state, compose=replace(compose, text=text))

    def set_scope(self, scope: Union[Scope, str]):
        compose = self.compose
        if compose is not None and compose.phase == Phase.EDITING:
            self.state = replace(self.state, compose=replace(compose, scope=Scope(scope)))

    def submit_key(self, key: str, shift: bool = False) -> Optional[str]:
        if key == "Enter" and not shift:
            return self.submit()
        if key == "Escape":
            self.escape()
        return None

    def submit(self) -> Optional[str]:
        """Freeze the prompt and enter SENDING. None when there is nothing to send."""
        state = self.state
        if not isinstance(state, Locked):
            return None
        compose = state.compose
        if compose.phase != Phase.EDITING or not compose.composing:
            return None

        prompt_text = build_prompt_text(
            state.target, compose.text, compose.scope, self.options.annotate_children
        )
        if prompt_text is None:
            return None

        self.state = replace(state, compose=replace(
            compose, phase=Phase.SENDING, prompt_text=prompt_text, error=None, latest_event=None
        ))
        logger.debug("overlay: sending prompt for %s", state.target.component_name)
        return prompt_text

    # -------------------------------------------------------------------------
    # Relay feedback
    # -------------------------------------------------------------------------

    def apply_event(self, event):
        """Feed one relay event; ignored unless a send is in flight."""
        compose = self.compose
        if compose is None or not compose.running:
            return

        if isinstance(event, DoneEvent):
            compose = replace(compose, phase=Phase.SUCCESS, result=event.result)
            self._close_at = self._clock() + self.options.close_delay_seconds
        elif isinstance(event, ErrorEvent):
            compose = replace(compose, phase=Phase.ERROR, error=event.message)
        elif isinstance(event, StatusEvent):
            compose = replace(compose, phase=Phase.STREAMING, latest_event=event)
        else:
            return
        self.state = replace(self.state, compose=compose)

    def fail(self, message: str):
        compose = self.compose
        if compose is not None and compose.running:
            self.state = replace(self.state, compose=replace(compose, phase=Phase.ERROR, error=message))

    async def send_to_agent(self, client, workspace_path: Optional[str] = None) -> bool:
        """Submit the current compose state through an AgentRelayClient."""
        prompt_text = self.submit()
        if prompt_text is None:
            return False

        session = self._session

        def on_event(event):
            if self._session == session:
                self.apply_event(event)

        success = await client.send(
            prompt_text,
            workspace_path or self.options.workspace_path,
            on_event=on_event
        )
        if self._session != session:
            return success

        # A stream that ended without "done" or a bare acknowledgement still counts
        if success:
            self.apply_event(DoneEvent())
        else:
            self.fail("Agent run failed")
        return success

    def dismiss(self):
        if isinstance(self.state, Locked):
            self._reset()

    def deep_link_fallback(self) -> Optional[str]:
        """Deep link for the current prompt; closes the overlay."""
        state = self.state
        if not isinstance(state, Locked):
            return None
        prompt_text = state.compose.prompt_text or build_prompt_text(
            state.target, state.compose.text, state.compose.scope, self.options.annotate_children
        )
        if not prompt_text:
            return None
        link = to_deep_link(prompt_text)
        self._reset()
        return link

    def open_in_editor(self) -> Optional[str]:
        target = self.target
        if target is None or not target.has_source:
            return None
        file_path, line = split_source_location(target.source_location)
        return to_editor_file_link(file_path, line, self.options.editor_protocol)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def tick(self):
        """Periodic upkeep; does nothing while idle."""
        if isinstance(self.state, Idle):
            return
        now = self._clock()

        if self._pending_point is not None and isinstance(self.state, Previewing):
            if now >= self._refresh_due or now - self._pending_since >= self.options.max_wait_seconds:
                self._refresh_metadata()

        if self._close_at is not None and now >= self._close_at:
            self._close_at = None
            compose = self.compose
            if compose is not None and compose.phase == Phase.SUCCESS:
                self._reset()
                return

        self._reassert_highlight()
        self._update_label()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _refresh_metadata(self):
        x, y = self._pending_point
        self._pending_point = None
        if not isinstance(self.state, Previewing):
            return
        target = self.locator.locate(x, y)
        if target is not None:
            self._set_preview_target(target)

    def _set_preview_target(self, target: Optional[TargetedElement]):
        self.state = Previewing(target)
        self._highlight(target.node if target is not None else None)
        self._update_label()

    def _lock(self, target: TargetedElement):
        self._pending_point = None
        self._close_at = None
        self._session += 1
        self.state = Locked(target, ComposeState())
        self._highlight(target.node)
        self._update_label()
        logger.debug("overlay: locked %s (%s)", target.component_name, target.source_location)

    def _reset(self):
        self._highlight(None)
        self.state = Idle()
        self.label = None
        self._pending_point = None
        self._close_at = None
        self._session += 1
        logger.debug("overlay: idle")

    def _highlight(self, node: Optional[DomNode]):
        previous = self._highlighted
        if previous is not None and previous is not node:
            previous.remove_class(HIGHLIGHT_CLASS)
            if self._stop_observing is not None:
                self._stop_observing()
                self._stop_observing = None

        if node is not None:
            node.add_class(HIGHLIGHT_CLASS)
            if previous is not node and isinstance(self.host, MutationObservingHost):
                self._stop_observing = self.host.observe_mutations(node, self._reassert_highlight)
        self._highlighted = node

    def _reassert_highlight(self):
        node = self._highlighted
        if node is not None and not node.has_class(HIGHLIGHT_CLASS):
            node.add_class(HIGHLIGHT_CLASS)

    def _update_label(self):
        target = self.target
        if target is None or target.node is None:
            self.label = None
            return
        rect = target.node.bounding_rect()
        self.label = LabelPosition(
            top=rect.bottom + 4,
            left=rect.left + 2,
            component_name=target.component_name,
            class_names=target.class_names,
        )


class MaintenanceLoop:
    """Drives SelectionStateMachine.tick() from the asyncio event loop."""

    def __init__(self, machine: SelectionStateMachine, interval: Optional[float] = None):
        self.machine = machine
        self.interval = interval or machine.options.tick_interval
        self._task: Optional[asyncio.Task] = None

    async def run(self):
        while True:
            if self.machine.is_active:
                self.machine.tick()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
