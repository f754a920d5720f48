from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from mindone.config import Settings
from mindone.models.element import OwnerFrame, LABEL_CLASS, PANEL_CLASS
from mindone.overlay.dom import Rect
from mindone.overlay.locator import ElementLocator
from mindone.overlay.state_machine import SelectionStateMachine, OverlayOptions

FAKE_AGENT = Path(__file__).resolve().parent / "fake_agent.py"


class FakeNode:
    """Minimal live element: classes and geometry can change under the overlay."""

    def __init__(self, tag, classes=(), element_id="", text="", children=(), rect=None, frames=()):
        self.tag = tag
        self.classes = list(classes)
        self.element_id = element_id
        self.text = text
        self.parent = None
        self.kids = list(children)
        for child in self.kids:
            child.parent = self
        self.rect = rect or Rect(top=0, left=0, bottom=20, right=100)
        self.frames = list(frames)

    @property
    def tag_name(self):
        return self.tag.upper()

    @property
    def class_names(self):
        return list(self.classes)

    @property
    def text_content(self):
        parts = [self.text] + [child.text_content for child in self.kids]
        return " ".join(part for part in parts if part)

    @property
    def children(self):
        return list(self.kids)

    def closest_with_class(self, class_name):
        node = self
        while node is not None:
            if class_name in node.classes:
                return node
            node = node.parent
        return None

    def closest_with_tag(self, tag_name):
        node = self
        while node is not None:
            if node.tag.lower() == tag_name.lower():
                return node
            node = node.parent
        return None

    def add_class(self, class_name):
        if class_name not in self.classes:
            self.classes.append(class_name)

    def remove_class(self, class_name):
        if class_name in self.classes:
            self.classes.remove(class_name)

    def has_class(self, class_name):
        return class_name in self.classes

    def bounding_rect(self):
        return self.rect

    def __repr__(self):
        return f"<FakeNode {self.tag}>"


class FakeDom:
    """Point-to-node lookup table standing in for a rendered page."""

    def __init__(self):
        self.points = {}

    def place(self, node, x, y):
        self.points[(x, y)] = node
        return node

    def element_from_point(self, x, y):
        return self.points.get((x, y))

    def highlighted(self, marker="mindone-highlighted"):
        nodes = {id(n): n for n in self.points.values()}.values()
        return [node for node in nodes if marker in node.classes]


class ObservingDom(FakeDom):
    """FakeDom that can report attribute mutations, like a MutationObserver."""

    def __init__(self):
        super().__init__()
        self.observers = {}

    def observe_mutations(self, node, callback):
        self.observers[id(node)] = callback

        def stop():
            self.observers.pop(id(node), None)

        return stop

    def strip_class(self, node, class_name):
        node.remove_class(class_name)
        callback = self.observers.get(id(node))
        if callback is not None:
            callback()


class FrameResolver:
    def resolve_owner_chain(self, node):
        return list(node.frames)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def build_page(dom):
    """A small page: a counter paragraph, a list, a plain span, a button and the overlay chrome."""
    page = {}
    page["counter"] = dom.place(FakeNode(
        "p", text="Count: 0",
        rect=Rect(top=10, left=10, bottom=30, right=200),
        frames=[OwnerFrame("p", "/a/b/src/App.jsx:10"), OwnerFrame("App", None)],
    ), 10, 10)
    page["list"] = dom.place(FakeNode(
        "ul", classes=["menu", "dark"],
        children=[FakeNode("li", text="Home page link"), FakeNode("li", text="About us")],
        frames=[OwnerFrame("ul", None), OwnerFrame("Menu", "/home/u/proj/src/components/Menu.jsx:4")],
    ), 50, 50)
    page["plain"] = dom.place(FakeNode("span", text="no source here"), 80, 80)
    page["button"] = dom.place(FakeNode("button", text="Save", frames=[OwnerFrame("button", "/a/b/src/App.jsx:20")]), 90, 90)

    label = FakeNode("div", classes=[LABEL_CLASS], children=[FakeNode("span", text="p")])
    page["label"] = dom.place(label.kids[0], 200, 200)
    panel = FakeNode("div", classes=[PANEL_CLASS], children=[FakeNode("h3", text="Dev Overlay")])
    page["panel"] = dom.place(panel.kids[0], 300, 300)
    return page


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dom():
    return FakeDom()


@pytest.fixture
def page(dom):
    return build_page(dom)


@pytest.fixture
def locator(dom):
    return ElementLocator(dom, FrameResolver())


@pytest.fixture
def machine(dom, page, locator, clock):
    return SelectionStateMachine(dom, locator, OverlayOptions(workspace_path="/a/b"), clock=clock)


@pytest.fixture
def agent_settings():
    """Settings that run tests/fake_agent.py instead of a real agent CLI."""
    return Settings(
        agent_command=shlex.join([sys.executable, str(FAKE_AGENT)]),
        shutdown_grace_seconds=1,
    )
