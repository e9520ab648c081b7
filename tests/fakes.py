"""Hand-written stand-ins for the browser used across the test suite."""

from __future__ import annotations

import io
import itertools
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from PIL import Image

from perception.dom import (
    ComputedStyle,
    DOMRect,
    DocumentSnapshot,
    ElementMeasurement,
    ElementNode,
    Node,
    NodeKind,
    TextNode,
    ViewportMetrics,
)

_ids = itertools.count(1)


def el(
    tag: str,
    *children: Union[Node, str],
    attrs: Optional[Dict[str, str]] = None,
    rect: Sequence[float] = (10, 10, 100, 20),
    style: Optional[Dict[str, str]] = None,
    foreign: bool = False,
) -> ElementNode:
    """Build an element; plain strings become text children.

    ``rect`` is ``(top, left, width, height)``.
    """

    top, left, width, height = rect
    element = ElementNode(
        node_id=next(_ids),
        tag=tag,
        attributes=dict(attrs or {}),
        style=ComputedStyle(**(style or {})),
        rect=DOMRect(top=top, left=left, width=width, height=height),
        foreign=foreign,
    )
    for child in children:
        element.append(text(child) if isinstance(child, str) else child)
    return element


def text(value: str) -> TextNode:
    return TextNode(node_id=next(_ids), text=value)


def count_ids(body: ElementNode) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    stack: List[Node] = [body]
    while stack:
        node = stack.pop()
        if node.kind is NodeKind.ELEMENT:
            value = node.get_attribute("id")
            if value:
                counts[value] = counts.get(value, 0) + 1
            stack.extend(node.children)
    return counts


def snapshot(
    body: ElementNode,
    *,
    document_id: str = "doc-1",
    viewport_height: float = 1000.0,
    document_height: float = 1000.0,
    scroll_y: float = 0.0,
) -> DocumentSnapshot:
    return DocumentSnapshot(
        document_id=document_id,
        body=body,
        metrics=ViewportMetrics(viewport_height, document_height, scroll_y),
        id_counts=count_ids(body),
    )


def png_bytes(width: int = 200, height: int = 120) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buf, format="PNG")
    return buf.getvalue()


BodySource = Union[ElementNode, Callable[[float], ElementNode]]


class FakeBridge:
    """In-memory page: scrolling moves ``scroll_y``, capture returns a body.

    ``body`` may be a callable taking the current scroll offset, so tests can
    return a tree whose geometry matches the scrolled viewport.
    """

    def __init__(
        self,
        body: Optional[BodySource] = None,
        *,
        document_id: str = "doc-1",
        viewport_height: float = 1000.0,
        document_height: float = 1000.0,
        scroll_y: float = 0.0,
        url: str = "https://example.test/",
        frames: Sequence["FakeBridge"] = (),
    ) -> None:
        self.body = body if body is not None else el("body", rect=(0, 0, 800, document_height))
        self.document_id = document_id
        self.viewport_height = viewport_height
        self.document_height = document_height
        self.scroll_y = scroll_y
        self.url = url
        self.frames = list(frames)
        self.html = "<p>stored</p>"
        self.capture_error: Optional[Exception] = None
        self.measurements: Dict[str, ElementMeasurement] = {}
        self.scroll_calls: List[float] = []
        self.captures = 0
        self.annotations: List[List[Dict[str, Any]]] = []
        self.restored: List[str] = []
        self.measure_calls: List[str] = []

    async def metrics(self) -> ViewportMetrics:
        return ViewportMetrics(self.viewport_height, self.document_height, self.scroll_y)

    async def scroll_and_settle(self, top: float, quiet_ms: int) -> float:
        self.scroll_calls.append(top)
        self.scroll_y = top
        return top

    async def capture(self) -> DocumentSnapshot:
        if self.capture_error is not None:
            raise self.capture_error
        self.captures += 1
        body = self.body(self.scroll_y) if callable(self.body) else self.body
        return snapshot(
            body,
            document_id=self.document_id,
            viewport_height=self.viewport_height,
            document_height=self.document_height,
            scroll_y=self.scroll_y,
        )

    async def store_dom(self) -> str:
        return self.html

    async def restore_dom(self, html: str) -> None:
        self.restored.append(html)
        self.html = html

    async def apply_annotation(
        self, entries: Sequence[Dict[str, Any]], word_class: str, space_class: str
    ) -> int:
        self.annotations.append(list(entries))
        return len(entries)

    async def measure(self, locator: str, word_class: str) -> Optional[ElementMeasurement]:
        self.measure_calls.append(locator)
        return self.measurements.get(locator)

    def child_frames(self) -> List["FakeBridge"]:
        return list(self.frames)

    async def screenshot(self) -> bytes:
        return png_bytes()
