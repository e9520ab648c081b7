"""Highlight overlay and bounding-box resolution.

:func:`annotate` wraps every whitespace-separated token of the page text in a
marker span so later measurements can be made per word.
:func:`resolve_bounding_boxes` turns a previously issued locator into screen
boxes in absolute page coordinates.  Boxes are recomputed on every call.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError

from .dom import DOMRect, ElementMeasurement, ElementNode, NodeKind
from .errors import DocumentUnavailableError
from .messages import AnnotateMessage
from .page import PageBridge

log = logging.getLogger(__name__)

WORD_CLASS = "perception-word"
SPACE_CLASS = "perception-space"
CHROME_CLASSES = frozenset({"perception-nav", "perception-marker"})
SKIPPED_TAGS = frozenset({"script", "style", "iframe", "input", "textarea"})
DEFAULT_HEIGHT_RATIO = 0.75

_WHITESPACE_RE = re.compile(r"(\s+)")


@dataclass(slots=True)
class BoundingBox:
    text: str
    top: float
    left: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class AnnotationEntry:
    node_id: int
    tokens: List[Tuple[str, str]] = field(default_factory=list)
    code: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {"nodeId": self.node_id, "tokens": [list(t) for t in self.tokens], "code": self.code}


def tokenize(text: str) -> List[Tuple[str, str]]:
    """Split *text* into ``(token, kind)`` pairs, kind being ``word`` or ``space``."""

    text = text.replace("\u00a0", " ")
    return [
        (token, "space" if not token.strip() else "word")
        for token in _WHITESPACE_RE.split(text)
        if token
    ]


def _classes(element: ElementNode) -> set[str]:
    return set((element.get_attribute("class") or "").split())


def _is_marker(element: ElementNode) -> bool:
    return element.tag == "span" and bool(_classes(element) & {WORD_CLASS, SPACE_CLASS})


def plan_annotation(body: ElementNode) -> List[AnnotationEntry]:
    """Decide which text nodes under *body* get replaced by token spans."""

    entries: List[AnnotationEntry] = []
    stack: List[Tuple[ElementNode, bool]] = [
        (child, False) for child in reversed(body.children) if child.kind is NodeKind.ELEMENT
    ]
    while stack:
        element, inside_chrome = stack.pop()
        inside_chrome = inside_chrome or bool(_classes(element) & CHROME_CLASSES)
        stack.extend(
            (child, inside_chrome)
            for child in reversed(element.children)
            if child.kind is NodeKind.ELEMENT
        )
        if inside_chrome or element.tag in SKIPPED_TAGS or _is_marker(element):
            continue
        for child in element.children:
            if child.kind is NodeKind.TEXT and child.text.strip():
                entries.append(
                    AnnotationEntry(
                        node_id=child.node_id,
                        tokens=tokenize(child.text),
                        code=element.tag == "code",
                    )
                )
    return entries


async def annotate(bridge: PageBridge, message: Optional[AnnotateMessage] = None) -> int:
    """Annotate the document behind *bridge* and forward to its child frames.

    Returns the number of text nodes replaced in this frame.
    """

    message = message or AnnotateMessage()
    snapshot = await bridge.capture()
    entries = plan_annotation(snapshot.body)
    applied = await bridge.apply_annotation(
        [entry.to_json() for entry in entries], WORD_CLASS, SPACE_CLASS
    )
    log.debug("Annotated %d of %d planned text nodes at %s", applied, len(entries), bridge.url)

    frames = bridge.child_frames()
    if frames:
        await asyncio.gather(*(_forward(frame, message) for frame in frames))
    return applied


async def _forward(frame: PageBridge, message: AnnotateMessage) -> None:
    log.debug("Forwarding %s (v%d) to frame %s", message.action, message.version, frame.url)
    try:
        await annotate(frame, message)
    except (PlaywrightError, DocumentUnavailableError) as exc:
        log.error("Error accessing iframe content at %s: %s", frame.url or "<unknown>", exc)


def _absolute(rect: DOMRect, measurement: ElementMeasurement, height_ratio: float = 1.0) -> Dict[str, float]:
    return {
        "top": rect.top + measurement.scroll_y,
        "left": rect.left + measurement.scroll_x,
        "width": rect.width,
        "height": rect.height * height_ratio,
    }


def _placeholder_text(measurement: ElementMeasurement) -> str:
    if measurement.tag in ("input", "textarea"):
        return measurement.placeholder
    if measurement.tag == "img":
        return measurement.alt
    return ""


def boxes_from_measurement(
    measurement: ElementMeasurement,
    height_ratio: float = DEFAULT_HEIGHT_RATIO,
) -> List[BoundingBox]:
    if measurement.option_text is not None:
        option_text = measurement.option_text.strip()
        if not option_text:
            return []
        return [BoundingBox(text=option_text, **_absolute(measurement.rect, measurement))]

    boxes = [
        BoundingBox(text=token.text, **_absolute(token.rect, measurement, height_ratio))
        for token in measurement.tokens
    ]
    boxes = [
        box
        for box in boxes
        if box.width > 0 and box.height > 0 and box.top >= 0 and box.left >= 0 and box.text.strip()
    ]
    if boxes:
        return boxes

    return [
        BoundingBox(
            text=_placeholder_text(measurement),
            **_absolute(measurement.rect, measurement, height_ratio),
        )
    ]


async def resolve_bounding_boxes(
    bridge: PageBridge,
    locator: str,
    *,
    height_ratio: float = DEFAULT_HEIGHT_RATIO,
) -> List[BoundingBox]:
    measurement = await bridge.measure(locator, WORD_CLASS)
    if measurement is None:
        log.debug("Locator %s did not resolve to an element", locator)
        return []
    return boxes_from_measurement(measurement, height_ratio)


__all__ = [
    "AnnotationEntry",
    "BoundingBox",
    "CHROME_CLASSES",
    "SPACE_CLASS",
    "WORD_CLASS",
    "annotate",
    "boxes_from_measurement",
    "plan_annotation",
    "resolve_bounding_boxes",
    "tokenize",
]
