"""Data model for captured documents.

A :class:`DocumentSnapshot` is built from the JSON returned by
``perception.scripts.SNAPSHOT_SCRIPT``.  Every node carries the identity the
page assigned to it, so nodes captured in two separate passes over the same
document compare equal by ``node_id`` even though the Python objects differ.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class NodeKind(str, Enum):
    ELEMENT = "element"
    TEXT = "text"


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(slots=True)
class DOMRect:
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    @classmethod
    def from_json(cls, data: Dict | None) -> "DOMRect":
        if not isinstance(data, dict):
            return cls()
        return cls(
            top=_as_float(data.get("top")),
            left=_as_float(data.get("left")),
            width=_as_float(data.get("width")),
            height=_as_float(data.get("height")),
        )


@dataclass(slots=True)
class ComputedStyle:
    display: str = "block"
    visibility: str = "visible"
    opacity: str = "1"

    @classmethod
    def from_json(cls, data: Dict | None) -> "ComputedStyle":
        if not isinstance(data, dict):
            return cls()
        return cls(
            display=str(data.get("display") or "block"),
            visibility=str(data.get("visibility") or "visible"),
            opacity=str(data.get("opacity") if data.get("opacity") is not None else "1"),
        )


@dataclass(eq=False)
class TextNode:
    node_id: int
    text: str
    parent: Optional["ElementNode"] = field(default=None, repr=False)

    kind = NodeKind.TEXT


@dataclass(eq=False)
class ElementNode:
    node_id: int
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    style: ComputedStyle = field(default_factory=ComputedStyle)
    rect: DOMRect = field(default_factory=DOMRect)
    children: List["Node"] = field(default_factory=list, repr=False)
    parent: Optional["ElementNode"] = field(default=None, repr=False)
    foreign: bool = False
    _text_content: Optional[str] = field(default=None, init=False, repr=False)

    kind = NodeKind.ELEMENT

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    @property
    def text_content(self) -> str:
        """Concatenated text of every descendant text node, untrimmed."""

        if self._text_content is None:
            parts: List[str] = []
            stack: List[Node] = list(reversed(self.children))
            while stack:
                node = stack.pop()
                if node.kind is NodeKind.TEXT:
                    parts.append(node.text)
                else:
                    stack.extend(reversed(node.children))
            self._text_content = "".join(parts)
        return self._text_content

    def append(self, child: "Node") -> "Node":
        child.parent = self
        self.children.append(child)
        ancestor: Optional[ElementNode] = self
        while ancestor is not None:
            ancestor._text_content = None
            ancestor = ancestor.parent
        return child


Node = Union[ElementNode, TextNode]


def _node_from_json(data: Dict[str, Any]) -> Node:
    node_id = int(data.get("id", 0))
    if data.get("type") == NodeKind.TEXT.value:
        return TextNode(node_id=node_id, text=str(data.get("text") or ""))
    attrs: Dict[str, str] = {}
    for pair in data.get("attrs") or []:
        if isinstance(pair, (list, tuple)) and len(pair) == 2:
            attrs[str(pair[0])] = str(pair[1])
    return ElementNode(
        node_id=node_id,
        tag=str(data.get("tag", "")).lower(),
        attributes=attrs,
        style=ComputedStyle.from_json(data.get("style")),
        rect=DOMRect.from_json(data.get("rect")),
        foreign=bool(data.get("foreign", False)),
    )


def build_tree(data: Dict[str, Any]) -> ElementNode:
    """Rebuild the node tree from its serialised form without recursion."""

    root = _node_from_json(data)
    if not isinstance(root, ElementNode):
        raise ValueError("snapshot root must be an element")
    stack = [(root, data)]
    while stack:
        parent, raw = stack.pop()
        for raw_child in raw.get("children") or []:
            if not isinstance(raw_child, dict):
                continue
            child = parent.append(_node_from_json(raw_child))
            if isinstance(child, ElementNode):
                stack.append((child, raw_child))
    return root


@dataclass(slots=True)
class ViewportMetrics:
    viewport_height: float
    document_height: float
    scroll_y: float = 0.0

    @property
    def max_scroll_top(self) -> float:
        return max(0.0, self.document_height - self.viewport_height)

    @classmethod
    def from_json(cls, data: Dict | None) -> "ViewportMetrics":
        data = data if isinstance(data, dict) else {}
        return cls(
            viewport_height=_as_float(data.get("viewportHeight")),
            document_height=_as_float(data.get("documentHeight")),
            scroll_y=_as_float(data.get("scrollY")),
        )


@dataclass
class DocumentSnapshot:
    document_id: str
    body: ElementNode
    metrics: ViewportMetrics
    id_counts: Dict[str, int] = field(default_factory=dict)
    root_path: str = "/html/body"

    @property
    def viewport_height(self) -> float:
        return self.metrics.viewport_height

    @classmethod
    def from_json(cls, data: Dict) -> "DocumentSnapshot":
        counts_raw = data.get("idCounts") or {}
        return cls(
            document_id=str(data.get("documentId", "")),
            body=build_tree(data.get("body") or {"type": "element", "tag": "body"}),
            metrics=ViewportMetrics.from_json(data),
            id_counts={str(k): int(v) for k, v in counts_raw.items()},
            root_path=str(data.get("rootPath") or "/html/body"),
        )


@dataclass(slots=True)
class MeasuredToken:
    text: str
    rect: DOMRect


@dataclass(slots=True)
class ElementMeasurement:
    """Geometry read from the page for one resolved locator."""

    tag: str
    rect: DOMRect
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    option_text: Optional[str] = None
    placeholder: str = ""
    alt: str = ""
    tokens: List[MeasuredToken] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict) -> "ElementMeasurement":
        option_text = data.get("optionText")
        tokens = [
            MeasuredToken(text=str(item.get("text") or ""), rect=DOMRect.from_json(item.get("rect")))
            for item in data.get("tokens") or []
            if isinstance(item, dict)
        ]
        return cls(
            tag=str(data.get("tag", "")).lower(),
            rect=DOMRect.from_json(data.get("rect")),
            scroll_x=_as_float(data.get("scrollX")),
            scroll_y=_as_float(data.get("scrollY")),
            option_text=None if option_text is None else str(option_text),
            placeholder=str(data.get("placeholder") or ""),
            alt=str(data.get("alt") or ""),
            tokens=tokens,
        )


__all__ = [
    "ComputedStyle",
    "DOMRect",
    "DocumentSnapshot",
    "ElementMeasurement",
    "ElementNode",
    "MeasuredToken",
    "Node",
    "NodeKind",
    "TextNode",
    "ViewportMetrics",
    "build_tree",
]
