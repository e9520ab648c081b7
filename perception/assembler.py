"""Turns ordered candidates into the indexed text block and selector map."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .dom import ElementNode, Node, NodeKind
from .locators import LocatorSet

ESSENTIAL_ATTRIBUTES: tuple[str, ...] = (
    "id",
    "class",
    "href",
    "src",
    "aria-label",
    "aria-name",
    "aria-role",
    "aria-description",
    "aria-expanded",
    "aria-haspopup",
    "type",
    "value",
)

_LINE_BREAK_RE = re.compile(r"\s*[\r\n]+\s*")


@dataclass(slots=True)
class Extraction:
    output_string: str = ""
    selector_map: Dict[int, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outputString": self.output_string,
            "selectorMap": {str(k): list(v) for k, v in self.selector_map.items()},
        }


@dataclass(slots=True)
class ChunkExtraction(Extraction):
    chunk: int = 0
    chunks: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = Extraction.to_dict(self)
        payload["chunk"] = self.chunk
        payload["chunks"] = list(self.chunks)
        return payload


def collect_essential_attributes(element: ElementNode) -> str:
    """Return ``name="value"`` pairs for the allow-listed and ``data-`` attributes."""

    attrs = [
        f'{name}="{element.attributes[name]}"'
        for name in ESSENTIAL_ATTRIBUTES
        if element.attributes.get(name)
    ]
    attrs.extend(
        f'{name}="{value}"'
        for name, value in element.attributes.items()
        if name.startswith("data-")
    )
    return " ".join(attrs)


def _single_line(value: str) -> str:
    return _LINE_BREAK_RE.sub(" ", value)


def format_line(node: Node, index: int) -> str:
    match node.kind:
        case NodeKind.TEXT:
            body = node.text.strip()
        case NodeKind.ELEMENT:
            attributes = collect_essential_attributes(node)
            opening = f"{node.tag} {attributes}" if attributes else node.tag
            body = f"<{opening}>{node.text_content.strip()}</{node.tag}>"
        case _:
            raise TypeError(f"unsupported node kind: {node.kind!r}")
    return f"{index}:{_single_line(body)}\n"


def assemble_output(
    candidates: Sequence[Node],
    locator_sets: Sequence[LocatorSet],
    index_offset: int = 0,
) -> Extraction:
    if len(candidates) != len(locator_sets):
        raise ValueError(
            f"{len(candidates)} candidates but {len(locator_sets)} locator sets"
        )
    lines: List[str] = []
    selector_map: Dict[int, List[str]] = {}
    for position, (node, locators) in enumerate(zip(candidates, locator_sets)):
        actual_index = position + index_offset
        lines.append(format_line(node, actual_index))
        selector_map[actual_index] = list(locators)
    return Extraction(output_string="".join(lines), selector_map=selector_map)


__all__ = [
    "ChunkExtraction",
    "ESSENTIAL_ATTRIBUTES",
    "Extraction",
    "assemble_output",
    "collect_essential_attributes",
    "format_line",
]
