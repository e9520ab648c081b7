"""XPath locator generation with an identity-keyed cache.

Each candidate gets an ordered set of XPath expressions, most specific first:
an expression anchored on the nearest ancestor (or the node itself) whose
``id`` is unique in the document, then the absolute positional path from
``/html/body``.  Both resolve to exactly one node of the captured tree.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .dom import DocumentSnapshot, ElementNode, Node, NodeKind
from .errors import LocatorGenerationError

log = logging.getLogger(__name__)

LocatorSet = Tuple[str, ...]


def xpath_literal(value: str) -> str:
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def _name_test(node: Node) -> str:
    match node.kind:
        case NodeKind.TEXT:
            return "text()"
        case NodeKind.ELEMENT:
            if node.foreign:
                return f'*[local-name()="{node.tag}"]'
            return node.tag
    raise TypeError(f"unsupported node kind: {node.kind!r}")


def _same_name(a: Node, b: Node) -> bool:
    if a.kind is not b.kind:
        return False
    if a.kind is NodeKind.TEXT:
        return True
    return a.tag == b.tag and a.foreign == b.foreign


def _step(node: Node) -> str:
    name = _name_test(node)
    parent = node.parent
    if parent is None:
        return name
    siblings = [child for child in parent.children if _same_name(child, node)]
    if len(siblings) < 2:
        return name
    position = next(i for i, sibling in enumerate(siblings, start=1) if sibling is node)
    return f"{name}[{position}]"


class XPathGenerator:
    """Builds locators for nodes of one captured document."""

    def __init__(self, snapshot: DocumentSnapshot) -> None:
        self.body = snapshot.body
        self.root_path = snapshot.root_path
        self.id_counts = snapshot.id_counts

    def _path_to_body(self, node: Node) -> Optional[List[Node]]:
        chain: List[Node] = []
        current: Optional[Node] = node
        while current is not None and current is not self.body:
            chain.append(current)
            current = current.parent
        if current is None:
            return None
        chain.reverse()
        return chain

    def _unique_id(self, element: ElementNode) -> Optional[str]:
        value = element.get_attribute("id")
        if value and self.id_counts.get(value, 0) == 1:
            return value
        return None

    def generate(self, node: Node) -> List[str]:
        chain = self._path_to_body(node)
        if not chain:
            return []
        steps = [_step(item) for item in chain]
        locators: List[str] = []

        anchors: List[ElementNode] = [self.body] + [n for n in chain if n.kind is NodeKind.ELEMENT]
        for depth in range(len(anchors) - 1, -1, -1):
            anchor_id = self._unique_id(anchors[depth])
            if anchor_id is None:
                continue
            anchor = anchors[depth]
            below = steps[chain.index(anchor) + 1:] if anchor is not self.body else steps
            prefix = f"//*[@id={xpath_literal(anchor_id)}]"
            locators.append("/".join([prefix, *below]))
            break

        locators.append("/".join([self.root_path, *steps]))
        return locators


class LocatorCache:
    """Locator sets keyed by node identity, scoped to one document.

    Entries are never evicted one by one; binding a different document or
    calling :meth:`clear` drops the whole table.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, LocatorSet] = {}
        self.document_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._entries

    def get(self, node_id: int) -> Optional[LocatorSet]:
        return self._entries.get(node_id)

    def set(self, node_id: int, locators: LocatorSet) -> None:
        if not locators:
            raise ValueError("refusing to cache an empty locator set")
        self._entries[node_id] = locators

    def clear(self) -> None:
        self._entries.clear()

    def bind(self, document_id: str) -> bool:
        """Attach the cache to *document_id*; return True when it was reset."""

        if document_id == self.document_id:
            return False
        reset = self.document_id is not None
        if reset:
            log.info("Document changed (%s -> %s); dropping %d cached locators", self.document_id, document_id, len(self._entries))
        self._entries.clear()
        self.document_id = document_id
        return reset


async def locate(node: Node, cache: LocatorCache, generator: XPathGenerator) -> LocatorSet:
    cached = cache.get(node.node_id)
    if cached is not None:
        return cached
    await asyncio.sleep(0)
    locators: LocatorSet = tuple(generator.generate(node))
    if not locators:
        raise LocatorGenerationError(node.node_id)
    cache.set(node.node_id, locators)
    return locators


async def generate_locators(
    nodes: Iterable[Node],
    cache: LocatorCache,
    generator: XPathGenerator,
) -> List[LocatorSet]:
    """Locate every node concurrently; any failure fails the whole batch."""

    return list(await asyncio.gather(*(locate(node, cache, generator) for node in nodes)))


__all__ = [
    "LocatorCache",
    "LocatorSet",
    "XPathGenerator",
    "generate_locators",
    "locate",
    "xpath_literal",
]
