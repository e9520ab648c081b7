"""Filtered pre-order walk that collects extraction candidates."""

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Set

from .classification import VisibilityCache, is_candidate, is_rejected
from .dom import ElementNode, Node, NodeKind


def walk(root: ElementNode, reject: Callable[[ElementNode], bool] = is_rejected) -> Iterator[Node]:
    """Yield the descendants of *root* in document order.

    Elements for which *reject* returns True are neither yielded nor entered.
    """

    stack: List[Node] = list(reversed(root.children))
    while stack:
        node = stack.pop()
        if node.kind is NodeKind.ELEMENT:
            if reject(node):
                continue
            yield node
            stack.extend(reversed(node.children))
        else:
            yield node


def find_candidates(
    root: ElementNode,
    viewport_height: float,
    *,
    slack: float = 1.0,
    cache: Optional[VisibilityCache] = None,
) -> List[Node]:
    """Return the candidates under *root* in document order.

    A text node whose parent element is itself a candidate is left out; the
    parent's line already carries that text.
    """

    if cache is None:
        cache = VisibilityCache(viewport_height, slack)
    candidates: List[Node] = []
    emitted: Set[int] = set()
    for node in walk(root):
        if not is_candidate(node, cache):
            continue
        if node.kind is NodeKind.TEXT:
            if node.parent.node_id in emitted:
                continue
        else:
            emitted.add(node.node_id)
        candidates.append(node)
    return candidates


__all__ = ["find_candidates", "walk"]
