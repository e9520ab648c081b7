"""Visibility and interactivity predicates used while walking the document.

Each predicate works on one :class:`~perception.dom.ElementNode` and can be
tested on its own.  :func:`is_candidate` combines them into the inclusion
rule for the extraction output.
"""

from __future__ import annotations

from typing import Dict

from .dom import ComputedStyle, DOMRect, ElementNode, Node, NodeKind

LEAF_DENY_TAGS = frozenset({"svg", "iframe", "script", "style", "link"})

INTERACTIVE_TAGS = frozenset(
    {
        "a",
        "button",
        "details",
        "embed",
        "input",
        "label",
        "menu",
        "menuitem",
        "object",
        "select",
        "textarea",
        "summary",
    }
)

INTERACTIVE_ROLES = frozenset(
    {
        "button",
        "menu",
        "menuitem",
        "link",
        "checkbox",
        "radio",
        "slider",
        "tab",
        "tabpanel",
        "textbox",
        "combobox",
        "grid",
        "listbox",
        "option",
        "progressbar",
        "scrollbar",
        "searchbox",
        "switch",
        "tree",
        "treeitem",
        "spinbutton",
        "tooltip",
    }
)

INTERACTIVE_ARIA_ROLES = frozenset({"menu", "menuitem", "button"})


def is_active(element: ElementNode) -> bool:
    if element.has_attribute("disabled") or element.has_attribute("hidden"):
        return False
    return element.get_attribute("aria-disabled") != "true"


def is_interactive(element: ElementNode) -> bool:
    if element.tag in INTERACTIVE_TAGS:
        return True
    if element.get_attribute("role") in INTERACTIVE_ROLES:
        return True
    return element.get_attribute("aria-role") in INTERACTIVE_ARIA_ROLES


def is_leaf(element: ElementNode) -> bool:
    """Return True for elements presented as one atomic piece of content.

    An element whose only child is a non-empty text node counts as a leaf so
    short labels keep their tag and attributes in the output.  Elements with
    several children are never leaves; their descendants are judged instead.
    """

    if element.text_content == "":
        return False
    if not element.children:
        return element.tag not in LEAF_DENY_TAGS
    if len(element.children) == 1:
        child = element.children[0]
        return child.kind is NodeKind.TEXT and bool(child.text.strip())
    return False


def is_style_hidden(style: ComputedStyle) -> bool:
    if style.display == "none" or style.visibility == "hidden":
        return True
    try:
        return float(style.opacity) == 0.0
    except ValueError:
        return False


def is_rect_visible(rect: DOMRect, viewport_height: float, slack: float = 1.0) -> bool:
    """Rect has an area and lies within the viewport band.

    ``slack`` element-heights of tolerance are allowed above and below the
    viewport.
    """

    if rect.width <= 0 or rect.height <= 0:
        return False
    margin = rect.height * slack
    return rect.top >= -margin and rect.bottom <= viewport_height + margin


def is_rejected(element: ElementNode) -> bool:
    """Traversal filter: the element and its whole subtree are skipped."""

    if (
        element.has_attribute("hidden")
        or element.has_attribute("disabled")
        or element.get_attribute("aria-disabled") == "true"
    ):
        return True
    return element.style.display == "none" or element.style.visibility == "hidden"


class VisibilityCache:
    """Per-pass memo of element visibility keyed by node identity."""

    def __init__(self, viewport_height: float, slack: float = 1.0) -> None:
        self.viewport_height = viewport_height
        self.slack = slack
        self._results: Dict[int, bool] = {}

    def __len__(self) -> int:
        return len(self._results)

    def is_visible(self, element: ElementNode) -> bool:
        cached = self._results.get(element.node_id)
        if cached is not None:
            return cached
        visible = not is_style_hidden(element.style) and is_rect_visible(
            element.rect, self.viewport_height, self.slack
        )
        self._results[element.node_id] = visible
        return visible


def is_candidate(node: Node, cache: VisibilityCache) -> bool:
    match node.kind:
        case NodeKind.ELEMENT:
            return (
                cache.is_visible(node)
                and is_active(node)
                and (is_interactive(node) or is_leaf(node))
            )
        case NodeKind.TEXT:
            if not node.text.strip() or node.parent is None:
                return False
            return cache.is_visible(node.parent)
    raise TypeError(f"unsupported node kind: {node.kind!r}")


__all__ = [
    "INTERACTIVE_ARIA_ROLES",
    "INTERACTIVE_ROLES",
    "INTERACTIVE_TAGS",
    "LEAF_DENY_TAGS",
    "VisibilityCache",
    "is_active",
    "is_candidate",
    "is_interactive",
    "is_leaf",
    "is_rect_visible",
    "is_rejected",
    "is_style_hidden",
]
