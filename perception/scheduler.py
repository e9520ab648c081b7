"""Viewport chunk scheduling.

A document is cut into viewport-height chunks ``0 .. N-1``.  The caller keeps
the roster of chunks it has already seen; :func:`pick_chunk` only reorders
the remaining ones by their distance to the current scroll offset.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from .dom import ViewportMetrics
from .errors import ChunkExhaustedError

log = logging.getLogger(__name__)


class ScrollTarget(Protocol):
    async def metrics(self) -> ViewportMetrics: ...

    async def scroll_and_settle(self, top: float, quiet_ms: int) -> float: ...


@dataclass(slots=True)
class ChunkPick:
    chunk: int
    chunks: List[int] = field(default_factory=list)


def chunk_count(metrics: ViewportMetrics) -> int:
    viewport_height = max(metrics.viewport_height, 1.0)
    return math.ceil(metrics.document_height / viewport_height)


def chunk_top(chunk: int, metrics: ViewportMetrics) -> float:
    return metrics.viewport_height * chunk


def pick_chunk(chunks_seen: Iterable[int], metrics: ViewportMetrics) -> ChunkPick:
    """Return the unseen chunk whose top is closest to the scroll position.

    Ties go to the lowest chunk index.  Raises :class:`ChunkExhaustedError`
    when every chunk has been seen.
    """

    seen = set(chunks_seen)
    chunks = list(range(chunk_count(metrics)))
    remaining = [chunk for chunk in chunks if chunk not in seen]
    if not remaining:
        raise ChunkExhaustedError(seen, chunks)

    closest = remaining[0]
    for chunk in remaining[1:]:
        distance = abs(metrics.scroll_y - chunk_top(chunk, metrics))
        if distance < abs(metrics.scroll_y - chunk_top(closest, metrics)):
            closest = chunk
    return ChunkPick(chunk=closest, chunks=chunks)


async def scroll_to_height(
    target: ScrollTarget,
    height: float,
    *,
    quiet_ms: int = 100,
    metrics: Optional[ViewportMetrics] = None,
) -> float:
    """Scroll to *height* without passing the bottom and wait for settle.

    Layout must not be read before this returns; geometry taken right after
    issuing a scroll is unreliable.
    """

    if metrics is None:
        metrics = await target.metrics()
    top = max(0.0, min(height, metrics.max_scroll_top))
    settled = await target.scroll_and_settle(top, quiet_ms)
    log.debug("Scrolled to %.0f (requested %.0f, settled at %.0f)", top, height, settled)
    return settled


__all__ = [
    "ChunkPick",
    "ScrollTarget",
    "chunk_count",
    "chunk_top",
    "pick_chunk",
    "scroll_to_height",
]
