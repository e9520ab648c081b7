"""Extraction session bound to one page.

The session owns the state that must survive between extraction calls for
the same page: the locator cache, the identity of the current document and
the optional event log.  Collaborators keep their own roster of seen chunks
and pass it in on every :meth:`PerceptionSession.process_dom` call.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, List, Optional, Union

from playwright.async_api import Frame, Page

from .assembler import ChunkExtraction, Extraction, assemble_output
from .config import PerceptionConfig, load_config
from .locators import LocatorCache, XPathGenerator, generate_locators
from .overlay import BoundingBox, annotate, resolve_bounding_boxes
from .page import PageBridge
from .scheduler import chunk_count, chunk_top, pick_chunk, scroll_to_height
from .structured_logging import ExtractionEventLog, prepare_log_paths
from .traversal import find_candidates

log = logging.getLogger(__name__)


class PerceptionSession:
    def __init__(
        self,
        bridge: PageBridge,
        config: Optional[PerceptionConfig] = None,
        *,
        session_id: Optional[str] = None,
        event_log: Optional[ExtractionEventLog] = None,
    ) -> None:
        self.bridge = bridge
        self.config = config or load_config()
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.locator_cache = LocatorCache()
        self.event_log = event_log
        if self.event_log is None and self.config.event_log:
            paths = prepare_log_paths(self.session_id, self.config.log_root)
            self.event_log = ExtractionEventLog(self.session_id, paths)

    @classmethod
    def for_page(
        cls, page: Union[Page, Frame], config: Optional[PerceptionConfig] = None
    ) -> "PerceptionSession":
        return cls(PageBridge(page), config)

    def invalidate(self, reason: str = "") -> None:
        """Forget every identity-keyed result; node ids are meaningless now."""

        if reason:
            log.debug("Invalidating perception caches: %s", reason)
        self.locator_cache.clear()
        self.locator_cache.document_id = None

    def close(self) -> None:
        if self.event_log is not None:
            self.event_log.close()
            self.event_log = None

    # ------------------------------------------------------------------
    # Extraction

    async def process_elements(
        self,
        chunk: int,
        scroll_to_chunk: bool = True,
        index_offset: int = 0,
        *,
        mode: str = "elements",
    ) -> Extraction:
        started = time.perf_counter()

        if scroll_to_chunk:
            metrics = await self.bridge.metrics()
            offset_top = min(chunk_top(chunk, metrics), metrics.max_scroll_top)
            await scroll_to_height(
                self.bridge,
                offset_top,
                quiet_ms=self.config.settle_quiet_ms,
                metrics=metrics,
            )

        snapshot = await self.bridge.capture()
        self.locator_cache.bind(snapshot.document_id)

        candidates = find_candidates(
            snapshot.body,
            snapshot.viewport_height,
            slack=self.config.visibility_slack,
        )
        discovered = time.perf_counter()
        log.debug(
            "Found %d candidates for chunk %d in %.1f ms",
            len(candidates),
            chunk,
            (discovered - started) * 1000,
        )

        generator = XPathGenerator(snapshot)
        locator_sets = await generate_locators(candidates, self.locator_cache, generator)
        result = assemble_output(candidates, locator_sets, index_offset)

        duration_ms = (time.perf_counter() - started) * 1000
        log.debug("Processed chunk %d in %.1f ms", chunk, duration_ms)
        if self.event_log is not None:
            self.event_log.log_pass(
                mode=mode,
                chunk=chunk,
                index_offset=index_offset,
                candidate_count=len(candidates),
                duration_ms=duration_ms,
                document_id=snapshot.document_id,
            )
        return result

    async def process_dom(self, chunks_seen: Iterable[int]) -> ChunkExtraction:
        """Extract the unseen chunk nearest to the current scroll position."""

        metrics = await self.bridge.metrics()
        pick = pick_chunk(chunks_seen, metrics)
        result = await self.process_elements(pick.chunk, mode="chunk")
        log.info("Extracted dom elements:\n%s", result.output_string)
        return ChunkExtraction(
            output_string=result.output_string,
            selector_map=result.selector_map,
            chunk=pick.chunk,
            chunks=pick.chunks,
        )

    async def process_all_of_dom(self) -> Extraction:
        """Extract every chunk top to bottom, then scroll back to the top."""

        log.info("Processing all of DOM")
        metrics = await self.bridge.metrics()
        total = chunk_count(metrics)

        index = 0
        parts: List[str] = []
        combined = Extraction()
        for chunk in range(total):
            result = await self.process_elements(chunk, True, index, mode="all")
            parts.append(result.output_string)
            combined.selector_map.update(result.selector_map)
            index += len(result.selector_map)

        await scroll_to_height(self.bridge, 0, quiet_ms=self.config.settle_quiet_ms)

        combined.output_string = "".join(parts)
        log.info("All dom elements: %s", combined.output_string)
        return combined

    # ------------------------------------------------------------------
    # Overlay

    async def annotate(self) -> int:
        applied = await annotate(self.bridge)
        # Token spans shift the sibling positions cached locators rely on.
        self.invalidate("text annotated")
        return applied

    async def bounding_boxes(self, locator: str) -> List[BoundingBox]:
        return await resolve_bounding_boxes(
            self.bridge, locator, height_ratio=self.config.box_height_ratio
        )

    # ------------------------------------------------------------------
    # Snapshot store / restore

    async def store_dom(self) -> str:
        html = await self.bridge.store_dom()
        log.info("DOM state stored.")
        return html

    async def restore_dom(self, stored_dom: str) -> None:
        log.info("Restoring DOM")
        if not stored_dom:
            log.error("No DOM state was provided.")
            return
        await self.bridge.restore_dom(stored_dom)
        self.invalidate("body restored")


__all__ = ["PerceptionSession"]
