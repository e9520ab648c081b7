"""Playwright access for the perception pipeline.

:class:`PageBridge` is the single place that evaluates scripts in the browser.
It wraps either a :class:`~playwright.async_api.Page` or a
:class:`~playwright.async_api.Frame`; everything above it works on the
dataclasses from :mod:`perception.dom`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from playwright.async_api import Error as PlaywrightError, Frame, Page

from . import scripts
from .dom import DocumentSnapshot, ElementMeasurement, ViewportMetrics
from .errors import DocumentUnavailableError

log = logging.getLogger(__name__)


class PageBridge:
    def __init__(self, target: Union[Page, Frame]) -> None:
        self.target = target

    @property
    def url(self) -> str:
        return str(self.target.url or "")

    async def capture(self) -> DocumentSnapshot:
        data = await self.target.evaluate(scripts.SNAPSHOT_SCRIPT)
        if not isinstance(data, dict):
            raise DocumentUnavailableError(f"No document body available at {self.url or 'about:blank'}")
        return DocumentSnapshot.from_json(data)

    async def metrics(self) -> ViewportMetrics:
        return ViewportMetrics.from_json(await self.target.evaluate(scripts.METRICS_SCRIPT))

    async def scroll_and_settle(self, top: float, quiet_ms: int) -> float:
        """Scroll to *top* and wait until scrolling has been quiet for *quiet_ms*."""

        settled = await self.target.evaluate(
            scripts.SCROLL_TO_HEIGHT_SCRIPT, {"top": top, "quietMs": quiet_ms}
        )
        try:
            return float(settled)
        except (TypeError, ValueError):
            return float(top)

    async def store_dom(self) -> str:
        return str(await self.target.evaluate(scripts.STORE_DOM_SCRIPT) or "")

    async def restore_dom(self, html: str) -> None:
        await self.target.evaluate(scripts.RESTORE_DOM_SCRIPT, html)

    async def apply_annotation(
        self,
        entries: Sequence[Dict[str, Any]],
        word_class: str,
        space_class: str,
    ) -> int:
        applied = await self.target.evaluate(
            scripts.APPLY_ANNOTATION_SCRIPT,
            {"entries": list(entries), "wordClass": word_class, "spaceClass": space_class},
        )
        return int(applied or 0)

    async def measure(self, locator: str, word_class: str) -> Optional[ElementMeasurement]:
        try:
            data = await self.target.evaluate(
                scripts.MEASURE_SCRIPT, {"locator": locator, "wordClass": word_class}
            )
        except PlaywrightError as exc:
            log.debug("Measuring %s failed: %s", locator, exc)
            return None
        if not isinstance(data, dict):
            return None
        return ElementMeasurement.from_json(data)

    def child_frames(self) -> List["PageBridge"]:
        frame = getattr(self.target, "main_frame", self.target)
        return [PageBridge(child) for child in frame.child_frames]

    async def screenshot(self) -> bytes:
        return await self.target.screenshot(type="png", full_page=True)


__all__ = ["PageBridge"]
