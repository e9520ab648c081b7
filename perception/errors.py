"""Error codes and exceptions raised by the perception pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class PerceptionErrorCode(Enum):
    """Standardized error codes surfaced to callers."""

    CHUNKS_EXHAUSTED = "CHUNKS_EXHAUSTED"
    LOCATOR_GENERATION_FAILED = "LOCATOR_GENERATION_FAILED"
    DOCUMENT_UNAVAILABLE = "DOCUMENT_UNAVAILABLE"
    INVALID_REQUEST = "INVALID_REQUEST"
    BROWSER_ERROR = "BROWSER_ERROR"


class PerceptionError(Exception):
    """Base error carrying a code and optional details."""

    code: PerceptionErrorCode = PerceptionErrorCode.BROWSER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[PerceptionErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ChunkExhaustedError(PerceptionError):
    """Every chunk of the document is already in the caller's seen roster."""

    code = PerceptionErrorCode.CHUNKS_EXHAUSTED

    def __init__(self, chunks_seen: Iterable[int], chunks: Iterable[int]) -> None:
        seen = sorted(set(chunks_seen))
        total = list(chunks)
        super().__init__(
            f"No chunks remaining to check: {len(seen)} seen of {len(total)}",
            details={"chunks_seen": seen, "chunks": total},
        )


class LocatorGenerationError(PerceptionError):
    """A candidate node could not be given any locator."""

    code = PerceptionErrorCode.LOCATOR_GENERATION_FAILED

    def __init__(self, node_id: int, reason: str = "node is detached from the body") -> None:
        super().__init__(
            f"Could not generate a locator for node {node_id}: {reason}",
            details={"node_id": node_id},
        )


class DocumentUnavailableError(PerceptionError):
    """The target page or frame has no body to inspect."""

    code = PerceptionErrorCode.DOCUMENT_UNAVAILABLE


__all__ = [
    "ChunkExhaustedError",
    "DocumentUnavailableError",
    "LocatorGenerationError",
    "PerceptionError",
    "PerceptionErrorCode",
]
