"""Viewport-chunked DOM perception for browser agents."""

from .assembler import ChunkExtraction, Extraction
from .config import PerceptionConfig, load_config
from .errors import ChunkExhaustedError, LocatorGenerationError, PerceptionError
from .overlay import BoundingBox
from .page import PageBridge
from .session import PerceptionSession

__all__ = [
    "BoundingBox",
    "ChunkExhaustedError",
    "ChunkExtraction",
    "Extraction",
    "LocatorGenerationError",
    "PageBridge",
    "PerceptionConfig",
    "PerceptionError",
    "PerceptionSession",
    "load_config",
]
