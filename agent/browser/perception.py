from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Iterable, List

import requests

from perception.errors import ChunkExhaustedError

_DEFAULT_ENDPOINTS: tuple[str, ...] = (
    "http://perception:7000",
    "http://localhost:7000",
)

_API_ENDPOINT: str | None = None
_API_LOCK = threading.Lock()

log = logging.getLogger(__name__)


def _candidate_endpoints() -> List[str]:
    configured = os.getenv("PERCEPTION_API", "").strip().rstrip("/")
    return [endpoint for endpoint in dict.fromkeys((configured, *_DEFAULT_ENDPOINTS)) if endpoint]


def _probe_endpoint(endpoint: str, timeout: float = 1.0) -> bool:
    try:
        response = requests.get(f"{endpoint}/healthz", timeout=timeout)
        return response.status_code == 200
    except requests.RequestException:
        return False


def get_perception_api_base(refresh: bool = False) -> str:
    """Return the first perception server answering ``/healthz``, cached."""

    global _API_ENDPOINT
    with _API_LOCK:
        if _API_ENDPOINT and not refresh:
            return _API_ENDPOINT
        candidates = _candidate_endpoints()
        healthy = next((endpoint for endpoint in candidates if _probe_endpoint(endpoint)), None)
        if healthy is None:
            log.warning("No perception server answered /healthz; defaulting to %s", candidates[0])
        _API_ENDPOINT = healthy or candidates[0]
        return _API_ENDPOINT


def set_perception_api_base(base_url: str) -> None:
    normalised = (base_url or "").strip().rstrip("/")
    if not normalised:
        raise ValueError("base_url must be a non-empty string")

    global _API_ENDPOINT
    with _API_LOCK:
        _API_ENDPOINT = normalised
    log.info("Perception server endpoint overridden to %s", normalised)


def _api_url(path: str) -> str:
    return f"{get_perception_api_base()}/{path.lstrip('/')}"


def _empty_extraction() -> Dict[str, Any]:
    return {"outputString": "", "selectorMap": {}}


def extract_chunk(chunks_seen: Iterable[int]) -> Dict[str, Any]:
    """Extract the next unseen chunk.

    Raises :class:`ChunkExhaustedError` once every chunk has been seen so
    callers can stop their loop; other failures return an empty extraction.
    """

    seen = sorted({int(chunk) for chunk in chunks_seen})
    try:
        response = requests.post(
            _api_url("/perception/chunk"), json={"chunks_seen": seen}, timeout=(5, 60)
        )
    except requests.RequestException as exc:
        log.error("extract_chunk error: %s", exc)
        return _empty_extraction()

    if response.status_code == 409:
        try:
            payload = response.json()
        except ValueError as exc:
            log.warning("extract_chunk: unreadable exhaustion reply: %s", exc)
            payload = {}
        details = payload.get("details") if isinstance(payload, dict) else None
        details = details if isinstance(details, dict) else {}
        raise ChunkExhaustedError(details.get("chunks_seen", seen), details.get("chunks", []))
    try:
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        log.error("extract_chunk error: %s", exc)
        return _empty_extraction()


def extract_all() -> Dict[str, Any]:
    try:
        response = requests.post(_api_url("/perception/all"), timeout=(5, 300))
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        log.error("extract_all error: %s", exc)
        return _empty_extraction()


def annotate() -> bool:
    try:
        response = requests.post(_api_url("/perception/annotate"), timeout=(5, 60))
        response.raise_for_status()
        return True
    except requests.RequestException as exc:
        log.error("annotate error: %s", exc)
        return False


def get_bounding_boxes(locator: str) -> List[Dict[str, Any]]:
    try:
        response = requests.post(
            _api_url("/perception/bounding-boxes"), json={"locator": locator}, timeout=(5, 30)
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        log.error("get_bounding_boxes error: %s", exc)
        return []
    boxes = data.get("boxes") if isinstance(data, dict) else None
    return boxes or []


def store_dom() -> str:
    """Best-effort retrieval of the current body markup."""

    try:
        response = requests.get(_api_url("/perception/dom"), timeout=(5, 30))
        response.raise_for_status()
        return response.text
    except requests.RequestException as exc:
        log.error("store_dom error: %s", exc)
        return ""


def restore_dom(html: str) -> bool:
    try:
        response = requests.post(_api_url("/perception/dom"), json={"html": html}, timeout=(5, 30))
        response.raise_for_status()
        return True
    except requests.RequestException as exc:
        log.error("restore_dom error: %s", exc)
        return False


__all__ = [
    "annotate",
    "extract_all",
    "extract_chunk",
    "get_bounding_boxes",
    "get_perception_api_base",
    "restore_dom",
    "set_perception_api_base",
    "store_dom",
]
