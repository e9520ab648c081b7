from __future__ import annotations

import asyncio
import atexit
import base64
import logging
import time
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
from flask import Flask, Response, jsonify, request
from playwright.async_api import Error as PwError, async_playwright
from pydantic import BaseModel, ValidationError
from werkzeug.exceptions import HTTPException

from perception.config import load_config
from perception.errors import ChunkExhaustedError, PerceptionError, PerceptionErrorCode
from perception.messages import BoundingBoxRequest, ChunkRequest, NavigateRequest, RestoreRequest
from perception.render import draw_boxes
from perception.session import PerceptionSession

app = Flask(__name__)
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("perception")

CONFIG = load_config()

_CDP_DEFAULT_ENDPOINT = "http://127.0.0.1:9222"


@app.errorhandler(Exception)
def handle_exception(error):
    if isinstance(error, HTTPException):
        return error
    correlation_id = str(uuid.uuid4())[:8]
    log.exception("[%s] Uncaught exception: %s", correlation_id, error)
    return jsonify(
        {
            "error": f"Internal failure - {error}",
            "code": PerceptionErrorCode.BROWSER_ERROR.value,
            "correlation_id": correlation_id,
        }
    ), 500


# ---------------------------------------------------------------------------
# CDP helpers


def _normalise_cdp_candidate(value: Optional[str]) -> str:
    trimmed = (value or "").strip().rstrip("/")
    if trimmed and "://" not in trimmed:
        return f"http://{trimmed}"
    return trimmed


def _candidate_cdp_endpoints() -> List[str]:
    """Configured endpoint first (``PERCEPTION_CDP_URL`` lands in CONFIG), then the local default."""

    candidates = [_normalise_cdp_candidate(CONFIG.cdp_url), _CDP_DEFAULT_ENDPOINT]
    return [candidate for candidate in dict.fromkeys(candidates) if candidate]


def _json_version_url(endpoint: str) -> str:
    parsed = urlsplit(endpoint)
    return urlunsplit((parsed.scheme, parsed.netloc, "/json/version", "", ""))


async def _wait_cdp(endpoint: str, *, timeout: float = 3.0, poll_interval: float = 0.25) -> bool:
    version_url = _json_version_url(endpoint)
    deadline = time.time() + max(timeout, 0.5)
    async with httpx.AsyncClient(timeout=2.0) as client:
        while time.time() < deadline:
            try:
                response = await client.get(version_url)
                if response.status_code == 200:
                    return True
            except httpx.HTTPError as exc:
                log.debug("CDP endpoint %s not ready: %s", version_url, exc)
            await asyncio.sleep(poll_interval)
    return False


# ---------------------------------------------------------------------------
# Playwright management


LOOP = asyncio.new_event_loop()

PW = None
BROWSER = None
PAGE = None
SESSION: PerceptionSession | None = None


def _run(coro):
    return LOOP.run_until_complete(coro)


async def _close_browser() -> None:
    global PW, BROWSER, PAGE, SESSION
    if SESSION is not None:
        SESSION.close()
    SESSION = None
    page, browser = PAGE, BROWSER
    PAGE = None
    BROWSER = None
    try:
        if page is not None:
            await page.close()
    except PwError:
        pass
    try:
        if browser is not None:
            await browser.close()
    except PwError:
        pass
    if PW is not None:
        await PW.stop()
        PW = None


@atexit.register
def _cleanup_browser() -> None:  # pragma: no cover - shutdown hook
    try:
        _run(_close_browser())
    except Exception as exc:
        log.debug("Error during Playwright shutdown: %s", exc)


async def _init_browser() -> None:
    global PW, BROWSER, PAGE, SESSION
    if PAGE is not None and not PAGE.is_closed():
        return

    if PW is None:
        PW = await async_playwright().start()

    for candidate in _candidate_cdp_endpoints():
        if not await _wait_cdp(candidate):
            continue
        try:
            browser = await PW.chromium.connect_over_cdp(candidate)
        except PwError as exc:
            log.warning("Connecting to %s failed: %s", candidate, exc)
            continue
        context = browser.contexts[0] if browser.contexts else await browser.new_context()
        PAGE = context.pages[0] if context.pages else await context.new_page()
        BROWSER = browser
        log.info("Connected to shared browser via %s", candidate)
        break
    else:
        BROWSER = await PW.chromium.launch(headless=CONFIG.headless)
        PAGE = await BROWSER.new_page()
        log.info("Launched a local Chromium (headless=%s)", CONFIG.headless)

    SESSION = PerceptionSession.for_page(PAGE, CONFIG)


def _get_session() -> PerceptionSession:
    _run(_init_browser())
    if SESSION is None:
        raise RuntimeError("browser not ready")
    return SESSION


def _parse(model: type[BaseModel]) -> BaseModel:
    return model.model_validate(request.get_json(silent=True) or {})


def _invalid(exc: ValidationError):
    return jsonify(
        {
            "error": "invalid request",
            "code": PerceptionErrorCode.INVALID_REQUEST.value,
            "details": exc.errors(include_url=False, include_context=False),
        }
    ), 400


def _error_payload(exc: PerceptionError) -> Dict[str, Any]:
    payload = exc.to_dict()
    payload["error"] = payload.pop("message")
    return payload


# ---------------------------------------------------------------------------
# Perception API


@app.post("/perception/chunk")
def extract_chunk():
    try:
        body = _parse(ChunkRequest)
    except ValidationError as exc:
        return _invalid(exc)
    session = _get_session()
    try:
        result = _run(session.process_dom(body.chunks_seen))
    except ChunkExhaustedError as exc:
        log.info("Chunk roster exhausted: %s", exc.details)
        return jsonify(_error_payload(exc)), 409
    except PerceptionError as exc:
        log.error("Chunk extraction failed: %s", exc)
        return jsonify(_error_payload(exc)), 500
    return jsonify(result.to_dict())


@app.post("/perception/all")
def extract_all():
    session = _get_session()
    try:
        result = _run(session.process_all_of_dom())
    except PerceptionError as exc:
        log.error("Full extraction failed: %s", exc)
        return jsonify(_error_payload(exc)), 500
    return jsonify(result.to_dict())


@app.post("/perception/annotate")
def annotate_page():
    session = _get_session()
    try:
        applied = _run(session.annotate())
    except PerceptionError as exc:
        log.error("Annotation failed: %s", exc)
        return jsonify(_error_payload(exc)), 500
    return jsonify({"status": "ok", "annotated": applied})


@app.post("/perception/bounding-boxes")
def bounding_boxes():
    try:
        body = _parse(BoundingBoxRequest)
    except ValidationError as exc:
        return _invalid(exc)
    boxes = _run(_get_session().bounding_boxes(body.locator))
    return jsonify({"boxes": [box.to_dict() for box in boxes]})


@app.post("/perception/bounding-boxes/render")
def render_bounding_boxes():
    try:
        body = _parse(BoundingBoxRequest)
    except ValidationError as exc:
        return _invalid(exc)
    session = _get_session()
    boxes = _run(session.bounding_boxes(body.locator))
    image = _run(session.bridge.screenshot())
    return Response(base64.b64encode(draw_boxes(image, boxes)), mimetype="text/plain")


@app.get("/perception/dom")
def store_dom():
    html = _run(_get_session().store_dom())
    return Response(html, mimetype="text/plain")


@app.post("/perception/dom")
def restore_dom():
    try:
        body = _parse(RestoreRequest)
    except ValidationError as exc:
        return _invalid(exc)
    _run(_get_session().restore_dom(body.html))
    return jsonify({"status": "ok" if body.html else "noop"})


@app.post("/perception/navigate")
def navigate():
    try:
        body = _parse(NavigateRequest)
    except ValidationError as exc:
        return _invalid(exc)
    session = _get_session()
    try:
        _run(PAGE.goto(body.url, wait_until="load", timeout=CONFIG.navigation_timeout_ms))
    except PwError as exc:
        log.error("navigate error: %s", exc)
        return jsonify({"error": str(exc), "code": PerceptionErrorCode.BROWSER_ERROR.value}), 502
    session.invalidate(f"navigated to {body.url}")
    return jsonify({"status": "ok", "url": PAGE.url})


@app.get("/healthz")
def health():  # pragma: no cover - trivial endpoint
    return "ok", 200


if __name__ == "__main__":  # pragma: no cover - manual run helper
    app.run("0.0.0.0", CONFIG.server_port, threaded=False)
