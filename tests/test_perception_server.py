from __future__ import annotations

import base64
import types

import pytest

from fakes import FakeBridge, el
from perception.config import PerceptionConfig
from perception.dom import DOMRect, ElementMeasurement
from perception.session import PerceptionSession
from server import perception_server


def _tall_body(scroll_y: float):
    first = el("a", "Top link", attrs={"href": "/top"}, rect=(100 - scroll_y, 0, 80, 20))
    second = el("p", "Lower text", rect=(1100 - scroll_y, 0, 80, 20))
    return el("body", first, second, rect=(0, 0, 800, 2000))


def _make_client(monkeypatch: pytest.MonkeyPatch, bridge: FakeBridge | None = None):
    bridge = bridge or FakeBridge(_tall_body, document_height=2000)
    session = PerceptionSession(bridge, PerceptionConfig(), session_id="srv")
    monkeypatch.setattr(perception_server, "_get_session", lambda: session)
    return perception_server.app.test_client(), session


def test_chunk_route_returns_extraction(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)

    response = client.post("/perception/chunk", json={"chunks_seen": [0]})

    assert response.status_code == 200
    assert response.get_json() == {
        "outputString": "0:<p>Lower text</p>\n",
        "selectorMap": {"0": ["/html/body/p"]},
        "chunk": 1,
        "chunks": [0, 1],
    }


def test_chunk_route_reports_exhaustion(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)

    response = client.post("/perception/chunk", json={"chunksSeen": [0, 1]})

    assert response.status_code == 409
    payload = response.get_json()
    assert payload["code"] == "CHUNKS_EXHAUSTED"
    assert payload["details"] == {"chunks_seen": [0, 1], "chunks": [0, 1]}


def test_chunk_route_validates_body(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)

    response = client.post("/perception/chunk", json={"chunks_seen": ["x"]})

    assert response.status_code == 400
    assert response.get_json()["code"] == "INVALID_REQUEST"


def test_all_route_combines_chunks(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)

    response = client.post("/perception/all")

    assert response.status_code == 200
    assert response.get_json()["outputString"] == (
        '0:<a href="/top">Top link</a>\n1:<p>Lower text</p>\n'
    )


def test_bounding_box_routes(monkeypatch: pytest.MonkeyPatch) -> None:
    bridge = FakeBridge(_tall_body, document_height=2000)
    bridge.measurements["/html/body/a"] = ElementMeasurement(
        tag="a", rect=DOMRect(top=10, left=10, width=40, height=20)
    )
    client, _ = _make_client(monkeypatch, bridge)

    response = client.post("/perception/bounding-boxes", json={"locator": "/html/body/a"})
    assert response.status_code == 200
    assert response.get_json() == {
        "boxes": [{"text": "", "top": 10.0, "left": 10.0, "width": 40.0, "height": 15.0}]
    }

    rendered = client.post("/perception/bounding-boxes/render", json={"locator": "/html/body/a"})
    assert rendered.status_code == 200
    assert base64.b64decode(rendered.data).startswith(b"\x89PNG")


def test_bounding_boxes_requires_locator(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)
    response = client.post("/perception/bounding-boxes", json={})
    assert response.status_code == 400


def test_annotate_route(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch, FakeBridge(el("body", el("p", "two words"))))

    response = client.post("/perception/annotate")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "annotated": 1}


def test_store_and_restore_dom(monkeypatch: pytest.MonkeyPatch) -> None:
    bridge = FakeBridge(el("body"))
    client, _ = _make_client(monkeypatch, bridge)

    stored = client.get("/perception/dom")
    assert stored.status_code == 200
    assert stored.get_data(as_text=True) == "<p>stored</p>"

    empty = client.post("/perception/dom", json={})
    assert empty.get_json() == {"status": "noop"}
    assert bridge.restored == []

    restored = client.post("/perception/dom", json={"html": "<div>new</div>"})
    assert restored.get_json() == {"status": "ok"}
    assert bridge.restored == ["<div>new</div>"]


def test_navigate_invalidates_session(monkeypatch: pytest.MonkeyPatch) -> None:
    client, session = _make_client(monkeypatch)
    session.locator_cache.bind("doc-1")
    session.locator_cache.set(1, ("/html/body/a",))
    visited: list[str] = []

    async def goto(url, **kwargs):
        visited.append(url)

    page = types.SimpleNamespace(goto=goto, url="https://example.test/next")
    monkeypatch.setattr(perception_server, "PAGE", page)

    response = client.post("/perception/navigate", json={"url": "https://example.test/next"})

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "url": "https://example.test/next"}
    assert visited == ["https://example.test/next"]
    assert len(session.locator_cache) == 0


def test_cdp_candidates_prefer_configured_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(perception_server, "CONFIG", PerceptionConfig(cdp_url="browser:9333/"))

    assert perception_server._candidate_cdp_endpoints() == ["http://browser:9333", "http://127.0.0.1:9222"]
    assert perception_server._json_version_url("http://browser:9333") == "http://browser:9333/json/version"

    monkeypatch.setattr(perception_server, "CONFIG", PerceptionConfig(cdp_url="http://127.0.0.1:9222"))
    assert perception_server._candidate_cdp_endpoints() == ["http://127.0.0.1:9222"]


def test_unknown_route_and_wrong_method_keep_http_status(monkeypatch: pytest.MonkeyPatch) -> None:
    client, _ = _make_client(monkeypatch)

    missing = client.get("/perception/unknown")
    assert missing.status_code == 404

    wrong_method = client.get("/perception/chunk")
    assert wrong_method.status_code == 405


def test_unexpected_errors_carry_correlation_id(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_session():
        raise RuntimeError("browser not ready")

    monkeypatch.setattr(perception_server, "_get_session", broken_session)
    client = perception_server.app.test_client()

    response = client.post("/perception/all")

    assert response.status_code == 500
    body = response.get_json()
    assert body["code"] == "BROWSER_ERROR"
    assert "browser not ready" in body["error"]
    assert len(body["correlation_id"]) == 8
