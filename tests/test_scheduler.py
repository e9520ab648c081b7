import asyncio

import pytest

from fakes import FakeBridge
from perception.dom import ViewportMetrics
from perception.errors import ChunkExhaustedError, PerceptionErrorCode
from perception.scheduler import chunk_count, pick_chunk, scroll_to_height


@pytest.mark.parametrize(
    "document_height, viewport_height, expected",
    [
        (3000, 1000, 3),
        (3001, 1000, 4),
        (500, 1000, 1),
        (0, 1000, 0),
        (10, 0, 10),
    ],
)
def test_chunk_count(document_height, viewport_height, expected):
    assert chunk_count(ViewportMetrics(viewport_height, document_height)) == expected


def test_pick_nearest_unseen_chunk():
    pick = pick_chunk([0], ViewportMetrics(1000, 3000, scroll_y=0))
    assert pick.chunk == 1
    assert pick.chunks == [0, 1, 2]


def test_pick_uses_current_scroll_position():
    pick = pick_chunk([], ViewportMetrics(1000, 5000, scroll_y=2900))
    assert pick.chunk == 3


def test_ties_go_to_lowest_index():
    pick = pick_chunk([1], ViewportMetrics(1000, 3000, scroll_y=1000))
    assert pick.chunk == 0


def test_seen_roster_is_not_mutated():
    seen = [0, 1]
    pick_chunk(seen, ViewportMetrics(1000, 3000))
    assert seen == [0, 1]


def test_exhaustion_raises():
    with pytest.raises(ChunkExhaustedError) as excinfo:
        pick_chunk([0, 1, 2], ViewportMetrics(1000, 3000))
    assert excinfo.value.code is PerceptionErrorCode.CHUNKS_EXHAUSTED
    assert excinfo.value.details == {"chunks_seen": [0, 1, 2], "chunks": [0, 1, 2]}


def test_empty_document_is_exhausted_immediately():
    with pytest.raises(ChunkExhaustedError):
        pick_chunk([], ViewportMetrics(1000, 0))


def test_scroll_never_passes_the_bottom():
    bridge = FakeBridge(viewport_height=1000, document_height=2500)
    settled = asyncio.run(scroll_to_height(bridge, 2000, quiet_ms=5))
    assert settled == 1500
    assert bridge.scroll_calls == [1500]


def test_scroll_clamps_negative_heights():
    bridge = FakeBridge(viewport_height=1000, document_height=2500, scroll_y=700)
    asyncio.run(scroll_to_height(bridge, -50))
    assert bridge.scroll_calls == [0]


def test_short_document_scrolls_to_top():
    bridge = FakeBridge(viewport_height=1000, document_height=400)
    asyncio.run(scroll_to_height(bridge, 1000))
    assert bridge.scroll_calls == [0]
