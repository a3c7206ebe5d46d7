"""Feed row normalisation, file loading and the async feed client."""

import json

import pytest
from aiohttp import test_utils, web

from taixiu.core.config import FeedConfig
from taixiu.core.errors import FeedError
from taixiu.core.types import Outcome
from taixiu.data.feed import HistoryFeed
from taixiu.data.ingest import extract_rows, normalize_outcome, shape_history
from taixiu.data.loader import load_history

ROWS = [
    {"Phien": 3, "Xuc_xac_1": 6, "Xuc_xac_2": 5, "Xuc_xac_3": 2, "Tong": 13, "Ket_qua": "Tài"},
    {"Phien": 1, "Xuc_xac_1": 1, "Xuc_xac_2": 2, "Xuc_xac_3": 3, "Tong": 6, "Ket_qua": "Xỉu"},
    {"Phien": 2, "Xuc_xac_1": 4, "Xuc_xac_2": 4, "Xuc_xac_3": 4, "Tong": 12},
]


def test_normalize_outcome():
    assert normalize_outcome("Tài") is Outcome.HIGH
    assert normalize_outcome(" xiu ") is Outcome.LOW
    assert normalize_outcome("high") is Outcome.HIGH
    assert normalize_outcome(11) is Outcome.HIGH
    assert normalize_outcome(10) is Outcome.LOW
    assert normalize_outcome("17") is Outcome.HIGH
    assert normalize_outcome("maybe") is None
    assert normalize_outcome(None) is None
    assert normalize_outcome(True) is None


def test_shape_history_sorts_and_derives_outcomes():
    rounds = shape_history(ROWS)
    assert [r.index for r in rounds] == [1, 2, 3]
    assert [r.outcome for r in rounds] == [Outcome.LOW, Outcome.HIGH, Outcome.HIGH]
    assert rounds[0].dice == (1, 2, 3)
    assert rounds[1].total == 12


def test_shape_history_drops_malformed_rows():
    rows = [
        {"Phien": 1, "Xuc_xac_1": 1, "Xuc_xac_2": 1, "Xuc_xac_3": 1, "Tong": 9},
        {"Phien": 2, "Xuc_xac_1": 7, "Xuc_xac_2": 1, "Xuc_xac_3": 1},
        {"Phien": 3, "Xuc_xac_1": 2, "Xuc_xac_2": 2},
        {"Phien": 4, "Ket_qua": "???"},
        {"Tong": 11},
        {"index": 5, "result": "T"},
    ]
    rounds = shape_history(rows)
    assert [(r.index, r.outcome) for r in rounds] == [(5, Outcome.HIGH)]
    assert rounds[0].dice is None


def test_shape_history_deduplicates_by_index():
    rows = [
        {"index": 1, "dice": [1, 1, 2]},
        {"index": 1, "dice": [6, 6, 6]},
        {"index": 2, "total": 10},
    ]
    rounds = shape_history(rows)
    assert len(rounds) == 2
    assert rounds[0].total == 18
    assert rounds[1].outcome is Outcome.LOW


def test_midpoint_is_configurable():
    rounds = shape_history([{"index": 1, "total": 11}], midpoint=11.5)
    assert rounds[0].outcome is Outcome.LOW


def test_extract_rows():
    assert extract_rows(ROWS) == ROWS
    assert extract_rows({"data": ROWS}) == ROWS
    assert extract_rows({"history": [1, ROWS[0]]}) == [ROWS[0]]
    assert extract_rows({"unexpected": True}) == []
    assert extract_rows("nope") == []


def test_load_history_json(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"data": ROWS}, ensure_ascii=False), encoding="utf-8")
    rounds = load_history(path)
    assert [r.index for r in rounds] == [1, 2, 3]
    assert len(load_history(path, limit=1)) == 1


def test_load_history_csv(tmp_path):
    path = tmp_path / "history.csv"
    path.write_text(
        "Phien,Xuc_xac_1,Xuc_xac_2,Xuc_xac_3,Tong,Ket_qua\n"
        "10,6,6,5,17,T\n"
        "11,1,1,2,4,\n"
        "12,1,1,2,9,X\n",
        encoding="utf-8",
    )
    rounds = load_history(path)
    assert [(r.index, r.outcome) for r in rounds] == [(10, Outcome.HIGH), (11, Outcome.LOW)]
    assert rounds[1].dice == (1, 1, 2)


@pytest.mark.asyncio
async def test_feed_fetches_and_shapes_history():
    async def handler(request):
        return web.json_response({"data": ROWS})

    app = web.Application()
    app.router.add_get("/history", handler)
    async with test_utils.TestServer(app) as server:
        config = FeedConfig(url=str(server.make_url("/history")), request_timeout=5)
        async with HistoryFeed(config) as feed:
            rounds = await feed.fetch_history()
    assert [r.index for r in rounds] == [1, 2, 3]


@pytest.mark.asyncio
async def test_feed_raises_on_bad_status():
    async def handler(request):
        return web.Response(status=503, text="down")

    app = web.Application()
    app.router.add_get("/history", handler)
    async with test_utils.TestServer(app) as server:
        config = FeedConfig(url=str(server.make_url("/history")), request_timeout=5)
        async with HistoryFeed(config) as feed:
            with pytest.raises(FeedError):
                await feed.fetch_history()


@pytest.mark.asyncio
async def test_feed_raises_on_invalid_json():
    async def handler(request):
        return web.Response(status=200, text="<html>")

    app = web.Application()
    app.router.add_get("/history", handler)
    async with test_utils.TestServer(app) as server:
        config = FeedConfig(url=str(server.make_url("/history")), request_timeout=5)
        feed = HistoryFeed(config)
        try:
            with pytest.raises(FeedError):
                await feed.fetch_history()
        finally:
            await feed.close()
