"""HTTP API smoke tests against a stub history provider."""

import asyncio

from fastapi.testclient import TestClient

from taixiu.api import server
from taixiu.api.server import create_app
from taixiu.core.config import Config
from taixiu.core.errors import FeedError


class StubProvider:
    def __init__(self, rounds=None, error=None):
        self.rounds = rounds or []
        self.error = error
        self.closed = False

    async def fetch_history(self):
        if self.error is not None:
            raise self.error
        return list(self.rounds)

    async def close(self):
        self.closed = True


def _client(provider, **sections):
    sections.setdefault("logging", {"level": "WARNING"})
    return TestClient(create_app(Config.from_dict(sections), provider))


def test_health():
    with _client(StubProvider()) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_forecast_on_alternation(make_history):
    provider = StubProvider(make_history("LH" * 60))
    with _client(provider, api={"locale": "en"}) as client:
        response = client.get("/api/forecast")
    assert provider.closed
    assert response.status_code == 200
    body = response.json()
    assert body["next_index"] == 121
    assert body["last_round"]["outcome"] == "High"
    assert body["forecast"]["predicted"] == "LOW"
    assert body["forecast"]["label"] == "Low"
    assert body["forecast"]["confidence"] >= 0.7
    assert body["risk"]["level"] in ("LOW", "MEDIUM", "HIGH")
    assert body["suggested_bet"] >= 1
    assert body["backtest"]["sample_size"] == 119


def test_forecast_renders_vietnamese_by_default(make_history):
    with _client(StubProvider(make_history("LH" * 10))) as client:
        body = client.get("/api/forecast").json()
    assert body["forecast"]["label"] in ("Tài", "Xỉu")
    assert body["backtest"]["sample_size"] == 0


def test_full_forecast_includes_recent_rounds(make_history):
    with _client(StubProvider(make_history("HHLL" * 10))) as client:
        response = client.get("/api/forecast/full", params={"count": 5})
    assert response.status_code == 200
    body = response.json()
    assert [row["index"] for row in body["recent"]] == [36, 37, 38, 39, 40]
    hits = sum(1 for row in body["recent"] if row["correct"])
    assert body["recent_accuracy"] == round(hits / 5, 4)


def test_backtest_route_with_steps(make_history):
    with _client(StubProvider(make_history("HHLHLLHLHHLLLHHLHLHL" * 3))) as client:
        response = client.get("/api/backtest", params={"lookback": 30, "steps": True})
        bad = client.get("/api/backtest", params={"lookback": -1})
    assert response.status_code == 200
    body = response.json()
    assert body["sample_size"] == 30
    assert len(body["steps"]) == 30
    assert bad.status_code == 422


def test_motif_route(make_history):
    with _client(StubProvider(make_history("LH" * 20)), api={"locale": "en"}) as client:
        body = client.get("/api/motif", params={"window": 12}).json()
    assert body["motif"] == "1-1"
    assert body["predicted"] == "LOW"
    assert "strict alternation" in body["rationale"][0]


def test_feed_failure_maps_to_bad_gateway():
    provider = StubProvider(error=FeedError("history feed unavailable"))
    with _client(provider) as client:
        response = client.get("/api/forecast")
    assert response.status_code == 502
    assert "unavailable" in response.json()["detail"]


def test_empty_feed_maps_to_unprocessable():
    with _client(StubProvider([])) as client:
        response = client.get("/api/motif")
    assert response.status_code == 422


def _loop_running():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_core_work_runs_off_the_event_loop(make_history, monkeypatch):
    seen = []
    original = server.run_backtest

    def recording_backtest(*args, **kwargs):
        seen.append(_loop_running())
        return original(*args, **kwargs)

    monkeypatch.setattr(server, "run_backtest", recording_backtest)
    with _client(StubProvider(make_history("HHLL" * 10))) as client:
        assert client.get("/api/forecast").status_code == 200
        assert client.get("/api/backtest", params={"lookback": 25}).status_code == 200
    assert seen == [False, False]


def test_shared_meta_learns_each_new_round(make_history):
    history = make_history("HHLHLLHLHHLLLHHLHLHL" * 10)
    provider = StubProvider(history)
    config = Config.from_dict({"logging": {"level": "WARNING"}, "meta": {"shared": True}})
    app = create_app(config, provider)
    with TestClient(app) as client:
        assert client.get("/api/forecast").status_code == 200
        meta = app.state.meta
        warm_updates = meta.updates
        assert warm_updates == 200 - 1 - config.meta.warm_offset

        provider.rounds = history[1:] + make_history("L", start=201)
        assert client.get("/api/forecast").status_code == 200
    assert meta.updates == warm_updates + 1
    assert meta.last_trained_index == 201
