import asyncio
from datetime import date

import httpx
import pytest

from pitchedge.data.providers import sportmonks
from pitchedge.data.providers.cache import TTLCache


def _install(monkeypatch, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.example.com")
    monkeypatch.setattr(sportmonks, "sportmonks_client", lambda: client)
    return client


def test_fixture_odds_are_cached(monkeypatch):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": [{"market_id": 80, "value": "2.05"}]}, request=request)

    _install(monkeypatch, handler)
    cache = TTLCache()

    async def _run():
        first = await sportmonks.get_fixture_odds(cache, 123, [2, 9])
        second = await sportmonks.get_fixture_odds(cache, 123, [2, 9])
        return first, second

    first, second = asyncio.run(_run())
    assert first == second == [{"market_id": 80, "value": "2.05"}]
    assert len(calls) == 1
    assert calls[0].url.path == "/odds/pre-match/fixtures/123"
    assert calls[0].url.params["filters"] == "bookmakers:2,9"


def test_fixtures_between_follows_pagination(monkeypatch):
    def handler(request):
        page = int(request.url.params["page"])
        payload = {"data": [{"id": page}], "pagination": {"has_more": page < 3}}
        return httpx.Response(200, json=payload, request=request)

    _install(monkeypatch, handler)

    rows = asyncio.run(sportmonks.get_fixtures_between(TTLCache(), date(2026, 1, 2), date(2026, 1, 4), [8]))
    assert [r["id"] for r in rows] == [1, 2, 3]


def test_error_status_raises_provider_error(monkeypatch):
    def handler(request):
        return httpx.Response(404, json={"message": "No result(s) found"}, request=request)

    _install(monkeypatch, handler)
    cache = TTLCache()

    with pytest.raises(sportmonks.ProviderError) as exc:
        asyncio.run(sportmonks.get_fixture_result(cache, 999))
    assert exc.value.status_code == 404
    assert "No result" in str(exc.value)
    assert len(cache) == 0


def test_team_results_unwraps_latest(monkeypatch):
    def handler(request):
        assert request.url.params["include"].startswith("latest.")
        return httpx.Response(200, json={"data": {"id": 10, "latest": [{"id": 1}, {"id": 2}]}}, request=request)

    _install(monkeypatch, handler)
    assert asyncio.run(sportmonks.get_team_results(TTLCache(), 10)) == [{"id": 1}, {"id": 2}]


def test_cache_keys_differ_by_tag():
    assert sportmonks._make_key("/x", {"a": 1}, "v1") != sportmonks._make_key("/x", {"a": 1}, "v2")
    assert sportmonks._make_key("/x", {"a": 1, "b": 2}) == sportmonks._make_key("/x", {"b": 2, "a": 1})
