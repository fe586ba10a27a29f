import hashlib
import json
from datetime import date

from pitchedge.core.config import settings
from pitchedge.core.http import request_with_retries, sportmonks_client
from pitchedge.core.logger import get_logger
from pitchedge.data.providers.cache import PayloadCache

log = get_logger("data.sportmonks")

FIXTURE_INCLUDES = "participants;league;state"
RESULT_INCLUDES = "participants;scores;state"
MAX_PAGES = 20


class ProviderError(RuntimeError):
    def __init__(self, url: str, status_code: int | None, message: str):
        super().__init__(f"SportMonks request failed url={url} status={status_code}: {message}")
        self.url = url
        self.status_code = status_code


def _make_key(url: str, params: dict, cache_tag: str | None = None) -> str:
    raw = url + "|" + (cache_tag or "") + "|" + json.dumps(params, sort_keys=True, ensure_ascii=False)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


async def _fetch(url: str, params: dict) -> dict:
    client = sportmonks_client()
    r = await request_with_retries(client, "GET", url, params=params)
    if r.status_code >= 400:
        try:
            message = (r.json() or {}).get("message") or r.text
        except ValueError:
            message = r.text
        raise ProviderError(url, r.status_code, str(message)[:300])
    data = r.json()
    if not isinstance(data, dict):
        raise ProviderError(url, r.status_code, "unexpected payload shape")
    return data


async def _fetch_all_pages(url: str, params: dict, max_pages: int = MAX_PAGES) -> dict:
    merged: list = []
    page = 1
    while True:
        page_params = dict(params)
        page_params["page"] = page
        data = await _fetch(url, page_params)
        rows = data.get("data") or []
        if isinstance(rows, list):
            merged.extend(rows)
        else:
            return data
        pagination = data.get("pagination") or {}
        if not pagination.get("has_more"):
            break
        page += 1
        if page > max_pages:
            log.warning("sportmonks pagination truncated url=%s pages=%s", url, max_pages)
            break
    return {"data": merged}


async def api_get(
    cache: PayloadCache,
    url: str,
    params: dict,
    ttl_seconds: int,
    *,
    cache_tag: str | None = None,
    paged: bool = False,
) -> dict:
    key = _make_key(url, params, cache_tag=cache_tag)
    cached = await cache.try_read(key)
    if cached is not None:
        log.debug("sportmonks cache hit url=%s", url)
        return cached

    async def _compute() -> dict:
        log.debug("sportmonks cache miss url=%s", url)
        if paged:
            return await _fetch_all_pages(url, params)
        return await _fetch(url, params)

    return await cache.compute_and_store(key, _compute, ttl_seconds)


async def get_fixtures_between(
    cache: PayloadCache, date_from: date, date_to: date, league_ids: list[int]
) -> list[dict]:
    url = f"/fixtures/between/{date_from.isoformat()}/{date_to.isoformat()}"
    params = {"include": FIXTURE_INCLUDES}
    if league_ids:
        params["filters"] = "fixtureLeagues:" + ",".join(str(x) for x in league_ids)
    data = await api_get(
        cache, url, params, ttl_seconds=settings.fixtures_ttl_seconds, cache_tag="fixtures_v1", paged=True
    )
    return list(data.get("data") or [])


async def get_fixture_odds(cache: PayloadCache, fixture_id: int, bookmaker_ids: list[int]) -> list[dict]:
    params: dict = {}
    if bookmaker_ids:
        params["filters"] = "bookmakers:" + ",".join(str(b) for b in bookmaker_ids)
    data = await api_get(
        cache,
        f"/odds/pre-match/fixtures/{int(fixture_id)}",
        params,
        ttl_seconds=settings.odds_ttl_seconds,
        cache_tag="odds_fixture_v1",
    )
    return list(data.get("data") or [])


async def get_standings(cache: PayloadCache, season_id: int) -> list[dict]:
    data = await api_get(
        cache,
        f"/standings/seasons/{int(season_id)}",
        {},
        ttl_seconds=settings.standings_ttl_seconds,
        cache_tag="standings_v1",
    )
    return list(data.get("data") or [])


async def get_team_results(cache: PayloadCache, team_id: int) -> list[dict]:
    """The team's latest fixtures with scores, newest first as returned upstream."""
    params = {"include": "latest.participants;latest.scores;latest.state"}
    data = await api_get(
        cache,
        f"/teams/{int(team_id)}",
        params,
        ttl_seconds=settings.team_form_ttl_seconds,
        cache_tag="team_form_v1",
    )
    team = data.get("data") or {}
    return list(team.get("latest") or [])


async def get_fixture_result(cache: PayloadCache, fixture_id: int) -> dict:
    data = await api_get(
        cache,
        f"/fixtures/{int(fixture_id)}",
        {"include": RESULT_INCLUDES},
        ttl_seconds=settings.fixtures_ttl_seconds,
        cache_tag="fixture_result_v1",
    )
    return data.get("data") or {}
