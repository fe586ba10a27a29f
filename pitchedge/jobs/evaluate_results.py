from __future__ import annotations

from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from pitchedge.core.logger import get_logger
from pitchedge.data.mappers import map_fixture, map_score
from pitchedge.data.providers import sportmonks
from pitchedge.data.providers.cache import PayloadCache, SqlPayloadCache
from pitchedge.services.history_store import SqlHistoryStore
from pitchedge.services.ledger import ChecksumMismatchError, PublicationLedger, PublishedPrediction
from pitchedge.services.settlement import VOID, profit, resolve_market

log = get_logger("jobs.evaluate_results")
FINAL_STATUSES = ("FT", "AET", "PEN")
CANCEL_STATUSES = ("CANC", "ABD", "AWD", "WO")
MAPPING_ERRORS = (KeyError, TypeError, ValueError)


async def settle_one(cache: PayloadCache, ledger: PublicationLedger, record: PublishedPrediction) -> str | None:
    """Freeze one published prediction if its fixture is decided. Returns the result or None."""
    raw = await sportmonks.get_fixture_result(cache, record.fixture_id)
    if not raw:
        return None
    status = map_fixture(raw).status
    if status in CANCEL_STATUSES:
        await ledger.freeze(record.fixture_id, VOID, Decimal("0"))
        return VOID
    if status not in FINAL_STATUSES:
        return None

    score = map_score(raw)
    result = resolve_market(
        record.market,
        score.home_goals,
        score.away_goals,
        ht_home_goals=score.ht_home_goals,
        ht_away_goals=score.ht_away_goals,
    )
    await ledger.freeze(record.fixture_id, result, profit(result, record.odds))
    return result


async def settle(cache: PayloadCache, ledger: PublicationLedger) -> dict:
    """Freeze every decided fixture. One bad record never stops the others."""
    counts = {"checked": 0, "settled": 0, "WIN": 0, "LOSS": 0, "VOID": 0, "errors": 0, "integrity_violations": 0}
    records, violations = await ledger.pending_checked()
    counts["integrity_violations"] = len(violations)
    for record in records:
        counts["checked"] += 1
        try:
            result = await settle_one(cache, ledger, record)
        except (httpx.HTTPError, sportmonks.ProviderError) as exc:
            counts["errors"] += 1
            log.warning("settle_fetch_failed fixture=%s err=%s", record.fixture_id, exc)
            continue
        except MAPPING_ERRORS as exc:
            counts["errors"] += 1
            log.warning("settle_unmappable fixture=%s err=%r", record.fixture_id, exc)
            continue
        except ChecksumMismatchError:
            # Tampered between listing and freezing; _check already logged it.
            counts["integrity_violations"] += 1
            continue
        if result is None:
            continue
        counts["settled"] += 1
        counts[result] += 1

    log.info(
        "evaluate_results checked=%s settled=%s win=%s loss=%s void=%s errors=%s integrity_violations=%s",
        counts["checked"],
        counts["settled"],
        counts["WIN"],
        counts["LOSS"],
        counts["VOID"],
        counts["errors"],
        counts["integrity_violations"],
    )
    return counts


async def run(session: AsyncSession):
    ledger = PublicationLedger(SqlHistoryStore(session))
    counts = await settle(SqlPayloadCache(session), ledger)
    await session.commit()
    return counts
