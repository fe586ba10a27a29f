import asyncio
import dataclasses
from decimal import Decimal

from pitchedge.core.decimalutils import D
from pitchedge.data.providers import sportmonks
from pitchedge.data.providers.cache import TTLCache
from pitchedge.jobs import evaluate_results
from pitchedge.services.goal_model import LambdaPair
from pitchedge.services.history_store import InMemoryHistoryStore
from pitchedge.services.ledger import PublicationLedger


def _result(fid, status, home=None, away=None):
    raw = {
        "id": fid,
        "participants": [
            {"id": 10, "name": "Home FC", "meta": {"location": "home"}},
            {"id": 20, "name": "Away FC", "meta": {"location": "away"}},
        ],
        "state": {"developer_name": status},
    }
    if home is not None:
        raw["scores"] = [
            {"description": "CURRENT", "score": {"goals": home, "participant": "home"}},
            {"description": "CURRENT", "score": {"goals": away, "participant": "away"}},
        ]
    return raw


def test_settle_freezes_decided_fixtures(monkeypatch, make_market, fixed_clock):
    results = {
        1: _result(1, "FT", 2, 1),
        2: _result(2, "FT", 0, 0),
        3: _result(3, "CANCELLED"),
        4: _result(4, "NS"),
        5: sportmonks.ProviderError("/fixtures/5", 500, "upstream"),
    }

    async def _get_result(_cache, fixture_id):
        value = results[fixture_id]
        if isinstance(value, Exception):
            raise value
        return value

    monkeypatch.setattr(sportmonks, "get_fixture_result", _get_result)
    ledger = PublicationLedger(InMemoryHistoryStore(), clock=fixed_clock)

    async def _run():
        for fid in results:
            await ledger.publish(fid, make_market(fixture_id=fid), LambdaPair(1.6, 1.2))
        counts = await evaluate_results.settle(TTLCache(), ledger)
        return counts, [await ledger.get(fid) for fid in results]

    counts, records = asyncio.run(_run())

    assert counts == {
        "checked": 5,
        "settled": 3,
        "WIN": 1,
        "LOSS": 1,
        "VOID": 1,
        "errors": 1,
        "integrity_violations": 0,
    }
    win, loss, void, pending, errored = records
    assert (win.result, win.profit_loss) == ("WIN", Decimal("1.000"))
    assert (loss.result, loss.profit_loss) == ("LOSS", Decimal("-1.000"))
    assert (void.result, void.profit_loss) == ("VOID", Decimal("0.000"))
    assert not pending.is_frozen
    assert not errored.is_frozen


def test_settled_records_are_not_rechecked(monkeypatch, make_market, fixed_clock):
    seen = []

    async def _get_result(_cache, fixture_id):
        seen.append(fixture_id)
        return _result(fixture_id, "FT", 3, 0)

    monkeypatch.setattr(sportmonks, "get_fixture_result", _get_result)
    ledger = PublicationLedger(InMemoryHistoryStore(), clock=fixed_clock)

    async def _run():
        await ledger.publish(7, make_market(fixture_id=7), LambdaPair(1.6, 1.2))
        await evaluate_results.settle(TTLCache(), ledger)
        return await evaluate_results.settle(TTLCache(), ledger)

    counts = asyncio.run(_run())
    assert seen == [7]
    assert counts["checked"] == 0


def test_tampered_record_does_not_block_other_fixtures(monkeypatch, make_market, fixed_clock):
    async def _get_result(_cache, fixture_id):
        return _result(fixture_id, "FT", 2, 1)

    monkeypatch.setattr(sportmonks, "get_fixture_result", _get_result)
    store = InMemoryHistoryStore()
    ledger = PublicationLedger(store, clock=fixed_clock)

    async def _run():
        for fid in (1, 2, 3):
            await ledger.publish(fid, make_market(fixture_id=fid), LambdaPair(1.6, 1.2))
        store.overwrite(dataclasses.replace(await store.get(2), odds=D("9.000")))
        counts = await evaluate_results.settle(TTLCache(), ledger)
        return counts, [await store.get(fid) for fid in (1, 2, 3)]

    counts, (first, tampered, third) = asyncio.run(_run())

    assert counts["integrity_violations"] == 1
    assert counts["checked"] == 2
    assert counts["settled"] == 2
    assert first.is_frozen and third.is_frozen
    assert not tampered.is_frozen


def test_malformed_result_payload_is_counted_not_raised(monkeypatch, make_market, fixed_clock):
    async def _get_result(_cache, fixture_id):
        if fixture_id == 1:
            return {"state": {"developer_name": "FT"}}
        return _result(fixture_id, "FT", 0, 2)

    monkeypatch.setattr(sportmonks, "get_fixture_result", _get_result)
    ledger = PublicationLedger(InMemoryHistoryStore(), clock=fixed_clock)

    async def _run():
        for fid in (1, 2):
            await ledger.publish(fid, make_market(fixture_id=fid), LambdaPair(1.6, 1.2))
        counts = await evaluate_results.settle(TTLCache(), ledger)
        return counts, await ledger.get(2)

    counts, settled = asyncio.run(_run())

    assert counts["errors"] == 1
    assert counts["LOSS"] == 1
    assert settled.result == "LOSS"
