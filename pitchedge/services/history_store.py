from __future__ import annotations

import dataclasses
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pitchedge.core.decimalutils import D
from pitchedge.core.timeutils import ensure_aware_utc
from pitchedge.services.ledger import PublishedPrediction


class InMemoryHistoryStore:
    def __init__(self):
        self._rows: Dict[int, PublishedPrediction] = {}

    async def get(self, fixture_id: int) -> Optional[PublishedPrediction]:
        return self._rows.get(int(fixture_id))

    async def put(self, record: PublishedPrediction) -> bool:
        key = int(record.fixture_id)
        if key in self._rows:
            return False
        self._rows[key] = record
        return True

    async def update_freeze(
        self, fixture_id: int, result: str, profit_loss: Decimal, frozen_at: datetime
    ) -> bool:
        row = self._rows.get(int(fixture_id))
        if row is None or row.is_frozen:
            return False
        self._rows[int(fixture_id)] = dataclasses.replace(
            row, is_frozen=True, result=result, profit_loss=profit_loss, frozen_at=frozen_at
        )
        return True

    async def pending(self) -> List[PublishedPrediction]:
        return [r for _, r in sorted(self._rows.items()) if not r.is_frozen]

    def overwrite(self, record: PublishedPrediction) -> None:
        """Bypass insert-if-absent. Only for simulating out-of-band edits."""
        self._rows[int(record.fixture_id)] = record


_COLUMNS = """
    fixture_id, lambda_home, lambda_away, market, label, p_model, odds, ev_adjusted,
    confidence, best_bookmaker, published_at, checksum, is_frozen, result, profit_loss, frozen_at
"""


def _row_to_prediction(row) -> PublishedPrediction:
    return PublishedPrediction(
        fixture_id=int(row.fixture_id),
        lambda_home=D(row.lambda_home),
        lambda_away=D(row.lambda_away),
        market=row.market,
        label=row.label,
        probability=D(row.p_model),
        odds=D(row.odds),
        ev_adjusted=D(row.ev_adjusted),
        confidence=int(row.confidence),
        published_at=ensure_aware_utc(row.published_at),
        checksum=row.checksum,
        bookmaker=row.best_bookmaker,
        is_frozen=bool(row.is_frozen),
        result=row.result,
        profit_loss=D(row.profit_loss) if row.profit_loss is not None else None,
        frozen_at=ensure_aware_utc(row.frozen_at) if row.frozen_at is not None else None,
    )


class SqlHistoryStore:
    """immutable_predictions table. The caller owns the session and its commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, fixture_id: int) -> Optional[PublishedPrediction]:
        res = await self.session.execute(
            text(f"SELECT {_COLUMNS} FROM immutable_predictions WHERE fixture_id=:fid"),
            {"fid": int(fixture_id)},
        )
        row = res.first()
        return _row_to_prediction(row) if row else None

    async def put(self, record: PublishedPrediction) -> bool:
        res = await self.session.execute(
            text(
                """
                INSERT INTO immutable_predictions(
                  fixture_id, lambda_home, lambda_away, market, label, p_model, odds, ev_adjusted,
                  confidence, best_bookmaker, published_at, checksum, is_frozen
                )
                VALUES(
                  :fid, :lh, :la, :market, :label, :p, :odds, :ev_adj,
                  :conf, :bookmaker, :published_at, :checksum, false
                )
                ON CONFLICT (fixture_id) DO NOTHING
                RETURNING fixture_id
                """
            ),
            {
                "fid": int(record.fixture_id),
                "lh": record.lambda_home,
                "la": record.lambda_away,
                "market": record.market,
                "label": record.label,
                "p": record.probability,
                "odds": record.odds,
                "ev_adj": record.ev_adjusted,
                "conf": int(record.confidence),
                "bookmaker": record.bookmaker,
                "published_at": record.published_at,
                "checksum": record.checksum,
            },
        )
        return res.first() is not None

    async def update_freeze(
        self, fixture_id: int, result: str, profit_loss: Decimal, frozen_at: datetime
    ) -> bool:
        res = await self.session.execute(
            text(
                """
                UPDATE immutable_predictions
                SET is_frozen=true, result=:result, profit_loss=:pl, frozen_at=:frozen_at
                WHERE fixture_id=:fid AND is_frozen=false
                RETURNING fixture_id
                """
            ),
            {"fid": int(fixture_id), "result": result, "pl": profit_loss, "frozen_at": frozen_at},
        )
        return res.first() is not None

    async def pending(self) -> List[PublishedPrediction]:
        res = await self.session.execute(
            text(
                f"""
                SELECT {_COLUMNS} FROM immutable_predictions
                WHERE is_frozen=false
                ORDER BY fixture_id
                """
            )
        )
        return [_row_to_prediction(r) for r in res.fetchall()]
