"""Write-once publication ledger.

A fixture gets at most one published prediction. The record carries a
SHA-256 checksum over its fixed-precision fields so any later edit to the
stored row is detectable. Settlement (``freeze``) happens once; repeat calls
are no-ops.
"""

from __future__ import annotations

import asyncio
import hashlib
import weakref
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, MutableMapping, Optional, Protocol, Tuple

from pitchedge.core.decimalutils import D, fixed, q_ev, q_money, q_prob
from pitchedge.core.logger import get_logger
from pitchedge.core.timeutils import ensure_aware_utc, iso_utc, utcnow
from pitchedge.services.evaluator import EvaluatedMarket
from pitchedge.services.goal_model import LambdaPair

log = get_logger("services.ledger")


class ChecksumMismatchError(RuntimeError):
    def __init__(self, fixture_id: int, stored: str, computed: str):
        super().__init__(
            f"checksum mismatch for fixture {fixture_id}: stored={stored} computed={computed}"
        )
        self.fixture_id = fixture_id
        self.stored = stored
        self.computed = computed


@dataclass(frozen=True)
class ChecksumFields:
    fixture_id: int
    lambda_home: Decimal
    lambda_away: Decimal
    market: str
    probability: Decimal
    odds: Decimal
    ev_adjusted: Decimal
    confidence: int
    published_at: datetime


def canonical_payload(fields: ChecksumFields) -> str:
    return "|".join(
        [
            str(int(fields.fixture_id)),
            fixed(fields.lambda_home, 4),
            fixed(fields.lambda_away, 4),
            fields.market,
            fixed(fields.probability, 4),
            fixed(fields.odds, 3),
            fixed(fields.ev_adjusted, 4),
            str(int(fields.confidence)),
            iso_utc(fields.published_at),
        ]
    )


def compute_checksum(fields: ChecksumFields) -> str:
    return hashlib.sha256(canonical_payload(fields).encode("utf-8")).hexdigest()


def verify_checksum(stored_checksum: str, fields: ChecksumFields) -> bool:
    return compute_checksum(fields) == stored_checksum


@dataclass(frozen=True)
class PublishedPrediction:
    fixture_id: int
    lambda_home: Decimal
    lambda_away: Decimal
    market: str
    label: str
    probability: Decimal
    odds: Decimal
    ev_adjusted: Decimal
    confidence: int
    published_at: datetime
    checksum: str
    bookmaker: Optional[str] = None
    is_frozen: bool = False
    result: Optional[str] = None
    profit_loss: Optional[Decimal] = None
    frozen_at: Optional[datetime] = None

    def checksum_fields(self) -> ChecksumFields:
        return ChecksumFields(
            fixture_id=self.fixture_id,
            lambda_home=self.lambda_home,
            lambda_away=self.lambda_away,
            market=self.market,
            probability=self.probability,
            odds=self.odds,
            ev_adjusted=self.ev_adjusted,
            confidence=self.confidence,
            published_at=self.published_at,
        )

    @property
    def market_id(self) -> str:
        return self.market.split(":", 1)[0]

    @property
    def scoreline(self) -> Optional[str]:
        parts = self.market.split(":", 1)
        return parts[1] if len(parts) == 2 else None

    def to_dict(self) -> dict:
        return {
            "fixture_id": self.fixture_id,
            "lambda_home": str(self.lambda_home),
            "lambda_away": str(self.lambda_away),
            "market": self.market,
            "label": self.label,
            "probability": str(self.probability),
            "odds": str(self.odds),
            "ev_adjusted": str(self.ev_adjusted),
            "confidence": self.confidence,
            "bookmaker": self.bookmaker,
            "published_at": iso_utc(self.published_at),
            "checksum": self.checksum,
            "is_frozen": self.is_frozen,
            "result": self.result,
            "profit_loss": str(self.profit_loss) if self.profit_loss is not None else None,
        }


class HistoryStore(Protocol):
    async def get(self, fixture_id: int) -> Optional[PublishedPrediction]: ...

    async def put(self, record: PublishedPrediction) -> bool: ...

    async def update_freeze(
        self, fixture_id: int, result: str, profit_loss: Decimal, frozen_at: datetime
    ) -> bool: ...

    async def pending(self) -> List[PublishedPrediction]: ...


def _truncate_ms(value: datetime) -> datetime:
    aware = ensure_aware_utc(value)
    return aware.replace(microsecond=(aware.microsecond // 1000) * 1000)


def build_prediction(
    market: EvaluatedMarket, lambdas: LambdaPair, published_at: datetime
) -> PublishedPrediction:
    if market.odds is None or market.ev_adjusted is None:
        raise ValueError(f"cannot publish unpriced market {market.selection_key} for fixture {market.fixture_id}")
    fields = ChecksumFields(
        fixture_id=int(market.fixture_id),
        lambda_home=q_prob(lambdas.lambda_home),
        lambda_away=q_prob(lambdas.lambda_away),
        market=market.selection_key,
        probability=q_prob(market.probability),
        odds=q_money(market.odds),
        ev_adjusted=q_ev(market.ev_adjusted),
        confidence=int(market.confidence),
        published_at=_truncate_ms(published_at),
    )
    return PublishedPrediction(
        fixture_id=fields.fixture_id,
        lambda_home=fields.lambda_home,
        lambda_away=fields.lambda_away,
        market=fields.market,
        label=market.label,
        probability=fields.probability,
        odds=fields.odds,
        ev_adjusted=fields.ev_adjusted,
        confidence=fields.confidence,
        published_at=fields.published_at,
        checksum=compute_checksum(fields),
        bookmaker=market.bookmaker,
    )


class PublicationLedger:
    def __init__(self, store: HistoryStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock
        # Entries vanish once no publish/freeze holds the lock.
        self._locks: MutableMapping[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, fixture_id: int) -> asyncio.Lock:
        lock = self._locks.get(fixture_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[fixture_id] = lock
        return lock

    def _check(self, record: PublishedPrediction) -> PublishedPrediction:
        computed = compute_checksum(record.checksum_fields())
        if computed != record.checksum:
            log.error(
                "integrity_violation fixture=%s stored=%s computed=%s",
                record.fixture_id,
                record.checksum,
                computed,
            )
            raise ChecksumMismatchError(record.fixture_id, record.checksum, computed)
        return record

    @staticmethod
    def verify(stored_checksum: str, fields: ChecksumFields) -> bool:
        return verify_checksum(stored_checksum, fields)

    async def get(self, fixture_id: int) -> Optional[PublishedPrediction]:
        record = await self.store.get(fixture_id)
        if record is None:
            return None
        return self._check(record)

    async def publish(
        self, fixture_id: int, market: EvaluatedMarket, lambdas: LambdaPair
    ) -> PublishedPrediction:
        """Publish once per fixture; any later call returns the stored record untouched."""
        if int(market.fixture_id) != int(fixture_id):
            raise ValueError(f"market belongs to fixture {market.fixture_id}, not {fixture_id}")
        async with self._lock(fixture_id):
            existing = await self.get(fixture_id)
            if existing is not None:
                log.info("publish_skipped fixture=%s reason=already_published market=%s", fixture_id, existing.market)
                return existing

            record = build_prediction(market, lambdas, self._clock())
            inserted = await self.store.put(record)
            if not inserted:
                # Lost an insert race to another writer; theirs stands.
                existing = await self.get(fixture_id)
                if existing is None:
                    raise RuntimeError(f"insert for fixture {fixture_id} rejected but no record found")
                log.info("publish_skipped fixture=%s reason=concurrent_insert", fixture_id)
                return existing

            log.info(
                "published fixture=%s market=%s odds=%s p=%s checksum=%s",
                fixture_id,
                record.market,
                record.odds,
                record.probability,
                record.checksum[:12],
            )
            return record

    async def freeze(self, fixture_id: int, result: str, profit_loss: Decimal) -> Optional[PublishedPrediction]:
        """Record the settled outcome once. Returns the (possibly already frozen) record."""
        async with self._lock(fixture_id):
            existing = await self.get(fixture_id)
            if existing is None:
                log.warning("freeze_skipped fixture=%s reason=not_published", fixture_id)
                return None
            if existing.is_frozen:
                log.debug("freeze_skipped fixture=%s reason=already_frozen", fixture_id)
                return existing
            updated = await self.store.update_freeze(fixture_id, result, q_money(D(profit_loss)), self._clock())
            if updated:
                log.info("frozen fixture=%s result=%s profit_loss=%s", fixture_id, result, profit_loss)
            return await self.get(fixture_id)

    async def pending_checked(self) -> Tuple[List[PublishedPrediction], List[ChecksumMismatchError]]:
        """Unfrozen records split into verified ones and integrity violations.

        A tampered row is reported (and logged by ``_check``) but never hides
        the healthy rows around it.
        """
        records: List[PublishedPrediction] = []
        violations: List[ChecksumMismatchError] = []
        for record in await self.store.pending():
            try:
                records.append(self._check(record))
            except ChecksumMismatchError as exc:
                violations.append(exc)
        return records, violations

    async def pending(self) -> List[PublishedPrediction]:
        records, _ = await self.pending_checked()
        return records
