"""Five-leg "4 safe + 1 freeze" accumulators.

Safe legs are short-priced and likely; the freeze leg is the long shot the
punter can insure with a bookmaker freeze. For every freeze candidate the
builder picks four safe legs from distinct fixtures with no correlated pair,
highest probability first, then ranks the slips and keeps the top N. Output
order is fully determined by the input pool.
"""

from __future__ import annotations

import hashlib
import itertools
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pitchedge.core.decimalutils import D, q_stake
from pitchedge.core.logger import get_logger
from pitchedge.services.correlation import are_correlated
from pitchedge.services.evaluator import EvaluatedMarket

log = get_logger("services.accumulator")

EXHAUSTIVE_MAX_POOL = 30
FREEZE_ODDS_SCALE = 20.0


class LegStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"


class FreezeRecommendation(str, Enum):
    LET_IT_RIDE = "LET_IT_RIDE"
    CONSIDER_FREEZING = "CONSIDER_FREEZING"
    FREEZE_NOW = "FREEZE_NOW"
    ACCA_DEAD = "ACCA_DEAD"


@dataclass(frozen=True)
class AccaConfig:
    safe_odds_min: float = 1.20
    safe_odds_max: float = 2.00
    freeze_odds_min: float = 2.50
    freeze_odds_max: float = 20.50
    safe_legs: int = 4
    top_n: int = 10
    search_mode: str = "greedy"

    @classmethod
    def from_settings(cls, settings) -> "AccaConfig":
        return cls(
            safe_odds_min=float(settings.acca_safe_odds_min),
            safe_odds_max=float(settings.acca_safe_odds_max),
            freeze_odds_min=float(settings.acca_freeze_odds_min),
            freeze_odds_max=float(settings.acca_freeze_odds_max),
            safe_legs=int(settings.acca_safe_legs),
            top_n=int(settings.acca_top_n),
            search_mode=settings.acca_search_mode,
        )


LegKey = Tuple[int, str]


def leg_key(leg: EvaluatedMarket) -> LegKey:
    return int(leg.fixture_id), leg.selection_key


@dataclass(frozen=True)
class AccaFreeze:
    id: str
    legs: Tuple[EvaluatedMarket, ...]
    combined_odds: float
    combined_probability: float
    safe_probability: float
    score: float

    @property
    def safe_legs(self) -> Tuple[EvaluatedMarket, ...]:
        return self.legs[:-1]

    @property
    def freeze_leg(self) -> EvaluatedMarket:
        return self.legs[-1]

    @property
    def freeze_leg_odds(self) -> float:
        return float(self.freeze_leg.odds)

    def to_dict(self) -> dict:
        legs = []
        for i, leg in enumerate(self.legs):
            legs.append(
                {
                    "fixture_id": leg.fixture_id,
                    "market": leg.selection_key,
                    "label": leg.label,
                    "odds": leg.odds,
                    "probability": leg.probability,
                    "bookmaker": leg.bookmaker,
                    "is_freeze_leg": i == len(self.legs) - 1,
                }
            )
        return {
            "id": self.id,
            "legs": legs,
            "combined_odds": round(self.combined_odds, 2),
            "combined_probability": round(self.combined_probability, 4),
            "safe_probability": round(self.safe_probability, 4),
            "freeze_leg_odds": self.freeze_leg_odds,
            "score": round(self.score, 6),
        }


def _acca_id(legs: Sequence[EvaluatedMarket]) -> str:
    raw = "|".join(f"{fid}:{key}" for fid, key in sorted(leg_key(l) for l in legs))
    return "acca_" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


def _safe_order(leg: EvaluatedMarket):
    return (-leg.probability, int(leg.fixture_id), leg.selection_key)


def _compatible(candidate: EvaluatedMarket, chosen: Sequence[EvaluatedMarket]) -> bool:
    for leg in chosen:
        if leg.fixture_id == candidate.fixture_id:
            return False
        if are_correlated(leg, candidate):
            return False
    return True


def split_pools(
    legs: Iterable[EvaluatedMarket], config: AccaConfig
) -> Tuple[List[EvaluatedMarket], List[EvaluatedMarket]]:
    safe: List[EvaluatedMarket] = []
    freeze: List[EvaluatedMarket] = []
    for leg in legs:
        if leg.odds is None:
            continue
        if config.safe_odds_min <= leg.odds <= config.safe_odds_max:
            safe.append(leg)
        elif config.freeze_odds_min <= leg.odds <= config.freeze_odds_max:
            freeze.append(leg)
    safe.sort(key=_safe_order)
    freeze.sort(key=lambda l: (int(l.fixture_id), l.selection_key))
    return safe, freeze


def _greedy_safe_legs(
    freeze_leg: EvaluatedMarket, safe_pool: Sequence[EvaluatedMarket], count: int
) -> Optional[List[EvaluatedMarket]]:
    chosen: List[EvaluatedMarket] = []
    for leg in safe_pool:
        if _compatible(leg, [freeze_leg] + chosen):
            chosen.append(leg)
            if len(chosen) == count:
                return chosen
    return None


def _exhaustive_safe_legs(
    freeze_leg: EvaluatedMarket, safe_pool: Sequence[EvaluatedMarket], count: int
) -> Optional[List[EvaluatedMarket]]:
    eligible = [l for l in safe_pool if _compatible(l, [freeze_leg])]
    best: Optional[Tuple[float, Tuple, Tuple[EvaluatedMarket, ...]]] = None
    for combo in itertools.combinations(eligible, count):
        if any(not _compatible(combo[i], combo[:i]) for i in range(1, count)):
            continue
        prob = math.prod(l.probability for l in combo)
        # Pool is pre-sorted, so the first combination at a given probability wins ties.
        tie = tuple(_safe_order(l) for l in combo)
        if best is None or prob > best[0] or (prob == best[0] and tie < best[1]):
            best = (prob, tie, combo)
    return list(best[2]) if best else None


def _make_acca(safe_legs: Sequence[EvaluatedMarket], freeze_leg: EvaluatedMarket) -> AccaFreeze:
    legs = tuple(safe_legs) + (freeze_leg,)
    combined_odds = math.prod(float(l.odds) for l in legs)
    combined_probability = math.prod(l.probability for l in legs)
    safe_probability = math.prod(l.probability for l in safe_legs)
    score = combined_probability * (1.0 + float(freeze_leg.odds) / FREEZE_ODDS_SCALE)
    return AccaFreeze(
        id=_acca_id(legs),
        legs=legs,
        combined_odds=combined_odds,
        combined_probability=combined_probability,
        safe_probability=safe_probability,
        score=score,
    )


def build_accumulators(legs: Iterable[EvaluatedMarket], config: Optional[AccaConfig] = None) -> List[AccaFreeze]:
    cfg = config or AccaConfig()
    safe_pool, freeze_pool = split_pools(legs, cfg)
    if len(safe_pool) < cfg.safe_legs or not freeze_pool:
        log.info("build_accumulators skipped safe=%s freeze=%s", len(safe_pool), len(freeze_pool))
        return []

    mode = cfg.search_mode
    if mode == "exhaustive" and len(safe_pool) > EXHAUSTIVE_MAX_POOL:
        log.warning(
            "build_accumulators safe pool %s over exhaustive limit %s; using greedy",
            len(safe_pool),
            EXHAUSTIVE_MAX_POOL,
        )
        mode = "greedy"
    pick = _exhaustive_safe_legs if mode == "exhaustive" else _greedy_safe_legs

    slips: Dict[str, AccaFreeze] = {}
    for freeze_leg in freeze_pool:
        chosen = pick(freeze_leg, safe_pool, cfg.safe_legs)
        if chosen is None:
            continue
        acca = _make_acca(chosen, freeze_leg)
        slips.setdefault(acca.id, acca)

    ranked = sorted(slips.values(), key=lambda a: (-a.score, -a.combined_probability, a.id))
    out = ranked[: cfg.top_n]
    log.info(
        "build_accumulators mode=%s safe=%s freeze=%s built=%s returned=%s",
        mode,
        len(safe_pool),
        len(freeze_pool),
        len(ranked),
        len(out),
    )
    return out


def freeze_value(
    acca: AccaFreeze,
    statuses: Mapping[LegKey, LegStatus],
    stake: Decimal = D("10"),
) -> Decimal:
    """stake * prod(won odds) * prod(pending probabilities); zero once any leg lost.

    Void legs drop out of both products. Legs missing from ``statuses`` count as pending.
    """
    won_odds = D("1")
    pending_prob = D("1")
    for leg in acca.legs:
        status = LegStatus(statuses.get(leg_key(leg), LegStatus.PENDING))
        if status == LegStatus.LOST:
            return D("0")
        if status == LegStatus.WON:
            won_odds *= D(leg.odds)
        elif status == LegStatus.PENDING:
            pending_prob *= D(leg.probability)
    return q_stake(D(stake) * won_odds * pending_prob)


def freeze_recommendation(value: Decimal, stake: Decimal = D("10")) -> FreezeRecommendation:
    value = D(value)
    stake = D(stake)
    if value == 0:
        return FreezeRecommendation.ACCA_DEAD
    if value < stake:
        return FreezeRecommendation.LET_IT_RIDE
    if value >= stake * 2:
        return FreezeRecommendation.FREEZE_NOW
    return FreezeRecommendation.CONSIDER_FREEZING
