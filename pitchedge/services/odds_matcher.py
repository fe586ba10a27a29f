"""Bookmaker quotes -> best price per internal market.

Matching is data-driven: MARKET_PROVIDER_MAP says which provider market ids,
outcome label and line threshold make up each internal market. A quote matches
only when every configured part matches exactly (label compared
case-insensitively). No match means no liquidity, which is a normal state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from pitchedge.core.logger import get_logger
from pitchedge.services.markets import MarketId

log = get_logger("services.odds_matcher")

MAPPING_VERSION = "sportmonks-v3.2025-01"

# Provider market ids.
MATCH_WINNER = 1
DOUBLE_CHANCE = 2
DRAW_NO_BET = 10
BTTS = 14
FIRST_HALF_OVER_UNDER = (28, 107)
OVER_UNDER = (80, 81, 105)
BTTS_GOALS = 82
CORRECT_SCORE = 93
RESULT_BTTS = 97

BOOKMAKER_NAMES: Dict[int, str] = {
    2: "bet365",
    5: "888Sport",
    6: "BetFred",
    9: "Betfair",
    12: "BetVictor",
    13: "Coral",
    19: "Paddy Power",
}


def bookmaker_name(bookmaker_id: int) -> str:
    return BOOKMAKER_NAMES.get(int(bookmaker_id), f"bookmaker_{bookmaker_id}")


@dataclass(frozen=True)
class OddsQuote:
    bookmaker: str
    market_id: int
    label: str
    threshold: Optional[float]
    price: float


@dataclass(frozen=True)
class ProviderSelector:
    market_ids: Tuple[int, ...]
    label: Optional[str] = None
    threshold: Optional[float] = None

    def matches(self, quote: OddsQuote, label_override: Optional[str] = None) -> bool:
        if quote.market_id not in self.market_ids:
            return False
        wanted_label = label_override if label_override is not None else self.label
        if wanted_label is not None:
            if (quote.label or "").strip().lower() != wanted_label.strip().lower():
                return False
        if self.threshold is not None:
            if quote.threshold is None or abs(float(quote.threshold) - self.threshold) > 1e-9:
                return False
        return True


# Team totals have no stable provider id yet; they stay unpriced.
MARKET_PROVIDER_MAP: Dict[MarketId, Optional[ProviderSelector]] = {
    MarketId.OVER_1_5: ProviderSelector(OVER_UNDER, "Over", 1.5),
    MarketId.OVER_2_5: ProviderSelector(OVER_UNDER, "Over", 2.5),
    MarketId.OVER_3_5: ProviderSelector(OVER_UNDER, "Over", 3.5),
    MarketId.UNDER_2_5: ProviderSelector(OVER_UNDER, "Under", 2.5),
    MarketId.UNDER_3_5: ProviderSelector(OVER_UNDER, "Under", 3.5),
    MarketId.UNDER_4_5: ProviderSelector(OVER_UNDER, "Under", 4.5),
    MarketId.HOME_OVER_1_5: None,
    MarketId.AWAY_OVER_1_5: None,
    MarketId.FIRST_HALF_OVER_0_5: ProviderSelector(FIRST_HALF_OVER_UNDER, "Over", 0.5),
    MarketId.BTTS_YES: ProviderSelector((BTTS,), "Yes"),
    MarketId.BTTS_NO: ProviderSelector((BTTS,), "No"),
    MarketId.BTTS_OVER_2_5: ProviderSelector((BTTS_GOALS,), "Over 2.5 & Yes"),
    MarketId.BTTS_UNDER_2_5: ProviderSelector((BTTS_GOALS,), "Under 2.5 & Yes"),
    MarketId.BTTS_HOME_WIN: ProviderSelector((RESULT_BTTS,), "Home & Yes"),
    MarketId.BTTS_AWAY_WIN: ProviderSelector((RESULT_BTTS,), "Away & Yes"),
    MarketId.RESULT_HOME: ProviderSelector((MATCH_WINNER,), "Home"),
    MarketId.RESULT_DRAW: ProviderSelector((MATCH_WINNER,), "Draw"),
    MarketId.RESULT_AWAY: ProviderSelector((MATCH_WINNER,), "Away"),
    MarketId.DNB_HOME: ProviderSelector((DRAW_NO_BET,), "Home"),
    MarketId.DNB_AWAY: ProviderSelector((DRAW_NO_BET,), "Away"),
    MarketId.DC_HOME_DRAW: ProviderSelector((DOUBLE_CHANCE,), "Home/Draw"),
    MarketId.DC_AWAY_DRAW: ProviderSelector((DOUBLE_CHANCE,), "Draw/Away"),
    # The label is the scoreline and is supplied per candidate.
    MarketId.CORRECT_SCORE: ProviderSelector((CORRECT_SCORE,)),
}


@dataclass(frozen=True)
class OddsMatch:
    market_id: MarketId
    price: Optional[float]
    bookmaker: Optional[str]
    bookmaker_prices: Dict[str, float] = field(default_factory=dict)

    @property
    def bookmaker_count(self) -> int:
        return len(self.bookmaker_prices)

    @property
    def has_liquidity(self) -> bool:
        return self.price is not None


def match_odds(
    quotes: Iterable[OddsQuote],
    market_id: MarketId,
    *,
    scoreline: Optional[str] = None,
    mapping: Optional[Dict[MarketId, Optional[ProviderSelector]]] = None,
) -> OddsMatch:
    table = MARKET_PROVIDER_MAP if mapping is None else mapping
    selector = table.get(market_id)
    if selector is None:
        return OddsMatch(market_id=market_id, price=None, bookmaker=None)
    label_override = scoreline if market_id == MarketId.CORRECT_SCORE else None
    if market_id == MarketId.CORRECT_SCORE and not scoreline:
        return OddsMatch(market_id=market_id, price=None, bookmaker=None)

    per_bookmaker: Dict[str, float] = {}
    for quote in quotes:
        if quote.price is None or quote.price <= 1.0:
            continue
        if not selector.matches(quote, label_override):
            continue
        prev = per_bookmaker.get(quote.bookmaker)
        if prev is None or quote.price > prev:
            per_bookmaker[quote.bookmaker] = float(quote.price)

    if not per_bookmaker:
        log.debug("match_odds no_liquidity market=%s scoreline=%s", market_id.value, scoreline)
        return OddsMatch(market_id=market_id, price=None, bookmaker=None)

    # Highest price wins; bookmaker name breaks ties so the pick is stable.
    best_bookmaker, best_price = sorted(per_bookmaker.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return OddsMatch(
        market_id=market_id,
        price=best_price,
        bookmaker=best_bookmaker,
        bookmaker_prices=dict(sorted(per_bookmaker.items())),
    )


def available_provider_markets(quotes: Iterable[OddsQuote]) -> List[int]:
    return sorted({q.market_id for q in quotes})
