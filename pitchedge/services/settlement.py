from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pitchedge.core.decimalutils import D, q_money
from pitchedge.services.markets import MarketId

WIN = "WIN"
LOSS = "LOSS"
VOID = "VOID"


def _wl(hit: bool) -> str:
    return WIN if hit else LOSS


def resolve_market(
    market: str,
    home_goals: Optional[int],
    away_goals: Optional[int],
    *,
    ht_home_goals: Optional[int] = None,
    ht_away_goals: Optional[int] = None,
) -> str:
    """WIN/LOSS/VOID for a published market key ('over_2.5', 'correct_score:2-1', ...)."""
    if home_goals is None or away_goals is None:
        return VOID
    market_value, _, scoreline = market.partition(":")
    try:
        market_id = MarketId(market_value)
    except ValueError:
        return VOID

    total = home_goals + away_goals
    both_scored = home_goals > 0 and away_goals > 0

    if market_id == MarketId.FIRST_HALF_OVER_0_5:
        if ht_home_goals is None or ht_away_goals is None:
            return VOID
        return _wl(ht_home_goals + ht_away_goals >= 1)

    if market_id in (MarketId.DNB_HOME, MarketId.DNB_AWAY):
        if home_goals == away_goals:
            return VOID
        return _wl((home_goals > away_goals) == (market_id == MarketId.DNB_HOME))

    if market_id == MarketId.CORRECT_SCORE:
        if not scoreline:
            return VOID
        return _wl(scoreline == f"{home_goals}-{away_goals}")

    rules = {
        MarketId.OVER_1_5: total >= 2,
        MarketId.OVER_2_5: total >= 3,
        MarketId.OVER_3_5: total >= 4,
        MarketId.UNDER_2_5: total <= 2,
        MarketId.UNDER_3_5: total <= 3,
        MarketId.UNDER_4_5: total <= 4,
        MarketId.HOME_OVER_1_5: home_goals >= 2,
        MarketId.AWAY_OVER_1_5: away_goals >= 2,
        MarketId.BTTS_YES: both_scored,
        MarketId.BTTS_NO: not both_scored,
        MarketId.BTTS_OVER_2_5: both_scored and total >= 3,
        MarketId.BTTS_UNDER_2_5: both_scored and total <= 2,
        MarketId.BTTS_HOME_WIN: both_scored and home_goals > away_goals,
        MarketId.BTTS_AWAY_WIN: both_scored and away_goals > home_goals,
        MarketId.RESULT_HOME: home_goals > away_goals,
        MarketId.RESULT_DRAW: home_goals == away_goals,
        MarketId.RESULT_AWAY: away_goals > home_goals,
        MarketId.DC_HOME_DRAW: home_goals >= away_goals,
        MarketId.DC_AWAY_DRAW: away_goals >= home_goals,
    }
    if market_id in rules:
        return _wl(rules[market_id])
    return VOID


def profit(status: str, odds: Decimal) -> Decimal:
    """Profit per unit staked."""
    if status == WIN:
        return q_money(D(odds) - D(1))
    if status == LOSS:
        return q_money(-1)
    return q_money(0)
