from decimal import Decimal

import pytest

from pitchedge.services.settlement import LOSS, VOID, WIN, profit, resolve_market


def test_resolve_totals_over_under():
    assert resolve_market("over_2.5", 2, 1) == WIN
    assert resolve_market("over_2.5", 1, 1) == LOSS
    assert resolve_market("under_2.5", 1, 1) == WIN
    assert resolve_market("under_2.5", 2, 1) == LOSS
    assert resolve_market("under_4.5", 3, 2) == LOSS


@pytest.mark.parametrize(
    "market,home,away,expected",
    [
        ("btts", 1, 1, WIN),
        ("btts", 2, 0, LOSS),
        ("btts_no", 2, 0, WIN),
        ("btts_over_2.5", 2, 1, WIN),
        ("btts_under_2.5", 2, 1, LOSS),
        ("btts_home_win", 2, 1, WIN),
        ("btts_away_win", 2, 1, LOSS),
        ("result_home", 1, 0, WIN),
        ("result_draw", 1, 1, WIN),
        ("result_away", 1, 1, LOSS),
        ("dc_home_draw", 1, 1, WIN),
        ("dc_away_draw", 2, 1, LOSS),
        ("home_over_1.5", 2, 0, WIN),
        ("away_over_1.5", 2, 1, LOSS),
    ],
)
def test_resolve_markets(market, home, away, expected):
    assert resolve_market(market, home, away) == expected


def test_draw_no_bet_refunds_draw():
    assert resolve_market("draw_no_bet", 1, 1) == VOID
    assert resolve_market("draw_no_bet", 2, 1) == WIN
    assert resolve_market("draw_no_bet_away", 2, 1) == LOSS


def test_correct_score():
    assert resolve_market("correct_score:2-1", 2, 1) == WIN
    assert resolve_market("correct_score:2-1", 1, 2) == LOSS
    assert resolve_market("correct_score", 1, 2) == VOID


def test_first_half_needs_half_time_score():
    assert resolve_market("1h_over_0.5", 2, 0) == VOID
    assert resolve_market("1h_over_0.5", 2, 0, ht_home_goals=1, ht_away_goals=0) == WIN
    assert resolve_market("1h_over_0.5", 2, 0, ht_home_goals=0, ht_away_goals=0) == LOSS


def test_missing_goals_or_unknown_market_void():
    assert resolve_market("over_2.5", None, 1) == VOID
    assert resolve_market("asian_handicap", 2, 1) == VOID


def test_profit_totals():
    assert profit(WIN, Decimal("2.5")) == Decimal("1.500")
    assert profit(LOSS, Decimal("2.5")) == Decimal("-1.000")
    assert profit(VOID, Decimal("2.5")) == Decimal("0.000")
