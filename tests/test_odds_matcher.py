from pitchedge.services.markets import MarketId
from pitchedge.services.odds_matcher import (
    BTTS,
    CORRECT_SCORE,
    MATCH_WINNER,
    OddsQuote,
    available_provider_markets,
    bookmaker_name,
    match_odds,
)


def _q(bookmaker, market_id, label, price, threshold=None):
    return OddsQuote(bookmaker=bookmaker, market_id=market_id, label=label, threshold=threshold, price=price)


def test_best_price_across_bookmakers():
    quotes = [
        _q("bet365", 80, "Over", 1.85, 2.5),
        _q("Betfair", 80, "Over", 1.95, 2.5),
        _q("Coral", 81, "Over", 1.90, 2.5),
        _q("Coral", 80, "Under", 2.10, 2.5),
    ]
    match = match_odds(quotes, MarketId.OVER_2_5)
    assert match.price == 1.95
    assert match.bookmaker == "Betfair"
    assert match.bookmaker_count == 3
    assert match.bookmaker_prices == {"Betfair": 1.95, "Coral": 1.90, "bet365": 1.85}


def test_duplicate_quotes_keep_best_per_bookmaker():
    quotes = [_q("bet365", 80, "Over", 1.80, 2.5), _q("bet365", 105, "Over", 1.88, 2.5)]
    match = match_odds(quotes, MarketId.OVER_2_5)
    assert match.bookmaker_prices == {"bet365": 1.88}


def test_tie_is_broken_by_bookmaker_name():
    quotes = [_q("Coral", MATCH_WINNER, "Home", 2.10), _q("BetVictor", MATCH_WINNER, "Home", 2.10)]
    assert match_odds(quotes, MarketId.RESULT_HOME).bookmaker == "BetVictor"


def test_threshold_must_match_exactly():
    quotes = [_q("bet365", 80, "Over", 1.40, 1.5), _q("bet365", 80, "Over", 2.60, 3.5)]
    assert not match_odds(quotes, MarketId.OVER_2_5).has_liquidity


def test_label_is_case_insensitive_but_exact():
    quotes = [_q("bet365", BTTS, "yes", 1.72), _q("Coral", BTTS, "Yes please", 9.0)]
    match = match_odds(quotes, MarketId.BTTS_YES)
    assert match.price == 1.72
    assert match.bookmaker_count == 1


def test_no_liquidity_is_not_an_error():
    match = match_odds([], MarketId.RESULT_DRAW)
    assert match.price is None
    assert match.bookmaker is None
    assert not match.has_liquidity


def test_prices_at_or_below_one_are_ignored():
    match = match_odds([_q("bet365", MATCH_WINNER, "Draw", 1.0)], MarketId.RESULT_DRAW)
    assert not match.has_liquidity


def test_correct_score_uses_scoreline_label():
    quotes = [_q("bet365", CORRECT_SCORE, "2-1", 8.5), _q("bet365", CORRECT_SCORE, "1-1", 6.0)]
    assert match_odds(quotes, MarketId.CORRECT_SCORE, scoreline="2-1").price == 8.5
    assert not match_odds(quotes, MarketId.CORRECT_SCORE).has_liquidity


def test_team_totals_stay_unpriced():
    quotes = [_q("bet365", 80, "Over", 1.5, 1.5)]
    assert not match_odds(quotes, MarketId.HOME_OVER_1_5).has_liquidity


def test_helpers():
    assert bookmaker_name(2) == "bet365"
    assert bookmaker_name(999) == "bookmaker_999"
    quotes = [_q("a", 80, "Over", 1.9, 2.5), _q("b", 1, "Home", 2.0), _q("c", 80, "Under", 1.9, 2.5)]
    assert available_provider_markets(quotes) == [1, 80]
