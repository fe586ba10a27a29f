from pitchedge.services.correlation import are_correlated, same_family, shares_context
from pitchedge.services.markets import MarketId


def test_same_fixture_same_family(make_market):
    over = make_market(fixture_id=1, market_id=MarketId.OVER_2_5)
    under = make_market(fixture_id=1, market_id=MarketId.UNDER_3_5)
    assert are_correlated(over, under)
    assert are_correlated(under, over)


def test_same_league_same_family(make_market):
    a = make_market(fixture_id=1, market_id=MarketId.RESULT_HOME, league_id=8)
    b = make_market(fixture_id=2, market_id=MarketId.DC_AWAY_DRAW, league_id=8)
    assert are_correlated(a, b)


def test_different_leagues_are_independent(make_market):
    a = make_market(fixture_id=1, market_id=MarketId.OVER_1_5, league_id=8)
    b = make_market(fixture_id=2, market_id=MarketId.OVER_2_5, league_id=9)
    assert same_family(a, b)
    assert not shares_context(a, b)
    assert not are_correlated(a, b)


def test_unknown_league_is_not_shared(make_market):
    a = make_market(fixture_id=1, market_id=MarketId.BTTS_YES)
    b = make_market(fixture_id=2, market_id=MarketId.BTTS_NO)
    assert not are_correlated(a, b)


def test_different_families_are_independent(make_market):
    a = make_market(fixture_id=1, market_id=MarketId.OVER_2_5)
    b = make_market(fixture_id=1, market_id=MarketId.BTTS_YES)
    assert not are_correlated(a, b)


def test_correct_scores_never_correlate(make_market):
    a = make_market(fixture_id=1, market_id=MarketId.CORRECT_SCORE, scoreline="1-0")
    b = make_market(fixture_id=1, market_id=MarketId.CORRECT_SCORE, scoreline="2-1")
    assert not same_family(a, b)
    assert not are_correlated(a, b)


def test_leg_not_correlated_with_itself(make_market):
    leg = make_market()
    assert not are_correlated(leg, leg)
