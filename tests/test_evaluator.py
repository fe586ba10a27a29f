import pytest

from pitchedge.services.evaluator import (
    FixtureInput,
    evaluate_fixture,
    evaluate_market,
    rank_markets,
)
from pitchedge.services.goal_model import LambdaPair, TeamRate
from pitchedge.services.markets import MarketId
from pitchedge.services.odds_matcher import OddsQuote
from pitchedge.services.simulation import simulate_match


def _fixture(quotes=(), fixture_id=501):
    return FixtureInput(
        fixture_id=fixture_id,
        home_team="Home FC",
        away_team="Away FC",
        home=TeamRate(avg_scored=1.8, avg_conceded=1.0, games_played=12, rank=4),
        away=TeamRate(avg_scored=1.1, avg_conceded=1.5, games_played=12, rank=9),
        quotes=tuple(quotes),
        league_id=8,
    )


def _over25(price, bookmaker="bet365"):
    return OddsQuote(bookmaker=bookmaker, market_id=80, label="Over", threshold=2.5, price=price)


class TestEvaluateMarket:
    def test_edge_and_ev_from_best_price(self):
        fixture = _fixture([_over25(1.90), _over25(2.00, "Betfair")])
        sim = simulate_match(LambdaPair(1.8, 1.1), fixture.fixture_id, iterations=2000)
        market = evaluate_market(fixture, MarketId.OVER_2_5, 0.70, 70, sim)
        assert market.odds == 2.00
        assert market.bookmaker == "Betfair"
        assert market.edge == pytest.approx(0.20)
        assert market.ev == pytest.approx(0.40)
        assert market.implied_probability == pytest.approx(0.50)
        assert market.bookmaker_count == 2
        assert market.risk_assessment is not None
        assert market.edge_score is not None
        assert market.suggested_stake is not None and market.suggested_stake > 0
        assert market.label == "Over 2.5 Goals"

    def test_ev_adjusted_uses_confidence_and_variance_when_risk_rejects(self):
        fixture = _fixture([_over25(2.00)])
        sim = simulate_match(LambdaPair(1.8, 1.1), fixture.fixture_id, iterations=2000)
        market = evaluate_market(fixture, MarketId.OVER_2_5, 0.505, 70, sim)
        assert not market.risk_assessment.is_approved
        assert market.ev_adjusted == pytest.approx(market.ev * 0.70 * market.variance_multiplier)

    def test_unpriced_market_is_read_only(self):
        fixture = _fixture()
        sim = simulate_match(LambdaPair(1.8, 1.1), fixture.fixture_id, iterations=2000)
        market = evaluate_market(fixture, MarketId.BTTS_YES, 0.55, 70, sim)
        assert market.odds is None
        assert market.edge is None
        assert market.ev is None
        assert market.ev_adjusted is None
        assert not market.is_priced
        assert market.to_dict()["odds"] is None


class TestEvaluateFixture:
    def test_all_markets_listed(self):
        evaluation = evaluate_fixture(_fixture([_over25(2.00)]), iterations=2000)
        ids = [m.market_id for m in evaluation.markets]
        assert ids.count(MarketId.CORRECT_SCORE) == 3
        assert len(ids) == len(MarketId) - 1 + 3
        assert [m.market_id for m in evaluation.priced] == [MarketId.OVER_2_5]
        assert 40 <= evaluation.confidence <= 95

    def test_whitelist_limits_candidates(self):
        evaluation = evaluate_fixture(_fixture(), whitelist=["btts", "result_home"], iterations=2000)
        assert {m.market_id for m in evaluation.markets} == {MarketId.BTTS_YES, MarketId.RESULT_HOME}

    def test_deterministic(self):
        a = evaluate_fixture(_fixture([_over25(2.05)]), iterations=2000)
        b = evaluate_fixture(_fixture([_over25(2.05)]), iterations=2000)
        assert [m.to_dict() for m in a.markets] == [m.to_dict() for m in b.markets]

    def test_correct_score_selection_keys(self):
        evaluation = evaluate_fixture(_fixture(), whitelist=["correct_score"], iterations=2000)
        keys = [m.selection_key for m in evaluation.markets]
        assert all(k.startswith("correct_score:") for k in keys)
        assert len(set(keys)) == 3


def test_rank_markets_puts_priced_first(make_market):
    unpriced = make_market(market_id=MarketId.BTTS_YES, odds=None)
    low = make_market(market_id=MarketId.OVER_1_5, edge_score=45)
    high = make_market(market_id=MarketId.OVER_2_5, edge_score=80)
    ranked = rank_markets(iter([unpriced, low, high]))
    assert ranked == [high, low, unpriced]
