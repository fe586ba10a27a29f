import pytest

from pitchedge.services.edge_score import compute_edge_score, project_clv
from pitchedge.services.goal_model import LambdaPair
from pitchedge.services.markets import MarketId
from pitchedge.services.risk import assess_risk, liquidity_score, risk_tier
from pitchedge.services.simulation import normal_interval, simulate_match


def test_simulation_is_seeded_by_fixture():
    lambdas = LambdaPair(1.6, 1.2)
    a = simulate_match(lambdas, fixture_id=1001, iterations=5000)
    b = simulate_match(lambdas, fixture_id=1001, iterations=5000)
    c = simulate_match(lambdas, fixture_id=1002, iterations=5000)
    assert a.probabilities == b.probabilities
    assert a.intervals == b.intervals
    assert a.probabilities != c.probabilities


def test_simulation_tracks_model():
    sim = simulate_match(LambdaPair(1.8, 1.1), fixture_id=7, iterations=20000)
    assert sim.mean_home_goals == pytest.approx(1.8, abs=0.05)
    assert sim.mean_away_goals == pytest.approx(1.1, abs=0.05)
    assert 0.50 < sim.probabilities[MarketId.OVER_2_5] < 0.61
    lo, hi = sim.intervals[MarketId.OVER_2_5]
    assert lo < sim.probabilities[MarketId.OVER_2_5] < hi
    assert sim.probabilities[MarketId.DNB_HOME] + sim.probabilities[MarketId.DNB_AWAY] == pytest.approx(1.0)
    assert 0 <= sim.volatility_score <= 100


def test_interval_fallback_for_unsimulated_market():
    sim = simulate_match(LambdaPair(1.2, 1.0), fixture_id=3, iterations=1000)
    lo, hi = sim.interval_for(MarketId.RESULT_HOME, 0.5)
    assert lo < 0.5 < hi
    with pytest.raises(KeyError):
        sim.interval_for(MarketId.RESULT_HOME)


def test_normal_interval_narrows_with_samples():
    wide = normal_interval(0.5, 100)
    narrow = normal_interval(0.5, 10000)
    assert (wide[1] - wide[0]) > (narrow[1] - narrow[0])
    assert normal_interval(0.0, 100) == (0.0, 0.0)


class TestAssessRisk:
    def test_approves_stable_value(self):
        risk = assess_risk(0.20, 2.0, (0.60, 0.64), 8, 5, 0.95)
        assert risk.is_approved
        assert risk.rejection_reason is None
        assert risk.variance_adjusted_ev == pytest.approx(0.20 * (1 - 8 / 200) * 0.95)
        assert risk.tier in ("A+", "A", "B")

    def test_rejects_wide_interval(self):
        risk = assess_risk(0.20, 2.0, (0.40, 0.70), 8, 5, 0.95)
        assert not risk.is_approved
        assert "CI width" in risk.rejection_reason

    def test_rejects_volatile_long_odds(self):
        risk = assess_risk(0.50, 5.0, (0.28, 0.32), 75, 5, 0.85)
        assert not risk.is_approved
        assert "volatility" in risk.rejection_reason

    def test_rejects_no_bookmakers(self):
        risk = assess_risk(0.20, 2.0, (0.60, 0.64), 8, 0, 0.95)
        assert not risk.is_approved
        assert "liquidity" in risk.rejection_reason.lower()

    def test_single_bookmaker_is_too_thin_by_default(self):
        risk = assess_risk(0.20, 2.0, (0.60, 0.64), 8, 1, 0.95)
        assert not risk.is_approved
        assert "liquidity" in risk.rejection_reason.lower()
        assert assess_risk(0.20, 2.0, (0.60, 0.64), 8, 1, 0.95, min_bookmakers=1).is_approved

    def test_rejects_thin_adjusted_ev(self):
        risk = assess_risk(0.01, 2.0, (0.50, 0.52), 8, 5, 0.95)
        assert not risk.is_approved
        assert "Variance-adjusted EV" in risk.rejection_reason


def test_tiers_and_liquidity():
    assert risk_tier(90) == "A+"
    assert risk_tier(70) == "A"
    assert risk_tier(55) == "B"
    assert risk_tier(54.9) == "REJECT"
    assert liquidity_score(0) == 0
    assert liquidity_score(7) == 100
    assert liquidity_score(20) == 100


def test_edge_score_rewards_value_and_confidence():
    clv = project_clv(2.10, 0.55, 0.55 - 1 / 2.10, 5)
    assert clv.fair_odds == pytest.approx(1.82, abs=0.01)
    assert clv.predicted_closing_odds < 2.10
    assert clv.line_direction == "shortening"

    strong = compute_edge_score(0.15, 0.07, clv, 10, 70, 90)
    weak = compute_edge_score(0.02, 0.01, clv, 60, 10, 40)
    low_conf = compute_edge_score(0.15, 0.07, clv, 10, 70, 40)
    assert 0 <= weak.score < strong.score <= 100
    assert low_conf.score < strong.score
