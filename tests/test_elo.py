import pytest

from pitchedge.services.elo import (
    EloRating,
    adjust_lambdas_with_elo,
    bayesian_form_lambdas,
    bayesian_update,
    compute_elo_ratings,
    rating_from_rank,
)
from pitchedge.services.goal_model import LambdaPair


class TestRatings:
    def test_rank_sets_base_rating(self):
        assert rating_from_rank(1, 10, 1.0, 20) == pytest.approx(1500 + 19 * 25)
        assert rating_from_rank(20, 10, 1.0, 20) == pytest.approx(1500)

    def test_form_bonus_scales_with_sample(self):
        thin = rating_from_rank(10, 3, 2.0, 20)
        full = rating_from_rank(10, 30, 2.0, 20)
        assert full - thin == pytest.approx(50 * (1.0 - 3 / 15))

    def test_stronger_home_side_is_favoured(self):
        rating = compute_elo_ratings(2, 18, 15, 15, 2.0, 0.8)
        assert rating.home > rating.away
        assert rating.expected_home > rating.expected_away
        assert rating.expected_home + rating.expected_away + rating.expected_draw == pytest.approx(1.0)

    def test_level_sides_get_full_draw_share(self):
        rating = compute_elo_ratings(10, 10, 10, 10, 1.0, 1.0)
        assert rating.expected_draw == pytest.approx(0.26)
        assert rating.expected_home == pytest.approx(rating.expected_away)
        assert rating.strength_delta == 0


class TestBayesianUpdate:
    def test_no_sample_keeps_prior(self):
        result = bayesian_update(0.4, 0.9, 0)
        assert result.probability == pytest.approx(0.4)
        assert result.prior_weight == 1.0

    def test_evidence_share_is_capped(self):
        result = bayesian_update(0.4, 0.9, 60)
        assert result.evidence_weight == 1.0
        assert result.prior_weight == pytest.approx(0.6)
        assert result.probability == pytest.approx(0.4 * 0.6 + 0.9 * 0.4)

    def test_posterior_is_clamped(self):
        assert bayesian_update(1.0, 1.0, 20).probability == 0.99
        assert bayesian_update(0.0, 0.0, 20).probability == 0.01

    def test_hot_form_lifts_lambda(self):
        base = LambdaPair(1.2, 1.2)
        out = bayesian_form_lambdas(base, home_ppg=2.7, away_ppg=0.3, home_games_played=20, away_games_played=20)
        assert out.lambda_home > base.lambda_home
        assert out.lambda_away < base.lambda_away


class TestEloLambdaBlend:
    def test_total_is_preserved(self):
        rating = EloRating(home=1900, away=1500, expected_home=0.6, expected_away=0.15, expected_draw=0.25)
        out = adjust_lambdas_with_elo(LambdaPair(1.4, 1.4), rating, blend=0.15)
        assert out.total == pytest.approx(2.8)
        assert out.lambda_home == pytest.approx(2.8 * (0.5 * 0.85 + 0.8 * 0.15))

    def test_zero_blend_is_identity(self):
        rating = compute_elo_ratings(1, 20, 10, 10, 2.5, 0.5)
        out = adjust_lambdas_with_elo(LambdaPair(1.7, 0.9), rating, blend=0.0)
        assert out.lambda_home == pytest.approx(1.7)
        assert out.lambda_away == pytest.approx(0.9)

    def test_floors_apply(self):
        rating = EloRating(home=2000, away=1500, expected_home=0.99, expected_away=0.001, expected_draw=0.009)
        out = adjust_lambdas_with_elo(LambdaPair(0.5, 0.2), rating, blend=1.0)
        assert out.lambda_away == pytest.approx(0.2)
