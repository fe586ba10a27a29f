from __future__ import annotations

from dataclasses import dataclass

from pitchedge.core.logger import get_logger
from pitchedge.services.goal_model import LAMBDA_AWAY_BOUNDS, LAMBDA_HOME_BOUNDS, LambdaPair

log = get_logger("services.elo")

DEFAULT_RATING = 1500.0
RANK_K_FACTOR = 25.0
FORM_BONUS_SCALE = 50.0
FORM_SAMPLE_GAMES = 15
DRAW_FACTOR = 0.26
ELO_BLEND = 0.15

BAYES_SAMPLE_GAMES = 20
# Evidence can take at most this share of the posterior.
BAYES_MAX_EVIDENCE_SHARE = 0.4
MAX_PPG = 3.0


@dataclass(frozen=True)
class EloRating:
    home: float
    away: float
    expected_home: float
    expected_away: float
    expected_draw: float

    @property
    def strength_delta(self) -> float:
        return abs(self.home - self.away)


@dataclass(frozen=True)
class BayesianAdjustment:
    probability: float
    prior_weight: float
    evidence_weight: float


def _expected_score(rating: float, opponent_rating: float) -> float:
    """Standard Elo expectation."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / 400.0))


def rating_from_rank(rank: int, games_played: int, ppg: float, league_size: int) -> float:
    """Table position sets the base; points-per-game momentum shifts it, trusted more with more games."""
    base = DEFAULT_RATING + (league_size - rank) * RANK_K_FACTOR
    sample = min(1.0, games_played / FORM_SAMPLE_GAMES)
    return base + (ppg - 1.0) * FORM_BONUS_SCALE * sample


def compute_elo_ratings(
    home_rank: int,
    away_rank: int,
    home_games_played: int,
    away_games_played: int,
    home_ppg: float,
    away_ppg: float,
    league_size: int = 20,
) -> EloRating:
    home = rating_from_rank(home_rank, home_games_played, home_ppg, league_size)
    away = rating_from_rank(away_rank, away_games_played, away_ppg, league_size)
    e_home = _expected_score(home, away)
    e_away = _expected_score(away, home)
    # Elo has no draw outcome; carve one out of the closeness of the sides.
    draw = DRAW_FACTOR * (1.0 - abs(e_home - e_away))
    return EloRating(
        home=home,
        away=away,
        expected_home=e_home * (1.0 - draw),
        expected_away=e_away * (1.0 - draw),
        expected_draw=draw,
    )


def bayesian_update(prior: float, evidence: float, sample_size: int) -> BayesianAdjustment:
    """Pull ``prior`` toward ``evidence`` in proportion to the sample backing it.

    Both are on a 0..1 scale. The prior always keeps at least 60% of the
    weight and the posterior is clamped to [0.01, 0.99].
    """
    evidence_weight = min(1.0, max(0, sample_size) / BAYES_SAMPLE_GAMES)
    prior_weight = 1.0 - evidence_weight * BAYES_MAX_EVIDENCE_SHARE
    posterior = prior * prior_weight + evidence * (1.0 - prior_weight)
    return BayesianAdjustment(
        probability=max(0.01, min(0.99, posterior)),
        prior_weight=prior_weight,
        evidence_weight=evidence_weight,
    )


def bayesian_form_lambdas(
    lambdas: LambdaPair,
    home_ppg: float,
    away_ppg: float,
    home_games_played: int,
    away_games_played: int,
) -> LambdaPair:
    """Each lambda, scaled onto its upper bound, is nudged toward the side's points-per-game share."""
    home_cap = LAMBDA_HOME_BOUNDS[1]
    away_cap = LAMBDA_AWAY_BOUNDS[1]
    home = bayesian_update(lambdas.lambda_home / home_cap, home_ppg / MAX_PPG, home_games_played)
    away = bayesian_update(lambdas.lambda_away / away_cap, away_ppg / MAX_PPG, away_games_played)
    return LambdaPair(home.probability * home_cap, away.probability * away_cap)


def adjust_lambdas_with_elo(lambdas: LambdaPair, rating: EloRating, blend: float = ELO_BLEND) -> LambdaPair:
    """Shift the goal split toward the Elo-implied split; the total is kept unless a floor binds."""
    total = lambdas.total
    elo_home_share = rating.expected_home / (rating.expected_home + rating.expected_away)
    home_share = (lambdas.lambda_home / total) * (1.0 - blend) + elo_home_share * blend
    adjusted = LambdaPair(
        lambda_home=max(LAMBDA_HOME_BOUNDS[0], total * home_share),
        lambda_away=max(LAMBDA_AWAY_BOUNDS[0], total * (1.0 - home_share)),
    )
    log.debug(
        "elo_adjust home=%.1f away=%.1f share=%.3f lambdas=%.4f/%.4f",
        rating.home,
        rating.away,
        home_share,
        adjusted.lambda_home,
        adjusted.lambda_away,
    )
    return adjusted
