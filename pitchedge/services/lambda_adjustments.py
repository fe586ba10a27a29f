"""Optional refinements applied on top of the base lambda pair.

Order: Elo blend, then fatigue and injury weighting, clamp, Bayesian form
pull, clamp again. With every step switched off the base pair is returned
untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pitchedge.core.logger import get_logger
from pitchedge.services.elo import ELO_BLEND, adjust_lambdas_with_elo, bayesian_form_lambdas, compute_elo_ratings
from pitchedge.services.goal_model import (
    LambdaPair,
    MatchSignals,
    TeamRate,
    clamp_lambdas,
    fatigue_multiplier,
    injury_multiplier,
)

log = get_logger("services.lambda_adjustments")


@dataclass(frozen=True)
class LambdaAdjustments:
    elo: bool = False
    elo_blend: float = ELO_BLEND
    bayesian_form: bool = False
    fatigue_injury: bool = False

    @property
    def enabled(self) -> bool:
        return self.elo or self.bayesian_form or self.fatigue_injury

    @classmethod
    def from_settings(cls, s) -> "LambdaAdjustments":
        return cls(
            elo=bool(s.lambda_elo_enabled),
            elo_blend=float(s.elo_blend_factor),
            bayesian_form=bool(s.lambda_bayes_enabled),
            fatigue_injury=bool(s.lambda_fatigue_enabled),
        )


def refine_lambdas(
    base: LambdaPair,
    home: TeamRate,
    away: TeamRate,
    signals: Optional[MatchSignals],
    adjustments: Optional[LambdaAdjustments] = None,
) -> LambdaPair:
    if adjustments is None or not adjustments.enabled:
        return base
    signals = signals or MatchSignals(home_rank=home.rank, away_rank=away.rank)
    lambdas = base

    if adjustments.elo:
        rating = compute_elo_ratings(
            signals.home_rank,
            signals.away_rank,
            home.games_played,
            away.games_played,
            signals.home_ppg,
            signals.away_ppg,
            league_size=signals.league_size,
        )
        lambdas = adjust_lambdas_with_elo(lambdas, rating, adjustments.elo_blend)

    lam_h, lam_a = lambdas.lambda_home, lambdas.lambda_away
    if adjustments.fatigue_injury:
        lam_h *= fatigue_multiplier(signals.home_days_rest) * injury_multiplier(signals.home_injury_factor)
        lam_a *= fatigue_multiplier(signals.away_days_rest) * injury_multiplier(signals.away_injury_factor)
    lambdas = clamp_lambdas(lam_h, lam_a)

    if adjustments.bayesian_form:
        lambdas = bayesian_form_lambdas(
            lambdas, signals.home_ppg, signals.away_ppg, home.games_played, away.games_played
        )
        lambdas = clamp_lambdas(lambdas.lambda_home, lambdas.lambda_away)

    log.debug(
        "refine_lambdas base=%.4f/%.4f refined=%.4f/%.4f",
        base.lambda_home,
        base.lambda_away,
        lambdas.lambda_home,
        lambdas.lambda_away,
    )
    return lambdas
