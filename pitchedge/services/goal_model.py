"""Team strength -> expected goals (lambdas).

Base rate is the attack-vs-defence average: a side's expected goals are the
mean of its own scoring rate and the opponent's conceding rate. Two
multiplicative modifiers follow, a rank-gap boost and a form-momentum boost,
both applied to the stronger side only.

Optional refinements (Elo blend, Bayesian form pull, fatigue and injury
weighting) live in ``lambda_adjustments``; the helpers they share with the
base model are here. Any refined pair is clamped to the lambda bounds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pitchedge.core.logger import get_logger

log = get_logger("services.goal_model")

DEFAULT_SCORED = 1.3
DEFAULT_CONCEDED = 1.1
DEFAULT_GAMES_PLAYED = 10
DEFAULT_RANK = 10
DEFAULT_PPG = 1.0

SEASON_WEIGHT = 0.4
FORM_WEIGHT = 0.6

RANK_GAP_MINOR = 8
RANK_GAP_MAJOR = 15
RANK_BOOST_MINOR = 1.15
RANK_BOOST_MAJOR = 1.25
FORM_PPG_GAP = 0.8
FORM_BOOST = 1.10
DEFAULT_LEAGUE_SIZE = 20

# (min days rest, multiplier); anything shorter gets HEAVY_FATIGUE.
FATIGUE_STEPS = ((5, 1.0), (3, 0.97), (2, 0.94))
HEAVY_FATIGUE = 0.90
INJURY_FLOOR = 0.80
LAMBDA_HOME_BOUNDS = (0.3, 4.0)
LAMBDA_AWAY_BOUNDS = (0.2, 3.5)


@dataclass(frozen=True)
class TeamSample:
    """Raw per-window averages. Any field may be missing."""

    avg_scored: Optional[float] = None
    avg_conceded: Optional[float] = None
    games_played: Optional[int] = None


@dataclass(frozen=True)
class TeamRate:
    avg_scored: float
    avg_conceded: float
    games_played: int
    rank: int


@dataclass(frozen=True)
class MatchSignals:
    home_rank: int = DEFAULT_RANK
    away_rank: int = DEFAULT_RANK
    home_ppg: float = DEFAULT_PPG
    away_ppg: float = DEFAULT_PPG
    home_days_rest: Optional[int] = None
    away_days_rest: Optional[int] = None
    home_injury_factor: float = 1.0
    away_injury_factor: float = 1.0
    league_size: int = DEFAULT_LEAGUE_SIZE


@dataclass(frozen=True)
class LambdaPair:
    lambda_home: float
    lambda_away: float

    def __post_init__(self):
        if not (self.lambda_home > 0 and self.lambda_away > 0):
            raise ValueError(f"lambdas must be positive, got {self.lambda_home}/{self.lambda_away}")

    @property
    def total(self) -> float:
        return self.lambda_home + self.lambda_away


def _positive(value: Optional[float], default: float) -> float:
    if value is None:
        return default
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def blend_team_rate(
    season: Optional[TeamSample],
    form: Optional[TeamSample] = None,
    *,
    rank: Optional[int] = None,
    season_weight: float = SEASON_WEIGHT,
    form_weight: float = FORM_WEIGHT,
    default_scored: float = DEFAULT_SCORED,
    default_conceded: float = DEFAULT_CONCEDED,
) -> TeamRate:
    """Blend season-long and recent-form samples into one TeamRate.

    Missing season figures fall back to league defaults; missing form figures
    fall back to the (possibly defaulted) season figure, so an absent form
    sample leaves the season rate unchanged.
    """
    season = season or TeamSample()
    form = form or TeamSample()
    s_scored = _positive(season.avg_scored, default_scored)
    s_conceded = _positive(season.avg_conceded, default_conceded)
    f_scored = _positive(form.avg_scored, s_scored)
    f_conceded = _positive(form.avg_conceded, s_conceded)

    games = season.games_played if season.games_played and season.games_played > 0 else DEFAULT_GAMES_PLAYED
    team_rank = rank if rank and rank > 0 else DEFAULT_RANK
    return TeamRate(
        avg_scored=s_scored * season_weight + f_scored * form_weight,
        avg_conceded=s_conceded * season_weight + f_conceded * form_weight,
        games_played=int(games),
        rank=int(team_rank),
    )


def rank_gap_multiplier(rank_gap: int) -> float:
    gap = abs(rank_gap)
    if gap > RANK_GAP_MAJOR:
        return RANK_BOOST_MAJOR
    if gap > RANK_GAP_MINOR:
        return RANK_BOOST_MINOR
    return 1.0


def compute_lambdas(home: TeamRate, away: TeamRate, signals: Optional[MatchSignals] = None) -> LambdaPair:
    signals = signals or MatchSignals(home_rank=home.rank, away_rank=away.rank)

    lam_h = (_positive(home.avg_scored, DEFAULT_SCORED) + _positive(away.avg_conceded, DEFAULT_CONCEDED)) / 2.0
    lam_a = (_positive(away.avg_scored, DEFAULT_SCORED) + _positive(home.avg_conceded, DEFAULT_CONCEDED)) / 2.0

    # Lower rank number = stronger side.
    gap = signals.away_rank - signals.home_rank
    boost = rank_gap_multiplier(gap)
    if gap > 0:
        lam_h *= boost
    elif gap < 0:
        lam_a *= boost

    ppg_gap = signals.home_ppg - signals.away_ppg
    if ppg_gap > FORM_PPG_GAP:
        lam_h *= FORM_BOOST
    elif ppg_gap < -FORM_PPG_GAP:
        lam_a *= FORM_BOOST

    log.debug(
        "compute_lambdas home=%.4f away=%.4f rank_gap=%s ppg_gap=%.2f",
        lam_h,
        lam_a,
        gap,
        ppg_gap,
    )
    return LambdaPair(lambda_home=lam_h, lambda_away=lam_a)


def fatigue_multiplier(days_rest: Optional[int]) -> float:
    """Unknown rest counts as fully rested."""
    if days_rest is None:
        return 1.0
    for min_days, multiplier in FATIGUE_STEPS:
        if days_rest >= min_days:
            return multiplier
    return HEAVY_FATIGUE


def injury_multiplier(squad_strength: Optional[float]) -> float:
    """Squad strength in [0, 1] (1 = full strength), floored at INJURY_FLOOR."""
    if squad_strength is None:
        return 1.0
    return max(INJURY_FLOOR, min(1.0, float(squad_strength)))


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def clamp_lambdas(lambda_home: float, lambda_away: float) -> LambdaPair:
    return LambdaPair(
        lambda_home=_clamp(lambda_home, LAMBDA_HOME_BOUNDS),
        lambda_away=_clamp(lambda_away, LAMBDA_AWAY_BOUNDS),
    )
