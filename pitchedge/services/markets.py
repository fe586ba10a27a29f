"""Score matrix -> named market probabilities.

Goal totals, BTTS and correct scores are read straight off the matrix. BTTS
is the sum of grid cells where both sides score; the out-of-grid tail is
left out of it and so falls on "BTTS: No".
Result markets (1X2) are NOT taken from the raw Poisson split: independent
Poisson misstates draw frequency, so home/away are a clamped logistic
compression of the lambda advantage and the draw is the remainder. The clamp
bounds are tuned values and live in Settings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from scipy.stats import poisson

from pitchedge.core.logger import get_logger
from pitchedge.services.goal_model import LambdaPair
from pitchedge.services.poisson import ScoreMatrix

log = get_logger("services.markets")

HALF_TIME_FACTOR = 0.45
TOP_CORRECT_SCORES = 3


class MarketFamily(str, Enum):
    GOAL_TOTAL = "goal_total"
    BTTS = "btts"
    RESULT = "result"
    CORRECT_SCORE = "correct_score"


class MarketId(str, Enum):
    OVER_1_5 = "over_1.5"
    OVER_2_5 = "over_2.5"
    OVER_3_5 = "over_3.5"
    UNDER_2_5 = "under_2.5"
    UNDER_3_5 = "under_3.5"
    UNDER_4_5 = "under_4.5"
    HOME_OVER_1_5 = "home_over_1.5"
    AWAY_OVER_1_5 = "away_over_1.5"
    FIRST_HALF_OVER_0_5 = "1h_over_0.5"
    BTTS_YES = "btts"
    BTTS_NO = "btts_no"
    BTTS_OVER_2_5 = "btts_over_2.5"
    BTTS_UNDER_2_5 = "btts_under_2.5"
    BTTS_HOME_WIN = "btts_home_win"
    BTTS_AWAY_WIN = "btts_away_win"
    RESULT_HOME = "result_home"
    RESULT_DRAW = "result_draw"
    RESULT_AWAY = "result_away"
    DNB_HOME = "draw_no_bet"
    DNB_AWAY = "draw_no_bet_away"
    DC_HOME_DRAW = "dc_home_draw"
    DC_AWAY_DRAW = "dc_away_draw"
    CORRECT_SCORE = "correct_score"

    @property
    def family(self) -> MarketFamily:
        return MARKET_FAMILIES[self]

    @property
    def label(self) -> str:
        return MARKET_LABELS[self]


MARKET_FAMILIES: Dict[MarketId, MarketFamily] = {
    MarketId.OVER_1_5: MarketFamily.GOAL_TOTAL,
    MarketId.OVER_2_5: MarketFamily.GOAL_TOTAL,
    MarketId.OVER_3_5: MarketFamily.GOAL_TOTAL,
    MarketId.UNDER_2_5: MarketFamily.GOAL_TOTAL,
    MarketId.UNDER_3_5: MarketFamily.GOAL_TOTAL,
    MarketId.UNDER_4_5: MarketFamily.GOAL_TOTAL,
    MarketId.HOME_OVER_1_5: MarketFamily.GOAL_TOTAL,
    MarketId.AWAY_OVER_1_5: MarketFamily.GOAL_TOTAL,
    MarketId.FIRST_HALF_OVER_0_5: MarketFamily.GOAL_TOTAL,
    MarketId.BTTS_YES: MarketFamily.BTTS,
    MarketId.BTTS_NO: MarketFamily.BTTS,
    MarketId.BTTS_OVER_2_5: MarketFamily.BTTS,
    MarketId.BTTS_UNDER_2_5: MarketFamily.BTTS,
    MarketId.BTTS_HOME_WIN: MarketFamily.BTTS,
    MarketId.BTTS_AWAY_WIN: MarketFamily.BTTS,
    MarketId.RESULT_HOME: MarketFamily.RESULT,
    MarketId.RESULT_DRAW: MarketFamily.RESULT,
    MarketId.RESULT_AWAY: MarketFamily.RESULT,
    MarketId.DNB_HOME: MarketFamily.RESULT,
    MarketId.DNB_AWAY: MarketFamily.RESULT,
    MarketId.DC_HOME_DRAW: MarketFamily.RESULT,
    MarketId.DC_AWAY_DRAW: MarketFamily.RESULT,
    MarketId.CORRECT_SCORE: MarketFamily.CORRECT_SCORE,
}

MARKET_LABELS: Dict[MarketId, str] = {
    MarketId.OVER_1_5: "Over 1.5 Goals",
    MarketId.OVER_2_5: "Over 2.5 Goals",
    MarketId.OVER_3_5: "Over 3.5 Goals",
    MarketId.UNDER_2_5: "Under 2.5 Goals",
    MarketId.UNDER_3_5: "Under 3.5 Goals",
    MarketId.UNDER_4_5: "Under 4.5 Goals",
    MarketId.HOME_OVER_1_5: "{home} Over 1.5",
    MarketId.AWAY_OVER_1_5: "{away} Over 1.5",
    MarketId.FIRST_HALF_OVER_0_5: "1st Half Over 0.5",
    MarketId.BTTS_YES: "Both Teams To Score",
    MarketId.BTTS_NO: "BTTS: No",
    MarketId.BTTS_OVER_2_5: "BTTS & Over 2.5",
    MarketId.BTTS_UNDER_2_5: "BTTS & Under 2.5",
    MarketId.BTTS_HOME_WIN: "{home} & BTTS",
    MarketId.BTTS_AWAY_WIN: "{away} & BTTS",
    MarketId.RESULT_HOME: "{home} to Win",
    MarketId.RESULT_DRAW: "Draw",
    MarketId.RESULT_AWAY: "{away} to Win",
    MarketId.DNB_HOME: "{home} (DNB)",
    MarketId.DNB_AWAY: "{away} (DNB)",
    MarketId.DC_HOME_DRAW: "{home} or Draw",
    MarketId.DC_AWAY_DRAW: "{away} or Draw",
    MarketId.CORRECT_SCORE: "Correct Score",
}

# Base variance multipliers; anything missing gets DEFAULT_VARIANCE_MULTIPLIER.
VARIANCE_MULTIPLIERS: Dict[MarketId, float] = {
    MarketId.OVER_2_5: 0.95,
    MarketId.OVER_3_5: 0.90,
    MarketId.UNDER_2_5: 1.00,
    MarketId.DNB_HOME: 0.93,
    MarketId.DNB_AWAY: 0.93,
    MarketId.BTTS_HOME_WIN: 0.88,
    MarketId.BTTS_AWAY_WIN: 0.88,
    MarketId.BTTS_YES: 0.93,
    MarketId.BTTS_NO: 0.93,
    MarketId.BTTS_OVER_2_5: 0.90,
    MarketId.BTTS_UNDER_2_5: 0.90,
    MarketId.CORRECT_SCORE: 0.80,
}
DEFAULT_VARIANCE_MULTIPLIER = 0.95


def variance_multiplier(market_id: MarketId, odds: Optional[float]) -> float:
    """Market base multiplier with a high-odds penalty layered on top."""
    base = VARIANCE_MULTIPLIERS.get(market_id, DEFAULT_VARIANCE_MULTIPLIER)
    if odds is None:
        return base
    if odds >= 8.0:
        return base * 0.80
    if odds >= 6.0:
        return base * 0.85
    if odds >= 4.0:
        return base * 0.90
    return base


def resolve_label(market_id: MarketId, home_team: str, away_team: str, scoreline: Optional[str] = None) -> str:
    if market_id == MarketId.CORRECT_SCORE and scoreline:
        return f"Correct Score: {scoreline}"
    return market_id.label.replace("{home}", home_team).replace("{away}", away_team)


@dataclass(frozen=True)
class CorrectScore:
    home_goals: int
    away_goals: int
    probability: float

    @property
    def scoreline(self) -> str:
        return f"{self.home_goals}-{self.away_goals}"


@dataclass(frozen=True)
class ResultCalibration:
    slope: float = 1.6
    home_base: float = 0.45
    away_base: float = 0.28
    spread: float = 0.9
    home_min: float = 0.28
    home_max: float = 0.75
    away_min: float = 0.15
    away_max: float = 0.60

    @classmethod
    def from_settings(cls, settings) -> "ResultCalibration":
        home_min, home_max, away_min, away_max = settings.result_clamps
        return cls(
            slope=float(settings.result_logistic_slope),
            home_base=float(settings.result_home_base),
            away_base=float(settings.result_away_base),
            spread=float(settings.result_spread),
            home_min=float(home_min),
            home_max=float(home_max),
            away_min=float(away_min),
            away_max=float(away_max),
        )


@dataclass(frozen=True)
class MarketProbabilities:
    probabilities: Dict[MarketId, float]
    correct_scores: List[CorrectScore] = field(default_factory=list)

    def get(self, market_id: MarketId) -> Optional[float]:
        return self.probabilities.get(market_id)

    def __contains__(self, market_id: MarketId) -> bool:
        return market_id in self.probabilities


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def calibrated_result_probs(
    lambdas: LambdaPair, calibration: Optional[ResultCalibration] = None
) -> tuple[float, float, float]:
    """(home, draw, away) from a clamped logistic of the lambda advantage."""
    cal = calibration or ResultCalibration()
    s = _sigmoid(cal.slope * (lambdas.lambda_home - lambdas.lambda_away))
    home = _clamp(cal.home_base + (s - 0.5) * cal.spread, cal.home_min, cal.home_max)
    away = _clamp(cal.away_base - (s - 0.5) * cal.spread, cal.away_min, cal.away_max)
    draw = 1.0 - home - away
    if draw < 0:
        # Only reachable with overlapping clamp bounds from config.
        log.warning("calibrated_result_probs negative draw=%.4f; renormalizing home/away", draw)
        total = home + away
        home, away, draw = home / total, away / total, 0.0
    return home, draw, away


def top_correct_scores(matrix: ScoreMatrix, n: int = TOP_CORRECT_SCORES) -> List[CorrectScore]:
    cells = sorted(matrix.cells(), key=lambda c: (-c[2], c[0], c[1]))
    return [CorrectScore(home_goals=h, away_goals=a, probability=p) for h, a, p in cells[:n]]


def derive_market_probabilities(
    matrix: ScoreMatrix,
    calibration: Optional[ResultCalibration] = None,
    half_time_factor: float = HALF_TIME_FACTOR,
) -> MarketProbabilities:
    lam = matrix.lambdas
    out: Dict[MarketId, float] = {}

    under_1_5 = matrix.total_goals_at_most(1)
    under_2_5 = matrix.total_goals_at_most(2)
    under_3_5 = matrix.total_goals_at_most(3)
    under_4_5 = matrix.total_goals_at_most(4)
    # The tail only holds totals above K, so it lands on the "over" side.
    out[MarketId.OVER_1_5] = 1.0 - under_1_5
    out[MarketId.OVER_2_5] = 1.0 - under_2_5
    out[MarketId.OVER_3_5] = 1.0 - under_3_5
    out[MarketId.UNDER_2_5] = under_2_5
    out[MarketId.UNDER_3_5] = under_3_5
    out[MarketId.UNDER_4_5] = under_4_5

    out[MarketId.HOME_OVER_1_5] = 1.0 - float(poisson.cdf(1, lam.lambda_home))
    out[MarketId.AWAY_OVER_1_5] = 1.0 - float(poisson.cdf(1, lam.lambda_away))
    out[MarketId.FIRST_HALF_OVER_0_5] = 1.0 - math.exp(-lam.total * half_time_factor)

    btts_yes = 0.0
    btts_home = 0.0
    btts_away = 0.0
    for h, a, p in matrix.cells():
        if h > 0 and a > 0:
            btts_yes += p
            if h > a:
                btts_home += p
            elif a > h:
                btts_away += p
    btts_under_2_5 = matrix.prob(1, 1)
    out[MarketId.BTTS_YES] = btts_yes
    out[MarketId.BTTS_NO] = 1.0 - btts_yes
    out[MarketId.BTTS_UNDER_2_5] = btts_under_2_5
    out[MarketId.BTTS_OVER_2_5] = max(0.0, btts_yes - btts_under_2_5)

    out[MarketId.BTTS_HOME_WIN] = btts_home
    out[MarketId.BTTS_AWAY_WIN] = btts_away

    home, draw, away = calibrated_result_probs(lam, calibration)
    out[MarketId.RESULT_HOME] = home
    out[MarketId.RESULT_DRAW] = draw
    out[MarketId.RESULT_AWAY] = away
    decisive = home + away
    out[MarketId.DNB_HOME] = home / decisive if decisive > 0 else 0.5
    out[MarketId.DNB_AWAY] = away / decisive if decisive > 0 else 0.5
    out[MarketId.DC_HOME_DRAW] = home + draw
    out[MarketId.DC_AWAY_DRAW] = away + draw

    scores = top_correct_scores(matrix)
    if scores:
        out[MarketId.CORRECT_SCORE] = scores[0].probability

    return MarketProbabilities(probabilities=out, correct_scores=scores)
