"""Seeded Monte Carlo over the goal model.

Draws full-time and first-half scorelines from the fixture's lambdas and turns
the hit rates into 95% normal-approximation intervals. The generator is seeded
from the fixture id, so a rerun gives identical intervals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from scipy.stats import norm

from pitchedge.services.goal_model import LambdaPair
from pitchedge.services.markets import HALF_TIME_FACTOR, MarketId

DEFAULT_ITERATIONS = 10_000
DEFAULT_SEED_BASE = 42
CI_LEVEL = 0.95
VOLATILITY_MARKETS = (MarketId.OVER_2_5, MarketId.BTTS_YES, MarketId.DNB_HOME)

Interval = Tuple[float, float]


@dataclass(frozen=True)
class SimulationResult:
    probabilities: Dict[MarketId, float]
    intervals: Dict[MarketId, Interval]
    volatility_score: int
    mean_home_goals: float
    mean_away_goals: float
    iterations: int

    def interval_for(self, market_id: MarketId, probability: Optional[float] = None) -> Interval:
        """Simulated interval, or one around ``probability`` at the same sample size."""
        ci = self.intervals.get(market_id)
        if ci is not None:
            return ci
        if probability is None:
            raise KeyError(market_id)
        return normal_interval(probability, self.iterations)


def normal_interval(p: float, n: int, level: float = CI_LEVEL) -> Interval:
    z = float(norm.ppf(0.5 + level / 2.0))
    margin = z * float(np.sqrt(max(0.0, p * (1.0 - p)) / n))
    return max(0.0, p - margin), min(1.0, p + margin)


def simulate_match(
    lambdas: LambdaPair,
    fixture_id: int,
    iterations: int = DEFAULT_ITERATIONS,
    seed_base: int = DEFAULT_SEED_BASE,
) -> SimulationResult:
    rng = np.random.default_rng(int(fixture_id) ^ int(seed_base))
    hg = rng.poisson(lambdas.lambda_home, iterations)
    ag = rng.poisson(lambdas.lambda_away, iterations)
    hg_1h = rng.poisson(lambdas.lambda_home * HALF_TIME_FACTOR, iterations)
    ag_1h = rng.poisson(lambdas.lambda_away * HALF_TIME_FACTOR, iterations)

    total = hg + ag
    both = (hg > 0) & (ag > 0)
    home_win = hg > ag
    away_win = ag > hg
    decisive = int(home_win.sum() + away_win.sum())

    hits = {
        MarketId.OVER_1_5: total > 1,
        MarketId.OVER_2_5: total > 2,
        MarketId.OVER_3_5: total > 3,
        MarketId.UNDER_2_5: total <= 2,
        MarketId.UNDER_3_5: total <= 3,
        MarketId.UNDER_4_5: total <= 4,
        MarketId.HOME_OVER_1_5: hg > 1,
        MarketId.AWAY_OVER_1_5: ag > 1,
        MarketId.FIRST_HALF_OVER_0_5: (hg_1h + ag_1h) > 0,
        MarketId.BTTS_YES: both,
        MarketId.BTTS_NO: ~both,
        MarketId.BTTS_OVER_2_5: both & (total > 2),
        MarketId.BTTS_UNDER_2_5: both & (total <= 2),
        MarketId.BTTS_HOME_WIN: both & home_win,
        MarketId.BTTS_AWAY_WIN: both & away_win,
    }
    probabilities: Dict[MarketId, float] = {m: float(mask.mean()) for m, mask in hits.items()}
    intervals: Dict[MarketId, Interval] = {m: normal_interval(p, iterations) for m, p in probabilities.items()}

    # Draw-no-bet is conditional on a decisive result.
    if decisive > 0:
        dnb_home = float(home_win.sum()) / decisive
        probabilities[MarketId.DNB_HOME] = dnb_home
        probabilities[MarketId.DNB_AWAY] = 1.0 - dnb_home
        intervals[MarketId.DNB_HOME] = normal_interval(dnb_home, decisive)
        intervals[MarketId.DNB_AWAY] = normal_interval(1.0 - dnb_home, decisive)

    widths = [intervals[m][1] - intervals[m][0] for m in VOLATILITY_MARKETS if m in intervals]
    avg_width = sum(widths) / len(VOLATILITY_MARKETS)
    volatility = int(min(100, round(avg_width * 400)))

    return SimulationResult(
        probabilities=probabilities,
        intervals=intervals,
        volatility_score=volatility,
        mean_home_goals=float(hg.mean()),
        mean_away_goals=float(ag.mean()),
        iterations=iterations,
    )
