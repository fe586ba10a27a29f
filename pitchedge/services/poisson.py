"""Independent-Poisson scoreline matrix.

The grid covers 0..max_goals for each side. Everything outside the grid is
collapsed into a single tail mass, ``1 - F_h(K) * F_a(K)``, so grid + tail
always sums to exactly 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np
from scipy.stats import poisson

from pitchedge.services.goal_model import LambdaPair

DEFAULT_MAX_GOALS = 6


def poisson_pmf(k: int, lam: float) -> float:
    """Poisson probability mass function P(X=k | lam)."""
    if k < 0:
        return 0.0
    if lam <= 0:
        return 1.0 if k == 0 else 0.0
    return float(poisson.pmf(k, lam))


@dataclass(frozen=True)
class ScoreMatrix:
    lambdas: LambdaPair
    grid: np.ndarray  # grid[h, a] = P(home scores h, away scores a)
    tail: float

    @property
    def max_goals(self) -> int:
        return int(self.grid.shape[0]) - 1

    @property
    def total(self) -> float:
        return float(self.grid.sum()) + self.tail

    def prob(self, home_goals: int, away_goals: int) -> float:
        k = self.max_goals
        if home_goals < 0 or away_goals < 0 or home_goals > k or away_goals > k:
            return 0.0
        return float(self.grid[home_goals, away_goals])

    def cells(self) -> Iterator[Tuple[int, int, float]]:
        k = self.max_goals
        for h in range(k + 1):
            for a in range(k + 1):
                yield h, a, float(self.grid[h, a])

    def total_goals_at_most(self, n: int) -> float:
        """P(home + away <= n) summed over the grid. Tail cells never qualify when n < K+1."""
        h_idx, a_idx = np.indices(self.grid.shape)
        return float(self.grid[(h_idx + a_idx) <= n].sum())


def build_score_matrix(lambdas: LambdaPair, max_goals: int = DEFAULT_MAX_GOALS) -> ScoreMatrix:
    if max_goals < 1:
        raise ValueError(f"max_goals must be >= 1, got {max_goals}")
    goals = np.arange(max_goals + 1)
    p_home = poisson.pmf(goals, lambdas.lambda_home)
    p_away = poisson.pmf(goals, lambdas.lambda_away)
    grid = np.outer(p_home, p_away)

    inside = float(poisson.cdf(max_goals, lambdas.lambda_home)) * float(poisson.cdf(max_goals, lambdas.lambda_away))
    tail = max(0.0, 1.0 - inside)
    return ScoreMatrix(lambdas=lambdas, grid=grid, tail=tail)
