"""Day-level view of the published singles.

Two picks clash when they share a fixture, or a league while both are goal
totals. Deduplication keeps the higher edge score of any clashing pair. The
impact report is what the day costs if every pick loses, what it returns in
expectation, and how spread it is over leagues and market families.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from pitchedge.core.decimalutils import D, NumberLike, q_money, q_prob, safe_div
from pitchedge.core.logger import get_logger
from pitchedge.services.evaluator import EvaluatedMarket
from pitchedge.services.markets import MarketFamily

log = get_logger("services.portfolio")

MAX_WORST_CASE_DRAWDOWN = D("0.15")
SAME_MATCH = "same_match"
SAME_LEAGUE_GOALS = "same_league_goals"


def pick_correlation(a: EvaluatedMarket, b: EvaluatedMarket) -> Optional[str]:
    if a.fixture_id == b.fixture_id:
        return SAME_MATCH
    if (
        a.league_id is not None
        and a.league_id == b.league_id
        and a.family == MarketFamily.GOAL_TOTAL
        and b.family == MarketFamily.GOAL_TOTAL
    ):
        return SAME_LEAGUE_GOALS
    return None


def deduplicate_correlated_picks(picks: Iterable[EvaluatedMarket]) -> List[EvaluatedMarket]:
    """Best edge score first; a pick clashing with one already kept is dropped."""
    ranked = sorted(picks, key=lambda m: m.edge_score or 0, reverse=True)
    kept: List[EvaluatedMarket] = []
    for pick in ranked:
        clash = next((k for k in kept if pick_correlation(pick, k)), None)
        if clash is not None:
            log.info(
                "pick_dropped fixture=%s market=%s reason=%s kept_fixture=%s",
                pick.fixture_id,
                pick.selection_key,
                pick_correlation(pick, clash),
                clash.fixture_id,
            )
            continue
        kept.append(pick)
    return kept


@dataclass(frozen=True)
class PortfolioImpact:
    worst_case_drawdown: Decimal
    expected_return: Decimal
    diversification_score: int
    approved: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        out = asdict(self)
        out["worst_case_drawdown"] = str(self.worst_case_drawdown)
        out["expected_return"] = str(self.expected_return)
        return out


def assess_portfolio_impact(
    picks: Sequence[EvaluatedMarket],
    bankroll: NumberLike,
    max_drawdown: NumberLike = MAX_WORST_CASE_DRAWDOWN,
) -> PortfolioImpact:
    if not picks:
        return PortfolioImpact(
            worst_case_drawdown=D("0"), expected_return=D("0"), diversification_score=100, approved=True
        )

    stakes = [D(p.suggested_stake or 0) for p in picks]
    worst_case = q_prob(safe_div(sum(stakes, D("0")), bankroll))
    expected = q_money(sum((s * D(p.ev_adjusted or 0) for s, p in zip(stakes, picks)), D("0")))

    n = len(picks)
    leagues = len({p.league_id for p in picks})
    families = len({p.family for p in picks})
    diversification = round(min(50.0, leagues / n * 100) + min(50.0, families / n * 100))

    limit = D(max_drawdown)
    if worst_case > limit:
        return PortfolioImpact(
            worst_case_drawdown=worst_case,
            expected_return=expected,
            diversification_score=diversification,
            approved=False,
            reason=f"worst-case drawdown {worst_case * 100:.1f}% exceeds {limit * 100:.1f}%",
        )
    return PortfolioImpact(
        worst_case_drawdown=worst_case,
        expected_return=expected,
        diversification_score=diversification,
        approved=True,
    )
