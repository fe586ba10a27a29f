from __future__ import annotations

from pitchedge.services.evaluator import EvaluatedMarket
from pitchedge.services.markets import MarketFamily

# Two goal totals, two BTTS-family or two result-family legs move together.
CORRELATED_FAMILIES = frozenset({MarketFamily.GOAL_TOTAL, MarketFamily.BTTS, MarketFamily.RESULT})


def same_family(a: EvaluatedMarket, b: EvaluatedMarket) -> bool:
    return a.family == b.family and a.family in CORRELATED_FAMILIES


def shares_context(a: EvaluatedMarket, b: EvaluatedMarket) -> bool:
    """Same fixture, or same (known) league."""
    if a.fixture_id == b.fixture_id:
        return True
    return a.league_id is not None and a.league_id == b.league_id


def are_correlated(a: EvaluatedMarket, b: EvaluatedMarket) -> bool:
    """Symmetric; a leg is never correlated with itself.

    The family test is scoped to legs that share a fixture or a league.
    Applied across every fixture of the day it would rule out any five-leg
    slip, since there are only four market families.
    """
    if a is b:
        return False
    return same_family(a, b) and shares_context(a, b)
