from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional, Tuple

MAX_CI_WIDTH = 0.25
HIGH_ODDS = 4.0
HIGH_ODDS_MAX_VOLATILITY = 70
MIN_BOOKMAKERS = 2
MIN_EV_THRESHOLD = 0.02
FULL_LIQUIDITY_BOOKMAKERS = 7

RISK_TIERS = (
    (85, "A+"),
    (70, "A"),
    (55, "B"),
)


def risk_tier(score: float) -> str:
    for floor, label in RISK_TIERS:
        if score >= floor:
            return label
    return "REJECT"


@dataclass(frozen=True)
class RiskAssessment:
    is_approved: bool
    rejection_reason: Optional[str] = None
    variance_adjusted_ev: float = 0.0
    volatility_score: int = 0
    liquidity_score: int = 0
    tail_risk: bool = False
    tier: str = "B"

    def to_dict(self) -> dict:
        return asdict(self)


def liquidity_score(bookmaker_count: int) -> int:
    return int(min(100, round(bookmaker_count / FULL_LIQUIDITY_BOOKMAKERS * 100)))


def assess_risk(
    ev: float,
    odds: float,
    confidence_interval: Tuple[float, float],
    volatility: int,
    bookmaker_count: int,
    variance_multiplier: float,
    *,
    max_ci_width: float = MAX_CI_WIDTH,
    min_bookmakers: int = MIN_BOOKMAKERS,
    min_ev: float = MIN_EV_THRESHOLD,
) -> RiskAssessment:
    """Default risk assessment for a priced market. First failing gate wins."""
    variance_adjusted_ev = ev * (1.0 - volatility / 200.0) * variance_multiplier
    ci_width = confidence_interval[1] - confidence_interval[0]
    liquidity = liquidity_score(bookmaker_count)
    tail_risk = ci_width > 0.20 and odds >= 3.5 and volatility >= 50
    base = dict(
        variance_adjusted_ev=variance_adjusted_ev,
        volatility_score=volatility,
        liquidity_score=liquidity,
    )

    if ci_width > max_ci_width:
        return RiskAssessment(
            is_approved=False,
            rejection_reason=f"CI width {ci_width * 100:.1f}% exceeds max {max_ci_width * 100:.0f}%",
            tail_risk=True,
            tier="REJECT",
            **base,
        )
    if odds >= HIGH_ODDS and volatility >= HIGH_ODDS_MAX_VOLATILITY:
        return RiskAssessment(
            is_approved=False,
            rejection_reason=f"High-odds volatility: odds {odds:.2f} with volatility {volatility}/100",
            tail_risk=True,
            tier="REJECT",
            **base,
        )
    if bookmaker_count < min_bookmakers:
        return RiskAssessment(
            is_approved=False,
            rejection_reason=f"Low liquidity: only {bookmaker_count} bookmaker(s)",
            tier="REJECT",
            **base,
        )
    if variance_adjusted_ev < min_ev * 0.8:
        return RiskAssessment(
            is_approved=False,
            rejection_reason=f"Variance-adjusted EV {variance_adjusted_ev * 100:.1f}% below threshold",
            tail_risk=tail_risk,
            tier="REJECT",
            **base,
        )

    stability = max(0.0, 100.0 - volatility)
    ev_component = min(100.0, variance_adjusted_ev * 500.0)
    score = stability * 0.6 + liquidity * 0.2 + ev_component * 0.2
    tier = risk_tier(score)
    if tier == "REJECT":
        return RiskAssessment(
            is_approved=False,
            rejection_reason=f"Risk score {score:.0f} below minimum tier threshold",
            tail_risk=tail_risk,
            tier=tier,
            **base,
        )
    return RiskAssessment(is_approved=True, tail_risk=tail_risk, tier=tier, **base)
