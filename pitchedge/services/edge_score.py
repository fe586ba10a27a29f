"""Composite 0-100 edge score and closing-line projection."""

from __future__ import annotations

from dataclasses import asdict, dataclass

WEIGHT_EV = 0.30
WEIGHT_EDGE = 0.25
WEIGHT_CLV = 0.20
WEIGHT_VOLATILITY = 0.15
WEIGHT_LIQUIDITY = 0.10

FULL_LIQUIDITY_BOOKMAKERS = 7


@dataclass(frozen=True)
class ClvProjection:
    current_odds: float
    fair_odds: float
    predicted_closing_odds: float
    clv_percent: float
    clv_score: int
    line_direction: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EdgeScore:
    score: int
    ev_component: float
    edge_component: float
    clv_component: float
    volatility_component: float
    liquidity_component: float

    def to_dict(self) -> dict:
        return asdict(self)


def project_clv(current_odds: float, probability: float, edge: float, bookmaker_count: int) -> ClvProjection:
    """Expect the price to drift toward fair odds; deeper markets converge harder."""
    fair = 1.0 / probability if probability > 0 else float("inf")
    liquidity = min(1.0, bookmaker_count / FULL_LIQUIDITY_BOOKMAKERS)
    convergence = 0.4 + liquidity * 0.3
    closing = current_odds - (current_odds - fair) * convergence
    clv_pct = (current_odds - closing) / closing * 100.0 if closing > 0 else 0.0

    if edge > 0.06:
        direction = "shortening"
    elif edge < 0.02:
        direction = "drifting"
    else:
        direction = "stable"

    score = min(50.0, edge * 500.0) + liquidity * 30.0 + min(20.0, clv_pct * 5.0)
    return ClvProjection(
        current_odds=current_odds,
        fair_odds=round(fair, 2),
        predicted_closing_odds=round(closing, 2),
        clv_percent=round(clv_pct, 2),
        clv_score=int(min(100, round(score))),
        line_direction=direction,
    )


def _unit(value: float) -> float:
    return min(100.0, max(0.0, value))


def compute_edge_score(
    ev: float,
    edge: float,
    clv: ClvProjection,
    volatility_score: int,
    liquidity_score: int,
    confidence: int,
) -> EdgeScore:
    ev_c = _unit(ev * 500.0)
    edge_c = _unit(edge * 666.0)
    clv_c = float(clv.clv_score)
    vol_c = max(0.0, 100.0 - volatility_score)
    liq_c = float(liquidity_score)
    raw = (
        WEIGHT_EV * ev_c
        + WEIGHT_EDGE * edge_c
        + WEIGHT_CLV * clv_c
        + WEIGHT_VOLATILITY * vol_c
        + WEIGHT_LIQUIDITY * liq_c
    )
    damped = raw * (0.7 + confidence / 100.0 * 0.3)
    return EdgeScore(
        score=int(_unit(round(damped))),
        ev_component=ev_c,
        edge_component=edge_c,
        clv_component=clv_c,
        volatility_component=vol_c,
        liquidity_component=liq_c,
    )
