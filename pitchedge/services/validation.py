"""Publish gate for evaluated markets.

Checks run in a fixed order and the first failure is returned verbatim. A
rejection is a value, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional

from pitchedge.core.logger import get_logger
from pitchedge.services.evaluator import EvaluatedMarket
from pitchedge.services.markets import MarketFamily
from pitchedge.services.risk import RiskAssessment

log = get_logger("services.validation")


@dataclass(frozen=True)
class ValidationResult:
    passed: bool
    reason: Optional[str] = None
    rule: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(passed=True)

    @classmethod
    def reject(cls, rule: str, reason: str) -> "ValidationResult":
        return cls(passed=False, reason=reason, rule=rule)


@dataclass(frozen=True)
class GateThresholds:
    whitelist: Optional[FrozenSet[str]] = None
    odds_min: float = 1.20
    odds_max: float = 20.50
    min_edge: float = 0.02
    min_ev: float = 0.04
    min_confidence: int = 45
    min_edge_score: float = 40.0
    result_min_probability: float = 0.40
    result_min_edge: float = 0.03
    result_min_ev: float = 0.03
    correct_score_min_probability: float = 0.18
    correct_score_min_edge: float = 0.08
    correct_score_min_confidence: int = 75
    correct_score_min_ev: float = 0.12
    high_variance_threshold: float = 0.90
    high_variance_min_ev_adjusted: float = 0.12
    max_ci_width: float = 0.25

    @classmethod
    def from_settings(cls, settings) -> "GateThresholds":
        whitelist = settings.market_whitelist
        return cls(
            whitelist=frozenset(whitelist) if whitelist else None,
            odds_min=float(settings.odds_min_dec),
            odds_max=float(settings.odds_max_dec),
            min_edge=float(settings.min_edge_dec),
            min_ev=float(settings.min_ev_dec),
            min_confidence=int(settings.min_confidence),
            min_edge_score=float(settings.min_edge_score),
            result_min_probability=float(settings.result_min_probability),
            result_min_edge=float(settings.result_min_edge),
            result_min_ev=float(settings.result_min_ev),
            correct_score_min_probability=float(settings.correct_score_min_probability),
            correct_score_min_edge=float(settings.correct_score_min_edge),
            correct_score_min_confidence=int(settings.correct_score_min_confidence),
            correct_score_min_ev=float(settings.correct_score_min_ev),
            high_variance_threshold=float(settings.high_variance_threshold),
            high_variance_min_ev_adjusted=float(settings.high_variance_min_ev_adjusted),
            max_ci_width=float(settings.max_ci_width_dec),
        )


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def validate_market(
    market: EvaluatedMarket,
    thresholds: Optional[GateThresholds] = None,
    risk: Optional[RiskAssessment] = None,
) -> ValidationResult:
    """Run the publish checks against one market.

    ``risk`` overrides the market's own assessment; with neither present the
    risk check is treated as approved.
    """
    t = thresholds or GateThresholds()

    if t.whitelist is not None and market.market_id.value not in t.whitelist:
        return ValidationResult.reject("whitelist", f"Market {market.market_id.value} not in whitelist")

    if market.odds is None or market.edge is None or market.ev is None:
        return ValidationResult.reject("odds_range", "No bookmaker price available")
    if market.odds < t.odds_min or market.odds > t.odds_max:
        return ValidationResult.reject(
            "odds_range", f"Odds {market.odds:.2f} outside range [{t.odds_min:.2f}, {t.odds_max:.2f}]"
        )

    if market.edge < t.min_edge:
        return ValidationResult.reject("min_edge", f"Edge {_pct(market.edge)} below minimum {_pct(t.min_edge)}")

    if market.ev < t.min_ev:
        return ValidationResult.reject("min_ev", f"EV {_pct(market.ev)} below minimum {_pct(t.min_ev)}")

    if market.confidence < t.min_confidence:
        return ValidationResult.reject(
            "min_confidence", f"Confidence {market.confidence} below minimum {t.min_confidence}"
        )

    edge_score = market.edge_score if market.edge_score is not None else 0
    if edge_score < t.min_edge_score:
        return ValidationResult.reject(
            "edge_score", f"Edge score {edge_score} below minimum {t.min_edge_score:.0f}"
        )

    assessment = risk if risk is not None else market.risk_assessment
    if assessment is not None and not assessment.is_approved:
        return ValidationResult.reject("risk", assessment.rejection_reason or "Risk assessment not approved")

    if market.family == MarketFamily.RESULT:
        if market.probability < t.result_min_probability:
            return ValidationResult.reject(
                "result_floor",
                f"Result probability {_pct(market.probability)} below {_pct(t.result_min_probability)}",
            )
        if market.edge < t.result_min_edge:
            return ValidationResult.reject(
                "result_floor", f"Result edge {_pct(market.edge)} below {_pct(t.result_min_edge)}"
            )
        if market.ev < t.result_min_ev:
            return ValidationResult.reject(
                "result_floor", f"Result EV {_pct(market.ev)} below {_pct(t.result_min_ev)}"
            )

    if market.family == MarketFamily.CORRECT_SCORE:
        if market.probability < t.correct_score_min_probability:
            return ValidationResult.reject("correct_score_floor", "Correct score probability too low")
        if market.edge < t.correct_score_min_edge:
            return ValidationResult.reject("correct_score_floor", "Correct score edge too low")
        if market.confidence < t.correct_score_min_confidence:
            return ValidationResult.reject("correct_score_floor", "Correct score confidence too low")
        if market.ev < t.correct_score_min_ev:
            return ValidationResult.reject("correct_score_floor", "Correct score EV too low")

    ev_adjusted = market.ev_adjusted if market.ev_adjusted is not None else 0.0
    if market.variance_multiplier < t.high_variance_threshold and ev_adjusted < t.high_variance_min_ev_adjusted:
        return ValidationResult.reject(
            "high_variance",
            f"High-variance market requires EV_adj >= {t.high_variance_min_ev_adjusted:.2f}",
        )

    if market.confidence_interval is not None:
        lo, hi = market.confidence_interval
        width = hi - lo
        if width > t.max_ci_width:
            return ValidationResult.reject(
                "ci_width", f"CI width {_pct(width)} exceeds max {_pct(t.max_ci_width)}"
            )

    return ValidationResult.ok()


def log_rejection(market: EvaluatedMarket, result: ValidationResult) -> None:
    log.info(
        "validation_rejected fixture=%s market=%s rule=%s reason=%s",
        market.fixture_id,
        market.selection_key,
        result.rule,
        result.reason,
    )
