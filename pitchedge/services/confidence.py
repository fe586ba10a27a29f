from __future__ import annotations

from dataclasses import dataclass

from pitchedge.services.goal_model import MatchSignals, TeamRate

# Weights sum to 1.
WEIGHT_ATTACK_STABILITY = 0.24
WEIGHT_DEFENSIVE_CONSISTENCY = 0.24
WEIGHT_MARKET_STABILITY = 0.18
WEIGHT_FORM_RELIABILITY = 0.24
WEIGHT_INJURY_STABILITY = 0.10

INJURY_STABILITY = 75.0
CONFIDENCE_MIN = 40
CONFIDENCE_MAX = 95

HIGH_LABEL_MIN = 0.65
MEDIUM_LABEL_MIN = 0.55


@dataclass(frozen=True)
class ConfidenceFactors:
    attack_stability: float
    defensive_consistency: float
    market_stability: float
    form_reliability: float
    injury_stability: float = INJURY_STABILITY

    def composite(self) -> int:
        raw = (
            WEIGHT_ATTACK_STABILITY * self.attack_stability
            + WEIGHT_DEFENSIVE_CONSISTENCY * self.defensive_consistency
            + WEIGHT_MARKET_STABILITY * self.market_stability
            + WEIGHT_FORM_RELIABILITY * self.form_reliability
            + WEIGHT_INJURY_STABILITY * self.injury_stability
        )
        return int(min(CONFIDENCE_MAX, max(CONFIDENCE_MIN, round(raw))))


def confidence_factors(home: TeamRate, away: TeamRate, signals: MatchSignals) -> ConfidenceFactors:
    attack = min(100.0, (home.games_played + away.games_played) / 40.0 * 100.0)
    defensive = min(100.0, 100.0 - abs(home.avg_conceded - away.avg_conceded) * 30.0)
    rank_gap = abs(signals.home_rank - signals.away_rank)
    market = min(100.0, 90.0 - rank_gap * 2.0)
    form = min(100.0, 80.0 + (signals.home_ppg + signals.away_ppg) * 5.0)
    return ConfidenceFactors(
        attack_stability=attack,
        defensive_consistency=defensive,
        market_stability=market,
        form_reliability=form,
    )


def composite_confidence(home: TeamRate, away: TeamRate, signals: MatchSignals) -> int:
    """0-100 confidence in the fixture's model inputs, clamped to [40, 95]."""
    return confidence_factors(home, away, signals).composite()


def confidence_label(probability: float) -> str:
    if probability >= HIGH_LABEL_MIN:
        return "High"
    if probability >= MEDIUM_LABEL_MIN:
        return "Medium"
    return "Low"
