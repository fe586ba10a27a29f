"""Per-fixture market evaluation.

For every whitelisted market the deriver produced a probability for, match the
best bookmaker price and compute edge, EV and the enrichment the validation
gate reads (confidence, variance multiplier, simulated interval, default risk
assessment, edge score, Kelly stake). Markets without a price are still
returned, with every price-derived field left as None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pitchedge.core.logger import get_logger
from pitchedge.services.confidence import composite_confidence, confidence_label
from pitchedge.services.edge_score import compute_edge_score, project_clv
from pitchedge.services.goal_model import LambdaPair, MatchSignals, TeamRate, compute_lambdas
from pitchedge.services.kelly import suggested_stake
from pitchedge.services.lambda_adjustments import LambdaAdjustments, refine_lambdas
from pitchedge.services.markets import (
    HALF_TIME_FACTOR,
    MarketFamily,
    MarketId,
    MarketProbabilities,
    ResultCalibration,
    derive_market_probabilities,
    resolve_label,
    variance_multiplier,
)
from pitchedge.services.odds_matcher import OddsQuote, match_odds
from pitchedge.services.poisson import DEFAULT_MAX_GOALS, build_score_matrix
from pitchedge.services.risk import MIN_BOOKMAKERS, RiskAssessment, assess_risk
from pitchedge.services.simulation import DEFAULT_ITERATIONS, DEFAULT_SEED_BASE, SimulationResult, simulate_match

log = get_logger("services.evaluator")


@dataclass(frozen=True)
class FixtureInput:
    fixture_id: int
    home_team: str
    away_team: str
    home: TeamRate
    away: TeamRate
    signals: MatchSignals = field(default_factory=MatchSignals)
    quotes: Tuple[OddsQuote, ...] = ()
    kickoff: Optional[datetime] = None
    league_id: Optional[int] = None


@dataclass(frozen=True)
class EvaluatedMarket:
    fixture_id: int
    market_id: MarketId
    label: str
    probability: float
    odds: Optional[float]
    bookmaker: Optional[str]
    edge: Optional[float]
    ev: Optional[float]
    ev_adjusted: Optional[float]
    confidence: int
    confidence_label: str
    variance_multiplier: float
    confidence_interval: Optional[Tuple[float, float]] = None
    risk_assessment: Optional[RiskAssessment] = None
    edge_score: Optional[int] = None
    suggested_stake: Optional[Decimal] = None
    bookmaker_prices: Dict[str, float] = field(default_factory=dict)
    scoreline: Optional[str] = None
    kickoff: Optional[datetime] = None
    league_id: Optional[int] = None

    @property
    def family(self) -> MarketFamily:
        return self.market_id.family

    @property
    def is_priced(self) -> bool:
        return self.odds is not None

    @property
    def implied_probability(self) -> Optional[float]:
        return 1.0 / self.odds if self.odds else None

    @property
    def bookmaker_count(self) -> int:
        return len(self.bookmaker_prices)

    @property
    def selection_key(self) -> str:
        """Market id plus scoreline for correct scores, e.g. 'correct_score:2-1'."""
        if self.scoreline:
            return f"{self.market_id.value}:{self.scoreline}"
        return self.market_id.value

    def to_dict(self) -> dict:
        return {
            "fixture_id": self.fixture_id,
            "market_id": self.market_id.value,
            "family": self.family.value,
            "label": self.label,
            "scoreline": self.scoreline,
            "probability": self.probability,
            "implied_probability": self.implied_probability,
            "odds": self.odds,
            "bookmaker": self.bookmaker,
            "bookmaker_prices": dict(self.bookmaker_prices),
            "bookmaker_count": self.bookmaker_count,
            "edge": self.edge,
            "ev": self.ev,
            "ev_adjusted": self.ev_adjusted,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label,
            "variance_multiplier": self.variance_multiplier,
            "confidence_interval": list(self.confidence_interval) if self.confidence_interval else None,
            "risk_assessment": self.risk_assessment.to_dict() if self.risk_assessment else None,
            "edge_score": self.edge_score,
            "suggested_stake": str(self.suggested_stake) if self.suggested_stake is not None else None,
            "kickoff": self.kickoff.isoformat() if self.kickoff else None,
            "league_id": self.league_id,
        }


@dataclass(frozen=True)
class StakingPolicy:
    bankroll: Decimal = Decimal("1000")
    fraction: str = "0.25"
    max_fraction: str = "0.05"


@dataclass(frozen=True)
class FixtureEvaluation:
    fixture: FixtureInput
    lambdas: LambdaPair
    confidence: int
    simulation: SimulationResult
    markets: List[EvaluatedMarket]

    @property
    def priced(self) -> List[EvaluatedMarket]:
        return [m for m in self.markets if m.is_priced]


def evaluate_market(
    fixture: FixtureInput,
    market_id: MarketId,
    probability: float,
    confidence: int,
    simulation: SimulationResult,
    *,
    scoreline: Optional[str] = None,
    staking: Optional[StakingPolicy] = None,
    min_bookmakers: int = MIN_BOOKMAKERS,
) -> EvaluatedMarket:
    match = match_odds(fixture.quotes, market_id, scoreline=scoreline)
    label = resolve_label(market_id, fixture.home_team, fixture.away_team, scoreline)
    common = dict(
        fixture_id=fixture.fixture_id,
        market_id=market_id,
        label=label,
        probability=probability,
        confidence=confidence,
        confidence_label=confidence_label(probability),
        scoreline=scoreline,
        kickoff=fixture.kickoff,
        league_id=fixture.league_id,
    )
    if not match.has_liquidity:
        return EvaluatedMarket(
            odds=None,
            bookmaker=None,
            edge=None,
            ev=None,
            ev_adjusted=None,
            variance_multiplier=variance_multiplier(market_id, None),
            **common,
        )

    odds = match.price
    edge = probability - 1.0 / odds
    ev = probability * odds - 1.0
    var_mult = variance_multiplier(market_id, odds)
    ev_adjusted = ev * (confidence / 100.0) * var_mult

    interval = simulation.interval_for(market_id, probability)
    risk = assess_risk(
        ev,
        odds,
        interval,
        simulation.volatility_score,
        match.bookmaker_count,
        var_mult,
        min_bookmakers=min_bookmakers,
    )
    if risk.is_approved:
        ev_adjusted = risk.variance_adjusted_ev

    clv = project_clv(odds, probability, edge, match.bookmaker_count)
    score = compute_edge_score(
        ev_adjusted, edge, clv, risk.volatility_score, risk.liquidity_score, confidence
    )
    policy = staking or StakingPolicy()
    stake = suggested_stake(policy.bankroll, probability, odds, policy.fraction, policy.max_fraction)

    return EvaluatedMarket(
        odds=odds,
        bookmaker=match.bookmaker,
        edge=edge,
        ev=ev,
        ev_adjusted=ev_adjusted,
        variance_multiplier=var_mult,
        confidence_interval=interval,
        risk_assessment=risk,
        edge_score=score.score,
        suggested_stake=stake,
        bookmaker_prices=match.bookmaker_prices,
        **common,
    )


def _candidates(
    probs: MarketProbabilities, whitelist: Optional[Sequence[str]]
) -> Iterable[Tuple[MarketId, float, Optional[str]]]:
    allowed = {w.lower() for w in whitelist} if whitelist else None
    for market_id in MarketId:
        if allowed is not None and market_id.value not in allowed:
            continue
        if market_id == MarketId.CORRECT_SCORE:
            for cs in probs.correct_scores:
                yield market_id, cs.probability, cs.scoreline
            continue
        p = probs.get(market_id)
        if p is None:
            continue
        yield market_id, p, None


def evaluate_fixture(
    fixture: FixtureInput,
    *,
    whitelist: Optional[Sequence[str]] = None,
    calibration: Optional[ResultCalibration] = None,
    max_goals: int = DEFAULT_MAX_GOALS,
    iterations: int = DEFAULT_ITERATIONS,
    seed_base: int = DEFAULT_SEED_BASE,
    half_time_factor: float = HALF_TIME_FACTOR,
    staking: Optional[StakingPolicy] = None,
    min_bookmakers: int = MIN_BOOKMAKERS,
    adjustments: Optional[LambdaAdjustments] = None,
) -> FixtureEvaluation:
    base = compute_lambdas(fixture.home, fixture.away, fixture.signals)
    lambdas = refine_lambdas(base, fixture.home, fixture.away, fixture.signals, adjustments)
    matrix = build_score_matrix(lambdas, max_goals=max_goals)
    probs = derive_market_probabilities(matrix, calibration, half_time_factor)
    simulation = simulate_match(lambdas, fixture.fixture_id, iterations=iterations, seed_base=seed_base)
    confidence = composite_confidence(fixture.home, fixture.away, fixture.signals)

    markets = [
        evaluate_market(
            fixture,
            market_id,
            p,
            confidence,
            simulation,
            scoreline=scoreline,
            staking=staking,
            min_bookmakers=min_bookmakers,
        )
        for market_id, p, scoreline in _candidates(probs, whitelist)
    ]
    priced = sum(1 for m in markets if m.is_priced)
    log.info(
        "evaluate_fixture fixture=%s lambdas=%.3f/%.3f confidence=%s markets=%s priced=%s",
        fixture.fixture_id,
        lambdas.lambda_home,
        lambdas.lambda_away,
        confidence,
        len(markets),
        priced,
    )
    return FixtureEvaluation(
        fixture=fixture,
        lambdas=lambdas,
        confidence=confidence,
        simulation=simulation,
        markets=markets,
    )


def rank_markets(markets: Iterable[EvaluatedMarket]) -> List[EvaluatedMarket]:
    """Priced markets first by edge score, then EV-adjusted; unpriced trail in input order."""
    items = list(markets)
    priced = [m for m in items if m.is_priced]
    unpriced = [m for m in items if not m.is_priced]
    priced.sort(key=lambda m: (-(m.edge_score or 0), -(m.ev_adjusted or 0.0), m.selection_key))
    return priced + unpriced
