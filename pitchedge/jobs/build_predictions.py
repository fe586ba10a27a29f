from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from pitchedge.core.config import settings
from pitchedge.core.decimalutils import safe_div
from pitchedge.core.logger import get_logger
from pitchedge.core.timeutils import utcnow
from pitchedge.data.mappers import FixtureMeta, TeamForm, map_fixture, map_odds, map_standings, map_team_form
from pitchedge.data.providers import sportmonks
from pitchedge.data.providers.cache import PayloadCache, SqlPayloadCache
from pitchedge.services.accumulator import AccaConfig, AccaFreeze, build_accumulators, freeze_value
from pitchedge.services.evaluator import (
    EvaluatedMarket,
    FixtureEvaluation,
    FixtureInput,
    StakingPolicy,
    evaluate_fixture,
    rank_markets,
)
from pitchedge.services.goal_model import DEFAULT_LEAGUE_SIZE, MatchSignals, blend_team_rate
from pitchedge.services.history_store import SqlHistoryStore
from pitchedge.services.kelly import check_daily_exposure, check_drawdown
from pitchedge.services.lambda_adjustments import LambdaAdjustments
from pitchedge.services.ledger import ChecksumMismatchError, PublicationLedger, PublishedPrediction
from pitchedge.services.markets import ResultCalibration
from pitchedge.services.portfolio import assess_portfolio_impact, deduplicate_correlated_picks
from pitchedge.services.validation import GateThresholds, log_rejection, validate_market

log = get_logger("jobs.build_predictions")

FETCH_ERRORS = (httpx.HTTPError, sportmonks.ProviderError)


async def _season_ranks(cache: PayloadCache, season_ids: List[int]) -> Dict[int, Dict[int, int]]:
    out: Dict[int, Dict[int, int]] = {}
    for season_id in season_ids:
        try:
            out[season_id] = map_standings(await sportmonks.get_standings(cache, season_id))
        except FETCH_ERRORS as exc:
            log.warning("standings_unavailable season=%s err=%s", season_id, exc)
            out[season_id] = {}
    return out


async def _team_form(cache: PayloadCache, team_id: Optional[int]) -> TeamForm:
    if team_id is None:
        return map_team_form(0, [])
    try:
        return map_team_form(team_id, await sportmonks.get_team_results(cache, team_id))
    except FETCH_ERRORS as exc:
        log.warning("team_form_unavailable team=%s err=%s", team_id, exc)
        return map_team_form(team_id, [])


def _days_rest(kickoff: Optional[datetime], last_played: Optional[datetime]) -> Optional[int]:
    if kickoff is None or last_played is None or last_played >= kickoff:
        return None
    return (kickoff - last_played).days


async def load_fixture_input(cache: PayloadCache, meta: FixtureMeta, ranks: Dict[int, int]) -> FixtureInput:
    """Gather stats and quotes for one fixture; upstream gaps degrade to defaults."""
    try:
        quotes = tuple(map_odds(await sportmonks.get_fixture_odds(cache, meta.fixture_id, settings.bookmaker_ids)))
    except FETCH_ERRORS as exc:
        log.warning("odds_unavailable fixture=%s err=%s", meta.fixture_id, exc)
        quotes = ()

    home_form, away_form = await asyncio.gather(
        _team_form(cache, meta.home_team_id),
        _team_form(cache, meta.away_team_id),
    )
    home_rank = ranks.get(meta.home_team_id) if meta.home_team_id is not None else None
    away_rank = ranks.get(meta.away_team_id) if meta.away_team_id is not None else None
    weights = dict(season_weight=float(settings.season_weight), form_weight=float(settings.form_weight))
    home = blend_team_rate(home_form.season, home_form.form, rank=home_rank, **weights)
    away = blend_team_rate(away_form.season, away_form.form, rank=away_rank, **weights)
    signals = MatchSignals(
        home_rank=home.rank,
        away_rank=away.rank,
        home_ppg=home_form.ppg,
        away_ppg=away_form.ppg,
        home_days_rest=_days_rest(meta.kickoff, home_form.last_played),
        away_days_rest=_days_rest(meta.kickoff, away_form.last_played),
        league_size=len(ranks) or DEFAULT_LEAGUE_SIZE,
    )
    return FixtureInput(
        fixture_id=meta.fixture_id,
        home_team=meta.home_team,
        away_team=meta.away_team,
        home=home,
        away=away,
        signals=signals,
        quotes=quotes,
        kickoff=meta.kickoff,
        league_id=meta.league_id,
    )


def evaluate(fixture: FixtureInput) -> FixtureEvaluation:
    return evaluate_fixture(
        fixture,
        whitelist=settings.market_whitelist,
        calibration=ResultCalibration.from_settings(settings),
        max_goals=settings.max_goals,
        iterations=settings.monte_carlo_iterations,
        seed_base=settings.monte_carlo_seed_base,
        half_time_factor=float(settings.half_time_factor),
        staking=StakingPolicy(
            bankroll=settings.bankroll,
            fraction=settings.kelly_fraction,
            max_fraction=settings.kelly_max_fraction,
        ),
        min_bookmakers=settings.min_bookmaker_count,
        adjustments=LambdaAdjustments.from_settings(settings),
    )


def select_candidates(evaluation: FixtureEvaluation, thresholds: GateThresholds) -> List[EvaluatedMarket]:
    """Priced markets that clear every gate rule, best first."""
    passed: List[EvaluatedMarket] = []
    for market in rank_markets(evaluation.priced):
        result = validate_market(market, thresholds)
        if result.passed:
            passed.append(market)
        else:
            log_rejection(market, result)
    return passed


async def _evaluate_one(cache: PayloadCache, meta: FixtureMeta, ranks: Dict[int, int]) -> Optional[FixtureEvaluation]:
    try:
        fixture = await load_fixture_input(cache, meta, ranks)
        return evaluate(fixture)
    except Exception:
        log.exception("fixture_evaluation_failed fixture=%s", meta.fixture_id)
        return None


def _upcoming(raw_fixtures: List[dict], now: datetime) -> List[FixtureMeta]:
    out: List[FixtureMeta] = []
    for raw in raw_fixtures:
        try:
            meta = map_fixture(raw)
        except (KeyError, TypeError, ValueError):
            log.warning("fixture_unmappable id=%s", raw.get("id"))
            continue
        if meta.status != "NS":
            continue
        if meta.kickoff is not None and meta.kickoff <= now:
            continue
        out.append(meta)
    out.sort(key=lambda m: (m.kickoff or now, m.fixture_id))
    return out


async def build(
    cache: PayloadCache,
    ledger: PublicationLedger,
    *,
    now: Optional[datetime] = None,
) -> dict:
    """Evaluate upcoming fixtures, publish one vetted pick per fixture, build accumulators."""
    now = now or utcnow()
    date_from = now.date()
    date_to = (now + timedelta(days=int(settings.fixtures_lookahead_days))).date()

    raw_fixtures = await sportmonks.get_fixtures_between(cache, date_from, date_to, settings.league_ids)
    metas = _upcoming(raw_fixtures, now)
    log.info("build_predictions fixtures=%s window=%s..%s", len(metas), date_from, date_to)

    season_ids = sorted({m.season_id for m in metas if m.season_id is not None})
    ranks_by_season = await _season_ranks(cache, season_ids)

    evaluations = await asyncio.gather(
        *[_evaluate_one(cache, m, ranks_by_season.get(m.season_id, {})) for m in metas]
    )

    thresholds = GateThresholds.from_settings(settings)
    picks: List[Tuple[FixtureEvaluation, EvaluatedMarket]] = []
    legs: List[EvaluatedMarket] = []
    failed = 0
    no_pick = 0
    for evaluation in evaluations:
        if evaluation is None:
            failed += 1
            continue
        candidates = select_candidates(evaluation, thresholds)
        legs.extend(candidates)
        if not candidates:
            no_pick += 1
            continue
        picks.append((evaluation, candidates[0]))

    correlated_dropped = 0
    if settings.portfolio_dedup_enabled:
        kept = deduplicate_correlated_picks(m for _, m in picks)
        by_market = {id(m): (e, m) for e, m in picks}
        correlated_dropped = len(picks) - len(kept)
        picks = [by_market[id(m)] for m in kept]

    halted: Optional[str] = None
    if settings.staking_controls_enabled:
        drawdown = check_drawdown(
            settings.bankroll, settings.peak_bankroll or settings.bankroll, settings.max_drawdown_halt
        )
        if not drawdown.approved:
            halted = drawdown.reason
            log.warning("publish_halted picks=%s reason=%s", len(picks), halted)
            picks = []

    published: List[PublishedPrediction] = []
    published_picks: List[EvaluatedMarket] = []
    stake_fractions: List[Decimal] = []
    exposure_capped = 0
    integrity_violations = 0
    for evaluation, pick in picks:
        fixture_id = evaluation.fixture.fixture_id
        fraction = safe_div(pick.suggested_stake or 0, settings.bankroll)
        if settings.staking_controls_enabled:
            exposure = check_daily_exposure(stake_fractions, fraction, settings.max_daily_exposure)
            if not exposure.approved:
                exposure_capped += 1
                log.info("publish_skipped fixture=%s reason=exposure %s", fixture_id, exposure.reason)
                continue
        try:
            record = await ledger.publish(fixture_id, pick, evaluation.lambdas)
        except ChecksumMismatchError as exc:
            integrity_violations += 1
            log.error("publish_blocked fixture=%s reason=integrity_violation err=%s", exc.fixture_id, exc)
            continue
        published.append(record)
        published_picks.append(pick)
        stake_fractions.append(fraction)

    accas: List[AccaFreeze] = build_accumulators(legs, AccaConfig.from_settings(settings))
    impact = assess_portfolio_impact(published_picks, settings.bankroll)
    if not impact.approved:
        log.warning("portfolio_warning %s", impact.reason)

    summary = {
        "fixtures": len(metas),
        "evaluated": len(metas) - failed,
        "failed": failed,
        "no_pick": no_pick,
        "candidates": len(legs),
        "published": len(published),
        "integrity_violations": integrity_violations,
        "correlated_dropped": correlated_dropped,
        "exposure_capped": exposure_capped,
        "halted": halted,
        "portfolio": impact.to_dict(),
        "accumulators": [
            dict(a.to_dict(), freeze_value=str(freeze_value(a, {}, settings.acca_stake))) for a in accas
        ],
    }
    log.info(
        "build_predictions_done fixtures=%s failed=%s candidates=%s published=%s integrity_violations=%s accas=%s",
        summary["fixtures"],
        failed,
        len(legs),
        len(published),
        integrity_violations,
        len(accas),
    )
    return summary


async def run(session: AsyncSession):
    ledger = PublicationLedger(SqlHistoryStore(session))
    summary = await build(SqlPayloadCache(session), ledger)
    await session.commit()
    return summary
