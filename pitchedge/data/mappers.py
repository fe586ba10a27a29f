from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pitchedge.core.logger import get_logger
from pitchedge.core.timeutils import parse_provider_datetime
from pitchedge.services.goal_model import TeamSample
from pitchedge.services.odds_matcher import OddsQuote, bookmaker_name

log = get_logger("data.mappers")

FORM_WINDOW = 5
_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def normalize_status(developer_name: Optional[str]) -> str:
    code = (developer_name or "").upper()
    if not code:
        return "UNK"

    finished = {"FT": "FT", "AET": "AET", "FT_PEN": "PEN", "AWARDED": "AWD"}
    not_started = {"NS", "TBA", "PENDING"}
    canceled = {"CANCELLED": "CANC", "ABANDONED": "ABD", "WALKOVER": "WO", "DELETED": "CANC"}
    postponed = {"POSTPONED", "DELAYED"}
    suspended = {"SUSPENDED", "INTERRUPTED"}
    in_play = {"INPLAY_1ST_HALF", "HT", "INPLAY_2ND_HALF", "BREAK", "INPLAY_ET", "EXTRA_TIME_BREAK", "INPLAY_PENALTIES"}

    if code in finished:
        return finished[code]
    if code in not_started:
        return "NS"
    if code in canceled:
        return canceled[code]
    if code in postponed:
        return "PST"
    if code in suspended:
        return "SUSP"
    if code in in_play:
        return "LIVE"
    return "UNK"


@dataclass(frozen=True)
class FixtureMeta:
    fixture_id: int
    home_team_id: Optional[int]
    home_team: str
    away_team_id: Optional[int]
    away_team: str
    kickoff: Optional[datetime]
    league_id: Optional[int]
    season_id: Optional[int]
    status: str


@dataclass(frozen=True)
class FixtureScore:
    home_goals: Optional[int]
    away_goals: Optional[int]
    ht_home_goals: Optional[int] = None
    ht_away_goals: Optional[int] = None


@dataclass(frozen=True)
class TeamForm:
    season: TeamSample
    form: TeamSample
    ppg: float
    last_played: Optional[datetime] = None


def _participant(raw: dict, location: str) -> dict:
    for p in raw.get("participants") or []:
        if ((p.get("meta") or {}).get("location") or "").lower() == location:
            return p
    return {}


def _int_or_none(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def map_fixture(raw: dict) -> FixtureMeta:
    home = _participant(raw, "home")
    away = _participant(raw, "away")
    state = raw.get("state") or {}
    return FixtureMeta(
        fixture_id=int(raw["id"]),
        home_team_id=_int_or_none(home.get("id")),
        home_team=home.get("name") or "Home Team",
        away_team_id=_int_or_none(away.get("id")),
        away_team=away.get("name") or "Away Team",
        kickoff=parse_provider_datetime(raw.get("starting_at")),
        league_id=_int_or_none(raw.get("league_id")),
        season_id=_int_or_none(raw.get("season_id")),
        status=normalize_status(state.get("developer_name") or state.get("short_name")),
    )


def map_score(raw: dict) -> FixtureScore:
    """Full-time (CURRENT) and first-half goals from a fixture's ``scores`` include."""
    goals: Dict[str, Dict[str, int]] = {}
    for s in raw.get("scores") or []:
        desc = (s.get("description") or "").upper()
        score = s.get("score") or {}
        side = (score.get("participant") or "").lower()
        value = _int_or_none(score.get("goals"))
        if side in ("home", "away") and value is not None:
            goals.setdefault(desc, {})[side] = value
    ft = goals.get("CURRENT") or {}
    ht = goals.get("1ST_HALF") or {}
    return FixtureScore(
        home_goals=ft.get("home"),
        away_goals=ft.get("away"),
        ht_home_goals=ht.get("home"),
        ht_away_goals=ht.get("away"),
    )


def _threshold(raw: dict) -> Optional[float]:
    for key in ("total", "name", "handicap"):
        value = raw.get(key)
        if value is None or value == "":
            continue
        try:
            return float(str(value).strip())
        except ValueError:
            continue
    return None


def map_odds(rows: Iterable[dict]) -> List[OddsQuote]:
    quotes: List[OddsQuote] = []
    skipped = 0
    for raw in rows or []:
        if raw.get("stopped") is True:
            skipped += 1
            continue
        try:
            price = float(raw.get("value"))
            market_id = int(raw.get("market_id"))
            bookmaker_id = int(raw.get("bookmaker_id"))
        except (TypeError, ValueError):
            skipped += 1
            continue
        label = str(raw.get("label") or "").strip()
        # Correct-score rows carry the scoreline in ``name`` ("2:1" or "2-1").
        if not label or market_id == 93:
            label = str(raw.get("name") or label).replace(":", "-").strip()
        quotes.append(
            OddsQuote(
                bookmaker=bookmaker_name(bookmaker_id),
                market_id=market_id,
                label=label,
                threshold=None if market_id == 93 else _threshold(raw),
                price=price,
            )
        )
    if skipped:
        log.debug("map_odds skipped=%s kept=%s", skipped, len(quotes))
    return quotes


def map_standings(rows: Iterable[dict]) -> Dict[int, int]:
    """team id -> league position."""
    out: Dict[int, int] = {}
    for raw in rows or []:
        team_id = _int_or_none(raw.get("participant_id"))
        position = _int_or_none(raw.get("position"))
        if team_id is not None and position:
            out[team_id] = position
    return out


def map_team_form(team_id: int, fixtures: Iterable[dict], form_window: int = FORM_WINDOW) -> TeamForm:
    """Season and recent-form samples from the team's finished fixtures (newest first)."""
    results = []
    for raw in fixtures or []:
        if normalize_status((raw.get("state") or {}).get("developer_name")) not in ("FT", "AET", "PEN"):
            continue
        score = map_score(raw)
        if score.home_goals is None or score.away_goals is None:
            continue
        is_home = _int_or_none(_participant(raw, "home").get("id")) == int(team_id)
        scored = score.home_goals if is_home else score.away_goals
        conceded = score.away_goals if is_home else score.home_goals
        kickoff = parse_provider_datetime(raw.get("starting_at"))
        results.append((kickoff, scored, conceded))

    results.sort(key=lambda r: r[0] or _UNDATED, reverse=True)
    if not results:
        return TeamForm(season=TeamSample(), form=TeamSample(), ppg=1.0)

    def _sample(rows) -> TeamSample:
        n = len(rows)
        return TeamSample(
            avg_scored=sum(r[1] for r in rows) / n,
            avg_conceded=sum(r[2] for r in rows) / n,
            games_played=n,
        )

    recent = results[:form_window]
    points = sum(3 if s > c else 1 if s == c else 0 for _, s, c in recent)
    return TeamForm(
        season=_sample(results),
        form=_sample(recent),
        ppg=points / len(recent),
        last_played=results[0][0],
    )
