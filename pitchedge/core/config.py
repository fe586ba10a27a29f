from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .decimalutils import q_ev, q_money, q_prob
from .logger import get_logger


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    database_url: str = Field("postgresql+asyncpg://localhost:5432/pitchedge", alias="DATABASE_URL")

    sportmonks_api_key: str = Field("", alias="SPORTMONKS_API_KEY")
    sportmonks_base: str = Field("https://api.sportmonks.com/v3/football", alias="SPORTMONKS_BASE")
    league_ids_raw: str = Field("2,5,8,9,564,567,82,384,387", alias="LEAGUE_IDS")
    bookmaker_ids_raw: str = Field("2,5,6,9,12,13,19", alias="BOOKMAKER_IDS")
    fixtures_lookahead_days: int = Field(default=2, alias="FIXTURES_LOOKAHEAD_DAYS")

    # Cache freshness per upstream resource.
    odds_ttl_seconds: int = Field(default=15 * 60, alias="ODDS_TTL_SECONDS")
    team_form_ttl_seconds: int = Field(default=12 * 3600, alias="TEAM_FORM_TTL_SECONDS")
    standings_ttl_seconds: int = Field(default=6 * 3600, alias="STANDINGS_TTL_SECONDS")
    fixtures_ttl_seconds: int = Field(default=10 * 60, alias="FIXTURES_TTL_SECONDS")

    # Goal model
    max_goals: int = Field(default=6, alias="MAX_GOALS")
    season_weight: Decimal = Field(Decimal("0.4"), alias="SEASON_WEIGHT")
    form_weight: Decimal = Field(Decimal("0.6"), alias="FORM_WEIGHT")
    half_time_factor: Decimal = Field(Decimal("0.45"), alias="HALF_TIME_FACTOR")
    # Optional lambda refinements; all off keeps the base model.
    lambda_elo_enabled: bool = Field(default=False, alias="LAMBDA_ELO_ENABLED")
    elo_blend_factor: Decimal = Field(Decimal("0.15"), alias="ELO_BLEND_FACTOR")
    lambda_bayes_enabled: bool = Field(default=False, alias="LAMBDA_BAYES_ENABLED")
    lambda_fatigue_enabled: bool = Field(default=False, alias="LAMBDA_FATIGUE_ENABLED")

    # Result-market calibration (logistic compression of the lambda gap).
    result_logistic_slope: Decimal = Field(Decimal("1.6"), alias="RESULT_LOGISTIC_SLOPE")
    result_home_base: Decimal = Field(Decimal("0.45"), alias="RESULT_HOME_BASE")
    result_away_base: Decimal = Field(Decimal("0.28"), alias="RESULT_AWAY_BASE")
    result_spread: Decimal = Field(Decimal("0.9"), alias="RESULT_SPREAD")
    result_home_min: Decimal = Field(Decimal("0.28"), alias="RESULT_HOME_MIN")
    result_home_max: Decimal = Field(Decimal("0.75"), alias="RESULT_HOME_MAX")
    result_away_min: Decimal = Field(Decimal("0.15"), alias="RESULT_AWAY_MIN")
    result_away_max: Decimal = Field(Decimal("0.60"), alias="RESULT_AWAY_MAX")

    # Validation gate
    market_whitelist_raw: str = Field("", alias="MARKET_WHITELIST")
    odds_min: Decimal = Field(Decimal("1.20"), alias="ODDS_MIN")
    odds_max: Decimal = Field(Decimal("20.50"), alias="ODDS_MAX")
    min_edge: Decimal = Field(Decimal("0.02"), alias="MIN_EDGE")
    min_ev: Decimal = Field(Decimal("0.04"), alias="MIN_EV")
    min_confidence: int = Field(default=45, alias="MIN_CONFIDENCE")
    min_edge_score: Decimal = Field(Decimal("40"), alias="MIN_EDGE_SCORE")
    result_min_probability: Decimal = Field(Decimal("0.40"), alias="RESULT_MIN_PROBABILITY")
    result_min_edge: Decimal = Field(Decimal("0.03"), alias="RESULT_MIN_EDGE")
    result_min_ev: Decimal = Field(Decimal("0.03"), alias="RESULT_MIN_EV")
    correct_score_min_probability: Decimal = Field(Decimal("0.18"), alias="CORRECT_SCORE_MIN_PROBABILITY")
    correct_score_min_edge: Decimal = Field(Decimal("0.08"), alias="CORRECT_SCORE_MIN_EDGE")
    correct_score_min_confidence: int = Field(default=75, alias="CORRECT_SCORE_MIN_CONFIDENCE")
    correct_score_min_ev: Decimal = Field(Decimal("0.12"), alias="CORRECT_SCORE_MIN_EV")
    high_variance_threshold: Decimal = Field(Decimal("0.90"), alias="HIGH_VARIANCE_THRESHOLD")
    high_variance_min_ev_adjusted: Decimal = Field(Decimal("0.12"), alias="HIGH_VARIANCE_MIN_EV_ADJUSTED")
    max_ci_width: Decimal = Field(Decimal("0.25"), alias="MAX_CI_WIDTH")
    min_bookmaker_count: int = Field(default=2, alias="MIN_BOOKMAKER_COUNT")

    # Simulation
    monte_carlo_iterations: int = Field(default=10_000, alias="MONTE_CARLO_ITERATIONS")
    monte_carlo_seed_base: int = Field(default=42, alias="MONTE_CARLO_SEED_BASE")

    # Staking
    bankroll: Decimal = Field(Decimal("1000"), alias="BANKROLL")
    kelly_fraction: str = Field(default="0.25", alias="KELLY_FRACTION")
    kelly_max_fraction: str = Field(default="0.05", alias="KELLY_MAX_FRACTION")
    staking_controls_enabled: bool = Field(default=False, alias="STAKING_CONTROLS_ENABLED")
    max_daily_exposure: Decimal = Field(Decimal("0.10"), alias="MAX_DAILY_EXPOSURE")
    max_drawdown_halt: Decimal = Field(Decimal("0.15"), alias="MAX_DRAWDOWN_HALT")
    # Unset means the current bankroll is the peak.
    peak_bankroll: Optional[Decimal] = Field(default=None, alias="PEAK_BANKROLL")
    portfolio_dedup_enabled: bool = Field(default=False, alias="PORTFOLIO_DEDUP_ENABLED")

    # Accumulators
    acca_safe_odds_min: Decimal = Field(Decimal("1.20"), alias="ACCA_SAFE_ODDS_MIN")
    acca_safe_odds_max: Decimal = Field(Decimal("2.00"), alias="ACCA_SAFE_ODDS_MAX")
    acca_freeze_odds_min: Decimal = Field(Decimal("2.50"), alias="ACCA_FREEZE_ODDS_MIN")
    acca_freeze_odds_max: Decimal = Field(Decimal("20.50"), alias="ACCA_FREEZE_ODDS_MAX")
    acca_safe_legs: int = Field(default=4, alias="ACCA_SAFE_LEGS")
    acca_top_n: int = Field(default=10, alias="ACCA_TOP_N")
    acca_stake: Decimal = Field(Decimal("10"), alias="ACCA_STAKE")
    acca_search_mode: str = Field(default="greedy", alias="ACCA_SEARCH_MODE")

    job_build_predictions_cron: str = Field("15 7 * * *", alias="JOB_BUILD_PREDICTIONS_CRON")
    job_evaluate_results_cron: str = Field("0 * * * *", alias="JOB_EVALUATE_RESULTS_CRON")
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    @model_validator(mode="after")
    def validate_api_key(self):
        if self.sportmonks_api_key in {"", "YOUR_KEY"}:
            logger = get_logger("settings")
            logger.warning("SPORTMONKS_API_KEY is not configured; fixture sync will fail until it is set")
        return self

    @model_validator(mode="after")
    def validate_acca_search_mode(self):
        mode = (self.acca_search_mode or "").strip().lower()
        if mode not in {"greedy", "exhaustive"}:
            raise ValueError(f"ACCA_SEARCH_MODE must be greedy or exhaustive, got {self.acca_search_mode!r}")
        self.acca_search_mode = mode
        return self

    @property
    def league_ids(self) -> List[int]:
        return [int(x.strip()) for x in self.league_ids_raw.split(",") if x.strip()]

    @property
    def bookmaker_ids(self) -> List[int]:
        return [int(x.strip()) for x in self.bookmaker_ids_raw.split(",") if x.strip()]

    @property
    def market_whitelist(self) -> List[str]:
        """Whitelisted market ids. Empty = every market known to the deriver."""
        return [x.strip().lower() for x in (self.market_whitelist_raw or "").split(",") if x.strip()]

    @property
    def odds_min_dec(self) -> Decimal:
        return q_money(self.odds_min)

    @property
    def odds_max_dec(self) -> Decimal:
        return q_money(self.odds_max)

    @property
    def min_edge_dec(self) -> Decimal:
        return q_prob(self.min_edge)

    @property
    def min_ev_dec(self) -> Decimal:
        return q_ev(self.min_ev)

    @property
    def max_ci_width_dec(self) -> Decimal:
        return q_prob(self.max_ci_width)

    @property
    def result_clamps(self) -> tuple[Decimal, Decimal, Decimal, Decimal]:
        return (
            q_prob(self.result_home_min),
            q_prob(self.result_home_max),
            q_prob(self.result_away_min),
            q_prob(self.result_away_max),
        )


default_settings = Settings()
settings = default_settings
