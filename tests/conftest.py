import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SPORTMONKS_API_KEY", "test")

FIXED_NOW = datetime(2026, 1, 2, 15, 0, 0, 123456, tzinfo=timezone.utc)


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def make_market():
    """Factory for EvaluatedMarket records that clear every gate rule by default."""
    from pitchedge.services.evaluator import EvaluatedMarket
    from pitchedge.services.markets import MarketId
    from pitchedge.services.risk import RiskAssessment

    def _make(
        fixture_id: int = 1,
        market_id: MarketId = MarketId.OVER_2_5,
        probability: float = 0.70,
        odds: float | None = 2.00,
        **overrides,
    ) -> EvaluatedMarket:
        priced = odds is not None
        values = dict(
            fixture_id=fixture_id,
            market_id=market_id,
            label=market_id.label,
            probability=probability,
            odds=odds,
            bookmaker="bet365" if priced else None,
            edge=probability - 1.0 / odds if priced else None,
            ev=probability * odds - 1.0 if priced else None,
            ev_adjusted=(probability * odds - 1.0) * 0.7 if priced else None,
            confidence=70,
            confidence_label="High",
            variance_multiplier=0.95,
            confidence_interval=(probability - 0.01, probability + 0.01) if priced else None,
            risk_assessment=RiskAssessment(is_approved=True, tier="A") if priced else None,
            edge_score=70 if priced else None,
            bookmaker_prices={"bet365": odds} if priced else {},
        )
        values.update(overrides)
        return EvaluatedMarket(**values)

    return _make
