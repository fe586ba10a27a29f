"""Tests for pitchedge/services/kelly.py."""

import pytest

from pitchedge.core.decimalutils import D
from pitchedge.services.kelly import check_daily_exposure, check_drawdown, kelly_fraction, suggested_stake


class TestKellyFraction:
    def test_no_edge_returns_zero(self):
        """model_prob=0.3, odds=2.0 -> EV=-0.4 -> kelly=0."""
        assert kelly_fraction(D("0.3"), D("2.0")) == D("0")

    def test_positive_edge(self):
        """model_prob=0.6, odds=2.0 -> full kelly 0.2 -> quarter 0.05."""
        result = kelly_fraction(D("0.6"), D("2.0"))
        assert result == pytest.approx(D("0.05"), abs=D("0.001"))

    def test_max_fraction_cap(self):
        assert kelly_fraction(D("0.9"), D("5.0"), max_fraction=D("0.03")) == D("0.03")

    def test_quarter_less_than_full(self):
        full = kelly_fraction(D("0.6"), D("2.0"), fraction=D("1.0"), max_fraction=D("1.0"))
        quarter = kelly_fraction(D("0.6"), D("2.0"), fraction=D("0.25"), max_fraction=D("1.0"))
        assert quarter < full
        assert quarter == pytest.approx(full * D("0.25"), abs=D("0.001"))

    def test_odds_one_returns_zero(self):
        assert kelly_fraction(D("0.9"), D("1.0")) == D("0")

    def test_float_inputs(self):
        assert kelly_fraction(0.7, 2.0) > 0


class TestSuggestedStake:
    def test_with_bankroll(self):
        stake = suggested_stake(D("1000"), D("0.6"), D("2.0"))
        assert D("0") < stake <= D("50.00")

    def test_below_min_stake_is_zero(self):
        assert suggested_stake(D("100"), D("0.51"), D("2.0"), min_stake=D("5.00")) == D("0")

    def test_rounding(self):
        stake = suggested_stake(D("1000"), D("0.65"), D("2.5"))
        assert stake == stake.quantize(D("0.01"))


class TestBankrollGuards:
    def test_exposure_within_limit(self):
        check = check_daily_exposure([D("0.03"), D("0.04")], D("0.03"))
        assert check.approved
        assert check.proposed == D("0.10")

    def test_exposure_over_limit(self):
        check = check_daily_exposure([D("0.05"), D("0.04")], D("0.02"))
        assert not check.approved
        assert check.current == D("0.09")
        assert "exceed" in check.reason

    def test_custom_exposure_limit(self):
        assert not check_daily_exposure([], D("0.05"), max_exposure=D("0.04")).approved

    def test_drawdown_below_halt(self):
        check = check_drawdown(D("900"), D("1000"))
        assert check.approved
        assert check.drawdown == D("0.1")

    def test_drawdown_at_halt(self):
        check = check_drawdown(D("850"), D("1000"))
        assert not check.approved
        assert "halt" in check.reason

    def test_no_peak_never_halts(self):
        assert check_drawdown(D("100"), D("0")).approved
