"""Fractional Kelly staking plus the bankroll guards applied before publishing."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from pitchedge.core.decimalutils import D, NumberLike, q_stake, safe_div

MAX_DAILY_EXPOSURE = D("0.10")
MAX_DRAWDOWN_HALT = D("0.15")


def kelly_fraction(
    model_prob: NumberLike,
    odds: NumberLike,
    fraction: NumberLike = "0.25",
    max_fraction: NumberLike = "0.05",
) -> Decimal:
    """Bankroll fraction to stake.

    Full Kelly is f* = (p*b - 1) / (b - 1) with p the model probability and b
    the decimal odds. The result is scaled by ``fraction`` and capped at
    ``max_fraction``; no edge means zero.
    """
    p = D(model_prob)
    b = D(odds)
    if p <= 0 or b <= 1:
        return D("0")

    ev = p * b - D("1")
    if ev <= 0:
        return D("0")

    full_kelly = safe_div(ev, b - D("1"))
    return min(D(fraction) * full_kelly, D(max_fraction))


def suggested_stake(
    bankroll: NumberLike,
    model_prob: NumberLike,
    odds: NumberLike,
    fraction: NumberLike = "0.25",
    max_fraction: NumberLike = "0.05",
    min_stake: NumberLike = "1.00",
) -> Decimal:
    """Stake in currency units, 0 when it would fall under ``min_stake``."""
    stake = D(bankroll) * kelly_fraction(model_prob, odds, fraction, max_fraction)
    if stake < D(min_stake):
        return D("0")
    return q_stake(stake)


@dataclass(frozen=True)
class ExposureCheck:
    approved: bool
    current: Decimal
    proposed: Decimal
    limit: Decimal
    reason: Optional[str] = None


@dataclass(frozen=True)
class DrawdownCheck:
    approved: bool
    drawdown: Decimal
    limit: Decimal
    reason: Optional[str] = None


def check_daily_exposure(
    existing: Iterable[NumberLike],
    new_stake: NumberLike,
    max_exposure: NumberLike = MAX_DAILY_EXPOSURE,
) -> ExposureCheck:
    """Stakes are bankroll fractions; the day's total may not exceed ``max_exposure``."""
    current = sum((D(s) for s in existing), D("0"))
    proposed = current + D(new_stake)
    limit = D(max_exposure)
    if proposed > limit:
        return ExposureCheck(
            approved=False,
            current=current,
            proposed=proposed,
            limit=limit,
            reason=f"daily exposure {proposed * 100:.1f}% would exceed {limit * 100:.1f}%",
        )
    return ExposureCheck(approved=True, current=current, proposed=proposed, limit=limit)


def check_drawdown(
    current_bankroll: NumberLike,
    peak_bankroll: NumberLike,
    max_drawdown: NumberLike = MAX_DRAWDOWN_HALT,
) -> DrawdownCheck:
    """Halt once the bankroll sits ``max_drawdown`` or more below its peak."""
    limit = D(max_drawdown)
    peak = D(peak_bankroll)
    if peak <= 0:
        return DrawdownCheck(approved=True, drawdown=D("0"), limit=limit)
    drawdown = safe_div(peak - D(current_bankroll), peak)
    if drawdown >= limit:
        return DrawdownCheck(
            approved=False,
            drawdown=drawdown,
            limit=limit,
            reason=f"drawdown {drawdown * 100:.1f}% reached halt threshold {limit * 100:.1f}%",
        )
    return DrawdownCheck(approved=True, drawdown=drawdown, limit=limit)
