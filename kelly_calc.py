# kelly_calc.py
# Position sizing from the Kelly criterion and the risk/reward ratio.
# Pure functions only: no Streamlit, no network.

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from settings import GOOD_RR_THRESHOLD, HALF_KELLY_HINT_RR


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"


class DirectionError(ValueError):
    """Stop and target are not on opposite sides of entry for the trade direction."""


@dataclass(frozen=True)
class TradeInputs:
    capital: float
    entry_price: float
    stop_price: float
    target_price: float
    win_rate: float
    leverage: float
    use_half_kelly: bool = False
    direction: Optional[Direction] = None  # None = infer from prices


@dataclass(frozen=True)
class RatioInputs:
    capital: float
    b: float
    win_rate: float
    leverage: float
    entry_price: float
    stop_loss_pct: float
    direction: Direction
    use_half_kelly: bool = True


@dataclass(frozen=True)
class DerivedMetrics:
    direction: Direction
    b: float
    f: float
    risk_amount: float
    stop_loss_pct: float
    nominal_position: float
    qty: float
    margin: float
    loss_amount: float
    profit_amount: float
    stop_diff: float
    target_diff: float
    stop_loss_price: float
    break_even_price: float
    target_price: float
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PriceLevel:
    label: str
    pnl: float
    price: float


# ====== KELLY CRITERION LOGIC ======
def kelly_fraction(p: float, b: float, half: bool = False) -> float:
    """
    Calculates the fraction of capital to risk according to the Kelly Criterion.
    :param p: probability of winning, clamped to [0, 1] (NaN counts as 0)
    :param b: ratio of profit to loss (reward/risk)
    :param half: halve the result (half Kelly)
    :return: fraction of capital f* in the range [0, 1]
    """
    if not (math.isfinite(b) and b > 0):
        return 0.0
    # an unknown win rate carries no edge
    p = max(0.0, min(1.0, p)) if math.isfinite(p) else 0.0
    q = 1 - p
    f = (b * p - q) / b
    # floor first: halving a negative edge means nothing
    f = max(0.0, f)
    if half:
        f /= 2
    return f


def resolve_direction(entry: float, stop: float, target: float,
                      direction: Optional[Direction] = None) -> Direction:
    """
    Infer the direction from the prices, or check an explicit one against them.

    A stop on the entry price has no side; the target alone decides the
    direction then, and sizing treats the trade as having no edge.
    """
    if stop < entry < target or (stop == entry and target > entry):
        inferred = Direction.LONG
    elif target < entry < stop or (stop == entry and target < entry):
        inferred = Direction.SHORT
    else:
        raise DirectionError(
            "Prices do not fit a long or short trade: check the stop and target "
            "relative to the entry price."
        )
    if direction is not None and Direction(direction) != inferred:
        raise DirectionError(
            f"Prices describe a {inferred.value} trade but {Direction(direction).value} was selected."
        )
    return inferred


def risk_reward_ratio(entry: float, stop: float, target: float,
                      direction: Optional[Direction] = None) -> float:
    """Reward / risk for the setup; NaN when the stop sits on the entry."""
    resolve_direction(entry, stop, target, direction)
    stop_diff = abs(stop - entry)
    if stop_diff == 0:
        return math.nan
    return abs(entry - target) / stop_diff


def price_levels(entry: float, stop_loss_pct: float, b: float,
                 direction: Direction) -> Tuple[float, float, float]:
    """Return (stop loss price, break even price, target price)."""
    if direction == Direction.LONG:
        stop_price = entry * (1 - stop_loss_pct)
        target_price = entry * (1 + stop_loss_pct * b)
    else:
        stop_price = entry * (1 + stop_loss_pct)
        target_price = entry * (1 - stop_loss_pct * b)
    return stop_price, entry, target_price


def _size(capital, f, entry, stop_loss_pct, leverage, notes):
    risk_amount = capital * f
    if stop_loss_pct > 0:
        nominal = risk_amount / stop_loss_pct
    else:
        nominal = 0.0
        if f > 0:
            notes.append("Stop-loss percentage is not positive; position size set to 0.")
    qty = nominal / entry if entry > 0 else 0.0
    if leverage > 0:
        margin = nominal / leverage
    else:
        margin = math.nan
        notes.append("Leverage must be positive; margin is undefined.")
    return risk_amount, nominal, qty, margin


def compute(inputs: TradeInputs) -> DerivedMetrics:
    """
    Derive the position size and risk figures for a trade given by its prices.

    Raises DirectionError when the stop and target do not fit the (inferred or
    selected) direction. Degenerate values are replaced by 0 or NaN and
    reported in ``notes``.
    """
    direction = resolve_direction(inputs.entry_price, inputs.stop_price,
                                  inputs.target_price, inputs.direction)
    notes: List[str] = []
    entry = inputs.entry_price

    stop_diff = abs(inputs.stop_price - entry)
    target_diff = abs(entry - inputs.target_price)

    if entry > 0:
        stop_loss_pct = stop_diff / entry
    else:
        stop_loss_pct = math.nan
        notes.append("Entry price must be positive; stop-loss percentage is undefined.")

    if stop_diff > 0:
        b = target_diff / stop_diff
    else:
        b = math.nan
        notes.append("Stop equals entry; risk/reward is undefined and the Kelly fraction is 0.")

    f = kelly_fraction(inputs.win_rate, b, inputs.use_half_kelly)
    risk_amount, nominal, qty, margin = _size(
        inputs.capital, f, entry, stop_loss_pct, inputs.leverage, notes)

    if math.isfinite(stop_loss_pct) and math.isfinite(b):
        stop_loss_price, break_even, target_price = price_levels(entry, stop_loss_pct, b, direction)
    else:
        stop_loss_price, break_even, target_price = inputs.stop_price, entry, inputs.target_price

    return DerivedMetrics(
        direction=direction,
        b=b,
        f=f,
        risk_amount=risk_amount,
        stop_loss_pct=stop_loss_pct,
        nominal_position=nominal,
        qty=qty,
        margin=margin,
        loss_amount=qty * stop_diff,
        profit_amount=qty * target_diff,
        stop_diff=stop_diff,
        target_diff=target_diff,
        stop_loss_price=stop_loss_price,
        break_even_price=break_even,
        target_price=target_price,
        notes=tuple(notes),
    )


def size_from_ratio(inputs: RatioInputs) -> DerivedMetrics:
    """Size a position from an entered risk/reward ratio and stop-loss percentage (e.g. the recent swing)."""
    notes: List[str] = []
    direction = Direction(inputs.direction)
    entry = inputs.entry_price
    pct = inputs.stop_loss_pct if math.isfinite(inputs.stop_loss_pct) else 0.0
    if entry <= 0:
        notes.append("Entry price must be positive; quantity set to 0.")

    f = kelly_fraction(inputs.win_rate, inputs.b, inputs.use_half_kelly)
    risk_amount, nominal, qty, margin = _size(
        inputs.capital, f, entry, pct, inputs.leverage, notes)

    stop_loss_price, break_even, target_price = price_levels(entry, pct, inputs.b, direction)
    stop_diff = abs(entry - stop_loss_price)
    target_diff = abs(target_price - entry)

    return DerivedMetrics(
        direction=direction,
        b=inputs.b,
        f=f,
        risk_amount=risk_amount,
        stop_loss_pct=inputs.stop_loss_pct,
        nominal_position=nominal,
        qty=qty,
        margin=margin,
        loss_amount=qty * stop_diff,
        profit_amount=qty * target_diff,
        stop_diff=stop_diff,
        target_diff=target_diff,
        stop_loss_price=stop_loss_price,
        break_even_price=break_even,
        target_price=target_price,
        notes=tuple(notes),
    )


def risk_profile(metrics: DerivedMetrics) -> List[PriceLevel]:
    """Points of the risk distribution chart: stop loss, break even, target."""
    return [
        PriceLevel("Stop Loss", -metrics.risk_amount, metrics.stop_loss_price),
        PriceLevel("Break Even", 0.0, metrics.break_even_price),
        PriceLevel("Target", metrics.risk_amount * metrics.b, metrics.target_price),
    ]


def is_favourable_ratio(b: float) -> bool:
    return math.isfinite(b) and b >= GOOD_RR_THRESHOLD


def suggest_half_kelly(b: float) -> bool:
    return math.isfinite(b) and b > HALF_KELLY_HINT_RR


# ---------------- Formatting ----------------
def fmt(n: float, d: int = 2) -> str:
    if n is None or not math.isfinite(n):
        return "-"
    return f"{n:.{d}f}"


def format_metrics(m: DerivedMetrics, currency: str = "USDT") -> Dict[str, str]:
    return {
        "Risk/Reward (b)": fmt(m.b, 2),
        "Kelly Fraction (f)": f"{fmt(m.f * 100, 2)}%",
        "Risk Amount": f"{fmt(m.risk_amount, 2)} {currency}",
        "Stop Loss": f"{fmt(m.stop_loss_pct * 100, 3)}%",
        "Nominal Position": f"{fmt(m.nominal_position, 2)} {currency}",
        "Margin": f"{fmt(m.margin, 2)} {currency}",
        "Quantity": fmt(m.qty, 4),
        "StopDiff / TargetDiff": f"{fmt(m.stop_diff, 2)} / {fmt(m.target_diff, 2)} {currency}",
        "Loss at Stop": f"{fmt(m.loss_amount, 2)} {currency}",
        "Profit at Target": f"{fmt(m.profit_amount, 2)} {currency}",
    }
