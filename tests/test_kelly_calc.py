import math

import pytest

from kelly_calc import (
    Direction,
    DirectionError,
    RatioInputs,
    TradeInputs,
    compute,
    fmt,
    format_metrics,
    is_favourable_ratio,
    kelly_fraction,
    price_levels,
    resolve_direction,
    risk_profile,
    risk_reward_ratio,
    size_from_ratio,
    suggest_half_kelly,
)


def trade(**overrides):
    params = dict(capital=1000.0, entry_price=2000.0, stop_price=1900.0, target_price=2150.0,
                  win_rate=0.5, leverage=20.0, use_half_kelly=False)
    params.update(overrides)
    return TradeInputs(**params)


def test_long_scenario():
    m = compute(trade())
    assert m.direction == Direction.LONG
    assert m.stop_diff == pytest.approx(100)
    assert m.target_diff == pytest.approx(150)
    assert m.b == pytest.approx(1.5)
    assert m.f == pytest.approx(0.1667, abs=1e-4)
    assert m.risk_amount == pytest.approx(166.67, abs=0.01)
    assert m.stop_loss_pct == pytest.approx(0.05)
    assert m.nominal_position == pytest.approx(3333.33, abs=0.01)
    assert m.qty == pytest.approx(1.6667, abs=1e-4)
    assert m.margin == pytest.approx(m.nominal_position / 20)
    assert m.loss_amount == pytest.approx(m.risk_amount)
    assert m.profit_amount == pytest.approx(m.risk_amount * 1.5)
    assert m.notes == ()


def test_long_scenario_price_levels_match_inputs():
    m = compute(trade())
    assert m.stop_loss_price == pytest.approx(1900)
    assert m.break_even_price == 2000
    assert m.target_price == pytest.approx(2150)


def test_short_mirror():
    m = compute(trade(stop_price=2100.0, target_price=1850.0))
    assert m.direction == Direction.SHORT
    assert m.stop_diff > 0 and m.target_diff > 0 and m.b > 0
    assert m.b == pytest.approx(1.5)
    assert m.f == pytest.approx(compute(trade()).f)
    assert m.stop_loss_price == pytest.approx(2100)
    assert m.target_price == pytest.approx(1850)


def test_both_prices_above_entry_is_rejected():
    with pytest.raises(DirectionError):
        compute(trade(stop_price=2100.0, target_price=2150.0))


def test_explicit_direction_must_agree_with_prices():
    assert compute(trade(direction=Direction.LONG)).direction == Direction.LONG
    with pytest.raises(DirectionError, match="long"):
        compute(trade(direction=Direction.SHORT))


def test_direction_error_is_value_error():
    with pytest.raises(ValueError):
        resolve_direction(100, 100, 110)


@pytest.mark.parametrize("p", [-0.5, 0.0, 0.3, 0.5, 0.9, 1.0, 1.7])
def test_fraction_stays_in_unit_interval(p):
    f = compute(trade(win_rate=p)).f
    assert 0.0 <= f <= 1.0


def test_win_rate_above_one_is_clamped():
    assert kelly_fraction(1.7, 1.5) == pytest.approx(1.0)
    assert kelly_fraction(-0.2, 1.5) == 0.0


def test_half_kelly_halves_full_kelly():
    full = compute(trade())
    half = compute(trade(use_half_kelly=True))
    assert half.f == full.f / 2
    assert half.risk_amount == pytest.approx(full.risk_amount / 2)


def test_negative_edge_floors_before_halving():
    assert kelly_fraction(0.2, 1.0) == 0.0
    assert kelly_fraction(0.2, 1.0, half=True) == 0.0


def test_stop_on_entry_means_no_edge():
    m = compute(trade(stop_price=2000.0, direction=Direction.LONG))
    assert m.direction == Direction.LONG
    assert m.stop_diff == 0
    assert math.isnan(m.b)
    assert m.f == 0
    assert m.risk_amount == 0
    assert m.nominal_position == 0
    assert any("Stop equals entry" in n for n in m.notes)


def test_stop_on_entry_takes_direction_from_target():
    assert compute(trade(stop_price=2000.0)).direction == Direction.LONG
    assert compute(trade(stop_price=2000.0, target_price=1850.0)).direction == Direction.SHORT
    with pytest.raises(DirectionError):
        compute(trade(stop_price=2000.0, direction=Direction.SHORT))


def test_stop_and_target_on_entry_is_rejected():
    with pytest.raises(DirectionError):
        compute(trade(stop_price=2000.0, target_price=2000.0))


def test_non_positive_entry_leaves_stop_loss_pct_undefined():
    m = compute(trade(entry_price=-5.0, stop_price=-10.0, target_price=0.0))
    assert math.isnan(m.stop_loss_pct)
    assert any("Entry price" in n for n in m.notes)
    assert m.nominal_position == 0
    assert m.qty == 0


def test_nan_win_rate_gives_no_position():
    assert kelly_fraction(math.nan, 1.5) == 0.0
    m = compute(trade(win_rate=math.nan))
    assert m.f == 0
    assert m.risk_amount == 0


def test_zero_stop_distance_gives_zero_fraction():
    m = size_from_ratio(RatioInputs(capital=1000, b=1.5, win_rate=0.5, leverage=10,
                                    entry_price=2000, stop_loss_pct=0.0,
                                    direction=Direction.LONG))
    assert m.stop_diff == 0
    assert m.nominal_position == 0
    assert kelly_fraction(0.5, math.nan) == 0.0
    assert kelly_fraction(0.5, 0.0) == 0.0


def test_non_positive_leverage_leaves_margin_undefined():
    m = compute(trade(leverage=0))
    assert math.isnan(m.margin)
    assert any("Leverage" in n for n in m.notes)
    assert m.nominal_position > 0


def test_compute_is_idempotent():
    inputs = trade(use_half_kelly=True)
    assert compute(inputs) == compute(inputs)


def test_risk_reward_ratio():
    assert risk_reward_ratio(2000, 1900, 2150) == pytest.approx(1.5)
    assert risk_reward_ratio(2000, 2100, 1850, Direction.SHORT) == pytest.approx(1.5)
    with pytest.raises(DirectionError):
        risk_reward_ratio(2000, 1900, 2150, Direction.SHORT)
    assert math.isnan(risk_reward_ratio(2000, 2000, 2150))


def test_price_levels_short():
    stop, be, target = price_levels(2000, 0.05, 2.0, Direction.SHORT)
    assert stop == pytest.approx(2100)
    assert be == 2000
    assert target == pytest.approx(1800)


def test_size_from_ratio_matches_swing_calculator():
    m = size_from_ratio(RatioInputs(capital=1000, b=1.5, win_rate=0.5, leverage=20,
                                    entry_price=2000, stop_loss_pct=0.04,
                                    direction=Direction.LONG, use_half_kelly=True))
    assert m.f == pytest.approx(1 / 12)
    assert m.risk_amount == pytest.approx(83.333, abs=1e-3)
    assert m.nominal_position == pytest.approx(m.risk_amount / 0.04)
    assert m.margin == pytest.approx(m.nominal_position / 20)
    assert m.stop_loss_price == pytest.approx(1920)
    assert m.target_price == pytest.approx(2120)
    assert m.loss_amount == pytest.approx(m.risk_amount)


def test_risk_profile_points():
    m = compute(trade())
    levels = risk_profile(m)
    assert [lv.label for lv in levels] == ["Stop Loss", "Break Even", "Target"]
    assert levels[0].pnl == pytest.approx(-m.risk_amount)
    assert levels[1].pnl == 0
    assert levels[2].pnl == pytest.approx(m.risk_amount * 1.5)
    assert levels[2].price == pytest.approx(2150)


def test_ratio_thresholds():
    assert is_favourable_ratio(1.5)
    assert not is_favourable_ratio(1.49)
    assert not is_favourable_ratio(math.nan)
    assert suggest_half_kelly(2.5)
    assert not suggest_half_kelly(2.0)


def test_formatting():
    assert fmt(math.nan) == "-"
    assert fmt(math.inf) == "-"
    assert fmt(1.23456, 3) == "1.235"
    out = format_metrics(compute(trade()))
    assert out["Risk/Reward (b)"] == "1.50"
    assert out["Kelly Fraction (f)"] == "16.67%"
    assert out["Stop Loss"] == "5.000%"
    assert out["Quantity"] == "1.6667"
    assert out["StopDiff / TargetDiff"] == "100.00 / 150.00 USDT"
