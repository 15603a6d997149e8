# Trading_Calc.py
# Streamlit front end: swing-based Kelly calculator, Kelly position calculator, risk/reward calculator.
# Run: streamlit run Trading_Calc.py

import plotly.graph_objects as go
import streamlit as st

import price_history
import settings
from kelly_calc import (
    Direction,
    DirectionError,
    RatioInputs,
    TradeInputs,
    compute,
    fmt,
    format_metrics,
    is_favourable_ratio,
    risk_profile,
    risk_reward_ratio,
    size_from_ratio,
    suggest_half_kelly,
)

settings.configure_logging()

# ====== APPLICATION INTERFACE ======
st.set_page_config(page_title="Trading Calculators", layout="wide")

st.title("📊 Trading Calculators")

# Sidebar for calculator selection
calc_type = st.sidebar.selectbox(
    "Select calculator type:",
    ["Kelly Criterion (Swing)", "Kelly Position Calculator", "Risk/Reward Calculator"],
    key="calc_type",
)


def show_metrics(metrics, columns=2):
    items = list(format_metrics(metrics).items())
    cols = st.columns(columns)
    for i, (label, value) in enumerate(items):
        cols[i % columns].metric(label, value)
    for note in metrics.notes:
        st.info(note)


def risk_chart(metrics):
    levels = risk_profile(metrics)
    colors = ["#f87171", "#60a5fa", "#34d399"]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=[lv.label for lv in levels],
        y=[lv.pnl for lv in levels],
        mode="lines+markers",
        line=dict(color="rgb(75, 192, 192)", shape="spline"),
        marker=dict(color=colors, size=12),
        hovertext=[f"{lv.label}: {lv.pnl:.2f} USDT / price: {lv.price:.2f}" for lv in levels],
        hoverinfo="text",
        name="Risk distribution",
    ))
    fig.update_layout(
        template="plotly_white",
        showlegend=False,
        xaxis_title="Status",
        yaxis_title="USDT",
        height=420,
    )
    return fig


# ---------------- Kelly Criterion (Swing) ----------------
if calc_type == "Kelly Criterion (Swing)":
    st.header("💰 Kelly Criterion Calculator")
    d = settings.KELLY_DEFAULTS

    col1, col2, col3 = st.columns(3)
    with col1:
        capital = st.number_input("💵 Capital (USDT)", min_value=0.0, value=d["capital"], step=100.0)
        rr = st.number_input("⚖️ Risk/Reward (b)", min_value=0.0, value=d["b"], step=0.1)
        win_rate = st.number_input("🎯 Win Rate (0-1)", min_value=0.0, max_value=1.0, value=d["win_rate"], step=0.01)
    with col2:
        leverage = st.number_input("Leverage", min_value=0.0, value=d["leverage"], step=1.0)
        symbol = st.text_input("Symbol (ETHUSDT, AAPL)", d["symbol"], key="swing_symbol").strip().upper()
        source = st.selectbox("Data source", settings.DATA_SOURCES)
    with col3:
        entry_price = st.number_input("Entry Price", min_value=0.0, value=d["entry_price"])
        half_kelly = st.checkbox("Half Kelly", value=d["half_kelly"])
        side = st.selectbox("Position Type", ["Long", "Short"], index=0 if d["is_long"] else 1)

    if "swing_tracker" not in st.session_state:
        st.session_state["swing_tracker"] = price_history.SwingTracker()
    tracker = st.session_state["swing_tracker"]

    # refetch only when the symbol or source changes
    fetch_key = (symbol, source)
    if symbol and st.session_state.get("swing_key") != fetch_key:
        st.session_state["swing_key"] = fetch_key
        with st.spinner(f"Loading recent bars for {symbol}..."):
            tracker.refresh(symbol, lambda s: price_history.fetch_bars(s, source))

    if tracker.last_error:
        st.warning(f"Failed to fetch swing for {symbol}: {tracker.last_error}")

    if tracker.swing is None:
        st.info("No swing estimate yet. Check the symbol and data source.")
    else:
        st.caption(f"Max swing over recent {tracker.swing_symbol} bars: {tracker.swing:.2%}")
        metrics = size_from_ratio(RatioInputs(
            capital=capital,
            b=rr,
            win_rate=win_rate,
            leverage=leverage,
            entry_price=entry_price,
            stop_loss_pct=tracker.swing,
            direction=Direction.LONG if side == "Long" else Direction.SHORT,
            use_half_kelly=half_kelly,
        ))

        st.success(f"✅ Kelly Fraction: **{metrics.f:.2%}**")
        c1, c2, c3 = st.columns(3)
        c1.metric("Risk Amount", f"{fmt(metrics.risk_amount)} USDT")
        c1.metric("Stop Loss", f"{fmt(metrics.stop_loss_pct * 100)}%")
        c2.metric("Nominal Position", f"{fmt(metrics.nominal_position)} USDT")
        c2.metric("Margin Used", f"{fmt(metrics.margin)} USDT")
        c3.metric("Stop Loss Price", fmt(metrics.stop_loss_price))
        c3.metric("Target Price", fmt(metrics.target_price))
        for note in metrics.notes:
            st.info(note)

        st.plotly_chart(risk_chart(metrics), use_container_width=True)

# ---------------- Kelly Position Calculator ----------------
elif calc_type == "Kelly Position Calculator":
    st.header("📐 Kelly Position Calculator")
    d = settings.POSITION_DEFAULTS

    col1, col2 = st.columns(2)
    with col1:
        capital = st.number_input("Capital (USDT)", min_value=0.0, value=d["capital"], step=100.0)
        entry_price = st.number_input("Entry Price", value=d["entry_price"])
        stop_price = st.number_input("Stop Price", value=d["stop_price"])
        target_price = st.number_input("Target Price", value=d["target_price"])
    with col2:
        leverage = st.number_input("Leverage", min_value=0.0, value=d["leverage"], step=1.0)
        win_rate = st.number_input("Win Rate p (0-1)", min_value=0.0, max_value=1.0, value=d["win_rate"], step=0.01)
        half_kelly = st.checkbox("Half Kelly (more conservative)", value=d["half_kelly"])
        mode = st.selectbox("Direction", ["Auto", "Long", "Short"], key="position_direction")

    direction = None if mode == "Auto" else Direction(mode.lower())
    try:
        metrics = compute(TradeInputs(
            capital=capital,
            entry_price=entry_price,
            stop_price=stop_price,
            target_price=target_price,
            win_rate=win_rate,
            leverage=leverage,
            use_half_kelly=half_kelly,
            direction=direction,
        ))
    except DirectionError as e:
        st.error(f"Input Error: {e}")
    else:
        label = "Long" if metrics.direction == Direction.LONG else "Short"
        st.write(f"Direction: **{label}**" + (" (auto-detected)" if direction is None else ""))
        show_metrics(metrics)
        if suggest_half_kelly(metrics.b) and not half_kelly:
            st.warning("Risk/reward is above 2.0: consider half Kelly to limit risk.")

    st.markdown("---")
    st.markdown("""
    **Notes:**
    - Loss at stop = quantity × price difference to the stop.
    - Half Kelly halves the Kelly fraction after flooring it at 0. A conservative choice when b > 2.0.
    """)

# ---------------- Risk/Reward Calculator ----------------
elif calc_type == "Risk/Reward Calculator":
    st.header("⚖️ Risk/Reward Calculator")
    d = settings.RR_DEFAULTS

    col1, col2 = st.columns(2)
    with col1:
        entry_price = st.number_input("Entry Price", value=d["entry_price"])
        stop_price = st.number_input("Stop Loss", value=d["stop_price"], key="rr_stop")
    with col2:
        target_price = st.number_input("Target", value=d["target_price"])
        side = st.selectbox("Position Type", ["Long", "Short"], index=0 if d["is_long"] else 1)

    try:
        b = risk_reward_ratio(entry_price, stop_price, target_price, Direction(side.lower()))
    except DirectionError as e:
        st.error(f"Input Error: {e}")
    else:
        color = "green" if is_favourable_ratio(b) else "red"
        st.markdown(f"### :{color}[Risk/Reward b = {fmt(b)}]")
