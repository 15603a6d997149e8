# price_history.py
# Recent OHLC bars (Binance klines / Yahoo Finance) and the max-swing volatility proxy
# used to estimate a stop-loss percentage.

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import numpy as np
import pandas as pd
import requests
import yfinance as yf

import settings

logger = logging.getLogger(__name__)

KLINE_COLUMNS = ["open_time", "open", "high", "low", "close", "volume", "close_time",
                 "qav", "num_trades", "taker_base", "taker_quote", "ignore"]
OHLC = ["open", "high", "low", "close"]


# ---------------- Fetchers ----------------
def fetch_binance_bars(symbol, interval=settings.KLINE_INTERVAL, limit=settings.KLINE_LIMIT):
    """Last `limit` klines for `symbol`, oldest first. None if the request fails."""
    symbol = symbol.strip().upper()
    params = {"symbol": symbol, "interval": interval, "limit": int(limit)}
    try:
        r = requests.get(settings.BINANCE_KLINES_URL, params=params, timeout=settings.HTTP_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Binance fetch error for %s: %s", symbol, e)
        return None

    if not data or (isinstance(data, dict) and data.get("code")):
        logger.warning("Binance returned no klines for %s: %s", symbol, data)
        return None

    df = pd.DataFrame(data, columns=KLINE_COLUMNS)
    df[OHLC] = df[OHLC].apply(pd.to_numeric, errors="coerce").astype(float)
    df["open_time"] = pd.to_datetime(df["open_time"], unit="ms")
    df = df.set_index("open_time")[OHLC].sort_index()
    logger.debug("Fetched %d %s klines for %s", len(df), interval, symbol)
    return df


def fetch_yahoo_bars(ticker, period_days=settings.YAHOO_PERIOD_DAYS, interval="1d"):
    """Daily (by default) bars from Yahoo Finance, oldest first. None if nothing came back."""
    ticker = ticker.strip().upper()
    end_dt = datetime.now().date()
    start_dt = end_dt - timedelta(days=period_days)

    try:
        df = yf.download(
            ticker,
            start=start_dt,
            end=end_dt,
            interval=interval,
            progress=False,
            threads=False,
            auto_adjust=True,
            group_by="ticker"
        )
    except Exception as e:
        logger.warning("Yahoo fetch error for %s: %s", ticker, e)
        return None

    if df is None or df.empty:
        logger.warning("Empty data from Yahoo Finance for %s", ticker)
        return None

    if isinstance(df.columns, pd.MultiIndex):
        if ticker in df.columns.get_level_values(0):
            df = df[ticker]
        else:
            df = df[df.columns.levels[0][0]]

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in OHLC if c not in df.columns]
    if missing:
        logger.warning("Yahoo data for %s lacks columns %s", ticker, missing)
        return None

    df = df[OHLC].apply(pd.to_numeric, errors="coerce").astype(float)
    df.index = pd.to_datetime(df.index).tz_localize(None)
    return df.dropna(subset=["high", "low"]).sort_index()


def pick_source(symbol, source="Auto"):
    if source == "Auto":
        return "Binance" if symbol.strip().upper().endswith("USDT") else "Yahoo"
    return source


def fetch_bars(symbol, source="Auto", interval=None, limit=settings.KLINE_LIMIT):
    source = pick_source(symbol, source)
    if source == "Binance":
        return fetch_binance_bars(symbol, interval or settings.KLINE_INTERVAL, limit)
    if source == "Yahoo":
        return fetch_yahoo_bars(symbol, interval=interval or "1d")
    raise ValueError(f"Unknown data source: {source}")


# ---------------- Calculations ----------------
def max_swing(bars) -> Optional[float]:
    """Largest (high - low) / low over the bars. None when there is nothing usable."""
    if bars is None or len(bars) == 0:
        return None
    high = np.asarray(bars["high"], dtype=float)
    low = np.asarray(bars["low"], dtype=float)
    ok = np.isfinite(high) & np.isfinite(low) & (low > 0)
    if not ok.any():
        return None
    return float(np.max((high[ok] - low[ok]) / low[ok]))


class SwingTracker:
    """
    Keeps the latest swing estimate for the selected symbol.

    Every request gets a generation number; a result is only applied when it
    belongs to the newest request, so a slow response for a previous symbol
    cannot overwrite the estimate for the current one. Failures keep the
    previous estimate, and `swing_symbol` keeps naming the symbol it came from.
    """

    def __init__(self):
        self.generation = 0
        self.symbol = None
        self.swing = None
        self.swing_symbol = None
        self.last_error = None
        self._pending = {}

    def begin(self, symbol) -> int:
        self.generation += 1
        self.symbol = symbol
        self._pending[self.generation] = symbol
        return self.generation

    def is_current(self, token) -> bool:
        return token == self.generation

    def complete(self, token, swing) -> bool:
        symbol = self._pending.pop(token, None)
        if not self.is_current(token):
            logger.info("Discarding stale swing result for %s (request %s, latest %s)",
                        symbol, token, self.generation)
            return False
        self.swing = swing
        self.swing_symbol = symbol
        self.last_error = None
        return True

    def fail(self, token, error) -> None:
        symbol = self._pending.pop(token, None)
        logger.warning("Swing fetch failed for %s (request %s): %s", symbol, token, error)
        if self.is_current(token):
            self.last_error = str(error)

    def refresh(self, symbol, fetcher: Callable = fetch_bars) -> bool:
        """Fetch bars for `symbol` and update the estimate. Returns True if it changed."""
        token = self.begin(symbol)
        try:
            bars = fetcher(symbol)
        except (requests.RequestException, ValueError) as e:
            self.fail(token, e)
            return False
        swing = max_swing(bars)
        if swing is None:
            self.fail(token, f"no usable bars for {symbol}")
            return False
        return self.complete(token, swing)
