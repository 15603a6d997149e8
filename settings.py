# settings.py
# Defaults for the calculators and the price history fetchers.
# Environment overrides: TRADING_CALC_BINANCE_URL, TRADING_CALC_HTTP_TIMEOUT, TRADING_CALC_LOG_LEVEL
# (read from the process environment or a .env file in the working directory)

import logging
import os

from dotenv import load_dotenv

load_dotenv()

BINANCE_KLINES_URL = os.getenv("TRADING_CALC_BINANCE_URL", "https://api.binance.com/api/v3/klines")
HTTP_TIMEOUT = float(os.getenv("TRADING_CALC_HTTP_TIMEOUT", "10"))
LOG_LEVEL = os.getenv("TRADING_CALC_LOG_LEVEL", "INFO").upper()

KLINE_INTERVAL = "4h"
KLINE_LIMIT = 50
YAHOO_PERIOD_DAYS = 30
DATA_SOURCES = ["Auto", "Binance", "Yahoo"]

# b at or above this is shown green
GOOD_RR_THRESHOLD = 1.5
# above this the half Kelly hint is shown
HALF_KELLY_HINT_RR = 2.0

# ---------------- Form defaults ----------------
KELLY_DEFAULTS = {
    "capital": 1000.0,
    "b": 1.5,
    "win_rate": 0.5,
    "leverage": 20.0,
    "symbol": "ETHUSDT",
    "entry_price": 2000.0,
    "half_kelly": True,
    "is_long": True,
}

POSITION_DEFAULTS = {
    "capital": 1000.0,
    "entry_price": 4770.0,
    "stop_price": 4820.0,
    "target_price": 4650.0,
    "win_rate": 0.5,
    "leverage": 75.0,
    "half_kelly": False,
}

RR_DEFAULTS = {
    "entry_price": 2000.0,
    "stop_price": 1900.0,
    "target_price": 2150.0,
    "is_long": True,
}


def configure_logging(level=None):
    """Set up root logging once; later calls only adjust the level."""
    level = level or LOG_LEVEL
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        root.setLevel(level)
    return root
