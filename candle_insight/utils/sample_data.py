"""
Sample candle data containing known candlestick formations.

Used for demos and tests. Prices are fixed so the formations are
reproducible; only volumes are drawn from a seeded generator.
"""

import logging
import time
from typing import List, Optional

import numpy as np

from candle_insight.core.candlestick_patterns import Candle

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

# (open, high, low, close)
SAMPLE_OHLC = [
    # Initial downtrend
    (105, 106, 98, 99),
    (99, 100, 95, 96),
    (96, 97, 92, 93),

    # Doji
    (93, 95, 91, 93.2),

    # Hammer-like candle (upper shadow too long to qualify)
    (92, 93, 88, 92.5),

    # Uptrend
    (92.5, 96, 92, 95),
    (95, 98, 94, 97),
    (97, 101, 96, 100),

    # Doji (shooting-star shape, lower shadow too long to qualify)
    (100, 105, 99, 100.5),

    # Bearish engulfing
    (100, 102, 99, 101),
    (102, 103, 96, 97),

    # Morning star
    (97, 98, 92, 93),
    (93, 94, 92, 93.5),
    (94, 99, 93, 98),

    # Continuation
    (98, 102, 97, 101),
    (101, 104, 100, 103),
    (103, 106, 102, 104),

    # Evening star
    (104, 107, 103, 106),
    (106, 107, 105, 106.2),
    (106, 107, 101, 102),

    # Bearish continuation
    (102, 103, 98, 99),
    (99, 100, 95, 96),
]


def generate_sample_candles(end_timestamp: Optional[float] = None,
                            seed: Optional[int] = None,
                            interval_ms: int = HOUR_MS) -> List[Candle]:
    """
    Generate sample candles ending just before end_timestamp.

    Args:
        end_timestamp: Epoch milliseconds of the end of the series (defaults to now)
        seed: Seed for the volume generator (defaults to settings.sample_seed)
        interval_ms: Spacing between candles in milliseconds

    Returns:
        List of candles, one per entry in SAMPLE_OHLC
    """
    if end_timestamp is None:
        end_timestamp = time.time() * 1000
    if seed is None:
        from candle_insight.config import settings
        seed = settings.sample_seed

    rng = np.random.default_rng(seed)
    volumes = rng.integers(5000, 15000, size=len(SAMPLE_OHLC))

    count = len(SAMPLE_OHLC)
    candles = [
        Candle(
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            timestamp=end_timestamp - (count - i) * interval_ms,
            volume=float(volumes[i]),
        )
        for i, (o, h, l, c) in enumerate(SAMPLE_OHLC)
    ]

    logger.debug(f"Generated {len(candles)} sample candles with seed {seed}")
    return candles
