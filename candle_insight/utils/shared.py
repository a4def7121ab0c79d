"""
Shared utility functions for moving candle data between representations.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from candle_insight.core.candlestick_patterns import Candle

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['Open', 'High', 'Low', 'Close']


def candles_from_dataframe(data: pd.DataFrame) -> List[Candle]:
    """
    Build candles from OHLCV data.

    Args:
        data: DataFrame with columns ['Open', 'High', 'Low', 'Close'] and
            optionally 'Volume' and 'Timestamp'. A DatetimeIndex is used for
            timestamps when no 'Timestamp' column is present.

    Returns:
        List of candles in row order

    Raises:
        ValueError: If a required OHLC column is missing
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in data.columns]
    if missing:
        raise ValueError(f"Missing required OHLC columns: {missing}")

    if data.empty:
        return []

    if 'Timestamp' in data.columns:
        timestamps = data['Timestamp'].astype(float).to_numpy()
    elif isinstance(data.index, pd.DatetimeIndex):
        # Epoch milliseconds
        timestamps = np.array([ts.timestamp() * 1000 for ts in data.index])
    else:
        timestamps = np.zeros(len(data))

    volumes = data['Volume'].to_numpy() if 'Volume' in data.columns else [None] * len(data)

    candles = []
    for row, timestamp, volume in zip(data[REQUIRED_COLUMNS].itertuples(index=False), timestamps, volumes):
        candles.append(Candle(
            open=float(row.Open),
            high=float(row.High),
            low=float(row.Low),
            close=float(row.Close),
            timestamp=float(timestamp),
            volume=None if volume is None or pd.isna(volume) else float(volume),
        ))
    return candles


def candles_to_dataframe(candles: Sequence[Candle]) -> pd.DataFrame:
    """Convert candles to an OHLCV DataFrame with a 'Timestamp' column."""
    columns = ['Timestamp', 'Open', 'High', 'Low', 'Close', 'Volume']
    rows = [
        {
            'Timestamp': c.timestamp,
            'Open': c.open,
            'High': c.high,
            'Low': c.low,
            'Close': c.close,
            'Volume': np.nan if c.volume is None else c.volume,
        }
        for c in candles
    ]
    return pd.DataFrame(rows, columns=columns)


def candles_from_records(records: Iterable[Dict[str, Any]]) -> List[Candle]:
    """
    Build candles from plain dict records, e.g. a JSON data feed.

    Records are validated with CandleRecord first, so malformed input raises
    pydantic.ValidationError instead of producing silently wrong candles.
    """
    from candle_insight.models.validation_models import CandleRecord

    candles = [CandleRecord(**record).to_candle() for record in records]
    logger.debug(f"Loaded {len(candles)} candles from records")
    return candles
