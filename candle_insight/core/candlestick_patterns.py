"""Candlestick pattern recognition for OHLC candle sequences.

This module implements detection algorithms for classic candlestick patterns:
- Single candlestick patterns (Doji, Hammer, Shooting Star)
- Two-candlestick patterns (Engulfing, Harami)
- Three-candlestick patterns (Morning Star, Evening Star)

Detection is a pure function of the candle sequence. Every detector runs
independently at every index, so one candle may close several formations.
Degenerate candles (zero range, zero body where a ratio divides by it,
non-finite prices) never produce a pattern and never raise.
"""

import logging
import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, List, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


class CandlestickPatternType(str, Enum):
    """Enumeration of supported candlestick patterns."""
    # Single candlestick patterns
    DOJI = "doji"
    HAMMER = "hammer"
    SHOOTING_STAR = "shooting_star"

    # Two candlestick patterns
    ENGULFING = "engulfing"
    HARAMI = "harami"

    # Three candlestick patterns
    MORNING_STAR = "morning_star"
    EVENING_STAR = "evening_star"


class CandlestickDirection(str, Enum):
    """Candlestick pattern direction classification."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Candle:
    """One OHLC(V) price bar."""
    open: float
    high: float
    low: float
    close: float
    timestamp: float
    volume: Optional[float] = None

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def total_range(self) -> float:
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open


@dataclass(frozen=True)
class Pattern:
    """A detected candlestick formation."""
    name: CandlestickPatternType
    direction: CandlestickDirection
    confidence: float
    candle_index: int
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    signal: str = ""
    description: str = ""

    @property
    def span(self) -> int:
        """Number of candles making up the formation."""
        if self.start_index is None or self.end_index is None:
            return 1
        return self.end_index - self.start_index + 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data['name'] = self.name.value
        data['direction'] = self.direction.value
        return data


# Pattern order within one candle index
DETECTION_ORDER = (
    CandlestickPatternType.DOJI,
    CandlestickPatternType.HAMMER,
    CandlestickPatternType.SHOOTING_STAR,
    CandlestickPatternType.ENGULFING,
    CandlestickPatternType.HARAMI,
    CandlestickPatternType.MORNING_STAR,
    CandlestickPatternType.EVENING_STAR,
)


def _is_well_formed(candle) -> bool:
    """Check that all OHLC values of a candle are finite numbers."""
    try:
        return all(math.isfinite(float(v)) for v in (candle.open, candle.high, candle.low, candle.close))
    except (TypeError, ValueError, AttributeError):
        return False


def _body(candle) -> float:
    return abs(candle.close - candle.open)


class CandlestickAnalyzer:
    """Detects candlestick patterns in a candle sequence.

    Thresholds are expressed as ratios of candle bodies and ranges. The
    defaults are the canonical values; they are exposed as attributes so the
    detectors read like the rules they implement.
    """

    def __init__(self,
                 doji_body_ratio: float = 0.10,
                 small_body_ratio: float = 0.30,
                 shadow_body_multiple: float = 2.0,
                 opposite_shadow_body_multiple: float = 0.5,
                 harami_body_ratio: float = 0.70,
                 star_body_ratio: float = 0.5,
                 engulfing_confidence: float = 0.8,
                 harami_confidence: float = 0.6,
                 star_confidence: float = 0.9):
        """
        Initialize candlestick analyzer.

        Args:
            doji_body_ratio: Maximum body/range ratio for a doji
            small_body_ratio: Maximum body/range ratio for hammer and shooting star
            shadow_body_multiple: Long shadow must exceed this multiple of the body
            opposite_shadow_body_multiple: Opposite shadow must stay below this multiple of the body
            harami_body_ratio: Inside body must be smaller than this share of the previous body
            star_body_ratio: Star middle/third body threshold as a share of the first body
            engulfing_confidence: Fixed confidence for engulfing patterns
            harami_confidence: Fixed confidence for harami patterns
            star_confidence: Fixed confidence for morning/evening stars
        """
        self.doji_body_ratio = doji_body_ratio
        self.small_body_ratio = small_body_ratio
        self.shadow_body_multiple = shadow_body_multiple
        self.opposite_shadow_body_multiple = opposite_shadow_body_multiple
        self.harami_body_ratio = harami_body_ratio
        self.star_body_ratio = star_body_ratio
        self.engulfing_confidence = engulfing_confidence
        self.harami_confidence = harami_confidence
        self.star_confidence = star_confidence

        self._detectors: List[Callable[[Sequence, int], Optional[Pattern]]] = [
            self._detect_doji,
            self._detect_hammer,
            self._detect_shooting_star,
            self._detect_engulfing,
            self._detect_harami,
            self._detect_morning_star,
            self._detect_evening_star,
        ]

    def detect_patterns(self, candles: Sequence) -> List[Pattern]:
        """
        Detect all candlestick patterns in the given candle sequence.

        Args:
            candles: Ordered sequence of candles (anything exposing
                open/high/low/close attributes)

        Returns:
            Patterns ordered by candle index, then by detector order
        """
        patterns: List[Pattern] = []
        if len(candles) == 0:
            return patterns

        for i in range(len(candles)):
            for detector in self._detectors:
                pattern = detector(candles, i)
                if pattern is not None:
                    patterns.append(pattern)

        logger.debug(f"Detected {len(patterns)} patterns over {len(candles)} candles")
        return patterns

    def detect_patterns_frame(self, data: pd.DataFrame) -> List[Pattern]:
        """Detect patterns in OHLCV data with columns ['Open', 'High', 'Low', 'Close', 'Volume']."""
        from candle_insight.utils.shared import candles_from_dataframe

        return self.detect_patterns(candles_from_dataframe(data))

    # Single candlestick patterns

    def _detect_doji(self, candles: Sequence, index: int) -> Optional[Pattern]:
        candle = candles[index]
        if not _is_well_formed(candle):
            return None

        total_range = candle.high - candle.low
        if total_range <= 0:
            return None

        body_ratio = _body(candle) / total_range
        if body_ratio >= self.doji_body_ratio:
            return None

        return Pattern(
            name=CandlestickPatternType.DOJI,
            direction=CandlestickDirection.NEUTRAL,
            confidence=1 - body_ratio,
            candle_index=index,
            signal="Market indecision - possible reversal",
            description="Doji shows balance between buyers and sellers",
        )

    def _detect_hammer(self, candles: Sequence, index: int) -> Optional[Pattern]:
        candle = candles[index]
        if not _is_well_formed(candle):
            return None

        body = _body(candle)
        total_range = candle.high - candle.low
        # Shadow/body ratios are undefined for a zero body
        if total_range <= 0 or body == 0:
            return None

        lower_shadow = min(candle.open, candle.close) - candle.low
        upper_shadow = candle.high - max(candle.open, candle.close)

        is_small_body = body / total_range < self.small_body_ratio
        is_long_lower_shadow = lower_shadow > body * self.shadow_body_multiple
        is_short_upper_shadow = upper_shadow < body * self.opposite_shadow_body_multiple

        if not (is_small_body and is_long_lower_shadow and is_short_upper_shadow):
            return None

        return Pattern(
            name=CandlestickPatternType.HAMMER,
            direction=CandlestickDirection.BULLISH,
            confidence=min(lower_shadow / body / 3, 1.0),
            candle_index=index,
            signal="Possible bullish reversal - consider buying",
            description="Hammer shows rejection of lower prices",
        )

    def _detect_shooting_star(self, candles: Sequence, index: int) -> Optional[Pattern]:
        candle = candles[index]
        if not _is_well_formed(candle):
            return None

        body = _body(candle)
        total_range = candle.high - candle.low
        if total_range <= 0 or body == 0:
            return None

        lower_shadow = min(candle.open, candle.close) - candle.low
        upper_shadow = candle.high - max(candle.open, candle.close)

        is_small_body = body / total_range < self.small_body_ratio
        is_long_upper_shadow = upper_shadow > body * self.shadow_body_multiple
        is_short_lower_shadow = lower_shadow < body * self.opposite_shadow_body_multiple

        if not (is_small_body and is_long_upper_shadow and is_short_lower_shadow):
            return None

        return Pattern(
            name=CandlestickPatternType.SHOOTING_STAR,
            direction=CandlestickDirection.BEARISH,
            confidence=min(upper_shadow / body / 3, 1.0),
            candle_index=index,
            signal="Possible bearish reversal - consider selling",
            description="Shooting star shows rejection of higher prices",
        )

    # Two candlestick patterns

    def _detect_engulfing(self, candles: Sequence, index: int) -> Optional[Pattern]:
        if index < 1:
            return None

        current = candles[index]
        previous = candles[index - 1]
        if not (_is_well_formed(current) and _is_well_formed(previous)):
            return None

        current_is_bullish = current.close > current.open
        previous_is_bullish = previous.close > previous.open

        if not previous_is_bullish and current_is_bullish:
            if current.open < previous.close and current.close > previous.open:
                return Pattern(
                    name=CandlestickPatternType.ENGULFING,
                    direction=CandlestickDirection.BULLISH,
                    confidence=self.engulfing_confidence,
                    candle_index=index,
                    start_index=index - 1,
                    end_index=index,
                    signal="Bullish engulfing - strong buy signal",
                    description="Bullish candle fully engulfs the previous bearish body",
                )

        if previous_is_bullish and not current_is_bullish:
            if current.open > previous.close and current.close < previous.open:
                return Pattern(
                    name=CandlestickPatternType.ENGULFING,
                    direction=CandlestickDirection.BEARISH,
                    confidence=self.engulfing_confidence,
                    candle_index=index,
                    start_index=index - 1,
                    end_index=index,
                    signal="Bearish engulfing - strong sell signal",
                    description="Bearish candle fully engulfs the previous bullish body",
                )

        return None

    def _detect_harami(self, candles: Sequence, index: int) -> Optional[Pattern]:
        if index < 1:
            return None

        current = candles[index]
        previous = candles[index - 1]
        if not (_is_well_formed(current) and _is_well_formed(previous)):
            return None

        is_inside_previous = (
            max(current.open, current.close) < max(previous.open, previous.close) and
            min(current.open, current.close) > min(previous.open, previous.close)
        )
        is_smaller_body = _body(current) < _body(previous) * self.harami_body_ratio

        if not (is_inside_previous and is_smaller_body):
            return None

        previous_is_bullish = previous.close > previous.open
        if previous_is_bullish:
            direction = CandlestickDirection.BEARISH
            signal = "Bearish harami - bullish momentum weakening"
        else:
            direction = CandlestickDirection.BULLISH
            signal = "Bullish harami - bearish momentum weakening"

        return Pattern(
            name=CandlestickPatternType.HARAMI,
            direction=direction,
            confidence=self.harami_confidence,
            candle_index=index,
            start_index=index - 1,
            end_index=index,
            signal=signal,
            description="Small candle inside the body of the previous candle",
        )

    # Three candlestick patterns

    def _star_bodies(self, candles: Sequence, index: int):
        """Return the three candles ending at index, or None if unusable."""
        if index < 2:
            return None
        first, second, third = candles[index - 2], candles[index - 1], candles[index]
        if not all(_is_well_formed(c) for c in (first, second, third)):
            return None
        return first, second, third

    def _detect_morning_star(self, candles: Sequence, index: int) -> Optional[Pattern]:
        window = self._star_bodies(candles, index)
        if window is None:
            return None
        first, second, third = window

        first_body = _body(first)
        first_is_bearish = first.close < first.open
        second_is_small = _body(second) < first_body * self.star_body_ratio
        third_is_bullish = third.close > third.open
        third_is_large = _body(third) > first_body * self.star_body_ratio

        if not (first_is_bearish and second_is_small and third_is_bullish and third_is_large):
            return None

        return Pattern(
            name=CandlestickPatternType.MORNING_STAR,
            direction=CandlestickDirection.BULLISH,
            confidence=self.star_confidence,
            candle_index=index,
            start_index=index - 2,
            end_index=index,
            signal="Morning star - strong buy signal",
            description="Three-candle bullish reversal pattern",
        )

    def _detect_evening_star(self, candles: Sequence, index: int) -> Optional[Pattern]:
        window = self._star_bodies(candles, index)
        if window is None:
            return None
        first, second, third = window

        first_body = _body(first)
        first_is_bullish = first.close > first.open
        second_is_small = _body(second) < first_body * self.star_body_ratio
        third_is_bearish = third.close < third.open
        third_is_large = _body(third) > first_body * self.star_body_ratio

        if not (first_is_bullish and second_is_small and third_is_bearish and third_is_large):
            return None

        return Pattern(
            name=CandlestickPatternType.EVENING_STAR,
            direction=CandlestickDirection.BEARISH,
            confidence=self.star_confidence,
            candle_index=index,
            start_index=index - 2,
            end_index=index,
            signal="Evening star - strong sell signal",
            description="Three-candle bearish reversal pattern",
        )


_default_analyzer = CandlestickAnalyzer()


def detect_patterns(candles: Sequence) -> List[Pattern]:
    """Detect candlestick patterns using the default thresholds."""
    return _default_analyzer.detect_patterns(candles)


def filter_patterns(patterns: Sequence[Pattern],
                    name: Optional[str] = None,
                    direction: Optional[str] = None,
                    min_confidence: Optional[float] = None) -> List[Pattern]:
    """
    Filter detected patterns by name, direction and minimum confidence.

    Args:
        patterns: Patterns to filter
        name: Pattern name to keep ('all' or None keeps every name)
        direction: Direction to keep (None keeps every direction)
        min_confidence: Minimum confidence to keep

    Returns:
        Filtered patterns, original order preserved
    """
    result = list(patterns)
    if name and name != 'all':
        result = [p for p in result if p.name == name]
    if direction:
        result = [p for p in result if p.direction == direction]
    if min_confidence is not None:
        result = [p for p in result if p.confidence >= min_confidence]
    return result


def patterns_to_dataframe(patterns: Sequence[Pattern]) -> pd.DataFrame:
    """Convert detected patterns into a DataFrame, one row per pattern."""
    columns = ['name', 'direction', 'confidence', 'candle_index',
               'start_index', 'end_index', 'signal', 'description']
    return pd.DataFrame([p.to_dict() for p in patterns], columns=columns)
