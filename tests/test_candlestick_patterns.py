"""Test suite for candlestick pattern detection.

Covers each detector's thresholds and fixed confidences, degenerate input
handling, detection order and determinism over the sample series.
"""

import math
from dataclasses import FrozenInstanceError

import numpy as np
import pandas as pd
import pytest

from candle_insight.core.candlestick_patterns import (
    Candle, CandlestickAnalyzer, CandlestickDirection, CandlestickPatternType,
    DETECTION_ORDER, Pattern, detect_patterns, filter_patterns, patterns_to_dataframe
)
from candle_insight.utils.sample_data import generate_sample_candles


def names(patterns):
    return [p.name for p in patterns]


class TestSingleCandlePatterns:
    """Test cases for doji, hammer and shooting star."""

    def setup_method(self):
        """Set up test fixtures."""
        self.analyzer = CandlestickAnalyzer()

    def test_analyzer_initialization(self):
        """Test default thresholds."""
        assert self.analyzer.doji_body_ratio == 0.10
        assert self.analyzer.small_body_ratio == 0.30
        assert self.analyzer.harami_body_ratio == 0.70
        assert self.analyzer.engulfing_confidence == 0.8
        assert self.analyzer.harami_confidence == 0.6
        assert self.analyzer.star_confidence == 0.9

    def test_flat_body_doji_has_full_confidence(self):
        """Test open == close doji yields confidence 1.0."""
        patterns = self.analyzer.detect_patterns([Candle(open=50, high=51, low=49, close=50, timestamp=0)])

        assert len(patterns) == 1
        doji = patterns[0]
        assert doji.name == CandlestickPatternType.DOJI
        assert doji.direction == CandlestickDirection.NEUTRAL
        assert doji.confidence == 1.0
        assert doji.candle_index == 0
        assert doji.start_index is None
        assert doji.end_index is None

    def test_doji_confidence_tracks_body_ratio(self):
        """Test doji confidence is one minus body/range."""
        patterns = self.analyzer.detect_patterns([Candle(open=100, high=102, low=98, close=100.2, timestamp=0)])

        doji = [p for p in patterns if p.name == CandlestickPatternType.DOJI]
        assert len(doji) == 1
        assert doji[0].confidence == pytest.approx(1 - 0.2 / 4)

    def test_body_at_threshold_is_not_doji(self):
        """Test a body of exactly 10% of the range is rejected."""
        patterns = self.analyzer.detect_patterns([Candle(open=100, high=105, low=95, close=101, timestamp=0)])

        assert CandlestickPatternType.DOJI not in names(patterns)

    def test_hammer_detection(self):
        """Test hammer with long lower shadow and short upper shadow."""
        candle = Candle(open=100, high=101.2, low=97.5, close=101, timestamp=0)
        patterns = self.analyzer.detect_patterns([candle])

        assert names(patterns) == [CandlestickPatternType.HAMMER]
        hammer = patterns[0]
        assert hammer.direction == CandlestickDirection.BULLISH
        assert hammer.confidence == pytest.approx(2.5 / 1 / 3)

    def test_hammer_confidence_is_capped(self):
        """Test hammer confidence never exceeds 1."""
        candle = Candle(open=100, high=101.2, low=90, close=101, timestamp=0)
        patterns = self.analyzer.detect_patterns([candle])

        hammer = [p for p in patterns if p.name == CandlestickPatternType.HAMMER]
        assert len(hammer) == 1
        assert hammer[0].confidence == 1.0

    def test_upper_shadow_too_long_is_not_hammer(self):
        """Test the worked example: upper shadow 0.5 is not below half a 0.5 body."""
        candle = Candle(open=92, high=93, low=88, close=92.5, timestamp=0)
        patterns = self.analyzer.detect_patterns([candle])

        assert CandlestickPatternType.HAMMER not in names(patterns)
        assert patterns == []

    def test_shooting_star_detection(self):
        """Test shooting star with long upper shadow and short lower shadow."""
        candle = Candle(open=101, high=103.5, low=99.8, close=100, timestamp=0)
        patterns = self.analyzer.detect_patterns([candle])

        assert names(patterns) == [CandlestickPatternType.SHOOTING_STAR]
        star = patterns[0]
        assert star.direction == CandlestickDirection.BEARISH
        assert star.confidence == pytest.approx(2.5 / 1 / 3)

    def test_zero_body_is_never_hammer_or_shooting_star(self):
        """Test zero-body candles only register as doji."""
        hammer_shape = Candle(open=100, high=100.1, low=95, close=100, timestamp=0)
        star_shape = Candle(open=100, high=105, low=99.9, close=100, timestamp=0)

        patterns = self.analyzer.detect_patterns([hammer_shape])
        assert names(patterns) == [CandlestickPatternType.DOJI]

        patterns = self.analyzer.detect_patterns([star_shape])
        assert names(patterns) == [CandlestickPatternType.DOJI]


class TestMultiCandlePatterns:
    """Test cases for engulfing, harami and star formations."""

    def setup_method(self):
        """Set up test fixtures."""
        self.analyzer = CandlestickAnalyzer()

    def test_bullish_engulfing(self):
        """Test bullish candle engulfing a bearish body."""
        candles = [
            Candle(open=10, high=10.5, low=8.5, close=9, timestamp=0),
            Candle(open=8.8, high=10.8, low=8.6, close=10.5, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.ENGULFING]
        engulfing = patterns[0]
        assert engulfing.direction == CandlestickDirection.BULLISH
        assert engulfing.confidence == 0.8
        assert engulfing.candle_index == 1
        assert (engulfing.start_index, engulfing.end_index) == (0, 1)
        assert engulfing.span == 2

    def test_bearish_engulfing(self):
        """Test bearish candle engulfing a bullish body."""
        candles = [
            Candle(open=9, high=10.5, low=8.5, close=10, timestamp=0),
            Candle(open=10.2, high=10.4, low=8.6, close=8.8, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.ENGULFING]
        assert patterns[0].direction == CandlestickDirection.BEARISH

    def test_engulfing_confidence_is_constant(self):
        """Test engulfing confidence ignores the size of the move."""
        small = [
            Candle(open=10, high=10.1, low=9.8, close=9.9, timestamp=0),
            Candle(open=9.85, high=10.2, low=9.8, close=10.05, timestamp=0),
        ]
        large = [
            Candle(open=10, high=10.1, low=5, close=5.5, timestamp=0),
            Candle(open=5, high=30, low=4.5, close=29, timestamp=0),
        ]

        for candles in (small, large):
            engulfing = [p for p in self.analyzer.detect_patterns(candles)
                         if p.name == CandlestickPatternType.ENGULFING]
            assert len(engulfing) == 1
            assert engulfing[0].confidence == 0.8

    def test_touching_bodies_are_not_engulfing(self):
        """Test engulfing requires strict containment."""
        candles = [
            Candle(open=10, high=10.5, low=8.5, close=9, timestamp=0),
            Candle(open=9, high=10.8, low=8.6, close=10.5, timestamp=0),
        ]

        assert CandlestickPatternType.ENGULFING not in names(self.analyzer.detect_patterns(candles))

    def test_bullish_harami_after_bearish_candle(self):
        """Test harami direction opposes the previous candle."""
        candles = [
            Candle(open=110, high=111, low=99, close=100, timestamp=0),
            Candle(open=103, high=106, low=102, close=105, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.HARAMI]
        harami = patterns[0]
        assert harami.direction == CandlestickDirection.BULLISH
        assert harami.confidence == 0.6
        assert (harami.start_index, harami.end_index) == (0, 1)

    def test_bearish_harami_after_bullish_candle(self):
        """Test harami following a bullish candle is bearish."""
        candles = [
            Candle(open=100, high=111, low=99, close=110, timestamp=0),
            Candle(open=105, high=106, low=102, close=103, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.HARAMI]
        assert patterns[0].direction == CandlestickDirection.BEARISH

    def test_harami_requires_much_smaller_body(self):
        """Test an inside body of 70% or more of the previous body is rejected."""
        candles = [
            Candle(open=110, high=111, low=99, close=100, timestamp=0),
            Candle(open=100.5, high=109.8, low=100.2, close=109.5, timestamp=0),
        ]

        assert CandlestickPatternType.HARAMI not in names(self.analyzer.detect_patterns(candles))

    def test_morning_star(self):
        """Test bearish, small, bullish three-candle reversal."""
        candles = [
            Candle(open=110, high=111, low=99, close=100, timestamp=0),
            Candle(open=100, high=101, low=98.5, close=99.5, timestamp=0),
            Candle(open=100, high=108, low=99.5, close=107, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.MORNING_STAR]
        star = patterns[0]
        assert star.direction == CandlestickDirection.BULLISH
        assert star.confidence == 0.9
        assert star.candle_index == 2
        assert (star.start_index, star.end_index) == (0, 2)
        assert star.span == 3

    def test_evening_star(self):
        """Test bullish, small, bearish three-candle reversal."""
        candles = [
            Candle(open=100, high=111, low=99, close=110, timestamp=0),
            Candle(open=110, high=111.5, low=109.5, close=110.5, timestamp=0),
            Candle(open=110.4, high=110.6, low=102.5, close=103, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.EVENING_STAR]
        assert patterns[0].direction == CandlestickDirection.BEARISH
        assert patterns[0].confidence == 0.9

    def test_weak_third_candle_is_not_star(self):
        """Test third candle must recover more than half the first body."""
        candles = [
            Candle(open=110, high=111, low=99, close=100, timestamp=0),
            Candle(open=100, high=101, low=98.5, close=99.5, timestamp=0),
            Candle(open=100, high=104, low=99.5, close=103, timestamp=0),
        ]

        assert CandlestickPatternType.MORNING_STAR not in names(self.analyzer.detect_patterns(candles))

    def test_one_candle_closes_several_patterns(self):
        """Test detectors are independent and emitted in detector order."""
        candles = [
            Candle(open=110, high=111, low=99, close=100, timestamp=0),
            Candle(open=100, high=101, low=98.5, close=99.5, timestamp=0),
            Candle(open=99, high=108, low=98.8, close=107, timestamp=0),
        ]
        patterns = self.analyzer.detect_patterns(candles)

        assert names(patterns) == [CandlestickPatternType.ENGULFING, CandlestickPatternType.MORNING_STAR]
        assert all(p.candle_index == 2 for p in patterns)


class TestDegenerateInput:
    """Test malformed and edge-case candle sequences."""

    def test_empty_sequence(self):
        """Test empty input returns no patterns."""
        assert detect_patterns([]) == []

    def test_numpy_object_array_input(self):
        """Test an object array of candles is scanned like a list."""
        candles = np.array([Candle(open=50, high=51, low=49, close=50, timestamp=0)] * 2, dtype=object)

        patterns = detect_patterns(candles)

        assert [(p.name, p.candle_index) for p in patterns] == [
            (CandlestickPatternType.DOJI, 0),
            (CandlestickPatternType.DOJI, 1),
        ]
        assert detect_patterns(np.array([], dtype=object)) == []

    def test_candle_requires_timestamp(self):
        """Test a candle cannot be built without its timestamp."""
        with pytest.raises(TypeError):
            Candle(open=50, high=51, low=49, close=50)

        assert Candle(50, 51, 49, 50, 1_700_000_000_000).volume is None

    def test_zero_range_candle(self):
        """Test a flat candle produces nothing."""
        assert detect_patterns([Candle(open=100, high=100, low=100, close=100, timestamp=0)]) == []

    def test_non_finite_prices_never_raise(self):
        """Test NaN and infinite prices are skipped."""
        candles = [
            Candle(open=float('nan'), high=101, low=99, close=100, timestamp=0),
            Candle(open=100, high=float('inf'), low=99, close=100, timestamp=0),
            Candle(open=50, high=51, low=49, close=50, timestamp=0),
        ]
        patterns = detect_patterns(candles)

        assert [(p.name, p.candle_index) for p in patterns] == [(CandlestickPatternType.DOJI, 2)]
        assert all(math.isfinite(p.confidence) for p in patterns)

    def test_non_candle_entries_are_skipped(self):
        """Test entries without OHLC attributes do not raise."""
        patterns = detect_patterns([None, Candle(open=50, high=51, low=49, close=50, timestamp=0), "bad"])

        assert [(p.name, p.candle_index) for p in patterns] == [(CandlestickPatternType.DOJI, 1)]

    def test_inverted_range_is_skipped(self):
        """Test high below low never yields a pattern."""
        assert detect_patterns([Candle(open=100, high=99, low=101, close=100, timestamp=0)]) == []


class TestSampleSeries:
    """Detection over the bundled sample series."""

    def setup_method(self):
        """Set up test fixtures."""
        self.candles = generate_sample_candles(end_timestamp=1_700_000_000_000, seed=7)

    def test_known_formations(self):
        """Test the formations embedded in the sample series are found."""
        found = {(p.name, p.direction, p.candle_index) for p in detect_patterns(self.candles)}

        assert (CandlestickPatternType.DOJI, CandlestickDirection.NEUTRAL, 3) in found
        assert (CandlestickPatternType.DOJI, CandlestickDirection.NEUTRAL, 8) in found
        assert (CandlestickPatternType.ENGULFING, CandlestickDirection.BEARISH, 10) in found
        assert (CandlestickPatternType.MORNING_STAR, CandlestickDirection.BULLISH, 13) in found
        assert (CandlestickPatternType.EVENING_STAR, CandlestickDirection.BEARISH, 19) in found

    def test_hammer_lookalike_is_rejected(self):
        """Test the sample hammer-like candle at index 4 is not a hammer."""
        patterns = detect_patterns(self.candles)

        assert not [p for p in patterns if p.candle_index == 4]

    def test_long_upper_shadow_sample_is_only_doji(self):
        """Test index 8 is a doji; its lower shadow is too long for a shooting star."""
        at_eight = [p.name for p in detect_patterns(self.candles) if p.candle_index == 8]

        assert at_eight == [CandlestickPatternType.DOJI]

    def test_detection_is_deterministic(self):
        """Test two passes produce identical output."""
        first = detect_patterns(self.candles)
        second = detect_patterns(self.candles)

        assert first == second

    def test_output_ordered_by_index_then_detector(self):
        """Test emission order."""
        patterns = detect_patterns(self.candles)
        keys = [(p.candle_index, DETECTION_ORDER.index(p.name)) for p in patterns]

        assert keys == sorted(keys)

    def test_confidence_bounds(self):
        """Test every confidence lies in [0, 1]."""
        for pattern in detect_patterns(self.candles):
            assert 0 <= pattern.confidence <= 1

    def test_overlapping_windows_re_emit(self):
        """Test growing the window re-emits earlier formations unchanged."""
        partial = detect_patterns(self.candles[:14])
        full = detect_patterns(self.candles)

        assert full[:len(partial)] == partial

    def test_patterns_are_immutable(self):
        """Test detected patterns cannot be modified."""
        pattern = detect_patterns(self.candles)[0]

        with pytest.raises(FrozenInstanceError):
            pattern.confidence = 0.1


class TestPatternHelpers:
    """Test filtering and tabular conversion."""

    def setup_method(self):
        """Set up test fixtures."""
        self.patterns = detect_patterns(generate_sample_candles(end_timestamp=0, seed=1))

    def test_filter_by_name(self):
        """Test name filter, including the 'all' selector."""
        dojis = filter_patterns(self.patterns, name='doji')

        assert dojis and all(p.name == CandlestickPatternType.DOJI for p in dojis)
        assert filter_patterns(self.patterns, name='all') == self.patterns

    def test_filter_by_direction_and_confidence(self):
        """Test direction and confidence filters combine."""
        strong_bullish = filter_patterns(self.patterns, direction='bullish', min_confidence=0.85)

        assert [p.name for p in strong_bullish] == [CandlestickPatternType.MORNING_STAR]

    def test_patterns_to_dataframe(self):
        """Test one row per pattern with plain string labels."""
        df = patterns_to_dataframe(self.patterns)

        assert isinstance(df, pd.DataFrame)
        assert len(df) == len(self.patterns)
        assert set(df['name']) <= {t.value for t in CandlestickPatternType}
        assert df.iloc[0]['name'] == self.patterns[0].name.value

    def test_empty_dataframe_has_columns(self):
        """Test empty input keeps the column layout."""
        df = patterns_to_dataframe([])

        assert df.empty
        assert 'confidence' in df.columns

    def test_to_dict(self):
        """Test dict form uses string values."""
        pattern = Pattern(
            name=CandlestickPatternType.HARAMI,
            direction=CandlestickDirection.BEARISH,
            confidence=0.6,
            candle_index=5,
            start_index=4,
            end_index=5,
        )
        data = pattern.to_dict()

        assert data['name'] == 'harami'
        assert data['direction'] == 'bearish'
        assert data['start_index'] == 4
