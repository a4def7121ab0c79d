"""Deterministic forecasters and the engine that feeds them to the tracker.

Each forecaster looks at the candle sequence (and optionally the patterns
detected in it) and returns at most one Forecast. Forecasters are pure; the
PredictionEngine is the only piece that touches a PredictionTracker.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .candlestick_patterns import CandlestickDirection, Pattern, detect_patterns
from .prediction_tracker import PredictionResult, PredictionTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Forecast:
    """A directional call over the next `horizon` candles."""
    pattern_name: str
    direction: CandlestickDirection
    probability: float
    horizon: int
    confidence: float
    reasoning: str


class Forecaster(ABC):
    """Base interface for anything that turns candles into a Forecast."""

    name: str = "forecaster"

    @abstractmethod
    def forecast(self, candles: Sequence, patterns: Sequence[Pattern]) -> Optional[Forecast]:
        """Return a forecast, or None when there is nothing to say."""
        raise NotImplementedError


class PatternContinuationForecaster(Forecaster):
    """Projects the most recent detected pattern forward."""

    name = "pattern_continuation"

    def __init__(self, horizon: int = 3, lookback: int = 3):
        self.horizon = horizon
        self.lookback = lookback

    def forecast(self, candles: Sequence, patterns: Sequence[Pattern]) -> Optional[Forecast]:
        recent_patterns = list(patterns)[-self.lookback:]
        if not recent_patterns:
            return None

        last_pattern = recent_patterns[-1]
        return Forecast(
            pattern_name=f"continuation_{last_pattern.name.value}",
            direction=last_pattern.direction,
            probability=0.75 + 0.2 * last_pattern.confidence,
            horizon=self.horizon,
            confidence=last_pattern.confidence * 0.9,
            reasoning=f"Based on the strength of the detected {last_pattern.name.value} pattern",
        )


class MarketMomentumForecaster(Forecaster):
    """Calls the direction of the majority of recent candles."""

    name = "market_momentum"

    def __init__(self, window: int = 5, horizon: int = 3):
        self.window = window
        self.horizon = horizon

    def forecast(self, candles: Sequence, patterns: Sequence[Pattern]) -> Optional[Forecast]:
        if len(candles) < self.window:
            return self._neutral("Insufficient data for momentum analysis")

        recent_candles = candles[-self.window:]
        bullish_candles = len([c for c in recent_candles if c.close > c.open])
        bearish_candles = len([c for c in recent_candles if c.close < c.open])

        if bullish_candles > bearish_candles:
            return Forecast(
                pattern_name=self.name,
                direction=CandlestickDirection.BULLISH,
                probability=0.6 + (bullish_candles / self.window) * 0.3,
                horizon=self.horizon,
                confidence=0.65,
                reasoning=f"{bullish_candles} of {self.window} recent candles are bullish - positive momentum",
            )
        if bearish_candles > bullish_candles:
            return Forecast(
                pattern_name=self.name,
                direction=CandlestickDirection.BEARISH,
                probability=0.6 + (bearish_candles / self.window) * 0.3,
                horizon=self.horizon,
                confidence=0.65,
                reasoning=f"{bearish_candles} of {self.window} recent candles are bearish - negative momentum",
            )
        return self._neutral("Bullish and bearish candles balanced - neutral momentum")

    def _neutral(self, reasoning: str) -> Forecast:
        return Forecast(
            pattern_name=self.name,
            direction=CandlestickDirection.NEUTRAL,
            probability=0.5,
            horizon=self.horizon,
            confidence=0.65,
            reasoning=reasoning,
        )


class VolumeForecaster(Forecaster):
    """Follows the last candle when its volume spikes above the recent average."""

    name = "volume_analysis"

    def __init__(self, window: int = 3, spike_ratio: float = 1.5, horizon: int = 2):
        self.window = window
        self.spike_ratio = spike_ratio
        self.horizon = horizon

    def forecast(self, candles: Sequence, patterns: Sequence[Pattern]) -> Optional[Forecast]:
        if len(candles) < self.window:
            return self._neutral(0.5, "Insufficient volume data")

        recent_candles = candles[-self.window:]
        volumes = [c.volume or 0 for c in recent_candles]
        avg_volume = float(np.mean(volumes))
        if avg_volume <= 0:
            return self._neutral(0.45, "No volume reported - no directional confirmation")

        last_candle = recent_candles[-1]
        volume_ratio = volumes[-1] / avg_volume

        if volume_ratio > self.spike_ratio:
            direction = (CandlestickDirection.BULLISH if last_candle.close > last_candle.open
                         else CandlestickDirection.BEARISH)
            return Forecast(
                pattern_name=self.name,
                direction=direction,
                probability=0.7,
                horizon=self.horizon,
                confidence=0.55,
                reasoning=f"High volume ({volume_ratio:.0%} of average) confirms the direction",
            )
        return self._neutral(0.45, "Normal volume - no strong directional confirmation")

    def _neutral(self, probability: float, reasoning: str) -> Forecast:
        return Forecast(
            pattern_name=self.name,
            direction=CandlestickDirection.NEUTRAL,
            probability=probability,
            horizon=self.horizon,
            confidence=0.55,
            reasoning=reasoning,
        )


def default_forecasters(horizon: Optional[int] = None) -> List[Forecaster]:
    """Standard forecaster set; horizon applies to the pattern continuation forecaster."""
    if horizon is None:
        from candle_insight.config import ForecastConfig
        horizon = ForecastConfig.get_default_horizon()

    return [
        PatternContinuationForecaster(horizon=horizon),
        MarketMomentumForecaster(),
        VolumeForecaster(),
    ]


def consensus_direction(forecasts: Sequence[Forecast]) -> CandlestickDirection:
    """Majority direction among bullish/bearish forecasts; ties are neutral."""
    bullish = len([f for f in forecasts if f.direction == CandlestickDirection.BULLISH])
    bearish = len([f for f in forecasts if f.direction == CandlestickDirection.BEARISH])

    if bullish > bearish:
        return CandlestickDirection.BULLISH
    if bearish > bullish:
        return CandlestickDirection.BEARISH
    return CandlestickDirection.NEUTRAL


class PredictionEngine:
    """Runs forecasters over a candle sequence and registers their output."""

    def __init__(self, tracker: PredictionTracker,
                 forecasters: Optional[List[Forecaster]] = None):
        self.tracker = tracker
        self.forecasters = forecasters if forecasters is not None else default_forecasters()
        self._run_count = 0

    def run(self, candles: Sequence, patterns: Optional[Sequence[Pattern]] = None,
            prefix: str = "pred") -> Tuple[List[Forecast], List[PredictionResult]]:
        """
        Resolve outstanding predictions, then forecast from the latest candle.

        Args:
            candles: Full candle sequence as currently known
            patterns: Patterns detected in candles (detected here when None)
            prefix: Prefix for generated prediction ids

        Returns:
            Tuple of (forecasts registered by this run, results resolved by this run)
        """
        resolved = self.tracker.evaluate_predictions(candles)
        if len(candles) == 0:
            return [], resolved

        if patterns is None:
            patterns = detect_patterns(candles)

        self._run_count += 1
        anchor = len(candles) - 1
        forecasts = []

        for position, forecaster in enumerate(self.forecasters):
            forecast = forecaster.forecast(candles, patterns)
            if forecast is None:
                continue

            self.tracker.add_prediction(
                id=f"{prefix}-{self._run_count}-{position}",
                pattern_name=forecast.pattern_name,
                direction=forecast.direction,
                probability=forecast.probability,
                horizon=forecast.horizon,
                candle_index=anchor,
            )
            forecasts.append(forecast)

        logger.info(f"Run {self._run_count}: registered {len(forecasts)} forecasts at candle {anchor}, "
                    f"resolved {len(resolved)} earlier predictions")
        return forecasts, resolved
