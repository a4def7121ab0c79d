"""Prediction outcome tracking and accuracy statistics.

This module keeps a registry of outstanding forecasts and scores each one
once its horizon of candles has elapsed:
- Registration of forecasts anchored at a candle index
- Resolution against realized close-to-close price movement
- Rolling accuracy statistics, overall and per pattern
- Learning summary of recent performance

Forecasts and results are retained for a fixed wall-clock window; the
sweep runs whenever a new forecast is registered.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .candlestick_patterns import CandlestickDirection

logger = logging.getLogger(__name__)

DEFAULT_OUTCOME_THRESHOLD = 0.015
DEFAULT_RETENTION = timedelta(hours=1)


@dataclass
class TrackedPrediction:
    """A registered forecast awaiting (or past) evaluation."""
    id: str
    pattern_name: str
    direction: CandlestickDirection
    probability: float
    horizon: int
    candle_index: int
    timestamp: datetime
    evaluated: bool = False

    @property
    def target_index(self) -> int:
        return self.candle_index + self.horizon


@dataclass(frozen=True)
class PredictionResult:
    """Outcome of a single forecast, produced exactly once."""
    prediction_id: str
    success: bool
    actual_outcome: CandlestickDirection
    accuracy: float
    evaluated_at: datetime

    def to_dict(self) -> Dict:
        return {
            'prediction_id': self.prediction_id,
            'success': self.success,
            'actual_outcome': self.actual_outcome.value,
            'accuracy': self.accuracy,
            'evaluated_at': self.evaluated_at.isoformat(),
        }


def determine_outcome(start_candle, end_candle,
                      threshold: float = DEFAULT_OUTCOME_THRESHOLD) -> CandlestickDirection:
    """
    Classify the realized move between two candles.

    Args:
        start_candle: Candle the forecast was anchored at
        end_candle: Candle at the end of the horizon
        threshold: Relative close-to-close change needed to call a direction

    Returns:
        BULLISH above +threshold, BEARISH below -threshold, NEUTRAL otherwise
    """
    if start_candle.close <= 0:
        logger.warning(f"Non-positive start close {start_candle.close}, treating move as neutral")
        return CandlestickDirection.NEUTRAL

    price_change = (end_candle.close - start_candle.close) / start_candle.close

    if price_change > threshold:
        return CandlestickDirection.BULLISH
    if price_change < -threshold:
        return CandlestickDirection.BEARISH
    return CandlestickDirection.NEUTRAL


class PredictionTracker:
    """Tracks forecasts until their horizon elapses and scores them.

    Duplicate ids are not rejected. When ids collide, per-pattern statistics
    join each prediction to the most recently recorded result for that id.
    """

    def __init__(self,
                 retention: timedelta = DEFAULT_RETENTION,
                 outcome_threshold: float = DEFAULT_OUTCOME_THRESHOLD,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Initialize prediction tracker.

        Args:
            retention: How long predictions and results are kept
            outcome_threshold: Relative price change that counts as a directional move
            clock: Wall-clock source, injectable for tests
        """
        self.retention = retention
        self.outcome_threshold = outcome_threshold
        self._clock = clock
        self._predictions: List[TrackedPrediction] = []
        self._results: List[PredictionResult] = []
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, clock: Callable[[], datetime] = datetime.now) -> "PredictionTracker":
        """Build a tracker configured from application settings."""
        from candle_insight.config import TrackerConfig

        return cls(
            retention=TrackerConfig.get_retention(),
            outcome_threshold=TrackerConfig.get_outcome_threshold(),
            clock=clock,
        )

    def add_prediction(self, id: str, pattern_name: str,
                       direction: Union[CandlestickDirection, str],
                       probability: float, horizon: int, candle_index: int) -> None:
        """
        Register a new forecast for later evaluation.

        Args:
            id: Caller-supplied identifier (uniqueness is not checked)
            pattern_name: Label of the pattern or model behind the forecast
            direction: Forecast direction
            probability: Forecast probability, expected in [0, 1]
            horizon: Number of candles after which the forecast is scored
            candle_index: Index of the anchor candle in the caller's sequence
        """
        tracked = TrackedPrediction(
            id=id,
            pattern_name=pattern_name,
            direction=CandlestickDirection(direction),
            probability=probability,
            horizon=horizon,
            candle_index=candle_index,
            timestamp=self._clock(),
        )

        with self._lock:
            self._predictions.append(tracked)
            self._clean_old_predictions()

        logger.debug(f"Registered prediction {id} ({pattern_name}, {tracked.direction.value}, "
                     f"horizon={horizon}, anchor={candle_index})")

    def evaluate_predictions(self, candles: Sequence) -> List[PredictionResult]:
        """
        Score every pending prediction whose horizon has elapsed.

        Args:
            candles: Full candle sequence as currently known

        Returns:
            Results resolved by this call only
        """
        new_results: List[PredictionResult] = []

        with self._lock:
            for prediction in self._predictions:
                if prediction.evaluated:
                    continue

                target_index = prediction.target_index
                if prediction.candle_index < 0 or target_index >= len(candles):
                    continue

                start_candle = candles[prediction.candle_index]
                end_candle = candles[target_index]

                actual_outcome = determine_outcome(start_candle, end_candle, self.outcome_threshold)
                success = prediction.direction == actual_outcome
                accuracy = prediction.probability if success else 1 - prediction.probability

                result = PredictionResult(
                    prediction_id=prediction.id,
                    success=success,
                    actual_outcome=actual_outcome,
                    accuracy=accuracy,
                    evaluated_at=self._clock(),
                )

                self._results.append(result)
                new_results.append(result)
                prediction.evaluated = True

        if new_results:
            logger.info(f"Evaluated {len(new_results)} predictions against {len(candles)} candles")

        return new_results

    def get_accuracy_stats(self) -> Dict:
        """
        Aggregate accuracy over all retained results.

        Returns:
            Dictionary with total_predictions, success_rate, average_accuracy
            and pattern_stats ({pattern: {total, success, accuracy}})
        """
        with self._lock:
            if not self._results:
                return {
                    'total_predictions': 0,
                    'success_rate': 0.0,
                    'average_accuracy': 0.0,
                    'pattern_stats': {}
                }

            successful = len([r for r in self._results if r.success])
            success_rate = successful / len(self._results)
            average_accuracy = float(np.mean([r.accuracy for r in self._results]))

            results_by_id = {r.prediction_id: r for r in self._results}
            pattern_stats: Dict[str, Dict] = {}

            for prediction in self._predictions:
                if not prediction.evaluated:
                    continue
                result = results_by_id.get(prediction.id)
                if result is None:
                    continue

                stats = pattern_stats.setdefault(
                    prediction.pattern_name, {'total': 0, 'success': 0, 'accuracy': 0.0}
                )
                stats['total'] += 1
                if result.success:
                    stats['success'] += 1
                stats['accuracy'] += result.accuracy

            for stats in pattern_stats.values():
                stats['accuracy'] = stats['accuracy'] / stats['total']

            return {
                'total_predictions': len(self._results),
                'success_rate': success_rate,
                'average_accuracy': average_accuracy,
                'pattern_stats': pattern_stats
            }

    def get_recent_results(self, count: Optional[int] = None) -> List[PredictionResult]:
        """Return the most recently resolved results, newest first."""
        if count is None:
            from candle_insight.config import TrackerConfig
            count = TrackerConfig.get_recent_results_count()
        if count <= 0:
            return []

        with self._lock:
            # Later appends win ties on evaluated_at
            ordered = sorted(reversed(self._results), key=lambda r: r.evaluated_at, reverse=True)
        return ordered[:count]

    def get_pending_predictions(self) -> List[TrackedPrediction]:
        """Return copies of predictions still waiting for their horizon."""
        with self._lock:
            return [replace(p) for p in self._predictions if not p.evaluated]

    def get_predictions(self) -> List[TrackedPrediction]:
        """Return copies of all retained predictions, evaluated or not, in registration order."""
        with self._lock:
            return [replace(p) for p in self._predictions]

    def get_results(self) -> List[PredictionResult]:
        """Return all retained results in evaluation order."""
        with self._lock:
            return list(self._results)

    def get_learning_summary(self, recent_window: int = 10) -> Dict:
        """
        Summarize how forecasts have performed, overall and per pattern.

        Args:
            recent_window: Number of latest results used for recent accuracy

        Returns:
            Dictionary with totals, per-pattern hit rates, recent accuracy,
            up to three improvement notes and a 0-100 learning progress
        """
        with self._lock:
            results = list(self._results)
            names_by_id = {p.id: p.pattern_name for p in self._predictions if p.evaluated}

        total = len(results)
        successful = len([r for r in results if r.success])
        accuracy_rate = successful / total if total > 0 else 0.0

        pattern_counts: Dict[str, Dict[str, int]] = {}
        for result in results:
            name = names_by_id.get(result.prediction_id)
            if name is None:
                continue
            counts = pattern_counts.setdefault(name, {'success': 0, 'total': 0})
            counts['total'] += 1
            if result.success:
                counts['success'] += 1

        pattern_accuracy = {
            name: counts['success'] / counts['total']
            for name, counts in pattern_counts.items()
        }

        recent = results[-recent_window:] if recent_window > 0 else []
        recent_accuracy = len([r for r in recent if r.success]) / len(recent) if recent else 0.0

        improvements = []
        if recent_accuracy > accuracy_rate + 0.1:
            improvements.append("Significant improvement in recent predictions")

        for name, accuracy in pattern_accuracy.items():
            if accuracy < 0.4 and pattern_counts[name]['total'] >= 3:
                improvements.append(f"Adjusting {name} forecasts (low accuracy: {accuracy:.0%})")
            elif accuracy > 0.8 and pattern_counts[name]['total'] >= 5:
                improvements.append(f"{name} forecasts performing well (accuracy: {accuracy:.0%})")

        return {
            'total_predictions': total,
            'successful_predictions': successful,
            'accuracy_rate': accuracy_rate,
            'pattern_accuracy': pattern_accuracy,
            'recent_accuracy': recent_accuracy,
            'recent_improvements': improvements[:3],
            'learning_progress': min(total * 2, 100)
        }

    def reset(self) -> None:
        """Drop all predictions and results."""
        with self._lock:
            self._predictions = []
            self._results = []

    def _clean_old_predictions(self) -> None:
        """Prune predictions and results older than the retention window. Caller holds the lock."""
        cutoff = self._clock() - self.retention
        before = len(self._predictions), len(self._results)

        self._predictions = [p for p in self._predictions if p.timestamp > cutoff]
        self._results = [r for r in self._results if r.evaluated_at > cutoff]

        pruned_predictions = before[0] - len(self._predictions)
        pruned_results = before[1] - len(self._results)
        if pruned_predictions or pruned_results:
            logger.info(f"Pruned {pruned_predictions} predictions and {pruned_results} results "
                        f"older than {self.retention}")


def describe_accuracy(stats: Dict) -> str:
    """Produce a one-line insight from get_accuracy_stats() output."""
    success_rate = stats.get('success_rate', 0.0)
    total = stats.get('total_predictions', 0)

    if success_rate > 0.7:
        return f"Forecasts are performing well with a {success_rate:.0%} success rate."
    if success_rate > 0.5:
        return f"Forecasts are improving with a {success_rate:.0%} success rate."
    if total > 5:
        return f"Forecasts are being recalibrated. Current success rate: {success_rate:.0%}."
    return ""
