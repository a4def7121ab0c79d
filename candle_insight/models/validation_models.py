from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator

from candle_insight.core.candlestick_patterns import Candle


# ------------------------------------------------------------
# Input Validation
# ------------------------------------------------------------

# Candle record from a live feed or sample generator
class CandleRecord(BaseModel):
    open: float = Field(..., gt=0)
    high: float = Field(..., gt=0)
    low: float = Field(..., gt=0)
    close: float = Field(..., gt=0)
    timestamp: float = Field(..., ge=0)
    volume: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_price_ordering(self):
        """Validate low <= min(open, close) <= max(open, close) <= high."""
        if not self.low <= min(self.open, self.close):
            raise ValueError("low must not exceed open or close")
        if not max(self.open, self.close) <= self.high:
            raise ValueError("high must not be below open or close")
        return self

    def to_candle(self) -> Candle:
        return Candle(
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            timestamp=self.timestamp,
            volume=self.volume,
        )


# Forecast registration request
class PredictionRequest(BaseModel):
    id: str = Field(..., min_length=1)
    pattern_name: str = Field(..., min_length=1)
    direction: str = Field(..., pattern="^(bullish|bearish|neutral)$")
    probability: float = Field(..., ge=0, le=1)
    horizon: int = Field(..., gt=0)
    candle_index: int = Field(..., ge=0)


# ------------------------------------------------------------
# Output Models
# ------------------------------------------------------------

class PatternStatsModel(BaseModel):
    total: int = Field(..., ge=0)
    success: int = Field(..., ge=0)
    accuracy: float


class AccuracyStatsModel(BaseModel):
    total_predictions: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0, le=1)
    average_accuracy: float
    pattern_stats: Dict[str, PatternStatsModel] = Field(default_factory=dict)
