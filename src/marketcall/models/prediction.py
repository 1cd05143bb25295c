from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from marketcall.models.instrument import Instrument


@dataclass
class StockPrediction:
    previous_close: float
    predicted_change: float
    actual_change: float | None = None
    deviation: float | None = None

    @property
    def is_settled(self) -> bool:
        return self.actual_change is not None


@dataclass
class PredictionInput:
    previous_close: float
    predicted_change: float


@dataclass
class PredictionRecord:
    user_id: str
    date: date
    predictions: dict[Instrument, StockPrediction] = field(default_factory=dict)
    review_comment: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    confirmed_at: datetime | None = None

    def get(self, instrument: Instrument) -> StockPrediction | None:
        return self.predictions.get(instrument)

    @property
    def predicted_instruments(self) -> list[Instrument]:
        """Predicted instruments in catalogue order."""
        return [i for i in Instrument if i in self.predictions]

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None


@dataclass
class Profile:
    id: str
    name: str
    created_at: datetime | None = None


@dataclass
class StockStats:
    average_deviation: float = 0.0
    min_deviation: float = 0.0
    min_deviation_date: date | None = None
    max_deviation: float = 0.0
    max_deviation_date: date | None = None
    standard_deviation: float = 0.0
    direction_accuracy: float = 0.0
    total_predictions: int = 0
    confirmed_predictions: int = 0


@dataclass
class DailyDetail:
    date: date
    predicted: float
    actual: float | None
    deviation: float | None
