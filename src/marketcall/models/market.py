from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from marketcall.models.instrument import Instrument


@dataclass
class Quote:
    instrument: Instrument
    symbol: str
    current_price: float
    previous_close: float | None
    as_of: date
    fetched_at: datetime

    @property
    def change(self) -> float | None:
        if self.previous_close is None:
            return None
        return self.current_price - self.previous_close

    @property
    def change_percent(self) -> float | None:
        # No previous close means the quote is incomplete; never fall back to 0%.
        if not self.previous_close:
            return None
        return (self.current_price - self.previous_close) / self.previous_close * 100

    @property
    def is_complete(self) -> bool:
        return self.change_percent is not None


@dataclass
class PricePoint:
    timestamp: datetime
    price: float
