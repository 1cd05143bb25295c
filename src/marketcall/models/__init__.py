from __future__ import annotations

from marketcall.models.instrument import (
    INSTRUMENT_INFO,
    DeviationThresholds,
    Instrument,
    InstrumentInfo,
)
from marketcall.models.lifecycle import (
    PredictionState,
    all_settled,
    state_of,
)
from marketcall.models.market import PricePoint, Quote
from marketcall.models.prediction import (
    DailyDetail,
    PredictionInput,
    PredictionRecord,
    Profile,
    StockPrediction,
    StockStats,
)

__all__ = [
    # instrument
    "Instrument",
    "InstrumentInfo",
    "DeviationThresholds",
    "INSTRUMENT_INFO",
    # prediction
    "StockPrediction",
    "PredictionInput",
    "PredictionRecord",
    "Profile",
    "StockStats",
    "DailyDetail",
    # market
    "Quote",
    "PricePoint",
    # lifecycle
    "PredictionState",
    "all_settled",
    "state_of",
]
