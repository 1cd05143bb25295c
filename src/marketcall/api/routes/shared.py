"""Shared serializers for API route handlers.

Responses use camelCase keys; dates and timestamps are ISO strings.
"""

from __future__ import annotations

from datetime import date, datetime

from marketcall.errors import NotFoundError
from marketcall.learning.stats import classify_deviation, is_direction_correct
from marketcall.models.instrument import INSTRUMENT_INFO, Instrument
from marketcall.models.lifecycle import state_of
from marketcall.models.market import Quote
from marketcall.models.prediction import PredictionRecord, StockStats


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_instrument(value: str) -> Instrument:
    try:
        return Instrument(value.lower())
    except ValueError:
        raise NotFoundError(f"Unknown instrument {value!r}") from None


def record_to_dict(record: PredictionRecord) -> dict:
    predictions: dict[str, dict] = {}
    for instrument in record.predicted_instruments:
        pred = record.predictions[instrument]
        settled = pred.actual_change is not None
        predictions[instrument] = {
            "previousClose": pred.previous_close,
            "predictedChange": pred.predicted_change,
            "actualChange": pred.actual_change,
            "deviation": pred.deviation,
            "directionCorrect": (
                is_direction_correct(pred.predicted_change, pred.actual_change) if settled else None
            ),
            "grade": (
                classify_deviation(pred.deviation, instrument) if pred.deviation is not None else None
            ),
        }
    return {
        "id": record.id,
        "userId": record.user_id,
        "date": _iso(record.date),
        "status": state_of(record),
        "predictions": predictions,
        "reviewComment": record.review_comment,
        "createdAt": _iso(record.created_at),
        "confirmedAt": _iso(record.confirmed_at),
    }


def stats_to_dict(stats: StockStats) -> dict:
    return {
        "averageDeviation": stats.average_deviation,
        "minDeviation": stats.min_deviation,
        "minDeviationDate": _iso(stats.min_deviation_date),
        "maxDeviation": stats.max_deviation,
        "maxDeviationDate": _iso(stats.max_deviation_date),
        "standardDeviation": stats.standard_deviation,
        "directionAccuracy": stats.direction_accuracy,
        "totalPredictions": stats.total_predictions,
        "confirmedPredictions": stats.confirmed_predictions,
    }


def quote_to_dict(quote: Quote) -> dict:
    info = INSTRUMENT_INFO[quote.instrument]
    return {
        "instrument": quote.instrument,
        "name": info.name,
        "symbol": quote.symbol,
        "currency": info.currency,
        "currentPrice": quote.current_price,
        "previousClose": quote.previous_close,
        "change": quote.change,
        "changePercent": quote.change_percent,
        "complete": quote.is_complete,
        "asOf": _iso(quote.as_of),
        "fetchedAt": _iso(quote.fetched_at),
    }
