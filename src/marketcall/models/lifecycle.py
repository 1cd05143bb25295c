from __future__ import annotations

from enum import StrEnum

from marketcall.models.prediction import PredictionRecord


class PredictionState(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


def all_settled(record: PredictionRecord) -> bool:
    """True when every predicted instrument carries an actual change."""
    if not record.predictions:
        return False
    return all(p.actual_change is not None for p in record.predictions.values())


def state_of(record: PredictionRecord) -> PredictionState:
    return PredictionState.CONFIRMED if record.is_confirmed else PredictionState.PENDING
