"""Pure state transitions for prediction records.

Each function returns a new record and leaves its input untouched, so a
failed validation never leaves a half-updated record behind. Deviation and
confirmation are always derived from the post-transition values.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime

from marketcall.errors import ValidationError
from marketcall.learning.stats import calculate_deviation
from marketcall.models.instrument import Instrument
from marketcall.models.lifecycle import all_settled
from marketcall.models.prediction import PredictionInput, PredictionRecord, StockPrediction
from marketcall.timing.clock import utc_now

EDITABLE_FIELDS = frozenset({"predicted_change", "actual_change"})


def require_number(value: object, label: str) -> float:
    """Coerce ``value`` to a finite float or raise ValidationError."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} is required")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a finite number, got {value!r}")
    return number


def validate_inputs(inputs: dict[Instrument, PredictionInput]) -> dict[Instrument, PredictionInput]:
    """Check a creation payload: at least one instrument, finite numbers, positive close."""
    if not inputs:
        raise ValidationError("At least one instrument must be predicted")

    cleaned: dict[Instrument, PredictionInput] = {}
    for instrument in Instrument:
        item = inputs.get(instrument)
        if item is None:
            continue
        previous_close = require_number(item.previous_close, f"{instrument}.previous_close")
        if previous_close <= 0:
            raise ValidationError(f"{instrument}.previous_close must be positive")
        cleaned[instrument] = PredictionInput(
            previous_close=previous_close,
            predicted_change=require_number(item.predicted_change, f"{instrument}.predicted_change"),
        )
    return cleaned


def _confirmation_time(record: PredictionRecord, now: datetime | None) -> datetime | None:
    if not all_settled(record):
        return None
    # Keep the original timestamp if the record was already confirmed
    return record.confirmed_at or now or utc_now()


def _copy_predictions(record: PredictionRecord) -> dict[Instrument, StockPrediction]:
    return {i: replace(p) for i, p in record.predictions.items()}


def apply_actuals(
    record: PredictionRecord,
    actuals: dict[Instrument, float],
    now: datetime | None = None,
) -> PredictionRecord:
    """Attach realized changes for one or more predicted instruments.

    Confirmation is evaluated over the union of stored and supplied actuals.
    """
    if not actuals:
        raise ValidationError("No actual values supplied")

    predictions = _copy_predictions(record)
    for instrument, value in actuals.items():
        pred = predictions.get(instrument)
        if pred is None:
            raise ValidationError(f"{instrument} was not predicted on {record.date}")
        actual = require_number(value, f"{instrument}.actual_change")
        pred.actual_change = actual
        pred.deviation = calculate_deviation(pred.predicted_change, actual)

    updated = replace(record, predictions=predictions)
    updated.confirmed_at = _confirmation_time(updated, now)
    return updated


def apply_edits(
    record: PredictionRecord,
    edits: dict[Instrument, dict[str, float | None]],
    now: datetime | None = None,
) -> PredictionRecord:
    """Overwrite predicted and/or actual changes, then recompute derived fields.

    Only keys present in an instrument's edit dict are applied. Setting
    ``actual_change`` to None reopens a confirmed record.
    """
    predictions = _copy_predictions(record)

    for instrument, fields in edits.items():
        pred = predictions.get(instrument)
        if pred is None:
            raise ValidationError(f"{instrument} was not predicted on {record.date}")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields for {instrument}: {', '.join(sorted(unknown))}")

        if "predicted_change" in fields:
            pred.predicted_change = require_number(
                fields["predicted_change"], f"{instrument}.predicted_change"
            )
        if "actual_change" in fields:
            value = fields["actual_change"]
            pred.actual_change = (
                None if value is None else require_number(value, f"{instrument}.actual_change")
            )

    for pred in predictions.values():
        if pred.actual_change is None:
            pred.deviation = None
        else:
            pred.deviation = calculate_deviation(pred.predicted_change, pred.actual_change)

    updated = replace(record, predictions=predictions)
    updated.confirmed_at = _confirmation_time(updated, now)
    return updated


def normalize_comment(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None
