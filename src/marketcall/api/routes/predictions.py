"""Prediction endpoints: create, confirm, edit, comment, delete."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketcall.api.deps import get_current_user, get_prediction_manager, get_registry
from marketcall.api.routes.shared import record_to_dict
from marketcall.errors import NotFoundError
from marketcall.learning.predictions import PredictionManager
from marketcall.models.instrument import Instrument
from marketcall.models.prediction import PredictionInput
from marketcall.registry.queries import Registry

router = APIRouter()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InstrumentPrediction(_CamelModel):
    previous_close: float
    predicted_change: float


class CreatePredictionRequest(_CamelModel):
    predictions: dict[Instrument, InstrumentPrediction]


class ConfirmRequest(_CamelModel):
    actuals: dict[Instrument, float]


class InstrumentEdit(_CamelModel):
    predicted_change: float | None = None
    actual_change: float | None = None


class CommentRequest(_CamelModel):
    comment: str | None = None


@router.post("/predictions", status_code=201)
def create_prediction(
    body: CreatePredictionRequest,
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    """File today's prediction; resubmitting on the same day returns the existing record."""
    inputs = {
        instrument: PredictionInput(item.previous_close, item.predicted_change)
        for instrument, item in body.predictions.items()
    }
    record = manager.create_prediction(user_id, inputs)
    return record_to_dict(record)


@router.get("/predictions")
def list_predictions(
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    records = registry.get_all(user_id)
    return {"predictions": [record_to_dict(r) for r in records], "count": len(records)}


@router.get("/predictions/today")
def today_prediction(
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    record = registry.get_today(user_id)
    return {"prediction": record_to_dict(record) if record else None}


@router.get("/predictions/pending")
def pending_predictions(
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    records = registry.get_pending(user_id)
    return {"predictions": [record_to_dict(r) for r in records], "count": len(records)}


@router.get("/predictions/date/{day}")
def prediction_on_date(
    day: date,
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    record = registry.get_by_date(user_id, day)
    if record is None:
        raise NotFoundError(f"No prediction on {day.isoformat()}")
    return record_to_dict(record)


@router.post("/predictions/auto-confirm")
def auto_confirm(
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    """Confirm the caller's pending records whose markets have closed."""
    result = manager.auto_confirm_pending(user_id)
    return {
        "examined": result.examined,
        "confirmed": result.confirmed,
        "notReady": result.not_ready,
        "missingQuotes": result.missing_quotes,
        "failed": result.failed,
    }


@router.post("/predictions/{record_id}/confirm")
def confirm_prediction(
    record_id: str,
    body: ConfirmRequest,
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    record = manager.confirm(user_id, record_id, dict(body.actuals))
    return record_to_dict(record)


@router.post("/predictions/{record_id}/confirm-from-quotes")
def confirm_from_quotes(
    record_id: str,
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    record = manager.confirm_from_quotes(user_id, record_id)
    return record_to_dict(record)


@router.patch("/predictions/{record_id}")
def edit_prediction(
    record_id: str,
    body: dict[Instrument, InstrumentEdit],
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    """Partial edit. Only fields present in the body are changed; null clears an actual."""
    edits = {
        instrument: fields.model_dump(exclude_unset=True)
        for instrument, fields in body.items()
    }
    record = manager.edit(user_id, record_id, edits)
    return record_to_dict(record)


@router.put("/predictions/{record_id}/comment")
def save_comment(
    record_id: str,
    body: CommentRequest,
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> dict:
    record = manager.save_comment(user_id, record_id, body.comment)
    return record_to_dict(record)


@router.delete("/predictions/{record_id}", status_code=204)
def delete_prediction(
    record_id: str,
    user_id: str = Depends(get_current_user),
    manager: PredictionManager = Depends(get_prediction_manager),
) -> Response:
    if not manager.delete(user_id, record_id):
        raise NotFoundError(f"Prediction {record_id} not found")
    return Response(status_code=204)
