from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

from marketcall.errors import NotFoundError, PersistenceError, ValidationError
from marketcall.learning.lifecycle import apply_actuals, apply_edits, normalize_comment
from marketcall.models.instrument import Instrument
from marketcall.models.prediction import (
    PredictionInput,
    PredictionRecord,
    Profile,
    StockPrediction,
)
from marketcall.registry.db import Database
from marketcall.timing.clock import reference_today

logger = logging.getLogger(__name__)

PREDICTIONS = "marketcall.predictions"
PROFILES = "marketcall.profiles"


def _to_float(value: Decimal | float | None) -> float | None:
    return float(value) if value is not None else None


class Registry:
    """Query layer bridging prediction models and the marketcall schema.

    Every user-scoped statement filters on both the record id and the
    caller's user id, so a record owned by someone else behaves exactly
    like a missing one.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Per-user reads
    # ------------------------------------------------------------------

    def get_all(self, user_id: str) -> list[PredictionRecord]:
        """Return all of the user's records, newest date first."""
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE user_id = %s ORDER BY date DESC",
            (user_id,),
        )
        return [self._row_to_record(r) for r in rows]

    def get_by_id(self, user_id: str, record_id: str) -> PredictionRecord | None:
        key = self._parse_id(record_id)
        if key is None:
            return None
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE id = %s AND user_id = %s",
            (key, user_id),
        )
        return self._row_to_record(rows[0]) if rows else None

    def get_by_date(self, user_id: str, day: date) -> PredictionRecord | None:
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE user_id = %s AND date = %s",
            (user_id, day),
        )
        return self._row_to_record(rows[0]) if rows else None

    def get_today(self, user_id: str, today: date | None = None) -> PredictionRecord | None:
        return self.get_by_date(user_id, today or reference_today())

    def get_pending(self, user_id: str) -> list[PredictionRecord]:
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} "
            "WHERE user_id = %s AND confirmed_at IS NULL ORDER BY date DESC",
            (user_id,),
        )
        return [self._row_to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Per-user writes
    # ------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        inputs: dict[Instrument, PredictionInput],
        on_date: date | None = None,
    ) -> PredictionRecord:
        """Insert the user's record for ``on_date``.

        If a record already exists for that day it is returned unchanged.
        """
        if not inputs:
            raise ValidationError("At least one instrument must be predicted")

        on_date = on_date or reference_today()
        columns = ["user_id", "date"]
        params: list = [user_id, on_date]
        for instrument in Instrument:
            item = inputs.get(instrument)
            if item is None:
                continue
            columns += [f"{instrument}_previous_close", f"{instrument}_predicted_change"]
            params += [item.previous_close, item.predicted_change]

        placeholders = ", ".join(["%s"] * len(columns))
        rows = self._db.execute(
            f"INSERT INTO {PREDICTIONS} ({', '.join(columns)}) VALUES ({placeholders}) "
            "ON CONFLICT (user_id, date) DO NOTHING RETURNING *",
            tuple(params),
        )
        if rows:
            return self._row_to_record(rows[0])

        logger.info("Prediction for user %s on %s already exists, returning it", user_id, on_date)
        existing = self.get_by_date(user_id, on_date)
        if existing is None:
            raise PersistenceError(f"Conflicting prediction for {on_date} disappeared")
        return existing

    def set_actuals(
        self,
        user_id: str,
        record_id: str,
        actuals: dict[Instrument, float],
        now: datetime | None = None,
    ) -> PredictionRecord:
        """Record realized changes. Reads the current row right before writing."""
        current = self._require(user_id, record_id)
        return self._write_outcome(apply_actuals(current, actuals, now))

    def edit(
        self,
        user_id: str,
        record_id: str,
        edits: dict[Instrument, dict[str, float | None]],
        now: datetime | None = None,
    ) -> PredictionRecord:
        current = self._require(user_id, record_id)
        return self._write_outcome(apply_edits(current, edits, now))

    def save_comment(self, user_id: str, record_id: str, text: str | None) -> PredictionRecord:
        key = self._parse_id(record_id)
        rows = []
        if key is not None:
            rows = self._db.execute(
                f"UPDATE {PREDICTIONS} SET review_comment = %s "
                "WHERE id = %s AND user_id = %s RETURNING *",
                (normalize_comment(text), key, user_id),
            )
        if not rows:
            raise NotFoundError(f"Prediction {record_id} not found")
        return self._row_to_record(rows[0])

    def delete(self, user_id: str, record_id: str) -> bool:
        key = self._parse_id(record_id)
        if key is None:
            return False
        rows = self._db.execute(
            f"DELETE FROM {PREDICTIONS} WHERE id = %s AND user_id = %s RETURNING id",
            (key, user_id),
        )
        return bool(rows)

    # ------------------------------------------------------------------
    # Cross-user reads (sweep and leaderboard)
    # ------------------------------------------------------------------

    def get_all_pending(self) -> list[PredictionRecord]:
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE confirmed_at IS NULL ORDER BY date, user_id"
        )
        return [self._row_to_record(r) for r in rows]

    def count_pending(self) -> int:
        rows = self._db.execute(
            f"SELECT COUNT(*) AS n FROM {PREDICTIONS} WHERE confirmed_at IS NULL"
        )
        return int(rows[0]["n"]) if rows else 0

    def get_confirmed(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PredictionRecord]:
        """Confirmed records across all users, optionally limited to [start, end]."""
        conditions = ["confirmed_at IS NOT NULL"]
        params: list = []
        if start is not None:
            conditions.append("date >= %s")
            params.append(start)
        if end is not None:
            conditions.append("date <= %s")
            params.append(end)

        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE {' AND '.join(conditions)} "
            "ORDER BY date DESC",
            tuple(params),
        )
        return [self._row_to_record(r) for r in rows]

    def get_records_on_date(self, day: date) -> list[PredictionRecord]:
        rows = self._db.execute(
            f"SELECT * FROM {PREDICTIONS} WHERE date = %s ORDER BY created_at",
            (day,),
        )
        return [self._row_to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profiles(self) -> list[Profile]:
        rows = self._db.execute(
            f"SELECT id, name, created_at FROM {PROFILES} ORDER BY created_at DESC"
        )
        return [Profile(id=r["id"], name=r["name"], created_at=r["created_at"]) for r in rows]

    def upsert_profile(self, user_id: str, name: str) -> Profile:
        name = name.strip()
        if not name:
            raise ValidationError("Display name must not be empty")
        rows = self._db.execute(
            f"INSERT INTO {PROFILES} (id, name) VALUES (%s, %s) "
            "ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name "
            "RETURNING id, name, created_at",
            (user_id, name),
        )
        r = rows[0]
        return Profile(id=r["id"], name=r["name"], created_at=r["created_at"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, user_id: str, record_id: str) -> PredictionRecord:
        record = self.get_by_id(user_id, record_id)
        if record is None:
            raise NotFoundError(f"Prediction {record_id} not found")
        return record

    def _write_outcome(self, record: PredictionRecord) -> PredictionRecord:
        """Persist predicted/actual/deviation columns and confirmed_at in one statement."""
        assignments: list[str] = []
        params: list = []
        for instrument in record.predicted_instruments:
            pred = record.predictions[instrument]
            assignments += [
                f"{instrument}_predicted_change = %s",
                f"{instrument}_actual_change = %s",
                f"{instrument}_deviation = %s",
            ]
            params += [pred.predicted_change, pred.actual_change, pred.deviation]
        assignments.append("confirmed_at = %s")
        params += [record.confirmed_at, record.id, record.user_id]

        rows = self._db.execute(
            f"UPDATE {PREDICTIONS} SET {', '.join(assignments)} "
            "WHERE id = %s AND user_id = %s RETURNING *",
            tuple(params),
        )
        if not rows:
            raise NotFoundError(f"Prediction {record.id} not found")
        return self._row_to_record(rows[0])

    @staticmethod
    def _parse_id(record_id: str) -> str | None:
        try:
            return str(uuid.UUID(str(record_id)))
        except ValueError:
            return None

    @staticmethod
    def _row_to_record(r: dict) -> PredictionRecord:
        predictions: dict[Instrument, StockPrediction] = {}
        for instrument in Instrument:
            predicted = r.get(f"{instrument}_predicted_change")
            if predicted is None:
                continue
            predictions[instrument] = StockPrediction(
                previous_close=_to_float(r.get(f"{instrument}_previous_close")) or 0.0,
                predicted_change=float(predicted),
                actual_change=_to_float(r.get(f"{instrument}_actual_change")),
                deviation=_to_float(r.get(f"{instrument}_deviation")),
            )
        return PredictionRecord(
            id=str(r["id"]),
            user_id=r["user_id"],
            date=r["date"],
            predictions=predictions,
            review_comment=r.get("review_comment"),
            created_at=r.get("created_at"),
            confirmed_at=r.get("confirmed_at"),
        )
