from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from marketcall.data.yfinance_client import YFinanceClient
from marketcall.errors import (
    MarketCallError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from marketcall.learning.lifecycle import require_number, validate_inputs
from marketcall.models.instrument import Instrument
from marketcall.models.prediction import PredictionInput, PredictionRecord
from marketcall.registry.queries import Registry
from marketcall.timing.clock import as_utc, reference_today
from marketcall.timing.market_hours import can_auto_confirm

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one automatic confirmation sweep."""

    examined: int = 0
    confirmed: list[str] = field(default_factory=list)
    not_ready: list[str] = field(default_factory=list)
    missing_quotes: list[str] = field(default_factory=list)
    already_processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class PredictionManager:
    """Handles the prediction lifecycle: creation, confirmation, edits."""

    def __init__(self, registry: Registry, quotes: YFinanceClient | None = None) -> None:
        self._registry = registry
        self._quotes = quotes

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_prediction(
        self,
        user_id: str,
        inputs: dict[Instrument, PredictionInput],
        now: datetime | None = None,
    ) -> PredictionRecord:
        """File today's prediction. A second submission on the same day returns the first."""
        cleaned = validate_inputs(inputs)
        record = self._registry.create(user_id, cleaned, on_date=reference_today(now))
        logger.info(
            "Prediction %s for user %s on %s covers %s",
            record.id, user_id, record.date, ", ".join(record.predicted_instruments),
        )
        return record

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm(
        self,
        user_id: str,
        record_id: str,
        actuals: dict[Instrument, float],
        now: datetime | None = None,
    ) -> PredictionRecord:
        """Attach realized changes for one or more instruments."""
        if not actuals:
            raise ValidationError("No actual values supplied")
        values = {i: require_number(v, f"{i}.actual_change") for i, v in actuals.items()}
        record = self._registry.set_actuals(user_id, record_id, values, now=now)
        if record.is_confirmed:
            logger.info("Prediction %s confirmed", record.id)
        return record

    def confirm_from_quotes(
        self,
        user_id: str,
        record_id: str,
        now: datetime | None = None,
    ) -> PredictionRecord:
        """Confirm every predicted instrument from the quote source, or nothing at all."""
        record = self._registry.get_by_id(user_id, record_id)
        if record is None:
            raise NotFoundError(f"Prediction {record_id} not found")

        instruments = record.predicted_instruments
        changes = self._fetch_changes(instruments, record.date)
        missing = [i for i in instruments if i not in changes]
        if missing:
            raise UpstreamUnavailableError(
                f"Realized change unavailable for {', '.join(missing)}"
            )
        return self.confirm(user_id, record_id, changes, now=now)

    def auto_confirm_pending(
        self,
        user_id: str | None = None,
        processed: set[str] | None = None,
        now: datetime | None = None,
    ) -> SweepResult:
        """Confirm pending records whose markets have all closed.

        With ``user_id`` None every user's pending records are swept. Ids in
        ``processed`` are skipped and confirmed ids are added to it, so a
        caller can share one set across several sweeps in the same run.
        Records whose quotes are incomplete, or whose write fails, stay pending
        for the next sweep.
        """
        now = as_utc(now)
        processed = processed if processed is not None else set()
        result = SweepResult()

        if user_id is None:
            pending = self._registry.get_all_pending()
        else:
            pending = self._registry.get_pending(user_id)

        # (instrument, date) -> change, or None when the lookup failed
        lookups: dict[tuple[Instrument, date], float | None] = {}

        for record in pending:
            result.examined += 1
            if record.id in processed:
                result.already_processed.append(record.id)
                continue

            instruments = record.predicted_instruments
            if not instruments or not can_auto_confirm(
                record.date, record.confirmed_at, instruments, now
            ):
                result.not_ready.append(record.id)
                continue

            changes = self._cached_changes(instruments, record.date, lookups)
            if len(changes) < len(instruments):
                logger.warning(
                    "Skipping auto-confirm of %s (%s): quotes missing for %s",
                    record.id, record.date,
                    ", ".join(i for i in instruments if i not in changes),
                )
                result.missing_quotes.append(record.id)
                continue

            try:
                # Re-read so a concurrent manual confirm is not overwritten
                current = self._registry.get_by_id(record.user_id, record.id)
                if current is None or current.is_confirmed:
                    processed.add(record.id)
                    result.already_processed.append(record.id)
                    continue
                self._registry.set_actuals(record.user_id, record.id, changes, now=now)
            except MarketCallError as exc:
                logger.warning("Auto-confirm of %s (%s) failed: %s", record.id, record.date, exc)
                result.failed.append(record.id)
                continue

            processed.add(record.id)
            result.confirmed.append(record.id)
            logger.info("Auto-confirmed prediction %s for %s", record.id, record.date)

        return result

    # ------------------------------------------------------------------
    # Edits, comments, deletion
    # ------------------------------------------------------------------

    def edit(
        self,
        user_id: str,
        record_id: str,
        edits: dict[Instrument, dict[str, float | None]],
        now: datetime | None = None,
    ) -> PredictionRecord:
        """Correct predicted or actual values; may move a record back to pending."""
        if not edits:
            raise ValidationError("No changes supplied")
        record = self._registry.edit(user_id, record_id, edits, now=now)
        logger.info(
            "Prediction %s edited (%s)", record.id,
            "confirmed" if record.is_confirmed else "pending",
        )
        return record

    def save_comment(self, user_id: str, record_id: str, text: str | None) -> PredictionRecord:
        record = self._registry.get_by_id(user_id, record_id)
        if record is None:
            raise NotFoundError(f"Prediction {record_id} not found")
        if not record.is_confirmed:
            raise ValidationError("Comments can only be added to confirmed predictions")
        return self._registry.save_comment(user_id, record_id, text)

    def delete(self, user_id: str, record_id: str) -> bool:
        deleted = self._registry.delete(user_id, record_id)
        if deleted:
            logger.info("Prediction %s deleted by user %s", record_id, user_id)
        return deleted

    # ------------------------------------------------------------------
    # Quote helpers
    # ------------------------------------------------------------------

    def _fetch_changes(self, instruments: list[Instrument], on_date: date) -> dict[Instrument, float]:
        if self._quotes is None:
            raise UpstreamUnavailableError("No quote source configured")
        return self._quotes.get_daily_changes(instruments, on_date)

    def _cached_changes(
        self,
        instruments: list[Instrument],
        on_date: date,
        lookups: dict[tuple[Instrument, date], float | None],
    ) -> dict[Instrument, float]:
        wanted = [i for i in instruments if (i, on_date) not in lookups]
        if wanted:
            try:
                fetched = self._fetch_changes(wanted, on_date)
            except UpstreamUnavailableError as exc:
                logger.warning("Quote source unavailable during sweep: %s", exc)
                fetched = {}
            for instrument in wanted:
                lookups[(instrument, on_date)] = fetched.get(instrument)

        return {
            i: change
            for i in instruments
            if (change := lookups[(i, on_date)]) is not None
        }
