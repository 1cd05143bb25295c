"""Market-hours gate for automatic confirmation.

A prediction may only be confirmed automatically once the market of every
instrument it covers has closed for the prediction's day. Confirming early
would record an intraday move as the realized change.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, time

from marketcall.models.instrument import INSTRUMENT_INFO, Instrument
from marketcall.timing.clock import as_utc

MARKET_CLOSE_HOURS_UTC: dict[Instrument, int] = {
    instrument: info.close_hour_utc for instrument, info in INSTRUMENT_INFO.items()
}


def is_market_closed(
    instrument: Instrument,
    prediction_date: date,
    now: datetime | None = None,
) -> bool:
    """Whether the instrument's market has closed for ``prediction_date``.

    The session for a date closes at the instrument's close hour (UTC) on
    that calendar date, so earlier dates are always closed and later ones
    never are.
    """
    close_at = datetime.combine(
        prediction_date, time(hour=MARKET_CLOSE_HOURS_UTC[instrument]), tzinfo=UTC
    )
    return as_utc(now) >= close_at


def are_all_markets_closed(
    prediction_date: date,
    instruments: Iterable[Instrument],
    now: datetime | None = None,
) -> bool:
    return all(is_market_closed(i, prediction_date, now) for i in instruments)


def can_auto_confirm(
    prediction_date: date,
    confirmed_at: datetime | None,
    instruments: Iterable[Instrument],
    now: datetime | None = None,
) -> bool:
    """Whether a record is eligible for the automatic confirmation sweep."""
    if confirmed_at is not None:
        return False

    instruments = list(instruments)
    if not instruments:
        return False

    return are_all_markets_closed(prediction_date, instruments, now)
