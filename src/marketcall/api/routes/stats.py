"""Per-user accuracy statistics."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from marketcall.api.deps import get_current_user, get_registry
from marketcall.api.routes.shared import parse_instrument, stats_to_dict
from marketcall.learning.stats import (
    calculate_overall_stats,
    calculate_stock_stats,
    calculate_weekly_summary,
    get_daily_details,
)
from marketcall.models.instrument import Instrument
from marketcall.registry.queries import Registry
from marketcall.timing.clock import current_week_bounds, week_bounds

router = APIRouter()


@router.get("/stats")
def overall_stats(
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    records = registry.get_all(user_id)
    return {
        "stats": {i: stats_to_dict(s) for i, s in calculate_overall_stats(records).items()},
        "totalRecords": len(records),
    }


@router.get("/stats/weekly")
def weekly_stats(
    week_start: date | None = Query(None, alias="weekStart"),
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    """This week against last week. ``weekStart`` is snapped to its Monday."""
    start = week_bounds(week_start)[0] if week_start else current_week_bounds()[0]
    summary = calculate_weekly_summary(registry.get_all(user_id), start)
    return {
        "weekStart": summary.week_start.isoformat(),
        "weekEnd": summary.week_end.isoformat(),
        "instruments": {
            instrument: {
                "thisWeek": stats_to_dict(summary.this_week[instrument]),
                "previousWeek": stats_to_dict(summary.previous_week[instrument]),
                "deviationChange": summary.deviation_change(instrument),
                "accuracyChange": summary.accuracy_change(instrument),
            }
            for instrument in Instrument
        },
    }


@router.get("/stats/{instrument}")
def instrument_stats(
    instrument: str,
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    target = parse_instrument(instrument)
    stats = calculate_stock_stats(registry.get_all(user_id), target)
    return {"instrument": target, **stats_to_dict(stats)}


@router.get("/stats/{instrument}/daily")
def instrument_daily(
    instrument: str,
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    target = parse_instrument(instrument)
    details = get_daily_details(registry.get_all(user_id), target)
    return {
        "instrument": target,
        "days": [
            {
                "date": d.date.isoformat(),
                "predicted": d.predicted,
                "actual": d.actual,
                "deviation": d.deviation,
            }
            for d in details
        ],
    }
