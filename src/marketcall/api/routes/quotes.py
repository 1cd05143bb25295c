"""Market quote endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from marketcall.api.deps import get_quotes
from marketcall.api.routes.shared import parse_instrument, quote_to_dict
from marketcall.data.yfinance_client import YFinanceClient
from marketcall.models.instrument import Instrument

router = APIRouter()


@router.get("/quotes")
def list_quotes(quotes: YFinanceClient = Depends(get_quotes)) -> dict:
    """Latest quote per instrument. Instruments whose lookup failed are listed as missing."""
    found = quotes.get_quotes(list(Instrument))
    return {
        "quotes": {i: quote_to_dict(q) for i, q in found.items()},
        "missing": [i for i in Instrument if i not in found],
    }


@router.get("/quotes/{instrument}/history")
def quote_history(
    instrument: str,
    period: str = Query("3m"),
    quotes: YFinanceClient = Depends(get_quotes),
) -> dict:
    target = parse_instrument(instrument)
    points = quotes.get_history(target, period)
    return {
        "instrument": target,
        "period": period,
        "points": [{"timestamp": p.timestamp.isoformat(), "price": p.price} for p in points],
    }
