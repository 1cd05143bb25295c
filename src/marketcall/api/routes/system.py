"""System health endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from marketcall.api.deps import get_db, get_quotes, get_registry
from marketcall.data.yfinance_client import YFinanceClient
from marketcall.errors import PersistenceError
from marketcall.registry.db import Database
from marketcall.registry.queries import Registry

router = APIRouter()

_start_time = time.time()


@router.get("/system/health")
def health_check(
    db: Database = Depends(get_db),
    registry: Registry = Depends(get_registry),
    quotes: YFinanceClient = Depends(get_quotes),
) -> dict:
    """System health check.

    {status, database, quoteSource, quoteFailureRate, pendingPredictions, uptime}
    """
    db_ok = db.health_check()

    pending = None
    if db_ok:
        try:
            pending = registry.count_pending()
        except PersistenceError:
            db_ok = False

    quotes_ok = quotes.is_healthy
    return {
        "status": "healthy" if db_ok and quotes_ok else "degraded",
        "database": db_ok,
        "quoteSource": quotes_ok,
        "quoteFailureRate": round(quotes.failure_rate, 3),
        "pendingPredictions": pending,
        "uptime": int(time.time() - _start_time),
    }
