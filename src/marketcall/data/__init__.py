from __future__ import annotations

from marketcall.data.yfinance_client import (
    HISTORY_PERIODS,
    CircuitBreaker,
    YFinanceClient,
)

__all__ = [
    "HISTORY_PERIODS",
    "CircuitBreaker",
    "YFinanceClient",
]
