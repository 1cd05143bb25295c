from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any

import yfinance as yf

from marketcall.errors import UpstreamTimeoutError, UpstreamUnavailableError, ValidationError
from marketcall.models.instrument import INSTRUMENT_INFO, Instrument
from marketcall.models.market import PricePoint, Quote

logger = logging.getLogger(__name__)

# period -> (yfinance range, interval)
HISTORY_PERIODS: dict[str, tuple[str, str]] = {
    "1w": ("5d", "1h"),
    "3m": ("3mo", "1d"),
    "1y": ("1y", "1d"),
    "5y": ("5y", "1wk"),
}

# Calendar days fetched before a target date so at least two sessions are covered.
LOOKBACK_DAYS = 10
# Calendar days fetched after a target date to tell a holiday from an unpublished bar.
LOOKAHEAD_DAYS = 5

# Markets with a session every calendar day.
CONTINUOUS_MARKETS = frozenset({Instrument.BITCOIN})


@dataclass
class CircuitBreaker:
    """Trips when the failure rate over a sliding window exceeds a threshold."""

    threshold: float = 0.50
    window_seconds: int = 300
    min_calls: int = 8
    _successes: deque[float] = field(default_factory=deque)
    _failures: deque[float] = field(default_factory=deque)

    def record_success(self) -> None:
        self._prune()
        self._successes.append(time.monotonic())

    def record_failure(self) -> None:
        self._prune()
        self._failures.append(time.monotonic())

    def _prune(self) -> None:
        cutoff = time.monotonic() - self.window_seconds
        for calls in (self._successes, self._failures):
            while calls and calls[0] < cutoff:
                calls.popleft()

    @property
    def failure_rate(self) -> float:
        self._prune()
        total = len(self._successes) + len(self._failures)
        return len(self._failures) / total if total else 0.0

    @property
    def is_tripped(self) -> bool:
        self._prune()
        if len(self._successes) + len(self._failures) < self.min_calls:
            return False
        return self.failure_rate >= self.threshold

    def reset(self) -> None:
        self._successes.clear()
        self._failures.clear()


class YFinanceClient:
    """Quote source backed by Yahoo Finance.

    Every upstream call runs on a worker thread and is abandoned after
    ``timeout_seconds``; the caller then gets UpstreamTimeoutError. Other
    failures, including quotes without a previous close, surface as
    UpstreamUnavailableError. Batch helpers return partial results instead.
    """

    def __init__(self, timeout_seconds: float = 30.0, cache_ttl_seconds: int = 60) -> None:
        self._timeout = timeout_seconds
        self._cache: dict[str, tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self._circuit_breaker = CircuitBreaker()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="yfinance")

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def get_quote(self, instrument: Instrument) -> Quote:
        """Latest price and previous close for one instrument."""
        symbol = INSTRUMENT_INFO[instrument].symbol
        cache_key = f"quote:{symbol}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        closes = self._daily_closes(symbol, period="5d")
        if not closes:
            raise UpstreamUnavailableError(f"No price data for {symbol}")

        as_of, current = closes[-1]
        previous = closes[-2][1] if len(closes) >= 2 else None
        quote = Quote(
            instrument=instrument,
            symbol=symbol,
            current_price=current,
            previous_close=previous,
            as_of=as_of,
            fetched_at=datetime.now(UTC),
        )
        if not quote.is_complete:
            logger.warning("Quote for %s has no previous close", symbol)
        self._set_cached(cache_key, quote)
        return quote

    def get_quotes(self, instruments: Iterable[Instrument] | None = None) -> dict[Instrument, Quote]:
        """Quotes for several instruments; failed lookups are logged and left out."""
        quotes: dict[Instrument, Quote] = {}
        for instrument in instruments or list(Instrument):
            try:
                quotes[instrument] = self.get_quote(instrument)
            except UpstreamUnavailableError as exc:
                logger.warning("Quote for %s unavailable: %s", instrument, exc)
        return quotes

    # ------------------------------------------------------------------
    # Realized daily changes
    # ------------------------------------------------------------------

    def get_daily_change(self, instrument: Instrument, on_date: date) -> float:
        """Close-to-close percent change of the session on or before ``on_date``.

        A non-trading day resolves to the most recent session before it. A day
        counts as non-trading when it falls on a weekend for an exchange-traded
        instrument, or when a later session has already been published. If the
        bar for a trading day is missing, the change is unavailable rather than
        borrowed from the previous session.
        """
        symbol = INSTRUMENT_INFO[instrument].symbol
        cache_key = f"change:{symbol}:{on_date.isoformat()}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        closes = self._daily_closes(
            symbol,
            start=(on_date - timedelta(days=LOOKBACK_DAYS)).isoformat(),
            end=(on_date + timedelta(days=LOOKAHEAD_DAYS + 1)).isoformat(),
        )
        published_later = any(d > on_date for d, _ in closes)
        closes = [(d, c) for d, c in closes if d <= on_date]
        if len(closes) < 2:
            raise UpstreamUnavailableError(f"Not enough sessions for {symbol} around {on_date}")

        if closes[-1][0] != on_date and not published_later:
            weekend = on_date.weekday() >= 5
            if instrument in CONTINUOUS_MARKETS or not weekend:
                raise UpstreamUnavailableError(
                    f"No {symbol} session published for {on_date} yet"
                    f" (latest is {closes[-1][0]})"
                )

        previous, current = closes[-2][1], closes[-1][1]
        if previous == 0:
            raise UpstreamUnavailableError(f"Zero previous close for {symbol} on {on_date}")

        change = (current - previous) / previous * 100
        self._set_cached(cache_key, change)
        return change

    def get_daily_changes(
        self, instruments: Iterable[Instrument], on_date: date
    ) -> dict[Instrument, float]:
        """Realized changes for several instruments; failed lookups are left out."""
        changes: dict[Instrument, float] = {}
        for instrument in instruments:
            try:
                changes[instrument] = self.get_daily_change(instrument, on_date)
            except UpstreamUnavailableError as exc:
                logger.warning("Change for %s on %s unavailable: %s", instrument, on_date, exc)
        return changes

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(self, instrument: Instrument, period: str = "3m") -> list[PricePoint]:
        if period not in HISTORY_PERIODS:
            raise ValidationError(
                f"Unknown period {period!r}, expected one of {', '.join(HISTORY_PERIODS)}"
            )
        yf_range, interval = HISTORY_PERIODS[period]
        symbol = INSTRUMENT_INFO[instrument].symbol

        df = self._bounded(symbol, self._fetch_history, symbol, period=yf_range, interval=interval)
        if df is None or df.empty:
            raise UpstreamUnavailableError(f"No history for {symbol}")

        close = df["Close"].dropna()
        return [
            PricePoint(timestamp=ts.to_pydatetime(), price=round(float(price), 2))
            for ts, price in zip(close.index, close.tolist())
        ]

    # ------------------------------------------------------------------
    # Upstream plumbing
    # ------------------------------------------------------------------

    @property
    def is_healthy(self) -> bool:
        return not self._circuit_breaker.is_tripped

    @property
    def failure_rate(self) -> float:
        return self._circuit_breaker.failure_rate

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _fetch_history(symbol: str, **kwargs: Any):
        return yf.Ticker(symbol).history(**kwargs)

    def _daily_closes(self, symbol: str, **kwargs: Any) -> list[tuple[date, float]]:
        df = self._bounded(symbol, self._fetch_history, symbol, interval="1d", **kwargs)
        if df is None or df.empty:
            return []
        close = df["Close"].dropna()
        return [(ts.date(), float(price)) for ts, price in zip(close.index, close.tolist())]

    def _bounded(self, symbol: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run an upstream call with the circuit breaker and timeout applied."""
        if self._circuit_breaker.is_tripped:
            logger.warning(
                "Circuit breaker tripped (failure_rate=%.2f), skipping %s",
                self._circuit_breaker.failure_rate,
                symbol,
            )
            raise UpstreamUnavailableError("Quote source temporarily disabled")

        future = self._executor.submit(fn, *args, **kwargs)
        try:
            result = future.result(timeout=self._timeout)
        except FuturesTimeoutError:
            future.cancel()
            self._circuit_breaker.record_failure()
            logger.warning("Quote request for %s timed out after %.0fs", symbol, self._timeout)
            raise UpstreamTimeoutError(
                f"Quote source did not respond within {self._timeout:.0f}s"
            ) from None
        except Exception as exc:
            self._circuit_breaker.record_failure()
            logger.exception("Error fetching %s", symbol)
            raise UpstreamUnavailableError(f"Quote source error for {symbol}") from exc

        self._circuit_breaker.record_success()
        return result

    def _get_cached(self, key: str) -> Any | None:
        if key in self._cache:
            value, cached_at = self._cache[key]
            if datetime.now(UTC) - cached_at < self._cache_ttl:
                return value
            del self._cache[key]
        return None

    def _set_cached(self, key: str, value: Any) -> None:
        self._cache[key] = (value, datetime.now(UTC))
