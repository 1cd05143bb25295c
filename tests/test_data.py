from __future__ import annotations

import threading
from datetime import date
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from marketcall.data.yfinance_client import CircuitBreaker, YFinanceClient
from marketcall.errors import UpstreamTimeoutError, UpstreamUnavailableError, ValidationError
from marketcall.models.instrument import Instrument


def _closes(values: dict[str, float]) -> pd.DataFrame:
    index = pd.DatetimeIndex([pd.Timestamp(d) for d in values])
    return pd.DataFrame({"Close": list(values.values())}, index=index)


@pytest.fixture
def client() -> YFinanceClient:
    c = YFinanceClient(timeout_seconds=5)
    yield c
    c.close()


class TestCircuitBreaker:
    def test_not_tripped_below_min_calls(self) -> None:
        cb = CircuitBreaker(min_calls=4)
        for _ in range(3):
            cb.record_failure()
        assert not cb.is_tripped

    def test_trips_on_failure_rate(self) -> None:
        cb = CircuitBreaker(min_calls=4, threshold=0.5)
        cb.record_success()
        for _ in range(3):
            cb.record_failure()
        assert cb.is_tripped
        assert cb.failure_rate == pytest.approx(0.75)

    def test_reset(self) -> None:
        cb = CircuitBreaker(min_calls=1)
        cb.record_failure()
        cb.reset()
        assert not cb.is_tripped


class TestGetQuote:
    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_quote_from_last_two_sessions(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-10": 5000.0, "2025-03-11": 5050.0}
        )
        quote = client.get_quote(Instrument.SP500)
        mock_ticker_cls.assert_called_once_with("^GSPC")
        assert quote.current_price == 5050.0
        assert quote.previous_close == 5000.0
        assert quote.change_percent == pytest.approx(1.0)
        assert quote.as_of == date(2025, 3, 11)

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_single_session_is_incomplete(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes({"2025-03-11": 5050.0})
        quote = client.get_quote(Instrument.SP500)
        assert quote.previous_close is None
        assert quote.change_percent is None

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_cached(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-10": 1.0, "2025-03-11": 2.0}
        )
        client.get_quote(Instrument.GOLD)
        client.get_quote(Instrument.GOLD)
        assert mock_ticker_cls.return_value.history.call_count == 1

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_empty_history_raises(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = pd.DataFrame()
        with pytest.raises(UpstreamUnavailableError):
            client.get_quote(Instrument.BITCOIN)

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_upstream_exception_wrapped(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.side_effect = Exception("network error")
        with pytest.raises(UpstreamUnavailableError):
            client.get_quote(Instrument.NIKKEI)

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_get_quotes_is_partial(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        def history_for(symbol: str) -> MagicMock:
            ticker = MagicMock()
            if symbol == "^N225":
                ticker.history.side_effect = Exception("boom")
            else:
                ticker.history.return_value = _closes({"2025-03-10": 1.0, "2025-03-11": 1.1})
            return ticker

        mock_ticker_cls.side_effect = history_for
        quotes = client.get_quotes([Instrument.NIKKEI, Instrument.SP500])
        assert list(quotes) == [Instrument.SP500]


class TestDailyChange:
    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_close_to_close_on_date(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-10": 100.0, "2025-03-11": 102.0, "2025-03-12": 99.0}
        )
        change = client.get_daily_change(Instrument.NIKKEI, date(2025, 3, 11))
        assert change == pytest.approx(2.0)
        kwargs = mock_ticker_cls.return_value.history.call_args.kwargs
        assert kwargs["start"] == "2025-03-01"
        assert kwargs["end"] == "2025-03-17"
        assert kwargs["interval"] == "1d"

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_weekend_uses_previous_session(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-06": 200.0, "2025-03-07": 190.0}
        )
        change = client.get_daily_change(Instrument.SP500, date(2025, 3, 9))
        assert change == pytest.approx(-5.0)

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_unpublished_weekday_session(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        # Tuesday 2025-03-11 has no bar yet; Monday's move must not stand in for it
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-07": 5000.0, "2025-03-10": 4900.0}
        )
        with pytest.raises(UpstreamUnavailableError):
            client.get_daily_change(Instrument.SP500, date(2025, 3, 11))

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_weekday_holiday_uses_previous_session(
        self, mock_ticker_cls: MagicMock, client: YFinanceClient
    ) -> None:
        # No bar on 2025-03-20 but the next session is out, so the exchange was closed
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-18": 100.0, "2025-03-19": 103.0, "2025-03-21": 101.0}
        )
        change = client.get_daily_change(Instrument.NIKKEI, date(2025, 3, 20))
        assert change == pytest.approx(3.0)

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_continuous_market_needs_its_own_weekend_bar(
        self, mock_ticker_cls: MagicMock, client: YFinanceClient
    ) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-07": 80000.0, "2025-03-08": 81000.0}
        )
        with pytest.raises(UpstreamUnavailableError):
            client.get_daily_change(Instrument.BITCOIN, date(2025, 3, 9))

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_not_enough_sessions(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes({"2025-03-11": 100.0})
        with pytest.raises(UpstreamUnavailableError):
            client.get_daily_change(Instrument.GOLD, date(2025, 3, 11))

    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_get_daily_changes_is_partial(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes({"2025-03-11": 100.0})
        assert client.get_daily_changes([Instrument.GOLD], date(2025, 3, 11)) == {}


class TestHistory:
    @patch("marketcall.data.yfinance_client.yf.Ticker")
    def test_period_mapping(self, mock_ticker_cls: MagicMock, client: YFinanceClient) -> None:
        mock_ticker_cls.return_value.history.return_value = _closes(
            {"2025-03-10": 100.123, "2025-03-11": 101.457}
        )
        points = client.get_history(Instrument.SP500, "5y")
        mock_ticker_cls.return_value.history.assert_called_once_with(period="5y", interval="1wk")
        assert [p.price for p in points] == [100.12, 101.46]

    def test_unknown_period(self, client: YFinanceClient) -> None:
        with pytest.raises(ValidationError):
            client.get_history(Instrument.SP500, "10y")


class TestTimeout:
    def test_slow_upstream_raises_timeout(self) -> None:
        release = threading.Event()
        client = YFinanceClient(timeout_seconds=0.05)
        try:
            with patch.object(
                YFinanceClient, "_fetch_history", side_effect=lambda *a, **k: release.wait(2)
            ):
                with pytest.raises(UpstreamTimeoutError):
                    client.get_quote(Instrument.NIKKEI)
        finally:
            release.set()
            client.close()

    def test_tripped_breaker_short_circuits(self, client: YFinanceClient) -> None:
        for _ in range(10):
            client._circuit_breaker.record_failure()
        with patch("marketcall.data.yfinance_client.yf.Ticker") as mock_ticker_cls:
            with pytest.raises(UpstreamUnavailableError):
                client.get_quote(Instrument.SP500)
            mock_ticker_cls.assert_not_called()
        assert not client.is_healthy
