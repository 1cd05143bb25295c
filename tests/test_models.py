from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from marketcall.models.instrument import INSTRUMENT_INFO, Instrument
from marketcall.models.lifecycle import PredictionState, all_settled, state_of
from marketcall.models.market import Quote
from marketcall.models.prediction import PredictionRecord, StockPrediction


class TestInstrument:
    def test_catalogue_order(self) -> None:
        assert [i.value for i in Instrument] == ["nikkei", "sp500", "gold", "bitcoin"]

    def test_every_instrument_has_info(self) -> None:
        assert set(INSTRUMENT_INFO) == set(Instrument)

    def test_symbols(self) -> None:
        assert INSTRUMENT_INFO[Instrument.NIKKEI].symbol == "^N225"
        assert INSTRUMENT_INFO[Instrument.SP500].symbol == "^GSPC"
        assert INSTRUMENT_INFO[Instrument.GOLD].symbol == "GC=F"
        assert INSTRUMENT_INFO[Instrument.BITCOIN].symbol == "BTC-USD"

    def test_str_value(self) -> None:
        assert f"{Instrument.SP500}_deviation" == "sp500_deviation"


class TestPredictionRecord:
    def test_predicted_instruments_follow_catalogue_order(self) -> None:
        record = PredictionRecord(
            user_id="u1",
            date=date(2025, 3, 10),
            predictions={
                Instrument.BITCOIN: StockPrediction(90000.0, 1.0),
                Instrument.NIKKEI: StockPrediction(38000.0, -0.5),
            },
        )
        assert record.predicted_instruments == [Instrument.NIKKEI, Instrument.BITCOIN]
        assert record.get(Instrument.GOLD) is None
        assert not record.is_confirmed

    def test_is_settled(self) -> None:
        assert not StockPrediction(100.0, 1.0).is_settled
        assert StockPrediction(100.0, 1.0, actual_change=0.5).is_settled


class TestLifecycleStates:
    def test_all_settled(self) -> None:
        record = PredictionRecord(
            user_id="u1",
            date=date(2025, 3, 10),
            predictions={
                Instrument.NIKKEI: StockPrediction(38000.0, 1.0, actual_change=0.8),
                Instrument.SP500: StockPrediction(5600.0, 0.4),
            },
        )
        assert not all_settled(record)
        record.predictions[Instrument.SP500].actual_change = 0.1
        assert all_settled(record)

    def test_empty_record_is_not_settled(self) -> None:
        assert not all_settled(PredictionRecord(user_id="u1", date=date(2025, 3, 10)))

    def test_state_of(self) -> None:
        record = PredictionRecord(user_id="u1", date=date(2025, 3, 10))
        assert state_of(record) == PredictionState.PENDING
        record.confirmed_at = datetime(2025, 3, 10, 22, tzinfo=UTC)
        assert state_of(record) == PredictionState.CONFIRMED


class TestQuote:
    def _quote(self, previous: float | None) -> Quote:
        return Quote(
            instrument=Instrument.SP500,
            symbol="^GSPC",
            current_price=5050.0,
            previous_close=previous,
            as_of=date(2025, 3, 10),
            fetched_at=datetime(2025, 3, 10, 21, tzinfo=UTC),
        )

    def test_change_percent(self) -> None:
        quote = self._quote(5000.0)
        assert quote.change == pytest.approx(50.0)
        assert quote.change_percent == pytest.approx(1.0)
        assert quote.is_complete

    def test_missing_previous_close_is_incomplete(self) -> None:
        quote = self._quote(None)
        assert quote.change is None
        assert quote.change_percent is None
        assert not quote.is_complete

    def test_zero_previous_close_is_incomplete(self) -> None:
        assert self._quote(0.0).change_percent is None
