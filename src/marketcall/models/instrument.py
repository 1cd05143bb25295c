from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Instrument(StrEnum):
    NIKKEI = "nikkei"
    SP500 = "sp500"
    GOLD = "gold"
    BITCOIN = "bitcoin"


@dataclass(frozen=True)
class DeviationThresholds:
    good: float
    fair: float


@dataclass(frozen=True)
class InstrumentInfo:
    name: str
    symbol: str
    currency: str
    thresholds: DeviationThresholds
    close_hour_utc: int


# Close hours are daily cutoffs in UTC:
#   Nikkei 225: 15:00 JST = 06:00 UTC
#   S&P 500: 16:00 ET (standard time) = 21:00 UTC
#   Gold (COMEX): 22:00 UTC
#   Bitcoin trades 24/7; 21:00 UTC is used as the daily cutoff
INSTRUMENT_INFO: dict[Instrument, InstrumentInfo] = {
    Instrument.NIKKEI: InstrumentInfo(
        name="Nikkei 225",
        symbol="^N225",
        currency="JPY",
        thresholds=DeviationThresholds(good=1.0, fair=2.0),
        close_hour_utc=6,
    ),
    Instrument.SP500: InstrumentInfo(
        name="S&P 500",
        symbol="^GSPC",
        currency="USD",
        thresholds=DeviationThresholds(good=0.8, fair=1.5),
        close_hour_utc=21,
    ),
    Instrument.GOLD: InstrumentInfo(
        name="Gold",
        symbol="GC=F",
        currency="USD",
        thresholds=DeviationThresholds(good=1.0, fair=2.0),
        close_hour_utc=22,
    ),
    Instrument.BITCOIN: InstrumentInfo(
        name="Bitcoin",
        symbol="BTC-USD",
        currency="USD",
        thresholds=DeviationThresholds(good=2.0, fair=4.0),
        close_hour_utc=21,
    ),
}
