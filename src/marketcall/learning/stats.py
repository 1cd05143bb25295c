"""Deviation and accuracy statistics.

All functions are pure. Empty or degenerate input produces zero-valued
results rather than errors.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import StrEnum

from marketcall.models.instrument import INSTRUMENT_INFO, Instrument
from marketcall.models.prediction import DailyDetail, PredictionRecord, StockStats

# A flat call (0%) still counts as correct when the market moved at most this much.
FLAT_TOLERANCE = 0.1

# Pooled thresholds for the leaderboard, where instruments are mixed.
RANKING_GOOD_DEVIATION = 1.2
RANKING_FAIR_DEVIATION = 2.5


class DeviationGrade(StrEnum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def calculate_deviation(predicted: float, actual: float) -> float:
    return abs(predicted - actual)


def is_direction_correct(predicted: float, actual: float) -> bool:
    """Whether the predicted sign matched the realized sign.

    The tolerance is one-sided: predicting 0 is forgiven when the actual
    move is within FLAT_TOLERANCE, but a non-zero prediction against a flat
    market is not.
    """
    if predicted == 0 and actual == 0:
        return True
    if predicted > 0 and actual > 0:
        return True
    if predicted < 0 and actual < 0:
        return True
    if predicted == 0 and abs(actual) <= FLAT_TOLERANCE:
        return True
    return False


def calculate_mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def calculate_standard_deviation(values: list[float]) -> float:
    """Population standard deviation (divides by N)."""
    if not values:
        return 0.0
    mean = calculate_mean(values)
    variance = calculate_mean([(v - mean) ** 2 for v in values])
    return math.sqrt(variance)


def calculate_stock_stats(records: list[PredictionRecord], instrument: Instrument) -> StockStats:
    """Summarize one instrument's accuracy over ``records``."""
    applicable = [r for r in records if r.get(instrument) is not None]
    confirmed = [r for r in applicable if r.predictions[instrument].actual_change is not None]

    if not confirmed:
        return StockStats(
            total_predictions=len(applicable),
            confirmed_predictions=0,
        )

    deviations: list[float] = []
    correct = 0
    min_deviation = math.inf
    min_date: date | None = None
    max_deviation = -math.inf
    max_date: date | None = None

    for record in confirmed:
        pred = record.predictions[instrument]
        deviation = pred.deviation
        if deviation is None:
            deviation = calculate_deviation(pred.predicted_change, pred.actual_change)
        deviations.append(deviation)

        # Strict comparisons keep the first occurrence on ties
        if deviation < min_deviation:
            min_deviation = deviation
            min_date = record.date
        if deviation > max_deviation:
            max_deviation = deviation
            max_date = record.date

        if is_direction_correct(pred.predicted_change, pred.actual_change):
            correct += 1

    return StockStats(
        average_deviation=calculate_mean(deviations),
        min_deviation=min_deviation,
        min_deviation_date=min_date,
        max_deviation=max_deviation,
        max_deviation_date=max_date,
        standard_deviation=calculate_standard_deviation(deviations),
        direction_accuracy=correct / len(confirmed) * 100,
        total_predictions=len(applicable),
        confirmed_predictions=len(confirmed),
    )


def calculate_overall_stats(records: list[PredictionRecord]) -> dict[Instrument, StockStats]:
    return {instrument: calculate_stock_stats(records, instrument) for instrument in Instrument}


def get_daily_details(records: list[PredictionRecord], instrument: Instrument) -> list[DailyDetail]:
    """Per-day rows for one instrument, newest first."""
    details = [
        DailyDetail(
            date=r.date,
            predicted=r.predictions[instrument].predicted_change,
            actual=r.predictions[instrument].actual_change,
            deviation=r.predictions[instrument].deviation,
        )
        for r in records
        if r.get(instrument) is not None
    ]
    details.sort(key=lambda d: d.date, reverse=True)
    return details


def classify_deviation(deviation: float, instrument: Instrument) -> DeviationGrade:
    thresholds = INSTRUMENT_INFO[instrument].thresholds
    if deviation <= thresholds.good:
        return DeviationGrade.GOOD
    if deviation <= thresholds.fair:
        return DeviationGrade.FAIR
    return DeviationGrade.POOR


def classify_ranking_deviation(deviation: float) -> DeviationGrade:
    if deviation <= RANKING_GOOD_DEVIATION:
        return DeviationGrade.GOOD
    if deviation <= RANKING_FAIR_DEVIATION:
        return DeviationGrade.FAIR
    return DeviationGrade.POOR


@dataclass
class WeeklySummary:
    week_start: date
    week_end: date
    this_week: dict[Instrument, StockStats] = field(default_factory=dict)
    previous_week: dict[Instrument, StockStats] = field(default_factory=dict)

    def deviation_change(self, instrument: Instrument) -> float | None:
        """Change in average deviation versus the previous week (negative is better)."""
        current = self.this_week[instrument]
        previous = self.previous_week[instrument]
        if current.confirmed_predictions == 0 or previous.confirmed_predictions == 0:
            return None
        return current.average_deviation - previous.average_deviation

    def accuracy_change(self, instrument: Instrument) -> float | None:
        current = self.this_week[instrument]
        previous = self.previous_week[instrument]
        if current.confirmed_predictions == 0 or previous.confirmed_predictions == 0:
            return None
        return current.direction_accuracy - previous.direction_accuracy


def calculate_weekly_summary(records: list[PredictionRecord], week_start: date) -> WeeklySummary:
    """Compare the Monday-Sunday week starting at ``week_start`` with the week before."""
    week_end = week_start + timedelta(days=6)
    prev_start = week_start - timedelta(days=7)
    prev_end = week_start - timedelta(days=1)

    this_week = [r for r in records if week_start <= r.date <= week_end]
    previous = [r for r in records if prev_start <= r.date <= prev_end]

    return WeeklySummary(
        week_start=week_start,
        week_end=week_end,
        this_week=calculate_overall_stats(this_week),
        previous_week=calculate_overall_stats(previous),
    )
