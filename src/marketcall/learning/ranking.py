"""Cross-user leaderboard ordered by pooled average deviation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from marketcall.errors import MarketCallError
from marketcall.learning.predictions import PredictionManager
from marketcall.learning.stats import calculate_deviation, calculate_mean, is_direction_correct
from marketcall.models.prediction import PredictionRecord, Profile
from marketcall.registry.queries import Registry
from marketcall.timing.clock import as_utc, current_week_bounds, reference_today

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"


class RankingPeriod(StrEnum):
    ALL = "all"
    WEEKLY = "weekly"


@dataclass
class RankingUser:
    user_id: str
    user_name: str
    average_deviation: float | None
    total_predictions: int
    confirmed_predictions: int
    direction_accuracy: float
    latest_prediction: PredictionRecord | None = None
    rank: int | None = None
    unconfirmed: bool = False


@dataclass
class RankingResult:
    period: RankingPeriod
    rankings: list[RankingUser] = field(default_factory=list)
    total_users: int = 0
    registered_users: list[Profile] = field(default_factory=list)


@dataclass
class _Pool:
    deviations: list[float] = field(default_factory=list)
    correct: int = 0
    total: int = 0
    records: int = 0


class RankingAggregator:
    """Builds the leaderboard from every user's confirmed records.

    Deviations from all instruments are pooled per user; users are ordered
    by the mean of that pool, smallest first. Users whose only record is
    today's still-pending one are listed after everyone ranked.
    """

    def __init__(
        self,
        registry: Registry,
        manager: PredictionManager | None = None,
        limit: int = 50,
        auto_confirm: bool = True,
    ) -> None:
        self._registry = registry
        self._manager = manager
        self._limit = limit
        self._auto_confirm = auto_confirm

    def get_ranking(
        self,
        period: RankingPeriod = RankingPeriod.ALL,
        now: datetime | None = None,
    ) -> RankingResult:
        now = as_utc(now)
        self._sweep(now)

        if period == RankingPeriod.WEEKLY:
            start, end = current_week_bounds(now)
            confirmed = self._registry.get_confirmed(start, end)
        else:
            confirmed = self._registry.get_confirmed()

        profiles = self._registry.get_profiles()
        names = {p.id: p.name for p in profiles}
        today_records = {r.user_id: r for r in self._registry.get_records_on_date(reference_today(now))}

        pools: dict[str, _Pool] = {}
        for record in confirmed:
            pool = pools.setdefault(record.user_id, _Pool())
            pool.records += 1
            for instrument in record.predicted_instruments:
                pred = record.predictions[instrument]
                if pred.actual_change is None:
                    continue
                deviation = pred.deviation
                if deviation is None:
                    deviation = calculate_deviation(pred.predicted_change, pred.actual_change)
                pool.deviations.append(deviation)
                pool.total += 1
                if is_direction_correct(pred.predicted_change, pred.actual_change):
                    pool.correct += 1

        ranked: list[tuple[float, RankingUser]] = []
        for user_id, pool in pools.items():
            if not pool.deviations:
                continue
            average = calculate_mean(pool.deviations)
            ranked.append((
                average,
                RankingUser(
                    user_id=user_id,
                    user_name=names.get(user_id) or ANONYMOUS_NAME,
                    average_deviation=round(average, 2),
                    total_predictions=pool.records,
                    confirmed_predictions=pool.records,
                    direction_accuracy=round(pool.correct / pool.total * 100, 1),
                    latest_prediction=today_records.get(user_id),
                ),
            ))
        ranked.sort(key=lambda item: item[0])

        rankings = [user for _, user in ranked]
        for position, user in enumerate(rankings, start=1):
            user.rank = position

        ranked_ids = {user.user_id for user in rankings}
        for user_id, record in today_records.items():
            if user_id in ranked_ids or record.is_confirmed:
                continue
            rankings.append(RankingUser(
                user_id=user_id,
                user_name=names.get(user_id) or ANONYMOUS_NAME,
                average_deviation=None,
                total_predictions=1,
                confirmed_predictions=0,
                direction_accuracy=0.0,
                latest_prediction=record,
                unconfirmed=True,
            ))

        return RankingResult(
            period=period,
            rankings=rankings[: self._limit],
            total_users=len(rankings),
            registered_users=profiles,
        )

    def _sweep(self, now: datetime) -> None:
        if not self._auto_confirm or self._manager is None:
            return
        try:
            result = self._manager.auto_confirm_pending(now=now)
        except MarketCallError:
            logger.exception("Auto-confirm sweep before ranking failed")
            return
        if result.confirmed:
            logger.info("Auto-confirmed %d prediction(s) before ranking", len(result.confirmed))
