"""Leaderboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from marketcall.api.deps import get_ranking_aggregator
from marketcall.learning.ranking import RankingAggregator, RankingPeriod, RankingUser
from marketcall.learning.stats import classify_ranking_deviation

router = APIRouter()


def _user_to_dict(user: RankingUser) -> dict:
    latest = user.latest_prediction
    return {
        "rank": user.rank,
        "userId": user.user_id,
        "userName": user.user_name,
        "averageDeviation": user.average_deviation,
        "grade": (
            classify_ranking_deviation(user.average_deviation)
            if user.average_deviation is not None else None
        ),
        "totalPredictions": user.total_predictions,
        "confirmedPredictions": user.confirmed_predictions,
        "directionAccuracy": user.direction_accuracy,
        "unconfirmed": user.unconfirmed,
        "latestPrediction": {
            "date": latest.date.isoformat(),
            "predictedChanges": {
                instrument: latest.predictions[instrument].predicted_change
                for instrument in latest.predicted_instruments
            },
            "confirmed": latest.is_confirmed,
        } if latest else None,
    }


@router.get("/ranking")
def get_ranking(
    period: RankingPeriod = Query(RankingPeriod.ALL),
    aggregator: RankingAggregator = Depends(get_ranking_aggregator),
) -> dict:
    """Leaderboard ordered by average deviation, smallest first.

    Running this endpoint first confirms any pending predictions whose
    markets have closed.
    """
    result = aggregator.get_ranking(period)
    return {
        "period": result.period,
        "rankings": [_user_to_dict(u) for u in result.rankings],
        "totalUsers": result.total_users,
        "registeredUsers": [
            {
                "id": p.id,
                "name": p.name,
                "createdAt": p.created_at.isoformat() if p.created_at else None,
            }
            for p in result.registered_users
        ],
    }
