"""Dependency injection for the FastAPI application."""

from __future__ import annotations

from fastapi import Request

from marketcall.config import AppConfig
from marketcall.data.yfinance_client import YFinanceClient
from marketcall.errors import NotAuthenticatedError
from marketcall.learning.predictions import PredictionManager
from marketcall.learning.ranking import RankingAggregator
from marketcall.registry.db import Database
from marketcall.registry.queries import Registry


class AppState:
    """Holds shared application state initialised during lifespan."""

    def __init__(self) -> None:
        self.config: AppConfig | None = None
        self.db: Database | None = None
        self.registry: Registry | None = None
        self.quotes: YFinanceClient | None = None
        self.prediction_manager: PredictionManager | None = None
        self.ranking_aggregator: RankingAggregator | None = None


# Singleton shared across the app
app_state = AppState()


def get_registry() -> Registry:
    if app_state.registry is None:
        raise RuntimeError("Registry not initialised")
    return app_state.registry


def get_db() -> Database:
    if app_state.db is None:
        raise RuntimeError("Database not initialised")
    return app_state.db


def get_quotes() -> YFinanceClient:
    if app_state.quotes is None:
        raise RuntimeError("YFinanceClient not initialised")
    return app_state.quotes


def get_prediction_manager() -> PredictionManager:
    if app_state.prediction_manager is None:
        raise RuntimeError("PredictionManager not initialised")
    return app_state.prediction_manager


def get_ranking_aggregator() -> RankingAggregator:
    if app_state.ranking_aggregator is None:
        raise RuntimeError("RankingAggregator not initialised")
    return app_state.ranking_aggregator


def get_current_user(request: Request) -> str:
    """User id resolved by AuthMiddleware."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise NotAuthenticatedError("Not authenticated")
    return user_id
