"""CLI entry point for MarketCall.

Commands:
  - migrate: Run database migrations
  - sweep: Auto-confirm pending predictions whose markets have closed
  - ranking: Print the leaderboard
  - stats: Print one user's per-instrument statistics
  - token: Issue a session token for local use
"""

from __future__ import annotations

import argparse
import logging
import sys

from marketcall.config import load_config
from marketcall.registry.db import Database
from marketcall.registry.queries import Registry


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _open_registry() -> tuple[Database, Registry]:
    config = load_config()
    db = Database(config.db_dsn)
    db.connect(pooled=False)
    return db, Registry(db)


def cmd_migrate(args: argparse.Namespace) -> None:
    """Run database migrations."""
    db, _ = _open_registry()
    try:
        applied = db.run_migrations()
    finally:
        db.close()
    print(f"Migrations complete ({len(applied)} applied).")


def cmd_sweep(args: argparse.Namespace) -> None:
    """Auto-confirm pending predictions, for one user or everyone."""
    from marketcall.data.yfinance_client import YFinanceClient
    from marketcall.learning.predictions import PredictionManager

    config = load_config()
    db, registry = _open_registry()
    quotes = YFinanceClient(
        timeout_seconds=config.quote_timeout_seconds,
        cache_ttl_seconds=config.quote_cache_ttl_seconds,
    )
    try:
        result = PredictionManager(registry, quotes).auto_confirm_pending(args.user)
    finally:
        quotes.close()
        db.close()

    print(f"Examined {result.examined} pending prediction(s)")
    print(f"  Confirmed: {len(result.confirmed)}")
    print(f"  Markets still open: {len(result.not_ready)}")
    print(f"  Missing quotes: {len(result.missing_quotes)}")
    print(f"  Failed: {len(result.failed)}")


def cmd_ranking(args: argparse.Namespace) -> None:
    """Print the leaderboard without running a sweep."""
    from marketcall.learning.ranking import RankingAggregator, RankingPeriod

    config = load_config()
    db, registry = _open_registry()
    try:
        aggregator = RankingAggregator(registry, limit=config.ranking_limit, auto_confirm=False)
        result = aggregator.get_ranking(RankingPeriod(args.period))
    finally:
        db.close()

    print(f"Ranking ({result.period}), {result.total_users} participant(s):")
    for user in result.rankings:
        if user.unconfirmed:
            print(f"   -  {user.user_name:<20} (awaiting confirmation)")
            continue
        print(
            f"  {user.rank:>2}. {user.user_name:<20} "
            f"avg dev {user.average_deviation:.2f}  "
            f"direction {user.direction_accuracy:.1f}%  "
            f"({user.confirmed_predictions} confirmed)"
        )


def cmd_stats(args: argparse.Namespace) -> None:
    """Print per-instrument statistics for one user."""
    from marketcall.learning.stats import calculate_overall_stats
    from marketcall.models.instrument import INSTRUMENT_INFO

    db, registry = _open_registry()
    try:
        records = registry.get_all(args.user_id)
    finally:
        db.close()

    print(f"Statistics for {args.user_id} ({len(records)} record(s)):")
    for instrument, stats in calculate_overall_stats(records).items():
        name = INSTRUMENT_INFO[instrument].name
        if stats.confirmed_predictions == 0:
            print(f"  {name}: no confirmed predictions ({stats.total_predictions} pending)")
            continue
        print(
            f"  {name}: avg dev {stats.average_deviation:.2f} "
            f"(sd {stats.standard_deviation:.2f}), "
            f"direction {stats.direction_accuracy:.1f}%, "
            f"{stats.confirmed_predictions}/{stats.total_predictions} confirmed"
        )


def cmd_token(args: argparse.Namespace) -> None:
    """Issue a session token for USER_ID."""
    from marketcall.api.auth import create_token

    config = load_config()
    if not config.auth_secret_key:
        print("AUTH_SECRET_KEY is not set; the API accepts X-User-Id headers.", file=sys.stderr)
        sys.exit(1)
    print(create_token(config.auth_secret_key, config.auth_token_expiry_hours, args.user_id))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="marketcall",
        description="Daily market prediction tracker",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subs = parser.add_subparsers(dest="command", required=True)

    # migrate
    subs.add_parser("migrate", help="Run database migrations")

    # sweep
    p_sweep = subs.add_parser("sweep", help="Auto-confirm pending predictions")
    p_sweep.add_argument("--user", default=None, help="Only sweep this user's predictions")

    # ranking
    p_ranking = subs.add_parser("ranking", help="Print the leaderboard")
    p_ranking.add_argument("--period", choices=["all", "weekly"], default="all")

    # stats
    p_stats = subs.add_parser("stats", help="Print a user's statistics")
    p_stats.add_argument("user_id", help="User id")

    # token
    p_token = subs.add_parser("token", help="Issue a session token")
    p_token.add_argument("user_id", help="User id to embed in the token")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    commands = {
        "migrate": cmd_migrate,
        "sweep": cmd_sweep,
        "ranking": cmd_ranking,
        "stats": cmd_stats,
        "token": cmd_token,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
