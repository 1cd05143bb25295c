from marketcall.timing.clock import (
    REFERENCE_TZ,
    current_week_bounds,
    reference_today,
    utc_now,
    week_bounds,
)
from marketcall.timing.market_hours import (
    MARKET_CLOSE_HOURS_UTC,
    are_all_markets_closed,
    can_auto_confirm,
    is_market_closed,
)

__all__ = [
    "MARKET_CLOSE_HOURS_UTC",
    "REFERENCE_TZ",
    "are_all_markets_closed",
    "can_auto_confirm",
    "current_week_bounds",
    "is_market_closed",
    "reference_today",
    "utc_now",
    "week_bounds",
]
