from marketcall.learning.lifecycle import apply_actuals, apply_edits, validate_inputs
from marketcall.learning.stats import (
    DeviationGrade,
    WeeklySummary,
    calculate_deviation,
    calculate_mean,
    calculate_overall_stats,
    calculate_standard_deviation,
    calculate_stock_stats,
    calculate_weekly_summary,
    classify_deviation,
    classify_ranking_deviation,
    get_daily_details,
    is_direction_correct,
)

__all__ = [
    "DeviationGrade",
    "WeeklySummary",
    "apply_actuals",
    "apply_edits",
    "calculate_deviation",
    "calculate_mean",
    "calculate_overall_stats",
    "calculate_standard_deviation",
    "calculate_stock_stats",
    "calculate_weekly_summary",
    "classify_deviation",
    "classify_ranking_deviation",
    "get_daily_details",
    "is_direction_correct",
    "validate_inputs",
]
