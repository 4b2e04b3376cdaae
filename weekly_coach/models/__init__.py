from .daily_checkin import DailyCheckin
from .weekly_summary import WeeklySummary

__all__ = [
    "DailyCheckin",
    "WeeklySummary",
]
