"""
Core reminder data model and time arithmetic.
"""

from .clock import check_window, is_due, is_future, parse_timestamp, utcnow, within_horizon
from .models import ReminderList, ReminderRecord

__all__ = [
    "ReminderRecord",
    "ReminderList",
    "parse_timestamp",
    "check_window",
    "is_due",
    "is_future",
    "within_horizon",
    "utcnow",
]
