"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Session idle-timeout checks
- Timestamp formatting for captions and summaries
"""

from datetime import datetime, timedelta
from typing import Optional


def is_session_expired(last_interaction: datetime, timeout_minutes: int = 30) -> bool:
    """
    Checks if a session has expired based on last interaction time.
    """
    if not last_interaction:
        return True

    expiry_time = last_interaction + timedelta(minutes=timeout_minutes)
    return datetime.utcnow() > expiry_time


def format_timestamp(dt: Optional[datetime], format_str: str = "%Y-%m-%d %H:%M UTC") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)
