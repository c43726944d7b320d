"""Utility helpers for Athemaria"""

from .timestamps import now_ms, days_ago_ms, MS_PER_DAY

__all__ = ["now_ms", "days_ago_ms", "MS_PER_DAY"]
