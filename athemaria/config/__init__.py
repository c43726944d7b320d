"""Configuration package for Athemaria"""

from .settings import Settings, get_settings
from .limits import (
    TITLE_MAX_LENGTH,
    MAX_GENRES,
    COMMENT_MAX_LENGTH,
    RATING_MIN,
    RATING_MAX,
)

__all__ = [
    "Settings",
    "get_settings",
    "TITLE_MAX_LENGTH",
    "MAX_GENRES",
    "COMMENT_MAX_LENGTH",
    "RATING_MIN",
    "RATING_MAX",
]
