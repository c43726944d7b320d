"""
Centralized Validation Limits

All content length limits in one place for consistency.
Import these in both API routes and Pydantic models.
"""

# =============================================================================
# STORY LIMITS
# =============================================================================

TITLE_MAX_LENGTH = 200

DESCRIPTION_MAX_LENGTH = 5000

# Chapter content (one chapter of prose)
CHAPTER_CONTENT_MAX_LENGTH = 200000

# Genres picked from the three selectors in the editor
MAX_GENRES = 3
MIN_GENRES = 1

MAX_TAGS = 20
TAG_MAX_LENGTH = 50

# =============================================================================
# SOCIAL LIMITS
# =============================================================================

COMMENT_MAX_LENGTH = 5000
REPORT_REASON_MAX_LENGTH = 2000
ADMIN_MESSAGE_MAX_LENGTH = 2000

RATING_MIN = 1
RATING_MAX = 5

# =============================================================================
# PROFILE LIMITS
# =============================================================================

DISPLAY_NAME_MAX_LENGTH = 100
BIO_MAX_LENGTH = 2000

# =============================================================================
# LISTING DEFAULTS
# =============================================================================

STORIES_PAGE_SIZE = 50
POPULAR_STORIES_COUNT = 10
CONTINUE_READING_COUNT = 5
