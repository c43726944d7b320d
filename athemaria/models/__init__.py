"""
Models package - Pydantic data models for Athemaria

Re-exports all models for cleaner imports:
    from athemaria.models import Story, Chapter, UserProfile
"""

from athemaria.models.models import (
    DocumentModel,
    # Enums
    StoryStatus,
    AdminActionType,
    NotificationType,
    # Normalization
    normalize_story_data,
    number_chapters,
    default_chapter_title,
    LEGACY_CHAPTER_ID,
    # Stories
    Chapter,
    Story,
    StoryDraft,
    StoryCreate,
    StoryUpdate,
    UserStory,
    # Profiles
    UserProfile,
    UserProfileUpdate,
    # Social
    Comment,
    CommentCreate,
    Rating,
    RatingInput,
    RatingStats,
    ReadingProgress,
    # Moderation
    Report,
    ReportCreate,
    AdminAction,
    AdminActionCreate,
    Notification,
    NotificationCreate,
)

__all__ = [
    "DocumentModel",
    "StoryStatus",
    "AdminActionType",
    "NotificationType",
    "normalize_story_data",
    "number_chapters",
    "default_chapter_title",
    "LEGACY_CHAPTER_ID",
    "Chapter",
    "Story",
    "StoryDraft",
    "StoryCreate",
    "StoryUpdate",
    "UserStory",
    "UserProfile",
    "UserProfileUpdate",
    "Comment",
    "CommentCreate",
    "Rating",
    "RatingInput",
    "RatingStats",
    "ReadingProgress",
    "Report",
    "ReportCreate",
    "AdminAction",
    "AdminActionCreate",
    "Notification",
    "NotificationCreate",
]
