"""
Pydantic data models for Athemaria

Documents keep the camelCase field names the web client has always written
to Firestore. Models expose snake_case attributes with camelCase aliases and
accept either form on input.

FIELD LIMITS
============
| Field              | Min | Max     | Model         | Notes                          |
|--------------------|-----|---------|---------------|--------------------------------|
| Story.title        | 1   | 200     | StoryDraft    | Stripped before validation     |
| Story.genres       | 1   | 3       | StoryDraft    | Empty selectors dropped        |
| Story.tags         | 0   | 20      | StoryDraft    | Comma string accepted; 50 each |
| Chapter.content    | 0   | 200,000 | StoryDraft    |                                |
| Story.status       |     |         | StoryDraft    | draft or published only        |
| Comment.text       | 1   | 5,000   | CommentCreate |                                |
| Rating.value       | 1   | 5       | RatingInput   |                                |
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any, Union
from enum import Enum
import uuid

from athemaria.config.limits import (
    TITLE_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    CHAPTER_CONTENT_MAX_LENGTH,
    MAX_GENRES,
    MIN_GENRES,
    MAX_TAGS,
    TAG_MAX_LENGTH,
    COMMENT_MAX_LENGTH,
    REPORT_REASON_MAX_LENGTH,
    ADMIN_MESSAGE_MAX_LENGTH,
    RATING_MIN,
    RATING_MAX,
    DISPLAY_NAME_MAX_LENGTH,
    BIO_MAX_LENGTH,
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class DocumentModel(BaseModel):
    """Base for every Firestore-backed model: camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_document(self, exclude_id: bool = True) -> Dict[str, Any]:
        """Serialize for a Firestore write (the id lives in the document path)."""
        exclude = {"id"} if exclude_id and "id" in type(self).model_fields else None
        return self.model_dump(by_alias=True, exclude=exclude)


# ============================================================================
# Enums
# ============================================================================

class StoryStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    PENDING_CORRECTION = "pending_correction"


class AdminActionType(str, Enum):
    DELETE = "delete"
    REQUEST_CORRECTION = "request_correction"
    APPROVE = "approve"
    BLOCK = "block"


class NotificationType(str, Enum):
    STORY_DELETED = "story_deleted"
    CORRECTION_REQUESTED = "correction_requested"
    STORY_APPROVED = "story_approved"
    STORY_BLOCKED = "story_blocked"


# ============================================================================
# Legacy Shape Normalizer
# ============================================================================

LEGACY_CHAPTER_ID = "default"


def default_chapter_title(position: int) -> str:
    return f"Chapter {position}"


def _normalize_chapter(chapter: Dict[str, Any], position: int) -> Dict[str, Any]:
    normalized = {key: value for key, value in chapter.items() if value is not None}
    normalized.setdefault("content", "")
    normalized.setdefault("title", "")
    normalized.setdefault("order", position)
    return normalized


def normalize_story_data(data: Dict[str, Any], default_cover: str = "") -> Dict[str, Any]:
    """
    Upgrade a raw story document to the current shape.

    Older stories were written with a single `content` string instead of a
    `chapters` array, and with a single `genre` string instead of `genres`.
    Both are upgraded here, at read time; the stored document is untouched.

    Args:
        data: Raw Firestore document data
        default_cover: Cover URL used when the document has none

    Returns:
        New dict with chapters, genres, tags, status, timestamps and counters
        filled in
    """
    normalized = dict(data)

    chapters = data.get("chapters")
    if chapters is None:
        if data.get("content") is not None:
            chapters = [{
                "id": LEGACY_CHAPTER_ID,
                "title": default_chapter_title(1),
                "content": data["content"],
                "order": 1,
            }]
        else:
            chapters = []
    normalized["chapters"] = [_normalize_chapter(chapter, position)
                              for position, chapter in enumerate(chapters, start=1)
                              if isinstance(chapter, dict)]
    normalized.pop("content", None)

    genres = data.get("genres")
    if isinstance(genres, list):
        normalized["genres"] = genres
    elif isinstance(data.get("genre"), str) and data.get("genre"):
        normalized["genres"] = [data["genre"]]
    else:
        normalized["genres"] = []
    normalized.pop("genre", None)

    tags = data.get("tags")
    normalized["tags"] = tags if isinstance(tags, list) else []

    normalized["title"] = data.get("title") or ""
    normalized["description"] = data.get("description") or ""
    normalized["status"] = data.get("status") or StoryStatus.PUBLISHED.value
    normalized["updatedAt"] = data.get("updatedAt") or data.get("createdAt")
    normalized["coverImage"] = data.get("coverImage") or default_cover
    normalized["readCount"] = data.get("readCount") or 0
    normalized["deleted"] = data.get("deleted") is True
    normalized["deletedAt"] = data.get("deletedAt") or None
    return normalized


def number_chapters(chapters: List["Chapter"]) -> List["Chapter"]:
    """Renumber chapters 1..n and give untitled chapters a default title."""
    return [
        chapter.model_copy(update={
            "title": chapter.title or default_chapter_title(position),
            "order": position,
        })
        for position, chapter in enumerate(chapters, start=1)
    ]


def _clean_genres(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    genres = [genre.strip() for genre in value if genre and genre.strip()]
    if len(genres) < MIN_GENRES:
        raise ValueError("Please select at least one genre")
    if len(genres) > MAX_GENRES:
        raise ValueError(f"Maximum {MAX_GENRES} genres allowed")
    return genres


def _clean_tags(value: Union[str, List[str], None]) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    tags = [tag.strip() for tag in value if tag and tag.strip()]
    if len(tags) > MAX_TAGS:
        raise ValueError(f"Maximum {MAX_TAGS} tags allowed")
    if any(len(tag) > TAG_MAX_LENGTH for tag in tags):
        raise ValueError(f"Tags must be at most {TAG_MAX_LENGTH} characters")
    return tags


def _check_chapters(chapters: List["Chapter"]) -> List["Chapter"]:
    for chapter in chapters:
        if len(chapter.content) > CHAPTER_CONTENT_MAX_LENGTH:
            raise ValueError(f"Chapter content must be at most {CHAPTER_CONTENT_MAX_LENGTH} characters")
    return number_chapters(chapters)


def _author_status(value):
    # pending_correction is set by moderation only
    if value == StoryStatus.PENDING_CORRECTION:
        raise ValueError("Stories can only be saved as draft or published")
    return value


# ============================================================================
# Story Models
# ============================================================================

class Chapter(DocumentModel):
    """One chapter of a story, stored inline in the story document"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    title: str = ""
    content: str = ""
    order: int = 1


class Story(DocumentModel):
    """A story as read back from Firestore, always in normalized shape"""
    id: str
    title: str = ""
    description: str = ""
    chapters: List[Chapter] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    status: StoryStatus = StoryStatus.PUBLISHED
    cover_image: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    read_count: int = 0
    deleted: bool = False
    deleted_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any], default_cover: str = "") -> "Story":
        return cls.model_validate({**normalize_story_data(data, default_cover), "id": doc_id})


class StoryDraft(DocumentModel):
    """What an author submits from the editor"""
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    chapters: List[Chapter] = Field(default_factory=list)
    genres: List[str] = Field(..., description="One to three genres")
    tags: List[str] = Field(default_factory=list)
    status: StoryStatus = StoryStatus.DRAFT
    cover_image: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Story title cannot be empty")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        return v.strip()

    @field_validator("genres")
    @classmethod
    def validate_genres(cls, v):
        return _clean_genres(v)

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)

    @field_validator("chapters")
    @classmethod
    def validate_chapters(cls, v):
        return _check_chapters(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _author_status(v)


class StoryCreate(StoryDraft):
    """A draft plus its author, ready to persist"""
    author_id: str
    author_name: str = "Anonymous"


class StoryUpdate(DocumentModel):
    """Partial story update; only the fields that were set are written"""
    title: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    chapters: Optional[List[Chapter]] = None
    genres: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    status: Optional[StoryStatus] = None
    cover_image: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Story title cannot be empty")
        return v

    @field_validator("genres")
    @classmethod
    def validate_genres(cls, v):
        return _clean_genres(v)

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)

    @field_validator("chapters")
    @classmethod
    def validate_chapters(cls, v):
        return _check_chapters(v) if v is not None else v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _author_status(v)

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class UserStory(DocumentModel):
    """Card shown on the author's own story list"""
    id: str
    title: str = ""
    image_url: str = ""
    comment_count: int = 0
    average_rating: float = 0
    deleted_at: Optional[str] = None


# ============================================================================
# User Profile Models
# ============================================================================

class UserProfile(DocumentModel):
    """Profile document; id is the auth uid"""
    id: Optional[str] = None
    display_name: Optional[str] = Field(default=None, max_length=DISPLAY_NAME_MAX_LENGTH)
    email: Optional[str] = None
    bio: str = Field(default="", max_length=BIO_MAX_LENGTH)
    avatar: str = ""
    social_links: Dict[str, str] = Field(default_factory=dict)
    website: str = ""
    favorites: List[str] = Field(default_factory=list)
    read_later: List[str] = Field(default_factory=list)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "UserProfile":
        return cls.model_validate({
            "id": doc_id,
            "displayName": data.get("displayName"),
            "email": data.get("email"),
            "bio": data.get("bio") or "",
            "avatar": data.get("avatar") or "",
            "socialLinks": data.get("socialLinks") or {},
            "website": data.get("website") or "",
            "favorites": data.get("favorites") or [],
            "readLater": data.get("readLater") or [],
        })


class UserProfileUpdate(DocumentModel):
    """Fields a user may edit on their profile page"""
    display_name: Optional[str] = Field(default=None, max_length=DISPLAY_NAME_MAX_LENGTH)
    email: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=BIO_MAX_LENGTH)
    avatar: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None
    website: Optional[str] = None

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


# ============================================================================
# Comments and Ratings
# ============================================================================

class CommentCreate(DocumentModel):
    story_id: str
    user_id: str
    user_name: str
    user_avatar: Optional[str] = None
    text: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)


class Comment(DocumentModel):
    id: str
    story_id: str
    user_id: str
    user_name: Optional[str] = None
    user_avatar: Optional[str] = None
    text: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RatingInput(DocumentModel):
    story_id: str
    user_id: str
    value: int = Field(..., ge=RATING_MIN, le=RATING_MAX)


class Rating(DocumentModel):
    id: str
    story_id: str
    user_id: str
    value: int


class RatingStats(BaseModel):
    average: float = 0
    count: int = 0


class ReadingProgress(DocumentModel):
    """Last time a user opened a story; id is `{user_id}_{story_id}`"""
    id: Optional[str] = None
    user_id: str
    story_id: str
    last_read_date: str

    @staticmethod
    def document_id(user_id: str, story_id: str) -> str:
        return f"{user_id}_{story_id}"


# ============================================================================
# Moderation Models
# ============================================================================

class ReportCreate(DocumentModel):
    story_id: str
    user_id: str
    reason: str = Field(..., min_length=1, max_length=REPORT_REASON_MAX_LENGTH)


class Report(DocumentModel):
    id: str
    story_id: str
    user_id: str
    reason: str = ""
    created_at: Optional[str] = None
    resolved: bool = False


class AdminActionCreate(DocumentModel):
    story_id: str
    action_type: AdminActionType
    message: str = Field(default="", max_length=ADMIN_MESSAGE_MAX_LENGTH)


class AdminAction(DocumentModel):
    id: str
    story_id: str
    action_type: AdminActionType
    message: str = ""
    created_at: Optional[str] = None


class NotificationCreate(DocumentModel):
    user_id: str
    type: str
    message: str
    link: Optional[str] = None


class Notification(DocumentModel):
    id: str
    user_id: str
    type: str
    message: str = ""
    link: Optional[str] = None
    created_at: Optional[str] = None
    read: bool = False
