"""
API routes for Athemaria

REST endpoints for stories, reading, comments, ratings, favorites,
read-later lists, reports, profiles and notifications.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from typing import Optional
import base64
import binascii
import logging

from athemaria.api.dependencies import (
    AppServices,
    get_services,
    get_current_user,
    get_optional_user,
)
from athemaria.config.limits import (
    COMMENT_MAX_LENGTH,
    REPORT_REASON_MAX_LENGTH,
    RATING_MIN,
    RATING_MAX,
    STORIES_PAGE_SIZE,
    POPULAR_STORIES_COUNT,
    CONTINUE_READING_COUNT,
)
from athemaria.models import (
    DocumentModel,
    Story,
    StoryDraft,
    StoryCreate,
    StoryUpdate,
    UserProfileUpdate,
    CommentCreate,
    RatingInput,
    ReportCreate,
)
from athemaria.services import AuthenticatedUser

# Logger for API routes
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stories"])


# ===== Request Bodies =====

class CommentRequest(DocumentModel):
    text: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)


class RatingRequest(DocumentModel):
    value: int = Field(..., ge=RATING_MIN, le=RATING_MAX)


class ReportRequest(DocumentModel):
    reason: str = Field(..., min_length=1, max_length=REPORT_REASON_MAX_LENGTH)


class FileUpload(DocumentModel):
    """Image sent inline as base64 (covers and avatars)"""
    filename: str
    content_type: Optional[str] = None
    data: str

    def decode(self) -> bytes:
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="File data is not valid base64")


# ===== Helpers =====

async def _get_story_or_404(services: AppServices, story_id: str) -> Story:
    story = await services.store.get_story(story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")
    return story


async def _get_owned_story(services: AppServices, story_id: str, user: AuthenticatedUser) -> Story:
    story = await _get_story_or_404(services, story_id)
    if story.author_id != user.uid:
        raise HTTPException(status_code=403, detail="You do not have permission to modify this story")
    return story


def _require_blob_storage(services: AppServices):
    if not services.blob_storage:
        raise HTTPException(status_code=503, detail="File uploads are not configured")
    return services.blob_storage


async def _author_name(services: AppServices, user: AuthenticatedUser) -> str:
    if user.display_name:
        return user.display_name
    profile = await services.store.get_user_profile(user.uid)
    if profile and profile.display_name:
        return profile.display_name
    return "Anonymous"


# ===== Health =====

@router.get("/health")
async def health_check(services: AppServices = Depends(get_services)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": services.settings.app_name,
        "blob_storage": services.blob_storage is not None,
    }


# ===== Story Listings =====

@router.get("/stories")
async def list_stories(
    limit: int = Query(STORIES_PAGE_SIZE, ge=1, le=200),
    services: AppServices = Depends(get_services),
):
    """Browse page: latest stories, newest first"""
    stories = await services.store.get_stories(limit)
    return {"stories": stories, "count": len(stories)}


@router.get("/stories/popular")
async def popular_stories(
    count: int = Query(POPULAR_STORIES_COUNT, ge=1, le=50),
    services: AppServices = Depends(get_services),
):
    """Home page: most-read published stories"""
    return {"stories": await services.store.get_popular_stories(count)}


@router.get("/stories/continue-reading")
async def continue_reading(
    count: int = Query(CONTINUE_READING_COUNT, ge=1, le=20),
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Home page: stories the caller opened recently (not their own)"""
    return {"stories": await services.store.get_continue_reading_stories(user.uid, count)}


# ===== Story Lifecycle =====

@router.post("/stories", status_code=201)
async def create_story(
    draft: StoryDraft,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Save a new story as draft or published"""
    story = StoryCreate(
        **draft.model_dump(),
        author_id=user.uid,
        author_name=await _author_name(services, user),
    )
    story_id = await services.store.create_story(story)
    logger.info(f"📖 Story created: {story_id} by {user.uid} ({story.status})")
    return {"success": True, "story_id": story_id}


@router.get("/stories/{story_id}")
async def get_story(
    story_id: str,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    services: AppServices = Depends(get_services),
):
    story = await _get_story_or_404(services, story_id)

    # Soft-deleted stories stay visible to their author (restore page) and admins
    if story.deleted and not (user and (user.uid == story.author_id or services.auth.is_admin(user))):
        raise HTTPException(status_code=404, detail="Story not found")
    return story


@router.patch("/stories/{story_id}")
async def update_story(
    story_id: str,
    updates: StoryUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Editor save: write the changed fields"""
    await _get_owned_story(services, story_id, user)
    await services.store.update_story(story_id, updates)
    return {"success": True, "story_id": story_id}


@router.put("/stories/{story_id}/cover")
async def upload_story_cover(
    story_id: str,
    upload: FileUpload,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Replace a story's cover; the previous cover blob is removed"""
    story = await _get_owned_story(services, story_id, user)
    blob_storage = _require_blob_storage(services)

    url = await blob_storage.upload_story_cover(upload.decode(), upload.filename, story_id, upload.content_type)
    await services.store.update_story(story_id, {"coverImage": url})

    if story.cover_image and story.cover_image != url:
        await blob_storage.delete_file_by_url(story.cover_image)
    return {"success": True, "cover_image": url}


@router.delete("/stories/{story_id}")
async def delete_story(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Move a story to the author's trash (purged after the retention period)"""
    await _get_owned_story(services, story_id, user)
    await services.store.soft_delete_story(story_id)
    return {"success": True, "story_id": story_id, "deleted": True}


@router.post("/stories/{story_id}/restore")
async def restore_story(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    story = await _get_owned_story(services, story_id, user)
    if not story.deleted:
        raise HTTPException(status_code=400, detail="Story is not deleted")
    await services.store.restore_story(story_id)
    return {"success": True, "story_id": story_id, "deleted": False}


@router.post("/stories/{story_id}/read")
async def record_read(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Called when the story page opens; never fails the page"""
    await services.store.record_story_read(user.uid, story_id)
    return {"success": True}


# ===== Comments =====

@router.get("/stories/{story_id}/comments")
async def list_comments(story_id: str, services: AppServices = Depends(get_services)):
    comments = await services.store.get_comments(story_id)
    return {"comments": comments, "count": len(comments)}


@router.post("/stories/{story_id}/comments", status_code=201)
async def add_comment(
    story_id: str,
    body: CommentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    profile = await services.store.get_user_profile(user.uid)
    comment_id = await services.store.create_comment(CommentCreate(
        story_id=story_id,
        user_id=user.uid,
        user_name=(profile.display_name if profile else None) or user.display_name or "Anonymous",
        user_avatar=(profile.avatar if profile else None) or None,
        text=body.text,
    ))
    return {"success": True, "comment_id": comment_id}


@router.patch("/comments/{comment_id}")
async def edit_comment(
    comment_id: str,
    body: CommentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.store.update_comment(comment_id, body.text, user.uid)
    return {"success": True, "comment_id": comment_id}


@router.delete("/comments/{comment_id}")
async def remove_comment(
    comment_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.store.delete_comment(comment_id, user.uid)
    return {"success": True, "comment_id": comment_id}


# ===== Ratings =====

@router.get("/stories/{story_id}/rating")
async def rating_stats(
    story_id: str,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    services: AppServices = Depends(get_services),
):
    """Average rating, plus the caller's own rating when signed in"""
    stats = await services.store.get_average_rating(story_id)
    user_rating = await services.store.get_rating(story_id, user.uid) if user else None
    return {
        "average": stats.average,
        "count": stats.count,
        "user_rating": user_rating.value if user_rating else None,
    }


@router.put("/stories/{story_id}/rating")
async def rate_story(
    story_id: str,
    body: RatingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await services.store.set_rating(RatingInput(story_id=story_id, user_id=user.uid, value=body.value))
    stats = await services.store.get_average_rating(story_id)
    return {"success": True, "average": stats.average, "count": stats.count}


# ===== Favorites / Read Later =====

@router.get("/stories/{story_id}/favorite")
async def favorite_status(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"favorited": await services.store.is_story_favorited(user.uid, story_id)}


@router.post("/stories/{story_id}/favorite")
async def toggle_favorite(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"favorited": await services.store.toggle_favorite(user.uid, story_id)}


@router.get("/stories/{story_id}/read-later")
async def read_later_status(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"read_later": await services.store.is_story_in_read_later(user.uid, story_id)}


@router.post("/stories/{story_id}/read-later")
async def toggle_read_later(
    story_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"read_later": await services.store.toggle_read_later(user.uid, story_id)}


# ===== Reports =====

@router.post("/stories/{story_id}/report", status_code=201)
async def report_story(
    story_id: str,
    body: ReportRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    await _get_story_or_404(services, story_id)
    report_id = await services.store.create_report(ReportCreate(
        story_id=story_id,
        user_id=user.uid,
        reason=body.reason,
    ))
    logger.info(f"🚩 Story {story_id} reported by {user.uid}")
    return {"success": True, "report_id": report_id}


# ===== The Caller's Own Data =====

@router.get("/me/stories")
async def my_stories(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"stories": await services.store.get_user_stories(user.uid)}


@router.get("/me/stories/deleted")
async def my_deleted_stories(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {
        "stories": await services.store.get_deleted_stories(user.uid),
        "retention_days": services.settings.purge_retention_days,
    }


@router.get("/me/favorites")
async def my_favorites(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"stories": await services.store.get_favorite_stories(user.uid)}


@router.get("/me/read-later")
async def my_read_later(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    return {"stories": await services.store.get_read_later_stories(user.uid)}


@router.get("/me/profile")
async def my_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    profile = await services.store.get_user_profile(user.uid)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("/me/profile")
async def save_my_profile(
    updates: UserProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    """Save profile edits; the profile is created on first save"""
    data = updates.to_updates()
    data.setdefault("email", user.email)
    if user.display_name:
        data.setdefault("displayName", user.display_name)
    return await services.store.save_user_profile(user.uid, data)


@router.put("/me/avatar")
async def upload_my_avatar(
    upload: FileUpload,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    blob_storage = _require_blob_storage(services)
    previous = await services.store.get_user_profile(user.uid)

    url = await blob_storage.upload_avatar(upload.decode(), upload.filename, user.uid, upload.content_type)
    await services.store.save_user_profile(user.uid, {"avatar": url, "email": user.email})

    # Same path means the upload already overwrote it
    if previous and previous.avatar and previous.avatar != url:
        await blob_storage.delete_file_by_url(previous.avatar)
    return {"success": True, "avatar": url}


# ===== Notifications =====

@router.get("/me/notifications")
async def my_notifications(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    notifications = await services.store.get_user_notifications(user.uid)
    return {
        "notifications": notifications,
        "unread": sum(1 for notification in notifications if not notification.read),
    }


@router.post("/me/notifications/read-all")
async def mark_all_notifications_read(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    updated = await services.store.mark_all_user_notifications_as_read(user.uid)
    return {"success": True, "updated": updated}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    notification = await services.store.get_notification(notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    if notification.user_id != user.uid:
        raise HTTPException(status_code=403, detail="You do not have permission to modify this notification")

    await services.store.mark_notification_as_read(notification_id)
    return {"success": True, "notification_id": notification_id}
