"""
Firestore service for Athemaria

Handles all Cloud Firestore operations for stories, profiles, comments,
ratings, reading progress, reports, admin actions and notifications.

Every operation is an independent round-trip: there are no transactions, no
batched writes and no atomic increments. Counters and membership lists are
read, changed in Python, and written back (last writer wins).
"""

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import Query
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError
from typing import Optional, Dict, Any, List, Union
from concurrent.futures import ThreadPoolExecutor
import asyncio
import logging
import os
import time

from athemaria.models import (
    Story,
    StoryCreate,
    StoryUpdate,
    StoryStatus,
    UserStory,
    UserProfile,
    Comment,
    CommentCreate,
    Rating,
    RatingInput,
    RatingStats,
    ReadingProgress,
    Report,
    ReportCreate,
    AdminAction,
    AdminActionCreate,
    Notification,
    NotificationCreate,
)
from athemaria.config.limits import STORIES_PAGE_SIZE, POPULAR_STORIES_COUNT, CONTINUE_READING_COUNT
from athemaria.services.errors import StorageError, NotFoundError, PermissionDeniedError
from athemaria.utils import now_ms, days_ago_ms

logger = logging.getLogger(__name__)

# Collection names
STORIES = "stories"
COMMENTS = "comments"
RATINGS = "ratings"
USERS = "users"
READING_PROGRESS = "readingProgress"
REPORTS = "reports"
ADMIN_ACTIONS = "adminActions"
NOTIFICATIONS = "notifications"

# Profile fields holding story-id membership lists
FAVORITES_FIELD = "favorites"
READ_LATER_FIELD = "readLater"


class FirestoreService:
    """Service for Cloud Firestore operations"""

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_dict: Optional[Dict[str, Any]] = None,
        credentials_path: Optional[str] = None,
        default_cover: str = "",
        client=None,
        logger=None
    ):
        """
        Initialize Firestore service.

        Args:
            project_id: Google Cloud project id
            credentials_dict: Optional dict with service account credentials
            credentials_path: Optional path to a service account JSON file
            default_cover: Cover URL given to stories that have none
            client: Optional pre-built Firestore client (skips initialize())
            logger: Optional AthemariaLogger for storage debug logging
        """
        self.project_id = project_id
        self.credentials_dict = credentials_dict
        self.credentials_path = credentials_path
        self.default_cover = default_cover
        self.logger = logger
        self.client = client
        self._initialized = client is not None
        # Thread pool for async operations (the Firestore client is synchronous)
        self._executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="firestore")

    async def _run_sync(self, func, *args, **kwargs):
        """Run a synchronous Firestore operation in the thread pool to avoid blocking."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))

    def shutdown(self):
        """Shutdown the thread pool executor. Call during app shutdown."""
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def initialize(self):
        """Initialize Firebase app and Firestore client (call once at startup)"""
        if self._initialized:
            return

        try:
            firebase_admin.get_app()
            logger.info("Firebase app already initialized")
        except ValueError:
            if self.credentials_dict:
                logger.info("Initializing Firebase with credentials from environment variables")
                cred = credentials.Certificate(self.credentials_dict)
            elif self.credentials_path and os.path.exists(self.credentials_path):
                logger.info("Initializing Firebase with credentials file: [REDACTED]")
                cred = credentials.Certificate(self.credentials_path)
            else:
                logger.info("Initializing Firebase with Application Default Credentials")
                cred = credentials.ApplicationDefault()

            options = {"projectId": self.project_id} if self.project_id else None
            firebase_admin.initialize_app(cred, options)

        self.client = firestore.client()
        self._initialized = True

    def _collection(self, name: str):
        return self.client.collection(name)

    def _log_write(self, operation: str, path: str, summary: str, started: float, data: Any = None):
        if self.logger:
            self.logger.storage_operation(
                operation=operation,
                path=path,
                data_summary=summary,
                size_bytes=len(str(data)) if data else 0,
                duration=time.time() - started
            )

    def _log_read(self, path: str, summary: str, started: float, size_bytes: int = 0):
        if self.logger:
            self.logger.storage_read(
                path=path,
                result_summary=summary,
                size_bytes=size_bytes,
                duration=time.time() - started
            )

    # =====================================================================
    # Story Operations
    # =====================================================================

    async def create_story(self, story: StoryCreate) -> str:
        """
        Persist a new story.

        Missing covers get the placeholder; counters and the soft-delete
        flag start cleared.

        Returns:
            The generated story id
        """
        started = time.time()
        now = now_ms()
        story_data = story.to_document()
        story_data.update({
            "coverImage": story.cover_image or self.default_cover,
            "createdAt": now,
            "updatedAt": now,
            "readCount": 0,
            "deleted": False,
            "deletedAt": None,
        })

        def _sync_create():
            _, doc_ref = self._collection(STORIES).add(story_data)
            return doc_ref.id

        try:
            story_id = await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error adding story: {e}", exc_info=True)
            raise StorageError("Failed to create story") from e

        self._log_write("add", f"{STORIES}/{story_id}", f"Story: {story.title}", started, story_data)
        return story_id

    async def get_story(self, story_id: str) -> Optional[Story]:
        """
        Retrieve a story in normalized shape.

        Returns:
            Story or None if it does not exist (or the read failed)
        """
        started = time.time()

        def _sync_get():
            return self._collection(STORIES).document(story_id).get()

        try:
            snapshot = await self._run_sync(_sync_get)
        except Exception as e:
            logger.error(f"Error getting story {story_id}: {e}", exc_info=True)
            return None

        self._log_read(f"{STORIES}/{story_id}", "Story found" if snapshot.exists else "Story not found", started)
        if not snapshot.exists:
            return None
        return self._to_story(snapshot.id, snapshot.to_dict() or {})

    def _to_story(self, doc_id: str, data: Dict[str, Any]) -> Optional[Story]:
        """Normalize one story document; malformed documents are logged and skipped."""
        try:
            return Story.from_document(doc_id, data, self.default_cover)
        except ValidationError as e:
            logger.warning(f"Skipping malformed story {doc_id}: {e}")
            return None

    async def _query_stories(self, build_query, description: str) -> List[Story]:
        """Run a story query and normalize every document."""
        started = time.time()

        def _sync_query():
            return [(doc.id, doc.to_dict() or {}) for doc in build_query().stream()]

        try:
            rows = await self._run_sync(_sync_query)
        except Exception as e:
            logger.error(f"Error getting {description}: {e}", exc_info=True)
            return []

        self._log_read(STORIES, f"{len(rows)} {description}", started)
        stories = [self._to_story(doc_id, data) for doc_id, data in rows]
        return [story for story in stories if story is not None]

    async def get_stories(self, limit_count: int = STORIES_PAGE_SIZE) -> List[Story]:
        """Latest stories, newest first. Soft-deleted stories are filtered out here."""
        stories = await self._query_stories(
            lambda: self._collection(STORIES)
            .order_by("createdAt", direction=Query.DESCENDING)
            .limit(limit_count),
            "stories"
        )
        return [story for story in stories if not story.deleted]

    async def get_popular_stories(self, count: int = POPULAR_STORIES_COUNT) -> List[Story]:
        """Published stories with the highest read counts."""
        stories = await self._query_stories(
            lambda: self._collection(STORIES)
            .where(filter=FieldFilter("status", "==", StoryStatus.PUBLISHED.value))
            .order_by("readCount", direction=Query.DESCENDING)
            .limit(count),
            "popular stories"
        )
        return [story for story in stories if not story.deleted]

    async def get_stories_by_status(self, status: Union[StoryStatus, str]) -> List[Story]:
        """Stories in a given lifecycle status, most recently updated first (admin view)."""
        status_value = status.value if isinstance(status, StoryStatus) else status
        return await self._query_stories(
            lambda: self._collection(STORIES)
            .where(filter=FieldFilter("status", "==", status_value))
            .order_by("updatedAt", direction=Query.DESCENDING),
            f"stories with status {status_value}"
        )

    async def get_stories_by_author(self, author_id: str) -> List[Story]:
        """Every story written by an author, including soft-deleted ones."""
        return await self._query_stories(
            lambda: self._collection(STORIES).where(filter=FieldFilter("authorId", "==", author_id)),
            f"stories for author {author_id}"
        )

    async def update_story(self, story_id: str, updates: Union[StoryUpdate, Dict[str, Any]]) -> None:
        """
        Update specific fields of a story. `updatedAt` is always refreshed.

        Args:
            story_id: ID of the story
            updates: StoryUpdate or raw dict of camelCase fields
        """
        started = time.time()
        data = updates.to_updates() if isinstance(updates, StoryUpdate) else dict(updates)
        data["updatedAt"] = now_ms()

        def _sync_update():
            self._collection(STORIES).document(story_id).update(data)

        try:
            await self._run_sync(_sync_update)
        except Exception as e:
            logger.error(f"Error updating story {story_id}: {e}", exc_info=True)
            raise StorageError("Failed to update story") from e

        self._log_write("update", f"{STORIES}/{story_id}", f"Fields: {', '.join(sorted(data))}", started, data)

    async def delete_story(self, story_id: str) -> None:
        """Permanently delete a story document"""
        started = time.time()

        def _sync_delete():
            self._collection(STORIES).document(story_id).delete()

        try:
            await self._run_sync(_sync_delete)
        except Exception as e:
            logger.error(f"Error deleting story {story_id}: {e}", exc_info=True)
            raise StorageError("Failed to delete story") from e

        self._log_write("delete", f"{STORIES}/{story_id}", "Story deleted", started)

    async def soft_delete_story(self, story_id: str) -> None:
        """Flag a story as deleted; it stays in the store until purged."""
        started = time.time()
        data = {"deleted": True, "deletedAt": now_ms()}

        def _sync_soft_delete():
            self._collection(STORIES).document(story_id).update(data)

        try:
            await self._run_sync(_sync_soft_delete)
        except Exception as e:
            logger.error(f"Error soft-deleting story {story_id}: {e}", exc_info=True)
            raise StorageError("Failed to soft-delete story") from e

        self._log_write("update", f"{STORIES}/{story_id}", "Soft delete", started, data)

    async def restore_story(self, story_id: str) -> None:
        """Clear the soft-delete flag."""
        started = time.time()
        data = {"deleted": False, "deletedAt": None}

        def _sync_restore():
            self._collection(STORIES).document(story_id).update(data)

        try:
            await self._run_sync(_sync_restore)
        except Exception as e:
            logger.error(f"Error restoring story {story_id}: {e}", exc_info=True)
            raise StorageError("Failed to restore story") from e

        self._log_write("update", f"{STORIES}/{story_id}", "Restore", started, data)

    async def _to_user_story(self, story: Story, include_deleted_at: bool = False) -> UserStory:
        comment_count = await self.get_comment_count_for_story(story.id)
        stats = await self.get_average_rating(story.id)
        return UserStory(
            id=story.id,
            title=story.title,
            image_url=story.cover_image or self.default_cover,
            comment_count=comment_count,
            average_rating=stats.average,
            deleted_at=story.deleted_at if include_deleted_at else None,
        )

    async def get_user_stories(self, user_id: str) -> List[UserStory]:
        """
        The author's live stories as cards with comment count and rating.

        The `deleted` flag is filtered here rather than in the query, so
        no composite index is needed.
        """
        stories = await self.get_stories_by_author(user_id)
        logger.debug(f"Found {len(stories)} stories for user {user_id}")

        user_stories = []
        for story in stories:
            if story.deleted:
                continue
            user_stories.append(await self._to_user_story(story))
        return user_stories

    async def get_deleted_stories(self, user_id: str) -> List[UserStory]:
        """The author's soft-deleted stories, with their deletion timestamp."""
        stories = await self.get_stories_by_author(user_id)

        deleted_stories = []
        for story in stories:
            if not story.deleted:
                continue
            deleted_stories.append(await self._to_user_story(story, include_deleted_at=True))
        return deleted_stories

    def _expired_stories_query(self, threshold: str):
        return (
            self._collection(STORIES)
            .where(filter=FieldFilter("deleted", "==", True))
            .where(filter=FieldFilter("deletedAt", "<", threshold))
        )

    async def get_purge_candidates(self, retention_days: int = 30, now: Optional[float] = None) -> List[Story]:
        """Soft-deleted stories that `purge_old_stories` would remove."""
        threshold = days_ago_ms(retention_days, now)
        return await self._query_stories(lambda: self._expired_stories_query(threshold), "purge candidates")

    async def purge_old_stories(self, retention_days: int = 30, now: Optional[float] = None) -> int:
        """
        Permanently delete stories soft-deleted more than `retention_days` ago.

        `deletedAt` is a millisecond string, so the threshold is compared as
        a string. Any failure aborts the whole job; stories deleted before
        the failure stay deleted.

        Args:
            retention_days: Age after which soft-deleted stories are removed
            now: Reference time in epoch seconds (defaults to the current time)

        Returns:
            Number of stories purged
        """
        started = time.time()
        threshold = days_ago_ms(retention_days, now)

        def _sync_purge():
            purged = 0
            for doc in self._expired_stories_query(threshold).stream():
                doc.reference.delete()
                purged += 1
            return purged

        try:
            purged = await self._run_sync(_sync_purge)
        except Exception as e:
            logger.error(f"Error purging old stories: {e}", exc_info=True)
            raise StorageError("Failed to purge old stories") from e

        logger.info(f"Purged {purged} old stories")
        self._log_write("delete", STORIES, f"Purged {purged} stories deleted before {threshold}", started)
        return purged

    # =====================================================================
    # Reading Progress
    # =====================================================================

    async def record_story_read(self, user_id: str, story_id: str) -> None:
        """
        Upsert the user's reading progress and bump the story's read count.

        The increment is read-then-write, not atomic; concurrent readers can
        lose counts. Failures are logged and never raised.
        """
        started = time.time()
        progress_id = ReadingProgress.document_id(user_id, story_id)
        progress = ReadingProgress(user_id=user_id, story_id=story_id, last_read_date=now_ms())

        def _sync_record():
            self._collection(READING_PROGRESS).document(progress_id).set(progress.to_document(), merge=True)

            story_ref = self._collection(STORIES).document(story_id)
            snapshot = story_ref.get()
            if not snapshot.exists:
                return False
            current = (snapshot.to_dict() or {}).get("readCount") or 0
            story_ref.update({"readCount": current + 1})
            return True

        try:
            found = await self._run_sync(_sync_record)
        except Exception as e:
            logger.error(f"Error recording story read for story {story_id} by user {user_id}: {e}", exc_info=True)
            return

        if not found:
            logger.warning(f"Story with id {story_id} not found for readCount increment.")
        self._log_write("set", f"{READING_PROGRESS}/{progress_id}", "Reading progress", started)

    async def get_continue_reading_stories(self, user_id: str, count: int = CONTINUE_READING_COUNT) -> List[Story]:
        """
        Stories the user opened most recently, excluding their own.

        Stories that no longer exist or are soft-deleted are skipped.
        """
        started = time.time()

        def _sync_progress():
            query = (
                self._collection(READING_PROGRESS)
                .where(filter=FieldFilter("userId", "==", user_id))
                .order_by("lastReadDate", direction=Query.DESCENDING)
                .limit(count)
            )
            return [(doc.to_dict() or {}).get("storyId") for doc in query.stream()]

        try:
            story_ids = await self._run_sync(_sync_progress)
        except Exception as e:
            logger.error(f"Error getting continue reading stories: {e}", exc_info=True)
            return []

        self._log_read(READING_PROGRESS, f"{len(story_ids)} progress entries", started)

        stories = []
        for story_id in story_ids:
            if not story_id:
                continue
            story = await self.get_story(story_id)
            if story and story.author_id != user_id and not story.deleted:
                stories.append(story)
        return stories

    # =====================================================================
    # Comment Operations
    # =====================================================================

    async def create_comment(self, comment: CommentCreate) -> str:
        """Add a comment; `userAvatar` is stored as null when not given."""
        started = time.time()
        now = now_ms()
        comment_data = comment.to_document()
        comment_data.update({"createdAt": now, "updatedAt": now})

        def _sync_create():
            _, doc_ref = self._collection(COMMENTS).add(comment_data)
            return doc_ref.id

        try:
            comment_id = await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error adding comment to Firestore: {e}", exc_info=True)
            raise StorageError("Failed to create comment") from e

        self._log_write("add", f"{COMMENTS}/{comment_id}", f"Comment on {comment.story_id}", started, comment_data)
        return comment_id

    async def get_comments(self, story_id: str) -> List[Comment]:
        """Comments on a story, newest first."""
        started = time.time()

        def _sync_query():
            query = (
                self._collection(COMMENTS)
                .where(filter=FieldFilter("storyId", "==", story_id))
                .order_by("createdAt", direction=Query.DESCENDING)
            )
            return [Comment.model_validate({**(doc.to_dict() or {}), "id": doc.id}) for doc in query.stream()]

        try:
            comments = await self._run_sync(_sync_query)
        except Exception as e:
            logger.error(f"Error getting comments: {e}", exc_info=True)
            return []

        self._log_read(COMMENTS, f"{len(comments)} comments for {story_id}", started)
        return comments

    async def get_comment_count_for_story(self, story_id: str) -> int:
        def _sync_count():
            query = self._collection(COMMENTS).where(filter=FieldFilter("storyId", "==", story_id))
            return sum(1 for _ in query.stream())

        try:
            return await self._run_sync(_sync_count)
        except Exception as e:
            logger.error(f"Error getting comment count for story {story_id}: {e}", exc_info=True)
            return 0

    def _owned_comment_ref(self, comment_id: str, user_id: str, verb: str):
        """
        Fetch a comment and check that `user_id` wrote it.

        Returns:
            The document reference, or None if the comment does not exist

        Raises:
            PermissionDeniedError: the comment belongs to someone else
        """
        comment_ref = self._collection(COMMENTS).document(comment_id)
        snapshot = comment_ref.get()
        if not snapshot.exists:
            return None

        owner_id = (snapshot.to_dict() or {}).get("userId")
        if owner_id != user_id:
            logger.error(
                f"User {user_id} does not have permission to {verb} comment {comment_id} owned by {owner_id}."
            )
            raise PermissionDeniedError(f"You do not have permission to {verb} this comment.")
        return comment_ref

    async def update_comment(self, comment_id: str, new_text: str, user_id: str) -> None:
        """
        Edit a comment's text. Only the comment's author may do this.

        Raises:
            NotFoundError: the comment does not exist
            PermissionDeniedError: `user_id` is not the author
            StorageError: the store call failed
        """
        started = time.time()

        def _sync_update():
            comment_ref = self._owned_comment_ref(comment_id, user_id, "update")
            if comment_ref is None:
                raise NotFoundError("Comment not found.")
            comment_ref.update({"text": new_text, "updatedAt": now_ms()})

        try:
            await self._run_sync(_sync_update)
        except (NotFoundError, PermissionDeniedError):
            raise
        except Exception as e:
            logger.error(f"Error updating comment {comment_id}: {e}", exc_info=True)
            raise StorageError("Failed to update comment") from e

        logger.info(f"Comment {comment_id} updated by user {user_id}.")
        self._log_write("update", f"{COMMENTS}/{comment_id}", "Comment text", started, new_text)

    async def delete_comment(self, comment_id: str, user_id: str) -> None:
        """
        Delete a comment. Only the comment's author may do this.

        Deleting a comment that is already gone is not an error.

        Raises:
            PermissionDeniedError: `user_id` is not the author
            StorageError: the store call failed
        """
        started = time.time()

        def _sync_delete():
            comment_ref = self._owned_comment_ref(comment_id, user_id, "delete")
            if comment_ref is None:
                return False
            comment_ref.delete()
            return True

        try:
            deleted = await self._run_sync(_sync_delete)
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error(f"Error deleting comment {comment_id}: {e}", exc_info=True)
            raise StorageError("Failed to delete comment") from e

        if not deleted:
            logger.warning(f"Comment {comment_id} not found for delete. Might have already been deleted.")
            return
        self._log_write("delete", f"{COMMENTS}/{comment_id}", "Comment deleted", started)

    # =====================================================================
    # Rating Operations
    # =====================================================================

    def _user_rating_query(self, story_id: str, user_id: str):
        return (
            self._collection(RATINGS)
            .where(filter=FieldFilter("storyId", "==", story_id))
            .where(filter=FieldFilter("userId", "==", user_id))
            .limit(1)
        )

    async def set_rating(self, rating: RatingInput) -> None:
        """Create or update the user's rating for a story (one per story and user)."""
        started = time.time()

        def _sync_set():
            now = now_ms()
            existing = list(self._user_rating_query(rating.story_id, rating.user_id).stream())
            if existing:
                existing[0].reference.update({"value": rating.value, "updatedAt": now})
                return "update"
            self._collection(RATINGS).add({**rating.to_document(), "createdAt": now, "updatedAt": now})
            return "add"

        try:
            operation = await self._run_sync(_sync_set)
        except Exception as e:
            logger.error(f"Error setting rating: {e}", exc_info=True)
            raise StorageError("Failed to set rating") from e

        self._log_write(operation, RATINGS, f"Rating {rating.value} on {rating.story_id}", started)

    async def get_rating(self, story_id: str, user_id: str) -> Optional[Rating]:
        def _sync_get():
            docs = list(self._user_rating_query(story_id, user_id).stream())
            if not docs:
                return None
            data = docs[0].to_dict() or {}
            return Rating(id=docs[0].id, story_id=data.get("storyId"), user_id=data.get("userId"), value=data.get("value"))

        try:
            return await self._run_sync(_sync_get)
        except Exception as e:
            logger.error(f"Error getting rating: {e}", exc_info=True)
            return None

    async def get_average_rating(self, story_id: str) -> RatingStats:
        """
        Average every rating document for a story, in memory.

        Non-numeric values are logged and add nothing to the total but still
        count towards the number of ratings.
        """
        def _sync_values():
            query = self._collection(RATINGS).where(filter=FieldFilter("storyId", "==", story_id))
            return [(doc.id, (doc.to_dict() or {}).get("value")) for doc in query.stream()]

        try:
            values = await self._run_sync(_sync_values)
        except Exception as e:
            logger.error(f"Error getting average rating stats for story {story_id}: {e}", exc_info=True)
            return RatingStats(average=0, count=0)

        count = len(values)
        if count == 0:
            return RatingStats(average=0, count=0)

        total = 0
        for doc_id, value in values:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                total += value
            else:
                logger.warning(f"Invalid rating value found for story {story_id}, rating doc ID {doc_id}: {value!r}")
        return RatingStats(average=total / count, count=count)

    # =====================================================================
    # User Profile Operations
    # =====================================================================

    async def create_user_profile(self, user_id: str, profile: UserProfile) -> None:
        """Write a full profile document, with empty membership lists by default."""
        started = time.time()
        profile_data = profile.to_document()

        def _sync_create():
            self._collection(USERS).document(user_id).set(profile_data)

        try:
            await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error creating user profile: {e}", exc_info=True)
            raise StorageError("Failed to create user profile") from e

        self._log_write("set", f"{USERS}/{user_id}", f"Profile: {profile.display_name}", started, profile_data)

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        started = time.time()

        def _sync_get():
            return self._collection(USERS).document(user_id).get()

        try:
            snapshot = await self._run_sync(_sync_get)
        except Exception as e:
            logger.error(f"Error getting user profile: {e}", exc_info=True)
            return None

        self._log_read(f"{USERS}/{user_id}", "Profile found" if snapshot.exists else "Profile not found", started)
        if not snapshot.exists:
            return None
        return UserProfile.from_document(snapshot.id, snapshot.to_dict() or {})

    async def update_user_profile(self, user_id: str, updates: Dict[str, Any]) -> None:
        """Update specific camelCase fields of an existing profile."""
        started = time.time()

        def _sync_update():
            self._collection(USERS).document(user_id).update(updates)

        try:
            await self._run_sync(_sync_update)
        except Exception as e:
            logger.error(f"Error updating user profile: {e}", exc_info=True)
            raise StorageError("Failed to update user profile") from e

        self._log_write("update", f"{USERS}/{user_id}", f"Fields: {', '.join(sorted(updates))}", started, updates)

    async def save_user_profile(self, user_id: str, updates: Dict[str, Any]) -> UserProfile:
        """
        Save profile edits, creating the profile on first save.

        Returns:
            The profile as stored afterwards
        """
        existing = await self.get_user_profile(user_id)
        if existing:
            await self.update_user_profile(user_id, updates)
        else:
            await self.create_user_profile(user_id, UserProfile.model_validate(updates))

        saved = await self.get_user_profile(user_id)
        if saved is None:
            raise StorageError("Failed to read back user profile")
        return saved

    # =====================================================================
    # Favorites / Read Later
    # =====================================================================

    async def _toggle_membership(self, user_id: str, story_id: str, field: str, label: str) -> bool:
        """
        Add `story_id` to the profile list `field`, or remove it if present.

        Read-modify-write on the whole list; concurrent toggles from two
        sessions can overwrite each other.

        Returns:
            True if the story is in the list afterwards
        """
        started = time.time()

        def _sync_toggle():
            user_ref = self._collection(USERS).document(user_id)
            snapshot = user_ref.get()
            if not snapshot.exists:
                raise NotFoundError("User profile not found")

            current = (snapshot.to_dict() or {}).get(field) or []
            if story_id in current:
                updated = [sid for sid in current if sid != story_id]
            else:
                updated = current + [story_id]
            user_ref.update({field: updated})
            return story_id in updated

        try:
            member = await self._run_sync(_sync_toggle)
        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error toggling {label}: {e}", exc_info=True)
            raise StorageError(f"Failed to toggle {label}") from e

        self._log_write("update", f"{USERS}/{user_id}", f"{field} {'+' if member else '-'}{story_id}", started)
        return member

    async def _is_member(self, user_id: str, story_id: str, field: str) -> bool:
        profile = await self.get_user_profile(user_id)
        if profile is None:
            return False
        return story_id in getattr(profile, "favorites" if field == FAVORITES_FIELD else "read_later")

    async def _stories_in_list(self, user_id: str, field: str) -> List[Story]:
        profile = await self.get_user_profile(user_id)
        if profile is None:
            return []

        story_ids = profile.favorites if field == FAVORITES_FIELD else profile.read_later
        stories = []
        for story_id in story_ids:
            story = await self.get_story(story_id)
            if story:
                stories.append(story)
        return stories

    async def toggle_favorite(self, user_id: str, story_id: str) -> bool:
        return await self._toggle_membership(user_id, story_id, FAVORITES_FIELD, "favorite")

    async def is_story_favorited(self, user_id: str, story_id: str) -> bool:
        return await self._is_member(user_id, story_id, FAVORITES_FIELD)

    async def get_favorite_stories(self, user_id: str) -> List[Story]:
        return await self._stories_in_list(user_id, FAVORITES_FIELD)

    async def toggle_read_later(self, user_id: str, story_id: str) -> bool:
        return await self._toggle_membership(user_id, story_id, READ_LATER_FIELD, "read later")

    async def is_story_in_read_later(self, user_id: str, story_id: str) -> bool:
        return await self._is_member(user_id, story_id, READ_LATER_FIELD)

    async def get_read_later_stories(self, user_id: str) -> List[Story]:
        return await self._stories_in_list(user_id, READ_LATER_FIELD)

    # =====================================================================
    # Reports
    # =====================================================================

    async def create_report(self, report: ReportCreate) -> str:
        started = time.time()
        report_data = {**report.to_document(), "createdAt": now_ms(), "resolved": False}

        def _sync_create():
            _, doc_ref = self._collection(REPORTS).add(report_data)
            return doc_ref.id

        try:
            report_id = await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error creating report: {e}", exc_info=True)
            raise StorageError("Failed to create report") from e

        self._log_write("add", f"{REPORTS}/{report_id}", f"Report on {report.story_id}", started, report_data)
        return report_id

    async def get_report(self, report_id: str) -> Optional[Report]:
        def _sync_get():
            return self._collection(REPORTS).document(report_id).get()

        try:
            snapshot = await self._run_sync(_sync_get)
        except Exception as e:
            logger.error(f"Error getting report {report_id}: {e}", exc_info=True)
            return None

        if not snapshot.exists:
            return None
        return Report.model_validate({**(snapshot.to_dict() or {}), "id": snapshot.id})

    async def get_unresolved_reports(self) -> List[Report]:
        def _sync_query():
            query = (
                self._collection(REPORTS)
                .where(filter=FieldFilter("resolved", "==", False))
                .order_by("createdAt", direction=Query.DESCENDING)
            )
            return [Report.model_validate({**(doc.to_dict() or {}), "id": doc.id}) for doc in query.stream()]

        try:
            return await self._run_sync(_sync_query)
        except Exception as e:
            logger.error(f"Error getting unresolved reports: {e}", exc_info=True)
            return []

    async def resolve_report(self, report_id: str) -> None:
        started = time.time()

        def _sync_resolve():
            self._collection(REPORTS).document(report_id).update({"resolved": True})

        try:
            await self._run_sync(_sync_resolve)
        except Exception as e:
            logger.error(f"Error resolving report {report_id}: {e}", exc_info=True)
            raise StorageError("Failed to resolve report") from e

        self._log_write("update", f"{REPORTS}/{report_id}", "Resolved", started)

    # =====================================================================
    # Admin Actions
    # =====================================================================

    async def create_admin_action(self, action: AdminActionCreate) -> str:
        started = time.time()
        action_data = {**action.to_document(), "createdAt": now_ms()}

        def _sync_create():
            _, doc_ref = self._collection(ADMIN_ACTIONS).add(action_data)
            return doc_ref.id

        try:
            action_id = await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error creating admin action: {e}", exc_info=True)
            raise StorageError("Failed to create admin action") from e

        self._log_write("add", f"{ADMIN_ACTIONS}/{action_id}", f"{action.action_type} on {action.story_id}", started, action_data)
        return action_id

    async def get_admin_actions(self) -> List[AdminAction]:
        """Full moderation audit trail, newest first."""
        def _sync_query():
            query = self._collection(ADMIN_ACTIONS).order_by("createdAt", direction=Query.DESCENDING)
            return [AdminAction.model_validate({**(doc.to_dict() or {}), "id": doc.id}) for doc in query.stream()]

        try:
            return await self._run_sync(_sync_query)
        except Exception as e:
            logger.error(f"Error getting admin actions: {e}", exc_info=True)
            return []

    async def update_admin_action(self, action_id: str, updates: Dict[str, Any]) -> None:
        def _sync_update():
            self._collection(ADMIN_ACTIONS).document(action_id).update(updates)

        try:
            await self._run_sync(_sync_update)
        except Exception as e:
            logger.error(f"Error updating admin action {action_id}: {e}", exc_info=True)
            raise StorageError("Failed to update admin action") from e

    # =====================================================================
    # Notifications
    # =====================================================================

    async def create_notification(self, notification: NotificationCreate) -> str:
        started = time.time()
        notification_data = {**notification.to_document(), "createdAt": now_ms(), "read": False}

        def _sync_create():
            _, doc_ref = self._collection(NOTIFICATIONS).add(notification_data)
            return doc_ref.id

        try:
            notification_id = await self._run_sync(_sync_create)
        except Exception as e:
            logger.error(f"Error creating notification: {e}", exc_info=True)
            raise StorageError("Failed to create notification") from e

        self._log_write("add", f"{NOTIFICATIONS}/{notification_id}", f"{notification.type} for {notification.user_id}", started)
        return notification_id

    async def get_user_notifications(self, user_id: str) -> List[Notification]:
        def _sync_query():
            query = (
                self._collection(NOTIFICATIONS)
                .where(filter=FieldFilter("userId", "==", user_id))
                .order_by("createdAt", direction=Query.DESCENDING)
            )
            return [Notification.model_validate({**(doc.to_dict() or {}), "id": doc.id}) for doc in query.stream()]

        try:
            return await self._run_sync(_sync_query)
        except Exception as e:
            logger.error(f"Error getting notifications for user {user_id}: {e}", exc_info=True)
            return []

    async def get_notification(self, notification_id: str) -> Optional[Notification]:
        def _sync_get():
            return self._collection(NOTIFICATIONS).document(notification_id).get()

        try:
            snapshot = await self._run_sync(_sync_get)
        except Exception as e:
            logger.error(f"Error getting notification {notification_id}: {e}", exc_info=True)
            return None

        if not snapshot.exists:
            return None
        return Notification.model_validate({**(snapshot.to_dict() or {}), "id": snapshot.id})

    async def mark_notification_as_read(self, notification_id: str) -> None:
        def _sync_mark():
            self._collection(NOTIFICATIONS).document(notification_id).update({"read": True})

        try:
            await self._run_sync(_sync_mark)
        except Exception as e:
            logger.error(f"Error marking notification {notification_id} as read: {e}", exc_info=True)
            raise StorageError("Failed to mark notification as read") from e

    async def mark_all_user_notifications_as_read(self, user_id: str) -> int:
        """
        Mark every unread notification of a user as read, one write each.

        Returns:
            Number of notifications updated
        """
        def _sync_mark_all():
            query = (
                self._collection(NOTIFICATIONS)
                .where(filter=FieldFilter("userId", "==", user_id))
                .where(filter=FieldFilter("read", "==", False))
            )
            updated = 0
            for doc in query.stream():
                doc.reference.update({"read": True})
                updated += 1
            return updated

        try:
            return await self._run_sync(_sync_mark_all)
        except Exception as e:
            logger.error(f"Error marking all notifications as read for user {user_id}: {e}", exc_info=True)
            raise StorageError("Failed to mark all notifications as read") from e
