"""
Moderation workflows for the admin dashboard.

Each flow is a sequence of independent writes (audit action, story change,
notification, report resolution). Nothing is rolled back: if a later step
fails, the earlier ones stay applied and the error propagates.
"""

from typing import Optional
import logging

from athemaria.models import (
    Story,
    StoryStatus,
    Report,
    AdminActionType,
    AdminActionCreate,
    NotificationCreate,
    NotificationType,
)
from athemaria.services.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_DELETE_REASON = "Violation of terms"


def _short_id(story_id: str) -> str:
    return f"{story_id[:6]}..."


class ModerationService:
    """Admin actions on reports and on stories awaiting correction review"""

    def __init__(self, firestore_service, logger=None):
        """
        Args:
            firestore_service: FirestoreService used for every write
            logger: Optional AthemariaLogger for moderation events
        """
        self.store = firestore_service
        self.logger = logger

    def _log_action(self, action_type: str, story_id: str, admin_id: str = ""):
        if self.logger:
            self.logger.moderation_action(action_type, story_id, admin_id)

    async def _notify(self, user_id: Optional[str], notification_type: NotificationType, message: str, link: str):
        if not user_id:
            logger.warning(f"No recipient for {notification_type.value} notification, skipping")
            return
        await self.store.create_notification(NotificationCreate(
            user_id=user_id,
            type=notification_type.value,
            message=message,
            link=link,
        ))

    async def act_on_report(
        self,
        report: Report,
        action_type: AdminActionType,
        message: str = "",
        admin_id: str = ""
    ) -> str:
        """
        Apply an admin decision to a reported story and resolve the report.

        Steps, in order: record the admin action, change the story, notify
        its author, resolve the report.

        Args:
            report: The report being handled
            action_type: delete, request_correction or block
            message: Reason shown to the author
            admin_id: Acting admin (for logs only)

        Returns:
            The id of the recorded admin action

        Raises:
            NotFoundError: the reported story no longer exists
            ValueError: action_type is not a report action
        """
        action_type = AdminActionType(action_type)
        if action_type == AdminActionType.APPROVE:
            raise ValueError("Reports cannot be approved; dismiss them instead")

        story = await self.store.get_story(report.story_id)
        if story is None:
            raise NotFoundError("Story not found")

        action_id = await self.store.create_admin_action(AdminActionCreate(
            story_id=story.id,
            action_type=action_type,
            message=message,
        ))

        if action_type == AdminActionType.DELETE:
            await self.store.soft_delete_story(story.id)
            await self._notify(
                story.author_id,
                NotificationType.STORY_DELETED,
                f"Your story (ID: {_short_id(story.id)}) has been deleted. "
                f"Reason: {message or DEFAULT_DELETE_REASON}.",
                "/my-stories",
            )
        elif action_type == AdminActionType.REQUEST_CORRECTION:
            await self.store.update_story(story.id, {"status": StoryStatus.PENDING_CORRECTION.value})
            await self._notify(
                story.author_id,
                NotificationType.CORRECTION_REQUESTED,
                f"A correction is required for your story (ID: {_short_id(story.id)}). Admin message: {message}",
                f"/write?id={story.id}",
            )
        elif action_type == AdminActionType.BLOCK:
            await self.store.update_story(story.id, {"status": StoryStatus.DRAFT.value})
            await self._notify(
                story.author_id,
                NotificationType.STORY_BLOCKED,
                f'Your story "{story.title}" has been unpublished by a moderator. Reason: {message or DEFAULT_DELETE_REASON}.',
                f"/write?id={story.id}",
            )

        await self.store.resolve_report(report.id)
        self._log_action(action_type.value, story.id, admin_id)
        return action_id

    async def dismiss_report(self, report_id: str, admin_id: str = "") -> None:
        """Resolve a report without touching the story."""
        await self.store.resolve_report(report_id)
        logger.info(f"Report {report_id} dismissed by {admin_id or 'admin'}")

    async def approve_correction(self, story: Story, admin_id: str = "") -> str:
        """
        Publish a corrected story and tell its author.

        Raises:
            ValueError: story is not waiting for correction review
        """
        if story.status != StoryStatus.PENDING_CORRECTION:
            raise ValueError("Only stories pending correction can be approved")
        await self.store.update_story(story.id, {"status": StoryStatus.PUBLISHED.value})
        action_id = await self.store.create_admin_action(AdminActionCreate(
            story_id=story.id,
            action_type=AdminActionType.APPROVE,
            message="Story approved after correction.",
        ))
        await self._notify(
            story.author_id,
            NotificationType.STORY_APPROVED,
            f'Your story "{story.title}" has been approved and published!',
            f"/story/{story.id}",
        )
        self._log_action(AdminActionType.APPROVE.value, story.id, admin_id)
        return action_id

    async def reject_correction(self, story: Story, reason: str, admin_id: str = "") -> str:
        """
        Remove a story whose correction was not accepted.

        Raises:
            ValueError: reason is empty
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A reason is required to reject a correction")

        await self.store.soft_delete_story(story.id)
        action_id = await self.store.create_admin_action(AdminActionCreate(
            story_id=story.id,
            action_type=AdminActionType.DELETE,
            message=f"Story deleted after review. Reason: {reason}",
        ))
        await self._notify(
            story.author_id,
            NotificationType.STORY_DELETED,
            f'Your story "{story.title}" was not approved after correction and has been removed. Reason: {reason}',
            "/my-stories",
        )
        self._log_action(AdminActionType.DELETE.value, story.id, admin_id)
        return action_id
