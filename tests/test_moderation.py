"""
Unit tests for ModerationService - each admin flow writes the audit action,
the story change, the author notification and (for reports) the resolution.

Run with: python -m pytest tests/test_moderation.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from athemaria.models import AdminActionType, Report
from athemaria.services import FirestoreService, ModerationService, NotFoundError
from fakes import FakeFirestoreClient


class TestActOnReport:
    """Report actions: delete, request correction, block"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client)
        self.moderation = ModerationService(self.store)
        self.client.seed("stories", "story-123456", {
            "title": "Reported", "authorId": "author", "status": "published",
        })
        self.client.seed("reports", "r1", {
            "storyId": "story-123456", "userId": "reporter", "reason": "spam",
            "createdAt": "1", "resolved": False,
        })
        self.report = Report(id="r1", story_id="story-123456", user_id="reporter", reason="spam")

    def teardown_method(self):
        self.store.shutdown()

    def _only(self, collection):
        docs = list(self.client.docs(collection).values())
        assert len(docs) == 1, f"expected one {collection} document, found {len(docs)}"
        return docs[0]

    async def test_delete_soft_deletes_and_notifies_author(self):
        await self.moderation.act_on_report(self.report, AdminActionType.DELETE, "Plagiarism")

        story = self.client.docs("stories")["story-123456"]
        assert story["deleted"] is True
        assert story["deletedAt"]

        action = self._only("adminActions")
        assert action["actionType"] == "delete"
        assert action["message"] == "Plagiarism"

        notification = self._only("notifications")
        assert notification["userId"] == "author"
        assert notification["type"] == "story_deleted"
        assert notification["link"] == "/my-stories"
        assert "Plagiarism" in notification["message"]
        assert notification["read"] is False

        assert self.client.docs("reports")["r1"]["resolved"] is True

    async def test_delete_without_message_uses_default_reason(self):
        await self.moderation.act_on_report(self.report, AdminActionType.DELETE)

        assert "Violation of terms" in self._only("notifications")["message"]

    async def test_request_correction_sets_pending_status(self):
        await self.moderation.act_on_report(self.report, AdminActionType.REQUEST_CORRECTION, "Fix chapter 2")

        assert self.client.docs("stories")["story-123456"]["status"] == "pending_correction"
        notification = self._only("notifications")
        assert notification["type"] == "correction_requested"
        assert notification["link"] == "/write?id=story-123456"
        assert self._only("adminActions")["actionType"] == "request_correction"
        assert self.client.docs("reports")["r1"]["resolved"] is True

    async def test_block_unpublishes_story(self):
        await self.moderation.act_on_report(self.report, "block", "Hate speech")

        story = self.client.docs("stories")["story-123456"]
        assert story["status"] == "draft"
        assert story.get("deleted") is not True
        assert self._only("notifications")["type"] == "story_blocked"

    async def test_missing_story_leaves_report_open(self):
        report = Report(id="r1", story_id="vanished", user_id="reporter", reason="spam")

        with pytest.raises(NotFoundError):
            await self.moderation.act_on_report(report, AdminActionType.DELETE)

        assert self.client.docs("reports")["r1"]["resolved"] is False
        assert self.client.docs("adminActions") == {}

    async def test_approve_is_not_a_report_action(self):
        with pytest.raises(ValueError):
            await self.moderation.act_on_report(self.report, AdminActionType.APPROVE)

    async def test_dismiss_only_resolves(self):
        await self.moderation.dismiss_report("r1")

        assert self.client.docs("reports")["r1"]["resolved"] is True
        assert self.client.docs("stories")["story-123456"]["status"] == "published"
        assert self.client.docs("notifications") == {}


class TestCorrectionReview:
    """Approve or reject a story sent back for correction"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client)
        self.moderation = ModerationService(self.store)
        self.client.seed("stories", "s1", {
            "title": "Fixed Story", "authorId": "author", "status": "pending_correction",
        })

    def teardown_method(self):
        self.store.shutdown()

    async def test_approve_publishes_and_notifies(self):
        story = await self.store.get_story("s1")

        await self.moderation.approve_correction(story)

        assert self.client.docs("stories")["s1"]["status"] == "published"
        [action] = self.client.docs("adminActions").values()
        assert action["actionType"] == "approve"
        [notification] = self.client.docs("notifications").values()
        assert notification["type"] == "story_approved"
        assert notification["link"] == "/story/s1"
        assert '"Fixed Story"' in notification["message"]

    async def test_approve_requires_pending_correction(self):
        self.client.seed("stories", "d1", {"title": "Draft", "authorId": "author", "status": "draft"})
        story = await self.store.get_story("d1")

        with pytest.raises(ValueError):
            await self.moderation.approve_correction(story)

        assert self.client.docs("stories")["d1"]["status"] == "draft"
        assert self.client.docs("adminActions") == {}
        assert self.client.docs("notifications") == {}

    async def test_reject_requires_reason(self):
        story = await self.store.get_story("s1")

        with pytest.raises(ValueError):
            await self.moderation.reject_correction(story, "   ")

        assert self.client.docs("stories")["s1"].get("deleted") is None
        assert self.client.docs("adminActions") == {}

    async def test_reject_soft_deletes_and_notifies(self):
        story = await self.store.get_story("s1")

        await self.moderation.reject_correction(story, "Still off-topic")

        assert self.client.docs("stories")["s1"]["deleted"] is True
        [action] = self.client.docs("adminActions").values()
        assert action["actionType"] == "delete"
        assert action["message"] == "Story deleted after review. Reason: Still off-topic"
        [notification] = self.client.docs("notifications").values()
        assert notification["type"] == "story_deleted"
        assert notification["userId"] == "author"
