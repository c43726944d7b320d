"""
Unit tests for the story lifecycle in FirestoreService.

Covers creation defaults, legacy-shape normalization, soft delete and
restore, listings, and the retention purge. Runs against the in-memory
Firestore fake.

Run with: python -m pytest tests/test_story_lifecycle.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from athemaria.models import Chapter, StoryCreate, StoryStatus
from athemaria.services import FirestoreService, StorageError
from athemaria.utils import MS_PER_DAY
from fakes import FakeFirestoreClient

DEFAULT_COVER = "placeholders/cover.png"
NOW = 1_700_000_000  # epoch seconds
NOW_MS = NOW * 1000


def _ms(days_ago: float) -> str:
    return str(int(NOW_MS - days_ago * MS_PER_DAY))


class TestCreateStory:
    """New stories get their defaults filled in"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client, default_cover=DEFAULT_COVER)

    def teardown_method(self):
        self.store.shutdown()

    async def test_defaults_cover_chapters_and_counters(self):
        """A story saved without a cover or chapters gets the placeholder and an empty list."""
        story_id = await self.store.create_story(StoryCreate(
            title="The Lighthouse",
            genres=["Fantasy"],
            author_id="author-1",
        ))

        data = self.client.docs("stories")[story_id]
        assert data["coverImage"] == DEFAULT_COVER
        assert data["chapters"] == []
        assert data["readCount"] == 0
        assert data["deleted"] is False
        assert data["deletedAt"] is None
        assert data["status"] == "draft"
        assert data["authorId"] == "author-1"
        assert data["createdAt"] == data["updatedAt"]

    async def test_keeps_given_cover_and_numbers_chapters(self):
        """Chapters are renumbered 1..n and untitled ones get a default title."""
        story_id = await self.store.create_story(StoryCreate(
            title="Two Parts",
            genres=["Mystery"],
            author_id="author-1",
            status=StoryStatus.PUBLISHED,
            cover_image="https://cdn.example.com/cover.jpg",
            chapters=[
                Chapter(title="", content="first", order=7),
                Chapter(title="The End", content="second", order=3),
            ],
        ))

        story = await self.store.get_story(story_id)
        assert story.cover_image == "https://cdn.example.com/cover.jpg"
        assert [(c.title, c.order) for c in story.chapters] == [("Chapter 1", 1), ("The End", 2)]
        assert story.status == "published"

    async def test_write_failure_raises_storage_error(self):
        """Store failures surface as StorageError with the SDK error chained."""
        self.client.available = False

        with pytest.raises(StorageError) as exc_info:
            await self.store.create_story(StoryCreate(title="T", genres=["Drama"], author_id="a"))

        assert str(exc_info.value) == "Failed to create story"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestReadNormalization:
    """Stories written in older shapes read back in the current shape"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client, default_cover=DEFAULT_COVER)

    def teardown_method(self):
        self.store.shutdown()

    async def test_legacy_content_becomes_single_chapter(self):
        self.client.seed("stories", "legacy", {"title": "Old", "content": "Once upon a time", "authorId": "a"})

        story = await self.store.get_story("legacy")

        assert len(story.chapters) == 1
        chapter = story.chapters[0]
        assert (chapter.id, chapter.title, chapter.content, chapter.order) == (
            "default", "Chapter 1", "Once upon a time", 1
        )

    async def test_missing_fields_get_defaults(self):
        self.client.seed("stories", "bare", {"title": "Bare", "genre": "Horror", "createdAt": "100"})

        story = await self.store.get_story("bare")

        assert story.chapters == []
        assert story.genres == ["Horror"]
        assert story.tags == []
        assert story.status == "published"
        assert story.updated_at == "100"
        assert story.cover_image == DEFAULT_COVER
        assert story.read_count == 0
        assert story.deleted is False

    async def test_missing_story_returns_none(self):
        assert await self.store.get_story("nope") is None

    async def test_read_failure_returns_none(self):
        self.client.available = False
        assert await self.store.get_story("any") is None
        assert await self.store.get_stories() == []

    async def test_malformed_story_is_skipped(self):
        self.client.seed("stories", "good", {"title": "Good", "createdAt": "200", "chapters": [{"content": None}]})
        self.client.seed("stories", "bad", {"title": "Bad", "createdAt": "100", "readCount": "many"})

        stories = await self.store.get_stories()

        assert [s.id for s in stories] == ["good"]
        assert stories[0].chapters[0].content == ""
        assert await self.store.get_story("bad") is None


class TestSoftDeleteAndRestore:
    """Soft delete moves a story between the author's live and deleted lists"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client, default_cover=DEFAULT_COVER)
        self.client.seed("stories", "s1", {"title": "One", "authorId": "author-1", "createdAt": "1"})
        self.client.seed("stories", "s2", {"title": "Two", "authorId": "author-1", "createdAt": "2"})
        self.client.seed("stories", "other", {"title": "Other", "authorId": "author-2", "createdAt": "3"})

    def teardown_method(self):
        self.store.shutdown()

    async def test_soft_delete_moves_story_to_deleted_list(self):
        await self.store.soft_delete_story("s1")

        live = await self.store.get_user_stories("author-1")
        deleted = await self.store.get_deleted_stories("author-1")

        assert [s.id for s in live] == ["s2"]
        assert [s.id for s in deleted] == ["s1"]
        assert deleted[0].deleted_at is not None
        assert self.client.docs("stories")["s1"]["deleted"] is True

    async def test_restore_reverses_soft_delete(self):
        await self.store.soft_delete_story("s1")
        await self.store.restore_story("s1")

        live = await self.store.get_user_stories("author-1")
        assert sorted(s.id for s in live) == ["s1", "s2"]
        assert await self.store.get_deleted_stories("author-1") == []
        assert self.client.docs("stories")["s1"]["deletedAt"] is None

    async def test_user_story_cards_carry_counts(self):
        self.client.seed("comments", "c1", {"storyId": "s2", "userId": "u", "text": "hi", "createdAt": "5"})
        self.client.seed("ratings", "r1", {"storyId": "s2", "userId": "u1", "value": 4})
        self.client.seed("ratings", "r2", {"storyId": "s2", "userId": "u2", "value": 2})

        cards = {card.id: card for card in await self.store.get_user_stories("author-1")}

        assert cards["s2"].comment_count == 1
        assert cards["s2"].average_rating == 3
        assert cards["s2"].image_url == DEFAULT_COVER
        assert cards["s1"].comment_count == 0

    async def test_public_listing_hides_deleted_stories(self):
        await self.store.soft_delete_story("s2")

        stories = await self.store.get_stories()

        assert [s.id for s in stories] == ["other", "s1"]

    async def test_soft_delete_of_missing_story_raises(self):
        with pytest.raises(StorageError):
            await self.store.soft_delete_story("missing")


class TestPurgeOldStories:
    """The retention purge removes exactly the expired soft-deleted stories"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client)
        self.client.seed("stories", "expired", {"title": "A", "deleted": True, "deletedAt": _ms(31)})
        self.client.seed("stories", "recent", {"title": "B", "deleted": True, "deletedAt": _ms(5)})
        self.client.seed("stories", "live", {"title": "C", "deleted": False, "deletedAt": None})
        self.client.seed("stories", "legacy", {"title": "D"})

    def teardown_method(self):
        self.store.shutdown()

    async def test_purges_only_expired_stories(self):
        purged = await self.store.purge_old_stories(30, now=NOW)

        assert purged == 1
        assert sorted(self.client.docs("stories")) == ["legacy", "live", "recent"]

    async def test_shorter_retention_purges_more(self):
        purged = await self.store.purge_old_stories(1, now=NOW)

        assert purged == 2
        assert sorted(self.client.docs("stories")) == ["legacy", "live"]

    async def test_nothing_to_purge(self):
        assert await self.store.purge_old_stories(60, now=NOW) == 0
        assert len(self.client.docs("stories")) == 4

    async def test_candidates_are_what_the_purge_removes(self):
        candidates = await self.store.get_purge_candidates(30, now=NOW)

        assert [s.id for s in candidates] == ["expired"]
        assert await self.store.purge_old_stories(30, now=NOW) == 1

    async def test_failure_aborts_job(self):
        self.client.available = False

        with pytest.raises(StorageError):
            await self.store.purge_old_stories(30, now=NOW)


class TestListings:
    """Popular, by-status and continue-reading listings"""

    def setup_method(self):
        self.client = FakeFirestoreClient()
        self.store = FirestoreService(client=self.client)
        self.client.seed("stories", "hit", {"title": "Hit", "status": "published", "readCount": 50, "authorId": "a"})
        self.client.seed("stories", "mid", {"title": "Mid", "status": "published", "readCount": 10, "authorId": "b"})
        self.client.seed("stories", "draft", {"title": "Draft", "status": "draft", "readCount": 99, "authorId": "a"})
        self.client.seed("stories", "gone", {
            "title": "Gone", "status": "published", "readCount": 70, "authorId": "b",
            "deleted": True, "deletedAt": "1",
        })

    def teardown_method(self):
        self.store.shutdown()

    async def test_popular_stories_are_published_by_read_count(self):
        stories = await self.store.get_popular_stories(10)
        assert [s.id for s in stories] == ["hit", "mid"]

    async def test_continue_reading_excludes_own_and_deleted(self):
        self.client.seed("readingProgress", "reader_hit", {"userId": "reader", "storyId": "hit", "lastReadDate": "300"})
        self.client.seed("readingProgress", "reader_mid", {"userId": "reader", "storyId": "mid", "lastReadDate": "200"})
        self.client.seed("readingProgress", "reader_gone", {"userId": "reader", "storyId": "gone", "lastReadDate": "400"})
        self.client.seed("readingProgress", "b_hit", {"userId": "b", "storyId": "hit", "lastReadDate": "100"})
        self.client.seed("readingProgress", "b_mid", {"userId": "b", "storyId": "mid", "lastReadDate": "500"})

        reader = await self.store.get_continue_reading_stories("reader")
        author_b = await self.store.get_continue_reading_stories("b")

        assert [s.id for s in reader] == ["hit", "mid"]
        assert [s.id for s in author_b] == ["hit"]

    async def test_stories_by_status(self):
        self.client.seed("stories", "fix", {"title": "Fix", "status": "pending_correction", "updatedAt": "9"})

        stories = await self.store.get_stories_by_status(StoryStatus.PENDING_CORRECTION)

        assert [s.id for s in stories] == ["fix"]
