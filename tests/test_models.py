"""
Unit tests for model validation and story normalization.

Run with: python -m pytest tests/test_models.py -v
"""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from athemaria.config.limits import CHAPTER_CONTENT_MAX_LENGTH, TAG_MAX_LENGTH
from athemaria.models import (
    Chapter,
    StoryDraft,
    StoryUpdate,
    UserProfile,
    UserProfileUpdate,
    RatingInput,
    normalize_story_data,
)


class TestNormalizeStoryData:
    def test_chapters_win_over_legacy_content(self):
        data = {"chapters": [{"id": "c1", "title": "One", "content": "new", "order": 1}], "content": "old"}

        normalized = normalize_story_data(data)

        assert normalized["chapters"] == data["chapters"]
        assert "content" not in normalized

    def test_genres_list_wins_over_legacy_genre(self):
        normalized = normalize_story_data({"genres": ["Sci-Fi"], "genre": "Romance"})
        assert normalized["genres"] == ["Sci-Fi"]
        assert "genre" not in normalized

    def test_deleted_flag_is_strict_boolean(self):
        assert normalize_story_data({"deleted": "yes"})["deleted"] is False
        assert normalize_story_data({"deleted": True})["deleted"] is True

    def test_stored_document_is_not_mutated(self):
        data = {"content": "text"}
        normalize_story_data(data)
        assert data == {"content": "text"}

    def test_null_chapter_fields_get_defaults(self):
        normalized = normalize_story_data({"chapters": [{"id": "c1", "content": None, "title": None}]})

        assert normalized["chapters"] == [{"id": "c1", "content": "", "title": "", "order": 1}]


class TestStoryDraft:
    def test_requires_at_least_one_genre(self):
        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=[])
        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=["", "  "])
        with pytest.raises(ValidationError):
            StoryDraft(title="T")

    def test_at_most_three_genres(self):
        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=["a", "b", "c", "d"])

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            StoryDraft(title="   ", genres=["Drama"])

    def test_tags_accept_comma_string(self):
        draft = StoryDraft(title=" Title ", genres=["Drama"], tags="dragons, , quests ")

        assert draft.title == "Title"
        assert draft.tags == ["dragons", "quests"]

    def test_camel_case_input_accepted(self):
        draft = StoryDraft.model_validate({"title": "T", "genres": ["Drama"], "coverImage": "https://x/c.png"})

        assert draft.cover_image == "https://x/c.png"
        assert draft.to_document()["coverImage"] == "https://x/c.png"

    def test_chapters_get_generated_ids(self):
        draft = StoryDraft(title="T", genres=["Drama"], chapters=[Chapter(content="a"), Chapter(content="b")])

        assert draft.chapters[0].id != draft.chapters[1].id
        assert [c.order for c in draft.chapters] == [1, 2]

    def test_pending_correction_status_rejected(self):
        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=["Drama"], status="pending_correction")
        with pytest.raises(ValidationError):
            StoryUpdate(status="pending_correction")

        assert StoryUpdate(status="published").to_updates() == {"status": "published"}

    def test_tag_length_limit(self):
        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=["Drama"], tags=["x" * (TAG_MAX_LENGTH + 1)])

    def test_chapter_length_limit(self):
        too_long = Chapter(content="x" * (CHAPTER_CONTENT_MAX_LENGTH + 1))

        with pytest.raises(ValidationError):
            StoryDraft(title="T", genres=["Drama"], chapters=[too_long])
        with pytest.raises(ValidationError):
            StoryUpdate(chapters=[too_long])


class TestPartialUpdates:
    def test_story_update_writes_only_set_fields(self):
        update = StoryUpdate(title="New Title", cover_image="https://x/c.png")

        assert update.to_updates() == {"title": "New Title", "coverImage": "https://x/c.png"}

    def test_profile_update_uses_document_field_names(self):
        update = UserProfileUpdate.model_validate({"displayName": "Ada", "socialLinks": {"x": "@ada"}})

        assert update.to_updates() == {"displayName": "Ada", "socialLinks": {"x": "@ada"}}


class TestProfilesAndRatings:
    def test_profile_from_sparse_document(self):
        profile = UserProfile.from_document("u1", {"favorites": None, "bio": None})

        assert profile.id == "u1"
        assert profile.favorites == []
        assert profile.bio == ""

    def test_rating_range(self):
        RatingInput(story_id="s", user_id="u", value=1)
        RatingInput(story_id="s", user_id="u", value=5)
        with pytest.raises(ValidationError):
            RatingInput(story_id="s", user_id="u", value=0)
        with pytest.raises(ValidationError):
            RatingInput(story_id="s", user_id="u", value=6)
