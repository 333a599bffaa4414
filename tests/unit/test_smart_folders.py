"""Unit tests for smart folder evaluation."""

import pytest

from screenshot_semantic.metadata import MetadataStore
from screenshot_semantic.models import (
    AllRule,
    ContentTypeRule,
    DateRangeRule,
    FavoritesRule,
    RecentRule,
    Screenshot,
    ScreenshotMetadata,
    TagRule,
)
from screenshot_semantic.smart_folders import DAY_MS, SmartFolderEvaluator

NOW = 1_700_000_000_000
HOUR_MS = 3_600_000


@pytest.fixture
def metadata(tmp_path):
    store = MetadataStore(tmp_path / "screenshots.db")
    yield store
    store.close()


@pytest.fixture
def evaluator(metadata):
    return SmartFolderEvaluator(metadata, clock=lambda: NOW)


def add_shot(store, name, created_at=NOW, keywords=None):
    shot = store.add_screenshot(
        Screenshot(filepath=f"/shots/{name}", filename=name, created_at=created_at)
    )
    if keywords is not None:
        store.add_metadata(ScreenshotMetadata(screenshot_id=shot.id, ai_keywords=keywords))
    return shot


def ids(screenshots):
    return [s.id for s in screenshots]


class TestEvaluate:
    """Each rule kind against a small library."""

    def test_all_newest_first(self, metadata, evaluator):
        old = add_shot(metadata, "old.png", created_at=NOW - DAY_MS)
        new = add_shot(metadata, "new.png", created_at=NOW)

        assert ids(evaluator.evaluate(AllRule())) == [new.id, old.id]

    def test_recent_window(self, metadata, evaluator):
        stale = add_shot(metadata, "stale.png", created_at=NOW - 8 * DAY_MS)
        fresh = add_shot(metadata, "fresh.png", created_at=NOW - HOUR_MS)

        result = ids(evaluator.evaluate(RecentRule(days=7)))

        assert result == [fresh.id]
        assert stale.id not in result

    def test_recent_boundary_is_inclusive(self, metadata, evaluator):
        edge = add_shot(metadata, "edge.png", created_at=NOW - 7 * DAY_MS)

        assert ids(evaluator.evaluate(RecentRule(days=7))) == [edge.id]

    def test_favorites(self, metadata, evaluator):
        liked = add_shot(metadata, "liked.png")
        add_shot(metadata, "other.png")
        metadata.set_favorite(liked.id)

        assert ids(evaluator.evaluate(FavoritesRule())) == [liked.id]

    def test_tag(self, metadata, evaluator):
        tagged = add_shot(metadata, "tagged.png")
        add_shot(metadata, "untagged.png")
        tag_id = metadata.add_tag("receipts")
        metadata.tag_screenshot(tagged.id, tag_id)

        assert ids(evaluator.evaluate(TagRule(tag_id=tag_id))) == [tagged.id]
        assert evaluator.evaluate(TagRule(tag_id=tag_id + 100)) == []

    def test_date_range_inclusive(self, metadata, evaluator):
        add_shot(metadata, "before.png", created_at=999)
        start = add_shot(metadata, "start.png", created_at=1_000)
        end = add_shot(metadata, "end.png", created_at=2_000)
        add_shot(metadata, "after.png", created_at=2_001)

        result = evaluator.evaluate(DateRangeRule(start=1_000, end=2_000))

        assert ids(result) == [end.id, start.id]

    def test_date_range_open_end_means_now(self, metadata, evaluator):
        current = add_shot(metadata, "current.png", created_at=NOW)
        add_shot(metadata, "future.png", created_at=NOW + DAY_MS)

        assert ids(evaluator.evaluate(DateRangeRule(start=0))) == [current.id]

    def test_content_type_matches_keyword_blob(self, metadata, evaluator):
        code = add_shot(metadata, "code.png", keywords=["code", "python"])
        add_shot(metadata, "chart.png", keywords=["chart"])

        assert ids(evaluator.evaluate(ContentTypeRule(content_type="code"))) == [code.id]

    def test_content_type_is_case_sensitive(self, metadata, evaluator):
        add_shot(metadata, "code.png", keywords=["code"])

        assert evaluator.evaluate(ContentTypeRule(content_type="Code")) == []

    def test_unknown_rule_yields_nothing(self, metadata, evaluator):
        add_shot(metadata, "a.png")

        assert evaluator.evaluate(object()) == []


class TestStoredFolders:
    """Folders read back from the metadata store."""

    def test_default_folders(self, evaluator):
        folders = evaluator.smart_folders()

        assert [f.name for f in folders] == ["All Screenshots", "Recent", "Favorites"]
        assert isinstance(folders[1].filter_rule, RecentRule)
        assert folders[1].filter_rule.days == 7

    def test_evaluate_folder(self, metadata, evaluator):
        add_shot(metadata, "stale.png", created_at=NOW - 30 * DAY_MS)
        fresh = add_shot(metadata, "fresh.png")

        assert ids(evaluator.evaluate_folder(2)) == [fresh.id]

    def test_evaluate_stored_camel_case_rule(self, metadata, evaluator):
        code = add_shot(metadata, "code.png", keywords=["code"])
        folder_id = metadata.add_folder("Code", {"type": "content_type", "contentType": "code"})

        assert ids(evaluator.evaluate_folder(folder_id)) == [code.id]

    def test_unknown_stored_rule_fails_closed(self, metadata, evaluator):
        add_shot(metadata, "a.png")
        folder_id = metadata.add_folder("Broken", {"type": "unsupported_kind"})

        assert evaluator.evaluate_folder(folder_id) == []
        assert "Broken" not in [f.name for f in evaluator.smart_folders()]

    def test_missing_and_plain_folders(self, metadata, evaluator):
        add_shot(metadata, "a.png")
        plain_id = metadata.add_folder("Inbox")

        assert evaluator.evaluate_folder(plain_id) == []
        assert evaluator.evaluate_folder(9999) == []
