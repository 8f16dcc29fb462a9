"""Tests for link data models."""

import pytest

from linksignal.links.schemas import (
    BatchSummary,
    IngestErrorCode,
    IngestResult,
    LinkMetadata,
    is_placeholder_title,
)


class TestLinkMetadata:
    """Tests for LinkMetadata."""

    def test_blank_fields_become_none(self) -> None:
        metadata = LinkMetadata(title="  ", description=" A description ")
        assert metadata.title is None
        assert metadata.description == "A description"

    def test_is_empty(self) -> None:
        assert LinkMetadata().is_empty
        assert not LinkMetadata(author="Jane").is_empty

    def test_merged_with_prefers_own_values(self) -> None:
        own = LinkMetadata(title="Feed title")
        fallback = LinkMetadata(title="Page title", description="Page description")

        merged = own.merged_with(fallback)

        assert merged.title == "Feed title"
        assert merged.description == "Page description"


class TestIsPlaceholderTitle:
    """Tests for is_placeholder_title."""

    @pytest.mark.parametrize("title", [None, "", "   ", "Untitled", "HOME", "(no title)", "No Title"])
    def test_placeholders(self, title) -> None:
        assert is_placeholder_title(title)

    def test_title_equal_to_url(self) -> None:
        assert is_placeholder_title("https://example.com/a/", "https://example.com/a")

    def test_real_title(self) -> None:
        assert not is_placeholder_title("The Home Team Wins", "https://example.com/a")


class TestBatchSummary:
    """Tests for BatchSummary aggregation."""

    def test_add_counts_outcomes(self) -> None:
        summary = BatchSummary()
        summary.add(IngestResult(success=True, link_id="a", is_new_link=True))
        summary.add(IngestResult(success=True, link_id="a", error_code=IngestErrorCode.DUPLICATE))
        summary.add(IngestResult(success=False, error_code=IngestErrorCode.BLACKLISTED))
        summary.add(IngestResult(success=False, error_code=IngestErrorCode.TIMEOUT))
        summary.add(IngestResult(success=True, link_id="b", needs_manual_review=True))
        summary.add(IngestResult(success=True, link_id="b", needs_manual_review=True))

        assert summary.total == 6
        assert summary.succeeded == 4
        assert summary.failed == 2
        assert summary.new_links == 1
        assert summary.duplicates == 1
        assert summary.blacklisted == 1
        assert summary.error_counts == {"duplicate": 1, "blacklisted": 1, "timeout": 1}
        assert summary.needs_review_link_ids == ["b"]

    def test_to_log_dict(self) -> None:
        summary = BatchSummary()
        summary.add(IngestResult(success=True, is_new_link=True))
        summary.duration_seconds = 1.23456

        data = summary.to_log_dict()

        assert data["total"] == 1
        assert data["new_links"] == 1
        assert data["duration_seconds"] == 1.235
        assert data["error_counts"] == {}
