"""Tests for data models."""

from datetime import datetime, timezone

from conftest import make_card
from gitflow_studio.models.cleanup import BatchFailure, BatchResult
from gitflow_studio.models.worktree import (
    CommitSummary,
    StatusSnapshot,
    WorktreeState,
    parse_iso_datetime,
)


class TestParseIsoDatetime:
    def test_offset_and_zulu(self):
        assert parse_iso_datetime("2026-10-01T12:00:00+02:00") == datetime(
            2026, 10, 1, 10, 0, tzinfo=timezone.utc
        )
        assert parse_iso_datetime("2026-10-01T10:00:00Z") == datetime(
            2026, 10, 1, 10, 0, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self):
        assert parse_iso_datetime("2026-10-01T10:00:00").tzinfo == timezone.utc

    def test_invalid(self):
        assert parse_iso_datetime("") is None
        assert parse_iso_datetime("yesterday") is None


class TestStatusSnapshot:
    def test_change_count(self):
        status = StatusSnapshot(modified_count=1, staged_count=2, untracked_count=3, ahead=4)

        assert status.change_count == 6
        assert status.has_changes
        assert not StatusSnapshot(ahead=1, behind=1).has_changes


class TestCommitSummary:
    def test_empty(self):
        commit = CommitSummary.empty()

        assert commit.sha == ""
        assert commit.message == "No commits"
        assert commit.relative_date == "never"
        assert commit.committed_at is not None


class TestWorktreeCard:
    def test_proxies_record_and_status(self):
        card = make_card(
            "/work/feature-a",
            branch="refs/heads/feature/a",
            status=StatusSnapshot(modified_count=2),
            state=WorktreeState.ACTIVE,
        )

        assert card.path == "/work/feature-a"
        assert card.branch == "refs/heads/feature/a"
        assert card.branch_short == "feature/a"
        assert card.modified_count == 2
        assert card.has_changes
        assert str(card) == "WorktreeCard(name='feature/a', state='active')"

    def test_to_dict(self):
        card = make_card("/work/x", branch=None, is_main=False)

        data = card.to_dict()

        assert data["path"] == "/work/x"
        assert data["branch"] is None
        assert data["is_detached"] is True
        assert data["branch_short"] == "x"
        assert data["state"] == "idle"
        assert data["modified_count"] == 0
        assert data["last_commit"]["sha"] == "b" * 40
        assert data["display_name"] == "x"


class TestBatchResult:
    def test_all_succeeded(self):
        assert BatchResult(succeeded=["a"]).all_succeeded
        assert not BatchResult(failed=[BatchFailure("b", "boom")]).all_succeeded
