"""Tests for WorktreeService."""

import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import make_record
from gitflow_studio.models.worktree import (
    BranchRecord,
    CommitSummary,
    StatusSnapshot,
    WorktreeState,
)
from gitflow_studio.services.worktree_service import (
    WorktreeService,
    classify_state,
    is_merge_candidate,
)
from gitflow_studio.utils.exceptions import GitError, ServiceError, ValidationError

MAIN_HEAD = "1" * 40
FEATURE_HEAD = "2" * 40


def recent_commit():
    return CommitSummary(
        sha=FEATURE_HEAD,
        short_sha=FEATURE_HEAD[:7],
        message="Work in progress",
        author="Dana",
        date=datetime.now(timezone.utc).isoformat(),
        relative_date="just now",
    )


class TestWorktreeService:
    """Test cases for WorktreeService."""

    @pytest.fixture(autouse=True)
    def setup_service(self, git_service, config_manager):
        self.git_service = git_service
        self.config_manager = config_manager

        self.main = make_record("/repo", MAIN_HEAD, "refs/heads/main")
        self.feature = make_record("/work/feature-a", FEATURE_HEAD, "refs/heads/feature/a")
        self.git_service.list_worktrees.return_value = [self.main, self.feature]
        self.git_service.get_main_worktree_root.return_value = "/repo"
        self.git_service.get_status.return_value = StatusSnapshot()
        self.git_service.get_last_commit.return_value = recent_commit()
        self.git_service.is_branch_merged_into.return_value = False
        self.git_service.list_local_branches.return_value = []

        self.service = WorktreeService(
            git_service=self.git_service, config_manager=self.config_manager
        )

    def test_refresh_builds_cards(self):
        cards = self.service.refresh()

        assert [card.path for card in cards] == ["/repo", "/work/feature-a"]
        assert cards[0].is_main
        assert not cards[1].is_main
        assert cards[1].display_name == "feature/a"
        assert all(card.state == WorktreeState.IDLE for card in cards)
        assert self.service.trunk_branch == "main"
        assert self.service.trunk_head == MAIN_HEAD

    def test_merged_branch_is_classified_merged(self):
        self.git_service.is_branch_merged_into.return_value = True

        cards = self.service.refresh()

        assert cards[1].state == WorktreeState.MERGED
        assert cards[0].state == WorktreeState.IDLE
        self.git_service.is_branch_merged_into.assert_called_once_with("feature/a", "main")

    def test_same_head_as_trunk_is_never_merged(self):
        fresh = make_record("/work/fresh", MAIN_HEAD, "refs/heads/fresh")
        self.git_service.list_worktrees.return_value = [self.main, fresh]
        self.git_service.is_branch_merged_into.return_value = True

        cards = self.service.refresh()

        assert cards[1].state != WorktreeState.MERGED
        self.git_service.is_branch_merged_into.assert_not_called()

    def test_merge_check_failure_counts_as_not_merged(self):
        self.git_service.is_branch_merged_into.side_effect = GitError("boom")

        cards = self.service.refresh()

        assert cards[1].state == WorktreeState.IDLE

    def test_enrichment_failures_degrade_to_defaults(self):
        self.git_service.get_status.side_effect = GitError("status failed")
        self.git_service.get_last_commit.side_effect = GitError("log failed")

        cards = self.service.refresh()

        assert len(cards) == 2
        assert cards[1].status == StatusSnapshot()
        assert cards[1].last_commit.message == "No commits"

    def test_main_root_failure_falls_back_to_first_worktree(self):
        self.git_service.get_main_worktree_root.side_effect = GitError("bare repository")

        cards = self.service.refresh()

        assert cards[0].is_main
        assert not cards[1].is_main

    def test_main_root_not_listed_falls_back_to_first_worktree(self):
        self.git_service.get_main_worktree_root.return_value = "/elsewhere"

        cards = self.service.refresh()

        assert [card.is_main for card in cards] == [True, False]

    def test_running_from_secondary_worktree_keeps_real_main(self):
        # show-toplevel would answer with the secondary worktree here
        self.git_service.get_repo_root.return_value = "/work/feature-a"

        cards = self.service.refresh()

        assert [card.is_main for card in cards] == [True, False]
        assert self.service.get_main_worktree().path == "/repo"
        self.git_service.get_repo_root.assert_not_called()

    def test_main_worktree_matched_by_path_not_position(self):
        self.git_service.list_worktrees.return_value = [self.feature, self.main]

        cards = self.service.refresh()

        assert [card.is_main for card in cards] == [False, True]
        assert self.service.get_main_worktree().path == "/repo"

    def test_trunk_fallback_when_first_worktree_is_detached(self):
        detached = make_record("/repo", MAIN_HEAD)
        self.git_service.list_worktrees.return_value = [detached, self.feature]
        self.git_service.list_local_branches.return_value = [
            BranchRecord(name="develop", is_remote=False),
            BranchRecord(name="master", is_remote=False),
        ]

        self.service.refresh()

        assert self.service.trunk_branch == "master"

    def test_trunk_defaults_to_main(self):
        detached = make_record("/repo", MAIN_HEAD)
        self.git_service.list_worktrees.return_value = [detached]
        self.git_service.list_local_branches.side_effect = GitError("no refs")

        self.service.refresh()

        assert self.service.trunk_branch == "main"

    def test_refresh_failure_keeps_previous_cache(self):
        first = self.service.refresh()
        calls = []

        def on_change():
            calls.append(True)

        self.service.subscribe(on_change)
        self.git_service.list_worktrees.side_effect = GitError("listing failed")

        second = self.service.refresh()

        assert second == first
        assert calls == []

    def test_refresh_never_raises_on_unexpected_error(self):
        self.git_service.list_worktrees.side_effect = RuntimeError("unexpected")

        assert self.service.refresh() == []

    def test_subscribers_notified_once_per_refresh(self):
        calls = []

        def on_change():
            calls.append(True)

        self.service.subscribe(on_change)
        self.service.refresh()
        self.service.refresh()
        assert len(calls) == 2

        self.service.unsubscribe(on_change)
        self.service.refresh()
        assert len(calls) == 2

    def test_unsubscribe_unknown_callback_is_ignored(self):
        self.service.unsubscribe(lambda: None)

    def test_refresh_emits_signal(self, qtbot):
        with qtbot.waitSignal(self.service.worktrees_changed, timeout=1000):
            self.service.refresh()

    def test_concurrent_refresh_shares_one_listing(self):
        entered = threading.Event()
        release = threading.Event()
        worktrees = [self.main, self.feature]

        def slow_listing():
            entered.set()
            release.wait(5)
            return worktrees

        self.git_service.list_worktrees.side_effect = slow_listing
        results = []

        def call_refresh():
            results.append(self.service.refresh())

        first = threading.Thread(target=call_refresh)
        second = threading.Thread(target=call_refresh)
        first.start()
        assert entered.wait(5)
        second.start()
        time.sleep(0.2)
        release.set()
        first.join(5)
        second.join(5)

        assert self.git_service.list_worktrees.call_count == 1
        assert len(results) == 2
        assert results[0] == results[1]

        self.service.refresh()
        assert self.git_service.list_worktrees.call_count == 2

    def test_get_all_uses_cache_until_forced(self):
        self.service.get_all()
        self.service.get_all()
        assert self.git_service.list_worktrees.call_count == 1

        self.service.get_all(force_refresh=True)
        assert self.git_service.list_worktrees.call_count == 2

    def test_get_all_returns_copy(self):
        cards = self.service.get_all()
        cards.clear()

        assert len(self.service.get_all()) == 2

    def test_get_main_worktree(self):
        assert self.service.get_main_worktree().path == "/repo"

    def test_get_main_worktree_without_worktrees(self):
        self.git_service.list_worktrees.return_value = []

        with pytest.raises(ServiceError):
            self.service.get_main_worktree()

    def test_get_branches(self):
        local = [BranchRecord(name="main", is_remote=False)]
        remote = [BranchRecord(name="origin/main", is_remote=True)]
        self.git_service.list_local_branches.return_value = local
        self.git_service.list_remote_branches.return_value = remote

        assert self.service.get_branches() == local + remote


class TestWorktreeServiceMutation:
    """Test cases for create and remove."""

    @pytest.fixture(autouse=True)
    def setup_service(self, git_service, config_manager, tmp_path):
        self.git_service = git_service
        self.config_manager = config_manager
        self.repo_root = tmp_path / "repo"
        self.repo_root.mkdir()

        main = make_record(str(self.repo_root), MAIN_HEAD, "refs/heads/main")
        self.git_service.list_worktrees.return_value = [main]
        self.git_service.get_repo_root.return_value = str(self.repo_root)
        self.git_service.get_main_worktree_root.return_value = str(self.repo_root)
        self.git_service.get_status.return_value = StatusSnapshot()
        self.git_service.get_last_commit.return_value = recent_commit()
        self.git_service.list_local_branches.return_value = []

        self.service = WorktreeService(
            git_service=self.git_service, config_manager=self.config_manager
        )

    def test_create_uses_sanitized_branch_name_next_to_repo(self, tmp_path):
        path = self.service.create("feature/login", base_branch="main", is_new_branch=True)

        expected = str(tmp_path.resolve() / "feature-login")
        assert path == expected
        self.git_service.add_worktree.assert_called_once_with(
            expected, "feature/login", new_branch=True, base_branch="main"
        )
        self.git_service.list_worktrees.assert_called()

    def test_create_existing_branch_drops_base(self, tmp_path):
        self.service.create("feature/login", base_branch="main")

        _, kwargs = self.git_service.add_worktree.call_args
        assert kwargs == {"new_branch": False, "base_branch": None}

    def test_create_with_custom_path(self, tmp_path):
        path = self.service.create("feature/login", custom_path="worktrees/login")

        assert path == str(tmp_path.resolve() / "worktrees" / "login")

    def test_create_with_relative_base_path(self, tmp_path):
        self.config_manager.config.worktree_base_path = "../trees"

        path = self.service.create("bugfix")

        assert path == str(tmp_path.resolve() / "trees" / "bugfix")

    def test_create_with_absolute_base_path(self, tmp_path):
        base = tmp_path / "elsewhere"
        self.config_manager.config.worktree_base_path = str(base)

        path = self.service.create("bugfix")

        assert Path(path) == base.resolve() / "bugfix"

    def test_create_rejects_path_outside_base(self):
        with pytest.raises(ValidationError):
            self.service.create("feature/login", custom_path="../../outside")

        self.git_service.add_worktree.assert_not_called()

    def test_create_requires_branch(self):
        with pytest.raises(ValidationError):
            self.service.create("  ")

    def test_create_propagates_git_failure(self):
        self.git_service.add_worktree.side_effect = GitError("already exists")

        with pytest.raises(GitError):
            self.service.create("feature/login")

    def test_remove_refreshes(self):
        calls = []

        def on_change():
            calls.append(True)

        self.service.subscribe(on_change)
        self.service.remove("/work/x", force=True)

        self.git_service.remove_worktree.assert_called_once_with("/work/x", True)
        assert self.git_service.list_worktrees.call_count == 1
        assert calls == [True]

    def test_remove_drops_path_when_refresh_fails(self):
        removed = make_record("/work/x", FEATURE_HEAD, "refs/heads/x")
        self.git_service.list_worktrees.return_value = [
            make_record(str(self.repo_root), MAIN_HEAD, "refs/heads/main"),
            removed,
        ]
        self.service.refresh()
        self.git_service.list_worktrees.side_effect = GitError("listing failed")

        self.service.remove("/work/x")

        assert [card.path for card in self.service.get_all()] == [str(self.repo_root)]

    def test_remove_propagates_git_failure(self):
        self.git_service.remove_worktree.side_effect = GitError("locked")

        with pytest.raises(GitError):
            self.service.remove("/work/x")

        self.git_service.list_worktrees.assert_not_called()


class TestStateRules:
    """Test cases for merge candidacy and state classification."""

    def setup_method(self):
        self.record = make_record("/work/a", FEATURE_HEAD, "refs/heads/a")
        self.now = datetime(2026, 10, 19, tzinfo=timezone.utc)

    def commit_days_ago(self, days):
        return CommitSummary(sha="x", date=(self.now - timedelta(days=days)).isoformat())

    def test_merge_candidate_rules(self):
        assert is_merge_candidate(self.record, "main", MAIN_HEAD)
        assert not is_merge_candidate(self.record, "a", MAIN_HEAD)
        assert not is_merge_candidate(self.record, "main", FEATURE_HEAD)
        assert not is_merge_candidate(make_record("/work/d", FEATURE_HEAD), "main", MAIN_HEAD)

    def test_merged_wins_over_changes(self):
        state = classify_state(
            self.record,
            StatusSnapshot(modified_count=2),
            self.commit_days_ago(100),
            {"a"},
            14,
            self.now,
        )
        assert state == WorktreeState.MERGED

    def test_active_when_any_change(self):
        for status in (
            StatusSnapshot(staged_count=1),
            StatusSnapshot(modified_count=1),
            StatusSnapshot(untracked_count=1),
        ):
            state = classify_state(
                self.record, status, self.commit_days_ago(100), set(), 14, self.now
            )
            assert state == WorktreeState.ACTIVE

    def test_stale_after_threshold(self):
        state = classify_state(
            self.record, StatusSnapshot(), self.commit_days_ago(15), set(), 14, self.now
        )
        assert state == WorktreeState.STALE

    def test_idle_within_threshold(self):
        state = classify_state(
            self.record, StatusSnapshot(), self.commit_days_ago(3), set(), 14, self.now
        )
        assert state == WorktreeState.IDLE

    def test_unparseable_date_is_idle(self):
        state = classify_state(
            self.record, StatusSnapshot(), CommitSummary(date=""), set(), 14, self.now
        )
        assert state == WorktreeState.IDLE
