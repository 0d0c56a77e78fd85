"""Worktree cache and lifecycle classification for GitFlow Studio."""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

from PyQt6.QtCore import QObject, pyqtSignal

from ..models.worktree import (
    BranchRecord,
    CommitSummary,
    StatusSnapshot,
    WorktreeCard,
    WorktreeRecord,
    WorktreeState,
)
from ..utils.exceptions import GitError, ServiceError, ValidationError
from ..utils.path_manager import PathManager
from .config_manager import ConfigManager
from .git_service import GitService

logger = logging.getLogger(__name__)

TRUNK_FALLBACK_BRANCHES = ("main", "master", "develop")


def is_merge_candidate(record: WorktreeRecord, trunk_branch: str, trunk_head: str) -> bool:
    """
    Decide whether a worktree's branch should be checked for being merged.

    The trunk itself and branchless worktrees are never checked. Neither is
    a worktree sitting on the same commit as the trunk: a branch freshly
    cut from trunk is trivially an ancestor of it without being merged.
    """
    if not record.branch or record.branch_short == trunk_branch:
        return False
    if trunk_head and record.head == trunk_head:
        return False
    return True


def classify_state(
    record: WorktreeRecord,
    status: StatusSnapshot,
    last_commit: CommitSummary,
    merged_branches: set[str],
    stale_threshold_days: int,
    now: datetime | None = None,
) -> WorktreeState:
    """Pick the lifecycle state; the first matching rule wins."""
    if record.branch and record.branch_short in merged_branches:
        return WorktreeState.MERGED

    if status.has_changes:
        return WorktreeState.ACTIVE

    committed_at = last_commit.committed_at
    if committed_at is not None:
        now = now or datetime.now(timezone.utc)
        if committed_at < now - timedelta(days=stale_threshold_days):
            return WorktreeState.STALE

    return WorktreeState.IDLE


class WorktreeService(QObject):
    """
    Keeps the enriched view of all worktrees of a repository.

    The view is rebuilt by ``refresh``. Concurrent refresh requests share a
    single in-flight cycle, and a cycle that fails keeps the previous view.
    ``worktrees_changed`` is emitted once after every successful cycle.
    """

    worktrees_changed = pyqtSignal()

    def __init__(
        self,
        git_service: GitService,
        config_manager: ConfigManager | None = None,
        max_workers: int | None = None,
        parent: QObject | None = None,
    ):
        """
        Initialize the worktree service.

        Args:
            git_service: Gateway used for every git call
            config_manager: Source of base path and staleness settings
            max_workers: Thread count for per-worktree git calls
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._git_service = git_service
        self._config_manager = config_manager or ConfigManager()
        self._max_workers = max_workers

        self._cache: tuple[WorktreeCard, ...] = ()
        self._lock = threading.Lock()
        self._pending: Future | None = None
        self._last_refresh_ok = False
        self._trunk_branch = ""
        self._trunk_head = ""

    # --- Discovery ---

    @property
    def trunk_branch(self) -> str:
        """Trunk branch detected by the last successful refresh."""
        return self._trunk_branch

    @property
    def trunk_head(self) -> str:
        """Commit of the trunk worktree at the last successful refresh."""
        return self._trunk_head

    def get_all(self, force_refresh: bool = False) -> list[WorktreeCard]:
        """
        Get the cached worktree cards.

        Args:
            force_refresh: Rebuild the cache before returning

        Returns:
            List[WorktreeCard]: Cards in git's order, main worktree first
        """
        if self._cache and not force_refresh:
            return list(self._cache)
        return self.refresh()

    def refresh(self) -> list[WorktreeCard]:
        """
        Rebuild the cache from git.

        A caller arriving while a refresh is running waits for that refresh
        and receives its result instead of starting another one. Never
        raises: on failure the previous cards are returned.

        Returns:
            List[WorktreeCard]: The current cards
        """
        with self._lock:
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()

        if not owner:
            logger.debug("Refresh already in progress, waiting for its result")
            return list(pending.result())

        changed = False
        try:
            try:
                cards = self._build_cards()
                self._cache = cards
                self._last_refresh_ok = True
                changed = True
                logger.debug(f"Refreshed {len(cards)} worktrees")
            except Exception as e:
                logger.error(f"Failed to refresh worktrees: {e}")
                self._last_refresh_ok = False
            pending.set_result(self._cache)
        except BaseException as e:
            pending.set_exception(e)
            raise
        finally:
            with self._lock:
                self._pending = None

        if changed:
            self.worktrees_changed.emit()
        return list(self._cache)

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` after every completed refresh."""
        self.worktrees_changed.connect(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        """Stop calling ``callback``; unknown callbacks are ignored."""
        try:
            self.worktrees_changed.disconnect(callback)
        except TypeError:
            logger.debug(f"Callback was not subscribed: {callback!r}")

    def get_main_worktree(self) -> WorktreeCard:
        """
        Get the main worktree of the repository.

        Raises:
            ServiceError: If no worktree is known
        """
        cards = self.get_all()
        if not cards:
            raise ServiceError(
                "No worktrees found", service="WorktreeService", operation="main"
            )
        for card in cards:
            if card.is_main:
                return card
        return cards[0]

    def get_branches(self) -> list[BranchRecord]:
        """
        Get local branches followed by remote-tracking branches.

        Raises:
            GitError: If git cannot list the branches
        """
        return (
            self._git_service.list_local_branches()
            + self._git_service.list_remote_branches()
        )

    # --- Mutation ---

    def create(
        self,
        branch: str,
        base_branch: str | None = None,
        is_new_branch: bool = False,
        custom_path: str | None = None,
    ) -> str:
        """
        Create a worktree below the configured base directory.

        Args:
            branch: Branch to check out, or to create with ``is_new_branch``
            base_branch: Start point of a new branch
            is_new_branch: Whether to create ``branch``
            custom_path: Directory relative to the base directory; defaults to
                the branch name with unsafe characters replaced by ``-``

        Returns:
            str: Absolute path of the new worktree

        Raises:
            ValidationError: If the branch is empty or the path escapes the base directory
            GitError: If git cannot create the worktree
        """
        if not branch or not branch.strip():
            raise ValidationError("Branch name is required", field="branch", value=branch)

        repo_root = self._git_service.get_repo_root()
        base_path = self._resolve_base_path(repo_root)
        dir_name = custom_path or PathManager.sanitize_branch_dirname(branch)
        worktree_path = str(PathManager.resolve_within(base_path, dir_name))

        self._git_service.add_worktree(
            worktree_path,
            branch,
            new_branch=is_new_branch,
            base_branch=base_branch if is_new_branch else None,
        )

        self._refresh_after_change()
        return worktree_path

    def remove(self, worktree_path: str, force: bool = False) -> None:
        """
        Remove a worktree and rebuild the cache.

        Raises:
            GitError: If the worktree cannot be removed
        """
        self._git_service.remove_worktree(worktree_path, force)
        self._refresh_after_change()
        self._forget(worktree_path)

    # --- Internals ---

    def _refresh_after_change(self) -> list[WorktreeCard]:
        # A cycle that started before the change may list stale data
        pending = self._pending
        if pending is not None:
            pending.result()
        return self.refresh()

    def _forget(self, worktree_path: str) -> None:
        """Drop a removed worktree from a cache that could not be rebuilt."""
        if self._last_refresh_ok:
            return
        remaining = tuple(
            card
            for card in self._cache
            if not PathManager.same_path(card.path, worktree_path)
        )
        if len(remaining) != len(self._cache):
            self._cache = remaining
            self.worktrees_changed.emit()

    def _resolve_base_path(self, repo_root: str) -> Path:
        configured = self._config_manager.config.worktree_base_path
        if not configured:
            return Path(repo_root).resolve().parent
        base = Path(configured).expanduser()
        if not base.is_absolute():
            base = Path(repo_root) / base
        return base.resolve()

    def _build_cards(self) -> tuple[WorktreeCard, ...]:
        worktrees = self._git_service.list_worktrees()
        main_index = self._find_main_index(worktrees)

        trunk_branch = self._detect_trunk_branch(worktrees)
        trunk_head = self._detect_trunk_head(worktrees, trunk_branch)
        stale_days = self._config_manager.config.stale_threshold_days

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            merge_futures = {
                wt.branch_short: executor.submit(
                    self._check_merged, wt.branch_short, trunk_branch
                )
                for wt in worktrees
                if is_merge_candidate(wt, trunk_branch, trunk_head)
            }
            status_futures = [executor.submit(self._fetch_status, wt) for wt in worktrees]
            commit_futures = [executor.submit(self._fetch_commit, wt) for wt in worktrees]

            merged_branches = {
                name for name, future in merge_futures.items() if future.result()
            }
            statuses = [future.result() for future in status_futures]
            commits = [future.result() for future in commit_futures]

        now = datetime.now(timezone.utc)
        cards = tuple(
            WorktreeCard(
                record=wt,
                status=status,
                last_commit=commit,
                state=classify_state(
                    wt, status, commit, merged_branches, stale_days, now
                ),
                is_main=index == main_index,
                display_name=wt.branch_short or wt.directory_name,
            )
            for index, (wt, status, commit) in enumerate(
                zip(worktrees, statuses, commits)
            )
        )

        self._trunk_branch = trunk_branch
        self._trunk_head = trunk_head
        return cards

    def _find_main_index(self, worktrees: list[WorktreeRecord]) -> int:
        """Position of the main worktree; git lists it first when unsure."""
        try:
            main_root = self._git_service.get_main_worktree_root()
        except GitError as e:
            logger.warning(f"Could not resolve main worktree, using first listed: {e}")
            return 0

        for index, wt in enumerate(worktrees):
            if PathManager.same_path(wt.path, main_root):
                return index
        logger.debug(f"No listed worktree at {main_root}, using first listed")
        return 0

    def _detect_trunk_branch(self, worktrees: list[WorktreeRecord]) -> str:
        if worktrees and worktrees[0].branch:
            return worktrees[0].branch_short

        try:
            local = {branch.name for branch in self._git_service.list_local_branches()}
        except GitError as e:
            logger.warning(f"Could not list local branches: {e}")
            local = set()

        for candidate in TRUNK_FALLBACK_BRANCHES:
            if candidate in local:
                return candidate
        return "main"

    @staticmethod
    def _detect_trunk_head(worktrees: list[WorktreeRecord], trunk_branch: str) -> str:
        for wt in worktrees:
            if wt.branch and wt.branch_short == trunk_branch:
                return wt.head
        return worktrees[0].head if worktrees else ""

    def _check_merged(self, branch: str, trunk_branch: str) -> bool:
        try:
            return self._git_service.is_branch_merged_into(branch, trunk_branch)
        except Exception as e:
            logger.warning(f"Merge check failed for {branch}: {e}")
            return False

    def _fetch_status(self, wt: WorktreeRecord) -> StatusSnapshot:
        try:
            return self._git_service.get_status(wt.path)
        except Exception as e:
            logger.warning(f"Failed to get status for {wt.path}: {e}")
            return StatusSnapshot()

    def _fetch_commit(self, wt: WorktreeRecord) -> CommitSummary:
        try:
            return self._git_service.get_last_commit(wt.path)
        except Exception as e:
            logger.warning(f"Failed to get last commit for {wt.path}: {e}")
            return CommitSummary.empty()

    def __repr__(self) -> str:
        return f"WorktreeService(cached={len(self._cache)})"
