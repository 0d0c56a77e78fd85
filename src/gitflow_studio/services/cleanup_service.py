"""Cleanup recommendations and batch removal of worktrees."""

import logging
from datetime import datetime, timedelta, timezone

from ..models.cleanup import BatchFailure, BatchResult, CleanupCandidate, CleanupReason
from ..models.worktree import WorktreeCard, WorktreeState
from ..utils.exceptions import GitError, GitFlowStudioError, describe_removal_error
from ..utils.logging_config import log_structured_error
from .config_manager import ConfigManager
from .git_service import GitService
from .worktree_service import WorktreeService

logger = logging.getLogger(__name__)


class CleanupService:
    """
    Recommends worktrees for removal and removes them in batches.

    Discovery and merge state come from the worktree service; the git
    service is only used for the removals themselves.
    """

    def __init__(
        self,
        git_service: GitService,
        worktree_service: WorktreeService,
        config_manager: ConfigManager,
    ):
        self._git_service = git_service
        self._worktree_service = worktree_service
        self._config_manager = config_manager

    def analyze(self, now: datetime | None = None) -> list[CleanupCandidate]:
        """
        Build the list of cleanup candidates from a fresh view of the worktrees.

        The main worktree is never a candidate. A prunable worktree is always
        safe to delete since its directory is already gone; merged and stale
        worktrees are safe only without uncommitted changes.

        Args:
            now: Reference time for staleness, defaults to the current time

        Returns:
            List[CleanupCandidate]: Candidates in worktree order
        """
        cards = self._worktree_service.get_all(force_refresh=True)
        now = now or datetime.now(timezone.utc)
        threshold_days = self._config_manager.config.stale_threshold_days

        candidates = []
        for card in cards:
            if card.is_main:
                continue

            candidate = self._evaluate(card, threshold_days, now)
            if candidate is not None:
                candidates.append(candidate)

        logger.info(f"Cleanup analysis found {len(candidates)} candidates")
        return candidates

    def batch_remove(self, paths: list[str]) -> BatchResult:
        """
        Force-remove worktrees one after another.

        A failing path is recorded and the remaining paths are still
        attempted. When anything was removed, worktree metadata is pruned
        and the cache rebuilt once.

        Args:
            paths: Worktree paths to remove

        Returns:
            BatchResult: Per-path outcome
        """
        result = BatchResult()

        for path in paths:
            try:
                self._git_service.remove_worktree(path, force=True)
                result.succeeded.append(path)
                logger.info(f"Removed worktree: {path}")
            except Exception as e:
                if isinstance(e, GitFlowStudioError):
                    log_structured_error(e.to_dict(), f"Failed to remove worktree {path}")
                else:
                    logger.error(f"Failed to remove worktree {path}: {e}")
                result.failed.append(
                    BatchFailure(path=path, error=describe_removal_error(e))
                )

        if result.succeeded:
            try:
                self._git_service.prune_worktrees()
            except GitError as e:
                logger.warning(f"Prune after batch removal failed: {e}")
            self._worktree_service.refresh()

        logger.info(f"Batch removal finished: {result}")
        return result

    def _evaluate(
        self, card: WorktreeCard, threshold_days: int, now: datetime
    ) -> CleanupCandidate | None:
        if card.is_prunable:
            return CleanupCandidate(
                worktree=card,
                reason=CleanupReason.PRUNABLE,
                safe_to_delete=True,
                details="Worktree directory no longer exists on disk",
            )

        changes = card.status.change_count
        if card.state is WorktreeState.MERGED:
            return CleanupCandidate(
                worktree=card,
                reason=CleanupReason.MERGED,
                safe_to_delete=changes == 0,
                details=(
                    f"Merged but has {changes} uncommitted changes"
                    if changes
                    else "Branch has been merged"
                ),
            )

        committed_at = card.last_commit.committed_at
        if committed_at is None:
            return None

        if committed_at >= now - timedelta(days=threshold_days):
            return None

        days_since = (now - committed_at).days

        return CleanupCandidate(
            worktree=card,
            reason=CleanupReason.STALE,
            safe_to_delete=changes == 0,
            details=f"No commits for {days_since} days",
        )
