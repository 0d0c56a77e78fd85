"""Cleanup analysis data models."""

from dataclasses import dataclass, field
from enum import Enum

from .worktree import WorktreeCard


class CleanupReason(Enum):
    """Why a worktree is proposed for removal."""

    MERGED = "merged"
    STALE = "stale"
    PRUNABLE = "prunable"


@dataclass(frozen=True)
class CleanupCandidate:
    """
    A non-main worktree recommended for removal.

    Attributes:
        worktree: The card the recommendation is about
        reason: Why the worktree is a candidate
        safe_to_delete: False when removal would discard uncommitted work
        details: Human-readable justification
    """

    worktree: WorktreeCard
    reason: CleanupReason
    safe_to_delete: bool
    details: str


@dataclass(frozen=True)
class BatchFailure:
    """A single path that could not be removed."""

    path: str
    error: str


@dataclass
class BatchResult:
    """Per-item outcome of a batch removal, in input order."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def __str__(self) -> str:
        return (
            f"BatchResult(succeeded={len(self.succeeded)}, failed={len(self.failed)})"
        )
