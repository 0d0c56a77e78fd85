"""Data models for the GitFlow Studio worktree core."""

from .cleanup import BatchFailure, BatchResult, CleanupCandidate, CleanupReason
from .config import StudioConfig
from .worktree import (
    BranchRecord,
    CommitSummary,
    StatusSnapshot,
    WorktreeCard,
    WorktreeRecord,
    WorktreeState,
)

__all__ = [
    "BatchFailure",
    "BatchResult",
    "BranchRecord",
    "CleanupCandidate",
    "CleanupReason",
    "CommitSummary",
    "StatusSnapshot",
    "StudioConfig",
    "WorktreeCard",
    "WorktreeRecord",
    "WorktreeState",
]
