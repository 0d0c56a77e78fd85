"""Worktree data models for GitFlow Studio."""

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso_datetime(value: str) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as printed by git (``%aI``/``iso-strict``).

    Naive values are taken as UTC. Returns None for empty or malformed input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WorktreeState(Enum):
    """Lifecycle state of a worktree, see ``WorktreeService`` for the rules."""

    ACTIVE = "active"
    IDLE = "idle"
    MERGED = "merged"
    STALE = "stale"


@dataclass(frozen=True)
class WorktreeRecord:
    """
    One block of ``git worktree list --porcelain``.

    Attributes:
        path: Normalized filesystem path, unique per worktree
        head: Full commit id checked out in the worktree
        branch: Fully-qualified ref (``refs/heads/...``), None when detached
        branch_short: Display branch name, or the directory name when branchless
        is_bare: Whether this is the bare repository entry
        is_detached: Whether HEAD is detached
        is_locked: Whether the worktree is locked
        lock_reason: Optional reason given when locking
        is_prunable: Whether git reports the directory as gone
    """

    path: str
    head: str
    branch: str | None = None
    branch_short: str = ""
    is_bare: bool = False
    is_detached: bool = False
    is_locked: bool = False
    lock_reason: str | None = None
    is_prunable: bool = False

    @property
    def directory_name(self) -> str:
        return os.path.basename(os.path.normpath(self.path))


@dataclass(frozen=True)
class StatusSnapshot:
    """Working tree counts from ``git status --porcelain=v2 --branch``."""

    modified_count: int = 0
    staged_count: int = 0
    untracked_count: int = 0
    ahead: int = 0
    behind: int = 0

    @property
    def change_count(self) -> int:
        return self.modified_count + self.staged_count + self.untracked_count

    @property
    def has_changes(self) -> bool:
        return self.change_count > 0


@dataclass(frozen=True)
class CommitSummary:
    """The last commit of a worktree."""

    sha: str = ""
    short_sha: str = ""
    message: str = "No commits"
    author: str = ""
    date: str = field(default_factory=_utc_now_iso)
    relative_date: str = "never"

    @classmethod
    def empty(cls) -> "CommitSummary":
        """Placeholder for a worktree without history."""
        return cls()

    @property
    def committed_at(self) -> datetime | None:
        return parse_iso_datetime(self.date)


@dataclass(frozen=True)
class BranchRecord:
    """
    A local or remote branch.

    Remote branches never report ahead/behind counts.
    """

    name: str
    is_remote: bool
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    last_commit_date: str = field(default_factory=_utc_now_iso)


@dataclass(frozen=True)
class WorktreeCard:
    """
    A worktree enriched with status, last commit and lifecycle state.

    Cards are produced by a refresh cycle and never modified afterwards.
    """

    record: WorktreeRecord
    status: StatusSnapshot
    last_commit: CommitSummary
    state: WorktreeState
    is_main: bool
    display_name: str

    @property
    def path(self) -> str:
        return self.record.path

    @property
    def head(self) -> str:
        return self.record.head

    @property
    def branch(self) -> str | None:
        return self.record.branch

    @property
    def branch_short(self) -> str:
        return self.record.branch_short

    @property
    def is_prunable(self) -> bool:
        return self.record.is_prunable

    @property
    def modified_count(self) -> int:
        return self.status.modified_count

    @property
    def staged_count(self) -> int:
        return self.status.staged_count

    @property
    def untracked_count(self) -> int:
        return self.status.untracked_count

    @property
    def has_changes(self) -> bool:
        return self.status.has_changes

    def to_dict(self) -> dict[str, Any]:
        """
        Flatten the card for presentation layers.

        Returns:
            Dict[str, Any]: Record, status and commit fields side by side
        """
        data: dict[str, Any] = asdict(self.record)
        data.update(asdict(self.status))
        data["last_commit"] = asdict(self.last_commit)
        data["state"] = self.state.value
        data["is_main"] = self.is_main
        data["display_name"] = self.display_name
        return data

    def __str__(self) -> str:
        return f"WorktreeCard(name='{self.display_name}', state='{self.state.value}')"
