"""Base interfaces and abstract classes for services."""

from abc import ABC, abstractmethod

from ..models.worktree import (
    BranchRecord,
    CommitSummary,
    StatusSnapshot,
    WorktreeRecord,
)


class BaseService(ABC):
    """Base class for services that need one-time initialization."""

    def __init__(self):
        self._initialized = False

    def initialize(self) -> None:
        """Initialize the service."""
        if not self._initialized:
            self._do_initialize()
            self._initialized = True

    @abstractmethod
    def _do_initialize(self) -> None:
        """Perform service-specific initialization."""
        pass

    def is_initialized(self) -> bool:
        """Check if the service is initialized."""
        return self._initialized


class GitServiceInterface(BaseService):
    """Interface for the git command gateway."""

    @abstractmethod
    def run(
        self, args: list[str], cwd: str | None = None, timeout: float | None = None
    ) -> str:
        """Run git and return its standard output."""
        pass

    @abstractmethod
    def list_worktrees(self) -> list[WorktreeRecord]:
        """List worktrees, main worktree first."""
        pass

    @abstractmethod
    def add_worktree(
        self,
        worktree_path: str,
        branch: str,
        new_branch: bool = False,
        base_branch: str | None = None,
    ) -> None:
        """Create a worktree."""
        pass

    @abstractmethod
    def remove_worktree(self, worktree_path: str, force: bool = False) -> None:
        """Remove a worktree."""
        pass

    @abstractmethod
    def get_status(self, worktree_path: str) -> StatusSnapshot:
        """Get working tree counts for a worktree."""
        pass

    @abstractmethod
    def get_last_commit(self, worktree_path: str) -> CommitSummary:
        """Get the last commit of a worktree."""
        pass

    @abstractmethod
    def list_local_branches(self) -> list[BranchRecord]:
        """List local branches."""
        pass
