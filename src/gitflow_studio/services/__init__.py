"""Service layer for worktree discovery, cleanup, and setup."""

from .auto_refresh import AutoRefresher
from .cleanup_service import CleanupService
from .config_manager import ConfigManager
from .git_service import GitService
from .setup_pipeline import (
    CancellationToken,
    SetupOutcome,
    SetupPipeline,
    StepFailureAction,
)
from .worktree_service import WorktreeService

__all__ = [
    "AutoRefresher",
    "CancellationToken",
    "CleanupService",
    "ConfigManager",
    "GitService",
    "SetupOutcome",
    "SetupPipeline",
    "StepFailureAction",
    "WorktreeService",
]
