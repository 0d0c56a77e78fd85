"""OS-specific path management utilities."""

import os
import sys
from pathlib import Path

from .exceptions import ValidationError

# Characters git accepts in branch names but which are unsafe in directory names
_UNSAFE_DIRNAME_CHARS = '/\\:*?"<>|'


class PathManager:
    """Manages OS-specific paths for configuration and logs, plus worktree paths."""

    APP_NAME = "GitFlowStudio"

    @staticmethod
    def get_config_dir() -> Path:
        """
        Get OS-appropriate configuration directory.

        Returns:
            Path to configuration directory
        """
        if sys.platform == "darwin":  # macOS
            base_dir = Path.home() / "Library" / "Application Support"
        elif sys.platform == "win32":  # Windows
            base_dir = Path.home() / "AppData" / "Roaming"
        else:  # Linux and other Unix-like systems
            base_dir = Path.home() / ".config"

        return base_dir / PathManager.APP_NAME

    @staticmethod
    def get_log_dir() -> Path:
        """
        Get OS-appropriate log directory.

        Returns:
            Path to log directory
        """
        if sys.platform == "darwin":  # macOS
            return Path.home() / "Library" / "Logs" / PathManager.APP_NAME
        if sys.platform == "win32":  # Windows
            return Path.home() / "AppData" / "Local" / PathManager.APP_NAME / "Logs"
        return Path.home() / ".local" / "share" / "gitflow-studio" / "logs"

    @staticmethod
    def get_config_file(filename: str) -> Path:
        """Get path to a configuration file."""
        return PathManager.get_config_dir() / filename

    @staticmethod
    def normalize(path: str) -> str:
        """Normalize a path string the way git paths are compared."""
        return os.path.normpath(path)

    @staticmethod
    def same_path(left: str, right: str) -> bool:
        """Compare two paths, case-insensitively where the platform is."""
        return os.path.normcase(os.path.normpath(left)) == os.path.normcase(
            os.path.normpath(right)
        )

    @staticmethod
    def sanitize_branch_dirname(branch: str) -> str:
        """
        Convert a branch name into a directory name.

        ``feature/login`` becomes ``feature-login``.
        """
        sanitized = branch
        for char in _UNSAFE_DIRNAME_CHARS:
            sanitized = sanitized.replace(char, "-")
        return sanitized

    @staticmethod
    def is_safe_path(path: Path, base_path: Path) -> bool:
        """
        Check if a path is safe (within the base path).

        Args:
            path: Path to check
            base_path: Base path that should contain the path

        Returns:
            True if path is safe, False otherwise
        """
        try:
            abs_path = path.resolve()
            abs_base = base_path.resolve()

            return abs_base in abs_path.parents or abs_path == abs_base
        except (OSError, ValueError):
            return False

    @staticmethod
    def resolve_within(base_path: Path, relative: str) -> Path:
        """
        Join ``relative`` onto ``base_path`` and make sure it stays inside.

        Raises:
            ValidationError: If the resolved path escapes the base directory
        """
        resolved = (base_path / relative).resolve()
        if not PathManager.is_safe_path(resolved, base_path):
            raise ValidationError(
                f"Worktree path {resolved} resolves outside of base path {base_path}",
                field="path",
                value=relative,
            )
        return resolved
