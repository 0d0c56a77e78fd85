"""Configuration data model for GitFlow Studio."""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from ..utils.path_manager import PathManager

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "settings.json"


def _default_copy_files() -> list[str]:
    return [".env", ".env.local"]


@dataclass
class StudioConfig:
    """
    User settings consumed by the worktree services.

    Attributes:
        copy_files: Files copied from the main worktree into a new one
        symlink_dirs: Directories of the main worktree linked into a new one
        post_create_commands: Shell commands run in a new worktree
        open_in_new_window: Whether presentation layers open new worktrees
            in a separate window
        worktree_base_path: Directory new worktrees are created in; empty
            means the parent of the repository root
        poll_interval_seconds: Interval for automatic refreshes
        stale_threshold_days: Days without commits before a worktree is stale
        command_timeout_seconds: Timeout for a single post-create command
    """

    copy_files: list[str] = field(default_factory=_default_copy_files)
    symlink_dirs: list[str] = field(default_factory=list)
    post_create_commands: list[str] = field(default_factory=list)
    open_in_new_window: bool = True
    worktree_base_path: str = ""
    poll_interval_seconds: int = 30
    stale_threshold_days: int = 14
    command_timeout_seconds: int = 300

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the settings to a dictionary.

        Returns:
            Dict[str, Any]: Serialized settings
        """
        return {
            "copy_files": list(self.copy_files),
            "symlink_dirs": list(self.symlink_dirs),
            "post_create_commands": list(self.post_create_commands),
            "open_in_new_window": self.open_in_new_window,
            "worktree_base_path": self.worktree_base_path,
            "poll_interval_seconds": self.poll_interval_seconds,
            "stale_threshold_days": self.stale_threshold_days,
            "command_timeout_seconds": self.command_timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StudioConfig":
        """
        Deserialize settings; missing keys keep their defaults.

        Args:
            data: Dictionary containing settings

        Returns:
            StudioConfig: Deserialized settings
        """
        defaults = cls()
        return cls(
            copy_files=list(data.get("copy_files", defaults.copy_files)),
            symlink_dirs=list(data.get("symlink_dirs", defaults.symlink_dirs)),
            post_create_commands=list(
                data.get("post_create_commands", defaults.post_create_commands)
            ),
            open_in_new_window=data.get(
                "open_in_new_window", defaults.open_in_new_window
            ),
            worktree_base_path=data.get(
                "worktree_base_path", defaults.worktree_base_path
            ),
            poll_interval_seconds=int(
                data.get("poll_interval_seconds", defaults.poll_interval_seconds)
            ),
            stale_threshold_days=int(
                data.get("stale_threshold_days", defaults.stale_threshold_days)
            ),
            command_timeout_seconds=int(
                data.get("command_timeout_seconds", defaults.command_timeout_seconds)
            ),
        )

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def save(self, config_file: Path | None = None) -> bool:
        """
        Save settings to a JSON file.

        Args:
            config_file: Optional path to config file (uses default if None)

        Returns:
            bool: True if save was successful, False otherwise
        """
        if config_file is None:
            config_file = PathManager.get_config_file(CONFIG_FILENAME)

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

            logger.info(f"Configuration saved to: {config_file}")
            return True

        except (OSError, TypeError) as e:
            logger.error(f"Failed to save configuration to {config_file}: {e}")
            return False

    @classmethod
    def load(cls, config_file: Path | None = None) -> "StudioConfig":
        """
        Load settings from a JSON file.

        Args:
            config_file: Optional path to config file (uses default if None)

        Returns:
            StudioConfig: Loaded settings, or defaults if loading fails
        """
        if config_file is None:
            config_file = PathManager.get_config_file(CONFIG_FILENAME)

        if not config_file.exists():
            logger.info(f"Configuration file not found: {config_file}, using defaults")
            return cls()

        try:
            with open(config_file, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")

            config = cls.from_dict(data)
            logger.info(f"Configuration loaded from: {config_file}")
            return config

        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load configuration from {config_file}: {e}")
            logger.info("Using default configuration")
            return cls()
