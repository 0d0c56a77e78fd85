"""Configuration management service for GitFlow Studio."""

import logging
from pathlib import Path
from typing import Any

from PyQt6.QtCore import QObject, pyqtSignal

from ..models.config import CONFIG_FILENAME, StudioConfig
from ..utils.exceptions import ConfigurationError
from ..utils.path_manager import PathManager

logger = logging.getLogger(__name__)


class ConfigManager(QObject):
    """
    Manages loading, updating, and persisting the studio settings.

    Services read settings through ``config`` every time they need them, so
    an update is visible to the next operation without restarting anything.
    ``config_changed`` fires after a reload or an update.
    """

    config_changed = pyqtSignal()

    def __init__(
        self,
        config_file: Path | None = None,
        config: StudioConfig | None = None,
        parent: QObject | None = None,
    ):
        """
        Initialize the configuration manager.

        Args:
            config_file: Optional path to config file (uses default if None)
            config: Settings to start with instead of loading the file
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._config_file = config_file or PathManager.get_config_file(CONFIG_FILENAME)
        self._config: StudioConfig | None = config

    @property
    def config(self) -> StudioConfig:
        """
        Get the current configuration, loading it if necessary.

        Returns:
            StudioConfig: Current settings
        """
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> StudioConfig:
        """
        Load configuration from file.

        Returns:
            StudioConfig: Loaded settings, defaults when the file is unusable
        """
        config = StudioConfig.load(self._config_file)
        self._config = config
        return config

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            bool: True if save was successful, False otherwise
        """
        if self._config is None:
            logger.warning("No configuration to save")
            return False
        return self._config.save(self._config_file)

    def reload_config(self) -> StudioConfig:
        """Reload configuration from file, discarding in-memory changes."""
        logger.info("Reloading configuration from file")
        self._config = None
        config = self.config
        self.config_changed.emit()
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a single setting by name."""
        return getattr(self.config, key, default)

    def update(self, **kwargs) -> bool:
        """
        Update settings and persist them.

        Args:
            **kwargs: Setting names and their new values

        Returns:
            bool: True if the settings were saved

        Raises:
            ConfigurationError: If a key is not a known setting
        """
        unknown = [key for key in kwargs if key not in StudioConfig.keys()]
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}",
                config_file=str(self._config_file),
                details={"keys": sorted(unknown)},
            )

        config = self.config
        for key, value in kwargs.items():
            setattr(config, key, value)
            logger.debug(f"Updated setting {key} to {value!r}")

        saved = self.save_config()
        self.config_changed.emit()
        return saved

    def validate_config(self) -> dict:
        """
        Validate the current settings.

        Returns:
            Dict: ``valid`` flag plus lists of ``issues`` and ``warnings``
        """
        issues = []
        warnings = []
        config = self.config

        if config.poll_interval_seconds < 1:
            warnings.append("Poll interval is too low (< 1 second)")
        if config.stale_threshold_days < 1:
            warnings.append("Stale threshold is too low (< 1 day)")
        if config.command_timeout_seconds < 1:
            warnings.append("Command timeout is too low (< 1 second)")

        for name in config.copy_files + config.symlink_dirs:
            if Path(name).is_absolute():
                issues.append(f"Setup path must be relative: {name}")

        return {
            "valid": len(issues) == 0,
            "issues": issues,
            "warnings": warnings,
        }

    def get_config_file_path(self) -> Path:
        return self._config_file

    def __repr__(self) -> str:
        config_loaded = self._config is not None
        return (
            f"ConfigManager(config_file='{self._config_file}', "
            f"config_loaded={config_loaded})"
        )
