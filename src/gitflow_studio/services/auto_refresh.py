"""Periodic worktree refresh driven by a Qt timer."""

import logging

from PyQt6.QtCore import QObject, QTimer

from .config_manager import ConfigManager
from .worktree_service import WorktreeService

logger = logging.getLogger(__name__)


class AutoRefresher(QObject):
    """Refreshes the worktree cache every ``poll_interval_seconds``."""

    def __init__(
        self,
        worktree_service: WorktreeService,
        config_manager: ConfigManager,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._worktree_service = worktree_service
        self._config_manager = config_manager

        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_timeout)
        self._config_manager.config_changed.connect(self._on_config_changed)

    @property
    def interval_ms(self) -> int:
        seconds = max(1, self._config_manager.config.poll_interval_seconds)
        return seconds * 1000

    def start(self) -> None:
        self._timer.start(self.interval_ms)
        logger.debug(f"Auto refresh started ({self.interval_ms} ms)")

    def stop(self) -> None:
        self._timer.stop()
        logger.debug("Auto refresh stopped")

    def is_active(self) -> bool:
        return self._timer.isActive()

    def _on_timeout(self) -> None:
        self._worktree_service.refresh()

    def _on_config_changed(self) -> None:
        if self._timer.isActive():
            self.start()
