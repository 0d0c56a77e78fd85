"""Post-creation setup of new worktrees."""

import logging
import subprocess
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from PyQt6.QtCore import QObject, pyqtSignal

from ..utils.exceptions import CommandExecutionError, FileSystemError
from ..utils.file_ops import copy_files, create_symlinks
from .config_manager import ConfigManager
from .worktree_service import WorktreeService

logger = logging.getLogger(__name__)


class StepFailureAction(Enum):
    """What to do after a setup step failed."""

    CONTINUE = "continue"
    ABORT = "abort"


class CancellationToken:
    """Cooperative cancellation flag, checked between setup steps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()
        logger.info("Setup cancellation requested")

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()


class SetupStep(ABC):
    """A named side effect applied to a freshly created worktree."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def execute(self, worktree_path: str, main_path: str) -> None:
        """
        Apply the step.

        Args:
            worktree_path: The new worktree
            main_path: The main worktree, source of copied and linked files
        """
        pass


@dataclass(frozen=True)
class CopyFilesStep(SetupStep):
    files: tuple[str, ...]

    @property
    def name(self) -> str:
        return f"Copying {', '.join(self.files)}"

    def execute(self, worktree_path: str, main_path: str) -> None:
        try:
            copied = copy_files(main_path, worktree_path, list(self.files))
        except OSError as e:
            raise FileSystemError(
                f"Failed to copy files into {worktree_path}: {e}",
                path=worktree_path,
                operation="copy",
            ) from e
        logger.debug(f"Copied {len(copied)} files into {worktree_path}")


@dataclass(frozen=True)
class SymlinkDirsStep(SetupStep):
    dirs: tuple[str, ...]

    @property
    def name(self) -> str:
        return f"Creating symlinks: {', '.join(self.dirs)}"

    def execute(self, worktree_path: str, main_path: str) -> None:
        try:
            linked = create_symlinks(main_path, worktree_path, list(self.dirs))
        except OSError as e:
            raise FileSystemError(
                f"Failed to create symlinks in {worktree_path}: {e}",
                path=worktree_path,
                operation="symlink",
            ) from e
        logger.debug(f"Linked {len(linked)} directories into {worktree_path}")


@dataclass(frozen=True)
class ShellCommandStep(SetupStep):
    command: str
    timeout: int = 300

    @property
    def name(self) -> str:
        return f"Running: {self.command}"

    def execute(self, worktree_path: str, main_path: str) -> None:
        """
        Run the command through the shell inside the new worktree.

        Raises:
            CommandExecutionError: On a non-zero exit or a timeout
        """
        try:
            result = subprocess.run(
                self.command,
                shell=True,
                cwd=worktree_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(
                f"Command timed out after {self.timeout} seconds: {self.command}",
                command=self.command,
            ) from e
        except OSError as e:
            raise CommandExecutionError(
                f"Failed to start command: {self.command}: {e}",
                command=self.command,
            ) from e

        if result.returncode != 0:
            raise CommandExecutionError(
                f"Command exited with code {result.returncode}: {self.command}",
                command=self.command,
                exit_code=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )


@dataclass
class SetupOutcome:
    """What a setup run did, step names in execution order."""

    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    cancelled: bool = False
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        return not (self.failed or self.cancelled or self.aborted)


StepFailureHandler = Callable[[str, Exception], StepFailureAction]


class SetupPipeline(QObject):
    """
    Runs the configured setup steps for a new worktree, in order.

    ``progress`` reports the step about to run and the share of steps done;
    ``step_finished`` reports each step's outcome.
    """

    progress = pyqtSignal(str, int)  # message, percentage
    step_finished = pyqtSignal(str, bool)  # step name, succeeded

    def __init__(
        self,
        config_manager: ConfigManager,
        worktree_service: WorktreeService,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._config_manager = config_manager
        self._worktree_service = worktree_service

    def build_steps(self, copy_env_files: bool, install_deps: bool) -> list[SetupStep]:
        """
        Build the step list from the current settings.

        Args:
            copy_env_files: Include the file-copy step
            install_deps: Include one step per post-create command

        Returns:
            List[SetupStep]: Steps in execution order
        """
        config = self._config_manager.config
        steps: list[SetupStep] = []

        if copy_env_files and config.copy_files:
            steps.append(CopyFilesStep(tuple(config.copy_files)))

        if config.symlink_dirs:
            steps.append(SymlinkDirsStep(tuple(config.symlink_dirs)))

        if install_deps:
            steps.extend(
                ShellCommandStep(command, timeout=config.command_timeout_seconds)
                for command in config.post_create_commands
            )

        return steps

    def run(
        self,
        worktree_path: str,
        copy_env_files: bool = True,
        install_deps: bool = False,
        token: CancellationToken | None = None,
        on_step_failure: StepFailureHandler | None = None,
    ) -> SetupOutcome:
        """
        Set up a new worktree.

        Cancellation is checked before each step; a running step always
        finishes. When a step fails, ``on_step_failure`` decides whether to
        continue with the next step. Without a handler the run aborts.

        Args:
            worktree_path: The new worktree
            copy_env_files: Copy the configured files from the main worktree
            install_deps: Run the configured post-create commands
            token: Optional cancellation token
            on_step_failure: Called with the step name and the error

        Returns:
            SetupOutcome: What was run, what failed, and how the run ended
        """
        outcome = SetupOutcome()
        steps = self.build_steps(copy_env_files, install_deps)
        if not steps:
            logger.debug("No setup steps configured")
            return outcome

        main_path = self._worktree_service.get_main_worktree().path
        logger.info(f"Setting up {worktree_path} from {main_path} ({len(steps)} steps)")

        total = len(steps)
        for index, step in enumerate(steps):
            if token is not None and token.is_cancellation_requested:
                logger.info("Setup pipeline cancelled")
                outcome.cancelled = True
                break

            self.progress.emit(step.name, int(index * 100 / total))

            try:
                step.execute(worktree_path, main_path)
            except Exception as e:
                logger.error(f"Setup step failed: {step.name}: {e}")
                outcome.failed.append(step.name)
                self.step_finished.emit(step.name, False)

                action = (
                    on_step_failure(step.name, e)
                    if on_step_failure is not None
                    else StepFailureAction.ABORT
                )
                if action is StepFailureAction.ABORT:
                    logger.info("Setup pipeline aborted")
                    outcome.aborted = True
                    break
                continue

            logger.info(f"Setup step completed: {step.name}")
            outcome.completed.append(step.name)
            self.step_finished.emit(step.name, True)

        if outcome.succeeded:
            self.progress.emit("Setup complete", 100)
        return outcome
