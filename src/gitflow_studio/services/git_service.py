"""Git command gateway for GitFlow Studio."""

import logging
import os
import re
import subprocess
import sys

from ..models.worktree import (
    BranchRecord,
    CommitSummary,
    StatusSnapshot,
    WorktreeRecord,
)
from ..utils.exceptions import GitError, PermissionFallbackError
from ..utils.file_ops import force_remove_tree
from .base import GitServiceInterface

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
ADD_TIMEOUT = 30.0
REMOVE_TIMEOUT = 15.0
MAX_BUFFER = 1024 * 1024

# %H %h %s %an %aI %ar, one per line
COMMIT_FORMAT = "%H%n%h%n%s%n%an%n%aI%n%ar"
LOCAL_BRANCH_FORMAT = (
    "%(refname:short)\t%(upstream:short)\t%(upstream:track,nobracket)"
    "\t%(committerdate:iso-strict)"
)
REMOTE_BRANCH_FORMAT = "%(refname:short)\t%(committerdate:iso-strict)\t%(symref)"

_AHEAD_BEHIND_RE = re.compile(r"\+(\d+)\s+-(\d+)")
_TRACK_AHEAD_RE = re.compile(r"ahead\s+(\d+)")
_TRACK_BEHIND_RE = re.compile(r"behind\s+(\d+)")


class GitService(GitServiceInterface):
    """
    Gateway to the git command line.

    Every git invocation of the application goes through ``run``, which
    enforces a timeout and an output size limit and turns failures into
    ``GitError``. The service also owns parsing of git's line-oriented
    output formats into model objects.
    """

    def __init__(
        self,
        cwd: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_buffer: int = MAX_BUFFER,
    ):
        """
        Initialize the Git service.

        Args:
            cwd: Directory git runs in unless a call says otherwise; any
                worktree of the repository works
            timeout: Default timeout for git calls in seconds
            max_buffer: Maximum accepted size of stdout/stderr in characters
        """
        super().__init__()
        self.cwd = cwd
        self.timeout = timeout
        self.max_buffer = max_buffer
        self._git_executable = "git"

    def _do_initialize(self) -> None:
        """Check that git is available."""
        version = self.run(["--version"]).strip()
        logger.info(f"Git service initialized: {version}")

    # --- Command execution ---

    def run(
        self, args: list[str], cwd: str | None = None, timeout: float | None = None
    ) -> str:
        """
        Execute a git command and return its standard output.

        Args:
            args: Git command arguments (without 'git')
            cwd: Working directory, defaults to the service's directory
            timeout: Timeout in seconds, defaults to the service timeout

        Returns:
            str: Raw standard output

        Raises:
            PermissionFallbackError: If the failure names a permission or lock problem
            GitError: If git cannot be started, exits non-zero, times out or
                produces more output than allowed
        """
        cwd = cwd or self.cwd
        if timeout is None:
            timeout = self.timeout
        command = [self._git_executable] + list(args)
        logger.debug(f"Executing Git command: {' '.join(command)} (cwd: {cwd})")

        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                check=False,
                **self._platform_options(),
            )
        except subprocess.TimeoutExpired:
            raise self._failure(
                f"Git command timed out after {timeout} seconds: {' '.join(command)}",
                args,
            )
        except OSError as e:
            raise self._failure(f"Failed to execute Git command: {e}", args)

        stdout = result.stdout or ""
        stderr = result.stderr or ""

        if len(stdout) > self.max_buffer or len(stderr) > self.max_buffer:
            raise self._failure(
                f"Output of git {' '.join(args)} exceeded {self.max_buffer} characters",
                args,
                exit_code=result.returncode,
            )

        if result.returncode != 0:
            raise self._failure(
                f"Command failed: {' '.join(command)}\n{stderr.strip()}".strip(),
                args,
                stderr=stderr,
                exit_code=result.returncode,
            )

        return stdout

    def _failure(
        self,
        message: str,
        args: list[str],
        stderr: str = "",
        exit_code: int | None = None,
    ) -> GitError:
        error_class = (
            PermissionFallbackError
            if GitError.is_permission_message(message)
            else GitError
        )
        logger.debug(f"git {args[0] if args else ''} failed: {message}")
        return error_class(message, args=args, stderr=stderr, exit_code=exit_code)

    @staticmethod
    def _platform_options() -> dict:
        if sys.platform == "win32":
            return {"creationflags": subprocess.CREATE_NO_WINDOW}
        return {}

    # --- Worktree operations ---

    def list_worktrees(self) -> list[WorktreeRecord]:
        """
        List worktrees of the repository. Git always lists the main worktree first.

        Returns:
            List[WorktreeRecord]: One record per complete porcelain block
        """
        output = self.run(["worktree", "list", "--porcelain"])
        return self._parse_worktree_list(output)

    def add_worktree(
        self,
        worktree_path: str,
        branch: str,
        new_branch: bool = False,
        base_branch: str | None = None,
    ) -> None:
        """
        Create a worktree.

        With ``new_branch`` a branch named ``branch`` is created, starting at
        ``base_branch`` when given. Otherwise the existing ``branch`` is
        checked out and ``base_branch`` is ignored.

        Args:
            worktree_path: Directory for the new worktree
            branch: Branch to create or check out
            new_branch: Whether to create the branch
            base_branch: Start point of a new branch
        """
        args = ["worktree", "add"]
        if new_branch:
            args += ["-b", branch, worktree_path]
            if base_branch:
                args.append(base_branch)
        else:
            args += [worktree_path, branch]

        self.run(args, timeout=ADD_TIMEOUT)
        logger.info(f"Created worktree at {worktree_path} for branch {branch}")

    def remove_worktree(self, worktree_path: str, force: bool = False) -> None:
        """
        Remove a worktree.

        When git fails because files are locked or not writable, the
        directory is deleted directly and the worktree metadata is pruned.

        Args:
            worktree_path: Worktree to remove
            force: Whether to remove even with uncommitted changes

        Raises:
            PermissionFallbackError: If the directory cannot be deleted either
            GitError: For any other git failure
        """
        args = ["worktree", "remove", worktree_path]
        if force:
            args.append("--force")

        try:
            self.run(args, timeout=REMOVE_TIMEOUT)
        except PermissionFallbackError as e:
            logger.error(
                "git worktree remove failed with permission error, "
                f"deleting {worktree_path} directly: {e.message}"
            )
            try:
                force_remove_tree(worktree_path)
            except OSError as rm_error:
                raise PermissionFallbackError(
                    f"Failed to delete worktree directory {worktree_path}: {rm_error}",
                    args=args,
                    stderr=e.stderr,
                    exit_code=e.exit_code,
                ) from rm_error
            self.prune_worktrees()

        logger.info(f"Removed worktree at {worktree_path}")

    def prune_worktrees(self) -> None:
        """Drop metadata of worktrees whose directories are gone."""
        self.run(["worktree", "prune"])

    # --- Branch operations ---

    def list_local_branches(self) -> list[BranchRecord]:
        """List local branches with upstream tracking information."""
        output = self.run(
            ["for-each-ref", f"--format={LOCAL_BRANCH_FORMAT}", "refs/heads/"]
        )
        return self._parse_local_branches(output)

    def list_remote_branches(self) -> list[BranchRecord]:
        """List remote-tracking branches, without the symbolic ``HEAD`` refs."""
        output = self.run(
            ["for-each-ref", f"--format={REMOTE_BRANCH_FORMAT}", "refs/remotes/"]
        )
        return self._parse_remote_branches(output)

    def is_branch_merged_into(self, branch: str, target: str) -> bool:
        """
        Check whether ``branch`` is an ancestor of ``target``.

        Returns:
            bool: True if ``target`` contains every commit of ``branch``;
                False when it does not or the check cannot be made
        """
        try:
            self.run(["merge-base", "--is-ancestor", branch, target])
            return True
        except GitError as e:
            # Exit code 1 is git's plain "not an ancestor"
            if e.exit_code != 1:
                logger.warning(f"Merge check of {branch} into {target} failed: {e.message}")
            return False

    # --- Status operations ---

    def get_status(self, worktree_path: str) -> StatusSnapshot:
        """Count staged, modified and untracked entries of a worktree."""
        output = self.run(["status", "--porcelain=v2", "--branch"], cwd=worktree_path)
        return self._parse_status(output)

    def get_last_commit(self, worktree_path: str) -> CommitSummary:
        """Get the commit checked out in a worktree."""
        output = self.run(
            ["log", "-1", f"--format={COMMIT_FORMAT}"], cwd=worktree_path
        )
        return self._parse_commit(output)

    # --- Repository information ---

    def get_repo_root(self) -> str:
        """Top-level directory of the worktree the service runs in."""
        return os.path.normpath(self.run(["rev-parse", "--show-toplevel"]).strip())

    def get_common_git_dir(self) -> str:
        """The ``.git`` directory shared by all worktrees."""
        output = self.run(["rev-parse", "--git-common-dir"]).strip()
        return os.path.normpath(os.path.join(self.cwd, output))

    def get_main_worktree_root(self) -> str:
        """
        Top-level directory of the main worktree, wherever the service runs.

        Raises:
            GitError: If the repository is bare or git cannot answer
        """
        common_dir = self.get_common_git_dir()
        if os.path.basename(common_dir) != ".git":
            raise GitError(
                f"Repository has no main worktree: {common_dir}",
                args=["rev-parse", "--git-common-dir"],
            )
        return os.path.dirname(common_dir)

    def get_current_branch(self) -> str:
        """Current branch name, ``HEAD`` when detached."""
        return self.run(["rev-parse", "--abbrev-ref", "HEAD"]).strip()

    # --- Parsing ---

    def _parse_worktree_list(self, output: str) -> list[WorktreeRecord]:
        """
        Parse the output of 'git worktree list --porcelain'.

        Blocks are separated by blank lines. A block without both a
        ``worktree`` and a ``HEAD`` line is ignored.

        Args:
            output: Raw output from git worktree list --porcelain

        Returns:
            List[WorktreeRecord]: Parsed worktrees, in git's order
        """
        normalized = output.replace("\r\n", "\n")
        worktrees = []

        for block in normalized.split("\n\n"):
            if not block.strip():
                continue

            fields: dict = {}
            for line in block.strip().split("\n"):
                self._parse_worktree_line(line, fields)

            path = fields.get("path")
            head = fields.get("head")
            if not path or not head:
                logger.debug(f"Skipping incomplete worktree block: {block!r}")
                continue

            if not fields.get("branch_short"):
                fields["branch_short"] = os.path.basename(path)
            worktrees.append(WorktreeRecord(**fields))

        return worktrees

    @staticmethod
    def _parse_worktree_line(line: str, fields: dict) -> None:
        """Parse a single line from git worktree list output into ``fields``."""
        if line.startswith("worktree "):
            fields["path"] = os.path.normpath(line[len("worktree ") :])
        elif line.startswith("HEAD "):
            fields["head"] = line[len("HEAD ") :]
        elif line.startswith("branch "):
            branch = line[len("branch ") :]
            fields["branch"] = branch
            fields["branch_short"] = branch.removeprefix("refs/heads/")
        elif line == "bare":
            fields["is_bare"] = True
        elif line == "detached":
            fields["is_detached"] = True
        elif line.startswith("locked"):
            fields["is_locked"] = True
            reason = line[len("locked") :].strip()
            if reason:
                fields["lock_reason"] = reason
        elif line.startswith("prunable"):
            fields["is_prunable"] = True

    @staticmethod
    def _parse_status(output: str) -> StatusSnapshot:
        """Parse 'git status --porcelain=v2 --branch' output."""
        ahead = behind = modified = staged = untracked = 0

        for line in output.replace("\r\n", "\n").split("\n"):
            if line.startswith("# branch.ab"):
                match = _AHEAD_BEHIND_RE.search(line)
                if match:
                    ahead = int(match.group(1))
                    behind = int(match.group(2))
            elif line.startswith("1 ") or line.startswith("2 "):
                # "1 XY ...": X is the index state, Y the worktree state
                x, y = line[2:3], line[3:4]
                if x not in (".", "?"):
                    staged += 1
                if y not in (".", "?"):
                    modified += 1
            elif line.startswith("? "):
                untracked += 1

        return StatusSnapshot(
            modified_count=modified,
            staged_count=staged,
            untracked_count=untracked,
            ahead=ahead,
            behind=behind,
        )

    @staticmethod
    def _parse_commit(output: str) -> CommitSummary:
        """Parse the six-line COMMIT_FORMAT output; short output means no commits."""
        lines = output.replace("\r\n", "\n").strip().split("\n")
        if len(lines) < 6:
            return CommitSummary.empty()

        return CommitSummary(
            sha=lines[0],
            short_sha=lines[1],
            message=lines[2],
            author=lines[3],
            date=lines[4],
            relative_date=lines[5],
        )

    @staticmethod
    def _parse_track(track: str) -> tuple[int, int]:
        """Parse an ``upstream:track`` field such as ``ahead 2, behind 1``."""
        ahead_match = _TRACK_AHEAD_RE.search(track)
        behind_match = _TRACK_BEHIND_RE.search(track)
        return (
            int(ahead_match.group(1)) if ahead_match else 0,
            int(behind_match.group(1)) if behind_match else 0,
        )

    def _parse_local_branches(self, output: str) -> list[BranchRecord]:
        branches = []
        for line in output.replace("\r\n", "\n").strip().split("\n"):
            if not line:
                continue
            name, upstream, track, date = (line.split("\t") + ["", "", ""])[:4]
            ahead, behind = self._parse_track(track)
            extra = {"last_commit_date": date} if date else {}
            branches.append(
                BranchRecord(
                    name=name,
                    is_remote=False,
                    upstream=upstream or None,
                    ahead=ahead,
                    behind=behind,
                    **extra,
                )
            )
        return branches

    @staticmethod
    def _parse_remote_branches(output: str) -> list[BranchRecord]:
        branches = []
        for line in output.replace("\r\n", "\n").strip().split("\n"):
            if not line:
                continue
            name, date, symref = (line.split("\t") + ["", ""])[:3]
            # origin/HEAD is a pointer to another remote branch, not a branch
            if symref or "HEAD" in name.split("/"):
                continue
            extra = {"last_commit_date": date} if date else {}
            branches.append(BranchRecord(name=name, is_remote=True, **extra))
        return branches

    def __repr__(self) -> str:
        return f"GitService(cwd='{self.cwd}', timeout={self.timeout})"
