"""Filesystem helpers used by worktree setup and removal."""

import logging
import os
import shutil
import stat
import sys
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def _clear_readonly_and_retry(func, path, _exc):
    # Read-only files (git objects on Windows) block rmtree until made writable
    os.chmod(path, stat.S_IWRITE)
    func(path)


def force_remove_tree(path: str, retries: int = 3, retry_delay: float = 0.5) -> None:
    """
    Recursively delete ``path``, retrying while files are briefly locked.

    A missing path is not an error.

    Raises:
        OSError: If the directory still cannot be deleted after all retries
    """
    for attempt in range(retries + 1):
        if not os.path.lexists(path):
            return
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                if sys.version_info >= (3, 12):
                    shutil.rmtree(path, onexc=_clear_readonly_and_retry)
                else:
                    shutil.rmtree(path, onerror=_clear_readonly_and_retry)
            else:
                os.remove(path)
            return
        except FileNotFoundError:
            return
        except OSError as e:
            if attempt == retries:
                raise
            logger.debug(
                f"Removing {path} failed (attempt {attempt + 1}/{retries + 1}): {e}"
            )
            time.sleep(retry_delay)


def copy_files(source_dir: str, target_dir: str, files: list[str]) -> list[str]:
    """
    Copy ``files`` (relative paths) from ``source_dir`` into ``target_dir``.

    Missing source files are skipped. Destination directories are created.

    Returns:
        List[str]: Relative paths that were copied
    """
    copied = []
    for name in files:
        src = Path(source_dir) / name
        dest = Path(target_dir) / name
        if not src.exists():
            logger.debug(f"Skipping copy of missing file: {src}")
            continue

        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        copied.append(name)
    return copied


def create_symlinks(source_dir: str, target_dir: str, dirs: list[str]) -> list[str]:
    """
    Link each of ``dirs`` in ``target_dir`` to the same directory in ``source_dir``.

    A directory is skipped when the source is missing or the destination
    already exists. Links are created as directory links so that Windows
    gets a directory symlink rather than a file symlink.

    Returns:
        List[str]: Relative paths that were linked
    """
    linked = []
    for name in dirs:
        src = Path(source_dir) / name
        dest = Path(target_dir) / name
        if not src.exists():
            logger.debug(f"Skipping symlink, source missing: {src}")
            continue
        if os.path.lexists(dest):
            logger.debug(f"Skipping symlink, destination exists: {dest}")
            continue

        dest.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(src, dest, target_is_directory=True)
        linked.append(name)
    return linked
