"""Scratch directory management and directory-obstruction healing."""

from __future__ import annotations

import getpass
import logging
import os
import shutil
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from latex_compiler.errors import DirectoryObstructedError

logger = logging.getLogger(__name__)

SCRATCH_DIR_NAME = "latex-compiler"


def default_scratch_root() -> Path:
    """Per-user scratch root under the system temp directory."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = f"uid{os.getuid()}" if hasattr(os, "getuid") else "user"
    return Path(tempfile.gettempdir()) / f"{SCRATCH_DIR_NAME}-{user}"


def _check_private(root: Path) -> None:
    """Refuse a root that is a symlink or owned by another user."""
    if not hasattr(os, "getuid"):
        return
    info = os.lstat(root)
    if stat.S_ISLNK(info.st_mode) or info.st_uid != os.getuid():
        raise DirectoryObstructedError(
            f"Scratch directory {root} is not a directory owned by the current user"
        )
    if stat.S_IMODE(info.st_mode) & 0o077:
        os.chmod(root, 0o700)


def _clear_obstructions(path: Path) -> None:
    """Unlink every non-directory entry sitting on ``path`` or its parents."""
    for candidate in reversed((path, *path.parents)):
        if candidate.is_dir():
            continue
        if candidate.exists() or candidate.is_symlink():
            logger.warning("Removing %s: it is in the way of directory %s", candidate, path)
            candidate.unlink()


def ensure_directory(path: Path, mode: int = 0o777) -> Path:
    """Create ``path`` and its parents, replacing files that block it.

    Args:
        path: Directory to create
        mode: Permission bits for a newly created leaf directory

    Returns:
        The directory path

    Raises:
        DirectoryObstructedError: If the directory still cannot be created
    """
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
        return path
    except (FileExistsError, NotADirectoryError):
        pass
    except OSError as exc:
        raise DirectoryObstructedError(f"Cannot create directory {path}: {exc}") from exc

    try:
        _clear_obstructions(path)
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryObstructedError(f"Cannot create directory {path}: {exc}") from exc
    return path


def remove_quietly(path: Optional[Path]) -> None:
    """Delete a file if present; failures are logged, never raised."""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("Could not remove %s: %s", path, exc)


class ScratchSpace:
    """Private working area for transient sources and Tectonic output.

    Every compile call gets its own owner-only subdirectory under the root,
    so concurrent calls never share predicted output paths. The default
    root is per user and must be a real directory owned by that user.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self._default = root is None
        self.root = Path(root) if root is not None else default_scratch_root()

    def get_scratch_dir(self) -> Path:
        """Ensure the scratch root exists and return it."""
        ensure_directory(self.root, mode=0o700)
        if self._default:
            _check_private(self.root)
        return self.root

    @contextmanager
    def call_dir(self) -> Iterator[Path]:
        """Yield a fresh per-call directory, removed afterwards."""
        root = self.get_scratch_dir()
        try:
            workdir = Path(tempfile.mkdtemp(prefix="call-", dir=root))
        except OSError as exc:
            raise DirectoryObstructedError(f"Cannot create a working directory in {root}: {exc}") from exc
        try:
            yield workdir
        finally:
            try:
                shutil.rmtree(workdir)
            except OSError as exc:
                logger.debug("Cleanup of %s failed: %s", workdir, exc)
