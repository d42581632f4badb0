"""
Filesystem primitives for tzdata-update.

Directory renames are the only atomic operation the installer relies on.
On POSIX systems rename() is atomic within the same filesystem, so every
swap between install slots is a single rename of a whole directory.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _fsync_directory(path: Path) -> None:
    """Persist directory entries after a rename. Failures are ignored."""
    try:
        dir_fd = os.open(str(path), os.O_RDONLY | os.O_DIRECTORY)
    except (OSError, AttributeError):
        # O_DIRECTORY not available on all platforms
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


def rename(from_path: PathLike, to_path: PathLike) -> None:
    """
    Atomically rename a file or directory.

    The target must not exist: renaming onto an existing directory would
    either fail or merge depending on the platform, so it is refused here.

    Raises:
        FileExistsError: if ``to_path`` already exists.
        OSError: if the rename itself fails.
    """
    from_path = Path(from_path)
    to_path = Path(to_path)

    if os.path.lexists(to_path):
        raise FileExistsError(f"Unable to rename {from_path}, target exists: {to_path}")

    os.rename(from_path, to_path)
    _fsync_directory(to_path.parent)


def delete_recursive(path: PathLike) -> None:
    """
    Delete a file or directory tree.

    Symlinks are removed, never followed. Entries that cannot be deleted are
    logged and skipped so the rest of the tree is still removed; an OSError
    describing what was left behind is raised at the end.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        OSError: if anything could not be deleted.
    """
    path = Path(path)
    if not os.path.lexists(path):
        raise FileNotFoundError(f"Unable to delete {path}: does not exist")

    failures: List[Path] = []
    _delete_tree(path, failures)
    if failures:
        names = ", ".join(str(p) for p in failures)
        raise OSError(f"Unable to delete {path}, remaining entries: {names}")


def _delete_tree(path: Path, failures: List[Path]) -> None:
    if path.is_dir() and not path.is_symlink():
        failed_before = len(failures)
        for child in sorted(path.iterdir()):
            _delete_tree(child, failures)
        if len(failures) > failed_before:
            # Still has children; report those rather than the directory.
            return
        remover = os.rmdir
    else:
        remover = os.unlink

    try:
        remover(path)
    except OSError as e:
        logger.warning(f"Unable to delete {path}: {e}")
        failures.append(path)


def files_exist(directory: PathLike, *relative_names: str) -> bool:
    """Return True if every name is an existing regular file under ``directory``."""
    directory = Path(directory)
    for name in relative_names:
        if not (directory / name).is_file():
            logger.debug(f"Missing file: {directory / name}")
            return False
    return True


def read_bytes(path: PathLike, max_size: int) -> bytes:
    """
    Read at most ``max_size`` bytes from a file.

    Args:
        path: File to read
        max_size: Upper bound on the number of bytes returned

    Raises:
        ValueError: if ``max_size`` is not positive.
    """
    if max_size <= 0:
        raise ValueError(f"max_size must be > 0, got {max_size}")

    with open(path, "rb") as f:
        return f.read(max_size)


def make_world_readable(path: PathLike) -> None:
    """
    Make a tree readable by unprivileged users.

    Directories get 0755 so they can be traversed, regular files 0644.
    Symlinks are left untouched.
    """
    path = Path(path)
    if path.is_symlink():
        return

    if path.is_dir():
        os.chmod(path, 0o755)
        for child in path.iterdir():
            make_world_readable(child)
    else:
        mode = stat.S_IMODE(os.stat(path).st_mode)
        os.chmod(path, mode | 0o644)


def ensure_directory_exists(path: PathLike, mode: int = 0o755) -> Path:
    """
    Create ``path`` and any missing parents with ``mode``.

    Raises:
        NotADirectoryError: if something other than a directory is in the way.
    """
    path = Path(path)
    if path.exists() or path.is_symlink():
        if not path.is_dir() or path.is_symlink():
            raise NotADirectoryError(f"{path} exists but is not a directory")
        return path

    path.mkdir(mode=mode, parents=True)
    # mkdir() is subject to the umask
    os.chmod(path, mode)
    return path


def create_sub_file(parent_dir: PathLike, relative_name: str) -> Path:
    """
    Resolve ``relative_name`` inside ``parent_dir``.

    Raises:
        OSError: if the name is absolute or escapes ``parent_dir``.
    """
    parent_dir = Path(parent_dir).resolve()
    if os.path.isabs(relative_name):
        raise OSError(f"Absolute entry name not allowed: {relative_name}")

    candidate = (parent_dir / relative_name).resolve()
    if candidate != parent_dir and parent_dir not in candidate.parents:
        raise OSError(f"Entry {relative_name} escapes {parent_dir}")
    return candidate
