"""
tzdata-update Utility Modules

Filesystem primitives used by the installer.
"""

from .file_utils import (
    rename,
    delete_recursive,
    files_exist,
    read_bytes,
    make_world_readable,
    ensure_directory_exists,
    create_sub_file,
)

__all__ = [
    "rename",
    "delete_recursive",
    "files_exist",
    "read_bytes",
    "make_world_readable",
    "ensure_directory_exists",
    "create_sub_file",
]
