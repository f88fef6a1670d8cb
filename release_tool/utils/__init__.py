# release_tool/utils/__init__.py
"""Utility functions for release-tool"""

from .async_utils import run_async, run_blocking
from .env_utils import parse_env_args, parse_env_pair, load_env_file, current_actor
from .file_utils import (
    atomic_write_text,
    atomic_write_json,
    atomic_symlink,
    read_json,
    extract_archive,
    remove_path,
    path_age,
    format_size,
)

__all__ = [
    "run_async",
    "run_blocking",
    "parse_env_args",
    "parse_env_pair",
    "load_env_file",
    "current_actor",
    "atomic_write_text",
    "atomic_write_json",
    "atomic_symlink",
    "read_json",
    "extract_archive",
    "remove_path",
    "path_age",
    "format_size",
]
