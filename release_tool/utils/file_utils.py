# release_tool/utils/file_utils.py
"""File operation utilities"""

import json
import os
import shutil
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Union


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> Path:
    """
    Write a file so readers see either the old or the new content

    Args:
        path: Destination file
        content: Text to write
        encoding: Text encoding

    Returns:
        Destination path
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)

    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise

    fsync_directory(path.parent)
    return path


def atomic_write_json(path: Path, data: Any) -> Path:
    """Write JSON data atomically"""
    return atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def read_json(path: Path) -> Any:
    """Read a JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def atomic_symlink(target: Union[str, Path], link: Path) -> Path:
    """
    Point ``link`` at ``target`` with a single rename

    A temporary link is created next to ``link`` and renamed over it, so
    the link is never absent or dangling during the switch.

    Args:
        target: Link target (kept as given, so relative targets stay relative)
        link: Link path to create or replace

    Returns:
        Path to the link
    """
    temp_link = link.with_name(f".{link.name}.{os.getpid()}.tmp")

    if temp_link.exists() or temp_link.is_symlink():
        temp_link.unlink()

    temp_link.symlink_to(target, target_is_directory=True)

    try:
        os.replace(temp_link, link)
    except BaseException:
        temp_link.unlink(missing_ok=True)
        raise

    fsync_directory(link.parent)
    return link


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry change to disk where the platform allows it"""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return

    try:
        os.fsync(fd)
    except OSError:
        # Not supported for directories on some filesystems
        pass
    finally:
        os.close(fd)


def extract_archive(archive_path: Path,
                    extract_to: Path,
                    format: Optional[str] = None) -> Path:
    """
    Extract archive

    A single top-level directory inside the archive (as produced by
    ``git archive --prefix`` and release tarballs) is flattened into
    ``extract_to``.

    Args:
        archive_path: Archive file path
        extract_to: Extraction directory
        format: Archive format (auto-detect if None)

    Returns:
        Path to extracted content

    Raises:
        ValueError: If a member would land outside ``extract_to``
    """
    extract_to.mkdir(parents=True, exist_ok=True)

    if format is None and tarfile.is_tarfile(archive_path):
        with tarfile.open(archive_path) as tar:
            _check_members(tar, extract_to)
            if hasattr(tarfile, "data_filter"):
                tar.extractall(extract_to, filter="data")
            else:
                tar.extractall(extract_to)
    else:
        shutil.unpack_archive(str(archive_path), str(extract_to), format=format)

    entries = list(extract_to.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        wrapper = entries[0]
        hoisted = extract_to / f".{wrapper.name}.hoist"
        wrapper.rename(hoisted)
        for child in hoisted.iterdir():
            child.rename(extract_to / child.name)
        hoisted.rmdir()

    return extract_to


def remove_path(path: Path) -> bool:
    """
    Remove a file, link or directory tree

    Args:
        path: Path to remove

    Returns:
        True if something was removed, False if it was already absent
    """
    if path.is_symlink() or path.is_file():
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    if path.is_dir():
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return False
        return True

    return False


def path_age(path: Path, now: Optional[float] = None) -> float:
    """
    Seconds since a path was last modified

    Args:
        path: File or directory
        now: Reference time (defaults to the current time)

    Returns:
        Age in seconds
    """
    now = time.time() if now is None else now
    return now - path.lstat().st_mtime


def format_size(size: int) -> str:
    """
    Format file size in human-readable format

    Args:
        size: Size in bytes

    Returns:
        Formatted size string
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} PB"


def _check_members(tar: tarfile.TarFile, extract_to: Path) -> None:
    """Reject members that would be written outside ``extract_to``"""
    root = extract_to.resolve()

    def inside(path: Path) -> bool:
        return path == root or root in path.parents

    for member in tar.getmembers():
        if member.isdev():
            raise ValueError(f"Archive contains a device file: {member.name}")

        target = (root / member.name).resolve()
        if not inside(target):
            raise ValueError(f"Archive member escapes extraction directory: {member.name}")

        if member.issym():
            link = (target.parent / member.linkname).resolve()
        elif member.islnk():
            link = (root / member.linkname).resolve()
        else:
            continue
        if not inside(link):
            raise ValueError(f"Archive link escapes extraction directory: {member.name}")
