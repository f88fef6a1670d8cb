# release_tool/utils/env_utils.py
"""Environment variable parsing for setup"""

import getpass
import os
from pathlib import Path
from typing import Dict, Iterable

from dotenv import dotenv_values

from ..constants import ENV_ACTOR, ENV_KEY_PATTERN


def parse_env_pair(item: str) -> Dict[str, str]:
    """
    Parse a single ``KEY=VALUE`` argument

    Only the first ``=`` separates key from value, so values may contain ``=``.

    Args:
        item: Raw argument

    Returns:
        Single-entry mapping

    Raises:
        ValueError: If the argument is not a valid pair
    """
    key, sep, value = item.partition("=")
    key = key.strip()
    if not sep or not ENV_KEY_PATTERN.match(key):
        raise ValueError(f"Expected KEY=VALUE, got {item!r}")
    return {key: value}


def load_env_file(path: Path) -> Dict[str, str]:
    """
    Load variables from a dotenv-style file

    Args:
        path: File path

    Returns:
        Mapping of variables; keys without a value map to an empty string

    Raises:
        ValueError: If the file declares an invalid variable name
    """
    values = dotenv_values(path)
    env = {}
    for key, value in values.items():
        if not ENV_KEY_PATTERN.match(key):
            raise ValueError(f"Invalid variable name {key!r} in {path}")
        env[key] = value if value is not None else ""
    return env


def parse_env_args(items: Iterable[str]) -> Dict[str, str]:
    """
    Merge ``--env`` arguments into one mapping

    Each item is either a path to an existing env file or a ``KEY=VALUE``
    pair. Later items override earlier ones.

    Args:
        items: Raw ``--env`` arguments

    Returns:
        Merged environment mapping

    Raises:
        ValueError: If an item is neither a readable file nor a pair
    """
    env: Dict[str, str] = {}
    for item in items:
        candidate = Path(item).expanduser()
        if candidate.is_file():
            env.update(load_env_file(candidate))
        else:
            env.update(parse_env_pair(item))
    return env


def current_actor() -> str:
    """Name recorded in the deployment log for this invocation"""
    actor = os.environ.get(ENV_ACTOR) or os.environ.get("SUDO_USER")
    if actor:
        return actor

    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return f"uid:{os.getuid()}"
