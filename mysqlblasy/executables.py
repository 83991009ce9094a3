"""Locating the external programs the backup depends on."""
from __future__ import annotations

import logging
import os
from typing import List, Optional, Sequence

LOGGER = logging.getLogger(__name__)


class ToolNotFound(Exception):
    """Raised when a required external program cannot be used."""


def search_path(env_value: Optional[str] = None) -> List[str]:
    """Return the sanitized list of directories from ``PATH``.

    Entries are normalized, de-duplicated (first occurrence wins) and
    reduced to directories that exist and are readable. An unusable
    variable yields an empty list.
    """

    if env_value is None:
        env_value = os.environ.get("PATH", "")
    parts = [os.path.normpath(part) for part in env_value.split(os.pathsep) if part]
    if not parts:
        LOGGER.warning("No valid PATH found, falling back to empty path")
        return []

    result: List[str] = []
    for part in parts:
        if part in result:
            continue
        if os.path.isdir(part) and os.access(part, os.R_OK):
            result.append(part)
        else:
            LOGGER.info("removed %s from PATH as it is not existing/readable anyway", part)
    if not result:
        LOGGER.warning("no valid dirs found in path!")
    return result


def find_in_path(name: str, path: Sequence[str]) -> Optional[str]:
    for directory in path:
        candidate = os.path.join(directory, name)
        if (
            os.path.isfile(candidate)
            and os.access(candidate, os.R_OK)
            and os.access(candidate, os.X_OK)
        ):
            return os.path.abspath(candidate)
    return None


def is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def resolve_executable(
    user_supplied: Optional[str],
    fallback: str,
    path: Optional[Sequence[str]] = None,
) -> Optional[str]:
    """Turn a configured program name into an absolute path.

    An absolute *user_supplied* path is accepted only when it is
    executable. A bare *user_supplied* name is looked up in the search
    path and never replaced by *fallback*. Without a user value the
    *fallback* name is looked up instead. ``None`` means not found.
    """

    if path is None:
        path = search_path()

    if user_supplied:
        if not os.path.isabs(user_supplied):
            found = find_in_path(user_supplied, path)
            if found:
                LOGGER.debug(
                    "%s was specified but still found dynamically, as it was not "
                    "specified as an absolute path: %s",
                    user_supplied,
                    found,
                )
                return found
            LOGGER.warning("%s was specified but could not be found or is not executable", user_supplied)
            return None
        if not is_executable(user_supplied):
            LOGGER.warning("%s was specified but could not be found or is not executable", user_supplied)
            return None
        LOGGER.info("%s was found", user_supplied)
        return user_supplied

    found = find_in_path(fallback, path)
    if found:
        LOGGER.info("Dynamically found %s: %s", fallback, found)
        return found
    LOGGER.warning("%s was not specified and could not be found or is not executable.", fallback)
    return None


def resolve_client_tool(configured: Optional[str], name: str, path: Optional[Sequence[str]] = None) -> str:
    """Resolve one of the MySQL client programs or raise :class:`ToolNotFound`.

    A configured value must point at an executable file. Otherwise *name*
    and then ``name.exe`` are searched for.
    """

    if configured:
        if not is_executable(configured):
            raise ToolNotFound(
                f"configured {name} '{configured}' executable could not be found/is not executable"
            )
        return configured

    if path is None:
        path = search_path()
    for candidate in (name, f"{name}.exe"):
        found = find_in_path(candidate, path)
        if found:
            LOGGER.debug("Using %s", found)
            return found
    raise ToolNotFound(f"{name} executable could not be found")


__all__ = [
    "ToolNotFound",
    "find_in_path",
    "is_executable",
    "resolve_client_tool",
    "resolve_executable",
    "search_path",
]
