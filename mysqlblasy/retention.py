"""Removing old backups from the backup directory."""
from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .utils import NOTICE

LOGGER = logging.getLogger(__name__)

DEFAULT_KEEP = 7


def _coerce_keep(keep: object, logger: logging.Logger) -> int:
    if keep is not None:
        text = str(keep).strip()
        if isinstance(keep, bool) or not re.fullmatch(r"[+-]?\d+", text):
            logger.warning("Number of files to keep received is not a number: %s", keep)
            keep = None
        else:
            keep = int(text)
    if keep is None:
        logger.info("Falling back to keeping %s backup files.", DEFAULT_KEEP)
        return DEFAULT_KEEP
    if keep == 0:
        logger.error("Number of files to keep is zero? No backup will be there! Check your config!")
    return keep


def _check_directory(directory: Path, logger: logging.Logger) -> bool:
    if not directory.exists():
        logger.error("%s: not existing", directory)
        return False
    if not directory.is_dir():
        logger.error("%s: not a directory", directory)
        return False
    if not os.access(directory, os.W_OK):
        logger.error("%s: no write access", directory)
        return False
    if not os.access(directory, os.R_OK):
        logger.error("%s: no read access", directory)
        return False
    if not os.access(directory, os.X_OK):
        logger.error("%s: no access", directory)
        return False
    return True


def backup_files(directory: Path, now: Optional[float] = None) -> List[Tuple[Path, float]]:
    """Return ``(path, age in seconds)`` for every regular, non-hidden file."""

    now = time.time() if now is None else now
    files = []
    for entry in os.scandir(directory):
        if entry.name.startswith("."):
            continue
        if not entry.is_file(follow_symlinks=True):
            continue
        try:
            mtime = entry.stat().st_mtime
        except FileNotFoundError:
            continue
        files.append((Path(entry.path), now - mtime))
    return files


def purge_old_files(
    directory: Union[str, Path],
    keep: object = None,
    logger: logging.Logger = LOGGER,
) -> bool:
    """Delete old backups in *directory*.

    ``keep`` newest files survive; a negative ``keep`` keeps the
    ``abs(keep)`` oldest files instead. Returns ``False`` only when the
    directory cannot be used; failing to delete single files is logged and
    does not stop the purge.
    """

    keep = _coerce_keep(keep, logger)
    directory = Path(directory)
    if not _check_directory(directory, logger):
        return False

    try:
        files = backup_files(directory)
    except OSError as exc:
        logger.error("%s: %s", directory, exc)
        return False
    logger.debug("%s: total of %s files", directory, len(files))

    if len(files) <= abs(keep):
        logger.log(NOTICE, "%s: below limit", directory)
        return True

    # Oldest first.
    ordered = [path for path, _ in sorted(files, key=lambda item: item[1], reverse=True)]
    logger.debug("%s: sorted: %s", directory, " ".join(str(path) for path in ordered))
    if keep < 0:
        doomed = ordered[abs(keep):]
    else:
        doomed = ordered[: len(ordered) - keep]

    for path in doomed:
        logger.debug("trying to remove %s", path)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.log(NOTICE, "File %s could not be removed, it was already gone.", path)
        except OSError as exc:
            logger.error("Could not remove %s: %s", path, exc)
        else:
            logger.info("Removed old backup %s", path)
    return True


__all__ = ["DEFAULT_KEEP", "backup_files", "purge_old_files"]
