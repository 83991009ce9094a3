"""Helper utilities for the MySQL backup tool."""
from __future__ import annotations

import logging
import os
import re
import string
from datetime import datetime
from typing import Iterable, List, Optional

NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")

REDACTED = "xxxxxx"
MASK_CHARACTERS = "*#" + string.punctuation + string.ascii_letters + string.digits

TRUE_VALUES = {"1", "yes", "y", "true", "t"}
FALSE_VALUES = {"0", "no", "n", "false", "f"}


def timestamp_for_filename(dt: Optional[datetime] = None) -> str:
    dt = dt or datetime.now()
    return dt.strftime("%Y_%m_%d-%H_%M_%S")


def expand_tilde(value: str) -> str:
    """Expand a leading ``~`` or ``~user`` in *value*."""

    return os.path.expanduser(value)


def parse_bool(value: object) -> Optional[bool]:
    """Return the boolean meaning of *value*, or ``None`` when it has none."""

    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return None


def split_names(value: Optional[str]) -> List[str]:
    """Split a comma separated list of database names."""

    if not value:
        return []
    return [item.strip() for item in str(value).split(",") if item.strip()]


def redact(value: str, secrets: Iterable[Optional[str]]) -> str:
    """Replace occurrences of secret values in *value* with ``xxxxxx``.

    The mask is built from a character none of the secrets contains, so
    the result never holds a secret again.
    """

    secrets = [secret for secret in secrets if secret]
    mask = REDACTED
    if any(mask[0] in secret for secret in secrets):
        mask = len(REDACTED) * next(
            (char for char in MASK_CHARACTERS if not any(char in secret for secret in secrets)),
            "\ufffd",
        )
    masked = value
    for secret in secrets:
        masked = masked.replace(secret, mask)
    return masked


def format_command(argv: Iterable[str], secrets: Iterable[Optional[str]] = ()) -> str:
    return redact(" ".join(argv), secrets)


def is_safe_filename(name: str) -> bool:
    """Return ``True`` when *name* can be used as a single path component."""

    if not name or name in {".", ".."}:
        return False
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    return not any(sep in name for sep in separators) and "\0" not in name


_KEY_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_key(key: str) -> str:
    """Normalize a configuration key: ``Exclude  Databases`` -> ``exclude_databases``."""

    return _KEY_SEPARATORS.sub("_", str(key).strip().lower())


__all__ = [
    "NOTICE",
    "REDACTED",
    "expand_tilde",
    "format_command",
    "is_safe_filename",
    "normalize_key",
    "parse_bool",
    "redact",
    "split_names",
    "timestamp_for_filename",
]
