"""Configuration model and loader for the backup tool."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import yaml

from .utils import expand_tilde, normalize_key, parse_bool

LOGGER = logging.getLogger(__name__)

APP_NAME = "mysqlblasy"

SYSTEM_CONFIG_FILES = (
    Path("/etc") / f"{APP_NAME}.conf",
    Path("/usr/local/etc") / f"{APP_NAME}.conf",
)
USER_CONFIG_FILENAME = f".{APP_NAME}rc"

ARCHIVE_FORMATS = {"auto", "tar", "zip"}

# Key spellings accepted in configuration files and the field they map to.
KEY_ALIASES = {
    "backupdir": "backupdir",
    "backup_dir": "backupdir",
    "databases": "databases",
    "exclude_databases": "exclude_databases",
    "defaults_extra_file": "defaults_extra_file",
    "defaultsextrafile": "defaults_extra_file",
    "dbusername": "dbusername",
    "dbpassword": "dbpassword",
    "dbhost": "dbhost",
    "optimize_tables": "optimize_tables",
    "loglevel": "loglevel",
    "log_level": "loglevel",
    "mysql": "mysql",
    "mysqldump": "mysqldump",
    "use_compression": "compression",
    "compression": "compression",
    "compression_tool": "compression_tool",
    "compressiontool": "compression_tool",
    "keep": "keep",
    "use_syslog": "syslog",
    "syslog": "syslog",
    "tar": "tar",
    "archive_format": "archive_format",
}

PATH_KEYS = {"backupdir", "defaults_extra_file", "mysql", "mysqldump", "compression_tool", "tar"}
BOOL_KEYS = {"optimize_tables", "compression", "syslog"}

_LEGACY_LINE = re.compile(r"^(?P<key>[^=]+?)\s*=\s*(?P<value>\S+)$")
_INTEGER = re.compile(r"^[+-]?\d+$")


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class BlasyConfig:
    backupdir: Optional[str] = None
    databases: Optional[str] = None
    exclude_databases: Optional[str] = None
    defaults_extra_file: Optional[str] = None
    dbusername: Optional[str] = None
    dbpassword: Optional[str] = None
    dbhost: Optional[str] = None
    optimize_tables: bool = False
    loglevel: int = 2
    mysql: Optional[str] = None
    mysqldump: Optional[str] = None
    compression: bool = True
    compression_tool: Optional[str] = None
    keep: Optional[int] = None
    syslog: bool = True
    tar: Optional[str] = None
    archive_format: str = "auto"

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "BlasyConfig":
        """Build a configuration from already normalized ``field -> value`` pairs."""

        data = data or {}
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def secrets(self) -> List[str]:
        """Values that must never show up in a log line."""

        return [self.dbpassword] if self.dbpassword else []

    def validate(self) -> None:
        if not self.backupdir:
            raise ConfigError("No backup directory configured (key 'backupdir').")
        if not Path(self.backupdir).is_dir():
            raise ConfigError(f"backupdir does not exist: {self.backupdir}")


# ---------------------------------------------------------------------------
def parse_config_text(text: str, source: str = "<string>") -> Dict[str, object]:
    """Parse one configuration document into normalized ``field -> value`` pairs.

    YAML mappings are the native format. Documents that do not parse into a
    mapping are read as the legacy ``key = value`` line format, so existing
    configuration files keep working. Unrecognized keys are ignored.
    """

    raw: Dict[str, object]
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError:
        document = None
    if isinstance(document, dict):
        raw = {str(key): value for key, value in document.items()}
    elif document is None and not text.strip():
        raw = {}
    else:
        raw = _parse_legacy(text)

    result: Dict[str, object] = {}
    for key, value in raw.items():
        name = KEY_ALIASES.get(normalize_key(key))
        if name is None:
            LOGGER.debug("Ignoring unknown configuration key '%s' in %s", key, source)
            continue
        converted = _convert(name, value, source)
        if converted is not None:
            result[name] = converted
    return result


def _parse_legacy(text: str) -> Dict[str, object]:
    raw: Dict[str, object] = {}
    for line in text.splitlines():
        line = " ".join(line.split())
        if not line or line.startswith("#"):
            continue
        match = _LEGACY_LINE.match(line)
        if match:
            raw[match.group("key")] = match.group("value")
    return raw


def _convert(name: str, value: object, source: str) -> Optional[object]:
    if value is None:
        return None
    if name in BOOL_KEYS:
        flag = parse_bool(value)
        if flag is None:
            LOGGER.warning("Invalid '%s' given in %s: %s", name, source, value)
        return flag
    if name == "loglevel":
        text = str(value).strip()
        if not re.fullmatch(r"[0-5]", text):
            LOGGER.warning("Invalid loglevel given in %s: %s", source, value)
            return None
        return int(text)
    if name == "keep":
        text = str(value).strip()
        if isinstance(value, bool) or not _INTEGER.match(text):
            LOGGER.warning("Invalid value for 'keep' given in %s: '%s'", source, value)
            return None
        return int(text)
    if name == "archive_format":
        text = str(value).strip().lower()
        if text not in ARCHIVE_FORMATS:
            LOGGER.warning("Invalid 'archive format' given in %s: %s", source, value)
            return None
        return text
    if name in {"databases", "exclude_databases"} and isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if name in PATH_KEYS:
        return expand_tilde(str(value))
    return str(value)


# ---------------------------------------------------------------------------
def config_locations(override: Optional[Path] = None, home: Optional[Path] = None) -> List[Path]:
    """Return the configuration files to consider, in merge order.

    The system-wide files are always read. The per-user file is replaced by
    *override* when one is given.
    """

    locations = list(SYSTEM_CONFIG_FILES)
    if override is not None:
        locations.append(Path(override))
    else:
        home = home or Path(os.environ.get("HOME") or Path.home())
        locations.append(home / USER_CONFIG_FILENAME)
    return locations


def load_config(paths: Sequence[Path]) -> BlasyConfig:
    """Read and merge *paths*; later files override earlier ones key by key."""

    readable = [Path(path) for path in paths if _is_readable_file(Path(path))]
    LOGGER.debug("Using these config files: %s", ", ".join(str(path) for path in readable))
    if not readable:
        raise ConfigError("No configuration files found.")
    merged: Dict[str, object] = {}
    for path in readable:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Can't open config file '{path}': {exc}") from exc
        merged.update(parse_config_text(text, str(path)))
    return BlasyConfig.from_dict(merged)


def _is_readable_file(path: Path) -> bool:
    LOGGER.debug("Checking for config file %s", path)
    return path.is_file() and os.access(path, os.R_OK)


def dump_config(config: BlasyConfig, keys: Optional[Iterable[str]] = None) -> Dict[str, object]:
    """Return *config* as a dictionary with the password masked, for debug logging."""

    names = set(keys) if keys else {item.name for item in fields(config)}
    result: Dict[str, object] = {}
    for item in fields(config):
        if item.name not in names:
            continue
        value = getattr(config, item.name)
        if item.name == "dbpassword" and value:
            value = "***"
        result[item.name] = value
    return result


__all__ = [
    "APP_NAME",
    "BlasyConfig",
    "ConfigError",
    "config_locations",
    "dump_config",
    "load_config",
    "parse_config_text",
]
