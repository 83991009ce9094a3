"""Command line interface for the MySQL backup tool."""
from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from mysqlblasy import __version__
from mysqlblasy.archive import ArchiveError
from mysqlblasy.backup import BackupError, BackupRunner
from mysqlblasy.config import APP_NAME, BlasyConfig, ConfigError, config_locations, load_config
from mysqlblasy.dump import InvalidDumpJob
from mysqlblasy.executables import ToolNotFound
from mysqlblasy.mysql import CatalogError
from mysqlblasy.utils import NOTICE

LOGGER = logging.getLogger(APP_NAME)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SYSLOG_FORMAT = APP_NAME + "[%(process)d]: %(levelname)s %(name)s: %(message)s"
SYSLOG_SOCKETS = ("/dev/log", "/var/run/syslog")

# loglevel setting -> logging level; 0 silences everything.
LOG_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.ERROR,
    2: logging.WARNING,
    3: NOTICE,
    4: logging.INFO,
    5: logging.DEBUG,
}

_installed_handlers: List[logging.Handler] = []

FATAL_ERRORS = (
    ArchiveError,
    BackupError,
    CatalogError,
    ConfigError,
    InvalidDumpJob,
    ToolNotFound,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "MySQL backup for lazy sysadmins: dumps every database with mysqldump, "
            "archives the dumps into the backup directory and rotates old backups."
        ),
    )
    parser.add_argument(
        "-c",
        "--config-file",
        dest="config",
        help=(
            "Alternative configuration file. The system-wide configuration is still "
            f"read, the file replaces ~/.{APP_NAME}rc."
        ),
    )
    parser.add_argument("-V", "--version", action="version", version=__version__)
    return parser


def configure_logging(level: int, use_syslog: bool = False) -> None:
    """(Re)configure the root logger; safe to call again once the config is read."""

    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()

    log_level = LOG_LEVELS.get(level, logging.WARNING)
    root.setLevel(log_level)
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [console]
    if use_syslog:
        syslog = create_syslog_handler()
        if syslog is not None:
            handlers.append(syslog)
    for handler in handlers:
        root.addHandler(handler)
        _installed_handlers.append(handler)


def create_syslog_handler() -> Optional[logging.Handler]:
    if sys.platform.startswith("win"):
        return None
    for address in SYSLOG_SOCKETS:
        if not os.path.exists(address):
            continue
        try:
            handler = logging.handlers.SysLogHandler(address=address)
        except OSError as exc:
            LOGGER.warning("Will not use syslog, %s is not usable: %s", address, exc)
            return None
        handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
        return handler
    LOGGER.warning("Will not use syslog, no local syslog socket found")
    return None


def load_application_config(override: Optional[str]) -> BlasyConfig:
    paths = config_locations(Path(override).expanduser() if override else None)
    try:
        config = load_config(paths)
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        sys.exit(1)
    configure_logging(config.loglevel, config.syslog)
    return config


def handle_run(config: BlasyConfig) -> int:
    runner = BackupRunner(config=config)
    try:
        archive = runner.run()
    except FATAL_ERRORS as exc:
        if LOGGER.isEnabledFor(logging.ERROR):
            LOGGER.error("%s", exc)
        else:
            print(f"{APP_NAME}: {exc}", file=sys.stderr)
        return 1
    LOGGER.info("Backup written to %s", archive)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Until the configuration is read only warnings and errors are shown.
    configure_logging(2)
    config = load_application_config(args.config)
    return handle_run(config)


if __name__ == "__main__":
    sys.exit(main())
