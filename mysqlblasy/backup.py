"""Core backup logic: dump, archive, purge and optimize."""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .archive import ArchiveError, Archiver, NothingToArchive, archive_candidates, archive_extension
from .config import BlasyConfig, dump_config
from .dump import DumpJob, Dumper
from .executables import resolve_client_tool, search_path
from .mysql import MySQLClient
from .process import CommandResult, OutputTarget, run_command
from .retention import purge_old_files
from .utils import is_safe_filename, split_names
from .workspace import Workspace

LOGGER = logging.getLogger(__name__)


class BackupError(Exception):
    """Raised when a backup run has to be aborted."""


def select_databases(
    available: Sequence[str],
    wanted: Optional[str] = None,
    excluded: Optional[str] = None,
    logger: logging.Logger = LOGGER,
) -> List[str]:
    """Compute the backup set.

    ``wanted`` and ``excluded`` are comma separated lists. Without
    ``wanted`` every available database is taken. Wanted databases the
    server does not know are skipped with a warning.
    """

    names = split_names(wanted)
    if names:
        known = set(available)
        selected = []
        for name in names:
            if name in known:
                if name not in selected:
                    selected.append(name)
            else:
                logger.warning("The specified database %s does not exist. Will not try to backup.", name)
    else:
        selected = list(available)

    skip = set(split_names(excluded))
    result = []
    for name in selected:
        if name in skip:
            logger.info("The specified database %s will not be backed up.", name)
            continue
        result.append(name)
    return result


@dataclass
class BackupRunner:
    config: BlasyConfig
    runner: Callable[[Sequence[str], OutputTarget], CommandResult] = run_command
    workspace: Optional[Workspace] = None
    search: Optional[Sequence[str]] = None
    platform: str = sys.platform
    logger: logging.Logger = LOGGER
    databases: List[str] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if self.workspace is None:
            self.workspace = Workspace(host_alias=self.config.dbhost, logger=self.logger)

    def run(self) -> Path:
        """Execute one backup run and return the path of the new archive.

        The work directory is removed and the working directory restored
        however the run ends.
        """

        start_dir = os.getcwd()
        try:
            return self._run()
        finally:
            if os.path.isdir(start_dir):
                os.chdir(start_dir)
            self.workspace.cleanup()

    # ------------------------------------------------------------------
    def _run(self) -> Path:
        config = self.config
        self.logger.debug("Configuration: %s", dump_config(config))
        config.validate()
        backup_dir = Path(config.backupdir).resolve()

        search = self.search if self.search is not None else search_path()
        mysql = resolve_client_tool(config.mysql, "mysql", search)
        mysqldump = resolve_client_tool(config.mysqldump, "mysqldump", search)

        client = MySQLClient(config, mysql, self.workspace, runner=self.runner, logger=self.logger)
        available = client.list_databases()

        self.databases = select_databases(available, config.databases, config.exclude_databases, self.logger)
        if not self.databases:
            raise BackupError("Something must be wrong! The number of databases found to be backed up is zero!")

        host_dir = self.workspace.host_dir
        target = backup_dir / (host_dir.name + archive_extension(config, self.platform))
        self.logger.debug("using archive filename: %s", target.name)
        for candidate in archive_candidates(target, config, self.platform):
            if candidate.exists():
                raise BackupError(f"Backup with filename {candidate} already exists!")

        dumps = self._dump_all(mysqldump, host_dir)
        if not dumps:
            raise NothingToArchive("No database could be dumped, nothing to archive!")

        archiver = Archiver(config, runner=self.runner, search=search, platform=self.platform, logger=self.logger)
        outcome = archiver.archive(host_dir, dumps, self.workspace.work_dir, target)
        if not outcome.ok:
            self._remove_partial(outcome.path)
            raise ArchiveError(f"Could not create the archive: {outcome.error}")
        self.logger.info("Successfully archived dump(s) to %s", outcome.path)

        if not purge_old_files(backup_dir, config.keep, logger=self.logger):
            raise BackupError("Could not cleanup old backups...")

        if config.optimize_tables:
            client.optimize_databases(self.databases)

        return outcome.path

    def _dump_all(self, mysqldump: str, host_dir: Path) -> List[Path]:
        dumper = Dumper(self.config, mysqldump, runner=self.runner, logger=self.logger)
        dumps: List[Path] = []
        for database in self.databases:
            self.logger.debug("dumping db: %s", database)
            if not is_safe_filename(database):
                self.logger.error("Database name %r can't be used as a file name, skipping it.", database)
                continue
            result = dumper.dump(DumpJob(host_dir / f"{database}.sql", database=database))
            if result.ok:
                dumps.append(result.path)
            else:
                self.logger.error("%s", result.message)
        return dumps

    def _remove_partial(self, path: Optional[Path]) -> None:
        if path is None or not path.exists():
            return
        self.logger.warning("Will unlink the unsuccessfully created archive: %s", path)
        try:
            path.unlink()
        except OSError as exc:
            self.logger.error("Could not remove %s: %s", path, exc)


__all__ = ["BackupError", "BackupRunner", "select_databases"]
