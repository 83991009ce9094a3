"""Querying the MySQL server through the ``mysql`` command line client."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .config import BlasyConfig
from .process import CommandResult, FetchStatus, OutputTarget, fetch_output, run_command
from .utils import format_command, redact
from .workspace import Workspace

LOGGER = logging.getLogger(__name__)

# Schemas that hold server metadata and cannot be optimized.
SYSTEM_SCHEMAS = frozenset({"information_schema", "performance_schema", "sys"})


class CatalogError(Exception):
    """Raised when the server cannot be queried for databases or tables."""


def credential_args(config: BlasyConfig) -> List[str]:
    """Connection options shared by ``mysql`` and ``mysqldump``.

    A defaults-extra-file wins over the discrete user, password and host
    settings, which are then not passed at all.
    """

    if config.defaults_extra_file:
        return [f"--defaults-extra-file={config.defaults_extra_file}"]
    args: List[str] = []
    if config.dbusername:
        args.extend(["--user", config.dbusername])
    if config.dbpassword:
        args.append(f"--password={config.dbpassword}")
    if config.dbhost:
        args.extend(["--host", config.dbhost])
    return args


@dataclass
class MySQLClient:
    config: BlasyConfig
    mysql: str
    workspace: Workspace
    runner: Callable[[Sequence[str], OutputTarget], CommandResult] = run_command
    logger: logging.Logger = LOGGER
    _secrets: List[str] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._secrets = self.config.secrets()

    # ------------------------------------------------------------------
    def list_databases(self) -> List[str]:
        """Return the databases visible to the configured account.

        Also serves as the connectivity check of a run: failing to query
        the server, or getting no database back, raises :class:`CatalogError`.
        """

        argv = [self.mysql, *credential_args(self.config), "--silent", "--exec", "SHOW DATABASES"]
        lines = self._query(argv, "fetching the list of databases")
        if lines is None:
            raise CatalogError("Could not fetch the list of databases!")
        databases = [line.strip() for line in lines if line.strip()]
        self.logger.debug("Databases on server: %s", databases)
        if not databases:
            raise CatalogError("Something must be wrong! The number of databases found is zero!")
        return databases

    def list_tables(self, database: str) -> List[str]:
        argv = [
            self.mysql,
            *credential_args(self.config),
            "-D",
            database,
            "--exec",
            "SHOW TABLES",
        ]
        lines = self._query(argv, f"fetching the list of tables in database '{database}'")
        if lines is None:
            raise CatalogError(f"Could not fetch the list of tables in database '{database}'!")
        # The first line is the "Tables_in_<database>" header.
        return [line.strip() for line in lines[1:] if line.strip()]

    def optimize_table(self, database: str, table: str) -> Optional[List[str]]:
        """Run ``OPTIMIZE TABLE`` on one table; ``None`` when it failed."""

        quoted = table.replace("`", "``")
        argv = [
            self.mysql,
            *credential_args(self.config),
            "-D",
            database,
            "--exec",
            f"OPTIMIZE TABLE `{quoted}`",
        ]
        return self._query(argv, f"optimizing table '{table}' in database '{database}'")

    def optimize_databases(self, databases: Sequence[str]) -> None:
        """Optimize every table of *databases*, one table at a time."""

        self.logger.info("Optimizing tables")
        for database in databases:
            if database in SYSTEM_SCHEMAS:
                continue
            self.logger.debug("listing tables in db: %s", database)
            try:
                tables = self.list_tables(database)
            except CatalogError as exc:
                self.logger.error("%s Skipping optimization of '%s'.", exc, database)
                continue
            self.logger.debug("optimizing tables in db: %s", database)
            for table in tables:
                result = self.optimize_table(database, table)
                if result is None:
                    self.logger.error("Could not optimize table '%s' in database '%s'", table, database)
                else:
                    self.logger.debug("%s", " | ".join(result))

    # ------------------------------------------------------------------
    def _query(self, argv: List[str], action: str) -> Optional[List[str]]:
        self.logger.debug("command: %s", format_command(argv, self._secrets))
        target = self.workspace.temp_file()
        result = self.runner(argv, target)
        fetched = fetch_output(target)
        if result.ok:
            if fetched.status is FetchStatus.FAILED:
                self.logger.error("Could not read the output of %s: %s", argv[0], fetched.error)
                return None
            return fetched.lines()

        self.logger.error("Command failed: %s", format_command(argv, self._secrets))
        self.logger.error("An error occured while %s (%s)", action, result.describe())
        if fetched.status is FetchStatus.CONTENT:
            self.logger.error("%s", redact(fetched.text.strip(), self._secrets))
        elif fetched.status is FetchStatus.FAILED:
            self.logger.error("%s", fetched.error)
        return None


__all__ = ["CatalogError", "MySQLClient", "SYSTEM_SCHEMAS", "credential_args"]
