"""Dumping databases with ``mysqldump``."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import BlasyConfig
from .mysql import credential_args
from .process import CommandResult, FetchStatus, OutputTarget, fetch_output, run_command
from .utils import format_command, redact

LOGGER = logging.getLogger(__name__)

DUMP_OPTIONS = (
    "--lock-tables",
    "--complete-insert",
    "--add-drop-table",
    "--quick",
    "--quote-names",
)


class InvalidDumpJob(Exception):
    """Raised for a dump job that does not name exactly one target."""


@dataclass(frozen=True)
class DumpJob:
    destination: Path
    database: Optional[str] = None
    all_databases: bool = False

    def validate(self) -> None:
        if self.database is not None and self.all_databases:
            raise InvalidDumpJob("invalid params: all and db at the same time!")
        if self.database is None and not self.all_databases:
            raise InvalidDumpJob(
                "No specification on what to backup (all databases, or only specific ones)."
            )
        if self.destination is None:
            raise InvalidDumpJob("a dump job needs a destination file")

    def target_args(self) -> List[str]:
        self.validate()
        if self.all_databases:
            return ["--all-databases"]
        return [self.database]

    def describe(self) -> str:
        return "all databases" if self.all_databases else f"database `{self.database}`"


@dataclass(frozen=True)
class DumpResult:
    ok: bool
    path: Path
    message: Optional[str] = None


@dataclass
class Dumper:
    config: BlasyConfig
    mysqldump: str
    runner: Callable[[Sequence[str], OutputTarget], CommandResult] = run_command
    logger: logging.Logger = LOGGER
    _secrets: List[str] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._secrets = self.config.secrets()

    def command(self, job: DumpJob) -> List[str]:
        return [
            self.mysqldump,
            *credential_args(self.config),
            *DUMP_OPTIONS,
            *job.target_args(),
        ]

    def dump(self, job: DumpJob) -> DumpResult:
        """Dump according to *job*; only an invalid job raises."""

        argv = self.command(job)
        self.logger.info("Going to dump %s", job.describe())
        self.logger.debug("command: %s", format_command(argv, self._secrets))

        destination = Path(job.destination)
        result = self.runner(argv, destination)
        if result.ok:
            self.logger.info("Successfully dumped to %s", destination)
            return DumpResult(ok=True, path=destination)

        self.logger.warning("Command failed: %s", format_command(argv, self._secrets))
        self.logger.warning("An error occured while dumping (%s)", result.describe())
        return DumpResult(ok=False, path=destination, message=self._diagnostics(destination, job))

    def _diagnostics(self, destination: Path, job: DumpJob) -> str:
        fetched = fetch_output(destination)
        if fetched.status is FetchStatus.CONTENT:
            return redact(fetched.text.strip(), self._secrets)
        if fetched.status is FetchStatus.EMPTY:
            return f"Dump of {job.describe()} failed without output"
        return f"Dump of {job.describe()} failed; {fetched.error}"


__all__ = ["DUMP_OPTIONS", "DumpJob", "DumpResult", "Dumper", "InvalidDumpJob"]
