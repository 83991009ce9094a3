"""Packing the dump files of a run into one archive.

Three ways of writing the archive exist and are tried in order until one
of them is available:

* :class:`ExternalTarArchiver` runs the ``tar`` program, optionally piping
  through an external compression program (``gzip``, ``bzip2``);
* :class:`NativeTarArchiver` writes the tar file with :mod:`tarfile`;
* :class:`NativeZipArchiver` writes a zip file with :mod:`zipfile` and is
  the only strategy on platforms where zip is the native format.
"""
from __future__ import annotations

import contextlib
import enum
import logging
import os
import sys
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from .config import BlasyConfig
from .executables import resolve_executable
from .process import INHERIT, CommandResult, OutputTarget, run_command

LOGGER = logging.getLogger(__name__)

COMPRESSION_SUFFIXES = (("bzip2", ".bz2"), ("gzip", ".gz"))


class ArchiveError(Exception):
    """Raised when the archive of a run cannot be written."""


class NothingToArchive(ArchiveError):
    """Raised when a run produced no file that could be archived."""


class ArchiveStatus(enum.Enum):
    CREATED = "created"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class ArchiveOutcome:
    status: ArchiveStatus
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ArchiveStatus.CREATED


@contextlib.contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(previous)


def uses_zip(config: BlasyConfig, platform: str = sys.platform) -> bool:
    if config.archive_format == "zip":
        return True
    if config.archive_format == "tar":
        return False
    return platform.startswith("win")


def archive_extension(config: BlasyConfig, platform: str = sys.platform) -> str:
    """Extension of the archive before any compression suffix is added."""

    return ".zip" if uses_zip(config, platform) else ".tar"


def archive_candidates(base: Path, config: BlasyConfig, platform: str = sys.platform) -> List[Path]:
    """Every file name an archive built from *base* may end up with."""

    base = Path(base)
    if uses_zip(config, platform):
        return [base]
    return [base] + [base.with_name(base.name + suffix) for _, suffix in COMPRESSION_SUFFIXES]


def compression_suffix(tool: str) -> str:
    name = os.path.basename(tool).lower()
    if name.endswith(".exe"):
        name = name[: -len(".exe")]
    for family, suffix in COMPRESSION_SUFFIXES:
        if name.endswith(family):
            return suffix
    return ""


# ---------------------------------------------------------------------------
@dataclass
class ExternalTarArchiver:
    config: BlasyConfig
    runner: Callable[[Sequence[str], OutputTarget], CommandResult] = run_command
    search: Optional[Sequence[str]] = None
    logger: logging.Logger = LOGGER

    def create(self, source_dir: Path, files: Sequence[Path], work_dir: Path, target: Path) -> ArchiveOutcome:
        tar = resolve_executable(self.config.tar, "tar", self.search)
        if tar is None:
            return ArchiveOutcome(ArchiveStatus.UNAVAILABLE, error="no tar program found")
        self.logger.info("running external tar")
        self.logger.debug("directory to be tarred: %s", source_dir)
        self.logger.debug("workdir: %s", work_dir)
        self.logger.debug("tarfilename: %s", target)

        # Relative PATH entries must be looked up before changing directory.
        compress_args: List[str] = []
        target = Path(target)
        tool = self._compression_tool()
        if tool is not None:
            compress_args = ["--use-compress-program", tool]
            target = target.with_name(target.name + compression_suffix(tool))

        with working_directory(work_dir):
            if not Path(source_dir).is_dir():
                raise ArchiveError(f"Directory {source_dir} for tarring does not exist!")
            member = os.path.relpath(source_dir, work_dir)
            if member.startswith(os.pardir) or not os.path.isdir(member):
                self.logger.error(
                    "%s is not a subdirectory of %s, will not be able to create correct "
                    "pathnames in tar archive",
                    source_dir,
                    work_dir,
                )
                member = str(source_dir)

            argv = [tar, *compress_args, "-cf", str(target), member]
            self.logger.debug("command: %s", " ".join(argv))
            result = self.runner(argv, INHERIT)

        if result.ok:
            return ArchiveOutcome(ArchiveStatus.CREATED, path=target)
        self.logger.warning("Command failed: %s", " ".join(argv))
        return ArchiveOutcome(
            ArchiveStatus.FAILED,
            path=target,
            error=f"An error occured while tarring ({result.describe()})",
        )

    def _compression_tool(self) -> Optional[str]:
        if not self.config.compression:
            return None
        tool = resolve_executable(self.config.compression_tool, "gzip", self.search)
        if tool is None:
            self.logger.warning(
                "Although compression was requested, it cannot be used, as %s is not available",
                self.config.compression_tool or "gzip",
            )
            return None
        self.logger.info("Will use %s as the compression tool", tool)
        return tool


@dataclass
class NativeTarArchiver:
    config: BlasyConfig
    logger: logging.Logger = LOGGER

    def create(self, source_dir: Path, files: Sequence[Path], work_dir: Path, target: Path) -> ArchiveOutcome:
        self.logger.info("Will use native tar")
        target = Path(target)
        with working_directory(work_dir):
            members = _relative_members(files, work_dir, self.logger)
            if not members:
                raise NothingToArchive("Nothing to tar!")

            mode = "w"
            if self.config.compression:
                mode = "w:gz"
                target = target.with_name(target.name + ".gz")
            try:
                try:
                    archive = tarfile.open(target, mode)
                except tarfile.CompressionError as exc:
                    self.logger.warning(
                        "Although compression was requested, it cannot be used: %s", exc
                    )
                    target = target.with_name(target.name[: -len(".gz")])
                    archive = tarfile.open(target, "w")
                with archive:
                    for member in members:
                        archive.add(member)
            except (OSError, tarfile.TarError) as exc:
                return ArchiveOutcome(ArchiveStatus.FAILED, path=target, error=str(exc))
        return ArchiveOutcome(ArchiveStatus.CREATED, path=target)


@dataclass
class NativeZipArchiver:
    config: BlasyConfig
    logger: logging.Logger = LOGGER

    def create(self, source_dir: Path, files: Sequence[Path], work_dir: Path, target: Path) -> ArchiveOutcome:
        target = Path(target)
        self.logger.debug("files: %s", " ".join(str(item) for item in files))
        self.logger.debug("workdir: %s", source_dir)
        self.logger.debug("zipfilename: %s", target)
        if not files:
            raise NothingToArchive("Nothing to zip!")

        if self.config.compression:
            options = {"compression": zipfile.ZIP_DEFLATED, "compresslevel": 9}
        else:
            options = {"compression": zipfile.ZIP_STORED}

        with working_directory(source_dir):
            try:
                with zipfile.ZipFile(target, "w", **options) as archive:
                    for path in files:
                        name = os.path.basename(str(path))
                        if not os.path.isfile(name):
                            self.logger.warning("Can't add the '%s' file", name)
                            continue
                        archive.write(name, arcname=name)
            except (OSError, zipfile.BadZipFile, RuntimeError) as exc:
                return ArchiveOutcome(ArchiveStatus.FAILED, path=target, error=str(exc))
        return ArchiveOutcome(ArchiveStatus.CREATED, path=target)


def _relative_members(files: Sequence[Path], work_dir: Path, logger: logging.Logger) -> List[str]:
    members = []
    for path in files:
        member = os.path.relpath(path, work_dir)
        if not os.path.isfile(member):
            logger.warning("%s will probably not be added to the tar, but will continue and try", member)
        members.append(member)
    return members


# ---------------------------------------------------------------------------
@dataclass
class Archiver:
    """Writes the archive of a run with the first available strategy."""

    config: BlasyConfig
    runner: Callable[[Sequence[str], OutputTarget], CommandResult] = run_command
    search: Optional[Sequence[str]] = None
    platform: str = sys.platform
    logger: logging.Logger = LOGGER

    def strategies(self):
        if uses_zip(self.config, self.platform):
            return [NativeZipArchiver(self.config, logger=self.logger)]
        return [
            ExternalTarArchiver(self.config, runner=self.runner, search=self.search, logger=self.logger),
            NativeTarArchiver(self.config, logger=self.logger),
        ]

    def archive(self, source_dir: Path, files: Sequence[Path], work_dir: Path, target: Path) -> ArchiveOutcome:
        """Pack *files* from *source_dir* into *target* (plus a compression suffix).

        *target* must be absolute, the strategies change into *work_dir*
        while they run.
        """

        for strategy in self.strategies():
            outcome = strategy.create(source_dir, files, work_dir, target)
            if outcome.status is ArchiveStatus.UNAVAILABLE:
                self.logger.debug("%s unavailable: %s", type(strategy).__name__, outcome.error)
                continue
            return outcome
        return ArchiveOutcome(ArchiveStatus.FAILED, error="no way of writing an archive is available")


__all__ = [
    "ArchiveError",
    "ArchiveOutcome",
    "ArchiveStatus",
    "Archiver",
    "ExternalTarArchiver",
    "NativeTarArchiver",
    "NativeZipArchiver",
    "NothingToArchive",
    "archive_candidates",
    "archive_extension",
    "compression_suffix",
    "uses_zip",
]
