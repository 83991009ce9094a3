"""Running external programs and reading back what they wrote."""
from __future__ import annotations

import enum
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

LOGGER = logging.getLogger(__name__)

INHERIT = "inherit"
"""Output target leaving the child's stdout/stderr attached to ours."""

OutputTarget = Union[None, str, Path]


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    exit_code: Optional[int] = None
    signal: Optional[int] = None
    error: Optional[str] = None

    def describe(self) -> str:
        if self.error:
            return self.error
        if self.signal:
            return f"terminated by signal {self.signal}"
        return f"exit status {self.exit_code}"


CommandRunner = Callable[[Sequence[str], OutputTarget], CommandResult]


def run_command(argv: Sequence[str], output: OutputTarget = None) -> CommandResult:
    """Run *argv* without a shell and report how it ended.

    With *output* set to a path, the child's stdout and stderr are written
    into that one file; ``None`` discards both, :data:`INHERIT` leaves them
    alone. There is no timeout. This function never raises: spawn failures,
    nonzero exit statuses and signals are all reported as ``ok=False``.
    """

    argv = [str(arg) for arg in argv]
    if not argv:
        return CommandResult(ok=False, error="empty command line")
    LOGGER.debug("Running %s", argv[0])
    try:
        if output == INHERIT:
            completed = subprocess.run(argv, check=False)
        elif output is None:
            completed = subprocess.run(
                argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.STDOUT,
                check=False,
            )
        else:
            with open(output, "wb") as handle:
                os.chmod(output, 0o600)
                completed = subprocess.run(
                    argv,
                    stdout=handle,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
    except (OSError, ValueError) as exc:
        LOGGER.warning("Could not run %s: %s", argv[0], exc)
        return CommandResult(ok=False, error=str(exc))

    code = completed.returncode
    if code == 0:
        return CommandResult(ok=True, exit_code=0)
    # The command line is not logged here, it may contain a password.
    if code < 0:
        LOGGER.warning("%s was terminated by signal %s", argv[0], -code)
        return CommandResult(ok=False, signal=-code)
    LOGGER.warning("%s failed with exit status %s", argv[0], code)
    return CommandResult(ok=False, exit_code=code)


# ---------------------------------------------------------------------------
class FetchStatus(enum.Enum):
    CONTENT = "content"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchedOutput:
    status: FetchStatus
    text: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not FetchStatus.FAILED

    def lines(self):
        return self.text.splitlines()


def fetch_output(path: Union[str, Path], remove: bool = True) -> FetchedOutput:
    """Read the captured output in *path* and remove the file afterwards."""

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        return FetchedOutput(FetchStatus.FAILED, error=f"could not read data from {path}: {exc}")

    if remove:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            return FetchedOutput(FetchStatus.FAILED, text=text, error=f"could not remove {path}: {exc}")

    if not text:
        LOGGER.info("File %s could be read but is empty", path)
        return FetchedOutput(FetchStatus.EMPTY)
    return FetchedOutput(FetchStatus.CONTENT, text=text)


__all__ = [
    "INHERIT",
    "CommandResult",
    "CommandRunner",
    "FetchStatus",
    "FetchedOutput",
    "fetch_output",
    "run_command",
]
