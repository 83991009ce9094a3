"""Per-run temporary directories."""
from __future__ import annotations

import logging
import os
import shutil
import socket
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .config import APP_NAME
from .utils import timestamp_for_filename

LOGGER = logging.getLogger(__name__)


@dataclass
class Workspace:
    """The work directory of one run and the host directory inside it.

    Both directories are created on first use and then reused for the rest
    of the run. :meth:`cleanup` removes the whole tree.
    """

    host_alias: Optional[str] = None
    base_dir: Optional[str] = None
    clock: Callable[[], datetime] = datetime.now
    logger: logging.Logger = LOGGER
    _work_dir: Optional[Path] = field(default=None, init=False, repr=False)
    _host_dir: Optional[Path] = field(default=None, init=False, repr=False)
    _temp_counter: int = field(default=0, init=False, repr=False)

    @property
    def work_dir(self) -> Path:
        if self._work_dir is not None and self._work_dir.is_dir():
            return self._work_dir
        base_dir = self.base_dir or tempfile.gettempdir()
        if os.path.abspath(base_dir) == os.path.abspath(os.curdir):
            self.logger.warning("tmpdir fell back to the current directory: %s", base_dir)
        self._work_dir = Path(tempfile.mkdtemp(prefix=f"{os.getpid()}{APP_NAME}", dir=base_dir))
        os.chmod(self._work_dir, 0o700)
        self.logger.debug("returning new workdir: %s", self._work_dir)
        return self._work_dir

    @property
    def host_dir(self) -> Path:
        if self._host_dir is not None and self._host_dir.is_dir():
            return self._host_dir
        name = f"{self.hostname()}_{timestamp_for_filename(self.clock())}"
        host_dir = self.work_dir / name
        host_dir.mkdir(mode=0o700)
        self._host_dir = host_dir
        self.logger.debug("returning new hostdir: %s", host_dir)
        return host_dir

    def hostname(self) -> str:
        if self.host_alias:
            return self.host_alias
        try:
            return socket.gethostname()
        except OSError as exc:
            self.logger.warning("hostname could not be determined: %s", exc)
            return ""

    def temp_file(self, suffix: str = ".temp") -> Path:
        """Return the path of a fresh, empty, private file in the work directory."""

        self._temp_counter += 1
        handle, name = tempfile.mkstemp(
            prefix=f"{APP_NAME}-{os.getpid()}-{self._temp_counter}-",
            suffix=suffix,
            dir=self.work_dir,
        )
        os.close(handle)
        return Path(name)

    def cleanup(self) -> None:
        if self._work_dir is None:
            return
        work_dir = self._work_dir
        try:
            shutil.rmtree(work_dir)
        except OSError as exc:
            self.logger.error("couldn't remove %s: %s", work_dir, exc)
        self._work_dir = None
        self._host_dir = None
        self.logger.info("Removed all temp files in %s", work_dir)


__all__ = ["Workspace"]
