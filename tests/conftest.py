"""Shared fixtures: fake MySQL client programs and configurations."""
from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from mysqlblasy.config import BlasyConfig
from mysqlblasy.process import CommandResult


def make_executable(path: Path, body: str = "#!/bin/sh\nexit 0\n") -> Path:
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IRUSR)
    return path


class FakeServer:
    """Stands in for run_command, answering like mysql and mysqldump would."""

    def __init__(
        self,
        databases: Sequence[str] = ("a", "b"),
        tables: Optional[Dict[str, List[str]]] = None,
        failing_dumps: Sequence[str] = (),
        failing_queries: Sequence[str] = (),
    ):
        self.databases = list(databases)
        self.tables = tables or {}
        self.failing_dumps = set(failing_dumps)
        self.failing_queries = set(failing_queries)
        self.calls = []

    @property
    def programs(self) -> List[str]:
        return [os.path.basename(argv[0]) for argv, _ in self.calls]

    def __call__(self, argv, output=None) -> CommandResult:
        argv = list(argv)
        self.calls.append((argv, output))
        program = os.path.basename(argv[0])
        if program == "mysql":
            return self._mysql(argv, output)
        if program == "mysqldump":
            return self._mysqldump(argv, output)
        return CommandResult(ok=False, exit_code=127, error=f"unexpected program {program}")

    def _write(self, output, text: str) -> None:
        if output is not None:
            Path(output).write_text(text, encoding="utf-8")

    def _mysql(self, argv, output) -> CommandResult:
        statement = argv[argv.index("--exec") + 1]
        database = argv[argv.index("-D") + 1] if "-D" in argv else None
        if statement in self.failing_queries or database in self.failing_queries:
            self._write(output, "ERROR 1045 (28000): Access denied\n")
            return CommandResult(ok=False, exit_code=1)
        if statement == "SHOW DATABASES":
            self._write(output, "".join(f"{name}\n" for name in self.databases))
        elif statement == "SHOW TABLES":
            rows = [f"Tables_in_{database}"] + self.tables.get(database, [])
            self._write(output, "".join(f"{row}\n" for row in rows))
        elif statement.startswith("OPTIMIZE TABLE"):
            self._write(output, "Table\tOp\tMsg_type\tMsg_text\n")
        return CommandResult(ok=True, exit_code=0)

    def _mysqldump(self, argv, output) -> CommandResult:
        target = argv[-1]
        if target in self.failing_dumps:
            self._write(output, f"mysqldump: Got error: 1049: Unknown database '{target}'\n")
            return CommandResult(ok=False, exit_code=2)
        self._write(output, f"-- MySQL dump of {target}\nCREATE TABLE t (id int);\n")
        return CommandResult(ok=True, exit_code=0)


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def bin_dir(tmp_path):
    """A search path directory holding fake mysql and mysqldump programs."""

    directory = tmp_path / "bin"
    directory.mkdir()
    make_executable(directory / "mysql")
    make_executable(directory / "mysqldump")
    return directory


@pytest.fixture
def backup_dir(tmp_path):
    directory = tmp_path / "backups"
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(backup_dir):
    def factory(**overrides) -> BlasyConfig:
        values = {"backupdir": str(backup_dir), "syslog": False, "dbhost": "db1"}
        values.update(overrides)
        return BlasyConfig(**values)

    return factory
