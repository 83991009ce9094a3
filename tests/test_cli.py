from __future__ import annotations

import logging
from pathlib import Path

import pytest

import blasy_manager
from mysqlblasy.backup import BackupError
from mysqlblasy.utils import NOTICE


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path, backup_dir):
    path = tmp_path / "blasy.conf"
    path.write_text(f"backupdir: {backup_dir}\nuse syslog: no\nloglevel: 3\n", encoding="utf-8")
    return path


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        blasy_manager.main(["--version"])

    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == "0.8"


@pytest.mark.parametrize(
    "level, expected",
    [(1, logging.ERROR), (2, logging.WARNING), (3, NOTICE), (4, logging.INFO), (5, logging.DEBUG)],
)
def test_loglevels_map_to_logging_levels(level, expected):
    blasy_manager.configure_logging(level)

    assert logging.getLogger().level == expected


def test_loglevel_zero_silences_everything():
    blasy_manager.configure_logging(0)

    assert not logging.getLogger("mysqlblasy").isEnabledFor(logging.CRITICAL)


def test_successful_run_exits_zero(monkeypatch, config_file, backup_dir):
    seen = {}

    class FakeRunner:
        def __init__(self, config):
            seen["config"] = config

        def run(self):
            return backup_dir / "db1.tar.gz"

    monkeypatch.setattr(blasy_manager, "BackupRunner", FakeRunner)

    assert blasy_manager.main(["-c", str(config_file)]) == 0
    assert seen["config"].backupdir == str(backup_dir)
    assert seen["config"].loglevel == 3
    assert logging.getLogger().level == NOTICE


def test_fatal_errors_exit_non_zero(monkeypatch, config_file, caplog):
    class FailingRunner:
        def __init__(self, config):
            pass

        def run(self):
            raise BackupError("Backup with filename x already exists!")

    monkeypatch.setattr(blasy_manager, "BackupRunner", FailingRunner)

    with caplog.at_level(logging.ERROR):
        assert blasy_manager.main(["--config-file", str(config_file)]) == 1

    assert "already exists" in caplog.text


def test_missing_configuration_exits_non_zero(tmp_path, monkeypatch):
    monkeypatch.setattr(blasy_manager, "config_locations", lambda override: [Path(override)])

    with pytest.raises(SystemExit) as excinfo:
        blasy_manager.main(["-c", str(tmp_path / "missing.conf")])

    assert excinfo.value.code == 1
