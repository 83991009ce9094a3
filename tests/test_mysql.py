from __future__ import annotations

import logging

import pytest

from conftest import FakeServer
from mysqlblasy.mysql import CatalogError, MySQLClient, credential_args
from mysqlblasy.workspace import Workspace


@pytest.fixture
def workspace(tmp_path):
    space = Workspace(host_alias="db1", base_dir=str(tmp_path))
    yield space
    space.cleanup()


def test_defaults_extra_file_wins_over_discrete_credentials(make_config):
    config = make_config(
        defaults_extra_file="/etc/mysql/backup.cnf",
        dbusername="bob",
        dbpassword="secret",
    )

    assert credential_args(config) == ["--defaults-extra-file=/etc/mysql/backup.cnf"]


def test_discrete_credentials_skip_unset_values(make_config):
    assert credential_args(make_config(dbusername="bob", dbpassword="pw", dbhost="db1")) == [
        "--user",
        "bob",
        "--password=pw",
        "--host",
        "db1",
    ]
    assert credential_args(make_config(dbusername="bob", dbhost=None)) == ["--user", "bob"]


def test_list_databases(make_config, workspace):
    server = FakeServer(databases=["a", "b", "information_schema"])
    client = MySQLClient(make_config(), "/usr/bin/mysql", workspace, runner=server)

    assert client.list_databases() == ["a", "b", "information_schema"]
    argv, output = server.calls[0]
    assert argv[-3:] == ["--silent", "--exec", "SHOW DATABASES"]
    assert not output.exists()


def test_zero_databases_is_fatal(make_config, workspace):
    client = MySQLClient(make_config(), "/usr/bin/mysql", workspace, runner=FakeServer(databases=[]))

    with pytest.raises(CatalogError, match="zero"):
        client.list_databases()


def test_failed_catalog_query_is_fatal_and_redacted(make_config, workspace, caplog):
    server = FakeServer(failing_queries=["SHOW DATABASES"])
    client = MySQLClient(make_config(dbusername="bob", dbpassword="hunter2"), "/usr/bin/mysql", workspace, runner=server)

    with caplog.at_level(logging.DEBUG), pytest.raises(CatalogError, match="list of databases"):
        client.list_databases()

    assert "Command failed" in caplog.text
    assert "Access denied" in caplog.text
    assert "hunter2" not in caplog.text
    assert "--password=xxxxxx" in caplog.text


def test_list_tables_drops_the_header(make_config, workspace):
    server = FakeServer(tables={"shop": ["orders", "customers"]})
    client = MySQLClient(make_config(), "/usr/bin/mysql", workspace, runner=server)

    assert client.list_tables("shop") == ["orders", "customers"]
    argv, _ = server.calls[0]
    assert argv[-4:] == ["-D", "shop", "--exec", "SHOW TABLES"]


def test_optimize_skips_system_schemas_and_continues_after_failures(make_config, workspace, caplog):
    server = FakeServer(
        tables={"shop": ["orders", "customers"], "broken": ["x"], "blog": ["posts"]},
        failing_queries=["OPTIMIZE TABLE `orders`", "broken"],
    )
    client = MySQLClient(make_config(), "/usr/bin/mysql", workspace, runner=server)

    with caplog.at_level(logging.ERROR):
        client.optimize_databases(["information_schema", "shop", "broken", "blog"])

    statements = [argv[argv.index("--exec") + 1] for argv, _ in server.calls]
    assert statements == [
        "SHOW TABLES",
        "OPTIMIZE TABLE `orders`",
        "OPTIMIZE TABLE `customers`",
        "SHOW TABLES",
        "SHOW TABLES",
        "OPTIMIZE TABLE `posts`",
    ]
    assert "Could not optimize table 'orders'" in caplog.text
    assert "Skipping optimization of 'broken'" in caplog.text


def test_table_names_are_quoted(make_config, workspace):
    server = FakeServer()
    client = MySQLClient(make_config(), "/usr/bin/mysql", workspace, runner=server)

    assert client.optimize_table("shop", "we`ird") == ["Table\tOp\tMsg_type\tMsg_text"]
    argv, _ = server.calls[0]
    assert argv[-1] == "OPTIMIZE TABLE `we``ird`"
