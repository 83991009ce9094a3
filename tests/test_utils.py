from __future__ import annotations

import pytest

from mysqlblasy.utils import REDACTED, format_command, redact


def test_password_is_replaced_in_command_line():
    line = format_command(["mysql", "--user", "bob", "--password=hunter2"], ["hunter2"])

    assert line == f"mysql --user bob --password={REDACTED}"


def test_missing_secrets_leave_text_alone():
    assert redact("mysqldump --quick shop", [None, ""]) == "mysqldump --quick shop"


@pytest.mark.parametrize("secret", ["x", "xx", "xxxxxx", "ax", "x*", "*#x"])
def test_secret_never_survives_redaction(secret):
    line = format_command(["mysql", f"--password={secret}", f"a{secret}{secret}"], [secret])

    assert secret not in line
    assert "mysql --password=" in line


def test_mask_avoids_every_secret():
    line = redact("--user=xu --password=*p", ["xu", "*p"])

    assert "xu" not in line
    assert "*p" not in line
