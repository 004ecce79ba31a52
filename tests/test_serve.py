"""
Tests for the command-line entry point's startup checks.
"""

import json
import os

from click.testing import CliRunner

from serve import cli


def test_missing_config_exits():
    """An unreadable configuration aborts startup."""
    runner = CliRunner()

    result = runner.invoke(cli, ["--conf", "/nonexistent/persist.json"])

    assert result.exit_code == 1


def test_unopenable_store_exits(temp_dir):
    """A file backend that cannot open its data file aborts startup."""
    blocker = os.path.join(temp_dir, "blocker")
    with open(blocker, "w") as f:
        f.write("x")
    conf_path = os.path.join(temp_dir, "conf.json")
    with open(conf_path, "w") as f:
        json.dump({"backend": "file", "file": {"path": os.path.join(blocker, "my.db")}}, f)

    result = CliRunner().invoke(cli, ["--conf", conf_path])

    assert result.exit_code == 1


def test_help_shows_default_path():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "/etc/prestobloomfilterpersist.json" in result.output
