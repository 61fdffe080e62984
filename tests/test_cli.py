"""
Tests for CLI commands — apply, diff, and global options.

These run the real shell runner; the config points the upgrade
command at ``true`` so nothing touches a package manager.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from declarative_alpine.main import cli


@pytest.fixture
def config(host: Path) -> Path:
    content = textwrap.dedent("""\
        packages = ["git", "vim"]

        [system]
        world_file = "etc/apk/world"
        passwd_file = "etc/passwd"
        shadow_file = "etc/shadow"
        group_file = "etc/group"
        lock_file = "run/dalp.lock"
        audit_log = ""
        upgrade_command = ["true"]
    """)
    path = host / "config.toml"
    path.write_text(content)
    return path


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "apply" in result.output
        assert "diff" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_verb(self):
        result = CliRunner().invoke(cli, ["init"])
        assert result.exit_code != 0


class TestDiffCommand:
    def test_diff(self, config: Path):
        result = CliRunner().invoke(cli, ["diff", "-c", str(config)])
        assert result.exit_code == 0
        assert "+ git" in result.output
        assert "- curl" in result.output

    def test_diff_json(self, config: Path):
        result = CliRunner().invoke(cli, ["diff", "--config", str(config), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["domains"][0]["diff"] == {"to_install": ["git"], "to_remove": ["curl"]}

    def test_diff_does_not_write(self, config: Path, system):
        CliRunner().invoke(cli, ["diff", "-c", str(config)])
        assert system.world_file.read_text() == "vim\ncurl\n"

    def test_missing_config(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["diff"])
        assert result.exit_code == 1
        assert "config.toml" in result.output


class TestApplyCommand:
    def test_apply(self, config: Path, system):
        result = CliRunner().invoke(cli, ["apply", "-c", str(config)])
        assert result.exit_code == 0, result.output
        assert "+ git" in result.output
        assert "Applied packages" in result.output
        assert system.world_file.read_text() == "git\nvim\n"

    def test_apply_dry_run(self, config: Path, system):
        result = CliRunner().invoke(cli, ["apply", "-c", str(config), "--dry-run"])
        assert result.exit_code == 0
        assert "dry-run" in result.output
        assert system.world_file.read_text() == "vim\ncurl\n"
        assert not Path(f"{system.world_file}.bak").exists()

    def test_apply_failure_exits_nonzero(self, config: Path, system):
        config.write_text(config.read_text().replace('["true"]', '["false"]'))
        result = CliRunner().invoke(cli, ["apply", "-c", str(config)])
        assert result.exit_code == 1
        assert "packages" in result.output
        assert system.world_file.read_text() == "vim\ncurl\n"

    def test_in_sync_second_run(self, config: Path):
        runner = CliRunner()
        runner.invoke(cli, ["apply", "-c", str(config)])
        result = runner.invoke(cli, ["apply", "-c", str(config)])
        assert result.exit_code == 0
        assert "in sync" in result.output
