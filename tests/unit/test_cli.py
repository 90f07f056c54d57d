"""
Tests for the kiln CLI.
"""

import json

import pytest

from kilnctl import cli


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "setup_logging", lambda level="info": None)
    monkeypatch.setenv("KILN_CACHE_DIR", str(tmp_path / "cache"))


class TestParser:
    """Test argument parsing."""

    def test_dev_options(self):
        args = cli.create_parser().parse_args(
            ["dev", "--root", "app", "-e", "staging", "--no-watch"]
        )

        assert args.command == "dev"
        assert args.root == "app"
        assert args.env == "staging"
        assert args.no_watch is True

    def test_config_init_options(self):
        args = cli.create_parser().parse_args(["config", "init", "--force"])

        assert args.config_command == "init"
        assert args.force is True

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["build", "--log-level", "chatty"])

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 0
        assert "usage: kiln" in capsys.readouterr().out


class TestDetectCommand:
    """Test `kiln detect`."""

    def test_prints_detected_framework(self, tmp_path, capsys):
        project = tmp_path / "app"
        project.mkdir()
        (project / "package.json").write_text(
            json.dumps({"dependencies": {"svelte": "^4.2.0"}})
        )

        assert cli.main(["detect", "--root", str(project)]) == 0

        out = capsys.readouterr().out
        assert "framework:  svelte" in out
        assert "confidence: 0.90" in out
        assert "source:     dependency" in out

    def test_plugins_flag_without_installed_plugins(self, tmp_path, capsys):
        project = tmp_path / "app"
        project.mkdir()

        assert cli.main(["detect", "--root", str(project), "--plugins"]) == 0

        out = capsys.readouterr().out
        assert "framework:  vanilla" in out
        assert "(none resolved)" in out


class TestConfigInit:
    """Test `kiln config init`."""

    def test_writes_default_file(self, tmp_path):
        assert cli.main(["config", "init", "--root", str(tmp_path)]) == 0

        content = (tmp_path / ".kiln" / "launcher.toml").read_text()
        assert "[launcher]" in content
        assert "port = 3000" in content

    def test_refuses_to_overwrite(self, tmp_path, capsys):
        target = tmp_path / ".kiln" / "launcher.toml"
        target.parent.mkdir()
        target.write_text("# mine\n")

        assert cli.main(["config", "init", "--root", str(tmp_path)]) == 1
        assert "already exists" in capsys.readouterr().err
        assert target.read_text() == "# mine\n"

        assert cli.main(["config", "init", "--root", str(tmp_path), "--force"]) == 0
        assert "[server]" in target.read_text()


class TestBuildCommand:
    """Test `kiln build` error reporting."""

    def test_invalid_config_exits_nonzero(self, tmp_path, capsys):
        (tmp_path / "kiln.toml").write_text("[server]\nport = 'x'\n")

        assert cli.main(["build", "--root", str(tmp_path)]) == 1
        assert "Error:" in capsys.readouterr().err
