"""Tests for the config commands through the click CLI."""

from click.testing import CliRunner

from deepresearch.cli import cli
from deepresearch.config import load_config


class TestConfigCommands:
    def test_init_show_set(self, tmp_path):
        path = tmp_path / "config.toml"
        runner = CliRunner()

        result = runner.invoke(cli, ["--config", str(path), "config", "init"])
        assert result.exit_code == 0
        assert path.exists()

        result = runner.invoke(cli, ["--config", str(path), "config", "set", "research.breadth", "5"])
        assert result.exit_code == 0
        runner.invoke(cli, ["--config", str(path), "config", "set", "research.search", "brave"])
        runner.invoke(cli, ["--config", str(path), "config", "set", "history.enabled", "false"])

        config = load_config(path)
        assert config.research.breadth == 5
        assert config.research.search == "brave"
        assert config.history.enabled is False

        result = runner.invoke(cli, ["--config", str(path), "config", "show"])
        assert result.exit_code == 0
        assert "breadth=5" in result.output
        assert "search=brave" in result.output

    def test_init_refuses_overwrite(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[research]\nbreadth = 7\n")
        result = CliRunner().invoke(cli, ["--config", str(path), "config", "init"])
        assert result.exit_code == 0
        assert load_config(path).research.breadth == 7

    def test_set_without_file(self, tmp_path):
        path = tmp_path / "missing.toml"
        result = CliRunner().invoke(cli, ["--config", str(path), "config", "set", "research.breadth", "2"])
        assert "config init" in result.output
        assert not path.exists()
