"""Tests for the figi command line."""

import importlib as _importlib
import json as _json
import pathlib as _pathlib

import click.testing as _click_testing
import pytest as _pytest
import yaml as _yaml

import figi
import figi.cli as cli

# figi.cli re-exports a `main` function that shadows the submodule attribute
cli_main = _importlib.import_module("figi.cli.main")


@_pytest.fixture
def runner() -> _click_testing.CliRunner:
    """Runner with NO_COLOR and the sample FIGI_* variable unset."""
    return _click_testing.CliRunner(env={"FIGI_DATABASE_PORT": None, "NO_COLOR": None})


@_pytest.fixture
def config_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    (tmp_path / "app.yaml").write_text(
        "database:\n  host: localhost\n  port: 5432\nservice:\n  enabled: true\n"
    )
    return tmp_path


def _source_args(config_dir: _pathlib.Path) -> list[str]:
    return ["--path", str(config_dir), "--name", "app", "--no-env"]


class TestCLIBasics:
    def test_help_lists_commands(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["--help"])
        assert result.exit_code == 0
        for cmd in ["show", "get"]:
            assert cmd in result.output, f"Command '{cmd}' missing from help"

    def test_version(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["--version"])
        assert result.exit_code == 0
        assert figi.__version__ in result.output


class TestShow:
    def test_yaml_output(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["show", "--no-color", *_source_args(config_dir)])
        assert result.exit_code == 0, result.output
        assert _yaml.safe_load(result.output) == {
            "database": {"host": "localhost", "port": 5432},
            "service": {"enabled": True},
        }

    def test_json_output_with_override(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(
            cli.cli,
            ["show", "--json", *_source_args(config_dir), "--set", "database.port=6000"],
        )
        assert result.exit_code == 0, result.output
        assert _json.loads(result.output)["database"]["port"] == 6000

    def test_section(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(
            cli.cli, ["show", "--json", "--section", "database", *_source_args(config_dir)]
        )
        assert result.exit_code == 0, result.output
        assert _json.loads(result.output) == {"database": {"host": "localhost", "port": 5432}}

    def test_unknown_section_fails(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["show", "--section", "nope", *_source_args(config_dir)])
        assert result.exit_code != 0
        assert "Unknown section" in result.output

    def test_env_variables_applied(self, config_dir: _pathlib.Path) -> None:
        runner = _click_testing.CliRunner(env={"MYAPP_DATABASE_PORT": "7000", "NO_COLOR": None})
        result = runner.invoke(
            cli.cli,
            ["show", "--json", "--path", str(config_dir), "--name", "app", "--prefix", "MYAPP"],
        )
        assert result.exit_code == 0, result.output
        assert _json.loads(result.output)["database"]["port"] == 7000

    def test_explicit_file(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(
            cli.cli, ["show", "--json", "--no-env", "--file", str(config_dir / "app.yaml")]
        )
        assert result.exit_code == 0, result.output
        assert _json.loads(result.output)["service"] == {"enabled": True}

    def test_parse_error_reported(self, runner: _click_testing.CliRunner, tmp_path: _pathlib.Path) -> None:
        (tmp_path / "config.json").write_text("{broken")
        result = runner.invoke(cli.cli, ["show", "--path", str(tmp_path), "--no-env"])
        assert result.exit_code != 0
        assert "Error parsing JSON" in result.output

    def test_malformed_override_rejected(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["show", "--no-env", "--set", "novalue"])
        assert result.exit_code != 0
        assert "KEY=VALUE" in result.output


class TestGet:
    def test_scalar(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["get", "database.host", *_source_args(config_dir)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "localhost"

    def test_bool_printed_as_json(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["get", "service.enabled", *_source_args(config_dir)])
        assert result.output.strip() == "true"

    def test_container_printed_as_json(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["get", "database", *_source_args(config_dir)])
        assert _json.loads(result.output) == {"host": "localhost", "port": 5432}

    def test_missing_key_fails(self, runner: _click_testing.CliRunner, config_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["get", "database.user", *_source_args(config_dir)])
        assert result.exit_code != 0
        assert "Key not found" in result.output


class TestColor:
    def test_flag_wins(self) -> None:
        assert cli_main._should_use_color(True) == (True, True)
        assert cli_main._should_use_color(False) == (False, False)

    def test_no_color_env(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        assert cli_main._should_use_color(None) == (False, False)
