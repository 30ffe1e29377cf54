import logging
import subprocess
from pathlib import Path

import pytest
import yaml
from rich.logging import RichHandler
from typer.testing import CliRunner

from shed_src.commands import app, main, prepare

runner = CliRunner()


def _invoke(argv: list[str], home: Path):
    args, invocation = prepare(argv, home=home)
    return runner.invoke(app, args, obj=invocation)


@pytest.mark.parametrize("argv", [[], ["bogus"], ["--port", "80"], ["--log-level"]])
def test_missing_or_unknown_command_shows_help(argv: list[str], tmp_path: Path):
    args, invocation = prepare(argv, home=tmp_path)
    assert args == ["--help"]

    result = runner.invoke(app, args, obj=invocation)
    assert result.exit_code == 0
    assert "compose" in result.output


def test_prepare_strips_global_options_everywhere(tmp_path: Path):
    args, invocation = prepare(
        ["--port", "8080", "config", "--docroot", "web", "port"], home=tmp_path
    )
    assert args == ["config", "port"]
    assert invocation.command == "config"
    assert invocation.cli_values == {"port": "8080", "docroot": "web"}
    assert invocation.remainder == ("--port", "8080", "--docroot", "web", "port")
    assert invocation.tokens == ("--port", "8080", "config", "--docroot", "web", "port")


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["sh", "--version"])
    assert exc.value.code == 0
    assert "0.3.0" in capsys.readouterr().out


def test_sugar_command_prepends_its_name(run_recorder, compose_prefix, tmp_path):
    result = _invoke(["up", "--build"], tmp_path)

    assert result.exit_code == 0
    assert run_recorder.calls == [compose_prefix + ["up", "--build"]]


@pytest.mark.parametrize("name", ["start", "stop", "up", "down", "ps"])
def test_every_sugar_command(name: str, run_recorder, compose_prefix, tmp_path):
    result = _invoke(["--container", "php", name, "-a"], tmp_path)

    assert result.exit_code == 0
    assert run_recorder.calls == [compose_prefix + [name, "-a"]]


def test_compose_forwards_unknown_options(run_recorder, compose_prefix, tmp_path):
    result = _invoke(
        ["compose", "--port", "8080", "logs", "-f", "--tail", "10", "--help"],
        tmp_path,
    )

    assert result.exit_code == 0
    assert run_recorder.calls == [
        compose_prefix + ["logs", "-f", "--tail", "10", "--help"]
    ]

    rendered = yaml.safe_load((tmp_path / "_build" / "compose.yaml").read_text())
    assert rendered["services"]["apache"]["ports"] == ["8080:80"]


def test_sh_runs_bash_in_default_container(run_recorder, compose_prefix, tmp_path):
    result = _invoke(["sh", "-c", "ls -la"], tmp_path)

    assert result.exit_code == 0
    assert run_recorder.calls == [
        compose_prefix + ["exec", "-T", "apache", "bash", "-c", "ls -la"]
    ]


def test_container_option_selects_container(run_recorder, compose_prefix, tmp_path):
    result = _invoke(["--container", "worker", "php", "artisan", "migrate"], tmp_path)

    assert result.exit_code == 0
    assert run_recorder.calls == [
        compose_prefix + ["exec", "-T", "worker", "php", "artisan", "migrate"]
    ]


def test_mysql_forces_mysql_container(run_recorder, compose_prefix, tmp_path):
    result = _invoke(
        ["mysql", "--container", "apache", "-e", "show databases"], tmp_path
    )

    assert result.exit_code == 0
    assert run_recorder.calls == [
        compose_prefix + ["exec", "-T", "mysql", "mysql", "-e", "show databases"]
    ]


def test_psql_runs_as_postgres_user(run_recorder, compose_prefix, tmp_path):
    result = _invoke(["psql", "-l"], tmp_path)

    assert result.exit_code == 0
    assert run_recorder.calls == [
        compose_prefix + ["exec", "-T", "postgres", "psql", "-U", "postgres", "-l"]
    ]


def test_exit_code_is_propagated(run_recorder, tmp_path):
    run_recorder.returncode = 3
    result = _invoke(["ps"], tmp_path)
    assert result.exit_code == 3


def test_missing_docker_exits_127(monkeypatch, tmp_path):
    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(subprocess, "run", missing)
    result = _invoke(["ps"], tmp_path)
    assert result.exit_code == 127
    assert "docker not found" in result.output


def test_interrupt_exits_130(monkeypatch, tmp_path):
    def interrupted(cmd, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(subprocess, "run", interrupted)
    result = _invoke(["sh"], tmp_path)
    assert result.exit_code == 130
    assert "Interrupted by user" in result.output


def test_early_warnings_go_through_rich(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version", "--sites"])
    assert exc.value.code == 0

    handlers = logging.getLogger().handlers
    assert any(isinstance(handler, RichHandler) for handler in handlers)
    err = capsys.readouterr().err
    assert "WARNING" in err
    assert "--sites" in err
    assert "expects" in err


def test_invalid_port_exits_1(run_recorder, tmp_path):
    result = _invoke(["--port", "http", "ps"], tmp_path)
    assert result.exit_code == 1
    assert run_recorder.calls == []


def test_config_set_then_get(tmp_path: Path):
    result = _invoke(["config", "port", "8080"], tmp_path)
    assert result.exit_code == 0

    saved = yaml.safe_load((tmp_path / "config.yaml").read_text())
    assert saved == {"port": 8080}

    result = _invoke(["config", "port"], tmp_path)
    assert result.exit_code == 0
    assert result.output.strip() == "8080"


def test_config_set_keeps_other_keys(tmp_path: Path):
    (tmp_path / "config.yaml").write_text("docroot: web\n")

    result = _invoke(["config", "log-level", "debug"], tmp_path)
    assert result.exit_code == 0

    saved = yaml.safe_load((tmp_path / "config.yaml").read_text())
    assert saved == {"docroot": "web", "log_level": "DEBUG"}


def test_config_get_prefers_cli_and_env(monkeypatch, tmp_path: Path):
    (tmp_path / "config.yaml").write_text("port: 8080\n")
    monkeypatch.setenv("SHED_PORT", "9000")

    assert _invoke(["config", "port"], tmp_path).output.strip() == "9000"
    assert _invoke(["--port", "7000", "config", "port"], tmp_path).output.strip() == (
        "7000"
    )


def test_config_explicit_file(tmp_path: Path):
    other = tmp_path / "other.yaml"
    other.write_text("container: php\n")

    result = _invoke(["config", "container", "--config", str(other)], tmp_path)
    assert result.output.strip() == "php"


def test_config_rejects_invalid_value(tmp_path: Path):
    result = _invoke(["config", "port", "99999"], tmp_path)
    assert result.exit_code == 1
    assert not (tmp_path / "config.yaml").exists()


def test_config_rejects_unknown_option(tmp_path: Path):
    result = _invoke(["config", "bogus"], tmp_path)
    assert result.exit_code == 1
    assert "unknown option" in result.output


def test_config_displays_table(tmp_path: Path):
    result = _invoke(["config"], tmp_path)
    assert result.exit_code == 0
    assert "docroot" in result.output
    assert "apache" in result.output


def test_config_rejects_broken_file(tmp_path: Path):
    (tmp_path / "config.yaml").write_text("port: [unclosed\n")
    result = _invoke(["config"], tmp_path)
    assert result.exit_code == 1


def test_fetch_rejects_unknown_type(run_recorder, tmp_path: Path):
    result = _invoke(["fetch", "oracle", "shop", "db.example.com"], tmp_path)
    assert result.exit_code == 2
    assert run_recorder.calls == []
