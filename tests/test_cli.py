from pathlib import Path

from typer.testing import CliRunner

from tandem.cli import app

runner = CliRunner()


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "tandem" in result.stdout


def test_config_validate_ok(tmp_path: Path):
    cfg = tmp_path / "tandem.yml"
    cfg.write_text("discovery:\n  timeout: 3\n", encoding="utf-8")
    result = runner.invoke(app, ["config-validate", str(cfg)])
    assert result.exit_code == 0
    assert "Config OK." in result.stdout


def test_config_validate_rejects_bad_values(tmp_path: Path):
    cfg = tmp_path / "tandem.yml"
    cfg.write_text("discovery:\n  timeout: -1\n", encoding="utf-8")
    result = runner.invoke(app, ["config-validate", str(cfg)])
    assert result.exit_code == 1
    assert "validation failed" in result.stdout


def test_config_which_uses_env(tmp_path: Path):
    cfg = tmp_path / "env.yml"
    cfg.write_text("{}", encoding="utf-8")
    result = runner.invoke(
        app,
        ["config-which", "--config", str(tmp_path / "missing.yml")],
        env={"TANDEM_CONFIG": str(cfg)},
    )
    assert result.exit_code == 0
    assert str(cfg.resolve()) in result.stdout.replace("\n", "")


def test_inspect_lists_services(tmp_path: Path):
    (tmp_path / "shop.py").write_text(
        'component = {"name": "Shop", "methods": {"Buy": lambda caller, item: True}}\n',
        encoding="utf-8",
    )
    result = runner.invoke(app, ["inspect", str(tmp_path)])
    assert result.exit_code == 0
    assert "Shop" in result.stdout


def test_inspect_flags_invalid_controller(tmp_path: Path):
    (tmp_path / "hud.py").write_text(
        'component = {"name": "Hud", "signals": ["Ping"]}\n',
        encoding="utf-8",
    )
    result = runner.invoke(app, ["inspect", str(tmp_path), "--role", "controller"])
    assert result.exit_code == 1
    assert "failed validation" in result.stdout


def test_inspect_missing_root(tmp_path: Path):
    result = runner.invoke(app, ["inspect", str(tmp_path / "nope")])
    assert result.exit_code == 1
