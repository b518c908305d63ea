from tandem.config import resolve_config_path


def test_resolve_prefers_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "a.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("TANDEM_CONFIG", str(tmp_path / "b.yml"))
    p = resolve_config_path(cfg)
    assert p == cfg.resolve()


def test_resolve_env_when_no_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "b.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("TANDEM_CONFIG", str(cfg))
    p = resolve_config_path(None)
    assert p == cfg.resolve()


def test_resolve_env_when_cli_missing(tmp_path, monkeypatch):
    cfg = tmp_path / "b.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("TANDEM_CONFIG", str(cfg))
    p = resolve_config_path(tmp_path / "missing.yml")
    assert p == cfg.resolve()


def test_resolve_falls_back_to_first_candidate(tmp_path, monkeypatch):
    monkeypatch.delenv("TANDEM_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    missing = tmp_path / "missing.yml"
    assert resolve_config_path(missing) == missing


def test_resolve_defaults_to_repo_config(tmp_path, monkeypatch):
    monkeypatch.delenv("TANDEM_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    assert resolve_config_path(None) == (tmp_path / "configs" / "tandem.yml").resolve()
