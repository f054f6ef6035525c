from __future__ import annotations

import os

from issuecanon.env_auth import EnvAuthConfig, load_environment


def test_disabled_loading_returns_none(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("CANON_ENV_DISABLED=1\n")
    assert load_environment(EnvAuthConfig(load_dotenv=False, dotenv_path=str(env_file))) is None
    assert "CANON_ENV_DISABLED" not in os.environ


def test_explicit_path_loaded_without_overriding(tmp_path, monkeypatch):
    monkeypatch.setenv("CANON_ENV_NEW", "placeholder")
    monkeypatch.delenv("CANON_ENV_NEW")
    monkeypatch.setenv("CANON_ENV_EXISTING", "from-shell")
    env_file = tmp_path / "custom.env"
    env_file.write_text("CANON_ENV_NEW=fresh\nCANON_ENV_EXISTING=from-file\n")

    assert load_environment(EnvAuthConfig(dotenv_path=str(env_file))) == env_file
    assert os.environ["CANON_ENV_NEW"] == "fresh"
    assert os.environ["CANON_ENV_EXISTING"] == "from-shell"


def test_fallback_locations(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_environment(EnvAuthConfig()) is None

    monkeypatch.setenv("CANON_ENV_LOCAL", "placeholder")
    monkeypatch.delenv("CANON_ENV_LOCAL")
    (tmp_path / ".env.local").write_text("CANON_ENV_LOCAL=yes\n")
    assert str(load_environment(EnvAuthConfig())) == ".env.local"
    assert os.environ["CANON_ENV_LOCAL"] == "yes"
