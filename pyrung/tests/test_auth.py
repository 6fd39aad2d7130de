"""Tests for token discovery."""

from pathlib import Path

import pytest

from pyrung.auth import get_github_token, get_gitlab_token
from pyrung.typing import AuthError

TOKEN_VARS = ("GITHUB_TOKEN", "GH_TOKEN", "GITLAB_TOKEN", "GL_TOKEN")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in TOKEN_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return tmp_path


class TestGitHubToken:
    def test_env_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GH_TOKEN", "from-gh")
        assert get_github_token() == "from-gh"
        monkeypatch.setenv("GITHUB_TOKEN", "from-github")
        assert get_github_token() == "from-github"

    def test_blank_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "  ")
        with pytest.raises(AuthError):
            get_github_token()

    def test_gh_hosts_file(self, tmp_path: Path) -> None:
        (tmp_path / "gh").mkdir()
        (tmp_path / "gh" / "hosts.yml").write_text(
            "github.com:\n  oauth_token: gho_public\n"
            "github.example.com:\n  oauth_token: gho_enterprise\n")
        assert get_github_token() == "gho_public"
        assert get_github_token("github.example.com") == "gho_enterprise"

    def test_missing(self) -> None:
        with pytest.raises(AuthError) as exc_info:
            get_github_token()
        assert "gh auth login" in str(exc_info.value)


class TestGitLabToken:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GL_TOKEN", "glpat-env")
        assert get_gitlab_token() == "glpat-env"

    def test_glab_config(self, tmp_path: Path) -> None:
        (tmp_path / "glab-cli").mkdir()
        (tmp_path / "glab-cli" / "config.yml").write_text(
            "git_protocol: ssh\nhosts:\n  gitlab.internal:\n    token: glpat-internal\n")
        assert get_gitlab_token("gitlab.internal") == "glpat-internal"
        with pytest.raises(AuthError):
            get_gitlab_token()

    def test_unreadable_config(self, tmp_path: Path) -> None:
        (tmp_path / "glab-cli").mkdir()
        (tmp_path / "glab-cli" / "config.yml").write_text("hosts: [broken\n")
        with pytest.raises(AuthError):
            get_gitlab_token()
