"""Token discovery for GitHub and GitLab."""

import os
import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..typing import AuthError

logger = logging.getLogger(__name__)

GITHUB_TOKEN_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
GITLAB_TOKEN_VARS = ("GITLAB_TOKEN", "GL_TOKEN")


def _config_home() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"


def _from_env(names: List[str]) -> Optional[str]:
    for name in names:
        token = os.environ.get(name, "").strip()
        if token:
            logger.debug(f"Using token from ${name}")
            return token
    return None


def _from_hosts_file(path: Path, host: str, key: str) -> Optional[str]:
    """Read a token for host out of a gh/glab style yaml config."""
    if not path.exists():
        return None
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error reading {path}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    # glab nests hosts under a "hosts" key, gh does not
    hosts = data.get("hosts", data)
    if not isinstance(hosts, dict):
        return None
    entry: Dict[str, object] = hosts.get(host) or {}
    token = entry.get(key) if isinstance(entry, dict) else None
    if isinstance(token, str) and token.strip():
        logger.debug(f"Using token for {host} from {path}")
        return token.strip()
    return None


def get_github_token(host: Optional[str] = None) -> str:
    """GITHUB_TOKEN / GH_TOKEN, then the gh CLI's hosts.yml."""
    token = _from_env(list(GITHUB_TOKEN_VARS))
    if token:
        return token
    token = _from_hosts_file(_config_home() / "gh" / "hosts.yml", host or "github.com", "oauth_token")
    if token:
        return token
    raise AuthError(
        "No GitHub token found. Try one of:\n"
        "1. Set GITHUB_TOKEN or GH_TOKEN\n"
        "2. Log in with 'gh auth login'"
    )


def get_gitlab_token(host: Optional[str] = None) -> str:
    """GITLAB_TOKEN / GL_TOKEN, then the glab CLI's config.yml."""
    token = _from_env(list(GITLAB_TOKEN_VARS))
    if token:
        return token
    token = _from_hosts_file(_config_home() / "glab-cli" / "config.yml", host or "gitlab.com", "token")
    if token:
        return token
    raise AuthError(
        "No GitLab token found. Try one of:\n"
        "1. Set GITLAB_TOKEN or GL_TOKEN\n"
        "2. Log in with 'glab auth login'"
    )
