"""Config module."""

from typing import Dict, Any
from .models import RepoConfig, UserConfig, RungConfig, ToolConfig, TemporaryPatterns

__all__ = ["Config", "default_config", "RepoConfig", "UserConfig", "RungConfig",
           "ToolConfig", "TemporaryPatterns"]

class Config(RungConfig):
    """Config object built from the parsed config dict sections."""
    def __init__(self, config: Dict[str, Dict[str, Any]]):
        """Initialize with parsed config dict."""
        repo_config = config.get('repo', {})
        user_config = config.get('user', {})
        tool_section = config.get('tool', {})
        tool_config = tool_section.get('rung', {})

        super().__init__(
            repo=RepoConfig.model_validate(repo_config),
            user=UserConfig.model_validate(user_config),
            tool=ToolConfig.model_validate(tool_config),
        )

def default_config() -> Config:
    """Get default config without reading any files."""
    return Config({
        'repo': {},
        'user': {},
        'tool': {
            'rung': {
                'pretend': False
            }
        }
    })
