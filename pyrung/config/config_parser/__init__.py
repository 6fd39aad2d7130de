"""Config parser logic."""

from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging
import yaml

from ...typing import RungError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".rung.yaml"

RawConfig = Dict[str, Dict[str, Any]]

def user_config_file_path() -> Path:
    """Per-user config file, applied before the repository one."""
    return Path.home() / ".config" / "rung" / "config.yaml"

def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            logger.debug(f"Found {path}, loading...")
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise RungError(f"Invalid config file {path}: {e}") from e

    if not data:
        return {}
    if not isinstance(data, dict):
        raise RungError(f"Invalid config file {path}: expected a mapping at top level")
    return data

def _merge(config: RawConfig, loaded: Dict[str, Any]) -> None:
    for section in ('repo', 'user'):
        value = loaded.get(section)
        if isinstance(value, dict):
            config[section].update(value)
    tool = loaded.get('tool')
    if isinstance(tool, dict) and isinstance(tool.get('rung'), dict):
        config['tool']['rung'].update(tool['rung'])

def parse_config(repo_root: Union[str, Path], user_path: Optional[Path] = None) -> RawConfig:
    """Merge user config, then the repository's .rung.yaml, over the defaults."""
    config: RawConfig = {
        'repo': {},
        'user': {},
        'tool': {
            'rung': {
                'pretend': False,
            }
        }
    }

    if user_path is None:
        user_path = user_config_file_path()
    _merge(config, _load_yaml(user_path))

    repo_path = Path(repo_root) / CONFIG_FILE_NAME
    loaded = _load_yaml(repo_path)
    if loaded:
        logger.debug(f"Config from {CONFIG_FILE_NAME}: {loaded}")
    else:
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
    _merge(config, loaded)

    return config
