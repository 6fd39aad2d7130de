"""Which bookmarks the user has opted into, and the PR numbers we last saw for them.

Both live as YAML files in a `pyrung/` directory inside the git dir.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..models import PullRequest
from ..typing import TrackingError

logger = logging.getLogger(__name__)

TRACKING_VERSION = 1
METADATA_DIR = "pyrung"
TRACKING_FILE = "tracked.yaml"
PR_CACHE_FILE = "pr_cache.yaml"

TRACKING_HEADER = "# pyrung tracking metadata\n# Auto-generated, do not edit by hand\n"
PR_CACHE_HEADER = "# pyrung PR number cache\n# Auto-generated, safe to delete\n"

M = TypeVar('M', bound=BaseModel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TrackedBookmark(BaseModel):
    name: str
    change_id: str
    remote: Optional[str] = None
    tracked_at: datetime = Field(default_factory=_now)


class TrackingState(BaseModel):
    version: int = TRACKING_VERSION
    bookmarks: List[TrackedBookmark] = Field(default_factory=list)

    def is_tracked(self, name: str) -> bool:
        return any(b.name == name for b in self.bookmarks)

    def track(self, name: str, change_id: str, remote: Optional[str] = None) -> bool:
        """Start tracking name. Returns False if it already was."""
        if self.is_tracked(name):
            return False
        self.bookmarks.append(TrackedBookmark(name=name, change_id=change_id, remote=remote))
        return True

    def untrack(self, name: str) -> bool:
        """Stop tracking name. Returns False if it was not tracked."""
        before = len(self.bookmarks)
        self.bookmarks = [b for b in self.bookmarks if b.name != name]
        return len(self.bookmarks) != before

    def tracked_names(self) -> List[str]:
        return [b.name for b in self.bookmarks]


class CachedPr(BaseModel):
    number: int
    url: str
    remote: Optional[str] = None


class PrCache(BaseModel):
    version: int = TRACKING_VERSION
    entries: Dict[str, CachedPr] = Field(default_factory=dict)

    def get(self, name: str) -> Optional[CachedPr]:
        return self.entries.get(name)

    def record(self, name: str, pr: PullRequest, remote: Optional[str] = None) -> None:
        self.entries[name] = CachedPr(number=pr.number, url=pr.html_url, remote=remote)

    def remove(self, name: str) -> bool:
        return self.entries.pop(name, None) is not None


def metadata_dir(git_dir: Union[str, Path]) -> Path:
    return Path(git_dir) / METADATA_DIR


def _load(model: Type[M], path: Path) -> M:
    if not path.exists():
        return model()
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise TrackingError(f"failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise TrackingError(f"failed to parse {path}: {e}") from e
    if data is None:
        return model()
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TrackingError(f"failed to parse {path}: {e}") from e


def _save(state: BaseModel, path: Path, header: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        body = yaml.safe_dump(state.model_dump(mode="json"), sort_keys=False)
        with open(path, "w") as f:
            f.write(header)
            f.write(body)
    except OSError as e:
        raise TrackingError(f"failed to write {path}: {e}") from e
    logger.debug(f"Saved {path}")


def load_tracking(git_dir: Union[str, Path]) -> TrackingState:
    """Missing file means nothing is tracked yet."""
    return _load(TrackingState, metadata_dir(git_dir) / TRACKING_FILE)


def save_tracking(git_dir: Union[str, Path], state: TrackingState) -> None:
    _save(state, metadata_dir(git_dir) / TRACKING_FILE, TRACKING_HEADER)


def load_pr_cache(git_dir: Union[str, Path]) -> PrCache:
    return _load(PrCache, metadata_dir(git_dir) / PR_CACHE_FILE)


def save_pr_cache(git_dir: Union[str, Path], cache: PrCache) -> None:
    _save(cache, metadata_dir(git_dir) / PR_CACHE_FILE, PR_CACHE_HEADER)
