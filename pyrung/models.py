"""Value types describing the local stack and remote review state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .typing import ChangeID, CommitID


@dataclass(frozen=True)
class Bookmark:
    """A named pointer into the local graph."""
    name: str
    commit_id: CommitID
    change_id: ChangeID
    has_remote: bool = False
    # True only when the remote pointer is at the same commit as the local one
    is_synced: bool = False


@dataclass(frozen=True)
class Change:
    """A single commit in the stack."""
    commit_id: CommitID
    change_id: ChangeID
    author_name: str = ""
    author_email: str = ""
    description_first_line: str = ""
    description: str = ""
    parents: List[CommitID] = field(default_factory=list)
    local_bookmarks: List[str] = field(default_factory=list)
    remote_bookmarks: List[str] = field(default_factory=list)
    is_working_copy: bool = False
    authored_at: Optional[datetime] = None
    committed_at: Optional[datetime] = None


@dataclass
class BookmarkSegment:
    """Bookmarks sharing one tip plus the changes unique to that rung.

    Changes are ordered newest first.
    """
    bookmarks: List[Bookmark]
    changes: List[Change] = field(default_factory=list)

    def bookmark_names(self) -> List[str]:
        return [b.name for b in self.bookmarks]


@dataclass
class NarrowedBookmarkSegment:
    """A segment reduced to its one selected bookmark."""
    bookmark: Bookmark
    changes: List[Change] = field(default_factory=list)


@dataclass
class BranchStack:
    """Segments ordered trunk-adjacent first, leaf last."""
    segments: List[BookmarkSegment]

    def __len__(self) -> int:
        return len(self.segments)


@dataclass
class ChangeGraph:
    """Everything the workspace knows about the current stack."""
    bookmarks: Dict[str, Bookmark] = field(default_factory=dict)
    # None when the working copy is on trunk
    stack: Optional[BranchStack] = None
    # Bookmarks dropped because they sit on merge commits
    excluded_bookmark_count: int = 0


@dataclass
class PullRequest:
    """Minimal pull/merge request shape returned by lookups and mutations."""
    number: int
    html_url: str
    base_ref: str
    head_ref: str
    title: str
    node_id: Optional[str] = None
    is_draft: bool = False


@dataclass
class PrComment:
    id: int
    body: str


class PrState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


@dataclass
class PullRequestDetails:
    """Full PR state used for merge planning."""
    number: int
    title: str
    body: str
    state: PrState
    is_draft: bool
    # None means the platform has not finished computing it
    mergeable: Optional[bool]
    head_ref: str
    base_ref: str
    html_url: str


@dataclass
class MergeReadiness:
    """Whether a PR can be merged right now, and why not."""
    is_approved: bool
    ci_passed: bool
    is_mergeable: Optional[bool]
    is_draft: bool
    blocking_reasons: List[str] = field(default_factory=list)
    uncertainties: List[str] = field(default_factory=list)

    def is_blocked(self) -> bool:
        """Unknown mergeability never blocks."""
        return (not self.is_approved
                or not self.ci_passed
                or self.is_draft
                or self.is_mergeable is False)

    def uncertainty(self) -> Optional[str]:
        return self.uncertainties[0] if self.uncertainties else None


@dataclass
class MergeResult:
    merged: bool
    sha: Optional[str] = None
    message: Optional[str] = None


class MergeMethod(str, Enum):
    SQUASH = "squash"
    MERGE = "merge"
    REBASE = "rebase"


class Platform(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"

    def __str__(self) -> str:
        return "GitHub" if self is Platform.GITHUB else "GitLab"


@dataclass
class PlatformConfig:
    """Which repository on which host we talk to."""
    platform: Platform
    owner: str
    repo: str
    # None means the public host (github.com / gitlab.com)
    host: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class GitRemote:
    name: str
    url: str
