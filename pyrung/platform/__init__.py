"""Code-hosting platform interface, remote URL detection and backend factory."""

import os
import re
import logging
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from ..models import (
    MergeMethod, MergeReadiness, MergeResult, Platform, PlatformConfig,
    PrComment, PullRequest, PullRequestDetails,
)
from ..typing import NoSupportedRemotesError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GITLAB_HOST = "gitlab.com"

@runtime_checkable
class PlatformService(Protocol):
    """Pull/merge request operations shared by the GitHub and GitLab backends.

    Every call may raise PlatformError with the backend's message.
    """
    def find_existing_pr(self, head_branch: str) -> Optional[PullRequest]:
        """Find the open PR whose head is head_branch."""
        ...

    def create_pr(self, head: str, base: str, title: str) -> PullRequest:
        """Create a ready-for-review PR with no body."""
        ...

    def create_pr_with_options(self, head: str, base: str, title: str,
                               body: Optional[str], draft: bool) -> PullRequest:
        ...

    def update_pr_base(self, pr_number: int, new_base: str) -> PullRequest:
        ...

    def publish_pr(self, pr_number: int) -> PullRequest:
        """Turn a draft into a ready-for-review PR."""
        ...

    def list_pr_comments(self, pr_number: int) -> List[PrComment]:
        ...

    def create_pr_comment(self, pr_number: int, body: str) -> None:
        ...

    def update_pr_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        ...

    @property
    def config(self) -> PlatformConfig:
        ...

    def get_pr_details(self, pr_number: int) -> PullRequestDetails:
        ...

    def check_merge_readiness(self, pr_number: int) -> MergeReadiness:
        """Approval, CI and conflict state with the reasons a merge is blocked."""
        ...

    def merge_pr(self, pr_number: int, method: MergeMethod) -> MergeResult:
        """Merge into the PR's current base. Squash uses the PR title and body."""
        ...

# git@host:path, ssh://git@host[:port]/path, https://[user@]host[:port]/path
_SCP_RE = re.compile(r'^[\w.-]+@([\w.-]+):(.+)$')
_URL_RE = re.compile(r'^(?:ssh|git|https?)://(?:[^@/]+@)?([\w.-]+)(?::\d+)?/(.+)$')

def _split_url(url: str) -> Optional[Tuple[str, List[str]]]:
    url = url.strip()
    match = _URL_RE.match(url) or _SCP_RE.match(url)
    if not match:
        return None
    host = match.group(1).lower()
    path = match.group(2).strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    return host, parts

def _env_host(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return None
    # Accept full URLs as well as bare hosts
    value = re.sub(r'^https?://', '', value)
    return value.rstrip("/") or None

def _platform_for_host(host: str) -> Optional[Platform]:
    if host == GITHUB_HOST or host == _env_host("GH_HOST"):
        return Platform.GITHUB
    if host == GITLAB_HOST or host == _env_host("GITLAB_HOST"):
        return Platform.GITLAB
    return None

def detect_platform(url: str) -> Optional[Platform]:
    """Which platform a remote URL points at, or None when unknown."""
    split = _split_url(url)
    if split is None:
        return None
    return _platform_for_host(split[0])

def parse_repo_info(url: str) -> PlatformConfig:
    """Parse a remote URL into platform, owner, repo and host.

    GitLab owners may be nested groups ("group/subgroup").
    """
    split = _split_url(url)
    if split is None:
        raise NoSupportedRemotesError(f"cannot parse remote URL '{url}'")
    host, parts = split

    platform = _platform_for_host(host)
    if platform is None:
        raise UnsupportedPlatformError(host)

    if platform is Platform.GITHUB:
        if len(parts) != 2:
            raise NoSupportedRemotesError(f"unexpected GitHub repository path in '{url}'")
        owner, repo = parts
    else:
        owner, repo = "/".join(parts[:-1]), parts[-1]

    public = GITHUB_HOST if platform is Platform.GITHUB else GITLAB_HOST
    return PlatformConfig(
        platform=platform,
        owner=owner,
        repo=repo,
        host=None if host == public else host,
    )

def create_platform_service(config: PlatformConfig) -> PlatformService:
    """Build the backend for a repository, looking up its token."""
    from ..auth import get_github_token, get_gitlab_token

    if config.platform is Platform.GITHUB:
        from github import Auth, Github
        from .github import GitHubService
        from .adapters import PyGithubAdapter

        token = get_github_token(config.host)
        if config.host:
            client = Github(auth=Auth.Token(token), base_url=f"https://{config.host}/api/v3")
            graphql_url = f"https://{config.host}/api/graphql"
        else:
            client = Github(auth=Auth.Token(token))
            graphql_url = "https://api.github.com/graphql"
        logger.debug(f"Using GitHub backend for {config.full_name}")
        return GitHubService(config, PyGithubAdapter(client, graphql_url))

    from .gitlab import GitLabService
    token = get_gitlab_token(config.host)
    logger.debug(f"Using GitLab backend for {config.full_name}")
    return GitLabService(config, token)
