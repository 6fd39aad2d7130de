"""GitHub backend built on PyGithub."""

import logging
from typing import Dict, List, Optional, Protocol, runtime_checkable

from github import GithubException
from pydantic import ValidationError
from requests.exceptions import RequestException

from ..models import (
    MergeMethod, MergeReadiness, MergeResult, PlatformConfig, PrComment,
    PrState, PullRequest, PullRequestDetails,
)
from ..typing import GitHubApiError
from .types import MarkReadyResponse

logger = logging.getLogger(__name__)

MERGE_STATUS_UNKNOWN = "Merge status unknown (GitHub still computing)"

PASSING_CHECK_CONCLUSIONS = ("success", "neutral", "skipped")

MARK_READY_MUTATION = """
mutation MarkPullRequestReadyForReview($pullRequestId: ID!) {
    markPullRequestReadyForReview(input: { pullRequestId: $pullRequestId }) {
        pullRequest {
            id
            number
            url
            title
            baseRefName
            headRefName
            isDraft
        }
    }
}
"""

# Protocols for the PyGithub objects we touch (real or fake)
@runtime_checkable
class GitHubCommentProtocol(Protocol):
    @property
    def id(self) -> int:
        ...

    @property
    def body(self) -> str:
        ...

    def edit(self, body: str) -> None:
        ...

@runtime_checkable
class GitHubReviewProtocol(Protocol):
    @property
    def state(self) -> str:
        """APPROVED, CHANGES_REQUESTED, COMMENTED, ..."""
        ...

@runtime_checkable
class GitHubMergeStatusProtocol(Protocol):
    @property
    def merged(self) -> bool:
        ...

    @property
    def sha(self) -> Optional[str]:
        ...

    @property
    def message(self) -> Optional[str]:
        ...

@runtime_checkable
class GitHubCombinedStatusProtocol(Protocol):
    @property
    def state(self) -> str:
        ...

    @property
    def total_count(self) -> int:
        ...

@runtime_checkable
class GitHubCheckRunProtocol(Protocol):
    @property
    def status(self) -> str:
        ...

    @property
    def conclusion(self) -> Optional[str]:
        ...

@runtime_checkable
class GitHubPullRequestProtocol(Protocol):
    """Protocol for GitHub pull request objects (real or fake)."""
    @property
    def number(self) -> int:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def body(self) -> str:
        ...

    @property
    def state(self) -> str:
        """open or closed."""
        ...

    @property
    def draft(self) -> bool:
        ...

    @property
    def merged(self) -> bool:
        ...

    @property
    def mergeable(self) -> Optional[bool]:
        """None while GitHub is still computing it."""
        ...

    @property
    def html_url(self) -> str:
        ...

    @property
    def node_id(self) -> Optional[str]:
        ...

    @property
    def base_ref(self) -> str:
        ...

    @property
    def head_ref(self) -> str:
        ...

    @property
    def head_sha(self) -> str:
        ...

    def edit(self, base: Optional[str] = None) -> None:
        ...

    def get_reviews(self) -> List[GitHubReviewProtocol]:
        ...

    def get_issue_comments(self) -> List[GitHubCommentProtocol]:
        ...

    def get_issue_comment(self, comment_id: int) -> GitHubCommentProtocol:
        ...

    def create_issue_comment(self, body: str) -> None:
        ...

    def merge(self, commit_title: str = "", commit_message: str = "",
              merge_method: str = "merge") -> GitHubMergeStatusProtocol:
        ...

@runtime_checkable
class GitHubRepoProtocol(Protocol):
    """Protocol for GitHub repository objects (real or fake)."""
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        ...

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        ...

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        ...

    def get_combined_status(self, ref: str) -> GitHubCombinedStatusProtocol:
        ...

    def get_check_runs(self, ref: str) -> List[GitHubCheckRunProtocol]:
        ...

@runtime_checkable
class PyGithubProtocol(Protocol):
    """What we need from PyGithub's Github object (real or fake)."""
    def get_repo(self, full_name: str) -> GitHubRepoProtocol:
        ...

    def graphql(self, query: str, variables: Dict[str, object]) -> Dict[str, object]:
        ...


# PyGithub leaves transport failures from requests unwrapped
API_ERRORS = (GithubException, RequestException)


def _error(action: str, e: Exception) -> GitHubApiError:
    if not isinstance(e, GithubException):
        return GitHubApiError(f"{action} failed: {e}")
    message = e.data.get("message") if isinstance(e.data, dict) else None
    return GitHubApiError(f"{action} failed ({e.status}): {message or e}")


def pr_from_github(pr: GitHubPullRequestProtocol) -> PullRequest:
    return PullRequest(
        number=pr.number,
        html_url=pr.html_url,
        base_ref=pr.base_ref,
        head_ref=pr.head_ref,
        title=pr.title,
        node_id=pr.node_id,
        is_draft=pr.draft,
    )


class GitHubService:
    """PlatformService for github.com and GitHub Enterprise."""

    def __init__(self, config: PlatformConfig, client: PyGithubProtocol) -> None:
        self._config = config
        self.client = client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def config(self) -> PlatformConfig:
        return self._config

    @property
    def repo(self) -> GitHubRepoProtocol:
        if self._repo is None:
            try:
                self._repo = self.client.get_repo(self._config.full_name)
            except API_ERRORS as e:
                raise _error(f"Loading repository {self._config.full_name}", e) from e
        return self._repo

    def _get_pull(self, pr_number: int) -> GitHubPullRequestProtocol:
        try:
            return self.repo.get_pull(pr_number)
        except API_ERRORS as e:
            raise _error(f"Fetching PR #{pr_number}", e) from e

    def find_existing_pr(self, head_branch: str) -> Optional[PullRequest]:
        logger.info(f"> github find PR head={head_branch}")
        try:
            pulls = self.repo.get_pulls(state="open", head=f"{self._config.owner}:{head_branch}")
        except API_ERRORS as e:
            raise _error(f"Looking up PR for {head_branch}", e) from e
        if not pulls:
            logger.debug(f"No open PR for {head_branch}")
            return None
        logger.debug(f"Found PR #{pulls[0].number} for {head_branch}")
        return pr_from_github(pulls[0])

    def create_pr(self, head: str, base: str, title: str) -> PullRequest:
        return self.create_pr_with_options(head, base, title, None, False)

    def create_pr_with_options(self, head: str, base: str, title: str,
                               body: Optional[str], draft: bool) -> PullRequest:
        logger.info(f"> github create {head} -> {base}{' (draft)' if draft else ''}: {title}")
        try:
            pr = self.repo.create_pull(title=title, body=body or "", base=base, head=head, draft=draft)
        except API_ERRORS as e:
            raise _error(f"Creating PR for {head}", e) from e
        logger.debug(f"Created PR #{pr.number}")
        return pr_from_github(pr)

    def update_pr_base(self, pr_number: int, new_base: str) -> PullRequest:
        logger.info(f"> github update #{pr_number} base={new_base}")
        pr = self._get_pull(pr_number)
        try:
            pr.edit(base=new_base)
        except API_ERRORS as e:
            raise _error(f"Updating base of PR #{pr_number}", e) from e
        return pr_from_github(pr)

    def publish_pr(self, pr_number: int) -> PullRequest:
        """Mark a draft ready for review. REST cannot do this, so it goes through GraphQL."""
        logger.info(f"> github publish #{pr_number}")
        pr = self._get_pull(pr_number)
        if not pr.node_id:
            raise GitHubApiError(f"PR #{pr_number} has no node id for the GraphQL mutation")
        try:
            raw = self.client.graphql(MARK_READY_MUTATION, {"pullRequestId": pr.node_id})
        except API_ERRORS as e:
            raise _error(f"Publishing PR #{pr_number}", e) from e
        try:
            response = MarkReadyResponse.model_validate(raw)
        except ValidationError as e:
            raise GitHubApiError(f"Invalid GraphQL response: {e}") from e
        if response.errors:
            raise GitHubApiError("GraphQL error: " + ", ".join(err.message for err in response.errors))
        if response.data is None:
            raise GitHubApiError("No data in GraphQL response")
        node = response.data.markPullRequestReadyForReview.pullRequest
        return PullRequest(
            number=node.number,
            html_url=node.url,
            base_ref=node.baseRefName,
            head_ref=node.headRefName,
            title=node.title,
            node_id=node.id,
            is_draft=node.isDraft,
        )

    def list_pr_comments(self, pr_number: int) -> List[PrComment]:
        logger.info(f"> github list comments #{pr_number}")
        pr = self._get_pull(pr_number)
        try:
            return [PrComment(id=c.id, body=c.body) for c in pr.get_issue_comments()]
        except API_ERRORS as e:
            raise _error(f"Listing comments on PR #{pr_number}", e) from e

    def create_pr_comment(self, pr_number: int, body: str) -> None:
        logger.info(f"> github comment #{pr_number}")
        pr = self._get_pull(pr_number)
        try:
            pr.create_issue_comment(body)
        except API_ERRORS as e:
            raise _error(f"Commenting on PR #{pr_number}", e) from e

    def update_pr_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        logger.info(f"> github edit comment {comment_id} on #{pr_number}")
        pr = self._get_pull(pr_number)
        try:
            pr.get_issue_comment(comment_id).edit(body)
        except API_ERRORS as e:
            raise _error(f"Editing comment {comment_id} on PR #{pr_number}", e) from e

    def get_pr_details(self, pr_number: int) -> PullRequestDetails:
        logger.info(f"> github get #{pr_number}")
        pr = self._get_pull(pr_number)
        if pr.merged:
            state = PrState.MERGED
        elif pr.state == "closed":
            state = PrState.CLOSED
        else:
            state = PrState.OPEN
        return PullRequestDetails(
            number=pr.number,
            title=pr.title,
            body=pr.body,
            state=state,
            is_draft=pr.draft,
            mergeable=pr.mergeable,
            head_ref=pr.head_ref,
            base_ref=pr.base_ref,
            html_url=pr.html_url,
        )

    def _is_approved(self, pr: GitHubPullRequestProtocol) -> bool:
        try:
            return any(r.state == "APPROVED" for r in pr.get_reviews())
        except API_ERRORS as e:
            raise _error(f"Fetching reviews for PR #{pr.number}", e) from e

    def _statuses_passed(self, ref: str) -> bool:
        try:
            status = self.repo.get_combined_status(ref)
        except RequestException as e:
            raise _error(f"Fetching commit status for {ref}", e) from e
        except GithubException as e:
            logger.debug(f"Commit status check returned {e.status}, assuming no statuses configured")
            return True
        if status.total_count == 0:
            logger.debug("No commit statuses configured")
            return True
        logger.debug(f"Commit status: {status.state} ({status.total_count})")
        return status.state == "success"

    def _check_runs_passed(self, ref: str) -> bool:
        try:
            runs = self.repo.get_check_runs(ref)
        except RequestException as e:
            raise _error(f"Fetching check runs for {ref}", e) from e
        except GithubException as e:
            logger.debug(f"Check runs returned {e.status}, assuming no checks configured")
            return True
        for run in runs:
            if run.status != "completed":
                logger.debug(f"Check run still {run.status}")
                return False
            if run.conclusion not in PASSING_CHECK_CONCLUSIONS:
                logger.debug(f"Check run concluded {run.conclusion}")
                return False
        return True

    def check_merge_readiness(self, pr_number: int) -> MergeReadiness:
        logger.info(f"> github readiness #{pr_number}")
        pr = self._get_pull(pr_number)
        is_approved = self._is_approved(pr)
        ci_passed = self._statuses_passed(pr.head_sha) and self._check_runs_passed(pr.head_sha)
        is_mergeable = pr.mergeable
        is_draft = pr.draft

        blocking_reasons: List[str] = []
        if is_draft:
            blocking_reasons.append("PR is a draft")
        if not is_approved:
            blocking_reasons.append("Not approved")
        if not ci_passed:
            blocking_reasons.append("CI not passing")
        if is_mergeable is False:
            blocking_reasons.append("Has merge conflicts")

        uncertainties: List[str] = []
        if is_mergeable is None:
            uncertainties.append(MERGE_STATUS_UNKNOWN)

        return MergeReadiness(
            is_approved=is_approved,
            ci_passed=ci_passed,
            is_mergeable=is_mergeable,
            is_draft=is_draft,
            blocking_reasons=blocking_reasons,
            uncertainties=uncertainties,
        )

    def merge_pr(self, pr_number: int, method: MergeMethod) -> MergeResult:
        logger.info(f"> github merge #{pr_number} ({method.value})")
        pr = self._get_pull(pr_number)
        title = ""
        message = ""
        if method is MergeMethod.SQUASH:
            title = f"{pr.title} (#{pr_number})"
            message = pr.body
        try:
            status = pr.merge(commit_title=title, commit_message=message, merge_method=method.value)
        except API_ERRORS as e:
            raise _error(f"Merging PR #{pr_number}", e) from e
        return MergeResult(merged=status.merged, sha=status.sha, message=status.message)
