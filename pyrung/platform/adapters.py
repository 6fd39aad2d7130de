"""Adapter classes to wrap PyGithub objects with our protocol interfaces."""

from typing import Dict, List, Optional
import logging

from github import Github
from github.CheckRun import CheckRun
from github.CommitCombinedStatus import CommitCombinedStatus
from github.GithubObject import NotSet
from github.IssueComment import IssueComment
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.PullRequestMergeStatus import PullRequestMergeStatus
from github.PullRequestReview import PullRequestReview
from github.Repository import Repository

from .github import (
    GitHubCheckRunProtocol,
    GitHubCombinedStatusProtocol,
    GitHubCommentProtocol,
    GitHubMergeStatusProtocol,
    GitHubPullRequestProtocol,
    GitHubRepoProtocol,
    GitHubReviewProtocol,
    PyGithubProtocol,
)
from .types import GitHubRequester

logger = logging.getLogger(__name__)


class PyGithubCommentAdapter(GitHubCommentProtocol):
    """Adapter for PyGithub IssueComment objects."""

    def __init__(self, comment: IssueComment) -> None:
        self._comment = comment

    @property
    def id(self) -> int:
        return self._comment.id

    @property
    def body(self) -> str:
        return self._comment.body or ""

    def edit(self, body: str) -> None:
        self._comment.edit(body)


class PyGithubReviewAdapter(GitHubReviewProtocol):
    def __init__(self, review: PullRequestReview) -> None:
        self._review = review

    @property
    def state(self) -> str:
        return self._review.state


class PyGithubMergeStatusAdapter(GitHubMergeStatusProtocol):
    def __init__(self, status: PullRequestMergeStatus) -> None:
        self._status = status

    @property
    def merged(self) -> bool:
        return bool(self._status.merged)

    @property
    def sha(self) -> Optional[str]:
        return self._status.sha

    @property
    def message(self) -> Optional[str]:
        return self._status.message


class PyGithubCombinedStatusAdapter(GitHubCombinedStatusProtocol):
    def __init__(self, status: CommitCombinedStatus) -> None:
        self._status = status

    @property
    def state(self) -> str:
        return self._status.state

    @property
    def total_count(self) -> int:
        return self._status.total_count


class PyGithubCheckRunAdapter(GitHubCheckRunProtocol):
    def __init__(self, run: CheckRun) -> None:
        self._run = run

    @property
    def status(self) -> str:
        return self._run.status

    @property
    def conclusion(self) -> Optional[str]:
        return self._run.conclusion


class PyGithubPullRequestAdapter(GitHubPullRequestProtocol):
    """Adapter for PyGithub PullRequest objects."""

    def __init__(self, pr: PyGithubPullRequest) -> None:
        self._pr = pr

    @property
    def number(self) -> int:
        return self._pr.number

    @property
    def title(self) -> str:
        return self._pr.title or ""

    @property
    def body(self) -> str:
        return self._pr.body or ""

    @property
    def state(self) -> str:
        return self._pr.state

    @property
    def draft(self) -> bool:
        return bool(self._pr.draft)

    @property
    def merged(self) -> bool:
        return self._pr.merged

    @property
    def mergeable(self) -> Optional[bool]:
        return self._pr.mergeable

    @property
    def html_url(self) -> str:
        return self._pr.html_url

    @property
    def node_id(self) -> Optional[str]:
        return self._pr.node_id

    @property
    def base_ref(self) -> str:
        return self._pr.base.ref

    @property
    def head_ref(self) -> str:
        return self._pr.head.ref

    @property
    def head_sha(self) -> str:
        return self._pr.head.sha

    def edit(self, base: Optional[str] = None) -> None:
        """Edit the pull request."""
        # PyGithub expects NotSet for omitted fields
        self._pr.edit(base=base if base is not None else NotSet)

    def get_reviews(self) -> List[GitHubReviewProtocol]:
        return [PyGithubReviewAdapter(r) for r in self._pr.get_reviews()]

    def get_issue_comments(self) -> List[GitHubCommentProtocol]:
        return [PyGithubCommentAdapter(c) for c in self._pr.get_issue_comments()]

    def get_issue_comment(self, comment_id: int) -> GitHubCommentProtocol:
        return PyGithubCommentAdapter(self._pr.get_issue_comment(comment_id))

    def create_issue_comment(self, body: str) -> None:
        """Add a comment to the pull request."""
        self._pr.create_issue_comment(body)

    def merge(self, commit_title: str = "", commit_message: str = "",
              merge_method: str = "merge") -> GitHubMergeStatusProtocol:
        """Merge the pull request."""
        status = self._pr.merge(
            commit_title=commit_title if commit_title else NotSet,
            commit_message=commit_message if commit_message else NotSet,
            merge_method=merge_method
        )
        return PyGithubMergeStatusAdapter(status)


class PyGithubRepoAdapter(GitHubRepoProtocol):
    """Adapter for PyGithub Repository objects."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        """Get a pull request by number."""
        return PyGithubPullRequestAdapter(self._repo.get_pull(number))

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        """Get pull requests, optionally filtered by head."""
        pulls = self._repo.get_pulls(
            state=state,
            head=head if head else NotSet,
        )
        return [PyGithubPullRequestAdapter(pr) for pr in pulls]

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        """Create a new pull request."""
        pr = self._repo.create_pull(
            title=title,
            body=body,
            base=base,
            head=head,
            draft=draft
        )
        return PyGithubPullRequestAdapter(pr)

    def get_combined_status(self, ref: str) -> GitHubCombinedStatusProtocol:
        return PyGithubCombinedStatusAdapter(self._repo.get_commit(ref).get_combined_status())

    def get_check_runs(self, ref: str) -> List[GitHubCheckRunProtocol]:
        return [PyGithubCheckRunAdapter(r) for r in self._repo.get_commit(ref).get_check_runs()]


class PyGithubAdapter(PyGithubProtocol):
    """Adapter for the main PyGithub object."""

    def __init__(self, github: Github, graphql_url: str = "https://api.github.com/graphql") -> None:
        self._github = github
        self._graphql_url = graphql_url

    def get_repo(self, full_name: str) -> GitHubRepoProtocol:
        """Get a repository by full name."""
        return PyGithubRepoAdapter(self._github.get_repo(full_name))

    def graphql(self, query: str, variables: Dict[str, object]) -> Dict[str, object]:
        """Run a GraphQL query through PyGithub's requester."""
        # Private attribute of the real PyGithub object
        requester: GitHubRequester = getattr(self._github, '_Github__requester')
        _headers, data = requester.requestJsonAndCheck(
            "POST", self._graphql_url, input={"query": query, "variables": variables}
        )
        return data
