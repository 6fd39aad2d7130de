"""GitLab backend over the REST v4 API."""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..models import (
    MergeMethod, MergeReadiness, MergeResult, PlatformConfig, PrComment,
    PrState, PullRequest, PullRequestDetails,
)
from ..typing import GitLabApiError
from .types import (
    GitLabApprovals, GitLabError, GitLabMergeOptions, GitLabMergeRequest,
    GitLabMergeRequestCreate, GitLabNote, GitLabPipeline,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECS = 30
PAGE_SIZE = 100

M = TypeVar('M', bound=BaseModel)

_STATES = {
    "opened": PrState.OPEN,
    "merged": PrState.MERGED,
    "closed": PrState.CLOSED,
    "locked": PrState.CLOSED,
}


def mr_to_pull_request(mr: GitLabMergeRequest) -> PullRequest:
    return PullRequest(
        number=mr.iid,
        html_url=mr.web_url,
        base_ref=mr.target_branch,
        head_ref=mr.source_branch,
        title=mr.title,
        # GitLab has no GraphQL node ids we use
        node_id=None,
        is_draft=mr.is_draft,
    )


class GitLabService:
    """PlatformService for gitlab.com and self-hosted GitLab."""

    def __init__(self, config: PlatformConfig, token: str,
                 client: Optional[httpx.Client] = None) -> None:
        self._config = config
        host = config.host or "gitlab.com"
        self.base_url = f"https://{host}/api/v4"
        self.project_path = quote(config.full_name, safe="")
        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=DEFAULT_TIMEOUT_SECS,
            headers={"PRIVATE-TOKEN": token},
        )

    @property
    def config(self) -> PlatformConfig:
        return self._config

    def _mr_path(self, iid: Optional[int] = None, suffix: str = "") -> str:
        path = f"/projects/{self.project_path}/merge_requests"
        if iid is not None:
            path = f"{path}/{iid}"
        return f"{path}{suffix}"

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise GitLabApiError(f"{action} failed: {e}") from e
        if response.is_success:
            return response
        detail = response.text
        try:
            detail = GitLabError.model_validate(response.json()).text() or detail
        except (ValueError, ValidationError):
            pass
        raise GitLabApiError(f"{action} failed ({response.status_code}): {detail}")

    def _parse(self, model: Type[M], response: httpx.Response, action: str) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise GitLabApiError(f"{action}: unexpected response: {e}") from e

    def _parse_list(self, model: Type[M], response: httpx.Response, action: str) -> List[M]:
        try:
            data = response.json()
            if not isinstance(data, list):
                raise ValueError("expected a list")
            return [model.model_validate(item) for item in data]
        except (ValueError, ValidationError) as e:
            raise GitLabApiError(f"{action}: unexpected response: {e}") from e

    def _get_all(self, model: Type[M], path: str, action: str,
                 params: Optional[Dict[str, Any]] = None) -> List[M]:
        """Follow X-Next-Page until the listing is exhausted."""
        items: List[M] = []
        page: Optional[str] = "1"
        while page:
            query = dict(params or {}, per_page=PAGE_SIZE, page=page)
            response = self._request("GET", path, action, params=query)
            items.extend(self._parse_list(model, response, action))
            page = response.headers.get("X-Next-Page") or None
        return items

    def find_existing_pr(self, head_branch: str) -> Optional[PullRequest]:
        logger.info(f"> gitlab find MR source={head_branch}")
        action = f"Looking up MR for {head_branch}"
        response = self._request("GET", self._mr_path(), action,
                                 params={"source_branch": head_branch, "state": "opened"})
        mrs = self._parse_list(GitLabMergeRequest, response, action)
        if not mrs:
            return None
        logger.debug(f"Found MR !{mrs[0].iid} for {head_branch}")
        return mr_to_pull_request(mrs[0])

    def create_pr(self, head: str, base: str, title: str) -> PullRequest:
        return self.create_pr_with_options(head, base, title, None, False)

    def create_pr_with_options(self, head: str, base: str, title: str,
                               body: Optional[str], draft: bool) -> PullRequest:
        logger.info(f"> gitlab create {head} -> {base}{' (draft)' if draft else ''}: {title}")
        action = f"Creating MR for {head}"
        payload = GitLabMergeRequestCreate(
            source_branch=head, target_branch=base, title=title, description=body, draft=draft,
        )
        response = self._request("POST", self._mr_path(), action,
                                 json=payload.model_dump(exclude_none=True))
        return mr_to_pull_request(self._parse(GitLabMergeRequest, response, action))

    def update_pr_base(self, pr_number: int, new_base: str) -> PullRequest:
        logger.info(f"> gitlab update !{pr_number} target={new_base}")
        action = f"Updating target of MR !{pr_number}"
        response = self._request("PUT", self._mr_path(pr_number), action,
                                 json={"target_branch": new_base})
        return mr_to_pull_request(self._parse(GitLabMergeRequest, response, action))

    def publish_pr(self, pr_number: int) -> PullRequest:
        logger.info(f"> gitlab publish !{pr_number}")
        action = f"Publishing MR !{pr_number}"
        response = self._request("PUT", self._mr_path(pr_number), action,
                                 json={"state_event": "ready"})
        return mr_to_pull_request(self._parse(GitLabMergeRequest, response, action))

    def list_pr_comments(self, pr_number: int) -> List[PrComment]:
        logger.info(f"> gitlab list notes !{pr_number}")
        notes = self._get_all(GitLabNote, self._mr_path(pr_number, "/notes"),
                              f"Listing notes on MR !{pr_number}")
        return [PrComment(id=n.id, body=n.body) for n in notes if not n.system]

    def create_pr_comment(self, pr_number: int, body: str) -> None:
        logger.info(f"> gitlab note !{pr_number}")
        self._request("POST", self._mr_path(pr_number, "/notes"),
                      f"Commenting on MR !{pr_number}", json={"body": body})

    def update_pr_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        logger.info(f"> gitlab edit note {comment_id} on !{pr_number}")
        self._request("PUT", self._mr_path(pr_number, f"/notes/{comment_id}"),
                      f"Editing note {comment_id} on MR !{pr_number}", json={"body": body})

    def _get_mr(self, pr_number: int) -> GitLabMergeRequest:
        action = f"Fetching MR !{pr_number}"
        response = self._request("GET", self._mr_path(pr_number), action)
        return self._parse(GitLabMergeRequest, response, action)

    def get_pr_details(self, pr_number: int) -> PullRequestDetails:
        logger.info(f"> gitlab get !{pr_number}")
        mr = self._get_mr(pr_number)
        return PullRequestDetails(
            number=mr.iid,
            title=mr.title,
            body=mr.description or "",
            state=_STATES.get(mr.state, PrState.OPEN),
            is_draft=mr.is_draft,
            mergeable=mr.merge_status == "can_be_merged",
            head_ref=mr.source_branch,
            base_ref=mr.target_branch,
            html_url=mr.web_url,
        )

    def _is_approved(self, pr_number: int) -> bool:
        try:
            response = self._request("GET", self._mr_path(pr_number, "/approvals"),
                                     f"Fetching approvals for MR !{pr_number}")
            return self._parse(GitLabApprovals, response, "approvals").approved
        except GitLabApiError as e:
            logger.debug(f"Approvals unavailable, treating as not approved: {e}")
            return False

    def _ci_passed(self, pr_number: int) -> bool:
        try:
            response = self._request("GET", self._mr_path(pr_number, "/pipelines"),
                                     f"Fetching pipelines for MR !{pr_number}")
            pipelines = self._parse_list(GitLabPipeline, response, "pipelines")
        except GitLabApiError as e:
            logger.debug(f"Pipelines unavailable, assuming passing: {e}")
            return True
        if not pipelines:
            logger.debug("No pipelines configured")
            return True
        # Newest pipeline first
        return pipelines[0].status == "success"

    def check_merge_readiness(self, pr_number: int) -> MergeReadiness:
        logger.info(f"> gitlab readiness !{pr_number}")
        mr = self._get_mr(pr_number)
        is_approved = self._is_approved(pr_number)
        ci_passed = self._ci_passed(pr_number)
        # GitLab computes merge_status before answering, so this is never unknown
        is_mergeable = mr.merge_status == "can_be_merged"
        is_draft = mr.is_draft

        blocking_reasons: List[str] = []
        if is_draft:
            blocking_reasons.append("MR is a draft")
        if not is_approved:
            blocking_reasons.append("Not approved")
        if not ci_passed:
            blocking_reasons.append("CI not passing")
        if not is_mergeable:
            blocking_reasons.append("Has merge conflicts")

        return MergeReadiness(
            is_approved=is_approved,
            ci_passed=ci_passed,
            is_mergeable=is_mergeable,
            is_draft=is_draft,
            blocking_reasons=blocking_reasons,
            uncertainties=[],
        )

    def merge_pr(self, pr_number: int, method: MergeMethod) -> MergeResult:
        logger.info(f"> gitlab merge !{pr_number} ({method.value})")
        options = GitLabMergeOptions()
        if method is MergeMethod.SQUASH:
            mr = self._get_mr(pr_number)
            options.squash = True
            options.squash_commit_message = f"{mr.title} (!{pr_number})\n\n{mr.description or ''}"
        elif method is MergeMethod.REBASE:
            options.merge_method = "rebase"

        action = f"Merging MR !{pr_number}"
        response = self._request("PUT", self._mr_path(pr_number, "/merge"), action,
                                 json=options.model_dump(exclude_none=True))
        merged = self._parse(GitLabMergeRequest, response, action)
        return MergeResult(
            merged=merged.state == "merged",
            sha=merged.merge_commit_sha or merged.squash_commit_sha,
            message=None,
        )
