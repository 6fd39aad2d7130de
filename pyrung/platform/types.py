"""Type definitions for platform API responses."""

from typing import Dict, List, Optional, Protocol, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

# GitHub GraphQL: markPullRequestReadyForReview
class GraphQLPullRequest(BaseModel):
    id: str
    number: int
    url: str
    title: str
    baseRefName: str
    headRefName: str
    isDraft: bool

class MarkReadyPayload(BaseModel):
    pullRequest: GraphQLPullRequest

class MarkReadyData(BaseModel):
    markPullRequestReadyForReview: MarkReadyPayload

class GraphQLErrorLocation(BaseModel):
    line: int
    column: int

class GraphQLError(BaseModel):
    message: str
    locations: Optional[List[GraphQLErrorLocation]] = None
    path: Optional[List[Union[str, int]]] = None

class MarkReadyResponse(BaseModel):
    data: Optional[MarkReadyData] = None
    errors: Optional[List[GraphQLError]] = None

# First element is headers dict, second is the response data
GraphQLResponseType = Tuple[Dict[str, object], Dict[str, object]]

class GitHubRequester(Protocol):
    """Type for PyGithub's private requester, used for GraphQL calls."""
    def requestJsonAndCheck(
        self,
        verb: str,
        url: str,
        parameters: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None,
        input: Optional[Dict[str, object]] = None
    ) -> GraphQLResponseType:
        ...

# GitLab REST v4
class _GitLabModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

class GitLabMergeRequest(_GitLabModel):
    iid: int
    id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    state: str = "opened"
    draft: bool = False
    work_in_progress: bool = False
    source_branch: str
    target_branch: str
    web_url: str = ""
    merge_status: Optional[str] = None
    detailed_merge_status: Optional[str] = None
    merge_commit_sha: Optional[str] = None
    squash_commit_sha: Optional[str] = None
    sha: Optional[str] = None

    @property
    def is_draft(self) -> bool:
        return self.draft or self.work_in_progress

class GitLabNote(_GitLabModel):
    id: int
    body: str = ""
    system: bool = False

class GitLabApprovals(_GitLabModel):
    approved: bool = False
    approvals_left: Optional[int] = None

class GitLabPipeline(_GitLabModel):
    id: int
    status: str

class GitLabError(_GitLabModel):
    message: Optional[Union[str, List[str], Dict[str, object]]] = None
    error: Optional[str] = None

    def text(self) -> str:
        if self.message is not None:
            return str(self.message)
        return self.error or ""

class GitLabMergeRequestCreate(BaseModel):
    source_branch: str
    target_branch: str
    title: str
    description: Optional[str] = None
    draft: bool = False

class GitLabMergeOptions(BaseModel):
    squash: Optional[bool] = None
    squash_commit_message: Optional[str] = None
    merge_method: Optional[str] = Field(default=None)
