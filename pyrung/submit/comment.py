"""Stack comment posted on every PR of a stack.

The comment has a human part listing the stack leaf first, and a data block
holding the same stack as base64 JSON inside an HTML comment so later runs can
read it back and update the comment in place.
"""

import base64
import binascii
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..models import PrComment, PullRequest
from ..typing import StackCommentError
from .plan import SubmissionPlan

logger = logging.getLogger(__name__)

COMMENT_DATA_PREFIX = "<!--- RUNG_STACK: "
COMMENT_DATA_SUFFIX = " --->"
STACK_COMMENT_THIS_PR = "👈 this PR"
STACK_COMMENT_VERSION = 1


class StackItem(BaseModel):
    bookmark_name: str
    pr_url: str
    pr_number: int
    pr_title: str


class StackCommentData(BaseModel):
    """Ordered stack, trunk-adjacent first."""
    version: int = STACK_COMMENT_VERSION
    stack: List[StackItem] = Field(default_factory=list)
    base_branch: str


def build_stack_comment_data(plan: SubmissionPlan,
                             bookmark_to_pr: Dict[str, PullRequest]) -> StackCommentData:
    """Stack data for a plan's segments; bookmarks without a PR are left out."""
    stack: List[StackItem] = []
    for segment in plan.segments:
        pr = bookmark_to_pr.get(segment.bookmark.name)
        if pr is None:
            continue
        stack.append(StackItem(
            bookmark_name=segment.bookmark.name,
            pr_url=pr.html_url,
            pr_number=pr.number,
            pr_title=pr.title,
        ))
    return StackCommentData(stack=stack, base_branch=plan.default_branch)


def encode_stack_comment_data(data: StackCommentData) -> str:
    payload = base64.b64encode(data.model_dump_json().encode("utf-8")).decode("ascii")
    return f"{COMMENT_DATA_PREFIX}{payload}{COMMENT_DATA_SUFFIX}"


def decode_stack_comment_data(body: str) -> Optional[StackCommentData]:
    """Read the data block back out of a comment body. None when there is none."""
    start = body.find(COMMENT_DATA_PREFIX)
    if start < 0:
        return None
    start += len(COMMENT_DATA_PREFIX)
    end = body.find(COMMENT_DATA_SUFFIX, start)
    if end < 0:
        raise StackCommentError("Stack comment data block is not terminated")
    try:
        raw = base64.b64decode(body[start:end].strip(), validate=True)
        return StackCommentData.model_validate_json(raw)
    except (binascii.Error, ValueError, ValidationError) as e:
        raise StackCommentError(f"Invalid stack comment data: {e}") from e


def format_stack_comment(data: StackCommentData, current_index: int) -> str:
    """Render the comment for the PR at current_index of data.stack."""
    if not 0 <= current_index < len(data.stack):
        raise StackCommentError(
            f"Stack index {current_index} out of range for {len(data.stack)} PRs")

    lines = ["This PR is part of a stack:", ""]
    for i in reversed(range(len(data.stack))):
        item = data.stack[i]
        line = f"- [{item.pr_title}]({item.pr_url}) #{item.pr_number}"
        if i == current_index:
            line = f"{line} {STACK_COMMENT_THIS_PR}"
        lines.append(line)
    lines.append(f"- `{data.base_branch}`")
    lines.append("")
    lines.append(encode_stack_comment_data(data))
    return "\n".join(lines)


def find_stack_comment(comments: List[PrComment]) -> Optional[PrComment]:
    for comment in comments:
        if COMMENT_DATA_PREFIX in comment.body:
            return comment
    return None
