"""Applying a submission plan through the workspace and the platform."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models import PullRequest
from ..platform import PlatformService
from ..typing import PlatformError, ProgressCallback, RungError, WorkspaceProtocol
from .comment import (
    build_stack_comment_data, find_stack_comment, format_stack_comment,
)
from .plan import CreatePrStep, ExecutionStep, PushStep, SubmissionPlan, UpdateBaseStep

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """What got applied. A failed step leaves the earlier ones in place."""
    pushed_bookmarks: List[str] = field(default_factory=list)
    created_prs: List[PullRequest] = field(default_factory=list)
    updated_prs: List[PullRequest] = field(default_factory=list)
    failed_step: Optional[ExecutionStep] = None
    error_message: Optional[str] = None
    dry_run: bool = False

    def is_success(self) -> bool:
        return self.failed_step is None

    def summary(self) -> str:
        return (f"{len(self.pushed_bookmarks)} pushed, {len(self.created_prs)} created, "
                f"{len(self.updated_prs)} updated")


def _apply_step(step: ExecutionStep, plan: SubmissionPlan, workspace: WorkspaceProtocol,
                platform: PlatformService, progress: ProgressCallback,
                result: SubmissionResult, prs: Dict[str, PullRequest]) -> None:
    name = step.bookmark.name
    if isinstance(step, PushStep):
        progress.on_message(f"⬆️  Pushing {name} to {plan.remote}")
        workspace.git_push(name, plan.remote)
        result.pushed_bookmarks.append(name)
    elif isinstance(step, CreatePrStep):
        progress.on_message(f"📝 Creating PR for {name} (base: {step.base_branch})")
        pr = platform.create_pr_with_options(name, step.base_branch, step.title, None, step.draft)
        progress.on_message(f"✅ Created PR #{pr.number}: {pr.html_url}")
        result.created_prs.append(pr)
        prs[name] = pr
    elif isinstance(step, UpdateBaseStep):
        progress.on_message(
            f"🔁 Updating PR #{step.pr_number} base: {step.current_base} → {step.expected_base}")
        pr = platform.update_pr_base(step.pr_number, step.expected_base)
        result.updated_prs.append(pr)
        prs[name] = pr


def post_stack_comments(plan: SubmissionPlan, prs: Dict[str, PullRequest],
                        platform: PlatformService, progress: ProgressCallback) -> None:
    """Create or refresh the stack comment on every PR of the stack.

    Failures are logged and skipped; the PRs themselves are already in place.
    """
    data = build_stack_comment_data(plan, prs)
    if len(data.stack) < 2:
        return
    progress.on_message(f"💬 Updating stack comments on {len(data.stack)} PRs")
    for index, item in enumerate(data.stack):
        body = format_stack_comment(data, index)
        try:
            existing = find_stack_comment(platform.list_pr_comments(item.pr_number))
            if existing is None:
                platform.create_pr_comment(item.pr_number, body)
            elif existing.body != body:
                platform.update_pr_comment(item.pr_number, existing.id, body)
            else:
                logger.debug(f"Stack comment on #{item.pr_number} already up to date")
        except PlatformError as e:
            logger.warning(f"Failed to update stack comment on PR #{item.pr_number}: {e}")


def execute_submission(plan: SubmissionPlan, workspace: WorkspaceProtocol,
                       platform: PlatformService, progress: ProgressCallback,
                       dry_run: bool = False, stack_comments: bool = True) -> SubmissionResult:
    """Apply plan.execution_steps in order, stopping at the first failure."""
    result = SubmissionResult(dry_run=dry_run)

    if dry_run:
        for step in plan.execution_steps:
            progress.on_message(f"Would {step}")
        return result

    prs: Dict[str, PullRequest] = dict(plan.existing_prs)
    for step in plan.execution_steps:
        try:
            _apply_step(step, plan, workspace, platform, progress, result, prs)
        except RungError as e:
            logger.error(f"Failed to {step}: {e}")
            result.failed_step = step
            result.error_message = str(e)
            return result

    if stack_comments:
        post_stack_comments(plan, prs, platform, progress)
    return result
