"""Running a merge plan one step at a time."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..platform import PlatformService
from ..typing import PlatformError, ProgressCallback
from .plan import MergePlan, MergeStepMerge, RetargetBaseStep, SkipStep

logger = logging.getLogger(__name__)

RETARGET_FAILED_PREFIX = "Retarget failed"


@dataclass
class MergeExecutionResult:
    merged_bookmarks: List[str] = field(default_factory=list)
    failed_bookmark: Optional[str] = None
    error_message: Optional[str] = None
    # The failed merge had been planned with unknown mergeability
    was_uncertain: bool = False

    def is_success(self) -> bool:
        return self.failed_bookmark is None

    def has_merges(self) -> bool:
        return bool(self.merged_bookmarks)

    def bottom_merged(self) -> bool:
        """The trunk-adjacent PR went in, so local state needs a refresh."""
        return bool(self.merged_bookmarks)


def execute_merge(plan: MergePlan, platform: PlatformService,
                  progress: ProgressCallback) -> MergeExecutionResult:
    """Apply plan.steps in order, stopping at the first skip or failure.

    Platform errors end up in the result; nothing is raised and nothing is retried.
    """
    result = MergeExecutionResult()

    for step in plan.steps:
        if isinstance(step, MergeStepMerge):
            progress.on_message(f"🔀 Merging PR #{step.pr_number}: {step.pr_title}")
            try:
                merge_result = platform.merge_pr(step.pr_number, step.method)
            except PlatformError as e:
                logger.error(f"Merge of PR #{step.pr_number} failed: {e}")
                result.failed_bookmark = step.bookmark_name
                result.error_message = str(e)
                result.was_uncertain = step.is_uncertain
                break
            if not merge_result.merged:
                result.failed_bookmark = step.bookmark_name
                result.error_message = merge_result.message or f"PR #{step.pr_number} was not merged"
                result.was_uncertain = step.is_uncertain
                break
            progress.on_message(f"✅ Merged: {merge_result.sha or '(no sha)'}")
            result.merged_bookmarks.append(step.bookmark_name)

        elif isinstance(step, RetargetBaseStep):
            progress.on_message(
                f"🔁 Retargeting PR #{step.pr_number}: {step.old_base} → {step.new_base}")
            try:
                platform.update_pr_base(step.pr_number, step.new_base)
            except PlatformError as e:
                logger.error(f"Retarget of PR #{step.pr_number} failed: {e}")
                result.failed_bookmark = step.bookmark_name
                result.error_message = f"{RETARGET_FAILED_PREFIX}: {e}"
                result.was_uncertain = False
                break

        elif isinstance(step, SkipStep):
            progress.on_message(
                f"⏭️  Skipping PR #{step.pr_number} ({step.bookmark_name}): {', '.join(step.reasons)}")
            # Nothing above a blocked PR can be merged
            break

    return result
