"""Deciding which PRs of a stack to merge, in what order, and what to retarget."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..models import MergeMethod, MergeReadiness, NarrowedBookmarkSegment, PullRequestDetails
from ..submit.analysis import SubmissionAnalysis

logger = logging.getLogger(__name__)


@dataclass
class PrInfo:
    """Pre-fetched remote state for one bookmark."""
    bookmark: str
    details: PullRequestDetails
    readiness: MergeReadiness


@dataclass(frozen=True)
class Certain:
    def __str__(self) -> str:
        return "certain"


@dataclass(frozen=True)
class Uncertain:
    """The merge depends on something the platform has not worked out yet."""
    reason: str

    def __str__(self) -> str:
        return f"uncertain: {self.reason}"


MergeConfidence = Union[Certain, Uncertain]


@dataclass
class MergeStepMerge:
    bookmark_name: str
    pr_number: int
    pr_title: str
    method: MergeMethod
    confidence: MergeConfidence = field(default_factory=Certain)

    @property
    def is_uncertain(self) -> bool:
        return isinstance(self.confidence, Uncertain)

    def __str__(self) -> str:
        if self.is_uncertain:
            return f"merge (uncertain) PR #{self.pr_number}: {self.pr_title}"
        return f"merge PR #{self.pr_number}: {self.pr_title}"


@dataclass
class RetargetBaseStep:
    bookmark_name: str
    pr_number: int
    old_base: str
    new_base: str

    def __str__(self) -> str:
        return f"retarget PR #{self.pr_number}: {self.old_base} → {self.new_base}"


@dataclass
class SkipStep:
    bookmark_name: str
    pr_number: int
    reasons: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"skip PR #{self.pr_number} ({self.bookmark_name}): {', '.join(self.reasons)}"


MergeStep = Union[MergeStepMerge, RetargetBaseStep, SkipStep]


@dataclass
class MergePlanOptions:
    # Merge up to and including this bookmark, leave the rest
    target_bookmark: Optional[str] = None
    method: MergeMethod = MergeMethod.SQUASH


@dataclass
class MergePlan:
    steps: List[MergeStep] = field(default_factory=list)
    # Merged bookmarks whose local and tracking state should go away
    bookmarks_to_clear: List[str] = field(default_factory=list)
    # First bookmark left behind, to rebase onto trunk after merging
    rebase_target: Optional[str] = None
    has_actionable: bool = False
    trunk_branch: str = "main"

    def is_empty(self) -> bool:
        """True when nothing would be merged, even if there are skips."""
        return not any(isinstance(s, MergeStepMerge) for s in self.steps)

    def merge_count(self) -> int:
        return sum(1 for s in self.steps if isinstance(s, MergeStepMerge))


def create_merge_plan(analysis: Union[SubmissionAnalysis, List[NarrowedBookmarkSegment]],
                      pr_info: Dict[str, PrInfo], options: MergePlanOptions,
                      trunk_branch: str) -> MergePlan:
    """Walk the stack bottom-up and plan merges until a blocker or the target.

    Bookmarks without PR info are ignored. Everything from the first blocked
    PR (or everything after the target) is left for rebasing instead.
    """
    segments = analysis.segments if isinstance(analysis, SubmissionAnalysis) else list(analysis)

    steps: List[MergeStep] = []
    bookmarks_to_clear: List[str] = []
    rebase_target: Optional[str] = None
    mergeable_indices: List[int] = []
    hit_blocker = False
    hit_target = False

    for index, segment in enumerate(segments):
        name = segment.bookmark.name

        if hit_target:
            if rebase_target is None:
                rebase_target = name
            continue
        if options.target_bookmark is not None and name == options.target_bookmark:
            hit_target = True

        info = pr_info.get(name)
        if info is None:
            logger.debug(f"No PR info for {name}, leaving it out of the merge plan")
            continue

        if hit_blocker:
            if rebase_target is None:
                rebase_target = name
            continue

        if info.readiness.is_blocked():
            steps.append(SkipStep(
                bookmark_name=name,
                pr_number=info.details.number,
                reasons=list(info.readiness.blocking_reasons),
            ))
            hit_blocker = True
            rebase_target = name
            continue

        reason = info.readiness.uncertainty()
        confidence: MergeConfidence = Uncertain(reason) if reason is not None else Certain()
        mergeable_indices.append(index)
        steps.append(MergeStepMerge(
            bookmark_name=name,
            pr_number=info.details.number,
            pr_title=info.details.title,
            method=options.method,
            confidence=confidence,
        ))
        bookmarks_to_clear.append(name)

    steps = _insert_retargets(steps, segments, mergeable_indices, pr_info, trunk_branch)

    plan = MergePlan(
        steps=steps,
        bookmarks_to_clear=bookmarks_to_clear,
        rebase_target=rebase_target,
        has_actionable=any(isinstance(s, MergeStepMerge) for s in steps),
        trunk_branch=trunk_branch,
    )
    logger.debug(f"Merge plan: {[str(s) for s in plan.steps]}, rebase_target={rebase_target}")
    return plan


def _insert_retargets(steps: List[MergeStep], segments: List[NarrowedBookmarkSegment],
                      mergeable_indices: List[int], pr_info: Dict[str, PrInfo],
                      trunk_branch: str) -> List[MergeStep]:
    """After each merge but the last, point the next mergeable PR at trunk.

    The platform merges into a PR's current base, so once the PR below is gone
    the next one must target trunk before it is merged.
    """
    result: List[MergeStep] = []
    merge_seen = 0
    for step in steps:
        result.append(step)
        if not isinstance(step, MergeStepMerge):
            continue
        merge_seen += 1
        if merge_seen >= len(mergeable_indices):
            continue
        next_segment = segments[mergeable_indices[merge_seen]]
        next_info = pr_info[next_segment.bookmark.name]
        if next_info.details.base_ref != trunk_branch:
            result.append(RetargetBaseStep(
                bookmark_name=next_segment.bookmark.name,
                pr_number=next_info.details.number,
                old_base=next_info.details.base_ref,
                new_base=trunk_branch,
            ))
    return result
