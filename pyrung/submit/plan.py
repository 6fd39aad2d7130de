"""Turning a narrowed stack plus live PR lookups into an ordered submission plan."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..models import Bookmark, NarrowedBookmarkSegment, PullRequest
from ..platform import PlatformService
from .analysis import SubmissionAnalysis, generate_pr_title, get_base_branch

logger = logging.getLogger(__name__)


@dataclass
class PushStep:
    bookmark: Bookmark

    def key(self) -> str:
        return f"push:{self.bookmark.name}"

    def __str__(self) -> str:
        return f"push {self.bookmark.name}"


@dataclass
class CreatePrStep:
    bookmark: Bookmark
    base_branch: str
    title: str
    draft: bool = False

    def key(self) -> str:
        return f"create:{self.bookmark.name}"

    def __str__(self) -> str:
        draft = " (draft)" if self.draft else ""
        return f"create PR {self.bookmark.name} → {self.base_branch}{draft}: {self.title}"


@dataclass
class UpdateBaseStep:
    bookmark: Bookmark
    current_base: str
    expected_base: str
    pr_number: int

    def key(self) -> str:
        return f"update:{self.bookmark.name}"

    def __str__(self) -> str:
        return (f"update PR #{self.pr_number} ({self.bookmark.name}) base: "
                f"{self.current_base} → {self.expected_base}")


ExecutionStep = Union[PushStep, CreatePrStep, UpdateBaseStep]


@dataclass
class StepConstraint:
    """`before` must be applied before `after`."""
    before: str
    after: str

    def __str__(self) -> str:
        return f"{self.before} before {self.after}"


@dataclass
class SubmissionPlan:
    """What has to happen remotely for the stack to match local state."""
    segments: List[NarrowedBookmarkSegment]
    constraints: List[StepConstraint] = field(default_factory=list)
    execution_steps: List[ExecutionStep] = field(default_factory=list)
    existing_prs: Dict[str, PullRequest] = field(default_factory=dict)
    remote: str = "origin"
    default_branch: str = "main"

    def count_pushes(self) -> int:
        return sum(1 for s in self.execution_steps if isinstance(s, PushStep))

    def count_creates(self) -> int:
        return sum(1 for s in self.execution_steps if isinstance(s, CreatePrStep))

    def count_updates(self) -> int:
        return sum(1 for s in self.execution_steps if isinstance(s, UpdateBaseStep))

    def is_empty(self) -> bool:
        return not self.execution_steps

    def bookmark_names(self) -> List[str]:
        return [s.bookmark.name for s in self.segments]


def _segments_of(analysis: Union[SubmissionAnalysis, List[NarrowedBookmarkSegment]]) -> List[NarrowedBookmarkSegment]:
    if isinstance(analysis, SubmissionAnalysis):
        return analysis.segments
    return list(analysis)


def create_submission_plan(analysis: Union[SubmissionAnalysis, List[NarrowedBookmarkSegment]],
                           platform: PlatformService, remote: str,
                           default_branch: str) -> SubmissionPlan:
    """Build the submission plan for a stack.

    PR lookups run one bookmark at a time in stack order. The first lookup
    error is raised as-is and no plan is returned.
    """
    segments = _segments_of(analysis)

    pushes: List[PushStep] = []
    pr_steps: List[Union[CreatePrStep, UpdateBaseStep]] = []
    constraints: List[StepConstraint] = []
    existing_prs: Dict[str, PullRequest] = {}

    previous_create: Optional[CreatePrStep] = None
    for segment in segments:
        bookmark = segment.bookmark
        expected_base = get_base_branch(bookmark.name, segments, default_branch)

        existing: Optional[PullRequest] = platform.find_existing_pr(bookmark.name)
        logger.debug(f"Lookup {bookmark.name}: "
                     f"{'PR #' + str(existing.number) if existing else 'no PR'}")

        push: Optional[PushStep] = None
        if not bookmark.is_synced:
            push = PushStep(bookmark)
            pushes.append(push)

        if existing is None:
            create = CreatePrStep(
                bookmark=bookmark,
                base_branch=expected_base,
                title=generate_pr_title(bookmark.name, segments),
            )
            pr_steps.append(create)
            if push is not None:
                constraints.append(StepConstraint(push.key(), create.key()))
            if previous_create is not None:
                constraints.append(StepConstraint(previous_create.key(), create.key()))
            previous_create = create
        else:
            existing_prs[bookmark.name] = existing
            if existing.base_ref != expected_base:
                update = UpdateBaseStep(
                    bookmark=bookmark,
                    current_base=existing.base_ref,
                    expected_base=expected_base,
                    pr_number=existing.number,
                )
                pr_steps.append(update)
                if push is not None:
                    constraints.append(StepConstraint(push.key(), update.key()))

    steps: List[ExecutionStep] = []
    steps.extend(pushes)
    steps.extend(pr_steps)

    plan = SubmissionPlan(
        segments=list(segments),
        constraints=constraints,
        execution_steps=steps,
        existing_prs=existing_prs,
        remote=remote,
        default_branch=default_branch,
    )
    logger.debug(f"Submission plan: {plan.count_pushes()} push, {plan.count_creates()} create, "
                 f"{plan.count_updates()} update")
    return plan
