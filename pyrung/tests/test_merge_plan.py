"""Tests for merge readiness and create_merge_plan."""

from typing import List

import pytest

from pyrung.merge import (
    Certain, MergePlanOptions, MergeStepMerge, RetargetBaseStep, SkipStep, Uncertain,
    create_merge_plan,
)
from pyrung.models import MergeMethod
from pyrung.submit import analyze_submission
from pyrung.tests.fakes import blocked, make_linear_stack, ready, stacked_pr_info, uncertain


def segments_for(names: List[str]):
    return analyze_submission(make_linear_stack(names)).segments


def plan_for(names, readiness=None, target=None, method=MergeMethod.SQUASH, info=None):
    return create_merge_plan(
        segments_for(names),
        info if info is not None else stacked_pr_info(names, readiness),
        MergePlanOptions(target_bookmark=target, method=method),
        "main",
    )


class TestMergeReadiness:
    """The blocking predicate."""

    def test_ready_is_not_blocked(self) -> None:
        assert not ready().is_blocked()

    @pytest.mark.parametrize("field,value", [
        ("is_approved", False),
        ("ci_passed", False),
        ("is_draft", True),
        ("is_mergeable", False),
    ])
    def test_each_condition_blocks(self, field: str, value: bool) -> None:
        readiness = ready()
        setattr(readiness, field, value)
        assert readiness.is_blocked()

    def test_unknown_mergeability_does_not_block(self) -> None:
        readiness = uncertain()
        assert not readiness.is_blocked()
        assert readiness.uncertainty() == "Merge status unknown (GitHub still computing)"

    def test_no_uncertainty(self) -> None:
        assert ready().uncertainty() is None


class TestCreateMergePlan:
    """Bottom-up planning."""

    def test_all_ready(self) -> None:
        plan = plan_for(["a", "b", "c"])
        merges = [s for s in plan.steps if isinstance(s, MergeStepMerge)]
        assert [m.bookmark_name for m in merges] == ["a", "b", "c"]
        assert plan.bookmarks_to_clear == ["a", "b", "c"]
        assert plan.rebase_target is None
        assert plan.has_actionable
        assert plan.merge_count() == 3

    def test_retargets_between_merges(self) -> None:
        plan = plan_for(["a", "b", "c"])
        assert [type(s) for s in plan.steps] == [
            MergeStepMerge, RetargetBaseStep, MergeStepMerge, RetargetBaseStep, MergeStepMerge,
        ]
        retarget = plan.steps[1]
        assert retarget.bookmark_name == "b"
        assert retarget.old_base == "a"
        assert retarget.new_base == "main"

    def test_no_retarget_when_already_on_trunk(self) -> None:
        info = stacked_pr_info(["a", "b"])
        info["b"].details.base_ref = "main"
        plan = plan_for(["a", "b"], info=info)
        assert [type(s) for s in plan.steps] == [MergeStepMerge, MergeStepMerge]

    def test_first_blocked(self) -> None:
        plan = plan_for(["a", "b"], readiness={"a": blocked("Not approved")})
        assert len(plan.steps) == 1
        skip = plan.steps[0]
        assert isinstance(skip, SkipStep)
        assert skip.reasons == ["Not approved"]
        assert plan.is_empty()
        assert not plan.has_actionable
        assert plan.rebase_target == "a"
        assert plan.bookmarks_to_clear == []

    def test_blocked_in_middle(self) -> None:
        plan = plan_for(["a", "b", "c"], readiness={"b": blocked("CI not passing")})
        assert [type(s) for s in plan.steps] == [MergeStepMerge, SkipStep]
        assert plan.bookmarks_to_clear == ["a"]
        assert plan.rebase_target == "b"
        # Nothing at all is planned for the PR above the blocker
        assert all(s.bookmark_name != "c" for s in plan.steps)

    def test_no_retarget_towards_blocked_pr(self) -> None:
        plan = plan_for(["a", "b"], readiness={"b": blocked()})
        assert not any(isinstance(s, RetargetBaseStep) for s in plan.steps)

    def test_uncertain_is_merged_with_reason(self) -> None:
        plan = plan_for(["a", "b"], readiness={"b": uncertain("still computing")})
        merges = [s for s in plan.steps if isinstance(s, MergeStepMerge)]
        assert merges[0].confidence == Certain()
        assert merges[1].confidence == Uncertain("still computing")
        assert merges[1].is_uncertain
        assert str(merges[1]) == "merge (uncertain) PR #2: feat: b"

    def test_target_stops_planning(self) -> None:
        plan = plan_for(["a", "b", "c"], target="b")
        merges = [s.bookmark_name for s in plan.steps if isinstance(s, MergeStepMerge)]
        assert merges == ["a", "b"]
        assert plan.rebase_target == "c"

    def test_target_is_leaf(self) -> None:
        plan = plan_for(["a", "b"], target="b")
        assert plan.merge_count() == 2
        assert plan.rebase_target is None

    def test_method_is_carried(self) -> None:
        plan = plan_for(["a"], method=MergeMethod.REBASE)
        assert plan.steps[0].method == MergeMethod.REBASE

    def test_bookmarks_without_pr_are_ignored(self) -> None:
        info = stacked_pr_info(["a", "b", "c"])
        del info["a"]
        plan = plan_for(["a", "b", "c"], info=info)
        assert plan.bookmarks_to_clear == ["b", "c"]

    def test_empty_info(self) -> None:
        plan = plan_for(["a", "b"], info={})
        assert plan.steps == []
        assert plan.is_empty()

    def test_trunk_recorded(self) -> None:
        plan = create_merge_plan(segments_for(["a"]), stacked_pr_info(["a"]), MergePlanOptions(), "develop")
        assert plan.trunk_branch == "develop"


class TestStepRendering:
    def test_strings(self) -> None:
        plan = plan_for(["a", "b"], readiness={"b": blocked("PR is a draft", "Not approved")})
        assert str(plan.steps[0]) == "merge PR #1: feat: a"
        assert str(plan.steps[1]) == "skip PR #2 (b): PR is a draft, Not approved"

    def test_retarget_string(self) -> None:
        step = RetargetBaseStep(bookmark_name="b", pr_number=2, old_base="a", new_base="main")
        assert str(step) == "retarget PR #2: a → main"
