"""Tests for create_submission_plan."""

import pytest

from pyrung.pretty import render_submission_plan
from pyrung.submit import (
    CreatePrStep, PushStep, UpdateBaseStep, analyze_submission, create_submission_plan,
)
from pyrung.tests.fakes import FakePlatform, make_linear_stack
from pyrung.typing import PlatformError


def plan_for(names, platform: FakePlatform, synced: bool = False, default_branch: str = "main"):
    analysis = analyze_submission(make_linear_stack(names, synced=synced))
    return create_submission_plan(analysis, platform, "origin", default_branch)


class TestNewStack:
    """Stacks with no PRs yet."""

    @pytest.mark.parametrize("size", [1, 2, 3, 5])
    def test_one_create_per_bookmark_chained_bases(self, platform: FakePlatform, size: int) -> None:
        names = [f"feat-{i}" for i in range(size)]
        plan = plan_for(names, platform)

        creates = [s for s in plan.execution_steps if isinstance(s, CreatePrStep)]
        assert len(creates) == size
        assert creates[0].base_branch == "main"
        for i in range(1, size):
            assert creates[i].base_branch == creates[i - 1].bookmark.name
        assert plan.count_updates() == 0

    def test_titles_come_from_changes(self, platform: FakePlatform) -> None:
        plan = plan_for(["a", "b"], platform)
        titles = [s.title for s in plan.execution_steps if isinstance(s, CreatePrStep)]
        assert titles == ["feat: a", "feat: b"]

    def test_creates_are_not_drafts(self, platform: FakePlatform) -> None:
        plan = plan_for(["a"], platform)
        assert all(not s.draft for s in plan.execution_steps if isinstance(s, CreatePrStep))

    def test_custom_default_branch(self, platform: FakePlatform) -> None:
        plan = plan_for(["a"], platform, default_branch="develop")
        assert plan.execution_steps[-1].base_branch == "develop"
        assert plan.default_branch == "develop"

    def test_pushes_come_before_creates(self, platform: FakePlatform) -> None:
        plan = plan_for(["a", "b", "c"], platform)
        kinds = [type(s) for s in plan.execution_steps]
        assert kinds == [PushStep, PushStep, PushStep, CreatePrStep, CreatePrStep, CreatePrStep]
        assert plan.count_pushes() == 3

    def test_constraints_order_push_then_create(self, platform: FakePlatform) -> None:
        plan = plan_for(["a", "b"], platform)
        rendered = [str(c) for c in plan.constraints]
        assert "push:a before create:a" in rendered
        assert "push:b before create:b" in rendered
        assert "create:a before create:b" in rendered

    def test_preview_lists_steps_and_ordering(self, platform: FakePlatform) -> None:
        preview = render_submission_plan(plan_for(["a", "b"], platform))
        lines = preview.splitlines()
        assert lines[0] == "Stack (2 bookmarks, base `main`):"
        assert "Ordering:" in lines
        assert lines.index("Steps:") < lines.index("Ordering:")
        assert "  - create:a before create:b" in lines


class TestExistingPrs:
    """Stacks that already have some PRs."""

    def test_wrong_base_yields_one_update(self, platform: FakePlatform) -> None:
        platform.add_pr("a", "main", number=1)
        platform.add_pr("b", "old-base", number=2)
        plan = plan_for(["a", "b"], platform, synced=True)

        updates = [s for s in plan.execution_steps if isinstance(s, UpdateBaseStep)]
        assert len(updates) == 1
        assert updates[0].bookmark.name == "b"
        assert updates[0].current_base == "old-base"
        assert updates[0].expected_base == "a"
        assert updates[0].pr_number == 2
        assert plan.count_creates() == 0

    def test_correct_base_and_synced_is_empty(self, platform: FakePlatform) -> None:
        platform.add_pr("a", "main")
        platform.add_pr("b", "a")
        plan = plan_for(["a", "b"], platform, synced=True)
        assert plan.is_empty()
        assert set(plan.existing_prs) == {"a", "b"}

    def test_unsynced_existing_pr_only_pushes(self, platform: FakePlatform) -> None:
        platform.add_pr("a", "main")
        plan = plan_for(["a"], platform)
        assert [type(s) for s in plan.execution_steps] == [PushStep]

    def test_mixed_create_and_update(self, platform: FakePlatform) -> None:
        platform.add_pr("b", "main", number=7)
        plan = plan_for(["a", "b"], platform, synced=True)
        assert plan.count_creates() == 1
        assert plan.count_updates() == 1
        update = next(s for s in plan.execution_steps if isinstance(s, UpdateBaseStep))
        assert update.expected_base == "a"

    def test_existing_prs_recorded(self, platform: FakePlatform) -> None:
        pr = platform.add_pr("a", "main", number=3)
        plan = plan_for(["a", "b"], platform)
        assert plan.existing_prs == {"a": pr}
        assert plan.remote == "origin"


class TestLookups:
    """Lookup ordering and failure handling."""

    def test_lookups_in_stack_order(self, platform: FakePlatform) -> None:
        plan_for(["a", "b", "c"], platform)
        assert platform.calls_named("find_existing_pr") == [
            ("find_existing_pr", "a"), ("find_existing_pr", "b"), ("find_existing_pr", "c"),
        ]

    def test_lookup_error_aborts_and_surfaces(self, platform: FakePlatform) -> None:
        error = PlatformError("rate limited")
        platform.find_errors["b"] = error
        with pytest.raises(PlatformError) as exc_info:
            plan_for(["a", "b", "c"], platform)
        assert exc_info.value is error
        # Nothing looked up after the failure
        assert ("find_existing_pr", "c") not in platform.calls

    def test_accepts_plain_segment_list(self, platform: FakePlatform) -> None:
        segments = analyze_submission(make_linear_stack(["x", "y"])).segments
        plan = create_submission_plan(segments[1:], platform, "origin", "main")
        # Filtering out the lower bookmark makes the next one trunk-based
        assert plan.execution_steps[-1].base_branch == "main"


class TestStepRendering:
    def test_step_strings(self, platform: FakePlatform) -> None:
        platform.add_pr("b", "zzz", number=4)
        plan = plan_for(["a", "b"], platform)
        rendered = [str(s) for s in plan.execution_steps]
        assert "push a" in rendered
        assert "create PR a → main: feat: a" in rendered
        assert "update PR #4 (b) base: zzz → a" in rendered
