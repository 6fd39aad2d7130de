"""Tests for execute_submission and stack comment posting."""

from pyrung.models import PrComment
from pyrung.submit import (
    CreatePrStep, PushStep, analyze_submission, create_submission_plan, execute_submission,
    find_stack_comment,
)
from pyrung.tests.fakes import (
    FakePlatform, FakeWorkspace, RecordingProgress, make_linear_stack, push_error,
)
from pyrung.typing import GitHubApiError, PlatformError


def plan_for(names, platform: FakePlatform, synced: bool = False):
    return create_submission_plan(
        analyze_submission(make_linear_stack(names, synced=synced)), platform, "origin", "main")


class TestExecuteSubmission:
    """Applying steps in order."""

    def test_full_new_stack(self, platform: FakePlatform, workspace: FakeWorkspace,
                            progress: RecordingProgress) -> None:
        plan = plan_for(["a", "b", "c"], platform)
        result = execute_submission(plan, workspace, platform, progress)

        assert result.is_success()
        assert result.pushed_bookmarks == ["a", "b", "c"]
        assert [pr.head_ref for pr in result.created_prs] == ["a", "b", "c"]
        assert [pr.base_ref for pr in result.created_prs] == ["main", "a", "b"]
        assert result.summary() == "3 pushed, 3 created, 0 updated"
        assert workspace.calls_named("git_push") == [
            ("git_push", "a", "origin"), ("git_push", "b", "origin"), ("git_push", "c", "origin"),
        ]

    def test_progress_messages(self, platform: FakePlatform, workspace: FakeWorkspace,
                               progress: RecordingProgress) -> None:
        plan = plan_for(["a"], platform)
        execute_submission(plan, workspace, platform, progress)
        assert progress.messages[0] == "⬆️  Pushing a to origin"
        assert progress.messages[1] == "📝 Creating PR for a (base: main)"
        assert progress.messages[2].startswith("✅ Created PR #1")

    def test_update_base(self, platform: FakePlatform, workspace: FakeWorkspace,
                         progress: RecordingProgress) -> None:
        platform.add_pr("a", "main", number=1)
        platform.add_pr("b", "stale", number=2)
        plan = plan_for(["a", "b"], platform, synced=True)
        result = execute_submission(plan, workspace, platform, progress)

        assert result.is_success()
        assert [pr.number for pr in result.updated_prs] == [2]
        assert platform.prs["b"].base_ref == "a"
        assert platform.calls_named("update_pr_base") == [("update_pr_base", 2, "a")]

    def test_push_failure_stops(self, platform: FakePlatform, workspace: FakeWorkspace,
                                progress: RecordingProgress) -> None:
        workspace.push_errors["b"] = push_error("b")
        plan = plan_for(["a", "b", "c"], platform)
        result = execute_submission(plan, workspace, platform, progress)

        assert not result.is_success()
        assert isinstance(result.failed_step, PushStep)
        assert result.failed_step.bookmark.name == "b"
        assert "rejected" in result.error_message
        assert result.pushed_bookmarks == ["a"]
        assert platform.calls_named("create_pr") == []

    def test_create_failure_keeps_earlier_work(self, platform: FakePlatform, workspace: FakeWorkspace,
                                               progress: RecordingProgress) -> None:
        platform.create_errors["b"] = GitHubApiError("Validation Failed")
        plan = plan_for(["a", "b", "c"], platform)
        result = execute_submission(plan, workspace, platform, progress)

        assert isinstance(result.failed_step, CreatePrStep)
        assert result.error_message == "Validation Failed"
        assert [pr.head_ref for pr in result.created_prs] == ["a"]
        # No PR for c was attempted
        assert ("create_pr", "c", "b", "feat: c", False) not in platform.calls
        # No stack comments after a failure
        assert platform.calls_named("create_pr_comment") == []

    def test_dry_run_changes_nothing(self, platform: FakePlatform, workspace: FakeWorkspace,
                                     progress: RecordingProgress) -> None:
        plan = plan_for(["a", "b"], platform)
        result = execute_submission(plan, workspace, platform, progress, dry_run=True)

        assert result.dry_run
        assert result.is_success()
        assert result.pushed_bookmarks == []
        assert workspace.calls_named("git_push") == []
        assert platform.calls_named("create_pr") == []
        assert progress.messages[0] == "Would push a"
        assert len(progress.messages) == 4

    def test_empty_plan(self, platform: FakePlatform, workspace: FakeWorkspace,
                        progress: RecordingProgress) -> None:
        platform.add_pr("a", "main")
        plan = plan_for(["a"], platform, synced=True)
        result = execute_submission(plan, workspace, platform, progress)
        assert result.is_success()
        assert result.summary() == "0 pushed, 0 created, 0 updated"


class TestStackComments:
    """Stack comments posted after a successful run."""

    def test_comment_on_every_pr(self, platform: FakePlatform, workspace: FakeWorkspace,
                                 progress: RecordingProgress) -> None:
        plan = plan_for(["a", "b", "c"], platform)
        execute_submission(plan, workspace, platform, progress)

        assert [c[1] for c in platform.calls_named("create_pr_comment")] == [1, 2, 3]
        for number in (1, 2, 3):
            assert find_stack_comment(platform.comments[number]) is not None

    def test_single_pr_gets_no_comment(self, platform: FakePlatform, workspace: FakeWorkspace,
                                       progress: RecordingProgress) -> None:
        plan = plan_for(["a"], platform)
        execute_submission(plan, workspace, platform, progress)
        assert platform.calls_named("list_pr_comments") == []

    def test_disabled(self, platform: FakePlatform, workspace: FakeWorkspace,
                      progress: RecordingProgress) -> None:
        plan = plan_for(["a", "b"], platform)
        execute_submission(plan, workspace, platform, progress, stack_comments=False)
        assert platform.calls_named("list_pr_comments") == []

    def test_second_run_leaves_comments_alone(self, platform: FakePlatform, workspace: FakeWorkspace,
                                              progress: RecordingProgress) -> None:
        execute_submission(plan_for(["a", "b"], platform), workspace, platform, progress)
        platform.calls.clear()

        # Everything exists now; only comments get checked
        execute_submission(plan_for(["a", "b"], platform, synced=True), workspace, platform, progress)
        assert platform.calls_named("create_pr_comment") == []
        assert platform.calls_named("update_pr_comment") == []
        assert len(platform.calls_named("list_pr_comments")) == 2

    def test_outdated_comment_is_updated(self, platform: FakePlatform, workspace: FakeWorkspace,
                                         progress: RecordingProgress) -> None:
        platform.add_pr("a", "main", number=1)
        platform.add_pr("b", "a", number=2)
        stale = "old\n<!--- RUNG_STACK: e30= --->"
        platform.comments[1] = [PrComment(id=55, body=stale)]

        execute_submission(plan_for(["a", "b"], platform, synced=True), workspace, platform, progress)
        assert platform.calls_named("update_pr_comment") == [("update_pr_comment", 1, 55)]
        assert platform.comments[1][0].body != stale
        assert platform.calls_named("create_pr_comment") == [("create_pr_comment", 2)]

    def test_comment_failure_is_not_fatal(self, platform: FakePlatform, workspace: FakeWorkspace,
                                          progress: RecordingProgress) -> None:
        platform.comment_errors[1] = PlatformError("forbidden")
        result = execute_submission(plan_for(["a", "b"], platform), workspace, platform, progress)
        assert result.is_success()
        assert platform.calls_named("create_pr_comment") == [("create_pr_comment", 2)]
