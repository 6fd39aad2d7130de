"""The sync/merge/track/status flows, wired from workspace, platform and tracking."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config.models import RungConfig
from .merge import (
    MergeExecutionResult, MergePlan, MergePlanOptions, PrInfo, create_merge_plan, execute_merge,
)
from .models import ChangeGraph, MergeMethod, NarrowedBookmarkSegment
from .platform import PlatformService
from .pretty import render_merge_plan, render_submission_plan
from .submit import (
    SubmissionResult, analyze_submission, create_submission_plan, execute_submission,
)
from .tracking import (
    PrCache, TrackingState, load_pr_cache, load_tracking, save_pr_cache, save_tracking,
)
from .typing import (
    BookmarkNotFoundError, NoopProgress, NoStackError, PlatformError, ProgressCallback, RungError,
    SubmissionError, TrackingError, WorkspaceError, WorkspaceProtocol,
)
from .util import dedupe, plural

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


@dataclass
class CommandContext:
    """Everything a command needs, built once by the CLI."""
    workspace: WorkspaceProtocol
    platform: PlatformService
    remote: str
    default_branch: str
    # Directory holding pyrung's tracking files (the git dir)
    state_dir: str
    progress: ProgressCallback = field(default_factory=NoopProgress)
    config: RungConfig = field(default_factory=RungConfig)


def _tracked_segments(ctx: CommandContext, segments: List[NarrowedBookmarkSegment],
                      all_bookmarks: bool) -> List[NarrowedBookmarkSegment]:
    if all_bookmarks:
        return segments
    tracked = set(load_tracking(ctx.state_dir).tracked_names())
    return [s for s in segments if s.bookmark.name in tracked]


def _warn_excluded(ctx: CommandContext, graph: ChangeGraph) -> None:
    if graph.excluded_bookmark_count:
        ctx.progress.on_message(
            f"⚠️  Ignoring {plural(graph.excluded_bookmark_count, 'bookmark')} on merge commits")


def _load_stack(ctx: CommandContext, all_bookmarks: bool) -> List[NarrowedBookmarkSegment]:
    graph = ctx.workspace.build_change_graph()
    _warn_excluded(ctx, graph)
    if graph.stack is None:
        return []
    analysis = analyze_submission(graph, None, ctx.config.repo.temporary_patterns)
    return _tracked_segments(ctx, analysis.segments, all_bookmarks)


def _record_prs(ctx: CommandContext, result: SubmissionResult) -> None:
    if not result.created_prs and not result.updated_prs:
        return
    try:
        cache = load_pr_cache(ctx.state_dir)
        for pr in result.created_prs + result.updated_prs:
            cache.record(pr.head_ref, pr, ctx.remote)
        save_pr_cache(ctx.state_dir, cache)
    except TrackingError as e:
        logger.warning(f"Failed to update PR cache: {e}")


def run_sync(ctx: CommandContext, dry_run: bool = False, confirm: Optional[ConfirmCallback] = None,
             all_bookmarks: bool = False) -> SubmissionResult:
    """Push tracked bookmarks and create or retarget their PRs."""
    if not dry_run:
        ctx.workspace.git_fetch(ctx.remote)

    segments = _load_stack(ctx, all_bookmarks)
    if not segments:
        if all_bookmarks:
            raise NoStackError()
        ctx.progress.on_message("No tracked bookmarks in the stack. Use `rung track` first.")
        return SubmissionResult(dry_run=dry_run)

    plan = create_submission_plan(segments, ctx.platform, ctx.remote, ctx.default_branch)
    if plan.is_empty():
        ctx.progress.on_message("✨ Stack is up to date")
        return SubmissionResult(dry_run=dry_run)

    preview = render_submission_plan(plan)
    if dry_run:
        ctx.progress.on_message(preview)
        return execute_submission(plan, ctx.workspace, ctx.platform, ctx.progress, dry_run=True)
    if confirm is not None and not confirm(preview):
        ctx.progress.on_message("Aborted")
        return SubmissionResult()

    result = execute_submission(plan, ctx.workspace, ctx.platform, ctx.progress,
                                stack_comments=ctx.config.repo.stack_comments)
    _record_prs(ctx, result)
    if not result.is_success():
        raise SubmissionError(result)
    ctx.progress.on_message(f"✅ Synced: {result.summary()}")
    return result


def gather_pr_info(ctx: CommandContext, segments: List[NarrowedBookmarkSegment]) -> Dict[str, PrInfo]:
    """Look up PR, details and readiness for each bookmark, one at a time."""
    info: Dict[str, PrInfo] = {}
    for segment in segments:
        name = segment.bookmark.name
        pr = ctx.platform.find_existing_pr(name)
        if pr is None:
            logger.debug(f"{name} has no open PR")
            continue
        details = ctx.platform.get_pr_details(pr.number)
        readiness = ctx.platform.check_merge_readiness(pr.number)
        info[name] = PrInfo(bookmark=name, details=details, readiness=readiness)
    return info


def _clear_merged(ctx: CommandContext, merged: List[str]) -> None:
    """Forget merged bookmarks locally. Every failure here is only a warning."""
    cache: Optional[PrCache] = None
    tracking: Optional[TrackingState] = None
    try:
        cache = load_pr_cache(ctx.state_dir)
        tracking = load_tracking(ctx.state_dir)
    except TrackingError as e:
        logger.warning(f"Failed to load tracking state: {e}")

    for name in merged:
        if cache is not None:
            cache.remove(name)
        if tracking is not None:
            tracking.untrack(name)
        try:
            ctx.workspace.delete_bookmark(name)
        except WorkspaceError as e:
            logger.warning(f"Failed to delete bookmark {name}: {e}")

    try:
        if cache is not None:
            save_pr_cache(ctx.state_dir, cache)
        if tracking is not None:
            save_tracking(ctx.state_dir, tracking)
    except TrackingError as e:
        logger.warning(f"Failed to save tracking state: {e}")


def _resync_after_merge(ctx: CommandContext, plan: MergePlan, all_bookmarks: bool) -> None:
    """Rebase what is left of the stack onto trunk and fix its PR bases."""
    try:
        ctx.workspace.git_fetch(ctx.remote)
    except WorkspaceError as e:
        logger.warning(f"Fetch after merge failed: {e}")

    if plan.rebase_target:
        ctx.progress.on_message(f"🔄 Rebasing {plan.rebase_target} onto {plan.trunk_branch}")
        try:
            ctx.workspace.rebase_bookmark_onto_trunk(plan.rebase_target)
        except WorkspaceError as e:
            logger.warning(f"Rebase of {plan.rebase_target} failed, fix it up by hand: {e}")

    segments = _load_stack(ctx, all_bookmarks)
    if not segments:
        return
    try:
        sub_plan = create_submission_plan(segments, ctx.platform, ctx.remote, ctx.default_branch)
    except PlatformError as e:
        logger.warning(f"Could not plan follow-up sync: {e}")
        return
    if sub_plan.is_empty():
        return
    result = execute_submission(sub_plan, ctx.workspace, ctx.platform, ctx.progress,
                                stack_comments=ctx.config.repo.stack_comments)
    _record_prs(ctx, result)
    if not result.is_success():
        logger.warning(f"Follow-up sync stopped at {result.failed_step}: {result.error_message}")


def run_merge(ctx: CommandContext, dry_run: bool = False, confirm: Optional[ConfirmCallback] = None,
              method: Optional[MergeMethod] = None, target: Optional[str] = None,
              all_bookmarks: bool = False) -> Optional[MergeExecutionResult]:
    """Merge ready PRs bottom-up, then clean up and resync the rest.

    Returns None when nothing was attempted.
    """
    segments = _load_stack(ctx, all_bookmarks)
    if not segments:
        ctx.progress.on_message("Nothing to merge: no tracked bookmarks in the stack")
        return None
    if target is not None and target not in [s.bookmark.name for s in segments]:
        raise BookmarkNotFoundError(target)

    pr_info = gather_pr_info(ctx, segments)
    options = MergePlanOptions(target_bookmark=target, method=method or ctx.config.repo.merge_method)
    plan = create_merge_plan(segments, pr_info, options, ctx.default_branch)

    preview = render_merge_plan(plan)
    if plan.is_empty():
        ctx.progress.on_message(preview)
        ctx.progress.on_message("Nothing ready to merge")
        return None
    if dry_run:
        ctx.progress.on_message(preview)
        return None
    if confirm is not None and not confirm(preview):
        ctx.progress.on_message("Aborted")
        return None

    result = execute_merge(plan, ctx.platform, ctx.progress)

    if result.bottom_merged():
        _clear_merged(ctx, result.merged_bookmarks)
        _resync_after_merge(ctx, plan, all_bookmarks)

    if result.is_success():
        ctx.progress.on_message(f"🎉 Merged {plural(len(result.merged_bookmarks), 'PR')}")
    elif result.was_uncertain:
        ctx.progress.on_message(
            f"⚠️  Merge of {result.failed_bookmark} failed while its mergeability was still "
            f"unknown; try again shortly: {result.error_message}")
    else:
        ctx.progress.on_message(f"❌ Merge stopped at {result.failed_bookmark}: {result.error_message}")
    return result


def run_track(ctx: CommandContext, names: List[str], all_bookmarks: bool = False) -> List[str]:
    """Start tracking bookmarks; returns the ones that were not tracked before."""
    graph = ctx.workspace.build_change_graph()
    if all_bookmarks:
        if graph.stack is None:
            raise NoStackError()
        analysis = analyze_submission(graph, None, ctx.config.repo.temporary_patterns)
        names = [s.bookmark.name for s in analysis.segments]
    names = dedupe(names)
    for name in names:
        if name not in graph.bookmarks:
            raise BookmarkNotFoundError(name)

    state = load_tracking(ctx.state_dir)
    added = [n for n in names if state.track(n, graph.bookmarks[n].change_id, ctx.remote)]
    save_tracking(ctx.state_dir, state)
    for name in added:
        ctx.progress.on_message(f"Tracking {name}")
    return added


def run_untrack(ctx: CommandContext, names: List[str]) -> List[str]:
    state = load_tracking(ctx.state_dir)
    removed = [n for n in names if state.untrack(n)]
    for name in names:
        if name not in removed:
            logger.warning(f"{name} was not tracked")
    save_tracking(ctx.state_dir, state)
    return removed


def run_status(ctx: CommandContext) -> str:
    """The stack leaf first, with tracking marks and cached PR numbers. Read-only."""
    graph = ctx.workspace.build_change_graph()
    if graph.stack is None:
        return f"Working copy is on `{ctx.default_branch}`, no stack."
    try:
        analysis = analyze_submission(graph, None, ctx.config.repo.temporary_patterns)
        tracking = load_tracking(ctx.state_dir)
        cache = load_pr_cache(ctx.state_dir)
    except RungError as e:
        return f"Cannot read stack: {e}"

    lines: List[str] = []
    for segment in reversed(analysis.segments):
        name = segment.bookmark.name
        mark = "●" if tracking.is_tracked(name) else "○"
        cached = cache.get(name)
        pr = f" #{cached.number}" if cached else ""
        sync = "" if segment.bookmark.is_synced else " (needs push)"
        lines.append(f"{mark} {name}{pr}{sync}  {plural(len(segment.changes), 'change')}")
    lines.append(f"  `{ctx.default_branch}`")
    if graph.excluded_bookmark_count:
        lines.append(f"({plural(graph.excluded_bookmark_count, 'bookmark')} on merge commits ignored)")
    return "\n".join(lines)
