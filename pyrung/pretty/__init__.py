"""Pretty formatting utilities for CLI output."""

import shutil
import sys
from typing import IO, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..merge.plan import MergePlan
    from ..submit.plan import SubmissionPlan

def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except (OSError, ValueError):
        return 80


def header(text: str, use_emoji: bool = True) -> str:
    """Create a boxed header with optional emoji."""
    width = min(get_term_width(), 100)
    h_line = "─" * (width - 2)
    v_line = "│"
    emoji = "🪜 " if use_emoji else ""
    # The emoji renders two columns wide
    pad = width - len(text) - (4 if use_emoji else 0) - 3

    result = [
        f"┌{h_line}┐",
        f"{v_line} {emoji}{text}{' ' * max(pad, 0)}{v_line}",
        f"└{h_line}┘"
    ]
    return "\n".join(result)


def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    if file is None:
        file = sys.stdout
    print(header(text, use_emoji), file=file)


def render_submission_plan(plan: 'SubmissionPlan') -> str:
    """Preview of a submission plan, one step per line."""
    lines: List[str] = [f"Stack ({len(plan.segments)} bookmarks, base `{plan.default_branch}`):"]
    for i, segment in enumerate(plan.segments):
        existing = plan.existing_prs.get(segment.bookmark.name)
        pr = f" #{existing.number}" if existing else ""
        lines.append(f"  {i + 1}. {segment.bookmark.name}{pr}")
    if plan.is_empty():
        lines.append("Nothing to do, remote is up to date.")
        return "\n".join(lines)
    lines.append("Steps:")
    for step in plan.execution_steps:
        lines.append(f"  - {step}")
    if plan.constraints:
        lines.append("Ordering:")
        for constraint in plan.constraints:
            lines.append(f"  - {constraint}")
    return "\n".join(lines)


def render_merge_plan(plan: 'MergePlan') -> str:
    """Preview of a merge plan, one step per line."""
    if not plan.steps:
        return "Nothing to merge."
    lines: List[str] = [f"Merge into `{plan.trunk_branch}`:"]
    for step in plan.steps:
        lines.append(f"  - {step}")
    if plan.rebase_target:
        lines.append(f"Afterwards {plan.rebase_target} gets rebased onto {plan.trunk_branch}.")
    return "\n".join(lines)
