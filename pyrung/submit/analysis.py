"""Picking one bookmark per segment and deciding what part of the stack to submit."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..config.models import TemporaryPatterns
from ..models import Bookmark, BookmarkSegment, ChangeGraph, NarrowedBookmarkSegment
from ..typing import BookmarkNotFoundError, NoStackError

logger = logging.getLogger(__name__)

DEFAULT_TEMPORARY_PATTERNS = TemporaryPatterns()


def select_bookmark_for_segment(segment: BookmarkSegment, target: Optional[str] = None,
                                temporary_patterns: Optional[TemporaryPatterns] = None) -> Bookmark:
    """Pick the bookmark that represents a segment.

    A target present in the segment wins. Otherwise durable names are preferred
    over temporary ones, then the shortest name, then alphabetical order.
    """
    if not segment.bookmarks:
        raise ValueError("Segment has no bookmarks")

    if target is not None:
        for bookmark in segment.bookmarks:
            if bookmark.name == target:
                return bookmark

    patterns = temporary_patterns or DEFAULT_TEMPORARY_PATTERNS
    durable = [b for b in segment.bookmarks if not patterns.matches(b.name)]
    candidates = durable or segment.bookmarks
    return min(candidates, key=lambda b: (len(b.name), b.name))


def narrow_segment(segment: BookmarkSegment, target: Optional[str] = None,
                   temporary_patterns: Optional[TemporaryPatterns] = None) -> NarrowedBookmarkSegment:
    bookmark = select_bookmark_for_segment(segment, target, temporary_patterns)
    if len(segment.bookmarks) > 1:
        logger.debug(f"Segment {segment.bookmark_names()} narrowed to '{bookmark.name}'")
    return NarrowedBookmarkSegment(bookmark=bookmark, changes=list(segment.changes))


@dataclass
class SubmissionAnalysis:
    """The part of the stack to submit, trunk-adjacent first."""
    target_bookmark: str
    segments: List[NarrowedBookmarkSegment] = field(default_factory=list)

    def bookmark_names(self) -> List[str]:
        return [s.bookmark.name for s in self.segments]


def analyze_submission(graph: ChangeGraph, target_bookmark: Optional[str] = None,
                       temporary_patterns: Optional[TemporaryPatterns] = None) -> SubmissionAnalysis:
    """Narrow every segment and cut the stack at the target bookmark.

    Segments above the one holding the target are left out. Without a target
    the whole stack is submitted and the leaf's bookmark is the target.
    """
    if graph.stack is None or not graph.stack.segments:
        raise NoStackError()

    segments = graph.stack.segments
    if target_bookmark is not None:
        cut = None
        for i, segment in enumerate(segments):
            if target_bookmark in segment.bookmark_names():
                cut = i
                break
        if cut is None:
            raise BookmarkNotFoundError(target_bookmark)
        segments = segments[:cut + 1]

    narrowed = [narrow_segment(s, target_bookmark, temporary_patterns) for s in segments]
    target = target_bookmark if target_bookmark is not None else narrowed[-1].bookmark.name
    logger.debug(f"Submission analysis: target={target}, "
                 f"bookmarks={[s.bookmark.name for s in narrowed]}")
    return SubmissionAnalysis(target_bookmark=target, segments=narrowed)


def get_base_branch(bookmark_name: str, segments: List[NarrowedBookmarkSegment],
                    default_branch: str) -> str:
    """Base for a bookmark's PR: the previous rung's bookmark, or trunk for the first."""
    for i, segment in enumerate(segments):
        if segment.bookmark.name == bookmark_name:
            if i == 0:
                return default_branch
            return segments[i - 1].bookmark.name
    raise BookmarkNotFoundError(bookmark_name)


def generate_pr_title(bookmark_name: str, segments: List[NarrowedBookmarkSegment]) -> str:
    """Title from the oldest change of the bookmark's segment.

    Falls back to the bookmark name when that change has no description.
    """
    for segment in segments:
        if segment.bookmark.name != bookmark_name:
            continue
        if segment.changes:
            # Changes are newest first, the root change is last
            root = segment.changes[-1]
            if root.description_first_line.strip():
                return root.description_first_line.strip()
        return bookmark_name
    raise BookmarkNotFoundError(bookmark_name)
