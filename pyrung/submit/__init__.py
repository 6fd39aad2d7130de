"""Submission: segment analysis, planning, stack comments and execution."""

from .analysis import (
    SubmissionAnalysis, analyze_submission, generate_pr_title, get_base_branch,
    narrow_segment, select_bookmark_for_segment,
)
from .plan import (
    CreatePrStep, ExecutionStep, PushStep, StepConstraint, SubmissionPlan,
    UpdateBaseStep, create_submission_plan,
)
from .comment import (
    COMMENT_DATA_PREFIX, COMMENT_DATA_SUFFIX, STACK_COMMENT_THIS_PR, StackCommentData,
    StackItem, build_stack_comment_data, decode_stack_comment_data,
    encode_stack_comment_data, find_stack_comment, format_stack_comment,
)
from .execute import SubmissionResult, execute_submission, post_stack_comments

__all__ = [
    "SubmissionAnalysis", "analyze_submission", "generate_pr_title", "get_base_branch",
    "narrow_segment", "select_bookmark_for_segment",
    "CreatePrStep", "ExecutionStep", "PushStep", "StepConstraint", "SubmissionPlan",
    "UpdateBaseStep", "create_submission_plan",
    "COMMENT_DATA_PREFIX", "COMMENT_DATA_SUFFIX", "STACK_COMMENT_THIS_PR", "StackCommentData",
    "StackItem", "build_stack_comment_data", "decode_stack_comment_data",
    "encode_stack_comment_data", "find_stack_comment", "format_stack_comment",
    "SubmissionResult", "execute_submission", "post_stack_comments",
]
