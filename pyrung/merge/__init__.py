"""Merging a stack bottom-up: planning and execution."""

from .plan import (
    Certain, MergeConfidence, MergePlan, MergePlanOptions, MergeStep, MergeStepMerge,
    PrInfo, RetargetBaseStep, SkipStep, Uncertain, create_merge_plan,
)
from .execute import RETARGET_FAILED_PREFIX, MergeExecutionResult, execute_merge

__all__ = [
    "Certain", "MergeConfidence", "MergePlan", "MergePlanOptions", "MergeStep",
    "MergeStepMerge", "PrInfo", "RetargetBaseStep", "SkipStep", "Uncertain",
    "create_merge_plan", "RETARGET_FAILED_PREFIX", "MergeExecutionResult", "execute_merge",
]
