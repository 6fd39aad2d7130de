"""Pydantic models for config types."""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..models import MergeMethod

class TemporaryPatterns(BaseModel):
    """Bookmark name patterns treated as throwaway when picking a segment's bookmark."""
    prefixes: List[str] = Field(default_factory=lambda: ["wip-", "tmp-"])
    suffixes: List[str] = Field(default_factory=lambda: ["-old", "-tmp"])

    def matches(self, name: str) -> bool:
        return (any(name.startswith(p) for p in self.prefixes)
                or any(name.endswith(s) for s in self.suffixes))

class RepoConfig(BaseModel):
    """Repository configuration."""
    remote: Optional[str] = None
    default_branch: Optional[str] = None
    merge_method: MergeMethod = MergeMethod.SQUASH
    stack_comments: bool = True
    temporary_patterns: TemporaryPatterns = Field(default_factory=TemporaryPatterns)

    class Config:
        """Pydantic config."""
        extra = "allow"

class UserConfig(BaseModel):
    """User configuration."""
    confirm: bool = False
    log_git_commands: bool = True

    class Config:
        """Pydantic config."""
        extra = "allow"

class ToolConfig(BaseModel):
    """Tool configuration."""
    pretend: bool = False

    class Config:
        """Pydantic config."""
        extra = "allow"

class RungConfig(BaseModel):
    """Full pyrung configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        extra = "allow"
