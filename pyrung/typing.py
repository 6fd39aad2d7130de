"""Common types used across the codebase."""

import logging
from typing import TYPE_CHECKING, List, Optional, Protocol, NewType, runtime_checkable

if TYPE_CHECKING:
    from .submit.execute import SubmissionResult
    from .models import ChangeGraph, GitRemote

# Identifiers handed out by the workspace
CommitID = NewType('CommitID', str)
ChangeID = NewType('ChangeID', str)

logger = logging.getLogger(__name__)


class RungError(Exception):
    """Base class for every error pyrung raises on purpose."""


class PlatformError(RungError):
    """A code-hosting platform call failed."""


class GitHubApiError(PlatformError):
    """GitHub API call failed."""


class GitLabApiError(PlatformError):
    """GitLab API call failed."""


class AuthError(RungError):
    """No usable token for the platform."""


class WorkspaceError(RungError):
    """The local repository could not be read or changed."""


class TrackingError(RungError):
    """Tracking state or PR cache could not be loaded or saved."""


class StackCommentError(RungError):
    """A stack comment data block could not be decoded."""


class NoStackError(RungError):
    """The working copy sits on trunk, so there is nothing to submit."""

    def __init__(self) -> None:
        super().__init__("No stack to submit: working copy is on trunk")


class BookmarkNotFoundError(RungError):
    """A named bookmark is not part of the stack."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Bookmark '{name}' not found in stack")
        self.name = name


class RemoteNotFoundError(RungError):
    """A requested remote does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Remote '{name}' not found")
        self.name = name


class NoSupportedRemotesError(RungError):
    """No remote points at a recognised platform."""

    def __init__(self, detail: str = "") -> None:
        message = "No supported remotes found (need a GitHub or GitLab remote)"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedPlatformError(RungError):
    """The remote host is neither GitHub nor GitLab."""

    def __init__(self, host: str) -> None:
        super().__init__(
            f"Unsupported platform host '{host}'. "
            "Set GH_HOST or GITLAB_HOST for self-hosted instances")
        self.host = host


class SubmissionError(RungError):
    """A submission step failed; earlier steps stay applied."""

    def __init__(self, result: 'SubmissionResult') -> None:
        super().__init__(f"Failed to {result.failed_step}: {result.error_message}")
        self.result = result


@runtime_checkable
class ProgressCallback(Protocol):
    """Receives user-visible status lines from the executors."""
    def on_message(self, text: str) -> None:
        ...


class NoopProgress:
    """Progress reporter that drops everything."""
    def on_message(self, text: str) -> None:
        pass


class LoggingProgress:
    """Progress reporter that forwards to the log."""
    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def on_message(self, text: str) -> None:
        self._log.info(text)


@runtime_checkable
class WorkspaceProtocol(Protocol):
    """What the engine needs from the local repository."""
    def build_change_graph(self) -> 'ChangeGraph':
        """Read bookmarks and the current stack. Failures are fatal."""
        ...

    def git_fetch(self, remote: str) -> None:
        ...

    def git_push(self, bookmark: str, remote: str) -> None:
        ...

    def rebase_bookmark_onto_trunk(self, name: str) -> None:
        ...

    def delete_bookmark(self, name: str) -> None:
        ...

    def default_branch(self) -> str:
        ...

    def git_remotes(self) -> List['GitRemote']:
        ...

    def workspace_root(self) -> str:
        ...
