"""Git workspace: local branches act as bookmarks."""

import os
import re
import logging
from datetime import datetime
from typing import Dict, List, Optional

import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..models import (
    Bookmark, BookmarkSegment, BranchStack, Change, ChangeGraph, GitRemote,
)
from ..typing import (
    ChangeID, CommitID, NoSupportedRemotesError, RemoteNotFoundError, WorkspaceError,
)
from ..util import first_line

logger = logging.getLogger(__name__)

CHANGE_ID_RE = re.compile(r'^Change-Id:\s*(\S+)\s*$', re.MULTILINE)


def select_remote(remotes: List[GitRemote], requested: Optional[str] = None) -> str:
    """Pick the remote to work against: the requested one, else origin, else the first."""
    if requested is not None:
        if any(r.name == requested for r in remotes):
            return requested
        raise RemoteNotFoundError(requested)
    if not remotes:
        raise NoSupportedRemotesError()
    for remote in remotes:
        if remote.name == "origin":
            return "origin"
    return remotes[0].name


def change_id_for(commit: git.Commit) -> ChangeID:
    """Change-Id trailer when the commit has one, otherwise the commit sha."""
    message = commit.message if isinstance(commit.message, str) else commit.message.decode()
    match = CHANGE_ID_RE.search(message)
    return ChangeID(match.group(1) if match else commit.hexsha)


def change_from_commit(commit: git.Commit, local_bookmarks: List[str],
                       remote_bookmarks: List[str], is_working_copy: bool) -> Change:
    message = commit.message if isinstance(commit.message, str) else commit.message.decode()
    return Change(
        commit_id=CommitID(commit.hexsha),
        change_id=change_id_for(commit),
        author_name=commit.author.name or "",
        author_email=commit.author.email or "",
        description_first_line=first_line(message),
        description=message.strip(),
        parents=[CommitID(p.hexsha) for p in commit.parents],
        local_bookmarks=local_bookmarks,
        remote_bookmarks=remote_bookmarks,
        is_working_copy=is_working_copy,
        authored_at=datetime.fromtimestamp(commit.authored_date),
        committed_at=datetime.fromtimestamp(commit.committed_date),
    )


class GitWorkspace:
    """WorkspaceProtocol over a git repository via GitPython."""

    def __init__(self, path: Optional[str] = None, remote: str = "origin",
                 default_branch: Optional[str] = None, log_commands: bool = True) -> None:
        try:
            self.repo = git.Repo(path or os.getcwd(), search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise WorkspaceError(f"Not in a git repository: {path or os.getcwd()}") from e
        self.remote = remote
        self._default_branch = default_branch
        self.log_commands = log_commands
        # Filled by build_change_graph, used to rebase what is left of a stack
        self._segment_bases: Dict[str, str] = {}
        self._leaf: Optional[str] = None

    def run_cmd(self, *args: str) -> str:
        """Run a git command, logging it the way every other remote call is logged."""
        level = logging.INFO if self.log_commands else logging.DEBUG
        logger.log(level, f"> git {' '.join(args)}")
        try:
            command = getattr(self.repo.git, args[0].replace('-', '_'))
            result = command(*args[1:])
        except GitCommandError as e:
            raise WorkspaceError(f"Git command failed: {e}") from e
        return result if isinstance(result, str) else str(result)

    def workspace_root(self) -> str:
        return str(self.repo.working_tree_dir)

    def git_dir(self) -> str:
        return str(self.repo.git_dir)

    def git_remotes(self) -> List[GitRemote]:
        return [GitRemote(name=r.name, url=r.url) for r in self.repo.remotes]

    def default_branch(self) -> str:
        """Trunk name: configured, else what <remote>/HEAD points at, else main/master."""
        if self._default_branch:
            return self._default_branch
        try:
            ref = self.repo.git.symbolic_ref(f"refs/remotes/{self.remote}/HEAD")
            self._default_branch = ref.rsplit("/", 1)[-1]
            return self._default_branch
        except GitCommandError:
            logger.debug(f"{self.remote}/HEAD not set, guessing the default branch")
        remote_refs = self._remote_refs()
        for candidate in ("main", "master"):
            if candidate in remote_refs or candidate in [h.name for h in self.repo.heads]:
                self._default_branch = candidate
                return candidate
        raise WorkspaceError("Cannot determine the default branch; set repo.default_branch in .rung.yaml")

    def trunk_ref(self) -> str:
        branch = self.default_branch()
        if branch in self._remote_refs():
            return f"{self.remote}/{branch}"
        return branch

    def _remote_refs(self) -> Dict[str, str]:
        """Branch name -> sha for the remote's tracking refs."""
        try:
            remote = self.repo.remote(self.remote)
        except ValueError:
            return {}
        refs: Dict[str, str] = {}
        for ref in remote.refs:
            name = ref.remote_head
            if name == "HEAD":
                continue
            refs[name] = ref.commit.hexsha
        return refs

    def build_change_graph(self) -> ChangeGraph:
        """Walk first-parent history from HEAD down to trunk and group it by branch."""
        try:
            return self._build_change_graph()
        except (GitCommandError, ValueError) as e:
            raise WorkspaceError(f"Failed to read the commit graph: {e}") from e

    def _build_change_graph(self) -> ChangeGraph:
        remote_refs = self._remote_refs()
        head_sha = self.repo.head.commit.hexsha

        by_commit: Dict[str, List[str]] = {}
        bookmarks: Dict[str, Bookmark] = {}
        for head in self.repo.heads:
            commit = head.commit
            remote_sha = remote_refs.get(head.name)
            bookmarks[head.name] = Bookmark(
                name=head.name,
                commit_id=CommitID(commit.hexsha),
                change_id=change_id_for(commit),
                has_remote=remote_sha is not None,
                is_synced=remote_sha == commit.hexsha,
            )
            by_commit.setdefault(commit.hexsha, []).append(head.name)

        trunk = self.trunk_ref()
        bases = self.repo.merge_base(trunk, "HEAD")
        if not bases:
            raise WorkspaceError(f"HEAD shares no history with {trunk}")
        base = bases[0]
        trunk_names = {self.default_branch()}

        # Newest first, trunk excluded
        commits = list(self.repo.iter_commits(f"{base.hexsha}..HEAD", first_parent=True))
        self._segment_bases = {}
        self._leaf = None
        if not commits:
            logger.debug("Working copy is on trunk, no stack")
            return ChangeGraph(bookmarks=bookmarks, stack=None)

        excluded = 0
        segments: List[BookmarkSegment] = []
        pending: List[Change] = []
        segment_base = base.hexsha
        for commit in reversed(commits):
            names = [n for n in sorted(by_commit.get(commit.hexsha, [])) if n not in trunk_names]
            if names and len(commit.parents) > 1:
                logger.debug(f"Dropping bookmarks {names} on merge commit {commit.hexsha[:8]}")
                excluded += len(names)
                names = []
            change = change_from_commit(
                commit,
                local_bookmarks=names,
                remote_bookmarks=[n for n in names if n in remote_refs],
                is_working_copy=commit.hexsha == head_sha,
            )
            pending.insert(0, change)
            if names:
                segment = BookmarkSegment(bookmarks=[bookmarks[n] for n in names], changes=pending)
                segments.append(segment)
                for n in names:
                    self._segment_bases[n] = segment_base
                segment_base = commit.hexsha
                pending = []

        if not segments:
            return ChangeGraph(bookmarks=bookmarks, stack=None, excluded_bookmark_count=excluded)

        self._leaf = segments[-1].bookmark_names()[0]
        logger.debug(f"Stack: {[s.bookmark_names() for s in segments]}")
        return ChangeGraph(
            bookmarks=bookmarks,
            stack=BranchStack(segments=segments),
            excluded_bookmark_count=excluded,
        )

    def git_fetch(self, remote: str) -> None:
        self.run_cmd("fetch", "--prune", remote)

    def git_push(self, bookmark: str, remote: str) -> None:
        self.run_cmd("push", "--force-with-lease", remote, f"{bookmark}:refs/heads/{bookmark}")

    def rebase_bookmark_onto_trunk(self, name: str) -> None:
        """Move name and everything stacked on it onto trunk.

        Uses the segment boundaries from the last build_change_graph, so commits
        below name that were merged upstream are left behind.
        """
        upstream = self._segment_bases.get(name)
        if upstream is None:
            upstream = self.repo.merge_base(self.trunk_ref(), name)[0].hexsha
        tip = self._leaf or name
        self.run_cmd("rebase", "--update-refs", "--onto", self.trunk_ref(), upstream, tip)

    def delete_bookmark(self, name: str) -> None:
        self.run_cmd("branch", "-D", name)
