"""Top-level commands: pick a repository or branch, then reconcile worktree and session.

The flow never talks to git, the multiplexer or fzf directly; it composes
RepositoryIndex, WorktreeManager and SessionOrchestrator with a Picker.
"""

import logging
from pathlib import Path
from typing import Sequence

from zz.config import ResolvedConfig
from zz.errors import (
    BranchExistsError,
    BranchNotFoundError,
    InvalidStateError,
    NoSelectionError,
    NotFoundError,
    NotInsideSessionError,
    ZZError,
)
from zz.models import BulkResult, RepoId, SessionInfo, SessionStatus, Target
from zz.services.codec import lookup_repository_for_session, repo_id_from_url, session_for
from zz.services.frecency import FrecencyStore
from zz.services.picker import FzfPicker, Picker
from zz.services.repos import RepositoryIndex
from zz.services.session import SessionOrchestrator, make_session_host, spawn_shell
from zz.services.vcs import VCS, GitVCS
from zz.services.worktree import WorktreeManager

logger = logging.getLogger(__name__)

WT_MARK = "wt: "
LOCAL_MARK = "local: "
REMOTE_MARK = "remote: "


class SelectionFlow:
    def __init__(
        self,
        config: ResolvedConfig,
        vcs: VCS,
        index: RepositoryIndex,
        worktrees: WorktreeManager,
        sessions: SessionOrchestrator,
        picker: Picker,
        frecency: FrecencyStore | None = None,
    ) -> None:
        self.config = config
        self.vcs = vcs
        self.index = index
        self.worktrees = worktrees
        self.sessions = sessions
        self.picker = picker
        self.frecency = frecency

    # -- selection helpers -------------------------------------------------

    def pick(self, candidates: Sequence[str], query: str | None, prompt: str = "") -> str:
        """One candidate: the first filter match for a query, else an interactive choice."""
        if query:
            matches = self.picker.filter(candidates, query)
            if not matches:
                raise NotFoundError(f"No match found for: {query}")
            return matches[0]
        choice = self.picker.choose(candidates, prompt)
        if choice is None:
            raise NoSelectionError("No selection")
        return choice

    def _ranked(self, candidates: list[str]) -> list[str]:
        if self.frecency is None:
            return candidates
        return self.frecency.rank(candidates)

    def _strip_remote(self, branch: str) -> str:
        return branch.removeprefix(f"{self.config.remote}/")

    # -- listing -----------------------------------------------------------

    def repositories(self) -> list[RepoId]:
        return list(self.index.list_repositories())

    def session_repositories(self) -> list[RepoId]:
        """Repositories backing a managed session, in session listing order."""
        known = self.repositories()
        found: list[RepoId] = []
        for session in self.sessions.list_managed():
            try:
                repo = lookup_repository_for_session(session.name, known)
            except NotFoundError:
                logger.debug("Session has no registered repository", extra={"session": session.name})
                continue
            if repo not in found:
                found.append(repo)
        return found

    def repository_status(self) -> list[tuple[RepoId, SessionStatus | None]]:
        statuses = {s.name: s.status for s in self.sessions.list_managed()}
        return [(repo, statuses.get(session_for(repo))) for repo in self.repositories()]

    def query(self, query: str | None = None) -> list[str]:
        repos = [r.path for r in self.repositories()]
        if not repos:
            raise NotFoundError("No bare repositories found.")
        if not query:
            return repos
        return self.picker.filter(repos, query)

    # -- open --------------------------------------------------------------

    def resolve(self, repo: RepoId, branch: str | None = None) -> Target:
        """Resolve and ensure the worktree for ``repo`` at ``branch`` (default branch if None)."""
        if branch:
            branch = self._strip_remote(branch)
            if not self.index.branch_exists(repo, branch):
                raise BranchNotFoundError(branch)
        else:
            branch = self.index.default_branch(repo)

        path = self.worktrees.worktree_path(repo, branch)
        created = self.worktrees.ensure_worktree(self.index.repo_path(repo), branch, path)
        return Target(repo=repo, branch=branch, worktree=path, session_id=session_for(repo), created=created)

    def select_and_open(self, query: str | None = None, branch: str | None = None, session_only: bool = False) -> Target:
        self.sessions.ensure_can_switch()

        repos = self.session_repositories() if session_only else self.repositories()
        if not repos:
            if session_only:
                raise NotFoundError("No zz sessions found.")
            raise NotFoundError("No bare repositories found. Use 'zz get <url>' to clone one.")

        selected = self.pick(self._ranked([r.path for r in repos]), query, prompt="repo")
        repo = RepoId.parse(selected)
        target = self.resolve(repo, branch)

        if self.frecency is not None:
            self.frecency.record(repo.path)
        self.sessions.open(target.session_id, target.worktree)
        return target

    # -- delete ------------------------------------------------------------

    def select_and_delete(self, query: str | None = None, delete_all: bool = False) -> BulkResult:
        if delete_all:
            result = self.sessions.kill_all()
            if not result.succeeded and not result.failed:
                raise NotFoundError("No zz sessions found.")
            return result

        names = [s.name for s in self.sessions.list_managed()]
        if not names:
            raise NotFoundError("No zz sessions found.")
        session_id = self.pick(names, query, prompt="session")
        self.sessions.kill(session_id)
        return BulkResult(succeeded=[session_id])

    def sessions_list(self) -> list[SessionInfo]:
        return self.sessions.list_managed()

    # -- branch worktrees --------------------------------------------------

    def current_repository(self, cwd: Path | None = None) -> RepoId:
        return self.index.current_repository(cwd or Path.cwd())

    def branch_candidates(self, repo: RepoId) -> list[str]:
        """Worktree branches, then other local branches, then remote-only ones."""
        source = self.index.repo_path(repo)
        seen: set[str] = set()
        candidates: list[str] = []
        groups = (
            (WT_MARK, [e.branch for e in self.worktrees.list_active_worktrees(source) if e.branch != "(detached)"]),
            (LOCAL_MARK, self.vcs.local_branches(source)),
            (REMOTE_MARK, self.vcs.remote_branches(source)),
        )
        for mark, branches in groups:
            for branch in branches:
                if not branch or branch == "HEAD" or branch in seen:
                    continue
                seen.add(branch)
                candidates.append(f"{mark}{branch}")
        return candidates

    def checkout(
        self,
        branch: str | None = None,
        create: bool = False,
        cwd: Path | None = None,
    ) -> Target:
        """Ensure a worktree for a branch of the repository containing ``cwd``.

        With ``create`` the branch must not exist yet and is created from HEAD.
        Without a branch the user picks one from worktree, local and remote names.
        """
        repo = self.current_repository(cwd)
        source = self.index.repo_path(repo)

        if create:
            if not branch:
                raise ZZError("Usage: zz new <branch-name>")
            if self.index.branch_exists(repo, branch):
                raise BranchExistsError(branch)
            path = self.worktrees.worktree_path(repo, branch)
            if path.exists():
                raise InvalidStateError(f"Worktree path already exists: {path}")
            self.worktrees.ensure_worktree(source, branch, path, create_new_branch=True)
            return Target(repo=repo, branch=branch, worktree=path, session_id=session_for(repo), created=True)

        if branch:
            return self.resolve(repo, branch)

        selection = self.pick(self.branch_candidates(repo), None, prompt="branch")
        for mark in (WT_MARK, LOCAL_MARK, REMOTE_MARK):
            selection = selection.removeprefix(mark)
        selection = self._strip_remote(selection)
        path = self.worktrees.worktree_path(repo, selection)
        created = self.worktrees.ensure_worktree(source, selection, path)
        return Target(repo=repo, branch=selection, worktree=path, session_id=session_for(repo), created=created)

    def enter(self, target: Target) -> int:
        """Open the worktree: a new tab inside a session, else a plain shell."""
        try:
            self.sessions.open_new_tab(target.worktree, target.branch)
            return 0
        except NotInsideSessionError:
            return spawn_shell(self.config.shell, target.worktree)

    def prune(self, query: str | None = None, prune_all: bool = False, cwd: Path | None = None) -> BulkResult:
        """Remove one or all branch worktrees of the current repository, never the one in use."""
        cwd = cwd or Path.cwd()
        repo = self.current_repository(cwd)
        source = self.index.repo_path(repo)

        here = cwd.resolve()
        entries = [
            e for e in self.worktrees.list_active_worktrees(source, excluding=[cwd])
            if not here.is_relative_to(Path(e.path).resolve())
        ]
        if not entries:
            raise NotFoundError(f"No worktrees to prune for {repo}")

        if not prune_all:
            by_label = {f"{e.branch or '(unknown)'}  {e.path}": e for e in entries}
            entries = [by_label[self.pick(list(by_label), query, prompt="prune")]]

        result = BulkResult()
        for entry in entries:
            try:
                self.worktrees.prune_worktree(source, Path(entry.path))
            except (ZZError, OSError) as e:
                logger.warning("Failed to prune worktree", extra={"path": entry.path, "error": str(e)})
                result.failed.append((entry.path, str(e)))
            else:
                result.succeeded.append(entry.path)
        return result

    # -- clone -------------------------------------------------------------

    def get(self, url: str) -> Path:
        repo = repo_id_from_url(url)
        dest = self.index.repo_path(repo)
        if dest.exists():
            raise InvalidStateError(f"Repository already exists: {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.vcs.clone_bare(url, dest)
        try:
            self.vcs.set_remote_head(dest, self.config.remote)
        except ZZError as e:
            logger.warning("Could not set remote HEAD", extra={"repo": repo.path, "error": str(e)})
        return dest


def build_flow(config: ResolvedConfig) -> SelectionFlow:
    vcs = GitVCS()
    return SelectionFlow(
        config=config,
        vcs=vcs,
        index=RepositoryIndex(config, vcs),
        worktrees=WorktreeManager(config, vcs),
        sessions=SessionOrchestrator(config, make_session_host(config)),
        picker=FzfPicker(config.picker_command),
        frecency=FrecencyStore(config.data_dir) if config.frecency else None,
    )
