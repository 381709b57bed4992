import logging
import shutil
from pathlib import Path
from typing import Iterable

from zz.config import ResolvedConfig
from zz.errors import VCSError, WorktreeCreationFailedError
from zz.models import RepoId, WorktreeEntry
from zz.services.vcs import VCS

logger = logging.getLogger(__name__)


class WorktreeManager:
    """One checked-out directory per (repository, branch) under the worktree base."""

    def __init__(self, config: ResolvedConfig, vcs: VCS) -> None:
        self.config = config
        self.vcs = vcs

    def worktree_path(self, repo: RepoId, branch: str) -> Path:
        return self.config.worktree_base / repo.path / branch

    def ensure_worktree(
        self,
        repo_source: Path,
        branch: str,
        target: Path,
        create_new_branch: bool = False,
    ) -> bool:
        """Make sure ``target`` is a worktree of ``repo_source`` on ``branch``.

        A directory already at ``target`` is taken as-is. Otherwise the parent
        directories are created and git adds the worktree, creating ``branch``
        from HEAD when ``create_new_branch`` is set. Existence of the branch is
        the caller's concern.

        Returns True if a worktree was created.
        """
        if target.is_dir():
            logger.debug("Worktree already present", extra={"path": str(target)})
            return False

        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.vcs.add_worktree(repo_source, target, branch, new_branch=create_new_branch)
        except VCSError as e:
            raise WorktreeCreationFailedError(str(e)) from e
        return True

    def prune_worktree(self, repo_source: Path, worktree: Path) -> None:
        """Remove a worktree, falling back to deleting its directory outright."""
        try:
            self.vcs.remove_worktree(repo_source, worktree)
        except VCSError as e:
            logger.warning(
                "Clean worktree removal failed, deleting directory",
                extra={"path": str(worktree), "error": str(e)},
            )
            if worktree.exists():
                shutil.rmtree(worktree)

        try:
            self.vcs.prune_worktrees(repo_source)
        except VCSError as e:
            logger.warning("Failed to prune worktree metadata", extra={"repo": str(repo_source), "error": str(e)})

    def list_active_worktrees(self, repo_source: Path, excluding: Iterable[Path] = ()) -> list[WorktreeEntry]:
        """Worktrees git knows for ``repo_source``, minus the main one and ``excluding``."""
        skip = {Path(p).resolve() for p in excluding}
        skip.add(repo_source.resolve())
        return [
            entry
            for entry in self.vcs.list_worktrees(repo_source)
            if not entry.bare and Path(entry.path).resolve() not in skip
        ]
