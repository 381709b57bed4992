import logging
import os
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from zz.config import ResolvedConfig
from zz.constants import FALLBACK_BRANCH
from zz.errors import InvalidStateError
from zz.models import RepoId
from zz.services.vcs import VCS

logger = logging.getLogger(__name__)

# Directories inside a bare repository that never hold nested repositories.
_SKIP_DIRS = {"logs", "objects", "refs", "hooks", "info"}


class RepositoryIndex:
    """Known repositories under the bare repos root and their branches."""

    def __init__(self, config: ResolvedConfig, vcs: VCS) -> None:
        self.config = config
        self.vcs = vcs

    @property
    def root(self) -> Path:
        return self.config.bare_root

    def repo_path(self, repo: RepoId) -> Path:
        return self.root / repo.path

    def list_repositories(self) -> Iterator[RepoId]:
        """Yield repositories found under the root, plain clones and bare ones alike.

        Repository markers are looked for at most ``max_depth`` levels below the
        root, so repositories sit at most ``max_depth - 1`` levels deep. Never
        descends into a repository once found, and skips directories whose path
        is not a valid identifier. Order follows the (sorted) directory walk.
        """
        root = self.root
        if not root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel = current.relative_to(root)
            depth = len(rel.parts)
            dirnames.sort()

            if depth > 0:
                if ".git" in dirnames or ("HEAD" in filenames and self.vcs.is_bare(current)):
                    dirnames[:] = []
                    try:
                        repo = RepoId(segments=rel.parts)
                    except ValidationError:
                        logger.warning("Skipping repository with an invalid path", extra={"path": str(current)})
                        continue
                    yield repo
                    continue

            if depth >= self.config.max_depth - 1:
                dirnames[:] = []
            else:
                dirnames[:] = [d for d in dirnames if d not in _SKIP_DIRS and not d.startswith(".")]

    def list_branches(self, repo: RepoId) -> list[str]:
        """Local and remote-tracking branch names, deduplicated and sorted, without HEAD."""
        source = self.repo_path(repo)
        names = set(self.vcs.local_branches(source))
        names.update(self.vcs.remote_branches(source))
        names.discard("HEAD")
        return sorted(names)

    def branch_exists(self, repo: RepoId, branch: str) -> bool:
        return branch in self.list_branches(repo)

    def default_branch(self, repo: RepoId) -> str:
        """Best-effort default branch: the remote's HEAD, else ``main``."""
        branch = self.vcs.remote_head(self.repo_path(repo), self.config.remote)
        if not branch:
            logger.debug("No remote HEAD, falling back", extra={"repo": repo.path, "branch": FALLBACK_BRANCH})
            return FALLBACK_BRANCH
        return branch

    def repository_for_git_dir(self, git_dir: Path) -> RepoId:
        """Map a git common directory back to the repository that owns it."""
        if git_dir.name == ".git":
            git_dir = git_dir.parent
        root = self.root.resolve()
        try:
            rel = git_dir.resolve().relative_to(root)
        except ValueError:
            raise InvalidStateError(f"{git_dir} is not under the repository root {root}") from None
        if not rel.parts:
            raise InvalidStateError(f"{git_dir} is the repository root, not a repository")
        return RepoId(segments=rel.parts)

    def current_repository(self, cwd: Path) -> RepoId:
        git_dir = self.vcs.common_dir(cwd)
        if git_dir is None:
            raise InvalidStateError("not in a git repository")
        return self.repository_for_git_dir(git_dir)
