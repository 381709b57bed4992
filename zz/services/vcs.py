import logging
from pathlib import Path
from typing import Protocol

import git as gitpython

from zz.errors import VCSError
from zz.models import WorktreeEntry

logger = logging.getLogger(__name__)


class VCS(Protocol):
    """The git operations zz issues. Everything else is git's business."""

    def clone_bare(self, url: str, dest: Path) -> None: ...

    def set_remote_head(self, repo: Path, remote: str) -> None: ...

    def is_bare(self, path: Path) -> bool: ...

    def local_branches(self, repo: Path) -> list[str]: ...

    def remote_branches(self, repo: Path) -> list[str]: ...

    def remote_head(self, repo: Path, remote: str) -> str | None: ...

    def add_worktree(self, repo: Path, path: Path, branch: str, new_branch: bool = False) -> None: ...

    def remove_worktree(self, repo: Path, path: Path) -> None: ...

    def prune_worktrees(self, repo: Path) -> None: ...

    def list_worktrees(self, repo: Path) -> list[WorktreeEntry]: ...

    def common_dir(self, cwd: Path) -> Path | None: ...


def _stderr(e: gitpython.GitCommandError) -> str:
    return str(e.stderr or e).strip()


def parse_worktree_porcelain(output: str) -> list[WorktreeEntry]:
    """Parse `git worktree list --porcelain` output."""
    entries: list[WorktreeEntry] = []
    current: WorktreeEntry | None = None
    for line in output.splitlines():
        if line.startswith("worktree "):
            current = WorktreeEntry(path=line[len("worktree "):])
        elif current is None:
            continue
        elif line.startswith("branch "):
            current.branch = line[len("branch "):].removeprefix("refs/heads/")
        elif line == "detached":
            current.branch = "(detached)"
        elif line == "bare":
            current.bare = True
        elif line == "":
            entries.append(current)
            current = None

    # Handle last entry if output doesn't end with blank line
    if current is not None:
        entries.append(current)
    return entries


class GitVCS:
    """VCS backed by GitPython."""

    def _repo(self, path: Path) -> gitpython.Repo:
        try:
            return gitpython.Repo(path)
        except (gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError) as e:
            raise VCSError(f"Not a git repository: {path}") from e

    def clone_bare(self, url: str, dest: Path) -> None:
        try:
            gitpython.Repo.clone_from(url, str(dest), bare=True)
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to clone {url}: {_stderr(e)}") from e

    def set_remote_head(self, repo: Path, remote: str) -> None:
        try:
            self._repo(repo).git.remote("set-head", remote, "--auto")
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to set {remote}/HEAD: {_stderr(e)}") from e

    def is_bare(self, path: Path) -> bool:
        try:
            return gitpython.Repo(path).bare
        except (gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError):
            return False

    def _refs(self, repo: Path, fmt: str, prefix: str) -> list[str]:
        try:
            output = self._repo(repo).git.for_each_ref(f"--format={fmt}", prefix)
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to list branches: {_stderr(e)}") from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    def local_branches(self, repo: Path) -> list[str]:
        return self._refs(repo, "%(refname:lstrip=2)", "refs/heads")

    def remote_branches(self, repo: Path) -> list[str]:
        """Remote-tracking branch names with refs/remotes/<remote>/ stripped."""
        return self._refs(repo, "%(refname:lstrip=3)", "refs/remotes")

    def remote_head(self, repo: Path, remote: str) -> str | None:
        try:
            ref = self._repo(repo).git.symbolic_ref(f"refs/remotes/{remote}/HEAD")
        except (gitpython.GitCommandError, VCSError):
            return None
        return ref.strip().removeprefix(f"refs/remotes/{remote}/") or None

    def add_worktree(self, repo: Path, path: Path, branch: str, new_branch: bool = False) -> None:
        args = ["add", "-b", branch, str(path)] if new_branch else ["add", str(path), branch]
        try:
            self._repo(repo).git.worktree(*args)
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to create worktree: {_stderr(e)}") from e
        logger.info("Created worktree", extra={"repo": str(repo), "path": str(path), "branch": branch})

    def remove_worktree(self, repo: Path, path: Path) -> None:
        try:
            self._repo(repo).git.worktree("remove", str(path))
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to remove worktree: {_stderr(e)}") from e

    def prune_worktrees(self, repo: Path) -> None:
        try:
            self._repo(repo).git.worktree("prune")
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to prune worktrees: {_stderr(e)}") from e

    def list_worktrees(self, repo: Path) -> list[WorktreeEntry]:
        try:
            output = self._repo(repo).git.worktree("list", "--porcelain")
        except gitpython.GitCommandError as e:
            raise VCSError(f"Failed to list worktrees: {_stderr(e)}") from e
        return parse_worktree_porcelain(output)

    def common_dir(self, cwd: Path) -> Path | None:
        """Shared git directory for cwd, or None outside a repository."""
        try:
            repo = gitpython.Repo(cwd, search_parent_directories=True)
            common = repo.git.rev_parse("--git-common-dir")
        except (gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError, gitpython.GitCommandError):
            return None

        git_common = Path(common)
        if not git_common.is_absolute():
            git_common = Path(repo.working_dir) / git_common
        return git_common.resolve()
