from pathlib import Path
from typing import Sequence

import pytest

from zz.config import ResolvedConfig
from zz.errors import SessionHostError, VCSError
from zz.models import SessionInfo, SessionStatus, WorktreeEntry
from zz.services.flow import SelectionFlow
from zz.services.repos import RepositoryIndex
from zz.services.session import SessionOrchestrator
from zz.services.worktree import WorktreeManager


class FakeVCS:
    """In-memory git: branches per repo path, worktrees created as real directories."""

    def __init__(self) -> None:
        self.local: dict[Path, list[str]] = {}
        self.remote: dict[Path, list[str]] = {}
        self.heads: dict[Path, str] = {}
        self.bare: set[Path] = set()
        self.worktrees: dict[Path, list[WorktreeEntry]] = {}
        self.common_dirs: dict[Path, Path] = {}
        self.calls: list[tuple] = []
        self.fail_add: str | None = None
        self.fail_remove: str | None = None

    def add_repo(self, path: Path, local=(), remote=(), head: str | None = None) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        (path / "HEAD").write_text("ref: refs/heads/main\n")
        self.bare.add(path)
        self.local[path] = list(local)
        self.remote[path] = list(remote)
        if head:
            self.heads[path] = head
        self.worktrees[path] = [WorktreeEntry(path=str(path), bare=True)]
        return path

    def clone_bare(self, url: str, dest: Path) -> None:
        self.calls.append(("clone_bare", url, dest))
        self.add_repo(dest)

    def set_remote_head(self, repo: Path, remote: str) -> None:
        self.calls.append(("set_remote_head", repo, remote))

    def is_bare(self, path: Path) -> bool:
        return path in self.bare

    def local_branches(self, repo: Path) -> list[str]:
        return list(self.local.get(repo, []))

    def remote_branches(self, repo: Path) -> list[str]:
        return list(self.remote.get(repo, []))

    def remote_head(self, repo: Path, remote: str) -> str | None:
        return self.heads.get(repo)

    def add_worktree(self, repo: Path, path: Path, branch: str, new_branch: bool = False) -> None:
        self.calls.append(("add_worktree", repo, path, branch, new_branch))
        if self.fail_add:
            raise VCSError(self.fail_add)
        path.mkdir(parents=True)
        if new_branch or branch not in self.local.setdefault(repo, []):
            self.local[repo].append(branch)
        self.worktrees.setdefault(repo, []).append(WorktreeEntry(path=str(path), branch=branch))

    def remove_worktree(self, repo: Path, path: Path) -> None:
        self.calls.append(("remove_worktree", repo, path))
        if self.fail_remove:
            raise VCSError(self.fail_remove)
        self.worktrees[repo] = [e for e in self.worktrees.get(repo, []) if e.path != str(path)]

    def prune_worktrees(self, repo: Path) -> None:
        self.calls.append(("prune_worktrees", repo))
        self.worktrees[repo] = [e for e in self.worktrees.get(repo, []) if Path(e.path).exists()]

    def list_worktrees(self, repo: Path) -> list[WorktreeEntry]:
        return list(self.worktrees.get(repo, []))

    def common_dir(self, cwd: Path) -> Path | None:
        for start, git_dir in self.common_dirs.items():
            if cwd == start or start in cwd.parents:
                return git_dir
        return None

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


class FakeSessionHost:
    def __init__(self, sessions: Sequence[SessionInfo] = (), current: str | None = None) -> None:
        self.sessions: list[SessionInfo] = list(sessions)
        self.current = current
        self.calls: list[tuple] = []
        self.fail_kill: set[str] = set()

    def list_sessions(self) -> list[SessionInfo]:
        self.calls.append(("list",))
        return list(self.sessions)

    def create(self, name: str, cwd: Path) -> None:
        self.calls.append(("create", name, cwd))
        self.sessions.append(SessionInfo(name=name, status=SessionStatus.ACTIVE))

    def attach(self, name: str, cwd: Path) -> None:
        self.calls.append(("attach", name, cwd))

    def kill(self, session: SessionInfo) -> None:
        self.calls.append(("kill", session.name))
        if session.name in self.fail_kill:
            raise SessionHostError(f"cannot kill {session.name}")
        self.sessions = [s for s in self.sessions if s.name != session.name]

    def new_tab(self, cwd: Path, name: str) -> None:
        self.calls.append(("new_tab", cwd, name))

    def current_session(self) -> str | None:
        return self.current


class FakePicker:
    """Substring filter; ``choice`` is what the interactive picker returns."""

    def __init__(self, choice: str | None = None) -> None:
        self.choice = choice
        self.shown: list[list[str]] = []

    def filter(self, candidates: Sequence[str], query: str) -> list[str]:
        return [c for c in candidates if query in c]

    def choose(self, candidates: Sequence[str], prompt: str = "") -> str | None:
        self.shown.append(list(candidates))
        return self.choice


def make_config(tmp_path: Path, **overrides) -> ResolvedConfig:
    bare_root = tmp_path / "bare"
    bare_root.mkdir(exist_ok=True)
    worktree_base = tmp_path / "worktrees"
    worktree_base.mkdir(exist_ok=True)
    values = dict(
        bare_root=bare_root,
        worktree_base=worktree_base,
        data_dir=tmp_path / "data",
        remote="origin",
        session_backend="zellij",
        picker_command="fzf",
        frecency=False,
        max_depth=5,
        inside_session=False,
    )
    values.update(overrides)
    return ResolvedConfig(**values)


@pytest.fixture()
def fake_config(tmp_path: Path) -> ResolvedConfig:
    return make_config(tmp_path)


@pytest.fixture()
def vcs() -> FakeVCS:
    return FakeVCS()


@pytest.fixture()
def host() -> FakeSessionHost:
    return FakeSessionHost()


@pytest.fixture()
def picker() -> FakePicker:
    return FakePicker()


def make_flow(config: ResolvedConfig, vcs: FakeVCS, host: FakeSessionHost, picker: FakePicker, frecency=None) -> SelectionFlow:
    return SelectionFlow(
        config=config,
        vcs=vcs,
        index=RepositoryIndex(config, vcs),
        worktrees=WorktreeManager(config, vcs),
        sessions=SessionOrchestrator(config, host),
        picker=picker,
        frecency=frecency,
    )


@pytest.fixture()
def flow(fake_config, vcs, host, picker) -> SelectionFlow:
    return make_flow(fake_config, vcs, host, picker)
