from pathlib import Path

import pytest

from zz.errors import WorktreeCreationFailedError
from zz.models import RepoId, WorktreeEntry
from zz.services.worktree import WorktreeManager


@pytest.fixture()
def manager(fake_config, vcs) -> WorktreeManager:
    return WorktreeManager(fake_config, vcs)


@pytest.fixture()
def source(fake_config, vcs) -> Path:
    return vcs.add_repo(fake_config.bare_root / "github.com" / "acme" / "widgets", local=["main"])


def test_worktree_path(fake_config, manager):
    path = manager.worktree_path(RepoId.parse("github.com/acme/widgets"), "main")
    assert path == fake_config.worktree_base / "github.com" / "acme" / "widgets" / "main"


def test_worktree_path_nests_slashed_branches(fake_config, manager):
    path = manager.worktree_path(RepoId.parse("h/r"), "feature/login")
    assert path == fake_config.worktree_base / "h" / "r" / "feature" / "login"


class TestEnsureWorktree:
    def test_creates_missing_worktree(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "github.com" / "acme" / "widgets" / "main"

        assert manager.ensure_worktree(source, "main", target) is True

        assert target.is_dir()
        assert vcs.calls[-1] == ("add_worktree", source, target, "main", False)

    def test_is_idempotent(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "github.com" / "acme" / "widgets" / "main"

        manager.ensure_worktree(source, "main", target)
        assert manager.ensure_worktree(source, "main", target) is False

        assert target.is_dir()
        assert vcs.count("add_worktree") == 1

    def test_existing_directory_is_a_no_op(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "somewhere"
        target.mkdir()

        assert manager.ensure_worktree(source, "main", target, create_new_branch=True) is False
        assert vcs.count("add_worktree") == 0

    def test_new_branch_flag_passed_through(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "h" / "feat"

        manager.ensure_worktree(source, "feat", target, create_new_branch=True)

        assert vcs.calls[-1] == ("add_worktree", source, target, "feat", True)
        assert "feat" in vcs.local_branches(source)

    def test_wraps_vcs_failure(self, manager, vcs, source, fake_config):
        vcs.fail_add = "fatal: 'main' is already checked out"
        target = fake_config.worktree_base / "h" / "main"

        with pytest.raises(WorktreeCreationFailedError, match="already checked out"):
            manager.ensure_worktree(source, "main", target)
        assert not target.exists()


class TestPruneWorktree:
    def test_clean_removal(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "h" / "feat"
        manager.ensure_worktree(source, "feat", target, create_new_branch=True)

        manager.prune_worktree(source, target)

        assert ("remove_worktree", source, target) in vcs.calls
        assert vcs.calls[-1] == ("prune_worktrees", source)

    def test_falls_back_to_deleting_directory(self, manager, vcs, source, fake_config):
        target = fake_config.worktree_base / "h" / "dirty"
        manager.ensure_worktree(source, "dirty", target, create_new_branch=True)
        (target / "scratch.txt").write_text("uncommitted")
        vcs.fail_remove = "contains modified or untracked files"

        manager.prune_worktree(source, target)

        assert not target.exists()
        assert vcs.calls[-1] == ("prune_worktrees", source)
        assert all(e.path != str(target) for e in vcs.list_worktrees(source))


class TestListActiveWorktrees:
    def test_excludes_bare_and_given_paths(self, manager, vcs, source, fake_config):
        a = fake_config.worktree_base / "h" / "a"
        b = fake_config.worktree_base / "h" / "b"
        manager.ensure_worktree(source, "a", a, create_new_branch=True)
        manager.ensure_worktree(source, "b", b, create_new_branch=True)

        entries = manager.list_active_worktrees(source, excluding=[b])

        assert [e.branch for e in entries] == ["a"]

    def test_excludes_main_checkout_of_plain_repo(self, manager, vcs, fake_config):
        checkout = fake_config.bare_root / "h" / "plain"
        checkout.mkdir(parents=True)
        vcs.worktrees[checkout] = [
            WorktreeEntry(path=str(checkout), branch="main"),
            WorktreeEntry(path=str(fake_config.worktree_base / "h" / "plain" / "x"), branch="x"),
        ]

        assert [e.branch for e in manager.list_active_worktrees(checkout)] == ["x"]
