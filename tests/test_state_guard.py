"""
Tests for RepositoryStateGuard.

Every exit path out of the guarded block must leave HEAD where it was:
normal completion, exceptions, and termination signals.
"""

import os
import signal

import pytest

from trace_working.exit_codes import (
    DirtyWorkingTreeError,
    RepositoryError,
    RestoreError,
    TraversalInterrupted,
)
from trace_working.infra.git_client import GitClient
from trace_working.services.state_guard import RepositoryStateGuard, STASH_MESSAGE

from .conftest import git


@pytest.fixture
def client():
    return GitClient()


@pytest.fixture
def history(repo):
    repo.commit("one", {"app.py": "bad"})
    repo.commit("two", {"app.py": "bad again"})
    repo.commit("three", {"app.py": "good"})
    return repo


def guard_for(client, repo, **kwargs):
    return RepositoryStateGuard(client, str(repo.path), **kwargs)


class TestCapture:
    """Tests for the snapshot taken on entry."""

    def test_captures_branch_and_head(self, client, history):
        snapshot = guard_for(client, history).capture()

        assert snapshot.head == history.commits[-1]
        assert snapshot.branch == "main"
        assert snapshot.clean
        assert not snapshot.stashed

    def test_captures_detached_head(self, client, history):
        git(history.path, "checkout", "-q", "--detach", history.commits[1])
        snapshot = guard_for(client, history).capture()

        assert snapshot.detached
        assert snapshot.head == history.commits[1]

    def test_head_before_capture(self, client, history):
        with pytest.raises(RuntimeError):
            guard_for(client, history).head

    def test_unborn_head(self, client, repo):
        with pytest.raises(RepositoryError):
            with guard_for(client, repo):
                pass

    def test_dirty_tree_refused(self, client, history):
        (history.path / "app.py").write_text("uncommitted")

        with pytest.raises(DirtyWorkingTreeError):
            with guard_for(client, history):
                pass

        # Nothing was touched
        assert (history.path / "app.py").read_text() == "uncommitted"

    def test_untracked_files_allowed(self, client, history):
        (history.path / "scratch.txt").write_text("notes")
        with guard_for(client, history) as guard:
            assert guard.head == history.commits[-1]


class TestRestore:
    """Tests for restoration on exit."""

    def test_restores_branch(self, client, history):
        with guard_for(client, history):
            client.checkout_detached(str(history.path), history.commits[0])
            assert history.branch() is None

        assert history.branch() == "main"
        assert history.head() == history.commits[-1]
        assert (history.path / "app.py").read_text() == "good"

    def test_restores_detached_head(self, client, history):
        git(history.path, "checkout", "-q", "--detach", history.commits[1])

        with guard_for(client, history):
            client.checkout_detached(str(history.path), history.commits[0])

        assert history.branch() is None
        assert history.head() == history.commits[1]

    def test_restores_on_exception(self, client, history):
        with pytest.raises(RuntimeError, match="boom"):
            with guard_for(client, history):
                client.checkout_detached(str(history.path), history.commits[0])
                raise RuntimeError("boom")

        assert history.branch() == "main"
        assert history.head() == history.commits[-1]

    def test_restore_opt_out(self, client, history):
        with guard_for(client, history, restore=False):
            client.checkout_detached(str(history.path), history.commits[0])

        assert history.branch() is None
        assert history.head() == history.commits[0]

    def test_restore_failure_is_recorded_not_raised(self, client, history):
        lock = history.path / ".git" / "index.lock"

        with guard_for(client, history) as guard:
            client.checkout_detached(str(history.path), history.commits[0])
            lock.write_text("")

        lock.unlink()
        assert isinstance(guard.restore_error, RestoreError)
        assert "main" in str(guard.restore_error)
        assert history.head() == history.commits[0]

    def test_restore_failure_does_not_mask_exception(self, client, history):
        lock = history.path / ".git" / "index.lock"

        with pytest.raises(RuntimeError, match="original"):
            with guard_for(client, history) as guard:
                lock.write_text("")
                raise RuntimeError("original")

        lock.unlink()
        assert guard.restore_error is not None


class TestStash:
    """Tests for the --stash round trip."""

    def test_stash_and_reapply(self, client, history):
        (history.path / "app.py").write_text("work in progress")

        with guard_for(client, history, stash=True):
            assert (history.path / "app.py").read_text() == "good"
            client.checkout_detached(str(history.path), history.commits[0])

        assert history.branch() == "main"
        assert (history.path / "app.py").read_text() == "work in progress"
        assert git(history.path, "stash", "list") == ""

    def test_stash_kept_when_not_restoring(self, client, history):
        (history.path / "app.py").write_text("work in progress")

        with guard_for(client, history, stash=True, restore=False):
            client.checkout_detached(str(history.path), history.commits[0])

        assert STASH_MESSAGE in git(history.path, "stash", "list")


class TestSignals:
    """Termination signals become TraversalInterrupted and still restore."""

    def test_sigterm_restores(self, client, history):
        with pytest.raises(TraversalInterrupted) as excinfo:
            with guard_for(client, history):
                client.checkout_detached(str(history.path), history.commits[0])
                os.kill(os.getpid(), signal.SIGTERM)
                # The handler raises before this loop could finish
                for _ in range(1000000):
                    pass

        assert excinfo.value.signum == signal.SIGTERM
        assert history.branch() == "main"
        assert history.head() == history.commits[-1]

    def test_handlers_reinstated(self, client, history):
        before = signal.getsignal(signal.SIGTERM)

        with guard_for(client, history):
            assert signal.getsignal(signal.SIGTERM) is not before

        assert signal.getsignal(signal.SIGTERM) == before

    def test_signal_handling_disabled(self, client, history):
        before = signal.getsignal(signal.SIGTERM)

        with guard_for(client, history, handle_signals=False):
            assert signal.getsignal(signal.SIGTERM) == before
