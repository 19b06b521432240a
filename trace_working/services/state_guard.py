"""
Repository state guard for trace-working.

Captures where HEAD was before the walk and puts it back afterwards, on
every exit path. Use it as a context manager:

    with RepositoryStateGuard(git, root, restore=True) as guard:
        ...  # checkouts happen here
    if guard.restore_error:
        ...  # tree may be on the wrong commit
"""

import logging
import signal
import threading
from typing import Optional

from ..domain.commit import RepositorySnapshot
from ..exit_codes import (
    CheckoutError,
    DirtyWorkingTreeError,
    RestoreError,
    TraversalInterrupted,
)
from ..infra.git_client import GitClient

logger = logging.getLogger(__name__)

# Signals turned into TraversalInterrupted while a guard is active.
# SIGINT already arrives as KeyboardInterrupt.
GUARDED_SIGNALS = tuple(
    getattr(signal, name) for name in ('SIGTERM', 'SIGHUP') if hasattr(signal, name)
)

STASH_MESSAGE = "trace-working: local changes before history walk"


def _raise_interrupted(signum, frame):
    raise TraversalInterrupted(signum)


class RepositoryStateGuard:
    """
    Snapshot of HEAD with guaranteed restoration.

    One guard per run; it owns its snapshot and nothing else reads it.
    Restoration failures never replace the exception (or result) of the
    run: they are logged as warnings and kept in ``restore_error``.
    """

    def __init__(
        self,
        git: GitClient,
        repo_path: str,
        restore: bool = True,
        stash: bool = False,
        handle_signals: bool = True
    ):
        self.git = git
        self.repo_path = repo_path
        self.restore_requested = restore
        self.stash = stash
        self.handle_signals = handle_signals
        self.restore_error: Optional[RestoreError] = None
        self._snapshot: Optional[RepositorySnapshot] = None
        self._previous_handlers = {}

    @property
    def head(self) -> str:
        """Commit hash HEAD pointed at when the snapshot was taken."""
        if self._snapshot is None:
            raise RuntimeError("Snapshot has not been captured")
        return self._snapshot.head

    def capture(self) -> RepositorySnapshot:
        """
        Record the current HEAD.

        Raises:
            RepositoryError: If HEAD cannot be resolved
            DirtyWorkingTreeError: If tracked files are modified and
                stashing was not requested
        """
        head = self.git.resolve_commit(self.repo_path, "HEAD")
        branch = self.git.current_branch(self.repo_path)
        clean = not self.git.has_uncommitted_changes(self.repo_path)

        stashed = False
        if not clean:
            if not self.stash:
                raise DirtyWorkingTreeError(
                    "Working tree has uncommitted changes to tracked files; "
                    "commit or stash them first (or pass --stash)"
                )
            stashed = self.git.stash_push(self.repo_path, STASH_MESSAGE)
            logger.info("Stashed local changes")

        snapshot = RepositorySnapshot(
            root=self.repo_path,
            head=head,
            branch=branch,
            clean=clean,
            stashed=stashed,
        )
        logger.info(f"Current HEAD is at commit: {head} ({snapshot.describe()})")
        return snapshot

    def restore(self, snapshot: RepositorySnapshot, requested: bool = True) -> None:
        """
        Put the working tree back on the snapshot's branch or commit.

        A stash taken during capture is popped only after a restore; with
        restoration opted out it stays in the stash list.

        Raises:
            RestoreError: If the checkout or the stash pop fails
        """
        if not requested:
            if snapshot.stashed:
                logger.warning("Local changes remain stashed; run 'git stash pop' on the original branch")
            return

        logger.info(f"Restoring original HEAD: {snapshot.describe()}")
        try:
            if snapshot.branch:
                self.git.checkout_branch(snapshot.root, snapshot.branch)
            else:
                self.git.checkout_detached(snapshot.root, snapshot.head)
        except CheckoutError as e:
            raise RestoreError(f"Could not restore {snapshot.describe()}: {e}")

        if snapshot.stashed and not self.git.stash_pop(snapshot.root):
            raise RestoreError(
                "Could not re-apply stashed changes; they are still in 'git stash list'"
            )

    def __enter__(self) -> "RepositoryStateGuard":
        self._snapshot = self.capture()
        self._install_signal_handlers()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        # A second termination request must not cut the restore short
        self._ignore_signals()
        try:
            self.restore(self._snapshot, self.restore_requested)
        except RestoreError as e:
            logger.warning(f"{e}. The working tree may be left on the wrong commit.")
            self.restore_error = e
        finally:
            self._restore_signal_handlers()
        return False

    def _install_signal_handlers(self) -> None:
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            return
        for signum in GUARDED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, _raise_interrupted)

    def _ignore_signals(self) -> None:
        for signum in self._previous_handlers:
            signal.signal(signum, signal.SIG_IGN)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            # None means the previous handler was not installed from Python
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
