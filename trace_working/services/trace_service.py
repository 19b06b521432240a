"""
Traversal service for trace-working.

Walks history newest-first, checks out each commit that contains the
target file, runs the verification command and stops at the first pass.
Used by the `trace-working` command.
"""

import logging
import os
import posixpath
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generator, List, Optional, Union

from ..command_template import build_command
from ..config import get_default_config
from ..domain.commit import CommitRef
from ..domain.outcome import (
    NotFoundReason,
    TraversalEvent,
    TraversalResult,
    VerificationOutcome,
)
from ..infra.command_runner import VerificationRunner
from ..infra.git_client import GitClient
from .state_guard import RepositoryStateGuard

logger = logging.getLogger(__name__)


class TraversalState(Enum):
    """Where the controller is in a run."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    WALKING = "walking"
    DECIDING = "deciding"
    STOPPED = "stopped"


@dataclass
class TraceOptions:
    """Options for one traversal run."""
    file: str
    command: str
    repo_path: str = "."
    restore: bool = True
    use_shell: bool = False
    stash: bool = False
    max_commits: Optional[int] = None  # None or 0 = whole history
    timeout: Optional[float] = None    # None or 0 = no timeout

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides) -> "TraceOptions":
        """
        Build options from the ``trace`` config section.

        Overrides whose value is None are ignored, so unset CLI flags fall
        back to the configuration.
        """
        trace = config.get('trace', {})
        values = {
            'restore': trace.get('restore', True),
            'use_shell': trace.get('shell', False),
            'stash': trace.get('stash', False),
            'max_commits': trace.get('max_commits') or None,
            'timeout': trace.get('timeout_seconds') or None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def normalize_target(root: str, file_path: str) -> str:
    """
    Express file_path relative to the repository root, POSIX style.

    Absolute paths must lie inside the repository; relative paths are
    taken as relative to the root already.

    Raises:
        ValueError: If the path escapes the repository
    """
    if os.path.isabs(file_path):
        real_root = os.path.realpath(root)
        real_file = os.path.realpath(file_path)
        if os.path.commonpath([real_root, real_file]) != real_root:
            raise ValueError(f"{file_path} is outside the repository {root}")
        file_path = os.path.relpath(real_file, real_root)

    normalized = posixpath.normpath(file_path.replace(os.sep, '/'))
    if normalized in ('', '.') or normalized.startswith('../'):
        raise ValueError(f"{file_path} does not name a file inside the repository")
    return normalized


class TraceService:
    """
    Walk/checkout/verify/decide loop.

    Commits are visited newest-first, so the first commit whose
    verification passes is the most recent working one and the walk stops
    there. Commits without the target file are skipped without a checkout.
    Whatever ends the loop, the state guard restores HEAD before the
    result (or the exception) reaches the caller.

    Example:
        service = TraceService()
        options = TraceOptions(file="app.py", command="python")

        for event in service.trace(options):
            print(event)  # "failed at 1a2b3c4"

        result = service.last_result
        print(result.found)
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        git_client: Optional[GitClient] = None,
        runner_factory: Optional[Callable[[TraceOptions], VerificationRunner]] = None
    ):
        """
        Initialize TraceService.

        Args:
            config: Configuration dict (defaults if None)
            git_client: GitClient instance (built from config if None)
            runner_factory: Builds the VerificationRunner for a run
        """
        self.config = config or get_default_config()
        git_config = self.config.get('git', {})
        self.git = git_client or GitClient(
            executable=git_config.get('executable', 'git'),
            timeout=git_config.get('timeout_seconds', 60),
        )
        self.runner_factory = runner_factory or (
            lambda options: VerificationRunner(use_shell=options.use_shell, timeout=options.timeout)
        )
        self.state = TraversalState.IDLE
        self.last_result: Optional[TraversalResult] = None
        self.events: List[TraversalEvent] = []

    def trace(self, options: TraceOptions) -> Generator[TraversalEvent, None, TraversalResult]:
        """
        Run one traversal.

        Yields one TraversalEvent per visited commit. Callers that stop
        iterating early must close the generator (``contextlib.closing``)
        so restoration happens immediately.

        Returns:
            TraversalResult (also stored as ``last_result``)

        Raises:
            RepositoryError: Before any checkout, if the repository is unusable
            CheckoutError: After restoration, if a candidate cannot be checked out
            ValueError: If the target path or command is invalid
        """
        self.state = TraversalState.INITIALIZING
        self.last_result = None
        self.events = []
        try:
            root = self.git.toplevel(options.repo_path)
            target = normalize_target(root, options.file)
            command = build_command(options.command, target, options.use_shell)
            runner = self.runner_factory(options)

            logger.info(f"Tracing {target} in {root}")
            guard = RepositoryStateGuard(self.git, root, restore=options.restore, stash=options.stash)
            with guard:
                result = yield from self._walk(root, guard.head, target, command, runner, options)
            result.restore_warning = str(guard.restore_error) if guard.restore_error else None
        finally:
            self.state = TraversalState.STOPPED

        if result.success:
            logger.info(f"Found working commit: {result.found.hash}")
            if result.summary:
                logger.info(f"Commit message: {result.summary}")
            logger.info(f"Commit date: {result.found.date.isoformat()}")
        elif result.reason == NotFoundReason.FILE_NEVER_PRESENT:
            logger.warning(f"{target} does not exist in any commit of the history")
        elif result.reason == NotFoundReason.WALK_LIMIT_REACHED:
            logger.warning(
                f"No working commit in the newest {options.max_commits} commits; "
                f"older history was not checked"
            )
        else:
            logger.warning("No working commit found in the history")

        self.last_result = result
        return result

    def _walk(
        self,
        root: str,
        head: str,
        target: str,
        command: Union[str, List[str]],
        runner: VerificationRunner,
        options: TraceOptions
    ) -> Generator[TraversalEvent, None, TraversalResult]:
        result: Optional[TraversalResult] = None
        tally = TraversalResult()
        saw_file = False
        limit_reached = False
        limit = options.max_commits or None

        self.state = TraversalState.WALKING
        # One commit past the limit tells a truncated walk from a short history
        commits = self.git.iter_commits(root, head, max_count=limit + 1 if limit else None)
        with closing(commits):
            for index, commit in enumerate(commits):
                if limit and index >= limit:
                    limit_reached = True
                    break
                logger.debug(f"Checking commit: {commit.hash}")

                if not self.git.path_exists(root, commit.hash, target):
                    logger.debug(f"File {target} does not exist in commit {commit.hash}")
                    outcome = VerificationOutcome.skipped("file not present")
                    yield self._record(tally, index, commit, outcome)
                    continue

                saw_file = True
                self.git.checkout_detached(root, commit.hash)
                outcome = runner.run(command, root)

                self.state = TraversalState.DECIDING
                yield self._record(tally, index, commit, outcome)

                if outcome.passed:
                    summary = self.git.commit_summary(root, commit.hash)
                    result = TraversalResult.found_at(commit, summary=summary)
                    break
                self.state = TraversalState.WALKING

        if result is None:
            if limit_reached:
                reason = NotFoundReason.WALK_LIMIT_REACHED
            elif saw_file:
                reason = NotFoundReason.HISTORY_EXHAUSTED
            else:
                reason = NotFoundReason.FILE_NEVER_PRESENT
            result = TraversalResult.not_found(reason)

        result.visited = tally.visited
        result.checked = tally.checked
        result.counts = tally.counts
        return result

    def _record(
        self,
        tally: TraversalResult,
        index: int,
        commit: CommitRef,
        outcome: VerificationOutcome
    ) -> TraversalEvent:
        event = TraversalEvent(index=index, commit=commit, outcome=outcome)
        tally.record(event)
        self.events.append(event)
        return event

    def run(
        self,
        options: TraceOptions,
        on_event: Optional[Callable[[TraversalEvent], None]] = None
    ) -> TraversalResult:
        """
        Run a traversal to completion.

        Args:
            options: Run options
            on_event: Called with each event as it happens

        Returns:
            TraversalResult
        """
        with closing(self.trace(options)) as events:
            for event in events:
                if on_event:
                    on_event(event)
        return self.last_result
