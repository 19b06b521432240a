"""
trace-working - find the last Git commit where a file still worked.

Walks history backwards from HEAD, checks out every commit that contains
the file, runs a verification command and stops at the first commit where
it succeeds. The original HEAD is restored afterwards.

Quick Start:
    from trace_working import TraceService, TraceOptions

    service = TraceService()
    result = service.run(TraceOptions(file="tools/report.py", command="python"))
    if result.success:
        print(result.found.hash, result.summary)

    # Or watch the walk as it happens
    for event in service.trace(TraceOptions(file="app.py", command="pytest -x")):
        print(event.commit.short_hash, event.decision.value)

Domain Objects:
    CommitRef - A commit produced by the revision walk
    TraversalEvent - What happened at one commit
    TraversalResult - FoundAt(commit) or NotFound(reason)

Services:
    TraceService - The walk/checkout/verify/decide loop
    RepositoryStateGuard - Snapshot of HEAD with guaranteed restoration
"""

__version__ = "0.2.0"

from .domain import (
    CommitRef,
    RepositorySnapshot,
    Decision,
    NotFoundReason,
    VerificationOutcome,
    TraversalEvent,
    TraversalResult,
)

from .services import (
    RepositoryStateGuard,
    TraceService,
    TraceOptions,
    TraversalState,
)

from .infra import GitClient, VerificationRunner

from .exit_codes import (
    TraceError,
    RepositoryError,
    DirtyWorkingTreeError,
    CheckoutError,
    RestoreError,
    ConfigError,
    TraversalInterrupted,
)

from .config import load_config

__all__ = [
    "__version__",
    # Domain objects
    "CommitRef",
    "RepositorySnapshot",
    "Decision",
    "NotFoundReason",
    "VerificationOutcome",
    "TraversalEvent",
    "TraversalResult",
    # Services
    "RepositoryStateGuard",
    "TraceService",
    "TraceOptions",
    "TraversalState",
    # Infrastructure
    "GitClient",
    "VerificationRunner",
    # Errors
    "TraceError",
    "RepositoryError",
    "DirtyWorkingTreeError",
    "CheckoutError",
    "RestoreError",
    "ConfigError",
    "TraversalInterrupted",
    # Configuration
    "load_config",
]
