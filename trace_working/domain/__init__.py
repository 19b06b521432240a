"""
Domain layer for trace-working.

Contains pure domain objects with no I/O or side effects:
- CommitRef: A commit produced by the revision walk
- RepositorySnapshot: HEAD state captured before the walk
- VerificationOutcome: What happened at one commit
- TraversalEvent / TraversalResult: Per-commit record and final answer
"""

from .commit import CommitRef, RepositorySnapshot
from .outcome import (
    Decision,
    NotFoundReason,
    VerificationOutcome,
    TraversalEvent,
    TraversalResult,
)

__all__ = [
    'CommitRef',
    'RepositorySnapshot',
    'Decision',
    'NotFoundReason',
    'VerificationOutcome',
    'TraversalEvent',
    'TraversalResult',
]
