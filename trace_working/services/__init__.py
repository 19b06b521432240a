"""
Service layer for trace-working.

Contains the logic that orchestrates domain objects and infrastructure:
- RepositoryStateGuard: Snapshot of HEAD with guaranteed restoration
- TraceService: The walk/checkout/verify/decide loop

Services are the primary API for the command line to use.
"""

from .state_guard import RepositoryStateGuard
from .trace_service import TraceService, TraceOptions, TraversalState

__all__ = [
    'RepositoryStateGuard',
    'TraceService',
    'TraceOptions',
    'TraversalState',
]
