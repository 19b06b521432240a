"""
Commit domain objects for trace-working.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CommitRef:
    """
    A single commit discovered by the revision walk.

    Attributes:
        hash: Full object name of the commit
        parents: Parent commit hashes (empty for a root commit)
        timestamp: Committer time, seconds since the epoch
    """

    hash: str
    parents: Tuple[str, ...] = field(default_factory=tuple)
    timestamp: int = 0

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def date(self) -> datetime:
        """Committer time as a naive local datetime."""
        return datetime.fromtimestamp(self.timestamp)

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hash': self.hash,
            'parents': list(self.parents),
            'timestamp': self.timestamp,
        }

    def __str__(self) -> str:
        return self.short_hash


@dataclass(frozen=True)
class RepositorySnapshot:
    """
    Repository state captured before the first checkout.

    Only RepositoryStateGuard creates and reads these.
    """

    root: str
    head: str
    branch: Optional[str] = None
    clean: bool = True
    stashed: bool = False

    @property
    def detached(self) -> bool:
        return self.branch is None

    def describe(self) -> str:
        if self.branch:
            return f"{self.branch} ({self.head[:7]})"
        return f"detached HEAD at {self.head[:7]}"
