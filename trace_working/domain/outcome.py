"""
Per-commit outcome and final result types for trace-working.

Every visited commit produces one TraversalEvent; a run produces exactly
one TraversalResult.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .commit import CommitRef


class Decision(Enum):
    """What happened at one commit."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    COMMAND_ERROR = "command_error"


class NotFoundReason(Enum):
    """Why a run ended without a working commit."""
    HISTORY_EXHAUSTED = "history_exhausted"
    FILE_NEVER_PRESENT = "file_never_present"
    WALK_LIMIT_REACHED = "walk_limit_reached"  # older history was not read


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of running the verification command once.

    PASSED and FAILED come from the exit status alone. COMMAND_ERROR means
    the process never started; SKIPPED means the file was absent and nothing
    ran at all.
    """
    decision: Decision
    exit_code: Optional[int] = None
    detail: str = ""
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @classmethod
    def skipped(cls, reason: str) -> "VerificationOutcome":
        return cls(Decision.SKIPPED, detail=reason)

    @classmethod
    def command_error(cls, detail: str) -> "VerificationOutcome":
        return cls(Decision.COMMAND_ERROR, detail=detail)

    @property
    def passed(self) -> bool:
        return self.decision == Decision.PASSED


@dataclass(frozen=True)
class TraversalEvent:
    """
    Record of one visited commit, in walk order.

    Attributes:
        index: Position in the walk, 0 for HEAD
        commit: The commit visited
        outcome: What the filter or the verification command decided
    """
    index: int
    commit: CommitRef
    outcome: VerificationOutcome

    @property
    def decision(self) -> Decision:
        return self.outcome.decision

    @property
    def detail(self) -> str:
        return self.outcome.detail

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'type': 'commit',
            'index': self.index,
            'commit': self.commit.hash,
            'timestamp': self.commit.timestamp,
            'decision': self.decision.value,
            'detail': self.detail,
        }
        if self.outcome.exit_code is not None:
            result['exit_code'] = self.outcome.exit_code
        if self.decision in (Decision.PASSED, Decision.FAILED):
            result['duration'] = round(self.outcome.duration, 3)
        return result

    def to_jsonl(self) -> str:
        """Convert to single-line JSON for streaming output."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        return f"{self.decision.value} at {self.commit.short_hash}"


@dataclass
class TraversalResult:
    """
    Final answer of a run: FoundAt(commit) or NotFound(reason).

    Counters describe how much of the history was consumed; restore_warning
    carries the message of a failed restoration, if any.
    """
    found: Optional[CommitRef] = None
    reason: Optional[NotFoundReason] = None
    summary: str = ""
    visited: int = 0
    checked: int = 0
    counts: Dict[str, int] = field(default_factory=lambda: {d.value: 0 for d in Decision})
    restore_warning: Optional[str] = None

    @classmethod
    def found_at(cls, commit: CommitRef, summary: str = "") -> "TraversalResult":
        return cls(found=commit, summary=summary)

    @classmethod
    def not_found(cls, reason: NotFoundReason) -> "TraversalResult":
        return cls(reason=reason)

    @property
    def success(self) -> bool:
        """True if a working commit was found."""
        return self.found is not None

    def record(self, event: TraversalEvent) -> None:
        """Update counters from one event."""
        self.visited += 1
        self.counts[event.decision.value] += 1
        if event.decision != Decision.SKIPPED:
            self.checked += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            'type': 'result',
            'found': self.success,
            'visited': self.visited,
            'checked': self.checked,
            'counts': dict(self.counts),
        }
        if self.found is not None:
            result['commit'] = self.found.hash
            result['timestamp'] = self.found.timestamp
            result['summary'] = self.summary
        else:
            result['reason'] = self.reason.value if self.reason else None
        if self.restore_warning:
            result['restore_warning'] = self.restore_warning
        return result
